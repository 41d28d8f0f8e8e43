import unittest

from offline.resolve.imageref import ImageReference, split_name_and_suffix


class TestImageReference(unittest.TestCase):
    def test_namespace_and_tag(self):
        ref = ImageReference.parse("langgenius/dify-api:1.4.0")
        self.assertIsNone(ref.registry)
        self.assertEqual(ref.namespace, "langgenius")
        self.assertEqual(ref.repository, "dify-api")
        self.assertEqual(ref.tag, "1.4.0")
        self.assertEqual(ref.name, "langgenius/dify-api")
        self.assertTrue(ref.is_docker_hub)

    def test_missing_tag_defaults_to_latest(self):
        ref = ImageReference.parse("postgres")
        self.assertEqual(ref.repository, "postgres")
        self.assertEqual(ref.tag, "latest")

    def test_registry_host(self):
        ref = ImageReference.parse("myregistry.local/foo-bar:2.0")
        self.assertEqual(ref.registry, "myregistry.local")
        self.assertIsNone(ref.namespace)
        self.assertEqual(ref.repository, "foo-bar")
        self.assertEqual(ref.tag, "2.0")
        self.assertFalse(ref.is_docker_hub)

    def test_registry_with_port(self):
        ref = ImageReference.parse("localhost:5000/team/app")
        self.assertEqual(ref.registry, "localhost:5000")
        self.assertEqual(ref.namespace, "team")
        self.assertEqual(ref.repository, "app")
        self.assertEqual(ref.tag, "latest")

    def test_docker_hub_explicit(self):
        ref = ImageReference.parse("docker.io/library/redis:7")
        self.assertEqual(ref.registry, "docker.io")
        self.assertEqual(ref.name, "library/redis")
        self.assertTrue(ref.is_docker_hub)

    def test_digest(self):
        ref = ImageReference.parse("nginx@sha256:abc")
        self.assertEqual(ref.digest, "sha256:abc")
        self.assertEqual(ref.tag, "latest")
        self.assertEqual(ImageReference.parse("nginx:1.25@sha256:abc").tag, "1.25")

    def test_with_tag(self):
        ref = ImageReference.parse("myregistry.local/foo-bar:2.0")
        self.assertEqual(ref.with_tag("offline"), "myregistry.local/foo-bar:offline")

    def test_split_name_and_suffix(self):
        self.assertEqual(split_name_and_suffix("repo/name:tag"), ("repo/name", ":tag"))
        self.assertEqual(split_name_and_suffix("localhost:5000/name"), ("localhost:5000/name", ""))


if __name__ == "__main__":
    unittest.main()
