import unittest

from offline.manifest.mounts import MountSpec, split_short_syntax


class TestMountSpec(unittest.TestCase):
    def test_parse_bind_mount(self):
        m = MountSpec.parse("./data/api:/app/storage")
        self.assertEqual(m.source, "./data/api")
        self.assertEqual(m.destination, "/app/storage")
        self.assertIsNone(m.options)
        self.assertTrue(m.is_well_formed)
        self.assertEqual(str(m), "./data/api:/app/storage")

    def test_parse_keeps_options(self):
        m = MountSpec.parse("./conf/nginx.conf:/etc/nginx/nginx.conf:ro")
        self.assertEqual(m.options, "ro")
        self.assertEqual(str(m), "./conf/nginx.conf:/etc/nginx/nginx.conf:ro")

    def test_anonymous_volume_has_no_source(self):
        m = MountSpec.parse("/data")
        self.assertIsNone(m.source)
        self.assertEqual(m.destination, "/data")
        self.assertFalse(m.is_well_formed)
        self.assertEqual(str(m), "/data")

    def test_relative_destination_is_not_well_formed(self):
        self.assertFalse(MountSpec.parse("db_data:relative").is_well_formed)

    def test_interpolation_is_not_split(self):
        self.assertEqual(
            split_short_syntax("${DATA_DIR:-./data}:/data:rw"),
            ["${DATA_DIR:-./data}", "/data", "rw"],
        )
        self.assertEqual(MountSpec.parse("${DATA_DIR:-./data}:/data").source, "${DATA_DIR:-./data}")

    def test_with_source_keeps_destination_and_options(self):
        m = MountSpec.parse("./x:/y:ro").with_source("/offline_volumes/x")
        self.assertEqual(str(m), "/offline_volumes/x:/y:ro")


if __name__ == "__main__":
    unittest.main()
