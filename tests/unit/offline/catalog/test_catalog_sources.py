import subprocess
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from offline.catalog.model import ArtifactKind, Catalog, CatalogEntry
from offline.catalog.sources import (
    CatalogSource,
    build_catalog,
    image_entries,
    list_engine_images,
)
from offline.core.errors import CatalogUnavailableError


class TestImageEntries(unittest.TestCase):
    def test_only_offline_tags_are_kept(self):
        entries = image_entries(
            ["dify_test_api-1:offline", "postgres:15-alpine", "<none>:<none>", "redis:offline"],
            suffix="offline",
            project_prefix="dify_test",
        )
        self.assertEqual(
            [(e.identifier, e.capture_name) for e in entries],
            [("dify_test_api-1:offline", "api-1"), ("redis:offline", "redis")],
        )
        self.assertTrue(all(e.kind is ArtifactKind.IMAGE for e in entries))

    def test_custom_suffix(self):
        entries = image_entries(["a:air", "b:offline"], suffix="air")
        self.assertEqual([e.identifier for e in entries], ["a:air"])


class TestCatalogModel(unittest.TestCase):
    def test_entries_are_deduplicated_and_sorted(self):
        c = Catalog.of(
            [
                CatalogEntry(ArtifactKind.IMAGE, "b:offline", "b"),
                CatalogEntry(ArtifactKind.IMAGE, "a:offline", "a"),
                CatalogEntry(ArtifactKind.IMAGE, "b:offline", "b"),
                CatalogEntry(ArtifactKind.VOLUME, "api_app_storage", "api_app_storage"),
            ]
        )
        self.assertEqual([e.identifier for e in c.images()], ["a:offline", "b:offline"])
        self.assertEqual([e.identifier for e in c.volumes()], ["api_app_storage"])
        self.assertEqual(len(c), 3)
        self.assertEqual(c.marker, ":offline")

    def test_repository_strips_tag_only(self):
        e = CatalogEntry(ArtifactKind.IMAGE, "localhost:5000/x_api-1:offline", "x")
        self.assertEqual(e.repository, "localhost:5000/x_api-1")

    def test_empty_catalog(self):
        self.assertTrue(Catalog().is_empty())


class TestBuildCatalog(unittest.TestCase):
    def test_engine_listing(self):
        done = subprocess.CompletedProcess(
            args=[], returncode=0, stdout="dify_test_api-1:offline\nnginx:latest\n", stderr=""
        )
        with patch("offline.catalog.sources.subprocess.run", return_value=done) as run:
            catalog = build_catalog(CatalogSource(images="docker", project_prefix="dify_test"))

        self.assertEqual(run.call_args.args[0][:2], ["docker", "images"])
        self.assertEqual([e.identifier for e in catalog.images()], ["dify_test_api-1:offline"])

    def test_engine_failure_is_unavailable(self):
        failed = subprocess.CompletedProcess(
            args=[], returncode=1, stdout="", stderr="Cannot connect to the Docker daemon"
        )
        with patch("offline.catalog.sources.subprocess.run", return_value=failed):
            with self.assertRaises(CatalogUnavailableError) as ctx:
                list_engine_images()
        self.assertIn("Cannot connect", str(ctx.exception))

    def test_missing_engine_binary_is_unavailable(self):
        with patch(
            "offline.catalog.sources.subprocess.run", side_effect=FileNotFoundError("docker")
        ):
            with self.assertRaises(CatalogUnavailableError):
                build_catalog(CatalogSource(images="docker"))

    def test_listing_file_skips_comments(self):
        with tempfile.TemporaryDirectory() as td:
            listing = Path(td) / "images.txt"
            listing.write_text("# captured\npostgres:offline\n\nredis:6-alpine\n", encoding="utf-8")
            catalog = build_catalog(CatalogSource(images="file", images_path=listing))
        self.assertEqual([e.identifier for e in catalog.images()], ["postgres:offline"])

    def test_missing_listing_file_is_unavailable(self):
        with tempfile.TemporaryDirectory() as td:
            with self.assertRaises(CatalogUnavailableError):
                build_catalog(CatalogSource(images="file", images_path=Path(td) / "nope.txt"))

    def test_bundle_snapshots_and_volumes(self):
        with tempfile.TemporaryDirectory() as td:
            root = Path(td)
            (root / "containers").mkdir()
            (root / "containers" / "docker-api-1.tar").write_bytes(b"")
            (root / "containers" / "notes.txt").write_text("x", encoding="utf-8")
            (root / "volumes" / "docker-api-1_app_api_storage").mkdir(parents=True)
            (root / "volumes" / "stray-file").write_text("x", encoding="utf-8")

            catalog = build_catalog(
                CatalogSource(
                    images="bundle",
                    images_path=root,
                    volumes_root=root / "volumes",
                    project_prefix="dify_test",
                )
            )

            images = catalog.images()
            volumes = catalog.volumes()

        self.assertEqual([e.identifier for e in images], ["dify_test_docker-api-1:offline"])
        self.assertEqual(images[0].capture_name, "docker-api-1")
        self.assertEqual([e.identifier for e in volumes], ["docker-api-1_app_api_storage"])

    def test_missing_volumes_root_is_unavailable(self):
        with tempfile.TemporaryDirectory() as td:
            with self.assertRaises(CatalogUnavailableError):
                build_catalog(CatalogSource(volumes_root=Path(td) / "volumes"))

    def test_empty_sources_give_empty_catalog(self):
        with tempfile.TemporaryDirectory() as td:
            catalog = build_catalog(CatalogSource(volumes_root=Path(td)))
        self.assertTrue(catalog.is_empty())

    def test_unknown_image_source(self):
        with self.assertRaises(CatalogUnavailableError):
            build_catalog(CatalogSource(images="registry"))


if __name__ == "__main__":
    unittest.main()
