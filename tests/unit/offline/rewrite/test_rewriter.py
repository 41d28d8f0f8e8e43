import unittest

from offline.catalog.model import ArtifactKind, Catalog, CatalogEntry
from offline.manifest.model import parse, serialize
from offline.rewrite.changelog import Outcome
from offline.rewrite.rewriter import ManifestRewriter, revert, rewrite

ROOT = "/offline_volumes"

DIFY = """\
version: "3.8"
services:
  api:
    image: langgenius/dify-api:1.4.0
    restart: always
    environment:
      MODE: api
    volumes:
      - ./volumes/app/storage:/app/api/storage
  db:
    image: "postgres:15-alpine"
    volumes:
      - ./volumes/db/data:/var/lib/postgresql/data
  redis:
    image: redis:6-alpine
  custom:
    image: myregistry.local/foo-bar:2.0
networks:
  default:
    driver: bridge
"""


def _catalog(images=(), volumes=()):
    entries = [CatalogEntry(ArtifactKind.IMAGE, i, i.split(":")[0]) for i in images]
    entries += [CatalogEntry(ArtifactKind.VOLUME, v, v) for v in volumes]
    return Catalog.of(entries)


DIFY_CATALOG = _catalog(
    images=["dify_test_api-1:offline", "dify_test_redis-1:offline", "postgres:offline"],
    volumes=["docker-api-1_app_api_storage", "db_var_lib_postgresql_data"],
)


class TestRewriteScenarios(unittest.TestCase):
    def test_empty_catalog_keeps_image(self):
        text = "services:\n  custom:\n    image: myregistry.local/foo-bar:2.0\n"
        patched, log = rewrite(parse(text), Catalog(), ROOT)

        self.assertEqual(serialize(patched), text)
        self.assertEqual(len(log), 1)
        record = list(log)[0]
        self.assertEqual(record.outcome, Outcome.NOT_FOUND)
        self.assertEqual(record.reason, "no catalog entries")
        self.assertEqual(record.before, record.after)

    def test_nothing_resolvable_is_byte_identical(self):
        text = (
            "services:\n"
            "  worker:\n"
            "    build: ./worker\n"
            "    volumes:\n"
            "      - ./data:/data\n"
            "      - type: bind\n"
            "        source: ./cfg\n"
            "        target: /cfg\n"
            "  web:\n"
            "    image: nginx:1.25  # edge\n"
        )
        patched, log = rewrite(parse(text), Catalog(), ROOT)

        self.assertEqual(serialize(patched), text)
        self.assertEqual(log.applied(), [])
        outcomes = {(r.service, r.field): r.outcome for r in log}
        self.assertEqual(outcomes[("worker", "image")], Outcome.SKIPPED)
        self.assertEqual(outcomes[("worker", "volumes[0]")], Outcome.NOT_FOUND)
        self.assertEqual(outcomes[("worker", "volumes[1]")], Outcome.SKIPPED)
        self.assertEqual(outcomes[("web", "image")], Outcome.NOT_FOUND)


DIFY_STYLE = """\
# Dify stack, trimmed
x-shared-env: &shared-api-worker-env
  LOG_LEVEL: INFO
  CONSOLE_WEB_URL: ''

services:
  api:
    image: langgenius/dify-api:1.4.0
    restart: always
    environment:
      <<: *shared-api-worker-env
      MODE: api
    volumes:
      - ./volumes/app/storage:/app/api/storage

  db:
    image: postgres:15-alpine
    command: >
      postgres -c 'max_connections=100'
               -c 'shared_buffers=128MB'
    healthcheck:
      test: [ 'CMD', 'pg_isready' ]
      interval: 1s
    volumes:
    - ./volumes/db/data:/var/lib/postgresql/data

  nginx:
    image: nginx:latest
    entrypoint: [ 'sh', '-c', "cp /docker-entrypoint-mount.sh /docker-entrypoint.sh && exec /docker-entrypoint.sh" ]
    depends_on:
    - api
    ports:
      - '80:80'
"""


class TestSourceFidelity(unittest.TestCase):
    def test_nothing_applied_returns_source_text(self):
        patched, log = rewrite(parse(DIFY_STYLE), Catalog(), ROOT)
        self.assertEqual(log.applied(), [])
        self.assertEqual(serialize(patched), DIFY_STYLE)

    def test_applied_edits_touch_only_their_scalars(self):
        catalog = _catalog(
            images=["dify_test_api-1:offline", "postgres:offline"],
            volumes=["docker-api-1_app_api_storage"],
        )
        patched, log = rewrite(parse(DIFY_STYLE), catalog, ROOT, "dify_test")

        expected = (
            DIFY_STYLE.replace("image: langgenius/dify-api:1.4.0", "image: dify_test_api-1:offline")
            .replace(
                "- ./volumes/app/storage:/app/api/storage",
                "- /offline_volumes/docker-api-1_app_api_storage:/app/api/storage",
            )
            .replace("image: postgres:15-alpine", "image: postgres:offline")
        )
        self.assertEqual(len(log.applied()), 3)
        self.assertEqual(serialize(patched), expected)

        self.assertEqual(serialize(revert(patched, log)), DIFY_STYLE)


class TestManifestRewriter(unittest.TestCase):
    def setUp(self):
        self.manifest = parse(DIFY)

    def _rewrite(self, **kwargs):
        return rewrite(self.manifest, DIFY_CATALOG, ROOT, "dify_test", **kwargs)

    def test_records_follow_manifest_order(self):
        _, log = self._rewrite()
        self.assertEqual(
            [(r.service, r.field) for r in log],
            [
                ("api", "image"),
                ("api", "volumes[0]"),
                ("db", "image"),
                ("db", "volumes[0]"),
                ("redis", "image"),
                ("custom", "image"),
            ],
        )

    def test_images_and_mounts_are_rewritten(self):
        patched, log = self._rewrite()

        self.assertEqual(patched.service("api").image, "dify_test_api-1:offline")
        self.assertEqual(patched.service("db").image, "postgres:offline")
        self.assertEqual(patched.service("redis").image, "dify_test_redis-1:offline")
        self.assertEqual(patched.service("custom").image, "myregistry.local/foo-bar:2.0")
        self.assertEqual(
            str(patched.service("api").mount_entries()[0]),
            "/offline_volumes/docker-api-1_app_api_storage:/app/api/storage",
        )
        self.assertEqual(
            str(patched.service("db").mount_entries()[0]),
            "/offline_volumes/db_var_lib_postgresql_data:/var/lib/postgresql/data",
        )

        self.assertEqual(len(log.applied()), 5)
        self.assertEqual(
            [(r.service, r.reason) for r in log.unresolved()],
            [("custom", "no strategy matched")],
        )
        self.assertEqual(log.for_service("db")[0].strategy, "sanitized-original")

    def test_unrelated_fields_survive(self):
        out = serialize(self._rewrite()[0])
        self.assertIn('version: "3.8"', out)
        self.assertIn("      MODE: api\n", out)
        self.assertIn("    restart: always\n", out)
        self.assertIn("networks:\n  default:\n    driver: bridge\n", out)
        self.assertIn('image: "postgres:offline"', out)

    def test_input_is_not_mutated(self):
        self._rewrite()
        self.assertEqual(serialize(self.manifest), DIFY)

    def test_deterministic(self):
        a_manifest, a_log = self._rewrite()
        b_manifest, b_log = self._rewrite()
        self.assertEqual(serialize(a_manifest), serialize(b_manifest))
        self.assertEqual(a_log.as_dicts(), b_log.as_dicts())

    def test_parallel_matches_sequential(self):
        seq_manifest, seq_log = self._rewrite()
        par_manifest, par_log = self._rewrite(workers=4)
        self.assertEqual(serialize(par_manifest), serialize(seq_manifest))
        self.assertEqual(par_log.as_dicts(), seq_log.as_dicts())

    def test_second_run_changes_nothing(self):
        patched, _ = self._rewrite()
        again, log = rewrite(patched, DIFY_CATALOG, ROOT, "dify_test")

        self.assertEqual(serialize(again), serialize(patched))
        self.assertEqual(log.applied(), [])
        self.assertEqual(log.for_service("api")[0].outcome, Outcome.UNCHANGED)
        self.assertEqual(log.for_service("api")[1].outcome, Outcome.UNCHANGED)

    def test_revert_restores_original(self):
        patched, log = self._rewrite()
        self.assertEqual(serialize(revert(patched, log)), DIFY)

    def test_basename_mounts(self):
        text = (
            "services:\n"
            "  api:\n"
            "    image: api:1\n"
            "    volumes:\n"
            "      - ./data/api:/app/storage\n"
        )
        patched, log = rewrite(parse(text), Catalog(), ROOT, simple_mounts=True)
        self.assertIn("      - /offline_volumes/data:/app/storage\n", serialize(patched))
        self.assertEqual(log.for_service("api")[1].strategy, "basename")

    def test_plan_does_not_edit(self):
        rewriter = ManifestRewriter(DIFY_CATALOG, ROOT, "dify_test")
        plan = rewriter.plan(self.manifest.service("api"))
        self.assertEqual(plan.image, "dify_test_api-1:offline")
        self.assertEqual(len(plan.mounts), 1)
        self.assertEqual(self.manifest.service("api").image, "langgenius/dify-api:1.4.0")


if __name__ == "__main__":
    unittest.main()
