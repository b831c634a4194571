import os
import shutil
import tempfile
import unittest
from unittest import mock

from forge.pipeline.deploy import (
    DEFAULT_MAPPINGS,
    DeployMapping,
    build_mappings,
    deploy_tree,
)
from forge.pipeline.errors import DependencyError


def write(path: str, text: str = "x"):
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        f.write(text)


def snapshot(root: str):
    entries = []
    for dirpath, dirnames, filenames in os.walk(root):
        for name in dirnames + filenames:
            full = os.path.join(dirpath, name)
            entries.append((os.path.relpath(full, root), os.path.getsize(full) if os.path.isfile(full) else None))
    return sorted(entries)


class DeployTreeTests(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.mkdtemp()
        self.templates = os.path.join(self.tmp, "Acme", "templates")
        write(os.path.join(self.templates, "shared", "Dto", "AcmeDto.cs"))
        write(os.path.join(self.templates, "shared", "Dto", "AcmeSearchRequest.cs"))
        write(os.path.join(self.templates, "api", "Controllers", "AcmeController.cs"))
        write(os.path.join(self.templates, "ui", "wwwroot", "js", "acme-search.js"))
        self.targets = {}
        for name in ("shared", "api", "ui"):
            path = os.path.join(self.tmp, "targets", name)
            os.makedirs(path)
            self.targets[name] = path

    def tearDown(self):
        shutil.rmtree(self.tmp)

    def test_real_copy_creates_intermediate_directories(self):
        result = deploy_tree(self.templates, build_mappings(self.targets))
        self.assertTrue(result.ok)
        self.assertEqual(result.files, 4)
        self.assertTrue(os.path.isfile(os.path.join(self.targets["shared"], "Dto", "AcmeDto.cs")))
        self.assertTrue(os.path.isfile(os.path.join(
            self.targets["api"], "src", "Admin.Api", "Controllers", "AcmeController.cs")))
        self.assertTrue(os.path.isfile(os.path.join(self.targets["ui"], "wwwroot", "js", "acme-search.js")))

    def test_dry_run_touches_nothing_but_counts_the_same(self):
        mappings = build_mappings(self.targets)
        before = snapshot(self.tmp)
        planned = deploy_tree(self.templates, mappings, dry_run=True)
        self.assertEqual(snapshot(self.tmp), before)
        real = deploy_tree(self.templates, mappings)
        self.assertEqual(planned.files, real.files)
        self.assertEqual(planned.planned, real.planned)

    def test_missing_destination_root_aborts_before_copying(self):
        shutil.rmtree(self.targets["ui"])
        before = snapshot(self.tmp)
        with self.assertRaises(DependencyError) as exc:
            deploy_tree(self.templates, build_mappings(self.targets))
        self.assertEqual(exc.exception.missing, [self.targets["ui"]])
        self.assertEqual(snapshot(self.tmp), before)

    def test_unconfigured_target_is_a_dependency_error(self):
        targets = dict(self.targets, api=None)
        with self.assertRaises(DependencyError):
            build_mappings(targets)

    def test_copy_failure_is_recorded_and_copying_continues(self):
        real_copy = shutil.copyfile

        def flaky(src, dst, *args, **kwargs):
            if src.endswith("AcmeDto.cs"):
                raise PermissionError("denied")
            return real_copy(src, dst, *args, **kwargs)

        with mock.patch("forge.pipeline.deploy.shutil.copyfile", side_effect=flaky):
            result = deploy_tree(self.templates, build_mappings(self.targets))
        self.assertEqual(len(result.errors), 1)
        self.assertIn("AcmeDto.cs", result.errors[0].source)
        self.assertEqual(result.files, 3)
        self.assertFalse(result.ok)

    def test_absent_source_subfolders_are_skipped(self):
        mappings = [DeployMapping(source="ui/Views", target_root=self.targets["ui"], dest="Views")]
        result = deploy_tree(self.templates, mappings)
        self.assertEqual(result.files, 0)
        self.assertFalse(os.path.exists(os.path.join(self.targets["ui"], "Views")))

    def test_default_table_covers_three_targets(self):
        self.assertEqual({t for _, t, _ in DEFAULT_MAPPINGS}, {"shared", "api", "ui"})


if __name__ == "__main__":
    unittest.main()
