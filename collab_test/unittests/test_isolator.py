import tempfile
import unittest
from pathlib import Path
from unittest.mock import MagicMock

from collab_test.errors import EnvironmentIsolationError
from collab_test.isolation import (
    DirectoryProvisioner,
    EnvironmentIsolator,
    Namespace,
    NamespaceState,
    build_isolator,
)


class TestEnvironmentIsolator(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.base = Path(self._tmp.name)
        self.original = Namespace(storage_prefix="", file_path=self.base)
        self.state = NamespaceState(self.original)
        self.isolator = EnvironmentIsolator(state=self.state)

    def tearDown(self):
        self._tmp.cleanup()

    def test_acquire_switches_to_a_provisioned_namespace(self):
        context = self.isolator.acquire("NodeSave")

        self.assertIs(self.state.active, context.namespace)
        self.assertIs(context.previous, self.original)
        self.assertTrue(context.storage_prefix.startswith("simpletest"))
        self.assertTrue(context.file_path.is_dir())
        self.assertEqual(context.file_path.parent, self.base / "simpletest")
        self.assertTrue(context.name.startswith("NodeSave-"))

    def test_release_restores_previous_namespace(self):
        context = self.isolator.acquire("NodeSave")
        self.isolator.release(context)

        self.assertIs(self.state.active, self.original)
        self.assertTrue(context.released)
        self.assertIsNone(self.isolator.active)
        # Files are left for external cleanup by default.
        self.assertTrue(context.file_path.exists())

    def test_release_twice_is_a_no_op(self):
        context = self.isolator.acquire("NodeSave")
        self.isolator.release(context)
        self.state.switch(Namespace("other_", self.base / "other"))
        self.isolator.release(context)
        self.assertEqual(self.state.active.storage_prefix, "other_")

    def test_names_are_unique(self):
        names = set()
        for _ in range(20):
            context = self.isolator.acquire("NodeSave")
            names.add(context.storage_prefix)
            self.isolator.release(context)
        self.assertEqual(len(names), 20)

    def test_only_one_context_at_a_time(self):
        context = self.isolator.acquire("NodeSave")
        with self.assertRaises(EnvironmentIsolationError):
            self.isolator.acquire("NodeSave")
        self.isolator.release(context)

    def test_provisioning_failure_raises_and_keeps_namespace(self):
        provisioner = MagicMock()
        provisioner.provision.return_value = False
        isolator = EnvironmentIsolator(state=self.state, provisioner=provisioner)

        with self.assertRaises(EnvironmentIsolationError):
            isolator.acquire("NodeSave")
        self.assertIs(self.state.active, self.original)
        self.assertIsNone(isolator.active)

    def test_isolated_releases_on_error(self):
        with self.assertRaises(RuntimeError):
            with self.isolator.isolated("NodeSave") as context:
                raise RuntimeError("initiator blew up")
        self.assertTrue(context.released)
        self.assertIs(self.state.active, self.original)

    def test_remove_files_on_release(self):
        isolator = EnvironmentIsolator(state=self.state, remove_files=True)
        with isolator.isolated("NodeSave") as context:
            (context.file_path / "upload.txt").write_text("data")
        self.assertFalse(context.file_path.exists())

    def test_reset_statics(self):
        with self.isolator.isolated("NodeSave") as context:
            context.statics["cache"] = 1
            context.reset_statics()
            self.assertEqual(context.statics, {})

    def test_build_isolator_roots_state_at_base_dir(self):
        isolator = build_isolator(base_dir=self.base / "files", prefix="collab")
        with isolator.isolated("NodeSave") as context:
            self.assertEqual(context.file_path.parent, self.base / "files" / "collab")
            self.assertTrue(context.storage_prefix.startswith("collab"))


class TestDirectoryProvisioner(unittest.TestCase):
    def test_provision_and_remove(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "a" / "b"
            provisioner = DirectoryProvisioner()
            self.assertTrue(provisioner.provision(path))
            self.assertTrue(path.is_dir())
            self.assertTrue(provisioner.remove(path))
            self.assertFalse(path.exists())
            self.assertTrue(provisioner.remove(path))

    def test_provision_under_a_file_fails(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            blocker = Path(tmpdir) / "blocker"
            blocker.write_text("")
            self.assertFalse(DirectoryProvisioner().provision(blocker / "child"))


if __name__ == "__main__":
    unittest.main()
