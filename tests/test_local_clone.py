from __future__ import annotations

import tempfile
import unittest
from datetime import datetime, timezone
from pathlib import Path
from unittest import mock

from repo_provisioner.errors import (
    CloneProcessError,
    DirectoryResetError,
    GitReferenceParseError,
    HostKeyScanError,
    MissingReferenceError,
    ProcessExecutionError,
)
from repo_provisioner.gitops import (
    FAILURE_MARKER,
    SUCCESS_MARKER,
    FileLogSink,
    LocalCloneExecutor,
    RepositoryReference,
    local_clone,
)
from repo_provisioner.local import recreate_directory
from repo_provisioner.paths import ProvisionPaths

FIXED_NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


class RecordingRegistrar:
    def __init__(self, events: list, error: Exception | None = None) -> None:
        self.events = events
        self.error = error
        self.locations = []

    def register_now(self, location) -> None:
        self.events.append("scan")
        self.locations.append(location)
        if self.error:
            raise self.error


class FakeGit:
    """Stands in for the git child process; writes a file into the destination."""

    def __init__(self, events: list, *, exit_code: int = 0, marker: str = "v1") -> None:
        self.events = events
        self.exit_code = exit_code
        self.marker = marker
        self.calls = []

    def __call__(self, command, args, on_output, environment) -> None:
        self.events.append("clone")
        self.calls.append((command, list(args), environment))
        on_output("Cloning into '...'\n")
        if self.exit_code:
            raise ProcessExecutionError([command, *args], self.exit_code, "fatal: repository not found")
        destination = Path(args[-2])
        (destination / f"{self.marker}.txt").write_text(self.marker, encoding="utf-8")


class RecordingBookkeeper:
    def __init__(self, events: list, error: Exception | None = None) -> None:
        self.events = events
        self.error = error
        self.touched = []

    def touch_usage(self, key_id, timestamp) -> None:
        self.events.append("touch")
        self.touched.append((key_id, timestamp))
        if self.error:
            raise self.error


class LocalCloneExecutorTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        self.paths = ProvisionPaths.local(self.root / "base")
        self.log_path = self.root / "deploy.log"
        self.events: list[str] = []

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def _executor(self, **overrides) -> LocalCloneExecutor:
        events = self.events

        def resetter(path: Path) -> None:
            events.append("reset")
            recreate_directory(path)

        kwargs = dict(
            base_environment={"PATH": "/usr/bin"},
            registrar=RecordingRegistrar(events),
            process_runner=FakeGit(events),
            directory_resetter=resetter,
            clock=lambda: FIXED_NOW,
        )
        kwargs.update(overrides)
        return LocalCloneExecutor(self.paths, **kwargs)

    def _log(self) -> str:
        return self.log_path.read_text(encoding="utf-8")

    def test_ssh_clone_with_key_runs_steps_in_order(self) -> None:
        bookkeeper = RecordingBookkeeper(self.events)
        git = FakeGit(self.events)
        executor = self._executor(bookkeeper=bookkeeper, process_runner=git)
        reference = RepositoryReference(
            app_name="shop", url="git@github.com:acme/shop.git", branch="main", ssh_key_id="k1"
        )

        executor.clone(reference, self.log_path)

        self.assertEqual(self.events, ["scan", "reset", "touch", "clone"])
        self.assertEqual(bookkeeper.touched, [("k1", FIXED_NOW)])
        command, args, environment = git.calls[0]
        self.assertEqual(command, "git")
        self.assertEqual(args[:6], ["clone", "--branch", "main", "--depth", "1", "--recurse-submodules"])
        self.assertEqual(args[-1], "--progress")
        env = environment.resolve()
        self.assertEqual(env["PATH"], "/usr/bin")
        self.assertIn("-i " + str(self.paths.ssh_key_path("k1")), env["GIT_SSH_COMMAND"])
        self.assertIn("UserKnownHostsFile=" + str(self.paths.known_hosts_path), env["GIT_SSH_COMMAND"])

        log = self._log()
        self.assertIn("Cloning Repo Custom git@github.com:acme/shop.git", log)
        self.assertIn("Cloning into '...'", log)
        self.assertIn(
            f"\n{SUCCESS_MARKER} git@github.com:acme/shop.git to {self.paths.code_dir('shop')}: ✅\n",
            log,
        )
        self.assertNotIn(FAILURE_MARKER, log)

    def test_https_clone_skips_host_key_scan_and_ssh_command(self) -> None:
        registrar = RecordingRegistrar(self.events)
        git = FakeGit(self.events)
        executor = self._executor(registrar=registrar, process_runner=git)
        reference = RepositoryReference(
            app_name="shop", url="https://github.com/acme/shop.git", branch="main"
        )

        executor.clone(reference, self.log_path)

        self.assertEqual(registrar.locations, [])
        self.assertEqual(self.events, ["reset", "clone"])
        env = git.calls[0][2].resolve()
        self.assertEqual(env, {"PATH": "/usr/bin"})

    def test_missing_branch_fails_before_side_effects(self) -> None:
        executor = self._executor()
        reference = RepositoryReference(app_name="shop", url="git@github.com:acme/shop.git")

        with self.assertRaises(MissingReferenceError):
            executor.clone(reference, self.log_path)

        self.assertEqual(self.events, [])
        self.assertFalse(self.log_path.exists())

    def test_malformed_reference_fails_before_side_effects(self) -> None:
        executor = self._executor()
        reference = RepositoryReference(app_name="shop", url="not a url??", branch="main")

        with self.assertRaises(GitReferenceParseError):
            executor.clone(reference, self.log_path)

        self.assertEqual(self.events, [])
        self.assertFalse(self.log_path.exists())

    def test_clone_failure_logs_marker_and_reraises(self) -> None:
        executor = self._executor(process_runner=FakeGit(self.events, exit_code=128))
        reference = RepositoryReference(
            app_name="shop", url="https://github.com/acme/shop.git", branch="nope"
        )

        with self.assertRaises(CloneProcessError) as ctx:
            executor.clone(reference, self.log_path)

        self.assertIsInstance(ctx.exception.__cause__, ProcessExecutionError)
        log = self._log()
        self.assertIn(f"\n{FAILURE_MARKER}: ", log)
        self.assertIn("fatal: repository not found", log)
        self.assertTrue(log.endswith(": ❌\n"))
        self.assertNotIn(SUCCESS_MARKER, log)

    def test_log_sink_closed_after_failure(self) -> None:
        sinks = []

        class TrackingSink(FileLogSink):
            def __init__(self, path) -> None:
                super().__init__(path)
                sinks.append(self)

        executor = self._executor(process_runner=FakeGit(self.events, exit_code=1))
        reference = RepositoryReference(
            app_name="shop", url="https://github.com/acme/shop.git", branch="main"
        )
        with mock.patch.object(local_clone, "FileLogSink", TrackingSink):
            with self.assertRaises(CloneProcessError):
                executor.clone(reference, self.log_path)

        self.assertEqual(len(sinks), 1)
        self.assertFalse(sinks[0].writable)

    def test_host_key_failure_aborts_before_directory_reset(self) -> None:
        registrar = RecordingRegistrar(self.events, error=HostKeyScanError("timed out"))
        executor = self._executor(registrar=registrar)
        reference = RepositoryReference(app_name="shop", url="git@github.com:acme/shop.git", branch="main")

        with self.assertRaises(HostKeyScanError):
            executor.clone(reference, self.log_path)

        self.assertEqual(self.events, ["scan"])
        self.assertIn(f"{FAILURE_MARKER}: timed out: ❌", self._log())

    def test_directory_failure_is_logged(self) -> None:
        def failing_reset(path: Path) -> None:
            raise DirectoryResetError("permission denied")

        executor = self._executor(directory_resetter=failing_reset)
        reference = RepositoryReference(app_name="shop", url="https://github.com/acme/shop.git", branch="main")

        with self.assertRaises(DirectoryResetError):
            executor.clone(reference, self.log_path)
        self.assertIn("permission denied", self._log())

    def test_strict_bookkeeping_failure_aborts_clone(self) -> None:
        bookkeeper = RecordingBookkeeper(self.events, error=OSError("registry locked"))
        executor = self._executor(bookkeeper=bookkeeper)
        reference = RepositoryReference(
            app_name="shop", url="https://github.com/acme/shop.git", branch="main", ssh_key_id="k1"
        )

        with self.assertRaises(OSError):
            executor.clone(reference, self.log_path)

        self.assertNotIn("clone", self.events)
        self.assertIn("registry locked", self._log())

    def test_lenient_bookkeeping_failure_is_ignored(self) -> None:
        bookkeeper = RecordingBookkeeper(self.events, error=OSError("registry locked"))
        executor = self._executor(bookkeeper=bookkeeper, strict_bookkeeping=False)
        reference = RepositoryReference(
            app_name="shop", url="https://github.com/acme/shop.git", branch="main", ssh_key_id="k1"
        )

        with self.assertLogs("repo_provisioner.credentials.registry", level="WARNING"):
            executor.clone(reference, self.log_path)

        self.assertIn("clone", self.events)
        self.assertIn(SUCCESS_MARKER, self._log())

    def test_second_clone_replaces_destination(self) -> None:
        reference = RepositoryReference(
            app_name="shop", url="https://github.com/acme/shop.git", branch="main"
        )
        self._executor(process_runner=FakeGit(self.events, marker="first")).clone(
            reference, self.log_path
        )
        self._executor(process_runner=FakeGit(self.events, marker="second")).clone(
            reference, self.log_path
        )

        destination = Path(self.paths.code_dir("shop"))
        self.assertEqual(sorted(p.name for p in destination.iterdir()), ["second.txt"])
        self.assertEqual(self._log().count(SUCCESS_MARKER), 2)

    def test_clone_raw_uses_compose_tree_without_log(self) -> None:
        git = FakeGit(self.events)
        executor = self._executor(process_runner=git)
        reference = RepositoryReference(
            app_name="stack", url="git@github.com:acme/stack.git", branch="main"
        )

        executor.clone_raw(reference)

        self.assertEqual(self.events, ["scan", "reset", "clone"])
        args = git.calls[0][1]
        self.assertNotIn("--recurse-submodules", args)
        self.assertEqual(Path(args[-2]), Path(self.paths.code_dir("stack", compose=True)))
        self.assertFalse(self.log_path.exists())


if __name__ == "__main__":
    unittest.main()
