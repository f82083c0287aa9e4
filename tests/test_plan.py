import shlex
import unittest
from pathlib import Path, PurePosixPath

from repo_provisioner.errors import GitReferenceParseError, MissingReferenceError
from repo_provisioner.gitops import RepositoryReference, StepKind, build_clone_plan, plan_clone_steps
from repo_provisioner.paths import ProvisionPaths


class BuildClonePlanTests(unittest.TestCase):
    def setUp(self) -> None:
        self.paths = ProvisionPaths.local("/srv/provision")

    def test_ssh_reference_with_key(self) -> None:
        reference = RepositoryReference(
            app_name="shop",
            url="git@github.com:acme/shop.git",
            branch="main",
            ssh_key_id="key1",
        )
        plan = build_clone_plan(reference, self.paths)

        self.assertTrue(plan.is_ssh_transport)
        self.assertEqual(plan.destination_path, Path("/srv/provision/applications/shop/code"))
        self.assertEqual(plan.ssh_key_file_path, Path("/srv/provision/ssh/key1_rsa"))
        self.assertEqual(plan.known_hosts_path, Path("/srv/provision/ssh/known_hosts"))
        self.assertEqual(
            plan.ssh_command(),
            "ssh -i /srv/provision/ssh/key1_rsa -o UserKnownHostsFile=/srv/provision/ssh/known_hosts",
        )

    def test_ssh_command_quotes_paths(self) -> None:
        paths = ProvisionPaths.local("/srv/my provision")
        reference = RepositoryReference(
            app_name="shop",
            url="git@github.com:acme/shop.git",
            branch="main",
            ssh_key_id="k; touch /tmp/owned;",
        )
        plan = build_clone_plan(reference, paths)

        self.assertEqual(
            shlex.split(plan.ssh_command()),
            [
                "ssh",
                "-i",
                "/srv/my provision/ssh/k; touch /tmp/owned;_rsa",
                "-o",
                "UserKnownHostsFile=/srv/my provision/ssh/known_hosts",
            ],
        )

    def test_compose_tree(self) -> None:
        reference = RepositoryReference(
            app_name="stack", url="https://github.com/acme/stack.git", branch="dev"
        )
        plan = build_clone_plan(reference, self.paths, compose=True)
        self.assertEqual(plan.destination_path, Path("/srv/provision/compose/stack/code"))
        self.assertFalse(plan.is_ssh_transport)
        self.assertIsNone(plan.ssh_command())

    def test_git_clone_args(self) -> None:
        reference = RepositoryReference(
            app_name="shop", url="https://github.com/acme/shop.git", branch="release"
        )
        plan = build_clone_plan(reference, ProvisionPaths.remote("/etc/rp"))
        self.assertEqual(
            plan.git_clone_args(),
            [
                "clone",
                "--branch",
                "release",
                "--depth",
                "1",
                "--recurse-submodules",
                "https://github.com/acme/shop.git",
                "/etc/rp/applications/shop/code",
                "--progress",
            ],
        )
        self.assertIsInstance(plan.destination_path, PurePosixPath)

    def test_missing_branch_or_url(self) -> None:
        for reference in (
            RepositoryReference(app_name="a", url="git@github.com:a/b.git"),
            RepositoryReference(app_name="a", branch="main"),
            RepositoryReference(app_name="a", url="", branch="main"),
        ):
            with self.subTest(reference=reference):
                with self.assertRaises(MissingReferenceError):
                    build_clone_plan(reference, self.paths)

    def test_malformed_ssh_reference(self) -> None:
        reference = RepositoryReference(app_name="a", url="not a url??", branch="main")
        with self.assertRaises(GitReferenceParseError):
            build_clone_plan(reference, self.paths)


class PlanCloneStepsTests(unittest.TestCase):
    def test_ssh_steps(self) -> None:
        reference = RepositoryReference(app_name="a", url="git@github.com:a/b.git", branch="main")
        plan = build_clone_plan(reference, ProvisionPaths.local("/tmp/x"))
        self.assertEqual(
            plan_clone_steps(plan),
            (
                StepKind.HOST_KEY_SCAN,
                StepKind.DIR_RESET,
                StepKind.LOG_ANNOUNCE,
                StepKind.CLONE_COMMAND,
            ),
        )

    def test_http_steps_skip_host_key_scan(self) -> None:
        reference = RepositoryReference(app_name="a", url="https://github.com/a/b.git", branch="main")
        plan = build_clone_plan(reference, ProvisionPaths.local("/tmp/x"))
        self.assertNotIn(StepKind.HOST_KEY_SCAN, plan_clone_steps(plan))
        self.assertEqual(
            plan_clone_steps(plan, announce=False),
            (StepKind.DIR_RESET, StepKind.CLONE_COMMAND),
        )


if __name__ == "__main__":
    unittest.main()
