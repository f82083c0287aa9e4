"""Clone a repository on this machine with output streamed to a log file."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Mapping, Optional, Sequence, Union

from ..credentials import CredentialBookkeeper, touch_credential_usage
from ..errors import CloneProcessError, ProcessExecutionError
from ..local.filesystem import recreate_directory
from ..local.process import OutputCallback, ProcessEnvironment, run_child_process
from ..paths import ProvisionPaths
from .known_hosts import KnownHostsRegistrar
from .log_sink import (
    FileLogSink,
    clone_failed_message,
    clone_started_message,
    clone_succeeded_message,
)
from .plan import (
    ClonePlan,
    RepositoryReference,
    StepKind,
    build_clone_plan,
    plan_clone_steps,
)

logger = logging.getLogger(__name__)

ProcessRunner = Callable[[str, Sequence[str], OutputCallback, ProcessEnvironment], None]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _discard(_: str) -> None:
    return None


class LocalCloneExecutor:
    """Runs the clone steps directly: host key, directory reset, git clone.

    Steps run strictly one after another and nothing is retried. Callers must
    serialize clones that share a destination.
    """

    def __init__(
        self,
        paths: ProvisionPaths,
        *,
        base_environment: Mapping[str, str],
        bookkeeper: Optional[CredentialBookkeeper] = None,
        registrar: Optional[KnownHostsRegistrar] = None,
        git_binary: str = "git",
        strict_bookkeeping: bool = True,
        process_runner: ProcessRunner = run_child_process,
        directory_resetter: Callable[[Path], None] = recreate_directory,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.paths = paths
        self.registrar = registrar or KnownHostsRegistrar(paths.known_hosts_path)
        self.git_binary = git_binary
        self.strict_bookkeeping = strict_bookkeeping
        self._base_environment = dict(base_environment)
        self._bookkeeper = bookkeeper
        self._process_runner = process_runner
        self._directory_resetter = directory_resetter
        self._clock = clock

    def clone(
        self,
        reference: RepositoryReference,
        log_path: Union[str, Path],
        *,
        compose: bool = False,
    ) -> None:
        """Clone ``reference`` into its code directory, logging to ``log_path``.

        A success or failure marker is appended to the log before returning or
        re-raising, and the log is always closed.

        Raises:
            MissingReferenceError: url or branch missing (nothing is touched).
            GitReferenceParseError: the SSH reference is malformed (nothing is
                touched).
            HostKeyScanError, DirectoryResetError, CloneProcessError: the
                corresponding step failed.
        """
        plan = build_clone_plan(reference, self.paths, compose=compose)
        sink = FileLogSink(log_path).open()
        try:
            self._run_steps(plan, reference, plan_clone_steps(plan), sink)
            sink.write_marker(clone_succeeded_message(plan.url, plan.destination_path))
            logger.info("Cloned %s into %s", plan.url, plan.destination_path)
        except Exception as exc:
            sink.write_marker(clone_failed_message(exc))
            logger.error("Cloning %s failed: %s", plan.url, exc)
            raise
        finally:
            sink.close()

    def clone_raw(self, reference: RepositoryReference) -> None:
        """Clone into the compose tree without a log file or submodules."""
        plan = build_clone_plan(
            reference, self.paths, compose=True, recurse_submodules=False
        )
        self._run_steps(plan, reference, plan_clone_steps(plan, announce=False), None)
        logger.info("Cloned %s into %s", plan.url, plan.destination_path)

    def _run_steps(
        self,
        plan: ClonePlan,
        reference: RepositoryReference,
        steps: Sequence[StepKind],
        sink: Optional[FileLogSink],
    ) -> None:
        for step in steps:
            if step is StepKind.HOST_KEY_SCAN:
                assert plan.location is not None
                self.registrar.register_now(plan.location)
            elif step is StepKind.DIR_RESET:
                logger.debug("Recreating %s", plan.destination_path)
                self._directory_resetter(Path(plan.destination_path))
            elif step is StepKind.LOG_ANNOUNCE:
                if sink is not None:
                    sink.write_marker(clone_started_message(plan.url, plan.destination_path))
            elif step is StepKind.CLONE_COMMAND:
                touch_credential_usage(
                    self._bookkeeper,
                    reference.ssh_key_id,
                    self._clock(),
                    strict=self.strict_bookkeeping,
                )
                self._run_clone(plan, sink.write if sink is not None else _discard)

    def _run_clone(self, plan: ClonePlan, on_output: OutputCallback) -> None:
        environment = ProcessEnvironment(
            base_environment=self._base_environment,
            ssh_command_override=plan.ssh_command(),
        )
        logger.info("Running git clone of %s (branch %s)", plan.url, plan.branch)
        try:
            self._process_runner(self.git_binary, plan.git_clone_args(), on_output, environment)
        except ProcessExecutionError as exc:
            raise CloneProcessError(str(exc)) from exc
