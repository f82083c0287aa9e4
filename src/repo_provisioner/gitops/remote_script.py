"""Shell script equivalent of the local clone, for managed hosts."""

from __future__ import annotations

import logging
import shlex
from pathlib import PurePath
from typing import Optional, Sequence, Union

from ..errors import MissingReferenceError, RemoteExecutionError, ValidationError
from ..paths import ProvisionPaths
from ..ssh.remote import RemoteCommandRunner
from .known_hosts import KnownHostsRegistrar
from .log_sink import (
    clone_failed_message,
    clone_started_message,
    clone_succeeded_message,
    missing_reference_message,
)
from .plan import (
    ClonePlan,
    RemoteTarget,
    RepositoryReference,
    StepKind,
    build_clone_plan,
    plan_clone_steps,
    require_url_and_branch,
)

logger = logging.getLogger(__name__)

LogPath = Union[str, PurePath]


def _append_log(message: str, log_path: LogPath) -> str:
    return f"printf '\\n%s\\n' {shlex.quote(message)} >> {shlex.quote(str(log_path))};"


class RemoteCloneScriptBuilder:
    """Renders the clone steps as a POSIX shell script.

    Building never executes anything, except that a request without url or
    branch is reported to the managed host's log through ``runner`` before
    the validation error is raised. Values are shell-quoted.
    """

    def __init__(
        self,
        paths: ProvisionPaths,
        *,
        runner: Optional[RemoteCommandRunner] = None,
        registrar: Optional[KnownHostsRegistrar] = None,
        git_binary: str = "git",
    ) -> None:
        self.paths = paths
        self.runner = runner
        self.registrar = registrar or KnownHostsRegistrar(paths.known_hosts_path)
        self.git_binary = git_binary

    def check_reference(
        self,
        reference: RepositoryReference,
        target: RemoteTarget,
        log_path: LogPath,
    ) -> None:
        """Raise for a missing url/branch, after logging it on the host."""
        try:
            require_url_and_branch(reference)
        except MissingReferenceError:
            self._report_missing_reference(target, log_path)
            raise

    def build(
        self,
        reference: RepositoryReference,
        target: RemoteTarget,
        log_path: LogPath,
        *,
        compose: bool = False,
    ) -> str:
        self.check_reference(reference, target, log_path)
        plan = build_clone_plan(reference, self.paths, compose=compose)
        return "\n".join(self._render(plan, plan_clone_steps(plan), log_path))

    def build_raw(self, reference: RepositoryReference) -> str:
        """Script for a compose-tree clone with no log file."""
        if not reference.url:
            raise ValidationError("Git Provider not found")
        if not reference.branch:
            raise ValidationError("Git branch not found")
        plan = build_clone_plan(
            reference, self.paths, compose=True, recurse_submodules=False
        )
        return "\n".join(self._render(plan, plan_clone_steps(plan, announce=False), None))

    def missing_reference_script(self, log_path: LogPath) -> str:
        return "\n".join(
            [
                f"echo {shlex.quote(missing_reference_message())} >> {shlex.quote(str(log_path))};",
                "exit 1;",
            ]
        )

    def _report_missing_reference(self, target: RemoteTarget, log_path: LogPath) -> None:
        if self.runner is None:
            return
        try:
            self.runner.run_on_remote_host(
                target.server_id, self.missing_reference_script(log_path)
            )
        except RemoteExecutionError:
            # The script exits 1 by construction.
            logger.debug("Reported missing repository on server %s", target.server_id)

    def _render(
        self,
        plan: ClonePlan,
        steps: Sequence[StepKind],
        log_path: Optional[LogPath],
    ) -> list[str]:
        destination = shlex.quote(str(plan.destination_path))
        lines: list[str] = []
        for step in steps:
            if step is StepKind.HOST_KEY_SCAN:
                assert plan.location is not None
                lines.append(self.registrar.register_command_text(plan.location))
            elif step is StepKind.DIR_RESET:
                lines.append(f"rm -rf {destination};")
                lines.append(f"mkdir -p {destination};")
            elif step is StepKind.LOG_ANNOUNCE and log_path is not None:
                lines.append(
                    _append_log(clone_started_message(plan.url, plan.destination_path), log_path)
                )
            elif step is StepKind.CLONE_COMMAND:
                lines.extend(self._render_clone(plan, log_path))
        if log_path is not None:
            lines.append(
                _append_log(clone_succeeded_message(plan.url, plan.destination_path), log_path)
            )
        return lines

    def _render_clone(self, plan: ClonePlan, log_path: Optional[LogPath]) -> list[str]:
        lines: list[str] = []
        ssh_command = plan.ssh_command()
        if ssh_command:
            lines.append(f"export GIT_SSH_COMMAND={shlex.quote(ssh_command)}")
        clone = shlex.join([self.git_binary, *plan.git_clone_args()])
        if log_path is None:
            failure = "echo '[ERROR] Fail to clone the repository';"
            lines.append(f"if ! {clone}; then\n\t{failure}\n\texit 1;\nfi")
        else:
            failure = _append_log(
                clone_failed_message(f"Fail to clone the repository {plan.url}"), log_path
            )
            lines.append(
                f"if ! {clone} >> {shlex.quote(str(log_path))} 2>&1; then\n\t{failure}\n\texit 1;\nfi"
            )
        return lines
