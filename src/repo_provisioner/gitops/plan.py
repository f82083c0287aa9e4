"""Clone requests, execution targets and the shared clone step sequence."""

from __future__ import annotations

import shlex
from dataclasses import dataclass
from enum import Enum
from pathlib import PurePath
from typing import Optional, Tuple, Union

from ..paths import ProvisionPaths
from ..errors import MissingReferenceError
from .reference import SSHLocation, is_http_reference, parse_ssh_location


@dataclass(frozen=True)
class RepositoryReference:
    """User supplied repository location plus branch and optional deploy key."""

    app_name: str
    url: Optional[str] = None
    branch: Optional[str] = None
    ssh_key_id: Optional[str] = None


@dataclass(frozen=True)
class LocalTarget:
    """Clone on this machine."""


@dataclass(frozen=True)
class RemoteTarget:
    """Clone on a managed host reachable through the remote runner."""

    server_id: str


ExecutionTarget = Union[LocalTarget, RemoteTarget]


class StepKind(str, Enum):
    HOST_KEY_SCAN = "host_key_scan"
    DIR_RESET = "dir_reset"
    LOG_ANNOUNCE = "log_announce"
    CLONE_COMMAND = "clone_command"


@dataclass(frozen=True)
class ClonePlan:
    """Everything one clone attempt needs; built fresh per attempt."""

    url: str
    branch: str
    destination_path: PurePath
    known_hosts_path: PurePath
    ssh_key_file_path: Optional[PurePath] = None
    location: Optional[SSHLocation] = None
    recurse_submodules: bool = True

    @property
    def is_ssh_transport(self) -> bool:
        return self.location is not None

    def git_clone_args(self) -> list[str]:
        args = ["clone", "--branch", self.branch, "--depth", "1"]
        if self.recurse_submodules:
            args.append("--recurse-submodules")
        args.extend([self.url, str(self.destination_path), "--progress"])
        return args

    def ssh_command(self) -> Optional[str]:
        """Value for ``GIT_SSH_COMMAND`` when a deploy key is used."""
        if self.ssh_key_file_path is None:
            return None
        return shlex.join(
            [
                "ssh",
                "-i",
                str(self.ssh_key_file_path),
                "-o",
                f"UserKnownHostsFile={self.known_hosts_path}",
            ]
        )


def require_url_and_branch(reference: RepositoryReference) -> Tuple[str, str]:
    if not reference.url or not reference.branch:
        raise MissingReferenceError()
    return reference.url, reference.branch


def build_clone_plan(
    reference: RepositoryReference,
    paths: ProvisionPaths,
    *,
    compose: bool = False,
    recurse_submodules: bool = True,
) -> ClonePlan:
    """Validate ``reference`` and resolve it against ``paths``.

    Has no side effects; a missing url/branch or an unparsable SSH reference
    fails here, before anything is written or executed.
    """
    url, branch = require_url_and_branch(reference)
    location = None if is_http_reference(url) else parse_ssh_location(url)
    key_path = paths.ssh_key_path(reference.ssh_key_id) if reference.ssh_key_id else None
    return ClonePlan(
        url=url,
        branch=branch,
        destination_path=paths.code_dir(reference.app_name, compose=compose),
        known_hosts_path=paths.known_hosts_path,
        ssh_key_file_path=key_path,
        location=location,
        recurse_submodules=recurse_submodules,
    )


def plan_clone_steps(plan: ClonePlan, *, announce: bool = True) -> Tuple[StepKind, ...]:
    """Ordered steps shared by the local executor and the remote script."""
    steps = []
    if plan.is_ssh_transport:
        steps.append(StepKind.HOST_KEY_SCAN)
    steps.append(StepKind.DIR_RESET)
    if announce:
        steps.append(StepKind.LOG_ANNOUNCE)
    steps.append(StepKind.CLONE_COMMAND)
    return tuple(steps)
