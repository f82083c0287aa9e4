"""Git repository provisioning."""

from .known_hosts import KnownHostsRegistrar
from .local_clone import LocalCloneExecutor
from .log_sink import FAILURE_MARKER, SUCCESS_MARKER, FileLogSink
from .plan import (
    ClonePlan,
    ExecutionTarget,
    LocalTarget,
    RemoteTarget,
    RepositoryReference,
    StepKind,
    build_clone_plan,
    plan_clone_steps,
)
from .provisioner import RepositoryProvisioner
from .reference import SSHLocation, is_http_reference, parse_ssh_location
from .remote_script import RemoteCloneScriptBuilder

__all__ = [
    "ClonePlan",
    "ExecutionTarget",
    "FAILURE_MARKER",
    "FileLogSink",
    "KnownHostsRegistrar",
    "LocalCloneExecutor",
    "LocalTarget",
    "RemoteCloneScriptBuilder",
    "RemoteTarget",
    "RepositoryProvisioner",
    "RepositoryReference",
    "SSHLocation",
    "SUCCESS_MARKER",
    "StepKind",
    "build_clone_plan",
    "is_http_reference",
    "parse_ssh_location",
    "plan_clone_steps",
]
