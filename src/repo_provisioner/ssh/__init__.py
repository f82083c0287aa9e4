"""SSH utilities for running provisioning scripts on managed hosts."""

from .credentials import SSHCredentials
from .remote import RemoteCommandRunner, SSHRemoteRunner
from .session import SSHCommandResult, SSHConnectionError, SSHSession

__all__ = [
    "RemoteCommandRunner",
    "SSHCommandResult",
    "SSHConnectionError",
    "SSHCredentials",
    "SSHRemoteRunner",
    "SSHSession",
]
