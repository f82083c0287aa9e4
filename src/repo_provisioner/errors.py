"""Error kinds raised while provisioning a repository.

None of these are retried automatically; retry policy belongs to callers.
"""

from __future__ import annotations

from typing import Optional


class ProvisionError(RuntimeError):
    """Base class for every provisioning failure."""

    pass


class ValidationError(ProvisionError):
    """The request is incomplete or inconsistent."""

    pass


class MissingReferenceError(ValidationError):
    """Raised when a clone is requested without both url and branch."""

    def __init__(self, message: str = "Error: Repository not found") -> None:
        super().__init__(message)


class ServerNotFoundError(ValidationError):
    """Raised when a remote clone is requested without a server handle."""

    pass


class GitReferenceParseError(ProvisionError):
    """The repository reference does not match the supported grammar."""

    def __init__(self, raw: str) -> None:
        self.raw = raw
        super().__init__(f"Malformatted SSH path: {raw}")


class HostKeyScanError(ProvisionError):
    """ssh-keyscan could not be executed or reported a failure."""

    pass


class DirectoryResetError(ProvisionError):
    """The destination directory could not be recreated."""

    pass


class ProcessExecutionError(ProvisionError):
    """A child process could not be spawned or exited non-zero."""

    def __init__(self, command: list[str], exit_code: Optional[int], detail: str) -> None:
        self.command = command
        self.exit_code = exit_code
        self.detail = detail
        if exit_code is None:
            message = f"Command {' '.join(command)} could not be started: {detail}"
        else:
            message = f"Command {' '.join(command)} failed with code {exit_code}: {detail}"
        super().__init__(message)


class CloneProcessError(ProvisionError):
    """The git clone child process failed."""

    pass


class RemoteExecutionError(ProvisionError):
    """A script sent to a managed host exited non-zero."""

    def __init__(self, server_id: str, exit_status: int, stderr: str) -> None:
        self.server_id = server_id
        self.exit_status = exit_status
        self.stderr = stderr
        super().__init__(
            f"Remote script on server {server_id!r} failed with code {exit_status}: {stderr}"
        )
