"""Registration of git hosts' SSH keys in a known_hosts file."""

from __future__ import annotations

import logging
import shlex
import subprocess
from pathlib import Path, PurePath
from typing import Callable, Optional, Union

from ..errors import HostKeyScanError
from .reference import SSHLocation

logger = logging.getLogger(__name__)


class KnownHostsRegistrar:
    """Appends ``ssh-keyscan`` output for a host to a known_hosts file.

    ``register_now`` runs the scan on this machine; ``register_command_text``
    returns the same scan as shell text for a managed host. The file is only
    ever appended to, so repeated clones add duplicate entries.
    """

    def __init__(
        self,
        known_hosts_path: Union[str, PurePath],
        *,
        keyscan_binary: str = "ssh-keyscan",
        timeout: Optional[float] = None,
        runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
    ) -> None:
        self.known_hosts_path = known_hosts_path
        self.keyscan_binary = keyscan_binary
        self.timeout = timeout
        self._runner = runner

    def scan_command(self, location: SSHLocation) -> list[str]:
        return [self.keyscan_binary, "-p", str(location.port), location.domain]

    def register_command_text(self, location: SSHLocation) -> str:
        command = shlex.join(self.scan_command(location))
        return f"{command} >> {shlex.quote(str(self.known_hosts_path))};"

    def register_now(self, location: SSHLocation) -> None:
        command = self.scan_command(location)
        logger.info("Scanning host key of %s:%s", location.domain, location.port)
        try:
            result = self._runner(
                command,
                capture_output=True,
                text=True,
                check=False,
                timeout=self.timeout,
            )
        except FileNotFoundError as exc:
            raise HostKeyScanError(
                f"'{self.keyscan_binary}' was not found in PATH"
            ) from exc
        except OSError as exc:
            raise HostKeyScanError(f"Could not run '{self.keyscan_binary}': {exc}") from exc
        except subprocess.TimeoutExpired as exc:
            raise HostKeyScanError(
                f"Host key scan of {location.domain} timed out after {self.timeout}s"
            ) from exc

        if result.returncode != 0:
            details = (result.stderr or "").strip() or "No command output"
            logger.error("Error adding host to known_hosts: %s", details)
            raise HostKeyScanError(
                f"Command {' '.join(command)} failed with code {result.returncode}: {details}"
            )

        path = Path(self.known_hosts_path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open("a", encoding="utf-8") as handle:
                handle.write(result.stdout or "")
        except OSError as exc:
            raise HostKeyScanError(f"Could not append to {path}: {exc}") from exc
