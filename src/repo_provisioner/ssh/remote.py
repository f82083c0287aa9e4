"""Running generated shell scripts on managed hosts."""

from __future__ import annotations

import logging
import shlex
from typing import Callable, Mapping, Optional, Protocol

from ..errors import RemoteExecutionError, ServerNotFoundError
from .credentials import SSHCredentials
from .session import SSHSession

logger = logging.getLogger(__name__)


class RemoteCommandRunner(Protocol):
    def run_on_remote_host(self, server_id: str, script: str) -> None:
        ...


class SSHRemoteRunner:
    """Executes scripts with ``sh`` on hosts looked up by server id."""

    def __init__(
        self,
        servers: Mapping[str, SSHCredentials],
        *,
        session_factory: Callable[[SSHCredentials], SSHSession] = SSHSession,
        timeout: Optional[float] = None,
    ) -> None:
        self._servers = dict(servers)
        self._session_factory = session_factory
        self._timeout = timeout

    def credentials_for(self, server_id: str) -> SSHCredentials:
        credentials = self._servers.get(server_id)
        if credentials is None:
            raise ServerNotFoundError(f"Server not found: {server_id}")
        return credentials

    def run_on_remote_host(self, server_id: str, script: str) -> None:
        credentials = self.credentials_for(server_id)
        credentials.validate()
        logger.info("Running script on server %s (%s)", server_id, credentials.host)
        with self._session_factory(credentials) as session:
            result = session.run(f"sh -c {shlex.quote(script)}", timeout=self._timeout)
        if not result.ok:
            logger.error("Script on server %s exited with %s", server_id, result.exit_status)
            raise RemoteExecutionError(server_id, result.exit_status, result.stderr or result.stdout)
