"""Entry point choosing between local execution and a remote script."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import PurePath
from typing import Callable, Optional, Union

from ..credentials import CredentialBookkeeper, touch_credential_usage
from ..errors import ServerNotFoundError, ValidationError
from ..ssh.remote import RemoteCommandRunner
from .local_clone import LocalCloneExecutor
from .plan import ExecutionTarget, LocalTarget, RemoteTarget, RepositoryReference
from .remote_script import RemoteCloneScriptBuilder

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RepositoryProvisioner:
    """Clones a reference on the selected execution target."""

    def __init__(
        self,
        local_executor: LocalCloneExecutor,
        remote_builder: RemoteCloneScriptBuilder,
        remote_runner: RemoteCommandRunner,
        *,
        bookkeeper: Optional[CredentialBookkeeper] = None,
        strict_bookkeeping: bool = True,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.local_executor = local_executor
        self.remote_builder = remote_builder
        self.remote_runner = remote_runner
        self.strict_bookkeeping = strict_bookkeeping
        self._bookkeeper = bookkeeper
        self._clock = clock

    def provision(
        self,
        reference: RepositoryReference,
        target: ExecutionTarget,
        log_path: Union[str, PurePath],
        *,
        compose: bool = False,
    ) -> Optional[str]:
        """Clone ``reference`` on ``target``.

        Returns the script sent to the managed host for remote targets and
        ``None`` for local clones.
        """
        if isinstance(target, LocalTarget):
            self.local_executor.clone(reference, log_path, compose=compose)
            return None

        script = self.prepare_remote_script(reference, target, log_path, compose=compose)
        logger.info("Dispatching clone of %s to server %s", reference.app_name, target.server_id)
        self.remote_runner.run_on_remote_host(target.server_id, script)
        return script

    def prepare_remote_script(
        self,
        reference: RepositoryReference,
        target: RemoteTarget,
        log_path: Union[str, PurePath],
        *,
        compose: bool = False,
    ) -> str:
        """Validate, record key usage, then build the remote clone script."""
        self.remote_builder.check_reference(reference, target, log_path)
        self._touch_key(reference)
        return self.remote_builder.build(reference, target, log_path, compose=compose)

    def clone_raw(self, reference: RepositoryReference, target: ExecutionTarget) -> None:
        """Compose-tree clone with no deployment log."""
        if isinstance(target, LocalTarget):
            self.local_executor.clone_raw(reference)
            return
        self.clone_raw_remote(reference, target)

    def clone_raw_remote(
        self, reference: RepositoryReference, target: Optional[RemoteTarget]
    ) -> None:
        if target is None or not target.server_id:
            raise ServerNotFoundError("Server not found")
        if not reference.url:
            raise ValidationError("Git Provider not found")
        if not reference.branch:
            raise ValidationError("Git branch not found")
        self._touch_key(reference)
        script = self.remote_builder.build_raw(reference)
        self.remote_runner.run_on_remote_host(target.server_id, script)

    def _touch_key(self, reference: RepositoryReference) -> None:
        touch_credential_usage(
            self._bookkeeper,
            reference.ssh_key_id,
            self._clock(),
            strict=self.strict_bookkeeping,
        )
