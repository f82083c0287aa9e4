"""Directory layout for provisioned repositories and SSH material.

Every provisioning root is laid out the same way::

    <base>/ssh/known_hosts        # host keys registered before SSH clones
    <base>/ssh/<key_id>_rsa       # deploy keys
    <base>/ssh/keys.json          # key usage bookkeeping
    <base>/applications/<app>/code
    <base>/compose/<app>/code
    <base>/logs/<app>-clone.log

The local root uses native paths; a managed host's root is always POSIX.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path, PurePath, PurePosixPath
from typing import Union

DEFAULT_LOCAL_BASE_DIR = Path(".repo-provisioner")
DEFAULT_REMOTE_BASE_DIR = PurePosixPath("/etc/repo-provisioner")

CODE_DIR_NAME = "code"


@dataclass(frozen=True)
class ProvisionPaths:
    """Resolved directory layout under one base directory."""

    base_dir: PurePath

    @classmethod
    def local(cls, base_dir: Union[str, Path, None] = None) -> "ProvisionPaths":
        return cls(Path(base_dir) if base_dir is not None else DEFAULT_LOCAL_BASE_DIR)

    @classmethod
    def remote(cls, base_dir: Union[str, PurePosixPath, None] = None) -> "ProvisionPaths":
        return cls(
            PurePosixPath(base_dir) if base_dir is not None else DEFAULT_REMOTE_BASE_DIR
        )

    @property
    def ssh_dir(self) -> PurePath:
        return self.base_dir / "ssh"

    @property
    def applications_dir(self) -> PurePath:
        return self.base_dir / "applications"

    @property
    def compose_dir(self) -> PurePath:
        return self.base_dir / "compose"

    @property
    def logs_dir(self) -> PurePath:
        return self.base_dir / "logs"

    @property
    def known_hosts_path(self) -> PurePath:
        return self.ssh_dir / "known_hosts"

    @property
    def key_registry_path(self) -> PurePath:
        return self.ssh_dir / "keys.json"

    def ssh_key_path(self, key_id: str) -> PurePath:
        return self.ssh_dir / f"{key_id}_rsa"

    def code_dir(self, app_name: str, *, compose: bool = False) -> PurePath:
        root = self.compose_dir if compose else self.applications_dir
        return root / app_name / CODE_DIR_NAME

    def clone_log_path(self, app_name: str) -> PurePath:
        return self.logs_dir / f"{app_name}-clone.log"
