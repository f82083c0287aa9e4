"""Configuration loading utilities for repo-provisioner."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv

from .ssh.credentials import SSHCredentials

# Load .env file if it exists
load_dotenv()

_DEFAULT_CONFIG_PATH = Path("config/default_config.json")

_TRUE_VALUES = ("true", "1", "yes", "on")


@dataclass
class PathsConfig:
    """Provisioning roots on this machine and on managed hosts."""

    base_dir: str = ".repo-provisioner"
    remote_base_dir: str = "/etc/repo-provisioner"


@dataclass
class GitConfig:
    git_binary: str = "git"
    keyscan_binary: str = "ssh-keyscan"
    keyscan_timeout: Optional[float] = None  # no timeout unless configured


@dataclass
class CredentialsConfig:
    # Bookkeeping failures abort the clone unless disabled.
    strict_bookkeeping: bool = True


@dataclass
class ServerConfig:
    """SSH access to one managed host."""

    host: str
    username: str
    port: int = 22
    auth_method: str = "key"
    password: Optional[str] = None
    key_path: Optional[str] = None
    passphrase: Optional[str] = None
    timeout: int = 20

    def to_credentials(self) -> SSHCredentials:
        return SSHCredentials(
            host=self.host,
            username=self.username,
            port=self.port,
            auth_method=self.auth_method,
            password=self.password,
            key_path=self.key_path,
            passphrase=self.passphrase,
            timeout=self.timeout,
        )


@dataclass
class AppConfig:
    """Top-level configuration."""

    paths: PathsConfig = field(default_factory=PathsConfig)
    git: GitConfig = field(default_factory=GitConfig)
    credentials: CredentialsConfig = field(default_factory=CredentialsConfig)
    servers: Dict[str, ServerConfig] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "AppConfig":
        paths_payload = _strip_comments(payload.get("paths", {}) or {})
        git_payload = _strip_comments(payload.get("git", {}) or {})
        credentials_payload = _strip_comments(payload.get("credentials", {}) or {})
        servers_payload = payload.get("servers", {}) or {}

        return cls(
            paths=PathsConfig(**{**PathsConfig().__dict__, **paths_payload}),
            git=GitConfig(**{**GitConfig().__dict__, **git_payload}),
            credentials=CredentialsConfig(
                **{**CredentialsConfig().__dict__, **credentials_payload}
            ),
            servers={
                server_id: ServerConfig(**_strip_comments(server))
                for server_id, server in servers_payload.items()
            },
        )

    def server_credentials(self) -> Dict[str, SSHCredentials]:
        return {server_id: server.to_credentials() for server_id, server in self.servers.items()}


def _strip_comments(payload: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in payload.items() if not k.startswith("_")}


def _env_flag(value: str) -> bool:
    return value.strip().lower() in _TRUE_VALUES


def load_config(path: Optional[str] = None) -> AppConfig:
    """Load configuration from `path` or the default location.

    Falls back to built-in defaults when no file exists. Environment
    variables take precedence over the file:
    - REPO_PROVISIONER_BASE_DIR: local provisioning root
    - REPO_PROVISIONER_REMOTE_BASE_DIR: provisioning root on managed hosts
    - REPO_PROVISIONER_GIT_BINARY: git executable
    - REPO_PROVISIONER_KEYSCAN_BINARY: ssh-keyscan executable
    - REPO_PROVISIONER_STRICT_KEY_BOOKKEEPING: abort clones on bookkeeping errors
    """
    if path and not Path(path).is_file():
        raise FileNotFoundError(f"Could not find configuration file: {path}")

    candidate_paths = []
    if path:
        candidate_paths.append(Path(path))
    candidate_paths.append(_DEFAULT_CONFIG_PATH)

    config = AppConfig()
    for candidate in candidate_paths:
        if candidate.is_file():
            with candidate.open("r", encoding="utf-8") as handle:
                config = AppConfig.from_dict(json.load(handle))
            break

    env_base_dir = os.getenv("REPO_PROVISIONER_BASE_DIR")
    if env_base_dir:
        config.paths.base_dir = env_base_dir

    env_remote_base_dir = os.getenv("REPO_PROVISIONER_REMOTE_BASE_DIR")
    if env_remote_base_dir:
        config.paths.remote_base_dir = env_remote_base_dir

    env_git = os.getenv("REPO_PROVISIONER_GIT_BINARY")
    if env_git:
        config.git.git_binary = env_git

    env_keyscan = os.getenv("REPO_PROVISIONER_KEYSCAN_BINARY")
    if env_keyscan:
        config.git.keyscan_binary = env_keyscan

    env_strict = os.getenv("REPO_PROVISIONER_STRICT_KEY_BOOKKEEPING")
    if env_strict:
        config.credentials.strict_bookkeeping = _env_flag(env_strict)

    return config
