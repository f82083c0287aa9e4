"""SSH credential helpers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..errors import ValidationError


@dataclass
class SSHCredentials:
    """Connection settings for one managed host."""

    host: str
    username: str
    port: int = 22
    auth_method: str = "key"
    password: Optional[str] = None
    key_path: Optional[str] = None
    passphrase: Optional[str] = None
    timeout: int = 20

    def validate(self) -> None:
        if self.auth_method not in ("password", "key"):
            raise ValidationError(f"Unsupported SSH auth method: {self.auth_method}")
        if self.auth_method == "password" and not self.password:
            raise ValidationError("Password authentication selected but no password provided")
        if self.auth_method == "key" and not self.key_path:
            raise ValidationError("Key authentication selected but no key_path provided")
