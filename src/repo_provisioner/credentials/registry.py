"""Last-used bookkeeping for SSH deploy keys."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from datetime import datetime
from pathlib import Path, PurePath
from typing import Optional, Protocol, Union

logger = logging.getLogger(__name__)


class CredentialBookkeeper(Protocol):
    def touch_usage(self, key_id: str, timestamp: datetime) -> None:
        ...


class JsonSSHKeyRegistry:
    """Stores ``last_used_at`` per key id in a small JSON document."""

    def __init__(self, path: Union[str, PurePath]) -> None:
        self.path = Path(path)

    def touch_usage(self, key_id: str, timestamp: datetime) -> None:
        payload = self._read()
        entry = payload.setdefault(key_id, {})
        entry["last_used_at"] = timestamp.isoformat()
        self._write(payload)

    def last_used_at(self, key_id: str) -> Optional[datetime]:
        value = self._read().get(key_id, {}).get("last_used_at")
        return datetime.fromisoformat(value) if value else None

    def _read(self) -> dict:
        if self.path.exists():
            return json.loads(self.path.read_text(encoding="utf-8"))
        return {}

    def _write(self, payload: dict) -> None:
        # Readers only ever see a complete document.
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(payload, handle, indent=2)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise


def touch_credential_usage(
    bookkeeper: Optional[CredentialBookkeeper],
    key_id: Optional[str],
    timestamp: datetime,
    *,
    strict: bool = True,
) -> None:
    """Record that ``key_id`` is being used.

    With ``strict`` a bookkeeping failure propagates to the caller, aborting
    the clone; otherwise it is logged and ignored.
    """
    if bookkeeper is None or not key_id:
        return
    try:
        bookkeeper.touch_usage(key_id, timestamp)
    except Exception as exc:
        if strict:
            raise
        logger.warning("Could not record usage of SSH key %s: %s", key_id, exc)
