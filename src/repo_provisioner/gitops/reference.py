"""Parsing of free-form git references into SSH connection parts.

Accepted shapes::

    [scheme://][user@]domain[:port][/|:owner](/|:)repo[.git][/]

e.g. ``git@github.com:owner/repo.git`` or
``ssh://deploy@git.example.com:2222/team/app``. Each token class is matched
on its own so that the optional pieces (port, owner, ``.git``) can be tried
in order instead of relying on one composite expression.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional, Tuple

from ..errors import GitReferenceParseError

DEFAULT_SSH_USER = "git"
DEFAULT_SSH_PORT = 22
MIN_PORT = 1
MAX_PORT = 65535

HTTP_PREFIXES = ("http://", "https://")

_SCHEME_RE = re.compile(r"([a-z]+)://", re.IGNORECASE)
_USER_RE = re.compile(r"([a-z_][a-z0-9_-]+)@", re.IGNORECASE)
_DOMAIN_RE = re.compile(r"[^\s/?#:]+")
# A port only counts when a path separator follows it.
_PORT_RE = re.compile(r":([0-9]{1,5})(?=[/:])")
_OWNER_RE = re.compile(r"[/:]([^\s/?#:]+)")
# A dot belongs to the repo unless it starts the trailing ``.git`` suffix.
_REPO_RE = re.compile(r"[/:]((?:[^\s?#:.]|\.(?!git/?$))+)", re.IGNORECASE)
_SUFFIX_RE = re.compile(r"(?:\.git)?/?", re.IGNORECASE)


@dataclass(frozen=True)
class SSHLocation:
    """SSH connection parameters of a repository reference."""

    domain: str
    repo: str
    user: str = DEFAULT_SSH_USER
    port: int = DEFAULT_SSH_PORT
    owner: str = ""

    @property
    def canonical_url(self) -> str:
        owner = f"{self.owner}/" if self.owner else ""
        return f"ssh://{self.user}@{self.domain}:{self.port}/{owner}{self.repo}.git"

    def to_payload(self) -> dict:
        return {
            "user": self.user,
            "domain": self.domain,
            "port": self.port,
            "owner": self.owner,
            "repo": self.repo,
            "canonical_url": self.canonical_url,
        }


def is_http_reference(raw: str) -> bool:
    """Return True when the reference is reached over HTTP(S) instead of SSH."""
    return raw.startswith(HTTP_PREFIXES)


def parse_ssh_location(raw: str) -> SSHLocation:
    """Parse ``raw`` into an :class:`SSHLocation`.

    Leading and trailing whitespace are ignored. Missing user, port and owner
    fall back to ``git``, ``22`` and ``""``.

    Raises:
        GitReferenceParseError: the domain or repo cannot be found, or the
            port is outside 1-65535.
    """
    text = raw.strip()
    pos = 0

    scheme_match = _SCHEME_RE.match(text, pos)
    if scheme_match:
        pos = scheme_match.end()

    user = DEFAULT_SSH_USER
    user_match = _USER_RE.match(text, pos)
    if user_match:
        user = user_match.group(1)
        pos = user_match.end()

    domain_match = _DOMAIN_RE.match(text, pos)
    if not domain_match:
        raise GitReferenceParseError(raw)
    domain = domain_match.group(0)
    pos = domain_match.end()

    port = DEFAULT_SSH_PORT
    path: Optional[Tuple[str, str]] = None
    port_match = _PORT_RE.match(text, pos)
    if port_match:
        path = _parse_path(text, port_match.end())
        if path is not None:
            port = int(port_match.group(1))
    if path is None:
        path = _parse_path(text, pos)
    if path is None:
        raise GitReferenceParseError(raw)
    if not MIN_PORT <= port <= MAX_PORT:
        raise GitReferenceParseError(raw)

    owner, repo = path
    return SSHLocation(domain=domain, repo=repo, user=user, port=port, owner=owner)


def _parse_path(text: str, pos: int) -> Optional[Tuple[str, str]]:
    """Split the remainder into ``(owner, repo)``; owner is optional."""
    owner_match = _OWNER_RE.match(text, pos)
    if owner_match:
        repo = _parse_repo(text, owner_match.end())
        if repo is not None:
            return owner_match.group(1), repo
    repo = _parse_repo(text, pos)
    if repo is not None:
        return "", repo
    return None


def _parse_repo(text: str, pos: int) -> Optional[str]:
    repo_match = _REPO_RE.match(text, pos)
    if not repo_match or not _SUFFIX_RE.fullmatch(text, repo_match.end()):
        return None
    repo = repo_match.group(1).rstrip("/")
    return repo or None
