from __future__ import annotations

from typing import NamedTuple

from ..accounts.models import Account, ssh_host_alias, strip_host_alias

SSH = "ssh"
HTTPS = "https"
TRANSPORTS = (SSH, HTTPS)


class RemoteURL(NamedTuple):
    transport: str
    host: str
    owner: str
    repo: str


def _strip_git_suffix(path: str) -> str:
    return path[:-4] if path.endswith(".git") else path


def decompose_remote_url(url: str) -> RemoteURL | None:
    """Split a remote URL into (transport, host, owner, repo), or None."""
    if url.startswith("git@"):  # git@github.com-alice:owner/repo.git
        host_path = url[4:]
        raw_host, colon, path = host_path.partition(":")
        if not colon:
            return None
        owner, slash, repo = _strip_git_suffix(path).partition("/")
        if not slash:
            return None
        return RemoteURL(SSH, strip_host_alias(raw_host), owner, repo)

    if url.startswith("https://"):  # https://[token@]host/owner/repo.git
        rest = url[len("https://") :]
        if "@" in rest:
            rest = rest[rest.find("@") + 1 :]
        parts = _strip_git_suffix(rest).split("/", 2)
        if len(parts) != 3:
            return None
        host, owner, repo = parts
        return RemoteURL(HTTPS, host, owner, repo)

    return None


def build_ssh_url(account: Account, owner: str, repo: str) -> str:
    return f"git@{ssh_host_alias(account)}:{owner}/{repo}.git"


def build_https_url(token: str, host: str, owner: str, repo: str) -> str:
    if token:
        return f"https://{token}@{host}/{owner}/{repo}.git"
    return f"https://{host}/{owner}/{repo}.git"


def compose_remote_url(
    transport: str,
    account: Account,
    host: str,
    owner: str,
    repo: str,
    token: str = "",
) -> str:
    """
    Render a remote URL for ``account``.

    SSH URLs always use the account's alias, whatever host the original URL
    named. HTTPS URLs keep ``host`` (the decomposed, alias-free host).
    """
    if transport == SSH:
        return build_ssh_url(account, owner, repo)
    if transport == HTTPS:
        return build_https_url(token, host, owner, repo)
    raise ValueError(f"unknown transport: {transport!r}")


def redact_url(url: str) -> str:
    """Hide an embedded HTTPS credential for display."""
    if not url.startswith("https://"):
        return url
    rest = url[len("https://") :]
    at_pos = rest.find("@")
    slash_pos = rest.find("/")
    if at_pos == -1 or (slash_pos != -1 and slash_pos < at_pos):
        return url
    return f"https://***@{rest[at_pos + 1 :]}"
