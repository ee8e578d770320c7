"""Markered per-account regions inside an SSH client config file.

Each account owns one block delimited by a start and an end marker line that
embed its account id::

    # >>> git-id: alice@github.com >>>
    Host github.com-alice
        ...
    # <<< git-id: alice@github.com <<<

The text functions here work on lines and never fail; reading and writing the
file is left to ``sync_ssh_config`` and ``remove_ssh_stanza``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from ..accounts.models import Account, account_id, effective_host, ssh_host_alias
from ..errors import SSHConfigError
from ..runtime import log
from ..utils import backup_file, make_private_dir, write_text
from .keys import ssh_config_path

MARKER_START = "# >>> git-id: {id} >>>"
MARKER_END = "# <<< git-id: {id} <<<"

PRESENT = "present"
ABSENT = "absent"
MALFORMED = "malformed"


def start_marker(acct_id: str) -> str:
    return MARKER_START.format(id=acct_id)


def end_marker(acct_id: str) -> str:
    return MARKER_END.format(id=acct_id)


def render_stanza(account: Account) -> str:
    acct_id = account_id(account)
    keyfile = account.ssh_key or f"~/.ssh/id_ed25519_{account.username}"
    return (
        f"{start_marker(acct_id)}\n"
        f"Host {ssh_host_alias(account)}\n"
        f"    HostName {effective_host(account)}\n"
        f"    User git\n"
        f"    IdentityFile {keyfile}\n"
        f"    IdentitiesOnly yes\n"
        f"{end_marker(acct_id)}\n"
    )


def _line_body(line: str) -> str:
    return line.rstrip("\r\n")


def _index_of(lines: list[str], marker: str, start: int = 0) -> int:
    for i in range(start, len(lines)):
        if _line_body(lines[i]) == marker:
            return i
    return -1


def find_stanza(lines: list[str], acct_id: str) -> tuple[int, int] | None:
    """Line indexes (inclusive) of the account's block, or None."""
    start = _index_of(lines, start_marker(acct_id))
    if start == -1:
        return None
    # the end marker only counts after this block's own start marker
    end = _index_of(lines, end_marker(acct_id), start + 1)
    if end == -1:
        return None
    return start, end


def stanza_state(text: str, acct_id: str) -> str:
    lines = text.splitlines(keepends=True)
    if _index_of(lines, start_marker(acct_id)) == -1:
        return ABSENT
    if find_stanza(lines, acct_id) is None:
        return MALFORMED
    return PRESENT


def upsert_stanza(text: str, account: Account) -> str:
    acct_id = account_id(account)
    stanza = render_stanza(account)
    lines = text.splitlines(keepends=True)

    if _index_of(lines, start_marker(acct_id)) != -1:
        span = find_stanza(lines, acct_id)
        if span is None:
            return text
        start, end = span
        return "".join(lines[:start]) + stanza + "".join(lines[end + 1 :])

    trimmed = text.rstrip("\n")
    if not trimmed:
        return stanza
    return f"{trimmed}\n\n{stanza}"


def remove_stanza(text: str, acct_id: str) -> tuple[str, bool]:
    """Drop the account's block and one adjoining blank line. Returns ``(text, removed)``."""
    lines = text.splitlines(keepends=True)
    span = find_stanza(lines, acct_id)
    if span is None:
        return text, False
    start, end = span
    if start > 0 and _line_body(lines[start - 1]) == "":
        start -= 1
    elif end + 1 < len(lines) and _line_body(lines[end + 1]) == "":
        end += 1
    return "".join(lines[:start]) + "".join(lines[end + 1 :]), True


@dataclass
class SSHConfigUpdate:
    path: Path
    content: str
    written: bool
    malformed: list[str] = field(default_factory=list)
    backup: Path | None = None


def read_ssh_config(path: Path) -> str:
    try:
        with open(path, "r", encoding="utf-8", newline="") as fh:
            return fh.read()
    except FileNotFoundError:
        return ""
    except OSError as exc:
        raise SSHConfigError(f"Failed to read SSH config {path}: {exc}") from exc


def _write_ssh_config(path: Path, content: str) -> Path | None:
    backup = backup_file(path)
    try:
        write_text(path, content, mode=0o600)
    except OSError as exc:
        raise SSHConfigError(f"Failed to write SSH config: {exc}") from exc
    log("ssh", f"wrote {path}")
    return backup


def sync_ssh_config(
    accounts: list[Account], path: Path | None = None, dry_run: bool = False
) -> SSHConfigUpdate:
    path = Path(path) if path else ssh_config_path()
    if not dry_run:
        try:
            make_private_dir(path.parent)
        except OSError as exc:
            raise SSHConfigError(f"Cannot create {path.parent}: {exc}") from exc

    content = read_ssh_config(path)
    malformed = []
    for account in accounts:
        if stanza_state(content, account_id(account)) == MALFORMED:
            malformed.append(account_id(account))
            continue
        content = upsert_stanza(content, account)

    if dry_run:
        return SSHConfigUpdate(path, content, written=False, malformed=malformed)
    backup = _write_ssh_config(path, content)
    return SSHConfigUpdate(path, content, written=True, malformed=malformed, backup=backup)


def remove_ssh_stanza(
    acct_id: str, path: Path | None = None, dry_run: bool = False
) -> bool:
    path = Path(path) if path else ssh_config_path()
    if not path.exists():
        return False
    content, removed = remove_stanza(read_ssh_config(path), acct_id)
    if removed and not dry_run:
        _write_ssh_config(path, content)
    return removed
