from __future__ import annotations

import os
import subprocess
from dataclasses import dataclass
from pathlib import Path

from ..errors import KeyToolError, SSHAgentError, SSHConfigError
from ..runtime import log
from ..utils import make_private_dir


@dataclass
class KeyGenResult:
    path: Path
    created: bool
    existed: bool
    command: list[str]


def ssh_dir() -> Path:
    override = os.environ.get("GIT_ID_SSH_DIR")
    if override:
        return Path(override)
    return Path(os.path.expanduser("~")) / ".ssh"


def ssh_config_path() -> Path:
    return ssh_dir() / "config"


def default_key_path(username: str) -> Path:
    return ssh_dir() / f"id_ed25519_{username}"


def public_key_path(private_key: str | Path) -> Path:
    private_key = Path(private_key)
    return private_key.with_name(private_key.name + ".pub")


def expand_key_path(path: str | Path) -> Path:
    return Path(os.path.expanduser(str(path)))


def ensure_ssh_dir(dry_run: bool = False) -> Path:
    directory = ssh_dir()
    if dry_run:
        return directory
    try:
        if make_private_dir(directory):
            log("ssh", f"created {directory}")
    except OSError as exc:
        raise SSHConfigError(f"Cannot create {directory}: {exc}") from exc
    return directory


def fix_key_permissions(private_key: str | Path) -> list[Path]:
    private_key = expand_key_path(private_key)
    touched = []
    for path, mode in ((private_key, 0o600), (public_key_path(private_key), 0o644)):
        if path.exists():
            try:
                os.chmod(path, mode)
            except OSError as exc:
                raise KeyToolError(f"Cannot chmod {oct(mode)[2:]} {path}: {exc}") from exc
            touched.append(path)
    return touched


def keygen_command(key: Path, email: str) -> list[str]:
    return ["ssh-keygen", "-t", "ed25519", "-C", email, "-f", str(key), "-N", ""]


def generate_key(username: str, email: str, dry_run: bool = False) -> KeyGenResult:
    """
    Create ``~/.ssh/id_ed25519_<username>`` with ssh-keygen.
    An existing key is left alone and reported with ``created=False``.
    """
    key = default_key_path(username)
    command = keygen_command(key, email)
    if key.exists():
        return KeyGenResult(key, created=False, existed=True, command=command)
    if dry_run:
        return KeyGenResult(key, created=False, existed=False, command=command)

    ensure_ssh_dir()
    log("ssh", " ".join(command))
    try:
        result = subprocess.run(command, capture_output=True, text=True)
    except FileNotFoundError as exc:
        raise KeyToolError("Failed to run ssh-keygen: not found on PATH") from exc
    if result.returncode != 0:
        raise KeyToolError(f"ssh-keygen failed: {result.stderr.strip()}")
    fix_key_permissions(key)
    return KeyGenResult(key, created=True, existed=False, command=command)


def agent_available() -> bool:
    return bool(os.environ.get("SSH_AUTH_SOCK"))


def add_key_to_agent(private_key: str | Path, dry_run: bool = False) -> None:
    key = expand_key_path(private_key)
    if not key.exists():
        raise SSHAgentError(f"Key {key} not found - cannot add to ssh-agent")
    if dry_run:
        return
    log("ssh", f"ssh-add {key}")
    try:
        result = subprocess.run(["ssh-add", str(key)], capture_output=True, text=True)
    except FileNotFoundError as exc:
        raise SSHAgentError("Failed to run ssh-add: not found on PATH") from exc
    if result.returncode != 0:
        raise SSHAgentError(
            f"ssh-add failed (is ssh-agent running?): {result.stderr.strip()}"
        )


def list_agent_keys() -> list[str] | None:
    try:
        result = subprocess.run(["ssh-add", "-l"], capture_output=True, text=True)
    except FileNotFoundError:
        return None
    if result.returncode != 0:
        return None
    return [line for line in result.stdout.strip().splitlines() if line.strip()]


def list_public_keys() -> list[Path]:
    directory = ssh_dir()
    if not directory.is_dir():
        return []
    return sorted(path for path in directory.glob("*.pub") if path.is_file())


def private_key_for(public_key: str | Path) -> Path:
    public_key = Path(public_key)
    name = public_key.name
    return public_key.with_name(name[:-4] if name.endswith(".pub") else name)


def read_public_key(private_key: str | Path) -> str | None:
    path = public_key_path(expand_key_path(private_key))
    try:
        return path.read_text(encoding="utf-8").strip()
    except OSError:
        return None
