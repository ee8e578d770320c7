import os
import shutil
import time
from pathlib import Path


def get_config_dir(custom_path=None) -> Path:
    if custom_path:
        return Path(custom_path)
    override = os.environ.get("GIT_ID_CONFIG_DIR")
    if override:
        return Path(override)
    xdg_config_home = os.environ.get("XDG_CONFIG_HOME", os.path.expanduser("~/.config"))
    return Path(xdg_config_home) / "git-id"


def get_accounts_path(custom_path=None) -> Path:
    return get_config_dir(custom_path) / "accounts.yaml"


def backup_file(path: Path, now: float | None = None) -> Path | None:
    """
    Copy an existing file to ``<name>.bak.<unix seconds>`` beside it.
    Returns the backup path, or None when there was nothing to back up or the
    copy failed.
    """
    path = Path(path)
    if not path.exists():
        return None
    stamp = int(now if now is not None else time.time())
    dst = path.with_name(f"{path.name}.bak.{stamp}")
    try:
        shutil.copy2(path, dst)
    except OSError:
        return None
    return dst


def write_text(path: Path, content: str, mode: int | None = None) -> None:
    """Write ``content``; with ``mode`` the file never holds data under looser permissions."""
    path = Path(path)
    if mode is None:
        with open(path, "w", encoding="utf-8", newline="") as fh:
            fh.write(content)
        return
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, mode)
    # O_CREAT honours the umask and leaves existing files alone
    os.fchmod(fd, mode)
    with os.fdopen(fd, "w", encoding="utf-8", newline="") as fh:
        fh.write(content)


def make_private_dir(path: Path) -> bool:
    """Create ``path`` with mode 700 if missing. Returns True when created."""
    path = Path(path)
    if path.is_dir():
        return False
    path.mkdir(mode=0o700, parents=True, exist_ok=True)
    os.chmod(path, 0o700)
    return True
