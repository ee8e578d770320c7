from __future__ import annotations

import os
import subprocess
from typing import Protocol, runtime_checkable

from ..errors import GitCommandError, GitNotFoundError
from ..runtime import log


@runtime_checkable
class GitClient(Protocol):
    def in_repo(self) -> bool: ...
    def get_config(self, key: str, scope: str) -> str: ...
    def set_config(self, key: str, value: str, scope: str) -> None: ...
    def list_remotes(self) -> list[str]: ...
    def get_remote_url(self, name: str) -> str: ...
    def set_remote_url(self, name: str, url: str) -> None: ...


class GitRepo:
    """``git`` invoked as a subprocess in ``cwd`` (the current directory by default)."""

    def __init__(self, cwd: str | None = None):
        self.cwd = cwd

    def _run_git(self, args: list[str]) -> subprocess.CompletedProcess:
        cmd = ["git", *args] if self.cwd is None else ["git", "-C", self.cwd, *args]
        log("git", " ".join(cmd))
        try:
            return subprocess.run(cmd, capture_output=True, text=True)
        except FileNotFoundError as exc:
            raise GitNotFoundError() from exc

    def _query(self, args: list[str]) -> str:
        result = self._run_git(args)
        if result.returncode != 0:
            return ""
        return result.stdout.strip()

    def _mutate(self, args: list[str]) -> None:
        result = self._run_git(args)
        if result.returncode != 0:
            raise GitCommandError(args, result.stderr.strip())

    def in_repo(self) -> bool:
        return self._run_git(["rev-parse", "--git-dir"]).returncode == 0

    def repo_root(self) -> str | None:
        return self._query(["rev-parse", "--show-toplevel"]) or None

    def repo_name(self) -> str:
        root = self.repo_root()
        if not root:
            return "."
        return os.path.basename(root.rstrip("/")) or "."

    def get_config(self, key: str, scope: str) -> str:
        return self._query(["config", f"--{scope}", key])

    def set_config(self, key: str, value: str, scope: str) -> None:
        self._mutate(["config", f"--{scope}", key, value])

    def list_remotes(self) -> list[str]:
        out = self._query(["remote"])
        return [line.strip() for line in out.splitlines() if line.strip()]

    def get_remote_url(self, name: str) -> str:
        return self._query(["remote", "get-url", name])

    def set_remote_url(self, name: str, url: str) -> None:
        self._mutate(["remote", "set-url", name, url])
