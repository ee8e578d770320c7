from __future__ import annotations

from contextvars import ContextVar, Token
import os
import sys

_VERBOSE_LOGGING: ContextVar[bool] = ContextVar("git_id_verbose_logging", default=False)
_DRY_RUN: ContextVar[bool] = ContextVar("git_id_dry_run", default=False)


def _read_bool_env(name: str, default: bool) -> bool:
    raw = (os.environ.get(name) or "").strip().lower()
    if not raw:
        return default
    return raw in {"1", "true", "yes", "on"}


def get_verbose_logging() -> bool:
    return _VERBOSE_LOGGING.get() or _read_bool_env("GIT_ID_VERBOSE", False)


def set_verbose_logging(enabled: bool) -> Token[bool]:
    return _VERBOSE_LOGGING.set(bool(enabled))


def reset_verbose_logging(token: Token[bool]) -> None:
    _VERBOSE_LOGGING.reset(token)


def get_dry_run() -> bool:
    return _DRY_RUN.get()


def set_dry_run(enabled: bool) -> Token[bool]:
    return _DRY_RUN.set(bool(enabled))


def reset_dry_run(token: Token[bool]) -> None:
    _DRY_RUN.reset(token)


def log(scope: str, message: str) -> None:
    if get_verbose_logging():
        print(f"[{scope}] {message}", file=sys.stderr, flush=True)
