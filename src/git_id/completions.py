from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

import click
from click.shell_completion import get_completion_class

from .errors import CompletionError
from .runtime import log

PROG_NAME = "git-id"
COMPLETE_VAR = "_GIT_ID_COMPLETE"
SHELLS = ("bash", "zsh", "fish")

ZSH_FPATH_LINE = "fpath=(~/.zfunc $fpath)"
ZSH_COMPINIT_LINE = "autoload -Uz compinit && compinit"


@dataclass
class CompletionInstall:
    shell: str
    path: Path
    notes: list[str] = field(default_factory=list)
    rc_file: Path | None = None
    rc_lines: list[str] = field(default_factory=list)


def completion_source(cli: click.Command, shell: str) -> str:
    comp_cls = get_completion_class(shell)
    if comp_cls is None:
        raise CompletionError(f"Unsupported shell: {shell}")
    return comp_cls(cli, {}, PROG_NAME, COMPLETE_VAR).source()


def completion_target(shell: str, home: Path) -> tuple[Path, list[str]]:
    if shell == "bash":
        return home / ".local/share/bash-completion/completions" / PROG_NAME, [
            "bash-completion loads scripts from this directory automatically."
        ]
    if shell == "fish":
        return home / ".config/fish/completions" / f"{PROG_NAME}.fish", [
            "Fish auto-loads completions from this directory - no further setup needed."
        ]
    if shell == "zsh":
        omz = home / ".oh-my-zsh"
        if omz.is_dir():
            return omz / "custom/completions" / f"_{PROG_NAME}", [
                "Detected oh-my-zsh - completions will load automatically."
            ]
        return home / ".zfunc" / f"_{PROG_NAME}", [
            "Restart your shell or run: source ~/.zshrc"
        ]
    raise CompletionError(f"Unsupported shell: {shell}")


def missing_zshrc_lines(content: str) -> list[str]:
    return [line for line in (ZSH_FPATH_LINE, ZSH_COMPINIT_LINE) if line not in content]


def patch_zshrc(zshrc: Path, dry_run: bool = False) -> list[str]:
    """Append the fpath/compinit lines that ``zshrc`` lacks; returns them."""
    try:
        content = zshrc.read_text(encoding="utf-8") if zshrc.exists() else ""
    except OSError as exc:
        raise CompletionError(f"Error reading {zshrc}: {exc}") from exc
    missing = missing_zshrc_lines(content)
    if not missing or dry_run:
        return missing
    block = "\n# git-id shell completions\n" + "".join(f"{line}\n" for line in missing)
    try:
        with open(zshrc, "a", encoding="utf-8") as fh:
            fh.write(block)
    except OSError as exc:
        raise CompletionError(f"Error opening {zshrc}: {exc}") from exc
    log("completions", f"patched {zshrc}")
    return missing


def install_completion(
    cli: click.Command,
    shell: str,
    home: Path | None = None,
    dry_run: bool = False,
) -> CompletionInstall:
    home = Path(home) if home else Path(os.path.expanduser("~"))
    path, notes = completion_target(shell, home)
    source = completion_source(cli, shell)
    install = CompletionInstall(shell, path, notes=notes)

    if not dry_run:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(source, encoding="utf-8")
        except OSError as exc:
            raise CompletionError(f"Failed to write {path}: {exc}") from exc
        log("completions", f"wrote {path}")

    if shell == "zsh" and path.parent == home / ".zfunc":
        install.rc_file = home / ".zshrc"
        install.rc_lines = patch_zshrc(install.rc_file, dry_run=dry_run)
    return install
