from __future__ import annotations

from collections.abc import Sequence

import click


def print_ok(message: str) -> None:
    click.echo(f"{click.style('OK', fg='green')} {message}")


def print_info(message: str) -> None:
    click.echo(f"{click.style('->', fg='cyan')} {message}")


def print_warn(message: str) -> None:
    click.echo(f"{click.style('!', fg='yellow')} {message}", err=True)


def print_err(message: str) -> None:
    click.echo(f"{click.style('ERR', fg='red')} {message}", err=True)


def print_hdr(message: str) -> None:
    click.echo()
    click.secho(message, bold=True)


def dim(text: str) -> str:
    return click.style(text, dim=True)


def bold(text: str) -> str:
    return click.style(text, bold=True)


def yes_no(flag: bool) -> str:
    return click.style("yes", fg="green") if flag else click.style("no", fg="red")


def choose(prompt: str, items: Sequence[str], default: int = 0) -> int:
    """Numbered menu; returns the zero-based index of the picked item."""
    for i, item in enumerate(items, start=1):
        click.echo(f"  [{i}] {item}")
    picked = click.prompt(
        f"  {click.style(prompt, fg='cyan')}",
        type=click.IntRange(1, len(items)),
        default=default + 1,
    )
    return picked - 1


def ask(prompt: str, default: str | None = None, allow_empty: bool = False) -> str:
    value = click.prompt(
        f"  {click.style(prompt, fg='cyan')}",
        default=default if default is not None else ("" if allow_empty else None),
        show_default=bool(default),
    )
    return value.strip()


def confirm(prompt: str) -> bool:
    return click.confirm(f"  {prompt}", default=False)
