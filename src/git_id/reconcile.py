"""Point a repository's git identity and remotes at one account.

``plan_remote`` decides what a single remote should become; ``apply_identity``
sets ``user.name``/``user.email`` and walks the repository's remotes with it.
Neither prints anything: callers render the returned outcomes.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from .accounts.models import Account, effective_host, ssh_host_alias
from .errors import ConflictingTransportError, GitCommandError, NotInRepositoryError
from .git.remote import HTTPS, SSH, TRANSPORTS, compose_remote_url, decompose_remote_url
from .git.repo import GitClient

LOCAL = "local"
GLOBAL = "global"
SCOPES = (LOCAL, GLOBAL)

CHANGED = "changed"
UNCHANGED = "unchanged"
SKIPPED = "skipped"


@dataclass
class RemoteOutcome:
    remote: str
    status: str
    old_url: str = ""
    new_url: str = ""
    transport: str | None = None
    warning: str | None = None
    reason: str | None = None

    @property
    def warned(self) -> bool:
        return self.warning is not None


@dataclass
class IdentityResult:
    account: Account
    scope: str
    dry_run: bool = False
    outcomes: list[RemoteOutcome] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def changed(self) -> list[RemoteOutcome]:
        return [outcome for outcome in self.outcomes if outcome.status == CHANGED]


def resolve_transport(force_ssh: bool, force_https: bool) -> str | None:
    if force_ssh and force_https:
        raise ConflictingTransportError()
    if force_ssh:
        return SSH
    if force_https:
        return HTTPS
    return None


def _on_own_alias(account: Account, url: str) -> bool:
    return url.startswith(f"git@{ssh_host_alias(account)}:")


def _is_identity_remote(account: Account, name: str, url: str, host: str, owner: str) -> bool:
    if name == "origin":
        return True
    if host == effective_host(account) and owner == account.username:
        return True
    return _on_own_alias(account, url)


def plan_remote(
    account: Account, name: str, url: str, force_transport: str | None = None
) -> RemoteOutcome:
    if not url:
        return RemoteOutcome(name, SKIPPED, reason="no URL")

    parsed = decompose_remote_url(url)
    if parsed is None:
        return RemoteOutcome(
            name,
            SKIPPED,
            old_url=url,
            reason="unrecognised URL",
            warning=f"Unrecognised remote URL format for '{name}': {url!r} - skipping",
        )

    if not _is_identity_remote(account, name, url, parsed.host, parsed.owner):
        return RemoteOutcome(
            name, SKIPPED, old_url=url, reason="belongs to another identity"
        )

    # the account's own alias pins the host exactly
    host = effective_host(account) if _on_own_alias(account, url) else parsed.host
    target = force_transport or parsed.transport
    warning = None
    if target == SSH and not account.ssh_key:
        warning = "No SSH key configured for this account; falling back to HTTPS"
        target = HTTPS

    new_url = compose_remote_url(
        target, account, host, parsed.owner, parsed.repo, account.https_token
    )
    status = CHANGED if new_url != url else UNCHANGED
    return RemoteOutcome(
        name, status, old_url=url, new_url=new_url, transport=target, warning=warning
    )


def apply_identity(
    account: Account,
    scope: str,
    git: GitClient,
    force_transport: str | None = None,
    dry_run: bool = False,
) -> IdentityResult:
    if scope not in SCOPES:
        raise ValueError(f"unknown scope: {scope!r}")
    if force_transport is not None and force_transport not in TRANSPORTS:
        raise ValueError(f"unknown transport: {force_transport!r}")
    if scope == LOCAL and not git.in_repo():
        raise NotInRepositoryError()

    result = IdentityResult(account, scope, dry_run=dry_run)
    if not dry_run:
        for key, value in (("user.name", account.username), ("user.email", account.email)):
            try:
                git.set_config(key, value, scope)
            except GitCommandError as exc:
                result.warnings.append(str(exc))

    if scope == GLOBAL:
        return result

    for name in git.list_remotes():
        outcome = plan_remote(account, name, git.get_remote_url(name), force_transport)
        if outcome.status == CHANGED and not dry_run:
            try:
                git.set_remote_url(name, outcome.new_url)
            except GitCommandError as exc:
                outcome.status = SKIPPED
                outcome.reason = "set-url failed"
                message = f"Could not set remote URL: {exc.stderr or exc}"
                outcome.warning = (
                    f"{outcome.warning}; {message}" if outcome.warning else message
                )
        result.outcomes.append(outcome)
    return result
