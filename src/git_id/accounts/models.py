from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from ..errors import AccountNotFoundError, AmbiguousAccountError

DEFAULT_HOST = "github.com"

ACCOUNT_FIELDS = ("username", "email", "host", "ssh_key", "https_token")

FOUND = "found"
NOT_FOUND = "not_found"
AMBIGUOUS = "ambiguous"


@dataclass
class Account:
    username: str = ""
    email: str = ""
    host: str = ""
    ssh_key: str = ""
    https_token: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Account":
        values = {}
        for name in ACCOUNT_FIELDS:
            raw = data.get(name)
            values[name] = "" if raw is None else str(raw)
        return cls(**values)

    def to_dict(self) -> dict[str, str]:
        return {name: getattr(self, name) for name in ACCOUNT_FIELDS}


def effective_host(account: Account) -> str:
    return account.host or DEFAULT_HOST


def account_id(account: Account) -> str:
    return f"{account.username}@{effective_host(account)}"


def ssh_host_alias(account: Account) -> str:
    return f"{effective_host(account)}-{account.username}"


def strip_host_alias(raw_host: str) -> str:
    """
    Recover the real host from an SSH alias such as ``github.com-alice``.

    The text after the last ``-`` is taken to be a username when it has no
    dot. Hosts whose own name ends in such a segment (``github-enterprise``)
    are cut as well; there is no way to tell them apart from an alias.
    """
    head, dash, suffix = raw_host.rpartition("-")
    if dash and "." not in suffix:
        return head
    return raw_host


@dataclass
class AccountLookup:
    status: str
    key: str
    account: Account | None = None
    candidates: list[str] = field(default_factory=list)

    @property
    def found(self) -> bool:
        return self.status == FOUND

    def unwrap(self) -> Account:
        if self.status == FOUND and self.account is not None:
            return self.account
        if self.status == AMBIGUOUS:
            raise AmbiguousAccountError(self.key, self.candidates)
        raise AccountNotFoundError(self.key)


def lookup_account(accounts: list[Account], key: str) -> AccountLookup:
    if "@" in key:
        username, _, host = key.partition("@")
        for account in accounts:
            if account.username == username and effective_host(account) == host:
                return AccountLookup(FOUND, key, account=account)
        return AccountLookup(NOT_FOUND, key)

    matches = [account for account in accounts if account.username == key]
    if not matches:
        return AccountLookup(NOT_FOUND, key)
    if len(matches) == 1:
        return AccountLookup(FOUND, key, account=matches[0])
    return AccountLookup(
        AMBIGUOUS, key, candidates=[account_id(account) for account in matches]
    )


def select_account(accounts: list[Account], key: str) -> Account:
    return lookup_account(accounts, key).unwrap()
