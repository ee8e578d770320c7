from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

import yaml

from ..errors import AccountStoreError, DuplicateAccountError
from ..runtime import log
from ..utils import backup_file, get_accounts_path, write_text
from .models import Account, account_id

HEADER = (
    "# git-id accounts - managed by git-id (safe to edit manually)\n"
    "# Add one entry under 'accounts' per hosting identity.\n"
)


@dataclass
class SaveResult:
    path: Path
    content: str
    written: bool
    backup: Path | None = None


def _dump_accounts(accounts: list[Account]) -> str:
    body = yaml.safe_dump(
        {"accounts": [account.to_dict() for account in accounts]},
        sort_keys=False,
        default_flow_style=False,
        allow_unicode=True,
    )
    return f"{HEADER}\n{body}"


class AccountStore:
    """The YAML record store of configured identities."""

    def __init__(self, path: str | Path | None = None):
        self.path = Path(path) if path else get_accounts_path()

    def load(self) -> list[Account]:
        try:
            with open(self.path, "r", encoding="utf-8") as fh:
                data = yaml.safe_load(fh)
        except FileNotFoundError:
            return []
        except OSError as exc:
            raise AccountStoreError(f"Failed to read {self.path}: {exc}") from exc
        except yaml.YAMLError as exc:
            raise AccountStoreError(f"Failed to parse {self.path}: {exc}") from exc

        if data is None:
            return []
        if not isinstance(data, dict):
            raise AccountStoreError(f"Failed to parse {self.path}: expected a mapping")
        raw_accounts = data.get("accounts") or []
        if not isinstance(raw_accounts, list):
            raise AccountStoreError(
                f"Failed to parse {self.path}: 'accounts' must be a list"
            )
        accounts = []
        for entry in raw_accounts:
            if not isinstance(entry, dict):
                raise AccountStoreError(
                    f"Failed to parse {self.path}: each account must be a mapping"
                )
            accounts.append(Account.from_dict(entry))
        log("store", f"loaded {len(accounts)} account(s) from {self.path}")
        return accounts

    def render(self, accounts: list[Account]) -> str:
        return _dump_accounts(accounts)

    def save(self, accounts: list[Account], dry_run: bool = False) -> SaveResult:
        content = self.render(accounts)
        if dry_run:
            return SaveResult(self.path, content, written=False)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise AccountStoreError(f"Cannot create config dir: {exc}") from exc
        backup = backup_file(self.path)
        try:
            write_text(self.path, content, mode=0o600)
        except OSError as exc:
            raise AccountStoreError(f"Failed to write {self.path}: {exc}") from exc
        log("store", f"wrote {len(accounts)} account(s) to {self.path}")
        return SaveResult(self.path, content, written=True, backup=backup)

    def ensure_file(self) -> bool:
        if self.path.exists():
            return False
        try:
            os.makedirs(self.path.parent, exist_ok=True)
            write_text(self.path, f"{HEADER}\naccounts: []\n", mode=0o600)
        except OSError as exc:
            raise AccountStoreError(f"Failed to create {self.path}: {exc}") from exc
        return True


def add_account(accounts: list[Account], account: Account) -> list[Account]:
    new_id = account_id(account)
    if any(account_id(existing) == new_id for existing in accounts):
        raise DuplicateAccountError(new_id)
    return [*accounts, account]


def replace_account(accounts: list[Account], account: Account) -> list[Account]:
    target = account_id(account)
    return [account if account_id(existing) == target else existing for existing in accounts]


def remove_account(accounts: list[Account], acct_id: str) -> list[Account]:
    return [existing for existing in accounts if account_id(existing) != acct_id]
