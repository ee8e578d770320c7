from .models import (
    DEFAULT_HOST,
    Account,
    AccountLookup,
    account_id,
    effective_host,
    lookup_account,
    select_account,
    ssh_host_alias,
    strip_host_alias,
)
from .store import AccountStore, add_account, remove_account, replace_account

__all__ = [
    "DEFAULT_HOST",
    "Account",
    "AccountLookup",
    "AccountStore",
    "account_id",
    "add_account",
    "effective_host",
    "lookup_account",
    "remove_account",
    "replace_account",
    "select_account",
    "ssh_host_alias",
    "strip_host_alias",
]
