__version__ = "1.0.0"


def load_accounts(path=None):
    from .accounts import AccountStore

    return AccountStore(path).load()


def use(
    key: str,
    *,
    scope: str = "local",
    transport: str | None = None,
    dry_run: bool = False,
    cwd=None,
    accounts_path=None,
):
    from .accounts import AccountStore, select_account
    from .git.repo import GitRepo
    from .reconcile import apply_identity

    account = select_account(AccountStore(accounts_path).load(), key)
    return apply_identity(
        account, scope, GitRepo(cwd), force_transport=transport, dry_run=dry_run
    )


def sync_ssh_config(*, dry_run: bool = False, accounts_path=None, ssh_config=None):
    from .accounts import AccountStore
    from .ssh.config import sync_ssh_config as _sync

    return _sync(AccountStore(accounts_path).load(), path=ssh_config, dry_run=dry_run)


__all__ = ["__version__", "load_accounts", "sync_ssh_config", "use"]
