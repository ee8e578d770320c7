import os
import sys
from collections.abc import Sequence
from functools import wraps
from pathlib import Path

import click
from click.formatting import term_len
from click.shell_completion import CompletionItem
from pyperclip import copy

from . import __version__
from .accounts import (
    DEFAULT_HOST,
    Account,
    AccountStore,
    account_id,
    add_account,
    effective_host,
    remove_account,
    replace_account,
    select_account,
    ssh_host_alias,
)
from .completions import SHELLS, completion_source, install_completion
from .errors import AbortedError, GitIdError, KeyToolError, SSHAgentError
from .git.remote import redact_url
from .git.repo import GitRepo
from .reconcile import (
    CHANGED,
    GLOBAL,
    LOCAL,
    UNCHANGED,
    IdentityResult,
    apply_identity,
    resolve_transport,
)
from .runtime import (
    get_dry_run,
    reset_dry_run,
    reset_verbose_logging,
    set_dry_run,
    set_verbose_logging,
)
from .ssh.config import (
    ABSENT,
    MALFORMED,
    read_ssh_config,
    remove_ssh_stanza,
    render_stanza,
    stanza_state,
    sync_ssh_config,
)
from .ssh.keys import (
    add_key_to_agent,
    agent_available,
    expand_key_path,
    fix_key_permissions,
    generate_key,
    list_agent_keys,
    list_public_keys,
    private_key_for,
    public_key_path,
    read_public_key,
    ssh_config_path,
)
from .ui import (
    ask,
    bold,
    choose,
    confirm,
    dim,
    print_err,
    print_hdr,
    print_info,
    print_ok,
    print_warn,
    yes_no,
)

COMMAND_GROUPS = (
    ("Accounts", ("add", "list", "use", "remove")),
    ("SSH", ("ssh",)),
    ("Info", ("status", "completions")),
)
HELP_COL_MAX = 30
HELP_COL_SPACING = 2

SUBCOMMANDS = {"add", "list", "use", "remove", "ssh", "status", "completions"}
GLOBAL_FLAGS = {"--dry-run", "-v", "--verbose"}

TRANSPORT_CHOICES = (
    ("ssh", "ssh - use SSH keys (recommended)"),
    ("https", "https - use personal access token"),
    ("both", "both - configure SSH and HTTPS"),
)


def _write_bold_section(
    formatter: click.HelpFormatter, title: str, records: list[tuple[str, str]]
) -> None:
    if not records:
        return
    formatter.write("\n")
    formatter.write(click.style(title, bold=True) + "\n")
    formatter.indent()
    formatter.write_dl(records, col_max=HELP_COL_MAX, col_spacing=HELP_COL_SPACING)
    formatter.dedent()


def _command_help_limit(formatter: click.HelpFormatter, names: Sequence[str]) -> int:
    if not names:
        return 45
    max_name = max(term_len(name) for name in names)
    first_col = min(max_name, HELP_COL_MAX) + HELP_COL_SPACING
    return max(formatter.width - first_col - 2, 10)


class OrderedGroup(click.Group):
    def __init__(
        self,
        *args,
        commands_order: Sequence[str] | None = None,
        command_groups: Sequence[tuple[str, Sequence[str]]] | None = None,
        **kwargs,
    ) -> None:
        super().__init__(*args, **kwargs)
        self._commands_order = list(commands_order or [])
        self._command_groups = [
            (title, set(commands)) for title, commands in (command_groups or [])
        ]

    def list_commands(self, ctx: click.Context) -> list[str]:
        if not self._commands_order:
            return super().list_commands(ctx)
        ordered = [name for name in self._commands_order if name in self.commands]
        remaining = [
            name
            for name in super().list_commands(ctx)
            if name not in self._commands_order
        ]
        return ordered + remaining

    def format_commands(
        self, ctx: click.Context, formatter: click.HelpFormatter
    ) -> None:
        if not self._command_groups:
            return super().format_commands(ctx, formatter)
        grouped: dict[str, list[tuple[str, click.Command]]] = {
            title: [] for title, _ in self._command_groups
        }
        other: list[tuple[str, click.Command]] = []
        for name in self.list_commands(ctx):
            cmd = self.get_command(ctx, name)
            if cmd is None or cmd.hidden:
                continue
            for title, command_set in self._command_groups:
                if name in command_set:
                    grouped[title].append((name, cmd))
                    break
            else:
                other.append((name, cmd))
        sections = [(title.upper(), grouped[title]) for title, _ in self._command_groups]
        sections.append(("OTHER", other))
        for title, entries in sections:
            if not entries:
                continue
            limit = _command_help_limit(formatter, [name for name, _ in entries])
            rows = [(name, cmd.get_short_help_str(limit=limit)) for name, cmd in entries]
            _write_bold_section(formatter, title, rows)


class GitIdClickException(click.ClickException):
    def __init__(self, message: str, exit_code: int = 1) -> None:
        super().__init__(message)
        self.exit_code = exit_code

    def show(self, file=None) -> None:
        print_err(self.format_message())


def handle_errors(f):
    """Turn git-id errors and aborted prompts into exit statuses."""

    @wraps(f)
    def wrapper(*args, **kwargs):
        try:
            return f(*args, **kwargs)
        except GitIdError as exc:
            raise GitIdClickException(str(exc), exit_code=exc.exit_code) from exc
        except click.Abort as exc:
            raise GitIdClickException("Aborted.", exit_code=2) from exc

    return wrapper


def preprocess_args(argv: list[str]) -> list[str]:
    """
    Move global flags given after the subcommand to before it, so that
    ``git-id use alice --dry-run`` behaves like ``git-id --dry-run use alice``.
    """
    subcommand_idx = None
    for i, arg in enumerate(argv):
        if arg == "--":
            return argv
        if arg in SUBCOMMANDS:
            subcommand_idx = i
            break
    if subcommand_idx is None:
        return argv

    to_move = []
    remaining = []
    passthrough = False
    for arg in argv[subcommand_idx + 1 :]:
        if arg == "--":
            passthrough = True
        if not passthrough and arg in GLOBAL_FLAGS:
            to_move.append(arg)
        else:
            remaining.append(arg)
    if not to_move:
        return argv
    return argv[:subcommand_idx] + to_move + [argv[subcommand_idx]] + remaining


def _complete_account_keys(ctx, param, incomplete):
    try:
        accounts = AccountStore().load()
    except GitIdError:
        return []
    keys = []
    for account in accounts:
        for key in (account.username, account_id(account)):
            if key.startswith(incomplete) and key not in keys:
                keys.append(key)
    return [CompletionItem(key) for key in keys]


@click.group(
    cls=OrderedGroup,
    commands_order=["add", "list", "use", "remove", "ssh", "status", "completions"],
    command_groups=COMMAND_GROUPS,
    context_settings={"help_option_names": ["-h", "--help"]},
)
@click.version_option(__version__, prog_name="git-id")
@click.option(
    "--dry-run",
    is_flag=True,
    help="Preview changes without modifying any files or running side effects.",
)
@click.option(
    "-v", "--verbose", is_flag=True, help="Log git/ssh subprocess calls to stderr."
)
@click.pass_context
def cli(ctx, dry_run, verbose):
    """
    git-id - manage multiple git hosting accounts on one machine.
    """
    dry_run_token = set_dry_run(dry_run)
    verbose_token = set_verbose_logging(verbose)
    ctx.call_on_close(lambda: reset_dry_run(dry_run_token))
    ctx.call_on_close(lambda: reset_verbose_logging(verbose_token))


def _save_accounts(store: AccountStore, accounts: list[Account], dry_run: bool) -> None:
    result = store.save(accounts, dry_run=dry_run)
    if dry_run:
        print_info(f"[dry-run] Would write {result.path.name}:")
        click.echo(result.content, nl=False)
        return
    if result.backup:
        print_info(f"Backed up {result.path.name} -> {result.backup.name}")
    print_ok(f"Saved {result.path}")


def _sync_ssh_config(accounts: list[Account], dry_run: bool) -> None:
    update = sync_ssh_config(accounts, dry_run=dry_run)
    for acct_id in update.malformed:
        print_warn(
            f"SSH config stanza for '{acct_id}' has no end marker - left unchanged"
        )
    if dry_run:
        print_info(f"[dry-run] Would write {update.path}:")
        click.echo(update.content, nl=False)
        return
    if update.backup:
        print_info(f"Backed up {update.path.name} -> {update.backup.name}")
    print_ok(f"Updated {update.path}")


def _register_with_agent(key: Path, dry_run: bool) -> None:
    if dry_run:
        print_info(f"[dry-run] Would run: ssh-add {key}")
        return
    if not agent_available():
        print_warn("SSH_AUTH_SOCK not set - ssh-agent may not be running")
    try:
        add_key_to_agent(key)
    except SSHAgentError as exc:
        print_warn(str(exc))
        return
    print_ok(f"Added {key} to ssh-agent")


def _fix_permissions(key: Path, dry_run: bool) -> None:
    if dry_run:
        print_info(f"[dry-run] Would chmod 600 {key} and 644 {public_key_path(key)}")
        return
    for path in fix_key_permissions(key):
        mode = "644" if path.name.endswith(".pub") else "600"
        print_ok(f"chmod {mode} {path}")


def _show_public_key(key: Path, copy_key: bool, dry_run: bool) -> None:
    if dry_run:
        return
    public = read_public_key(key)
    if not public:
        return
    print_hdr("Public key - paste this into your host's SSH key settings:")
    click.echo(f"\n{public}\n")
    if copy_key:
        try:
            copy(public)
        except Exception as e:
            click.echo(f"Error copying to clipboard: {e}", err=True)
        else:
            print_ok("Public key copied to clipboard")


def _generate_key(username: str, email: str, dry_run: bool, copy_key: bool) -> Path:
    result = generate_key(username, email, dry_run=dry_run)
    if result.existed:
        print_warn(
            f"Key {result.path} already exists - skipping (delete it first to regenerate)"
        )
    elif dry_run:
        print_info(f"[dry-run] Would run: {' '.join(result.command)}")
    else:
        print_ok(f"Generated {result.path}")
        _register_with_agent(result.path, dry_run)
    _show_public_key(result.path, copy_key, dry_run)
    return result.path


def _pick_key(
    username: str, email: str, dry_run: bool, copy_key: bool, fallback_generate: bool
) -> Path:
    pub_files = list_public_keys()
    if not pub_files:
        if not fallback_generate:
            raise KeyToolError("No .pub files found in ~/.ssh/")
        print_warn("No .pub files found in ~/.ssh/ - generating a new key instead")
        return _generate_key(username, email, dry_run, copy_key)

    idx = choose("Pick public key", [str(path) for path in pub_files])
    private = private_key_for(pub_files[idx])
    if not private.exists():
        print_warn(f"Private key not found: {private}")
        if confirm("Generate a new ed25519 key instead?"):
            return _generate_key(username, email, dry_run, copy_key)
        raise AbortedError("Cannot proceed without a valid private key.")

    _fix_permissions(private, dry_run)
    _register_with_agent(private, dry_run)
    return private


def _use_key_file(key_path: str, dry_run: bool) -> Path:
    private = expand_key_path(key_path)
    if not private.is_file():
        raise click.BadParameter(f"private key not found: {private}", param_hint="--key")
    _fix_permissions(private, dry_run)
    _register_with_agent(private, dry_run)
    return private


@cli.command("add")
@click.option("--username", help="Hosting-service username.")
@click.option("--host", help=f"Hosting-service hostname (default {DEFAULT_HOST}).")
@click.option("--email", help="Commit email for this identity.")
@click.option(
    "--transport",
    type=click.Choice([value for value, _ in TRANSPORT_CHOICES]),
    help="Remote type to configure.",
)
@click.option("--key", "key_path", help="Use this existing private key.")
@click.option(
    "--generate-key", "generate_new_key", is_flag=True, help="Generate a new ed25519 key."
)
@click.option("--token", help="HTTPS personal access token.")
@click.option("--copy", "copy_key", is_flag=True, help="Copy the public key to the clipboard.")
@handle_errors
def add_cmd(username, host, email, transport, key_path, generate_new_key, token, copy_key):
    """
    Add a new account (interactive wizard).
    """
    dry_run = get_dry_run()
    store = AccountStore()
    if not dry_run and store.ensure_file():
        print_info(f"Created {store.path} (no accounts yet)")
    accounts = store.load()

    print_hdr("Add a new account")
    username = username or ask("Username")
    host = host if host is not None else ask("Host", default=DEFAULT_HOST)
    accounts = add_account(accounts, Account(username=username, host=host))
    email = email if email is not None else ask("Commit email", allow_empty=True)

    if transport is None:
        click.echo()
        idx = choose("Remote type", [label for _, label in TRANSPORT_CHOICES])
        transport = TRANSPORT_CHOICES[idx][0]
    use_ssh = transport in ("ssh", "both")
    use_https = transport in ("https", "both")

    ssh_key = ""
    if use_ssh:
        if key_path:
            key = _use_key_file(key_path, dry_run)
        elif generate_new_key:
            key = _generate_key(username, email, dry_run, copy_key)
        else:
            print_hdr("SSH Key")
            idx = choose(
                "SSH key setup",
                [
                    f"Generate new ed25519 key  (~/.ssh/id_ed25519_{username})",
                    "Pick from existing ~/.ssh/*.pub keys",
                ],
            )
            if idx == 0:
                key = _generate_key(username, email, dry_run, copy_key)
            else:
                key = _pick_key(username, email, dry_run, copy_key, fallback_generate=True)
        ssh_key = str(key)

    https_token = ""
    if use_https:
        if token is None:
            print_hdr("HTTPS Token")
            token = ask("Personal access token (optional)", allow_empty=True)
        https_token = token

    account = Account(username, email, host, ssh_key, https_token)
    accounts = replace_account(accounts, account)
    _save_accounts(store, accounts, dry_run)
    if ssh_key:
        _sync_ssh_config(accounts, dry_run)

    click.echo()
    print_ok(f"Account '{account_id(account)}' added!")
    print_info(
        f"Next: git-id use {username}   (inside a repo)  or  git-id use {username} --global"
    )


@cli.command("list")
@handle_errors
def list_cmd():
    """
    List all accounts with status.
    """
    store = AccountStore()
    if not get_dry_run() and store.ensure_file():
        print_info(f"Created {store.path} (no accounts yet)")
    accounts = store.load()
    if not accounts:
        print_info("No accounts configured yet. Run: git-id add")
        print_info(f"Config file: {store.path}")
        return

    git = GitRepo()
    local_email = git.get_config("user.email", LOCAL) if git.in_repo() else ""
    global_email = git.get_config("user.email", GLOBAL)

    print_hdr(f"Configured accounts  ({len(accounts)} total)")
    for account in accounts:
        key = expand_key_path(account.ssh_key) if account.ssh_key else None
        tags = ""
        if account.email and account.email == local_email:
            tags += "  " + click.style("[active:local]", fg="green")
        if account.email and account.email == global_email:
            tags += "  " + click.style("[active:global]", fg="yellow")
        token = click.style("yes", fg="green") if account.https_token else dim("-")
        click.echo(
            f"\n  {bold(account.username)}  {dim(effective_host(account))}{tags}\n"
            f"    email  : {account.email}\n"
            f"    ssh    : {account.ssh_key or dim('(none)')}"
            f"  priv:{yes_no(bool(key and key.exists()))}"
            f"  pub:{yes_no(bool(key and public_key_path(key).exists()))}\n"
            f"    token  : {token}\n"
            f"    alias  : {ssh_host_alias(account)}"
        )
    click.echo()


def _report_identity(result: IdentityResult) -> None:
    account = result.account
    if result.dry_run:
        print_info(f"[dry-run] git config --{result.scope} user.name {account.username!r}")
        print_info(f"[dry-run] git config --{result.scope} user.email {account.email!r}")
    for warning in result.warnings:
        print_warn(warning)
    print_ok(f"Git identity ({result.scope}): {account.username} <{account.email}>")

    if result.scope != LOCAL:
        return
    if not result.outcomes:
        print_info("No remotes found - skipping remote URL update (identity set)")
        return
    for outcome in result.outcomes:
        if outcome.warning:
            print_warn(outcome.warning)
        new_url = redact_url(outcome.new_url)
        if outcome.status == CHANGED:
            if result.dry_run:
                print_info(f"[dry-run] git remote set-url {outcome.remote} {new_url}")
            else:
                print_ok(f"Remote '{outcome.remote}' -> {new_url}")
        elif outcome.status == UNCHANGED:
            print_info(f"Remote '{outcome.remote}' unchanged ({new_url})")
        elif not outcome.warning and outcome.reason != "no URL":
            print_info(dim(f"Remote '{outcome.remote}' skipped ({outcome.reason})"))


@cli.command("use")
@click.argument("key", shell_complete=_complete_account_keys)
@click.option(
    "--global", "use_global", is_flag=True, help="Apply to global git config instead of the repo."
)
@click.option("--ssh", "force_ssh", is_flag=True, help="Convert remote URLs to SSH format.")
@click.option("--https", "force_https", is_flag=True, help="Convert remote URLs to HTTPS format.")
@handle_errors
def use_cmd(key, use_global, force_ssh, force_https):
    """
    Set identity for the current repo or globally.

    KEY is a username, or username@host when the username exists on more
    than one host.
    """
    force_transport = resolve_transport(force_ssh, force_https)
    account = select_account(AccountStore().load(), key)
    scope = GLOBAL if use_global else LOCAL
    result = apply_identity(
        account, scope, GitRepo(), force_transport=force_transport, dry_run=get_dry_run()
    )
    _report_identity(result)


def _handle_key_files(ssh_key: str, delete_keys: bool, dry_run: bool) -> None:
    private = expand_key_path(ssh_key)
    existing = [path for path in (private, public_key_path(private)) if path.exists()]
    if not delete_keys:
        if existing:
            print_info("SSH key files kept (use --delete-keys to also remove them):")
            for path in existing:
                click.echo(f"    {dim(str(path))}")
        return
    for path in existing:
        if dry_run:
            print_info(f"[dry-run] Would delete {path}")
            continue
        try:
            os.remove(path)
        except OSError as exc:
            print_warn(f"Could not delete {path}: {exc}")
        else:
            print_ok(f"Deleted {path}")


@cli.command("remove")
@click.argument("key", shell_complete=_complete_account_keys)
@click.option("-y", "--yes", is_flag=True, help="Skip confirmation prompt.")
@click.option(
    "--delete-keys", is_flag=True, help="Also delete the SSH private and public key files."
)
@handle_errors
def remove_cmd(key, yes, delete_keys):
    """
    Remove an account and its SSH config stanza.
    """
    dry_run = get_dry_run()
    store = AccountStore()
    accounts = store.load()
    account = select_account(accounts, key)
    acct_id = account_id(account)

    if not yes:
        click.echo(
            f"\n  {click.style('About to remove account:', fg='yellow')} "
            f"{bold(account.username)}  {dim(effective_host(account))}"
        )
        click.echo(f"    email: {account.email}")
        if account.ssh_key:
            click.echo(f"    key  : {account.ssh_key}")
        click.echo()
        if not confirm("Confirm removal?"):
            print_info("Aborted.")
            return

    config_path = ssh_config_path()
    if config_path.exists():
        state = stanza_state(read_ssh_config(config_path), acct_id)
        if state == ABSENT:
            print_info(f"No SSH config stanza found for '{acct_id}' - skipping")
        elif state == MALFORMED:
            print_warn(
                f"SSH config stanza for '{acct_id}' has no end marker - left unchanged"
            )
        elif remove_ssh_stanza(acct_id, config_path, dry_run=dry_run):
            if dry_run:
                print_info(f"[dry-run] Would remove SSH config stanza for '{acct_id}'")
            else:
                print_ok(f"Removed SSH config stanza for '{acct_id}'")

    _save_accounts(store, remove_account(accounts, acct_id), dry_run)
    if account.ssh_key:
        _handle_key_files(account.ssh_key, delete_keys, dry_run)
    if not dry_run:
        print_ok(f"Account '{acct_id}' removed.")


@cli.group("ssh", cls=OrderedGroup, commands_order=["gen", "pick", "config"])
def ssh_group():
    """
    SSH key management subcommands.
    """


def _store_key(store: AccountStore, accounts: list[Account], account: Account, key: Path, dry_run: bool) -> None:
    account.ssh_key = str(key)
    accounts = replace_account(accounts, account)
    _save_accounts(store, accounts, dry_run)
    _sync_ssh_config(accounts, dry_run)


@ssh_group.command("gen")
@click.argument("key", shell_complete=_complete_account_keys)
@click.option("--copy", "copy_key", is_flag=True, help="Copy the public key to the clipboard.")
@handle_errors
def ssh_gen_cmd(key, copy_key):
    """
    Generate a new ed25519 key for an account.
    """
    dry_run = get_dry_run()
    store = AccountStore()
    accounts = store.load()
    account = select_account(accounts, key)
    private = _generate_key(account.username, account.email, dry_run, copy_key)
    _fix_permissions(private, dry_run)
    _store_key(store, accounts, account, private, dry_run)


@ssh_group.command("pick")
@click.argument("key", shell_complete=_complete_account_keys)
@handle_errors
def ssh_pick_cmd(key):
    """
    Pick an existing ~/.ssh/*.pub key for an account.
    """
    dry_run = get_dry_run()
    store = AccountStore()
    accounts = store.load()
    account = select_account(accounts, key)
    print_hdr(f"Pick SSH key for '{key}'")
    private = _pick_key(
        account.username, account.email, dry_run, copy_key=False, fallback_generate=False
    )
    _store_key(store, accounts, account, private, dry_run)
    print_ok(f"SSH key for '{key}' -> {private}")


@ssh_group.command("config")
@handle_errors
def ssh_config_cmd():
    """
    Write ~/.ssh/config stanzas for all accounts.
    """
    accounts = AccountStore().load()
    if not accounts:
        print_info("No accounts configured. Run: git-id add")
        return
    _sync_ssh_config(accounts, get_dry_run())
    print_hdr("Generated SSH config stanzas:")
    for account in accounts:
        click.echo(render_stanza(account))


@cli.command("status")
@handle_errors
def status_cmd():
    """
    Show current identity and loaded SSH keys.
    """
    git = GitRepo()
    print_hdr("git-id status")

    g_name = git.get_config("user.name", GLOBAL)
    g_email = git.get_config("user.email", GLOBAL)
    click.echo(f"\n  {bold('Global git identity')}")
    click.echo(f"    name : {g_name or dim('(not set)')}")
    click.echo(f"    email: {g_email or dim('(not set)')}")

    active_email = g_email
    if git.in_repo():
        l_name = git.get_config("user.name", LOCAL)
        l_email = git.get_config("user.email", LOCAL)
        origin = git.get_remote_url("origin")
        click.echo(f"\n  {bold('Repo identity')}  ({dim(git.repo_name())})")
        click.echo(f"    name  : {l_name or dim('(inherits global)')}")
        click.echo(f"    email : {l_email or dim('(inherits global)')}")
        click.echo(f"    origin: {redact_url(origin) if origin else dim('(no remote)')}")
        active_email = l_email or g_email
    else:
        click.echo(f"\n  {dim('(not in a git repository)')}")

    click.echo(f"\n  {bold('ssh-agent keys')}")
    agent_keys = list_agent_keys()
    if not agent_keys:
        click.echo(f"    {dim('(no keys loaded, or agent not running)')}")
    else:
        for line in agent_keys:
            click.echo(f"    {click.style('OK', fg='green')} {line}")

    if active_email:
        matched = [a for a in AccountStore().load() if a.email == active_email]
        if matched:
            click.echo(
                f"\n  {bold('Matched account')}: "
                f"{click.style(matched[0].username, fg='green')}  "
                f"{dim(effective_host(matched[0]))}"
            )
        else:
            click.echo(f"\n  {dim('Active email does not match any configured account')}")
    click.echo()


@cli.command("completions")
@click.argument("shell", type=click.Choice(SHELLS))
@click.option(
    "--print", "print_only", is_flag=True, help="Write the script to stdout instead of installing it."
)
@click.pass_context
@handle_errors
def completions_cmd(ctx, shell, print_only):
    """
    Generate and install a shell completion script.
    """
    root = ctx.find_root().command
    if print_only:
        click.echo(completion_source(root, shell), nl=False)
        return
    dry_run = get_dry_run()
    install = install_completion(root, shell, dry_run=dry_run)
    if dry_run:
        print_info(f"[dry-run] Would write completion script to: {install.path}")
    else:
        print_ok(f"Completion script written to: {install.path}")
    if install.rc_lines:
        verb = "Would add" if dry_run else "Added"
        print_ok(f"{verb} {', '.join(install.rc_lines)} to {install.rc_file}")
    for note in install.notes:
        click.echo(f"  {note}")


def main():
    cli(args=preprocess_args(sys.argv[1:]), prog_name="git-id")


if __name__ == "__main__":
    main()
