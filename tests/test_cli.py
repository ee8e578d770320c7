from __future__ import annotations

import pytest
import yaml
from click.testing import CliRunner

import git_id.cli as cli_module
from git_id.accounts import Account, AccountStore
from git_id.cli import cli, preprocess_args
from git_id.ssh import keys
from git_id.ssh.config import render_stanza, sync_ssh_config


class _Completed:
    def __init__(self, returncode: int = 0, stdout: str = "", stderr: str = "") -> None:
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr


class _DummyGit:
    def __init__(self, remotes=None, in_repo=True) -> None:
        self.remotes = dict(remotes or {})
        self._in_repo = in_repo
        self.config: dict[tuple[str, str], str] = {}

    def in_repo(self) -> bool:
        return self._in_repo

    def repo_name(self) -> str:
        return "repo"

    def get_config(self, key: str, scope: str) -> str:
        return self.config.get((scope, key), "")

    def set_config(self, key: str, value: str, scope: str) -> None:
        self.config[(scope, key)] = value

    def list_remotes(self) -> list[str]:
        return list(self.remotes)

    def get_remote_url(self, name: str) -> str:
        return self.remotes.get(name, "")

    def set_remote_url(self, name: str, url: str) -> None:
        self.remotes[name] = url


@pytest.fixture
def env(monkeypatch, tmp_path):
    config_dir = tmp_path / "config"
    ssh_dir = tmp_path / ".ssh"
    monkeypatch.setenv("GIT_ID_CONFIG_DIR", str(config_dir))
    monkeypatch.setenv("GIT_ID_SSH_DIR", str(ssh_dir))
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.delenv("SSH_AUTH_SOCK", raising=False)
    monkeypatch.delenv("GIT_ID_VERBOSE", raising=False)
    return tmp_path


@pytest.fixture
def git(monkeypatch):
    dummy = _DummyGit()
    monkeypatch.setattr(cli_module, "GitRepo", lambda *a, **k: dummy)
    return dummy


def _seed(accounts: list[Account]) -> AccountStore:
    store = AccountStore()
    store.save(accounts)
    return store


def _fake_keygen(monkeypatch) -> list[list[str]]:
    calls: list[list[str]] = []

    def _run(cmd, **kwargs):  # type: ignore[no-untyped-def]
        calls.append(cmd)
        if cmd[0] == "ssh-keygen":
            key = cmd[cmd.index("-f") + 1]
            with open(key, "w", encoding="utf-8") as fh:
                fh.write("PRIVATE")
            with open(key + ".pub", "w", encoding="utf-8") as fh:
                fh.write("ssh-ed25519 AAAA test\n")
        return _Completed()

    monkeypatch.setattr(keys.subprocess, "run", _run)
    return calls


def test_help_groups_commands() -> None:
    result = CliRunner().invoke(cli, ["--help"])

    assert result.exit_code == 0
    assert "ACCOUNTS" in result.output
    assert "SSH" in result.output
    assert "INFO" in result.output


def test_list_with_no_accounts(env, git) -> None:
    result = CliRunner().invoke(cli, ["list"])

    assert result.exit_code == 0
    assert "No accounts configured yet" in result.output
    assert (env / "config" / "accounts.yaml").exists()


def test_add_https_account_non_interactive(env, git) -> None:
    result = CliRunner().invoke(
        cli,
        [
            "add",
            "--username",
            "bob",
            "--host",
            "github.com",
            "--email",
            "bob@example.com",
            "--transport",
            "https",
            "--token",
            "tok",
        ],
    )

    assert result.exit_code == 0, result.output
    assert "Account 'bob@github.com' added!" in result.output
    assert AccountStore().load() == [
        Account("bob", "bob@example.com", "github.com", "", "tok")
    ]
    assert not (env / ".ssh" / "config").exists()


def test_add_with_generated_key_writes_ssh_config(env, git, monkeypatch) -> None:
    calls = _fake_keygen(monkeypatch)

    result = CliRunner().invoke(
        cli,
        [
            "add",
            "--username",
            "alice",
            "--host",
            "gitlab.com",
            "--email",
            "alice@example.com",
            "--transport",
            "ssh",
            "--generate-key",
        ],
    )

    assert result.exit_code == 0, result.output
    key = env / ".ssh" / "id_ed25519_alice"
    assert calls[0][0] == "ssh-keygen"
    assert ["ssh-add", str(key)] in calls
    assert "ssh-ed25519 AAAA test" in result.output
    [account] = AccountStore().load()
    assert account.ssh_key == str(key)
    config = (env / ".ssh" / "config").read_text(encoding="utf-8")
    assert render_stanza(account) in config


def test_add_dry_run_writes_nothing(env, git, monkeypatch) -> None:
    calls = _fake_keygen(monkeypatch)

    result = CliRunner().invoke(
        cli,
        [
            "--dry-run",
            "add",
            "--username",
            "alice",
            "--host",
            "github.com",
            "--email",
            "a@example.com",
            "--transport",
            "ssh",
            "--generate-key",
        ],
    )

    assert result.exit_code == 0, result.output
    assert calls == []
    assert "[dry-run] Would run: ssh-keygen" in result.output
    assert "# >>> git-id: alice@github.com >>>" in result.output
    assert not (env / "config" / "accounts.yaml").exists()
    assert not (env / ".ssh").exists()


def test_add_duplicate_is_a_user_error(env, git) -> None:
    _seed([Account(username="bob", host="github.com")])

    result = CliRunner().invoke(
        cli, ["add", "--username", "bob", "--host", "github.com"]
    )

    assert result.exit_code == 2
    assert "already exists" in result.output


def test_add_aborted_prompt_exits_with_user_error(env, git) -> None:
    result = CliRunner().invoke(cli, ["add"], input="")

    assert result.exit_code == 2
    assert "Aborted." in result.output


def test_add_interactive_wizard(env, git) -> None:
    answers = "carol\n\ncarol@example.com\n2\nsecret\n"

    result = CliRunner().invoke(cli, ["add"], input=answers)

    assert result.exit_code == 0, result.output
    assert AccountStore().load() == [
        Account("carol", "carol@example.com", "github.com", "", "secret")
    ]


def test_use_sets_identity_and_remote(env, git) -> None:
    _seed([Account("alice", "alice@example.com", "github.com", "~/.ssh/k", "")])
    git.remotes = {"origin": "https://github.com/alice/repo.git"}

    result = CliRunner().invoke(cli, ["use", "alice", "--ssh"])

    assert result.exit_code == 0, result.output
    assert git.config[("local", "user.email")] == "alice@example.com"
    assert git.remotes["origin"] == "git@github.com-alice:alice/repo.git"
    assert "Remote 'origin' -> git@github.com-alice:alice/repo.git" in result.output


def test_use_redacts_tokens_in_output(env, git) -> None:
    _seed([Account("bob", "bob@example.com", "", "", "supersecret")])
    git.remotes = {"origin": "https://old@github.com/bob/repo.git"}

    result = CliRunner().invoke(cli, ["use", "bob"])

    assert result.exit_code == 0, result.output
    assert git.remotes["origin"] == "https://supersecret@github.com/bob/repo.git"
    assert "https://***@github.com/bob/repo.git" in result.output
    assert "supersecret" not in result.output


def test_use_fallback_warns(env, git) -> None:
    _seed([Account("bob", "bob@example.com")])
    git.remotes = {"origin": "git@github.com:bob/repo.git"}

    result = CliRunner().invoke(cli, ["use", "bob", "--ssh"])

    assert result.exit_code == 0, result.output
    assert "falling back to HTTPS" in result.output
    assert git.remotes["origin"] == "https://github.com/bob/repo.git"


def test_use_global_outside_repo(env, git) -> None:
    _seed([Account("bob", "bob@example.com")])
    git._in_repo = False

    result = CliRunner().invoke(cli, ["use", "bob", "--global"])

    assert result.exit_code == 0, result.output
    assert git.config[("global", "user.name")] == "bob"


def test_use_dry_run_changes_nothing(env, git) -> None:
    _seed([Account("alice", "alice@example.com", "", "~/.ssh/k")])
    git.remotes = {"origin": "https://github.com/alice/repo.git"}

    result = CliRunner().invoke(cli, ["--dry-run", "use", "alice", "--ssh"])

    assert result.exit_code == 0, result.output
    assert git.config == {}
    assert git.remotes["origin"] == "https://github.com/alice/repo.git"
    assert "[dry-run] git remote set-url origin" in result.output


@pytest.mark.parametrize(
    ("args", "message"),
    [
        (["use", "alice"], "Multiple accounts"),
        (["use", "carol"], "not found"),
        (["use", "alice@github.com", "--ssh", "--https"], "--ssh and --https"),
        (["use", "alice@github.com"], "Not inside a git repository"),
    ],
)
def test_use_user_errors_exit_2(env, git, args, message) -> None:
    _seed(
        [
            Account("alice", "a@work.example", "github.com"),
            Account("alice", "a@home.example", "gitlab.com"),
        ]
    )
    git._in_repo = False

    result = CliRunner().invoke(cli, args)

    assert result.exit_code == 2
    assert message in result.output
    assert git.config == {}


def test_corrupt_store_exits_1(env, git) -> None:
    path = env / "config" / "accounts.yaml"
    path.parent.mkdir(parents=True)
    path.write_text("accounts: [unclosed\n", encoding="utf-8")

    result = CliRunner().invoke(cli, ["list"])

    assert result.exit_code == 1
    assert "Failed to parse" in result.output


def test_remove_deletes_stanza_and_record(env, git) -> None:
    key = env / "id_alice"
    key.write_text("PRIVATE", encoding="utf-8")
    alice = Account("alice", "a@example.com", "github.com", str(key))
    bob = Account("bob", "b@example.com")
    _seed([alice, bob])
    sync_ssh_config([alice, bob])

    result = CliRunner().invoke(cli, ["remove", "alice", "-y"])

    assert result.exit_code == 0, result.output
    assert AccountStore().load() == [bob]
    config = (env / ".ssh" / "config").read_text(encoding="utf-8")
    assert config == render_stanza(bob)
    assert key.exists()
    assert "SSH key files kept" in result.output


def test_remove_with_delete_keys(env, git) -> None:
    key = env / "id_alice"
    key.write_text("PRIVATE", encoding="utf-8")
    (env / "id_alice.pub").write_text("ssh-ed25519 AAAA", encoding="utf-8")
    _seed([Account("alice", "a@example.com", "github.com", str(key))])

    result = CliRunner().invoke(cli, ["remove", "alice", "-y", "--delete-keys"])

    assert result.exit_code == 0, result.output
    assert not key.exists()
    assert not (env / "id_alice.pub").exists()


def test_remove_declined_keeps_everything(env, git) -> None:
    _seed([Account("alice", "a@example.com")])

    result = CliRunner().invoke(cli, ["remove", "alice"], input="n\n")

    assert result.exit_code == 0
    assert "Aborted." in result.output
    assert len(AccountStore().load()) == 1


def test_ssh_config_command(env, git) -> None:
    alice = Account("alice", "a@example.com", "github.com", "~/.ssh/k")
    _seed([alice])

    result = CliRunner().invoke(cli, ["ssh", "config"])

    assert result.exit_code == 0, result.output
    assert (env / ".ssh" / "config").read_text(encoding="utf-8") == render_stanza(alice)


def test_ssh_pick_uses_existing_key(env, git, monkeypatch) -> None:
    monkeypatch.setattr(keys.subprocess, "run", lambda *a, **k: _Completed())
    ssh_dir = env / ".ssh"
    ssh_dir.mkdir()
    (ssh_dir / "id_work").write_text("PRIVATE", encoding="utf-8")
    (ssh_dir / "id_work.pub").write_text("ssh-ed25519 AAAA", encoding="utf-8")
    _seed([Account("alice", "a@example.com")])

    result = CliRunner().invoke(cli, ["ssh", "pick", "alice"], input="1\n")

    assert result.exit_code == 0, result.output
    [account] = AccountStore().load()
    assert account.ssh_key == str(ssh_dir / "id_work")
    assert "IdentityFile " + str(ssh_dir / "id_work") in (ssh_dir / "config").read_text(
        encoding="utf-8"
    )


def test_ssh_pick_without_keys_fails(env, git) -> None:
    _seed([Account("alice", "a@example.com")])

    result = CliRunner().invoke(cli, ["ssh", "pick", "alice"])

    assert result.exit_code == 1
    assert "No .pub files" in result.output


def test_status_reports_identity(env, git, monkeypatch) -> None:
    monkeypatch.setattr(keys.subprocess, "run", lambda *a, **k: _Completed(1))
    _seed([Account("alice", "a@example.com")])
    git.config[("global", "user.email")] = "a@example.com"
    git.remotes = {"origin": "https://tok@github.com/alice/repo.git"}

    result = CliRunner().invoke(cli, ["status"])

    assert result.exit_code == 0, result.output
    assert "https://***@github.com/alice/repo.git" in result.output
    assert "Matched account" in result.output


def test_completions_print(env) -> None:
    result = CliRunner().invoke(cli, ["completions", "zsh", "--print"])

    assert result.exit_code == 0
    assert "_GIT_ID_COMPLETE" in result.output


def test_completions_install_fish(env) -> None:
    result = CliRunner().invoke(cli, ["completions", "fish"])

    assert result.exit_code == 0, result.output
    target = env / ".config" / "fish" / "completions" / "git-id.fish"
    assert "_GIT_ID_COMPLETE" in target.read_text(encoding="utf-8")


@pytest.mark.parametrize(
    ("argv", "expected"),
    [
        (["use", "alice", "--dry-run"], ["--dry-run", "use", "alice"]),
        (["ssh", "gen", "bob", "-v"], ["-v", "ssh", "gen", "bob"]),
        (["--dry-run", "list"], ["--dry-run", "list"]),
        (["use", "alice"], ["use", "alice"]),
        (["--help"], ["--help"]),
    ],
)
def test_preprocess_args_moves_global_flags(argv, expected) -> None:
    assert preprocess_args(argv) == expected


def test_accounts_file_is_plain_yaml(env, git) -> None:
    _seed([Account("alice", "a@example.com", "github.com", "~/.ssh/k", "tok")])

    data = yaml.safe_load((env / "config" / "accounts.yaml").read_text(encoding="utf-8"))

    assert data == {
        "accounts": [
            {
                "username": "alice",
                "email": "a@example.com",
                "host": "github.com",
                "ssh_key": "~/.ssh/k",
                "https_token": "tok",
            }
        ]
    }


def test_list_dry_run_creates_no_store(env, git) -> None:
    result = CliRunner().invoke(cli, ["--dry-run", "list"])

    assert result.exit_code == 0, result.output
    assert "No accounts configured yet" in result.output
    assert not (env / "config" / "accounts.yaml").exists()
    assert not (env / "config").exists()
