"""Error types shared by the git-id core and its command surface.

Two families matter to callers: user errors (bad or missing input, detected
before anything is changed, exit status 2) and environment failures (files or
programs that could not be used, exit status 1). Recoverable per-remote
problems are not exceptions; they travel as warnings on the reconcile
outcomes.
"""

from __future__ import annotations

USER = "user"
ENVIRONMENT = "environment"


class GitIdError(Exception):
    exit_code = 1
    kind = ENVIRONMENT


class UserError(GitIdError):
    exit_code = 2
    kind = USER


class EnvironmentFailure(GitIdError):
    exit_code = 1
    kind = ENVIRONMENT


class AccountNotFoundError(UserError):
    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Account '{key}' not found. Run: git-id list")


class AmbiguousAccountError(UserError):
    def __init__(self, key: str, candidates: list[str]):
        self.key = key
        self.candidates = list(candidates)
        hints = "  or  ".join(f"'{candidate}'" for candidate in self.candidates)
        super().__init__(
            f"Multiple accounts with username '{key}'.\n"
            f"  Specify host to disambiguate: {hints}"
        )


class DuplicateAccountError(UserError):
    def __init__(self, account_id: str):
        self.account_id = account_id
        super().__init__(
            f"Account '{account_id}' already exists. "
            f"Remove it first with: git-id remove {account_id}"
        )


class ConflictingTransportError(UserError):
    def __init__(self) -> None:
        super().__init__("Cannot use --ssh and --https together.")


class NotInRepositoryError(UserError):
    def __init__(self) -> None:
        super().__init__("Not inside a git repository. Use --global or cd into a repo.")


class AbortedError(UserError):
    def __init__(self, message: str = "Aborted."):
        super().__init__(message)


class AccountStoreError(EnvironmentFailure):
    pass


class SSHConfigError(EnvironmentFailure):
    pass


class GitNotFoundError(EnvironmentFailure):
    def __init__(self) -> None:
        super().__init__("git not found on PATH")


class GitCommandError(EnvironmentFailure):
    def __init__(self, args: list[str], stderr: str):
        self.args_list = list(args)
        self.stderr = stderr
        command = " ".join(["git", *args])
        super().__init__(f"{command}: {stderr}" if stderr else f"{command} failed")


class KeyToolError(EnvironmentFailure):
    pass


class SSHAgentError(EnvironmentFailure):
    pass


class CompletionError(EnvironmentFailure):
    pass
