from .remote import (
    HTTPS,
    SSH,
    RemoteURL,
    build_https_url,
    build_ssh_url,
    compose_remote_url,
    decompose_remote_url,
    redact_url,
)
from .repo import GitClient, GitRepo

__all__ = [
    "HTTPS",
    "SSH",
    "GitClient",
    "GitRepo",
    "RemoteURL",
    "build_https_url",
    "build_ssh_url",
    "compose_remote_url",
    "decompose_remote_url",
    "redact_url",
]
