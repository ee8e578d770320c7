from .config import (
    find_stanza,
    remove_ssh_stanza,
    remove_stanza,
    render_stanza,
    stanza_state,
    sync_ssh_config,
    upsert_stanza,
)
from .keys import (
    add_key_to_agent,
    default_key_path,
    fix_key_permissions,
    generate_key,
    ssh_config_path,
    ssh_dir,
)

__all__ = [
    "add_key_to_agent",
    "default_key_path",
    "find_stanza",
    "fix_key_permissions",
    "generate_key",
    "remove_ssh_stanza",
    "remove_stanza",
    "render_stanza",
    "ssh_config_path",
    "ssh_dir",
    "stanza_state",
    "sync_ssh_config",
    "upsert_stanza",
]
