import logging
from pathlib import Path
from typing import Any, Callable, List, Mapping, NamedTuple, Optional, Union

from ..errors import GitConfigApplyFailed, IndexOutOfRange, KeyNotFound
from ..git_config import (
    GLOBAL_SCOPE,
    SSH_COMMAND_KEY,
    apply_git_settings,
    local_config_file,
    normalize_scope,
    ssh_command,
)
from ..identities import Identity, IdentityStore
from ..ssh_config import SSH_CONFIG_FILE, clear_ssh_config, secure_private_key, write_ssh_config


class SwitchResult(NamedTuple):
    """Outcome of applying an identity."""

    index: int
    identity: Identity
    scope: str
    ssh_config: str
    failures: List[GitConfigApplyFailed]


class IdentityService:
    """Service layer applying identities to the SSH and Git configuration."""

    def __init__(
        self,
        ssh_config_file: Optional[Union[str, Path]] = None,
        git_runner: Optional[Callable[..., Any]] = None,
    ) -> None:
        """Create the service.

        Parameters
        ----------
        ssh_config_file: str | Path | None
            SSH client config rewritten on switch. Defaults to
            :data:`gss_app.ssh_config.SSH_CONFIG_FILE`.
        git_runner: callable, optional
            Replacement for :func:`subprocess.run` used for ``git config``.
        """
        self.ssh_config_file = Path(ssh_config_file) if ssh_config_file else SSH_CONFIG_FILE
        self.git_runner = git_runner
        self.logger = logging.getLogger(__name__)

    def generate(self, store: IdentityStore, name: str, bits: int = 2048) -> Identity:
        self.logger.info("Request to generate key pair '%s'", name)
        return store.add_generated(name, bits)

    def import_identity(
        self,
        store: IdentityStore,
        private_key_path: Union[str, Path],
        public_key_path: Union[str, Path],
        name: str,
        ssh_config_path: Optional[Union[str, Path]] = None,
        git_settings: Optional[Mapping[str, Any]] = None,
    ) -> Identity:
        self.logger.info("Request to import key pair '%s' from %s", name, private_key_path)
        return store.add_imported(
            private_key_path, public_key_path, name, ssh_config_path, git_settings
        )

    def git_settings_for(self, identity: Identity) -> Mapping[str, Any]:
        """Return the identity's Git settings with ``core.sshCommand`` merged in.

        The stored record is left untouched.
        """
        settings = dict(identity.get("git_config") or {})
        settings[SSH_COMMAND_KEY] = ssh_command(self.ssh_config_file)
        return settings

    def switch(
        self,
        store: IdentityStore,
        index: int,
        scope: str = GLOBAL_SCOPE,
        repo_dir: Union[str, Path] = ".",
    ) -> SwitchResult:
        """Activate the identity at ``index`` and apply it.

        The index, private key and SSH config fragment are checked before
        the active index changes, so a failed switch leaves the store as it
        was. The SSH config file is rewritten first; afterwards every Git
        setting is applied independently. Git failures are returned, not
        raised.
        """
        self.logger.info("Request to switch to key pair at index %s", index)
        if not 0 <= index < len(store):
            raise IndexOutOfRange(index, len(store))
        identity = store.identities[index]
        private_key = identity.get("private_key_path", "")
        if not private_key or not Path(private_key).exists():
            raise KeyNotFound(f"Private key not found at: {private_key}")
        fragment = identity.get("ssh_config") or None
        if fragment and not Path(fragment).exists():
            raise KeyNotFound(f"SSH config file not found: {fragment}")

        identity = store.switch_to(index)
        secure_private_key(private_key, self.logger)
        content = write_ssh_config(private_key, fragment, self.ssh_config_file, self.logger)

        scope = normalize_scope(scope, self.logger)
        failures = apply_git_settings(
            self.git_settings_for(identity),
            scope,
            local_config_file(repo_dir),
            self.git_runner,
            self.logger,
        )
        if failures:
            self.logger.warning(
                "%d Git settings failed for key pair '%s'", len(failures), identity.get("name")
            )
        self.logger.info(
            "Switched to key pair '%s' (index %d) in %s scope", identity.get("name"), index, scope
        )
        return SwitchResult(index, identity, scope, content, failures)

    def delete(self, store: IdentityStore, index: int) -> Identity:
        """Remove an identity; clear the SSH config once no identities remain."""
        self.logger.info("Request to delete key pair at index %s", index)
        was_active = store.active_index == index
        identity = store.delete(index)
        if was_active and not len(store):
            clear_ssh_config(self.ssh_config_file, self.logger)
        return identity
