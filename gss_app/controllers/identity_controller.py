from pathlib import Path
from typing import Any, Callable, List, Mapping, Optional, Union

from ..identities import Identity, IdentityEntry, IdentityStore
from ..services.identity_service import IdentityService, SwitchResult
from ..settings import Settings

IndexSelector = Callable[[List[IdentityEntry]], int]
Confirmer = Callable[[IdentityEntry], bool]


class IdentityController:
    """Controller coordinating the identity store and service calls.

    The store is loaded once on construction and written by :meth:`save`.
    ``select_index`` and ``confirm`` are called when a command needs user
    input, which keeps the controller usable without a terminal.
    """

    def __init__(
        self,
        settings: Settings,
        select_index: Optional[IndexSelector] = None,
        confirm: Optional[Confirmer] = None,
        git_runner: Optional[Callable[..., Any]] = None,
    ) -> None:
        self.settings = settings
        self.select_index = select_index
        self.confirm = confirm
        self.service = IdentityService(settings.ssh_config, git_runner)
        self.store = IdentityStore.load(settings.store_file)

    def save(self) -> None:
        self.store.save()

    def generate(self, name: str) -> Identity:
        return self.service.generate(self.store, name, self.settings.key_bits)

    def import_identity(
        self,
        private_key_path: Union[str, Path],
        public_key_path: Union[str, Path],
        name: str,
        ssh_config_path: Optional[Union[str, Path]] = None,
        git_settings: Optional[Mapping[str, Any]] = None,
    ) -> Identity:
        return self.service.import_identity(
            self.store, private_key_path, public_key_path, name, ssh_config_path, git_settings
        )

    def list_identities(self) -> List[IdentityEntry]:
        return self.store.list()

    def _choose(self, index: Optional[int]) -> int:
        if index is not None:
            return index
        if self.select_index is None:
            raise ValueError("An index is required when no selector is available")
        return self.select_index(self.store.list())

    def switch(
        self,
        index: Optional[int] = None,
        scope: str = "global",
        repo_dir: Union[str, Path] = ".",
    ) -> SwitchResult:
        return self.service.switch(self.store, self._choose(index), scope, repo_dir)

    def delete(self, index: Optional[int] = None, force: bool = False) -> Optional[Identity]:
        """Delete an identity, asking for confirmation unless ``force`` is set.

        Returns ``None`` when the user declines.
        """
        chosen = self._choose(index)
        if not force and self.confirm is not None:
            entries = self.store.list()
            # Invalid indices fall through to the service for the error
            if 0 <= chosen < len(entries) and not self.confirm(entries[chosen]):
                return None
        return self.service.delete(self.store, chosen)
