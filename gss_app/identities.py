"""Persistent list of SSH identities and the pointer to the active one.

The store is a JSON object::

    {"keys": [{"name": ..., "private_key_path": ..., "public_key_path": ...,
               "ssh_config": ..., "git_config": {...}}, ...],
     "active_key": 0}

``active_key`` is ``-1`` when no identity is active. Fields this module does
not know about are kept as they are so newer files survive a round trip.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Mapping, NamedTuple, Optional, Union

from .errors import ConfigCorrupt, IndexOutOfRange, InvalidGitSetting, KeyNotFound
from .ssh_keys import DEFAULT_KEY_NAME, detect_key_type, generate_key_pair, unique_key_paths

Identity = Dict[str, Any]

UNSET = -1
RECORD_DEFAULTS = {
    "name": "",
    "private_key_path": "",
    "public_key_path": "",
    "ssh_config": "",
}


class IdentityEntry(NamedTuple):
    """One row of :meth:`IdentityStore.list`."""

    index: int
    identity: Identity
    active: bool


def _normalize_record(record: Any, position: int) -> Identity:
    """Fill defaults for fields that older files may lack."""
    if not isinstance(record, dict):
        raise ConfigCorrupt(f"Key pair at index {position} is not an object")
    for field, default in RECORD_DEFAULTS.items():
        if record.get(field) is None:
            record[field] = default
    if record.get("git_config") is None:
        record["git_config"] = {}
    elif not isinstance(record["git_config"], dict):
        raise ConfigCorrupt(f"Key pair at index {position} has invalid git_config")
    return record


def validate_git_settings(settings: Optional[Mapping[str, Any]]) -> Dict[str, str]:
    """Return a copy of ``settings`` after checking every key and value is a string."""
    validated: Dict[str, str] = {}
    for key, value in (settings or {}).items():
        if not isinstance(key, str) or not key:
            raise InvalidGitSetting(f"Git config key must be a non-empty string: {key!r}")
        if not isinstance(value, str):
            raise InvalidGitSetting(
                f"Git config value for '{key}' must be a string, got {type(value).__name__}"
            )
        validated[key] = value
    return validated


class IdentityStore:
    """Ordered identities plus the index of the active one.

    The active index is only changed through :meth:`switch_to` and
    :meth:`delete`.
    """

    def __init__(
        self,
        file_path: Union[str, Path],
        identities: Optional[List[Identity]] = None,
        active_index: Optional[int] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.file_path = Path(file_path)
        self._identities: List[Identity] = identities if identities is not None else []
        self._active_index = active_index
        # Top-level fields other than ``keys`` and ``active_key``
        self._extra: Dict[str, Any] = extra or {}
        self.logger = logging.getLogger(__name__)

    @property
    def key_dir(self) -> Path:
        """Directory receiving generated key pairs."""
        return self.file_path.parent

    @property
    def identities(self) -> List[Identity]:
        return list(self._identities)

    @property
    def active_index(self) -> Optional[int]:
        return self._active_index

    @property
    def active_identity(self) -> Optional[Identity]:
        if self._active_index is None:
            return None
        return self._identities[self._active_index]

    def __len__(self) -> int:
        return len(self._identities)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------
    @classmethod
    def load(cls, file_path: Union[str, Path]) -> "IdentityStore":
        """Load the store from ``file_path``.

        A missing file yields an empty store. Anything that is not a JSON
        object with a ``keys`` list and an integer ``active_key`` raises
        :class:`~gss_app.errors.ConfigCorrupt`.
        """
        logger = logging.getLogger(__name__)
        path = Path(file_path)
        if not path.exists():
            logger.info("Identity store %s not found; starting empty", path)
            return cls(path)
        try:
            with open(path, "r", encoding="utf-8") as handle:
                data = json.load(handle)
        except ValueError as exc:
            logger.error("Identity store %s is not valid JSON: %s", path, exc)
            raise ConfigCorrupt(f"Failed to parse config file {path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ConfigCorrupt(f"Config file {path} must contain a JSON object")
        records = data.pop("keys", None)
        if records is None:
            records = []
        if not isinstance(records, list):
            raise ConfigCorrupt(f"Config file {path} has invalid 'keys' entry")
        identities = [_normalize_record(r, i) for i, r in enumerate(records)]

        active = data.pop("active_key", UNSET)
        if active is None:
            active = UNSET
        if isinstance(active, bool) or not isinstance(active, int):
            raise ConfigCorrupt(f"Config file {path} has invalid 'active_key' entry")
        if active != UNSET and not 0 <= active < len(identities):
            logger.warning(
                "Active key %d is out of range for %d key pairs; clearing it",
                active,
                len(identities),
            )
            active = UNSET

        logger.info("Loaded %d key pairs from %s", len(identities), path)
        return cls(path, identities, None if active == UNSET else active, data)

    def to_dict(self) -> Dict[str, Any]:
        data = dict(self._extra)
        data["keys"] = self._identities
        data["active_key"] = UNSET if self._active_index is None else self._active_index
        return data

    def save(self) -> None:
        """Write the store as indented JSON readable only by the owner."""
        path = self.file_path
        try:
            path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
            fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
            with open(fd, "w", encoding="utf-8") as handle:
                json.dump(self.to_dict(), handle, indent=2)
        except OSError as exc:
            self.logger.exception("Failed to write config file %s: %s", path, exc)
            raise
        self.logger.info("Saved %d key pairs to %s", len(self._identities), path)

    # ------------------------------------------------------------------
    # Record lifecycle
    # ------------------------------------------------------------------
    def add_generated(self, name: str, bits: int = 2048) -> Identity:
        """Generate a new key pair in :attr:`key_dir` and append its record.

        Parameters
        ----------
        name: str
            Identity name and base name of the key files. Defaults to
            ``id_rsa`` when empty.
        bits: int
            RSA key size.
        """
        name = name or DEFAULT_KEY_NAME
        self.key_dir.mkdir(mode=0o700, parents=True, exist_ok=True)
        private_path, public_path = unique_key_paths(self.key_dir, name)
        private_path = private_path.resolve()
        public_path = public_path.resolve()
        generate_key_pair(private_path, public_path, bits)
        record = {
            "name": name,
            "private_key_path": str(private_path),
            "public_key_path": str(public_path),
            "ssh_config": "",
            "git_config": {},
        }
        self._identities.append(record)
        self.logger.info("Generated key pair '%s' at %s", name, private_path)
        return record

    def add_imported(
        self,
        private_key_path: Union[str, Path],
        public_key_path: Union[str, Path],
        name: str,
        ssh_config_path: Optional[Union[str, Path]] = None,
        git_settings: Optional[Mapping[str, Any]] = None,
    ) -> Identity:
        """Register an existing key pair, referencing the files in place.

        Parameters
        ----------
        private_key_path, public_key_path: str | Path
            Existing key files. They are not copied.
        name: str
            Identity name.
        ssh_config_path: str | Path, optional
            File whose content is appended to the SSH config on switch.
        git_settings: mapping, optional
            Git ``key -> value`` pairs applied on switch. Only strings are
            accepted.
        """
        private_path = Path(private_key_path).expanduser().absolute()
        public_path = Path(public_key_path).expanduser().absolute()
        if not private_path.exists():
            raise KeyNotFound(f"Private key not found: {private_path}")
        if not public_path.exists():
            raise KeyNotFound(f"Public key not found: {public_path}")
        key_type = detect_key_type(private_path)

        fragment = ""
        if ssh_config_path:
            fragment_path = Path(ssh_config_path).expanduser().absolute()
            if not fragment_path.exists():
                raise KeyNotFound(f"SSH config file not found: {fragment_path}")
            fragment = str(fragment_path)

        record = {
            "name": name,
            "private_key_path": str(private_path),
            "public_key_path": str(public_path),
            "ssh_config": fragment,
            "git_config": validate_git_settings(git_settings),
        }
        self._identities.append(record)
        self.logger.info("Imported %s key pair '%s' from %s", key_type, name, private_path)
        return record

    def list(self) -> List[IdentityEntry]:
        return [
            IdentityEntry(i, record, i == self._active_index)
            for i, record in enumerate(self._identities)
        ]

    def _check_index(self, index: int) -> None:
        if not 0 <= index < len(self._identities):
            raise IndexOutOfRange(index, len(self._identities))

    def switch_to(self, index: int) -> Identity:
        """Make the identity at ``index`` the active one and return it."""
        self._check_index(index)
        self._active_index = index
        record = self._identities[index]
        self.logger.info("Active key pair set to '%s' (index %d)", record.get("name"), index)
        return record

    def delete(self, index: int) -> Identity:
        """Remove the identity at ``index`` from the store and return it.

        Later identities move down by one. If the active identity is removed
        the first remaining one becomes active, or none when the store is
        empty. Key files are left on disk.
        """
        self._check_index(index)
        record = self._identities.pop(index)
        active = self._active_index
        if active is not None:
            if active == index:
                self._active_index = 0 if self._identities else None
            elif active > index:
                self._active_index = active - 1
        self.logger.info("Deleted key pair '%s' (index %d)", record.get("name"), index)
        return record
