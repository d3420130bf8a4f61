"""Application settings read from an INI file.

All values have fallbacks so a missing configuration file simply yields the
defaults below.
"""

import configparser
import logging
import os
from pathlib import Path
from typing import NamedTuple, Optional, Union

# Environment variable overriding the configuration file location
CONFIG_ENV = "GSS_CONFIG"
STORE_FILE = "config.json"
LOG_FILE = "gss.log"
DEFAULT_STORE_DIR = "~/.gss"
DEFAULT_SSH_CONFIG = "~/.ssh/config"
DEFAULT_KEY_BITS = 2048


class Settings(NamedTuple):
    """Resolved locations and options used by the controllers."""

    store_dir: Path
    ssh_config: Path
    key_bits: int
    log_level: str
    log_file: Path

    @property
    def store_file(self) -> Path:
        return self.store_dir / STORE_FILE


def default_config_file() -> Path:
    """Return the configuration file path honouring ``GSS_CONFIG``."""
    env_path = os.environ.get(CONFIG_ENV)
    if env_path:
        return Path(env_path).expanduser()
    return Path(DEFAULT_STORE_DIR).expanduser() / "gss.ini"


def load_config(file_path: Optional[Union[str, Path]] = None) -> configparser.ConfigParser:
    """Read the INI configuration.

    Parameters
    ----------
    file_path: str | Path, optional
        Explicit configuration file. Defaults to :func:`default_config_file`.
    """
    logger = logging.getLogger(__name__)
    path = Path(file_path) if file_path is not None else default_config_file()
    cfg = configparser.ConfigParser()
    if not path.exists():
        logger.debug("Configuration file %s not found; using defaults", path)
        return cfg
    cfg.read(path, encoding="utf-8")
    logger.debug("Loaded configuration from %s", path)
    return cfg


def settings_from_config(cfg: configparser.ConfigParser) -> Settings:
    """Build :class:`Settings` from parsed configuration values.

    Paths are expanded with ``~`` support. The key size never drops below
    1024 bits and the log file defaults to ``gss.log`` inside the store
    directory.
    """
    store_dir = Path(
        cfg.get("paths", "store_dir", fallback=DEFAULT_STORE_DIR) or DEFAULT_STORE_DIR
    ).expanduser()
    ssh_config = Path(
        cfg.get("paths", "ssh_config", fallback=DEFAULT_SSH_CONFIG) or DEFAULT_SSH_CONFIG
    ).expanduser()
    bits = cfg.getint("keys", "bits", fallback=DEFAULT_KEY_BITS)
    if bits < 1024:
        bits = 1024
    level = cfg.get("logging", "level", fallback="INFO").upper() or "INFO"
    log_file = cfg.get("logging", "file", fallback="")
    return Settings(
        store_dir=store_dir,
        ssh_config=ssh_config,
        key_bits=bits,
        log_level=level,
        log_file=Path(log_file).expanduser() if log_file else store_dir / LOG_FILE,
    )
