"""Utilities for writing the SSH client configuration file.

The file at :data:`SSH_CONFIG_FILE` is owned by this tool: every switch
replaces its whole content, so manual edits are lost.
"""

import logging
import os
from pathlib import Path
from typing import Iterable, List, Optional, Union

from .errors import KeyNotFound

SSH_CONFIG_FILE = Path("~/.ssh/config").expanduser()


def render_ssh_config(
    private_key_path: Union[str, Path],
    fragment_path: Optional[Union[str, Path]] = None,
) -> str:
    """Return SSH config text for an identity.

    Parameters
    ----------
    private_key_path: str | Path
        Key written as the ``IdentityFile`` directive.
    fragment_path: str | Path, optional
        File whose content follows the directive verbatim, separated by a
        single newline. The content is not parsed.
    """
    content = f"IdentityFile {private_key_path}"
    if fragment_path:
        path = Path(fragment_path).absolute()
        if not path.exists():
            raise KeyNotFound(f"SSH config file not found: {path}")
        content += "\n" + path.read_bytes().decode("utf-8", errors="surrogateescape")
    return content


def _write_private_file(path: Path, content: str) -> None:
    path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with open(fd, "w", encoding="utf-8", errors="surrogateescape", newline="") as handle:
        handle.write(content)


def write_ssh_config(
    private_key_path: Union[str, Path],
    fragment_path: Optional[Union[str, Path]] = None,
    ssh_config_file: Union[str, Path] = SSH_CONFIG_FILE,
    logger: logging.Logger = logging.getLogger(__name__),
) -> str:
    """Overwrite ``ssh_config_file`` with the config for one identity.

    Returns the written content.
    """
    content = render_ssh_config(private_key_path, fragment_path)
    path = Path(ssh_config_file)
    try:
        _write_private_file(path, content)
    except OSError as exc:
        logger.exception("Failed to update SSH config %s: %s", path, exc)
        raise
    logger.info("SSH config %s now uses IdentityFile %s", path, private_key_path)
    return content


def clear_ssh_config(
    ssh_config_file: Union[str, Path] = SSH_CONFIG_FILE,
    logger: logging.Logger = logging.getLogger(__name__),
) -> None:
    """Truncate the SSH config file if it exists."""
    path = Path(ssh_config_file)
    if not path.exists():
        logger.info("SSH config %s not found; nothing to clear", path)
        return
    try:
        _write_private_file(path, "")
    except OSError as exc:
        logger.exception("Failed to clear SSH config %s: %s", path, exc)
        raise
    logger.info("Cleared SSH config %s", path)


def secure_private_key(
    private_key_path: Union[str, Path],
    logger: logging.Logger = logging.getLogger(__name__),
) -> bool:
    """Restrict a private key to mode ``0600`` on POSIX systems.

    Returns ``True`` when the mode was changed and ``False`` on Windows,
    where :func:`windows_permission_commands` lists the manual steps.
    """
    path = Path(private_key_path)
    if not path.exists():
        raise KeyNotFound(f"Private key not found at: {path}")
    if os.name == "nt":
        return False
    os.chmod(path, 0o600)
    logger.info("Private key permissions set to 0600 for %s", path)
    return True


def windows_permission_commands(paths: Iterable[Union[str, Path]], user: str) -> List[str]:
    """Return ``icacls`` commands granting ``user`` sole access to ``paths``."""
    commands = []
    for path in paths:
        commands.extend(
            [
                f'icacls "{path}" /reset',
                f'icacls "{path}" /grant:r "{user}":F',
                f'icacls "{path}" /inheritance:r',
            ]
        )
    return commands
