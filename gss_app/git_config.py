"""Apply identity settings to Git configuration with ``git config``."""

import logging
import subprocess
from pathlib import Path
from typing import Any, Callable, List, Mapping, Optional, Union

from .errors import GitConfigApplyFailed

GLOBAL_SCOPE = "global"
LOCAL_SCOPE = "local"
SCOPES = (GLOBAL_SCOPE, LOCAL_SCOPE)
SSH_COMMAND_KEY = "core.sshCommand"


def ssh_command(ssh_config_file: Union[str, Path]) -> str:
    """Return the ``core.sshCommand`` value pointing ssh at ``ssh_config_file``."""
    return "ssh -F " + str(ssh_config_file).replace("\\", "/")


def normalize_scope(
    scope: Optional[str],
    logger: logging.Logger = logging.getLogger(__name__),
) -> str:
    """Return ``global`` or ``local``; anything else falls back to ``global``."""
    value = (scope or GLOBAL_SCOPE).lower()
    if value not in SCOPES:
        logger.warning("Invalid scope: %s. Using 'global' Git configuration.", scope)
        return GLOBAL_SCOPE
    return value


def local_config_file(repo_dir: Union[str, Path] = ".") -> Path:
    """Path of the repository configuration targeted by the local scope."""
    return Path(repo_dir) / ".git" / "config"


def git_config_args(
    key: str,
    value: str,
    scope: str = GLOBAL_SCOPE,
    config_file: Optional[Union[str, Path]] = None,
) -> List[str]:
    """Build the ``git config`` command line for a single setting."""
    args = ["git", "config"]
    if scope == LOCAL_SCOPE:
        args.extend(["--file", str(config_file or local_config_file())])
    else:
        args.append("--global")
    args.extend([key, value])
    return args


def apply_git_settings(
    settings: Mapping[str, Any],
    scope: str = GLOBAL_SCOPE,
    config_file: Optional[Union[str, Path]] = None,
    runner: Optional[Callable[..., Any]] = None,
    logger: logging.Logger = logging.getLogger(__name__),
) -> List[GitConfigApplyFailed]:
    """Set every ``key -> value`` pair in the chosen scope.

    Each setting is applied with its own ``git config`` call. A failing call
    is logged and collected but does not stop the remaining ones.

    Parameters
    ----------
    settings: mapping
        Git settings in application order. Non-string values are skipped
        and reported as failures.
    scope: str
        ``global`` or ``local``.
    config_file: str | Path, optional
        Configuration file for the local scope. Defaults to
        ``./.git/config``.
    runner: callable, optional
        Replacement for :func:`subprocess.run`, mainly for tests.

    Returns
    -------
    list[GitConfigApplyFailed]
        One entry per setting that could not be applied.
    """
    run = runner or subprocess.run
    scope = normalize_scope(scope, logger)
    if scope == LOCAL_SCOPE:
        config_file = Path(config_file) if config_file else local_config_file()
        if not config_file.exists():
            logger.warning(
                "Local Git config not found at %s. Ensure you are in a Git repository "
                "if using local scope.",
                config_file,
            )

    failures: List[GitConfigApplyFailed] = []
    for key, value in settings.items():
        if not isinstance(value, str):
            failure = GitConfigApplyFailed(
                key, scope, f"unsupported value type {type(value).__name__}"
            )
            logger.warning("%s", failure)
            failures.append(failure)
            continue
        args = git_config_args(key, value, scope, config_file)
        try:
            run(args, check=True, capture_output=True, text=True)
        except subprocess.CalledProcessError as exc:
            reason = (exc.stderr or "").strip() or f"git exited with {exc.returncode}"
            failures.append(GitConfigApplyFailed(key, scope, reason))
            logger.error("%s", failures[-1])
            continue
        except OSError as exc:
            failures.append(GitConfigApplyFailed(key, scope, str(exc)))
            logger.error("%s", failures[-1])
            continue
        logger.info("Git config '%s' set to '%s' in %s scope", key, value, scope)
    return failures
