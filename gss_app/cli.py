"""Command line interface for switching SSH/Git identities."""

import configparser
import logging
import os
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, List, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .controllers.identity_controller import IdentityController
from .errors import GssError
from .identities import IdentityEntry
from .settings import Settings, load_config, settings_from_config
from .ssh_config import windows_permission_commands

app = typer.Typer(
    help="Manage SSH key pairs and switch the active Git/SSH identity.",
    no_args_is_help=True,
    add_completion=False,
)
console = Console()
logger = logging.getLogger(__name__)


def _setup_logging(settings: Settings) -> None:
    """Log to the configured file and echo warnings to the console."""
    settings.log_file.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.WARNING)
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s - %(levelname)s - %(message)s",
        handlers=[
            logging.FileHandler(settings.log_file, encoding="utf-8"),
            console_handler,
        ],
        force=True,
    )


@contextmanager
def _handle_errors() -> Iterator[None]:
    try:
        yield
    except (GssError, OSError, ValueError, configparser.Error) as exc:
        logger.debug("Command failed", exc_info=True)
        console.print(f"[red]Error:[/red] {escape(str(exc))}")
        raise typer.Exit(1)


def _controller(ctx: typer.Context) -> IdentityController:
    with _handle_errors():
        return IdentityController(ctx.obj, _prompt_index, _confirm_delete)


def _print_identities(entries: List[IdentityEntry]) -> None:
    table = Table(title="SSH Key Pairs", show_header=True, header_style="bold")
    table.add_column("Index", justify="right", no_wrap=True)
    table.add_column("Status", no_wrap=True)
    table.add_column("Name", no_wrap=True)
    table.add_column("Private Key", overflow="fold")
    table.add_column("Public Key", overflow="fold")
    table.add_column("SSH Config", overflow="fold")
    table.add_column("Git Config", overflow="fold")

    for entry in entries:
        identity = entry.identity
        git_lines = "\n".join(
            f"{key}: {value}" for key, value in (identity.get("git_config") or {}).items()
        )
        table.add_row(
            str(entry.index),
            "[green]active[/green]" if entry.active else "",
            escape(str(identity.get("name", ""))),
            escape(str(identity.get("private_key_path", ""))),
            escape(str(identity.get("public_key_path", ""))),
            escape(str(identity.get("ssh_config") or "N/A")),
            escape(git_lines),
        )
    console.print(table)


def _prompt_index(entries: List[IdentityEntry]) -> int:
    """Show the identities and read an index from the terminal."""
    if not entries:
        console.print("No key pairs found. Generate or import one first.")
        raise typer.Exit(1)
    _print_identities(entries)
    raw = typer.prompt("Enter the index of the key pair")
    try:
        return int(raw.strip())
    except ValueError:
        console.print("[red]Invalid input. Please enter a number.[/red]")
        raise typer.Exit(1)


def _confirm_delete(entry: IdentityEntry) -> bool:
    identity = entry.identity
    console.print("\nSelected key pair for deletion from config:")
    console.print(f"  Name: {escape(str(identity.get('name', '')))}")
    console.print(f"  Private Key: {escape(str(identity.get('private_key_path', '')))}")
    console.print(f"  Public Key: {escape(str(identity.get('public_key_path', '')))}")
    if identity.get("ssh_config"):
        console.print(f"  SSH Config: {escape(str(identity['ssh_config']))}")
    return typer.confirm(
        "Are you sure you want to delete this key pair entry from config? "
        "(Files will not be deleted)",
        default=False,
    )


def _parse_git_options(pairs: Optional[List[str]]) -> Dict[str, str]:
    settings: Dict[str, str] = {}
    for pair in pairs or []:
        key, sep, value = pair.partition("=")
        if not sep or not key.strip():
            raise typer.BadParameter(f"Expected KEY=VALUE, got '{pair}'", param_hint="--git")
        settings[key.strip()] = value
    return settings


@app.callback()
def main(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(
        None, "--config", help="INI configuration file (default: $GSS_CONFIG or ~/.gss/gss.ini)."
    ),
) -> None:
    """Manage SSH key pairs and switch the active Git/SSH identity."""
    with _handle_errors():
        settings = settings_from_config(load_config(config))
        _setup_logging(settings)
    ctx.obj = settings


@app.command("generate")
def generate(
    ctx: typer.Context,
    name: str = typer.Option(..., "-g", "--name", help="Name of the new RSA key pair."),
) -> None:
    """Generate a new SSH key pair."""
    controller = _controller(ctx)
    with _handle_errors():
        identity = controller.generate(name)
        controller.save()
    console.print(
        f"Generated: {escape(identity['name'])} "
        f"({escape(identity['private_key_path'])}, {escape(identity['public_key_path'])})"
    )


@app.command("import")
def import_(
    ctx: typer.Context,
    private_key: Path = typer.Option(..., "-i", "--private-key", help="Private key path."),
    public_key: Path = typer.Option(..., "-p", "--public-key", help="Public key path."),
    name: str = typer.Option(..., "-n", "--name", help="Name for the imported key pair."),
    git_email: str = typer.Option(..., "--git-email", help="Git user email."),
    git_name: str = typer.Option(..., "--git-name", help="Git user name."),
    ssh_config: Optional[Path] = typer.Option(
        None, "-c", "--ssh-config", help="SSH config fragment added when this key pair is active."
    ),
    git: Optional[List[str]] = typer.Option(
        None, "--git", help="Additional Git setting as KEY=VALUE. Repeatable."
    ),
) -> None:
    """Import an existing SSH key pair."""
    git_settings = {"user.email": git_email, "user.name": git_name}
    git_settings.update(_parse_git_options(git))
    controller = _controller(ctx)
    with _handle_errors():
        identity = controller.import_identity(
            private_key.absolute(),
            public_key.absolute(),
            name,
            ssh_config.absolute() if ssh_config else None,
            git_settings,
        )
        controller.save()
    console.print(
        f"Imported: {escape(identity['name'])} ({escape(identity['private_key_path'])}, "
        f"{escape(identity['public_key_path'])}, {escape(identity['ssh_config'] or 'N/A')})"
    )


@app.command("list")
def list_(ctx: typer.Context) -> None:
    """List all SSH key pairs."""
    entries = _controller(ctx).list_identities()
    if not entries:
        console.print("No key pairs found. Generate or import one first.")
        return
    _print_identities(entries)


@app.command("switch")
def switch(
    ctx: typer.Context,
    index: Optional[int] = typer.Option(
        None, "-i", "--index", help="Index of the key pair; prompts when omitted."
    ),
    scope: str = typer.Option("global", "-s", "--scope", help="Git configuration scope: global or local."),
) -> None:
    """Switch to an SSH key pair by index, or choose interactively."""
    controller = _controller(ctx)
    with _handle_errors():
        result = controller.switch(index, scope)
        controller.save()

    identity = result.identity
    console.print(
        f"SSH key switched to: {escape(identity['name'])} ({escape(identity['private_key_path'])})"
    )
    if result.failures:
        console.print(
            f"[yellow]{len(result.failures)} Git setting(s) could not be applied in "
            f"{result.scope} scope.[/yellow]"
        )
    else:
        console.print(f"Git configuration updated in {result.scope} scope.")
    console.print(
        f"[green]Successfully switched to key pair: {escape(identity['name'])} "
        f"(Index: {result.index}).[/green]"
    )

    if os.name == "nt":
        user = os.environ.get("USERNAME") or "YOUR_USERNAME"
        console.print("\n[bold]Manual permissions adjustment required (Windows)[/bold]")
        console.print("Run the following commands in an Administrator Command Prompt:\n")
        paths = [identity["private_key_path"], str(controller.settings.ssh_config)]
        for command in windows_permission_commands(paths, user):
            console.print(escape(command))


@app.command("delete")
def delete(
    ctx: typer.Context,
    index: Optional[int] = typer.Option(
        None, "-i", "--index", help="Index of the key pair; prompts when omitted."
    ),
    force: bool = typer.Option(False, "-f", "--force", help="Delete without confirmation."),
) -> None:
    """Delete a key pair entry from the config. Key files are kept."""
    controller = _controller(ctx)
    if not len(controller.store):
        console.print("No key pairs found to delete. Generate or import one first.")
        raise typer.Exit(1)
    with _handle_errors():
        identity = controller.delete(index, force)
        if identity is None:
            console.print("Deletion cancelled.")
            return
        controller.save()

    active = controller.store.active_identity
    if active is None:
        console.print("No active key pair.")
    else:
        console.print(f"Active key pair: {escape(active['name'])} (Index: {controller.store.active_index})")
    console.print(f"Successfully deleted key pair entry: {escape(identity['name'])} from config")


# Short aliases
app.command("gen", hidden=True)(generate)
app.command("i", hidden=True)(import_)
app.command("ls", hidden=True)(list_)
app.command("s", hidden=True)(switch)
app.command("del", hidden=True)(delete)


if __name__ == "__main__":
    app()
