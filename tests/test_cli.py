"""End-to-end tests for the ``gss`` command line."""
import json
import logging
from pathlib import Path
import subprocess
import sys

import pytest
from typer.testing import CliRunner

# Ensure application importable
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from gss_app import git_config
from gss_app.cli import app
from gss_app.settings import STORE_FILE

runner = CliRunner()


@pytest.fixture
def env(tmp_path, monkeypatch):
    """Write an INI file pointing every path into ``tmp_path``."""
    config = tmp_path / "gss.ini"
    config.write_text(
        "[paths]\n"
        f"store_dir = {tmp_path / 'store'}\n"
        f"ssh_config = {tmp_path / 'ssh' / 'config'}\n"
        "[keys]\n"
        "bits = 1024\n",
        encoding="utf-8",
    )
    calls = []

    def fake_run(args, **kwargs):
        calls.append(args)
        return subprocess.CompletedProcess(args, 0, "", "")

    monkeypatch.setattr(git_config.subprocess, "run", fake_run)
    yield {"config": config, "root": tmp_path, "git_calls": calls}

    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()


def _invoke(env, *args, **kwargs):
    return runner.invoke(app, ["--config", str(env["config"]), *args], **kwargs)


def _stored(env):
    return json.loads((env["root"] / "store" / STORE_FILE).read_text(encoding="utf-8"))


def _import(env, key_pair, name="work"):
    return _invoke(
        env,
        "import",
        "-i", str(key_pair[0]),
        "-p", str(key_pair[1]),
        "-n", name,
        "--git-email", f"{name}@example.com",
        "--git-name", name.title(),
    )


def test_list_empty(env):
    result = _invoke(env, "list")
    assert result.exit_code == 0
    assert "No key pairs found" in result.output


def test_generate_and_list(env):
    result = _invoke(env, "generate", "-g", "work")
    assert result.exit_code == 0, result.output
    assert "Generated: work" in result.output

    result = _invoke(env, "gen", "-g", "work")
    assert result.exit_code == 0, result.output
    stored = _stored(env)
    assert [Path(k["private_key_path"]).name for k in stored["keys"]] == ["work.key", "work_1.key"]
    assert stored["active_key"] == -1

    result = _invoke(env, "ls")
    assert result.exit_code == 0
    assert "work" in result.output


def test_import_and_switch(env, key_pair):
    result = _import(env, key_pair)
    assert result.exit_code == 0, result.output
    assert _stored(env)["keys"][0]["git_config"] == {
        "user.email": "work@example.com",
        "user.name": "Work",
    }

    result = _invoke(env, "switch", "-i", "0")
    assert result.exit_code == 0, result.output
    assert "Successfully switched to key pair: work" in result.output
    ssh_config = env["root"] / "ssh" / "config"
    assert ssh_config.read_text(encoding="utf-8") == f"IdentityFile {key_pair[0]}"
    assert [call[-2] for call in env["git_calls"]] == [
        "user.email",
        "user.name",
        "core.sshCommand",
    ]
    assert _stored(env)["active_key"] == 0


def test_import_extra_git_settings(env, key_pair):
    result = _invoke(
        env,
        "i",
        "-i", str(key_pair[0]),
        "-p", str(key_pair[1]),
        "-n", "work",
        "--git-email", "work@example.com",
        "--git-name", "Work",
        "--git", "commit.gpgsign=true",
    )
    assert result.exit_code == 0, result.output
    assert _stored(env)["keys"][0]["git_config"]["commit.gpgsign"] == "true"


def test_import_rejects_malformed_git_option(env, key_pair):
    result = _invoke(
        env,
        "import",
        "-i", str(key_pair[0]),
        "-p", str(key_pair[1]),
        "-n", "work",
        "--git-email", "work@example.com",
        "--git-name", "Work",
        "--git", "commit.gpgsign",
    )
    assert result.exit_code != 0


def test_import_missing_key_fails(env, tmp_path, key_pair):
    result = _invoke(
        env,
        "import",
        "-i", str(tmp_path / "missing"),
        "-p", str(key_pair[1]),
        "-n", "work",
        "--git-email", "work@example.com",
        "--git-name", "Work",
    )
    assert result.exit_code == 1
    assert "Private key not found" in result.output


def test_switch_invalid_index(env, key_pair):
    _import(env, key_pair)
    result = _invoke(env, "s", "-i", "5")
    assert result.exit_code == 1
    assert "Invalid index: 5" in result.output
    assert _stored(env)["active_key"] == -1


def test_switch_interactive(env, key_pair):
    _import(env, key_pair, "work")
    _import(env, key_pair, "personal")
    result = _invoke(env, "switch", input="1\n")
    assert result.exit_code == 0, result.output
    assert _stored(env)["active_key"] == 1


def test_switch_interactive_rejects_text(env, key_pair):
    _import(env, key_pair)
    result = _invoke(env, "switch", input="abc\n")
    assert result.exit_code == 1
    assert "Please enter a number" in result.output


def test_switch_interactive_empty_store(env):
    result = _invoke(env, "switch")
    assert result.exit_code == 1
    assert "No key pairs found" in result.output


def test_delete_confirmation_declined(env, key_pair):
    _import(env, key_pair)
    result = _invoke(env, "delete", "-i", "0", input="n\n")
    assert result.exit_code == 0
    assert "Deletion cancelled." in result.output
    assert len(_stored(env)["keys"]) == 1


def test_delete_confirmation_accepted(env, key_pair):
    _import(env, key_pair, "work")
    _import(env, key_pair, "personal")
    result = _invoke(env, "delete", "-i", "0", input="y\n")
    assert result.exit_code == 0, result.output
    assert "Successfully deleted key pair entry: work" in result.output
    assert [k["name"] for k in _stored(env)["keys"]] == ["personal"]
    assert key_pair[0].exists()


def test_invalid_key_bits_setting(env):
    env["config"].write_text("[keys]\nbits = many\n", encoding="utf-8")
    result = _invoke(env, "list")
    assert result.exit_code == 1
    assert "Error" in result.output


def test_unwritable_log_file(env):
    blocker = env["root"] / "blocker"
    blocker.write_text("", encoding="utf-8")
    env["config"].write_text(
        f"[paths]\nstore_dir = {env['root'] / 'store'}\n"
        f"[logging]\nfile = {blocker / 'gss.log'}\n",
        encoding="utf-8",
    )
    result = _invoke(env, "list")
    assert result.exit_code == 1
    assert "Error" in result.output


def test_delete_force(env, key_pair):
    _import(env, key_pair, "work")
    _import(env, key_pair, "personal")
    _invoke(env, "switch", "-i", "1")
    result = _invoke(env, "del", "-i", "0", "-f")
    assert result.exit_code == 0, result.output
    stored = _stored(env)
    assert [k["name"] for k in stored["keys"]] == ["personal"]
    assert stored["active_key"] == 0
    assert key_pair[0].exists()


def test_delete_empty_store(env):
    result = _invoke(env, "delete", "-f")
    assert result.exit_code == 1
    assert "No key pairs found to delete" in result.output


def test_corrupt_store_exits(env):
    store_dir = env["root"] / "store"
    store_dir.mkdir()
    (store_dir / STORE_FILE).write_text("[oops", encoding="utf-8")
    result = _invoke(env, "list")
    assert result.exit_code == 1
    assert "Error" in result.output
