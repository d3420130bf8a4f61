"""Tests for reading the INI configuration."""
import configparser
from pathlib import Path
import sys

# Ensure application importable
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from gss_app import settings as settings_mod
from gss_app.settings import load_config, settings_from_config

CFG_PATH = Path(__file__).with_name("settings_test_config.ini")


def test_defaults_when_file_missing(tmp_path, monkeypatch):
    monkeypatch.setenv("HOME", str(tmp_path))
    resolved = settings_from_config(load_config(tmp_path / "absent.ini"))
    assert resolved.store_dir == Path("~/.gss").expanduser()
    assert resolved.store_file == resolved.store_dir / settings_mod.STORE_FILE
    assert resolved.ssh_config == Path("~/.ssh/config").expanduser()
    assert resolved.key_bits == settings_mod.DEFAULT_KEY_BITS
    assert resolved.log_level == "INFO"
    assert resolved.log_file == resolved.store_dir / settings_mod.LOG_FILE


def test_values_read_from_file():
    resolved = settings_from_config(load_config(CFG_PATH))
    raw = configparser.ConfigParser()
    raw.read(CFG_PATH)
    assert resolved.store_dir == Path(raw["paths"]["store_dir"]).expanduser()
    assert resolved.ssh_config == Path(raw["paths"]["ssh_config"]).expanduser()
    assert resolved.key_bits == raw["keys"].getint("bits")
    assert resolved.log_level == raw["logging"]["level"].upper()
    assert resolved.log_file == Path(raw["logging"]["file"]).expanduser()


def test_small_key_size_is_raised():
    cfg = configparser.ConfigParser()
    cfg.read_dict({"keys": {"bits": "512"}})
    assert settings_from_config(cfg).key_bits == 1024


def test_config_env_override(tmp_path, monkeypatch):
    custom = tmp_path / "custom.ini"
    monkeypatch.setenv(settings_mod.CONFIG_ENV, str(custom))
    assert settings_mod.default_config_file() == custom
    monkeypatch.delenv(settings_mod.CONFIG_ENV)
    assert settings_mod.default_config_file().name == "gss.ini"
