"""Shared fixtures for the identity tests."""
from pathlib import Path
import sys

import paramiko
import pytest

# Ensure application importable
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from gss_app.settings import Settings


def write_rsa_key_pair(directory: Path, name: str, bits: int = 1024):
    """Write a PEM RSA key pair named ``name`` into ``directory``."""
    key = paramiko.RSAKey.generate(bits)
    private_path = directory / name
    key.write_private_key_file(str(private_path))
    public_path = directory / f"{name}.pub"
    public_path.write_text(f"{key.get_name()} {key.get_base64()}\n", encoding="utf-8")
    return private_path, public_path


@pytest.fixture
def key_pair(tmp_path):
    keys_dir = tmp_path / "keys"
    keys_dir.mkdir()
    return write_rsa_key_pair(keys_dir, "id_test")


@pytest.fixture
def settings(tmp_path):
    store_dir = tmp_path / "store"
    return Settings(
        store_dir=store_dir,
        ssh_config=tmp_path / "ssh" / "config",
        key_bits=1024,
        log_level="DEBUG",
        log_file=store_dir / "gss.log",
    )
