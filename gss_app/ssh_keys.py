"""Helpers for creating and validating SSH key material on disk."""

import logging
import os
from pathlib import Path
from typing import List, Tuple, Union

import paramiko
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, ed25519, rsa

from .errors import KeyGenerationFailed, UnsupportedKeyFormat

PRIVATE_KEY_SUFFIX = ".key"
PUBLIC_KEY_SUFFIX = ".pub"
DEFAULT_KEY_NAME = "id_rsa"


def unique_key_paths(directory: Union[str, Path], base_name: str) -> Tuple[Path, Path]:
    """Return a free ``(private, public)`` path pair inside ``directory``.

    The first candidate is ``<base_name>.key``. While the private key path is
    taken, ``_1``, ``_2`` and so on are appended to ``base_name``.
    """
    directory = Path(directory)
    private_path = directory / f"{base_name}{PRIVATE_KEY_SUFFIX}"
    suffix = 1
    while private_path.exists():
        private_path = directory / f"{base_name}_{suffix}{PRIVATE_KEY_SUFFIX}"
        suffix += 1
    return private_path, Path(f"{private_path}{PUBLIC_KEY_SUFFIX}")


def _key_types() -> List[type]:
    """Key classes tried when reading a private key.

    ``DSSKey`` is left out since Paramiko 3 dropped DSA support.
    """
    key_types = [paramiko.RSAKey]
    if hasattr(paramiko, "ECDSAKey"):
        key_types.append(paramiko.ECDSAKey)
    if hasattr(paramiko, "Ed25519Key"):
        key_types.append(paramiko.Ed25519Key)
    return key_types


def detect_key_type(private_key_path: Union[str, Path]) -> str:
    """Return the SSH key type name of a private key file.

    PEM encoded RSA and EC keys (traditional or PKCS#8) as well as keys in
    the OpenSSH container format are recognised. A passphrase protected key is recognised without
    being decrypted and reported as ``"encrypted"``.

    Raises
    ------
    UnsupportedKeyFormat
        If no known key class can read the file.
    """
    logger = logging.getLogger(__name__)
    pkey_file = str(private_key_path)
    for pkey_cls in _key_types():
        try:
            logger.debug("Attempting to load %s using %s", pkey_file, pkey_cls.__name__)
            key = pkey_cls.from_private_key_file(pkey_file)
            return key.get_name()
        except paramiko.PasswordRequiredException:
            logger.info("Key %s is passphrase protected", pkey_file)
            return "encrypted"
        except Exception as exc:  # pragma: no cover - parse errors vary by key class
            logger.debug("Failed loading %s as %s: %s", pkey_file, pkey_cls.__name__, exc)
    return _detect_pem_key_type(pkey_file)


_EC_CURVES = {"secp256r1": "nistp256", "secp384r1": "nistp384", "secp521r1": "nistp521"}


def _detect_pem_key_type(pkey_file: str) -> str:
    """Identify PEM keys Paramiko cannot read, such as PKCS#8 ``PRIVATE KEY`` blocks."""
    logger = logging.getLogger(__name__)
    try:
        data = Path(pkey_file).read_bytes()
        key = serialization.load_pem_private_key(data, password=None)
    except TypeError:
        logger.info("Key %s is passphrase protected", pkey_file)
        return "encrypted"
    except Exception as exc:  # ValueError for non-PEM data, UnsupportedAlgorithm, OSError
        logger.debug("Failed loading %s as PEM: %s", pkey_file, exc)
        raise UnsupportedKeyFormat(f"Invalid private key format: {pkey_file}") from exc
    if isinstance(key, rsa.RSAPrivateKey):
        return "ssh-rsa"
    if isinstance(key, ed25519.Ed25519PrivateKey):
        return "ssh-ed25519"
    if isinstance(key, ec.EllipticCurvePrivateKey):
        return "ecdsa-sha2-" + _EC_CURVES.get(key.curve.name, key.curve.name)
    return type(key).__name__


def generate_key_pair(
    private_key_path: Union[str, Path],
    public_key_path: Union[str, Path],
    bits: int = 2048,
) -> str:
    """Generate an RSA key pair and write both halves to disk.

    The private key is stored PEM encoded with mode ``0600``; the public key
    is a single ``ssh-rsa`` line with mode ``0644``. Partially written files
    are removed when anything fails.

    Returns
    -------
    str
        The public key line that was written.
    """
    logger = logging.getLogger(__name__)
    private_path = Path(private_key_path)
    public_path = Path(public_key_path)
    try:
        key = paramiko.RSAKey.generate(bits)
        key.write_private_key_file(str(private_path))
        os.chmod(private_path, 0o600)
        public_line = f"{key.get_name()} {key.get_base64()}\n"
        public_path.write_text(public_line, encoding="utf-8")
        os.chmod(public_path, 0o644)
    except (paramiko.SSHException, OSError, ValueError) as exc:
        logger.exception("Failed to generate key pair %s: %s", private_path, exc)
        for path in (private_path, public_path):
            if path.exists():
                path.unlink()
        raise KeyGenerationFailed(f"Failed to generate key pair {private_path}: {exc}") from exc
    logger.info("Generated %d bit RSA key pair %s", bits, private_path)
    return public_line
