#!/usr/bin/env python3
"""
ZARFKIT INTEGRITY - Package Signatures
--------------------------------------
Detached Ed25519 signatures over zarf.yaml. Keys are PEM files (PKCS8 private,
SubjectPublicKeyInfo public); the signature file holds base64 text.

The signature/key expectation matrix:
  no signature, no key  -> unsigned package, nothing to do
  no signature, key     -> error, a signed package was expected
  signature, no key     -> error, unless the caller only wants a warning
  signature, key        -> cryptographic verification

Author: ZarfKit Team
Date: 2026-02-03
"""

import base64
import binascii
import logging
from pathlib import Path
from typing import List, Optional, Tuple, Union

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey, Ed25519PublicKey

from zarfkit.core.errors import SignatureError

logger = logging.getLogger("zarfkit.signature")

PRIVATE_KEY_NAME = "zarfkit.key"
PUBLIC_KEY_NAME = "zarfkit.pub"

ERR_SIG_BUT_NO_KEY = (
    "package is signed but no key was provided - add a key with the --key flag "
    "or use the --insecure flag and run the command again"
)
ERR_KEY_BUT_NO_SIG = (
    "a key was provided but the package is not signed - the package may be corrupted "
    "or the --key flag was erroneously specified"
)

PathLike = Union[str, Path]


def _password_bytes(password: Optional[str]) -> Optional[bytes]:
    return password.encode() if password else None


def load_private_key(key_path: PathLike, password: Optional[str] = None) -> Ed25519PrivateKey:
    try:
        key = serialization.load_pem_private_key(Path(key_path).read_bytes(), password=_password_bytes(password))
    except (OSError, ValueError, TypeError) as e:
        raise SignatureError(f"unable to load signing key {key_path}: {e}") from e
    if not isinstance(key, Ed25519PrivateKey):
        raise SignatureError(f"signing key {key_path} is not an Ed25519 key")
    return key


def load_public_key(key_path: PathLike) -> Ed25519PublicKey:
    try:
        key = serialization.load_pem_public_key(Path(key_path).read_bytes())
    except (OSError, ValueError) as e:
        raise SignatureError(f"unable to load public key {key_path}: {e}") from e
    if not isinstance(key, Ed25519PublicKey):
        raise SignatureError(f"public key {key_path} is not an Ed25519 key")
    return key


def generate_key_pair(directory: PathLike, password: Optional[str] = None) -> Tuple[Path, Path]:
    """Writes a new key pair into `directory`, returning (private, public) paths."""
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    key = Ed25519PrivateKey.generate()

    encryption = (serialization.BestAvailableEncryption(password.encode())
                  if password else serialization.NoEncryption())
    private_path = directory / PRIVATE_KEY_NAME
    private_path.write_bytes(key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=encryption,
    ))
    private_path.chmod(0o600)

    public_path = directory / PUBLIC_KEY_NAME
    public_path.write_bytes(key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ))
    return private_path, public_path


def sign_blob(file_path: PathLike, signature_path: PathLike, key_path: PathLike,
              password: Optional[str] = None) -> bytes:
    """Signs `file_path` and writes the base64 signature to `signature_path`."""
    key = load_private_key(key_path, password)
    signature = key.sign(Path(file_path).read_bytes())
    Path(signature_path).write_text(base64.b64encode(signature).decode("ascii"), encoding="ascii")
    logger.debug(f"Signed {file_path} with {key_path}")
    return signature


def verify_blob(file_path: PathLike, signature_path: PathLike, public_key_path: PathLike) -> None:
    key = load_public_key(public_key_path)
    try:
        signature = base64.b64decode(Path(signature_path).read_text(encoding="ascii").strip(), validate=True)
    except (OSError, ValueError, binascii.Error) as e:
        raise SignatureError(f"unable to read signature {signature_path}: {e}") from e
    try:
        key.verify(signature, Path(file_path).read_bytes())
    except InvalidSignature as e:
        raise SignatureError(
            f"package signature did not match the provided key: {file_path} failed verification"
        ) from e


def validate_package_signature(paths, public_key_path: str = "", skip_missing_key: bool = False,
                               insecure: bool = False) -> List[str]:
    """
    Applies the signature/key matrix to the layout in `paths`.
    Returns advisory warnings; failures raise SignatureError.
    """
    if insecure:
        logger.debug("Skipping signature validation (insecure)")
        return []

    signed = bool(paths.signature) and Path(paths.signature).is_file()
    if not signed and not public_key_path:
        return []
    if signed and not public_key_path:
        if skip_missing_key:
            return [ERR_SIG_BUT_NO_KEY]
        raise SignatureError(ERR_SIG_BUT_NO_KEY)
    if not signed:
        raise SignatureError(ERR_KEY_BUT_NO_SIG)

    logger.debug(f"Using public key {public_key_path} for signature validation")
    verify_blob(paths.zarf_yaml, paths.signature, public_key_path)
    return []
