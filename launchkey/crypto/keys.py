"""
Key material handling for the LaunchKey SDK.

Keys are identified by fingerprint: the MD5 digest of the DER encoded
SubjectPublicKeyInfo, rendered as colon separated hex pairs. A ``KeyStore``
maps fingerprints to keys and designates one entry as current.
"""

import hashlib
import logging
import threading
from typing import Dict, List, Optional, Tuple, Union

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from ..errors import CryptographyError, NoKeyFoundException

logger = logging.getLogger(__name__)

RSAKey = Union[rsa.RSAPublicKey, rsa.RSAPrivateKey]


def fingerprint(key: RSAKey) -> str:
    """Return the colon separated MD5 fingerprint of an RSA key's public half."""
    public_key = key.public_key() if isinstance(key, rsa.RSAPrivateKey) else key
    der = public_key.public_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PublicFormat.SubjectPublicKeyInfo
    )
    digest = hashlib.md5(der).hexdigest()
    return ':'.join(digest[i:i + 2] for i in range(0, len(digest), 2))


def load_public_key(pem: Union[str, bytes]) -> rsa.RSAPublicKey:
    """Parse a PEM encoded RSA public key."""
    if isinstance(pem, str):
        pem = pem.encode('utf-8')
    try:
        key = serialization.load_pem_public_key(pem)
    except (ValueError, TypeError) as e:
        raise CryptographyError("Unable to parse public key", cause=e)
    if not isinstance(key, rsa.RSAPublicKey):
        raise CryptographyError("Public key is not an RSA key")
    return key


def load_private_key(pem: Union[str, bytes], password: Optional[bytes] = None) -> rsa.RSAPrivateKey:
    """Parse a PEM encoded RSA private key."""
    if isinstance(pem, str):
        pem = pem.encode('utf-8')
    try:
        key = serialization.load_pem_private_key(pem, password=password)
    except (ValueError, TypeError) as e:
        raise CryptographyError("Unable to parse private key", cause=e)
    if not isinstance(key, rsa.RSAPrivateKey):
        raise CryptographyError("Private key is not an RSA key")
    return key


def public_key_pem(key: RSAKey) -> str:
    """PEM encoding of an RSA key's public half."""
    public_key = key.public_key() if isinstance(key, rsa.RSAPrivateKey) else key
    return public_key.public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo
    ).decode('ascii')


class KeyStore:
    """
    Thread-safe mapping of key fingerprints to keys with a current entry.

    The key set and the current fingerprint live in one immutable snapshot
    which writers replace as a whole, so readers never observe a partial
    update.
    """

    def __init__(self, name: str = "keys"):
        self.name = name
        self._snapshot: Tuple[Dict[str, RSAKey], Optional[str]] = ({}, None)
        self._lock = threading.Lock()

    def add(self, key: RSAKey, key_fingerprint: Optional[str] = None, current: bool = False) -> str:
        """Add ``key`` and return its fingerprint. The first key added becomes current."""
        key_fingerprint = key_fingerprint or fingerprint(key)
        with self._lock:
            keys, current_fingerprint = self._snapshot
            updated = dict(keys)
            updated[key_fingerprint] = key
            if current or current_fingerprint is None:
                current_fingerprint = key_fingerprint
            self._snapshot = (updated, current_fingerprint)
        logger.info(f"Added key {key_fingerprint} to {self.name}")
        return key_fingerprint

    def replace(self, keys: Dict[str, RSAKey], current_fingerprint: Optional[str] = None) -> None:
        """Swap the whole key set in one step."""
        if current_fingerprint is not None and current_fingerprint not in keys:
            raise NoKeyFoundException(f"Current key {current_fingerprint} is not in the replacement set")
        if current_fingerprint is None and keys:
            current_fingerprint = next(iter(keys))
        with self._lock:
            self._snapshot = (dict(keys), current_fingerprint)
        logger.info(f"Replaced {self.name} with {len(keys)} key(s)")

    def find(self, key_fingerprint: Optional[str]) -> Optional[RSAKey]:
        """Return the key for ``key_fingerprint`` or None."""
        keys, _ = self._snapshot
        return keys.get(key_fingerprint) if key_fingerprint else None

    def get(self, key_fingerprint: str) -> RSAKey:
        """Return the key for ``key_fingerprint``."""
        key = self.find(key_fingerprint)
        if key is None:
            raise NoKeyFoundException(f"No key found in {self.name} for fingerprint {key_fingerprint}")
        return key

    def current(self) -> Tuple[str, RSAKey]:
        """Return the current ``(fingerprint, key)`` pair."""
        keys, current_fingerprint = self._snapshot
        if current_fingerprint is None:
            raise NoKeyFoundException(f"No current key in {self.name}")
        return current_fingerprint, keys[current_fingerprint]

    def fingerprints(self) -> List[str]:
        keys, _ = self._snapshot
        return list(keys)

    def __contains__(self, key_fingerprint: object) -> bool:
        keys, _ = self._snapshot
        return key_fingerprint in keys

    def __len__(self) -> int:
        keys, _ = self._snapshot
        return len(keys)
