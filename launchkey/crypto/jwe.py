"""
JWE service for the LaunchKey SDK.

Payloads are encrypted with RSA-OAEP-256 key management and
AES-256-CBC-HMAC-SHA-512 content encryption in compact serialization.
"""

import json
import logging
from typing import Dict, Optional, Union

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from jose import jwe
from jose.constants import ALGORITHMS
from jose.exceptions import JOSEError

from ..errors import JWEFailure
from ..util.encoding import url_safe_decode

logger = logging.getLogger(__name__)

KEY_MANAGEMENT_ALGORITHM = ALGORITHMS.RSA_OAEP_256
CONTENT_ENCRYPTION_ALGORITHM = ALGORITHMS.A256CBC_HS512


def _jose_key(key: Union[rsa.RSAPublicKey, rsa.RSAPrivateKey]) -> Union[rsa.RSAPublicKey, bytes]:
    # python-jose takes public key objects as-is but private keys only as PEM
    if isinstance(key, rsa.RSAPrivateKey):
        return key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption()
        )
    return key


class JWEService:
    """Encrypts and decrypts string payloads as JWE envelopes."""

    def __init__(self, private_key: rsa.RSAPrivateKey):
        """
        Args:
            private_key: RSA private key used to decrypt the content encryption
                key of inbound envelopes unless a call supplies an override.
        """
        self._private_key = _jose_key(private_key)

    def encrypt(self, plaintext: str, public_key: rsa.RSAPublicKey, key_id: str, content_type: str) -> str:
        """Encrypt ``plaintext`` for the holder of ``public_key``."""
        try:
            envelope = jwe.encrypt(
                plaintext.encode('utf-8'),
                _jose_key(public_key),
                encryption=CONTENT_ENCRYPTION_ALGORITHM,
                algorithm=KEY_MANAGEMENT_ALGORITHM,
                cty=content_type,
                kid=key_id,
            )
        except (JOSEError, ValueError, TypeError, AttributeError) as e:
            logger.error(f"JWE encryption failed for key {key_id}: {e}")
            raise JWEFailure("An error occurred attempting to encrypt a JWE", cause=e)

        return envelope.decode('ascii') if isinstance(envelope, bytes) else envelope

    def decrypt(self, envelope: str, private_key: Optional[rsa.RSAPrivateKey] = None) -> str:
        """
        Decrypt ``envelope`` with the configured private key or ``private_key``.

        The override supports responses encrypted under an older public key
        whose private half differs from the default.
        """
        key = self._private_key if private_key is None else _jose_key(private_key)
        try:
            plaintext = jwe.decrypt(envelope, key)
        except (JOSEError, ValueError, TypeError) as e:
            logger.warning(f"JWE decryption failed: {e}")
            raise JWEFailure("An error occurred attempting to decrypt a JWE", cause=e)

        if plaintext is None:
            logger.warning("JWE decryption failed: content encryption key could not be recovered")
            raise JWEFailure("An error occurred attempting to decrypt a JWE")

        try:
            return plaintext.decode('utf-8')
        except UnicodeDecodeError as e:
            raise JWEFailure("Decrypted JWE payload is not valid UTF-8", cause=e)

    def get_headers(self, envelope: str) -> Dict[str, str]:
        """
        Parse the protected header of ``envelope`` without decrypting it.
        All values are returned as strings.
        """
        try:
            header_segment = envelope.split('.')[0]
            headers = json.loads(url_safe_decode(header_segment).decode('utf-8'))
        except (AttributeError, ValueError, UnicodeDecodeError) as e:
            raise JWEFailure("Unable to parse data for JWE Header!", cause=e)

        if not isinstance(headers, dict):
            raise JWEFailure("Unable to parse data for JWE Header!")

        return {name: value if isinstance(value, str) else json.dumps(value)
                for name, value in headers.items()}
