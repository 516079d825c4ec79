"""
Package crypto provides the secure envelope used to talk to the LaunchKey API.

This package implements:
- Key fingerprinting and fingerprint indexed key stores
- JWE encryption and decryption (RSA-OAEP-256 / A256CBC-HS512)
- IOV-JWT request signing and response verification
"""

from .keys import (
    KeyStore,
    fingerprint,
    load_public_key,
    load_private_key,
    public_key_pem,
)

from .jwe import (
    JWEService,
    KEY_MANAGEMENT_ALGORITHM,
    CONTENT_ENCRYPTION_ALGORITHM,
)

from .jwt import (
    JWTService,
    JWTClaims,
    SUPPORTED_ALGORITHMS,
)

__all__ = [
    # Keys
    'KeyStore',
    'fingerprint',
    'load_public_key',
    'load_private_key',
    'public_key_pem',

    # JWE
    'JWEService',
    'KEY_MANAGEMENT_ALGORITHM',
    'CONTENT_ENCRYPTION_ALGORITHM',

    # JWT
    'JWTService',
    'JWTClaims',
    'SUPPORTED_ALGORITHMS',
]
