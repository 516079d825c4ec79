"""
Encoding and decoding utilities for the LaunchKey SDK.
Provides base64url handling, canonical JSON and content hashing used by the
JOSE envelope code.
"""

import base64
import binascii
import hashlib
import json
from typing import Any, Callable, Dict, Union

# Content hash function identifiers used in IOV-JWT request/response claims
CONTENT_HASH_FUNCTIONS: Dict[str, Callable[..., Any]] = {
    'S256': hashlib.sha256,
    'S384': hashlib.sha384,
    'S512': hashlib.sha512,
}


def url_safe_encode(data: Union[str, bytes]) -> str:
    """Encode data to URL-safe base64 string."""
    if isinstance(data, str):
        data = data.encode('utf-8')

    return base64.urlsafe_b64encode(data).decode('ascii').rstrip('=')


def url_safe_decode(encoded: str) -> bytes:
    """Decode URL-safe base64 string to bytes."""
    # Add padding if needed
    padding = 4 - (len(encoded) % 4)
    if padding != 4:
        encoded += '=' * padding

    try:
        return base64.urlsafe_b64decode(encoded)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"Invalid URL-safe base64 data: {e}")


def canonical_json_encode(data: Any) -> str:
    """
    Encode data to compact JSON.
    Key order is preserved as given so marshaled bodies are reproducible.
    """
    return json.dumps(data, separators=(',', ':'), ensure_ascii=False)


def content_hash(content: Union[str, bytes], function: str = 'S256') -> str:
    """Hex digest of ``content`` using an IOV-JWT hash function identifier."""
    try:
        hasher = CONTENT_HASH_FUNCTIONS[function]
    except KeyError:
        raise ValueError(f"Unsupported content hash function: {function}")

    if isinstance(content, str):
        content = content.encode('utf-8')

    return hasher(content).hexdigest()


def secure_compare(a: str, b: str) -> bool:
    """Timing-safe string comparison."""
    if not isinstance(a, str) or not isinstance(b, str):
        return False

    if len(a) != len(b):
        return False

    result = 0
    for x, y in zip(a, b):
        result |= ord(x) ^ ord(y)
    return result == 0
