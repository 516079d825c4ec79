"""
Utility package providing common helper functions for the LaunchKey SDK.

This package includes:
- Encoding utilities for base64url, canonical JSON and content hashes
- Configuration utilities for loading settings from the environment and files
"""

from .encoding import (
    CONTENT_HASH_FUNCTIONS, url_safe_encode, url_safe_decode,
    canonical_json_encode, content_hash, secure_compare
)
from .config import (
    get_config_value, parse_duration_string,
    to_duration, load_config_file, read_text_file
)

__all__ = [
    # Encoding utilities
    'CONTENT_HASH_FUNCTIONS', 'url_safe_encode', 'url_safe_decode',
    'canonical_json_encode', 'content_hash', 'secure_compare',

    # Configuration utilities
    'get_config_value', 'parse_duration_string',
    'to_duration', 'load_config_file', 'read_text_file',
]
