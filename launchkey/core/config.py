"""
Configuration module for the LaunchKey SDK.
"""

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Dict, Optional

import yaml

from ..crypto.jwt import SUPPORTED_ALGORITHMS
from ..crypto.keys import KeyStore, load_private_key
from ..domain.entity import EntityIdentifier
from ..errors import ConfigurationError, LaunchKeyError
from ..util.config import get_config_value, load_config_file, read_text_file, to_duration
from ..util.encoding import CONTENT_HASH_FUNCTIONS

DEFAULT_BASE_URL = "https://api.launchkey.com"
DEFAULT_API_IDENTIFIER = "lka"

_DURATION_KEYS = ('request_lifetime', 'jwt_leeway', 'jwt_max_age', 'request_timeout', 'api_public_key_ttl')
_ENV_KEYS = (
    'base_url', 'issuer', 'private_key', 'private_key_file', 'api_identifier',
    'jwt_algorithm', 'content_hash_algorithm', 'user_agent',
) + _DURATION_KEYS


@dataclass
class Config:
    """Configuration for the LaunchKey SDK"""
    issuer: EntityIdentifier
    private_keys: KeyStore
    base_url: str = DEFAULT_BASE_URL
    api_identifier: str = DEFAULT_API_IDENTIFIER
    jwt_algorithm: str = "RS256"
    content_hash_algorithm: str = "S256"
    request_lifetime: timedelta = field(default_factory=lambda: timedelta(seconds=5))
    jwt_leeway: timedelta = field(default_factory=lambda: timedelta(seconds=5))
    jwt_max_age: Optional[timedelta] = None
    request_timeout: timedelta = field(default_factory=lambda: timedelta(seconds=30))
    api_public_key_ttl: timedelta = field(default_factory=lambda: timedelta(hours=1))
    user_agent: str = "launchkey-py"

    def __post_init__(self):
        if isinstance(self.issuer, str):
            self.issuer = EntityIdentifier.from_string(self.issuer)
        self.base_url = self.base_url.rstrip('/')

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Config":
        """
        Create configuration from a mapping.

        ``private_key`` holds a PEM string and ``private_key_file`` a path to
        one; durations accept timedeltas, seconds or strings like ``30s``.
        """
        data = {key: value for key, value in data.items() if value is not None}

        if not data.get('issuer'):
            raise ConfigurationError("issuer is required", config_key='issuer')
        if isinstance(data['issuer'], str):
            try:
                data['issuer'] = EntityIdentifier.from_string(data['issuer'])
            except LaunchKeyError as e:
                raise ConfigurationError(f"Invalid issuer: {e}", config_key='issuer')

        pem = data.pop('private_key', None)
        key_file = data.pop('private_key_file', None)
        if pem is None and key_file is not None:
            try:
                pem = read_text_file(key_file)
            except OSError as e:
                raise ConfigurationError(f"Unable to read private key file: {e}", config_key='private_key_file')
        if pem is None:
            raise ConfigurationError("private_key or private_key_file is required", config_key='private_key')

        private_keys = KeyStore(name="private keys")
        try:
            private_keys.add(load_private_key(pem))
        except LaunchKeyError as e:
            raise ConfigurationError(f"Invalid private key: {e}", config_key='private_key')

        kwargs: Dict[str, Any] = {}
        for key, value in data.items():
            if key in _DURATION_KEYS:
                try:
                    kwargs[key] = to_duration(value)
                except ValueError as e:
                    raise ConfigurationError(str(e), config_key=key)
            elif key in _ENV_KEYS:
                kwargs[key] = value

        return cls(private_keys=private_keys, **kwargs)

    @classmethod
    def from_env(cls, prefix: str = "LAUNCHKEY_") -> "Config":
        """Create configuration from environment variables"""
        return cls.from_dict({key: get_config_value(key, env_prefix=prefix) for key in _ENV_KEYS})

    @classmethod
    def from_file(cls, file_path: str) -> "Config":
        """Create configuration from a JSON or YAML file"""
        try:
            data = load_config_file(file_path)
        except (OSError, ValueError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Unable to load configuration file {file_path}: {e}")
        if not isinstance(data, dict):
            raise ConfigurationError(f"Configuration file {file_path} does not contain a mapping")
        return cls.from_dict(data)

    def validate(self) -> bool:
        """Validate the configuration"""
        if not self.base_url:
            raise ConfigurationError("base_url is required", config_key='base_url')
        if len(self.private_keys) == 0:
            raise ConfigurationError("at least one private key is required", config_key='private_keys')
        if self.jwt_algorithm not in SUPPORTED_ALGORITHMS:
            raise ConfigurationError(f"Unsupported JWT algorithm: {self.jwt_algorithm}",
                                     config_key='jwt_algorithm')
        if self.content_hash_algorithm not in CONTENT_HASH_FUNCTIONS:
            raise ConfigurationError(f"Unsupported content hash algorithm: {self.content_hash_algorithm}",
                                     config_key='content_hash_algorithm')
        for key in ('request_lifetime', 'request_timeout', 'api_public_key_ttl'):
            if getattr(self, key) <= timedelta(0):
                raise ConfigurationError(f"{key} must be positive", config_key=key)
        if self.jwt_leeway < timedelta(0):
            raise ConfigurationError("jwt_leeway must not be negative", config_key='jwt_leeway')
        if self.jwt_max_age is not None and self.jwt_max_age <= timedelta(0):
            raise ConfigurationError("jwt_max_age must be positive", config_key='jwt_max_age')
        return True
