"""
LaunchKey Python SDK

Secure transport for the LaunchKey authentication API: JWE encrypted,
IOV-JWT signed requests with verified responses.
"""

__version__ = "0.1.0"

from .core.config import Config
from .domain import EntityIdentifier, EntityType, AuthPolicy, AuthResponse, Location
from .transport import JOSETransport, Transport
from .errors import LaunchKeyError, ErrorKind

__all__ = [
    "Config",
    "EntityIdentifier",
    "EntityType",
    "AuthPolicy",
    "AuthResponse",
    "Location",
    "JOSETransport",
    "Transport",
    "LaunchKeyError",
    "ErrorKind",
]
