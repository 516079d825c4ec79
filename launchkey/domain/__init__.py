"""
Domain value objects for the LaunchKey SDK.
"""

from .entity import EntityType, EntityIdentifier
from .service import AuthPolicy, Location, AuthResponse

__all__ = [
    'EntityType',
    'EntityIdentifier',
    'AuthPolicy',
    'Location',
    'AuthResponse',
]
