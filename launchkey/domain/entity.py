"""
Entity identifiers for the LaunchKey SDK.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Union
from uuid import UUID

from ..errors import UnknownEntityException


class EntityType(Enum):
    """Kinds of entities within a LaunchKey account hierarchy."""
    ORGANIZATION = "org"
    DIRECTORY = "dir"
    SERVICE = "svc"
    APPLICATION = "app"


@dataclass(frozen=True)
class EntityIdentifier:
    """Identifies the organization, directory, service or application a call is about."""
    type: EntityType
    id: UUID

    def __str__(self) -> str:
        return f"{self.type.value}:{self.id}"

    @classmethod
    def from_string(cls, value: str) -> 'EntityIdentifier':
        """Parse ``"<type>:<uuid>"``."""
        prefix, _, raw_id = value.partition(':')
        try:
            entity_type = EntityType(prefix)
            entity_id = UUID(raw_id)
        except ValueError as e:
            raise UnknownEntityException(f"Invalid entity identifier: {value}", cause=e)
        return cls(entity_type, entity_id)

    @classmethod
    def organization(cls, entity_id: Union[str, UUID]) -> 'EntityIdentifier':
        return cls(EntityType.ORGANIZATION, UUID(str(entity_id)))

    @classmethod
    def directory(cls, entity_id: Union[str, UUID]) -> 'EntityIdentifier':
        return cls(EntityType.DIRECTORY, UUID(str(entity_id)))

    @classmethod
    def service(cls, entity_id: Union[str, UUID]) -> 'EntityIdentifier':
        return cls(EntityType.SERVICE, UUID(str(entity_id)))
