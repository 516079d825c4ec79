"""
Service domain objects: authentication policies and authorization responses.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

from ..errors import MarshallingError

REQUIREMENT_AUTHENTICATED = "authenticated"
REQUIREMENT_FORCED = "forced requirement"
FACTOR_GEOFENCE = "geofence"
FACTOR_DEVICE_INTEGRITY = "device integrity"


@dataclass(frozen=True)
class Location:
    """Geofence location: radius in meters around a latitude/longitude."""
    radius: float
    latitude: float
    longitude: float

    def to_dict(self) -> Dict[str, float]:
        return {'radius': self.radius, 'latitude': self.latitude, 'longitude': self.longitude}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Location':
        return cls(
            radius=float(data['radius']),
            latitude=float(data['latitude']),
            longitude=float(data['longitude'])
        )


@dataclass(frozen=True)
class AuthPolicy:
    """
    Authentication policy applied to a single authorization request.

    A policy requires either a number of distinct factors or specific factor
    types, optionally restricts the device to geofence locations and may
    force device integrity checks. Use the ``from_*`` constructors for the
    common shapes; they all produce this one representation.
    """
    required_factors: int = 0
    knowledge: bool = False
    inherence: bool = False
    possession: bool = False
    device_integrity: bool = False
    locations: Tuple[Location, ...] = field(default_factory=tuple)

    def __post_init__(self):
        if self.required_factors < 0:
            raise ValueError("required_factors must not be negative")
        # Accept any iterable of locations but store a hashable tuple
        object.__setattr__(self, 'locations', tuple(self.locations))

    @classmethod
    def from_factor_count(cls, required_factors: int,
                          locations: Iterable[Location] = ()) -> 'AuthPolicy':
        """Policy requiring ``required_factors`` unique factors."""
        return cls(required_factors=required_factors, locations=tuple(locations))

    @classmethod
    def from_factor_flags(cls, knowledge: bool = False, inherence: bool = False,
                          possession: bool = False,
                          locations: Iterable[Location] = ()) -> 'AuthPolicy':
        """Policy requiring specific factor types."""
        return cls(knowledge=knowledge, inherence=inherence, possession=possession,
                   locations=tuple(locations))

    @classmethod
    def from_locations(cls, locations: Iterable[Location]) -> 'AuthPolicy':
        """Policy with geofence requirements only."""
        return cls(locations=tuple(locations))

    def with_geofence(self, radius: float, latitude: float, longitude: float) -> 'AuthPolicy':
        """Copy of this policy with an additional geofence location."""
        return AuthPolicy(
            required_factors=self.required_factors,
            knowledge=self.knowledge,
            inherence=self.inherence,
            possession=self.possession,
            device_integrity=self.device_integrity,
            locations=self.locations + (Location(radius, latitude, longitude),)
        )

    def has_minimum_requirements(self) -> bool:
        return bool(self.required_factors or self.knowledge or self.inherence or self.possession)

    def to_dict(self) -> Dict[str, Any]:
        """Wire representation: ``minimum_requirements`` then ``factors``."""
        minimum_requirements: List[Dict[str, Any]] = []
        if self.has_minimum_requirements():
            minimum_requirements.append({
                'requirement': REQUIREMENT_AUTHENTICATED,
                'any': self.required_factors,
                'knowledge': int(self.knowledge),
                'inherence': int(self.inherence),
                'possession': int(self.possession),
            })

        factors: List[Dict[str, Any]] = []
        if self.locations:
            factors.append({
                'factor': FACTOR_GEOFENCE,
                'requirement': REQUIREMENT_FORCED,
                'priority': 1,
                'attributes': {'locations': [location.to_dict() for location in self.locations]},
            })
        if self.device_integrity:
            factors.append({
                'factor': FACTOR_DEVICE_INTEGRITY,
                'requirement': REQUIREMENT_FORCED,
                'priority': 1,
                'attributes': {'factor enabled': 1},
            })

        return {'minimum_requirements': minimum_requirements, 'factors': factors}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AuthPolicy':
        """Parse the wire representation."""
        try:
            kwargs: Dict[str, Any] = {}
            for requirement in data.get('minimum_requirements') or []:
                if requirement.get('requirement', REQUIREMENT_AUTHENTICATED) != REQUIREMENT_AUTHENTICATED:
                    continue
                kwargs['required_factors'] = int(requirement.get('any') or 0)
                kwargs['knowledge'] = bool(int(requirement.get('knowledge') or 0))
                kwargs['inherence'] = bool(int(requirement.get('inherence') or 0))
                kwargs['possession'] = bool(int(requirement.get('possession') or 0))

            locations: List[Location] = []
            for factor in data.get('factors') or []:
                attributes = factor.get('attributes') or {}
                if factor.get('factor') == FACTOR_GEOFENCE:
                    locations.extend(Location.from_dict(item) for item in attributes.get('locations') or [])
                elif factor.get('factor') == FACTOR_DEVICE_INTEGRITY:
                    kwargs['device_integrity'] = bool(int(attributes.get('factor enabled') or 0))

            return cls(locations=tuple(locations), **kwargs)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise MarshallingError("Unable to parse auth policy", cause=e)


@dataclass(frozen=True)
class AuthResponse:
    """The user's answer to an authorization request."""
    auth_request_id: str
    authorized: bool
    user_hash: Optional[str] = None
    organization_user_id: Optional[str] = None
    user_push_id: Optional[str] = None
    device_id: Optional[str] = None
    service_pins: Tuple[str, ...] = field(default_factory=tuple)
