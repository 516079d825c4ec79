"""
Request, response and event objects exchanged with the LaunchKey API.

Requests render to JSON objects through ``to_dict`` with a fixed key order;
responses are built from decoded JSON through ``from_dict``. Missing or
malformed fields surface as ``KeyError``/``ValueError``/``TypeError`` for the
transport to report.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from ..domain.service import AuthPolicy, AuthResponse


def parse_api_time(value: str) -> datetime:
    """Parse an ISO-8601 API timestamp such as ``2017-06-02T20:18:19Z``."""
    if value.endswith('Z'):
        value = value[:-1] + '+00:00'
    return datetime.fromisoformat(value)


def _without_none(data: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in data.items() if value is not None}


# Public endpoints

@dataclass(frozen=True)
class PublicV3PingGetResponse:
    api_time: datetime

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PublicV3PingGetResponse':
        return cls(api_time=parse_api_time(data['api_time']))


@dataclass(frozen=True)
class PublicV3PublicKeyGetResponse:
    public_key: str
    key_id: str


# Service endpoints

@dataclass(frozen=True)
class ServiceV3AuthsPostRequest:
    username: str
    policy: Optional[AuthPolicy] = None
    context: Optional[str] = None
    title: Optional[str] = None
    ttl: Optional[int] = None
    push_title: Optional[str] = None
    push_body: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return _without_none({
            'username': self.username,
            'auth_policy': self.policy.to_dict() if self.policy is not None else None,
            'context': self.context,
            'title': self.title,
            'ttl': self.ttl,
            'push_title': self.push_title,
            'push_body': self.push_body,
        })


@dataclass(frozen=True)
class ServiceV3AuthsPostResponse:
    auth_request: UUID
    push_package: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ServiceV3AuthsPostResponse':
        return cls(auth_request=UUID(data['auth_request']), push_package=data.get('push_package'))


@dataclass(frozen=True)
class AuthResponseDevice:
    """Device response carried encrypted inside an authorization response."""
    auth_request: UUID
    response: bool
    device_id: Optional[str] = None
    type: Optional[str] = None
    reason: Optional[str] = None
    denial_reason: Optional[str] = None
    service_pins: Tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AuthResponseDevice':
        response_type = data.get('type')
        if 'response' in data:
            response = bool(data['response'])
        else:
            response = response_type == 'AUTHORIZED'
        return cls(
            auth_request=UUID(data['auth_request']),
            response=response,
            device_id=data.get('device_id'),
            type=response_type,
            reason=data.get('reason'),
            denial_reason=data.get('denial_reason'),
            service_pins=tuple(data.get('service_pins') or ()),
        )


@dataclass(frozen=True)
class ServiceV3AuthsGetResponse:
    service_user_hash: str
    org_user_hash: Optional[str] = None
    user_push_id: Optional[str] = None
    public_key_id: Optional[str] = None
    auth_jwe: Optional[str] = None
    device: Optional[AuthResponseDevice] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ServiceV3AuthsGetResponse':
        return cls(
            service_user_hash=data['service_user_hash'],
            org_user_hash=data.get('org_user_hash'),
            user_push_id=data.get('user_push_id'),
            public_key_id=data.get('public_key_id'),
            auth_jwe=data.get('auth_jwe'),
        )

    def to_auth_response(self) -> AuthResponse:
        """Domain view of the decrypted device response."""
        if self.device is None:
            raise ValueError("Device response has not been decrypted")
        return AuthResponse(
            auth_request_id=str(self.device.auth_request),
            authorized=self.device.response,
            user_hash=self.service_user_hash,
            organization_user_id=self.org_user_hash,
            user_push_id=self.user_push_id,
            device_id=self.device.device_id,
            service_pins=self.device.service_pins,
        )


@dataclass(frozen=True)
class ServiceV3SessionsPostRequest:
    username: str
    auth_request: Optional[UUID] = None

    def to_dict(self) -> Dict[str, Any]:
        return _without_none({
            'username': self.username,
            'auth_request': str(self.auth_request) if self.auth_request is not None else None,
        })


@dataclass(frozen=True)
class ServiceV3SessionsDeleteRequest:
    username: str

    def to_dict(self) -> Dict[str, Any]:
        return {'username': self.username}


# Directory endpoints

@dataclass(frozen=True)
class DirectoryV3DevicesPostRequest:
    identifier: str
    ttl: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return _without_none({'identifier': self.identifier, 'ttl': self.ttl})


@dataclass(frozen=True)
class DirectoryV3DevicesPostResponse:
    qrcode: str
    code: str
    device_id: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DirectoryV3DevicesPostResponse':
        return cls(qrcode=data['qrcode'], code=data['code'], device_id=data.get('device_id'))


@dataclass(frozen=True)
class DirectoryV3DevicesListPostRequest:
    identifier: str

    def to_dict(self) -> Dict[str, Any]:
        return {'identifier': self.identifier}


@dataclass(frozen=True)
class DirectoryV3DevicesListPostResponseDevice:
    id: str
    name: str
    type: str
    status: int
    created: Optional[datetime] = None
    updated: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DirectoryV3DevicesListPostResponseDevice':
        return cls(
            id=data['id'],
            name=data['name'],
            type=data['type'],
            status=int(data['status']),
            created=parse_api_time(data['created']) if data.get('created') else None,
            updated=parse_api_time(data['updated']) if data.get('updated') else None,
        )


@dataclass(frozen=True)
class DirectoryV3DevicesListPostResponse:
    devices: Tuple[DirectoryV3DevicesListPostResponseDevice, ...]

    @classmethod
    def from_list(cls, data: List[Dict[str, Any]]) -> 'DirectoryV3DevicesListPostResponse':
        return cls(devices=tuple(DirectoryV3DevicesListPostResponseDevice.from_dict(item) for item in data))


@dataclass(frozen=True)
class DirectoryV3DevicesDeleteRequest:
    identifier: str
    device_id: str

    def to_dict(self) -> Dict[str, Any]:
        return {'identifier': self.identifier, 'device_id': self.device_id}


@dataclass(frozen=True)
class DirectoryV3SessionsListPostRequest:
    identifier: str

    def to_dict(self) -> Dict[str, Any]:
        return {'identifier': self.identifier}


@dataclass(frozen=True)
class DirectoryV3SessionsListPostResponseSession:
    service_id: UUID
    service_name: str
    service_icon: Optional[str] = None
    auth_request: Optional[UUID] = None
    date_created: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DirectoryV3SessionsListPostResponseSession':
        return cls(
            service_id=UUID(data['service_id']),
            service_name=data['service_name'],
            service_icon=data.get('service_icon'),
            auth_request=UUID(data['auth_request']) if data.get('auth_request') else None,
            date_created=parse_api_time(data['date_created']) if data.get('date_created') else None,
        )


@dataclass(frozen=True)
class DirectoryV3SessionsListPostResponse:
    sessions: Tuple[DirectoryV3SessionsListPostResponseSession, ...]

    @classmethod
    def from_list(cls, data: List[Dict[str, Any]]) -> 'DirectoryV3SessionsListPostResponse':
        return cls(sessions=tuple(DirectoryV3SessionsListPostResponseSession.from_dict(item) for item in data))


@dataclass(frozen=True)
class DirectoryV3SessionsDeleteRequest:
    identifier: str

    def to_dict(self) -> Dict[str, Any]:
        return {'identifier': self.identifier}


# Organization endpoints

@dataclass(frozen=True)
class OrganizationV3DirectoriesPatchRequest:
    directory_id: UUID
    active: Optional[bool] = None
    android_key: Optional[str] = None
    ios_p12: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return _without_none({
            'directory_id': str(self.directory_id),
            'active': self.active,
            'android_key': self.android_key,
            'ios_p12': self.ios_p12,
        })


# Server-sent events

class ServerSentEvent:
    """Marker base for decoded server-sent events."""


@dataclass(frozen=True)
class ServerSentEventAuthorizationResponse(ServiceV3AuthsGetResponse, ServerSentEvent):
    """A user's answer to an authorization request, pushed by the API."""


@dataclass(frozen=True)
class ServerSentEventUserServiceSessionEnd(ServerSentEvent):
    """A user ended their session with a service."""
    user_hash: str
    api_time: datetime

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ServerSentEventUserServiceSessionEnd':
        return cls(user_hash=data['service_user_hash'], api_time=parse_api_time(data['api_time']))
