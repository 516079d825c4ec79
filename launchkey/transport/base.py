"""
Transport contract for the LaunchKey API.

One coroutine per API endpoint. Implementations marshal the typed request,
sign and encrypt it, send it, and verify, decrypt and unmarshal the reply.
Every method may raise ``CommunicationErrorException``, ``MarshallingError``,
``InvalidRequestException``, ``InvalidResponseException``,
``InvalidCredentialsException`` or ``CryptographyError`` (including its
``JWEFailure``, ``JWTError``, ``InvalidSignatureException`` and
``NoKeyFoundException`` specializations).
"""

from abc import ABC, abstractmethod
from typing import List, Mapping, Optional, Union
from uuid import UUID

from ..domain.entity import EntityIdentifier
from .domain import (
    DirectoryV3DevicesDeleteRequest,
    DirectoryV3DevicesListPostRequest,
    DirectoryV3DevicesListPostResponse,
    DirectoryV3DevicesPostRequest,
    DirectoryV3DevicesPostResponse,
    DirectoryV3SessionsDeleteRequest,
    DirectoryV3SessionsListPostRequest,
    DirectoryV3SessionsListPostResponse,
    OrganizationV3DirectoriesPatchRequest,
    PublicV3PingGetResponse,
    PublicV3PublicKeyGetResponse,
    ServerSentEvent,
    ServiceV3AuthsGetResponse,
    ServiceV3AuthsPostRequest,
    ServiceV3AuthsPostResponse,
    ServiceV3SessionsDeleteRequest,
    ServiceV3SessionsPostRequest,
)

Headers = Mapping[str, Union[str, List[str]]]


class Transport(ABC):
    """Abstract base class for LaunchKey API transports."""

    @abstractmethod
    async def public_v3_ping_get(self) -> PublicV3PingGetResponse:
        """Get the current system time from the API."""
        pass

    @abstractmethod
    async def public_v3_public_key_get(self, fingerprint: Optional[str] = None) -> PublicV3PublicKeyGetResponse:
        """
        Get an API public key by fingerprint, or the current key when no
        fingerprint is given. Raises ``NoKeyFoundException`` for an unknown
        fingerprint.
        """
        pass

    @abstractmethod
    async def service_v3_auths_post(self, request: ServiceV3AuthsPostRequest,
                                    subject: EntityIdentifier) -> ServiceV3AuthsPostResponse:
        """Create an authorization request for a service."""
        pass

    @abstractmethod
    async def service_v3_auths_get(self, auth_request_id: UUID,
                                   subject: EntityIdentifier) -> Optional[ServiceV3AuthsGetResponse]:
        """
        Poll an authorization request. Returns None while the user has not
        responded and raises ``AuthorizationRequestTimedOutError`` once the
        request has expired.
        """
        pass

    @abstractmethod
    async def service_v3_sessions_post(self, request: ServiceV3SessionsPostRequest,
                                       subject: EntityIdentifier) -> None:
        """Begin a user session for a service."""
        pass

    @abstractmethod
    async def service_v3_sessions_delete(self, request: ServiceV3SessionsDeleteRequest,
                                         subject: EntityIdentifier) -> None:
        """End a user session for a service. Ending a missing session is not an error."""
        pass

    @abstractmethod
    async def directory_v3_devices_post(self, request: DirectoryV3DevicesPostRequest,
                                        subject: EntityIdentifier) -> DirectoryV3DevicesPostResponse:
        """Begin linking a device for a directory user."""
        pass

    @abstractmethod
    async def directory_v3_devices_list_post(self, request: DirectoryV3DevicesListPostRequest,
                                             subject: EntityIdentifier) -> DirectoryV3DevicesListPostResponse:
        """List the devices of a directory user."""
        pass

    @abstractmethod
    async def directory_v3_devices_delete(self, request: DirectoryV3DevicesDeleteRequest,
                                          subject: EntityIdentifier) -> None:
        """Unlink a device from a directory user."""
        pass

    @abstractmethod
    async def directory_v3_sessions_list_post(self, request: DirectoryV3SessionsListPostRequest,
                                              subject: EntityIdentifier) -> DirectoryV3SessionsListPostResponse:
        """List the service sessions of a directory user."""
        pass

    @abstractmethod
    async def directory_v3_sessions_delete(self, request: DirectoryV3SessionsDeleteRequest,
                                           subject: EntityIdentifier) -> None:
        """End all service sessions of a directory user."""
        pass

    @abstractmethod
    async def organization_v3_directories_patch(self, request: OrganizationV3DirectoriesPatchRequest,
                                                subject: EntityIdentifier) -> None:
        """Update a directory of an organization."""
        pass

    @abstractmethod
    async def handle_server_sent_event(self, headers: Headers, body: str) -> ServerSentEvent:
        """Verify, decrypt and decode a server-sent event received by the caller."""
        pass

    async def close(self) -> None:
        """Release transport resources."""
        pass

    async def __aenter__(self) -> 'Transport':
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
