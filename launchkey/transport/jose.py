"""
JOSE transport for the LaunchKey API.

Outbound requests are signed with an IOV-JWT bound to the method, path and
body hash, and their bodies are JWE encrypted for the API's current public
key. Responses must carry an ``X-IOV-JWT`` token signed by the API that
echoes the request token id and binds the status code and body.
"""

import dataclasses
import json
import logging
import time
from typing import Any, Callable, Dict, Optional, Tuple, TypeVar
from uuid import UUID, uuid4

from cryptography.hazmat.primitives.asymmetric import rsa

from ..core.config import Config
from ..crypto.jwe import JWEService
from ..crypto.jwt import JWTClaims, JWTService
from ..crypto.keys import KeyStore, load_public_key
from ..domain.entity import EntityIdentifier
from ..errors import (
    AuthorizationRequestTimedOutError,
    CommunicationErrorException,
    InvalidCredentialsException,
    InvalidRequestException,
    InvalidResponseException,
    InvalidSignatureException,
    LaunchKeyError,
    MarshallingError,
    NoKeyFoundException,
    UnknownEntityException,
)
from ..util.encoding import canonical_json_encode, content_hash, secure_compare
from .base import Headers, Transport
from .domain import (
    AuthResponseDevice,
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
    ServerSentEventAuthorizationResponse,
    ServerSentEventUserServiceSessionEnd,
    ServiceV3AuthsGetResponse,
    ServiceV3AuthsPostRequest,
    ServiceV3AuthsPostResponse,
    ServiceV3SessionsDeleteRequest,
    ServiceV3SessionsPostRequest,
)
from .http import AiohttpClient, HTTPClient, HTTPResponse

logger = logging.getLogger(__name__)

JOSE_CONTENT_TYPE = "application/jose"
JSON_CONTENT_TYPE = "application/json"
JWT_RESPONSE_HEADER = "X-IOV-JWT"
KEY_ID_HEADER = "X-IOV-KEY-ID"

T = TypeVar('T')
AuthsGetResponse = TypeVar('AuthsGetResponse', bound=ServiceV3AuthsGetResponse)


class JOSETransport(Transport):
    """
    Transport that signs, encrypts, verifies and decrypts every exchange.

    Example:
        config = Config.from_env()
        async with JOSETransport(config) as transport:
            response = await transport.service_v3_auths_post(
                ServiceV3AuthsPostRequest(username="jdoe"), config.issuer)
    """

    def __init__(
        self,
        config: Config,
        http_client: Optional[HTTPClient] = None,
        jwe_service: Optional[JWEService] = None,
        jwt_service: Optional[JWTService] = None,
        api_public_keys: Optional[KeyStore] = None
    ):
        config.validate()
        self.config = config
        self.http_client = http_client or AiohttpClient(
            timeout=config.request_timeout.total_seconds(),
            user_agent=config.user_agent
        )
        _, private_key = config.private_keys.current()
        self.jwe_service = jwe_service or JWEService(private_key)
        self.jwt_service = jwt_service or JWTService(
            config.private_keys,
            api_identifier=config.api_identifier,
            algorithm=config.jwt_algorithm,
            request_lifetime=config.request_lifetime,
            leeway=config.jwt_leeway,
            max_age=config.jwt_max_age
        )
        self.api_public_keys = api_public_keys if api_public_keys is not None else KeyStore(name="API public keys")
        self._current_api_key_expires: Optional[float] = None
        if len(self.api_public_keys) > 0:
            self._current_api_key_expires = time.monotonic() + config.api_public_key_ttl.total_seconds()

    async def close(self) -> None:
        await self.http_client.close()

    # Public endpoints

    async def public_v3_ping_get(self) -> PublicV3PingGetResponse:
        response = await self._send("GET", "/public/v3/ping")
        self._raise_for_status(response)
        return self._unmarshal(PublicV3PingGetResponse.from_dict, self._parse_json(response.body))

    async def public_v3_public_key_get(self, fingerprint: Optional[str] = None) -> PublicV3PublicKeyGetResponse:
        path = "/public/v3/public-key" + (f"/{fingerprint}" if fingerprint else "")
        response = await self._send("GET", path)
        if response.status == 404:
            raise NoKeyFoundException(
                f"The API has no public key with fingerprint {fingerprint}" if fingerprint
                else "The API has no current public key")
        self._raise_for_status(response)

        key_id = response.header(KEY_ID_HEADER)
        if not response.body or not key_id:
            raise InvalidResponseException(f"Public key response is missing the key or the {KEY_ID_HEADER} header")
        return PublicV3PublicKeyGetResponse(public_key=response.body, key_id=key_id)

    # Service endpoints

    async def service_v3_auths_post(self, request: ServiceV3AuthsPostRequest,
                                    subject: EntityIdentifier) -> ServiceV3AuthsPostResponse:
        body = await self._jose_call("POST", "/service/v3/auths", subject, request)
        return self._unmarshal(ServiceV3AuthsPostResponse.from_dict, self._parse_json(body))

    async def service_v3_auths_get(self, auth_request_id: UUID,
                                   subject: EntityIdentifier) -> Optional[ServiceV3AuthsGetResponse]:
        path = f"/service/v3/auths/{auth_request_id}"
        response, token_id = await self._jose_request("GET", path, subject)
        if response.status == 408:
            raise AuthorizationRequestTimedOutError(f"Authorization request {auth_request_id} has expired")

        body = await self._jose_response(response, token_id, subject)
        if response.status == 204 or not body:
            logger.debug(f"Authorization request {auth_request_id} is still pending")
            return None

        auth_response = self._unmarshal(ServiceV3AuthsGetResponse.from_dict, self._parse_json(body))
        return self._with_device(auth_response)

    async def service_v3_sessions_post(self, request: ServiceV3SessionsPostRequest,
                                       subject: EntityIdentifier) -> None:
        await self._jose_call("POST", "/service/v3/sessions", subject, request)

    async def service_v3_sessions_delete(self, request: ServiceV3SessionsDeleteRequest,
                                         subject: EntityIdentifier) -> None:
        await self._jose_call("DELETE", "/service/v3/sessions", subject, request)

    # Directory endpoints

    async def directory_v3_devices_post(self, request: DirectoryV3DevicesPostRequest,
                                        subject: EntityIdentifier) -> DirectoryV3DevicesPostResponse:
        body = await self._jose_call("POST", "/directory/v3/devices", subject, request)
        return self._unmarshal(DirectoryV3DevicesPostResponse.from_dict, self._parse_json(body))

    async def directory_v3_devices_list_post(self, request: DirectoryV3DevicesListPostRequest,
                                             subject: EntityIdentifier) -> DirectoryV3DevicesListPostResponse:
        body = await self._jose_call("POST", "/directory/v3/devices/list", subject, request)
        return self._unmarshal(DirectoryV3DevicesListPostResponse.from_list, self._parse_json(body))

    async def directory_v3_devices_delete(self, request: DirectoryV3DevicesDeleteRequest,
                                          subject: EntityIdentifier) -> None:
        await self._jose_call("DELETE", "/directory/v3/devices", subject, request)

    async def directory_v3_sessions_list_post(self, request: DirectoryV3SessionsListPostRequest,
                                              subject: EntityIdentifier) -> DirectoryV3SessionsListPostResponse:
        body = await self._jose_call("POST", "/directory/v3/sessions/list", subject, request)
        return self._unmarshal(DirectoryV3SessionsListPostResponse.from_list, self._parse_json(body))

    async def directory_v3_sessions_delete(self, request: DirectoryV3SessionsDeleteRequest,
                                           subject: EntityIdentifier) -> None:
        await self._jose_call("DELETE", "/directory/v3/sessions", subject, request)

    # Organization endpoints

    async def organization_v3_directories_patch(self, request: OrganizationV3DirectoriesPatchRequest,
                                                subject: EntityIdentifier) -> None:
        await self._jose_call("PATCH", "/organization/v3/directories", subject, request)

    # Server-sent events

    async def handle_server_sent_event(self, headers: Headers, body: str) -> ServerSentEvent:
        token = _header_value(headers, JWT_RESPONSE_HEADER)
        if not token:
            raise InvalidResponseException(f"Server-sent event has no {JWT_RESPONSE_HEADER} header")

        claims = await self._verify_jwt(token)
        if claims.subject is None:
            raise UnknownEntityException("Server-sent event JWT has no subject")
        subject = EntityIdentifier.from_string(claims.subject)
        self._verify_content_hash(claims, body)

        content_type = _header_value(headers, "Content-Type") or ""
        if JOSE_CONTENT_TYPE in content_type.lower():
            body = self._decrypt(body)
        data = self._parse_json(body)
        if not isinstance(data, dict):
            raise InvalidResponseException("Server-sent event body is not a JSON object")

        if 'auth_jwe' in data:
            event = self._unmarshal(ServerSentEventAuthorizationResponse.from_dict, data)
            logger.info(f"Received authorization response event for {subject}")
            return self._with_device(event)
        if 'service_user_hash' in data and 'api_time' in data:
            logger.info(f"Received session end event for {subject}")
            return self._unmarshal(ServerSentEventUserServiceSessionEnd.from_dict, data)

        raise InvalidResponseException("Unknown server-sent event type")

    # Exchange helpers

    async def _jose_call(self, method: str, path: str, subject: EntityIdentifier,
                         request: Any = None) -> Optional[str]:
        response, token_id = await self._jose_request(method, path, subject, request)
        return await self._jose_response(response, token_id, subject)

    async def _jose_request(self, method: str, path: str, subject: EntityIdentifier,
                            request: Any = None) -> Tuple[HTTPResponse, str]:
        """Sign, encrypt and send ``request``. Returns the raw response and the request token id."""
        payload = self._marshal(request) if request is not None else None
        hash_algorithm = self.config.content_hash_algorithm if payload is not None else None
        body_hash = content_hash(payload, hash_algorithm) if payload is not None else None

        token_id = str(uuid4())
        token = self.jwt_service.encode(
            token_id,
            str(self.config.issuer),
            str(subject),
            int(time.time()),
            method,
            path,
            hash_algorithm,
            body_hash
        )
        headers = {
            'Authorization': f"IOV-JWT {token}",
            'Accept': f"{JOSE_CONTENT_TYPE}, {JSON_CONTENT_TYPE}",
        }

        encrypted = None
        if payload is not None:
            key_id, public_key = await self._current_api_public_key()
            encrypted = self.jwe_service.encrypt(payload, public_key, key_id, JSON_CONTENT_TYPE)
            headers['Content-Type'] = JOSE_CONTENT_TYPE

        response = await self._send(method, path, headers, encrypted)
        return response, token_id

    async def _jose_response(self, response: HTTPResponse, token_id: str,
                             subject: EntityIdentifier) -> Optional[str]:
        """Verify a response to a signed request and return its decrypted body."""
        self._raise_for_status(response)

        token = response.header(JWT_RESPONSE_HEADER)
        if not token:
            raise InvalidResponseException(f"Response has no {JWT_RESPONSE_HEADER} header")

        claims = await self._verify_jwt(token, token_id)
        if claims.subject != str(subject):
            raise UnknownEntityException(f"Response JWT subject {claims.subject} does not match {subject}")
        if claims.status_code != response.status:
            raise InvalidResponseException(
                f"Response JWT status {claims.status_code} does not match HTTP status {response.status}")
        self._verify_content_hash(claims, response.body)

        if not response.body:
            return None
        if self._is_jose(response):
            return self._decrypt(response.body)
        return response.body

    async def _send(self, method: str, path: str, headers: Optional[Dict[str, str]] = None,
                    body: Optional[str] = None) -> HTTPResponse:
        url = f"{self.config.base_url}{path}"
        logger.debug(f"Sending {method} {path}")
        response = await self.http_client.request(method, url, headers=headers, body=body)
        logger.debug(f"{method} {path} returned {response.status}")
        return response

    # Keys, signatures and encryption

    async def _current_api_public_key(self) -> Tuple[str, rsa.RSAPublicKey]:
        expires = self._current_api_key_expires
        if expires is None or time.monotonic() >= expires:
            await self._fetch_api_public_key(None, current=True)
        return self.api_public_keys.current()

    async def _api_public_key(self, key_id: str) -> rsa.RSAPublicKey:
        public_key = self.api_public_keys.find(key_id)
        if public_key is None:
            public_key = await self._fetch_api_public_key(key_id)
        return public_key

    async def _fetch_api_public_key(self, key_id: Optional[str], current: bool = False) -> rsa.RSAPublicKey:
        response = await self.public_v3_public_key_get(key_id)
        if key_id is not None and response.key_id != key_id:
            raise NoKeyFoundException(f"Requested API key {key_id} but received {response.key_id}")
        public_key = load_public_key(response.public_key)
        self.api_public_keys.add(public_key, response.key_id, current=current)
        if current:
            logger.info(f"Using API public key {response.key_id} as current")
            self._current_api_key_expires = time.monotonic() + self.config.api_public_key_ttl.total_seconds()
        return public_key

    async def _verify_jwt(self, token: str, token_id: Optional[str] = None) -> JWTClaims:
        await self._api_public_key(self.jwt_service.get_key_id(token))
        return self.jwt_service.decode(token, self.api_public_keys.find, str(self.config.issuer), token_id)

    def _verify_content_hash(self, claims: JWTClaims, body: Optional[str]) -> None:
        if not claims.content_hash:
            if body:
                raise InvalidSignatureException("JWT does not carry a hash of the body")
            return
        if not claims.content_hash_algorithm:
            raise InvalidSignatureException("JWT body hash has no hash function")
        try:
            actual = content_hash(body or "", claims.content_hash_algorithm)
        except ValueError as e:
            raise InvalidResponseException(str(e), cause=e)
        if not secure_compare(actual, claims.content_hash):
            logger.warning("Body hash does not match the hash in the JWT")
            raise InvalidSignatureException("Body hash does not match the hash in the JWT")

    def _decrypt(self, envelope: str) -> str:
        """Decrypt with the private key named by the envelope's ``kid``, or the current key."""
        key_id = self.jwe_service.get_headers(envelope).get('kid')
        private_key = None
        if key_id:
            private_key = self.config.private_keys.find(key_id)
            if private_key is None:
                raise NoKeyFoundException(f"No private key found for key id {key_id}")
        return self.jwe_service.decrypt(envelope, private_key)

    def _with_device(self, auth_response: AuthsGetResponse) -> AuthsGetResponse:
        if not auth_response.auth_jwe:
            raise InvalidResponseException("Authorization response does not contain an encrypted device response")
        data = self._parse_json(self._decrypt(auth_response.auth_jwe))
        device = self._unmarshal(AuthResponseDevice.from_dict, data)
        return dataclasses.replace(auth_response, device=device)

    # Serialization and status handling

    @staticmethod
    def _is_jose(response: HTTPResponse) -> bool:
        return JOSE_CONTENT_TYPE in (response.header("Content-Type") or "").lower()

    @staticmethod
    def _marshal(request: Any) -> str:
        try:
            return canonical_json_encode(request.to_dict())
        except (AttributeError, TypeError, ValueError) as e:
            raise MarshallingError(f"Unable to marshal {type(request).__name__}", cause=e)

    @staticmethod
    def _parse_json(body: Optional[str]) -> Any:
        try:
            return json.loads(body or "")
        except ValueError as e:
            raise InvalidResponseException("Response body is not valid JSON", cause=e)

    @staticmethod
    def _unmarshal(factory: Callable[[Any], T], data: Any) -> T:
        try:
            return factory(data)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise InvalidResponseException(f"Unexpected response content: {e!r}", cause=e)

    def _raise_for_status(self, response: HTTPResponse) -> None:
        status = response.status
        if 200 <= status < 300:
            return

        error_code, error_detail = self._error_details(response)
        message = error_detail or f"The API returned HTTP {status}"
        logger.warning(f"API error {status}: {error_code or '-'} {message}")

        if status in (401, 403):
            raise InvalidCredentialsException(message, error_code=error_code)
        if status == 429 or status >= 500:
            raise CommunicationErrorException(message, error_code=error_code)
        if 400 <= status < 500:
            raise InvalidRequestException(message, error_code=error_code)
        raise InvalidResponseException(f"Unexpected HTTP status {status}", error_code=error_code)

    def _error_details(self, response: HTTPResponse) -> Tuple[Optional[str], Optional[str]]:
        if not response.body:
            return None, None
        try:
            body = self._decrypt(response.body) if self._is_jose(response) else response.body
            data = json.loads(body)
        except (LaunchKeyError, ValueError) as e:
            logger.debug(f"Error response body could not be read: {e}")
            return None, None
        if not isinstance(data, dict):
            return None, None

        detail = data.get('error_detail')
        if detail is not None and not isinstance(detail, str):
            detail = json.dumps(detail)
        error_code = data.get('error_code')
        return (str(error_code) if error_code is not None else None), detail


def _header_value(headers: Headers, name: str) -> Optional[str]:
    name = name.lower()
    for header_name, value in headers.items():
        if header_name.lower() == name:
            if isinstance(value, (list, tuple)):
                return value[0] if value else None
            return value
    return None
