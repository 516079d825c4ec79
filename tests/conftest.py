"""
Shared fixtures for the LaunchKey SDK tests.

``FakeLaunchKeyAPI`` stands in for the API behind an ``HTTPClient``: it
verifies request tokens, decrypts request bodies with the API key and answers
with signed, encrypted responses the way the real service does.
"""

import hashlib
import json
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import jwt
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from launchkey.core.config import Config
from launchkey.crypto.jwe import JWEService
from launchkey.crypto.keys import KeyStore, fingerprint, public_key_pem
from launchkey.domain.entity import EntityIdentifier
from launchkey.transport.http import HTTPClient, HTTPResponse

BASE_URL = "https://api.launchkey.test"
SERVICE_ID = "5e3f1b6c-9a53-11e7-9f2b-0469f8dc10a5"


def generate_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


def private_key_pem(key: rsa.RSAPrivateKey) -> str:
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption()
    ).decode('ascii')


@pytest.fixture(scope="session")
def client_key():
    return generate_key()


@pytest.fixture(scope="session")
def other_client_key():
    return generate_key()


@pytest.fixture(scope="session")
def client_key_pem(client_key):
    return private_key_pem(client_key)


@pytest.fixture(scope="session")
def api_key():
    return generate_key()


@pytest.fixture(scope="session")
def other_api_key():
    return generate_key()


@pytest.fixture
def issuer():
    return EntityIdentifier.service(SERVICE_ID)


@pytest.fixture
def private_keys(client_key):
    store = KeyStore(name="test private keys")
    store.add(client_key)
    return store


@pytest.fixture
def config(issuer, private_keys):
    """Create a test configuration"""
    return Config(issuer=issuer, private_keys=private_keys, base_url=BASE_URL)


@dataclass
class RecordedRequest:
    method: str
    path: str
    headers: Dict[str, str]
    body: Optional[str]
    claims: Optional[Dict[str, Any]] = None
    plaintext: Optional[str] = None


@dataclass
class Route:
    status: int = 200
    payload: Any = None
    encrypt: bool = True
    signed: bool = True
    claim_overrides: Dict[str, Any] = field(default_factory=dict)
    response_overrides: Dict[str, Any] = field(default_factory=dict)
    body_override: Optional[str] = None
    content_type: Optional[str] = None


class FakeLaunchKeyAPI(HTTPClient):
    """In-memory LaunchKey API."""

    def __init__(self, api_key: rsa.RSAPrivateKey, client_key: rsa.RSAPrivateKey, issuer: EntityIdentifier):
        self.api_key = api_key
        self.api_key_id = fingerprint(api_key)
        self.client_key = client_key
        self.issuer = str(issuer)
        self.jwe = JWEService(api_key)
        self.routes: Dict[Tuple[str, str], Route] = {}
        self.public_keys: Dict[str, rsa.RSAPrivateKey] = {self.api_key_id: api_key}
        self.requests: List[RecordedRequest] = []
        self.closed = False

    def route(self, method: str, path: str, status: int = 200, payload: Any = None, **kwargs) -> Route:
        route = Route(status=status, payload=payload, **kwargs)
        self.routes[(method, path)] = route
        return route

    def requests_to(self, path: str) -> List[RecordedRequest]:
        return [request for request in self.requests if request.path == path]

    def sign(self, claims: Dict[str, Any], key: Optional[rsa.RSAPrivateKey] = None) -> str:
        key = key or self.api_key
        return jwt.encode(claims, key, algorithm="RS256", headers={'kid': fingerprint(key), 'typ': 'JWT'})

    def encrypt(self, plaintext: str) -> str:
        return self.jwe.encrypt(plaintext, self.client_key.public_key(), fingerprint(self.client_key),
                                "application/json")

    def server_sent_event(self, payload: Dict[str, Any], subject: str, encrypt: bool = True,
                          path: str = "/webhook", **claim_overrides) -> Tuple[Dict[str, List[str]], str]:
        """Headers and body of a server-sent event as the API would deliver it."""
        plaintext = json.dumps(payload)
        body = self.encrypt(plaintext) if encrypt else plaintext
        now = int(time.time())
        claims = {
            'aud': self.issuer,
            'iss': 'lka',
            'sub': subject,
            'iat': now,
            'nbf': now,
            'exp': now + 5,
            'jti': str(uuid.uuid4()),
            'request': {
                'meth': 'POST',
                'path': path,
                'func': 'S256',
                'hash': hashlib.sha256(body.encode('utf-8')).hexdigest(),
            },
        }
        claims.update(claim_overrides)
        headers = {
            'X-IOV-JWT': [self.sign(claims)],
            'Content-Type': ['application/jose' if encrypt else 'application/json'],
        }
        return headers, body

    async def request(self, method: str, url: str,
                      headers: Optional[Dict[str, str]] = None,
                      body: Optional[str] = None) -> HTTPResponse:
        assert url.startswith(BASE_URL)
        path = url[len(BASE_URL):]
        headers = headers or {}
        recorded = RecordedRequest(method, path, dict(headers), body)
        self.requests.append(recorded)

        if path.startswith("/public/v3/public-key"):
            return self._public_key(path)

        route = self.routes.get((method, path))
        if route is None:
            return HTTPResponse(404, {'Content-Type': 'application/json'},
                                json.dumps({'error_code': 'NOT-FOUND', 'error_detail': path}))

        if path.startswith("/public/"):
            return HTTPResponse(route.status, {'Content-Type': 'application/json'}, json.dumps(route.payload))

        scheme, _, token = headers['Authorization'].partition(' ')
        assert scheme == "IOV-JWT"
        recorded.claims = jwt.decode(token, self.client_key.public_key(), algorithms=["RS256"], audience="lka")
        if body:
            assert headers['Content-Type'] == "application/jose"
            recorded.plaintext = self.jwe.decrypt(body)

        return self._response(route, recorded.claims)

    def _public_key(self, path: str) -> HTTPResponse:
        requested = path[len("/public/v3/public-key/"):] if path != "/public/v3/public-key" else None
        key_id = requested or self.api_key_id
        key = self.public_keys.get(key_id)
        if key is None:
            return HTTPResponse(404, {'Content-Type': 'application/json'},
                                json.dumps({'error_code': 'KEY-001', 'error_detail': 'Unknown key'}))
        return HTTPResponse(200, {'X-IOV-KEY-ID': key_id, 'Content-Type': 'text/plain'}, public_key_pem(key))

    def _response(self, route: Route, request_claims: Dict[str, Any]) -> HTTPResponse:
        body = ""
        content_type = "application/json"
        if route.payload is not None:
            plaintext = json.dumps(route.payload)
            if route.encrypt:
                body = self.encrypt(plaintext)
                content_type = "application/jose"
            else:
                body = plaintext
        if route.body_override is not None:
            body = route.body_override
        response_headers = {'Content-Type': route.content_type or content_type}

        if route.signed:
            now = int(time.time())
            response_claim: Dict[str, Any] = {'status': route.status, 'cache': 'no-cache'}
            if body:
                response_claim['func'] = 'S256'
                response_claim['hash'] = hashlib.sha256(body.encode('utf-8')).hexdigest()
            response_claim.update(route.response_overrides)
            claims = {
                'aud': self.issuer,
                'iss': 'lka',
                'sub': request_claims['sub'],
                'iat': now,
                'nbf': now,
                'exp': now + 5,
                'jti': request_claims['jti'],
                'response': response_claim,
            }
            claims.update(route.claim_overrides)
            response_headers['X-IOV-JWT'] = self.sign(claims)

        return HTTPResponse(route.status, response_headers, body)

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def api(api_key, client_key, issuer):
    return FakeLaunchKeyAPI(api_key, client_key, issuer)
