"""
JWT service for the LaunchKey SDK.

Requests are authenticated with IOV-JWT tokens: RSA signed JWTs whose
``request`` claim binds the HTTP method, path and body hash. Responses and
server-sent events carry a token signed by the API whose ``response`` or
``request`` claim binds the body the same way.
"""

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional, Union

import jwt

from ..errors import (
    ExpiredClaimsError, InvalidSignatureException, JWTError,
    NoKeyFoundException, UnknownEntityException
)
from .keys import KeyStore, RSAKey

logger = logging.getLogger(__name__)

SUPPORTED_ALGORITHMS = ("RS256", "RS384", "RS512")


@dataclass(frozen=True)
class JWTClaims:
    """Decoded IOV-JWT claims."""
    token_id: Optional[str]
    issuer: Optional[str]
    subject: Optional[str]
    audience: Optional[str]
    issued_at: Optional[int]
    not_before: Optional[int]
    expires_at: Optional[int]
    content_hash_algorithm: Optional[str] = None
    content_hash: Optional[str] = None
    method: Optional[str] = None
    path: Optional[str] = None
    status_code: Optional[int] = None
    location: Optional[str] = None
    cache_control: Optional[str] = None

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> 'JWTClaims':
        """Create from a decoded JWT payload. Malformed claims raise JWTError."""
        request = payload.get('request') or {}
        response = payload.get('response') or {}
        if not isinstance(request, dict) or not isinstance(response, dict):
            raise JWTError("JWT request and response claims must be objects")
        body = response or request
        status = response.get('status')
        try:
            status_code = int(status) if status is not None else None
        except (TypeError, ValueError) as e:
            raise JWTError(f"JWT response status is not a number: {status!r}", cause=e)
        audience = payload.get('aud')
        if isinstance(audience, list):
            audience = audience[0] if audience else None

        return cls(
            token_id=payload.get('jti'),
            issuer=payload.get('iss'),
            subject=payload.get('sub'),
            audience=audience,
            issued_at=payload.get('iat'),
            not_before=payload.get('nbf'),
            expires_at=payload.get('exp'),
            content_hash_algorithm=body.get('func'),
            content_hash=body.get('hash'),
            method=request.get('meth'),
            path=request.get('path'),
            status_code=status_code,
            location=response.get('location'),
            cache_control=response.get('cache'),
        )


class JWTService:
    """Signs request tokens and verifies tokens issued by the API."""

    def __init__(
        self,
        private_keys: KeyStore,
        api_identifier: str = "lka",
        algorithm: str = "RS256",
        request_lifetime: timedelta = timedelta(seconds=5),
        leeway: timedelta = timedelta(seconds=5),
        max_age: Optional[timedelta] = None
    ):
        if algorithm not in SUPPORTED_ALGORITHMS:
            raise JWTError(f"Unsupported JWT algorithm: {algorithm}")
        self.private_keys = private_keys
        self.api_identifier = api_identifier
        self.algorithm = algorithm
        self.request_lifetime = request_lifetime
        self.leeway = leeway
        self.max_age = max_age

    def encode(
        self,
        token_id: str,
        issuer: str,
        subject: str,
        issued_at: Union[datetime, int],
        method: str,
        path: str,
        content_hash_algorithm: Optional[str] = None,
        content_hash: Optional[str] = None
    ) -> str:
        """Create a signed request token with the current private key."""
        if isinstance(issued_at, datetime):
            issued_at = int(issued_at.timestamp())

        request: Dict[str, Any] = {'meth': method.upper(), 'path': path}
        if content_hash is not None:
            request['func'] = content_hash_algorithm
            request['hash'] = content_hash

        claims = {
            'aud': self.api_identifier,
            'iss': issuer,
            'sub': subject,
            'iat': issued_at,
            'nbf': issued_at,
            'exp': issued_at + int(self.request_lifetime.total_seconds()),
            'jti': token_id,
            'request': request,
        }

        key_id, private_key = self.private_keys.current()
        try:
            token = jwt.encode(claims, private_key, algorithm=self.algorithm,
                               headers={'kid': key_id, 'typ': 'JWT'})
        except (jwt.PyJWTError, ValueError, TypeError) as e:
            logger.error(f"JWT generation failed: {e}")
            raise JWTError("Unable to create JWT", cause=e)

        return token.decode('utf-8') if isinstance(token, bytes) else token

    def get_key_id(self, token: str) -> str:
        """Read the ``kid`` header of ``token`` without verifying it."""
        try:
            header = jwt.get_unverified_header(token)
        except jwt.PyJWTError as e:
            raise JWTError("Unable to parse JWT header", cause=e)

        key_id = header.get('kid')
        if not key_id:
            raise NoKeyFoundException("JWT header does not contain a key id")
        return str(key_id)

    def decode(
        self,
        token: str,
        key_resolver: Callable[[str], Optional[RSAKey]],
        audience: str,
        token_id: Optional[str] = None
    ) -> JWTClaims:
        """
        Verify ``token`` against the public key ``key_resolver`` returns for
        its ``kid`` and return its claims.

        Raises:
            NoKeyFoundException: no key is known for the token's key id
            InvalidSignatureException: the signature does not validate
            ExpiredClaimsError: the token is expired, not yet valid or too old
            UnknownEntityException: the token is addressed to another entity
            JWTError: the token is otherwise malformed
        """
        key_id = self.get_key_id(token)
        public_key = key_resolver(key_id)
        if public_key is None:
            raise NoKeyFoundException(f"No public key found for key id {key_id}")

        try:
            payload = jwt.decode(
                token,
                public_key,
                algorithms=list(SUPPORTED_ALGORITHMS),
                audience=audience,
                issuer=self.api_identifier,
                leeway=self.leeway,
                options={'require': ['iat', 'exp']},
            )
        except jwt.InvalidSignatureError as e:
            logger.warning(f"JWT signature verification failed for key {key_id}")
            raise InvalidSignatureException("JWT signature is invalid", cause=e)
        except (jwt.ExpiredSignatureError, jwt.ImmatureSignatureError) as e:
            logger.warning(f"JWT is outside its validity window: {e}")
            raise ExpiredClaimsError("JWT is outside its validity window", cause=e)
        except jwt.InvalidAudienceError as e:
            logger.warning(f"JWT audience does not match {audience}")
            raise UnknownEntityException("JWT audience does not match the expected entity", cause=e)
        except jwt.PyJWTError as e:
            logger.warning(f"JWT validation failed: {e}")
            raise JWTError(f"Invalid JWT: {e}", cause=e)

        if self.max_age is not None:
            oldest = time.time() - self.max_age.total_seconds() - self.leeway.total_seconds()
            if payload['iat'] < oldest:
                raise ExpiredClaimsError("JWT was issued too long ago")

        if token_id is not None and payload.get('jti') != token_id:
            raise JWTError("JWT token id does not match the request token id")

        return JWTClaims.from_dict(payload)
