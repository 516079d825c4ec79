"""
Error taxonomy for the LaunchKey SDK.

Every failure surfaced by the SDK is a ``LaunchKeyError``. Each class carries
a structured ``ErrorKind`` tag and a ``retryable`` flag so callers can tell a
transient communication fault from a fatal credential or signature problem
without matching on class names. Errors may also carry the upstream error code
string returned by the LaunchKey API.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    """Kinds of failures the SDK can report."""

    COMMUNICATION = "communication_error"
    MARSHALLING = "marshalling_error"
    INVALID_REQUEST = "invalid_request"
    INVALID_RESPONSE = "invalid_response"
    INVALID_CREDENTIALS = "invalid_credentials"
    CRYPTOGRAPHY = "cryptography_error"
    INVALID_SIGNATURE = "invalid_signature"
    NO_KEY_FOUND = "no_key_found"
    AUTHORIZATION_REQUEST_TIMED_OUT = "authorization_request_timed_out"
    UNKNOWN_ENTITY = "unknown_entity"
    CONFIGURATION = "configuration_error"

    def __str__(self) -> str:
        return self.value


class LaunchKeyError(Exception):
    """
    Base exception for all LaunchKey SDK errors.

    Provides the error kind, whether the operation may be retried as-is,
    the optional upstream error code and the underlying cause.
    """

    kind: ErrorKind = ErrorKind.COMMUNICATION
    retryable: bool = False

    def __init__(
        self,
        message: Optional[str] = None,
        cause: Optional[BaseException] = None,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.cause = cause
        self.error_code = error_code
        self.details = details or {}
        if cause is not None:
            self.__cause__ = cause

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary representation."""
        result = {
            'error': self.kind.value,
            'message': self.message,
            'retryable': self.retryable,
        }

        if self.error_code:
            result['error_code'] = self.error_code
        if self.details:
            result['details'] = self.details
        if self.cause is not None:
            result['cause'] = str(self.cause)

        return result

    def __eq__(self, other: object) -> bool:
        if self is other:
            return True
        if type(other) is not type(self):
            return NotImplemented
        return (
            self.message == other.message
            and self.cause is other.cause
            and self.error_code == other.error_code
        )

    def __hash__(self) -> int:
        return hash((type(self).__name__, self.message, id(self.cause) if self.cause is not None else None,
                     self.error_code))

    def __str__(self) -> str:
        if self.error_code:
            return f"{self.error_code}: {self.message}"
        return self.message or ""

    def __repr__(self) -> str:
        return (f"{type(self).__name__}(message={self.message!r}, cause={self.cause!r}, "
                f"error_code={self.error_code!r})")


class CommunicationErrorException(LaunchKeyError):
    """Raised when the API could not be reached or returned a server error."""

    kind = ErrorKind.COMMUNICATION
    retryable = True


class MarshallingError(LaunchKeyError):
    """Raised when a request cannot be serialized or a response de-serialized locally."""

    kind = ErrorKind.MARSHALLING


class InvalidRequestException(LaunchKeyError):
    """Raised when the API rejects the content of a request."""

    kind = ErrorKind.INVALID_REQUEST


class InvalidResponseException(LaunchKeyError):
    """Raised when a response cannot be parsed or understood."""

    kind = ErrorKind.INVALID_RESPONSE
    retryable = True


class InvalidCredentialsException(LaunchKeyError):
    """Raised when the API rejects the credentials used to sign a request."""

    kind = ErrorKind.INVALID_CREDENTIALS


class AuthorizationRequestTimedOutError(LaunchKeyError):
    """Raised when a polled authorization request expired before the user responded."""

    kind = ErrorKind.AUTHORIZATION_REQUEST_TIMED_OUT


class UnknownEntityException(LaunchKeyError):
    """Raised when an entity identifier does not match any expected entity."""

    kind = ErrorKind.UNKNOWN_ENTITY


class ConfigurationError(LaunchKeyError):
    """Raised when the SDK configuration is incomplete or inconsistent."""

    kind = ErrorKind.CONFIGURATION

    def __init__(self, message: str, config_key: Optional[str] = None,
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details=details)
        self.config_key = config_key
        if config_key:
            self.details['config_key'] = config_key


class CryptographyError(LaunchKeyError):
    """Raised when encryption, decryption, signing or verification fails."""

    kind = ErrorKind.CRYPTOGRAPHY


class JWEFailure(CryptographyError):
    """Raised when a JWE envelope cannot be created, parsed or decrypted."""


class JWTError(CryptographyError):
    """Raised when a JWT cannot be created, parsed or validated."""


class InvalidSignatureException(JWTError):
    """Raised when a signature or signed content hash does not validate."""

    kind = ErrorKind.INVALID_SIGNATURE


class ExpiredClaimsError(JWTError, AuthorizationRequestTimedOutError):
    """Raised when the time-bound claims of a JWT are outside the accepted window."""

    kind = ErrorKind.AUTHORIZATION_REQUEST_TIMED_OUT


class NoKeyFoundException(CryptographyError):
    """Raised when no known key matches the requested key id."""

    kind = ErrorKind.NO_KEY_FOUND


__all__ = [
    'ErrorKind',
    'LaunchKeyError',
    'CommunicationErrorException',
    'MarshallingError',
    'InvalidRequestException',
    'InvalidResponseException',
    'InvalidCredentialsException',
    'AuthorizationRequestTimedOutError',
    'UnknownEntityException',
    'ConfigurationError',
    'CryptographyError',
    'JWEFailure',
    'JWTError',
    'InvalidSignatureException',
    'ExpiredClaimsError',
    'NoKeyFoundException',
]
