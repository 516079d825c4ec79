"""
Package transport carries typed requests to the LaunchKey API and back.

This package implements:
- The abstract Transport contract, one coroutine per endpoint
- JOSETransport: IOV-JWT signing plus JWE encryption of every exchange
- An aiohttp backed HTTP client
- Request, response and server-sent event objects
"""

from .base import Transport
from .jose import JOSETransport
from .http import HTTPClient, HTTPResponse, AiohttpClient
from . import domain

__all__ = [
    'Transport',
    'JOSETransport',
    'HTTPClient',
    'HTTPResponse',
    'AiohttpClient',
    'domain',
]
