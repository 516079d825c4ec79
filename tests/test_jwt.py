"""
Tests for IOV-JWT signing and verification.
"""

import time
import uuid
from datetime import timedelta

import jwt
import pytest

from launchkey.crypto.jwt import JWTClaims, JWTService
from launchkey.crypto.keys import KeyStore, fingerprint
from launchkey.errors import (
    ExpiredClaimsError,
    InvalidSignatureException,
    JWTError,
    NoKeyFoundException,
    UnknownEntityException,
)

ISSUER = "svc:5e3f1b6c-9a53-11e7-9f2b-0469f8dc10a5"


@pytest.fixture
def api_keys(api_key):
    store = KeyStore(name="api keys")
    store.add(api_key.public_key())
    return store


def api_token(api_key, **overrides):
    now = int(time.time())
    claims = {
        'aud': ISSUER,
        'iss': 'lka',
        'sub': ISSUER,
        'iat': now,
        'nbf': now,
        'exp': now + 5,
        'jti': "token-id",
        'response': {'status': 200, 'func': 'S256', 'hash': 'abc', 'cache': 'no-cache', 'location': '/x'},
    }
    claims.update(overrides)
    return jwt.encode(claims, api_key, algorithm="RS256", headers={'kid': fingerprint(api_key)})


class TestEncode:
    """Test request token creation"""

    def test_claims(self, private_keys, client_key):
        """Token carries the request binding claims"""
        service = JWTService(private_keys)
        token = service.encode("jti-1", ISSUER, "dir:x", 1000, "post", "/path", "S256", "hash")

        payload = jwt.decode(token, client_key.public_key(), algorithms=["RS256"], audience="lka",
                             options={'verify_exp': False, 'verify_iat': False})
        assert payload['iss'] == ISSUER
        assert payload['sub'] == "dir:x"
        assert payload['iat'] == 1000
        assert payload['nbf'] == 1000
        assert payload['exp'] == 1005
        assert payload['jti'] == "jti-1"
        assert payload['request'] == {'meth': "POST", 'path': "/path", 'func': "S256", 'hash': "hash"}

    def test_header(self, private_keys, client_key):
        """Token header names the current private key"""
        token = JWTService(private_keys).encode(str(uuid.uuid4()), ISSUER, ISSUER, int(time.time()), "GET", "/")

        header = jwt.get_unverified_header(token)
        assert header['kid'] == fingerprint(client_key)
        assert header['typ'] == "JWT"
        assert header['alg'] == "RS256"

    def test_no_body_hash(self, private_keys, client_key):
        """Requests without a body carry no hash"""
        token = JWTService(private_keys).encode("jti", ISSUER, ISSUER, int(time.time()), "GET", "/")

        payload = jwt.decode(token, client_key.public_key(), algorithms=["RS256"], audience="lka")
        assert payload['request'] == {'meth': "GET", 'path': "/"}

    def test_configured_lifetime(self, private_keys, client_key):
        """Request lifetime sets the expiry"""
        service = JWTService(private_keys, request_lifetime=timedelta(seconds=30))
        token = service.encode("jti", ISSUER, ISSUER, 2000, "GET", "/")

        payload = jwt.decode(token, client_key.public_key(), algorithms=["RS256"], audience="lka",
                             options={'verify_exp': False, 'verify_iat': False})
        assert payload['exp'] == 2030

    def test_unsupported_algorithm(self, private_keys):
        """Only RSA algorithms are accepted"""
        with pytest.raises(JWTError):
            JWTService(private_keys, algorithm="HS256")

    def test_no_private_key(self):
        """Signing without a key raises NoKeyFoundException"""
        with pytest.raises(NoKeyFoundException):
            JWTService(KeyStore()).encode("jti", ISSUER, ISSUER, 1000, "GET", "/")


class TestDecode:
    """Test response token verification"""

    def test_valid(self, private_keys, api_keys, api_key):
        """Valid tokens decode into claims"""
        claims = JWTService(private_keys).decode(api_token(api_key), api_keys.find, ISSUER, "token-id")

        assert claims == JWTClaims(
            token_id="token-id", issuer="lka", subject=ISSUER, audience=ISSUER,
            issued_at=claims.issued_at, not_before=claims.not_before, expires_at=claims.expires_at,
            content_hash_algorithm="S256", content_hash="abc", status_code=200,
            location="/x", cache_control="no-cache",
        )

    def test_request_claim(self, private_keys, api_keys, api_key):
        """Request claims of server-sent event tokens are exposed"""
        token = api_token(api_key, response=None,
                          request={'meth': "POST", 'path': "/webhook", 'func': "S384", 'hash': "def"})

        claims = JWTService(private_keys).decode(token, api_keys.find, ISSUER)

        assert claims.method == "POST"
        assert claims.path == "/webhook"
        assert claims.content_hash_algorithm == "S384"
        assert claims.content_hash == "def"
        assert claims.status_code is None

    def test_get_key_id(self, private_keys, api_key):
        """Key id is read from the token header"""
        assert JWTService(private_keys).get_key_id(api_token(api_key)) == fingerprint(api_key)

    def test_get_key_id_missing(self, private_keys, api_key):
        """Tokens without a key id raise NoKeyFoundException"""
        token = jwt.encode({'iss': 'lka'}, api_key, algorithm="RS256")

        with pytest.raises(NoKeyFoundException):
            JWTService(private_keys).get_key_id(token)

    def test_get_key_id_garbage(self, private_keys):
        """Unparseable tokens raise JWTError"""
        with pytest.raises(JWTError):
            JWTService(private_keys).get_key_id("garbage")

    def test_unknown_key(self, private_keys, api_key):
        """Tokens signed by unknown keys raise NoKeyFoundException"""
        with pytest.raises(NoKeyFoundException):
            JWTService(private_keys).decode(api_token(api_key), KeyStore().find, ISSUER)

    def test_invalid_signature(self, private_keys, api_keys, api_key):
        """Tampered signatures raise InvalidSignatureException"""
        header, payload, signature = api_token(api_key).split('.')
        middle = len(signature) // 2
        signature = signature[:middle] + ('A' if signature[middle] != 'A' else 'B') + signature[middle + 1:]

        with pytest.raises(InvalidSignatureException):
            JWTService(private_keys).decode('.'.join([header, payload, signature]), api_keys.find, ISSUER)

    def test_signed_by_other_key(self, private_keys, api_keys, api_key, other_api_key):
        """Signature by a different key under a known key id is rejected"""
        token = jwt.encode({'aud': ISSUER, 'iss': 'lka', 'iat': int(time.time()), 'exp': int(time.time()) + 5},
                           other_api_key, algorithm="RS256", headers={'kid': fingerprint(api_key)})

        with pytest.raises(InvalidSignatureException):
            JWTService(private_keys).decode(token, api_keys.find, ISSUER)

    def test_expired(self, private_keys, api_keys, api_key):
        """Expired tokens raise ExpiredClaimsError"""
        token = api_token(api_key, iat=1000, nbf=1000, exp=1005)

        with pytest.raises(ExpiredClaimsError):
            JWTService(private_keys).decode(token, api_keys.find, ISSUER)

    def test_not_yet_valid(self, private_keys, api_keys, api_key):
        """Tokens from the future raise ExpiredClaimsError"""
        future = int(time.time()) + 3600
        token = api_token(api_key, iat=future, nbf=future, exp=future + 5)

        with pytest.raises(ExpiredClaimsError):
            JWTService(private_keys).decode(token, api_keys.find, ISSUER)

    def test_leeway(self, private_keys, api_keys, api_key):
        """Clock skew within the leeway is tolerated"""
        now = int(time.time())
        token = api_token(api_key, iat=now - 20, nbf=now - 20, exp=now - 3)

        claims = JWTService(private_keys, leeway=timedelta(seconds=10)).decode(token, api_keys.find, ISSUER)

        assert claims.token_id == "token-id"

    def test_max_age(self, private_keys, api_keys, api_key):
        """Tokens issued longer ago than the maximum age are rejected"""
        now = int(time.time())
        token = api_token(api_key, iat=now - 120, nbf=now - 120, exp=now + 60)
        service = JWTService(private_keys, max_age=timedelta(seconds=60))

        with pytest.raises(ExpiredClaimsError):
            service.decode(token, api_keys.find, ISSUER)

    def test_wrong_audience(self, private_keys, api_keys, api_key):
        """Tokens for another audience raise UnknownEntityException"""
        with pytest.raises(UnknownEntityException):
            JWTService(private_keys).decode(api_token(api_key), api_keys.find, "svc:" + str(uuid.uuid4()))

    def test_wrong_issuer(self, private_keys, api_keys, api_key):
        """Tokens not issued by the API raise JWTError"""
        with pytest.raises(JWTError):
            JWTService(private_keys).decode(api_token(api_key, iss="someone"), api_keys.find, ISSUER)

    def test_token_id_mismatch(self, private_keys, api_keys, api_key):
        """Token id must match the request's"""
        with pytest.raises(JWTError):
            JWTService(private_keys).decode(api_token(api_key), api_keys.find, ISSUER, "other-id")

    def test_missing_expiry(self, private_keys, api_keys, api_key):
        """Tokens must carry an expiry"""
        token = jwt.encode({'aud': ISSUER, 'iss': 'lka', 'iat': int(time.time())}, api_key,
                           algorithm="RS256", headers={'kid': fingerprint(api_key)})

        with pytest.raises(JWTError):
            JWTService(private_keys).decode(token, api_keys.find, ISSUER)

    def test_response_claim_not_an_object(self, private_keys, api_keys, api_key):
        """Signed tokens with a non-object response claim raise JWTError"""
        with pytest.raises(JWTError):
            JWTService(private_keys).decode(api_token(api_key, response="ok"), api_keys.find, ISSUER)

    def test_request_claim_not_an_object(self, private_keys, api_keys, api_key):
        """Signed tokens with a non-object request claim raise JWTError"""
        token = api_token(api_key, response=None, request="x")

        with pytest.raises(JWTError):
            JWTService(private_keys).decode(token, api_keys.find, ISSUER)

    def test_non_numeric_status(self, private_keys, api_keys, api_key):
        """Signed tokens with a non-numeric status raise JWTError"""
        token = api_token(api_key, response={'status': "ok"})

        with pytest.raises(JWTError):
            JWTService(private_keys).decode(token, api_keys.find, ISSUER)


class TestClaims:
    """Test building claims from a payload"""

    @pytest.mark.parametrize("payload", [
        {'response': {'status': "ok"}},
        {'response': {'status': [200]}},
        {'request': "x"},
        {'response': ["status", 200]},
    ])
    def test_malformed_claims(self, payload):
        """Malformed binding claims raise JWTError"""
        with pytest.raises(JWTError):
            JWTClaims.from_dict(payload)

    def test_string_status(self):
        """Numeric strings are accepted as status codes"""
        assert JWTClaims.from_dict({'response': {'status': "204"}}).status_code == 204
