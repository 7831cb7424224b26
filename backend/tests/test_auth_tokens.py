from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import time

import jwt
import pytest

from auth.tokens import JWTIdentityVerifier, extract_token
from core.exceptions import AuthError

SECRET = "transcript-test-secret-0123456789abcdef"


def _token(claims, secret=SECRET):
    return jwt.encode(claims, secret, algorithm="HS256")


class TestExtractToken:

    def test_bearer_header(self):
        assert extract_token("Bearer abc.def.ghi", None) == "abc.def.ghi"

    def test_header_wins_over_cookie(self):
        assert extract_token("Bearer from-header", "from-cookie") == "from-header"

    def test_falls_back_to_session_cookie(self):
        assert extract_token(None, "from-cookie") == "from-cookie"

    @pytest.mark.parametrize("header", [None, "", "Basic dXNlcjpwdw==", "bearer lowercase"])
    def test_missing_credentials(self, header):
        with pytest.raises(AuthError, match="Unauthorized"):
            extract_token(header, None)


class TestJWTIdentityVerifier:

    @pytest.mark.parametrize("claim", ["user_id", "uid", "sub"])
    def test_user_id_claims(self, claim):
        identity = JWTIdentityVerifier(SECRET).verify(_token({claim: "u1"}))
        assert identity.user_id == "u1"

    def test_user_id_claim_preferred(self):
        identity = JWTIdentityVerifier(SECRET).verify(_token({"sub": "subject", "user_id": "u1"}))
        assert identity.user_id == "u1"

    def test_token_without_user_id(self):
        identity = JWTIdentityVerifier(SECRET).verify(_token({"email_verified": True}))
        assert identity.user_id == ""

    def test_wrong_secret_rejected(self):
        with pytest.raises(AuthError, match="Invalid token"):
            JWTIdentityVerifier(SECRET).verify(_token({"user_id": "u1"}, secret="other-secret"))

    def test_expired_token_rejected(self):
        token = _token({"user_id": "u1", "exp": int(time.time()) - 60})
        with pytest.raises(AuthError, match="expired"):
            JWTIdentityVerifier(SECRET).verify(token)

    def test_garbage_rejected(self):
        with pytest.raises(AuthError):
            JWTIdentityVerifier(SECRET).verify("not-a-jwt")

    def test_secret_required(self):
        with pytest.raises(AuthError):
            JWTIdentityVerifier("")
