"""
Tests for session tokens and PII masking.
"""

from datetime import datetime, timedelta, timezone

import jwt
import pytest

from core.config import settings
from core.errors import AuthRequired
from core.security import (
    create_session_token,
    decode_session_token,
    extract_bearer_token,
    mask_pii,
)


class TestSessionTokens:
    """Bearer tokens naming a session record."""

    def test_round_trip_claims(self):
        token = create_session_token("ana", "session-1")
        claims = decode_session_token(token)

        assert claims["sub"] == "ana"
        assert claims["sid"] == "session-1"
        assert claims["exp"] > claims["iat"]

    def test_expired_token(self):
        token = create_session_token("ana", "session-1", expires_minutes=-1)

        with pytest.raises(AuthRequired, match="expired"):
            decode_session_token(token)

    def test_wrong_signature(self):
        token = jwt.encode(
            {"sub": "ana", "sid": "s1", "exp": datetime.now(timezone.utc) + timedelta(minutes=5)},
            "some-other-secret-key-that-is-long-enough",
            algorithm="HS256",
        )

        with pytest.raises(AuthRequired, match="Invalid"):
            decode_session_token(token)

    def test_missing_session_claim(self):
        token = jwt.encode(
            {"sub": "ana", "exp": datetime.now(timezone.utc) + timedelta(minutes=5)},
            settings.jwt_secret_key,
            algorithm=settings.jwt_algorithm,
        )

        with pytest.raises(AuthRequired):
            decode_session_token(token)

    @pytest.mark.parametrize("token", ["", "not-a-jwt", "a.b.c"])
    def test_malformed_token(self, token):
        with pytest.raises(AuthRequired):
            decode_session_token(token)


class TestBearerExtraction:
    @pytest.mark.parametrize("header,expected", [
        ("Bearer abc.def.ghi", "abc.def.ghi"),
        ("bearer abc", "abc"),
        ("Basic dXNlcjpwYXNz", None),
        ("Bearer ", None),
        ("", None),
        (None, None),
    ])
    def test_extract(self, header, expected):
        assert extract_bearer_token(header) == expected


class TestPIIMasking:
    def test_partial_masking(self):
        masked = mask_pii({"email": "ana@example.com", "jobId": "j1"})

        assert masked["email"] == "a***[15]"
        assert masked["jobId"] == "j1"

    def test_case_insensitive_keys(self):
        masked = mask_pii({"firstName": "Ana", "LASTNAME": "Tester", "adminEmail": "root@example.com"})
        assert all("***" in value for value in masked.values())

    def test_non_string_values(self):
        assert mask_pii({"phone": None, "name": ""}) == {"phone": "[MASKED]", "name": "[MASKED]"}

    def test_nested_and_lists(self):
        masked = mask_pii({"metadata": {"applicantName": "Ana"}, "items": [{"email": "x@y.z"}] * 8})

        assert masked["metadata"]["applicantName"] == "A***[3]"
        assert len(masked["items"]) == 5

    def test_max_depth(self):
        data = {"a": "b"}
        for _ in range(12):
            data = {"n": data}
        assert "[MAX_DEPTH]" in str(mask_pii(data))
