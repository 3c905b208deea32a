"""
Tests for settings, security helpers and startup validation.
"""
from datetime import timedelta

import pytest
from pydantic import ValidationError as PydanticValidationError

from fileshare.config import Environment, Settings, get_settings
from fileshare.exceptions import ExpiredLinkError, NotFoundError, ValidationError
from fileshare.utils.config_validator import validate_configuration
from fileshare.utils.logger import token_hint
from fileshare.utils.security import (
    create_access_token,
    decode_access_token,
    generate_share_token,
)


class TestSettings:

    def test_password_window_must_be_ordered(self):
        with pytest.raises(PydanticValidationError):
            Settings(share_password_min_length=10, share_password_max_length=5)

    def test_token_entropy_floor(self):
        with pytest.raises(PydanticValidationError):
            Settings(share_token_bytes=8)

    def test_empty_database_url_falls_back(self):
        assert Settings(database_url="").database_url.startswith("sqlite+aiosqlite")


class TestSecurity:

    def test_share_token_length(self):
        assert len(generate_share_token(16)) >= 22
        assert generate_share_token() != generate_share_token()

    def test_access_token_round_trip(self):
        payload = decode_access_token(create_access_token(7))
        assert payload is not None
        assert payload.sub == 7

    def test_expired_access_token(self):
        assert decode_access_token(create_access_token(7, timedelta(seconds=-5))) is None

    def test_garbage_access_token(self):
        assert decode_access_token("a.b.c") is None

    def test_token_hint_is_short(self):
        assert token_hint("abcdefghijklmnop") == "abcdef..."
        assert token_hint("") == ""


class TestErrors:

    def test_status_codes(self):
        assert NotFoundError().status_code == 404
        assert ExpiredLinkError().status_code == 410
        assert isinstance(ExpiredLinkError(), NotFoundError)

    def test_validation_error_body(self):
        body = ValidationError("too short", constraint="min_length").to_dict()
        assert body == {"detail": "too short", "code": "validation_error", "constraint": "min_length"}


class TestStartupValidation:

    @pytest.mark.asyncio
    async def test_skipped_outside_production(self):
        await validate_configuration()

    @pytest.mark.asyncio
    async def test_production_requires_storage_and_secret(self, monkeypatch):
        settings = get_settings()
        monkeypatch.setattr(settings, "environment", Environment.PRODUCTION)
        monkeypatch.setattr(settings, "s3_access_key", "")
        monkeypatch.setattr(settings, "jwt_secret_key", "jwt-secret-change-in-production")

        with pytest.raises(ValueError) as exc_info:
            await validate_configuration()

        message = str(exc_info.value)
        assert "S3_ACCESS_KEY" in message
        assert "JWT_SECRET_KEY" in message

    @pytest.mark.asyncio
    async def test_production_ok(self, monkeypatch):
        settings = get_settings()
        monkeypatch.setattr(settings, "environment", Environment.PRODUCTION)
        monkeypatch.setattr(settings, "s3_access_key", "key")
        monkeypatch.setattr(settings, "s3_secret_key", "secret")

        await validate_configuration()
