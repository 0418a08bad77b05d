"""Tests for backend/callreveal/config.py — Settings validation."""
from __future__ import annotations

import os
import warnings
from pathlib import Path
from unittest.mock import patch

import pytest


class TestSecretValidation:
    """Verify JWT_SECRET / ENCRYPTION_KEY enforcement in Settings."""

    def test_empty_jwt_secret_raises_without_escape_hatch(self):
        from callreveal.config import Settings

        env = {"JWT_SECRET": "", "ENCRYPTION_KEY": "k", "ALLOW_INSECURE_JWT": "0"}
        with patch.dict(os.environ, env, clear=False):
            with pytest.raises(ValueError, match="JWT_SECRET is not set"):
                Settings(_env_file=None)

    def test_whitespace_jwt_secret_raises(self):
        """Whitespace-only JWT_SECRET should also be rejected."""
        from callreveal.config import Settings

        env = {"JWT_SECRET": "   ", "ENCRYPTION_KEY": "k", "ALLOW_INSECURE_JWT": "0"}
        with patch.dict(os.environ, env, clear=False):
            with pytest.raises(ValueError, match="JWT_SECRET is not set"):
                Settings(_env_file=None)

    def test_empty_encryption_key_raises(self):
        from callreveal.config import Settings

        env = {"JWT_SECRET": "s", "ENCRYPTION_KEY": "", "ALLOW_INSECURE_JWT": "0"}
        with patch.dict(os.environ, env, clear=False):
            with pytest.raises(ValueError, match="ENCRYPTION_KEY is not set"):
                Settings(_env_file=None)

    def test_allow_insecure_jwt_suppresses_error(self):
        """ALLOW_INSECURE_JWT=1 downgrades the error to a warning."""
        from callreveal.config import Settings

        env = {"JWT_SECRET": "", "ENCRYPTION_KEY": "", "ALLOW_INSECURE_JWT": "1"}
        with patch.dict(os.environ, env, clear=False):
            with warnings.catch_warnings(record=True) as w:
                warnings.simplefilter("always")
                s = Settings(_env_file=None)
                assert s.jwt_secret == ""
                assert s.allow_insecure_jwt is True
                assert any("INSECURE" in str(warning.message) for warning in w)

    def test_jwt_secret_whitespace_is_stripped(self):
        from callreveal.config import Settings

        env = {"JWT_SECRET": "  my-secret  ", "ENCRYPTION_KEY": "k"}
        with patch.dict(os.environ, env, clear=False):
            s = Settings(_env_file=None)
            assert s.jwt_secret == "my-secret"


class TestDefaults:
    def test_reveal_and_hint_defaults(self):
        from callreveal.config import Settings

        env = {"JWT_SECRET": "s", "ENCRYPTION_KEY": "k"}
        with patch.dict(os.environ, env, clear=False):
            s = Settings(_env_file=None)
        assert s.opening_utc_offset_minutes == -360
        assert s.max_hints == 3
        assert s.hint_session_ttl_seconds == 86400
        assert s.destination_cache_ttl_seconds == 86400
        assert s.advice_moderation is True

    def test_env_overrides(self):
        from callreveal.config import Settings

        env = {
            "JWT_SECRET": "s",
            "ENCRYPTION_KEY": "k",
            "MAX_HINTS": "5",
            "OPENING_UTC_OFFSET_MINUTES": "0",
            "MISSIONS_LIST_PATH": "/srv/missions.txt",
            "ADVICE_MODERATION": "false",
        }
        with patch.dict(os.environ, env, clear=False):
            s = Settings(_env_file=None)
        assert s.max_hints == 5
        assert s.opening_utc_offset_minutes == 0
        assert s.missions_list_path == Path("/srv/missions.txt")
        assert s.advice_moderation is False
