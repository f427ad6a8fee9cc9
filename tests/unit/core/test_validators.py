# tests/unit/core/test_validators.py - v1
"""Tests for core/validators.py - URL and operator score validation."""

from __future__ import annotations

import pytest

from assessflow.core.validators import validate_score, validate_url


class TestValidateUrl:
    def test_adds_https_scheme(self):
        result = validate_url("acme.com")
        assert result.valid is True
        assert result.url == "https://acme.com"

    def test_keeps_existing_scheme(self):
        assert validate_url("http://acme.com/about").url == "http://acme.com/about"

    def test_trims_whitespace(self):
        assert validate_url("  www.acme.com  ").url == "https://www.acme.com"

    @pytest.mark.parametrize("raw", [None, "", 42])
    def test_required(self, raw):
        result = validate_url(raw)
        assert result.valid is False
        assert result.error == "URL is required"

    def test_blank(self):
        result = validate_url("   ")
        assert result.valid is False
        assert result.error == "URL cannot be empty"

    def test_host_without_dot(self):
        result = validate_url("localhost")
        assert result.valid is False
        assert result.error == "Invalid domain name"

    def test_malformed(self):
        result = validate_url("https://[acme.com")
        assert result.valid is False
        assert result.error == "Invalid URL format"


class TestValidateScore:
    JUSTIFICATION = "Strong founding team with prior exits in robotics."

    def test_valid(self):
        result = validate_score(7, self.JUSTIFICATION)
        assert result.valid is True
        assert result.errors == []

    @pytest.mark.parametrize("score", [0, 10, "5", 5.0, True])
    def test_invalid_score(self, score):
        result = validate_score(score, self.JUSTIFICATION)
        assert result.valid is False
        assert "Score must be between 1 and 9" in result.errors

    def test_bounds_inclusive(self):
        assert validate_score(1, self.JUSTIFICATION).valid
        assert validate_score(9, self.JUSTIFICATION).valid

    def test_missing_justification(self):
        result = validate_score(5, "")
        assert result.errors == ["Justification is required"]

    def test_short_justification_after_trim(self):
        result = validate_score(5, "   too short      ")
        assert result.valid is False
        assert "at least 20" in result.errors[0]

    def test_long_justification(self):
        result = validate_score(5, "x" * 2001)
        assert result.valid is False
        assert "less than 2000" in result.errors[0]

    def test_collects_all_errors(self):
        result = validate_score(0, "short")
        assert len(result.errors) == 2
