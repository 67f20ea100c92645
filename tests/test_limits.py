"""
Tests for the engine limits loader.
"""
import json

import pytest
from pydantic import ValidationError

from estimator.limits import (
    DEFAULT_LIMITS,
    LIMITS_ENV_VAR,
    ConfigurationError,
    EngineLimits,
    load_limits,
)


class TestLoadLimits:
    """Tests for load_limits."""

    def test_defaults(self):
        assert DEFAULT_LIMITS.max_units == 50000
        assert DEFAULT_LIMITS.max_tax_rate == 0.25
        assert DEFAULT_LIMITS.fully_paid_tolerance == 0.01

    def test_bundled_file(self):
        limits = load_limits()
        assert limits.max_markup_rate == 5.0
        assert limits.currency_precision == 2

    def test_missing_file_gives_defaults(self, tmp_path):
        assert load_limits(tmp_path / "nope.json") == DEFAULT_LIMITS

    def test_overrides_merge_over_defaults(self, tmp_path):
        path = tmp_path / "engine.json"
        path.write_text(json.dumps({"fully_paid_tolerance": 0.05}), encoding="utf-8")
        limits = load_limits(path)
        assert limits.fully_paid_tolerance == 0.05
        assert limits.max_units == DEFAULT_LIMITS.max_units

    def test_env_var_path(self, tmp_path, monkeypatch):
        path = tmp_path / "custom.json"
        path.write_text(json.dumps({"max_units": 10}), encoding="utf-8")
        monkeypatch.setenv(LIMITS_ENV_VAR, str(path))
        assert load_limits().max_units == 10

    @pytest.mark.parametrize("content", ["{not json", "[1, 2]", '{"max_units": -1}'])
    def test_malformed_file_raises(self, tmp_path, content):
        path = tmp_path / "engine.json"
        path.write_text(content, encoding="utf-8")
        with pytest.raises(ConfigurationError):
            load_limits(path)

    def test_limits_are_frozen(self):
        with pytest.raises(ValidationError):
            EngineLimits().max_units = 1
