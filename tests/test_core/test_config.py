"""Tests for importer settings."""

import os
from unittest.mock import patch

from place_importer.core.config import Settings


class TestGeocodingSettings:
    """Throttle and backoff settings."""

    def test_should_have_default_throttle_timings(self):
        """Defaults match the documented resolver timings."""
        settings = Settings()

        assert settings.GEOCODING_THROTTLE_PAUSE == 1.0
        assert settings.GEOCODING_BACKOFF_STEP == 0.5
        assert settings.GEOCODING_BACKOFF_CAP == 2.0
        assert settings.GEOCODING_VARIANT_DELAY == 0.15
        assert settings.GEOCODING_INTER_ITEM_DELAY == 0.5

    def test_should_override_inter_item_delay_via_environment(self):
        with patch.dict(os.environ, {"GEOCODING_INTER_ITEM_DELAY": "0.25"}):
            settings = Settings()

        assert settings.GEOCODING_INTER_ITEM_DELAY == 0.25

    def test_should_raise_backoff_cap_to_at_least_one_step(self):
        """A cap below the step would make every delay shorter than a step."""
        with patch.dict(
            os.environ,
            {"GEOCODING_BACKOFF_STEP": "1.5", "GEOCODING_BACKOFF_CAP": "0.5"},
        ):
            settings = Settings()

        assert settings.GEOCODING_BACKOFF_CAP == 1.5

    def test_should_default_cache_ttl_to_thirty_days(self):
        settings = Settings()

        assert settings.GEOCODING_CACHE_TTL == 2592000


class TestFeatureFlags:
    """Extraction feature switches."""

    def test_should_read_extraction_flags_from_environment(self):
        with patch.dict(
            os.environ, {"NER_ENABLED": "true", "LLM_EXTRACTION_ENABLED": "false"}
        ):
            settings = Settings()

        assert settings.NER_ENABLED is True
        assert settings.LLM_EXTRACTION_ENABLED is False

    def test_templates_dir_points_at_bundled_templates(self):
        settings = Settings()

        assert (settings.TEMPLATES_DIR / "templates.json").exists()
