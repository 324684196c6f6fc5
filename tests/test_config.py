"""Tests for configuration validation and environment loading."""
import pytest

from screen_grounding.core.config import Config


def test_defaults_validate(settings):
    assert settings.validate_config() is True
    assert settings.chrome_band_height == 30
    assert settings.anchor_radius == 200


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("CHROME_BAND_HEIGHT", "40")
    monkeypatch.setenv("TIERED_DETECTION_ENABLED", "false")
    loaded = Config()
    assert loaded.chrome_band_height == 40
    assert loaded.tiered_detection_enabled is False


@pytest.mark.parametrize(
    "overrides",
    [
        {"detection_min_score": 1.5},
        {"refinement_confidence_cap": -0.1},
        {"chrome_band_height": -1},
        {"default_image_width": 0},
        {"filter_cache_max_size": 0},
    ],
)
def test_invalid_values_are_rejected(settings, overrides):
    for key, value in overrides.items():
        setattr(settings, key, value)
    with pytest.raises(ValueError):
        settings.validate_config()
