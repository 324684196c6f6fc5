"""Configuration management for the screen-grounding service."""

import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load environment variables
load_dotenv()


class Config(BaseSettings):
    """Configuration class for the element resolution pipeline."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",  # Ignore unexpected env vars rather than raising errors
    )

    # OpenAI (reasoning service) Configuration
    openai_api_key: str = Field(default="", description="OpenAI API key (reasoning tiers are skipped without it)")
    openai_model: str = Field(default="gpt-4o-mini")
    openai_temperature: float = Field(default=0.0)
    openai_timeout_seconds: float = Field(default=30.0)
    openai_max_retries: int = Field(default=3)
    openai_image_detail: str = Field(default="low")
    selector_max_tokens: int = Field(default=150)
    guess_max_tokens: int = Field(default=100)
    classifier_max_tokens: int = Field(default=10)

    # Detection service (Google Cloud Vision) Configuration
    google_cloud_vision_key: str = Field(default="", description="Google Cloud Vision API key")
    google_vision_endpoint: str = Field(default="https://vision.googleapis.com/v1/images:annotate")
    detection_timeout_seconds: float = Field(default=10.0)
    detection_min_score: float = Field(default=0.5)
    min_text_length: int = Field(default=2)

    # Relevance filter
    chrome_band_height: int = Field(default=30, description="Menu bar band, in pixels from the top")
    small_text_max_height: int = Field(default=15)
    small_text_max_width: int = Field(default=100)
    filter_cache_max_size: int = Field(default=512)
    filter_cache_ttl_seconds: float = Field(default=0.0, description="0 disables expiry")
    filter_cache_key_length: int = Field(default=100)

    # Set-of-Mark rendering
    default_image_width: int = Field(default=1920, description="Used only when image metadata is unreadable")
    default_image_height: int = Field(default=1080, description="Used only when image metadata is unreadable")
    marker_circle_radius: int = Field(default=15)
    marker_stroke_width: int = Field(default=2)
    marker_font_scale: float = Field(default=0.5)
    save_marker_debug: bool = Field(default=False)
    marker_debug_dir: str = Field(default="marker_debug")

    # Geometric refinement
    anchor_radius: float = Field(default=200.0)
    refinement_bonus: float = Field(default=0.1)
    refinement_confidence_cap: float = Field(default=0.95)
    geometric_patterns_file: Optional[str] = Field(default=None, description="JSON file overriding built-in patterns")

    # Pipeline
    tiered_detection_enabled: bool = Field(default=True, description="Run detection/selection tiers before the coordinate guess")

    # Framework Configuration
    log_level: str = Field(default="INFO")
    log_to_file: bool = Field(default=True)
    logs_dir: str = Field(default="logs")

    # API Configuration
    api_host: str = Field(default="localhost")
    api_port: int = Field(default=8000)
    cors_origins: list[str] = Field(default=["http://localhost:3000"])

    def validate_config(self) -> bool:
        """Validate configuration values."""
        if not 0 <= self.detection_min_score <= 1:
            raise ValueError("Detection min score must be between 0 and 1")

        if not 0 <= self.refinement_confidence_cap <= 1:
            raise ValueError("Refinement confidence cap must be between 0 and 1")

        if self.chrome_band_height < 0:
            raise ValueError("Chrome band height must not be negative")

        if self.default_image_width <= 0 or self.default_image_height <= 0:
            raise ValueError("Default image dimensions must be positive")

        if self.filter_cache_max_size <= 0:
            raise ValueError("Filter cache size must be positive")

        return True

    def get_marker_debug_path(self) -> str:
        """Get the full path to the marker debug directory."""
        return os.path.join(os.getcwd(), self.marker_debug_dir)


# Global configuration instance
try:
    config = Config()
except Exception as e:
    print(f"Warning: Could not load configuration: {e}")
    # Create a minimal config for basic functionality
    config = Config(openai_api_key="")
