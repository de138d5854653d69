"""Configuration management for LensFlow."""

from pathlib import Path
from typing import Any, Dict, List, Optional

import toml
import yaml
from pydantic import AliasChoices, BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_ANALYSIS_PROMPT = """Analyze this image carefully.
1. Categorize it into exactly one of: nature, urban, people, food, travel, other.
2. Provide a short, poetic, and descriptive title.
3. Estimate the date (YYYY-MM).
4. List 5-8 descriptive tags (objects, colors, moods, scenes, or people types) found in the image."""

DEFAULT_MOTION_PROMPT = "Cinematic motion: {prompt}. Slow pan or subtle movement. High quality."


class VisionConfig(BaseModel):
    """Vision analyzer settings."""

    model: str = Field(default="gemini-3-flash-preview", description="Vision model name")
    timeout: float = Field(default=60.0, description="Request timeout in seconds")
    temperature: float = Field(default=0.4, description="Model temperature")
    prompt: str = Field(default=DEFAULT_ANALYSIS_PROMPT, description="Analysis instruction")


class VideoConfig(BaseModel):
    """Video generator settings."""

    model: str = Field(default="veo-3.1-fast-generate-preview", description="Video model name")
    poll_interval: float = Field(default=10.0, description="Seconds between job status polls")
    max_wait: Optional[float] = Field(
        default=900.0,
        description="Give up on a job after this many seconds (None waits forever)"
    )
    resolution: str = Field(default="720p", description="Target resolution")
    aspect_ratio: str = Field(default="16:9", description="Target aspect ratio")
    number_of_videos: int = Field(default=1, description="Videos requested per job")
    timeout: float = Field(default=120.0, description="Per-request timeout in seconds")
    prompt_template: str = Field(default=DEFAULT_MOTION_PROMPT, description="Motion prompt template")


class IngestConfig(BaseModel):
    """Media ingest settings."""

    allowed_extensions: List[str] = Field(
        default=[".jpg", ".jpeg", ".png", ".gif", ".bmp", ".webp", ".tiff", ".tif", ".heic", ".heif"],
        description="Extensions picked up when walking directories"
    )
    max_file_size: int = Field(default=20 * 1024 * 1024, description="Largest accepted file in bytes")


class PipelineConfig(BaseModel):
    """Pipeline orchestration settings."""

    analysis_concurrency: int = Field(
        default=1,
        ge=1,
        description="Photos analyzed at once during ingest (1 keeps file order)"
    )


class Config(BaseSettings):
    """Main configuration class."""

    model_config = SettingsConfigDict(
        env_prefix="LENSFLOW_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    # Application settings
    app_name: str = Field(default="LensFlow", description="Application name")
    version: str = Field(default="0.1.0", description="Application version")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Logging level")

    # Provider access
    api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("api_key", "LENSFLOW_API_KEY", "GEMINI_API_KEY", "API_KEY"),
        description="Generative Language API key"
    )
    base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        description="Generative Language API root"
    )

    # Directories
    log_dir: Path = Field(
        default_factory=lambda: Path.home() / ".local" / "share" / "lensflow" / "logs",
        description="Log directory"
    )

    # Configuration sections
    vision: VisionConfig = Field(default_factory=VisionConfig)
    video: VideoConfig = Field(default_factory=VideoConfig)
    ingest: IngestConfig = Field(default_factory=IngestConfig)
    pipeline: PipelineConfig = Field(default_factory=PipelineConfig)

    def __init__(self, config_file: Optional[Path] = None, **kwargs):
        """Initialize configuration with optional config file."""
        if config_file and Path(config_file).exists():
            file_config = self._load_config_file(Path(config_file))
            file_config.update(kwargs)
            kwargs = file_config

        super().__init__(**kwargs)

    @staticmethod
    def _load_config_file(config_file: Path) -> Dict[str, Any]:
        """Load configuration from file."""
        if config_file.suffix.lower() in ['.yaml', '.yml']:
            with open(config_file, 'r') as f:
                return yaml.safe_load(f) or {}
        elif config_file.suffix.lower() == '.toml':
            return toml.load(config_file)
        else:
            raise ValueError(f"Unsupported config file format: {config_file.suffix}")

    def ensure_directories(self) -> None:
        """Ensure all required directories exist."""
        for directory in [self.log_dir]:
            directory.mkdir(parents=True, exist_ok=True)

    def save_config(self, config_file: Path) -> None:
        """Save current configuration to file, leaving out the API key."""
        config_data = self.model_dump(mode="json", exclude={'api_key', 'log_dir'})

        with open(config_file, 'w') as f:
            yaml.dump(config_data, f, default_flow_style=False, indent=2)

    @classmethod
    def load_from_file(cls, config_file: Path) -> "Config":
        """Load configuration from file."""
        return cls(config_file=config_file)


# Global configuration instance, used by the CLI
_config: Optional[Config] = None


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        default_config_file = Path.home() / ".config" / "lensflow" / "config.yaml"
        if default_config_file.exists():
            _config = Config.load_from_file(default_config_file)
        else:
            _config = Config()
    return _config


def set_config(config: Config) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config


def reset_config() -> None:
    """Reset the global configuration instance."""
    global _config
    _config = None
