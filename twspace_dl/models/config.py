"""
Pydantic model for application configuration.
Provides robust validation for all settings.
"""

from pydantic import BaseModel, Field, field_validator

DEFAULT_TEMPLATE = "%{title}"


class DownloaderConfig(BaseModel):
    """A validated configuration model for the application."""

    # Output
    template: str = DEFAULT_TEMPLATE
    save_dir: str = "."
    keep_recorded: bool = True

    # FFmpeg
    ffmpeg_path: str = ""
    show_ffmpeg_output: bool = False
    fail_fast: bool = False

    # Concurrency & credentials
    max_workers: int = 4
    guest_token_attempts: int = 5
    guest_token_retry_delay: float = 1.0

    # Internal fields not loaded from INI file
    config_path: str = Field("", repr=False)
    sources: list[str] = Field(default_factory=list, repr=False)
    usernames: list[str] = Field(default_factory=list, repr=False)
    exclude: list[str] = Field(default_factory=list, repr=False)
    plugin: str = Field("", repr=False)

    class Config:
        """Pydantic model configuration."""

        validate_assignment = True
        str_strip_whitespace = True

    @field_validator("template")
    @classmethod
    def validate_template(cls, v: str) -> str:
        """Validates the filename template."""
        if not v:
            raise ValueError("Filename template cannot be empty.")
        if ".." in v or v.startswith(("/", "\\")):
            raise ValueError(
                "Filename template cannot contain relative '..' or absolute paths."
            )
        return v

    @field_validator("max_workers")
    @classmethod
    def validate_workers(cls, v: int) -> int:
        """Ensures a reasonable number of concurrent downloads."""
        if v < 1 or v > 16:
            raise ValueError("Max workers must be between 1 and 16.")
        return v

    @field_validator("guest_token_attempts")
    @classmethod
    def validate_attempts(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Guest token attempts must be at least 1.")
        return v

    @field_validator("guest_token_retry_delay")
    @classmethod
    def validate_delay(cls, v: float) -> float:
        if v < 0:
            raise ValueError("Guest token retry delay cannot be negative.")
        return v

    @classmethod
    def get_ini_keys(cls) -> list[str]:
        """Returns every key that is expected in the INI file, in model order."""
        internal_fields = {"config_path", "sources", "usernames", "exclude", "plugin"}
        return [key for key in cls.model_fields if key not in internal_fields]
