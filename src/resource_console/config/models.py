"""Pydantic models for console configuration."""

from pydantic import BaseModel, Field


# ============================================================================
# Configuration Models
# ============================================================================


class ApiSettings(BaseModel):
    """Backend connection settings from console.toml ``[api]``."""

    base_url: str = "http://localhost:5000"
    timeout: float = 15.0  # seconds
    token_env: str = "CONSOLE_TOKEN"  # env var holding the bearer token


class UploadSettings(BaseModel):
    """Upload endpoints per accept category from console.toml ``[uploads]``."""

    endpoints: dict[str, str] = Field(
        default_factory=lambda: {
            "image": "/api/upload/image",
            "video": "/api/upload/video",
            "audio": "/api/upload/audio",
            "file": "/api/upload/file",
        }
    )

    def endpoint_for(self, accept_category: str) -> str:
        """Endpoint for *accept_category*, falling back to the generic file endpoint."""
        return self.endpoints.get(accept_category) or self.endpoints.get(
            "file", "/api/upload/file"
        )


class OptionSettings(BaseModel):
    """Reference option loading from console.toml ``[options]``."""

    page_size: int = 100
    large_page_size: int = 1000
    # Option sources whose path contains one of these gets the large page size
    large_sources: list[str] = Field(default_factory=lambda: ["/users", "/doctors"])


class FormSettings(BaseModel):
    """Form behavior from console.toml ``[forms]``."""

    legacy_casing: bool = True  # try PascalCase / snake_case attribute variants on edit


class ConsoleConfig(BaseModel):
    """Complete console configuration from console.toml."""

    api: ApiSettings = Field(default_factory=ApiSettings)
    uploads: UploadSettings = Field(default_factory=UploadSettings)
    options: OptionSettings = Field(default_factory=OptionSettings)
    forms: FormSettings = Field(default_factory=FormSettings)
    catalog: str | None = None  # optional path to a custom resources.toml
