"""Application configuration using pydantic-settings."""

import functools
from pathlib import Path
from typing import Any

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict


def _find_project_root() -> Path:
    """Find project root by locating pyproject.toml."""
    current = Path(__file__).resolve()
    for parent in [current] + list(current.parents):
        if (parent / "pyproject.toml").exists():
            return parent
    return Path(__file__).resolve().parent.parent.parent


class YamlSettingsSource(PydanticBaseSettingsSource):
    """Custom settings source that loads from settings.yaml."""

    def get_field_value(self, field_name: str) -> tuple[Any, str, bool]:
        """Not used - we implement __call__ instead."""
        return None, "", False

    def __call__(self) -> dict[str, Any]:
        """Load settings from YAML file."""
        yaml_path = _find_project_root() / "config" / "settings.yaml"
        if not yaml_path.exists():
            return {}

        with open(yaml_path, encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}

        # Flatten nested structure to match Settings field names
        flattened = {}
        if 'server' in data:
            flattened['host'] = data['server'].get('host')
            flattened['port'] = data['server'].get('port')
        if 'history' in data:
            flattened['history_limit'] = data['history'].get('limit')
        if 'sync' in data:
            sync = data['sync']
            flattened['sync_url'] = sync.get('url')
            flattened['sync_interval_seconds'] = sync.get('interval_seconds')
            flattened['sync_debounce_seconds'] = sync.get('debounce_seconds')
            flattened['remote_timeout_seconds'] = sync.get('remote_timeout_seconds')
        if 'storage' in data:
            storage_dir = data['storage'].get('dir')
            if storage_dir is not None:
                flattened['storage_dir'] = Path(storage_dir)
        if 'content' in data:
            flattened['generation_credits'] = data['content'].get('generation_credits')
            flattened['recent_achievements_limit'] = (
                data['content'].get('recent_achievements_limit')
            )
        if 'openai' in data:
            flattened['content_model'] = data['openai'].get('content_model')

        # Remove None values
        return {k: v for k, v in flattened.items() if v is not None}


class Settings(BaseSettings):
    """Application settings loaded from environment and config files."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # OpenAI (optional: None keeps content generation on the static tables)
    openai_api_key: str | None = Field(default=None)
    content_model: str = Field(default="gpt-4o-mini")

    # Server
    host: str = Field(default="0.0.0.0")
    app_secret: str | None = Field(default=None)
    port: int = Field(default=8000)

    # Undo/redo
    history_limit: int = Field(default=50, ge=1)

    # Remote sync
    sync_url: str | None = Field(default=None)
    sync_token: str | None = Field(default=None)
    sync_interval_seconds: float = Field(default=30.0)
    sync_debounce_seconds: float = Field(default=1.0)
    remote_timeout_seconds: float = Field(default=5.0)

    # Content / gamification
    generation_credits: int = Field(default=100)
    recent_achievements_limit: int = Field(default=10)

    # Paths
    project_root: Path = Field(default_factory=_find_project_root)
    storage_dir: Path | None = Field(default=None)

    @property
    def data_dir(self) -> Path:
        d = self.storage_dir or self.project_root / "data" / "store"
        d.mkdir(parents=True, exist_ok=True)
        return d

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Customise settings sources to include YAML file.

        Priority order (highest to lowest):
        1. init_settings (arguments passed to Settings())
        2. env_settings (environment variables)
        3. dotenv_settings (.env file)
        4. YamlSettingsSource (settings.yaml)
        5. file_secret_settings
        """
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlSettingsSource(settings_cls),
            file_secret_settings,
        )


@functools.lru_cache
def get_settings() -> Settings:
    """Get application settings singleton."""
    return Settings()
