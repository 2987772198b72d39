"""Configuration loader with YAML parsing, env-var interpolation, and Pydantic validation."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Literal, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field


class ServerConfig(BaseModel):
    host: str = "127.0.0.1"
    port: int = 8000


class StorageConfig(BaseModel):
    db_path: str = "./data/omnichat.db"
    upload_dir: str = "./data/uploads"
    max_file_size: int = 10 * 1024 * 1024
    max_files: int = 10


class AuthConfig(BaseModel):
    # Header set by the upstream auth middleware
    user_header: str = "X-User-Id"
    # If set, requests without the header act as this user (local development)
    dev_user: Optional[str] = None


class OpenAIConfig(BaseModel):
    api_key: str = ""
    base_url: Optional[str] = None
    max_retries: int = 2
    timeout: float = 120.0


class AnthropicConfig(BaseModel):
    api_key: str = ""
    base_url: Optional[str] = None
    max_retries: int = 2
    timeout: float = 120.0


class GroqConfig(BaseModel):
    api_key: str = ""
    base_url: str = "https://api.groq.com/openai/v1"
    max_retries: int = 2
    timeout: float = 120.0


class OllamaConfig(BaseModel):
    url: str = "http://localhost:11434"
    timeout: float = 300.0


class WebhookConfig(BaseModel):
    timeout: float = 120.0


class ProvidersConfig(BaseModel):
    openai: OpenAIConfig = Field(default_factory=OpenAIConfig)
    anthropic: AnthropicConfig = Field(default_factory=AnthropicConfig)
    groq: GroqConfig = Field(default_factory=GroqConfig)
    ollama: OllamaConfig = Field(default_factory=OllamaConfig)
    webhook: WebhookConfig = Field(default_factory=WebhookConfig)


class AssistantsConfig(BaseModel):
    """Run polling for the OpenAI assistants workflow."""

    poll_interval: float = 1.0
    run_timeout: float = 60.0


class AppConfig(BaseModel):
    log_level: str = "INFO"
    log_format: Literal["console", "json"] = "console"
    data_dir: str = "./data"
    server: ServerConfig = Field(default_factory=ServerConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    auth: AuthConfig = Field(default_factory=AuthConfig)
    providers: ProvidersConfig = Field(default_factory=ProvidersConfig)
    assistants: AssistantsConfig = Field(default_factory=AssistantsConfig)


_ENV_VAR_PATTERN = re.compile(r"\$\{(\w+)\}")


def _interpolate_env_vars(text: str, extra: dict[str, str] | None = None) -> str:
    """Replace ${VAR_NAME} patterns with environment variable values."""

    def _replace(match: re.Match) -> str:
        var_name = match.group(1)
        if extra and var_name in extra:
            return extra[var_name]
        value = os.environ.get(var_name)
        if value is None:
            return match.group(0)
        return value

    return _ENV_VAR_PATTERN.sub(_replace, text)


def load_config(config_path: str | Path = "config.yaml", env_path: str | Path = ".env") -> AppConfig:
    """Load and validate configuration from YAML file with env-var interpolation."""
    env_file = Path(env_path)
    if env_file.exists():
        load_dotenv(env_file)

    config_file = Path(config_path)
    if not config_file.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_file}")

    raw_text = config_file.read_text(encoding="utf-8")

    # data_dir may be referenced by other paths as ${data_dir}
    raw_data = yaml.safe_load(raw_text) or {}
    data_dir = _interpolate_env_vars(raw_data.get("data_dir", "./data"))

    interpolated = _interpolate_env_vars(raw_text, extra={"data_dir": data_dir})
    data = yaml.safe_load(interpolated) or {}

    return AppConfig(**data)
