"""Configuration loading from environment variables."""

import os
from dataclasses import dataclass, field
from pathlib import Path


@dataclass
class Config:
    db_path: Path = field(default_factory=lambda: Path.home() / ".agent_studio" / "studio.db")
    anthropic_api_key: str | None = None
    anthropic_base_url: str | None = None
    model: str = "claude-sonnet-4-5"
    max_tokens: int = 8192
    request_timeout: float | None = 120.0
    context_chars: int = 1000
    sync_delay: float = 1.0
    slack_bot_token: str | None = None
    slack_channel: str | None = None

    @classmethod
    def from_env(cls) -> "Config":
        config = cls()

        if db := os.environ.get("STUDIO_DB_PATH"):
            config.db_path = Path(db)

        config.anthropic_api_key = os.environ.get("ANTHROPIC_API_KEY")
        config.anthropic_base_url = os.environ.get("ANTHROPIC_BASE_URL") or None

        if model := os.environ.get("STUDIO_MODEL"):
            config.model = model

        if max_tokens := os.environ.get("STUDIO_MAX_TOKENS"):
            config.max_tokens = int(max_tokens)

        # 0 disables the per-call timeout
        if timeout := os.environ.get("STUDIO_REQUEST_TIMEOUT"):
            config.request_timeout = float(timeout) or None

        if chars := os.environ.get("STUDIO_CONTEXT_CHARS"):
            config.context_chars = int(chars)

        if delay := os.environ.get("STUDIO_SYNC_DELAY"):
            config.sync_delay = float(delay)

        config.slack_bot_token = os.environ.get("SLACK_BOT_TOKEN")
        config.slack_channel = os.environ.get("STUDIO_SLACK_CHANNEL")

        return config


def get_config() -> Config:
    return Config.from_env()
