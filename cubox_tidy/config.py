"""
Configuration management for cubox-tidy.
"""

import os
import sys
from typing import Dict, Any, Optional, List
from pathlib import Path
from pydantic import BaseModel, Field, validator
from pydantic_settings import BaseSettings
from dotenv import load_dotenv
from loguru import logger

# Load environment variables
load_dotenv()


DEFAULT_PROMPT_TEMPLATE = "用100 字以内总结下内容:\n{{ content }}"


class LLMConfig(BaseModel):
    """Configuration for the summary endpoint (OpenAI-compatible chat completions)."""
    provider: str = "deepseek"
    model: str = Field(default="deepseek-chat")
    api_base: str = "https://api.deepseek.com/v1"
    system_prompt: str = "You are a helpful assistant."
    max_tokens: Optional[int] = None
    temperature: Optional[float] = None
    timeout: int = 120
    # One attempt, no retry on failure
    max_retries: int = 1
    # Notes longer than this are trimmed before they go into the prompt
    max_prompt_tokens: int = 6000

    @validator('model')
    def validate_model(cls, v):
        if not v:
            v = os.getenv('CUBOX_TIDY_MODEL', 'deepseek-chat')
        return v

    @validator('max_retries')
    def validate_max_retries(cls, v):
        if v < 1:
            raise ValueError('max_retries must be at least 1')
        return v


class SummaryConfig(BaseModel):
    """Where and how the summary is written into a note."""
    section_title: str = "# 总结"
    placeholder: str = "...generating..."
    entry_prefix: str = "- "
    prompt_template: str = DEFAULT_PROMPT_TEMPLATE
    # Re-check the anchor line still holds the placeholder before overwriting it
    verify_anchor: bool = True

    @validator('section_title', 'placeholder')
    def not_blank(cls, v):
        if not v or not v.strip():
            raise ValueError('Section title and placeholder cannot be empty')
        # Each occupies exactly one line of the note
        if '\n' in v or '\r' in v:
            raise ValueError('Section title and placeholder must be a single line')
        return v


class VaultConfig(BaseModel):
    """Configuration for the notes folder on disk."""
    root: Path = Path(".")
    settings_path: Path = Path(".cubox-tidy/data.json")
    # Give the capturing tool time to finish writing before stripping
    strip_delay_seconds: float = 1.0
    watch_interval: float = 2.0
    note_suffix: str = ".md"

    @validator('strip_delay_seconds', 'watch_interval')
    def non_negative(cls, v):
        if v < 0:
            raise ValueError('Delays must be >= 0')
        return v


class NotificationsConfig(BaseModel):
    """Configuration for user-facing notices."""
    enabled: bool = True
    channels: List[str] = Field(default_factory=lambda: ["log"])  # "log", "webhook", "file"
    webhook_url: Optional[str] = None
    webhook_headers: Dict[str, str] = Field(default_factory=dict)
    file_path: Optional[str] = None  # JSONL output
    throttle_seconds: int = 0


class WebConfig(BaseModel):
    """Configuration for the HTTP API."""
    host: str = "127.0.0.1"
    port: int = 5000
    debug: bool = False
    secret_key: Optional[str] = None
    max_content_length: int = 2 * 1024 * 1024  # 2MB
    # Caps how long a request waits on the host loop; unset uses per-route defaults
    request_timeout: Optional[float] = None

    @validator('secret_key')
    def validate_secret_key(cls, v):
        if not v:
            v = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')
        return v


class AppConfig(BaseSettings):
    """Main application configuration."""
    llm: LLMConfig = Field(default_factory=LLMConfig)
    summary: SummaryConfig = Field(default_factory=SummaryConfig)
    vault: VaultConfig = Field(default_factory=VaultConfig)
    notifications: NotificationsConfig = Field(default_factory=NotificationsConfig)
    web: WebConfig = Field(default_factory=WebConfig)
    log_level: str = "INFO"

    class Config:
        env_file = '.env'
        env_file_encoding = 'utf-8'
        env_prefix = 'CUBOX_TIDY_'
        extra = 'ignore'

    @classmethod
    def from_env(cls) -> 'AppConfig':
        """Create configuration from environment variables."""
        config = cls()

        if os.getenv('CUBOX_TIDY_MODEL'):
            config.llm.model = os.getenv('CUBOX_TIDY_MODEL')

        if os.getenv('CUBOX_TIDY_API_BASE'):
            config.llm.api_base = os.getenv('CUBOX_TIDY_API_BASE')

        if os.getenv('CUBOX_TIDY_TIMEOUT'):
            try:
                config.llm.timeout = int(os.getenv('CUBOX_TIDY_TIMEOUT'))
            except ValueError:
                logger.warning("Ignoring non-integer CUBOX_TIDY_TIMEOUT")

        if os.getenv('CUBOX_TIDY_VAULT_ROOT'):
            config.vault.root = Path(os.getenv('CUBOX_TIDY_VAULT_ROOT'))

        if os.getenv('CUBOX_TIDY_SETTINGS_PATH'):
            config.vault.settings_path = Path(os.getenv('CUBOX_TIDY_SETTINGS_PATH'))

        if os.getenv('CUBOX_TIDY_STRIP_DELAY'):
            try:
                config.vault.strip_delay_seconds = float(os.getenv('CUBOX_TIDY_STRIP_DELAY'))
            except ValueError:
                logger.warning("Ignoring non-numeric CUBOX_TIDY_STRIP_DELAY")

        if os.getenv('CUBOX_TIDY_SECTION_TITLE'):
            config.summary.section_title = os.getenv('CUBOX_TIDY_SECTION_TITLE')

        if os.getenv('CUBOX_TIDY_PLACEHOLDER'):
            config.summary.placeholder = os.getenv('CUBOX_TIDY_PLACEHOLDER')

        if os.getenv('CUBOX_TIDY_VERIFY_ANCHOR'):
            config.summary.verify_anchor = os.getenv('CUBOX_TIDY_VERIFY_ANCHOR').lower() == 'true'

        # Notifications
        if os.getenv('CUBOX_TIDY_NOTIFICATIONS_CHANNELS'):
            chans = os.getenv('CUBOX_TIDY_NOTIFICATIONS_CHANNELS')
            config.notifications.channels = [c.strip() for c in chans.split(',') if c.strip()]
        if os.getenv('CUBOX_TIDY_WEBHOOK_URL'):
            config.notifications.webhook_url = os.getenv('CUBOX_TIDY_WEBHOOK_URL')
        if os.getenv('CUBOX_TIDY_NOTIFICATIONS_FILE_PATH'):
            config.notifications.file_path = os.getenv('CUBOX_TIDY_NOTIFICATIONS_FILE_PATH')

        if os.getenv('CUBOX_TIDY_LOG_LEVEL'):
            config.log_level = os.getenv('CUBOX_TIDY_LOG_LEVEL').upper()

        return config

    @classmethod
    def from_yaml(cls, path: Path) -> 'AppConfig':
        """Create configuration from YAML file."""
        import yaml

        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}

        return cls(**data)

    @property
    def settings_file(self) -> Path:
        """Settings file location, relative paths resolved against the vault root."""
        path = self.vault.settings_path
        if not path.is_absolute():
            path = self.vault.root / path
        return path

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return {
            'llm': self.llm.dict(),
            'summary': self.summary.dict(),
            'vault': {
                **self.vault.dict(),
                'root': str(self.vault.root),
                'settings_path': str(self.vault.settings_path),
            },
            'notifications': self.notifications.dict(),
            'web': {k: v for k, v in self.web.dict().items() if k != 'secret_key'},
            'log_level': self.log_level,
        }


def configure_logging(level: str = "INFO") -> None:
    """Route loguru output to stderr at the given level."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {name}:{line} - {message}",
    )


# Global configuration instance
_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = AppConfig.from_env()
    return _config


def set_config(config: AppConfig) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config


def reset_config() -> None:
    """Reset the global configuration instance."""
    global _config
    _config = None
