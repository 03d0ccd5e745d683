"""
Configuration settings using pydantic-settings.

Options are read from SMART_SUGGESTION_* environment variables, the same
names the zsh plugin uses, so an existing shell setup carries over. The
settings object is passed explicitly to every component.
"""

import os
import shutil
from enum import Enum
from pathlib import Path
from typing import Mapping, Optional

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigurationError, ErrorCode
from .paths import get_config_dir, get_debug_log_path

DEFAULT_KEY = "c-o"
DEFAULT_UPDATE_INTERVAL_DAYS = 7
BINARY_NAME = "smart-suggestion"


class Provider(str, Enum):
    """AI providers understood by the backend binary."""

    OPENAI = "openai"
    AZURE_OPENAI = "azure_openai"
    ANTHROPIC = "anthropic"
    GEMINI = "gemini"
    DEEPSEEK = "deepseek"


# Detection order: first provider whose variables are all set wins
PROVIDER_ENV_KEYS: tuple[tuple[Provider, tuple[str, ...]], ...] = (
    (Provider.OPENAI, ("OPENAI_API_KEY",)),
    (Provider.AZURE_OPENAI, (
        "AZURE_OPENAI_API_KEY",
        "AZURE_OPENAI_RESOURCE_NAME",
        "AZURE_OPENAI_DEPLOYMENT_NAME",
    )),
    (Provider.ANTHROPIC, ("ANTHROPIC_API_KEY",)),
    (Provider.GEMINI, ("GEMINI_API_KEY",)),
    (Provider.DEEPSEEK, ("DEEPSEEK_API_KEY",)),
)

NO_PROVIDER_MESSAGE = (
    "No AI provider selected. Please set either OPENAI_API_KEY, "
    "AZURE_OPENAI_API_KEY (with AZURE_OPENAI_RESOURCE_NAME and "
    "AZURE_OPENAI_DEPLOYMENT_NAME), ANTHROPIC_API_KEY, GEMINI_API_KEY, "
    "or DEEPSEEK_API_KEY."
)

NO_BINARY_MESSAGE = (
    "No available smart-suggestion binary found. Please ensure that it is "
    "installed correctly or set SMART_SUGGESTION_BINARY to a valid binary path."
)


def detect_provider(environ: Optional[Mapping[str, str]] = None) -> Optional[Provider]:
    """Pick a provider from the API keys present in the environment."""
    environ = os.environ if environ is None else environ
    for provider, names in PROVIDER_ENV_KEYS:
        if all(environ.get(name) for name in names):
            return provider
    return None


def find_binary() -> Optional[Path]:
    """Locate the backend binary.

    Checks ~/.config/smart-suggestion/smart-suggestion first, then PATH.
    """
    candidate = get_config_dir() / BINARY_NAME
    if candidate.is_file():
        return candidate
    found = shutil.which(BINARY_NAME)
    return Path(found) if found else None


def normalize_key(key: str) -> str:
    """Convert a zsh-style key binding to prompt_toolkit notation.

    Examples:
        >>> normalize_key("^o")
        'c-o'
        >>> normalize_key("^x^e")
        'c-x c-e'
        >>> normalize_key("escape o")
        'escape o'
    """
    parts = []
    for token in key.split():
        if not token.startswith('^'):
            parts.append(token)
            continue
        # ^x^e style chords
        chars = token.split('^')[1:]
        for ch in chars:
            if len(ch) != 1:
                raise ValueError(f"Unsupported key binding: {key!r}")
            parts.append(f"c-{ch.lower()}")
    if not parts:
        raise ValueError("Key binding must not be empty")
    return ' '.join(parts)


class SuggestionSettings(BaseSettings):
    """smart-suggestion configuration.

    Configuration is loaded from (in order of priority):
    1. Keyword arguments
    2. Environment variables (SMART_SUGGESTION_*)
    3. Default values
    """

    model_config = SettingsConfigDict(
        env_prefix="SMART_SUGGESTION_",
        extra="ignore",
    )

    key: str = Field(
        default=DEFAULT_KEY,
        description="Key to press to get suggestions",
    )
    send_context: bool = Field(
        default=True,
        description="Send context information (whoami, shell, pwd, etc.) to the AI model",
    )
    ai_provider: Optional[Provider] = Field(
        default=None,
        description="AI provider to use (detected from API keys when unset)",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug logging",
    )
    proxy_mode: bool = Field(
        default=True,
        description="Keep a warm backend process running",
    )
    auto_update: bool = Field(
        default=True,
        description="Enable automatic update checking",
    )
    update_interval: int = Field(
        default=DEFAULT_UPDATE_INTERVAL_DAYS,
        description="Days between update checks",
    )
    binary: Optional[Path] = Field(
        default=None,
        description="Path to the smart-suggestion backend binary",
    )

    # Runner tuning
    poll_interval: float = Field(
        default=0.1,
        gt=0,
        description="Seconds between liveness checks and spinner frames",
    )
    request_timeout: float = Field(
        default=120.0,
        gt=0,
        description="Seconds before an unanswered request is abandoned",
    )

    # Logging
    log_level: str = Field(
        default="WARNING",
        description="Logging level for diagnostics on stderr",
    )
    debug_log: Path = Field(
        default_factory=get_debug_log_path,
        description="JSON-lines request log written when debug is on",
    )

    @field_validator("key")
    @classmethod
    def validate_key(cls, v: str) -> str:
        """Accept zsh-style (^o) as well as prompt_toolkit (c-o) keys."""
        return normalize_key(v)

    @field_validator("update_interval", mode="before")
    @classmethod
    def coerce_update_interval(cls, v):
        """Map unparsable values to 0 so the scheduler resets them."""
        try:
            return int(v)
        except (TypeError, ValueError):
            return 0

    @field_validator("ai_provider", "binary", mode="before")
    @classmethod
    def empty_as_unset(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @property
    def key_sequence(self) -> tuple[str, ...]:
        return tuple(self.key.split())

    def resolve(self, environ: Optional[Mapping[str, str]] = None) -> "SuggestionSettings":
        """Fill in provider and binary, failing when either is unavailable.

        Raises:
            ConfigurationError: No provider could be selected, or the
                binary is missing.
        """
        provider = self.ai_provider or detect_provider(environ)
        if provider is None:
            raise ConfigurationError(NO_PROVIDER_MESSAGE, ErrorCode.NO_PROVIDER)

        if self.binary is None:
            binary = find_binary()
            if binary is None:
                raise ConfigurationError(NO_BINARY_MESSAGE, ErrorCode.BINARY_MISSING)
        else:
            binary = self.binary.expanduser()
            if not binary.is_file():
                raise ConfigurationError(
                    f"smart-suggestion binary not found at {binary}.",
                    ErrorCode.BINARY_MISSING,
                )

        return self.model_copy(update={"ai_provider": provider, "binary": binary})


def load_settings(**overrides) -> SuggestionSettings:
    """Load settings from the environment and resolve provider and binary.

    Raises:
        ConfigurationError: A value was rejected, or see
            SuggestionSettings.resolve()
    """
    try:
        settings = SuggestionSettings(**overrides)
    except ValidationError as e:
        raise ConfigurationError(str(e), ErrorCode.INVALID_CONFIG) from e
    return settings.resolve()


def describe_settings(settings: SuggestionSettings) -> list[tuple[str, str, str]]:
    """List (env name, description, current value) for every user option."""
    rows = []
    for name in ("key", "send_context", "ai_provider", "debug", "proxy_mode",
                 "auto_update", "update_interval", "binary"):
        field = SuggestionSettings.model_fields[name]
        value = getattr(settings, name)
        if isinstance(value, Enum):
            value = value.value
        elif isinstance(value, bool):
            value = str(value).lower()
        rows.append((f"SMART_SUGGESTION_{name.upper()}", field.description or "", str(value)))
    return rows
