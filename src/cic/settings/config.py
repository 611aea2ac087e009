"""Configuration loader for CIC using Pydantic settings.

Config precedence (highest wins):
  1. CLI flags (where applicable)
  2. Environment variables (CIC_* with __ for nesting)
  3. settings.local.toml
  4. settings.{env}.toml
  5. settings.default.toml
"""

from __future__ import annotations

import os
import tomllib
from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from cic.browser.identity import DEFAULT_PROVIDERS
from cic.browser.ranking import DEFAULT_BUTTON_CLASS_PATTERNS, DEFAULT_CTA_PHRASES, DEFAULT_MAX_CANDIDATES
from cic.browser.region import DEFAULT_REGION_SELECTORS

# ---------------------------------------------------------------------------
# Path helpers
# ---------------------------------------------------------------------------

_THIS_DIR = Path(__file__).resolve().parent
PROJECT_ROOT = Path(os.getenv("CIC_PROJECT_ROOT", _THIS_DIR.parents[2]))
CONFIG_DIR = PROJECT_ROOT / "config"

ENV_VAR_NAME = "CIC_ENV"
DEFAULT_ENV = "local"

_WAIT_STRATEGIES = ("commit", "domcontentloaded", "load", "networkidle")


def _resolve_env() -> str:
    return (os.getenv(ENV_VAR_NAME) or DEFAULT_ENV).strip()


def _load_toml(path: Path) -> dict[str, Any]:
    if path.is_file():
        with open(path, "rb") as f:
            return tomllib.load(f)
    return {}


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class BrowserSettings(BaseSettings):
    """Playwright browser settings (fixed desktop profile)."""

    model_config = SettingsConfigDict(env_prefix="CIC_BROWSER__")

    headless: bool = True
    sandbox: bool = False
    user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
    )
    viewport_width: int = 1280
    viewport_height: int = 720
    locale: str = "en-US"
    ignore_https_errors: bool = True
    navigation_timeout_ms: int = 30_000
    wait_until: str = "domcontentloaded"

    @field_validator("wait_until")
    @classmethod
    def _check_wait_until(cls, value: str) -> str:
        if value not in _WAIT_STRATEGIES:
            raise ValueError(f"wait_until must be one of {', '.join(_WAIT_STRATEGIES)}")
        return value


class IdentitySettings(BaseSettings):
    """External "what is my IP" providers, tried in order."""

    model_config = SettingsConfigDict(env_prefix="CIC_IDENTITY__")

    providers: list[str] = Field(default_factory=lambda: list(DEFAULT_PROVIDERS))
    timeout_ms: int = 8_000


class RankingSettings(BaseSettings):
    """Heuristic tables for the content region and candidate ranking."""

    model_config = SettingsConfigDict(env_prefix="CIC_RANKING__")

    region_selectors: list[str] = Field(default_factory=lambda: list(DEFAULT_REGION_SELECTORS))
    cta_phrases: list[str] = Field(default_factory=lambda: list(DEFAULT_CTA_PHRASES))
    button_class_patterns: list[str] = Field(default_factory=lambda: list(DEFAULT_BUTTON_CLASS_PATTERNS))
    max_candidates: int = DEFAULT_MAX_CANDIDATES


class InteractionSettings(BaseSettings):
    """Click protocol timeouts and per-run budgets."""

    model_config = SettingsConfigDict(env_prefix="CIC_INTERACTION__")

    click_timeout_ms: int = 5_000
    new_tab_timeout_ms: int = 4_000
    new_tab_load_timeout_ms: int = 10_000
    navigation_wait_ms: int = 5_000
    restore_timeout_ms: int = 20_000
    max_attempts: int = 5
    max_captures: int = 3


class BatchSettings(BaseSettings):
    """Sequential batch processing."""

    model_config = SettingsConfigDict(env_prefix="CIC_BATCH__")

    stop_on_error: bool = False


# ---------------------------------------------------------------------------
# Root settings
# ---------------------------------------------------------------------------


class Settings(BaseSettings):
    """Root CIC settings with nested sections."""

    model_config = SettingsConfigDict(
        env_prefix="CIC_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    env: str = Field(default_factory=_resolve_env)
    project_root: Path = Field(default=PROJECT_ROOT)
    debug: bool = False

    browser: BrowserSettings = Field(default_factory=BrowserSettings)
    identity: IdentitySettings = Field(default_factory=IdentitySettings)
    ranking: RankingSettings = Field(default_factory=RankingSettings)
    interaction: InteractionSettings = Field(default_factory=InteractionSettings)
    batch: BatchSettings = Field(default_factory=BatchSettings)

    @model_validator(mode="before")
    @classmethod
    def _merge_toml_files(cls, values: dict[str, Any]) -> dict[str, Any]:
        """Layer TOML config files before env var overrides."""
        defaults = _load_toml(CONFIG_DIR / "settings.default.toml")
        env_name = (values.get("env") or os.getenv(ENV_VAR_NAME) or DEFAULT_ENV).strip()
        env_overrides = _load_toml(CONFIG_DIR / f"settings.{env_name}.toml")
        local_overrides = _load_toml(CONFIG_DIR / "settings.local.toml")

        # Merge: defaults < env-specific < local < explicit values
        merged: dict[str, Any] = {}
        for layer in (defaults, env_overrides, local_overrides, values):
            for key, val in layer.items():
                if isinstance(val, dict) and isinstance(merged.get(key), dict):
                    merged[key] = {**merged[key], **val}
                else:
                    merged[key] = val
        return merged

    @model_validator(mode="after")
    def _check_budgets(self) -> "Settings":
        """Budgets must allow at least one attempt and one capture."""
        if self.interaction.max_attempts < 1:
            raise ValueError("interaction.max_attempts must be >= 1")
        if self.interaction.max_captures < 1:
            raise ValueError("interaction.max_captures must be >= 1")
        if self.ranking.max_candidates < 1:
            raise ValueError("ranking.max_candidates must be >= 1")
        return self


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the singleton settings instance (cached)."""
    return Settings()
