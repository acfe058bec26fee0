"""
Central feature flags. Set via environment variables (prefix FF_) or .env file.
"""

from functools import lru_cache
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class FeatureFlags(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # ── Auth ─────────────────────────────────────────────────────────
    use_auth: bool = Field(default=True, alias="FF_USE_AUTH")
    # ON  → Bearer token validated (local JWT check or Supabase auth API).
    # OFF → Dev user injected. No token needed.

    # ── Write tools ──────────────────────────────────────────────────
    enable_write_tools: bool = Field(default=True, alias="FF_ENABLE_WRITE_TOOLS")
    # ON  → update_invoice_status / create_alert_rule / create_fixed_cost offered.
    # OFF → Not offered to the model; executor refuses them if requested anyway.

    # ── Round limit ──────────────────────────────────────────────────
    stream_on_round_limit: bool = Field(default=True, alias="FF_STREAM_ON_ROUND_LIMIT")
    # ON  → After the last round, one streamed model call writes the answer.
    # OFF → Whatever text the model produced so far is sent (may be empty).

    # ── Schema ───────────────────────────────────────────────────────
    create_tables: bool = Field(default=False, alias="FF_CREATE_TABLES")
    # ON  → create_all() on startup. Local/dev databases only.


@lru_cache
def get_flags() -> FeatureFlags:
    return FeatureFlags()
