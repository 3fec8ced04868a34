"""Process-wide bridge configuration using pydantic-settings."""

import logging
from functools import lru_cache
from typing import Literal

from pydantic import Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("config")

BinaryType = Literal["buffer", "blob"]


class Settings(BaseSettings):
    """Bridge settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=(".env", "../.env"),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ==========================================================================
    # Environment
    # ==========================================================================
    environment: Literal["development", "staging", "production"] = "development"

    # ==========================================================================
    # Bridge defaults (per-instance options override these)
    # ==========================================================================
    bridge_namespace: str = Field(
        default="@@websocket/",
        description="Prefix for OPEN/CLOSE/MESSAGE/SEND action types",
    )
    bridge_binary_type: BinaryType = Field(
        default="buffer",
        description=(
            "Representation inbound binary payloads are normalized to: "
            "'buffer' = bytes, 'blob' = wsbridge Blob"
        ),
    )
    bridge_ordered_delivery: bool = Field(
        default=False,
        description=(
            "Dispatch inbound messages strictly in arrival order, even when "
            "blob normalization latencies differ"
        ),
    )
    bridge_max_brace_expansions: int = Field(
        default=256,
        ge=1,
        description=(
            "Largest number of alternatives a {a,b} send directive may expand to; "
            "larger patterns match no tag"
        ),
    )

    # ==========================================================================
    # WebSocket endpoint
    # ==========================================================================
    ws_send_drain_timeout_seconds: float = Field(
        default=2.0,
        description="Seconds to wait for in-flight sends when a connection ends",
    )

    # ==========================================================================
    # Logging
    # ==========================================================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_debug_namespaces: str = Field(
        default="",
        description="Comma-separated list of namespaces to enable debug logging",
    )

    # ==========================================================================
    # Computed Properties
    # ==========================================================================
    @computed_field
    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment == "development"

    @computed_field
    @property
    def debug_namespaces(self) -> list[str]:
        """Parse debug namespaces into a list."""
        if not self.log_debug_namespaces:
            return []
        return [ns.strip() for ns in self.log_debug_namespaces.split(",") if ns.strip()]

    def log_config_summary(self) -> None:
        """Log a summary of the configuration."""
        logger.info(
            "Bridge configuration loaded",
            extra={
                "service": "config",
                "namespace": self.bridge_namespace,
                "binary_type": self.bridge_binary_type,
                "metadata": {
                    "environment": self.environment,
                    "ordered_delivery": self.bridge_ordered_delivery,
                    "max_brace_expansions": self.bridge_max_brace_expansions,
                    "send_drain_timeout_seconds": self.ws_send_drain_timeout_seconds,
                    "log_level": self.log_level,
                    "debug_namespaces": self.debug_namespaces,
                },
            },
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    settings = Settings()
    return settings
