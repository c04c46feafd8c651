"""Environment overrides for the protocol configuration."""

from typing import Any

from pydantic_settings import BaseSettings, SettingsConfigDict

from crawlhttp.protocol.config import ProtocolConfig


class AppSettings(BaseSettings):
    """Environment configuration (``CRAWLHTTP_*`` variables, or ``.env``)."""

    model_config = SettingsConfigDict(
        env_prefix="CRAWLHTTP_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    timeout_seconds: float | None = None
    proxy_host: str | None = None
    proxy_port: int | None = None
    user_agent: str | None = None
    max_content_bytes: int | None = None
    store_ip_address: bool | None = None

    log_level: str = "INFO"
    log_json: bool = True

    def to_protocol_config(self, base: ProtocolConfig | None = None) -> ProtocolConfig:
        """Apply the variables that are set on top of a base configuration.

        Args:
            base: Configuration to override (defaults when omitted).

        Returns:
            New ProtocolConfig.
        """
        base = base or ProtocolConfig()
        overrides: dict[str, Any] = {
            name: value
            for name, value in (
                ("timeout_seconds", self.timeout_seconds),
                ("proxy_host", self.proxy_host),
                ("proxy_port", self.proxy_port),
                ("user_agent", self.user_agent),
                ("max_content_bytes", self.max_content_bytes),
                ("store_ip_address", self.store_ip_address),
            )
            if value is not None
        }
        if not overrides:
            return base
        return ProtocolConfig.model_validate({**base.model_dump(), **overrides})


def get_settings() -> AppSettings:
    """Get a settings instance."""
    return AppSettings()
