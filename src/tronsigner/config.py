"""Application configuration using pydantic-settings.

Hot-key material, the optional TRON master extended key and the shared HMAC
secret are read from the environment once at startup.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Signer settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ======================
    # Keys & secrets
    # ======================
    signer_private_key: str = Field(
        min_length=32, description="Hot wallet private key (hex)"
    )
    tron_xprv: Optional[str] = Field(
        default=None, description="Master extended private key; enables HD transfers"
    )
    signer_hmac_secret: str = Field(
        min_length=32, description="Shared HMAC secret for request authentication"
    )

    # ======================
    # TRON network
    # ======================
    tron_fullnode_url: str = Field(
        default="https://api.trongrid.io", description="TRON full node URL"
    )
    tron_solidity_url: str = Field(
        default="https://api.trongrid.io", description="TRON solidity node URL"
    )
    trongrid_api_key: Optional[str] = Field(default=None, description="TronGrid API key")
    fee_limit_sun: int = Field(default=10_000_000, gt=0, description="Fee ceiling in SUN")
    token_decimals: int = Field(default=6, ge=0, le=18, description="Token smallest-unit scale")
    broadcast_timeout_sec: float = Field(
        default=30.0, gt=0, description="Upper bound for build/sign/broadcast"
    )
    dry_run: bool = Field(default=False, description="Simulate broadcasts (no network)")

    # ======================
    # Policy
    # ======================
    allow_dest: Optional[str] = Field(
        default=None, description="Comma-separated destination allow-list (empty = all)"
    )
    allow_token_contracts: Optional[str] = Field(
        default=None, description="Comma-separated token contract allow-list (empty = all)"
    )

    # ======================
    # Authentication
    # ======================
    hmac_max_skew_sec: int = Field(default=60, gt=0, description="Allowed clock skew")
    nonce_retention_sec: int = Field(default=300, gt=0, description="Replay cache retention")

    # ======================
    # Database
    # ======================
    database_url: Optional[str] = Field(
        default=None, description="Idempotency store URL (unset = in-memory)"
    )

    # ======================
    # Server
    # ======================
    host: str = Field(default="0.0.0.0", description="API server host")
    port: int = Field(default=4001, description="API server port")
    environment: str = Field(default="development", description="Runtime environment")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root log level")

    @model_validator(mode="after")
    def _check_retention(self) -> "Settings":
        if self.nonce_retention_sec < 2 * self.hmac_max_skew_sec:
            raise ValueError(
                "NONCE_RETENTION_SEC must be at least twice HMAC_MAX_SKEW_SEC"
            )
        return self

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment.lower() == "production"

    @property
    def hd_enabled(self) -> bool:
        """Check if a master extended key is configured."""
        return bool(self.tron_xprv and self.tron_xprv.strip())

    @property
    def uses_persistent_store(self) -> bool:
        return bool(self.database_url)

    def get_safe_dict(self) -> dict:
        """Return settings dict with secrets redacted."""
        return {
            "environment": self.environment,
            "debug": self.debug,
            "dry_run": self.dry_run,
            "host": self.host,
            "port": self.port,
            "database_url": (
                self._redact_url(self.database_url) if self.database_url else "(in-memory)"
            ),
            "signer_private_key": "***",
            "signer_hmac_secret": "***",
            "hd_enabled": self.hd_enabled,
            "tron": {
                "fullnode": self.tron_fullnode_url,
                "solidity": self.tron_solidity_url,
                "api_key": "***" if self.trongrid_api_key else "(not set)",
                "fee_limit_sun": self.fee_limit_sun,
                "token_decimals": self.token_decimals,
                "broadcast_timeout_sec": self.broadcast_timeout_sec,
            },
            "policy": {
                "allow_dest": self.allow_dest or "(allow all)",
                "allow_token_contracts": self.allow_token_contracts or "(allow all)",
            },
            "auth": {
                "hmac_max_skew_sec": self.hmac_max_skew_sec,
                "nonce_retention_sec": self.nonce_retention_sec,
            },
        }

    @staticmethod
    def _redact_url(url: str) -> str:
        """Redact sensitive parts of database URL."""
        if "://" in url and "@" in url:
            proto, rest = url.split("://", 1)
            if "@" in rest:
                creds, host = rest.rsplit("@", 1)
                if ":" in creds:
                    user, _ = creds.split(":", 1)
                    return f"{proto}://{user}:***@{host}"
        return url


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
