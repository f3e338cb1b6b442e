"""
Settings Module
===============

Pydantic-based configuration with environment variable loading.

Version: 0.1.0
"""

from enum import Enum
from functools import lru_cache
from pathlib import Path

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    """Deployment environment."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"
    TESTING = "testing"


class LogLevel(str, Enum):
    """Logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class ChainMode(str, Enum):
    """Where blocks and receipts are read from."""

    MOCK = "mock"
    RPC = "rpc"


class NullifierBackend(str, Enum):
    """Storage backend for spent nullifiers."""

    MEMORY = "memory"
    REDIS = "redis"


class RedisSettings(BaseSettings):
    """Redis configuration."""

    model_config = SettingsConfigDict(env_prefix="REDIS_")

    host: str = "localhost"
    port: int = 6379
    password: SecretStr = SecretStr("")
    db: int = 0

    @property
    def url(self) -> str:
        """Generate Redis connection URL."""
        pwd = self.password.get_secret_value()
        if pwd:
            return f"redis://:{pwd}@{self.host}:{self.port}/{self.db}"
        return f"redis://{self.host}:{self.port}/{self.db}"


class ZKSettings(BaseSettings):
    """Threshold circuit and key artifact configuration."""

    model_config = SettingsConfigDict(env_prefix="ZK_")

    protocol_version: str = "1.0.0"
    supported_versions: str = "1.0.0"
    curve: str = "bn128"

    # Circuit shape
    merkle_depth: int = Field(default=10, ge=1, le=32)
    amount_bits: int = Field(default=64, ge=8, le=128)

    # Key artifacts
    key_dir: Path = Field(default_factory=lambda: Path.cwd() / "keys")
    verification_key_file: str = "verification_key.json"
    proving_key_file: str = "proving_key.json"

    @property
    def supported_versions_list(self) -> list[str]:
        """Parse supported versions string into list."""
        return [v.strip() for v in self.supported_versions.split(",") if v.strip()]

    @property
    def verification_key_path(self) -> Path:
        return self.key_dir / self.verification_key_file

    @property
    def proving_key_path(self) -> Path:
        return self.key_dir / self.proving_key_file


class EventProofSettings(BaseSettings):
    """Event proof packaging configuration."""

    model_config = SettingsConfigDict(env_prefix="EVENT_PROOF_")

    version: str = "1.0.0"
    source_domain: str = "avalanche-fuji"
    attestation_tag: str = "AVAX_CPOE_SIGNATURE"
    validator_set_tag: str = "AVALANCHE_VALIDATORS"


class ChainSettings(BaseSettings):
    """Block/receipt source configuration."""

    model_config = SettingsConfigDict(env_prefix="CHAIN_")

    mode: ChainMode = ChainMode.MOCK
    rpc_url: str = "https://api.avax-test.network/ext/bc/C/rpc"
    timeout_seconds: float = 10.0
    max_retries: int = Field(default=3, ge=1)


class NullifierSettings(BaseSettings):
    """Nullifier registry configuration."""

    model_config = SettingsConfigDict(env_prefix="NULLIFIER_")

    backend: NullifierBackend = NullifierBackend.MEMORY
    key_prefix: str = "cpoe:nullifier:"


class CORSSettings(BaseSettings):
    """CORS configuration."""

    model_config = SettingsConfigDict(env_prefix="CORS_")

    origins: str = "http://localhost:3000,http://localhost:5173"
    allow_credentials: bool = True

    @property
    def origins_list(self) -> list[str]:
        """Parse origins string into list."""
        return [o.strip() for o in self.origins.split(",") if o.strip()]


class Settings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables with sensible defaults.
    Use the global `settings` singleton or call `get_settings()`.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # General
    environment: Environment = Environment.DEVELOPMENT
    debug: bool = True
    log_level: LogLevel = LogLevel.INFO
    verification_port: int = Field(default=8004, alias="VERIFICATION_PORT")

    # Proof system
    zk: ZKSettings = Field(default_factory=ZKSettings)
    event_proof: EventProofSettings = Field(default_factory=EventProofSettings)

    # External collaborators
    chain: ChainSettings = Field(default_factory=ChainSettings)
    nullifier: NullifierSettings = Field(default_factory=NullifierSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)

    # Security
    cors: CORSSettings = Field(default_factory=CORSSettings)

    @field_validator("log_level", mode="before")
    @classmethod
    def uppercase_log_level(cls, v: str | LogLevel) -> LogLevel:
        """Ensure log level is uppercase."""
        if isinstance(v, str):
            return LogLevel(v.upper())
        return v

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment == Environment.DEVELOPMENT

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == Environment.PRODUCTION

    @property
    def is_testing(self) -> bool:
        """Check if running in test mode."""
        return self.environment == Environment.TESTING


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings: Application settings singleton.
    """
    return Settings()
