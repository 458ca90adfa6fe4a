"""
Settings Module
===============

Pydantic-based configuration with environment variable loading.

Version: 0.1.0
"""

from enum import Enum
from functools import lru_cache

from pydantic import Field, SecretStr, field_validator, model_validator
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


class BlockchainMode(str, Enum):
    """Ledger operation mode."""

    MOCK = "mock"
    TESTNET = "testnet"
    MAINNET = "mainnet"


class PinningMode(str, Enum):
    """Pinning service mode."""

    MOCK = "mock"
    PINATA = "pinata"


class MongoSettings(BaseSettings):
    """MongoDB configuration."""

    model_config = SettingsConfigDict(env_prefix="MONGODB_")

    uri: SecretStr = SecretStr("mongodb://localhost:27017")
    db: str = "academic_certificates"
    max_pool_size: int = 50
    min_pool_size: int = 5
    server_selection_timeout_ms: int = 5000


class BlockchainSettings(BaseSettings):
    """Ledger (Base network) configuration."""

    model_config = SettingsConfigDict(env_prefix="BLOCKCHAIN_")

    mode: BlockchainMode = BlockchainMode.MOCK

    rpc_url: str = ""
    private_key: SecretStr = SecretStr("")
    contract_address: str = ""
    chain_id: int | None = None

    tx_timeout_seconds: int = 120
    confirmations: int = 1
    gas_limit: int = 500_000
    read_retries: int = 3

    @property
    def resolved_rpc_url(self) -> str:
        """RPC URL, falling back to the public Base endpoints."""
        if self.rpc_url:
            return self.rpc_url
        if self.mode == BlockchainMode.TESTNET:
            return "https://goerli.base.org"
        if self.mode == BlockchainMode.MAINNET:
            return "https://mainnet.base.org"
        return ""

    @property
    def resolved_chain_id(self) -> int:
        """Chain ID, falling back to the Base network defaults."""
        if self.chain_id is not None:
            return self.chain_id
        if self.mode == BlockchainMode.TESTNET:
            return 84531
        if self.mode == BlockchainMode.MAINNET:
            return 8453
        return 1337


class PinningSettings(BaseSettings):
    """Pinning service (Pinata) configuration."""

    model_config = SettingsConfigDict(env_prefix="PINNING_")

    mode: PinningMode = PinningMode.MOCK

    pinata_api_key: SecretStr = SecretStr("")
    pinata_secret_key: SecretStr = SecretStr("")
    pinata_jwt: SecretStr = SecretStr("")

    api_url: str = "https://api.pinata.cloud"
    gateway_url: str = "https://gateway.pinata.cloud/ipfs/"
    timeout_seconds: float = 30.0
    max_retries: int = 3


DEFAULT_JWT_SECRET = "your-jwt-secret-key-min-32-chars-long"


class JWTSettings(BaseSettings):
    """JWT authentication configuration."""

    model_config = SettingsConfigDict(env_prefix="JWT_")

    secret_key: SecretStr = SecretStr(DEFAULT_JWT_SECRET)
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 24 * 60


class UploadSettings(BaseSettings):
    """Certificate document upload limits."""

    model_config = SettingsConfigDict(env_prefix="UPLOAD_")

    max_file_size: int = 10 * 1024 * 1024
    allowed_content_types: str = "image/jpeg,image/png,image/jpg,application/pdf"
    max_batch_files: int = 50

    @property
    def allowed_types_list(self) -> list[str]:
        """Parse allowed content types into list."""
        return [t.strip() for t in self.allowed_content_types.split(",") if t.strip()]


class CORSSettings(BaseSettings):
    """CORS configuration."""

    model_config = SettingsConfigDict(env_prefix="CORS_")

    origins: str = "http://localhost:3000"
    allow_credentials: bool = True

    @property
    def origins_list(self) -> list[str]:
        """Parse origins string into list."""
        return [o.strip() for o in self.origins.split(",") if o.strip()]


class ReconcileSettings(BaseSettings):
    """Ledger/database reconciliation configuration."""

    model_config = SettingsConfigDict(env_prefix="RECONCILE_")

    pending_grace_seconds: int = 300
    scan_batch_size: int = 200


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
    frontend_url: str = "http://localhost:3000"
    portal_port: int = 5000
    admin_wallets: str = ""

    # Connections
    mongodb: MongoSettings = Field(default_factory=MongoSettings)
    blockchain: BlockchainSettings = Field(default_factory=BlockchainSettings)
    pinning: PinningSettings = Field(default_factory=PinningSettings)

    # Authentication
    jwt: JWTSettings = Field(default_factory=JWTSettings)

    # HTTP
    upload: UploadSettings = Field(default_factory=UploadSettings)
    cors: CORSSettings = Field(default_factory=CORSSettings)

    # Background maintenance
    reconcile: ReconcileSettings = Field(default_factory=ReconcileSettings)

    @field_validator("log_level", mode="before")
    @classmethod
    def uppercase_log_level(cls, v: str | LogLevel) -> LogLevel:
        """Ensure log level is uppercase."""
        if isinstance(v, str):
            return LogLevel(v.upper())
        return v

    @model_validator(mode="after")
    def check_production_secrets(self) -> "Settings":
        """Refuse to run production on the development JWT secret."""
        if self.environment == Environment.PRODUCTION:
            secret = self.jwt.secret_key.get_secret_value()
            if secret == DEFAULT_JWT_SECRET or len(secret) < 32:
                raise ValueError("JWT_SECRET_KEY must be set to at least 32 characters in production")
        return self

    @property
    def admin_wallets_list(self) -> list[str]:
        """Lower-cased admin wallet addresses."""
        return [w.strip().lower() for w in self.admin_wallets.split(",") if w.strip()]

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
