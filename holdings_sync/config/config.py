"""Configuration management for the holdings sync service."""

import os
from pathlib import Path
from typing import Optional
from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

# Load environment variables from .env file
load_dotenv()

DEFAULT_REDIRECT_URI = "http://localhost:5173"
DEFAULT_DATA_DIR = Path.home() / ".holdings-sync"


def _env_bool(key: str, default: bool) -> bool:
    value = os.getenv(key, "")
    if not value.strip():
        return default
    return value.strip().lower() in ("true", "1", "yes")


def _env_int(key: str, default: int) -> int:
    # Empty strings fall back to the default
    value = os.getenv(key, "")
    return int(value) if value and value.strip() else default


def _env_float(key: str) -> Optional[float]:
    value = os.getenv(key, "")
    return float(value) if value and value.strip() else None


class BrokerCredentials(BaseModel):
    """Developer credentials for one broker, used to prefill connections."""

    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    redirect_uri: str = Field(default=DEFAULT_REDIRECT_URI, description="OAuth redirect URI")

    def is_configured(self) -> bool:
        """Check if both client id and secret are set."""
        return bool(self.client_id and self.client_secret)


class BrokerConfig(BaseModel):
    """Broker client configuration."""

    use_simulated: bool = Field(default=True, description="Use the simulated broker instead of real APIs")
    request_timeout: Optional[float] = Field(default=None, description="HTTP timeout in seconds (None = transport default)")
    max_retries: int = Field(default=3, description="Retry attempts for broker server errors")

    upstox: BrokerCredentials = Field(default_factory=BrokerCredentials)
    angelone: BrokerCredentials = Field(default_factory=BrokerCredentials)
    fyers: BrokerCredentials = Field(default_factory=BrokerCredentials)

    @field_validator("max_retries")
    @classmethod
    def validate_max_retries(cls, v: int) -> int:
        """Validate retry count."""
        if v < 0:
            raise ValueError(f"Invalid max_retries: {v}. Must be zero or positive")
        return v

    def credentials_for(self, broker_id) -> BrokerCredentials:
        """Get configured credentials for a broker id (BrokerId or string)."""
        key = getattr(broker_id, "value", broker_id)
        return getattr(self, str(key).lower())


class PersistenceConfig(BaseModel):
    """Portfolio data and credential storage configuration."""

    data_mode: str = Field(default="local", description="Data mode: 'local', 'db', or 'hybrid'")
    data_path: str = Field(default=str(DEFAULT_DATA_DIR / "data.json"), description="Local JSON data file")
    credentials_store_path: str = Field(
        default=str(DEFAULT_DATA_DIR / "credentials.json"),
        description="Local JSON file holding broker tokens",
    )
    project_id: Optional[str] = Field(default=None, description="Firebase project ID")
    credentials_path: Optional[str] = Field(default=None, description="Path to Firebase service account JSON file")
    credentials_json: Optional[str] = Field(default=None, description="Firebase service account JSON as string (alternative to credentials_path)")

    @field_validator("data_mode")
    @classmethod
    def validate_data_mode(cls, v: str) -> str:
        """Validate data mode."""
        v_lower = v.lower()
        if v_lower not in ["local", "db", "hybrid"]:
            raise ValueError(f"Invalid data mode: {v}. Must be 'local', 'db', or 'hybrid'")
        return v_lower

    def is_remote_configured(self) -> bool:
        """Check if Firebase credentials are configured."""
        return bool(self.project_id and (self.credentials_path or self.credentials_json))


class ApiConfig(BaseModel):
    """HTTP API configuration."""

    host: str = Field(default="0.0.0.0", description="Bind address")
    port: int = Field(default=8080, description="Port for the HTTP API")
    api_token: Optional[str] = Field(default=None, description="Optional bearer token required on every request")


class Config(BaseModel):
    """Main configuration class."""

    user_id: str = Field(default="default-user", description="Owner of the portfolio document")
    log_level: str = Field(default="INFO", description="Logging level")

    broker: BrokerConfig = Field(default_factory=BrokerConfig)
    persistence: PersistenceConfig = Field(default_factory=PersistenceConfig)
    api: ApiConfig = Field(default_factory=ApiConfig)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        v_upper = v.upper()
        if v_upper not in ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]:
            raise ValueError(f"Invalid log level: {v}")
        return v_upper

    def validate_storage(self) -> None:
        """Validate that the chosen data mode can be served."""
        if self.persistence.data_mode == "db" and not self.persistence.is_remote_configured():
            raise ValueError(
                "FIREBASE_PROJECT_ID and FIREBASE_CREDENTIALS_PATH (or FIREBASE_CREDENTIALS_JSON) "
                "are required when DATA_MODE=db"
            )

    @classmethod
    def from_env(cls) -> "Config":
        """Create configuration from environment variables."""
        broker_config = BrokerConfig(
            use_simulated=_env_bool("USE_SIMULATED_BROKER", True),
            request_timeout=_env_float("BROKER_REQUEST_TIMEOUT"),
            max_retries=_env_int("BROKER_MAX_RETRIES", 3),
            upstox=BrokerCredentials(
                client_id=os.getenv("UPSTOX_CLIENT_ID"),
                client_secret=os.getenv("UPSTOX_CLIENT_SECRET"),
                redirect_uri=os.getenv("UPSTOX_REDIRECT_URI") or DEFAULT_REDIRECT_URI,
            ),
            angelone=BrokerCredentials(
                client_id=os.getenv("ANGELONE_CLIENT_ID"),
                client_secret=os.getenv("ANGELONE_CLIENT_SECRET"),
            ),
            fyers=BrokerCredentials(
                client_id=os.getenv("FYERS_CLIENT_ID"),
                client_secret=os.getenv("FYERS_CLIENT_SECRET"),
                redirect_uri=os.getenv("FYERS_REDIRECT_URI") or DEFAULT_REDIRECT_URI,
            ),
        )

        persistence_config = PersistenceConfig(
            data_mode=os.getenv("DATA_MODE") or "local",
            data_path=os.getenv("DATA_PATH") or str(DEFAULT_DATA_DIR / "data.json"),
            credentials_store_path=os.getenv("CREDENTIALS_STORE_PATH") or str(DEFAULT_DATA_DIR / "credentials.json"),
            project_id=os.getenv("FIREBASE_PROJECT_ID"),
            credentials_path=os.getenv("FIREBASE_CREDENTIALS_PATH"),
            credentials_json=os.getenv("FIREBASE_CREDENTIALS_JSON"),
        )

        api_config = ApiConfig(
            host=os.getenv("API_HOST") or "0.0.0.0",
            port=_env_int("API_PORT", 8080),
            api_token=os.getenv("API_TOKEN") or None,
        )

        config = cls(
            user_id=os.getenv("USER_ID") or "default-user",
            log_level=os.getenv("LOG_LEVEL") or "INFO",
            broker=broker_config,
            persistence=persistence_config,
            api=api_config,
        )

        config.validate_storage()
        return config


# Global config instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = Config.from_env()
    return _config


def reset_config() -> None:
    """Drop the cached configuration (used by tests)."""
    global _config
    _config = None
