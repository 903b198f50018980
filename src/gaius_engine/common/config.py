"""Gaius-Engine configuration via pydantic-settings."""

import warnings
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_INSECURE_API_KEY = "insecure-admin-key-change-me"

# Public algonode endpoints, keyed by network type
ALGORAND_NETWORKS = {
    "testnet": {
        "name": "TestNet",
        "algod_server": "https://testnet-api.algonode.cloud",
        "indexer_server": "https://testnet-idx.algonode.cloud",
        "explorer_url": "https://lora.algokit.io/testnet",
    },
    "mainnet": {
        "name": "MainNet",
        "algod_server": "https://mainnet-api.algonode.cloud",
        "indexer_server": "https://mainnet-idx.algonode.cloud",
        "explorer_url": "https://lora.algokit.io/mainnet",
    },
}


class GaiusSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="GAIUS_")

    environment: str = "development"
    log_level: str = "INFO"

    # Database
    db_url: str = "sqlite+aiosqlite:///./data/gaius.db"

    # Ledger
    network: str = "testnet"
    algod_server: str = ""  # overrides the network default when set
    algod_token: str = ""
    indexer_server: str = ""  # overrides the network default when set
    ledger_timeout: float = 30.0
    ledger_max_retries: int = 3
    ledger_retry_backoff_base: float = 0.5

    # Subscriptions
    subscription_wallet: str = "NXZKJ5F74WOM5FI7KQQ4XQVAGAAXLGS6ROUEQJGDWXT6UNOQMTEC5UAAMU"
    subscription_days: int = 30
    confirmation_rounds: int = Field(default=4, ge=1)
    signing_timeout: float = 120.0  # seconds
    payment_note_prefix: str = "Gaius Loyalty Program"

    # Only assets whose name, unit name or URL contain this count as programs
    program_marker: str = ""

    # API
    api_title: str = "Gaius-Engine"
    api_version: str = "0.1.0"
    api_key: str = _INSECURE_API_KEY
    host: str = "0.0.0.0"
    port: int = 8080
    api_prefix: str = ""
    cors_origins: list[str] = ["http://localhost:3000", "http://localhost:5173"]

    @field_validator("subscription_wallet")
    @classmethod
    def _check_subscription_wallet(cls, value: str) -> str:
        from gaius_engine.ledger.address import is_valid_address

        if not is_valid_address(value):
            raise ValueError("GAIUS_SUBSCRIPTION_WALLET is not a valid Algorand address")
        return value

    @property
    def network_config(self) -> dict[str, str]:
        try:
            return ALGORAND_NETWORKS[self.network]
        except KeyError:
            raise ValueError(
                f"Unknown network: {self.network!r}. Must be one of {sorted(ALGORAND_NETWORKS)}"
            ) from None

    @property
    def algod_url(self) -> str:
        """Return the algod base URL for the configured network."""
        return (self.algod_server or self.network_config["algod_server"]).rstrip("/")

    @property
    def indexer_url(self) -> str:
        return (self.indexer_server or self.network_config["indexer_server"]).rstrip("/")

    @property
    def explorer_url(self) -> str:
        return self.network_config["explorer_url"]

    def validate_for_production(self) -> None:
        """Raise if insecure values are used in non-development environments."""
        problems = []
        if self.api_key == _INSECURE_API_KEY:
            problems.append("GAIUS_API_KEY is the insecure default")

        if self.environment != "development" and problems:
            raise RuntimeError(
                f"Invalid configuration for '{self.environment}' environment: "
                + "; ".join(problems)
            )

        if problems:
            warnings.warn(
                "Configuration not fit for production: " + "; ".join(problems),
                UserWarning,
                stacklevel=2,
            )


@lru_cache
def get_settings() -> GaiusSettings:
    settings = GaiusSettings()
    settings.validate_for_production()
    return settings
