from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=(
            str(Path(__file__).resolve().parents[2] / ".env"),
            ".env",
        ),
        env_ignore_empty=True,
        extra="ignore",
    )

    op_platform_wallet_address: str | None = None
    op_client_key_id: str | None = None
    op_private_key_pem: str | None = None
    base_url: str | None = None

    op_timeout_seconds: float = 15.0
    op_max_retries: int = 0

    fx_market_timeout_seconds: float = 4.0
    fx_send_major: int = 100
    fx_wallets: dict[str, str] = {
        "USD": "https://ilp.interledger-test.dev/usd_25",
        "EUR": "https://ilp.interledger-test.dev/eur_25",
        "MXN": "https://ilp.interledger-test.dev/mx_25",
        "EGG": "https://ilp.interledger-test.dev/eg25",
        "PEB": "https://ilp.interledger-test.dev/peb_25",
        "PKR": "https://ilp.interledger-test.dev/pkr_25",
    }
    fx_aliases: dict[str, str] = {"USDT": "USD"}

    pending_store_backend: str = "memory"
    pending_ttl_seconds: int = 900
    pending_sweep_interval_seconds: float = 60.0
    redis_url: str = "redis://localhost:6379/0"

    allowed_origins: str = "http://localhost:3000"
    log_level: str = "INFO"


settings = Settings()
