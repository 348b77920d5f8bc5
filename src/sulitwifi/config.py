from pydantic_settings import BaseSettings

MEMORY_DATABASE_URL = "memory://"


class Config(BaseSettings):
    """Application configuration loaded from environment variables."""

    database_url: str  # mongodb://host:port/dbname, or memory:// for the in-process store
    host: str = "0.0.0.0"
    port: int = 3001
    debug: bool = False
    cors_origins: list[str] = []
    ssid: str = "SULIT WIFI Hotspot"
    portal_title: str = "SULIT WIFI Portal"
    admin_password: str = "admin"  # Seed password for the single admin account
    admin_token_ttl_seconds: int = 8 * 60 * 60
    device_api_key: str | None = None  # Shared key of the coin detector; pulses are rejected when unset
    coin_slot_enabled: bool = True
    coin_requires_pulse: bool = True  # Coin redemption needs a detector pulse inside the window, not only a probe
    coin_window_seconds: int = 120
    nac_enabled: bool = True  # False runs a dry-run bridge that only logs (development machines)
    nac_command: str = "ndsctl"
    nac_use_sudo: bool = True
    nac_timeout_seconds: float = 5.0
    nac_retries: int = 2  # Extra attempts after the first failed invocation
    nac_retry_backoff_seconds: float = 0.5
    sweep_interval_seconds: float = 30.0
    reconcile_interval_seconds: float = 300.0
    store_timeout_ms: int = 5000  # Client-side bound for every store operation
    # Build metadata injected during image build via environment variables
    git_commit_hash: str = "unknown"
    build_time: str = "unknown"

    model_config = {
        "env_file": [".env"],
        "env_prefix": "SULITWIFI_",
        "extra": "ignore",
    }

    @property
    def uses_memory_storage(self) -> bool:
        return self.database_url.startswith(MEMORY_DATABASE_URL)
