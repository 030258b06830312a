from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

# config/ is at repo root (one level above backend/)
_REPO_ROOT = Path(__file__).resolve().parents[2]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # Vessel store backend: "memory" (reference) or "sql"
    STORE_BACKEND: str = "memory"
    DATABASE_URL: str = "sqlite:///fleetwatch.db"
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    LOG_LEVEL: str = "INFO"
    # Named reference locations (ETA destinations, port dwell detection)
    REFERENCE_PORTS_CONFIG: str = str(_REPO_ROOT / "config" / "reference_ports.yaml")
    SEED_SAMPLE_DATA: bool = False
    # Query limits
    MAX_QUERY_LIMIT: int = 500
    # CORS origins (comma-separated string for env var support)
    CORS_ORIGINS: str = "http://localhost:5173"
    # aisstream.io real-time AIS WebSocket
    AISSTREAM_ENABLED: bool = False
    AISSTREAM_API_KEY: str | None = None
    AISSTREAM_WS_URL: str = "wss://stream.aisstream.io/v0/stream"
    # [[lat_min, lon_min], [lat_max, lon_max]] pairs; empty = global coverage
    AISSTREAM_BOUNDING_BOXES: list[list[list[float]]] = []
    AISSTREAM_MESSAGE_TYPES: list[str] = [
        "PositionReport",
        "StandardClassBPositionReport",
        "ShipStaticData",
    ]
    # Reconnect backoff: delay = base * 2**attempt, capped at max attempts
    RECONNECT_BASE_DELAY: float = 1.0
    RECONNECT_MAX_ATTEMPTS: int = 5
    RECONNECT_JITTER: float = 0.0
    # Per-observer outbound queue size; a full queue drops the observer
    BROADCAST_QUEUE_SIZE: int = 1000
    # Analytics
    HISTORY_LOOKBACK_DAYS: int = 30
    ETA_DEFAULT_SPEED_KN: float = 10.0
    # Placeholder weather jitter amplitude (hours); 0 disables
    ETA_WEATHER_JITTER_HOURS: float = 2.0
    ETA_JITTER_SEED: int | None = None


settings = Settings()
