"""
Application Configuration using Pydantic Settings

Loads configuration from environment variables with sensible defaults.
"""

from typing import List
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    """

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )

    # ========================================================================
    # Results Store (Postgres) Connection Settings
    # ========================================================================
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5433
    POSTGRES_DATABASE: str = "loadbench"
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = ""

    POSTGRES_POOL_MIN_SIZE: int = 1
    POSTGRES_POOL_MAX_SIZE: int = 5
    POSTGRES_COMMAND_TIMEOUT: float = 30.0

    # If True, attempt to connect/init the results pool during FastAPI startup.
    # Default is False so local development doesn't error/hang when Postgres isn't running.
    POSTGRES_CONNECT_ON_STARTUP: bool = False

    # Create the load_stats table on startup if it does not exist yet.
    RESULTS_CREATE_SCHEMA: bool = True
    RESULTS_TABLE: str = "load_stats"

    # ========================================================================
    # MongoDB Target Settings (TPC-B-like generator)
    # ========================================================================
    MONGO_URI: str = "mongodb://localhost:27017/?replicaSet=rs0&directConnection=true"
    MONGO_DATABASE: str = "testdb"

    # Driver-level timeouts (milliseconds). These are the only upper bound on a
    # stalled statement; the generator itself has no per-transaction timeout.
    MONGO_SERVER_SELECTION_TIMEOUT_MS: int = 15000
    MONGO_SOCKET_TIMEOUT_MS: int = 60000

    MONGO_INIT_BATCH_SIZE: int = 1000
    # Drop and repopulate accounts/tellers/branches before each run
    # (100000 x scale account documents). Off by default.
    MONGO_INITIALIZE_DATASET: bool = False

    # Shell command that brings up the replica set before a run. Empty = skip.
    MONGO_PROVISION_COMMAND: str = ""

    # ========================================================================
    # External Benchmark Tool Settings
    # ========================================================================
    # Each command receives: clients threads scale duration report_path
    PGBENCH_COMMAND: str = "bash scripts/pgbench.sh"
    SYSBENCH_COMMAND: str = "bash scripts/sysbench.sh"

    REPORTS_DIR: str = "/tmp/loadbench"

    # ========================================================================
    # Run Defaults
    # ========================================================================
    DEFAULT_DURATION_SECONDS: int = 60
    DEFAULT_CLIENTS: int = 10
    DEFAULT_THREADS: int = 2
    DEFAULT_SCALE: int = 100

    # ========================================================================
    # Application Settings
    # ========================================================================
    APP_HOST: str = "127.0.0.1"
    APP_PORT: int = 3001
    APP_DEBUG: bool = True
    APP_RELOAD: bool = False

    # ========================================================================
    # WebSocket Settings
    # ========================================================================
    OBSERVER_QUEUE_SIZE: int = 50

    # ========================================================================
    # Security Settings
    # ========================================================================
    # Dashboard dev servers.
    CORS_ORIGINS: List[str] = ["http://localhost:5173", "http://localhost:3000"]

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def _build_cors_origins(cls, v):
        if isinstance(v, str):
            return [o.strip() for o in v.split(",") if o.strip()]
        return v

    # ========================================================================
    # Logging Settings
    # ========================================================================
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(levelprefix)s %(asctime)s - %(message)s"


# Create global settings instance
settings = Settings()
