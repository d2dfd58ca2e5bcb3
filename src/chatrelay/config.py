"""Application configuration via environment variables.

Uses pydantic-settings to load config from env vars with CHATRELAY_ prefix.
Everything the relay needs fits in env vars, there is no config file.

Learn: Durations are plain seconds (floats), so tests can shrink the
query deadline to a fraction of a second without monkeypatching.
"""

from pydantic import model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """All relay configuration. Set via CHATRELAY_* env vars."""

    # Server
    environment: str = "development"
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 3000

    # CORS: the extension and ad-hoc clients call from anywhere
    cors_origins: list[str] = ["*"]

    # Worker liveness
    liveness_threshold_seconds: float = 120.0  # silence before a worker is dead

    # Query rendezvous
    request_timeout_seconds: float = 180.0  # caller deadline
    progress_log_interval_seconds: float = 10.0

    # Orphaned results (worker answered after the caller gave up)
    result_ttl_seconds: float = 180.0
    sweep_interval_seconds: float = 60.0

    # 0 = unbounded per-worker queue
    max_pending_per_worker: int = 0

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    model_config = {"env_prefix": "CHATRELAY_"}

    @model_validator(mode="after")
    def validate_durations(self):
        """Reject zero or negative timing knobs — they would spin or never wait."""
        for name in (
            "liveness_threshold_seconds",
            "request_timeout_seconds",
            "progress_log_interval_seconds",
            "result_ttl_seconds",
            "sweep_interval_seconds",
        ):
            if getattr(self, name) <= 0:
                raise ValueError(f"CHATRELAY_{name.upper()} must be positive")
        if self.max_pending_per_worker < 0:
            raise ValueError("CHATRELAY_MAX_PENDING_PER_WORKER must be >= 0")
        return self


# Singleton, import this everywhere
settings = Settings()
