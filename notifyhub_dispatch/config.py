from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Dispatch daemon settings loaded from environment."""

    # Service
    service_name: str = "notifyhub-dispatch"
    log_level: str = "INFO"

    # Database
    db_host: str = "localhost"
    db_port: int = 5432
    db_name: str = "notifyhub"
    db_user: str = "notifyhub"
    db_password: str = ""

    # Liveness
    heartbeat_file: str = "var/run/scheduler_heartbeat"
    pid_file: str = "var/run/scheduler.pid"
    heartbeat_interval_seconds: int = 10
    lock_stale_seconds: int = 150  # Heartbeat age after which a holder is considered dead

    # Scheduler
    dispatch_interval_seconds: int = 60  # Check for due messages every minute
    schedule_grace_seconds: int = 60  # Sooner than this is sent immediately
    stuck_sending_seconds: int = 600  # Reported as an anomaly by the status command
    concurrent_channel_attempts: bool = True

    # Channel providers
    request_timeout_seconds: float = 15.0
    broadcast_max_recipients: int = 500
    line_api_base_url: str = "https://api.line.me"
    telegram_api_base_url: str = "https://api.telegram.org"

    @property
    def database_url(self) -> str:
        return f"postgresql+asyncpg://{self.db_user}:{self.db_password}@{self.db_host}:{self.db_port}/{self.db_name}"

    class Config:
        env_file = ".env"
        env_prefix = "NOTIFYHUB_"
        case_sensitive = False


settings = Settings()
