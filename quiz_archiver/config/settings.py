from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = "dev"
    log_level: str = "INFO"

    db_host: str = "host.docker.internal"
    db_port: int = 5432
    db_database: str = "moodle"
    db_username: str = "moodle"
    db_password: str = "secret"
    db_pool_max_size: int = 10

    wwwroot: str = "http://localhost"
    internal_wwwroot: str = ""
    dataroot: str = "/var/www/moodledata"
    timezone: str = "UTC"

    worker_url: str = ""
    worker_connection_timeout_seconds: int = 5
    worker_request_timeout_seconds: int = 20
    driver_name: str = "archivingmod_quiz"

    enable_webservices: bool = False
    webservice_protocols: str = ""
    webservice_token_lifetime_seconds: int = 604800

    task_poll_interval_seconds: int = 5
    task_poll_batch_size: int = 20

    image_fetch_timeout_seconds: int = 10

    @property
    def callback_wwwroot(self) -> str:
        """Site root the remote worker should use to call back into this instance."""
        return (self.internal_wwwroot or self.wwwroot).rstrip("/")
