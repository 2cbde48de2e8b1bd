"""Configuration management using pydantic-settings."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database settings (canonical store)
    db_server: str
    db_name: str
    db_user: str
    db_password: str
    db_port: int = 5432
    db_pool_size: int = 20
    db_max_overflow: int = 40
    sql_echo: bool = False

    # Elasticsearch settings
    elasticsearch_url: str = "http://localhost:9200"
    elasticsearch_api_key: str = ""
    elasticsearch_timeout: float = 10.0

    # JWT settings (caller identity is issued upstream, verified here)
    jwt_secret: str
    jwt_algorithm: str = "HS256"
    jwt_expiration_minutes: int = 1440

    # Server settings
    host: str = "0.0.0.0"
    port: int = 8000

    # Redis settings (arq job queue)
    redis_url: str = "redis://localhost:6379/0"

    # Query paging
    search_default_page_size: int = 10
    search_max_page_size: int = 100
    search_aggregate_size: int = 10000

    # Highlight tags used when the request does not supply its own
    search_highlight_pre_tag: str = '<span class="search-highlight">'
    search_highlight_post_tag: str = "</span>"

    # Reindex: records whose searchReindexedOn is older than this are stale
    reindex_cutoff_minutes: int = 60
    reindex_page_size: int = 100

    # Enqueue a backfill job after an existing index was dropped and recreated
    reindex_on_recreate: bool = True

    # Scheduled reindex job: runs at these minutes (comma-separated, 0-59)
    # Set to empty string "" to disable the cron job
    arq_reindex_minutes: str = "0,30"

    @property
    def database_url(self) -> str:
        """Build PostgreSQL async connection string."""
        from urllib.parse import quote_plus
        return (
            f"postgresql+asyncpg://{self.db_user}:{quote_plus(self.db_password)}"
            f"@{self.db_server}:{self.db_port}/{self.db_name}"
        )

    @property
    def sync_database_url(self) -> str:
        """Build PostgreSQL sync connection string for Alembic."""
        from urllib.parse import quote_plus
        return (
            f"postgresql+psycopg2://{self.db_user}:{quote_plus(self.db_password)}"
            f"@{self.db_server}:{self.db_port}/{self.db_name}"
        )


# Global settings instance
settings = Settings()
