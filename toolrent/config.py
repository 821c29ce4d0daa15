from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    PORT: int = 3002
    DB_PATH: str = "/data/toolrent.db"
    LOG_LEVEL: str = "info"

    # token -> moderator name, e.g. MODERATOR_TOKENS='{"s3cret": "admin"}'
    MODERATOR_TOKENS: dict[str, str] = {}
    # "hide" keeps the row with status=hidden, "delete" removes it
    PRODUCT_DELETE_POLICY: str = "hide"

    DEFAULT_PAGE_SIZE: int = 50
    MAX_PAGE_SIZE: int = 100
    CORS_ORIGINS: list[str] = ["*"]


settings = Settings()
