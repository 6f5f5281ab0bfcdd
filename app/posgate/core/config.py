from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    APP_NAME: str = "POSGATE"
    SECRET_KEY: str = "change-me"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    DATABASE_URL: str = "sqlite+pysqlite:///./posgate.db"
    LOGIN_PATH: str = "/public/auth/login"
    UNAUTHORIZED_PATH: str = "/protected/unauthorized"
    MENU_PATH_PREFIX: str = "/protected"
    PERMISSION_LOAD_TIMEOUT_SEC: float = 10.0
    IDENTITY_BASE_URL: str = "http://localhost:8000"
    IDENTITY_TIMEOUT_SECONDS: float = 10.0
    SEED_ADMIN_USERNAME: str = "admin"
    SEED_ADMIN_EMAIL: str = "admin@example.com"
    SEED_ADMIN_PASSWORD: str = "change-me"
    SEED_ADMIN_ROLE: str = "ADMIN"


settings = Settings()
