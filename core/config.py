from decouple import config, Csv

class Settings:
    # Database Configuration
    DATABASE_URL: str = config("DATABASE_URL", default="sqlite:///./order_dispatch.db")

    # Security Configuration
    SECRET_KEY: str = config("SECRET_KEY", default="your-secret-key-here-change-in-production")
    JWT_ALGORITHM: str = config("JWT_ALGORITHM", default="HS256")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = config("ACCESS_TOKEN_EXPIRE_MINUTES", default=60 * 12, cast=int)

    # CORS Configuration
    CORS_ORIGINS: list = config(
        "CORS_ORIGINS",
        default="http://localhost:3000,http://127.0.0.1:3000",
        cast=Csv()
    )

    # Arrival watermark polling
    PENDING_POLL_INTERVAL_SECONDS: float = config("PENDING_POLL_INTERVAL_SECONDS", default=30, cast=float)
    POLL_REQUEST_TIMEOUT_SECONDS: float = config("POLL_REQUEST_TIMEOUT_SECONDS", default=10, cast=float)
    WATERMARK_STORE_PATH: str = config("WATERMARK_STORE_PATH", default="~/.order_watch.json")

    # URL Configuration
    API_BASE_URL: str = config("API_BASE_URL", default="http://localhost:8000")

    # Environment
    ENVIRONMENT: str = config("ENVIRONMENT", default="development")
    DEBUG: bool = config("DEBUG", default=True, cast=bool)

    # Logging
    LOG_LEVEL: str = config("LOG_LEVEL", default="INFO")

settings = Settings()
