from decouple import config, Csv

class Settings:
    # Database Configuration
    DATABASE_URL: str = config("DATABASE_URL", default="sqlite:///./store_ratings.db")
    SQL_ECHO: bool = config("SQL_ECHO", default=False, cast=bool)

    # Security Configuration
    SECRET_KEY: str = config("SECRET_KEY", default="your-secret-key-here-change-in-production")
    JWT_ALGORITHM: str = config("JWT_ALGORITHM", default="HS256")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = config("ACCESS_TOKEN_EXPIRE_MINUTES", default=1440, cast=int)
    BCRYPT_ROUNDS: int = config("BCRYPT_ROUNDS", default=12, cast=int)

    # Rating policy
    ALLOW_ADMIN_RATINGS: bool = config("ALLOW_ADMIN_RATINGS", default=False, cast=bool)

    # Default administrator created on first startup
    DEFAULT_ADMIN_EMAIL: str = config("DEFAULT_ADMIN_EMAIL", default="admin@storeratings.com")
    DEFAULT_ADMIN_PASSWORD: str = config("DEFAULT_ADMIN_PASSWORD", default="Admin@123")
    DEFAULT_ADMIN_NAME: str = config("DEFAULT_ADMIN_NAME", default="System Administrator")

    # CORS Configuration
    CORS_ORIGINS: list = config(
        "CORS_ORIGINS",
        default="http://localhost:3000,http://127.0.0.1:3000,http://localhost:5173",
        cast=Csv()
    )

    # Environment
    ENVIRONMENT: str = config("ENVIRONMENT", default="development")
    DEBUG: bool = config("DEBUG", default=True, cast=bool)

    # Logging
    LOG_LEVEL: str = config("LOG_LEVEL", default="INFO")

settings = Settings()
