"""
Application configuration loaded from environment variables.
Uses pydantic-settings so every value can be overridden via a .env file.
"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # ── JWT ──────────────────────────────────────────────────────────────────
    # Secret used to sign/verify JWT tokens.  No default: the process must not
    # start without one.
    jwt_secret_key: str
    jwt_algorithm: str = "HS256"

    # ── AWS ──────────────────────────────────────────────────────────────────
    aws_region: str = "us-east-1"
    # Leave blank to use the default credential chain (IAM role, env vars, …)
    aws_access_key_id: str = ""
    aws_secret_access_key: str = ""

    # ── DynamoDB ─────────────────────────────────────────────────────────────
    dynamodb_users_table: str = "users"
    dynamodb_songs_table: str = "user_songs"
    dynamodb_follows_table: str = "user_follows"
    # Set to a local DynamoDB endpoint for development (e.g. http://localhost:8000)
    dynamodb_endpoint_url: str = ""

    # ── Logging ──────────────────────────────────────────────────────────────
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
