from pydantic_settings import BaseSettings
from pydantic import Field, field_validator
from functools import lru_cache
from typing import List, Optional
import os


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Environment variables can come from:
    - .env file (for secrets like the JWT key and IPFS credentials)
    - System environment

    IPFS credentials also honour the INFURA_IPFS_ID / INFURA_IPFS_SECRET
    names used by older deployments.
    """

    # Environment
    environment: str = "development"
    log_level: str = "INFO"

    # JWT - uses SECRET_KEY from .env or generates default
    jwt_secret_key: str = Field(default="dev-secret-key-change-in-production", validate_default=True)
    jwt_algorithm: str = "HS256"
    jwt_expire_minutes: int = 1440

    # CORS
    cors_origins: List[str] = ["*"]

    # Model / compute simulation
    default_model_id: int = 1
    compute_step_delay_seconds: float = 2.0

    # IPFS (hosted gateway)
    ipfs_project_id: Optional[str] = Field(default=None, validate_default=True)
    ipfs_project_secret: Optional[str] = Field(default=None, validate_default=True)
    ipfs_api_url: str = "https://ipfs.infura.io:5001"
    ipfs_gateway_url: str = "https://ipfs.io/ipfs"
    ipfs_timeout_seconds: float = 30.0

    # Uploads
    max_upload_bytes: int = 50 * 1024 * 1024

    # Real-time channel: a client slower than this is dropped
    websocket_send_timeout_seconds: float = 5.0
    websocket_queue_size: int = 100

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"  # Ignore extra env vars

    @field_validator('jwt_secret_key', mode='before')
    @classmethod
    def get_jwt_secret(cls, v):
        """Use SECRET_KEY from env if JWT_SECRET_KEY not set"""
        if v and v != "dev-secret-key-change-in-production":
            return v
        return os.getenv('SECRET_KEY', v or 'dev-secret-key-change-in-production')

    @field_validator('ipfs_project_id', mode='before')
    @classmethod
    def get_ipfs_project_id(cls, v):
        """Fall back to INFURA_IPFS_ID"""
        return v or os.getenv('INFURA_IPFS_ID') or None

    @field_validator('ipfs_project_secret', mode='before')
    @classmethod
    def get_ipfs_project_secret(cls, v):
        """Fall back to INFURA_IPFS_SECRET"""
        return v or os.getenv('INFURA_IPFS_SECRET') or None


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
