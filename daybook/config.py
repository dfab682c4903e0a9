"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from pydantic_settings import BaseSettings
from typing import List


class DaybookConfig(BaseSettings):
    """Day book ledger configuration"""
    
    # Database configuration
    database_url: str = "sqlite:///daybook.db"  # memory:// for an in-process store
    
    # API configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8090
    cors_origins: List[str] = ["*"]
    
    # Security configuration
    jwt_secret: str = "change-me-in-production"
    jwt_expiry_hours: int = 24
    jwt_algorithm: str = "HS256"
    password_min_length: int = 6
    
    # Logging configuration
    log_level: str = "INFO"
    
    # File store configuration
    file_store_path: str = "uploads"
    file_store_base_url: str = "/files"
    
    # Tenancy
    personal_tenant: str = "Personal"
    
    class Config:
        env_prefix = "DAYBOOK_"
        env_file = ".env"
        case_sensitive = False


# Global configuration instance
config = DaybookConfig()


def get_config() -> DaybookConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> DaybookConfig:
    """Reload configuration from environment"""
    global config
    config = DaybookConfig()
    return config
