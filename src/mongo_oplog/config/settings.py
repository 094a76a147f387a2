"""
Configuration for mongo-oplog.

Uses Pydantic Settings for validation and environment variable loading.
Loads from .env file if present, falls back to environment variables, then defaults.
"""
from typing import Any, Dict, Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..connection import DEFAULT_URI, build_client_options
from ..position import parse_since


class OplogSettings(BaseSettings):
    """Oplog tailing configuration."""
    
    model_config = SettingsConfigDict(
        env_prefix="OPLOG_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )
    
    uri: str = Field(default=DEFAULT_URI, description="MongoDB connection URI")
    namespace: str = Field(default="", description="Namespace pattern, e.g. 'shop.*'")
    collection: str = Field(default="", description="Oplog collection (default: oplog.rs)")
    pretty: bool = Field(default=False, description="Emit presentation entries")
    since: Optional[str] = Field(
        default=None,
        description="Resume after this position: seconds since epoch or an ISO-8601 date"
    )
    filter: Optional[Dict[str, Any]] = Field(
        default=None,
        description="Raw oplog query (JSON), used instead of the namespace pattern"
    )
    
    # Connection settings
    replica_set: Optional[str] = Field(default=None, description="Replica set name")
    tls: bool = Field(default=False, description="Connect using TLS")
    tls_ca_file: Optional[str] = Field(default=None, description="Certificate Authority file")
    tls_cert_file: Optional[str] = Field(default=None, description="Client certificate file")
    tls_key_file: Optional[str] = Field(default=None, description="Client PEM key file")
    tls_key_password: Optional[str] = Field(default=None, description="Password for the PEM key file")
    
    log_level: str = Field(default="INFO", description="Log level for mongo_oplog loggers")
    
    @field_validator("since")
    @classmethod
    def validate_since(cls, v: Optional[str]) -> Optional[str]:
        """Reject values that are neither seconds nor an ISO-8601 date."""
        if v is None or v == "":
            return None
        parse_since(v)
        return v
    
    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in allowed:
            raise ValueError(f"log_level must be one of: {allowed}")
        return v.upper()
    
    @property
    def since_seconds(self) -> Optional[float]:
        return parse_since(self.since)
    
    def client_options(self) -> Dict[str, Any]:
        """MongoClient keyword arguments for replica set and TLS settings."""
        return build_client_options(
            replica_set=self.replica_set,
            tls=self.tls,
            tls_ca_file=self.tls_ca_file,
            tls_cert_file=self.tls_cert_file,
            tls_key_file=self.tls_key_file,
            tls_key_password=self.tls_key_password,
        )


# Global settings instance
_settings: Optional[OplogSettings] = None


def get_settings() -> OplogSettings:
    """Get the global settings instance (singleton pattern)."""
    global _settings
    if _settings is None:
        _settings = OplogSettings()
    return _settings


def reload_settings() -> OplogSettings:
    """Reload settings from environment (useful for testing)."""
    global _settings
    _settings = OplogSettings()
    return _settings
