"""Configuration management for the DSMR metrics exporter"""
from pathlib import Path
from typing import Literal, Optional
import httpx
from pydantic import Field, ValidationError, validator
from pydantic_settings import BaseSettings
from errors import ConfigError


# Fixed listening port, not configurable
METRICS_PORT = 8080


class Config(BaseSettings):
    """Environment-based settings with Pydantic validation"""
    
    # Upstream DSMR logger (required)
    dsmr_base_url: str = Field(..., description="Base URL of the DSMR logger, e.g. http://192.168.1.10")
    
    # Server settings
    metrics_host: str = Field(default="0.0.0.0", description="Metrics server host")
    metrics_namespace: str = Field(default="dsmr", description="Prefix for exported metric names")
    
    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(default="INFO", description="Log level")
    log_file: Optional[Path] = Field(default=None, description="Optional log file path")
    
    # Service settings
    service_name: str = Field(default="dsmr-exporter", description="Service name")
    service_version: str = Field(default="1.0.0", description="Service version")
    enable_request_logging: bool = Field(default=True, description="Enable HTTP request logging")
    
    class Config:
        env_prefix = ""
        case_sensitive = False
    
    @validator('dsmr_base_url')
    def validate_dsmr_base_url(cls, v):
        """Reject an empty or malformed base URL"""
        v = v.strip()
        if not v:
            raise ValueError("DSMR_BASE_URL is empty")
        try:
            url = httpx.URL(v)
        except httpx.InvalidURL as e:
            raise ValueError(f"DSMR_BASE_URL is not a valid URL: {e}") from e
        if url.scheme not in ("http", "https") or not url.host:
            raise ValueError("DSMR_BASE_URL must be an absolute http(s) URL")
        return v.rstrip('/')
    
    @validator('log_level', pre=True)
    def normalize_log_level(cls, v):
        if isinstance(v, str):
            return v.upper()
        return v
    
    @validator('log_file')
    def ensure_parent_directory(cls, v):
        """Ensure the log file directory exists"""
        if isinstance(v, Path):
            v.parent.mkdir(parents=True, exist_ok=True)
        return v
    
    @property
    def metrics_port(self) -> int:
        return METRICS_PORT
    
    @property
    def upstream_url(self) -> str:
        """Full URL of the actual-readings endpoint"""
        return f"{self.dsmr_base_url}/api/v1/sm/actual"


def load_config() -> Config:
    """Load configuration from the environment, raising ConfigError on failure"""
    try:
        return Config()
    except ValidationError as e:
        problems = []
        for error in e.errors():
            field = ".".join(str(part) for part in error.get("loc", ())) or "config"
            if error.get("type") == "missing":
                problems.append(f"{field.upper()} is required")
            else:
                problems.append(f"{field.upper()}: {error.get('msg')}")
        raise ConfigError("Invalid configuration: " + "; ".join(problems)) from e
