"""Pydantic models for cumulus.yaml configuration."""

from typing import Literal

from pydantic import BaseModel, Field


class HubConfig(BaseModel):
    """Plugin hub configuration."""

    dir: str = Field(
        default="~/.cumulus/plugins",
        description="Directory holding installed plugins",
    )


class ProxyConfig(BaseModel):
    """Routing layer configuration."""

    url: str = Field(
        default="memory://",
        description="Proxy backend URL; the scheme selects the backend (memory, http, https)",
    )


class RuntimeConfig(BaseModel):
    """Container runtime configuration."""

    engine: Literal["auto", "docker", "podman"] = Field(
        default="auto",
        description="Container engine, or 'auto' to detect Docker then Podman",
    )
    network: str = Field(default="cumulus", description="Network application containers join")
    image_registry: str = Field(
        default="cumulus",
        description="Registry prefix for plugin images",
    )
    stop_timeout: int = Field(
        default=10,
        description="Seconds to wait for a container to stop before killing it",
        ge=0,
    )


class PlatformConfig(BaseModel):
    """Platform-wide naming."""

    domain: str = Field(default="cumulus.local", description="Domain application hosts live under")
    scheme: Literal["http", "https"] = Field(default="http", description="Public URL scheme")
    ssh_port: int = Field(default=2200, description="SSH gateway port", ge=1, le=65535)


class StoreConfig(BaseModel):
    """Application record store configuration."""

    dir: str = Field(
        default="~/.cumulus/users",
        description="Directory holding one application record file per namespace",
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Root log level",
    )


class CumulusConfig(BaseModel):
    """Root configuration model."""

    hub: HubConfig = Field(default_factory=HubConfig)
    proxy: ProxyConfig = Field(default_factory=ProxyConfig)
    runtime: RuntimeConfig = Field(default_factory=RuntimeConfig)
    platform: PlatformConfig = Field(default_factory=PlatformConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
