"""
Configuration management for the compile service.
Supports environment variables and .env files.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_FORBIDDEN_KEYWORDS: list[str] = [
    "System.exit",
    "Runtime.getRuntime",
    "ProcessBuilder",
    "java.io.File",
    "java.nio.file",
    "java.net",
    "java.lang.reflect",
    "sun.misc.Unsafe",
    "Thread",
    "ForkJoinPool",
]


class SandboxConfig(BaseSettings):
    """Container pool and execution limits."""

    model_config = SettingsConfigDict(env_prefix="SANDBOX_")

    # Pool
    image_name: str = Field(
        default="eclipse-temurin:17-jdk",
        description="Image every slot container is started from"
    )
    container_prefix: str = Field(
        default="compile-executor-",
        description="Reserved name prefix for slot containers"
    )
    worker_count: int = Field(default=2, ge=1, description="Number of slots")
    max_container_usage: int = Field(
        default=100,
        ge=1,
        description="Jobs a slot serves before it is recreated"
    )

    # Container resource limits
    memory_limit: str = Field(default="512m", description="Memory ceiling")
    cpus: float = Field(default=0.8, gt=0, description="CPU ceiling in cores")
    pids_limit: int = Field(default=100, ge=1, description="Process-count limit")

    # Workspace
    workspace_root: Path = Field(
        default=Path("/tmp/compiler"),
        description="Host directory holding one subdirectory per job"
    )
    host_workspace_root: Path | None = Field(
        default=None,
        description="Mount source as seen by the Docker daemon "
        "(set when this service itself runs in a container)"
    )
    container_workdir: str = Field(
        default="/app",
        description="Mount target inside slot containers"
    )

    # Execution
    compile_timeout_ms: int = Field(default=10000, ge=1)
    run_timeout_ms: int = Field(default=5000, ge=1)
    max_output_chars: int = Field(default=10000, ge=1)
    max_retries: int = Field(default=1, ge=0)
    max_queue_size: int = Field(
        default=1000,
        ge=0,
        description="Jobs waiting for a slot before submissions are refused (0 = unbounded)"
    )
    docker_timeout: int = Field(
        default=60,
        description="Docker SDK request timeout in seconds"
    )
    forbidden_keywords: list[str] = Field(
        default_factory=lambda: list(DEFAULT_FORBIDDEN_KEYWORDS)
    )

    @property
    def mount_source(self) -> Path:
        return self.host_workspace_root or self.workspace_root


class CallbackConfig(BaseSettings):
    """Result callback delivery."""

    model_config = SettingsConfigDict(env_prefix="CALLBACK_")

    url: str | None = Field(
        default=None,
        description="Default URL that receives finished job results"
    )
    timeout: float = Field(default=5.0, description="Callback request timeout in seconds")


class JobConfig(BaseSettings):
    """Job record handling."""

    model_config = SettingsConfigDict(env_prefix="JOB_")

    retention_seconds: int = Field(
        default=3600,
        description="How long finished job records stay readable"
    )


class ServerConfig(BaseSettings):
    """Server configuration."""

    model_config = SettingsConfigDict(env_prefix="SERVER_")

    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8080, description="Server port")
    debug: bool = Field(default=False, description="Debug mode")


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_nested_delimiter="__"
    )

    app_name: str = "compilebox"
    app_version: str = "1.0.0"
    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = Field(default=False, description="Debug mode")

    sandbox: SandboxConfig = Field(default_factory=SandboxConfig)
    callback: CallbackConfig = Field(default_factory=CallbackConfig)
    job: JobConfig = Field(default_factory=JobConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)

    @field_validator("debug", mode="before")
    @classmethod
    def validate_debug(cls, v: str | bool) -> bool:
        if isinstance(v, bool):
            return v
        if isinstance(v, str):
            return v.lower() in ("true", "1", "yes", "on")
        return False


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
