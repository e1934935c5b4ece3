"""
Application settings.

Settings come from the packaged base.yml, an optional YAML file named by
ENV_CONFIG_FILE, and finally environment variables of the form
APP_<SECTION>__<KEY> (e.g. APP_APPLICATION__PORT=3000).
"""
import logging
import os
from pathlib import Path
from typing import Any, Dict, Literal, Mapping, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError

from pdf_cdr.config.limits import JPEG_QUALITY, MAX_UPLOAD_BYTES, PAGE_BATCH_SIZE, RENDER_DPI
from pdf_cdr.core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

BASE_CONFIG_FILE = Path(__file__).parent / "base.yml"
ENV_PREFIX = "APP_"
ENV_SEPARATOR = "__"


class ApplicationSettings(BaseModel):
    host: str = "0.0.0.0"
    port: int = Field(8000, ge=0, le=65535)
    instance_id: str = Field("pdf-cdr-1", min_length=1)
    max_upload_bytes: int = Field(MAX_UPLOAD_BYTES, gt=0)
    submit_rate_limit: str = "60/minute"


class StorageSettings(BaseModel):
    base_dir: str = "./data/documents"


class QueueSettings(BaseModel):
    backend: Literal["file", "redis"] = "file"
    jobs_dir: str = "./data/jobs"
    redis_url: str = "redis://localhost:6379/0"
    key_prefix: str = "cdr:"
    poll_interval_seconds: float = Field(1.0, gt=0)
    claim_max_retries: int = Field(5, ge=0)
    recovery_policy: Literal["resume", "fail"] = "resume"
    max_attempts: int = Field(3, ge=1)
    retention_hours: float = Field(24, gt=0)


class WorkerSettings(BaseModel):
    concurrency: int = Field(4, ge=1)


class RendererSettings(BaseModel):
    """Isolated renderer settings; the timeout has no default on purpose."""
    timeout_seconds: float = Field(..., gt=0)
    start_method: Literal["spawn", "forkserver", "fork"] = "spawn"
    dpi: int = Field(RENDER_DPI, ge=1)


class PipelineSettings(BaseModel):
    batch_size: int = Field(PAGE_BATCH_SIZE, ge=1)
    jpeg_quality: int = Field(JPEG_QUALITY, ge=1, le=100)
    work_dir: Optional[str] = None


class CallbackSettings(BaseModel):
    timeout_seconds: float = Field(30, gt=0)
    max_retries: int = Field(0, ge=0)
    retry_base_delay: float = Field(1.0, ge=0)


class AppSettings(BaseModel):
    application: ApplicationSettings = Field(default_factory=ApplicationSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    queue: QueueSettings = Field(default_factory=QueueSettings)
    workers: WorkerSettings = Field(default_factory=WorkerSettings)
    renderer: RendererSettings
    pipeline: PipelineSettings = Field(default_factory=PipelineSettings)
    callbacks: CallbackSettings = Field(default_factory=CallbackSettings)


def _load_yaml(path: Path) -> Dict[str, Any]:
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Failed to read config file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {path} must contain a mapping")
    return data


def _merge(base: Dict[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _env_overrides(environ: Mapping[str, str]) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    for name, value in environ.items():
        if not name.startswith(ENV_PREFIX) or ENV_SEPARATOR not in name:
            continue
        path = name[len(ENV_PREFIX):].lower().split(ENV_SEPARATOR)
        node = overrides
        for part in path[:-1]:
            node = node.setdefault(part, {})
        node[path[-1]] = value
    return overrides


def get_app_settings(
    config_file: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> AppSettings:
    """Load settings from YAML files and environment overrides.

    Args:
        config_file: Extra YAML file layered over base.yml
            (default: ENV_CONFIG_FILE environment variable)
        environ: Environment mapping (default: os.environ)

    Raises:
        ConfigurationError: If a file cannot be read or validation fails
    """
    environ = os.environ if environ is None else environ
    data = _load_yaml(BASE_CONFIG_FILE)

    config_file = config_file or environ.get("ENV_CONFIG_FILE")
    if config_file:
        data = _merge(data, _load_yaml(Path(config_file)))

    data = _merge(data, _env_overrides(environ))

    try:
        return AppSettings.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e
