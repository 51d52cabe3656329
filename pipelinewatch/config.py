from __future__ import annotations

import logging
import os
from typing import Literal, Optional, Set

import yaml
from pydantic import BaseModel, Field

from .constants import (
    API_URL_ENV,
    CONFIG_PATH_ENV,
    DEFAULT_ALERT_RATIO,
    DEFAULT_FETCH_TIMEOUT_SECONDS,
    DEFAULT_POLL_INTERVAL_SECONDS,
    DEFAULT_THRESHOLD_MS,
    FILTER_THRESHOLD_ENV,
    RUN_KICKOFF_FILTER_ENV,
    STEP_START_FILTER_ENV,
    STORE_BACKEND_ENV,
    TOKEN_ENV,
)

logger = logging.getLogger(__name__)


class OverheadConfig(BaseModel):
    """Noise filter and alerting knobs for overhead ratios."""

    filter_threshold_ms: float = DEFAULT_THRESHOLD_MS
    alert_ratio: float = Field(default=DEFAULT_ALERT_RATIO, ge=0.0, le=1.0)


class FilterConfig(BaseModel):
    """Namespaces excluded from each liveness event class."""

    step_start_namespaces: Set[str] = Field(default_factory=set)
    run_kickoff_namespaces: Set[str] = Field(default_factory=set)


class LivenessConfig(BaseModel):
    poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS


class StoreConfig(BaseModel):
    """Object store connection settings."""

    backend: Literal["inmemory", "kubernetes"] = "inmemory"
    api_url: str = "https://kubernetes.default.svc"
    token: Optional[str] = None
    verify_ssl: bool = True
    request_timeout_seconds: float = 10.0


class WatchConfig(BaseModel):
    """Top-level configuration model."""

    overhead: OverheadConfig = Field(default_factory=OverheadConfig)
    filters: FilterConfig = Field(default_factory=FilterConfig)
    liveness: LivenessConfig = Field(default_factory=LivenessConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    fetch_timeout_seconds: float = DEFAULT_FETCH_TIMEOUT_SECONDS


def parse_namespace_list(value: str) -> Set[str]:
    """Split a comma separated namespace list, dropping blanks."""
    return {ns.strip() for ns in value.split(",") if ns.strip()}


def load_config(path: Optional[str] = None) -> WatchConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to PIPELINEWATCH_CONFIG env
            variable or 'config.yaml' in the current directory.
    """

    config_path = path or os.getenv(CONFIG_PATH_ENV, "config.yaml")
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = WatchConfig(**data)
    else:
        config = WatchConfig()

    threshold = os.getenv(FILTER_THRESHOLD_ENV)
    if threshold:
        try:
            config.overhead.filter_threshold_ms = float(threshold)
        except ValueError:
            logger.warning(
                f"error parsing {FILTER_THRESHOLD_ENV} env of {threshold!r}, keeping "
                f"{config.overhead.filter_threshold_ms}"
            )

    step_start = os.getenv(STEP_START_FILTER_ENV)
    if step_start:
        config.filters.step_start_namespaces = parse_namespace_list(step_start)
    run_kickoff = os.getenv(RUN_KICKOFF_FILTER_ENV)
    if run_kickoff:
        config.filters.run_kickoff_namespaces = parse_namespace_list(run_kickoff)

    backend = os.getenv(STORE_BACKEND_ENV)
    if backend:
        config.store.backend = backend.lower()
    api_url = os.getenv(API_URL_ENV)
    if api_url:
        config.store.api_url = api_url
    token = os.getenv(TOKEN_ENV)
    if token:
        config.store.token = token
    return config
