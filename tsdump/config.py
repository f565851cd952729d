"""Configuration models using Pydantic for validation."""
from typing import Any, Dict, Optional, Tuple
from pydantic import BaseModel, Field, field_validator, model_validator
import os
import time

# Default query window when no start is given: the last ten minutes.
DEFAULT_WINDOW_S = 10 * 60


class QueryConfig(BaseModel):
    """What to ask the monitoring backend for."""
    project: str = ""
    metric_type: str = ""
    resource_type: str = ""
    start: Optional[int] = None  # unix seconds
    end: Optional[int] = None  # unix seconds
    timeout_s: Optional[float] = None  # per-call deadline, None blocks

    @field_validator('timeout_s')
    @classmethod
    def validate_timeout(cls, v):
        """Reject non-positive deadlines."""
        if v is not None and v <= 0:
            raise ValueError("timeout_s must be positive")
        return v

    @model_validator(mode='after')
    def validate_window(self):
        """Ensure an explicit window is not inverted."""
        if self.start is not None and self.end is not None and self.end < self.start:
            raise ValueError(f"end ({self.end}) is before start ({self.start})")
        return self

    def window(self, now: Optional[float] = None) -> Tuple[int, int]:
        """Resolve start/end, filling in the trailing default window."""
        now_s = int(time.time() if now is None else now)
        start = self.start if self.start is not None else now_s - DEFAULT_WINDOW_S
        end = self.end if self.end is not None else now_s
        return start, end


class GlobalConfig(BaseModel):
    """Global configuration settings."""
    log_level: str = "INFO"


class Config(BaseModel):
    """Root configuration model."""
    global_: GlobalConfig = Field(default_factory=GlobalConfig, alias="global")
    query: QueryConfig = Field(default_factory=QueryConfig)

    class Config:
        populate_by_name = True


def load_config(
    config_path: Optional[str] = None,
    overrides: Optional[Dict[str, Dict[str, Any]]] = None
) -> Config:
    """
    Load and validate configuration.

    Values are layered as: YAML file, then environment variables, then
    ``overrides`` (normally the command-line flags).

    Args:
        config_path: Optional path to a YAML configuration file
        overrides: Per-section values that win over everything else

    Returns:
        Validated configuration
    """
    raw_config: Dict[str, Any] = {}

    if config_path is not None:
        import yaml

        if not os.path.exists(config_path):
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(config_path, 'r') as f:
            raw_config = yaml.safe_load(f) or {}

    # Apply environment variable overrides
    if env_project := os.getenv('TSDUMP_PROJECT'):
        raw_config.setdefault('query', {})['project'] = env_project

    if env_log_level := os.getenv('LOG_LEVEL'):
        raw_config.setdefault('global', {})['log_level'] = env_log_level

    for section, values in (overrides or {}).items():
        raw_config.setdefault(section, {}).update(values)

    try:
        return Config(**raw_config)
    except Exception as e:
        raise ValueError(f"Configuration validation failed: {e}")
