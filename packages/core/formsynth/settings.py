"""Engine settings with environment overrides."""

import os
from dataclasses import dataclass, fields
from typing import Any, Dict

from .exceptions import ConfigurationError


ENV_PREFIX = "FORMSYNTH_"


@dataclass
class EngineSettings:
    """Tunable constants for compilation and dispatch."""
    group_size: int = 5
    cooldown_every: int = 50
    cooldown_seconds: float = 3.0
    min_pacing_ms: float = 100.0
    pacing_factor: float = 0.3
    poll_interval: float = 0.1
    delivery_timeout: float = 1.5
    delivery_retries: int = 2
    retry_backoff: float = 0.5
    checkbox_extra_probability: float = 0.3
    checkbox_extra_min_weight: float = 20.0

    def __post_init__(self):
        if self.group_size < 1:
            raise ConfigurationError("group_size must be at least 1")
        if self.cooldown_every < 1:
            raise ConfigurationError("cooldown_every must be at least 1")
        if self.poll_interval <= 0:
            raise ConfigurationError("poll_interval must be positive")
        if self.delivery_retries < 1:
            raise ConfigurationError("delivery_retries must be at least 1")
        if not 0.0 <= self.checkbox_extra_probability <= 1.0:
            raise ConfigurationError("checkbox_extra_probability must be within [0, 1]")

    @classmethod
    def from_env(cls, **overrides: Any) -> "EngineSettings":
        """
        Build settings from ``FORMSYNTH_*`` environment variables.

        Explicit keyword overrides win over the environment.
        """
        values: Dict[str, Any] = {}
        for f in fields(cls):
            raw = os.getenv(ENV_PREFIX + f.name.upper())
            if raw is None or raw.strip() == "":
                continue
            try:
                values[f.name] = type(f.default)(raw.strip())
            except (TypeError, ValueError) as e:
                raise ConfigurationError(f"Invalid value for {ENV_PREFIX}{f.name.upper()}: {raw!r}") from e
        values.update(overrides)
        return cls(**values)
