"""Pipeline configuration with environment overrides."""

import os
from dataclasses import dataclass, fields, replace
from typing import Mapping, Optional

ENV_PREFIX = "WRITEMET_"
DIFFICULTIES = ("beginner", "intermediate", "advanced")


@dataclass(frozen=True)
class PipelineConfig:
    """Tunable limits for batching, pacing and token budgets."""

    min_request_interval: float = 12.0
    relevance_batch_size: int = 20
    evaluation_batch_size: int = 10
    cooldown_every: int = 4
    cooldown_seconds: float = 60.0
    max_issue_samples: int = 100
    relevance_max_tokens: int = 1000
    evaluation_max_tokens: int = 4000
    analysis_max_tokens: int = 4000
    practice_max_tokens: int = 4000
    grading_max_tokens: int = 2000
    narrative_max_tokens: int = 500
    difficulty: str = "intermediate"

    def __post_init__(self):
        if self.min_request_interval < 0:
            raise ValueError("min_request_interval must be >= 0")
        if self.cooldown_seconds < 0:
            raise ValueError("cooldown_seconds must be >= 0")
        for name in ("relevance_batch_size", "evaluation_batch_size", "cooldown_every"):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be >= 1")
        if self.difficulty not in DIFFICULTIES:
            raise ValueError(f"difficulty must be one of {', '.join(DIFFICULTIES)}")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "PipelineConfig":
        """Build a config from ``WRITEMET_*`` variables, falling back to defaults."""
        if environ is None:
            environ = os.environ

        overrides = {}
        for config_field in fields(cls):
            raw_value = environ.get(ENV_PREFIX + config_field.name.upper())
            if raw_value is None or raw_value.strip() == "":
                continue
            overrides[config_field.name] = _coerce(config_field.name, config_field.type, raw_value)
        return replace(cls(), **overrides)


def _coerce(name: str, field_type, raw_value: str):
    type_name = field_type if isinstance(field_type, str) else field_type.__name__
    value = raw_value.strip()
    try:
        if type_name == "int":
            return int(value)
        if type_name == "float":
            return float(value)
    except ValueError as exc:
        raise ValueError(f"Invalid value for {ENV_PREFIX}{name.upper()}: {raw_value!r}") from exc
    return value
