"""
Pipeline Configuration
======================

Immutable configuration records with documented defaults.

A `PipelineConfig` is built once per process (or per request) by
`load_config()` and passed by value through the pipeline. Values come from
the defaults below, then an optional YAML file, then environment variables
loaded with python-dotenv.
"""

import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Dict, Optional, Tuple

import yaml
from dotenv import load_dotenv

from .errors import ConfigError


# Tokens that force rejection of generated code regardless of its score
DEFAULT_PROHIBITED_PATTERNS = (
    "undefined",
    "pub ",
    "AuthAccount",
    "account.save",
    "account.link",
)


@dataclass(frozen=True)
class PerformanceRequirements:
    """Time and retry budget for one generation request (seconds)"""
    max_generation_time: float = 30.0
    max_validation_time: float = 5.0
    max_retry_attempts: int = 3


@dataclass(frozen=True)
class QualityRequirements:
    """What generated code must satisfy to be accepted"""
    minimum_quality_score: int = 80
    required_features: Tuple[str, ...] = ()
    prohibited_patterns: Tuple[str, ...] = DEFAULT_PROHIBITED_PATTERNS
    performance: PerformanceRequirements = field(default_factory=PerformanceRequirements)


@dataclass(frozen=True)
class EnhancementOptions:
    """How hard one attempt's prompt pushes the model"""
    attempt_number: int = 1
    previous_failures: Tuple = ()
    quality_requirements: QualityRequirements = field(default_factory=QualityRequirements)
    strict_mode: bool = False
    temperature: float = 0.7


@dataclass(frozen=True)
class LLMConfig:
    """Text-generation capability settings"""
    api_key: Optional[str] = None
    model: str = "gpt-4o"
    request_timeout: float = 30.0
    max_retries: int = 2
    temperature: float = 0.7


@dataclass(frozen=True)
class OrchestratorConfig:
    """
    Retry loop bounds.

    `attempt_timeouts` and `llm_retries` are indexed by attempt number - 1;
    the last entry is reused for any later attempt.
    """
    max_attempts: int = 4
    attempt_timeouts: Tuple[float, ...] = (30.0, 20.0, 15.0, 10.0)
    llm_retries: Tuple[int, ...] = (2, 1, 0, 0)
    enable_auto_correction: bool = True
    enable_fallback: bool = True
    refinement_quality_threshold: int = 80
    refinement_extra_attempts: int = 1
    explanation_attempts: int = 2

    def timeout_for(self, attempt: int) -> float:
        index = min(max(attempt, 1), len(self.attempt_timeouts)) - 1
        return self.attempt_timeouts[index]

    def retries_for(self, attempt: int) -> int:
        index = min(max(attempt, 1), len(self.llm_retries)) - 1
        return self.llm_retries[index]


@dataclass(frozen=True)
class TelemetryConfig:
    """Log/metric buffer bounds and console verbosity"""
    verbose: bool = False
    max_log_entries: int = 1000
    max_metric_samples: int = 500
    flush_path: Optional[str] = None


@dataclass(frozen=True)
class PipelineConfig:
    llm: LLMConfig = field(default_factory=LLMConfig)
    orchestrator: OrchestratorConfig = field(default_factory=OrchestratorConfig)
    quality: QualityRequirements = field(default_factory=QualityRequirements)
    telemetry: TelemetryConfig = field(default_factory=TelemetryConfig)


_SECTIONS = {
    "llm": LLMConfig,
    "orchestrator": OrchestratorConfig,
    "quality": QualityRequirements,
    "telemetry": TelemetryConfig,
}


def _coerce_section(section: str, current, values: Dict):
    """Return `current` with `values` applied, validating field names"""
    if not isinstance(values, dict):
        raise ConfigError(f"Config section '{section}' must be a mapping", context={"section": section})

    known = {f.name: f for f in fields(current)}
    updates = {}
    for key, value in values.items():
        if key not in known:
            raise ConfigError(f"Unknown config key '{section}.{key}'", context={"section": section, "key": key})
        if key == "performance":
            value = _coerce_section("quality.performance", current.performance, value)
        elif isinstance(value, list):
            value = tuple(value)
        updates[key] = value

    try:
        return replace(current, **updates)
    except TypeError as e:
        raise ConfigError(f"Invalid values for config section '{section}': {e}", context={"section": section})


def _env_flag(name: str) -> Optional[bool]:
    raw = os.getenv(name)
    if raw is None:
        return None
    return raw.strip().lower() in ("1", "true", "yes", "on")


def load_config(path: Optional[str] = None, use_env: bool = True) -> PipelineConfig:
    """
    Build the pipeline configuration.

    Args:
        path: Optional YAML file with `llm`, `orchestrator`, `quality` and
              `telemetry` sections
        use_env: Apply `.env` / environment overrides (OPENAI_API_KEY,
                 CADENCE_QA_MODEL, CADENCE_QA_VERBOSE)

    Returns:
        PipelineConfig

    Raises:
        ConfigError: If the file is missing, malformed or has unknown keys
    """
    config = PipelineConfig()

    if path:
        config_path = Path(path)
        if not config_path.exists():
            raise ConfigError(f"Config file not found: {path}", context={"path": path})
        try:
            with open(config_path, "r", encoding="utf8") as f:
                raw = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Malformed config file {path}: {e}", context={"path": path})

        if not isinstance(raw, dict):
            raise ConfigError(f"Config file {path} must contain a mapping", context={"path": path})

        for section, values in raw.items():
            if section not in _SECTIONS:
                raise ConfigError(f"Unknown config section '{section}'", context={"section": section})
            updated = _coerce_section(section, getattr(config, section), values)
            config = replace(config, **{section: updated})

    if use_env:
        load_dotenv()
        api_key = os.getenv("OPENAI_API_KEY") or os.getenv("API_KEY")
        model = os.getenv("CADENCE_QA_MODEL")
        llm = config.llm
        if api_key and not llm.api_key:
            llm = replace(llm, api_key=api_key)
        if model:
            llm = replace(llm, model=model)
        config = replace(config, llm=llm)

        verbose = _env_flag("CADENCE_QA_VERBOSE")
        if verbose is not None:
            config = replace(config, telemetry=replace(config.telemetry, verbose=verbose))

    if config.orchestrator.max_attempts < 1:
        raise ConfigError("orchestrator.max_attempts must be at least 1")
    if not config.orchestrator.attempt_timeouts or not config.orchestrator.llm_retries:
        raise ConfigError("orchestrator.attempt_timeouts and orchestrator.llm_retries must not be empty")

    return config
