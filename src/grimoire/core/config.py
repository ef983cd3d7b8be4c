"""
Configuration for GRIMOIRE.

Settings is the mutable loader (defaults, grimoire.yaml, environment).
SearchConfig is the frozen value built once at startup and injected into
the search orchestrator and the metrics sampler.
"""

import os
import yaml
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Dict, Any, Optional, cast

from grimoire.core.exceptions import ConfigurationError
from grimoire.core.logging import logger


class ConfigValidator:
    """
    Configuration validator with rules.

    Validations:
    1. Data types
    2. Value ranges
    3. Candidate budget large enough for the expanded metrics search
    """

    def validate_config(self, config: Dict[str, Any]) -> None:
        """
        Validate complete configuration.

        The sample rate is clamped into [0, 1] with a warning,
        every other out-of-range value raises ConfigurationError.
        """
        search = config.get("search", {})
        metrics = config.get("metrics", {})
        embeddings = config.get("embeddings", {})

        rrf_k = search.get("rrf_k")
        if not isinstance(rrf_k, (int, float)) or isinstance(rrf_k, bool) or rrf_k <= 0:
            logger.error("Invalid rrf_k", rrf_k=rrf_k)
            raise ConfigurationError(f"search.rrf_k must be a positive number, got {rrf_k!r}")

        multiplier = search.get("over_fetch_multiplier")
        if not isinstance(multiplier, int) or isinstance(multiplier, bool) or multiplier < 1:
            logger.error("Invalid over_fetch_multiplier", over_fetch_multiplier=multiplier)
            raise ConfigurationError(
                f"search.over_fetch_multiplier must be an integer >= 1, got {multiplier!r}"
            )

        default_min_score = search.get("default_min_score")
        if not isinstance(default_min_score, (int, float)) or not 0 <= default_min_score <= 1:
            raise ConfigurationError(
                f"search.default_min_score must be within [0, 1], got {default_min_score!r}"
            )

        for key in ("default_limit", "max_candidates"):
            value = search.get(key)
            if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
                raise ConfigurationError(f"search.{key} must be a positive integer, got {value!r}")

        expanded_k = metrics.get("expanded_k")
        if not isinstance(expanded_k, int) or isinstance(expanded_k, bool) or expanded_k <= 0:
            raise ConfigurationError(f"metrics.expanded_k must be a positive integer, got {expanded_k!r}")

        if search["max_candidates"] < expanded_k:
            raise ConfigurationError(
                "search.max_candidates must be >= metrics.expanded_k",
                context={"max_candidates": search["max_candidates"], "expanded_k": expanded_k},
            )

        context_window = embeddings.get("context_window")
        if not isinstance(context_window, int) or isinstance(context_window, bool) or context_window <= 0:
            raise ConfigurationError(
                f"embeddings.context_window must be a positive integer, got {context_window!r}"
            )

        rate = metrics.get("sample_rate")
        try:
            rate = float(rate)
        except (TypeError, ValueError):
            logger.warning("Unparseable sample rate, using default", sample_rate=rate)
            rate = DEFAULT_SAMPLE_RATE
        if rate != rate:  # NaN
            rate = DEFAULT_SAMPLE_RATE
        clamped = min(1.0, max(0.0, rate))
        if clamped != rate:
            logger.warning("Sample rate out of range, clamping", sample_rate=rate, clamped=clamped)
        metrics["sample_rate"] = clamped


DEFAULT_SAMPLE_RATE = 0.05


class Settings:
    """
    Main system configuration.

    Priority order:
    1. Default values
    2. grimoire.yaml (or the file named by GRIMOIRE_CONFIG)
    3. Environment variables
    """

    ENV_OVERRIDES = {
        "SEARCH_METRICS_SAMPLE_RATE": (("metrics", "sample_rate"), float),
        "GRIMOIRE_SEARCH_METRICS_SAMPLE_RATE": (("metrics", "sample_rate"), float),
        "GRIMOIRE_RRF_K": (("search", "rrf_k"), float),
        "GRIMOIRE_OVER_FETCH_MULTIPLIER": (("search", "over_fetch_multiplier"), int),
        "GRIMOIRE_EMBEDDING_MODEL": (("embeddings", "model"), str),
        "GRIMOIRE_EMBEDDING_CACHE_MAX_SIZE": (("embeddings", "cache_max_size"), int),
        "GRIMOIRE_OLLAMA_URL": (("embeddings", "base_url"), str),
        "GRIMOIRE_DB_PATH": (("database", "path"), str),
        "GRIMOIRE_LOG_LEVEL": (("logging", "level"), str),
    }

    def __init__(self, config_path: Optional[Path] = None) -> None:
        self._explicit_path = Path(config_path) if config_path else None
        self.config = self._load_config()
        self._validate_config()
        self.validator = ConfigValidator()
        self.validator.validate_config(self.config)
        logger.info(
            "Settings initialized",
            config_source=str(self._find_config_file() or "defaults"),
        )

    def _get_default_config(self) -> Dict[str, Any]:
        """Single source of default values."""
        return {
            "version": "1.0",
            "search": {
                "rrf_k": 60,
                "over_fetch_multiplier": 3,
                "max_candidates": 300,
                "default_limit": 10,
                "default_min_score": 0.0,
                "intent_routing": True,
            },
            "metrics": {
                "enabled": True,
                "sample_rate": DEFAULT_SAMPLE_RATE,
                "expanded_k": 200,
                "search_type": "campaign_asset",
            },
            "embeddings": {
                "base_url": "http://127.0.0.1:11434",
                "model": "nomic-embed-text",
                "tokenizer": "nomic-ai/nomic-embed-text-v1.5",
                "context_window": 8192,
                "cache_max_size": 1000,
                "timeout_seconds": 30,
            },
            "database": {"path": ".grimoire/data/grimoire.db"},
            "logging": {"level": "INFO", "debug_mode": False},
        }

    def _find_config_file(self) -> Optional[Path]:
        """
        Search order:
        1. Path given to the constructor
        2. GRIMOIRE_CONFIG environment variable
        3. ./grimoire.yaml
        """
        if self._explicit_path is not None:
            return self._explicit_path if self._explicit_path.is_file() else None

        env_path = os.getenv("GRIMOIRE_CONFIG")
        if env_path:
            candidate = Path(env_path)
            return candidate if candidate.is_file() else None

        local_config = Path.cwd() / "grimoire.yaml"
        if local_config.is_file():
            return local_config

        return None

    def _load_config(self) -> Dict[str, Any]:
        defaults = self._get_default_config()

        config_path = self._find_config_file()
        if config_path:
            try:
                with open(config_path, encoding='utf-8') as f:
                    file_config = yaml.safe_load(f)
            except (OSError, yaml.YAMLError) as e:
                logger.error("Error reading configuration file", file=str(config_path), error=str(e))
                raise ConfigurationError(f"Error reading configuration file: {e}", cause=e)

            if file_config:
                if not isinstance(file_config, dict):
                    raise ConfigurationError(
                        "Configuration file must contain a mapping",
                        context={"file": str(config_path)},
                    )
                self._deep_merge(defaults, file_config)
                logger.debug("Config loaded from file", keys=list(file_config.keys()))

        for env_key, (path_tuple, cast_fn) in self.ENV_OVERRIDES.items():
            env_value = os.getenv(env_key)
            if not env_value:
                continue
            try:
                value_to_set: Any = cast_fn(env_value)
            except ValueError:
                logger.warning("Ignoring unparseable environment override", variable=env_key)
                continue
            self._set_nested(defaults, path_tuple, value_to_set)

        return defaults

    def _deep_merge(self, base: Dict[str, Any], update: Dict[str, Any]) -> None:
        """Deep merge of dictionaries."""
        for key, value in update.items():
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                self._deep_merge(cast(Dict[str, Any], base[key]), cast(Dict[str, Any], value))
            else:
                base[key] = value

    def _set_nested(self, data: Dict[str, Any], path: tuple[str, ...], value: Any) -> None:
        """Set value at nested path."""
        current = data
        for key in path[:-1]:
            if key not in current:
                current[key] = {}
            current = current[key]
        current[path[-1]] = value

    def _validate_config(self) -> None:
        """Restores any section a config file removed or replaced with a non-mapping."""
        defaults = self._get_default_config()
        missing_sections = [
            section
            for section, value in defaults.items()
            if isinstance(value, dict) and not isinstance(self.config.get(section), dict)
        ]

        if missing_sections:
            logger.warning("Configuration missing sections, using defaults", sections=missing_sections)
            for section in missing_sections:
                self.config[section] = defaults[section]

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value, dotted paths allowed: "metrics.sample_rate"."""
        if "." in key:
            current: Any = self.config
            for part in key.split("."):
                if isinstance(current, dict) and part in current:
                    current = current[part]
                else:
                    return default
            return current
        return self.config.get(key, default)

    def require(self, key: str) -> Any:
        """Get required value or raise ConfigurationError."""
        sentinel = object()
        value = self.get(key, sentinel)
        if value is sentinel:
            logger.error("Required config missing", key=key)
            raise ConfigurationError(f"Missing required config: {key}")
        return value


@dataclass(frozen=True)
class SearchConfig:
    """
    Read-only search and telemetry configuration.

    Built once per process and handed to HybridSearch and
    SearchMetricsSampler; nothing inside the algorithms reads
    process state directly.

    rrf_k and over_fetch_multiplier are tunables, not compatible bit
    for bit with scores produced by other fusion implementations.
    """

    rrf_k: float = 60
    over_fetch_multiplier: int = 3
    max_candidates: int = 300
    default_limit: int = 10
    default_min_score: float = 0.0
    intent_routing: bool = True
    metrics_enabled: bool = True
    sample_rate: float = DEFAULT_SAMPLE_RATE
    expanded_k: int = 200
    search_type: str = "campaign_asset"

    def __post_init__(self) -> None:
        if self.rrf_k <= 0:
            raise ConfigurationError("rrf_k must be positive", context={"rrf_k": self.rrf_k})
        if self.over_fetch_multiplier < 1:
            raise ConfigurationError(
                "over_fetch_multiplier must be >= 1",
                context={"over_fetch_multiplier": self.over_fetch_multiplier},
            )
        if not 0.0 <= self.sample_rate <= 1.0:
            raise ConfigurationError(
                "sample_rate must be within [0, 1]", context={"sample_rate": self.sample_rate}
            )
        if self.max_candidates < self.expanded_k:
            raise ConfigurationError(
                "max_candidates must be >= expanded_k",
                context={"max_candidates": self.max_candidates, "expanded_k": self.expanded_k},
            )

    @classmethod
    def from_settings(cls, settings: Settings) -> "SearchConfig":
        return cls(
            rrf_k=settings.require("search.rrf_k"),
            over_fetch_multiplier=settings.require("search.over_fetch_multiplier"),
            max_candidates=settings.require("search.max_candidates"),
            default_limit=settings.require("search.default_limit"),
            default_min_score=float(settings.require("search.default_min_score")),
            intent_routing=bool(settings.get("search.intent_routing", True)),
            metrics_enabled=bool(settings.get("metrics.enabled", True)),
            sample_rate=float(settings.require("metrics.sample_rate")),
            expanded_k=settings.require("metrics.expanded_k"),
            search_type=settings.get("metrics.search_type", "campaign_asset"),
        )

    def candidate_limit(self, limit: int) -> int:
        """Per-channel over-fetch cardinality for a requested limit."""
        return max(limit, min(limit * self.over_fetch_multiplier, self.max_candidates))

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class EmbeddingConfig:
    """Read-only settings of the query embedding path."""

    base_url: str = "http://127.0.0.1:11434"
    model: str = "nomic-embed-text"
    tokenizer: str = "nomic-ai/nomic-embed-text-v1.5"
    context_window: int = 8192
    cache_max_size: int = 1000
    timeout_seconds: float = 30

    @classmethod
    def from_settings(cls, settings: Settings) -> "EmbeddingConfig":
        section = settings.require("embeddings")
        return cls(
            base_url=section["base_url"],
            model=section["model"],
            tokenizer=section.get("tokenizer", section["model"]),
            context_window=section["context_window"],
            cache_max_size=section.get("cache_max_size", 1000),
            timeout_seconds=section.get("timeout_seconds", 30),
        )
