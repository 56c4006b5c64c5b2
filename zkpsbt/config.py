"""
ZKP-SBT Configuration System

Unified configuration management with YAML files, environment variables,
validation, and runtime updates.

Configuration Sources (in order of precedence):
    1. Environment variables (ZKPSBT_*)
    2. Runtime overrides
    3. User config file (~/.zkpsbt/config.yaml)
    4. Project config file (./zkpsbt.yaml or ./config/zkpsbt.yaml)
    5. Default values

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

import os
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Generic, List, Optional, TypeVar, Union

import yaml

T = TypeVar("T")


class ConfigError(Exception):
    """Configuration error."""
    pass


class ConfigValidationError(ConfigError):
    """Configuration validation error."""
    pass


@dataclass
class ConfigValue(Generic[T]):
    """
    A single configuration value with metadata.

    Supports default values, environment variable binding,
    validation, and change callbacks.
    """
    default: T
    env_var: Optional[str] = None
    description: str = ""
    validator: Optional[Callable[[T], bool]] = None
    _value: Optional[T] = field(default=None, repr=False)
    _callbacks: List[Callable[[T, T], None]] = field(default_factory=list, repr=False)

    def get(self) -> T:
        """Get the current value."""
        if self.env_var and self.env_var in os.environ:
            raw = os.environ[self.env_var]
            try:
                value = self._coerce(raw)
            except ValueError:
                raise ConfigValidationError(f"Invalid value for {self.env_var}: {raw!r}")
            if self.validator and not self.validator(value):
                raise ConfigValidationError(f"Invalid value for {self.env_var}: {raw!r}")
            return value
        return self._value if self._value is not None else self.default

    def set(self, value: T) -> None:
        """Set the value with validation."""
        if self.validator and not self.validator(value):
            raise ConfigValidationError(f"Invalid value for config: {value}")

        old_value = self._value
        self._value = value

        for callback in self._callbacks:
            callback(old_value, value)

    def reset(self) -> None:
        """Drop any runtime override."""
        self._value = None

    def _coerce(self, value: str) -> T:
        """Coerce string value to target type."""
        target_type = type(self.default)

        if target_type == bool:
            return value.lower() in ("true", "1", "yes", "on")  # type: ignore
        elif target_type == int:
            return int(value)  # type: ignore
        elif target_type == float:
            return float(value)  # type: ignore
        return value  # type: ignore

    def on_change(self, callback: Callable[[T, T], None]) -> None:
        """Register a change callback."""
        self._callbacks.append(callback)


@dataclass
class CircuitConfig:
    """Configuration for the credit-score circuit."""
    score_bits: ConfigValue[int] = field(default_factory=lambda: ConfigValue(
        default=32,
        env_var="ZKPSBT_CIRCUIT_SCORE_BITS",
        description="Bit width of creditScore and threshold in the comparison",
        validator=lambda x: 8 <= x <= 64,
    ))


@dataclass
class ProverConfig:
    """Configuration for off-chain proof generation."""
    max_workers: ConfigValue[int] = field(default_factory=lambda: ConfigValue(
        default=4,
        env_var="ZKPSBT_PROVER_MAX_WORKERS",
        description="Worker threads for batch proof generation",
        validator=lambda x: x > 0,
    ))
    key_dir: ConfigValue[str] = field(default_factory=lambda: ConfigValue(
        default="keys",
        env_var="ZKPSBT_PROVER_KEY_DIR",
        description="Directory holding proving_key.json and verification_key.json",
    ))


@dataclass
class VerifierConfig:
    """Configuration for eligibility recording."""
    eligibility_policy: ConfigValue[str] = field(default_factory=lambda: ConfigValue(
        default="monotonic_max",
        env_var="ZKPSBT_VERIFIER_ELIGIBILITY_POLICY",
        description="monotonic_max keeps the best threshold; reset_on_revoke clears it on burn",
        validator=lambda x: x in ("monotonic_max", "reset_on_revoke"),
    ))


@dataclass
class LedgerConfig:
    """Configuration for the attestation ledger."""
    authority_address: ConfigValue[str] = field(default_factory=lambda: ConfigValue(
        default="",
        env_var="ZKPSBT_LEDGER_AUTHORITY",
        description="Address allowed to issue attestations",
    ))


@dataclass
class ObservabilityConfig:
    """Configuration for Observability."""
    log_level: ConfigValue[str] = field(default_factory=lambda: ConfigValue(
        default="info",
        env_var="ZKPSBT_LOG_LEVEL",
        description="Log level (debug, info, warning, error)",
        validator=lambda x: x in ("debug", "info", "warning", "error", "critical"),
    ))
    log_format: ConfigValue[str] = field(default_factory=lambda: ConfigValue(
        default="json",
        env_var="ZKPSBT_LOG_FORMAT",
        description="Log format (json, text)",
        validator=lambda x: x in ("json", "text"),
    ))


@dataclass
class SBTConfig:
    """
    Root configuration.

    Aggregates all component configurations and provides
    loading/saving functionality.
    """
    circuit: CircuitConfig = field(default_factory=CircuitConfig)
    prover: ProverConfig = field(default_factory=ProverConfig)
    verifier: VerifierConfig = field(default_factory=VerifierConfig)
    ledger: LedgerConfig = field(default_factory=LedgerConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        def extract_values(obj: Any) -> Any:
            if isinstance(obj, ConfigValue):
                return obj.get()
            elif hasattr(obj, "__dataclass_fields__"):
                return {k: extract_values(getattr(obj, k)) for k in obj.__dataclass_fields__}
            return obj

        return extract_values(self)

    def to_yaml(self) -> str:
        return yaml.dump(self.to_dict(), default_flow_style=False)


class ConfigManager:
    """
    Configuration manager with file loading and environment binding.

    Thread-safe singleton that manages configuration lifecycle.
    """

    _instance: Optional["ConfigManager"] = None
    _lock = threading.Lock()

    def __new__(cls) -> "ConfigManager":
        with cls._lock:
            if cls._instance is None:
                cls._instance = super().__new__(cls)
                cls._instance._initialized = False
            return cls._instance

    def __init__(self):
        if self._initialized:
            return

        self._config = SBTConfig()
        self._config_paths: List[Path] = []
        self._initialized = True

    @property
    def config(self) -> SBTConfig:
        return self._config

    def load_from_file(self, path: Union[str, Path]) -> None:
        """Load configuration from a YAML file."""
        path = Path(path)
        if not path.exists():
            raise ConfigError(f"Configuration file not found: {path}")

        with open(path) as f:
            try:
                data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ConfigError(f"Invalid YAML in {path}: {e}") from e

        if data:
            if not isinstance(data, dict):
                raise ConfigError(f"Configuration root must be a mapping: {path}")
            self._apply_dict(data)
            self._config_paths.append(path)
            logger.info("Configuration loaded", operation="load_config", path=str(path))

    def load_defaults(self) -> List[Path]:
        """Load default configuration files that exist. Returns the paths loaded."""
        default_paths = [
            Path("zkpsbt.yaml"),
            Path("config/zkpsbt.yaml"),
            Path.home() / ".zkpsbt" / "config.yaml",
        ]

        loaded = []
        for path in default_paths:
            if path.exists():
                self.load_from_file(path)
                loaded.append(path)
        return loaded

    def _apply_dict(self, data: Dict[str, Any]) -> None:
        """Apply dictionary values to configuration."""
        def apply_to_config(config_obj: Any, values: Dict[str, Any], prefix: str) -> None:
            for key, value in values.items():
                if not hasattr(config_obj, key):
                    raise ConfigError(f"Unknown config key: {prefix}{key}")
                attr = getattr(config_obj, key)
                if isinstance(attr, ConfigValue):
                    attr.set(value)
                elif hasattr(attr, "__dataclass_fields__") and isinstance(value, dict):
                    apply_to_config(attr, value, f"{prefix}{key}.")

        apply_to_config(self._config, data, "")

    def set(self, path: str, value: Any) -> None:
        """
        Set a configuration value by path.

        Example: config.set("circuit.score_bits", 32)
        """
        attr = self._resolve(path)
        if not isinstance(attr, ConfigValue):
            raise ConfigError(f"Invalid config path: {path}")
        attr.set(value)

    def get(self, path: str) -> Any:
        """
        Get a configuration value by path.

        Example: config.get("verifier.eligibility_policy")
        """
        obj = self._resolve(path)
        if isinstance(obj, ConfigValue):
            return obj.get()
        return obj

    def _resolve(self, path: str) -> Any:
        obj: Any = self._config
        for part in path.split("."):
            if not hasattr(obj, part):
                raise ConfigError(f"Invalid config path: {path}")
            obj = getattr(obj, part)
        return obj

    def validate(self) -> List[str]:
        """
        Validate all configuration values.

        Returns list of validation errors.
        """
        errors: List[str] = []

        def validate_config(obj: Any, path: str = "") -> None:
            if isinstance(obj, ConfigValue):
                try:
                    value = obj.get()
                    if obj.validator and not obj.validator(value):
                        errors.append(f"{path}: validation failed for value {value}")
                except (ConfigValidationError, TypeError, ValueError) as e:
                    errors.append(f"{path}: {e}")
            elif hasattr(obj, "__dataclass_fields__"):
                for field_name in obj.__dataclass_fields__:
                    field_path = f"{path}.{field_name}" if path else field_name
                    validate_config(getattr(obj, field_name), field_path)

        validate_config(self._config)
        return errors

    def reset(self) -> None:
        """Restore defaults and forget loaded files."""
        self._config = SBTConfig()
        self._config_paths = []


def get_config() -> SBTConfig:
    """Get the current configuration."""
    return ConfigManager().config


def get_config_manager() -> ConfigManager:
    """Get the configuration manager instance."""
    return ConfigManager()


# Created last: the logger reads its level and format through get_config().
from zkpsbt.observability import SBTLayer, get_logger  # noqa: E402

logger = get_logger("config", SBTLayer.CONFIG)
