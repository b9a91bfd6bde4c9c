"""
Configuration management for ZABR smile calibration.

Supports loading from:
- Environment variables
- YAML/JSON config files
- Command-line arguments
"""

import json
import logging
import os
from dataclasses import asdict, dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .calibration.optimizers import EndCriteria, OptimizationMethod, create_optimizer
from .calibration.zabr_calibrator import ZabrCalibrator
from .errors import InvalidInputError
from .models.zabr import EvaluationMode
from .monitoring.logging import JsonFormatter

logger = logging.getLogger(__name__)


def _build(cls, data: Dict[str, Any], section: str):
    """Instantiate a config dataclass, rejecting unknown keys."""
    known = {f.name for f in fields(cls)}
    unknown = set(data).difference(known)
    if unknown:
        raise InvalidInputError(f"unknown {section} config keys: {sorted(unknown)}")
    return cls(**data)


@dataclass
class CalibrationConfig:
    """Calibration configuration."""
    evaluation: str = EvaluationMode.SHORT_MATURITY_LOGNORMAL.value
    vega_weighted: bool = False

    # Restart policy
    error_accept: float = 0.002
    use_max_error: bool = False
    max_guesses: int = 50
    seed: Optional[int] = 42
    max_calibration_time: Optional[float] = None  # seconds, None = unlimited

    # Local optimizer
    optimizer: str = "levenberg_marquardt"  # levenberg_marquardt, simplex
    max_iterations: int = 60000
    root_epsilon: float = 1e-8
    function_epsilon: float = 1e-8
    gradient_norm_epsilon: float = 1e-8
    simplex_lambda: float = 0.01

    def __post_init__(self):
        EvaluationMode.from_name(self.evaluation)
        if self.max_guesses < 1:
            raise InvalidInputError(f"max_guesses must be at least 1, got {self.max_guesses}")
        if self.error_accept < 0:
            raise InvalidInputError(f"error_accept must be non-negative, got {self.error_accept}")

    def end_criteria(self) -> EndCriteria:
        return EndCriteria(
            max_iterations=self.max_iterations,
            root_epsilon=self.root_epsilon,
            function_epsilon=self.function_epsilon,
            gradient_norm_epsilon=self.gradient_norm_epsilon,
        )

    def build_optimizer(self) -> OptimizationMethod:
        if self.optimizer.lower() == "simplex":
            return create_optimizer(self.optimizer, lambda_=self.simplex_lambda)
        return create_optimizer(self.optimizer)

    def build_calibrator(self) -> ZabrCalibrator:
        """Create a calibrator with these settings."""
        return ZabrCalibrator(
            evaluation=self.evaluation,
            optimizer=self.build_optimizer(),
            end_criteria=self.end_criteria(),
            error_accept=self.error_accept,
            use_max_error=self.use_max_error,
            max_guesses=self.max_guesses,
            seed=self.seed,
            max_calibration_time=self.max_calibration_time,
        )

    def interpolation_kwargs(self) -> Dict[str, Any]:
        """Keyword arguments for ZabrInterpolation."""
        return {
            "evaluation": self.evaluation,
            "vega_weighted": self.vega_weighted,
            "end_criteria": self.end_criteria(),
            "optimizer": self.build_optimizer(),
            "error_accept": self.error_accept,
            "use_max_error": self.use_max_error,
            "max_guesses": self.max_guesses,
            "seed": self.seed,
            "max_calibration_time": self.max_calibration_time,
        }


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    file: Optional[str] = None
    max_bytes: int = 10_000_000  # 10MB
    backup_count: int = 5
    json_format: bool = False


@dataclass
class Config:
    """Main configuration container."""
    calibration: CalibrationConfig = field(default_factory=CalibrationConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    # Environment
    env: str = "development"  # development, staging, production
    debug: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Config":
        """Create config from dictionary."""
        unknown = set(data).difference({"calibration", "logging", "env", "debug"})
        if unknown:
            raise InvalidInputError(f"unknown config keys: {sorted(unknown)}")

        config = cls()

        if "calibration" in data:
            config.calibration = _build(CalibrationConfig, data["calibration"], "calibration")
        if "logging" in data:
            config.logging = _build(LoggingConfig, data["logging"], "logging")
        if "env" in data:
            config.env = data["env"]
        if "debug" in data:
            config.debug = bool(data["debug"])

        return config

    @classmethod
    def from_file(cls, path: str) -> "Config":
        """Load config from JSON or YAML file."""
        path = Path(path)

        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        with open(path) as f:
            if path.suffix in (".yaml", ".yml"):
                data = yaml.safe_load(f)
            else:
                data = json.load(f)

        return cls.from_dict(data or {})

    @classmethod
    def from_env(cls) -> "Config":
        """Load config from environment variables."""
        config = cls()
        _apply_env(config)
        return config

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary."""
        return {
            "calibration": asdict(self.calibration),
            "logging": asdict(self.logging),
            "env": self.env,
            "debug": self.debug,
        }

    def save(self, path: str) -> None:
        """Save config to JSON or YAML file, chosen by suffix."""
        path = Path(path)
        with open(path, "w") as f:
            if path.suffix in (".yaml", ".yml"):
                yaml.safe_dump(self.to_dict(), f, sort_keys=False)
            else:
                json.dump(self.to_dict(), f, indent=2)


# Environment variable -> (section, key, converter)
_ENV_VARS = {
    "ZS_EVALUATION": ("calibration", "evaluation", str),
    "ZS_VEGA_WEIGHTED": ("calibration", "vega_weighted", lambda v: v.lower() in ("1", "true", "yes")),
    "ZS_ERROR_ACCEPT": ("calibration", "error_accept", float),
    "ZS_MAX_GUESSES": ("calibration", "max_guesses", int),
    "ZS_SEED": ("calibration", "seed", int),
    "ZS_OPTIMIZER": ("calibration", "optimizer", str),
    "ZS_MAX_CALIBRATION_TIME": ("calibration", "max_calibration_time", float),
    "ZS_LOG_LEVEL": ("logging", "level", str),
    "ZS_LOG_FILE": ("logging", "file", str),
}


def _apply_env(config: Config) -> None:
    """Override config values from ZS_* environment variables that are set."""
    for name, (section, key, convert) in _ENV_VARS.items():
        value = os.getenv(name)
        if value:
            try:
                setattr(getattr(config, section), key, convert(value))
            except ValueError as e:
                raise InvalidInputError(f"invalid value for {name}: {value!r}") from e
    # setattr skips __post_init__
    config.calibration = replace(config.calibration)

    if env := os.getenv("ZS_ENV"):
        config.env = env
    if os.getenv("ZS_DEBUG", "").lower() in ("1", "true", "yes"):
        config.debug = True


def load_config(
    config_file: Optional[str] = None,
    use_env: bool = True
) -> Config:
    """
    Load configuration with precedence:
    1. Environment variables (if use_env=True)
    2. Config file (if provided)
    3. Defaults
    """
    config = Config()

    if config_file:
        try:
            config = Config.from_file(config_file)
            logger.info(f"Loaded config from {config_file}")
        except FileNotFoundError:
            logger.warning(f"Config file not found: {config_file}, using defaults")

    if use_env:
        _apply_env(config)

    return config


def setup_logging(config: LoggingConfig) -> None:
    """Configure root logging based on config."""
    handlers: List[logging.Handler] = [logging.StreamHandler()]

    if config.file:
        from logging.handlers import RotatingFileHandler
        handlers.append(
            RotatingFileHandler(
                config.file,
                maxBytes=config.max_bytes,
                backupCount=config.backup_count
            )
        )

    if config.json_format:
        formatter: logging.Formatter = JsonFormatter()
    else:
        formatter = logging.Formatter(config.format)
    for handler in handlers:
        handler.setFormatter(formatter)

    logging.basicConfig(
        level=getattr(logging, config.level.upper()),
        handlers=handlers,
        force=True,
    )
