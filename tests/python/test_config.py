"""
Tests for configuration management.
"""

import json
import logging

import pytest
import yaml

from zabr_smile.calibration import EndCriteria, LevenbergMarquardt, Simplex, ZabrCalibrator
from zabr_smile.config import (
    CalibrationConfig,
    Config,
    LoggingConfig,
    load_config,
    setup_logging,
)
from zabr_smile.errors import InvalidInputError
from zabr_smile.models import EvaluationMode


class TestCalibrationConfig:
    """Tests for CalibrationConfig."""

    def test_defaults(self):
        config = CalibrationConfig()
        assert config.evaluation == "short_maturity_lognormal"
        assert config.vega_weighted is False
        assert config.error_accept == 0.002
        assert config.use_max_error is False
        assert config.max_guesses == 50
        assert config.seed == 42
        assert config.optimizer == "levenberg_marquardt"
        assert config.max_calibration_time is None

    def test_end_criteria(self):
        criteria = CalibrationConfig(max_iterations=100, function_epsilon=1e-6).end_criteria()
        assert criteria == EndCriteria(max_iterations=100, function_epsilon=1e-6)

    def test_build_calibrator(self):
        calibrator = CalibrationConfig(
            evaluation="short_maturity_normal", max_guesses=7, error_accept=1e-4
        ).build_calibrator()
        assert isinstance(calibrator, ZabrCalibrator)
        assert calibrator.evaluation is EvaluationMode.SHORT_MATURITY_NORMAL
        assert calibrator.max_guesses == 7
        assert calibrator.error_accept == 1e-4
        assert isinstance(calibrator.optimizer, LevenbergMarquardt)

    def test_simplex(self):
        optimizer = CalibrationConfig(optimizer="simplex", simplex_lambda=0.05).build_optimizer()
        assert isinstance(optimizer, Simplex)
        assert optimizer.lambda_ == 0.05

    def test_invalid_values(self):
        with pytest.raises(InvalidInputError):
            CalibrationConfig(evaluation="unknown")
        with pytest.raises(InvalidInputError):
            CalibrationConfig(max_guesses=0)
        with pytest.raises(InvalidInputError):
            CalibrationConfig(optimizer="bfgs").build_optimizer()


class TestConfig:
    """Tests for Config loading and saving."""

    def test_from_dict(self):
        config = Config.from_dict({
            "calibration": {"max_guesses": 20, "vega_weighted": True},
            "logging": {"level": "DEBUG"},
            "env": "production",
        })
        assert config.calibration.max_guesses == 20
        assert config.calibration.vega_weighted is True
        assert config.logging.level == "DEBUG"
        assert config.env == "production"

    def test_unknown_keys(self):
        with pytest.raises(InvalidInputError, match="unknown config keys"):
            Config.from_dict({"database": {}})
        with pytest.raises(InvalidInputError, match="unknown calibration config keys"):
            Config.from_dict({"calibration": {"max_restarts": 3}})

    def test_json_roundtrip(self, tmp_path):
        path = tmp_path / "config.json"
        config = Config.from_dict({"calibration": {"error_accept": 1e-3, "seed": 7}})
        config.save(str(path))
        assert json.loads(path.read_text())["calibration"]["seed"] == 7
        assert Config.from_file(str(path)) == config

    def test_yaml_roundtrip(self, tmp_path):
        path = tmp_path / "config.yaml"
        config = Config.from_dict({"calibration": {"optimizer": "simplex"}, "debug": True})
        config.save(str(path))
        assert yaml.safe_load(path.read_text())["calibration"]["optimizer"] == "simplex"
        assert Config.from_file(str(path)) == config

    def test_empty_yaml(self, tmp_path):
        path = tmp_path / "empty.yml"
        path.write_text("")
        assert Config.from_file(str(path)) == Config()

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            Config.from_file(str(tmp_path / "missing.json"))

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("ZS_MAX_GUESSES", "12")
        monkeypatch.setenv("ZS_VEGA_WEIGHTED", "true")
        monkeypatch.setenv("ZS_LOG_LEVEL", "WARNING")
        monkeypatch.setenv("ZS_DEBUG", "1")
        config = Config.from_env()
        assert config.calibration.max_guesses == 12
        assert config.calibration.vega_weighted is True
        assert config.logging.level == "WARNING"
        assert config.debug is True

    @pytest.mark.parametrize(
        "name,value",
        [("ZS_MAX_GUESSES", "0"), ("ZS_EVALUATION", "bogus"), ("ZS_ERROR_ACCEPT", "-1")],
    )
    def test_env_overrides_are_validated(self, monkeypatch, name, value):
        monkeypatch.setenv(name, value)
        with pytest.raises(InvalidInputError):
            load_config(use_env=True)
        with pytest.raises(InvalidInputError):
            Config.from_env()

    def test_invalid_env_value(self, monkeypatch):
        monkeypatch.setenv("ZS_MAX_GUESSES", "many")
        with pytest.raises(InvalidInputError, match="ZS_MAX_GUESSES"):
            Config.from_env()


class TestLoadConfig:
    """Tests for load_config precedence."""

    def test_defaults(self):
        assert load_config(use_env=False) == Config()

    def test_missing_file_uses_defaults(self, tmp_path):
        assert load_config(str(tmp_path / "missing.yaml"), use_env=False) == Config()

    def test_env_overrides_file(self, tmp_path, monkeypatch):
        path = tmp_path / "config.json"
        Config.from_dict({"calibration": {"max_guesses": 5, "seed": 3}}).save(str(path))
        monkeypatch.setenv("ZS_MAX_GUESSES", "9")
        config = load_config(str(path))
        assert config.calibration.max_guesses == 9
        assert config.calibration.seed == 3


class TestSetupLogging:
    """Tests for setup_logging."""

    def test_json_and_file(self, tmp_path):
        root = logging.getLogger()
        saved = root.handlers[:], root.level
        try:
            setup_logging(LoggingConfig(level="DEBUG", file=str(tmp_path / "run.log"), json_format=True))
            assert root.level == logging.DEBUG
            assert len(root.handlers) == 2
        finally:
            for handler in root.handlers[:]:
                root.removeHandler(handler)
                handler.close()
            for handler in saved[0]:
                root.addHandler(handler)
            root.setLevel(saved[1])
