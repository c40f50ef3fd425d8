"""Tests for YAML config loading and environment overrides."""
from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from fftgen import config as config_module
from fftgen.config import (
    Dialect,
    GeneratorConfig,
    PlannerConfig,
    Precision,
    coerce_env_value,
    load_config,
)
from fftgen.errors import InvalidConfigurationError


@pytest.fixture
def no_env(monkeypatch):
    monkeypatch.setattr(config_module, "os_environ_items", lambda: [])


def test_defaults_without_file(no_env) -> None:
    config = load_config()

    assert config.backend.name == "auto"
    assert config.generator.precision is Precision.SINGLE
    assert config.planner.max_radix == 8
    assert config.planner.radix_primes == [2, 3, 5]
    assert config.logging.level == "INFO"


def test_load_yaml_sections(tmp_path: Path, no_env) -> None:
    path = tmp_path / "fftgen.yaml"
    path.write_text(
        yaml.safe_dump(
            {
                "backend": {"name": "opencl", "platform": "Portable", "device": 1},
                "generator": {"precision": "double", "fast_math": False},
                "planner": {"max_radix": 16, "radix_primes": [2, 3, 5, 7]},
            }
        ),
        encoding="utf-8",
    )

    config = load_config(str(path))

    assert config.backend.platform == "Portable"
    assert config.backend.device == 1
    assert config.generator.precision is Precision.DOUBLE
    assert config.generator.fast_math_options() == ""
    assert config.planner.radix_primes == [2, 3, 5, 7]


def test_env_overrides_file(tmp_path: Path, monkeypatch) -> None:
    path = tmp_path / "fftgen.yaml"
    path.write_text(yaml.safe_dump({"planner": {"max_radix": 4}}), encoding="utf-8")
    monkeypatch.setattr(
        config_module,
        "os_environ_items",
        lambda: [
            ("FFTGEN__PLANNER__MAX_RADIX", "16"),
            ("FFTGEN__GENERATOR__PRECISION", "double"),
            ("FFTGEN__GENERATOR__FAST_MATH", "false"),
            ("UNRELATED", "1"),
        ],
    )

    config = load_config(str(path))

    assert config.planner.max_radix == 16
    assert config.generator.precision is Precision.DOUBLE
    assert config.generator.fast_math is False


def test_missing_file_uses_defaults(tmp_path: Path, no_env) -> None:
    config = load_config(str(tmp_path / "absent.yaml"))
    assert config.backend.name == "auto"


def test_unknown_key_raises(tmp_path: Path, no_env) -> None:
    path = tmp_path / "fftgen.yaml"
    path.write_text(yaml.safe_dump({"generator": {"precison": "double"}}), encoding="utf-8")

    with pytest.raises(InvalidConfigurationError, match="precison"):
        load_config(str(path))


def test_unknown_section_raises(tmp_path: Path, no_env) -> None:
    path = tmp_path / "fftgen.yaml"
    path.write_text(yaml.safe_dump({"server": {}}), encoding="utf-8")

    with pytest.raises(InvalidConfigurationError):
        load_config(str(path))


def test_invalid_value_wrapped(tmp_path: Path, no_env) -> None:
    path = tmp_path / "fftgen.yaml"
    path.write_text(yaml.safe_dump({"generator": {"precision": "half"}}), encoding="utf-8")

    with pytest.raises(InvalidConfigurationError, match="generator"):
        load_config(str(path))


def test_generator_config_coerces_strings() -> None:
    config = GeneratorConfig(precision="double", dialect="cuda")  # type: ignore[arg-type]

    assert config.precision is Precision.DOUBLE
    assert config.dialect is Dialect.CUDA
    assert config.fast_math_options() == "--use_fast_math"


def test_transpose_block_must_be_power_of_two() -> None:
    with pytest.raises(InvalidConfigurationError):
        GeneratorConfig(transpose_max_block=96)


@pytest.mark.parametrize(
    "kwargs", [{"max_radix": 1}, {"radix_primes": [3, 5]}, {"radix_primes": [2, 4]}]
)
def test_planner_config_validation(kwargs) -> None:
    with pytest.raises(InvalidConfigurationError):
        PlannerConfig(**kwargs)


def test_precision_properties() -> None:
    assert Precision.SINGLE.complex_size == 8
    assert Precision.DOUBLE.complex_type == "double2"


def test_coerce_env_value() -> None:
    assert coerce_env_value("true") is True
    assert coerce_env_value("42") == 42
    assert coerce_env_value("0.5") == 0.5
    assert coerce_env_value("opencl") == "opencl"


def test_radix_primes_from_env_list(monkeypatch) -> None:
    monkeypatch.setattr(
        config_module, "os_environ_items", lambda: [("FFTGEN__PLANNER__RADIX_PRIMES", "2,3")]
    )

    assert load_config().planner.radix_primes == [2, 3]


def test_radix_primes_garbage_from_env_raises(monkeypatch) -> None:
    monkeypatch.setattr(
        config_module, "os_environ_items", lambda: [("FFTGEN__PLANNER__RADIX_PRIMES", "2,x")]
    )

    with pytest.raises(InvalidConfigurationError, match="planner"):
        load_config()


@pytest.mark.parametrize(
    "section",
    [
        {"planner": {"max_radix": "eight"}},
        {"planner": {"radix_primes": [2, "three"]}},
        {"generator": {"transpose_max_block": "big"}},
    ],
)
def test_wrongly_typed_value_raises_config_error(tmp_path: Path, no_env, section) -> None:
    path = tmp_path / "fftgen.yaml"
    path.write_text(yaml.safe_dump(section), encoding="utf-8")

    with pytest.raises(InvalidConfigurationError):
        load_config(str(path))
