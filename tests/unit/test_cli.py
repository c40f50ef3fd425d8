"""Tests for the fftgen command line interface."""

import pytest

from fftgen import cli
from fftgen import config as config_module


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    monkeypatch.delenv("FFTGEN_CONFIG", raising=False)
    monkeypatch.setattr(config_module, "os_environ_items", lambda: [])


class TestSourceCommand:
    def test_radix_cuda_double(self, capsys):
        assert cli.main(["source", "radix", "--radix", "4", "--dialect", "cuda", "--precision", "double"]) == 0
        out = capsys.readouterr().out

        assert 'extern "C" __global__ void radix(' in out
        assert "typedef double2 real2_t;" in out

    def test_transpose_uses_nominal_block(self, capsys):
        assert cli.main(["source", "transpose"]) == 0
        assert "__local real2_t block[256];" in capsys.readouterr().out

    def test_bluestein_prints_all_kernels(self, capsys):
        assert cli.main(["source", "bluestein", "--inverse"]) == 0
        out = capsys.readouterr().out

        for name in (
            "bluestein_twiddle",
            "bluestein_pad_kernel",
            "bluestein_mul_in",
            "bluestein_mul",
            "bluestein_mul_out",
        ):
            assert f"void {name}(" in out

    def test_unsupported_radix_fails(self):
        assert cli.main(["source", "radix", "--radix", "17"]) == 1


class TestFactorCommand:
    def test_factor_mixed(self, capsys):
        assert cli.main(["factor", "84"]) == 0
        out = capsys.readouterr().out

        assert "N = 84 = 2^2 * 3 * 7" in out
        assert "Radices: 2^2, 3, 7" in out
        assert "7(bluestein, m=16)" in out

    def test_factor_invalid(self):
        assert cli.main(["factor", "0"]) == 1


class TestPlanCommand:
    def test_plan_on_fake_backend(self, monkeypatch, capsys, fake_backend):
        monkeypatch.setattr(cli, "backend_from_config", lambda config: fake_backend)

        assert cli.main(["plan", "4", "6", "--batch", "2"]) == 0
        out = capsys.readouterr().out

        assert "Plan(lengths=(4, 6)" in out
        assert "transpose{w=2" in out

    def test_backends_none_available(self, monkeypatch, capsys):
        monkeypatch.setattr(cli, "available_backends", lambda: [])

        assert cli.main(["backends"]) == 1
        assert "No compute backend available" in capsys.readouterr().out


def test_no_command_prints_help(capsys):
    assert cli.main([]) == 1
    assert "usage: fftgen" in capsys.readouterr().out


def test_bad_config_file(tmp_path, capsys):
    path = tmp_path / "bad.yaml"
    path.write_text("generator:\n  unknown: 1\n", encoding="utf-8")

    assert cli.main(["--config", str(path), "factor", "8"]) == 2
    assert "unknown" in capsys.readouterr().err


def test_wrongly_typed_config_value(tmp_path, capsys):
    path = tmp_path / "fftgen.yaml"
    path.write_text("planner:\n  max_radix: eight\n", encoding="utf-8")

    assert cli.main(["--config", str(path), "factor", "12"]) == 2
    assert "max_radix" in capsys.readouterr().err


class TestRunCommand:
    def test_error_above_tolerance_fails(self, monkeypatch, capsys, fake_backend):
        # nothing executes on the fake backend, so the output stays zero
        monkeypatch.setattr(cli, "backend_from_config", lambda config: fake_backend)

        assert cli.main(["run", "12"]) == 1
        assert "Max relative error vs scipy.fft: 1.000e+00" in capsys.readouterr().out

    def test_exact_result_passes(self, monkeypatch, fake_backend):
        # a length-1 transform is the identity and launches nothing
        monkeypatch.setattr(cli, "backend_from_config", lambda config: fake_backend)

        assert cli.main(["run", "1", "--precision", "double"]) == 0
