from __future__ import annotations

from datetime import date
from pathlib import Path

import pytest
from dotenv import dotenv_values

from ticksim.config import SimConfig, get_config, load_sim_config, save_config, validate_setup


def test_load_sim_config_reads_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SIM_INSTRUMENT", " msft ")
    monkeypatch.setenv("SIM_SPEED", "15")
    monkeypatch.setenv("SIM_INITIAL_BALANCE", "2500")
    monkeypatch.setenv("SIM_ALLOW_SHORT", "true")
    monkeypatch.setenv("SIM_SEED", "9")
    monkeypatch.setenv("SIM_START_DATE", "2024-01-02")

    config = load_sim_config()

    assert config.instrument == "MSFT"
    assert config.speed == 15
    assert config.initial_balance == 2500.0
    assert config.allow_short is True
    assert config.seed == 9
    assert config.start_date == date(2024, 1, 2)
    assert config.end_date is None


def test_defaults_are_long_only(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("SIM_ALLOW_SHORT", raising=False)

    assert load_sim_config().allow_short is False


@pytest.mark.parametrize(
    "config",
    [
        SimConfig(speed=12),
        SimConfig(speed=35),
        SimConfig(initial_balance=0),
        SimConfig(fee_rate=-0.1),
        SimConfig(tick_period_s=0),
        SimConfig(instrument=""),
        SimConfig(start_date=date(2024, 2, 1), end_date=date(2024, 1, 1)),
    ],
)
def test_validate_setup_rejects_invalid_values(config: SimConfig) -> None:
    with pytest.raises(ValueError):
        validate_setup(config)


def test_validate_setup_accepts_every_valid_speed() -> None:
    for speed in (5, 10, 15, 20, 25, 30):
        validate_setup(SimConfig(speed=speed))


def test_save_config_persists_and_exports(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    env_path = tmp_path / ".env"
    monkeypatch.delenv("SIM_SPEED", raising=False)

    save_config({"SIM_SPEED": "20"}, env_path=env_path)

    assert dotenv_values(env_path)["SIM_SPEED"] == "20"
    assert get_config()["SIM_SPEED"] == "20"
    monkeypatch.delenv("SIM_SPEED")


def test_save_config_rejects_unknown_keys(tmp_path: Path) -> None:
    with pytest.raises(ValueError):
        save_config({"BINANCE_API_KEY": "x"}, env_path=tmp_path / ".env")
