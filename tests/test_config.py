from datetime import datetime

import pytest

from nhl_predictor.config import SimulationConfig, get_current_season, season_file


@pytest.mark.parametrize("today, expected", [
    (datetime(2022, 10, 12), "20222023"),
    (datetime(2023, 2, 1), "20222023"),
    (datetime(2023, 8, 31), "20222023"),
    (datetime(2023, 9, 1), "20232024"),
])
def test_current_season(today, expected):
    assert get_current_season(today) == expected


def test_season_file():
    assert season_file("20222023", "data").endswith("20222023.csv")


def test_data_dir_from_environment(monkeypatch):
    monkeypatch.setenv("NHL_DATA_DIR", "/srv/nhl")
    assert SimulationConfig().data_dir == "/srv/nhl"


def test_invalid_stall_policy():
    with pytest.raises(ValueError):
        SimulationConfig(on_stall="ignore")


def test_invalid_attempt_bound():
    with pytest.raises(ValueError):
        SimulationConfig(max_sampling_attempts=0)
