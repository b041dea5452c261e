import json

import pandas as pd
import pytest

from nhl_predictor.cli import main
from nhl_predictor.loader import load_ratings, load_season, save_ratings, save_season


@pytest.fixture
def data_dir(tmp_path, teams, ratings, division_schedule, make_game):
    save_ratings(ratings, tmp_path / "elo.csv")
    season = [make_game(9000, "BOS", "TOR", 3, 1, date="2022-10-12")] + division_schedule
    save_season(season, tmp_path / "season.csv")
    (tmp_path / "teams.json").write_text(json.dumps({"teams": [
        {
            "abbreviation": t.abbreviation,
            "name": t.name,
            "venue": {"name": t.venue},
            "division": {"name": t.division},
            "conference": {"name": t.conference},
        }
        for t in teams.values()
    ]}))
    return tmp_path


def test_simulate_writes_results(data_dir, capsys):
    output = data_dir / "out" / "odds.csv"
    code = main([
        "simulate",
        "--ratings", str(data_dir / "elo.csv"),
        "--season", str(data_dir / "season.csv"),
        "--teams", str(data_dir / "teams.json"),
        "-n", "20",
        "--seed", "42",
        "--no-progress",
        "-o", str(output),
    ])

    assert code == 0
    frame = pd.read_csv(output)
    assert len(frame) == 20
    assert frame["playoffs"].sum() == pytest.approx(1600.0)
    assert "PLAYOFF PROBABILITIES" in capsys.readouterr().out


def test_update_ratings_fills_snapshots(data_dir):
    output = data_dir / "replayed.csv"
    code = main([
        "update-ratings",
        "--ratings", str(data_dir / "elo.csv"),
        "--season", str(data_dir / "season.csv"),
        "--teams", str(data_dir / "teams.json"),
        "-o", str(output),
    ])

    assert code == 0
    final = [g for g in load_season(output) if g.is_final]
    assert len(final) == 1
    assert final[0].home_elo_post > final[0].home_elo_pre


def test_preseason(tmp_path):
    save_ratings({"BOS": 1600.0, "TOR": 1400.0}, tmp_path / "final.csv")
    output = tmp_path / "preseason.csv"

    assert main(["preseason", "--ratings", str(tmp_path / "final.csv"), "-o", str(output)]) == 0
    ratings = load_ratings(output)
    assert ratings["BOS"] == pytest.approx(1571.5)
    assert ratings["TOR"] == pytest.approx(1431.5)


def test_missing_file_reports_error(tmp_path, capsys):
    code = main(["preseason", "--ratings", str(tmp_path / "nope.csv"), "-o", str(tmp_path / "x.csv")])
    assert code == 1
    assert "❌" in capsys.readouterr().out
