import json

import pandas as pd
import pytest

from nhl_predictor.loader import (
    load_ratings,
    load_season,
    load_teams,
    save_ratings,
    save_results,
    save_season,
)
from nhl_predictor.tiebreakers import STATUS_FINAL, STATUS_SCHEDULED, STATUS_SIMULATED


SEASON_CSV = """game_pk,date,venue,ot,shootout,status,home_team,home_score,home_elo_pre,home_elo_post,away_team,away_score,away_elo_pre,away_elo_post
2022020001,2022-10-07,Nokia Arena,0,0,Final,SJS,1,1480.0,1476.2,NSH,4,1510.0,1513.8
2022020002,2022-10-12,TD Garden,1,1,Final,BOS,3,0,0,TOR,2,0,0
2022020003,2022-10-13,Scotiabank Arena,0,0,Preview,TOR,5,,,BOS,1,,
2022020004,2022-10-14,TD Garden,0,0,simulated,BOS,4,,,MTL,1,,
"""


@pytest.fixture
def season_csv(tmp_path):
    path = tmp_path / "20222023.csv"
    path.write_text(SEASON_CSV)
    return path


class TestRatings:
    def test_round_trip(self, tmp_path):
        path = tmp_path / "nested" / "elo.csv"
        save_ratings({"TOR": 1520.5, "BOS": 1490.0}, path)

        assert pd.read_csv(path).columns.tolist() == ["team_abbr", "elo"]
        assert load_ratings(path) == {"BOS": 1490.0, "TOR": 1520.5}

    def test_missing_column(self, tmp_path):
        path = tmp_path / "elo.csv"
        path.write_text("team,rating\nBOS,1500\n")
        with pytest.raises(ValueError):
            load_ratings(path)


class TestSeason:
    def test_statuses_and_flags(self, season_csv):
        games = load_season(season_csv)

        assert [g.status for g in games] == [
            STATUS_FINAL, STATUS_FINAL, STATUS_SCHEDULED, STATUS_SIMULATED
        ]
        neutral, shootout, scheduled, _ = games
        assert neutral.venue == "Nokia Arena"
        assert neutral.home_elo_post == pytest.approx(1476.2)
        assert shootout.is_ot and shootout.is_shootout
        assert shootout.home_elo_pre is None

    def test_scheduled_scores_ignored(self, season_csv):
        scheduled = load_season(season_csv)[2]
        assert (scheduled.home_score, scheduled.away_score) == (0, 0)
        assert not scheduled.is_decided

    def test_missing_column(self, tmp_path):
        path = tmp_path / "season.csv"
        path.write_text("game_pk,date,home_team\n1,2022-10-12,BOS\n")
        with pytest.raises(ValueError):
            load_season(path)

    def test_save_keeps_column_layout(self, season_csv, tmp_path):
        out = tmp_path / "out.csv"
        save_season(load_season(season_csv), out)

        assert pd.read_csv(out).columns.tolist() == SEASON_CSV.splitlines()[0].split(",")
        assert [g.game_pk for g in load_season(out)] == [g.game_pk for g in load_season(season_csv)]


class TestTeams:
    def test_stats_api_shape(self, tmp_path):
        path = tmp_path / "teams.json"
        path.write_text(json.dumps({"teams": [
            {
                "abbreviation": "SEA",
                "name": "Seattle Kraken",
                "active": True,
                "venue": {"name": "Climate Pledge Arena"},
                "division": {"name": "Pacific"},
                "conference": {"name": "Western"},
            },
            {"abbreviation": "ATL", "name": "Atlanta Thrashers", "active": False},
        ]}))

        teams = load_teams(path)
        assert list(teams) == ["SEA"]
        assert teams["SEA"].venue == "Climate Pledge Arena"
        assert teams["SEA"].division == "Pacific"
        assert teams["SEA"].conference == "Western"

    def test_plain_list(self, tmp_path):
        path = tmp_path / "teams.json"
        path.write_text(json.dumps([
            {"abbreviation": "BOS", "division": "Atlantic", "conference": "Eastern", "venue": "TD Garden"},
        ]))
        team = load_teams(path)["BOS"]
        assert team.name == "BOS"
        assert team.venue == "TD Garden"


def test_save_results(tmp_path):
    frame = pd.DataFrame([{"team": "BOS", "playoffs": 97.123456}])
    path = tmp_path / "results.csv"
    save_results(frame, path)
    assert "97.1235" in path.read_text()
