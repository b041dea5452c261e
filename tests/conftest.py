"""
Shared test fixtures for the NHL simulation tests.
"""
import itertools

import numpy as np
import pytest

from nhl_predictor.tiebreakers import STATUS_FINAL, STATUS_SCHEDULED, GameRecord, Team


LEAGUE = {
    "Eastern": {
        "Atlantic": ["BOS", "TOR", "MTL", "OTT", "BUF"],
        "Metropolitan": ["NYR", "PIT", "WSH", "CAR", "NJD"],
    },
    "Western": {
        "Central": ["COL", "DAL", "MIN", "STL", "WPG"],
        "Pacific": ["EDM", "VGK", "SEA", "LAK", "CGY"],
    },
}


def build_teams(league=LEAGUE):
    teams = {}
    for conference, divisions in league.items():
        for division, abbrs in divisions.items():
            for abbr in abbrs:
                teams[abbr] = Team(
                    abbreviation=abbr,
                    name=f"{abbr} Hockey Club",
                    division=division,
                    conference=conference,
                    venue=f"{abbr} Arena",
                )
    return teams


def build_game(game_pk, home, away, home_score=0, away_score=0, status=STATUS_FINAL,
               ot=False, so=False, date="2022-10-12", venue=None):
    """A single game; the venue defaults to the home team's arena."""
    if status == STATUS_SCHEDULED:
        home_score = away_score = 0
    return GameRecord(
        game_pk=game_pk,
        date=date,
        venue=venue if venue is not None else f"{home} Arena",
        home_team=home,
        away_team=away,
        home_score=home_score,
        away_score=away_score,
        status=status,
        is_ot=ot,
        is_shootout=so,
    )


@pytest.fixture
def make_game():
    return build_game


@pytest.fixture
def teams():
    return build_teams()


@pytest.fixture
def ratings(teams):
    """Spread ratings so stronger and weaker teams exist in every division."""
    return {abbr: 1400.0 + 20.0 * i for i, abbr in enumerate(sorted(teams))}


@pytest.fixture
def division_schedule(teams):
    """Every division rival pair meets once, all games still to be played."""
    games = []
    pk = 1
    by_division = {}
    for abbr, team in teams.items():
        by_division.setdefault(team.division, []).append(abbr)
    for division in sorted(by_division):
        for day, (home, away) in enumerate(itertools.combinations(by_division[division], 2)):
            games.append(build_game(pk, home, away, status=STATUS_SCHEDULED,
                                    date=f"2022-11-{day + 1:02d}"))
            pk += 1
    return games


@pytest.fixture
def rng():
    return np.random.default_rng(12345)


@pytest.fixture
def make_teams():
    return build_teams
