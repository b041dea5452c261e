"""
Loader - read and write the ratings, schedule and team files the simulator runs on.

Ratings and the season schedule are flat CSV files; the team directory is the
JSON shape returned by the NHL stats API (``{"teams": [...]}``) or a plain list.
"""

import json
from pathlib import Path
from typing import Dict, List, Mapping, Sequence, Union

import pandas as pd

from .tiebreakers import STATUS_FINAL, STATUS_SCHEDULED, STATUS_SIMULATED, GameRecord, Team

PathLike = Union[str, Path]

RATING_COLUMNS = ["team_abbr", "elo"]

SEASON_COLUMNS = [
    "game_pk",
    "date",
    "venue",
    "ot",
    "shootout",
    "status",
    "home_team",
    "home_score",
    "home_elo_pre",
    "home_elo_post",
    "away_team",
    "away_score",
    "away_elo_pre",
    "away_elo_post",
]

_STATUS_NAMES = {
    "final": STATUS_FINAL,
    "simulated": STATUS_SIMULATED,
}


def load_ratings(path: PathLike) -> Dict[str, float]:
    """Read a ``team_abbr,elo`` CSV."""
    df = pd.read_csv(path)
    missing = set(RATING_COLUMNS) - set(df.columns)
    if missing:
        raise ValueError(f"{path}: missing columns {sorted(missing)}")
    return {str(row.team_abbr): float(row.elo) for row in df.itertuples(index=False)}


def save_ratings(ratings: Mapping[str, float], path: PathLike) -> None:
    df = pd.DataFrame(sorted(ratings.items()), columns=RATING_COLUMNS)
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, index=False)


def _optional_float(value):
    if value is None or pd.isna(value) or value == 0:
        return None
    return float(value)


def _normalize_status(value) -> str:
    # The stats API reports "Preview"/"Live" for games that are not over yet
    return _STATUS_NAMES.get(str(value).strip().lower(), STATUS_SCHEDULED)


def load_season(path: PathLike) -> List[GameRecord]:
    """Read a season CSV into game records, in file order."""
    df = pd.read_csv(path, dtype={"date": str, "venue": str, "status": str})
    missing = {"game_pk", "date", "venue", "status", "home_team", "away_team"} - set(df.columns)
    if missing:
        raise ValueError(f"{path}: missing columns {sorted(missing)}")
    df = df.reindex(columns=SEASON_COLUMNS)
    for col in ("ot", "shootout", "home_score", "away_score"):
        df[col] = df[col].fillna(0).astype(int)

    games = []
    for row in df.itertuples(index=False):
        status = _normalize_status(row.status)
        decided = status != STATUS_SCHEDULED
        games.append(GameRecord(
            game_pk=int(row.game_pk),
            date=str(row.date),
            venue="" if pd.isna(row.venue) else str(row.venue),
            home_team=str(row.home_team),
            away_team=str(row.away_team),
            home_score=int(row.home_score) if decided else 0,
            away_score=int(row.away_score) if decided else 0,
            status=status,
            is_ot=bool(row.ot) if decided else False,
            is_shootout=bool(row.shootout) if decided else False,
            home_elo_pre=_optional_float(row.home_elo_pre) if decided else None,
            home_elo_post=_optional_float(row.home_elo_post) if decided else None,
            away_elo_pre=_optional_float(row.away_elo_pre) if decided else None,
            away_elo_post=_optional_float(row.away_elo_post) if decided else None,
        ))
    return games


def season_to_frame(games: Sequence[GameRecord]) -> pd.DataFrame:
    rows = [
        {
            "game_pk": g.game_pk,
            "date": g.date,
            "venue": g.venue,
            "ot": int(g.is_ot),
            "shootout": int(g.is_shootout),
            "status": g.status,
            "home_team": g.home_team,
            "home_score": g.home_score,
            "home_elo_pre": g.home_elo_pre,
            "home_elo_post": g.home_elo_post,
            "away_team": g.away_team,
            "away_score": g.away_score,
            "away_elo_pre": g.away_elo_pre,
            "away_elo_post": g.away_elo_post,
        }
        for g in games
    ]
    return pd.DataFrame(rows, columns=SEASON_COLUMNS)


def save_season(games: Sequence[GameRecord], path: PathLike) -> None:
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    season_to_frame(games).to_csv(path, index=False)


def _name(value) -> str:
    """Stats API nests names as {"name": ...}; accept either shape."""
    if isinstance(value, dict):
        return str(value.get("name", ""))
    return "" if value is None else str(value)


def load_teams(path: PathLike) -> Dict[str, Team]:
    """Read the team directory, keyed by abbreviation."""
    with open(path) as f:
        data = json.load(f)
    if isinstance(data, dict):
        data = data.get("teams", [])

    teams = {}
    for entry in data:
        if entry.get("active") is False:
            continue
        team = Team(
            abbreviation=entry["abbreviation"],
            name=entry.get("name", entry["abbreviation"]),
            division=_name(entry.get("division")),
            conference=_name(entry.get("conference")),
            venue=_name(entry.get("venue")),
        )
        teams[team.abbreviation] = team
    return teams


def save_results(frame: pd.DataFrame, path: PathLike) -> None:
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    frame.to_csv(path, index=False, float_format="%.4f")
