"""
Elo rating model for NHL games.

Win probability is a logistic function of the rating gap (with a home-ice
bonus when the home team plays in its own building). After a result the
winner takes rating points from the loser, scaled by the goal margin, an
autocorrelation damper for favorites, and how surprising the result was.
"""

import logging
import math
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from .config import (
    AUTOCORR_BASE,
    AUTOCORR_SCALE,
    ELO_SCALE,
    GOALS_BASE,
    GOALS_SLOPE,
    HOME_ICE_BONUS,
    K_FACTOR,
    MIN_GOAL_LAMBDA,
    MOV_INTERCEPT,
    MOV_SLOPE,
    OT_INTERCEPT,
    OT_SLOPE,
    PRESEASON_MEAN,
    PRESEASON_WEIGHT,
)
from .errors import InvalidGameRecordError, MissingRatingError
from .tiebreakers import GameRecord, Team

logger = logging.getLogger(__name__)


def home_ice_bonus(team: Team, venue: str, bonus: float = HOME_ICE_BONUS) -> float:
    """Rating bonus for the home team, only when it plays in its own arena."""
    if team.venue == venue:
        return bonus
    return 0.0


def win_probability(home_elo: float, away_elo: float, home_bonus: float = 0.0) -> float:
    """Probability the home team wins: 1 / (10^(-diff/400) + 1)."""
    elo_diff = home_elo + home_bonus - away_elo
    return 1.0 / (math.pow(10, -elo_diff / ELO_SCALE) + 1)


def overtime_probability(elo_diff: float) -> float:
    """Chance the game is still tied after regulation."""
    return 1.0 / (1 + math.exp(OT_INTERCEPT + OT_SLOPE * elo_diff))


def expected_goals(elo_diff: float) -> Tuple[float, float]:
    """Poisson means for (home, away) goals, floored to stay valid."""
    home_lambda = GOALS_BASE + GOALS_SLOPE * elo_diff
    away_lambda = GOALS_BASE - GOALS_SLOPE * elo_diff
    return max(MIN_GOAL_LAMBDA, home_lambda), max(MIN_GOAL_LAMBDA, away_lambda)


def rating_delta(
    elo_diff: float,
    home_win_pct: float,
    home_score: int,
    away_score: int,
    k_factor: float = K_FACTOR,
) -> float:
    """
    Rating points the actual winner takes from the loser.

    Args:
        elo_diff: Home minus away rating, home-ice bonus included
        home_win_pct: Pregame home win probability
        home_score: Final home goals
        away_score: Final away goals
        k_factor: Base step size

    Returns:
        Non-negative shift; add it to the winner and subtract it from the loser
    """
    goal_diff = abs(home_score - away_score)
    if goal_diff == 0:
        raise ValueError("rating delta is undefined for a tied score")

    home_won = home_score > away_score
    winner_elo_diff = elo_diff if home_won else -elo_diff

    margin_multiplier = MOV_SLOPE * math.log(goal_diff) + MOV_INTERCEPT
    autocorrelation_adjustment = AUTOCORR_BASE / (winner_elo_diff * AUTOCORR_SCALE + AUTOCORR_BASE)

    if home_win_pct < 0.5:
        # away favorite
        favorite_won = not home_won
        favorite_win_pct = 1.0 - home_win_pct
    else:
        favorite_won = home_won
        favorite_win_pct = home_win_pct
    pregame_favorite_multiplier = abs((1.0 if favorite_won else 0.0) - favorite_win_pct)

    return k_factor * margin_multiplier * autocorrelation_adjustment * pregame_favorite_multiplier


def apply_result(
    ratings: Dict[str, float],
    game: GameRecord,
    teams: Mapping[str, Team],
    k_factor: float = K_FACTOR,
    bonus: float = HOME_ICE_BONUS,
) -> Tuple[float, float, float, float]:
    """
    Update ``ratings`` in place with one decided game.

    Returns:
        (home_pre, away_pre, home_post, away_post)
    """
    game.validate()
    for abbr in (game.home_team, game.away_team):
        if abbr not in ratings:
            raise MissingRatingError(abbr)
    if game.home_team not in teams:
        raise InvalidGameRecordError(game.game_pk, f"unknown home team {game.home_team!r}")

    home_pre = ratings[game.home_team]
    away_pre = ratings[game.away_team]
    bonus = home_ice_bonus(teams[game.home_team], game.venue, bonus)
    elo_diff = home_pre + bonus - away_pre
    home_win_pct = win_probability(home_pre, away_pre, bonus)

    shift = rating_delta(elo_diff, home_win_pct, game.home_score, game.away_score, k_factor)
    if game.home_win:
        ratings[game.home_team] = home_pre + shift
        ratings[game.away_team] = away_pre - shift
    else:
        ratings[game.home_team] = home_pre - shift
        ratings[game.away_team] = away_pre + shift

    return home_pre, away_pre, ratings[game.home_team], ratings[game.away_team]


def date_order(games: Sequence[GameRecord]) -> List[GameRecord]:
    """Games sorted by date; same-day games keep their schedule order."""
    return sorted(games, key=lambda g: str(g.date))


def replay_final_games(
    base_ratings: Mapping[str, float],
    games: Sequence[GameRecord],
    teams: Mapping[str, Team],
    k_factor: float = K_FACTOR,
) -> Tuple[List[GameRecord], Dict[str, float]]:
    """
    Walk the final games in date order and fill their pre/post rating snapshots.

    Returns:
        (games in date order, ratings after the last final game)
    """
    ratings = dict(base_ratings)
    replayed = []
    for game in date_order(games):
        if game.is_final:
            home_pre, away_pre, home_post, away_post = apply_result(ratings, game, teams, k_factor)
            game = GameRecord(**{
                **vars(game),
                "home_elo_pre": home_pre,
                "away_elo_pre": away_pre,
                "home_elo_post": home_post,
                "away_elo_post": away_post,
            })
        replayed.append(game)
    return replayed, ratings


def ratings_from_snapshots(
    base_ratings: Mapping[str, float],
    games: Sequence[GameRecord],
) -> Dict[str, float]:
    """Ratings with each team's latest post-game snapshot from final games."""
    ratings = dict(base_ratings)
    for game in date_order(games):
        if not game.is_final:
            continue
        if game.home_elo_post:
            logger.debug("Updating rating for %s from game %s", game.home_team, game.game_pk)
            ratings[game.home_team] = game.home_elo_post
        if game.away_elo_post:
            logger.debug("Updating rating for %s from game %s", game.away_team, game.game_pk)
            ratings[game.away_team] = game.away_elo_post
    return ratings


def preseason_ratings(
    final_ratings: Mapping[str, float],
    weight: float = PRESEASON_WEIGHT,
    mean: float = PRESEASON_MEAN,
    aliases: Optional[Mapping[str, str]] = None,
) -> Dict[str, float]:
    """Regress last season's final ratings toward the league mean."""
    aliases = aliases or {}
    return {
        aliases.get(team, team): rating * weight + mean * (1 - weight)
        for team, rating in final_ratings.items()
    }
