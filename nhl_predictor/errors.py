"""
Error types raised by the simulation core.

Errors carry their offending data as attributes and rebuild from it when
pickled, so they cross the worker process boundary intact.
"""

from typing import Iterable


class NHLPredictorError(Exception):
    """Base class for all predictor errors."""


class MissingRatingError(NHLPredictorError):
    """A team referenced by the schedule has no starting rating."""

    def __init__(self, team: str):
        self.team = team
        super().__init__(f"no rating found for team {team!r}")

    def __reduce__(self):
        return self.__class__, (self.team,)


class InvalidGameRecordError(NHLPredictorError):
    """A decided game breaks the no-ties / shootout-implies-overtime rules."""

    def __init__(self, game_pk, reason: str):
        self.game_pk = game_pk
        self.reason = reason
        super().__init__(f"invalid game {game_pk}: {reason}")

    def __reduce__(self):
        return self.__class__, (self.game_pk, self.reason)


class TiebreakExhaustionError(NHLPredictorError):
    """Teams could not be separated by any tiebreak key."""

    def __init__(self, teams: Iterable[str]):
        self.teams = tuple(teams)
        super().__init__(f"cannot determine ordering between {', '.join(self.teams)}")

    def __reduce__(self):
        return self.__class__, (self.teams,)


class SamplingStallError(NHLPredictorError):
    """Score rejection sampling hit its attempt bound."""

    def __init__(self, attempts: int, home_lambda: float, away_lambda: float):
        self.attempts = attempts
        self.home_lambda = home_lambda
        self.away_lambda = away_lambda
        super().__init__(
            f"no acceptable score after {attempts} attempts "
            f"(home lambda {home_lambda:.4f}, away lambda {away_lambda:.4f})"
        )

    def __reduce__(self):
        return self.__class__, (self.attempts, self.home_lambda, self.away_lambda)
