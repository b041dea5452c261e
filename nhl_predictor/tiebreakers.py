"""
NHL Standings with Full Tiebreaker Support

This module holds the season data models and turns a completed season into
playoff standings: per-team records, the NHL ordering keys, the "points earned
in games among the tied teams" tiebreaker, and the division seed / wild card
partition.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from .config import DIVISION_SEEDS, WILD_CARDS
from .errors import InvalidGameRecordError, TiebreakExhaustionError

logger = logging.getLogger(__name__)

# ==========================================
# DATA MODELS
# ==========================================

STATUS_FINAL = "Final"
STATUS_SIMULATED = "Simulated"
STATUS_SCHEDULED = "Scheduled"

DECIDED_STATUSES = (STATUS_FINAL, STATUS_SIMULATED)

# Neutral points percentage for a tied team that never met the others
NEUTRAL_TIEBREAK_PCT = 0.5


@dataclass(frozen=True)
class Team:
    """A franchise and the league structure it plays in."""
    abbreviation: str
    name: str
    division: str
    conference: str
    venue: str


@dataclass
class GameRecord:
    """Represents a single NHL game (final, simulated or still scheduled)"""
    game_pk: int
    date: str
    venue: str
    home_team: str
    away_team: str
    home_score: int = 0
    away_score: int = 0
    status: str = STATUS_SCHEDULED
    is_ot: bool = False
    is_shootout: bool = False
    home_elo_pre: Optional[float] = None
    home_elo_post: Optional[float] = None
    away_elo_pre: Optional[float] = None
    away_elo_post: Optional[float] = None

    @property
    def is_decided(self) -> bool:
        return self.status in DECIDED_STATUSES

    @property
    def is_final(self) -> bool:
        return self.status == STATUS_FINAL

    @property
    def home_win(self) -> bool:
        return self.home_score > self.away_score

    @property
    def winner(self) -> Optional[str]:
        if not self.is_decided:
            return None
        return self.home_team if self.home_win else self.away_team

    @property
    def loser(self) -> Optional[str]:
        if not self.is_decided:
            return None
        return self.away_team if self.home_win else self.home_team

    @property
    def goal_diff(self) -> int:
        return abs(self.home_score - self.away_score)

    def involves_team(self, team: str) -> bool:
        return team in (self.home_team, self.away_team)

    def validate(self) -> None:
        """Raise InvalidGameRecordError if a decided game is not a legal NHL result."""
        if not self.is_decided:
            return
        if self.home_score < 0 or self.away_score < 0:
            raise InvalidGameRecordError(self.game_pk, "negative score")
        if self.home_score == self.away_score:
            raise InvalidGameRecordError(
                self.game_pk, f"tied score {self.home_score}-{self.away_score}"
            )
        if self.is_shootout and not self.is_ot:
            raise InvalidGameRecordError(self.game_pk, "shootout flag without overtime flag")


@dataclass
class TeamSeasonStats:
    """Team record folded from a completed season"""
    team: str
    wins: int = 0
    losses: int = 0
    regulation_wins: int = 0
    ot_wins: int = 0
    so_wins: int = 0
    points: int = 0
    goals_for: int = 0
    goals_against: int = 0

    @property
    def goal_differential(self) -> int:
        return self.goals_for - self.goals_against

    @property
    def games_played(self) -> int:
        return self.wins + self.losses

    @property
    def primary_key(self) -> Tuple[int, int, int, int]:
        """Points, then regulation, overtime and shootout wins."""
        return (self.points, self.regulation_wins, self.ot_wins, self.so_wins)


@dataclass
class Standings:
    """Division seeds and conference wild cards of a completed season"""
    division_seeds: Dict[str, List[str]] = field(default_factory=dict)
    wild_cards: Dict[str, List[str]] = field(default_factory=dict)
    # Full order over all teams, best first
    order: List[str] = field(default_factory=list)
    # Groups of teams that needed the identifier fallback
    unresolved_ties: List[Tuple[str, ...]] = field(default_factory=list)

    def playoff_teams(self) -> List[str]:
        teams = []
        for seeds in self.division_seeds.values():
            teams.extend(seeds)
        for wild_cards in self.wild_cards.values():
            teams.extend(wild_cards)
        return teams


def compute_season_stats(teams: Sequence[str], games: Sequence[GameRecord]) -> Dict[str, TeamSeasonStats]:
    """One pass over the decided games of a season."""
    season_stats = {team: TeamSeasonStats(team=team) for team in teams}

    for game in games:
        if not game.is_decided:
            continue
        game.validate()

        for abbr in (game.home_team, game.away_team):
            if abbr not in season_stats:
                raise InvalidGameRecordError(game.game_pk, f"unknown team {abbr!r}")

        home = season_stats[game.home_team]
        away = season_stats[game.away_team]
        winner, loser = (home, away) if game.home_win else (away, home)

        winner.wins += 1
        winner.points += 2
        loser.losses += 1
        if game.is_shootout:
            winner.so_wins += 1
            loser.points += 1
        elif game.is_ot:
            winner.ot_wins += 1
            loser.points += 1
        else:
            winner.regulation_wins += 1

        home.goals_for += game.home_score
        home.goals_against += game.away_score
        away.goals_for += game.away_score
        away.goals_against += game.home_score

    return season_stats


# ==========================================
# TIEBREAKER IMPLEMENTATION
# ==========================================

class NHLTiebreaker:
    """
    Implements the standings order used for playoff seeding.

    Teams are ordered by (all descending):
    1. Points
    2. Regulation wins
    3. Overtime wins
    4. Shootout wins
    5. Points percentage in games played among the tied teams
    6. Goal differential
    7. Goals for

    Teams still level after every key are ordered by abbreviation and the
    group is reported as an unresolved tie (raised instead in strict mode).
    """

    def __init__(self, teams: Dict[str, Team], games: Sequence[GameRecord], strict: bool = False):
        self.teams = teams
        self.games = games
        self.strict = strict
        self.season_stats = compute_season_stats(list(teams), games)
        self.unresolved_ties: List[Tuple[str, ...]] = []

    def games_played_tiebreak(self, tied_teams: Sequence[str]) -> Dict[str, int]:
        """
        Rank tied teams by points earned in games played among themselves.

        A win earns 2 of the 2 available points (3 available if the game went
        past regulation) and an extra-time loss earns 1. A team with an odd
        number of qualifying games drops the first game whose home/away
        matchup was played more often than its reverse fixture, so an extra
        home or away date does not count.

        Returns team -> rank, where teams sharing a percentage share a rank
        and a higher rank is better.
        """
        team_set = set(tied_teams)
        team_games: Dict[str, List[GameRecord]] = {team: [] for team in tied_teams}
        games_by_home_away: Dict[Tuple[str, str], int] = defaultdict(int)

        for game in self.games:
            if not game.is_decided:
                continue
            if game.home_team in team_set and game.away_team in team_set:
                team_games[game.home_team].append(game)
                team_games[game.away_team].append(game)
                games_by_home_away[(game.home_team, game.away_team)] += 1

        if len(tied_teams) > 2:
            logger.debug("determining tiebreak for teams: %s", list(tied_teams))

        teams_by_pct: Dict[float, List[str]] = defaultdict(list)
        for team in tied_teams:
            considered_games = team_games[team]
            # a lone head-to-head game always counts
            need_skip = len(considered_games) % 2 != 0 and len(considered_games) > 1

            pts_won = pts_available = 0
            for game in considered_games:
                matchup = games_by_home_away[(game.home_team, game.away_team)]
                reverse = games_by_home_away[(game.away_team, game.home_team)]
                if need_skip and matchup > reverse:
                    logger.debug("skipping game %s for team %s", game.game_pk, team)
                    need_skip = False
                    continue

                pts_available += 3 if game.is_ot else 2
                if game.winner == team:
                    pts_won += 2
                elif game.is_ot:
                    pts_won += 1

            pct_won = pts_won / pts_available if pts_available else NEUTRAL_TIEBREAK_PCT
            teams_by_pct[pct_won].append(team)

        team_ranks = {}
        for rank, pct in enumerate(sorted(teams_by_pct)):
            for team in teams_by_pct[pct]:
                team_ranks[team] = rank

        if len(tied_teams) > 2:
            logger.debug("final team ranks: %s", team_ranks)
        return team_ranks

    def _tiebreak_ranks(self) -> Dict[str, int]:
        """Tiebreak ranks for every team sharing its primary key with another team."""
        groups: Dict[Tuple[int, int, int, int], List[str]] = defaultdict(list)
        for team in sorted(self.season_stats):
            groups[self.season_stats[team].primary_key].append(team)

        ranks = {}
        for tied in groups.values():
            if len(tied) > 1:
                ranks.update(self.games_played_tiebreak(tied))
        return ranks

    def rank_teams(self) -> List[str]:
        """Total order over all teams, best first."""
        ranks = self._tiebreak_ranks()

        def sort_tuple(team: str) -> tuple:
            stats = self.season_stats[team]
            return (
                stats.points,
                stats.regulation_wins,
                stats.ot_wins,
                stats.so_wins,
                ranks.get(team, 0),
                stats.goal_differential,
                stats.goals_for,
            )

        # abbreviation ascending is the fallback when every key is level
        ordered = sorted(self.season_stats, key=lambda t: ((tuple(-v for v in sort_tuple(t))), t))

        self.unresolved_ties = []
        i = 0
        while i < len(ordered):
            j = i + 1
            while j < len(ordered) and sort_tuple(ordered[j]) == sort_tuple(ordered[i]):
                j += 1
            if j - i > 1:
                self._report_exhausted(tuple(ordered[i:j]))
            i = j

        return ordered

    def _report_exhausted(self, tied: Tuple[str, ...]) -> None:
        error = TiebreakExhaustionError(tied)
        if self.strict:
            raise error
        logger.warning("%s; ordering by abbreviation", error)
        self.unresolved_ties.append(tied)

    def determine_standings(
        self,
        division_seeds: int = DIVISION_SEEDS,
        wild_cards: int = WILD_CARDS,
    ) -> Standings:
        """
        Partition the total order: the top teams of each division are seeded,
        everyone else competes conference-wide for the wild cards.
        """
        order = self.rank_teams()
        standings = Standings(order=order, unresolved_ties=list(self.unresolved_ties))

        for abbr in order:
            team = self.teams[abbr]
            seeds = standings.division_seeds.setdefault(team.division, [])
            wc = standings.wild_cards.setdefault(team.conference, [])
            if len(seeds) < division_seeds:
                seeds.append(abbr)
            elif len(wc) < wild_cards:
                wc.append(abbr)

        return standings


def calculate_standings(
    teams: Dict[str, Team],
    games: Sequence[GameRecord],
    strict: bool = False,
) -> Standings:
    """Standings of a completed season."""
    return NHLTiebreaker(teams, games, strict=strict).determine_standings()
