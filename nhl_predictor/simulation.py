"""
NHL Playoff Simulation with Real Tiebreakers

This module provides the Monte Carlo season simulation using:
- Elo ratings updated game by game inside each simulated season
- Poisson distribution for realistic hockey score modeling
- Fitted overtime / shootout rates
- NHL standings tiebreakers for division seeds and wild cards
- Progress tracking and optional process-level parallelism
"""

import logging
import time
from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass, field, fields
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from scipy.stats import poisson
from tqdm import tqdm

from .config import SimulationConfig, config
from .elo import (
    date_order,
    expected_goals,
    home_ice_bonus,
    overtime_probability,
    rating_delta,
    ratings_from_snapshots,
    win_probability,
)
from .errors import InvalidGameRecordError, MissingRatingError, SamplingStallError
from .tiebreakers import (
    STATUS_SIMULATED,
    GameRecord,
    Standings,
    Team,
    calculate_standings,
)

logger = logging.getLogger(__name__)

# Score pairs drawn per Poisson call during rejection sampling
SCORE_BATCH = 16

# Runs per independently seeded chunk; fixed so results do not depend on worker count
CHUNK_SIZE = 1000

DIVISION_SLOTS = ("d1_seed", "d2_seed", "d3_seed")
WILD_CARD_SLOTS = ("wc1", "wc2")


@dataclass
class GameOutcome:
    home_score: int
    away_score: int
    is_ot: bool
    is_shootout: bool


class EloGameSimulator:
    """
    Game simulator driven by Elo ratings and a Poisson scoring model.

    The winner and the overtime/shootout flags are drawn first from the
    rating-implied probabilities; the score is then rejection-sampled from
    two independent Poisson draws until it agrees with them.
    """

    def __init__(self, rng: np.random.Generator, sim_config: SimulationConfig = config):
        self.rng = rng
        self.config = sim_config

    def draw_scores(self, elo_diff: float, is_home_win: bool, is_ot: bool) -> Tuple[int, int]:
        """
        Sample a final score consistent with the pre-drawn result.

        An overtime game must be decided by exactly one goal; a regulation
        game by at least two.

        Raises:
            SamplingStallError: no acceptable score within the attempt bound
        """
        home_lambda, away_lambda = expected_goals(elo_diff)
        attempts = 0
        while attempts < self.config.max_sampling_attempts:
            batch = min(SCORE_BATCH, self.config.max_sampling_attempts - attempts)
            home_goals = poisson.rvs(home_lambda, size=batch, random_state=self.rng)
            away_goals = poisson.rvs(away_lambda, size=batch, random_state=self.rng)

            margin = home_goals - away_goals if is_home_win else away_goals - home_goals
            accepted = (margin == 1) if is_ot else (margin >= 2)
            hits = np.flatnonzero(accepted)
            if hits.size:
                i = hits[0]
                return int(home_goals[i]), int(away_goals[i])
            attempts += batch

        raise SamplingStallError(attempts, home_lambda, away_lambda)

    def draw_outcome(self, elo_diff: float, home_win_pct: float) -> GameOutcome:
        is_home_win = self.rng.random() < home_win_pct
        is_ot = self.rng.random() < overtime_probability(elo_diff)
        is_shootout = bool(is_ot and self.rng.integers(2) == 0)
        home_score, away_score = self.draw_scores(elo_diff, is_home_win, is_ot)
        return GameOutcome(home_score, away_score, bool(is_ot), is_shootout)

    def simulate_game(
        self,
        game: GameRecord,
        ratings: Dict[str, float],
        teams: Mapping[str, Team],
    ) -> GameRecord:
        """
        Resolve an undecided game and move ``ratings`` in place.

        Returns:
            Copy of the game with status Simulated
        """
        try:
            home_elo = ratings[game.home_team]
            away_elo = ratings[game.away_team]
        except KeyError as e:
            raise MissingRatingError(e.args[0]) from None

        bonus = home_ice_bonus(teams[game.home_team], game.venue, self.config.home_ice_bonus)
        elo_diff = home_elo + bonus - away_elo
        home_win_pct = win_probability(home_elo, away_elo, bonus)

        outcome = self.draw_outcome(elo_diff, home_win_pct)
        shift = rating_delta(
            elo_diff, home_win_pct, outcome.home_score, outcome.away_score, self.config.k_factor
        )
        if outcome.home_score > outcome.away_score:
            ratings[game.home_team] += shift
            ratings[game.away_team] -= shift
        else:
            ratings[game.away_team] += shift
            ratings[game.home_team] -= shift

        return GameRecord(
            game_pk=game.game_pk,
            date=game.date,
            venue=game.venue,
            home_team=game.home_team,
            away_team=game.away_team,
            home_score=outcome.home_score,
            away_score=outcome.away_score,
            status=STATUS_SIMULATED,
            is_ot=outcome.is_ot,
            is_shootout=outcome.is_shootout,
        )


def validate_inputs(
    base_ratings: Mapping[str, float],
    base_season: Sequence[GameRecord],
    teams: Mapping[str, Team],
) -> None:
    """Fail fast on anything that would break a run halfway through."""
    for game in base_season:
        for abbr in (game.home_team, game.away_team):
            if abbr not in teams:
                raise InvalidGameRecordError(game.game_pk, f"unknown team {abbr!r}")
            if abbr not in base_ratings:
                raise MissingRatingError(abbr)
        if game.is_final:
            game.validate()


def simulate_season(
    base_ratings: Mapping[str, float],
    base_season: Sequence[GameRecord],
    teams: Mapping[str, Team],
    rng: np.random.Generator,
    sim_config: SimulationConfig = config,
) -> List[GameRecord]:
    """
    Play out one season.

    Final games are kept as they are (their rating effect is already in
    ``base_ratings``); every other game is simulated in date order against a
    private copy of the ratings, so later games see earlier simulated results.
    """
    season_elos = dict(base_ratings)
    simulator = EloGameSimulator(rng, sim_config)

    season_games = []
    for game in date_order(base_season):
        if game.is_final:
            season_games.append(game)
            continue
        season_games.append(simulator.simulate_game(game, season_elos, teams))

    return season_games


# ==========================================
# RESULT TRACKING
# ==========================================

@dataclass
class TeamSimulationResults:
    made_playoffs: int = 0
    d1_seed: int = 0
    d2_seed: int = 0
    d3_seed: int = 0
    wc1: int = 0
    wc2: int = 0

    def merge(self, other: "TeamSimulationResults") -> None:
        for f in fields(self):
            setattr(self, f.name, getattr(self, f.name) + getattr(other, f.name))

    def rates(self, n_simulations: int) -> Dict[str, float]:
        """Percentage of runs for each outcome."""
        if n_simulations <= 0:
            return {f.name: 0.0 for f in fields(self)}
        return {f.name: 100.0 * getattr(self, f.name) / n_simulations for f in fields(self)}


@dataclass
class SimulationResults:
    teams: Dict[str, TeamSimulationResults] = field(default_factory=dict)
    n_simulations: int = 0
    seed: Optional[int] = None
    # Runs whose standings fell back to abbreviation order
    unresolved_ties: int = 0
    stall_retries: int = 0

    @classmethod
    def empty(cls, team_abbrs, seed: Optional[int] = None) -> "SimulationResults":
        return cls(teams={abbr: TeamSimulationResults() for abbr in team_abbrs}, seed=seed)

    def tally(self, standings: Standings) -> None:
        self.n_simulations += 1
        if standings.unresolved_ties:
            self.unresolved_ties += 1
        for seeds in standings.division_seeds.values():
            for slot, team in zip(DIVISION_SLOTS, seeds):
                team_results = self.teams[team]
                team_results.made_playoffs += 1
                setattr(team_results, slot, getattr(team_results, slot) + 1)
        for wild_cards in standings.wild_cards.values():
            for slot, team in zip(WILD_CARD_SLOTS, wild_cards):
                team_results = self.teams[team]
                team_results.made_playoffs += 1
                setattr(team_results, slot, getattr(team_results, slot) + 1)

    def merge(self, other: "SimulationResults") -> None:
        for abbr, team_results in other.teams.items():
            self.teams.setdefault(abbr, TeamSimulationResults()).merge(team_results)
        self.n_simulations += other.n_simulations
        self.unresolved_ties += other.unresolved_ties
        self.stall_retries += other.stall_retries

    def rates(self) -> Dict[str, Dict[str, float]]:
        return {abbr: r.rates(self.n_simulations) for abbr, r in self.teams.items()}


def _run_chunk(
    base_ratings: Mapping[str, float],
    base_season: Sequence[GameRecord],
    teams: Mapping[str, Team],
    n_runs: int,
    seed_seq: np.random.SeedSequence,
    sim_config: SimulationConfig,
) -> SimulationResults:
    """Run a block of seasons with one generator and a local tally."""
    rng = np.random.default_rng(seed_seq)
    results = SimulationResults.empty(teams)

    for _ in range(n_runs):
        retries = 0
        while True:
            try:
                season = simulate_season(base_ratings, base_season, teams, rng, sim_config)
                break
            except SamplingStallError as e:
                if sim_config.on_stall == "abort" or retries >= sim_config.max_run_retries:
                    raise
                retries += 1
                results.stall_retries += 1
                logger.warning("Retrying stalled season (attempt %d): %s", retries, e)

        standings = calculate_standings(teams, season, strict=sim_config.strict_tiebreaks)
        results.tally(standings)

    return results


def run_simulation(
    base_ratings: Mapping[str, float],
    base_season: Sequence[GameRecord],
    teams: Mapping[str, Team],
    n_simulations: int = 10000,
    seed: Optional[int] = None,
    n_workers: int = 1,
    show_progress: bool = True,
    use_snapshots: bool = True,
    sim_config: SimulationConfig = config,
) -> SimulationResults:
    """
    Run Monte Carlo simulation of the rest of the season.

    Args:
        base_ratings: Team abbreviation -> rating before the first game
        base_season: Full schedule; final games are kept, the rest simulated
        teams: Team directory
        n_simulations: Number of seasons to simulate
        seed: Seed for the random stream (fresh entropy if None)
        n_workers: Worker processes; 1 runs in-process
        show_progress: Whether to show progress bar
        use_snapshots: Start from the latest post-game ratings of final games
        sim_config: Model and failure-policy settings

    Returns:
        SimulationResults with per-team outcome counts
    """
    if n_simulations < 1:
        raise ValueError("n_simulations must be positive")
    validate_inputs(base_ratings, base_season, teams)

    ratings = ratings_from_snapshots(base_ratings, base_season) if use_snapshots else dict(base_ratings)
    root = np.random.SeedSequence(seed)
    chunk_sizes = [CHUNK_SIZE] * (n_simulations // CHUNK_SIZE)
    if n_simulations % CHUNK_SIZE:
        chunk_sizes.append(n_simulations % CHUNK_SIZE)
    children = root.spawn(len(chunk_sizes))

    logger.info("Running %d simulations (seed %d, %d workers)", n_simulations, root.entropy, n_workers)
    start = time.perf_counter()

    results = SimulationResults.empty(teams, seed=root.entropy)
    progress = tqdm(total=n_simulations, desc="Simulating seasons", disable=not show_progress)
    with progress:
        if n_workers <= 1:
            for size, child in zip(chunk_sizes, children):
                results.merge(_run_chunk(ratings, base_season, teams, size, child, sim_config))
                progress.update(size)
        else:
            with ProcessPoolExecutor(max_workers=n_workers) as executor:
                futures = [
                    executor.submit(_run_chunk, ratings, base_season, teams, size, child, sim_config)
                    for size, child in zip(chunk_sizes, children)
                ]
                # merge in chunk order so the tally is independent of scheduling
                for size, future in zip(chunk_sizes, futures):
                    results.merge(future.result())
                    progress.update(size)

    logger.info("Execution took %.2fs", time.perf_counter() - start)
    if results.unresolved_ties:
        logger.warning("%d runs needed the abbreviation fallback to order tied teams",
                       results.unresolved_ties)
    return results


# ==========================================
# REPORTING
# ==========================================

def results_to_frame(results: SimulationResults, teams: Mapping[str, Team]) -> pd.DataFrame:
    """One row per team with outcome percentages, best playoff odds first."""
    rows = []
    for abbr, rates in results.rates().items():
        team = teams[abbr]
        rows.append({
            "team": abbr,
            "name": team.name,
            "division": team.division,
            "conference": team.conference,
            "playoffs": rates["made_playoffs"],
            "d1": rates["d1_seed"],
            "d2": rates["d2_seed"],
            "d3": rates["d3_seed"],
            "wc1": rates["wc1"],
            "wc2": rates["wc2"],
        })
    columns = ["team", "name", "division", "conference", "playoffs", "d1", "d2", "d3", "wc1", "wc2"]
    frame = pd.DataFrame(rows, columns=columns)
    return frame.sort_values(["playoffs", "team"], ascending=[False, True], ignore_index=True)


def print_simulation_results(results: SimulationResults, teams: Mapping[str, Team]):
    """Print formatted simulation results"""
    frame = results_to_frame(results, teams)

    print("\n" + "=" * 70)
    print(f"    NHL PLAYOFF PROBABILITIES ({results.n_simulations:,} simulations)")
    print("=" * 70)

    for conference in sorted(frame["conference"].unique()):
        print(f"\n🏒 {conference.upper()} CONFERENCE")
        conf_frame = frame[frame["conference"] == conference]

        for division in sorted(conf_frame["division"].unique()):
            print(f"\n{division}:")
            print(f"{'Team':<6} {'Playoffs':>9} {'D1':>7} {'D2':>7} {'D3':>7} {'WC1':>7} {'WC2':>7}")
            print("-" * 56)
            for row in conf_frame[conf_frame["division"] == division].itertuples():
                print(
                    f"{row.team:<6} {row.playoffs:>8.1f}% {row.d1:>6.1f}% {row.d2:>6.1f}% "
                    f"{row.d3:>6.1f}% {row.wc1:>6.1f}% {row.wc2:>6.1f}%"
                )

    if results.unresolved_ties:
        print(f"\n⚠️  {results.unresolved_ties:,} runs had ties no tiebreaker could separate")
    if results.stall_retries:
        print(f"⚠️  {results.stall_retries:,} seasons were re-run after score sampling stalled")
