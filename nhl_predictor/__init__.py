from .config import SimulationConfig, config, get_current_season
from .errors import (
    NHLPredictorError,
    MissingRatingError,
    InvalidGameRecordError,
    TiebreakExhaustionError,
    SamplingStallError,
)
from .tiebreakers import Team, GameRecord, TeamSeasonStats, Standings, NHLTiebreaker, calculate_standings
from .elo import win_probability, rating_delta, replay_final_games, ratings_from_snapshots, preseason_ratings
from .simulation import EloGameSimulator, simulate_season, run_simulation, SimulationResults, results_to_frame
