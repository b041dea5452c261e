"""
Configuration settings for NHL Predictor.
Centralizes the Elo/goal model constants and season logic to avoid hardcoding years.
"""

import os
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

# Elo model
K_FACTOR = 6.0
HOME_ICE_BONUS = 50.0
ELO_SCALE = 400.0

# Margin of victory multiplier: 0.6686 * ln(goal_diff) + 0.8048
MOV_SLOPE = 0.6686
MOV_INTERCEPT = 0.8048

# Autocorrelation adjustment: 2.05 / (0.001 * winner_elo_diff + 2.05)
AUTOCORR_BASE = 2.05
AUTOCORR_SCALE = 0.001

# Fitted logistic curve for the chance a game goes past regulation
OT_INTERCEPT = 1.1320032
OT_SLOPE = 0.0009822

# Poisson goal model: lambda = 2.8411351 +/- 0.0042408 * elo_diff
GOALS_BASE = 2.8411351
GOALS_SLOPE = 0.0042408
MIN_GOAL_LAMBDA = 0.05

# Preseason regression toward the league mean
PRESEASON_WEIGHT = 0.7
PRESEASON_MEAN = 1505.0

# Playoff format
DIVISION_SEEDS = 3
WILD_CARDS = 2

STALL_POLICIES = ("retry", "abort")


@dataclass
class SimulationConfig:
    """Run-time knobs for the season simulation."""

    k_factor: float = K_FACTOR
    home_ice_bonus: float = HOME_ICE_BONUS
    # Upper bound on Poisson score draws for a single game before giving up
    max_sampling_attempts: int = 100_000
    # "retry" re-runs a stalled season with fresh randomness, "abort" fails the batch
    on_stall: str = "retry"
    max_run_retries: int = 10
    strict_tiebreaks: bool = False
    data_dir: str = field(default_factory=lambda: os.getenv("NHL_DATA_DIR", "data"))

    def __post_init__(self) -> None:
        if self.on_stall not in STALL_POLICIES:
            raise ValueError(f"on_stall must be one of {STALL_POLICIES}, got {self.on_stall!r}")
        if self.max_sampling_attempts < 1:
            raise ValueError("max_sampling_attempts must be positive")


config = SimulationConfig()


def get_current_season(today: Optional[datetime] = None) -> str:
    """
    Determine the current NHL season key, e.g. "20222023".
    Seasons start in October, so January through August still belong
    to the season that started the previous year.
    """
    today = today or datetime.now()
    start_year = today.year if today.month >= 9 else today.year - 1
    return f"{start_year}{start_year + 1}"


def season_file(season: Optional[str] = None, data_dir: Optional[str] = None) -> str:
    """Path of the schedule/results CSV for a season."""
    season = season or get_current_season()
    return os.path.join(data_dir or config.data_dir, f"{season}.csv")
