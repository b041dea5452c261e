import argparse
import logging
import sys

from .config import PRESEASON_MEAN, PRESEASON_WEIGHT, STALL_POLICIES, SimulationConfig, season_file
from .elo import preseason_ratings, replay_final_games
from .errors import NHLPredictorError
from .loader import load_ratings, load_season, load_teams, save_ratings, save_results, save_season
from .simulation import print_simulation_results, results_to_frame, run_simulation


def parse_arguments(argv=None):
    parser = argparse.ArgumentParser(description='NHL Playoff Predictor')
    parser.add_argument('--verbose', '-v', action='store_true',
                        help='Show debug logging (tiebreak details)')
    subparsers = parser.add_subparsers(dest='command', required=True)

    simulate = subparsers.add_parser('simulate', help='Simulate the rest of the season')
    simulate.add_argument('--ratings', default='data/preseason_elo.csv',
                          help='Starting ratings CSV (default: data/preseason_elo.csv)')
    simulate.add_argument('--season', default=None,
                          help='Season schedule CSV (default: data/<current season>.csv)')
    simulate.add_argument('--teams', default='data/teams.json',
                          help='Team directory JSON (default: data/teams.json)')
    simulate.add_argument('--simulations', '-n', type=int, default=10000,
                          help='Number of Monte Carlo simulations (default: 10000)')
    simulate.add_argument('--seed', type=int, default=None,
                          help='Random seed for reproducible runs')
    simulate.add_argument('--workers', '-w', type=int, default=1,
                          help='Worker processes (default: 1)')
    simulate.add_argument('--no-progress', action='store_true',
                          help='Disable progress bar')
    simulate.add_argument('--output', '-o', default=None,
                          help='Write per-team percentages to this CSV')
    simulate.add_argument('--strict-tiebreaks', action='store_true',
                          help='Fail instead of falling back to abbreviation order on unbreakable ties')
    simulate.add_argument('--on-stall', choices=STALL_POLICIES, default='retry',
                          help='What to do when score sampling stalls (default: retry)')

    update = subparsers.add_parser('update-ratings', help='Replay final games and fill rating snapshots')
    update.add_argument('--ratings', default='data/preseason_elo.csv')
    update.add_argument('--season', default=None)
    update.add_argument('--teams', default='data/teams.json')
    update.add_argument('--output', '-o', default=None,
                        help='Season CSV to write (default: overwrite --season)')

    preseason = subparsers.add_parser('preseason', help='Regress final ratings toward the mean')
    preseason.add_argument('--ratings', required=True, help='Last season final ratings CSV')
    preseason.add_argument('--output', '-o', default='data/preseason_elo.csv')
    preseason.add_argument('--weight', type=float, default=PRESEASON_WEIGHT)
    preseason.add_argument('--mean', type=float, default=PRESEASON_MEAN)

    return parser.parse_args(argv)


def _season_path(path):
    return path or season_file()


def do_simulate(args):
    sim_config = SimulationConfig(strict_tiebreaks=args.strict_tiebreaks, on_stall=args.on_stall)

    ratings = load_ratings(args.ratings)
    print(f"📊 Loaded {len(ratings)} ratings")
    season = load_season(_season_path(args.season))
    print(f"📅 Loaded {len(season)} games")
    teams = load_teams(args.teams)
    print(f"🏒 Loaded {len(teams)} teams")

    print(f"\n🚀 Running {args.simulations:,} simulations...")
    results = run_simulation(
        ratings,
        season,
        teams,
        n_simulations=args.simulations,
        seed=args.seed,
        n_workers=args.workers,
        show_progress=not args.no_progress,
        sim_config=sim_config,
    )
    print(f"🎲 Using seed {results.seed}")
    print_simulation_results(results, teams)

    if args.output:
        save_results(results_to_frame(results, teams), args.output)
        print(f"💾 Saved results to {args.output}")


def do_update_ratings(args):
    season_path = _season_path(args.season)
    ratings = load_ratings(args.ratings)
    season = load_season(season_path)
    teams = load_teams(args.teams)

    replayed, _ = replay_final_games(ratings, season, teams)
    output = args.output or season_path
    save_season(replayed, output)
    final_games = sum(1 for g in replayed if g.is_final)
    print(f"💾 Replayed {final_games} final games into {output}")


def do_preseason(args):
    final = load_ratings(args.ratings)
    save_ratings(preseason_ratings(final, weight=args.weight, mean=args.mean), args.output)
    print(f"💾 Saved {len(final)} preseason ratings to {args.output}")


def main(argv=None):
    args = parse_arguments(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    commands = {
        'simulate': do_simulate,
        'update-ratings': do_update_ratings,
        'preseason': do_preseason,
    }
    try:
        commands[args.command](args)
    except (NHLPredictorError, FileNotFoundError, ValueError) as e:
        print(f"❌ {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
