"""
Vale Core - Tower Simulation Entry Point

Runs an automated Battle Tower run over a content set: the scripted enemy
policy fights a party driven by BasicPlayerPolicy, floor by floor, until the
run is cleared or the party falls.
"""

import argparse
import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from vale_core.content.balance import format_balance_warnings, validate_content_balance
from vale_core.content.repository import DEFAULT_DATA_DIR, ContentRepository
from vale_core.data_models import (
    MAX_LEVEL,
    MAX_PARTY_SIZE,
    MIN_LEVEL,
    MIN_PARTY_SIZE,
    ProgressionCurve,
    TowerDifficulty,
)
from vale_core.observability.run_log import EventType, reset_run_log
from vale_core.persistence.save import create_save, write_save
from vale_core.team.team import create_team
from vale_core.tower.session import BasicPlayerPolicy, TowerSession
from vale_core.units.unit import create_unit


def setup_logging(verbose: bool = False) -> None:
    """Configure logging based on verbosity level."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


logger = logging.getLogger(__name__)


# =============================================================================
# CONFIGURATION
# =============================================================================

@dataclass
class SimulationConfig:
    """Configuration for one simulated tower run."""

    data_dir: Path = field(default_factory=lambda: DEFAULT_DATA_DIR)
    seed: int = 42
    difficulty: str = "normal"
    floors: Optional[int] = None  # None plays every floor in the content
    curve: str = "stepped"
    party: list[str] = field(default_factory=lambda: ["adept", "war-mage", "mystic"])
    level: int = 1
    use_djinn: bool = False

    # Output
    save_path: Optional[Path] = None
    run_log_path: Optional[Path] = None
    show_log: bool = False

    # Runtime options
    verbose: bool = False

    def __post_init__(self):
        """Ensure paths are Path objects."""
        if isinstance(self.data_dir, str):
            self.data_dir = Path(self.data_dir)
        if isinstance(self.save_path, str):
            self.save_path = Path(self.save_path)
        if isinstance(self.run_log_path, str):
            self.run_log_path = Path(self.run_log_path)


# =============================================================================
# SIMULATION
# =============================================================================

def run_simulation(config: SimulationConfig) -> int:
    """
    Load content, build the party and play the tower.

    Returns:
        Process exit code (1 when the floor count, level or party size is out of range,
        the content fails validation or the party names an unknown unit)
    """
    if config.floors is not None and config.floors < 1:
        print(f"Floor count must be at least 1, got: {config.floors}")
        return 1
    if not MIN_LEVEL <= config.level <= MAX_LEVEL:
        print(f"Level must be between {MIN_LEVEL} and {MAX_LEVEL}, got: {config.level}")
        return 1
    if not MIN_PARTY_SIZE <= len(config.party) <= MAX_PARTY_SIZE:
        print(f"Party must have {MIN_PARTY_SIZE}-{MAX_PARTY_SIZE} units, got: {len(config.party)}")
        return 1

    result = ContentRepository.load_from_directory(config.data_dir)
    if not result.success:
        print(f"Content validation failed for {config.data_dir}:")
        print(result.format_errors())
        return 1
    repository = result.value

    balance_warnings = validate_content_balance(repository)
    if balance_warnings:
        logger.warning(f"Content balance warnings:\n{format_balance_warnings(balance_warnings)}")

    unknown = [uid for uid in config.party if uid not in repository.units]
    if unknown:
        print(f"Unknown party member(s): {', '.join(unknown)}")
        return 1

    run_log = reset_run_log()
    run_log.set_seed(config.seed)

    units = [create_unit(repository.get_unit_definition(uid), level=config.level) for uid in config.party]
    team = create_team(units)

    floors = repository.get_tower_floors()
    if config.floors is not None:
        floors = floors[: config.floors]

    session = TowerSession(
        repository,
        team,
        seed=config.seed,
        difficulty=config.difficulty,
        curve=config.curve,
        floors=floors,
        player_policy=BasicPlayerPolicy(use_djinn=config.use_djinn),
    )
    session.run_to_completion()
    print_summary(session)

    if config.save_path:
        write_save(config.save_path, create_save(session.team, session.run, session.record))
        print(f"\nSave written to {config.save_path}")
    if config.run_log_path:
        run_log.save(str(config.run_log_path))
        print(f"Run log written to {config.run_log_path}")
    if config.show_log:
        print()
        print(run_log.format_log(event_types=[EventType.TOWER, EventType.ROUND]))
    return 0


def print_summary(session: TowerSession) -> None:
    run = session.run
    print("\n" + "=" * 60)
    print(f"TOWER RUN - seed {run.seed}, {run.difficulty.value}")
    print("=" * 60)
    for floor in session.results:
        line = f"  Floor {floor.floor_number:>3} [{floor.floor_type:<6}] {floor.outcome.value}"
        if floor.rounds:
            line += f" in {floor.rounds} round(s)"
        for level_up in floor.level_ups:
            line += f", {level_up.unit_id} -> Lv{level_up.new_level}"
        print(line)

    stats = run.stats
    print("-" * 60)
    print(f"Result:          {'FAILED' if run.is_failed else 'CLEARED' if run.is_completed else 'IN PROGRESS'}")
    print(f"Highest floor:   {stats.highest_floor}")
    print(f"Battles:         {stats.total_battles} ({stats.victories} won, {stats.defeats} lost)")
    print(f"Turns taken:     {stats.turns_taken}")
    print(f"Damage dealt:    {stats.total_damage_dealt}")
    print(f"Damage taken:    {stats.total_damage_taken}")
    print(f"Gold:            {session.gold}")
    if session.inventory:
        print(f"Inventory:       {', '.join(session.inventory)}")
    print("Party:")
    for unit in session.team.units:
        print(f"  {unit.name:<12} Lv{unit.level:<3} HP {unit.current_hp}")


# =============================================================================
# CLI
# =============================================================================

def parse_arguments(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Vale Core - automated Battle Tower simulation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m vale_core.main                              # Full tower, seed 42
  python -m vale_core.main --seed 7 --difficulty hard   # Hard run with another seed
  python -m vale_core.main --floors 5 --party adept     # First five floors, one unit
  python -m vale_core.main --save run.json --run-log log.json
        """
    )

    parser.add_argument(
        "--data-dir",
        type=Path,
        default=DEFAULT_DATA_DIR,
        help="Directory of content JSON tables (default: packaged content)",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=42,
        help="Run seed (default: 42)",
    )
    parser.add_argument(
        "--difficulty",
        type=str,
        default="normal",
        choices=[d.value for d in TowerDifficulty],
        help="Tower difficulty (default: normal)",
    )
    parser.add_argument(
        "--floors",
        type=int,
        help="Play only the first N floors",
    )
    parser.add_argument(
        "--curve",
        type=str,
        default="stepped",
        choices=[c.value for c in ProgressionCurve],
        help="Level normalization curve (default: stepped)",
    )
    parser.add_argument(
        "--party",
        type=str,
        default="adept,war-mage,mystic",
        help="Comma-separated unit ids (default: adept,war-mage,mystic)",
    )
    parser.add_argument(
        "--level",
        type=int,
        default=1,
        help="Starting level of the party (default: 1)",
    )
    parser.add_argument(
        "--use-djinn",
        action="store_true",
        help="Release and summon equipped Djinn during battles",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )

    output_group = parser.add_argument_group("Output Options")
    output_group.add_argument(
        "--save",
        type=Path,
        help="Write a save file after the run",
    )
    output_group.add_argument(
        "--run-log",
        type=Path,
        help="Write the run log (RNG draws, transitions, rounds) as JSON",
    )
    output_group.add_argument(
        "--show-log",
        action="store_true",
        help="Print the tower and round events of the run log after the summary",
    )

    return parser.parse_args(argv)


def create_config_from_args(args: argparse.Namespace) -> SimulationConfig:
    """Create SimulationConfig from parsed arguments."""
    return SimulationConfig(
        data_dir=args.data_dir,
        seed=args.seed,
        difficulty=args.difficulty,
        floors=args.floors,
        curve=args.curve,
        party=[p.strip() for p in args.party.split(",") if p.strip()],
        level=args.level,
        use_djinn=args.use_djinn,
        save_path=args.save,
        run_log_path=args.run_log,
        show_log=args.show_log,
        verbose=args.verbose,
    )


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point for CLI usage."""
    args = parse_arguments(argv)
    setup_logging(args.verbose)
    config = create_config_from_args(args)
    logger.debug(f"Simulation config: {config}")
    return run_simulation(config)


if __name__ == "__main__":
    sys.exit(main())
