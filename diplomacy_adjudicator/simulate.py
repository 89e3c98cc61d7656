#!/usr/bin/env python3
"""
Adjudicate Diplomacy games from YAML order files.

A game folder holds a game_info.yaml:

    name: Tutorial
    description: First two years
    initial_state: start.yaml      # optional, standard 1901 start otherwise
    start_phase: Fall 1903         # optional, with initial_state
    rules:
      max_year: 1910
    order_files:
      - spring_1901.yaml
      - fall_1901.yaml
      - winter_1901.yaml
"""

import argparse
import logging
import os
import sys
from datetime import datetime
from typing import Dict, List, Optional

import yaml

from diplomacy_adjudicator.core.errors import OrderValidationError
from diplomacy_adjudicator.core.game import Game
from diplomacy_adjudicator.core.map import Power, create_standard_map
from diplomacy_adjudicator.core.phase import Phase, PhaseType
from diplomacy_adjudicator.core.results import ResultType
from diplomacy_adjudicator.core.rules import RuleOptions
from diplomacy_adjudicator.core.turn import TurnState
from diplomacy_adjudicator.io.yaml_orders import YAMLOrderLoader, load_position

logger = logging.getLogger(__name__)


class GameSimulator:
    """Runs a game from YAML order files."""

    def __init__(self, game_folder: str):
        self.game_folder = game_folder
        self.game_info: Dict = {}
        self.game: Optional[Game] = None
        self.phase_results: List[Dict] = []

    def load_game_info(self) -> None:
        """Load game_info.yaml from game folder."""
        info_path = os.path.join(self.game_folder, 'game_info.yaml')
        if not os.path.exists(info_path):
            raise FileNotFoundError(f"game_info.yaml not found in {self.game_folder}")

        with open(info_path, 'r') as f:
            self.game_info = yaml.safe_load(f) or {}

        print(f"Loaded game: {self.game_info.get('name', 'Unnamed Game')}")
        print(f"   Description: {self.game_info.get('description', 'No description')}")

    def initialize_game(self) -> None:
        """Create the game from the initial state file, or the standard start."""
        rules = RuleOptions.from_dict(self.game_info.get('rules'))
        phase = Phase.parse(self.game_info['start_phase']) if self.game_info.get('start_phase') else None
        position = None

        initial_state_path = self.game_info.get('initial_state')
        if initial_state_path:
            full_path = os.path.join(self.game_folder, initial_state_path)
            if os.path.exists(full_path):
                position = load_position(full_path, create_standard_map())
                print(f"Loaded initial state from {initial_state_path}")
            else:
                logger.warning(f"Initial state file not found: {full_path}, starting fresh game")

        self.game = Game(position=position, phase=phase, rules=rules)
        print(f"Started game at {self.game.get_current_phase()}")

    def _skip_to(self, target: Phase) -> None:
        """Adjudicate phases with no orders until the target phase is open."""
        while not self.game.is_over and self.game.get_current_phase() != target:
            current = self.game.get_current_phase()
            if current.sort_key > target.sort_key:
                raise ValueError(f"Order file for {target} comes after {current}")
            logger.info(f"No orders for {current}, adjudicating with defaults")
            self._record(self.game.process_phase())

    def _orders_for(self, loader: YAMLOrderLoader, yaml_data: Dict, phase_type: PhaseType):
        if phase_type == PhaseType.MOVEMENT:
            return loader.parse_orders(yaml_data)
        if phase_type == PhaseType.RETREAT:
            return loader.parse_retreats(yaml_data)
        return loader.parse_adjustments(yaml_data)

    def simulate_phase(self, order_file: str) -> None:
        """Adjudicate the phase of one YAML order file, plus its retreats."""
        print(f"\n{'=' * 60}")
        print(f"Processing: {order_file}")
        print(f"{'=' * 60}")

        full_path = os.path.join(self.game_folder, order_file)
        with open(full_path, 'r') as f:
            yaml_data = yaml.safe_load(f) or {}

        target = Phase.parse(yaml_data.get('phase', str(self.game.get_current_phase())))
        self._skip_to(target)
        if self.game.is_over:
            print("  Game already ended, ignoring file")
            return

        self._submit_and_process(yaml_data)

        # Retreats for this movement phase live in the same file
        current = None if self.game.is_over else self.game.get_current_phase()
        if current is not None and current.phase_type == PhaseType.RETREAT:
            self._submit_and_process(yaml_data)

    def _submit_and_process(self, yaml_data: Dict) -> None:
        turn = self.game.get_current_turn()
        loader = YAMLOrderLoader(turn.position)
        orders = self._orders_for(loader, yaml_data, turn.phase.phase_type)

        if loader.get_corrections():
            print(f"  Auto-corrections made: {len(loader.get_corrections())}")
            for correction in loader.get_corrections():
                print(f"     - {correction}")

        for power, power_orders in sorted(orders.items(), key=lambda item: item[0].value):
            try:
                self.game.submit_orders(power, power_orders)
            except OrderValidationError as e:
                logger.warning(f"Orders for {power.value} rejected, submitting none: {e}")
                print(f"  Orders for {power.value} rejected: {e}")

        resolved = self.game.process_phase()
        self._record(resolved)

    def _record(self, resolved: TurnState) -> None:
        results = resolved.results
        counts = {}
        for result in results.order_results():
            counts[result.result_type] = counts.get(result.result_type, 0) + 1

        print(f"  {resolved.phase}:")
        print(f"     - Orders processed: {len(resolved.all_orders())}")
        print(f"     - Successful: {counts.get(ResultType.SUCCESS, 0)}")
        print(f"     - Bounces: {counts.get(ResultType.BOUNCED, 0)}")
        print(f"     - Dislodgements: {counts.get(ResultType.DISLODGED, 0)}")
        for result in results.general():
            print(f"     * {result}")
        for result in results.order_results():
            logger.debug(str(result))

        self.phase_results.append({
            'phase': str(resolved.phase),
            'orders_count': len(resolved.all_orders()),
            'dislodgements': counts.get(ResultType.DISLODGED, 0),
            'general': [str(r) for r in results.general()],
        })

    def generate_summary_report(self) -> str:
        """Write a markdown summary of the simulation into the game folder."""
        report_path = os.path.join(self.game_folder, 'SIMULATION_REPORT.md')
        last = self.game.get_last_resolved()

        with open(report_path, 'w') as f:
            f.write("# Game Simulation Report\n\n")
            f.write(f"**Game:** {self.game_info.get('name', 'Unnamed')}\n")
            f.write(f"**Description:** {self.game_info.get('description', 'No description')}\n")
            f.write(f"**Generated:** {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}\n\n")
            f.write("---\n\n")

            f.write("## Phases Adjudicated\n\n")
            for i, phase in enumerate(self.phase_results, 1):
                f.write(f"### {i}. {phase['phase']}\n\n")
                f.write(f"- Orders processed: {phase['orders_count']}\n")
                f.write(f"- Dislodgements: {phase['dislodgements']}\n")
                for line in phase['general']:
                    f.write(f"- {line}\n")
                f.write("\n")

            f.write("---\n\n")
            f.write("## Final State\n\n")
            next_phase = "game over" if self.game.is_over else str(self.game.get_current_phase())
            f.write(f"- Next phase: {next_phase}\n\n")
            f.write("### Supply Center Count\n\n")
            for power in Power:
                f.write(f"- **{power.value}**: {self.game.get_supply_center_count(power)} SCs, "
                        f"{self.game.get_unit_count(power)} units\n")

            if last is not None and last.winner is not None:
                f.write("\n---\n\n")
                f.write("## GAME RESULT\n\n")
                f.write(f"**WINNER: {last.winner.value}**\n")

        print(f"\nSummary report saved to {report_path}")
        return report_path

    def run(self) -> None:
        """Run the complete game simulation."""
        self.load_game_info()
        self.initialize_game()

        order_files = self.game_info.get('order_files', [])
        if not order_files:
            logger.warning("No order files specified in game_info.yaml")
            return

        for order_file in order_files:
            self.simulate_phase(order_file)

        print(self.game.get_board_state_string())
        self.generate_summary_report()


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(description='Adjudicate a Diplomacy game from YAML order files')
    parser.add_argument('game_folder', help='folder containing game_info.yaml')
    parser.add_argument('--verbose', '-v', action='store_true',
                        help='log every decision and result')
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler(sys.stdout)]
    )

    if not os.path.exists(args.game_folder):
        print(f"Error: Game folder not found: {args.game_folder}")
        return 1

    simulator = GameSimulator(args.game_folder)
    simulator.run()
    return 0


if __name__ == "__main__":
    sys.exit(main())
