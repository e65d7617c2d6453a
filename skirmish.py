"""
Skirmish runner for hex-grid encounters.

Loads an encounter YAML, runs it through the turn controller and prints
the combat log. Computer-controlled combatants act on their own; with
--auto every combatant is computer controlled, otherwise party members
are commanded from the prompt.
"""

import os
import logging
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

load_dotenv(Path(__file__).parent / ".env")

from hexcombat import (
    CombatAction, DiceCombatEngine, LogEntry, Selection, TurnController,
    VisionSystem, load_config, load_encounter,
)
from hexcombat.errors import HexCombatError

logging.basicConfig(level=os.getenv("HEXCOMBAT_LOG_LEVEL", "WARNING").upper())
logger = logging.getLogger(__name__)

PROMPT_HELP = "Commands: move Q R | attack ID | cast SPELL [ID | Q R] | defend | pass | cancel | map | quit"

LOG_PREFIXES = {
    "round": "==",
    "turn": "->",
    "combat": "  *",
    "ai": "  ~",
    "warn": "  !",
}


def print_entry(entry: LogEntry):
    print(f"{LOG_PREFIXES.get(entry.type, '  ')} {entry.msg}")


class Skirmish:
    """Runs one encounter from file to conclusion."""

    def __init__(
        self,
        encounter_path: str,
        data_path: Optional[str] = None,
        seed: Optional[int] = None,
        auto: bool = False,
    ):
        self.config = load_config(data_path)
        if seed is not None:
            self.config.seed = seed

        self.encounter = load_encounter(encounter_path, self.config.data_path)
        if auto:
            for fighter in self.encounter.fighters:
                fighter.ai_controlled = True

        self.vision = VisionSystem(self.encounter.grid, self.config)
        self.controller = TurnController(
            engine=DiceCombatEngine(self.config.seed),
            on_log=print_entry,
            config=self.config,
            vision=self.vision,
        )

    def run(self, max_rounds: int = 20) -> dict:
        """Play until one side is left standing or max_rounds pass."""
        print(f"\n{'=' * 60}\n  {self.encounter.name}\n{'=' * 60}")
        state = self.controller.start_encounter(
            self.encounter.fighters,
            grid=self.encounter.grid,
            positions=self.encounter.positions,
            terrain=self.encounter.terrain,
        )

        while not self.controller.is_concluded() and state.round <= max_rounds:
            active = state.active_combatant
            if active is None:
                break
            if active.ai_controlled:
                state = self.controller.advance_ai()
                continue
            if not self.prompt(active.id):
                break
            state = self.controller.snapshot()

        return self.summary()

    def prompt(self, actor_id: str) -> bool:
        """Read and apply one command for a player combatant. False to quit."""
        try:
            line = input(f"[{actor_id}] > ").strip()
        except EOFError:
            return False
        if not line:
            return True

        verb, *args = line.split()
        payload = {"actor_id": actor_id}
        controller = self.controller

        if verb in ("quit", "exit"):
            return False
        if verb == "map":
            self.print_positions()
        elif verb == "move" and len(args) == 2:
            controller.handle_action(CombatAction.MOVE, payload)
            controller.handle_select(Selection.tile(int(args[0]), int(args[1])))
        elif verb == "attack" and len(args) == 1:
            controller.handle_action(CombatAction.ATTACK, payload)
            controller.handle_select(Selection.character(args[0]))
        elif verb == "cast" and args:
            controller.handle_action(CombatAction.CAST, {**payload, "spell": args[0]})
            if len(args) == 2:
                controller.handle_select(Selection.character(args[1]))
            elif len(args) == 3:
                controller.handle_select(Selection.tile(int(args[1]), int(args[2])))
        elif verb in ("defend", "pass", "cancel"):
            controller.handle_action(verb, payload)
        else:
            print(PROMPT_HELP)
        return True

    def print_positions(self):
        state = self.controller.snapshot()
        for fighter in state.ordered_combatants():
            pos = state.positions.get(fighter.id)
            hp = fighter.hp
            hp_text = f"{hp.current}/{hp.maximum}" if hp else "-"
            where = f"({pos.q}, {pos.r})" if pos else "off map"
            print(f"  {fighter.id:<12} {fighter.alignment:<8} hp {hp_text:<7} {where}")

    def summary(self) -> dict:
        state = self.controller.snapshot()
        standing = {}
        for fighter in state.combatants_by_id.values():
            if self.controller.engine.can_act(fighter):
                standing.setdefault(fighter.alignment, []).append(fighter.name)
        return {
            "rounds": state.round,
            "concluded": self.controller.is_concluded(),
            "standing": standing,
        }


def main():
    """Run a skirmish from the command line."""
    import argparse

    parser = argparse.ArgumentParser(description="Hex-grid tactical skirmish")
    parser.add_argument("encounter", nargs="?", default="data/encounters/goblin_ambush.yaml", help="Encounter YAML file")
    parser.add_argument("--data", default=None, help="Data directory path (default: HEXCOMBAT_DATA_PATH or data)")
    parser.add_argument("--seed", type=int, default=None, help="Dice seed")
    parser.add_argument("--rounds", type=int, default=20, help="Maximum rounds")
    parser.add_argument("--auto", action="store_true", help="Let the AI control every combatant")

    args = parser.parse_args()

    try:
        skirmish = Skirmish(args.encounter, data_path=args.data, seed=args.seed, auto=args.auto)
    except HexCombatError as e:
        logger.error(f"Cannot start skirmish: {e}")
        raise SystemExit(1)

    results = skirmish.run(max_rounds=args.rounds)

    print("\n" + "=" * 60)
    print("FINAL RESULTS")
    print("=" * 60)
    print(f"Rounds played: {results['rounds']}")
    for alignment, names in results["standing"].items():
        print(f"Standing ({alignment}): {', '.join(names)}")
    if not results["concluded"]:
        print("No side was defeated")


if __name__ == "__main__":
    main()
