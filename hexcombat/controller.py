"""
Turn controller for hex-grid encounters.

Owns the CombatState and is the only code that mutates it. Commands come
in through handle_action / handle_select, are re-validated against the
movement and range rules, resolved by the combat-math engine and applied
to the combatant table here. Observers get a deep-copied snapshot after
every transition and each structured log entry as it is written.

Phases: IDLE <-> AWAITING_COMMAND -> CHOOSING_TARGET -> (RESOLVING) ->
AWAITING_COMMAND for the same or the next combatant.
"""

import copy
import logging
from typing import Any, Callable, Optional

from .ai import AgentConfig, AIDecision, CombatAgent, SimpleTacticalAgent
from .combat_math import CombatEffect, CombatMathEngine, DiceCombatEngine
from .config import CombatConfig
from .errors import IllegalCommand, IllegalTarget
from .hex_math import AxialCoord, coord, hex_distance
from .map import HexGrid
from .rules import CombatRules
from .state import (
    CombatAction,
    CombatPhase,
    CombatState,
    LogEntry,
    Selection,
    TargetMode,
    clear_pending_action,
    create_empty_combat_state,
    snapshot,
)
from .units import SPELL_TARGET_MODES, Combatant, Spell, combatant_from_dict
from .vision import VisionSystem

logger = logging.getLogger(__name__)

StateObserver = Callable[[CombatState], None]
LogObserver = Callable[[LogEntry], None]

# Log entry type -> level used when mirroring to the module logger
_LOG_LEVELS = {
    "warn": logging.WARNING,
    "ai": logging.DEBUG,
}


class TurnController:
    """Command/target state machine sequencing combatant turns."""

    def __init__(
        self,
        engine: Optional[CombatMathEngine] = None,
        on_state_change: Optional[StateObserver] = None,
        on_log: Optional[LogObserver] = None,
        rules: Optional[CombatRules] = None,
        agent: Optional[CombatAgent] = None,
        config: Optional[CombatConfig] = None,
        vision: Optional[VisionSystem] = None,
    ):
        self.config = config or CombatConfig()
        self.engine = engine or DiceCombatEngine(self.config.seed)
        self.vision = vision

        if rules is None:
            resolver = vision.line_of_sight_resolver() if vision else None
            rules = CombatRules(self.config, line_of_sight=resolver)
        self.rules = rules

        if agent is None:
            agent = SimpleTacticalAgent(
                AgentConfig(require_visibility=self.config.ai.require_visibility),
                vision=vision,
            )
        self.agent = agent

        # Observers for the presentation layer
        self.on_state_change = on_state_change
        self.on_log = on_log

        self._state = create_empty_combat_state()
        self._processing_ai = False

    # Observation
    def snapshot(self) -> CombatState:
        """Read-only copy of the current state."""
        return snapshot(self._state)

    def log(self, msg: str, type: str = "info") -> LogEntry:
        """Append a structured combat log entry and notify the log observer."""
        entry = LogEntry(msg=msg, type=type)
        self._state.log.append(entry)
        overflow = len(self._state.log) - self.config.log_limit
        if overflow > 0:
            del self._state.log[:overflow]

        logger.log(_LOG_LEVELS.get(type, logging.INFO), f"[{type}] {msg}")
        if self.on_log:
            self.on_log(entry)
        return entry

    def _emit(self):
        if self.on_state_change:
            self.on_state_change(self.snapshot())

    def is_concluded(self) -> bool:
        """True when fewer than two alignments still have someone able to act."""
        sides = {
            fighter.alignment
            for fighter in self._state.combatants_by_id.values()
            if self.engine.can_act(fighter)
        }
        return len(sides) < 2

    # Encounter setup
    def start_encounter(
        self,
        fighters: list[Combatant | dict],
        grid: HexGrid | list[dict] | None = None,
        positions: Optional[dict[str, Any]] = None,
        terrain: Any = None,
    ) -> CombatState:
        """
        Replace the current encounter with a new one.

        Fighters are copied into the controller's own table. The first
        combatant in initiative order with actions left becomes active; if
        it is AI controlled its turn runs before this call returns.
        """
        table: dict[str, Combatant] = {}
        for fighter in fighters or []:
            fighter = combatant_from_dict(fighter) if isinstance(fighter, dict) else copy.deepcopy(fighter)
            if fighter.id in table:
                logger.warning(f"Duplicate combatant id {fighter.id}, keeping the first")
                continue
            fighter.remaining_attacks = 0
            table[fighter.id] = fighter

        placed = {}
        for combatant_id, position in (positions or {}).items():
            if combatant_id not in table:
                logger.warning(f"Ignoring position for unknown combatant {combatant_id}")
                continue
            placed[combatant_id] = coord(position)

        self._state = CombatState(
            grid=self._normalize_grid(grid),
            positions=placed,
            combatants_by_id=table,
            terrain=terrain,
        )
        state = self._state
        state.initiative_order = self._initiative_order(terrain)

        self.log(f"Encounter started with {len(table)} combatants", "round")
        self._apply_allotments(self.engine.start_next_round(self.snapshot()))
        self._set_active(self._find_next(None))
        self._emit()

        self._maybe_run_ai()
        return self.snapshot()

    def _normalize_grid(self, grid) -> HexGrid:
        if grid is None:
            return HexGrid(terrain_info={})
        if isinstance(grid, HexGrid):
            return grid
        return HexGrid.from_records(list(grid), data_path=self.config.data_path)

    def _initiative_order(self, terrain: Any) -> list[str]:
        state = self._state
        fighters = list(state.combatants_by_id.values())
        order = self.engine.initialize_combat(
            copy.deepcopy(fighters), terrain=terrain, positions=dict(state.positions)
        )
        if sorted(order or []) != sorted(state.combatants_by_id):
            logger.warning("Engine initiative order is not a permutation of combatants, using reference order")
            order = CombatMathEngine.initialize_combat(self.engine, fighters)
        return list(order)

    # Commands
    def handle_action(self, action: CombatAction | str, payload: Optional[dict] = None) -> CombatState:
        """
        Declare an action for the active combatant.

        payload["actor_id"] must name the active combatant; anything else is
        logged and dropped. MOVE, ATTACK and CAST only become pending and wait
        for handle_select. CAST takes payload["spell"] (id, Spell or mapping).
        PASS accepts an optional payload["reason"].
        """
        payload = payload or {}
        try:
            action = self._check_command(action, payload)
        except IllegalCommand as e:
            self.log(str(e), "warn")
            return self.snapshot()

        state = self._state
        actor = state.active_combatant

        try:
            if action == CombatAction.MOVE:
                self._set_pending(action, TargetMode.TILE)
            elif action == CombatAction.ATTACK:
                self._set_pending(action, TargetMode.CHARACTER)
            elif action == CombatAction.CAST:
                self._declare_cast(actor, payload.get("spell", payload.get("spell_id")))
            elif action == CombatAction.DEFEND:
                clear_pending_action(state)
                self._resolve(self.snapshot(), lambda snap: self.engine.defend(snap, actor.id))
            elif action == CombatAction.PASS:
                clear_pending_action(state)
                reason = payload.get("reason") or f"{actor.name} passes"
                self.log(reason, "ai" if actor.ai_controlled else "info")
                self._consume_action()
            elif action == CombatAction.CANCEL:
                if state.pending_action is not None:
                    self.log(f"{actor.name} cancels {state.pending_action.value}")
                    clear_pending_action(state)
                    state.phase = CombatPhase.AWAITING_COMMAND
                    self._emit()
            else:
                self.log(f"{action.value} is not supported, ignoring")
        except IllegalCommand as e:
            self.log(str(e), "warn")
        except IllegalTarget as e:
            self.log(str(e), "warn")

        target = payload.get("target")
        if target is not None and state.pending_action == action:
            self._select(target)

        self._maybe_run_ai()
        return self.snapshot()

    def _check_command(self, action, payload: dict) -> CombatAction:
        state = self._state
        if state.active_combatant_id is None:
            raise IllegalCommand(f"Ignoring {action}: no combatant is active")

        actor_id = payload.get("actor_id")
        if actor_id != state.active_combatant_id:
            raise IllegalCommand(
                f"Ignoring command from {actor_id}: it is {state.active_combatant_id}'s turn"
            )

        if isinstance(action, CombatAction):
            return action
        try:
            return CombatAction(str(action).lower().replace("_", "-"))
        except ValueError:
            raise IllegalCommand(f"Unknown action {action!r}") from None

    def _set_pending(self, action: CombatAction, mode: TargetMode, spell: Optional[Spell] = None):
        state = self._state
        state.pending_action = action
        state.target_mode = mode
        state.selected_spell = spell
        state.phase = CombatPhase.CHOOSING_TARGET
        self._emit()

    def _declare_cast(self, actor: Combatant, spell_ref):
        spell = self._lookup_spell(actor, spell_ref)
        if spell is None:
            raise IllegalCommand(f"{actor.name} has no spell {spell_ref!r}")
        if spell.target_mode not in SPELL_TARGET_MODES:
            raise IllegalCommand(f"{spell.name} has unknown target mode {spell.target_mode!r}")

        if spell.target_mode == "self":
            self._set_pending(CombatAction.CAST, TargetMode.SELF, spell)
            self._execute_cast(Selection.character(actor.id))
            return
        self._set_pending(CombatAction.CAST, TargetMode(spell.target_mode), spell)

    @staticmethod
    def _lookup_spell(actor: Combatant, spell_ref) -> Optional[Spell]:
        if isinstance(spell_ref, Spell):
            return spell_ref
        if isinstance(spell_ref, dict):
            spell_ref = spell_ref.get("id")
        if spell_ref is None:
            return None
        return actor.get_spell(str(spell_ref))

    def handle_select(self, selection: Selection | dict) -> CombatState:
        """
        Handle a tile or character selection.

        With a pending action the selection is its target. Without one it
        only updates selected_object; repeating the same selection changes
        nothing.
        """
        self._select(selection)
        self._maybe_run_ai()
        return self.snapshot()

    def _select(self, selection):
        state = self._state
        if isinstance(selection, dict):
            selection = Selection.from_dict(selection)
        if not isinstance(selection, Selection):
            logger.warning(f"Ignoring selection of type {type(selection).__name__}")
            return

        if state.pending_action is None:
            if state.selected_object != selection:
                state.selected_object = selection
                self._emit()
            return

        state.selected_object = selection
        try:
            if state.pending_action == CombatAction.MOVE:
                if not selection.is_tile:
                    raise IllegalTarget("Select a tile to move to")
                self._execute_move(selection.coord)
            elif state.pending_action == CombatAction.ATTACK:
                if not selection.is_character:
                    raise IllegalTarget("Select a combatant to attack")
                self._execute_attack(selection.id)
            elif state.pending_action == CombatAction.CAST:
                self._execute_cast(selection)
        except IllegalTarget as e:
            self.log(str(e), "warn")

    # Execution
    def _execute_move(self, destination: AxialCoord):
        state = self._state
        actor = state.active_combatant
        if state.positions.get(actor.id) == destination:
            raise IllegalTarget(f"{actor.name} is already at ({destination.q}, {destination.r})")
        blocker = state.get(state.occupant_at(destination, ignore_id=actor.id))
        if blocker is not None:
            raise IllegalTarget(f"({destination.q}, {destination.r}) is occupied by {blocker.name}")

        snap = self.snapshot()
        if not self.rules.can_reach_tile(snap, actor.id, destination):
            raise IllegalTarget(f"{actor.name} cannot reach ({destination.q}, {destination.r})")

        self._resolve(snap, lambda snap: self.engine.move(snap, actor.id, destination))

    def _execute_attack(self, target_id: str):
        state = self._state
        actor = state.active_combatant
        target = self._check_target(actor, target_id)

        snap = self.snapshot()
        if not self.rules.can_attack_target(snap, actor.id, target_id):
            raise IllegalTarget(f"{target.name} is out of range for {actor.name}")
        if not self.rules.has_line_of_sight(snap, actor.id, target_id):
            raise IllegalTarget(f"{actor.name} has no line of sight to {target.name}")

        self._resolve(snap, lambda snap: self.engine.strike(snap, actor.id, target_id))

    def _execute_cast(self, selection: Selection):
        state = self._state
        actor = state.active_combatant
        spell = state.selected_spell
        if spell is None:
            raise IllegalTarget("No spell selected")

        spell_range = spell.range_hex
        if spell_range is None:
            spell_range = self.rules.config.movement.default_attack_range_hex
        snap = self.snapshot()

        if spell.target_mode == "self":
            selection = Selection.character(actor.id)
        elif spell.target_mode == "character":
            if not selection.is_character:
                raise IllegalTarget(f"{spell.name} needs a combatant as target")
            target = self._check_target(actor, selection.id, allow_self=True)
            if not self.rules.can_attack_target(snap, actor.id, target.id, range_hex=spell_range):
                raise IllegalTarget(f"{target.name} is out of range of {spell.name}")
            if spell.requires_los and not self.rules.has_line_of_sight(snap, actor.id, target.id):
                raise IllegalTarget(f"{actor.name} has no line of sight to {target.name}")
        else:
            if selection.is_character:
                position = state.positions.get(selection.id)
                if position is None:
                    raise IllegalTarget(f"{selection.id} is not on the map")
                selection = Selection.tile(position.q, position.r)
            if not selection.is_tile:
                raise IllegalTarget(f"{spell.name} needs a tile as target")
            origin = state.positions.get(actor.id)
            if origin is None or hex_distance(origin, selection.coord) > spell_range:
                raise IllegalTarget(f"({selection.q}, {selection.r}) is out of range of {spell.name}")
            if len(state.grid) and selection.coord not in state.grid:
                raise IllegalTarget(f"({selection.q}, {selection.r}) is off the map")

        self._resolve(snap, lambda snap: self.engine.cast_spell(snap, actor.id, spell, selection))

    def _check_target(self, actor: Combatant, target_id: str, allow_self: bool = False) -> Combatant:
        target = self._state.get(target_id)
        if target is None:
            raise IllegalTarget(f"Unknown target {target_id}")
        if target.id == actor.id and not allow_self:
            raise IllegalTarget(f"{actor.name} cannot target itself")
        if not target.is_alive() and not allow_self:
            raise IllegalTarget(f"{target.name} is already down")
        return target

    def _resolve(self, snap: CombatState, hook: Callable[[CombatState], CombatEffect]):
        """Run an engine hook on the validated snapshot, apply its effect and consume the action."""
        state = self._state
        previous = state.phase
        state.phase = CombatPhase.RESOLVING
        try:
            effect = hook(snap)
            self._check_effect(effect)
        except Exception:
            state.phase = previous
            raise

        self._apply_effect(effect)
        self._consume_action()

    def _check_effect(self, effect: Optional[CombatEffect]):
        """Refuse an effect that would move its actor onto an occupied tile."""
        if effect is None or not effect.success or effect.destination is None:
            return
        destination = coord(effect.destination)
        blocker = self._state.get(self._state.occupant_at(destination, ignore_id=effect.actor_id))
        if blocker is not None:
            raise IllegalTarget(f"({destination.q}, {destination.r}) is occupied by {blocker.name}")

    def _apply_effect(self, effect: Optional[CombatEffect]):
        if effect is None:
            return
        state = self._state

        for combatant_id, deltas in effect.resource_deltas.items():
            fighter = state.get(combatant_id)
            if fighter is None:
                logger.warning(f"Effect targets unknown combatant {combatant_id}")
                continue
            for pool_name, delta in deltas.items():
                pool = fighter.pools.get(pool_name)
                if pool is None:
                    logger.debug(f"{fighter.name} has no {pool_name} pool, skipping delta {delta}")
                    continue
                pool.apply(delta)

        for combatant_id, conditions in effect.remove_conditions.items():
            fighter = state.get(combatant_id)
            if fighter:
                fighter.conditions -= conditions
        for combatant_id, conditions in effect.add_conditions.items():
            fighter = state.get(combatant_id)
            if fighter:
                fighter.conditions |= conditions

        if effect.success and effect.destination is not None:
            if effect.actor_id in state.combatants_by_id:
                state.positions[effect.actor_id] = coord(effect.destination)

        for msg in effect.messages:
            self.log(msg, "combat")

    # Turn advancement
    def _consume_action(self):
        state = self._state
        actor = state.active_combatant
        clear_pending_action(state)

        if actor is not None:
            actor.remaining_attacks = max(0, actor.remaining_attacks - 1)
            if actor.remaining_attacks > 0 and self.engine.can_act(actor):
                state.phase = CombatPhase.AWAITING_COMMAND
                self._emit()
                return

        next_id = self._find_next(state.active_combatant_id)
        if next_id is None:
            self._start_next_round()
            next_id = self._find_next(None)
        self._set_active(next_id)
        self._emit()

    def _start_next_round(self):
        state = self._state
        self._apply_effect(self.engine.end_round(self.snapshot()))
        self._apply_allotments(self.engine.start_next_round(self.snapshot()))
        state.round += 1
        self.log(f"Round {state.round} begins", "round")

    def _apply_allotments(self, allotments: dict[str, int]):
        for fighter in self._state.combatants_by_id.values():
            fighter.remaining_attacks = max(0, int(allotments.get(fighter.id, 0)))

    def _find_next(self, current_id: Optional[str]) -> Optional[str]:
        state = self._state
        candidate = self.engine.next_active(self.snapshot(), current_id)
        fighter = state.get(candidate)
        if candidate is not None and (fighter is None or fighter.remaining_attacks <= 0):
            logger.warning(f"Engine picked {candidate} who cannot act, using reference order")
            candidate = CombatMathEngine.next_active(self.engine, state, current_id)
        return candidate

    def _set_active(self, combatant_id: Optional[str]):
        state = self._state
        state.active_combatant_id = combatant_id
        clear_pending_action(state)
        if combatant_id is None:
            state.phase = CombatPhase.IDLE
            self.log("No combatant can act", "turn")
            return

        state.phase = CombatPhase.AWAITING_COMMAND
        fighter = state.get(combatant_id)
        self.log(f"{fighter.name}'s turn ({fighter.remaining_attacks} actions)", "turn")

    # AI
    def advance_ai(self) -> CombatState:
        """Resume AI turns that stopped at the per-event action cap."""
        self._maybe_run_ai()
        return self.snapshot()

    def _ai_active(self) -> bool:
        actor = self._state.active_combatant
        return actor is not None and actor.ai_controlled

    def _maybe_run_ai(self):
        """
        Run AI turns while the active combatant is computer controlled.

        Stops at the per-event cap, or once only one side is left standing
        after at least one AI action.
        """
        if self._processing_ai:
            return

        self._processing_ai = True
        try:
            limit = self.config.ai.max_actions_per_event
            taken = 0
            while self._ai_active():
                if taken >= limit:
                    self.log(f"AI stopped after {limit} actions, call advance_ai() to continue", "warn")
                    break
                if taken and self.is_concluded():
                    break
                self._run_ai_action()
                taken += 1
        finally:
            self._processing_ai = False

    def _run_ai_action(self):
        """Execute exactly one action for the active AI combatant."""
        state = self._state
        actor = state.active_combatant
        before = (actor.id, actor.remaining_attacks, state.round)

        decision = self.agent.decide(self.snapshot(), actor.id, self.rules)
        self._execute_decision(actor.id, decision)

        after = (state.active_combatant_id, actor.remaining_attacks, state.round)
        if after == before:
            # Decision did not go through; the action is still forfeited
            if state.pending_action is not None:
                self.handle_action(CombatAction.CANCEL, {"actor_id": actor.id})
            self.handle_action(
                CombatAction.PASS,
                {"actor_id": actor.id, "reason": f"{actor.name} cannot {decision.action.value}, passing"},
            )

    def _execute_decision(self, actor_id: str, decision: AIDecision):
        payload = {"actor_id": actor_id, "reason": decision.reason}
        if decision.action == CombatAction.MOVE and decision.destination is not None:
            self.log(decision.reason, "ai")
            self.handle_action(CombatAction.MOVE, payload)
            self.handle_select(Selection.tile(decision.destination.q, decision.destination.r))
        elif decision.action == CombatAction.ATTACK and decision.target_id is not None:
            self.log(decision.reason, "ai")
            self.handle_action(CombatAction.ATTACK, payload)
            self.handle_select(Selection.character(decision.target_id))
        else:
            self.handle_action(CombatAction.PASS, payload)
