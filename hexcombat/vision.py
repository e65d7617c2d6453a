"""
Vision and awareness for the tactical map.

Handles:
- Per-combatant visible tiles (range, field-of-view angle, cover)
- Shared party fog of war (union of members' visible tiles)
- Line of sight predicate for the range rules
- Explored-tile memory with optional decay
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional

from .config import CombatConfig
from .hex_math import AxialCoord, bearing, coord, hex_distance, hex_line
from .map import HexGrid
from .state import CombatState

logger = logging.getLogger(__name__)

Obstacles = dict[AxialCoord, float]


class TileVisibility(Enum):
    VISIBLE = "visible"
    EXPLORED = "explored"  # seen before, not currently in sight
    UNEXPLORED = "unexplored"


def _normalize_obstacles(obstacles, block_value: float) -> Obstacles:
    """Accept a mapping coord -> cover, or an iterable of fully blocking coords."""
    if not obstacles:
        return {}
    if isinstance(obstacles, dict):
        return {coord(k): float(v) for k, v in obstacles.items()}
    return {coord(c): block_value for c in obstacles}


def _angle_between(a: float, b: float) -> float:
    diff = abs(a - b) % 360
    return min(diff, 360 - diff)


class VisionSystem:
    """Visibility calculations over one hex grid."""

    def __init__(self, grid: Optional[HexGrid] = None, config: Optional[CombatConfig] = None):
        self.grid = grid if grid is not None else HexGrid(terrain_info={})
        self.config = config or CombatConfig()

    @property
    def block_threshold(self) -> float:
        return self.config.vision.cover_block_threshold

    def _height_at(self, position) -> int:
        tile = self.grid.get_tile(position)
        return tile.height if tile else 0

    def sight_cover(
        self,
        origin,
        target,
        obstacles=None,
        observer_height: Optional[int] = None,
    ) -> float:
        """
        Cover accumulated along the line from origin to target.

        Tiles between the two ends contribute terrain, feature and obstacle
        cover. An observer standing higher than an intervening tile sees
        over its terrain and features, so cover is not symmetric. Obstacle
        cover always counts.
        """
        origin, target = coord(origin), coord(target)
        blockers = _normalize_obstacles(obstacles, self.block_threshold)
        eye = self._height_at(origin) if observer_height is None else observer_height

        total = 0.0
        for c in hex_line(origin, target)[1:-1]:  # Exclude start and end
            tile = self.grid.get_tile(c)
            cover = blockers.get(c, 0.0)
            # Higher observer sees over lower terrain, not over obstacles
            if tile is not None and eye <= tile.height:
                cover += self.grid.get_cover(tile)
            total += cover
            if total >= self.block_threshold:
                break
        return total

    def can_see(
        self,
        origin,
        target,
        radius: Optional[int] = None,
        obstacles=None,
        observer_height: Optional[int] = None,
    ) -> bool:
        """Whether target is within radius and not blocked by accumulated cover."""
        if radius is not None and hex_distance(origin, target) > radius:
            return False
        return self.sight_cover(origin, target, obstacles, observer_height) < self.block_threshold

    def get_visible_tiles(
        self,
        origin,
        radius: Optional[int] = None,
        fov_angle: Optional[float] = None,
        facing: float = 0.0,
        obstacles=None,
        observer_height: Optional[int] = None,
        tiles: Optional[Iterable[AxialCoord]] = None,
    ) -> set[AxialCoord]:
        """
        Tiles visible from origin.

        Ray-samples every candidate tile within radius (all grid tiles by
        default) that also falls inside the field-of-view cone centred on
        facing (degrees). The observer's own tile is always visible.
        """
        origin = coord(origin)
        radius = self.config.vision.radius if radius is None else radius
        fov_angle = self.config.vision.fov_angle if fov_angle is None else fov_angle
        blockers = _normalize_obstacles(obstacles, self.block_threshold)

        candidates = tiles if tiles is not None else self.grid.tiles.keys()
        visible = {origin}
        for c in candidates:
            c = coord(c)
            if c == origin or hex_distance(origin, c) > radius:
                continue
            if fov_angle < 360 and _angle_between(bearing(origin, c), facing) > fov_angle / 2:
                continue
            if self.sight_cover(origin, c, blockers, observer_height) < self.block_threshold:
                visible.add(c)
        return visible

    # Combatant and party queries
    def _for_state(self, state: CombatState) -> "VisionSystem":
        """This system, or one bound to the state's grid when they differ."""
        if state.grid is self.grid:
            return self
        return VisionSystem(state.grid, self.config)

    def vision_radius(self, state: CombatState, combatant_id: str) -> int:
        fighter = state.get(combatant_id)
        if fighter and fighter.attributes.vision_range is not None:
            return fighter.attributes.vision_range
        return self.config.vision.radius

    def visible_tiles_for(self, state: CombatState, combatant_id: str, obstacles=None) -> set[AxialCoord]:
        """Visible tiles of one combatant from its current position."""
        fighter = state.get(combatant_id)
        position = state.positions.get(combatant_id)
        if fighter is None or position is None or not fighter.is_alive():
            return set()
        return self._for_state(state).get_visible_tiles(
            position,
            radius=self.vision_radius(state, combatant_id),
            facing=fighter.facing,
            obstacles=obstacles,
        )

    def party_visible_tiles(self, state: CombatState, alignment: str, obstacles=None) -> set[AxialCoord]:
        """Shared fog of war: union of every living member's visible tiles."""
        visible: set[AxialCoord] = set()
        for fighter in state.ordered_combatants():
            if fighter.alignment == alignment:
                visible |= self.visible_tiles_for(state, fighter.id, obstacles)
        return visible

    def visible_enemies(self, state: CombatState, alignment: str, obstacles=None) -> list[str]:
        """Living enemies of alignment standing on a tile the party can see."""
        visible = self.party_visible_tiles(state, alignment, obstacles)
        return [
            fighter.id for fighter in state.ordered_combatants()
            if fighter.alignment != alignment
            and fighter.is_alive()
            and state.positions.get(fighter.id) in visible
        ]

    def line_of_sight_resolver(self, obstacles=None):
        """Predicate (state, from_id, to_id) -> bool for CombatRules."""
        def resolve(state: CombatState, from_id: str, to_id: str) -> bool:
            origin = state.positions.get(from_id)
            target = state.positions.get(to_id)
            if origin is None or target is None:
                return False
            return self._for_state(state).can_see(
                origin, target,
                radius=self.vision_radius(state, from_id),
                obstacles=obstacles,
            )
        return resolve


@dataclass
class FogMemory:
    """Explored tiles and last known enemy positions for one party."""
    alignment: str
    decay_rounds: int = 0  # 0 never forgets
    explored: dict[AxialCoord, int] = field(default_factory=dict)  # coord -> last round seen
    visible: set[AxialCoord] = field(default_factory=set)
    last_seen: dict[str, tuple[AxialCoord, int]] = field(default_factory=dict)

    def update(self, vision: VisionSystem, state: CombatState, obstacles=None):
        """Refresh memory from the party's current view."""
        current_round = state.round
        self.visible = vision.party_visible_tiles(state, self.alignment, obstacles)
        for c in self.visible:
            self.explored[c] = current_round

        for enemy_id in vision.visible_enemies(state, self.alignment, obstacles):
            self.last_seen[enemy_id] = (state.positions[enemy_id], current_round)

        self.decay(current_round)

    def decay(self, current_round: int):
        """Forget tiles and sightings older than decay_rounds."""
        if self.decay_rounds <= 0:
            return
        stale = [
            c for c, seen in self.explored.items()
            if c not in self.visible and current_round - seen > self.decay_rounds
        ]
        for c in stale:
            del self.explored[c]
        for enemy_id in [e for e, (_, seen) in self.last_seen.items() if current_round - seen > self.decay_rounds]:
            del self.last_seen[enemy_id]

    def tile_state(self, position) -> TileVisibility:
        position = coord(position)
        if position in self.visible:
            return TileVisibility.VISIBLE
        if position in self.explored:
            return TileVisibility.EXPLORED
        return TileVisibility.UNEXPLORED

    def get_summary(self) -> dict:
        return {
            "alignment": self.alignment,
            "visible": len(self.visible),
            "explored": len(self.explored),
            "enemies_tracked": len(self.last_seen),
        }
