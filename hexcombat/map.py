"""
Hex grid battle map.

Uses axial coordinates (q, r) with flat-top hexes. One hex is 5 ft
across by default. Terrain properties are loaded from
data/schema/terrain.yaml, with built-in defaults when the file is absent.
"""

import logging
import math
import random
import yaml
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, Optional
from pathlib import Path

from .hex_math import AxialCoord, coord, coords_in_radius, neighbors

logger = logging.getLogger(__name__)


class TerrainType(Enum):
    OPEN = "open"
    GRASS = "grass"
    FOREST = "forest"
    DENSE_FOREST = "dense_forest"
    HILL = "hill"
    ROCK = "rock"
    SAND = "sand"
    MARSH = "marsh"
    URBAN = "urban"
    WATER = "water"
    WALL = "wall"


@dataclass
class TerrainInfo:
    """Terrain type properties loaded from schema."""
    id: str
    name: str
    movement_cost: float
    cover: float  # contribution to blocked sight, per tile crossed
    passable: bool = True
    elevation_range: tuple[int, int] = (0, 1)
    color: str = "#888888"


# Cover granted by map features standing on a tile
FEATURE_COVER = {
    "tree_large": 2.0,
    "structure": 3.0,
    "boulder": 1.0,
    "rubble": 0.5,
}

# Features that make a tile impossible to enter
BLOCKING_FEATURES = {"structure", "boulder"}


@dataclass
class Tile:
    """Individual hex tile of a battle map."""
    q: int
    r: int
    height: int = 0
    terrain: TerrainType = TerrainType.OPEN
    features: list[str] = field(default_factory=list)

    @property
    def coord(self) -> AxialCoord:
        return AxialCoord(self.q, self.r)

    def to_dict(self) -> dict:
        return {
            "q": self.q,
            "r": self.r,
            "height": self.height,
            "terrain": self.terrain.value,
            "features": list(self.features),
        }


class HexGrid:
    """
    Battle map made of hex tiles.

    Tiles are generated once per encounter; the combat core only reads
    height and terrain.
    """

    def __init__(
        self,
        tiles: Optional[list[Tile]] = None,
        data_path: Path | str = "data",
        terrain_info: Optional[dict[str, TerrainInfo]] = None,
    ):
        self.data_path = Path(data_path)
        self.tiles: dict[AxialCoord, Tile] = {}

        if terrain_info is not None:
            self.terrain_info = dict(terrain_info)
        else:
            self.terrain_info = load_terrain_info(self.data_path)

        for tile in tiles or []:
            self.add_tile(tile)

    # Construction
    @classmethod
    def generate(
        cls,
        radius: int,
        terrain: TerrainType | str = TerrainType.OPEN,
        rng: Optional[random.Random] = None,
        elevation_variation: bool = False,
        base_height: int = 0,
        feature_density: float = 0.0,
        data_path: Path | str = "data",
        terrain_info: Optional[dict[str, TerrainInfo]] = None,
    ) -> "HexGrid":
        """Generate a hexagon-shaped map of the given radius."""
        terrain = TerrainType(terrain) if isinstance(terrain, str) else terrain
        rng = rng or random.Random()
        grid = cls(data_path=data_path, terrain_info=terrain_info)
        low, high = grid.get_terrain_info(terrain).elevation_range

        for c in coords_in_radius(AxialCoord(0, 0), radius):
            height = base_height
            if elevation_variation:
                height = rng.randint(low, high)

            features = []
            if feature_density > 0 and rng.random() < feature_density:
                feature = _feature_for_terrain(terrain, rng)
                if feature:
                    features.append(feature)

            grid.add_tile(Tile(q=c.q, r=c.r, height=height, terrain=terrain, features=features))

        logger.debug(f"Generated {terrain.value} grid radius={radius}: {len(grid)} tiles")
        return grid

    @classmethod
    def from_records(
        cls,
        records: list[dict],
        data_path: Path | str = "data",
        terrain_info: Optional[dict[str, TerrainInfo]] = None,
    ) -> "HexGrid":
        """Build a grid from plain tile mappings (q, r, height, terrain, features)."""
        grid = cls(data_path=data_path, terrain_info=terrain_info)
        for record in records:
            grid.add_tile(tile_from_record(record))
        return grid

    def add_tile(self, tile: Tile):
        self.tiles[tile.coord] = tile

    def set_terrain(self, position, terrain: TerrainType, features: Optional[list[str]] = None):
        """Replace the terrain of an existing tile (map setup only)."""
        tile = self.get_tile(position)
        if tile is None:
            raise KeyError(f"No tile at {position}")
        tile.terrain = terrain
        if features is not None:
            tile.features = list(features)

    # Hex operations
    def get_tile(self, position) -> Optional[Tile]:
        """Get tile at coordinates."""
        return self.tiles.get(coord(position))

    def __contains__(self, position) -> bool:
        return coord(position) in self.tiles

    def __len__(self) -> int:
        return len(self.tiles)

    def __iter__(self) -> Iterator[Tile]:
        return iter(self.tiles.values())

    def get_neighbors(self, position) -> list[Tile]:
        """Get all adjacent tiles that exist on the map."""
        result = []
        for c in neighbors(position):
            tile = self.tiles.get(c)
            if tile:
                result.append(tile)
        return result

    def get_tiles_in_radius(self, position, radius: int) -> list[Tile]:
        """Get all tiles within radius hexes of center."""
        return [self.tiles[c] for c in coords_in_radius(position, radius) if c in self.tiles]

    # Movement and cover
    def get_terrain_info(self, terrain: TerrainType) -> TerrainInfo:
        info = self.terrain_info.get(terrain.value)
        if info is None:
            return TerrainInfo(id=terrain.value, name=terrain.value.title(), movement_cost=1.0, cover=0.0)
        return info

    def is_passable(self, tile: Tile, ignore_water: bool = False) -> bool:
        """Whether a combatant may enter this tile."""
        if tile.terrain == TerrainType.WATER and ignore_water:
            return True
        if any(f in BLOCKING_FEATURES for f in tile.features):
            return False
        return self.get_terrain_info(tile.terrain).passable

    def get_movement_cost(self, tile: Tile, ignore_water: bool = False) -> float:
        """Cost of entering this tile, inf when impassable."""
        if not self.is_passable(tile, ignore_water):
            return float('inf')
        return self.get_terrain_info(tile.terrain).movement_cost

    def get_cover(self, tile: Tile) -> float:
        """Sight-blocking cover of a tile from terrain and features."""
        base = self.get_terrain_info(tile.terrain).cover
        return base + sum(FEATURE_COVER.get(f, 0.0) for f in tile.features)

    def find_path(self, start, end, ignore_water: bool = False, **kwargs) -> list[Tile]:
        """Find optimal path using A* (see pathfinding.find_path)."""
        from .pathfinding import find_path
        return find_path(start, end, self, ignore_water=ignore_water, **kwargs)

    # Utility
    def to_records(self) -> list[dict]:
        return [tile.to_dict() for tile in self.tiles.values()]

    def get_stats(self) -> dict:
        """Get map statistics."""
        terrain_counts = {}
        for tile in self.tiles.values():
            terrain = tile.terrain.value
            terrain_counts[terrain] = terrain_counts.get(terrain, 0) + 1

        heights = [t.height for t in self.tiles.values()] or [0]
        return {
            "total_tiles": len(self.tiles),
            "terrain_distribution": terrain_counts,
            "min_height": min(heights),
            "max_height": max(heights),
        }


def tile_from_record(record: dict) -> Tile:
    """Create a Tile from a mapping, accepting 'elevation' as an alias of 'height'."""
    terrain = record.get("terrain", TerrainType.OPEN.value)
    try:
        terrain = TerrainType(str(terrain).lower())
    except ValueError:
        logger.warning(f"Unknown terrain {terrain!r} at ({record.get('q')}, {record.get('r')}), using open")
        terrain = TerrainType.OPEN

    features = record.get("features")
    if features is None:
        feature = record.get("feature")
        features = [feature] if feature else []

    return Tile(
        q=int(record["q"]),
        r=int(record["r"]),
        height=int(record.get("height", record.get("elevation", 0)) or 0),
        terrain=terrain,
        features=[str(f).lower() for f in features],
    )


def _feature_for_terrain(terrain: TerrainType, rng: random.Random) -> Optional[str]:
    """Pick a random feature appropriate to the terrain."""
    chances = {
        TerrainType.DENSE_FOREST: ("tree_large", 0.9),
        TerrainType.FOREST: ("tree_large", 0.6),
        TerrainType.ROCK: ("boulder", 0.3),
        TerrainType.HILL: ("boulder", 0.15),
        TerrainType.URBAN: ("structure", 0.1),
        TerrainType.MARSH: ("rubble", 0.1),
    }
    entry = chances.get(terrain)
    if entry and rng.random() < entry[1]:
        return entry[0]
    return None


def default_terrain_info() -> dict[str, TerrainInfo]:
    """Create default terrain info if schema not found."""
    defaults = {
        # id: (movement_cost, cover, passable, elevation_range)
        "open": (1.0, 0.0, True, (0, 1)),
        "grass": (1.0, 0.0, True, (0, 1)),
        "forest": (1.5, 1.0, True, (0, 3)),
        "dense_forest": (2.0, 2.0, True, (1, 4)),
        "hill": (2.0, 0.0, True, (1, 5)),
        "rock": (3.0, 1.0, True, (1, 4)),
        "sand": (2.0, 0.0, True, (0, 1)),
        "marsh": (3.0, 0.0, True, (-1, 1)),
        "urban": (1.0, 1.0, True, (0, 2)),
        # Water is passable only to combatants that ignore it
        "water": (5.0, 0.0, False, (-1, 0)),
        "wall": (math.inf, math.inf, False, (0, 0)),
    }
    return {
        tid: TerrainInfo(
            id=tid, name=tid.replace("_", " ").title(),
            movement_cost=move, cover=cover, passable=passable,
            elevation_range=elev,
        )
        for tid, (move, cover, passable, elev) in defaults.items()
    }


def load_terrain_info(data_path: Path | str = "data") -> dict[str, TerrainInfo]:
    """Load terrain type definitions from data/schema/terrain.yaml."""
    info = default_terrain_info()
    schema_path = Path(data_path) / "schema" / "terrain.yaml"
    if not schema_path.exists():
        return info

    with open(schema_path) as f:
        schema = yaml.safe_load(f) or {}

    for terrain_id, values in schema.get("terrain_types", {}).items():
        base = info.get(terrain_id)
        elevation = values.get("elevation_range")
        info[terrain_id] = TerrainInfo(
            id=terrain_id,
            name=values.get("name", base.name if base else terrain_id.title()),
            movement_cost=float(values.get("movement_cost", base.movement_cost if base else 1.0)),
            cover=float(values.get("cover", base.cover if base else 0.0)),
            passable=bool(values.get("passable", base.passable if base else True)),
            elevation_range=tuple(elevation) if elevation else (base.elevation_range if base else (0, 1)),
            color=values.get("color", "#888888"),
        )

    return info
