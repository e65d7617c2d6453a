"""
A* pathfinding over a terrain-weighted hex grid.

Used for movement preview and for path-cost reachability checks.
"""

import heapq
from itertools import count
from typing import Optional

from .hex_math import AxialCoord, hex_distance
from .map import HexGrid, Tile

DEFAULT_ELEVATION_PENALTY = 0.5


def step_cost(
    grid: HexGrid,
    current: Tile,
    neighbor: Tile,
    ignore_water: bool = False,
    elevation_penalty: float = DEFAULT_ELEVATION_PENALTY,
) -> float:
    """Cost of stepping from current into neighbor (inf when impassable)."""
    move_cost = grid.get_movement_cost(neighbor, ignore_water)
    if move_cost == float('inf'):
        return move_cost
    return move_cost + abs(neighbor.height - current.height) * elevation_penalty


def find_path(
    start,
    end,
    grid: HexGrid,
    ignore_water: bool = False,
    elevation_penalty: Optional[float] = None,
    max_cost: float = float('inf'),
    blocked: Optional[set[AxialCoord]] = None,
) -> list[Tile]:
    """
    Find the cheapest path from start to end, both tiles included.

    Returns an empty list when either end is off the map or no route
    exists. Ties on f-score resolve by insertion order so results are
    deterministic.
    """
    if start is None or end is None or grid is None:
        return []

    start_tile = grid.get_tile(start)
    end_tile = grid.get_tile(end)
    if not start_tile or not end_tile:
        return []

    if elevation_penalty is None:
        elevation_penalty = DEFAULT_ELEVATION_PENALTY
    blocked = blocked or set()

    start_pos, end_pos = start_tile.coord, end_tile.coord
    if start_pos == end_pos:
        return [start_tile]

    tie = count()
    open_set = [(hex_distance(start_pos, end_pos), next(tie), start_pos)]
    came_from: dict[AxialCoord, AxialCoord] = {}
    g_score = {start_pos: 0.0}
    closed: set[AxialCoord] = set()

    while open_set:
        _, _, current = heapq.heappop(open_set)

        if current == end_pos:
            # Reconstruct path
            path = [grid.tiles[current]]
            while current in came_from:
                current = came_from[current]
                path.append(grid.tiles[current])
            return list(reversed(path))

        if current in closed:
            continue
        closed.add(current)

        current_tile = grid.tiles[current]
        for neighbor in grid.get_neighbors(current):
            neighbor_pos = neighbor.coord
            if neighbor_pos in closed or (neighbor_pos in blocked and neighbor_pos != end_pos):
                continue

            cost = step_cost(grid, current_tile, neighbor, ignore_water, elevation_penalty)

            # Impassable
            if cost == float('inf'):
                continue

            tentative_g = g_score[current] + cost

            if tentative_g > max_cost:
                continue

            if neighbor_pos not in g_score or tentative_g < g_score[neighbor_pos]:
                came_from[neighbor_pos] = current
                g_score[neighbor_pos] = tentative_g
                f_score = tentative_g + hex_distance(neighbor_pos, end_pos)
                heapq.heappush(open_set, (f_score, next(tie), neighbor_pos))

    return []  # No path found


def path_cost(
    path: list[Tile],
    grid: HexGrid,
    ignore_water: bool = False,
    elevation_penalty: float = DEFAULT_ELEVATION_PENALTY,
) -> float:
    """Total step cost of a path returned by find_path (inf for an empty path)."""
    if not path:
        return float('inf')
    total = 0.0
    for current, nxt in zip(path, path[1:]):
        total += step_cost(grid, current, nxt, ignore_water, elevation_penalty)
    return total


def reachable_tiles(
    start,
    grid: HexGrid,
    budget: float,
    ignore_water: bool = False,
    elevation_penalty: float = DEFAULT_ELEVATION_PENALTY,
    blocked: Optional[set[AxialCoord]] = None,
) -> dict[AxialCoord, float]:
    """Uniform-cost flood fill: every tile reachable within budget and its cost."""
    start_tile = grid.get_tile(start)
    if not start_tile:
        return {}
    blocked = blocked or set()

    tie = count()
    costs = {start_tile.coord: 0.0}
    frontier = [(0.0, next(tie), start_tile.coord)]
    while frontier:
        spent, _, current = heapq.heappop(frontier)
        if spent > costs.get(current, float('inf')):
            continue
        current_tile = grid.tiles[current]
        for neighbor in grid.get_neighbors(current):
            if neighbor.coord in blocked:
                continue
            cost = spent + step_cost(grid, current_tile, neighbor, ignore_water, elevation_penalty)
            if cost <= budget and cost < costs.get(neighbor.coord, float('inf')):
                costs[neighbor.coord] = cost
                heapq.heappush(frontier, (cost, next(tie), neighbor.coord))
    return costs
