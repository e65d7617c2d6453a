from hexcombat.hex_math import AxialCoord, hex_distance
from hexcombat.map import HexGrid, TerrainType, Tile
from hexcombat.pathfinding import find_path, path_cost, reachable_tiles


def _corridor(terrain_info, overrides=None, length=5):
    overrides = overrides or {}
    tiles = []
    for q in range(length):
        terrain = overrides.get(q, TerrainType.OPEN)
        tiles.append(Tile(q=q, r=0, terrain=terrain))
    return HexGrid(tiles, terrain_info=terrain_info)


def test_uniform_path_length_matches_distance(open_grid) -> None:
    for start, end in [((0, 0), (4, 0)), ((-3, 1), (2, -2)), ((0, -5), (0, 5))]:
        path = find_path(start, end, open_grid)
        assert path[0].coord == AxialCoord(*start)
        assert path[-1].coord == AxialCoord(*end)
        assert len(path) - 1 == hex_distance(start, end)
        assert path_cost(path, open_grid) == hex_distance(start, end)


def test_blocked_sole_route_returns_empty(terrain_info) -> None:
    grid = _corridor(terrain_info, {2: TerrainType.WALL})
    assert find_path((0, 0), (4, 0), grid) == []


def test_water_needs_ignore_water(terrain_info) -> None:
    grid = _corridor(terrain_info, {2: TerrainType.WATER})
    assert find_path((0, 0), (4, 0), grid) == []

    path = find_path((0, 0), (4, 0), grid, ignore_water=True)
    assert [t.q for t in path] == [0, 1, 2, 3, 4]
    assert path_cost(path, grid, ignore_water=True) == 8


def test_path_detours_around_costly_terrain(open_grid) -> None:
    open_grid.set_terrain((0, 0), TerrainType.ROCK)
    path = find_path((-1, 0), (1, 0), open_grid)
    coords = [t.coord for t in path]
    assert AxialCoord(0, 0) not in coords
    assert path_cost(path, open_grid) == 3


def test_elevation_penalty_added(terrain_info) -> None:
    grid = HexGrid([Tile(0, 0, height=0), Tile(1, 0, height=2)], terrain_info=terrain_info)
    path = find_path((0, 0), (1, 0), grid)
    assert path_cost(path, grid) == 2.0
    assert path_cost(path, grid, elevation_penalty=0) == 1.0


def test_same_start_and_end(open_grid) -> None:
    path = find_path((1, 1), (1, 1), open_grid)
    assert [t.coord for t in path] == [AxialCoord(1, 1)]
    assert path_cost(path, open_grid) == 0


def test_missing_endpoints(open_grid) -> None:
    assert find_path((0, 0), (40, 0), open_grid) == []
    assert find_path((40, 0), (0, 0), open_grid) == []
    assert find_path(None, (0, 0), open_grid) == []
    assert path_cost([], open_grid) == float("inf")


def test_path_is_deterministic(open_grid) -> None:
    first = [t.coord for t in find_path((-3, 0), (3, -3), open_grid)]
    second = [t.coord for t in find_path((-3, 0), (3, -3), open_grid)]
    assert first == second


def test_blocked_tiles_are_avoided(terrain_info) -> None:
    grid = _corridor(terrain_info)
    assert find_path((0, 0), (4, 0), grid, blocked={AxialCoord(2, 0)}) == []
    assert find_path((0, 0), (2, 0), grid, blocked={AxialCoord(2, 0)}) != []


def test_max_cost_limits_search(open_grid) -> None:
    assert find_path((0, 0), (3, 0), open_grid, max_cost=2) == []
    assert len(find_path((0, 0), (2, 0), open_grid, max_cost=2)) == 3


def test_grid_find_path_delegates(open_grid) -> None:
    assert len(open_grid.find_path((0, 0), (2, 0))) == 3


def test_reachable_tiles_budget(open_grid) -> None:
    reach = reachable_tiles((0, 0), open_grid, budget=1)
    assert len(reach) == 7
    assert reach[AxialCoord(0, 0)] == 0

    open_grid.set_terrain((1, 0), TerrainType.FOREST)
    reach = reachable_tiles((0, 0), open_grid, budget=1)
    assert AxialCoord(1, 0) not in reach
