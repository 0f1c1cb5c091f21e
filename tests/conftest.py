import pytest

from robobunny.engine import Engine, EngineConfig
from robobunny.world import create_empty_map_data


def make_map(size=21, start=(10, 10, "up"), start2=None, cells=None, block_limit=20):
    """Build a map descriptor. `cells` maps (x, y) to (type, value)."""
    data = create_empty_map_data(size)
    for (x, y), (kind, value) in (cells or {}).items():
        data[y][x] = {"type": kind, "value": value}
    descriptor = {
        "name": "Test Map",
        "gridSize": size,
        "mapData": data,
        "bunnyPosition": {"x": start[0], "y": start[1], "direction": start[2]},
        "blockLimit": block_limit,
    }
    if start2 is not None:
        descriptor["bunnyPosition2"] = {"x": start2[0], "y": start2[1], "direction": start2[2]}
    return descriptor


@pytest.fixture
def engine():
    eng = Engine()
    eng.load_map(make_map())
    return eng


@pytest.fixture
def small_limit_engine():
    eng = Engine(EngineConfig(step_limit=50))
    eng.load_map(make_map())
    return eng
