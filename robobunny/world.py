"""
World State

Grid cells, bunnies, map descriptors and the mutable world a program
runs against.
"""

from enum import Enum
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
import copy

import numpy as np


DEFAULT_GRID_SIZE = 21
DEFAULT_BLOCK_LIMIT = 20
DEFAULT_STEP_LIMIT = 1000


class CellKind(Enum):
    """What occupies a grid cell."""
    EMPTY = "empty"
    STRAWBERRY = "strawberry"  # Reward, consumed on first visit
    STONE = "stone"            # Costs 10 points, clamped at zero
    PUDDLE = "puddle"          # Costs 5 extra moves


# Integer codes used by kind_grid()
CELL_CODES = {
    CellKind.EMPTY: 0,
    CellKind.STRAWBERRY: 1,
    CellKind.STONE: 2,
    CellKind.PUDDLE: 3,
}


class Direction(Enum):
    """Compass facing, in clockwise order."""
    UP = "up"
    RIGHT = "right"
    DOWN = "down"
    LEFT = "left"

    @property
    def vector(self) -> tuple:
        return _VECTORS[self]

    def rotated(self, quarter_turns: int) -> "Direction":
        """Direction after the given number of clockwise quarter turns."""
        order = list(Direction)
        return order[(order.index(self) + quarter_turns) % 4]


# Screen coordinates: y grows downwards
_VECTORS = {
    Direction.UP: (0, -1),
    Direction.RIGHT: (1, 0),
    Direction.DOWN: (0, 1),
    Direction.LEFT: (-1, 0),
}


class RunStatus(Enum):
    """Lifecycle of a program run."""
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    BOUNDARY_EXIT = "boundary_exit"
    RUNAWAY_LOOP = "runaway_loop"
    # Refusals: the run never started
    EMPTY_PROGRAM = "empty_program"
    NO_MAP_LOADED = "no_map_loaded"
    BLOCK_LIMIT_EXCEEDED = "block_limit_exceeded"

    @property
    def is_terminal(self) -> bool:
        return self in (RunStatus.COMPLETED, RunStatus.BOUNDARY_EXIT, RunStatus.RUNAWAY_LOOP)


@dataclass
class GridCell:
    """A single map cell."""
    kind: CellKind = CellKind.EMPTY
    value: int = 0

    def copy(self) -> "GridCell":
        return GridCell(kind=self.kind, value=self.value)

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.kind.value, "value": self.value}


@dataclass
class AgentState:
    """Position and facing of one bunny."""
    x: int
    y: int
    direction: Direction = Direction.UP
    active: bool = True

    def copy(self) -> "AgentState":
        return AgentState(x=self.x, y=self.y, direction=self.direction, active=self.active)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "x": self.x,
            "y": self.y,
            "direction": self.direction.value,
            "active": self.active,
        }


@dataclass
class GameMap:
    """A parsed map descriptor."""
    grid_size: int
    cells: List[List[GridCell]]
    starts: List[AgentState]
    block_limit: int = DEFAULT_BLOCK_LIMIT
    name: str = "Untitled"

    @property
    def agent_count(self) -> int:
        return len(self.starts)

    def strawberry_total(self) -> int:
        """Sum of all strawberry values on the map."""
        return sum(
            cell.value
            for row in self.cells
            for cell in row
            if cell.kind == CellKind.STRAWBERRY
        )


def _parse_cell(data: Any) -> GridCell:
    if not isinstance(data, dict):
        return GridCell()
    try:
        kind = CellKind(str(data.get("type", "empty")).lower())
    except ValueError:
        kind = CellKind.EMPTY
    if kind != CellKind.STRAWBERRY:
        return GridCell(kind=kind)

    value = data.get("value", 1)
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValueError(f"Strawberry value must be a positive integer, got {value!r}")
    return GridCell(kind=kind, value=value)


def _parse_start(data: Any, grid_size: int) -> AgentState:
    if not isinstance(data, dict):
        raise ValueError(f"Invalid bunny position: {data!r}")
    try:
        x, y = int(data["x"]), int(data["y"])
    except (KeyError, TypeError, ValueError):
        raise ValueError(f"Invalid bunny position: {data!r}")
    if not (0 <= x < grid_size and 0 <= y < grid_size):
        raise ValueError(f"Bunny position ({x}, {y}) is outside a {grid_size}x{grid_size} grid")
    try:
        direction = Direction(str(data.get("direction", "up")).lower())
    except ValueError:
        direction = Direction.UP
    return AgentState(x=x, y=y, direction=direction)


def parse_map(descriptor: Dict[str, Any]) -> GameMap:
    """
    Parse a map descriptor as produced by the map designer.

    Args:
        descriptor: Dict with gridSize, mapData, bunnyPosition and the
            optional bunnyPosition2, blockLimit and name keys

    Returns:
        A GameMap (the descriptor itself is not retained)

    Raises:
        ValueError: If mapData, gridSize, bunnyPosition or blockLimit is
            missing or malformed, or a strawberry value is not positive
    """
    map_data = descriptor.get("mapData")
    if not isinstance(map_data, list) or not map_data:
        raise ValueError("Map descriptor has no mapData")
    if not descriptor.get("bunnyPosition"):
        raise ValueError("Map descriptor has no bunnyPosition")

    try:
        grid_size = int(descriptor.get("gridSize", len(map_data)))
    except (TypeError, ValueError):
        raise ValueError(f"Invalid gridSize: {descriptor.get('gridSize')!r}")
    if len(map_data) != grid_size or any(
        not isinstance(row, list) or len(row) != grid_size for row in map_data
    ):
        raise ValueError(f"mapData is not a {grid_size}x{grid_size} grid")

    cells = [[_parse_cell(cell) for cell in row] for row in map_data]

    starts = [_parse_start(descriptor["bunnyPosition"], grid_size)]
    if descriptor.get("bunnyPosition2"):
        starts.append(_parse_start(descriptor["bunnyPosition2"], grid_size))

    try:
        block_limit = int(descriptor.get("blockLimit") or DEFAULT_BLOCK_LIMIT)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid blockLimit: {descriptor.get('blockLimit')!r}")

    return GameMap(
        grid_size=grid_size,
        cells=cells,
        starts=starts,
        block_limit=block_limit,
        name=str(descriptor.get("name", "Untitled")),
    )


def map_to_data(game_map: GameMap) -> Dict[str, Any]:
    """Convert a GameMap back to a map descriptor."""
    data: Dict[str, Any] = {
        "name": game_map.name,
        "gridSize": game_map.grid_size,
        "mapData": [[cell.to_dict() for cell in row] for row in game_map.cells],
        "blockLimit": game_map.block_limit,
    }
    for i, start in enumerate(game_map.starts):
        key = "bunnyPosition" if i == 0 else f"bunnyPosition{i + 1}"
        data[key] = {"x": start.x, "y": start.y, "direction": start.direction.value}
    return data


def create_empty_map_data(size: int = DEFAULT_GRID_SIZE) -> List[List[Dict[str, Any]]]:
    """Create an all-empty mapData grid."""
    return [[{"type": "empty", "value": 0} for _ in range(size)] for _ in range(size)]


def create_sample_map() -> Dict[str, Any]:
    """The sample map shipped with the game: strawberries and a few stones."""
    descriptor = {
        "name": "Sample Map",
        "gridSize": DEFAULT_GRID_SIZE,
        "mapData": create_empty_map_data(DEFAULT_GRID_SIZE),
        "bunnyPosition": {"x": 10, "y": 18, "direction": "up"},
        "blockLimit": DEFAULT_BLOCK_LIMIT,
    }

    strawberries = [
        (10, 16, 3), (10, 14, 2), (10, 12, 5), (8, 14, 2), (12, 14, 2),
        (8, 10, 4), (12, 10, 4), (10, 8, 6), (6, 12, 3), (14, 12, 3),
    ]
    for x, y, value in strawberries:
        descriptor["mapData"][y][x] = {"type": "strawberry", "value": value}

    for x, y in [(9, 13), (11, 13), (7, 11), (13, 11)]:
        descriptor["mapData"][y][x] = {"type": "stone", "value": 0}

    return descriptor


@dataclass
class WorldSnapshot:
    """Read-only copy of the world for presentation."""
    grid: List[List[GridCell]]
    agents: List[AgentState]
    scores: List[int]
    move_counts: List[int]
    status: RunStatus
    message: str
    step_counter: int
    game_over: bool

    @property
    def grid_size(self) -> int:
        return len(self.grid)

    def kind_grid(self) -> np.ndarray:
        """Cell kinds as an integer array indexed [y, x] (see CELL_CODES)."""
        return np.array(
            [[CELL_CODES[cell.kind] for cell in row] for row in self.grid],
            dtype=np.int8,
        )

    def value_grid(self) -> np.ndarray:
        """Strawberry values as an integer array indexed [y, x]."""
        return np.array([[cell.value for cell in row] for row in self.grid], dtype=np.int32)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "gridSize": self.grid_size,
            "mapData": [[cell.to_dict() for cell in row] for row in self.grid],
            "agents": [agent.to_dict() for agent in self.agents],
            "scores": list(self.scores),
            "moveCounts": list(self.move_counts),
            "status": self.status.value,
            "message": self.message,
            "stepCounter": self.step_counter,
            "gameOver": self.game_over,
        }


@dataclass
class WorldState:
    """
    The mutable world a program runs against.

    Built from a GameMap, which is kept untouched so reset() can restore
    the initial layout.
    """
    game_map: GameMap
    step_limit: int = DEFAULT_STEP_LIMIT

    grid: List[List[GridCell]] = field(default_factory=list)
    agents: List[AgentState] = field(default_factory=list)
    scores: List[int] = field(default_factory=list)
    move_counts: List[int] = field(default_factory=list)
    variables: List[Dict[str, Any]] = field(default_factory=list)
    step_counter: int = 0
    game_over: bool = False
    status: RunStatus = RunStatus.IDLE
    message: str = ""

    def __post_init__(self):
        self.reset()

    @property
    def grid_size(self) -> int:
        return self.game_map.grid_size

    @property
    def agent_count(self) -> int:
        return self.game_map.agent_count

    def in_bounds(self, x: int, y: int) -> bool:
        return 0 <= x < self.grid_size and 0 <= y < self.grid_size

    def reset(self):
        """Restore the initial map and bunnies, zero all counters."""
        self.grid = copy.deepcopy(self.game_map.cells)
        self.agents = [start.copy() for start in self.game_map.starts]
        n = self.agent_count
        self.scores = [0] * n
        self.move_counts = [0] * n
        self.variables = [{} for _ in range(n)]
        self.step_counter = 0
        self.game_over = False
        self.status = RunStatus.IDLE
        self.message = "Ready"

    def any_active(self) -> bool:
        return any(agent.active for agent in self.agents)

    def snapshot(self) -> WorldSnapshot:
        return WorldSnapshot(
            grid=[[cell.copy() for cell in row] for row in self.grid],
            agents=[agent.copy() for agent in self.agents],
            scores=list(self.scores),
            move_counts=list(self.move_counts),
            status=self.status,
            message=self.message,
            step_counter=self.step_counter,
            game_over=self.game_over,
        )
