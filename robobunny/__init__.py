"""
RoboBunny - A block-program engine for a strawberry-collecting grid game.

This package runs visual block programs (jumps, turns, variables, If,
While and Repeat blocks) for one or two bunnies on a grid of
strawberries, stones and puddles.
"""

from .program import (
    JumpKind,
    TurnDirection,
    BinaryOp,
    CompareOp,
    LogicOp,
    Axis,
    Jump,
    Turn,
    SetVar,
    ChangeVar,
    If,
    While,
    Repeat,
    Literal,
    AgentCoord,
    GetVar,
    Binary,
    Compare,
    Logic,
    Not,
    parse_program,
    program_to_data,
    count_blocks,
    flatten_program,
    SAMPLE_PROGRAMS,
)
from .world import (
    CellKind,
    Direction,
    GridCell,
    AgentState,
    GameMap,
    RunStatus,
    WorldState,
    WorldSnapshot,
    parse_map,
    map_to_data,
    create_sample_map,
)
from .evaluator import evaluate
from .engine import Engine, EngineConfig, AgentTask, TaskStatus, RunResult, Event, STEP_DONE
from .game import Game

__all__ = [
    "JumpKind",
    "TurnDirection",
    "BinaryOp",
    "CompareOp",
    "LogicOp",
    "Axis",
    "Jump",
    "Turn",
    "SetVar",
    "ChangeVar",
    "If",
    "While",
    "Repeat",
    "Literal",
    "AgentCoord",
    "GetVar",
    "Binary",
    "Compare",
    "Logic",
    "Not",
    "parse_program",
    "program_to_data",
    "count_blocks",
    "flatten_program",
    "SAMPLE_PROGRAMS",
    "CellKind",
    "Direction",
    "GridCell",
    "AgentState",
    "GameMap",
    "RunStatus",
    "WorldState",
    "WorldSnapshot",
    "parse_map",
    "map_to_data",
    "create_sample_map",
    "evaluate",
    "Engine",
    "EngineConfig",
    "AgentTask",
    "TaskStatus",
    "RunResult",
    "Event",
    "STEP_DONE",
    "Game",
]
