import pytest

from robobunny.engine import Engine
from robobunny.program import JumpKind, TurnDirection
from robobunny.world import CellKind, Direction, GridCell, RunStatus, parse_map

from conftest import make_map


def position(engine, index=0):
    agent = engine.world.agents[index]
    return agent.x, agent.y


@pytest.mark.parametrize(
    ("kind", "expected"),
    [
        (JumpKind.F_JUMP, (10, 8)),
        (JumpKind.FR_JUMP, (12, 9)),
        (JumpKind.FL_JUMP, (8, 9)),
    ],
)
def test_jump_geometry_facing_up(engine, kind: JumpKind, expected) -> None:
    assert engine.jump(0, kind, 2)
    assert position(engine) == expected
    assert engine.world.agents[0].direction == Direction.UP


@pytest.mark.parametrize(
    ("facing", "kind", "expected"),
    [
        ("right", JumpKind.F_JUMP, (12, 10)),
        ("right", JumpKind.FR_JUMP, (11, 12)),
        ("down", JumpKind.FL_JUMP, (12, 11)),
        ("left", JumpKind.FR_JUMP, (9, 8)),
    ],
)
def test_jump_geometry_other_facings(facing: str, kind: JumpKind, expected) -> None:
    engine = Engine()
    engine.load_map(make_map(start=(10, 10, facing)))
    engine.jump(0, kind, 2)
    assert position(engine) == expected


def test_turn_relations(engine):
    engine.turn(0, TurnDirection.RIGHT)
    assert engine.world.agents[0].direction == Direction.RIGHT
    engine.turn(0, TurnDirection.LEFT)
    assert engine.world.agents[0].direction == Direction.UP
    engine.turn(0, TurnDirection.BACK)
    assert engine.world.agents[0].direction == Direction.DOWN
    engine.turn(0, TurnDirection.RIGHT)
    engine.turn(0, TurnDirection.RIGHT)
    assert engine.world.agents[0].direction == Direction.UP


def test_turn_does_not_move_or_count(engine):
    engine.turn(0, TurnDirection.LEFT)
    assert position(engine) == (10, 10)
    assert engine.world.move_counts == [0]


def test_strawberry_is_collected_once():
    engine = Engine()
    engine.load_map(make_map(cells={(10, 9): ("strawberry", 5)}))
    engine.jump(0, JumpKind.F_JUMP, 1)
    assert engine.world.scores == [5]
    assert engine.world.grid[9][10].kind == CellKind.EMPTY

    engine.turn(0, TurnDirection.BACK)
    engine.jump(0, JumpKind.F_JUMP, 1)
    engine.turn(0, TurnDirection.BACK)
    engine.jump(0, JumpKind.F_JUMP, 1)
    assert engine.world.scores == [5]
    assert engine.world.move_counts == [3]


@pytest.mark.parametrize(("score", "expected"), [(5, 0), (20, 10), (0, 0)])
def test_stone_penalty_clamps_at_zero(score: int, expected: int) -> None:
    engine = Engine()
    engine.load_map(make_map(cells={(10, 9): ("stone", 0)}))
    engine.world.scores[0] = score
    engine.jump(0, JumpKind.F_JUMP, 1)
    assert engine.world.scores == [expected]
    assert engine.world.grid[9][10].kind == CellKind.STONE


def test_puddle_costs_extra_moves():
    engine = Engine()
    engine.load_map(make_map(cells={(10, 9): ("puddle", 0)}))
    engine.jump(0, JumpKind.F_JUMP, 1)
    assert engine.world.move_counts == [6]
    assert engine.world.grid[9][10].kind == CellKind.PUDDLE


def test_intermediate_cells_are_not_touched():
    engine = Engine()
    engine.load_map(make_map(cells={(10, 9): ("strawberry", 5), (10, 8): ("stone", 0)}))
    engine.world.scores[0] = 3
    engine.jump(0, JumpKind.F_JUMP, 3)
    assert position(engine) == (10, 7)
    assert engine.world.scores == [3]
    assert engine.world.grid[9][10].kind == CellKind.STRAWBERRY


def test_leaving_the_grid_ends_single_bunny_run():
    engine = Engine()
    engine.load_map(make_map(start=(10, 1, "up")))
    assert not engine.jump(0, JumpKind.F_JUMP, 2)
    assert engine.world.agents[0].active is False
    assert engine.game_over
    assert engine.status == RunStatus.BOUNDARY_EXIT
    assert engine.world.move_counts == [0]


def test_leaving_the_grid_with_two_bunnies():
    engine = Engine()
    engine.load_map(make_map(start=(10, 1, "up"), start2=(5, 5, "up")))
    engine.jump(0, JumpKind.F_JUMP, 2)
    assert engine.world.agents[0].active is False
    assert not engine.game_over

    assert engine.jump(1, JumpKind.F_JUMP, 1)
    assert position(engine, 1) == (5, 4)

    engine.turn(1, TurnDirection.LEFT)
    engine.jump(1, JumpKind.F_JUMP, 6)
    assert engine.game_over
    assert engine.status == RunStatus.BOUNDARY_EXIT


def test_inactive_bunny_ignores_actions():
    engine = Engine()
    engine.load_map(make_map(start=(10, 1, "up"), start2=(5, 5, "up")))
    engine.jump(0, JumpKind.F_JUMP, 2)
    assert not engine.turn(0, TurnDirection.RIGHT)
    assert not engine.jump(0, JumpKind.F_JUMP, 1)
    assert engine.world.agents[0].direction == Direction.UP


@pytest.mark.parametrize("amount", [0, -2])
def test_non_positive_jump_is_skipped(engine, amount: int) -> None:
    assert not engine.jump(0, JumpKind.F_JUMP, amount)
    assert position(engine) == (10, 10)
    assert not engine.game_over


def test_events_are_recorded(engine):
    engine.turn(0, TurnDirection.RIGHT)
    engine.jump(0, JumpKind.F_JUMP, 1)
    assert [e.kind for e in engine.events] == ["turn", "move"]
    assert engine.events[-1].x == 11
    assert engine.events[-1].direction == "right"


@pytest.mark.parametrize(
    ("direction", "times"),
    [(TurnDirection.RIGHT, 4), (TurnDirection.LEFT, 4), (TurnDirection.BACK, 2)],
)
def test_turn_cycles(engine, direction: TurnDirection, times: int) -> None:
    for _ in range(times):
        engine.turn(0, direction)
    assert engine.world.agents[0].direction == Direction.UP


def test_score_never_drops_below_zero():
    game_map = parse_map(make_map())
    game_map.cells[9][10] = GridCell(CellKind.STRAWBERRY, -7)
    engine = Engine()
    engine.load_map(game_map)
    engine.jump(0, JumpKind.F_JUMP, 1)
    assert engine.world.scores == [0]
