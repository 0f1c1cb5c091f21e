import time

from robobunny.engine import Engine, EngineConfig
from robobunny.program import (
    AgentCoord,
    Axis,
    Binary,
    BinaryOp,
    ChangeVar,
    Compare,
    CompareOp,
    GetVar,
    If,
    Jump,
    JumpKind,
    Literal,
    Repeat,
    SetVar,
    Turn,
    TurnDirection,
    UnknownNode,
    While,
)
from robobunny.world import RunStatus

from conftest import make_map


def test_repeat_runs_body_n_times(engine):
    result = engine.run_program([Repeat(3, [Jump(JumpKind.F_JUMP, 1)])])
    assert result.status == RunStatus.COMPLETED
    assert engine.world.agents[0].y == 7
    assert result.move_counts == [3]


def test_repeat_count_is_fixed_on_entry(engine):
    program = [
        SetVar("n", Literal(3)),
        Repeat(GetVar("n"), [
            ChangeVar("n", Literal(1)),
            Jump(JumpKind.F_JUMP, 1),
        ]),
    ]
    engine.run_program(program)
    assert engine.world.agents[0].y == 7
    assert engine.world.variables[0]["n"] == 6


def test_repeat_with_non_positive_count_runs_nothing(engine):
    engine.run_program([Repeat(Literal(-2), [Jump(JumpKind.F_JUMP, 1)])])
    assert engine.world.agents[0].y == 10


def test_if_else(engine):
    program = [
        If(
            Compare(CompareOp.GT, AgentCoord(Axis.X), Literal(5)),
            [Turn(TurnDirection.RIGHT)],
            [Turn(TurnDirection.LEFT)],
        ),
    ]
    engine.run_program(program)
    assert engine.world.agents[0].direction.value == "right"

    engine.reset()
    program[0].condition = Compare(CompareOp.LT, AgentCoord(Axis.X), Literal(5))
    engine.run_program(program)
    assert engine.world.agents[0].direction.value == "left"


def test_while_reads_live_position(engine):
    program = [
        While(Compare(CompareOp.GT, AgentCoord(Axis.Y), Literal(4)), [
            Jump(JumpKind.F_JUMP, 2),
            ChangeVar("hops", Literal(1)),
        ]),
    ]
    result = engine.run_program(program)
    assert result.status == RunStatus.COMPLETED
    assert engine.world.agents[0].y == 4
    assert engine.world.variables[0]["hops"] == 3


def test_jump_amount_from_expression(engine):
    program = [
        SetVar("step", Literal(2)),
        Jump(JumpKind.F_JUMP, Binary(BinaryOp.MUL, GetVar("step"), Literal(2))),
    ]
    engine.run_program(program)
    assert engine.world.agents[0].y == 6


def test_runaway_loop_is_halted():
    engine = Engine()
    engine.load_map(make_map())
    result = engine.run_program([While(Literal(True), [])])
    assert result.status == RunStatus.RUNAWAY_LOOP
    assert engine.game_over
    assert result.steps == 1001


def test_runaway_guard_uses_configured_limit(small_limit_engine):
    result = small_limit_engine.run_program([
        While(Literal(True), [Turn(TurnDirection.RIGHT)]),
    ])
    assert result.status == RunStatus.RUNAWAY_LOOP
    assert result.steps == 51
    assert "50" in result.message


def test_boundary_exit_stops_the_program(engine):
    program = [
        Jump(JumpKind.F_JUMP, 15),
        Turn(TurnDirection.RIGHT),
        SetVar("after", Literal(1)),
    ]
    result = engine.run_program(program)
    assert result.status == RunStatus.BOUNDARY_EXIT
    assert result.active == [False]
    assert "after" not in engine.world.variables[0]
    assert result.count_events("turn") == 0


def test_unknown_block_is_skipped(engine):
    program = [UnknownNode("Dance"), Jump(JumpKind.F_JUMP, 1)]
    result = engine.run_program(program)
    assert result.status == RunStatus.COMPLETED
    assert engine.world.agents[0].y == 9
    assert result.count_events("malformed") == 1


def test_set_and_change_var(engine):
    engine.run_program([
        SetVar("a", Literal(2)),
        ChangeVar("a", Literal(3)),
        ChangeVar("b", Literal(-1)),
    ])
    assert engine.world.variables[0] == {"a": 5, "b": -1}


def test_empty_program(engine):
    result = engine.run_program([])
    assert result.status == RunStatus.EMPTY_PROGRAM


def test_no_map_loaded():
    result = Engine().run_program([Jump(JumpKind.F_JUMP, 1)])
    assert result.status == RunStatus.NO_MAP_LOADED


def test_editor_json_runs_directly(engine):
    result = engine.run_program([
        {"type": "Repeat", "value": 2, "children": [{"type": "F_Jump", "value": 1}]},
    ])
    assert result.status == RunStatus.COMPLETED
    assert engine.world.agents[0].y == 8


def test_run_without_reset_continues_from_current_state():
    engine = Engine(EngineConfig())
    engine.load_map(make_map())
    engine.run_program([Jump(JumpKind.F_JUMP, 1)])
    engine.run_program([Jump(JumpKind.F_JUMP, 1)])
    assert engine.world.agents[0].y == 8


def test_growing_numbers_cannot_outrun_the_guard(engine):
    program = [
        SetVar("x", Literal(3)),
        While(Literal(True), [
            SetVar("x", Binary(BinaryOp.MUL, GetVar("x"), GetVar("x"))),
        ]),
    ]
    started = time.monotonic()
    result = engine.run_program(program)
    assert result.status == RunStatus.RUNAWAY_LOOP
    assert time.monotonic() - started < 5
    assert engine.world.variables[0]["x"] == 0


def test_change_var_keeps_values_finite(engine):
    engine.run_program([
        SetVar("big", Literal("1e308")),
        ChangeVar("big", Literal("1e308")),
    ])
    assert engine.world.variables[0]["big"] == 0
