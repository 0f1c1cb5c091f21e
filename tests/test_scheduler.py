import pytest

from robobunny.engine import AgentTask, Engine, TaskStatus
from robobunny.program import Jump, JumpKind, Literal, Repeat, SetVar, Turn, TurnDirection
from robobunny.world import RunStatus

from conftest import make_map


@pytest.fixture
def dual_engine():
    engine = Engine()
    engine.load_map(make_map(start=(5, 10, "up"), start2=(15, 10, "up")))
    return engine


def order(result):
    return [(e.agent, e.kind) for e in result.events]


def test_programs_interleave_one_block_at_a_time(dual_engine):
    program1 = [Jump(JumpKind.F_JUMP, 1), Turn(TurnDirection.RIGHT)]
    program2 = [SetVar("v", Literal(1))]
    result = dual_engine.run_program(program1, program2)
    assert result.status == RunStatus.COMPLETED
    assert order(result) == [(0, "move"), (1, "variable"), (0, "turn")]


def test_nested_blocks_run_within_one_turn(dual_engine):
    program1 = [Repeat(2, [Jump(JumpKind.F_JUMP, 1)]), Turn(TurnDirection.LEFT)]
    program2 = [Turn(TurnDirection.RIGHT), Turn(TurnDirection.RIGHT)]
    result = dual_engine.run_program(program1, program2)
    assert order(result) == [
        (0, "move"),
        (0, "move"),
        (1, "turn"),
        (0, "turn"),
        (1, "turn"),
    ]


def test_missing_second_program_counts_as_empty(dual_engine):
    result = dual_engine.run_program([Jump(JumpKind.F_JUMP, 1)])
    assert result.status == RunStatus.COMPLETED
    assert result.move_counts == [1, 0]


def test_other_bunny_continues_after_one_leaves(dual_engine):
    program1 = [Jump(JumpKind.F_JUMP, 20), Turn(TurnDirection.RIGHT)]
    program2 = [Jump(JumpKind.F_JUMP, 1), Jump(JumpKind.F_JUMP, 1)]
    result = dual_engine.run_program(program1, program2)
    assert result.status == RunStatus.COMPLETED
    assert result.active == [False, True]
    assert result.move_counts == [0, 2]
    assert result.count_events("turn", agent=0) == 0


def test_both_bunnies_leaving_ends_the_run(dual_engine):
    result = dual_engine.run_program([Jump(JumpKind.F_JUMP, 20)], [Jump(JumpKind.F_JUMP, 20)])
    assert result.status == RunStatus.BOUNDARY_EXIT
    assert result.active == [False, False]


def test_bunnies_collect_independently():
    engine = Engine()
    engine.load_map(make_map(
        start=(5, 10, "up"),
        start2=(15, 10, "up"),
        cells={(5, 9): ("strawberry", 3), (15, 9): ("strawberry", 4)},
    ))
    result = engine.run_program([Jump(JumpKind.F_JUMP, 1)], [Jump(JumpKind.F_JUMP, 1)])
    assert result.scores == [3, 4]
    assert result.total_score == 7


def test_second_program_ignored_on_single_bunny_map(engine):
    result = engine.run_program([Jump(JumpKind.F_JUMP, 1)], [Jump(JumpKind.F_JUMP, 1)])
    assert result.status == RunStatus.COMPLETED
    assert result.move_counts == [1]


def test_step_task(dual_engine):
    task = AgentTask(0, [Jump(JumpKind.F_JUMP, 1), Jump(JumpKind.F_JUMP, 1)])
    assert dual_engine.step_task(task) == TaskStatus.CONTINUE
    assert task.cursor == 1
    assert dual_engine.step_task(task) == TaskStatus.FINISHED
    assert task.finished
    assert dual_engine.step_task(task) == TaskStatus.FINISHED
    assert dual_engine.world.agents[0].y == 8
