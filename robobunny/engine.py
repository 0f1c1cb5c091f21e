"""
Program Engine

Runs block programs against a world: moves bunnies, applies cell
effects, walks control blocks and interleaves two bunnies' programs.
"""

from enum import Enum
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union
import copy
import logging

from .program import (
    Node,
    Jump,
    Turn,
    SetVar,
    ChangeVar,
    If,
    While,
    Repeat,
    JumpKind,
    TurnDirection,
    BinaryOp,
    ACTION_TYPES,
    ensure_program,
)
from .evaluator import arithmetic, evaluate, to_int, truthy
from .world import (
    CellKind,
    GameMap,
    GridCell,
    RunStatus,
    WorldSnapshot,
    WorldState,
    DEFAULT_STEP_LIMIT,
    parse_map,
)

logger = logging.getLogger(__name__)

# Returned by execute_step when there is nothing left to run
STEP_DONE = -1


@dataclass
class EngineConfig:
    """Rules of the game."""
    step_limit: int = DEFAULT_STEP_LIMIT
    stone_penalty: int = 10
    puddle_cost: int = 5


class TaskStatus(Enum):
    CONTINUE = "continue"
    FINISHED = "finished"


@dataclass
class AgentTask:
    """One bunny's top-level program and how far it has got."""
    agent_index: int
    nodes: List[Node]
    cursor: int = 0
    finished: bool = False


@dataclass
class Event:
    """A single observable change, for replay by a presentation layer."""
    kind: str
    agent: int
    x: int
    y: int
    direction: str
    score: int
    move_count: int
    message: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "agent": self.agent,
            "x": self.x,
            "y": self.y,
            "direction": self.direction,
            "score": self.score,
            "moveCount": self.move_count,
            "message": self.message,
        }


@dataclass
class RunResult:
    """Outcome of a program run."""
    status: RunStatus
    scores: List[int] = field(default_factory=list)
    move_counts: List[int] = field(default_factory=list)
    active: List[bool] = field(default_factory=list)
    steps: int = 0
    message: str = ""
    events: List[Event] = field(default_factory=list)

    @property
    def total_score(self) -> int:
        return sum(self.scores)

    def is_success(self) -> bool:
        return self.status == RunStatus.COMPLETED

    def count_events(self, kind: str, agent: Optional[int] = None) -> int:
        return sum(
            1 for e in self.events
            if e.kind == kind and (agent is None or e.agent == agent)
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "scores": list(self.scores),
            "moveCounts": list(self.move_counts),
            "active": list(self.active),
            "totalScore": self.total_score,
            "steps": self.steps,
            "message": self.message,
            "events": [e.to_dict() for e in self.events],
        }


class Engine:
    """
    The RoboBunny program engine.

    Owns one WorldState. Every mutation of the world goes through the
    resolver (turn/jump) or the interpreter (variables). Two bunnies are
    interleaved cooperatively, one top-level block at a time, so no
    locking is needed inside the engine.
    """

    def __init__(self, config: Optional[EngineConfig] = None):
        """
        Initialize the engine.

        Args:
            config: Game rules (default EngineConfig())
        """
        self.config = config or EngineConfig()
        self.world: Optional[WorldState] = None
        self.events: List[Event] = []

    # ---------- World management ----------

    def load_map(self, descriptor: Union[Dict[str, Any], GameMap]):
        """
        Install a map and reset to its initial state.

        Args:
            descriptor: Map descriptor dict or an already parsed GameMap

        Raises:
            ValueError: If the descriptor is malformed
        """
        if isinstance(descriptor, GameMap):
            game_map = copy.deepcopy(descriptor)
        else:
            game_map = parse_map(descriptor)

        self.world = WorldState(game_map=game_map, step_limit=self.config.step_limit)
        self.events = []
        logger.info(
            "Loaded map '%s' (%dx%d, %d bunnies)",
            game_map.name, game_map.grid_size, game_map.grid_size, game_map.agent_count,
        )

    def reset(self):
        """Restore the initial map, bunnies and counters."""
        if self.world is None:
            return
        self.world.reset()
        self.events = []

    @property
    def has_map(self) -> bool:
        return self.world is not None

    @property
    def game_over(self) -> bool:
        return self.world is not None and self.world.game_over

    @property
    def status(self) -> RunStatus:
        if self.world is None:
            return RunStatus.NO_MAP_LOADED
        return self.world.status

    def snapshot(self) -> Optional[WorldSnapshot]:
        """Read-only copy of the world, or None before a map is loaded."""
        if self.world is None:
            return None
        return self.world.snapshot()

    # ---------- Resolver ----------

    def _record(self, kind: str, agent_index: int, message: str = ""):
        world = self.world
        agent = world.agents[agent_index]
        event = Event(
            kind=kind,
            agent=agent_index,
            x=agent.x,
            y=agent.y,
            direction=agent.direction.value,
            score=world.scores[agent_index],
            move_count=world.move_counts[agent_index],
            message=message,
        )
        self.events.append(event)
        if message:
            world.message = message
            logger.debug("[bunny %d] %s", agent_index + 1, message)

    def _can_act(self, agent_index: int) -> bool:
        world = self.world
        if world is None or world.game_over:
            return False
        if not 0 <= agent_index < len(world.agents):
            return False
        return world.agents[agent_index].active

    def turn(self, agent_index: int, direction: TurnDirection) -> bool:
        """
        Rotate a bunny in place.

        Returns:
            True if the bunny turned
        """
        if not self._can_act(agent_index):
            return False

        agent = self.world.agents[agent_index]
        agent.direction = agent.direction.rotated(direction.value)
        self._record("turn", agent_index)
        return True

    def jump(self, agent_index: int, kind: JumpKind, amount: int) -> bool:
        """
        Jump a bunny relative to its facing.

        F_Jump moves `amount` cells forward. FR_Jump and FL_Jump move one
        cell forward plus `amount` cells to the right or left.

        Returns:
            True if the bunny landed inside the grid
        """
        if not self._can_act(agent_index):
            return False
        if amount < 1:
            logger.warning("Malformed %s with amount %r skipped", kind.value, amount)
            self._record("malformed", agent_index)
            return False

        agent = self.world.agents[agent_index]
        dx, dy = agent.direction.vector

        if kind == JumpKind.F_JUMP:
            target_x = agent.x + dx * amount
            target_y = agent.y + dy * amount
        else:
            quarter_turns = 1 if kind == JumpKind.FR_JUMP else 3
            sx, sy = agent.direction.rotated(quarter_turns).vector
            target_x = agent.x + dx + sx * amount
            target_y = agent.y + dy + sy * amount

        return self._move_agent(agent_index, target_x, target_y)

    def _move_agent(self, agent_index: int, x: int, y: int) -> bool:
        """Move a bunny to (x, y) and apply the landing cell's effect."""
        world = self.world
        agent = world.agents[agent_index]

        if not world.in_bounds(x, y):
            agent.active = False
            self._record("exit", agent_index, f"Bunny {agent_index + 1} jumped off the map!")
            # With two bunnies the run goes on until both are out
            if not world.any_active():
                world.game_over = True
                world.status = RunStatus.BOUNDARY_EXIT
            return False

        agent.x = x
        agent.y = y
        world.move_counts[agent_index] += 1

        cell = world.grid[y][x]
        if cell.kind == CellKind.STRAWBERRY:
            world.scores[agent_index] = max(0, world.scores[agent_index] + cell.value)
            world.grid[y][x] = GridCell()
            self._record("strawberry", agent_index, f"Bunny {agent_index + 1} picked {cell.value} strawberries")
        elif cell.kind == CellKind.STONE:
            world.scores[agent_index] = max(0, world.scores[agent_index] - self.config.stone_penalty)
            self._record(
                "stone", agent_index,
                f"Bunny {agent_index + 1} hit a stone! -{self.config.stone_penalty} strawberries",
            )
        elif cell.kind == CellKind.PUDDLE:
            world.move_counts[agent_index] += self.config.puddle_cost
            self._record(
                "puddle", agent_index,
                f"Bunny {agent_index + 1} stepped in a puddle! +{self.config.puddle_cost} moves",
            )
        else:
            self._record("move", agent_index)

        return True

    # ---------- Runaway guard ----------

    def _tick(self) -> bool:
        """
        Count one interpreted block or loop iteration.

        Returns:
            False once the step limit is exceeded (the run is then over)
        """
        world = self.world
        world.step_counter += 1
        if world.step_counter > world.step_limit:
            if not world.game_over:
                world.game_over = True
                world.status = RunStatus.RUNAWAY_LOOP
                world.message = f"Program ran too long (over {world.step_limit} steps), possible infinite loop"
                logger.warning("Step limit %d exceeded, run halted", world.step_limit)
            return False
        return True

    # ---------- Interpreter ----------

    def _should_stop(self, agent_index: int) -> bool:
        return self.world.game_over or not self.world.agents[agent_index].active

    def run_nodes(self, nodes: List[Node], agent_index: int):
        """
        Execute a block sequence for one bunny.

        Stops early when the world is over or the bunny has left the map.
        """
        for node in nodes:
            if self._should_stop(agent_index):
                return
            if not self._tick():
                return
            self._execute_node(node, agent_index)

    def _execute_node(self, node: Node, agent_index: int):
        """Execute a single block, recursing into control blocks."""
        if self._should_stop(agent_index):
            return

        world = self.world

        if isinstance(node, Jump):
            amount = node.amount
            if not isinstance(amount, int):
                amount = to_int(evaluate(amount, world, agent_index))
            self.jump(agent_index, node.kind, amount)

        elif isinstance(node, Turn):
            self.turn(agent_index, node.direction)

        elif isinstance(node, SetVar):
            world.variables[agent_index][node.name] = evaluate(node.value, world, agent_index)
            self._record("variable", agent_index)

        elif isinstance(node, ChangeVar):
            store = world.variables[agent_index]
            delta = evaluate(node.delta, world, agent_index)
            store[node.name] = arithmetic(BinaryOp.ADD, store.get(node.name, 0), delta)
            self._record("variable", agent_index)

        elif isinstance(node, If):
            if truthy(evaluate(node.condition, world, agent_index)):
                self.run_nodes(node.then_body, agent_index)
            else:
                self.run_nodes(node.else_body, agent_index)

        elif isinstance(node, While):
            while truthy(evaluate(node.condition, world, agent_index)):
                if self._should_stop(agent_index):
                    return
                if not self._tick():
                    return
                self.run_nodes(node.body, agent_index)

        elif isinstance(node, Repeat):
            # The count is fixed on entry, whatever the body does to its inputs
            times = node.times
            if not isinstance(times, int):
                times = to_int(evaluate(times, world, agent_index))
            for _ in range(times):
                if self._should_stop(agent_index):
                    return
                if not self._tick():
                    return
                self.run_nodes(node.body, agent_index)

        else:
            logger.warning("Malformed block skipped: %r", node)
            self._record("malformed", agent_index)

    # ---------- Scheduler ----------

    def step_task(self, task: AgentTask) -> TaskStatus:
        """
        Run exactly one top-level block of a bunny's program.

        Nested control blocks run to completion inside the step.

        Returns:
            CONTINUE if the task has more blocks to run, FINISHED otherwise
        """
        if task.finished:
            return TaskStatus.FINISHED

        if task.cursor >= len(task.nodes) or self._should_stop(task.agent_index):
            task.finished = True
            return TaskStatus.FINISHED

        node = task.nodes[task.cursor]
        task.cursor += 1
        if self._tick():
            self._execute_node(node, task.agent_index)

        if task.cursor >= len(task.nodes) or self._should_stop(task.agent_index):
            task.finished = True
            return TaskStatus.FINISHED
        return TaskStatus.CONTINUE

    def _run_dual(self, tasks: List[AgentTask]):
        """Alternate the tasks one top-level block at a time until all finish."""
        while not all(task.finished for task in tasks):
            if self.world.game_over:
                return
            for task in tasks:
                self.step_task(task)

    # ---------- Entry points ----------

    def result(self, status: Optional[RunStatus] = None, message: str = "") -> RunResult:
        world = self.world
        if world is None:
            return RunResult(status=status or RunStatus.NO_MAP_LOADED, message=message)
        return RunResult(
            status=status or world.status,
            scores=list(world.scores),
            move_counts=list(world.move_counts),
            active=[agent.active for agent in world.agents],
            steps=world.step_counter,
            message=message or world.message,
            events=list(self.events),
        )

    def run_program(self, program1: Any, program2: Any = None) -> RunResult:
        """
        Run programs to completion or failure.

        With a one-bunny map only program1 runs. With a two-bunny map the
        programs are interleaved; a missing program2 counts as empty.

        Args:
            program1: Program for bunny 1 (nodes or editor JSON)
            program2: Program for bunny 2 (nodes or editor JSON)

        Returns:
            RunResult with the terminal status and final scores
        """
        if self.world is None:
            return self.result(RunStatus.NO_MAP_LOADED, "Select a map first")

        world = self.world
        nodes1 = ensure_program(program1)
        nodes2 = ensure_program(program2)

        if world.agent_count == 1 and nodes2:
            logger.debug("Map has one bunny; second program ignored")
            nodes2 = []
        if not nodes1 and not nodes2:
            return self.result(RunStatus.EMPTY_PROGRAM, "Build a program first")

        if not world.game_over:
            world.status = RunStatus.RUNNING
            world.message = "Running..."
            logger.info("Running program (%d bunnies)", world.agent_count)

            if world.agent_count == 1:
                self.run_nodes(nodes1, 0)
            else:
                self._run_dual([AgentTask(0, nodes1), AgentTask(1, nodes2)])

            if world.status == RunStatus.RUNNING:
                world.status = RunStatus.COMPLETED
                world.message = f"Done! Total score: {sum(world.scores)}"

        logger.info("Run finished: %s after %d steps", world.status.value, world.step_counter)
        return self.result()

    def execute_step(self, flat_program: Any, step_index: int) -> int:
        """
        Execute one action of a flattened program for bunny 1.

        Control blocks are skipped (use flatten_program to unroll loops
        first).

        Args:
            flat_program: Flattened program
            step_index: Index of the block to execute

        Returns:
            The next index, or STEP_DONE when nothing is left to run
        """
        world = self.world
        if world is None or world.game_over:
            return STEP_DONE

        nodes = ensure_program(flat_program)
        if not 0 <= step_index < len(nodes):
            return STEP_DONE

        if world.status == RunStatus.IDLE:
            world.status = RunStatus.RUNNING

        node = nodes[step_index]
        if isinstance(node, ACTION_TYPES):
            self._execute_node(node, 0)
        else:
            logger.debug("Step mode skips %s block", type(node).__name__)

        return step_index + 1
