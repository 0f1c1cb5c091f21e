"""
Game Module - Run, step and reset controls around the engine.
"""

from typing import Any, Dict, List, Optional, Union

from .engine import Engine, EngineConfig, RunResult, STEP_DONE
from .program import Node, count_blocks, ensure_program, flatten_program
from .world import GameMap, RunStatus


class Game:
    """
    A play session on one map.

    Mirrors the controls of the block editor: Run resets the world and
    runs the whole program, Step executes one action at a time, Reset
    puts everything back.
    """

    def __init__(
        self,
        descriptor: Optional[Union[Dict[str, Any], GameMap]] = None,
        config: Optional[EngineConfig] = None,
    ):
        """
        Initialize a session.

        Args:
            descriptor: Map to load (a map can also be loaded later)
            config: Engine rules
        """
        self.engine = Engine(config)
        self.current_step = 0
        self._step_program: Optional[List[Node]] = None

        if descriptor is not None:
            self.load_map(descriptor)

    def load_map(self, descriptor: Union[Dict[str, Any], GameMap]):
        self.engine.load_map(descriptor)
        self.current_step = 0
        self._step_program = None

    @property
    def block_limit(self) -> Optional[int]:
        if self.engine.world is None:
            return None
        return self.engine.world.game_map.block_limit

    def reset(self):
        self.current_step = 0
        self._step_program = None
        self.engine.reset()

    def _check_program(self, programs: List[List[Node]]) -> Optional[RunResult]:
        """Refuse a run before it starts, as the editor does."""
        if self.engine.world is None:
            return RunResult(status=RunStatus.NO_MAP_LOADED, message="Select a map first")

        if not any(programs):
            return RunResult(status=RunStatus.EMPTY_PROGRAM, message="Build a program first")

        limit = self.block_limit
        for i, nodes in enumerate(programs):
            used = count_blocks(nodes)
            if limit is not None and used > limit:
                return RunResult(
                    status=RunStatus.BLOCK_LIMIT_EXCEEDED,
                    message=f"Program {i + 1} uses {used} blocks, the limit is {limit}",
                )
        return None

    def run(self, program1: Any, program2: Any = None) -> RunResult:
        """
        Reset the world and run the program(s) to the end.

        Args:
            program1: Program for bunny 1 (nodes or editor JSON)
            program2: Program for bunny 2, used on two-bunny maps

        Returns:
            RunResult (a refusal status if the run could not start)
        """
        nodes1 = ensure_program(program1)
        nodes2 = ensure_program(program2)

        refusal = self._check_program([nodes1, nodes2])
        if refusal is not None:
            return refusal

        self.reset()
        return self.engine.run_program(nodes1, nodes2)

    def step(self, program: Any) -> RunResult:
        """
        Execute the next action of bunny 1's program.

        The program is flattened on the first call after a reset; later
        calls continue from where the previous one stopped.

        Returns:
            RunResult for the world after this step. Its status becomes
            COMPLETED once the program is exhausted.
        """
        nodes = ensure_program(program)
        refusal = self._check_program([nodes])
        if refusal is not None:
            return refusal

        if self._step_program is None:
            self._step_program = flatten_program(nodes, self.engine.config.step_limit)

        world = self.engine.world
        if world.game_over:
            return self.engine.result()

        next_step = self.engine.execute_step(self._step_program, self.current_step)
        if next_step != STEP_DONE:
            self.current_step = next_step

        if next_step == STEP_DONE or self.current_step >= len(self._step_program):
            if world.status in (RunStatus.IDLE, RunStatus.RUNNING):
                world.status = RunStatus.COMPLETED
                world.message = f"Done! Score: {world.scores[0]}"

        return self.engine.result()

    def snapshot(self):
        return self.engine.snapshot()
