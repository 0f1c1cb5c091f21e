"""
Visualization Tools for RoboBunny

Provides tools for visualizing:
- The grid world (terminal text or matplotlib)
- Bunny paths and score curves from a run's event log
- Summaries of saved runs
"""

from typing import List, Dict, Optional
import numpy as np
from pathlib import Path
import json

try:
    import matplotlib.pyplot as plt
    import matplotlib.patches as mpatches
    from matplotlib.colors import ListedColormap
    HAS_MATPLOTLIB = True
except ImportError:
    HAS_MATPLOTLIB = False

from robobunny.engine import Event, RunResult
from robobunny.game import Game
from robobunny.world import CellKind, Direction, GridCell, WorldSnapshot, WorldState, CELL_CODES


CELL_SYMBOLS = {
    CellKind.EMPTY: ".",
    CellKind.STRAWBERRY: "S",
    CellKind.STONE: "#",
    CellKind.PUDDLE: "~",
}

DIRECTION_SYMBOLS = {"up": "^", "right": ">", "down": "v", "left": "<"}

CELL_COLORS = ["#f4f1de", "#e63946", "#6c757d", "#48cae4"]
BUNNY_COLORS = ["#2a9d8f", "#f4a261"]


def render_text(snapshot: WorldSnapshot) -> str:
    """
    Render a snapshot as a text grid.

    Bunnies are drawn as their facing arrow. When both share a cell the
    cell shows "2".
    """
    rows = [
        [CELL_SYMBOLS[cell.kind] for cell in row]
        for row in snapshot.grid
    ]

    for i, agent in enumerate(snapshot.agents):
        if not agent.active:
            continue
        symbol = DIRECTION_SYMBOLS[agent.direction.value]
        if rows[agent.y][agent.x] in DIRECTION_SYMBOLS.values():
            symbol = str(i + 1)
        rows[agent.y][agent.x] = symbol

    return "\n".join(" ".join(row) for row in rows)


def agent_paths(events: List[Event], num_agents: int) -> List[np.ndarray]:
    """Positions visited by each bunny, as (n, 2) arrays of x, y."""
    paths = []
    for agent in range(num_agents):
        points = [(e.x, e.y) for e in events if e.agent == agent and e.kind != "variable"]
        paths.append(np.array(points, dtype=int).reshape(-1, 2))
    return paths


def score_curves(events: List[Event], num_agents: int) -> List[np.ndarray]:
    """Score of each bunny after each of its events."""
    return [
        np.array([e.score for e in events if e.agent == agent], dtype=int)
        for agent in range(num_agents)
    ]


def plot_world(
    snapshot: WorldSnapshot,
    events: Optional[List[Event]] = None,
    title: str = "RoboBunny",
    save_path: Optional[str] = None,
):
    """
    Plot the grid, the bunnies and (optionally) their paths.

    Args:
        snapshot: World snapshot to draw
        events: Event log whose positions are drawn as paths
        title: Plot title
        save_path: Optional path to save the figure
    """
    if not HAS_MATPLOTLIB:
        print("matplotlib required for visualization")
        return

    fig, ax = plt.subplots(figsize=(8, 8))

    cmap = ListedColormap(CELL_COLORS)
    ax.imshow(snapshot.kind_grid(), cmap=cmap, vmin=0, vmax=len(CELL_COLORS) - 1)

    values = snapshot.value_grid()
    kinds = snapshot.kind_grid()
    for y, x in zip(*np.nonzero(kinds == CELL_CODES[CellKind.STRAWBERRY])):
        ax.text(x, y, str(values[y, x]), ha="center", va="center", fontsize=8, color="white")

    if events:
        for i, path in enumerate(agent_paths(events, len(snapshot.agents))):
            if len(path):
                ax.plot(path[:, 0], path[:, 1], "-o", color=BUNNY_COLORS[i % 2], markersize=3, alpha=0.7)

    for i, agent in enumerate(snapshot.agents):
        marker = "o" if agent.active else "x"
        ax.scatter([agent.x], [agent.y], s=200, marker=marker, color=BUNNY_COLORS[i % 2], edgecolors="black")

    patches = [
        mpatches.Patch(color=CELL_COLORS[CELL_CODES[kind]], label=kind.value.capitalize())
        for kind in CellKind
    ]
    for i in range(len(snapshot.agents)):
        patches.append(mpatches.Patch(color=BUNNY_COLORS[i % 2], label=f"Bunny {i + 1}"))
    ax.legend(handles=patches, loc="upper left", bbox_to_anchor=(1.01, 1.0))

    scores = ", ".join(str(s) for s in snapshot.scores)
    ax.set_title(f"{title} | {snapshot.status.value} | scores: {scores}", fontsize=12)
    ax.set_xticks(range(snapshot.grid_size))
    ax.set_yticks(range(snapshot.grid_size))
    ax.tick_params(labelsize=6)

    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=150)
        print(f"Saved to {save_path}")
    else:
        plt.show()

    plt.close()


def plot_score_curves(
    events: List[Event],
    num_agents: int,
    title: str = "Score per Event",
    save_path: Optional[str] = None,
):
    """
    Plot each bunny's score over its events.

    Args:
        events: Event log of a run
        num_agents: Number of bunnies in the run
        title: Plot title
        save_path: Optional path to save the figure
    """
    if not HAS_MATPLOTLIB:
        print("matplotlib required for visualization")
        return

    fig, ax = plt.subplots(figsize=(10, 5))

    for i, curve in enumerate(score_curves(events, num_agents)):
        ax.plot(curve, label=f"Bunny {i + 1}", color=BUNNY_COLORS[i % 2], linewidth=2)

    ax.set_xlabel("Event", fontsize=12)
    ax.set_ylabel("Score", fontsize=12)
    ax.set_title(title, fontsize=14)
    ax.legend()
    ax.grid(True, alpha=0.3)

    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=150)
        print(f"Saved to {save_path}")
    else:
        plt.show()

    plt.close()


class GameVisualizer:
    """
    Replays a run frame by frame.

    The engine runs without delays; this class turns its event log back
    into a sequence of text frames a terminal can show at any pace.
    """

    def __init__(self, game: Game):
        self.game = game
        self.result: Optional[RunResult] = None

    def frames(self, program1, program2=None) -> List[str]:
        """Run the program(s) and return one text frame per event."""
        result = self.result = self.game.run(program1, program2)
        if self.game.engine.world is None:
            return []

        # Replay on a fresh copy of the initial world
        world = WorldState(game_map=self.game.engine.world.game_map)
        frames = [render_text(world.snapshot())]

        for event in result.events:
            agent = world.agents[event.agent]
            if event.kind == "exit":
                agent.active = False
            else:
                agent.x, agent.y = event.x, event.y
                agent.direction = Direction(event.direction)
                if event.kind == "strawberry":
                    world.grid[event.y][event.x] = GridCell()
            frames.append(render_text(world.snapshot()))

        return frames


def summarize_runs(output_dir: str) -> Dict:
    """
    Summarize saved run results.

    Args:
        output_dir: Directory holding result_*.json files written by run_game.py

    Returns:
        Summary statistics
    """
    output_path = Path(output_dir)

    results = []
    for path in sorted(output_path.glob("result_*.json")):
        with open(path) as f:
            results.append(json.load(f))

    if not results:
        raise ValueError(f"No results found in {output_dir}")

    totals = np.array([r.get("totalScore", 0) for r in results])
    steps = np.array([r.get("steps", 0) for r in results])
    statuses: Dict[str, int] = {}
    for r in results:
        statuses[r.get("status", "unknown")] = statuses.get(r.get("status", "unknown"), 0) + 1

    return {
        "num_runs": len(results),
        "mean_score": float(np.mean(totals)),
        "best_score": int(np.max(totals)),
        "mean_steps": float(np.mean(steps)),
        "statuses": statuses,
    }
