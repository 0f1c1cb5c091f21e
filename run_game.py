#!/usr/bin/env python3
"""
RoboBunny - Program Runner

Run block programs against a map from the command line.

Usage:
    # Run a sample program on the sample map
    python run_game.py --sample straight

    # Run your own program(s) on your own map
    python run_game.py --map my_map.json --program bunny1.json --program2 bunny2.json

    # Walk through a program one action at a time
    python run_game.py --sample repeat --step

    # Quick demo of all sample programs
    python run_game.py --demo
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from datetime import datetime

from robobunny.engine import EngineConfig, RunResult
from robobunny.game import Game
from robobunny.program import SAMPLE_PROGRAMS, count_blocks, ensure_program
from robobunny.world import DEFAULT_STEP_LIMIT, RunStatus, create_sample_map
from visualize import GameVisualizer, plot_world, render_text, summarize_runs


def load_json(path: str):
    with open(path, encoding="utf-8") as f:
        return json.load(f)


def print_result(result: RunResult):
    """Print the outcome of a run."""
    print(f"Status: {result.status.value}")
    print(f"Message: {result.message}")
    for i, score in enumerate(result.scores):
        state = "on the map" if result.active[i] else "left the map"
        print(f"  Bunny {i + 1}: score {score}, moves {result.move_counts[i]} ({state})")
    if result.scores:
        print(f"Total score: {result.total_score}")
    print(f"Steps used: {result.steps}")


def run_demo(config: EngineConfig):
    """Run every sample program on the sample map."""
    print("\n" + "="*60)
    print("ROBOBUNNY DEMO - Sample Programs on the Sample Map")
    print("="*60 + "\n")

    game = Game(create_sample_map(), config)

    for name, program in SAMPLE_PROGRAMS.items():
        result = game.run(program)
        print(f"{name:10s} {result.status.value:15s} score {result.total_score:3d}  steps {result.steps}")

    print("\nFinal world after 'straight':\n")
    game.run(SAMPLE_PROGRAMS["straight"])
    print(render_text(game.snapshot()))

    print("\n" + "="*60)
    print("To run your own program:")
    print("  python run_game.py --map map.json --program program.json")
    print("="*60 + "\n")


def run_steps(game: Game, program) -> RunResult:
    """Step through a program, printing the world after each action."""
    step = 0
    while True:
        result = game.step(program)
        step += 1
        print(f"\n--- step {step}: {result.message}")
        print(render_text(game.snapshot()))
        if result.status != RunStatus.RUNNING:
            return result


def save_result(result: RunResult, output_dir: str) -> Path:
    output_path = Path(output_dir)
    output_path.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
    result_file = output_path / f"result_{timestamp}.json"
    with open(result_file, "w", encoding="utf-8") as f:
        json.dump(result.to_dict(), f, indent=2, ensure_ascii=False)
    return result_file


def main():
    parser = argparse.ArgumentParser(
        description="RoboBunny - run block programs on a grid map",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python run_game.py --demo
  python run_game.py --sample zigzag --replay
  python run_game.py --map map.json --program bunny1.json --program2 bunny2.json
  python run_game.py --summary ./robobunny_output
        """
    )

    parser.add_argument("--demo", action="store_true", help="Run all sample programs")
    parser.add_argument("--map", type=str, help="Map descriptor JSON file (default: sample map)")
    parser.add_argument("--program", type=str, help="Program JSON file for bunny 1")
    parser.add_argument("--program2", type=str, help="Program JSON file for bunny 2")
    parser.add_argument(
        "--sample",
        type=str,
        choices=sorted(SAMPLE_PROGRAMS),
        help="Use a sample program for bunny 1",
    )
    parser.add_argument("--step", action="store_true", help="Execute one action at a time")
    parser.add_argument("--replay", action="store_true", help="Print a text frame per event")
    parser.add_argument(
        "--step-limit",
        type=int,
        default=DEFAULT_STEP_LIMIT,
        help=f"Runaway-loop guard (default: {DEFAULT_STEP_LIMIT})",
    )
    parser.add_argument("--output", type=str, help="Directory to save the result JSON in")
    parser.add_argument("--plot", type=str, help="Save a plot of the final world to this file")
    parser.add_argument("--summary", type=str, help="Summarize results saved in a directory")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    config = EngineConfig(step_limit=args.step_limit)

    if args.demo:
        run_demo(config)
        return

    if args.summary:
        print(json.dumps(summarize_runs(args.summary), indent=2))
        return

    if args.program:
        program = load_json(args.program)
    elif args.sample:
        program = SAMPLE_PROGRAMS[args.sample]
    else:
        parser.print_help()
        print("\nQuick start: python run_game.py --demo")
        return

    program2 = load_json(args.program2) if args.program2 else None
    descriptor = load_json(args.map) if args.map else create_sample_map()

    try:
        game = Game(descriptor, config)
    except ValueError as e:
        print(f"Invalid map: {e}")
        sys.exit(1)

    print(f"Map: {game.engine.world.game_map.name}")
    print(f"Blocks: {count_blocks(ensure_program(program))} / {game.block_limit}")

    if args.step:
        result = run_steps(game, program)
    elif args.replay:
        visualizer = GameVisualizer(game)
        frames = visualizer.frames(program, program2)
        for i, frame in enumerate(frames):
            print(f"\n--- frame {i}")
            print(frame)
        result = visualizer.result
    else:
        result = game.run(program, program2)
        print()
        print(render_text(game.snapshot()))

    print()
    print_result(result)

    if args.output:
        result_file = save_result(result, args.output)
        print(f"\nResult saved to: {result_file}")

    if args.plot and game.snapshot() is not None:
        plot_world(game.snapshot(), result.events, save_path=args.plot)


if __name__ == "__main__":
    main()
