#!/usr/bin/env python3
"""
RoboBunny - Web Interface

A small browser front end and JSON API over the program engine. The
engine runs synchronously; the page replays the returned event log at
its own pace.
"""

import os
import threading
from collections import deque

from dotenv import load_dotenv
from flask import Flask, render_template_string, jsonify, request

from robobunny.engine import EngineConfig
from robobunny.game import Game
from robobunny.program import SAMPLE_PROGRAMS
from robobunny.world import DEFAULT_STEP_LIMIT, create_sample_map

PROJECT_ROOT = os.path.dirname(os.path.abspath(__file__))

# Load environment variables
load_dotenv(os.path.join(PROJECT_ROOT, "config.env"))

MAX_LOG_LINES = 200

app = Flask(__name__)


def _make_game() -> Game:
    step_limit = int(os.environ.get("ROBOBUNNY_STEP_LIMIT", DEFAULT_STEP_LIMIT))
    return Game(create_sample_map(), EngineConfig(step_limit=step_limit))


# One play session per server; Flask may serve requests on several threads
session_lock = threading.Lock()
current_session = {
    "game": _make_game(),
    "logs": deque(maxlen=MAX_LOG_LINES),
}

HTML_TEMPLATE = """
<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <title>RoboBunny</title>
    <style>
        body { font-family: sans-serif; background: #fdf6ec; color: #333; margin: 2rem; }
        .layout { display: grid; grid-template-columns: 1fr 1fr; gap: 2rem; }
        pre#grid { font-size: 1.1rem; line-height: 1.2rem; background: #fff; padding: 1rem; border-radius: 8px; }
        textarea { width: 100%; height: 18rem; font-family: monospace; }
        button { margin: 0.3rem 0.3rem 0 0; padding: 0.4rem 1rem; }
        #status { font-weight: bold; margin: 0.5rem 0; }
        #log { font-family: monospace; font-size: 0.8rem; max-height: 12rem; overflow-y: auto; }
    </style>
</head>
<body>
    <h1>RoboBunny</h1>
    <div class="layout">
        <div>
            <pre id="grid"></pre>
            <div id="status"></div>
            <div id="scores"></div>
        </div>
        <div>
            <label>Sample: <select id="samples"></select></label>
            <textarea id="program"></textarea>
            <div>
                <button onclick="runProgram()">Run</button>
                <button onclick="stepProgram()">Step</button>
                <button onclick="resetGame()">Reset</button>
            </div>
            <div id="log"></div>
        </div>
    </div>
    <script>
        const SYMBOLS = { empty: '.', strawberry: 'S', stone: '#', puddle: '~' };
        const ARROWS = { up: '^', right: '>', down: 'v', left: '<' };
        let samples = {};

        function render(state) {
            const rows = state.mapData.map(row => row.map(c => SYMBOLS[c.type]));
            state.agents.forEach(a => { if (a.active) rows[a.y][a.x] = ARROWS[a.direction]; });
            document.getElementById('grid').textContent = rows.map(r => r.join(' ')).join('\\n');
            document.getElementById('status').textContent = state.status + ': ' + state.message;
            document.getElementById('scores').textContent =
                state.scores.map((s, i) => `Bunny ${i + 1}: ${s} (moves ${state.moveCounts[i]})`).join(' | ');
        }

        function addLog(line) {
            const log = document.getElementById('log');
            log.innerHTML = line + '<br>' + log.innerHTML;
        }

        async function post(url, body) {
            const response = await fetch(url, {
                method: 'POST',
                headers: { 'Content-Type': 'application/json' },
                body: JSON.stringify(body || {}),
            });
            return response.json();
        }

        function programs() {
            const parsed = JSON.parse(document.getElementById('program').value || '[]');
            return Array.isArray(parsed) ? { program: parsed } : parsed;
        }

        async function runProgram() {
            const data = await post('/api/run', programs());
            if (!data.success) { addLog('Error: ' + data.error); return; }
            addLog(`${data.result.status}: ${data.result.message}`);
            render(data.state);
        }

        async function stepProgram() {
            const data = await post('/api/step', programs());
            if (!data.success) { addLog('Error: ' + data.error); return; }
            addLog(`step: ${data.result.message}`);
            render(data.state);
        }

        async function resetGame() {
            const data = await post('/api/reset');
            render(data.state);
        }

        async function init() {
            samples = await (await fetch('/api/samples')).json();
            const select = document.getElementById('samples');
            Object.keys(samples).forEach(name => select.add(new Option(name, name)));
            select.onchange = () => {
                document.getElementById('program').value = JSON.stringify(samples[select.value], null, 2);
            };
            select.onchange();
            render(await (await fetch('/api/state')).json());
        }

        init();
    </script>
</body>
</html>
"""


def _log(line: str):
    current_session["logs"].append(line)


def _error(message: str):
    return jsonify({"success": False, "error": message}), 400


@app.route('/')
def index():
    return render_template_string(HTML_TEMPLATE)


@app.route('/api/state')
def api_state():
    """Get the current world snapshot."""
    with session_lock:
        snapshot = current_session["game"].snapshot()
    return jsonify(snapshot.to_dict())


@app.route('/api/samples')
def api_samples():
    return jsonify(SAMPLE_PROGRAMS)


@app.route('/api/logs')
def api_logs():
    with session_lock:
        return jsonify(list(current_session["logs"]))


@app.route('/api/map', methods=['POST'])
def api_map():
    """Load a map descriptor (an empty body loads the sample map)."""
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        return _error("Expected a map descriptor object")
    descriptor = data if data else create_sample_map()

    with session_lock:
        game = current_session["game"]
        try:
            game.load_map(descriptor)
        except (ValueError, TypeError) as e:
            _log(f"Rejected map: {e}")
            return _error(f"Invalid map: {e}")
        _log(f"Loaded map '{game.engine.world.game_map.name}'")
        snapshot = game.snapshot()

    return jsonify({"success": True, "state": snapshot.to_dict()})


@app.route('/api/reset', methods=['POST'])
def api_reset():
    with session_lock:
        game = current_session["game"]
        game.reset()
        snapshot = game.snapshot()
    return jsonify({"success": True, "state": snapshot.to_dict()})


@app.route('/api/run', methods=['POST'])
def api_run():
    """Run one or two programs from a fresh world."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return _error("Expected a JSON object with a 'program' list")

    with session_lock:
        game = current_session["game"]
        result = game.run(data.get("program"), data.get("program2"))
        _log(f"Run: {result.status.value} ({result.message})")
        snapshot = game.snapshot()

    return jsonify({"success": True, "result": result.to_dict(), "state": snapshot.to_dict()})


@app.route('/api/step', methods=['POST'])
def api_step():
    """Execute the next action of bunny 1's program."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return _error("Expected a JSON object with a 'program' list")

    with session_lock:
        game = current_session["game"]
        result = game.step(data.get("program"))
        current_step = game.current_step
        snapshot = game.snapshot()

    return jsonify({
        "success": True,
        "result": result.to_dict(),
        "currentStep": current_step,
        "state": snapshot.to_dict(),
    })


if __name__ == '__main__':
    port = int(os.environ.get("ROBOBUNNY_PORT", 8080))
    print("\n" + "="*50)
    print("RoboBunny - Web Interface")
    print("="*50)
    print(f"\nOpen in your browser: http://localhost:{port}")
    print("\nPress Ctrl+C to stop\n")
    app.run(host='0.0.0.0', port=port, debug=False)
