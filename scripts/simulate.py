"""
Conversation Simulator — drives the mode engine with scripted conversations
so you can watch recognition, mode transitions, history and analytics working
end to end without a real client.

Usage:
    # Make sure the engine is running first:
    #   python -m modecore.main
    # Then in a separate terminal:
    python scripts/simulate.py                     # default: cycle all scenarios
    python scripts/simulate.py --scenario debug    # specific scenario
    python scripts/simulate.py --loop              # repeat forever
    python scripts/simulate.py --speed 2.0         # 2× faster
"""

from __future__ import annotations

import argparse
import json
import random
import time
import urllib.error
import urllib.request
import uuid
from typing import Iterator

API = "http://127.0.0.1:8765"


# ---------------------------------------------------------------------------
# Low-level HTTP helpers
# ---------------------------------------------------------------------------

def _request(path: str, body: dict | None = None, method: str = "POST") -> dict | None:
    try:
        data = json.dumps(body).encode() if body is not None else None
        req = urllib.request.Request(
            f"{API}{path}",
            data=data,
            headers={"Content-Type": "application/json"},
            method=method,
        )
        with urllib.request.urlopen(req, timeout=3) as r:
            return json.loads(r.read())
    except (urllib.error.URLError, OSError) as e:
        print(f"  [!] Engine unreachable: {e}")
        return None


def _get(path: str) -> dict | None:
    try:
        with urllib.request.urlopen(f"{API}{path}", timeout=3) as r:
            return json.loads(r.read())
    except (urllib.error.URLError, OSError, ValueError):
        return None


def interact(session_id: str, user_id: str, text: str, errors: int = 0) -> dict | None:
    return _request("/interact", {
        "input": text,
        "telemetry": {
            "session_id": session_id,
            "user_id": user_id,
            "recent_errors_count": errors,
            "time_of_day": time.localtime().tm_hour,
        },
    })


# ---------------------------------------------------------------------------
# Scenario generators: each yields (input, recent error count, delay)
# ---------------------------------------------------------------------------

def scenario_debug(speed: float = 1.0) -> Iterator[tuple[str, int, float]]:
    """A bug hunt: error report, follow-ups, then tests."""
    yield "fix this bug, I got a stack trace", 1, 1.5 / speed
    yield "TypeError: unsupported operand type(s) for +: 'int' and 'str'", 2, 1.5 / speed
    yield "ok thanks", 0, 1.0 / speed
    yield "now write unit tests to verify the fix", 0, 1.5 / speed
    yield "please review my code before I merge", 0, 1.5 / speed


def scenario_performance(speed: float = 1.0) -> Iterator[tuple[str, int, float]]:
    """Optimisation work that starts while errors are still fresh."""
    yield "optimize this loop", 1, 1.5 / speed
    yield "the service is slow and memory usage keeps growing", 0, 1.5 / speed
    yield "compare redis vs memcached for caching", 0, 1.5 / speed
    yield "analyze the latency numbers: 120ms p50, 900ms p99", 0, 1.5 / speed


def scenario_creative(speed: float = 1.0) -> Iterator[tuple[str, int, float]]:
    """From ideas to a plan."""
    yield "brainstorm some ideas for a new onboarding flow", 0, 1.5 / speed
    yield "design a wireframe for the signup page layout", 0, 1.5 / speed
    yield "plan the milestones for next quarter", 0, 1.5 / speed
    yield "implement the signup form in python", 0, 1.5 / speed


def scenario_learning(speed: float = 1.0) -> Iterator[tuple[str, int, float]]:
    """A learner asking questions, then reflecting."""
    yield "what is a closure?", 0, 1.5 / speed
    yield "teach me the basics of asyncio, I'm a beginner", 0, 1.5 / speed
    yield "research best practice for structuring tests", 0, 1.5 / speed
    yield "looking back, what lessons learned should I note?", 0, 1.5 / speed


SCENARIOS = {
    "debug": scenario_debug,
    "performance": scenario_performance,
    "creative": scenario_creative,
    "learning": scenario_learning,
}

CYCLE = ["debug", "performance", "creative", "learning"]


# ---------------------------------------------------------------------------
# Runner
# ---------------------------------------------------------------------------

def run_scenario(name: str, speed: float, user_id: str) -> None:
    gen_fn = SCENARIOS[name]
    session_id = f"sim-{name}-{uuid.uuid4().hex[:6]}"
    print(f"\n{'─' * 60}")
    print(f"  SCENARIO: {name.upper()}  (session {session_id})")
    print(f"{'─' * 60}")

    for text, errors, delay in gen_fn(speed):
        body = interact(session_id, user_id, text, errors)
        if body is None:
            print(f"  ✗ {text}")
        else:
            rec = body["recognition"]
            conf = rec["confidence"]
            bar = "█" * int(conf * 20) + "░" * (20 - int(conf * 20))
            arrow = "→" if body["switched"] else "="
            print(f"  ✓ [{bar}] {int(conf*100):3d}%  {arrow} {body['current_mode']:<14}  {text}")
        time.sleep(delay * random.uniform(0.8, 1.2))

    _request(f"/sessions/{session_id}", method="DELETE")
    summary = _get(f"/history/sessions/{session_id}/summary")
    if summary:
        print(
            f"  Σ transitions={summary['total_mode_transitions']}  "
            f"modes={len(summary['unique_modes_used'])}  "
            f"most used={summary['most_used_mode']}  "
            f"avg confidence={summary['average_confidence']:.2f}"
        )


def main() -> None:
    parser = argparse.ArgumentParser(description="Mode engine conversation simulator")
    parser.add_argument(
        "--scenario",
        choices=list(SCENARIOS.keys()) + ["cycle"],
        default="cycle",
        help="Which scenario to run (default: cycle through all)",
    )
    parser.add_argument("--user", default="sim-user", help="User id to record history under")
    parser.add_argument("--loop", action="store_true", help="Repeat indefinitely")
    parser.add_argument("--speed", type=float, default=1.0, help="Speed multiplier (default 1.0)")
    args = parser.parse_args()

    # Check engine is up
    health = _get("/health")
    if not health:
        print(f"[!] Cannot reach engine at {API}")
        print("    Start it first: python -m modecore.main")
        return
    print(f"[✓] Engine connected — v{health.get('version', '?')}, {health.get('modes', '?')} modes")
    print(f"    Speed: {args.speed}×  |  Scenario: {args.scenario}")

    sequence = CYCLE if args.scenario == "cycle" else [args.scenario]

    while True:
        for name in sequence:
            run_scenario(name, args.speed, args.user)
        if not args.loop:
            break
        print("\n[↺] Looping...\n")
        time.sleep(2.0)

    profile = _get(f"/analytics/users/{args.user}")
    if profile:
        top = ", ".join(f"{p['mode_id']} {p['percentage']:.0f}%" for p in profile["mode_preferences"][:3])
        print(f"\n[✓] Simulation complete. Top modes for {args.user}: {top}")
    else:
        print("\n[✓] Simulation complete.")


if __name__ == "__main__":
    main()
