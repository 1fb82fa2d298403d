import argparse
import asyncio
import sys

import uvicorn
from dotenv import load_dotenv

# Load environment variables before any module reads its config
load_dotenv()

from runner import config, metrics
from runner.automation_loop import ProcessingMode
from runner.logger import log
from runner.services import build_services, create_backend

def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Mobile match agent: automate menus and tile/domino matching.")
    parser.add_argument(
        "mode",
        choices=["automation", "learning", "replay", "serve"],
        help="automation plays on its own, learning records your actions, replay re-runs recorded actions, serve starts the control API",
    )
    parser.add_argument("--backend", default=config.DEVICE_BACKEND, choices=["adb", "playwright"])
    parser.add_argument("--policy", default=config.GRID_POLICY, choices=["pairwise", "hand_vs_board"])
    parser.add_argument("--duration", type=float, default=None, help="Stop after this many seconds (default: until Ctrl-C)")
    parser.add_argument("--metrics-port", type=int, default=config.PROMETHEUS_METRICS_PORT, help="0 disables the metrics endpoint")
    parser.add_argument("--host", default="127.0.0.1", help="serve: bind address")
    parser.add_argument("--port", type=int, default=8000, help="serve: HTTP port")
    return parser.parse_args(argv)

async def _wait(duration):
    if duration is None:
        await asyncio.Event().wait()
    else:
        await asyncio.sleep(duration)

async def run(args) -> int:
    services = build_services(backend=create_backend(args.backend), grid_policy=args.policy)
    await services.start()
    if not services.backend.is_connected():
        print("❌ Error: device backend is not connected")
        await services.stop()
        return 1

    try:
        if args.mode == "replay":
            actions = services.store.load_actions()
            print(f"🔁 Replaying {len(actions)} recorded actions...")
            results = await services.executor.execute_sequence(actions)
            failed = [r for r in results if not r["ok"]]
            print(f"🏁 Replay finished: {len(results) - len(failed)}/{len(actions)} actions succeeded")
            return 1 if failed else 0

        mode = ProcessingMode.AUTOMATION if args.mode == "automation" else ProcessingMode.LEARNING
        if not await services.loop.set_mode(mode):
            return 1
        print(f"🚀 {mode.value} started. Press Ctrl-C to stop.")
        await _wait(args.duration)
        return 0
    finally:
        await services.stop()
        log("INFO", "agent_exit", "Agent stopped", status=services.loop.status().model_dump(mode="json"))

def main(argv=None) -> int:
    args = parse_args(argv)
    if args.mode == "serve":
        # the API wires its own services on startup
        uvicorn.run("api.main:app", host=args.host, port=args.port)
        return 0
    if args.metrics_port:
        metrics.start_metrics_server(args.metrics_port)
    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        print("\n🛑 Execution stopped by user.")
        return 0

if __name__ == "__main__":
    sys.exit(main())
