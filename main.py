"""Storyloom — dev launcher. Starts the API server (and optionally the MCP server) in watch mode."""

import argparse
import os
import signal
import subprocess
import sys
from pathlib import Path

from dotenv import load_dotenv

ROOT = Path(__file__).parent
load_dotenv(ROOT / ".env")

HOST = os.getenv("HOST", "0.0.0.0")
BACKEND_PORT = os.getenv("BACKEND_PORT", "13013")


def main():
    parser = argparse.ArgumentParser(description="Storyloom dev launcher")
    parser.add_argument("--data-dir", type=Path, default=None,
                        help="Data storage directory (default: ./data)")
    parser.add_argument("--demo", action="store_true",
                        help="Clean lorebooks and create the demo lorebook")
    parser.add_argument("--mcp", action="store_true",
                        help="Also start the MCP lorebook server (stdio)")
    args = parser.parse_args()

    # Handle --demo: init storage and populate, then continue to dev server
    if args.demo or args.data_dir:
        from backend import store
        data_dir = args.data_dir or Path("data")
        store.init_storage(data_dir)
        if args.demo:
            from backend.demo import create_demo_data
            lorebook_id = create_demo_data()
            print(f"Demo lorebook created: {lorebook_id}")

    # Build env for subprocesses so they pick up the same data dir
    env = os.environ.copy()
    if args.data_dir:
        env["DATA_DIR"] = str(args.data_dir.resolve())

    procs: list[subprocess.Popen] = []

    def shutdown(*_):
        print("\nShutting down...")
        for p in procs:
            p.terminate()
        for p in procs:
            p.wait()
        sys.exit(0)

    signal.signal(signal.SIGINT, shutdown)
    signal.signal(signal.SIGTERM, shutdown)

    print(f"Starting backend on http://localhost:{BACKEND_PORT} ...")
    procs.append(subprocess.Popen(
        ["uv", "run", "uvicorn", "backend.app:app", "--reload", "--host", HOST, "--port", BACKEND_PORT],
        cwd=ROOT, env=env,
    ))

    if args.mcp:
        print("Starting MCP lorebook server ...")
        procs.append(subprocess.Popen(
            ["uv", "run", "python", "-m", "backend.mcp_server"],
            cwd=ROOT, env=env,
        ))

    for p in procs:
        p.wait()


if __name__ == "__main__":
    main()
