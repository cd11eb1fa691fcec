"""Run the Stockroom API under uvicorn.

    python run_server.py --port 8080 --reload
"""
import argparse
import os

import uvicorn


def main(argv=None):
    parser = argparse.ArgumentParser(description="Start the Stockroom backend")
    parser.add_argument("--host", default=os.getenv("STOCKROOM_HOST", "127.0.0.1"))
    parser.add_argument("--port", type=int, default=int(os.getenv("STOCKROOM_PORT", "8080")))
    parser.add_argument("--reload", action="store_true", help="Restart on code changes (development only)")
    parser.add_argument("--log-level", default="info")
    args = parser.parse_args(argv)

    print(f"Starting Stockroom backend on http://{args.host}:{args.port}")
    # uvicorn installs its own SIGINT/SIGTERM handlers and drains requests on shutdown
    uvicorn.run(
        "stockroom.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=args.log_level,
    )


if __name__ == "__main__":
    main()
