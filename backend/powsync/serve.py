"""Run the API under uvicorn: ``powsync-serve`` or ``python -m powsync.serve``."""

from __future__ import annotations

import argparse
import os

import uvicorn


def main(argv: list[str] | None = None) -> None:
	parser = argparse.ArgumentParser(description="Serve the PoW sync API.")
	parser.add_argument("--host", default=os.getenv("HOST", "127.0.0.1"))
	parser.add_argument("--port", type=int, default=int(os.getenv("PORT", "8000")))
	parser.add_argument("--reload", action="store_true", help="restart on code changes (development)")
	args = parser.parse_args(argv)
	# JSON logging is configured by the app; keep uvicorn from installing its own handlers
	uvicorn.run("powsync.main:app", host=args.host, port=args.port, reload=args.reload, log_config=None)


if __name__ == "__main__":
	main()
