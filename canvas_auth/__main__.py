"""
Run the server with uvicorn:

    python -m canvas_auth --host 0.0.0.0 --port 8000

Equivalent to `uvicorn canvas_auth.main:app`. Configuration comes from the
environment / .env (see config.py), not from these flags.
"""

import argparse
from typing import List, Optional

import uvicorn


def main(argv: Optional[List[str]] = None) -> None:
    p = argparse.ArgumentParser(description="Run the Canvas signed request server.")
    p.add_argument("--host", default="127.0.0.1")
    p.add_argument("--port", type=int, default=8000)
    p.add_argument("--workers", type=int, default=1)
    p.add_argument("--reload", action="store_true", help="Reload on code changes (development)")
    args = p.parse_args(argv)

    uvicorn.run(
        "canvas_auth.main:app",
        host=args.host,
        port=args.port,
        workers=args.workers,
        reload=args.reload,
    )


if __name__ == "__main__":
    main()
