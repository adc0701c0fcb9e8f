#!/usr/bin/env python3
"""
Launch the grounding API under uvicorn.
"""

import argparse
import sys

import uvicorn

from groundstream.core.config import validate_config


def main():
    parser = argparse.ArgumentParser(
        description="Run the Groundstream API server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s                          # Serve on 127.0.0.1:8000
  %(prog)s --host 0.0.0.0 --port 9000
  %(prog)s --check-config           # Report configuration issues and exit
        """
    )
    parser.add_argument("--host", default="127.0.0.1", help="Bind address")
    parser.add_argument("--port", type=int, default=8000, help="Bind port")
    parser.add_argument("--reload", action="store_true", help="Reload on code changes")
    parser.add_argument("--check-config", action="store_true", help="Validate configuration and exit")

    args = parser.parse_args()

    issues = validate_config()
    for issue in issues:
        print(f"⚠️  {issue}")

    if args.check_config:
        return 1 if issues else 0

    uvicorn.run("groundstream.api.main:app", host=args.host, port=args.port, reload=args.reload)
    return 0


if __name__ == "__main__":
    sys.exit(main())
