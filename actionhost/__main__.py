"""
Command line entry point.

    python -m actionhost               # serve /init and /run
    python -m actionhost selftest      # exercise the engine and exit
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from actionhost.api import ActionRouteBuilder
from actionhost.engine import ActionFunction

logger = logging.getLogger(__name__)


class _EmptyResult(ActionRouteBuilder):
    def configure(self) -> None:
        self.from_().set_body({})


async def _selftest() -> dict:
    function = ActionFunction()
    function.add_route_builder(_EmptyResult())
    function.start()
    return await function.execute({}, {})


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="actionhost", description="Action runtime")
    sub = parser.add_subparsers(dest="command")

    serve = sub.add_parser("serve", help="Serve the init/run endpoints (default)")
    serve.add_argument("--host", default=None, help="Bind address (ACTIONHOST_HOST)")
    serve.add_argument("--port", type=int, default=None, help="Bind port (ACTIONHOST_PORT)")

    sub.add_parser("selftest", help="Run an empty route through the engine")

    args = parser.parse_args(argv)

    if args.command == "selftest":
        result = asyncio.run(_selftest())
        if result != {}:
            print(f"Unexpected self-test result: {result!r}", file=sys.stderr)
            return 1
        print("OK !")
        return 0

    import uvicorn

    from actionhost.app.dependencies import get_settings

    settings = get_settings()
    uvicorn.run(
        "actionhost.app.main:app",
        host=getattr(args, "host", None) or settings.host,
        port=getattr(args, "port", None) or settings.port,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
