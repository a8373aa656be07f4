"""Command-line interface: run the signaling server, a leader or a follower."""

import argparse
import asyncio
import sys
from typing import Optional

from .browser import BrowserSession, BrowserSessionConfig
from .client.applier import PlaywrightChangeApplier
from .client.follower import FollowerClient
from .client.leader import LeaderClient
from .client.sources import JsonlChangeSource
from .config import MirrorSettings, get_settings
from .protocol.errors import MirrorError
from .server.signaling import SignalingServer
from .utils.logging import configure_from_settings, get_logger, log_operation

logger = get_logger(__name__)


async def run_server(settings: MirrorSettings) -> None:
    """Run the signaling server until interrupted."""
    server = SignalingServer.from_settings(settings)
    await server.serve_forever()


async def run_leader(settings: MirrorSettings, changes_path: str, delay: float = 0.0) -> int:
    """Replay a JSON-lines recording as the leader's change stream."""
    leader = LeaderClient.from_settings(settings)
    try:
        await leader.start()
        with log_operation("mirror", logger, recording=changes_path) as op:
            op["sent"] = await leader.mirror(JsonlChangeSource(changes_path, delay=delay))
        return op["sent"]
    finally:
        await leader.close()


async def run_follower(
    settings: MirrorSettings,
    storage: Optional[str] = None,
    url: Optional[str] = None,
    trace_output: Optional[str] = None,
    headless: bool = False,
) -> None:
    """Open a browser and mirror the leader until the server closes the session."""
    browser = BrowserSession(
        BrowserSessionConfig(
            headless=headless,
            browser_ws_endpoint=settings.browser_ws_endpoint,
            storage_state=storage,
            start_url=url,
            trace_output=trace_output,
        )
    )
    await browser.start()

    applier = PlaywrightChangeApplier(browser.context, browser.page)
    follower = FollowerClient.from_settings(settings, applier, on_stop=browser.stop)
    try:
        await follower.start()
        await follower.wait_closed()
    finally:
        # on_stop already ran on an announced shutdown
        if not follower.stopping:
            await follower.close()
            await browser.stop()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="playwright-mirror",
        description="Mirror one browser session onto several followers",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Log level (default: INFO, or MIRROR_LOG_LEVEL)",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        default=None,
        help="Render logs as JSON",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    server = commands.add_parser("server", help="Start the signaling server")
    server.add_argument("--host", "-H", help="Host to bind")
    server.add_argument("--port", "-p", type=int, help="Port to bind (0 = ephemeral)")
    server.add_argument(
        "--strict",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Restart the session whenever the parties change",
    )
    server.add_argument(
        "--expected-followers", "-e",
        type=int,
        help="Followers required to start the session",
    )
    server.add_argument(
        "--blocked-action",
        action="append",
        dest="blocked_actions",
        metavar="NAME",
        help="Leader action name not to relay (repeatable)",
    )

    leader = commands.add_parser("leader", help="Replay a recording as the leader")
    leader.add_argument("--changes", "-c", required=True, help="JSON-lines recording")
    leader.add_argument("--ws-endpoint", "-w", help="Signaling server endpoint")
    leader.add_argument(
        "--delay",
        type=float,
        default=0.0,
        help="Seconds between recorded changes (default: 0)",
    )

    follower = commands.add_parser("follower", help="Start a follower browser")
    follower.add_argument("--ws-endpoint", "-w", help="Signaling server endpoint")
    follower.add_argument("--browser-ws-endpoint", "-b", help="Remote browser endpoint")
    follower.add_argument("--storage", "-s", help="Storage state file to load")
    follower.add_argument("--url", "-u", help="URL to open first")
    follower.add_argument("--trace-output", help="Save a Playwright trace here")
    follower.add_argument("--headless", action="store_true", help="Run the browser headless")

    return parser


def settings_from_args(args: argparse.Namespace) -> MirrorSettings:
    return get_settings(
        log_level=args.log_level,
        log_json=args.json_logs,
        host=getattr(args, "host", None),
        port=getattr(args, "port", None),
        strict=getattr(args, "strict", None),
        expected_followers=getattr(args, "expected_followers", None),
        blocked_actions=getattr(args, "blocked_actions", None),
        ws_endpoint=getattr(args, "ws_endpoint", None),
        browser_ws_endpoint=getattr(args, "browser_ws_endpoint", None),
    )


def main(argv: Optional[list[str]] = None) -> int:
    """Command-line entry point; returns the process exit code."""
    args = build_parser().parse_args(argv)
    settings = settings_from_args(args)
    configure_from_settings(settings)

    try:
        if args.command == "server":
            asyncio.run(run_server(settings))
        elif args.command == "leader":
            asyncio.run(run_leader(settings, args.changes, delay=args.delay))
        else:
            asyncio.run(
                run_follower(
                    settings,
                    storage=args.storage,
                    url=args.url,
                    trace_output=args.trace_output,
                    headless=args.headless,
                )
            )
    except MirrorError as e:
        logger.error("Mirroring failed", error=str(e), error_type=type(e).__name__)
        return 1
    except KeyboardInterrupt:
        return 130

    return 0


def cli() -> None:
    sys.exit(main())


if __name__ == "__main__":
    cli()
