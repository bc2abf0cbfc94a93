from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import signal
import sys

from rich.console import Console

from chopper.config import ConfigError, RunConfig, TargetConfig, build_headers, parse_duration
from chopper.loadgen.runner import RunController, RunResult
from chopper.ui.console import WorkerProgress, render_report

logger = logging.getLogger("chopper")

METHODS = ["GET", "POST", "PUT", "DELETE"]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="chopper", description="modern utility for http benchmarking")
    parser.add_argument("-u", "--url", required=True, help="URL to benchmark")
    parser.add_argument("-c", "--concurrency", type=int, default=1, help="Number of requests to perform at once")
    parser.add_argument(
        "-d",
        "--duration",
        default="1h",
        help="Time through which to run the benchmark, e.g. 500ms, 30s, 5m, 1h",
    )
    parser.add_argument(
        "-H",
        "--header",
        action="append",
        default=[],
        help="Append an extra header to the request, as 'Name: value'",
    )
    parser.add_argument("-A", "--useragent", help="User-Agent string to send to the HTTP server")
    parser.add_argument(
        "-i",
        "--ip-address",
        help="IP address to send to the HTTP server as the source of the request (X-Forwarded-For)",
    )
    parser.add_argument(
        "-k",
        "--keep-alive",
        action="store_true",
        help="Reuse existing connections for subsequent requests",
    )
    parser.add_argument("-X", "--request", choices=METHODS, default="GET", help="Request method")
    parser.add_argument(
        "-L",
        "--location",
        action="store_true",
        help="Follow the Location header in case of a 3xx response",
    )
    parser.add_argument("--max-redirects", type=int, default=0, help="Number of redirects to follow before stopping")
    parser.add_argument("-C", "--cookie-jar", action="store_true", help="Keep cookies across a worker's requests")
    parser.add_argument("--timeout", type=float, default=10.0, help="Per-request transport timeout in seconds")
    parser.add_argument("--no-progress", action="store_true", help="Do not render per-worker progress bars")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser


def config_from_args(args: argparse.Namespace) -> RunConfig:
    headers = build_headers(
        args.header,
        user_agent=args.useragent,
        ip_address=args.ip_address,
        keep_alive=args.keep_alive,
    )
    config = RunConfig(
        target=TargetConfig(
            url=args.url,
            method=args.request,
            headers=headers,
            timeout_sec=args.timeout if args.timeout > 0 else None,
        ),
        concurrency=args.concurrency,
        duration_sec=parse_duration(args.duration),
        follow_redirects=args.location,
        max_redirects=args.max_redirects,
        use_cookie_jar=args.cookie_jar,
        keep_alive=args.keep_alive,
    )
    config.validate()
    return config


async def _run(controller: RunController, show_progress: bool, console: Console) -> RunResult:
    loop = asyncio.get_running_loop()
    with contextlib.suppress(NotImplementedError):
        loop.add_signal_handler(signal.SIGINT, controller.stop)
    if not show_progress:
        return await controller.run()
    config = controller.config
    with WorkerProgress(config.concurrency, config.duration_sec, console=console) as progress:
        controller.set_progress(progress.on_progress)
        return await controller.run()


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        config = config_from_args(args)
        controller = RunController(config)
    except ConfigError as exc:
        print(f"chopper: {exc}", file=sys.stderr)
        return 2
    logger.debug("Run configuration: %s", config.to_metadata())

    console = Console()
    result = asyncio.run(_run(controller, not args.no_progress, console))
    render_report(console, result)
    return 0


if __name__ == "__main__":
    sys.exit(main())
