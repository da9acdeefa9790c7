#!/usr/bin/env python3
"""
HTTP Latency Lab - Main entry point for running benchmarks.

Usage:
    python main.py URL [URL ...] [options]

Every URL is sampled in turn (warmup, then bounded-concurrency measured
requests) and the endpoints are ranked by latency. Ctrl+C stops the run
gracefully; whatever was collected is still ranked and printed.
"""

import argparse
import asyncio
import contextlib
import json
import logging
import signal
import sys
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Add http-latency-lab to path for package imports
sys.path.insert(0, str(Path(__file__).parent / "http-latency-lab"))

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def read_urls(args) -> list[str]:
    """Positional URLs, plus one URL per line from --url-file."""
    urls = list(args.urls)
    if args.url_file:
        with open(args.url_file) as f:
            urls.extend(line.strip() for line in f if line.strip() and not line.startswith("#"))
    return urls


def progress_printer(stream=None):
    """Print progress to stderr at every 10% step."""
    last_step = 0

    def on_progress(fraction: float) -> None:
        nonlocal last_step
        step = int(fraction * 10)
        if step > last_step:
            last_step = step
            print(f"Progress: {step * 10}%", file=stream or sys.stderr, flush=True)

    return on_progress


async def run_benchmark(args) -> int:
    """Run the benchmark and print the ranking."""
    from harness import BenchmarkConfig, BenchmarkRunner, ConsoleReporter
    from instrumentation import AiohttpTransport, TracingConfig, init_tracing, shutdown_tracing

    config = BenchmarkConfig.from_env(
        num_attempts=args.attempts,
        max_concurrency=args.concurrency,
        warmup_min_attempts=args.warmup_min,
        warmup_max_attempts=args.warmup_max,
        request_timeout_seconds=args.timeout,
        output_root=args.output_root,
    )
    reporter = ConsoleReporter(use_color=not args.no_color and sys.stdout.isatty())
    quiet = args.quiet or args.json

    urls = read_urls(args)
    cancel_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    # Not available on every platform; KeyboardInterrupt still ends the run there.
    with contextlib.suppress(NotImplementedError):
        loop.add_signal_handler(signal.SIGINT, cancel_event.set)

    if args.trace:
        init_tracing(TracingConfig(service_name="http-latency-lab"))

    try:
        async with AiohttpTransport(timeout_seconds=config.request_timeout_seconds) as transport:
            runner = BenchmarkRunner(
                transport,
                config,
                on_progress=None if quiet else progress_printer(),
                on_failure=lambda notice: print(reporter.format_failure(notice), file=sys.stderr),
                verbose=not quiet,
            )
            project = await runner.run(urls, cancel_event)
    finally:
        with contextlib.suppress(NotImplementedError):
            loop.remove_signal_handler(signal.SIGINT)
        if args.trace:
            shutdown_tracing()

    if not project.results:
        print("No valid URLs to benchmark", file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps(project.to_dict(), indent=2))
    elif args.details:
        print(reporter.full_report(project))
    else:
        print(reporter.ranking_table(project))

    if project.cancelled:
        print("\nBenchmark interrupted by user", file=sys.stderr)
        return 1
    return 0


def main():
    parser = argparse.ArgumentParser(
        description="HTTP Latency Lab - Benchmark and rank HTTP endpoint latency",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python main.py https://example.com https://example.org
    python main.py --url-file urls.txt --attempts 200 --concurrency 10
    python main.py https://example.com --json > report.json

Environment (also read from .env):
    LATENCY_LAB_ATTEMPTS, LATENCY_LAB_CONCURRENCY, LATENCY_LAB_WARMUP_MIN,
    LATENCY_LAB_WARMUP_MAX, LATENCY_LAB_TIMEOUT, LATENCY_LAB_OUTPUT_ROOT
        """,
    )

    parser.add_argument(
        "urls",
        nargs="*",
        help="Absolute URLs to benchmark (invalid entries are skipped)",
    )
    parser.add_argument(
        "--url-file",
        type=Path,
        help="File with one URL per line",
    )
    parser.add_argument(
        "--attempts",
        type=int,
        help="Measured requests per endpoint (default: 100)",
    )
    parser.add_argument(
        "--concurrency",
        type=int,
        help="Maximum in-flight requests per endpoint (default: 20)",
    )
    parser.add_argument(
        "--warmup-min",
        type=int,
        help="Warmup requests before the stop heuristic applies (default: 10)",
    )
    parser.add_argument(
        "--warmup-max",
        type=int,
        help="Maximum warmup requests (default: 20)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        help="Per-request timeout in seconds (default: 30)",
    )
    parser.add_argument(
        "--output-root",
        type=Path,
        help="Root directory for run output (default: ~/Documents/http-latency-lab)",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the report artifact as JSON",
    )
    parser.add_argument(
        "--details",
        action="store_true",
        help="Print per-endpoint statistics after the ranking table",
    )
    parser.add_argument(
        "--trace",
        action="store_true",
        help="Export OpenTelemetry spans to the console",
    )
    parser.add_argument(
        "--no-color",
        action="store_true",
        help="Disable ANSI colors",
    )
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="Only print the final report",
    )
    parser.add_argument(
        "--log-level",
        default="ERROR",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: ERROR; request failures are printed as warnings anyway)",
    )

    args = parser.parse_args()
    if not args.urls and not args.url_file:
        parser.error("at least one URL or --url-file is required")

    logging.basicConfig(level=getattr(logging, args.log_level), format=LOG_FORMAT)

    try:
        sys.exit(asyncio.run(run_benchmark(args)))
    except KeyboardInterrupt:
        print("\nBenchmark interrupted by user")
        sys.exit(1)
    except Exception as e:
        print(f"\nError: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
