#!/usr/bin/env python3
"""
esrflow: Minimal CLI for running the upscaler

Commands:
  esrflow run CFG    # run an upscale described by a YAML config
  esrflow args CFG   # print the compiled upscaler arguments
"""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from threading import Event
from typing import Optional

from esrflow.core.configuration import ConfigurationLoader, default_config_path
from esrflow.core.errors import ConfigurationError, InputNotFoundError, UpscalerLaunchError
from esrflow.core.invocation import UpscaleInputArgs
from esrflow.core.models import UpscaleResult
from esrflow.core.orchestrator import submit_upscale
from esrflow.utils.logging_config import current_log_file, setup_logging

log = logging.getLogger("esrflow")


def _load(args: argparse.Namespace) -> UpscaleInputArgs:
    overrides = {
        "input": getattr(args, "input", None),
        "output": getattr(args, "output", None),
        "executable": getattr(args, "executable", None),
    }
    return ConfigurationLoader(Path(args.config)).load_configuration(overrides)


def _run_with_progress(upscale_args: UpscaleInputArgs, cancel: Event, show_progress: bool) -> UpscaleResult:
    if not show_progress:
        future = submit_upscale(upscale_args, cancel_event=cancel)
        return _wait(future, cancel)

    from rich.progress import BarColumn, Progress, TaskProgressColumn, TextColumn, TimeElapsedColumn

    progress = Progress(
        TextColumn("[bold]Upscaling[/]"),
        BarColumn(bar_width=None),
        TaskProgressColumn(),
        TimeElapsedColumn(),
    )
    with progress:
        task_id = progress.add_task("upscale", total=1.0)
        future = submit_upscale(
            upscale_args,
            on_progress=lambda p: progress.update(task_id, completed=p),
            cancel_event=cancel,
        )
        return _wait(future, cancel)


def _wait(future, cancel: Event) -> UpscaleResult:
    while True:
        try:
            return future.result()
        except KeyboardInterrupt:
            # keep waiting; the run returns promptly once the process is killed
            log.warning("Interrupted; cancelling upscale")
            cancel.set()


def cmd_run(args: argparse.Namespace) -> int:
    setup_logging(level=args.log_level)
    try:
        upscale_args = _load(args)
    except (ConfigurationError, FileNotFoundError) as e:
        log.error("Invalid configuration: %s", e)
        print(f"error: {e}", file=sys.stderr)
        return 1

    cancel = Event()
    try:
        result = _run_with_progress(upscale_args, cancel, show_progress=args.progress)
    except InputNotFoundError as e:
        log.error("Input not found: %s", e.filename)
        print(f"error: input not found: {e.filename}", file=sys.stderr)
        return 1
    except UpscalerLaunchError as e:
        log.error("Launch failed: %s", e)
        print(f"error: {e}", file=sys.stderr)
        return 1

    if result.cancelled:
        print("upscale cancelled", file=sys.stderr)
        return 130
    if not result.succeeded:
        print(f"upscale failed (exit code {result.exit_code}):", file=sys.stderr)
        print(result.error_message or "", file=sys.stderr)
        print(f"see log: {current_log_file()}", file=sys.stderr)
        return result.exit_code if result.exit_code > 0 else 1
    print(f"upscaled {upscale_args.input_path} -> {upscale_args.output_path}")
    return 0


def cmd_args(args: argparse.Namespace) -> int:
    try:
        upscale_args = _load(args)
    except (ConfigurationError, FileNotFoundError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    print(upscale_args.build_args().strip())
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="esrflow", description="Run the upscaler with progress and cancellation")
    sub = parser.add_subparsers(dest="cmd")

    p_run = sub.add_parser("run", help="Run an upscale from a YAML config")
    p_run.add_argument("config", nargs="?", default=str(default_config_path()), help="Path to upscale YAML config (default: esrflow.yaml)")
    p_run.add_argument("-i", "--input", help="Override the input file or directory")
    p_run.add_argument("-o", "--output", help="Override the output file or directory")
    p_run.add_argument("--executable", help="Path to the upscaler executable")
    p_run.add_argument("--no-progress", dest="progress", action="store_false", default=True, help="Disable the progress bar")
    p_run.add_argument("--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR"], default="INFO")
    p_run.set_defaults(func=cmd_run)

    p_args = sub.add_parser("args", help="Print the compiled upscaler arguments")
    p_args.add_argument("config", nargs="?", default=str(default_config_path()), help="Path to upscale YAML config (default: esrflow.yaml)")
    p_args.add_argument("-i", "--input", help="Override the input file or directory")
    p_args.add_argument("-o", "--output", help="Override the output file or directory")
    p_args.add_argument("--executable", help="Path to the upscaler executable")
    p_args.set_defaults(func=cmd_args)

    args = parser.parse_args(argv)
    if not hasattr(args, "func"):
        parser.print_help()
        return 1
    return int(args.func(args))


if __name__ == "__main__":
    sys.exit(main())
