#!/usr/bin/env python3
"""Command line entrypoint for mirror-clone."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

from mirror_clone.__version__ import __version__ as VERSION
from mirror_clone.config import PLAN_ALL, PLAN_DIFF, TransferConfig, load_transfer_config
from mirror_clone.exceptions import MirrorError
from mirror_clone.logging_config import LogContext, add_logging_args, configure_logging
from mirror_clone.mission import Progress, build_client, new_mission
from mirror_clone.snapshot import SnapshotPath, sort_snapshot
from mirror_clone.storage.pypi import DEFAULT_PACKAGE_BASE, DEFAULT_SIMPLE_BASE
from mirror_clone.storage.registry import build_storage, list_storages
from mirror_clone.transfer import SimpleDiffTransfer, TransferSummary

logger = logging.getLogger("mirror_clone.cli")


def _add_backend_args(parser: argparse.ArgumentParser) -> None:
    group = parser.add_argument_group("backend options")
    group.add_argument("--simple-base", default=DEFAULT_SIMPLE_BASE, help="Base of simple index")
    group.add_argument("--package-base", default=DEFAULT_PACKAGE_BASE, help="Base of package index")
    group.add_argument("--rsync-base", default=None, help="rsync path or module to list")
    group.add_argument("--local-root", default=None, help="Local directory of the target")
    group.add_argument(
        "--debug",
        action="store_true",
        help="Only scan a bounded prefix of the source (fast local testing).",
    )


def _add_config_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--config", default=None, help="YAML file with transfer settings")
    parser.add_argument("--concurrent-resolve", type=int, default=None)
    parser.add_argument("--concurrent-transfer", type=int, default=None)
    parser.add_argument("--object-timeout", type=float, default=None)
    parser.add_argument("--plan", choices=[PLAN_DIFF, PLAN_ALL], default=None)
    parser.add_argument(
        "--progress",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Show progress bars (default: off).",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=f"mirror-clone v{VERSION}")
    add_logging_args(parser)
    sub = parser.add_subparsers(dest="command", required=True)

    transfer = sub.add_parser("transfer", help="Mirror objects missing from the target.")
    transfer.add_argument("--source", required=True, choices=list_storages("source"))
    transfer.add_argument("--target", required=True, choices=list_storages("target"))
    transfer.add_argument(
        "--strict",
        "--fail-on-error",
        dest="strict",
        action="store_true",
        help="Exit non-zero if any object failed to transfer.",
    )
    transfer.add_argument("--summary", default=None, help="Write the run summary as JSON here")
    _add_config_args(transfer)
    _add_backend_args(transfer)

    snapshot = sub.add_parser("snapshot", help="List the keys of one storage.")
    snapshot.add_argument("--storage", required=True, choices=list_storages())
    snapshot.add_argument("--output", default=None, help="Write keys here (default: stdout)")
    _add_config_args(snapshot)
    _add_backend_args(snapshot)
    return parser


def backend_kwargs(name: str, args: argparse.Namespace) -> dict[str, Any]:
    if name == "pypi":
        return {
            "simple_base": args.simple_base,
            "package_base": args.package_base,
            "debug": args.debug,
        }
    if name == "rsync":
        if not args.rsync_base:
            raise MirrorError("--rsync-base is required for the rsync storage", code="usage")
        return {"base": args.rsync_base, "debug": args.debug}
    if name == "local":
        if not args.local_root:
            raise MirrorError("--local-root is required for the local storage", code="usage")
        return {"root": Path(args.local_root)}
    raise MirrorError(f"unsupported storage: {name}", code="usage")


def _config_from_args(args: argparse.Namespace) -> TransferConfig:
    config_path = Path(args.config).expanduser() if args.config else None
    return load_transfer_config(
        config_path,
        concurrent_resolve=args.concurrent_resolve,
        concurrent_transfer=args.concurrent_transfer,
        object_timeout=args.object_timeout,
        plan=args.plan,
        progress=args.progress,
    )


async def run_transfer(args: argparse.Namespace) -> TransferSummary:
    config = _config_from_args(args)
    source = build_storage(args.source, **backend_kwargs(args.source, args))
    target = build_storage(args.target, **backend_kwargs(args.target, args))
    engine = SimpleDiffTransfer(source, target, config)
    with LogContext(source=args.source, target=args.target):
        return await engine.transfer()


async def run_snapshot(args: argparse.Namespace) -> list[SnapshotPath]:
    config = _config_from_args(args)
    storage = build_storage(args.storage, **backend_kwargs(args.storage, args))
    async with build_client() as client:
        mission = new_mission(
            client,
            f"snapshot.{args.storage}",
            progress=Progress.create(f"[{args.storage}]", enabled=config.progress),
        )
        snapshot = await storage.snapshot(mission, config.snapshot_config)
    return await sort_snapshot(snapshot)


def _write_lines(keys: list[SnapshotPath], output: str | None) -> None:
    text = "".join(f"{key}\n" for key in keys)
    if output:
        Path(output).write_text(text, encoding="utf-8")
    else:
        sys.stdout.write(text)


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(level=args.log_level, fmt=args.log_format)
    try:
        if args.command == "snapshot":
            _write_lines(asyncio.run(run_snapshot(args)), args.output)
            return 0
        summary = asyncio.run(run_transfer(args))
    except MirrorError as exc:
        logger.error("%s", exc, extra=exc.as_log_fields())
        return 1
    except KeyboardInterrupt:
        logger.error("interrupted")
        return 130
    if args.summary:
        Path(args.summary).write_text(json.dumps(summary.to_dict(), indent=2), encoding="utf-8")
    if args.strict and summary.failed:
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
