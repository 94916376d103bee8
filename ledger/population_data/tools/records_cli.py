"""
Records CLI tool for the population data ledger.

One-shot administrative commands against a local state store:
- init: Seed the fixed initial records
- create: Create a record
- read: Print the current record
- update: Replace the current record
- history: Print every version of a record, oldest first

Usage:
    population-data init
    population-data create --passport-number 3 --name Ivan --last-name Petrov ...
    population-data read 3
    population-data update 3 --name Ivan --last-name Sidorov ...
    population-data history 3 --with-metadata

Invariants:
    - Output is JSON on stdout; errors are JSON on stderr
    - Exit codes: 0 ok, 1 user-correctable, 2 corrupt data, 3 backend unavailable
    - Commands never prompt for input

How to change safely:
    - Add new commands, don't modify existing ones
    - Keep output format stable for scripting
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import replace
from typing import Any, Sequence

from ..config import ObservabilityConfig, ServerConfig, StateBackend, StorageConfig
from ..errors import (
    BackendUnavailableError,
    CorruptRecordError,
    PopulationDataError,
)
from ..main import setup_logging
from ..records import MUTABLE_FIELDS, PersonRecord, RecordService, seed_ledger
from ..state import StateStoreError, create_state_store

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_USER_ERROR = 1
EXIT_CORRUPT = 2
EXIT_BACKEND = 3


class RecordsCLI:
    """CLI operations over a RecordService.

    Each method performs one service operation and returns a JSON-ready
    value.

    Example:
        >>> cli = RecordsCLI(service)
        >>> await cli.init()
        {'seeded': 2}
    """

    def __init__(self, service: RecordService) -> None:
        self.service = service

    async def init(self) -> dict[str, int]:
        return {"seeded": await seed_ledger(self.service)}

    async def create(self, record: PersonRecord) -> dict[str, str]:
        return (await self.service.create(record)).to_dict()

    async def read(self, passport_number: str) -> dict[str, str]:
        return (await self.service.read(passport_number)).to_dict()

    async def update(self, passport_number: str, record: PersonRecord) -> dict[str, str]:
        return (await self.service.update(passport_number, record)).to_dict()

    async def history(self, passport_number: str, with_metadata: bool = False) -> list[dict[str, Any]]:
        """Full version log, optionally with sequence/tx_id/timestamp."""
        history = await self.service.history(passport_number)
        if with_metadata:
            return [v.to_dict() for v in await history.collect_versions()]
        return [r.to_dict() for r in await history.collect()]


def _add_field_arguments(parser: argparse.ArgumentParser) -> None:
    for name in MUTABLE_FIELDS:
        parser.add_argument(f"--{name.replace('_', '-')}", dest=name, required=True)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="population-data",
        description="Population data ledger administration tool",
    )
    parser.add_argument("--data-dir", help="Directory for the state database (default: $DATA_DIR)")
    parser.add_argument(
        "--backend",
        choices=[StateBackend.SQLITE.value],
        help="State backend (default: $STATE_BACKEND; only sqlite persists between commands)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("init", help="Seed the fixed initial records")

    create_parser = subparsers.add_parser("create", help="Create a record")
    create_parser.add_argument("--passport-number", dest="passport_number", required=True)
    _add_field_arguments(create_parser)

    read_parser = subparsers.add_parser("read", help="Print the current record")
    read_parser.add_argument("passport_number")

    update_parser = subparsers.add_parser("update", help="Replace the current record")
    update_parser.add_argument("passport_number")
    _add_field_arguments(update_parser)

    history_parser = subparsers.add_parser("history", help="Print every version of a record")
    history_parser.add_argument("passport_number")
    history_parser.add_argument(
        "--with-metadata",
        action="store_true",
        help="Include sequence, tx_id and timestamp for each version",
    )

    return parser


def _storage_config(args: argparse.Namespace) -> StorageConfig:
    storage = StorageConfig.from_env()
    if args.data_dir:
        storage = replace(storage, data_dir=args.data_dir)
    if args.backend:
        storage = replace(storage, backend=StateBackend(args.backend))
    if storage.backend != StateBackend.SQLITE:
        raise ValueError(
            f"state backend {storage.backend.value!r} does not persist between commands; use sqlite"
        )
    return storage


def _record_from_args(args: argparse.Namespace) -> PersonRecord:
    return PersonRecord(
        passport_number=args.passport_number,
        **{name: getattr(args, name) for name in MUTABLE_FIELDS},
    )


async def _execute(args: argparse.Namespace, config: ServerConfig) -> Any:
    store = create_state_store(config)
    try:
        await store.connect()
    except StateStoreError as e:
        raise BackendUnavailableError(f"cannot open state store: {e}", operation="connect") from e

    try:
        cli = RecordsCLI(RecordService(store))

        if args.command == "init":
            return await cli.init()
        elif args.command == "create":
            return await cli.create(_record_from_args(args))
        elif args.command == "read":
            return await cli.read(args.passport_number)
        elif args.command == "update":
            return await cli.update(args.passport_number, _record_from_args(args))
        elif args.command == "history":
            return await cli.history(args.passport_number, with_metadata=args.with_metadata)
        else:
            raise ValueError(f"Unknown command: {args.command}")
    finally:
        await store.close()


def exit_code_for(error: PopulationDataError) -> int:
    if isinstance(error, CorruptRecordError):
        return EXIT_CORRUPT
    if isinstance(error, BackendUnavailableError):
        return EXIT_BACKEND
    return EXIT_USER_ERROR


def run(argv: Sequence[str] | None = None) -> int:
    """Run one CLI command.

    Args:
        argv: Command-line arguments (defaults to sys.argv[1:])

    Returns:
        Process exit code
    """
    args = build_parser().parse_args(argv)

    try:
        config = ServerConfig(storage=_storage_config(args))
        config.validate()
    except ValueError as e:
        print(json.dumps({"error": str(e), "error_code": "CONFIG_ERROR"}), file=sys.stderr)
        return EXIT_USER_ERROR

    try:
        result = asyncio.run(_execute(args, config))
    except PopulationDataError as e:
        print(json.dumps(e.to_dict(), ensure_ascii=False), file=sys.stderr)
        return exit_code_for(e)

    print(json.dumps(result, indent=2, ensure_ascii=False))
    return EXIT_OK


def main() -> None:
    """CLI entry point for the records tool."""
    observability = ObservabilityConfig.from_env()
    setup_logging(replace(observability, log_format="text"))
    sys.exit(run())


if __name__ == "__main__":
    main()
