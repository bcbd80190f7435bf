# src/tierstore/cli.py
"""
Command-line interface for tierstore.

Commands:
- ``get ID``: resolve an entity through the tiers (backfilling on the way)
- ``create --role R --description D``: create and write through
- ``edit ID [--description D]``: edit and write through
- ``info``: show the effective configuration with secrets masked

Global flags: ``--config`` (TOML file), ``--json`` (machine-readable output),
``--verbose`` (console logging of every tier call), ``--stats`` (print
per-tier instrumentation statistics after the command).

Exit codes: 0 success, 1 not found or storage failure, 2 invalid input.
"""

import argparse
import asyncio
import json
import logging
import re
import sys
from typing import Any, Dict, List, Optional

from .config import TierStoreConfig, load_config
from .exceptions import ConfigError, EntityValidationError, TierStoreError, WriteThroughError
from .logging_config import configure_logging, log_display
from .models import Entity
from .service import EntityService
from .storage.factory import StorageFactory
from .storage.volatile import MemoryCacheClient

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INVALID = 2

_SECRET_KEYS = ("password", "secret", "token")


class OutputFormatter:
    """Formats CLI output as plain text or JSON."""

    def __init__(self, json_output: bool = False):
        self.json_output = json_output

    def entity(self, entity: Entity) -> str:
        if self.json_output:
            return entity.model_dump_json(indent=2)
        return "\n".join(
            [
                f"id:          {entity.id}",
                f"role:        {entity.role.value}",
                f"created_at:  {entity.created_at.isoformat()}",
                f"description: {entity.description}",
            ]
        )

    def message(self, text: str, **fields: Any) -> str:
        if self.json_output:
            return json.dumps({"message": text, **fields})
        return text

    def mapping(self, title: str, data: Dict[str, Any]) -> str:
        if self.json_output:
            return json.dumps(data, indent=2, default=str)
        lines = [title, "=" * len(title)]
        for section, values in data.items():
            if isinstance(values, dict):
                lines.append(f"{section}:")
                lines.extend(f"  {key}: {value}" for key, value in values.items())
            else:
                lines.append(f"{section}: {values}")
        return "\n".join(lines)


def mask_secrets(data: Dict[str, Any]) -> Dict[str, Any]:
    """Return a copy of `data` with passwords and URL credentials masked."""
    masked: Dict[str, Any] = {}
    for key, value in data.items():
        if isinstance(value, dict):
            masked[key] = mask_secrets(value)
        elif value and any(s in key.lower() for s in _SECRET_KEYS):
            masked[key] = "***"
        elif isinstance(value, str) and "@" in value and "://" in value:
            masked[key] = re.sub(r":([^@:/]+)@", ":***@", value)
        else:
            masked[key] = value
    return masked


def _report_missing(entity_id: str, service: EntityService, formatter: OutputFormatter) -> int:
    if service.degraded_lookups:
        log_display(
            logger,
            logging.WARNING,
            "Lookup of '%s' hit an unavailable tier; the entity may exist. See the log for details.",
            entity_id,
        )
    print(formatter.message(f"Entity '{entity_id}' not found", found=False))
    return EXIT_FAILURE


async def _run_command(parsed: argparse.Namespace, config: TierStoreConfig, formatter: OutputFormatter) -> int:
    async with StorageFactory.from_config(config) as factory:
        service = EntityService(factory)

        if parsed.command == "get":
            entity = await service.lookup(parsed.id)
            if entity is None:
                code = _report_missing(parsed.id, service, formatter)
            else:
                print(formatter.entity(entity))
                code = EXIT_OK

        elif parsed.command == "create":
            entity = await service.create(parsed.role, parsed.description)
            print(formatter.entity(entity))
            code = EXIT_OK

        else:  # edit
            entity = await service.edit(parsed.id, parsed.description)
            if entity is None:
                code = _report_missing(parsed.id, service, formatter)
            else:
                print(formatter.entity(entity))
                code = EXIT_OK

        if parsed.stats:
            stats = factory.instrumentation.get_statistics()
            stats["degraded_lookups"] = service.degraded_lookups
            if isinstance(factory.cache_client, MemoryCacheClient):
                stats["cache_store"] = factory.cache_client.store.stats()
            print(formatter.mapping("Storage Statistics", stats))
        return code


def cmd_info(config: TierStoreConfig, formatter: OutputFormatter) -> int:
    data = mask_secrets(config.model_dump(mode="json"))
    print(formatter.mapping("tierstore Configuration", data))
    return EXIT_OK


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the tierstore CLI."""
    parser = argparse.ArgumentParser(prog="tierstore", description="Tiered entity storage CLI")
    parser.add_argument("--config", "-c", help="Path to configuration file", default=None)
    parser.add_argument("--json", help="Output in JSON format", action="store_true")
    parser.add_argument("--verbose", "-v", help="Log every tier call to the console", action="store_true")
    parser.add_argument("--stats", help="Print per-tier statistics after the command", action="store_true")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    get_parser = subparsers.add_parser("get", help="Look up an entity by id")
    get_parser.add_argument("id", help="Entity id")

    create_parser_ = subparsers.add_parser("create", help="Create an entity")
    create_parser_.add_argument("--role", "-r", required=True, help="'admin' or any other value for a regular user")
    create_parser_.add_argument("--description", "-d", required=True, help="Entity description")

    edit_parser = subparsers.add_parser("edit", help="Edit an entity's description")
    edit_parser.add_argument("id", help="Entity id")
    edit_parser.add_argument("--description", "-d", default=None, help="New description (omit to keep)")

    subparsers.add_parser("info", help="Show effective configuration")
    return parser


def main(args: Optional[List[str]] = None) -> int:
    """
    Main entry point for the tierstore CLI.

    Args:
        args: Command line arguments (defaults to sys.argv)

    Returns:
        Exit code
    """
    parser = create_parser()
    parsed = parser.parse_args(args)
    formatter = OutputFormatter(json_output=parsed.json)

    if parsed.command is None:
        parser.print_help()
        return EXIT_OK

    try:
        config = load_config(parsed.config)
    except ConfigError as e:
        print(formatter.message(f"Configuration error: {e}"), file=sys.stderr)
        return EXIT_INVALID

    log_config = dict(config.logging)
    if parsed.verbose:
        log_config.update({"console_enabled": True, "console_level": "INFO"})
    configure_logging(app_name="tierstore", config=log_config)

    if parsed.command == "info":
        return cmd_info(config, formatter)

    try:
        return asyncio.run(_run_command(parsed, config, formatter))
    except EntityValidationError as e:
        print(formatter.message(str(e)), file=sys.stderr)
        return EXIT_INVALID
    except WriteThroughError as e:
        log_display(
            logger,
            logging.ERROR,
            "Write-through of '%s' incomplete; failed tier(s): %s. Tiers that succeeded were not rolled back.",
            e.entity_id,
            ", ".join(sorted(e.failures)),
            extra={"failed_tiers": sorted(e.failures)},
        )
        print(formatter.message(f"Storage failure: {e}"), file=sys.stderr)
        return EXIT_FAILURE
    except TierStoreError as e:
        logger.error("Command '%s' failed: %s", parsed.command, e)
        print(formatter.message(f"Storage failure: {e}"), file=sys.stderr)
        return EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main())
