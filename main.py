#!/usr/bin/env python3
"""
Blockwright - Block Type Registry and Ordered Composition Engine

Command line entry point. Lists the registered block types, verifies the
registry at startup, and can compose a sample resume into a DuckDB file.
"""

import asyncio
import logging
import sys
import argparse

from blockwright.composition import CompositionEngine, SharedBlockPolicy
from blockwright.config import config
from blockwright.database import DatabaseManager, DuckDBGateway
from blockwright.errors import BlockError
from blockwright.models import BlockTypeId
from blockwright.registry import build_default_registry, resolve_command


def setup_logging():
    """Configure logging for the application."""
    level = getattr(logging, config.get("logging.level", "INFO").upper())
    format_str = config.get("logging.format", "%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    log_file = config.log_filename

    logging.basicConfig(
        level=level,
        format=format_str,
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(log_file)
        ]
    )


def list_types() -> int:
    """Print every registered block type grouped by category."""
    registry = build_default_registry()

    for category, descriptors in registry.by_category().items():
        print(f"{category.value.title()}:")
        for descriptor in sorted(descriptors, key=lambda d: d.display_name):
            limit = f"max {descriptor.max_instances}" if descriptor.max_instances else "unlimited"
            print(f"  {descriptor.id.value:<18} {descriptor.display_name:<16} ({limit}) - {descriptor.description}")
    return 0


def check_registry() -> int:
    """
    Verify that every block type is registered.

    Returns:
        Process exit code: 0 when complete, 1 when types are missing
    """
    registry = build_default_registry()
    check = registry.all_registered(BlockTypeId)

    if not check.ok:
        logging.error(f"Missing block types: {', '.join(str(t) for t in check.missing)}")
        return 1

    logging.info(f"All {len(registry)} block types registered")
    return 0


async def run_demo(db_path: str, document_id: str) -> int:
    """
    Compose a sample resume and print its ordering.

    Args:
        db_path: DuckDB database file to write to
        document_id: Identifier of the sample document
    """
    registry = build_default_registry()

    with DatabaseManager(db_path) as db:
        db.initialize_database()
        engine = CompositionEngine(registry, DuckDBGateway(db), policy=SharedBlockPolicy())
        await engine.load(document_id)

        samples = [
            ("/contact", {"email": "ada@example.com", "phone": "", "website": ""}),
            ("/work", {
                "company": "Analytical Engines Ltd",
                "position": "Programmer",
                "startDate": "1842-01",
                "highlights": ["Wrote the first published algorithm"]
            }),
            ("/skill", {"name": "Mathematics", "category": "Science", "proficiency": "expert", "yearsOfExperience": 20}),
        ]

        for command, payload in samples:
            block_type = resolve_command(command, registry)
            block = await engine.create_block(block_type, owner_user_id="demo-user", payload=payload)
            await engine.add(document_id, block.id, block_type)

        # Bring the skill block to the top
        entries = await engine.load(document_id)
        await engine.move(document_id, entries[-1].block_id, 0)

        for block_id, block_type, position in engine.list(document_id):
            print(f"{position}: {registry.display_name(block_type):<12} {block_id}")

    return 0


def main():
    """Main entry point with command line argument parsing."""
    parser = argparse.ArgumentParser(
        description="Blockwright - Block Type Registry and Ordered Composition Engine"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("types", help="List registered block types by category")
    subparsers.add_parser("check", help="Verify that every block type is registered")

    demo_parser = subparsers.add_parser("demo", help="Compose a sample resume into a DuckDB file")
    demo_parser.add_argument(
        "--db",
        default=config.database_filename,
        help="DuckDB database file (default: %(default)s)"
    )
    demo_parser.add_argument(
        "--document",
        default="demo-resume",
        help="Document identifier to compose (default: %(default)s)"
    )

    args = parser.parse_args()
    setup_logging()

    try:
        if args.command == "types":
            return list_types()
        if args.command == "check":
            return check_registry()
        return asyncio.run(run_demo(args.db, args.document))
    except BlockError as e:
        logging.error(f"{e.code}: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
