#!/usr/bin/env python3
"""
Command-line script for seeding the service package and loyalty catalogues.

Usage:
    python scripts/seed_catalog.py [--file PATH] [--dry-run]

Options:
    --file        JSON catalogue to load (default: data/catalog.json)
    --dry-run     Show what would be written without writing
"""

import argparse
import json
import logging
import os
import sys

import boto3
from botocore.exceptions import ClientError

# Add the src directory to Python path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from models.loyalty import Reward, TierDefinition
from models.repair import ServicePackage
from utils.dynamodb_utils import model_to_item

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

DEFAULT_CATALOG = os.path.join(os.path.dirname(__file__), "..", "data", "catalog.json")

# catalogue section -> (model, table env var, default table name)
SECTIONS = {
    "service_packages": (
        ServicePackage,
        "SERVICE_PACKAGES_TABLE",
        "ekami-auto-service-packages-dev",
    ),
    "loyalty_tiers": (
        TierDefinition,
        "LOYALTY_TIERS_TABLE",
        "ekami-auto-loyalty-tiers-dev",
    ),
    "loyalty_rewards": (
        Reward,
        "LOYALTY_REWARDS_TABLE",
        "ekami-auto-loyalty-rewards-dev",
    ),
}


def load_catalog(path: str) -> dict[str, list]:
    """Read and validate the catalogue file."""
    with open(path, encoding="utf-8") as f:
        raw = json.load(f)

    catalog = {}
    for section, (model, _, _) in SECTIONS.items():
        catalog[section] = [model(**entry) for entry in raw.get(section, [])]
    return catalog


def seed(catalog: dict[str, list], dry_run: bool = False) -> dict[str, int]:
    """Write every catalogue entry to its table, overwriting existing ones."""
    dynamodb = None if dry_run else boto3.resource("dynamodb")
    written = {}

    for section, entries in catalog.items():
        _, env_var, default = SECTIONS[section]
        table_name = os.environ.get(env_var, default)
        logger.info("%s -> %s (%d entries)", section, table_name, len(entries))

        if dry_run:
            for entry in entries:
                print(f"  - {entry.model_dump_json()}")
            written[section] = 0
            continue

        table = dynamodb.Table(table_name)
        with table.batch_writer() as batch:
            for entry in entries:
                batch.put_item(Item=model_to_item(entry))
        written[section] = len(entries)

    return written


def main():
    parser = argparse.ArgumentParser(description="Seed Ekami Auto catalogues")
    parser.add_argument("--file", default=DEFAULT_CATALOG, help="Catalogue JSON file")
    parser.add_argument(
        "--dry-run", action="store_true", help="Show what would be written"
    )
    args = parser.parse_args()

    try:
        catalog = load_catalog(args.file)
        results = seed(catalog, dry_run=args.dry_run)
    except ClientError as e:
        logger.error("AWS error: %s", e.response["Error"]["Message"])
        sys.exit(1)
    except (OSError, ValueError) as e:
        logger.error("Failed to load catalogue: %s", e)
        sys.exit(1)

    print("\n" + "=" * 50)
    print("CATALOGUE SEEDING RESULTS")
    print("=" * 50)
    for section, count in results.items():
        print(f"{section}: {count} written")
    print("=" * 50)


if __name__ == "__main__":
    main()
