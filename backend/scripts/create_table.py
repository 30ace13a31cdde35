#!/usr/bin/env python3
"""
Create the single DynamoDB table used by the API.

Usage:
    python scripts/create_table.py [--table NAME] [--wait]

Reads AWS_REGION / DDB_ENDPOINT_URL / DDB_TABLE_NAME from the environment,
so it works against DynamoDB Local as well as AWS.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from botocore.exceptions import ClientError  # noqa: E402

from freelanceflow.db.dynamodb.client import dynamodb_client  # noqa: E402
from freelanceflow.observability.logging import configure_logging, get_logger  # noqa: E402
from freelanceflow.settings import settings  # noqa: E402

log = get_logger("create_table")


def table_definition(table_name: str) -> dict:
    def _gsi(name: str, pk: str, sk: str) -> dict:
        return {
            "IndexName": name,
            "KeySchema": [
                {"AttributeName": pk, "KeyType": "HASH"},
                {"AttributeName": sk, "KeyType": "RANGE"},
            ],
            "Projection": {"ProjectionType": "ALL"},
        }

    return {
        "TableName": table_name,
        "BillingMode": "PAY_PER_REQUEST",
        "AttributeDefinitions": [
            {"AttributeName": a, "AttributeType": "S"}
            for a in ("pk", "sk", "gsi1pk", "gsi1sk", "gsi2pk", "gsi2sk")
        ],
        "KeySchema": [
            {"AttributeName": "pk", "KeyType": "HASH"},
            {"AttributeName": "sk", "KeyType": "RANGE"},
        ],
        "GlobalSecondaryIndexes": [
            _gsi("GSI1", "gsi1pk", "gsi1sk"),
            _gsi("GSI2", "gsi2pk", "gsi2sk"),
        ],
    }


def main() -> int:
    parser = argparse.ArgumentParser(description="Create the FreelanceFlow DynamoDB table")
    parser.add_argument("--table", default=settings.ddb_table_name, help="table name (default: DDB_TABLE_NAME)")
    parser.add_argument("--wait", action="store_true", help="block until the table is ACTIVE")
    args = parser.parse_args()

    configure_logging(level=settings.log_level)
    if not args.table:
        log.error("create_table_missing_name")
        return 2

    client = dynamodb_client()
    try:
        client.create_table(**table_definition(args.table))
        log.info("table_create_requested", table=args.table)
    except ClientError as e:
        if e.response.get("Error", {}).get("Code") != "ResourceInUseException":
            raise
        log.info("table_already_exists", table=args.table)

    if args.wait:
        client.get_waiter("table_exists").wait(TableName=args.table)
        log.info("table_active", table=args.table)
    return 0


if __name__ == "__main__":
    sys.exit(main())
