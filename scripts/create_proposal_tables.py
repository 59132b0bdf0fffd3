#!/usr/bin/env python3
"""
Create the Tenderly DynamoDB tables.

* proposals          - one item per proposal, keyed by proposal_id
* proposal_versions  - append-only snapshots, keyed by proposal_id + version
* attestations       - one submission receipt per proposal_id
"""

import sys
from pathlib import Path

import boto3

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from tenderly.config import load_config

TAGS = [
    {"Key": "Project", "Value": "Tenderly"},
    {"Key": "Component", "Value": "ProposalLifecycle"},
]


def _table_definitions(config):
    storage = config["storage"]
    return [
        {
            "TableName": storage["proposals_table"],
            "KeySchema": [{"AttributeName": "proposal_id", "KeyType": "HASH"}],
            "AttributeDefinitions": [{"AttributeName": "proposal_id", "AttributeType": "S"}],
        },
        {
            "TableName": storage["versions_table"],
            "KeySchema": [
                {"AttributeName": "proposal_id", "KeyType": "HASH"},  # Partition key
                {"AttributeName": "version", "KeyType": "RANGE"},  # Sort key
            ],
            "AttributeDefinitions": [
                {"AttributeName": "proposal_id", "AttributeType": "S"},
                {"AttributeName": "version", "AttributeType": "N"},
            ],
        },
        {
            "TableName": config["attestation"]["table"],
            "KeySchema": [{"AttributeName": "proposal_id", "KeyType": "HASH"}],
            "AttributeDefinitions": [{"AttributeName": "proposal_id", "AttributeType": "S"}],
        },
    ]


def create_tables(config, region="us-east-2"):
    """Create any missing Tenderly tables."""
    dynamodb = boto3.resource("dynamodb", region_name=region)
    existing_tables = [table.name for table in dynamodb.tables.all()]

    tables = []
    for definition in _table_definitions(config):
        table_name = definition["TableName"]
        if table_name in existing_tables:
            print(f"Table {table_name} already exists")
            tables.append(dynamodb.Table(table_name))
            continue

        try:
            print(f"Creating table {table_name}...")
            table = dynamodb.create_table(
                **definition,
                BillingMode="PAY_PER_REQUEST",  # On-demand pricing
                Tags=TAGS,
            )
            print("Waiting for table to be created...")
            table.wait_until_exists()
            print(f"Table {table_name} created successfully!")
            print(f"Table ARN: {table.table_arn}")
            tables.append(table)
        except Exception as e:
            print(f"Error creating table {table_name}: {str(e)}")
            sys.exit(1)

    return tables


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Create Tenderly DynamoDB tables")
    parser.add_argument("--region", default=None, help="AWS region (defaults to config)")
    parser.add_argument("--config", default=None, help="Path to tenderly.yaml")

    args = parser.parse_args()
    config = load_config(args.config)
    create_tables(config, args.region or config["storage"]["region"])
