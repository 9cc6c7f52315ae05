"""
Shared fixtures: fake AWS credentials and moto-backed DynamoDB tables.
"""

import boto3
import pytest
from moto import mock_aws

from kymaclub.database.dynamodb_client import (
    BookingRepository,
    BusinessRepository,
    ConsumerRepository,
    HandoffRepository,
)

REGION = "eu-central-1"


@pytest.fixture(autouse=True)
def aws_credentials(monkeypatch):
    """Fake credentials so boto3 never reaches real AWS."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", REGION)
    for key in ("AWS_REGION", "KYMACLUB_CONFIG_PATH", "KYMACLUB_TABLE_PREFIX",
                "SLACK_ENABLED", "SLACK_WEBHOOK_URL"):
        monkeypatch.delenv(key, raising=False)


def _simple_table(dynamodb, name, key):
    dynamodb.create_table(
        TableName=name,
        KeySchema=[{"AttributeName": key, "KeyType": "HASH"}],
        AttributeDefinitions=[{"AttributeName": key, "AttributeType": "S"}],
        BillingMode="PAY_PER_REQUEST",
    )


def create_tables(dynamodb):
    """Create every table the platform uses, with the bookings GSIs."""
    dynamodb.create_table(
        TableName="bookings",
        KeySchema=[{"AttributeName": "booking_id", "KeyType": "HASH"}],
        AttributeDefinitions=[
            {"AttributeName": "booking_id", "AttributeType": "S"},
            {"AttributeName": "status", "AttributeType": "S"},
            {"AttributeName": "user_id", "AttributeType": "S"},
            {"AttributeName": "booked_at", "AttributeType": "N"},
        ],
        GlobalSecondaryIndexes=[
            {
                "IndexName": "by_status_booked_at",
                "KeySchema": [
                    {"AttributeName": "status", "KeyType": "HASH"},
                    {"AttributeName": "booked_at", "KeyType": "RANGE"},
                ],
                "Projection": {"ProjectionType": "ALL"},
            },
            {
                "IndexName": "by_user_booked_at",
                "KeySchema": [
                    {"AttributeName": "user_id", "KeyType": "HASH"},
                    {"AttributeName": "booked_at", "KeyType": "RANGE"},
                ],
                "Projection": {"ProjectionType": "ALL"},
            },
        ],
        BillingMode="PAY_PER_REQUEST",
    )
    _simple_table(dynamodb, "businesses", "business_id")
    _simple_table(dynamodb, "users", "user_id")
    _simple_table(dynamodb, "system_audit_logs", "audit_id")
    _simple_table(dynamodb, "booking_handoffs", "handoff_key")


@pytest.fixture
def dynamodb():
    """Mocked DynamoDB resource with all platform tables."""
    with mock_aws():
        resource = boto3.resource("dynamodb", region_name=REGION)
        create_tables(resource)
        yield resource


@pytest.fixture
def booking_repository(dynamodb):
    return BookingRepository(dynamodb_resource=dynamodb, backoff_base=0)


@pytest.fixture
def business_repository(dynamodb):
    return BusinessRepository(dynamodb_resource=dynamodb, backoff_base=0)


@pytest.fixture
def consumer_repository(dynamodb):
    return ConsumerRepository(dynamodb_resource=dynamodb, backoff_base=0)


@pytest.fixture
def handoff_repository(dynamodb):
    return HandoffRepository(dynamodb_resource=dynamodb, backoff_base=0)
