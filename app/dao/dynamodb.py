"""
DynamoDB implementation of UserRepository.

All DynamoDB-specific concerns live here — boto3 client setup, table
bootstrapping, pagination — keeping the service layer storage-agnostic.

Table schema
────────────
  users         : partition key  id           (String)
  user_songs    : partition key  id           (String), attribute user_id
  user_follows  : partition key  follower_id  (String)
                  sort key       followed_id  (String)

Table names are configurable via DYNAMODB_USERS_TABLE, DYNAMODB_SONGS_TABLE
and DYNAMODB_FOLLOWS_TABLE.  Tables are created automatically on first use
when they do not already exist.  In production, prefer managing them via
CloudFormation / SAM / Terraform and removing the auto-create logic.

Every boto3 failure is logged and re-raised as `StoreError` so the API can
answer with a generic 500 instead of leaking AWS error text.
"""

import logging
import threading
import time
from typing import Optional

import boto3
from boto3.dynamodb.conditions import Attr, Key
from botocore.exceptions import BotoCoreError, ClientError

from app.config import settings
from app.dao.base import UserRepository
from app.errors import StoreError

logger = logging.getLogger(__name__)

# BatchGetItem accepts at most 100 keys per call.
_BATCH_GET_LIMIT = 100
# Unprocessed keys are retried with exponential backoff, then given up on.
_BATCH_GET_MAX_ATTEMPTS = 6
_BATCH_GET_BASE_DELAY = 0.05


class DynamoDBUserRepository(UserRepository):
    """
    UserRepository backed by Amazon DynamoDB.

    The instance is lightweight — the boto3 resource and table handles are
    created lazily on first use so that importing this module does not
    immediately require live AWS credentials.
    """

    def __init__(self) -> None:
        self._resource = None
        self._tables: dict = {}  # populated on first access via _get_table()
        # Concurrent lookups may race to create the same table.
        self._lock = threading.Lock()

    # ── Internal helpers ──────────────────────────────────────────────────────

    def _build_resource(self):
        """Create a boto3 DynamoDB resource from application settings."""
        kwargs: dict = {"region_name": settings.aws_region}
        if settings.aws_access_key_id:
            kwargs["aws_access_key_id"] = settings.aws_access_key_id
            kwargs["aws_secret_access_key"] = settings.aws_secret_access_key
        if settings.dynamodb_endpoint_url:
            # Enables local DynamoDB (e.g. `dynamodb-local` container)
            kwargs["endpoint_url"] = settings.dynamodb_endpoint_url
        return boto3.resource("dynamodb", **kwargs)

    def _get_table(self, table_name: str, keys: list[tuple[str, str]]):
        """
        Return the Table handle for *table_name*, creating the table if it does
        not yet exist.  *keys* lists ``(attribute, key_type)`` pairs, partition
        key first.  Handles are cached after the first successful call.
        """
        if table_name in self._tables:
            return self._tables[table_name]

        with self._lock:
            if table_name not in self._tables:
                self._tables[table_name] = self._create_or_open(table_name, keys)
        return self._tables[table_name]

    def _create_or_open(self, table_name: str, keys: list[tuple[str, str]]):
        if self._resource is None:
            self._resource = self._build_resource()
        ddb = self._resource

        try:
            table = ddb.create_table(
                TableName=table_name,
                KeySchema=[{"AttributeName": a, "KeyType": t} for a, t in keys],
                AttributeDefinitions=[
                    {"AttributeName": a, "AttributeType": "S"} for a, _ in keys
                ],
                BillingMode="PAY_PER_REQUEST",
            )
            table.wait_until_exists()
            logger.info("DynamoDB table '%s' created.", table_name)
        except ClientError as exc:
            if exc.response["Error"]["Code"] == "ResourceInUseException":
                # Table already exists (possibly still CREATING) — wait, then reuse it
                table = ddb.Table(table_name)
                table.wait_until_exists()
            else:
                raise
        return table

    def _users(self):
        return self._get_table(settings.dynamodb_users_table, [("id", "HASH")])

    def _songs(self):
        return self._get_table(settings.dynamodb_songs_table, [("id", "HASH")])

    def _follows(self):
        return self._get_table(
            settings.dynamodb_follows_table,
            [("follower_id", "HASH"), ("followed_id", "RANGE")],
        )

    @staticmethod
    def _collect(operation, **kwargs) -> list[dict]:
        """
        Run a Scan or Query to completion.

        DynamoDB pages results — calls are repeated until ``LastEvaluatedKey``
        is absent from the response.
        """
        response = operation(**kwargs)
        items: list[dict] = response.get("Items", [])
        while "LastEvaluatedKey" in response:
            response = operation(ExclusiveStartKey=response["LastEvaluatedKey"], **kwargs)
            items.extend(response.get("Items", []))
        return items

    def _find_one(self, attribute: str, value: str) -> Optional[dict]:
        try:
            items = self._collect(self._users().scan, FilterExpression=Attr(attribute).eq(value))
        except (BotoCoreError, ClientError) as exc:
            logger.error("DynamoDB Scan on %s failed: %s", attribute, exc)
            raise StoreError(StoreError.LOOKUP_FAILED, str(exc)) from exc
        return items[0] if items else None

    def _get_many(self, user_ids: list[str]) -> list[dict]:
        """Fetch user records by id with BatchGetItem, retrying unprocessed keys."""
        table_name = settings.dynamodb_users_table
        self._users()  # make sure the table exists before batching against it
        found: list[dict] = []
        for start in range(0, len(user_ids), _BATCH_GET_LIMIT):
            request = {table_name: {"Keys": [{"id": i} for i in user_ids[start:start + _BATCH_GET_LIMIT]]}}
            for attempt in range(_BATCH_GET_MAX_ATTEMPTS):
                if attempt:
                    time.sleep(_BATCH_GET_BASE_DELAY * 2 ** (attempt - 1))
                response = self._resource.batch_get_item(RequestItems=request)
                found.extend(response.get("Responses", {}).get(table_name, []))
                request = response.get("UnprocessedKeys")
                if not request:
                    break
            else:
                logger.error("BatchGetItem left keys unprocessed after %d attempts.", attempt + 1)
                raise StoreError(StoreError.LOOKUP_FAILED, "unprocessed keys after retries")
        return found

    # ── UserRepository interface ──────────────────────────────────────────────

    def save(self, record: dict) -> None:
        """
        Write *record* to DynamoDB using a PutItem call.

        An existing item with the same ``id`` is completely replaced.
        """
        try:
            self._users().put_item(Item=record)
            logger.info("Saved user record '%s'.", record.get("id"))
        except (BotoCoreError, ClientError) as exc:
            logger.error("DynamoDB PutItem failed: %s", exc)
            raise StoreError(StoreError.WRITE_FAILED, str(exc)) from exc

    def get(self, user_id: str) -> Optional[dict]:
        """
        Fetch a single user from DynamoDB by primary key.

        Returns ``None`` when the item does not exist.
        """
        try:
            response = self._users().get_item(Key={"id": user_id})
            return response.get("Item")  # None if key not found
        except (BotoCoreError, ClientError) as exc:
            logger.error("DynamoDB GetItem failed for '%s': %s", user_id, exc)
            raise StoreError(StoreError.LOOKUP_FAILED, str(exc)) from exc

    def get_by_username(self, username: str) -> Optional[dict]:
        return self._find_one("username", username)

    def get_by_email(self, email: str) -> Optional[dict]:
        return self._find_one("email", email)

    def list_all(self) -> list[dict]:
        """
        Scan the users table and return all items.

        Note: Scan reads every item in the table.  For large tables, consider
        adding a GSI and switching to Query.
        """
        try:
            items = self._collect(self._users().scan)
            logger.info("Listed %d user record(s) from DynamoDB.", len(items))
            return items
        except (BotoCoreError, ClientError) as exc:
            logger.error("DynamoDB Scan failed: %s", exc)
            raise StoreError(StoreError.LOOKUP_FAILED, str(exc)) from exc

    def delete(self, user_id: str) -> bool:
        """
        Delete the item with *user_id* as primary key.

        ``ReturnValues="ALL_OLD"`` lets us detect whether the item actually
        existed before the delete, so we can return an accurate boolean.
        """
        try:
            response = self._users().delete_item(
                Key={"id": user_id},
                ReturnValues="ALL_OLD",
            )
        except (BotoCoreError, ClientError) as exc:
            logger.error("DynamoDB DeleteItem failed for '%s': %s", user_id, exc)
            raise StoreError(StoreError.WRITE_FAILED, str(exc)) from exc

        existed = bool(response.get("Attributes"))
        if existed:
            logger.info("Deleted user record '%s'.", user_id)
        else:
            logger.warning("Delete called for non-existent user '%s'.", user_id)
        return existed

    def get_user_songs(self, user_id: str) -> list[dict]:
        try:
            return self._collect(self._songs().scan, FilterExpression=Attr("user_id").eq(user_id))
        except (BotoCoreError, ClientError) as exc:
            logger.error("DynamoDB Scan of songs failed for '%s': %s", user_id, exc)
            raise StoreError(StoreError.LOOKUP_FAILED, str(exc)) from exc

    def get_followers(self, user_id: str) -> list[dict]:
        try:
            edges = self._collect(
                self._follows().scan, FilterExpression=Attr("followed_id").eq(user_id)
            )
            return self._get_many([e["follower_id"] for e in edges])
        except (BotoCoreError, ClientError) as exc:
            logger.error("DynamoDB followers lookup failed for '%s': %s", user_id, exc)
            raise StoreError(StoreError.LOOKUP_FAILED, str(exc)) from exc

    def get_following(self, user_id: str) -> list[dict]:
        try:
            edges = self._collect(
                self._follows().query, KeyConditionExpression=Key("follower_id").eq(user_id)
            )
            return self._get_many([e["followed_id"] for e in edges])
        except (BotoCoreError, ClientError) as exc:
            logger.error("DynamoDB following lookup failed for '%s': %s", user_id, exc)
            raise StoreError(StoreError.LOOKUP_FAILED, str(exc)) from exc
