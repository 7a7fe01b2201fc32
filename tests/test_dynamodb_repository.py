import threading
import time

import pytest
from botocore.exceptions import ClientError

from app.config import settings
from app.dao.dynamodb import DynamoDBUserRepository
from app.errors import StoreError


def _client_error(code: str = "InternalServerError") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": "boom"}}, "Operation")


class FakeTable:
    """Serves canned pages for Scan/Query; ignores filter expressions."""

    def __init__(self, pages=None, item=None, error=None):
        self.pages = list(pages or [[]])
        self.item = item
        self.error = error
        self.scan_calls = []
        self.put = []

    def _page(self, **kwargs):
        if self.error:
            raise self.error
        self.scan_calls.append(kwargs)
        index = kwargs.get("ExclusiveStartKey", 0)
        response = {"Items": self.pages[index]}
        if index + 1 < len(self.pages):
            response["LastEvaluatedKey"] = index + 1
        return response

    scan = _page
    query = _page

    def get_item(self, Key):
        if self.error:
            raise self.error
        return {"Item": self.item} if self.item else {}

    def put_item(self, Item):
        if self.error:
            raise self.error
        self.put.append(Item)

    def delete_item(self, Key, ReturnValues):
        return {"Attributes": self.item} if self.item else {}

    def wait_until_exists(self):
        self.waited = True


class FakeResource:
    def __init__(self, users, unprocessed_rounds=0, table_exists=False):
        self.users = users
        self.requests = []
        self.unprocessed_rounds = unprocessed_rounds
        self.table_exists = table_exists
        self.created = []
        self.opened = {}

    def batch_get_item(self, RequestItems):
        self.requests.append(RequestItems)
        table = settings.dynamodb_users_table
        keys = RequestItems[table]["Keys"]
        if self.unprocessed_rounds:
            self.unprocessed_rounds -= 1
            return {"Responses": {table: []}, "UnprocessedKeys": RequestItems}
        return {"Responses": {table: [self.users[k["id"]] for k in keys]}}

    def create_table(self, TableName, **kwargs):
        if self.table_exists:
            raise _client_error("ResourceInUseException")
        time.sleep(0.05)
        self.created.append(TableName)
        return FakeTable()

    def Table(self, name):
        self.opened[name] = FakeTable()
        return self.opened[name]


@pytest.fixture()
def tables():
    return {
        settings.dynamodb_users_table: FakeTable(),
        settings.dynamodb_songs_table: FakeTable(),
        settings.dynamodb_follows_table: FakeTable(),
    }


@pytest.fixture()
def repository(tables):
    repo = DynamoDBUserRepository()
    repo._tables = tables
    repo._resource = FakeResource({})
    return repo


def test_list_all_follows_pagination(repository, tables):
    tables[settings.dynamodb_users_table].pages = [[{"id": "a"}], [{"id": "b"}], [{"id": "c"}]]
    assert [u["id"] for u in repository.list_all()] == ["a", "b", "c"]
    assert len(tables[settings.dynamodb_users_table].scan_calls) == 3


def test_get_by_username_returns_first_match(repository, tables):
    tables[settings.dynamodb_users_table].pages = [[], [{"id": "a", "username": "djshmarl"}]]
    assert repository.get_by_username("djshmarl")["id"] == "a"


def test_get_by_email_missing(repository):
    assert repository.get_by_email("nobody@example.com") is None


def test_get_followers_resolves_users(repository, tables):
    tables[settings.dynamodb_follows_table].pages = [[{"follower_id": "b", "followed_id": "a"}]]
    repository._resource = FakeResource({"b": {"id": "b", "username": "rita"}})

    assert repository.get_followers("a") == [{"id": "b", "username": "rita"}]


def test_delete_reports_existence(repository, tables):
    assert repository.delete("a") is False
    tables[settings.dynamodb_users_table].item = {"id": "a"}
    assert repository.delete("a") is True


def test_lookup_fault_becomes_store_error(repository, tables):
    tables[settings.dynamodb_users_table].error = _client_error()
    with pytest.raises(StoreError) as exc_info:
        repository.get("a")
    assert exc_info.value.reason == StoreError.LOOKUP_FAILED


def test_write_fault_becomes_store_error(repository, tables):
    tables[settings.dynamodb_users_table].error = _client_error()
    with pytest.raises(StoreError) as exc_info:
        repository.save({"id": "a"})
    assert exc_info.value.reason == StoreError.WRITE_FAILED


def test_concurrent_first_use_creates_table_once():
    repository = DynamoDBUserRepository()
    repository._resource = FakeResource({})

    threads = [threading.Thread(target=repository._follows) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert repository._resource.created == [settings.dynamodb_follows_table]


def test_existing_table_is_waited_for_before_reuse():
    repository = DynamoDBUserRepository()
    repository._resource = FakeResource({}, table_exists=True)

    table = repository._follows()

    assert table is repository._resource.opened[settings.dynamodb_follows_table]
    assert table.waited is True


def test_unprocessed_keys_retry_with_backoff(repository, tables, monkeypatch):
    delays = []
    monkeypatch.setattr("app.dao.dynamodb.time.sleep", delays.append)
    tables[settings.dynamodb_follows_table].pages = [[{"follower_id": "b", "followed_id": "a"}]]
    repository._resource = FakeResource({"b": {"id": "b"}}, unprocessed_rounds=2)

    assert repository.get_followers("a") == [{"id": "b"}]
    assert delays == [0.05, 0.1]


def test_unprocessed_keys_give_up_after_max_attempts(repository, tables, monkeypatch):
    delays = []
    monkeypatch.setattr("app.dao.dynamodb.time.sleep", delays.append)
    tables[settings.dynamodb_follows_table].pages = [[{"follower_id": "b", "followed_id": "a"}]]
    repository._resource = FakeResource({"b": {"id": "b"}}, unprocessed_rounds=100)

    with pytest.raises(StoreError) as exc_info:
        repository.get_followers("a")
    assert exc_info.value.reason == StoreError.LOOKUP_FAILED
    assert delays == [0.05, 0.1, 0.2, 0.4, 0.8]
