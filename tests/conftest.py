"""Pytest configuration and fixtures."""

import copy
import json

import mongomock
import pytest


@pytest.fixture
def application_docs():
    return [
        {"_id": "6650a1", "id": "a1", "name": "App1", "owner": "team-x"},
        {"_id": "6650a2", "id": "a2", "name": "App2"},
        {"_id": "6650a3", "id": "a3", "name": "App3"},
    ]


@pytest.fixture
def subscription_docs():
    return [
        {"_id": "7750s1", "applications": ["a1"], "apiIdentifier": "apiX"},
        {"_id": "7750s2", "applications": ["a1", "a2"], "apiIdentifier": "apiY"},
    ]


@pytest.fixture
def mongo_client(application_docs, subscription_docs):
    """In-memory MongoDB with the third-party-application collections loaded."""
    client = mongomock.MongoClient()
    db = client["third-party-application"]
    db["application"].insert_many(copy.deepcopy(application_docs))
    db["subscription"].insert_many(copy.deepcopy(subscription_docs))
    return client


@pytest.fixture
def mongo_db(mongo_client):
    return mongo_client["third-party-application"]


@pytest.fixture
def dump_dir(tmp_path, application_docs, subscription_docs):
    (tmp_path / "application.json").write_text(json.dumps(application_docs), encoding="utf-8")
    (tmp_path / "subscription.json").write_text(
        "\n".join(json.dumps(doc) for doc in subscription_docs), encoding="utf-8")
    return tmp_path
