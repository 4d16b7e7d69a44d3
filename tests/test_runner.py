"""Tests for the query runner engines."""

import pytest

from subscribed_apis.config import ReportConfig
from subscribed_apis.models import ApplicationApis
from subscribed_apis.pipeline import build_pipeline
from subscribed_apis.runner import list_application_apis, run_from_dumps, run_report, run_with_mongosh, run_with_pymongo


class RecordingExecutor:
    def __init__(self, docs):
        self.docs = docs
        self.queries = []

    def execute_query(self, db_name, query):
        self.queries.append((db_name, query))
        return self.docs


class RecordingCollection:
    """Returns canned documents and records how aggregate() was called."""

    def __init__(self, docs):
        self.docs = docs
        self.calls = []

    def aggregate(self, pipeline, **kwargs):
        self.calls.append((pipeline, kwargs))
        return iter(self.docs)


class PingRecordingClient:
    """Wraps a mongomock client and records admin commands."""

    def __init__(self, client):
        self.client = client
        self.commands = []
        self.admin = self

    def command(self, name):
        self.commands.append(name)
        return {"ok": 1.0}

    def __getitem__(self, name):
        return self.client[name]


def _by_id(rows):
    return {row.id: row for row in rows}


def test_example_scenario_against_pipeline(mongo_db):
    mongo_db["application"].delete_one({"id": "a3"})
    rows = _by_id(list_application_apis(mongo_db))
    assert set(rows) == {"a1", "a2"}
    assert rows["a1"].name == "App1"
    assert sorted(rows["a1"].apis) == ["apiX", "apiY"]
    assert rows["a2"].apis == ["apiY"]


def test_pipeline_keeps_every_application(mongo_db):
    mongo_db["subscription"].insert_many([
        {"applications": ["a1"], "apiIdentifier": f"extra{i}"} for i in range(5)
    ])
    rows = list(list_application_apis(mongo_db))
    assert len(rows) == mongo_db["application"].count_documents({})


def test_pipeline_unmatched_application_gets_empty_list(mongo_db):
    rows = _by_id(list_application_apis(mongo_db))
    assert rows["a3"].apis == []


def test_pipeline_output_has_no_internal_id(mongo_db):
    docs = list(mongo_db["application"].aggregate(build_pipeline()))
    assert len(docs) == 3
    for doc in docs:
        assert "_id" not in doc
        assert "owner" not in doc
        assert set(doc) <= {"id", "name", "apis"}


def test_pipeline_without_subscription_collection(mongo_db):
    mongo_db.drop_collection("subscription")
    rows = list(list_application_apis(mongo_db))
    assert [row.apis for row in rows] == [[], [], []]


def test_list_application_apis_uses_configured_collections(mongo_db, application_docs):
    mongo_db["apps"].insert_many([dict(doc, _id=f"copy-{doc['_id']}") for doc in application_docs])
    mongo_db["subs"].insert_one({"applications": ["a3"], "apiIdentifier": "apiZ"})
    config = ReportConfig(application_collection="apps", subscription_collection="subs")
    rows = _by_id(list_application_apis(mongo_db, config))
    assert rows["a3"].apis == ["apiZ"]
    assert rows["a1"].apis == []


def test_list_application_apis_passes_allow_disk_use():
    collection = RecordingCollection([{"id": "a1", "name": "App1", "apis": []}])
    db = {"application": collection}
    rows = list(list_application_apis(db, ReportConfig(allow_disk_use=True)))
    pipeline, kwargs = collection.calls[0]
    assert pipeline == build_pipeline()
    assert kwargs == {"allowDiskUse": True}
    assert rows == [ApplicationApis("a1", "App1", [])]


def test_list_application_apis_is_lazy():
    collection = RecordingCollection([{"id": "a1", "name": "App1", "apis": ["apiX"]}])
    rows = list_application_apis({"application": collection})
    assert collection.calls == []
    next(rows)
    assert len(collection.calls) == 1


def test_run_with_pymongo_pings_then_queries_named_database(mongo_client):
    client = PingRecordingClient(mongo_client)
    rows = _by_id(run_with_pymongo(ReportConfig(), client=client))
    assert client.commands == ["ping"]
    assert sorted(rows["a1"].apis) == ["apiX", "apiY"]
    assert rows["a3"].apis == []


def test_run_with_mongosh_renders_shell_query():
    executor = RecordingExecutor([{"id": "a1", "name": "App1", "apis": ["apiX"]}])
    rows = list(run_with_mongosh(ReportConfig(), executor=executor))
    db_name, query = executor.queries[0]
    assert db_name == "third-party-application"
    assert query.startswith("db.application.aggregate(")
    assert rows == [ApplicationApis(id="a1", name="App1", apis=["apiX"])]


def test_run_with_mongosh_missing_apis_becomes_empty_list():
    executor = RecordingExecutor([{"id": "a9", "name": "Lonely"}])
    rows = list(run_with_mongosh(ReportConfig(), executor=executor))
    assert rows[0].apis == []


def test_run_from_dumps(dump_dir):
    rows = _by_id(run_from_dumps(ReportConfig(), dump_dir))
    assert set(rows) == {"a1", "a2", "a3"}
    assert rows["a2"].apis == ["apiY"]


def test_run_report_json_engine_requires_directory():
    with pytest.raises(ValueError):
        run_report("json", ReportConfig())


def test_run_report_rejects_unknown_engine():
    with pytest.raises(ValueError, match="Unknown engine"):
        run_report("sqlite", ReportConfig())


def test_run_from_dumps_with_uuid_ids(tmp_path):
    app_uuid = "3b241101-e2bb-4255-8caf-4136c566a962"
    other_uuid = "9c5b94b1-35ad-49bb-b118-8e8fc24abf80"
    (tmp_path / "application.json").write_text(
        f'{{"id": {{"$uuid": "{app_uuid}"}}, "name": "App1"}}\n'
        f'{{"id": {{"$uuid": "{other_uuid}"}}, "name": "App2"}}\n', encoding="utf-8")
    (tmp_path / "subscription.json").write_text(
        f'[{{"applications": [{{"$uuid": "{app_uuid}"}}], "apiIdentifier": "apiU"}}]', encoding="utf-8")
    rows = {row.name: row for row in run_from_dumps(ReportConfig(), tmp_path)}
    assert rows["App1"].apis == ["apiU"]
    assert rows["App2"].apis == []
