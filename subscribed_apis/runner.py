"""Query runner: executes the report against one of three engines.

    pymongo  the native driver, aggregate() on the application collection
    mongosh  the same pipeline rendered as shell text, run by the MongoDB shell
    json     collection dumps on disk, joined in memory

Every engine yields ApplicationApis rows lazily. Driver and shell errors are
not retried; they propagate to the caller.
"""

from pathlib import Path
from typing import Iterator, Optional, Union

from pymongo import MongoClient
from pymongo.database import Database

from .config import ReportConfig
from .dumps import load_collection
from .join import join_documents
from .models import ApplicationApis
from .mongosh_exec import MongoShellExecutor
from .pipeline import build_pipeline, pipeline_to_mql

ENGINES = ("pymongo", "mongosh", "json")


def list_application_apis(db: Database, config: Optional[ReportConfig] = None) -> Iterator[ApplicationApis]:
    """Run the pipeline on an already selected database handle."""
    config = config or ReportConfig()
    pipeline = build_pipeline(config.subscription_collection)
    cursor = db[config.application_collection].aggregate(pipeline, allowDiskUse=config.allow_disk_use)
    for doc in cursor:
        yield ApplicationApis.from_document(doc)


def run_with_pymongo(config: ReportConfig, client: Optional[MongoClient] = None) -> Iterator[ApplicationApis]:
    owns_client = client is None
    if owns_client:
        client = MongoClient(config.mongodb_uri, serverSelectionTimeoutMS=config.timeout * 1000)
    try:
        # Fail on an unreachable server before the aggregate is issued
        client.admin.command("ping")
        yield from list_application_apis(client[config.db_name], config)
    finally:
        if owns_client:
            client.close()


def run_with_mongosh(config: ReportConfig,
                     executor: Optional[MongoShellExecutor] = None) -> Iterator[ApplicationApis]:
    if executor is None:
        executor = MongoShellExecutor(config.mongodb_uri, mongosh_path=config.mongosh_path,
                                      timeout=config.timeout)
        executor.test_connection()
    mql = pipeline_to_mql(config.application_collection, build_pipeline(config.subscription_collection))
    for doc in executor.execute_query(config.db_name, mql):
        yield ApplicationApis.from_document(doc)


def run_from_dumps(config: ReportConfig, data_dir: Union[str, Path]) -> Iterator[ApplicationApis]:
    applications = load_collection(data_dir, config.application_collection)
    subscriptions = load_collection(data_dir, config.subscription_collection)
    print(f"Loaded {len(applications)} applications and {len(subscriptions)} subscriptions from {data_dir}")
    return join_documents(applications, subscriptions)


def run_report(engine: str, config: ReportConfig,
               data_dir: Optional[Union[str, Path]] = None) -> Iterator[ApplicationApis]:
    if engine == "pymongo":
        return run_with_pymongo(config)
    if engine == "mongosh":
        return run_with_mongosh(config)
    if engine == "json":
        if data_dir is None:
            raise ValueError("the json engine needs a dump directory")
        return run_from_dumps(config, data_dir)
    raise ValueError(f"Unknown engine '{engine}', expected one of {', '.join(ENGINES)}")
