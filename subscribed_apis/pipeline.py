"""Aggregation pipeline for the applications -> subscribed APIs report.

The pipeline is two stages run against the application collection:

    $lookup   outer one-to-many correlation; every application keeps exactly
              one row, with the matching subscriptions gathered (possibly
              empty) under ``subscribedApis``
    $project  id, name and the apiIdentifier of each match as ``apis``;
              ``_id`` is dropped

There is deliberately no $unwind between the two stages: unwinding would
give one row per subscription and lose applications with no subscription.
"""

import json
from typing import Any, Dict, List

LOOKUP_AS = "subscribedApis"


def build_pipeline(subscription_collection: str = "subscription") -> List[Dict[str, Any]]:
    return [
        {
            "$lookup": {
                "from": subscription_collection,
                "localField": "id",
                "foreignField": "applications",
                "as": LOOKUP_AS,
            }
        },
        {
            "$project": {
                "_id": 0,
                "id": 1,
                "name": 1,
                "apis": f"${LOOKUP_AS}.apiIdentifier",
            }
        },
    ]


def pipeline_to_mql(collection: str, pipeline: List[Dict[str, Any]], indent: int = 2) -> str:
    """Render a pipeline as mongosh text, e.g. ``db.application.aggregate([...]);``

    Collection names that are not plain identifiers go through getCollection().
    """
    if collection.isidentifier():
        target = f"db.{collection}"
    else:
        target = f"db.getCollection({json.dumps(collection)})"
    body = json.dumps(pipeline, indent=indent, ensure_ascii=False)
    return f"{target}.aggregate({body});"


def get_pipeline_stages(pipeline: List[Dict[str, Any]]) -> List[str]:
    """Stage operator names in order, without the leading '$'."""
    stages = []
    for stage in pipeline:
        for op in stage:
            stages.append(op.lstrip("$"))
    return stages
