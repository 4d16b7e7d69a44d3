"""Reading collection dumps from disk.

A dump directory holds one file per collection, ``<collection>.json``, either
a JSON array of documents or JSON Lines (the default mongoexport output).
Extended JSON values such as {"$oid": ...} or {"$uuid": ...} decode to their
BSON types, so ids compare the way the server compares them.
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Union

import demjson3 as demjson
from bson import json_util


class DumpFormatError(ValueError):
    pass


def _maybe_json_load(text: str):
    """Decode extended JSON ($oid, $uuid, $date ...) into BSON types, then fall
    back to demjson for non-strict JSON (single quotes, unquoted keys)."""
    try:
        return json_util.loads(text)
    except json.JSONDecodeError:
        return demjson.decode(text)


def load_collection(data_dir: Union[str, Path], collection: str) -> List[Dict[str, Any]]:
    path = Path(data_dir) / f"{collection}.json"
    if not path.exists():
        # A collection that was never created reads as empty
        print(f"No dump for collection '{collection}' at {path}, treating it as empty")
        return []

    text = path.read_text(encoding="utf-8").strip()
    if not text:
        return []

    docs: List[Any] = []
    if text.startswith("["):
        try:
            docs = _maybe_json_load(text)
        except demjson.JSONDecodeError as e:
            raise DumpFormatError(f"{path}: invalid JSON array: {e}") from e
        if not isinstance(docs, list):
            raise DumpFormatError(f"{path}: top-level JSON must be an array")
    else:
        for ln, line in enumerate(text.splitlines(), start=1):
            line = line.strip()
            if not line:
                continue
            try:
                docs.append(_maybe_json_load(line))
            except demjson.JSONDecodeError as e:
                raise DumpFormatError(f"{path}: invalid JSON on line {ln}: {e}") from e

    for i, doc in enumerate(docs, start=1):
        if not isinstance(doc, dict):
            raise DumpFormatError(f"{path}: record #{i} is not an object (got {type(doc).__name__})")
    return docs
