from dataclasses import dataclass, field
from typing import Any, Dict, List


@dataclass
class Application:
    id: Any
    name: Any = None

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "Application":
        # Only id and name take part in the report; everything else is ignored
        return cls(id=doc.get("id"), name=doc.get("name"))


_MISSING = object()


def lookup_key(value: Any):
    """Hashable key under which $lookup would consider two values equal.

    Numbers of different types still compare equal (1 matches 1.0) but
    booleans stay apart from numbers, and embedded documents and arrays are
    frozen in field order.
    """
    if isinstance(value, bool):
        return (bool, value)
    if isinstance(value, dict):
        return (dict, tuple((k, lookup_key(v)) for k, v in value.items()))
    if isinstance(value, (list, tuple)):
        return (list, tuple(lookup_key(v) for v in value))
    return value


@dataclass
class Subscription:
    applications: Any = None
    api_identifier: Any = _MISSING

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "Subscription":
        return cls(applications=doc.get("applications"),
                   api_identifier=doc.get("apiIdentifier", _MISSING))

    def has_api_identifier(self) -> bool:
        return self.api_identifier is not _MISSING

    def application_keys(self) -> List[Any]:
        """Lookup keys an application id is matched against.

        An array contributes each distinct element, a scalar (or a missing
        field, as None) contributes itself.
        """
        values = self.applications
        if not isinstance(values, (list, tuple)):
            return [lookup_key(values)]
        keys = []
        for value in values:
            key = lookup_key(value)
            if key not in keys:
                keys.append(key)
        return keys


@dataclass
class ApplicationApis:
    """One report row: an application and the APIs it is subscribed to."""
    id: Any
    name: Any
    apis: List[Any] = field(default_factory=list)

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "ApplicationApis":
        apis = doc.get("apis")
        return cls(id=doc.get("id"), name=doc.get("name"), apis=list(apis) if apis else [])

    def to_document(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "apis": list(self.apis)}
