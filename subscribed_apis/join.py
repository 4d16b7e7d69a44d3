from collections import defaultdict
from typing import Any, Dict, Iterable, Iterator, List

from .models import Application, ApplicationApis, Subscription, lookup_key


def index_subscriptions(subscriptions: Iterable[Subscription]) -> Dict[Any, List[Subscription]]:
    """Multimap lookup key of an application id -> subscriptions covering it, in input order."""
    index = defaultdict(list)
    for subscription in subscriptions:
        for key in subscription.application_keys():
            index[key].append(subscription)
    return index


def join_applications(applications: Iterable[Application],
                      subscriptions: Iterable[Subscription]) -> Iterator[ApplicationApis]:
    """In-memory equivalent of the $lookup + $project pipeline.

    Yields one row per application, in input order. Subscriptions without an
    apiIdentifier are matched but contribute nothing to ``apis``, which is
    what projecting ``$subscribedApis.apiIdentifier`` does.
    """
    index = index_subscriptions(subscriptions)
    for application in applications:
        matches = index.get(lookup_key(application.id), [])
        apis = [s.api_identifier for s in matches if s.has_api_identifier()]
        yield ApplicationApis(id=application.id, name=application.name, apis=apis)


def join_documents(application_docs: Iterable[Dict[str, Any]],
                   subscription_docs: Iterable[Dict[str, Any]]) -> Iterator[ApplicationApis]:
    applications = (Application.from_document(doc) for doc in application_docs)
    subscriptions = [Subscription.from_document(doc) for doc in subscription_docs]
    return join_applications(applications, subscriptions)
