"""Find the Stages that sit downstream of a Stage.

Two historical linkings exist:

* downstream-by-origin: Stage T requests Freight of origin O with Stage S
  listed in ``sources.stages``;
* subscribers (legacy): Stage T lists S in ``subscriptions.upstream_stages``
  regardless of origin.

Both are full scans of the Project's Stage listing, returned in listing order.
:class:`TopologyIndex` is an optional adjacency built from one listing; the
scans are the reference it must agree with.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Callable, Iterable
from typing import TYPE_CHECKING

import structlog

from freightline.promotion.errors import StoreError

if TYPE_CHECKING:
    from freightline.promotion.capabilities import StageReader
    from freightline.schemas import FreightOrigin, Stage

logger = structlog.get_logger(__name__)

TargetResolver = Callable[["Stage", "FreightOrigin"], list["Stage"]]
"""Signature shared by the topology variants, as consumed by the fan-out."""


def _list_stages(stages: StageReader, namespace: str, operation: str) -> list[Stage]:
    try:
        return stages.list_stages(namespace)
    except StoreError as e:
        raise StoreError(operation, e) from e


def is_downstream_of(candidate: Stage, upstream: str, origin: FreightOrigin) -> bool:
    """Whether ``candidate`` takes ``origin`` Freight from Stage ``upstream``."""
    if candidate.name == upstream:
        return False
    return any(
        upstream in request.sources.stages
        for request in candidate.requests_for(origin)
    )


def is_subscriber_of(candidate: Stage, upstream: str) -> bool:
    subscriptions = candidate.spec.subscriptions
    if subscriptions is None or candidate.name == upstream:
        return False
    return any(sub.name == upstream for sub in subscriptions.upstream_stages)


def find_downstream_stages(
    stages: StageReader,
    stage: Stage,
    origin: FreightOrigin,
) -> list[Stage]:
    """Stages in ``stage``'s Project that take ``origin`` Freight from it.

    Raises:
        StoreError: If the Stage listing fails.
    """
    listing = _list_stages(stages, stage.namespace, "find downstream stages")
    return [s for s in listing if is_downstream_of(s, stage.name, origin)]


def find_subscribers(stages: StageReader, stage: Stage) -> list[Stage]:
    """Stages in ``stage``'s Project subscribed to it through the legacy link.

    Raises:
        StoreError: If the Stage listing fails.
    """
    listing = _list_stages(stages, stage.namespace, "find subscribers")
    return [s for s in listing if is_subscriber_of(s, stage.name)]


def downstream_resolver(stages: StageReader) -> TargetResolver:
    def resolve(stage: Stage, origin: FreightOrigin) -> list[Stage]:
        return find_downstream_stages(stages, stage, origin)

    return resolve


def subscriber_resolver(stages: StageReader) -> TargetResolver:
    def resolve(stage: Stage, origin: FreightOrigin) -> list[Stage]:  # noqa: ARG001
        return find_subscribers(stages, stage)

    return resolve


class TopologyIndex:
    """Adjacency of one Project's Stage graph, keyed by ``(origin, upstream)``.

    Built once from a listing and then queried without store access. Lookups
    return Stages in the listing order they were indexed in, so results match
    :func:`find_downstream_stages` and :func:`find_subscribers` over the same
    listing.

    Example:
        >>> index = TopologyIndex.build(store, "shop")
        >>> [s.name for s in index.downstream("test", origin)]
        ['uat', 'prod']
    """

    def __init__(self, namespace: str, listing: Iterable[Stage]) -> None:
        self.namespace = namespace
        self._downstream: dict[tuple[FreightOrigin, str], list[Stage]] = defaultdict(list)
        self._subscribers: dict[str, list[Stage]] = defaultdict(list)
        for candidate in listing:
            self._add(candidate)

    @classmethod
    def build(cls, stages: StageReader, namespace: str) -> TopologyIndex:
        index = cls(namespace, _list_stages(stages, namespace, "build topology index"))
        logger.debug(
            "topology_index_built",
            namespace=namespace,
            edges=sum(len(v) for v in index._downstream.values()),
        )
        return index

    def _add(self, candidate: Stage) -> None:
        for request in candidate.spec.requested_freight:
            for upstream in dict.fromkeys(request.sources.stages):
                if upstream == candidate.name:
                    continue
                targets = self._downstream[(request.origin, upstream)]
                if candidate not in targets:
                    targets.append(candidate)
        subscriptions = candidate.spec.subscriptions
        if subscriptions is not None:
            for upstream in dict.fromkeys(s.name for s in subscriptions.upstream_stages):
                if upstream != candidate.name:
                    self._subscribers[upstream].append(candidate)

    def downstream(self, upstream: str, origin: FreightOrigin) -> list[Stage]:
        return list(self._downstream.get((origin, upstream), []))

    def subscribers(self, upstream: str) -> list[Stage]:
        return list(self._subscribers.get(upstream, []))

    def resolver(self) -> TargetResolver:
        """A downstream resolver answering from the index."""

        def resolve(stage: Stage, origin: FreightOrigin) -> list[Stage]:
            return self.downstream(stage.name, origin)

        return resolve


__all__ = [
    "TargetResolver",
    "TopologyIndex",
    "downstream_resolver",
    "find_downstream_stages",
    "find_subscribers",
    "is_downstream_of",
    "is_subscriber_of",
    "subscriber_resolver",
]
