"""Which Freight a Stage may receive.

Two questions are answered here:

* :meth:`AvailabilityResolver.list_available_to_stage` is the discovery query
  behind "what can I promote into this Stage?". It honors direct sourcing,
  manual approval, upstream verification, ALL/ANY aggregation and soak time.
* :func:`is_available` is the point decision made before a specific Freight is
  automatically promoted onward from a Stage: the Freight must be directly
  sourced or verified in that Stage itself. Approval is deliberately not
  enough there.

Results depend only on current store state and the evaluation clock; nothing
is cached between calls.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone
from typing import TYPE_CHECKING

import structlog

from freightline.promotion.errors import NotFoundError, StoreError
from freightline.schemas import AvailabilityStrategy
from freightline.telemetry.tracing import create_span

if TYPE_CHECKING:
    from freightline.promotion.capabilities import FreightReader, WarehouseReader
    from freightline.schemas import Freight, FreightSources, Stage

logger = structlog.get_logger(__name__)

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def verified_upstream(freight: Freight, sources: FreightSources, now: datetime) -> bool:
    """Apply the ALL/ANY rule over ``sources.stages`` with soak time.

    An empty upstream list admits nothing through this rule.
    """
    if not sources.stages:
        return False
    soaked = (
        freight.has_soaked_in(upstream, sources.required_soak_time, now)
        for upstream in sources.stages
    )
    if sources.availability_strategy is AvailabilityStrategy.ALL:
        return all(soaked)
    return any(soaked)


def _admits(stage: Stage, sources: FreightSources, freight: Freight, now: datetime) -> bool:
    if sources.direct:
        return True
    if freight.is_approved_for(stage.name):
        return True
    return verified_upstream(freight, sources, now)


def is_available(stage: Stage | None, freight: Freight | None) -> bool:
    """Whether ``freight`` is sanctioned for ``stage`` right now.

    True when the Stage requests the Freight's origin directly, or when the
    Freight has been verified in the Stage itself. Approval for any Stage is
    not sufficient.

    Args:
        stage: The Stage, or None if it could not be found.
        freight: The Freight, or None if it could not be found.

    Returns:
        False if either is missing or they live in different Projects.
    """
    if stage is None or freight is None:
        return False
    if stage.namespace != freight.namespace:
        return False
    for request in stage.spec.requested_freight:
        if request.origin == freight.origin and request.sources.direct:
            return True
    return freight.is_verified_in(stage.name)


def is_admissible(stage: Stage | None, freight: Freight | None, now: datetime) -> bool:
    """Evaluate the listing rule for a single Freight without store access.

    Equivalent to asking whether ``freight`` would appear in
    ``list_available_to_stage(stage)`` evaluated at ``now``, minus the
    Warehouse existence check.
    """
    if stage is None or freight is None:
        return False
    if stage.namespace != freight.namespace:
        return False
    return any(
        _admits(stage, request.sources, freight, now)
        for request in stage.requests_for(freight.origin)
    )


class AvailabilityResolver:
    """Lists the Freight admissible to a Stage.

    Attributes:
        warehouses: Reader used to confirm each requested origin exists.
        freight: Reader used to list candidate Freight per origin.
        clock: Evaluation clock for soak windows.

    Example:
        >>> resolver = AvailabilityResolver(warehouses=store, freight=store)
        >>> [f.name for f in resolver.list_available_to_stage(stage)]
        ['3f1c...', 'a9d0...']
    """

    def __init__(
        self,
        warehouses: WarehouseReader,
        freight: FreightReader,
        clock: Clock | None = None,
    ) -> None:
        self.warehouses = warehouses
        self.freight = freight
        self.clock = clock or utcnow

    def list_available_to_stage(self, stage: Stage) -> list[Freight]:
        """Every Freight admissible to ``stage``, de-duplicated and sorted by name.

        Raises:
            NotFoundError: If a requested origin's Warehouse does not exist.
            StoreError: If a Warehouse lookup or Freight listing fails.
        """
        namespace = stage.namespace
        now = self.clock()
        log = logger.bind(namespace=namespace, stage=stage.name)

        with create_span(
            "freightline.availability.list",
            attributes={
                "freightline.namespace": namespace,
                "freightline.stage": stage.name,
            },
        ) as span:
            available: dict[str, Freight] = {}
            for request in stage.spec.requested_freight:
                origin = request.origin
                try:
                    warehouse = self.warehouses.get_warehouse(namespace, origin.name)
                except StoreError as e:
                    raise StoreError(f"get warehouse {origin.name}", e) from e
                if warehouse is None:
                    raise NotFoundError("Warehouse", origin.name, namespace)

                try:
                    candidates = self.freight.list_freight(namespace, origin=origin)
                except StoreError as e:
                    raise StoreError(f"list freight from {origin}", e) from e

                for candidate in candidates:
                    if candidate.origin != origin:
                        continue
                    if _admits(stage, request.sources, candidate, now):
                        available.setdefault(candidate.name, candidate)

            result = [available[name] for name in sorted(available)]
            span.set_attribute("freightline.available_count", len(result))
            log.debug("available_freight_listed", count=len(result))
            return result


__all__ = [
    "AvailabilityResolver",
    "Clock",
    "is_admissible",
    "is_available",
    "utcnow",
    "verified_upstream",
]
