"""Warehouse: the producer that Freight points back to as its origin."""

from __future__ import annotations

from typing import Any

from pydantic import Field

from freightline.schemas.freight import FreightOrigin, FreightOriginKind
from freightline.schemas.meta import ObjectMeta, ResourceModel


class WarehouseSpec(ResourceModel):
    """Warehouse configuration; subscriptions are opaque here."""

    subscriptions: list[dict[str, Any]] = Field(
        default_factory=list,
        description="Artifact repositories the Warehouse discovers from",
    )


class Warehouse(ResourceModel):
    """A Freight-producing subscription unit inside a Project."""

    metadata: ObjectMeta = Field(default_factory=ObjectMeta)
    spec: WarehouseSpec = Field(default_factory=WarehouseSpec)

    def as_origin(self) -> FreightOrigin:
        return FreightOrigin(kind=FreightOriginKind.WAREHOUSE, name=self.metadata.name)


__all__ = ["Warehouse", "WarehouseSpec"]
