"""Shared object metadata and well-known keys.

Every stored resource (Freight, Warehouse, Stage, Promotion, named
PromotionTemplate) carries an ``ObjectMeta``. Models use camelCase aliases so
they validate directly from Kubernetes custom-object payloads, while Python
code keeps snake_case attribute names.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

LABEL_KEY_ALIAS = "freightline.io/alias"
"""Label mirroring a Freight's human-friendly alias."""

ANNOTATION_KEY_REVERIFY = "freightline.io/reverify"
"""Stage annotation carrying a pending reverify signal."""

ANNOTATION_KEY_ABORT = "freightline.io/abort"
"""Stage annotation carrying a pending verification abort signal."""

ANNOTATION_KEY_CREATE_ACTOR = "freightline.io/create-actor"
"""Promotion annotation recording who requested its creation."""


class ResourceModel(BaseModel):
    """Base for resource models read from and written to the object store.

    Unknown keys are ignored so payloads straight from the API server
    (``apiVersion``, ``kind``, ``managedFields`` ...) validate cleanly.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_api(self) -> dict[str, Any]:
        """Serialize with camelCase keys, dropping unset optionals."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class ObjectMeta(ResourceModel):
    """Identity and bookkeeping metadata of a stored resource.

    Attributes:
        namespace: Project the resource belongs to.
        name: Resource name, unique within its kind and Project.
        labels: Arbitrary string labels.
        annotations: Arbitrary string annotations (signals live here).
        creation_timestamp: Set by the store on create.
        resource_version: Opaque token used for optimistic concurrency.
    """

    namespace: str = Field(default="", description="Owning Project")
    name: str = Field(default="", description="Resource name")
    labels: dict[str, str] = Field(default_factory=dict)
    annotations: dict[str, str] = Field(default_factory=dict)
    creation_timestamp: datetime | None = Field(default=None)
    resource_version: str | None = Field(default=None)


__all__ = [
    "ANNOTATION_KEY_ABORT",
    "ANNOTATION_KEY_CREATE_ACTOR",
    "ANNOTATION_KEY_REVERIFY",
    "LABEL_KEY_ALIAS",
    "ObjectMeta",
    "ResourceModel",
]
