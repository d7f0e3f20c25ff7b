"""In-memory object store implementing every engine capability.

Objects are deep-copied on the way in and out, so callers never share state
with the store. Updates carry optimistic concurrency: a write whose
``resource_version`` does not match the stored one raises ConflictError.
"""

from __future__ import annotations

import itertools
import threading
from datetime import datetime, timezone
from typing import TypeVar

import structlog

from freightline.promotion.errors import AlreadyExistsError, ConflictError, NotFoundError
from freightline.schemas import (
    LABEL_KEY_ALIAS,
    Freight,
    FreightOrigin,
    Promotion,
    PromotionTemplateResource,
    Stage,
    Warehouse,
)
from freightline.schemas.meta import ResourceModel

logger = structlog.get_logger(__name__)

T = TypeVar("T", bound=ResourceModel)

_Key = tuple[str, str]


class InMemoryStore:
    """Thread-safe dict-backed store for tests, dry runs and local use.

    Example:
        >>> store = InMemoryStore()
        >>> store.add(stage)
        >>> store.get_stage("shop", "test").name
        'test'
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._versions = itertools.count(1)
        self._objects: dict[type[ResourceModel], dict[_Key, ResourceModel]] = {
            Stage: {},
            Freight: {},
            Warehouse: {},
            Promotion: {},
            PromotionTemplateResource: {},
        }

    def _bucket(self, kind: type[T]) -> dict[_Key, T]:
        return self._objects[kind]  # type: ignore[return-value]

    def _get(self, kind: type[T], namespace: str, name: str) -> T | None:
        with self._lock:
            obj = self._bucket(kind).get((namespace, name))
            return obj.model_copy(deep=True) if obj is not None else None

    def _list(self, kind: type[T], namespace: str) -> list[T]:
        with self._lock:
            bucket = self._bucket(kind)
            return [
                bucket[key].model_copy(deep=True)
                for key in sorted(bucket)
                if key[0] == namespace
            ]

    def _stamp(self, obj: ResourceModel) -> None:
        meta = obj.metadata  # type: ignore[attr-defined]
        meta.resource_version = str(next(self._versions))
        if meta.creation_timestamp is None:
            meta.creation_timestamp = datetime.now(timezone.utc)

    def create(self, obj: T) -> T:
        """Store a new object.

        Raises:
            AlreadyExistsError: If an object of the same kind and name exists.
        """
        meta = obj.metadata  # type: ignore[attr-defined]
        key = (meta.namespace, meta.name)
        stored = obj.model_copy(deep=True)
        with self._lock:
            bucket = self._bucket(type(obj))
            if key in bucket:
                raise AlreadyExistsError(type(obj).__name__, meta.name, meta.namespace)
            if isinstance(stored, Freight) and stored.alias:
                stored.metadata.labels[LABEL_KEY_ALIAS] = stored.alias
            self._stamp(stored)
            bucket[key] = stored
            return stored.model_copy(deep=True)

    def add(self, *objs: ResourceModel) -> None:
        """Create several objects; convenience for seeding."""
        for obj in objs:
            self.create(obj)

    def update(self, obj: T) -> T:
        """Replace an existing object if its resource_version is current.

        An object without a resource_version overwrites unconditionally.

        Raises:
            NotFoundError: If the object does not exist.
            ConflictError: If the stored version has moved on.
        """
        meta = obj.metadata  # type: ignore[attr-defined]
        key = (meta.namespace, meta.name)
        kind = type(obj).__name__
        with self._lock:
            bucket = self._bucket(type(obj))
            current = bucket.get(key)
            if current is None:
                raise NotFoundError(kind, meta.name, meta.namespace)
            current_version = current.metadata.resource_version  # type: ignore[attr-defined]
            if meta.resource_version and meta.resource_version != current_version:
                raise ConflictError(kind, meta.name, meta.namespace)
            stored = obj.model_copy(deep=True)
            self._stamp(stored)
            bucket[key] = stored
            return stored.model_copy(deep=True)

    def get_stage(self, namespace: str, name: str) -> Stage | None:
        return self._get(Stage, namespace, name)

    def list_stages(self, namespace: str) -> list[Stage]:
        return self._list(Stage, namespace)

    def get_freight(self, namespace: str, name: str) -> Freight | None:
        return self._get(Freight, namespace, name)

    def get_freight_by_alias(self, namespace: str, alias: str) -> Freight | None:
        for freight in self._list(Freight, namespace):
            if freight.metadata.labels.get(LABEL_KEY_ALIAS) == alias:
                return freight
        return None

    def list_freight(
        self,
        namespace: str,
        origin: FreightOrigin | None = None,
    ) -> list[Freight]:
        listing = self._list(Freight, namespace)
        if origin is None:
            return listing
        return [f for f in listing if f.origin == origin]

    def get_warehouse(self, namespace: str, name: str) -> Warehouse | None:
        return self._get(Warehouse, namespace, name)

    def get_promotion_template(
        self, namespace: str, name: str
    ) -> PromotionTemplateResource | None:
        return self._get(PromotionTemplateResource, namespace, name)

    def get_promotion(self, namespace: str, name: str) -> Promotion | None:
        return self._get(Promotion, namespace, name)

    def list_promotions(self, namespace: str) -> list[Promotion]:
        return self._list(Promotion, namespace)

    def create_promotion(self, promotion: Promotion) -> Promotion:
        created = self.create(promotion)
        logger.debug(
            "promotion_stored",
            namespace=created.metadata.namespace,
            promotion=created.metadata.name,
        )
        return created

    def patch_stage_annotations(
        self,
        namespace: str,
        name: str,
        annotations: dict[str, str],
    ) -> Stage:
        """Merge ``annotations`` into a Stage's annotations.

        Raises:
            NotFoundError: If the Stage does not exist.
        """
        with self._lock:
            bucket = self._bucket(Stage)
            current = bucket.get((namespace, name))
            if current is None:
                raise NotFoundError("Stage", name, namespace)
            stored = current.model_copy(deep=True)
            stored.metadata.annotations.update(annotations)
            self._stamp(stored)
            bucket[(namespace, name)] = stored
            return stored.model_copy(deep=True)


__all__ = ["InMemoryStore"]
