"""Kubernetes-backed object store.

Stages, Freight, Warehouses, Promotions and PromotionTemplates are custom
resources read and written through ``kubernetes.client.CustomObjectsApi``.
A 404 on read yields None and a 409 on create raises AlreadyExistsError. Any
other API failure, a transport failure (urllib3 or socket errors) or an
undecodable payload raises StoreError. Reverify/abort signals are written as
JSON merge patches touching only ``metadata.annotations``.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, TypeVar

import pydantic
import structlog
import urllib3
from kubernetes import client
from kubernetes import config as k8s_config
from kubernetes.client.rest import ApiException

from freightline.config import KubernetesConfig
from freightline.promotion.errors import AlreadyExistsError, ConflictError, StoreError
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
from freightline.telemetry.sanitization import sanitize_error_message

logger = structlog.get_logger(__name__)

T = TypeVar("T", bound=ResourceModel)

PLURALS: dict[type[ResourceModel], str] = {
    Stage: "stages",
    Freight: "freights",
    Warehouse: "warehouses",
    Promotion: "promotions",
    PromotionTemplateResource: "promotiontemplates",
}

KINDS: dict[type[ResourceModel], str] = {
    Stage: "Stage",
    Freight: "Freight",
    Warehouse: "Warehouse",
    Promotion: "Promotion",
    PromotionTemplateResource: "PromotionTemplate",
}

# Failures below the HTTP layer: refused connections, timeouts, exhausted retries.
TRANSPORT_ERRORS: tuple[type[Exception], ...] = (urllib3.exceptions.HTTPError, OSError)


def load_api(config: KubernetesConfig) -> client.CustomObjectsApi:
    """Build a CustomObjectsApi from kubeconfig or in-cluster credentials.

    Loading order: explicit kubeconfig path, then in-cluster if requested,
    then in-cluster with fallback to the default kubeconfig.

    Raises:
        StoreError: If no usable configuration can be loaded.
    """
    try:
        if config.kubeconfig:
            k8s_config.load_kube_config(config_file=config.kubeconfig, context=config.context)
            logger.info("kubeconfig_loaded", kubeconfig=config.kubeconfig, context=config.context)
        elif config.in_cluster:
            k8s_config.load_incluster_config()
            logger.info("incluster_config_loaded")
        else:
            try:
                k8s_config.load_incluster_config()
                logger.info("incluster_config_loaded")
            except k8s_config.ConfigException:
                k8s_config.load_kube_config(context=config.context)
                logger.info("default_kubeconfig_loaded", context=config.context)
    except (k8s_config.ConfigException, OSError) as e:
        raise StoreError("load kubernetes config", sanitize_error_message(str(e))) from e
    return client.CustomObjectsApi()


class KubernetesStore:
    """Object store over Kubernetes custom resources.

    Attributes:
        config: API group/version and request timeout.
        api: CustomObjectsApi used for every call.

    Example:
        >>> store = KubernetesStore.connect(KubernetesConfig(context="kind-dev"))
        >>> store.get_stage("shop", "test")
    """

    def __init__(
        self,
        config: KubernetesConfig,
        api: client.CustomObjectsApi,
    ) -> None:
        self.config = config
        self.api = api

    @classmethod
    def connect(cls, config: KubernetesConfig) -> KubernetesStore:
        return cls(config, load_api(config))

    def _common(self, kind: type[ResourceModel], namespace: str) -> dict[str, Any]:
        return {
            "group": self.config.group,
            "version": self.config.version,
            "namespace": namespace,
            "plural": PLURALS[kind],
            "_request_timeout": self.config.request_timeout_seconds,
        }

    def _error(
        self, verb: str, kind: type[ResourceModel], target: str, e: ApiException
    ) -> StoreError:
        reason = sanitize_error_message(f"({e.status}) {e.reason}")
        logger.warning(
            "kubernetes_api_error",
            verb=verb,
            plural=PLURALS[kind],
            target=target,
            status=e.status,
        )
        return StoreError(f"{verb} {PLURALS[kind]} {target}", reason)

    def _call(
        self,
        verb: str,
        kind: type[ResourceModel],
        target: str,
        method: Callable[..., Any],
        **kwargs: Any,
    ) -> Any:
        """Invoke an API method, wrapping transport failures as StoreError.

        ApiException is left to the caller, which maps status codes.
        """
        try:
            return method(**kwargs)
        except TRANSPORT_ERRORS as e:
            logger.warning(
                "kubernetes_transport_error",
                verb=verb,
                plural=PLURALS[kind],
                target=target,
                error_type=type(e).__name__,
            )
            raise StoreError(
                f"{verb} {PLURALS[kind]} {target}", sanitize_error_message(str(e))
            ) from e

    def _decode(self, kind: type[T], obj: Any, target: str) -> T:
        try:
            return kind.model_validate(obj)
        except pydantic.ValidationError as e:
            logger.warning(
                "kubernetes_payload_invalid",
                plural=PLURALS[kind],
                target=target,
                errors=e.error_count(),
            )
            raise StoreError(
                f"decode {PLURALS[kind]} {target}", sanitize_error_message(str(e))
            ) from e

    def _get(self, kind: type[T], namespace: str, name: str) -> T | None:
        target = f"{namespace}/{name}"
        try:
            obj = self._call(
                "get",
                kind,
                target,
                self.api.get_namespaced_custom_object,
                name=name,
                **self._common(kind, namespace),
            )
        except ApiException as e:
            if e.status == 404:
                return None
            raise self._error("get", kind, target, e) from e
        return self._decode(kind, obj, target)

    def _list(
        self,
        kind: type[T],
        namespace: str,
        label_selector: str | None = None,
    ) -> list[T]:
        kwargs = self._common(kind, namespace)
        if label_selector:
            kwargs["label_selector"] = label_selector
        try:
            listing = self._call(
                "list", kind, namespace, self.api.list_namespaced_custom_object, **kwargs
            )
        except ApiException as e:
            raise self._error("list", kind, namespace, e) from e
        items = [self._decode(kind, item, namespace) for item in listing.get("items", [])]
        return sorted(items, key=lambda o: o.metadata.name)  # type: ignore[attr-defined]

    def get_stage(self, namespace: str, name: str) -> Stage | None:
        return self._get(Stage, namespace, name)

    def list_stages(self, namespace: str) -> list[Stage]:
        return self._list(Stage, namespace)

    def get_freight(self, namespace: str, name: str) -> Freight | None:
        return self._get(Freight, namespace, name)

    def get_freight_by_alias(self, namespace: str, alias: str) -> Freight | None:
        matches = self._list(Freight, namespace, label_selector=f"{LABEL_KEY_ALIAS}={alias}")
        return matches[0] if matches else None

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

    def list_promotions(self, namespace: str) -> list[Promotion]:
        return self._list(Promotion, namespace)

    def create_promotion(self, promotion: Promotion) -> Promotion:
        namespace = promotion.metadata.namespace
        target = f"{namespace}/{promotion.metadata.name}"
        body = {
            "apiVersion": f"{self.config.group}/{self.config.version}",
            "kind": KINDS[Promotion],
            **promotion.to_api(),
        }
        try:
            created = self._call(
                "create",
                Promotion,
                target,
                self.api.create_namespaced_custom_object,
                body=body,
                **self._common(Promotion, namespace),
            )
        except ApiException as e:
            if e.status == 409:
                raise AlreadyExistsError(
                    KINDS[Promotion], promotion.metadata.name, namespace
                ) from e
            raise self._error("create", Promotion, target, e) from e
        return self._decode(Promotion, created, target)

    def patch_stage_annotations(
        self,
        namespace: str,
        name: str,
        annotations: dict[str, str],
    ) -> Stage:
        target = f"{namespace}/{name}"
        body = {"metadata": {"annotations": annotations}}
        try:
            patched = self._call(
                "patch",
                Stage,
                target,
                self.api.patch_namespaced_custom_object,
                name=name,
                body=body,
                **self._common(Stage, namespace),
            )
        except ApiException as e:
            if e.status == 409:
                raise ConflictError(KINDS[Stage], name, namespace) from e
            raise self._error("patch", Stage, target, e) from e
        return self._decode(Stage, patched, target)


__all__ = ["KubernetesStore", "PLURALS", "load_api"]
