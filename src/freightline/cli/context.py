"""Composition root for CLI commands.

Commands never build collaborators themselves; they ask the click context for
a PromotionService. Tests pre-seed ``obj={"service": ...}`` to substitute one.
"""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

import click

from freightline.config import FreightlineConfig
from freightline.promotion.authorization import PolicyAuthorizer
from freightline.promotion.events import CompositeEventRecorder, LoggingEventRecorder
from freightline.promotion.service import PromotionService
from freightline.promotion.webhooks import WebhookEventRecorder, WebhookNotifier
from freightline.schemas import Actor

if TYPE_CHECKING:
    from freightline.promotion.capabilities import EventRecorder


def build_service(config: FreightlineConfig) -> PromotionService:
    """Wire a PromotionService against the Kubernetes store."""
    from freightline.store.kubernetes import KubernetesStore

    store = KubernetesStore.connect(config.kubernetes)
    recorders: list[EventRecorder] = [LoggingEventRecorder()]
    if config.webhooks:
        recorders.append(WebhookEventRecorder(WebhookNotifier(list(config.webhooks))))
    return PromotionService.from_store(
        store,
        authorizer=PolicyAuthorizer(config.authorization),
        recorder=CompositeEventRecorder(recorders),
    )


def get_config(ctx: click.Context) -> FreightlineConfig:
    obj = ctx.ensure_object(dict)
    config = obj.get("config")
    if config is None:
        config = FreightlineConfig()
        obj["config"] = config
    return config


def get_service(ctx: click.Context) -> PromotionService:
    obj = ctx.ensure_object(dict)
    service = obj.get("service")
    if service is None:
        service = build_service(get_config(ctx))
        obj["service"] = service
    return service


def resolve_actor(ctx: click.Context, name: str | None, groups: tuple[str, ...]) -> Actor:
    """Actor from ``--actor``, then config/``FREIGHTLINE_ACTOR``, then ``$USER``."""
    resolved = name or get_config(ctx).actor or os.environ.get("USER") or "unknown"
    return Actor(name=resolved, groups=list(groups))


__all__ = ["build_service", "get_config", "get_service", "resolve_actor"]
