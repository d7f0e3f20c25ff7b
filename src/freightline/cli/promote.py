"""Promotion commands: promote, promote-downstream, promote-subscribers.

Example:
    $ freightline promote prod --project shop --freight 3f1c0a2
    $ freightline promote-downstream test --project shop --alias clever-otter
    $ freightline promote-subscribers test --project shop --output json
"""

from __future__ import annotations

import json
import sys
from collections.abc import Callable
from typing import TYPE_CHECKING

import click
import structlog

from freightline.cli.context import get_service, resolve_actor
from freightline.cli.utils import info, report_failure, success, warn
from freightline.promotion.errors import FreightlineError
from freightline.promotion.service import FanOutResponse, PromoteRequest

if TYPE_CHECKING:
    from freightline.schemas import Actor, Promotion

logger = structlog.get_logger(__name__)

EXIT_CODES_EPILOG = """
Exit Codes:
    0  - Success (including partial fan-out success)
    2  - Invalid request
    3  - Stage, Freight or downstream Stages not found
    4  - Freight not available to the Stage
    5  - Permission denied
    7  - Store failure
    8  - Every fan-out target failed
"""


def _format_promotion(promotion: Promotion) -> str:
    return (
        f"{promotion.metadata.name}  stage={promotion.spec.stage}  "
        f"freight={promotion.spec.freight}"
    )


def _format_fanout(response: FanOutResponse, output_format: str) -> str:
    if output_format == "json":
        return response.model_dump_json(indent=2, by_alias=True, exclude_none=True)
    lines = [_format_promotion(p) for p in response.promotions]
    lines.extend(f"skipped  stage={name}  (control flow)" for name in response.skipped)
    return "\n".join(lines) if lines else "No Promotions created."


def _freight_options(fn: Callable[..., None]) -> Callable[..., None]:
    fn = click.option(
        "--alias",
        "freight_alias",
        default=None,
        help="Freight alias (mutually exclusive with --freight).",
        metavar="ALIAS",
    )(fn)
    fn = click.option(
        "--freight",
        default=None,
        help="Freight name.",
        metavar="NAME",
    )(fn)
    return fn


def _common_options(fn: Callable[..., None]) -> Callable[..., None]:
    fn = click.option(
        "--output",
        type=click.Choice(["table", "json"], case_sensitive=False),
        default="table",
        show_default=True,
        help="Output format.",
    )(fn)
    fn = click.option(
        "--group",
        "groups",
        multiple=True,
        help="Group the actor belongs to (repeatable).",
        metavar="GROUP",
    )(fn)
    fn = click.option(
        "--actor",
        default=None,
        help="Actor identity. Defaults to config, $FREIGHTLINE_ACTOR or $USER.",
        metavar="IDENTITY",
    )(fn)
    fn = click.option(
        "--project",
        "-p",
        required=True,
        help="Project (namespace) of the Stage.",
        metavar="PROJECT",
    )(fn)
    return fn


@click.command(
    name="promote",
    help="Promote a specific Freight into a Stage.",
    epilog="""
Examples:
    $ freightline promote prod --project shop --freight 3f1c0a2
    $ freightline promote prod --project shop --alias clever-otter --output json
"""
    + EXIT_CODES_EPILOG,
)
@click.argument("stage")
@_freight_options
@_common_options
@click.pass_context
def promote_command(
    ctx: click.Context,
    stage: str,
    freight: str | None,
    freight_alias: str | None,
    project: str,
    actor: str | None,
    groups: tuple[str, ...],
    output: str,
) -> None:
    """Create one Promotion of a Freight into a Stage."""
    request = PromoteRequest(
        project=project, stage=stage, freight=freight, freight_alias=freight_alias
    )
    who = resolve_actor(ctx, actor, groups)
    if output == "table":
        info(f"Promoting {freight or freight_alias} into {project}/{stage}...")
    try:
        response = get_service(ctx).promote_to_stage(request, who)
    except FreightlineError as e:
        sys.exit(report_failure(e, output, "Promotion"))

    if output == "json":
        success(response.promotion.model_dump_json(indent=2, by_alias=True, exclude_none=True))
    else:
        success(_format_promotion(response.promotion))


def _run_fanout(
    ctx: click.Context,
    operation: str,
    request: PromoteRequest,
    who: Actor,
    output: str,
) -> None:
    try:
        service = get_service(ctx)
        response: FanOutResponse = getattr(service, operation)(request, who)
    except FreightlineError as e:
        sys.exit(report_failure(e, output, "Fan-out"))

    success(_format_fanout(response, output))
    for failure in response.failures:
        warn("Promotion failed", stage=failure.stage, error=failure.error)
    if response.failures and output == "table":
        logger.warning(
            "fanout_partial_failure",
            created=len(response.promotions),
            failed=len(response.failures),
        )
    if output == "json" and response.error:
        info(json.dumps({"partial_error": response.error}))


@click.command(
    name="promote-downstream",
    help="Promote Freight from a Stage into every Stage downstream of it.",
    epilog=EXIT_CODES_EPILOG,
)
@click.argument("stage")
@_freight_options
@_common_options
@click.pass_context
def promote_downstream_command(
    ctx: click.Context,
    stage: str,
    freight: str | None,
    freight_alias: str | None,
    project: str,
    actor: str | None,
    groups: tuple[str, ...],
    output: str,
) -> None:
    """Fan Freight out to the downstream Stages of STAGE."""
    request = PromoteRequest(
        project=project, stage=stage, freight=freight, freight_alias=freight_alias
    )
    _run_fanout(ctx, "promote_downstream", request, resolve_actor(ctx, actor, groups), output)


@click.command(
    name="promote-subscribers",
    help="Promote Freight from a Stage into every Stage subscribed to it.",
    epilog=EXIT_CODES_EPILOG,
)
@click.argument("stage")
@_freight_options
@_common_options
@click.pass_context
def promote_subscribers_command(
    ctx: click.Context,
    stage: str,
    freight: str | None,
    freight_alias: str | None,
    project: str,
    actor: str | None,
    groups: tuple[str, ...],
    output: str,
) -> None:
    """Fan Freight out to the legacy subscribers of STAGE."""
    request = PromoteRequest(
        project=project, stage=stage, freight=freight, freight_alias=freight_alias
    )
    _run_fanout(ctx, "promote_subscribers", request, resolve_actor(ctx, actor, groups), output)


__all__ = [
    "promote_command",
    "promote_downstream_command",
    "promote_subscribers_command",
]
