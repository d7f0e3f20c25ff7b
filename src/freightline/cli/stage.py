"""Stage commands: reverify, abort-verification, available.

Example:
    $ freightline reverify test --project shop
    $ freightline abort-verification test --project shop
    $ freightline available prod --project shop --output json
"""

from __future__ import annotations

import json
import sys

import click

from freightline.cli.context import get_service, resolve_actor
from freightline.cli.utils import info, report_failure, success
from freightline.promotion.errors import FreightlineError
from freightline.promotion.service import StageRequest


def _signal(
    ctx: click.Context,
    stage: str,
    project: str,
    actor: str | None,
    output: str,
    abort: bool,
) -> None:
    request = StageRequest(project=project, stage=stage)
    who = resolve_actor(ctx, actor, ())
    action = "Abort" if abort else "Reverify"
    try:
        service = get_service(ctx)
        if abort:
            response = service.abort_verification(request, who)
        else:
            response = service.reverify(request, who)
    except FreightlineError as e:
        sys.exit(report_failure(e, output, action))

    if output == "json":
        success(json.dumps({"stage": stage, "project": project, "written": response.written}))
    elif response.written:
        success(f"{action} requested for {project}/{stage}")
    else:
        info(f"Verification of {project}/{stage} already finished; nothing to abort")


@click.command(name="reverify", help="Ask a Stage to re-run verification of its current Freight.")
@click.argument("stage")
@click.option("--project", "-p", required=True, help="Project (namespace) of the Stage.")
@click.option("--actor", default=None, help="Actor recorded on the request.")
@click.option(
    "--output",
    type=click.Choice(["table", "json"], case_sensitive=False),
    default="table",
    show_default=True,
    help="Output format.",
)
@click.pass_context
def reverify_command(
    ctx: click.Context, stage: str, project: str, actor: str | None, output: str
) -> None:
    """Write the reverify annotation on STAGE."""
    _signal(ctx, stage, project, actor, output, abort=False)


@click.command(
    name="abort-verification",
    help="Ask a Stage to abort its running verification.",
)
@click.argument("stage")
@click.option("--project", "-p", required=True, help="Project (namespace) of the Stage.")
@click.option("--actor", default=None, help="Actor recorded on the request.")
@click.option(
    "--output",
    type=click.Choice(["table", "json"], case_sensitive=False),
    default="table",
    show_default=True,
    help="Output format.",
)
@click.pass_context
def abort_verification_command(
    ctx: click.Context, stage: str, project: str, actor: str | None, output: str
) -> None:
    """Write the abort annotation on STAGE unless verification already finished."""
    _signal(ctx, stage, project, actor, output, abort=True)


@click.command(name="available", help="List Freight that may be promoted into a Stage.")
@click.argument("stage")
@click.option("--project", "-p", required=True, help="Project (namespace) of the Stage.")
@click.option(
    "--output",
    type=click.Choice(["table", "json"], case_sensitive=False),
    default="table",
    show_default=True,
    help="Output format.",
)
@click.pass_context
def available_command(ctx: click.Context, stage: str, project: str, output: str) -> None:
    """Print the Freight admissible to STAGE, sorted by name."""
    request = StageRequest(project=project, stage=stage)
    try:
        response = get_service(ctx).list_available_freight(request)
    except FreightlineError as e:
        sys.exit(report_failure(e, output, "Listing"))

    if output == "json":
        success(response.model_dump_json(indent=2, by_alias=True, exclude_none=True))
        return
    if not response.freight:
        info(f"No Freight available to {project}/{stage}")
        return
    for freight in response.freight:
        alias = freight.alias or "-"
        success(f"{freight.name}  alias={alias}  origin={freight.origin}")


__all__ = ["abort_verification_command", "available_command", "reverify_command"]
