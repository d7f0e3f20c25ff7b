"""Reverify and abort signals for a Stage's in-flight verification.

Signals are written as annotations on the Stage and act as a single-slot
mailbox: the latest write wins and earlier, unobserved signals are lost. The
verification engine watches for a change of the signal's target ID (see
:func:`signal_requested`) and acts on it; this module only writes
well-formed signals.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog

from freightline.promotion.errors import NotFoundError, StoreError, VerificationStateError
from freightline.schemas import (
    ANNOTATION_KEY_ABORT,
    ANNOTATION_KEY_REVERIFY,
    Actor,
    Stage,
    VerificationInfo,
    VerificationRequest,
)
from freightline.telemetry.tracing import create_span, traced

if TYPE_CHECKING:
    from freightline.promotion.capabilities import StagePatcher, StageReader

logger = structlog.get_logger(__name__)


def _stage_attributes(  # noqa: ARG001
    signaler: VerificationSignaler, project: str, stage: str, *args: Any, **kwargs: Any
) -> dict[str, str]:
    return {"freightline.namespace": project, "freightline.stage": stage}


def signal_requested(old: Stage | None, new: Stage | None, key: str) -> bool:
    """Whether ``new`` carries a fresh signal under annotation ``key``.

    A signal is fresh when it is non-empty and targets a different
    verification ID than ``old`` did. A change of actor alone is not a new
    request.
    """
    if new is None:
        return False
    new_request = VerificationRequest.parse(new.metadata.annotations.get(key))
    if new_request is None or not new_request.id:
        return False
    old_request = None
    if old is not None:
        old_request = VerificationRequest.parse(old.metadata.annotations.get(key))
    return not new_request.same_target(old_request)


class VerificationSignaler:
    """Writes reverify/abort signals onto Stages.

    Attributes:
        stages: Reader used to load the Stage and its current verification.
        patcher: Writer used to merge-patch the signal annotation.
    """

    def __init__(self, stages: StageReader, patcher: StagePatcher) -> None:
        self.stages = stages
        self.patcher = patcher

    @traced(name="freightline.verification.reverify", attributes_fn=_stage_attributes)
    def reverify(self, project: str, stage: str, actor: Actor | None = None) -> bool:
        """Ask for the current verification of ``stage`` to be run again.

        Returns:
            True when a signal was written.

        Raises:
            NotFoundError: If the Stage does not exist.
            VerificationStateError: If there is no current verification to target.
            StoreError: If reading or patching the Stage fails.
        """
        current = self._current_verification(project, stage)
        request = VerificationRequest(id=current.id, actor=_actor_name(actor))
        return self._write(project, stage, ANNOTATION_KEY_REVERIFY, request)

    def abort(self, project: str, stage: str, actor: Actor | None = None) -> bool:
        """Ask for the current verification of ``stage`` to be aborted.

        Aborting a verification that already finished is a no-op.

        Returns:
            True when a signal was written, False when the verification was
            already terminal.

        Raises:
            NotFoundError: If the Stage does not exist.
            VerificationStateError: If there is no current verification to target.
            StoreError: If reading or patching the Stage fails.
        """
        with create_span(
            "freightline.verification.abort",
            attributes={"freightline.namespace": project, "freightline.stage": stage},
        ) as span:
            current = self._current_verification(project, stage, require_id=False)
            if current.is_terminal:
                span.set_attribute("freightline.verification.terminal", True)
                logger.debug(
                    "verification_abort_skipped",
                    namespace=project,
                    stage=stage,
                    verification=current.id,
                    phase=current.phase.value if current.phase else None,
                )
                return False
            if not current.id:
                raise VerificationStateError("current stage verification info has no ID")
            request = VerificationRequest(id=current.id, actor=_actor_name(actor))
            return self._write(project, stage, ANNOTATION_KEY_ABORT, request)

    def _current_verification(
        self,
        project: str,
        stage: str,
        require_id: bool = True,
    ) -> VerificationInfo:
        try:
            obj = self.stages.get_stage(project, stage)
        except StoreError as e:
            raise StoreError("get stage", e) from e
        if obj is None:
            raise NotFoundError("Stage", stage, project)

        collection = obj.status.current_freight()
        if collection is None or not collection.freight:
            raise VerificationStateError("stage has no current freight")
        current = collection.current_verification()
        if current is None:
            raise VerificationStateError("stage has no current verification info")
        if require_id and not current.id:
            raise VerificationStateError("current stage verification info has no ID")
        return current

    def _write(self, project: str, stage: str, key: str, request: VerificationRequest) -> bool:
        value = request.encode()
        if not value:
            return False
        try:
            self.patcher.patch_stage_annotations(project, stage, {key: value})
        except StoreError as e:
            raise StoreError(f"patch stage annotation {key}", e) from e
        logger.info(
            "verification_signal_written",
            namespace=project,
            stage=stage,
            annotation=key,
            verification=request.id,
            actor=request.actor,
        )
        return True


def _actor_name(actor: Actor | None) -> str | None:
    return actor.name if actor is not None else None


__all__ = ["VerificationSignaler", "signal_requested"]
