"""
Evidence attachment gateway.

Uploads a stage evidence file to the external object store and returns the
opaque reference the store hands back.  Uploading happens outside any
database transaction; the workflow attaches the reference afterwards.

Object keys follow ``<order_id>/<stage>-<epoch_ms>.<ext>``.
"""

from concurrent.futures import TimeoutError as FutureTimeoutError
from pathlib import PurePosixPath
from typing import Protocol, runtime_checkable
from uuid import UUID

from production_config import WorkflowConfig
from production_kernel.domain.clock import Clock, SystemClock
from production_kernel.domain.stages import Stage, parse_stage, requires_evidence
from production_kernel.exceptions import (
    EvidenceNotAcceptedError,
    EvidenceStoreError,
    EvidenceStoreTimeoutError,
    ProductionKernelError,
)
from production_kernel.logging_config import get_logger
from production_services._timeouts import call_with_timeout

logger = get_logger("services.evidence")

DEFAULT_EXTENSION = "bin"


@runtime_checkable
class EvidenceStore(Protocol):
    """Object store adapter."""

    def put(self, key: str, content: bytes, content_type: str | None) -> str:
        """Store ``content`` under ``key`` and return its reference."""
        ...


class EvidenceGateway:
    """Bounded-time uploads of stage evidence."""

    def __init__(
        self,
        store: EvidenceStore,
        clock: Clock | None = None,
        timeout_seconds: float = 30.0,
    ):
        self._store = store
        self._clock = clock or SystemClock()
        self._timeout_seconds = timeout_seconds

    @classmethod
    def from_config(
        cls, store: EvidenceStore, config: WorkflowConfig, clock: Clock | None = None,
    ) -> "EvidenceGateway":
        """Gateway bounded by ``config.evidence_timeout_seconds``."""
        return cls(store, clock=clock, timeout_seconds=config.evidence_timeout_seconds)

    @property
    def timeout_seconds(self) -> float:
        return self._timeout_seconds

    def object_key(self, order_id: UUID | str, stage: Stage | str, filename: str) -> str:
        stage = parse_stage(stage)
        extension = PurePosixPath(filename or "").suffix.lstrip(".").lower()
        return f"{order_id}/{stage.value}-{self._clock.epoch_millis()}.{extension or DEFAULT_EXTENSION}"

    def upload(
        self,
        order_id: UUID | str,
        stage: Stage | str,
        filename: str,
        content: bytes,
        content_type: str | None = None,
    ) -> str:
        """
        Upload an evidence file and return the store's reference.

        Raises:
            EvidenceNotAcceptedError: quality_review, or empty content.
            EvidenceStoreTimeoutError: The store did not answer in time.
            EvidenceStoreError: Any other store failure, or an empty
                reference returned.
        """
        stage = parse_stage(stage)
        if not requires_evidence(stage):
            raise EvidenceNotAcceptedError(
                stage.value, "quality review is approved with an acknowledgment, not evidence",
            )
        if not content:
            raise EvidenceNotAcceptedError(stage.value, "evidence file is empty")

        key = self.object_key(order_id, stage, filename)
        try:
            reference = call_with_timeout(
                self._store.put, self._timeout_seconds, key, content, content_type,
            )
        except FutureTimeoutError:
            logger.warning(
                "evidence_upload_timeout",
                extra={"object_key": key, "timeout_seconds": self._timeout_seconds},
            )
            raise EvidenceStoreTimeoutError(key, self._timeout_seconds) from None
        except ProductionKernelError:
            raise
        except Exception as exc:
            logger.warning(
                "evidence_upload_failed",
                extra={"object_key": key},
                exc_info=True,
            )
            raise EvidenceStoreError(key, str(exc)) from exc

        if not reference or not str(reference).strip():
            raise EvidenceStoreError(key, "store returned an empty reference")

        logger.info(
            "evidence_uploaded",
            extra={"object_key": key, "size_bytes": len(content)},
        )
        return str(reference).strip()
