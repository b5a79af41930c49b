"""Compensated multi-object writes.

A WritePlan is a fixed, ordered sequence of object writes. Each step names
the keys to delete if that step fails. Compensation is not "undo everything
completed so far": only the step's own compensate_keys are removed, in the
order given. This is best-effort cleanup, not a transaction; compensation
deletes can fail too and their errors are reported with the write error.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import StrEnum
from typing import IO, Any

from arkive.persistence.errors import AggregatedError
from arkive.storage.errors import ObjectNotFoundError
from arkive.storage.object_store import ObjectStore

logger = logging.getLogger(__name__)


def seek_to_beginning(stream: IO[bytes]) -> None:
    """Rewind stream to its start if it supports seeking; otherwise do nothing."""
    seekable = getattr(stream, "seekable", None)
    if seekable is None or not seekable():
        return
    stream.seek(0)


def seek_and_put_object(
    object_store: ObjectStore,
    bucket: str,
    key: str,
    body: IO[bytes] | None,
) -> None:
    """Rewind body (when possible) and upload it. A None body is skipped."""
    if body is None:
        return

    seek_to_beginning(body)
    object_store.put_object(bucket, key, body)  # type: ignore[arg-type]


class WriteStepStatus(StrEnum):
    """Status of a write step."""

    PENDING = "pending"
    SKIPPED = "skipped"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class CompensatedWrite:
    """One write and the keys to delete if it fails.

    Attributes:
        name: Human-readable step name for logging.
        key: Object key to write.
        body: Stream to upload; None skips the step.
        compensate_keys: Keys deleted, in order, when this write fails.
        status: Outcome after the plan has run.
    """

    name: str
    key: str
    body: IO[bytes] | None
    compensate_keys: tuple[str, ...] = ()
    status: WriteStepStatus = WriteStepStatus.PENDING


@dataclass
class WritePlan:
    """Ordered compensated writes against one bucket.

    Fail-fast semantics:
    - Steps run in insertion order; the first failure stops the plan
    - The failed step's compensate_keys are all attempted even if some fail
    - The write error and every compensation error are raised together
    """

    object_store: ObjectStore
    bucket: str
    log: logging.Logger | logging.LoggerAdapter[Any] = logger
    steps: list[CompensatedWrite] = field(default_factory=list)

    def add(
        self,
        name: str,
        key: str,
        body: IO[bytes] | None,
        compensate_keys: Sequence[str] = (),
    ) -> WritePlan:
        """Append a step.

        Returns:
            Self for chaining.
        """
        self.steps.append(CompensatedWrite(name, key, body, tuple(compensate_keys)))
        return self

    def execute(self) -> None:
        """Run every step.

        Raises:
            AggregatedError: If a write fails; holds the write error followed
                by any compensation delete errors.
        """
        for step in self.steps:
            if step.body is None:
                step.status = WriteStepStatus.SKIPPED
                continue

            try:
                seek_and_put_object(self.object_store, self.bucket, step.key, step.body)
            except Exception as e:
                step.status = WriteStepStatus.FAILED
                self.log.error("Error uploading %s: %s", step.name, e)
                raise AggregatedError([e, *self._compensate(step)]) from e

            step.status = WriteStepStatus.COMPLETED
            self.log.debug("Uploaded %s to %s", step.name, step.key)

    def _compensate(self, failed: CompensatedWrite) -> list[BaseException]:
        errors: list[BaseException] = []
        for key in failed.compensate_keys:
            try:
                self.object_store.delete_object(self.bucket, key)
                self.log.debug("Compensation deleted %s after %s failed", key, failed.name)
            except ObjectNotFoundError:
                # never written (e.g. a skipped step), or removed concurrently
                self.log.warning("Compensation found %s already absent", key)
            except Exception as e:
                self.log.error("Compensation delete of %s failed: %s", key, e)
                errors.append(e)
        return errors
