# core/write_path.py

"""
Validated, idempotent status writes with optimistic local apply.

Every write is an upsert keyed by `(student_id, day)`, so resending a write is always safe.
The local index is only touched after the store confirms the write; a failed write leaves the
index exactly as it was. The change notification that follows a confirmed write is applied
idempotently and does not double count.
"""

from __future__ import annotations

import datetime
from typing import Any, Callable

import core.formatters as formatters
from core.app_logger import get_logger
from core.record_store import RecordStore, StoreUnavailableError
from core.reconciler import Reconciler
from core.response import ErrorCode, Response
from core.utils import utc_now
from models.family import Family
from models.status_record import DailyStatusRecord
from models.student import DismissalStatus, Student

logger = get_logger(__name__)

ACTOR_PARENT = "parent"
ACTOR_SPOTTER = "spotter"
ACTOR_ADMIN = "admin"


class WritePath:

    def __init__(
        self,
        store: RecordStore,
        reconciler: Reconciler,
        clock: Callable[[], datetime.datetime] = utc_now,
        default_actor: str = ACTOR_SPOTTER,
    ):
        self._store = store
        self._reconciler = reconciler
        self._clock = clock
        self._default_actor = default_actor

    # === public write operations ===

    def set_single_status(
        self,
        student_id: str,
        status: DismissalStatus | str,
        actor: str | None = None,
    ) -> Response:
        """
        Sets one student's status for the session day.

        Args:
            student_id (str): The student to update.
            status (DismissalStatus | str): The new status.
            actor (str | None): Who made the change (e.g. "spotter"); defaults to the configured actor.

        Returns:
            Response: A structured response with the following contract:
                - success (bool):
                    - True if the store confirmed the write.
                    - False for invalid input, an unavailable store, or a session that cannot write.
                - detail (str | None):
                    - On success, an operator message such as "Ava Smith called".
                    - On failure, a human-readable description of the error.
                - error (ErrorCode | str | None):
                    - `ErrorCode.VALIDATION_FAILED` for an empty id, unknown status, or empty actor.
                    - `ErrorCode.STORE_UNAVAILABLE` if the upsert failed.
                    - `ErrorCode.BASELINE_UNAVAILABLE` / `ErrorCode.SESSION_CLOSED` if the session cannot write.
                    - `ErrorCode.INTERNAL_ERROR` for unexpected errors.
                - status_code (int | None):
                    - 200 on success
                    - 400 on validation failure
                    - 503 if the store is unavailable
                - data (dict | None): Payload with the following keys:
                    - On success:
                        - "records" (list[DailyStatusRecord]): The rows written.
                        - "applied" (list[str]): Students whose local status now reflects the write.
                        - "stale" (list[str]): Students where a newer status was already reflected.

        Notes:
            - Mutates the index only after the store confirms the write.
        """
        try:
            student_id = self._validate_student_id(student_id)
            status = DismissalStatus.validate(status)
            actor = self._validate_actor(actor)

        except ValueError as e:
            return self._validation_failure(e)

        return self._write([student_id], status, actor)

    def set_family_status(
        self,
        carpool_number: Any,
        status: DismissalStatus | str = DismissalStatus.CALLED,
        actor: str | None = None,
        student_ids: list[str] | None = None,
    ) -> Response:
        """
        Sets the status of every student in a family (or a chosen subset) in one upsert.

        Args:
            carpool_number (Any): The family's carpool number, as an int or digit string.
            status (DismissalStatus | str): The new status; defaults to CALLED.
            actor (str | None): Who made the change; defaults to the configured actor.
            student_ids (list[str] | None): Restrict the write to these students of the family.

        Returns:
            Response: Same contract as `set_single_status()`, plus:
                - error `ErrorCode.VALIDATION_FAILED` with status_code 404 if the carpool number
                  resolves to no students.
                - error `ErrorCode.VALIDATION_FAILED` if `student_ids` is empty or names a student
                  outside the family.

        Notes:
            - When the lookup returns zero students nothing is written.
            - The family lookup is a store read and can fail with `ErrorCode.STORE_UNAVAILABLE`.
        """
        try:
            carpool_number = Family.validate_carpool_number(carpool_number)
            status = DismissalStatus.validate(status)
            actor = self._validate_actor(actor)

        except ValueError as e:
            return self._validation_failure(e)

        guard = self._require_writable()
        if guard is not None:
            return guard

        try:
            students = self._store.lookup_family_students(carpool_number)

        except StoreUnavailableError as e:
            logger.warning(f"Family lookup for #{carpool_number} failed: {e}")
            return Response.fail(
                detail=f"Unable to look up family: {e}",
                error=ErrorCode.STORE_UNAVAILABLE,
                status_code=503,
            )

        if not students:
            return Response.fail(
                detail=f"Number not found: {carpool_number}",
                error=ErrorCode.VALIDATION_FAILED,
                status_code=404,
            )

        if student_ids is not None:
            family_ids = {student.id for student in students}
            requested = list(dict.fromkeys(student_ids))
            outside = [sid for sid in requested if sid not in family_ids]

            if not requested:
                return Response.fail(
                    detail="Select at least one student to check in.",
                    error=ErrorCode.VALIDATION_FAILED,
                )

            if outside:
                return Response.fail(
                    detail=f"Students not in family #{carpool_number}: {', '.join(outside)}",
                    error=ErrorCode.VALIDATION_FAILED,
                )

            students = [student for student in students if student.id in requested]

        return self._write([student.id for student in students], status, actor, students)

    def toggle_status(self, student_id: str, actor: str | None = None) -> Response:
        """
        Flips a student between WAITING and CALLED based on the status currently shown.

        Returns:
            Response: Same contract as `set_single_status()`.
        """
        try:
            student_id = self._validate_student_id(student_id)

        except ValueError as e:
            return self._validation_failure(e)

        guard = self._require_writable()
        if guard is not None:
            return guard

        current = self._reconciler.index.status_of(student_id)
        return self.set_single_status(student_id, current.toggled(), actor)

    # === write pipeline ===

    def _write(
        self,
        student_ids: list[str],
        status: DismissalStatus,
        actor: str,
        students: list[Student] | None = None,
    ) -> Response:
        guard = self._require_writable()
        if guard is not None:
            return guard

        day = self._reconciler.day
        changed_at = self._clock()
        student_ids = list(dict.fromkeys(student_ids))

        records = [
            DailyStatusRecord(student_id, day, status, changed_at, actor)
            for student_id in student_ids
        ]
        # pre-write view of each student, used as the optimistic apply hint
        hints = {
            student_id: self._reconciler.index.status_of(student_id)
            for student_id in student_ids
        }

        try:
            self._store.upsert_status(records)

        except StoreUnavailableError as e:
            logger.warning(f"Status upsert for {len(records)} student(s) failed: {e}")
            return Response.fail(
                detail=f"Unable to update status: {e}",
                error=ErrorCode.STORE_UNAVAILABLE,
                status_code=503,
            )

        except Exception as e:
            logger.exception("Unexpected error during status upsert.")
            return Response.fail(
                detail=f"Unexpected error: {e}",
                error=ErrorCode.INTERNAL_ERROR,
            )

        result = self._reconciler.confirm_local_write(records, hints)

        if result is None:
            # session closed while the write was in flight; the store write stands
            applied: list[str] = []
            stale: list[str] = []
        else:
            applied = result.applied + result.confirmed
            stale = result.stale

        if stale:
            logger.info(f"Newer status already reflected for: {', '.join(stale)}")

        names = self._full_names(student_ids, students)

        return Response.succeed(
            detail=formatters.format_status_message(names, status.value),
            data={
                "records": records,
                "applied": applied,
                "stale": stale,
            },
        )

    def _require_writable(self) -> Response | None:
        if self._reconciler.is_closed:
            return Response.fail(
                detail="The session has been closed.",
                error=ErrorCode.SESSION_CLOSED,
                status_code=409,
            )

        if not self._reconciler.has_baseline:
            return Response.fail(
                detail="Status data has not loaded yet.",
                error=ErrorCode.BASELINE_UNAVAILABLE,
                status_code=503,
            )

        return None

    # === helper methods ===

    def _full_names(
        self, student_ids: list[str], students: list[Student] | None
    ) -> list[str]:
        known = {student.id: student for student in students or []}
        snapshot = self._reconciler.snapshot

        names = []
        for student_id in student_ids:
            student = known.get(student_id)
            if student is None and snapshot is not None:
                student = snapshot.student(student_id)
            names.append(
                student.full_name
                if student is not None
                else student_id
            )
        return names

    def _validation_failure(self, e: ValueError) -> Response:
        return Response.fail(
            detail=f"Validation failed: {e}",
            error=ErrorCode.VALIDATION_FAILED,
        )

    # === data validators ===

    @staticmethod
    def _validate_student_id(student_id: Any) -> str:
        if not isinstance(student_id, str) or not student_id.strip():
            raise ValueError("Invalid input. Student id must be a non-empty string.")
        return student_id.strip()

    def _validate_actor(self, actor: str | None) -> str:
        if actor is None:
            actor = self._default_actor
        if not isinstance(actor, str) or not actor.strip():
            raise ValueError("Invalid input. Actor must be a non-empty string.")
        return actor.strip()
