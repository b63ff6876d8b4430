# core/reconciler.py

"""
Keeps an `AggregationIndex` converged to the record store for one logical day.

The `Reconciler` is the only owner of the index. Every input is turned into a message on a single
FIFO queue and processed to completion, one message at a time, by `drain()`:

    - `Notification`: one change from the channel, applied incrementally as a delta.
    - `ResyncRequested`: start a full bulk read (timer tick, focus regain, (re)subscription, ...).
    - `SnapshotLoaded` / `ResyncFailed`: the outcome of that read.
    - `LocalWrite`: a write the store has already confirmed, applied optimistically.

Producers on other threads (the channel, the resync timer) only enqueue, so index mutations never
interleave. Incremental apply is an optimization; the periodic full rebuild is the correctness
backstop, and the reconciler keeps working with incremental apply switched off.

While a resync read is in flight, incremental applies are journalled. When the snapshot lands,
the index is rebuilt from it and journalled changes that are newer than what the snapshot saw
(by `changed_at`) are replayed on top, so a slow read never overwrites a later change.

Resync reads run on the thread that calls `drain()` unless a `read_executor` is supplied. An
inline read holds up every queued notification until it finishes; it suits tests and one-shot
tools. A live `DismissalSession` hands reads to a worker thread, and the result is applied on a
later `drain()`.
"""

from __future__ import annotations

import datetime
import queue
import threading
from dataclasses import dataclass, field
from functools import partial
from typing import Any, Callable

from core.app_logger import get_logger
from core.record_store import RecordStore, StoreUnavailableError
from core.response import ErrorCode, Response
from models.aggregation_index import AggregationIndex, ChangeOutcome
from models.snapshot import Snapshot
from models.status_record import DailyStatusRecord, StatusChange
from models.student import DismissalStatus

logger = get_logger(__name__)

ReadExecutor = Callable[[Callable[[], None]], Any]


# === queue messages ===


@dataclass
class Notification:
    change: StatusChange


@dataclass
class ResyncRequested:
    reason: str


@dataclass
class SnapshotLoaded:
    token: int
    snapshot: Snapshot


@dataclass
class ResyncFailed:
    token: int
    detail: str


@dataclass
class LocalWriteResult:
    applied: list[str] = field(default_factory=list)
    confirmed: list[str] = field(default_factory=list)
    stale: list[str] = field(default_factory=list)
    ignored: list[str] = field(default_factory=list)
    deferred_to_resync: bool = False


@dataclass
class LocalWrite:
    records: list[DailyStatusRecord]
    hints: dict[str, DismissalStatus]
    result: LocalWriteResult | None = None


@dataclass
class _JournalEntry:
    student_id: str
    status: DismissalStatus
    changed_at: datetime.datetime | None
    is_delete: bool = False


class Reconciler:

    def __init__(
        self,
        store: RecordStore,
        day: str,
        incremental_enabled: bool = True,
        read_executor: ReadExecutor | None = None,
    ):
        self._store = store
        self._day = day
        self._incremental_enabled = incremental_enabled
        # None reads inline on the draining thread
        self._read_executor = read_executor

        self._index = AggregationIndex()
        self._snapshot: Snapshot | None = None
        self._queue: queue.Queue = queue.Queue()
        self._drain_lock = threading.Lock()

        self._has_baseline = False
        self._closed = False

        self._resync_counter = 0
        self._inflight_token: int | None = None
        self._journal: list[_JournalEntry] = []
        self._rerun_requested = False
        self._last_resync_error: str | None = None
        self._completed_resyncs = 0

    # === properties ===

    @property
    def index(self) -> AggregationIndex:
        return self._index

    @property
    def snapshot(self) -> Snapshot | None:
        return self._snapshot

    @property
    def day(self) -> str:
        return self._day

    @property
    def has_baseline(self) -> bool:
        return self._has_baseline

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def incremental_enabled(self) -> bool:
        return self._incremental_enabled

    @property
    def resync_in_flight(self) -> bool:
        return self._inflight_token is not None

    @property
    def last_resync_error(self) -> str | None:
        return self._last_resync_error

    @property
    def completed_resyncs(self) -> int:
        return self._completed_resyncs

    @property
    def pending_messages(self) -> int:
        return self._queue.qsize()

    # === baseline ===

    def load_baseline(self) -> Response:
        """
        Performs the initial full read and builds the index from it.

        Returns:
            Response: A structured response with the following contract:
                - success (bool):
                    - True if the baseline was read and the index built.
                    - False if the store could not be read or the reconciler is closed.
                - detail (str | None):
                    - On failure, a human-readable description of the error.
                    - On success, a summary of the loaded snapshot.
                - error (ErrorCode | str | None):
                    - `ErrorCode.BASELINE_UNAVAILABLE` if the store read failed.
                    - `ErrorCode.SESSION_CLOSED` if the reconciler was closed.
                - status_code (int | None):
                    - 200 on success
                    - 503 if the store read failed
                    - 409 if closed
                - data (dict | None): Payload with the following keys:
                    - On success:
                        - "snapshot" (Snapshot): The snapshot the index was built from.

        Notes:
            - Without a baseline, notifications are dropped and writes are refused.
            - The read is synchronous, even when a read executor is configured.
        """
        if self._closed:
            return Response.fail(
                detail="The reconciler has been closed.",
                error=ErrorCode.SESSION_CLOSED,
                status_code=409,
            )

        try:
            snapshot = self._read_snapshot()

        except StoreUnavailableError as e:
            logger.error(f"Baseline read failed for {self._day}: {e}")
            return Response.fail(
                detail=f"Unable to load baseline data: {e}",
                error=ErrorCode.BASELINE_UNAVAILABLE,
                status_code=503,
            )

        self._install(snapshot)
        logger.info(
            f"Baseline loaded for {self._day}: {len(snapshot.students)} students "
            f"in {len(snapshot.classrooms)} classrooms."
        )

        return Response.succeed(
            detail=f"Loaded {len(snapshot.students)} students for {self._day}.",
            data={
                "snapshot": snapshot,
            },
        )

    # === producers ===

    def post_notification(self, change: StatusChange) -> None:
        if self._closed:
            return
        self._queue.put(Notification(change))

    def request_resync(self, reason: str = "manual") -> None:
        if self._closed:
            return
        self._queue.put(ResyncRequested(reason))

    def confirm_local_write(
        self,
        records: list[DailyStatusRecord],
        hints: dict[str, DismissalStatus],
    ) -> LocalWriteResult | None:
        """
        Queues a store-confirmed write and drains the queue so it is applied before returning.

        Args:
            records (list[DailyStatusRecord]): The rows the store accepted.
            hints (dict[str, DismissalStatus]): Each student's status before the write was issued.

        Returns:
            LocalWriteResult | None: The per-student outcome, or None if the reconciler is closed.

        Notes:
            - Messages already queued are processed first, preserving arrival order.
        """
        if self._closed:
            logger.debug("Ignoring confirmed write after close.")
            return None

        message = LocalWrite(records=list(records), hints=dict(hints))
        self._queue.put(message)
        self.drain()
        return message.result

    # === consumer ===

    def drain(self) -> int:
        """
        Processes queued messages in order until the queue is empty.

        Returns:
            int: The number of messages processed.
        """
        processed = 0

        with self._drain_lock:
            while True:
                try:
                    message = self._queue.get_nowait()
                except queue.Empty:
                    break

                if self._closed:
                    continue

                self._dispatch(message)
                processed += 1

        return processed

    def close(self) -> None:
        self._closed = True
        self._inflight_token = None
        self._journal = []

        while True:
            try:
                self._queue.get_nowait()
            except queue.Empty:
                break

        logger.info(f"Reconciler for {self._day} closed.")

    def _dispatch(self, message) -> None:
        if isinstance(message, Notification):
            self._handle_notification(message)
        elif isinstance(message, ResyncRequested):
            self._handle_resync_requested(message)
        elif isinstance(message, SnapshotLoaded):
            self.complete_resync(message.token, message.snapshot)
        elif isinstance(message, ResyncFailed):
            self.fail_resync(message.token, message.detail)
        elif isinstance(message, LocalWrite):
            self._handle_local_write(message)
        else:
            raise RuntimeError(f"Unexpected message received: {message!r}")

    # === incremental apply ===

    def _handle_notification(self, message: Notification) -> None:
        change = message.change

        if not self._has_baseline:
            logger.debug(f"Dropping notification before baseline: {change!r}")
            return

        if change.day != self._day:
            logger.debug(f"Ignoring notification for day {change.day}.")
            return

        if not self._incremental_enabled:
            self._handle_resync_requested(ResyncRequested("notification"))
            return

        self.apply(
            change.student_id,
            change.previous_status,
            change.new_status,
            change.changed_at,
            is_delete=change.is_delete,
        )

    def apply(
        self,
        student_id: str,
        old_status_hint: DismissalStatus | None,
        new_status: DismissalStatus,
        changed_at: datetime.datetime | None = None,
        is_delete: bool = False,
    ) -> ChangeOutcome:
        """
        Applies one status transition to the index and journals it if a resync is in flight.

        Notes:
            - A hint that disagrees with the index is logged as drift; the index's own status
              is what the delta is computed from.
            - Unknown students and stale changes leave the index untouched.
        """
        if (
            old_status_hint is not None
            and self._index.knows_student(student_id)
            and old_status_hint != self._index.status_of(student_id)
        ):
            logger.debug(
                f"Status drift for {student_id}: hint {old_status_hint.value}, "
                f"index {self._index.status_of(student_id).value}."
            )

        outcome = self._index.apply_change(
            student_id, old_status_hint, new_status, changed_at, is_delete
        )

        if outcome is ChangeOutcome.UNKNOWN_ENTITY:
            logger.debug(f"Ignoring change for unknown student {student_id}.")

        elif outcome is ChangeOutcome.STALE:
            logger.debug(
                f"Ignoring stale change for {student_id} at {changed_at.isoformat() if changed_at else None}."
            )

        elif self._inflight_token is not None:
            self._journal.append(
                _JournalEntry(student_id, new_status, changed_at, is_delete)
            )

        return outcome

    def _handle_local_write(self, message: LocalWrite) -> None:
        result = LocalWriteResult()
        message.result = result

        if not self._has_baseline:
            result.ignored = [record.student_id for record in message.records]
            return

        if not self._incremental_enabled:
            result.deferred_to_resync = True
            self._handle_resync_requested(ResyncRequested("local-write"))
            return

        buckets = {
            ChangeOutcome.APPLIED: result.applied,
            ChangeOutcome.CONFIRMED: result.confirmed,
            ChangeOutcome.STALE: result.stale,
            ChangeOutcome.UNKNOWN_ENTITY: result.ignored,
        }

        for record in message.records:
            if record.day != self._day:
                result.ignored.append(record.student_id)
                continue

            outcome = self.apply(
                record.student_id,
                message.hints.get(record.student_id),
                record.status,
                record.changed_at,
            )
            buckets[outcome].append(record.student_id)

    # === full resync ===

    def _handle_resync_requested(self, message: ResyncRequested) -> None:
        if self._inflight_token is not None:
            logger.debug(f"Resync ({message.reason}) coalesced with in-flight read.")
            self._rerun_requested = True
            return

        token = self.begin_resync(message.reason)
        job = partial(self._run_read, token)

        if self._read_executor is None:
            job()
        else:
            self._read_executor(job)

    def begin_resync(self, reason: str = "manual") -> int:
        """
        Marks a resync as in flight and starts journalling incremental applies.

        Returns:
            int: A token identifying this resync; only the matching completion is accepted.
        """
        self._resync_counter += 1
        self._inflight_token = self._resync_counter
        self._journal = []

        logger.debug(f"Resync #{self._inflight_token} started ({reason}).")
        return self._inflight_token

    def _run_read(self, token: int) -> None:
        try:
            snapshot = self._read_snapshot()

        except StoreUnavailableError as e:
            self._queue.put(ResyncFailed(token, str(e)))

        except Exception as e:
            logger.exception(f"Unexpected error during resync #{token}.")
            self._queue.put(ResyncFailed(token, f"Unexpected error: {e}"))

        else:
            self._queue.put(SnapshotLoaded(token, snapshot))

    def complete_resync(self, token: int, snapshot: Snapshot) -> bool:
        """
        Rebuilds the index from a completed read, then replays newer journalled changes.

        Args:
            token (int): The token returned by `begin_resync()`.
            snapshot (Snapshot): The result of the bulk read.

        Returns:
            bool: True if the snapshot was installed, False if it was superseded or the reconciler is closed.

        Notes:
            - Only the last journalled change per student is considered.
            - It is replayed when it carries a `changed_at` and the snapshot either has no record
              for the student or has a strictly older `changed_at`.
            - A delete is never replayed; the snapshot already reflects the missing row or a newer one.
            - Otherwise the snapshot, which completed later, wins.
        """
        if self._closed or token != self._inflight_token:
            logger.debug(f"Discarding superseded resync #{token}.")
            return False

        journal = self._journal
        self._inflight_token = None
        self._journal = []

        self._install(snapshot)

        snapshot_records = snapshot.records_by_student()
        latest: dict[str, _JournalEntry] = {}
        for entry in journal:
            latest[entry.student_id] = entry

        replayed = 0

        for entry in latest.values():
            if entry.is_delete or entry.changed_at is None:
                continue

            seen = snapshot_records.get(entry.student_id)
            if seen is not None and not seen.is_older_than(entry.changed_at):
                continue

            outcome = self._index.apply_change(
                entry.student_id, None, entry.status, entry.changed_at
            )
            if outcome in (ChangeOutcome.APPLIED, ChangeOutcome.CONFIRMED):
                replayed += 1

        self._last_resync_error = None
        self._completed_resyncs += 1

        logger.info(
            f"Resync #{token} complete: {len(snapshot.records)} status rows, "
            f"{replayed} newer change(s) replayed."
        )

        self._maybe_rerun()
        return True

    def fail_resync(self, token: int, detail: str) -> bool:
        """
        Abandons an in-flight resync; the index keeps its current state.

        Returns:
            bool: True if the failure matched the in-flight resync.
        """
        if token != self._inflight_token:
            return False

        self._inflight_token = None
        self._journal = []
        self._last_resync_error = detail

        logger.warning(f"Resync #{token} failed: {detail}")

        self._maybe_rerun()
        return True

    def _maybe_rerun(self) -> None:
        if self._rerun_requested and not self._closed:
            self._rerun_requested = False
            self._queue.put(ResyncRequested("coalesced"))

    # === helper methods ===

    def _read_snapshot(self) -> Snapshot:
        classrooms = self._store.list_classrooms()
        students = self._store.list_students()
        families = self._store.list_families()
        records = self._store.list_status_for_day(self._day)

        return Snapshot(
            day=self._day,
            classrooms=classrooms,
            students=students,
            families=families,
            records=[record for record in records if record.day == self._day],
        )

    def _install(self, snapshot: Snapshot) -> None:
        self._index.rebuild(snapshot.classrooms, snapshot.students, snapshot.records)
        self._snapshot = snapshot
        self._has_baseline = True
