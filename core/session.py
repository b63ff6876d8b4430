# core/session.py

"""
An observer session: the explicit context object that wires one dashboard instance together.

Each `DismissalSession` owns its own `Reconciler` (and therefore its own `AggregationIndex`),
`WritePath`, and `ResyncTimer`, bound to a record store, a notification channel, and one logical
day. Nothing is shared between sessions; several sessions against the same store converge
independently.

Lifecycle:
    - `start()` loads the baseline, subscribes to the channel, and starts the periodic resync.
      If the baseline cannot be read, nothing else starts.
    - Channel events, timer ticks, and focus changes enqueue messages; `pump()` processes them.
      With `background_reads` enabled, resync reads run on a worker thread and their results are
      applied by a later `pump()`.
    - `close()` unsubscribes, stops the timer, and closes the reconciler. Writes still in flight
      complete against the store but no longer touch the index.
"""

from __future__ import annotations

import datetime
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable

import core.views as views
from core.app_logger import get_logger, setup_logging
from core.channel import NotificationChannel
from core.reconciler import ReadExecutor, Reconciler
from core.record_store import RecordStore
from core.response import ErrorCode, Response
from core.resync_timer import ResyncTimer
from core.school_day import resolve_logical_day
from core.settings import DismissalSettings, get_settings
from core.utils import utc_now
from core.write_path import WritePath
from models.aggregation_index import AggregationIndex
from models.snapshot import Snapshot
from models.student import DismissalStatus

logger = get_logger(__name__)


class DismissalSession:

    def __init__(
        self,
        store: RecordStore,
        channel: NotificationChannel,
        settings: DismissalSettings | None = None,
        day: str | None = None,
        clock: Callable[[], datetime.datetime] | None = None,
        read_executor: ReadExecutor | None = None,
        timer_factory: Callable[..., Any] = ResyncTimer,
    ):
        self._settings = settings or get_settings()
        setup_logging(self._settings.log_level)

        self._store = store
        self._channel = channel
        self._clock = clock or utc_now
        self._day = day or resolve_logical_day(
            self._settings.school_timezone, self._clock()
        )

        self._read_pool: ThreadPoolExecutor | None = None
        if read_executor is None and self._settings.background_reads:
            self._read_pool = ThreadPoolExecutor(
                max_workers=1, thread_name_prefix="resync-read"
            )
            read_executor = self._read_pool.submit

        self._reconciler = Reconciler(
            store,
            self._day,
            incremental_enabled=self._settings.incremental_enabled,
            read_executor=read_executor,
        )
        self._write_path = WritePath(
            store,
            self._reconciler,
            clock=self._clock,
            default_actor=self._settings.default_actor,
        )
        self._timer = timer_factory(
            self._settings.resync_interval_seconds, self._on_timer_tick
        )

        self._started = False
        self._closed = False

    # === properties ===

    @property
    def day(self) -> str:
        return self._day

    @property
    def settings(self) -> DismissalSettings:
        return self._settings

    @property
    def reconciler(self) -> Reconciler:
        return self._reconciler

    @property
    def write_path(self) -> WritePath:
        return self._write_path

    @property
    def timer(self):
        return self._timer

    @property
    def index(self) -> AggregationIndex:
        return self._reconciler.index

    @property
    def snapshot(self) -> Snapshot | None:
        return self._reconciler.snapshot

    @property
    def is_started(self) -> bool:
        return self._started

    @property
    def is_closed(self) -> bool:
        return self._closed

    # === lifecycle ===

    def start(self) -> Response:
        """
        Loads the baseline, then subscribes to the channel and starts the periodic resync.

        Returns:
            Response: A structured response with the following contract:
                - success (bool):
                    - True if the session is live.
                    - False if the baseline could not be loaded or the session is closed.
                - detail (str | None): A human-readable summary or error description.
                - error (ErrorCode | str | None):
                    - `ErrorCode.BASELINE_UNAVAILABLE` if the baseline read failed.
                    - `ErrorCode.SESSION_CLOSED` if the session was closed.
                - status_code (int | None):
                    - 200 on success
                    - 503 if the baseline read failed
                    - 409 if closed
                - data (dict | None): Payload with the following keys:
                    - On success:
                        - "day" (str): The logical day this session is bound to.

        Notes:
            - Calling `start()` again after a failed baseline retries it.
            - The first action once the channel is live is a full resync.
        """
        if self._closed:
            return Response.fail(
                detail="The session has been closed.",
                error=ErrorCode.SESSION_CLOSED,
                status_code=409,
            )

        if self._started:
            return Response.succeed(
                detail="Session already started.",
                data={"day": self._day},
            )

        baseline = self._reconciler.load_baseline()
        if not baseline.success:
            return baseline

        self._channel.subscribe(self._reconciler.post_notification, self._on_subscribed)
        self._timer.start()
        self._started = True

        self.pump()
        logger.info(f"Session started for {self._day}.")

        return Response.succeed(
            detail=baseline.detail,
            data={"day": self._day},
        )

    def close(self) -> None:
        if self._closed:
            return

        self._closed = True
        if self._started:
            self._channel.unsubscribe()
        self._timer.stop()
        self._reconciler.close()
        if self._read_pool is not None:
            self._read_pool.shutdown(wait=False)

        logger.info(f"Session for {self._day} closed.")

    # === resync triggers ===

    def _on_subscribed(self) -> None:
        self._reconciler.request_resync("subscribed")

    def _on_timer_tick(self) -> None:
        self._reconciler.request_resync("periodic")

    def on_visibility_regained(self) -> None:
        if self._settings.resync_on_visibility:
            self._reconciler.request_resync("visibility")

    def on_membership_changed(self) -> None:
        self._reconciler.request_resync("membership")

    def request_resync(self, reason: str = "manual") -> None:
        self._reconciler.request_resync(reason)

    def pump(self) -> int:
        return self._reconciler.drain()

    # === write operations ===

    def set_single_status(
        self,
        student_id: str,
        status: DismissalStatus | str,
        actor: str | None = None,
    ) -> Response:
        return self._write_path.set_single_status(student_id, status, actor)

    def set_family_status(
        self,
        carpool_number: Any,
        status: DismissalStatus | str = DismissalStatus.CALLED,
        actor: str | None = None,
        student_ids: list[str] | None = None,
    ) -> Response:
        return self._write_path.set_family_status(
            carpool_number, status, actor, student_ids
        )

    def toggle_status(self, student_id: str, actor: str | None = None) -> Response:
        return self._write_path.toggle_status(student_id, actor)

    # === views ===

    def classroom_summary(self) -> list[views.ClassroomSummary]:
        return views.classroom_summary(self.index, self.snapshot)

    def classroom_roster(self, classroom_id: str) -> Response:
        return views.classroom_roster(self.index, self.snapshot, classroom_id)

    def spotter_roster(
        self, query: str = "", sort_by: str = views.SORT_BY_NAME
    ) -> list[views.SpotterEntry]:
        return views.spotter_roster(self.index, self.snapshot, query, sort_by)

    # === dunder methods ===

    def __repr__(self) -> str:
        return f"DismissalSession({self._day}, started={self._started}, closed={self._closed})"
