"""
Debounced Sync Queue.

Collects review-record and best-streak changes after each answer and writes
them to a SessionStore in batches. Owns no thread or timer: the debounce
window is checked against the injected clock whenever the caller polls
flush_if_due().
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field

from loguru import logger

from .exceptions import SessionStoreError, SyncError
from .models import Clock, DrillSession, system_clock
from .state_store import SessionStore

DEFAULT_DEBOUNCE_MS = 2000


@dataclass
class PendingChanges:
    """Changes queued since the last successful flush."""

    item_ids: set[str] = field(default_factory=set)
    best_streak: int | None = None

    def __bool__(self) -> bool:
        return bool(self.item_ids) or self.best_streak is not None

    def merge(self, newer: PendingChanges) -> PendingChanges:
        """Combine with changes queued later; later values win."""
        return PendingChanges(
            item_ids=self.item_ids | newer.item_ids,
            best_streak=newer.best_streak if newer.best_streak is not None else self.best_streak,
        )


class SyncQueue:
    """
    Batches session writes to a store.

    Typical use after each answer:
        queue.queue_answer(session, item_id)
        queue.flush_if_due()
    and queue.flush() before exiting.
    """

    def __init__(
        self,
        store: SessionStore,
        clock: Clock | None = None,
        debounce_ms: int = DEFAULT_DEBOUNCE_MS,
    ):
        """
        Initialize the queue.

        Args:
            store: Destination store
            clock: Millisecond time source
            debounce_ms: Quiet period after the last change before flush_if_due writes
        """
        self.store = store
        self.clock = clock or system_clock
        self.debounce_ms = debounce_ms

        self._session: DrillSession | None = None
        self._pending = PendingChanges()
        self._last_change_at: int | None = None
        self._syncing = False
        self._listeners: list[Callable[[bool], None]] = []

    # =========================================================================
    # Queueing
    # =========================================================================

    def _touch(self, session: DrillSession) -> None:
        if self._session is not None and self._session.id != session.id:
            logger.warning(
                f"Switching sync target from {self._session.id!r} to {session.id!r}; "
                "dropping pending changes"
            )
            self._pending = PendingChanges()
        self._session = session
        self._last_change_at = self.clock()

    def queue_record(self, session: DrillSession, item_id: str) -> None:
        """Queue one scenario's review record for writing."""
        self._touch(session)
        self._pending.item_ids.add(item_id)

    def queue_best_streak(self, session: DrillSession) -> None:
        """Queue the session's current best streak for writing."""
        self._touch(session)
        self._pending.best_streak = session.best_streak_ever

    def queue_answer(self, session: DrillSession, item_id: str) -> None:
        """Queue everything a single record_answer call can change."""
        self.queue_record(session, item_id)
        self.queue_best_streak(session)

    def queue_session(self, session: DrillSession) -> None:
        """Queue every record in the session."""
        self._touch(session)
        self._pending.item_ids.update(session.records)
        self._pending.best_streak = session.best_streak_ever

    # =========================================================================
    # Flushing
    # =========================================================================

    def flush_if_due(self) -> bool:
        """
        Flush when the debounce window since the last change has elapsed.

        Returns:
            True if a flush ran
        """
        if not self._pending or self._last_change_at is None:
            return False
        if self.clock() - self._last_change_at < self.debounce_ms:
            return False
        self.flush()
        return True

    def flush(self) -> int:
        """
        Write all pending changes now.

        Returns:
            Number of review records written

        Raises:
            SyncError: The store failed; changes stay queued for the next flush
        """
        if self._syncing or not self._pending or self._session is None:
            return 0

        changes = self._pending
        self._pending = PendingChanges()
        session = self._session

        self._syncing = True
        self._notify(True)
        try:
            self.store.save_records(session, sorted(changes.item_ids))
        except SessionStoreError as e:
            self._pending = changes.merge(self._pending)
            logger.warning(f"Sync failed for session {session.id!r}: {e}")
            raise SyncError(str(e)) from e
        finally:
            self._syncing = False
            self._notify(False)

        logger.debug(f"Synced {len(changes.item_ids)} records for session {session.id!r}")
        return len(changes.item_ids)

    def reset(self, session_id: str) -> DrillSession:
        """Drop pending changes and reset the session in the store."""
        self._pending = PendingChanges()
        self._last_change_at = None
        session = self.store.reset(session_id)
        self._session = session
        return session

    # =========================================================================
    # Status
    # =========================================================================

    def has_pending_changes(self) -> bool:
        return bool(self._pending)

    def is_syncing(self) -> bool:
        return self._syncing

    def on_status_change(self, listener: Callable[[bool], None]) -> Callable[[], None]:
        """
        Subscribe to sync start/stop notifications.

        Returns:
            Function that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, syncing: bool) -> None:
        for listener in list(self._listeners):
            listener(syncing)
