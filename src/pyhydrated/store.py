"""Hydration engine.

Binds one store instance to a storage backend: restores its state when it
is constructed and writes a new snapshot every time it changes.

Failures while restoring or persisting are logged on this module's logger
and otherwise ignored, so a store always reflects its latest in-memory
state regardless of storage health. The only fatal condition is a missing
storage (:class:`~pyhydrated.exceptions.StorageNotConfiguredError`).

Example::

    class Counter(HydratedReactiveStore):
        count = observable(0)

        def to_json(self) -> dict[str, Any] | None:
            return {"count": self.count}

        def from_json(self, json: dict[str, Any]) -> None:
            self.count = json["count"]

    set_default_storage(await FileStorage.build(directory))
    counter = Counter()  # hydrated from storage
    counter.count += 1   # persisted
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from enum import StrEnum
from typing import Any, final

from pyhydrated.codec import decode, encode
from pyhydrated.exceptions import HydrationError, UnsupportedValueError
from pyhydrated.reactive import ReactiveStore
from pyhydrated.storage import Storage, get_default_storage

_logger = logging.getLogger(__name__)


class HydrationState(StrEnum):
    UNINITIALIZED = "uninitialized"
    HYDRATING = "hydrating"
    ATTACHED = "attached"
    PERSISTING = "persisting"
    CLEARED = "cleared"
    DETACHED = "detached"


def _running_loop() -> asyncio.AbstractEventLoop | None:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


class HydratedStore(ABC):
    """Automatic state persistence for a store.

    Subclasses implement :meth:`to_json`, :meth:`from_json` and
    :meth:`subscribe` (usually by also inheriting
    :class:`~pyhydrated.reactive.ReactiveStore`, listed first). The
    constructor calls :meth:`hydrate`, which restores the previous state and
    then persists every subsequent change.

    Writes are issued in change order and run one at a time per store, so
    the last persisted record is always the latest snapshot.
    """

    #: Distinguishes several persisted instances of the same store type.
    #: Assign it (class attribute or before ``super().__init__``) whenever
    #: more than one instance must keep its own record.
    id: str = ""

    _hydration_state: HydrationState = HydrationState.UNINITIALIZED
    _hydrated_storage: Storage | None = None
    _hydrated_token: str = ""
    _hydrated_loop: asyncio.AbstractEventLoop | None = None
    _hydrated_own_loop: asyncio.AbstractEventLoop | None = None
    _hydrated_unsubscribe: Callable[[], None] | None = None
    _hydrated_last_write: asyncio.Task[None] | None = None

    def __init__(self, *, storage: Storage | None = None, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.hydrate(storage=storage)

    # ------------------------------------------------------------------
    # Store contract
    # ------------------------------------------------------------------

    @abstractmethod
    def to_json(self) -> dict[str, Any] | None:
        """Return the state to persist, or ``None`` to skip this change."""

    @abstractmethod
    def from_json(self, json: dict[str, Any]) -> None:
        """Restore state from a stored mapping.

        Must tolerate mappings written by older versions of the store;
        records are never migrated.
        """

    @abstractmethod
    def subscribe(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Register a change listener and return its unsubscribe function."""

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    @property
    def storage_prefix(self) -> str:
        """Storage namespace; defaults to the class name.

        Override when records must survive renaming the class.
        """
        return type(self).__name__

    @final
    @property
    def storage_token(self) -> str:
        """Key of this store's record: ``storage_prefix + id``."""
        return f"{self.storage_prefix}{self.id}"

    @property
    def hydration_state(self) -> HydrationState:
        return self._hydration_state

    @property
    def storage(self) -> Storage:
        return self._require_storage()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def hydrate(self, *, storage: Storage | None = None) -> None:
        """Restore the persisted state and start persisting changes.

        Parameters
        ----------
        storage : Storage, optional
            Backend for this store. Defaults to the process-wide storage.

        Raises
        ------
        StorageNotConfiguredError
            If no *storage* is given and no default storage was set.
        HydrationError
            If the store was already hydrated.
        """
        if self._hydration_state is not HydrationState.UNINITIALIZED:
            raise HydrationError(f"Store {self.storage_token!r} is already hydrated")

        resolved = storage if storage is not None else get_default_storage()
        token = self.storage_token
        self._hydrated_storage = resolved
        self._hydrated_token = token
        self._hydrated_loop = _running_loop()
        self._hydrated_pending: set[asyncio.Task[None]] = set()
        self._hydration_state = HydrationState.HYDRATING

        try:
            stored = resolved.read(token)
            if stored is not None:
                self.from_json(decode(stored))
                _logger.debug("Hydrated store %s", token)
        except Exception:
            _logger.warning("Error hydrating store %s", token, exc_info=True)

        self._hydration_state = HydrationState.ATTACHED
        self._on_change()
        self._hydrated_unsubscribe = self.subscribe(self._on_change)

    async def clear(self) -> None:
        """Delete this store's record.

        The in-memory state is untouched and changes keep being persisted,
        so the next change writes a new record. Pending writes complete
        before the record is deleted.
        """
        storage = self._require_storage()
        previous = self._hydrated_last_write
        if previous is not None and not previous.done() and previous.get_loop() is _running_loop():
            await asyncio.wait({previous})
        await storage.delete(self._hydrated_token)
        if self._hydration_state is not HydrationState.DETACHED:
            self._hydration_state = HydrationState.CLEARED
        _logger.debug("Cleared store %s", self._hydrated_token)

    def detach(self) -> None:
        """Stop persisting changes. Writes already issued still complete."""
        unsubscribe = self._hydrated_unsubscribe
        self._hydrated_unsubscribe = None
        if unsubscribe is not None:
            unsubscribe()
        own = self._hydrated_own_loop
        self._hydrated_own_loop = None
        if own is not None and not own.is_closed():
            own.close()
        if self._hydration_state is not HydrationState.UNINITIALIZED:
            self._hydration_state = HydrationState.DETACHED

    async def flush(self) -> None:
        """Wait until every write issued on the current event loop has settled."""
        loop = asyncio.get_running_loop()
        pending = [task for task in getattr(self, "_hydrated_pending", ()) if task.get_loop() is loop]
        if pending:
            await asyncio.wait(pending)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _require_storage(self) -> Storage:
        if self._hydrated_storage is None:
            raise HydrationError(f"Store {self.storage_token!r} has not been hydrated")
        return self._hydrated_storage

    def _on_change(self) -> None:
        if self._hydration_state is HydrationState.DETACHED:
            return
        token = self._hydrated_token
        try:
            json = self.to_json()
            if json is None:
                return
            snapshot = encode(json)
        except UnsupportedValueError:
            _logger.error("Error persisting store %s: state is not encodable", token, exc_info=True)
            return
        except Exception:
            _logger.error("Error persisting store %s", token, exc_info=True)
            return
        if not isinstance(snapshot, dict):
            _logger.warning("Store %s to_json() did not return a mapping; not persisted", token)
            return
        self._schedule_write(snapshot)

    def _schedule_write(self, snapshot: dict[str, Any]) -> None:
        if _running_loop() is not None:
            self._enqueue_write(snapshot)
            return
        home = self._hydrated_loop
        if home is not None and home.is_running() and not home.is_closed():
            home.call_soon_threadsafe(self._enqueue_write, snapshot)
            return
        # No event loop anywhere: complete the write on a loop private to this
        # store. The thread's current event loop is left untouched.
        own = self._hydrated_own_loop
        if own is None or own.is_closed():
            own = asyncio.new_event_loop()
            self._hydrated_own_loop = own
        own.run_until_complete(self._write(snapshot, after=None))

    def _enqueue_write(self, snapshot: dict[str, Any]) -> None:
        loop = asyncio.get_running_loop()
        previous = self._hydrated_last_write
        if previous is not None and (previous.done() or previous.get_loop() is not loop):
            previous = None
        task = loop.create_task(self._write(snapshot, after=previous))
        self._hydrated_last_write = task
        self._hydrated_pending.add(task)
        if self._hydration_state in (HydrationState.ATTACHED, HydrationState.CLEARED):
            self._hydration_state = HydrationState.PERSISTING
        task.add_done_callback(self._write_done)

    def _write_done(self, task: asyncio.Task[None]) -> None:
        self._hydrated_pending.discard(task)
        if not self._hydrated_pending and self._hydration_state is HydrationState.PERSISTING:
            self._hydration_state = HydrationState.ATTACHED

    async def _write(self, snapshot: dict[str, Any], *, after: asyncio.Task[None] | None) -> None:
        if after is not None:
            await asyncio.wait({after})
        token = self._hydrated_token
        storage = self._require_storage()
        try:
            await storage.write(token, snapshot)
        except Exception:
            _logger.error("Error persisting store %s", token, exc_info=True)
        else:
            _logger.debug("Persisted store %s", token)


class HydratedReactiveStore(ReactiveStore, HydratedStore):
    """Reactive store that is hydrated on construction.

    Declare state with :class:`~pyhydrated.reactive.observable` fields and
    implement :meth:`to_json` / :meth:`from_json`.
    """
