"""
=============================================================================
REACTOR: SHARED EVENT LOOP FOR ALL WORKER THREADS
=============================================================================

The reactor turns socket readiness into callbacks. Sessions never block on
a socket; they ask the reactor to call them back when the socket can be
read or written:

    reactor.watch_read(conn.socket, session._on_readable)
    reactor.watch_write(conn.socket, session._on_writable)

Registrations are ONE-SHOT: once the callback has been queued the
registration is gone, and the session re-registers when it wants more.
So a session never has two read or two write callbacks in flight.

=============================================================================
MANY THREADS, ONE SELECTOR
=============================================================================

Every worker thread calls run(). At any moment at most one of them is
blocked in select(); the rest wait for callbacks to appear on the ready
queue:

    ┌─────────┐   select()    ┌──────────────┐   events → callbacks
    │ worker1 │ ────────────► │  selectors   │ ───────────────────┐
    └─────────┘   (poller)    │ DefaultSel.  │                    │
                              └──────────────┘                    ▼
    ┌─────────┐                                          ┌───────────────┐
    │ worker2 │ ◄────────────── popleft() ────────────── │  ready queue  │
    │ worker3 │                                          │  (deque)      │
    └─────────┘                                          └───────────────┘

A handler that sleeps (SleepHandler) holds its own worker only; the other
workers keep polling and serving.

A registration made while another thread sits in select() writes one
byte to an internal socket pair, so the poller wakes up and sees it.

=============================================================================
"""

import logging
import selectors
import socket
import threading
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, Dict, Optional


logger = logging.getLogger(__name__)

Callback = Callable[[], None]


@dataclass
class _Watch:
    """Pending one-shot callbacks for one file object."""
    on_read: Optional[Callback] = None
    on_write: Optional[Callback] = None

    @property
    def events(self) -> int:
        mask = 0
        if self.on_read is not None:
            mask |= selectors.EVENT_READ
        if self.on_write is not None:
            mask |= selectors.EVENT_WRITE
        return mask


class Reactor:
    """
    Readiness notifications and a callback queue shared by worker threads.

    Usage:
        reactor = Reactor()
        reactor.watch_read(sock, on_readable)
        threading.Thread(target=reactor.run).start()
        ...
        reactor.stop()
        reactor.close()
    """

    def __init__(self):
        self._selector = selectors.DefaultSelector()
        self._lock = threading.Lock()
        self._cond = threading.Condition(self._lock)
        self._ready: Deque[Callback] = deque()
        self._watches: Dict[object, _Watch] = {}
        self._polling = False
        self._stopped = False

        self._wake_r, self._wake_w = socket.socketpair()
        self._wake_r.setblocking(False)
        self._wake_w.setblocking(False)
        self._selector.register(self._wake_r, selectors.EVENT_READ)

    @property
    def stopped(self) -> bool:
        return self._stopped

    # =========================================================================
    # REGISTRATION
    # =========================================================================

    def watch_read(self, fileobj, callback: Callback) -> None:
        """Call callback once, on a worker thread, when fileobj is readable."""
        with self._lock:
            watch = self._watches.setdefault(fileobj, _Watch())
            watch.on_read = callback
            self._update(fileobj, watch)

    def watch_write(self, fileobj, callback: Callback) -> None:
        """Call callback once, on a worker thread, when fileobj is writable."""
        with self._lock:
            watch = self._watches.setdefault(fileobj, _Watch())
            watch.on_write = callback
            self._update(fileobj, watch)

    def unwatch(self, fileobj) -> None:
        """Drop any pending registration for fileobj. Call before closing it."""
        with self._lock:
            if self._watches.pop(fileobj, None) is None:
                return
            try:
                self._selector.unregister(fileobj)
            except (KeyError, ValueError):
                pass

    def post(self, callback: Callback) -> None:
        """Queue callback to run on a worker thread as soon as one is free."""
        with self._lock:
            self._ready.append(callback)
            self._cond.notify()
            self._wake_poller()

    def _update(self, fileobj, watch: _Watch) -> None:
        """Apply a new registration; on failure nothing stays registered."""
        try:
            self._sync(fileobj, watch)
        except (KeyError, ValueError, OSError):
            self._watches.pop(fileobj, None)
            raise
        self._wake_poller()

    def _sync(self, fileobj, watch: _Watch) -> None:
        """Make the selector's interest set match watch. Lock must be held."""
        events = watch.events
        registered = self._has_key(fileobj)

        if events == 0:
            self._watches.pop(fileobj, None)
            if registered:
                self._selector.unregister(fileobj)
        elif registered:
            self._selector.modify(fileobj, events)
        else:
            self._selector.register(fileobj, events)

    def _has_key(self, fileobj) -> bool:
        try:
            self._selector.get_key(fileobj)
        except (KeyError, ValueError):
            return False
        return True

    def _wake_poller(self) -> None:
        if not self._polling:
            return
        try:
            self._wake_w.send(b"\0")
        except (BlockingIOError, InterruptedError):
            # Buffer full means a wakeup is already pending
            pass

    # =========================================================================
    # RUN LOOP
    # =========================================================================

    def run(self) -> None:
        """
        Serve callbacks until stop() is called.

        Safe to call from any number of threads at once. An exception
        escaping a callback is logged and the loop goes on.
        """
        while True:
            callback = self._next_callback()
            if callback is None:
                return
            try:
                callback()
            except Exception as e:
                logger.exception(f"Reactor callback failed: {e}")

    def _next_callback(self) -> Optional[Callback]:
        while True:
            with self._cond:
                while True:
                    if self._stopped:
                        return None
                    if self._ready:
                        return self._ready.popleft()
                    if not self._polling:
                        self._polling = True
                        break
                    self._cond.wait()

            try:
                events = self._selector.select()
            except OSError as e:
                with self._cond:
                    self._polling = False
                    self._cond.notify()
                if self._stopped:
                    continue
                logger.error(f"select() failed: {e}")
                raise

            # Next poller is chosen only after these callbacks are queued
            with self._cond:
                self._polling = False
                for key, mask in events:
                    self._dispatch(key, mask)
                self._cond.notify_all()

    def _dispatch(self, key: selectors.SelectorKey, mask: int) -> None:
        """Move fired one-shot callbacks to the ready queue. Lock must be held."""
        if key.fileobj is self._wake_r:
            self._drain_wakeups()
            return

        watch = self._watches.get(key.fileobj)
        if watch is None:
            return

        if mask & selectors.EVENT_READ and watch.on_read is not None:
            self._ready.append(watch.on_read)
            watch.on_read = None
        if mask & selectors.EVENT_WRITE and watch.on_write is not None:
            self._ready.append(watch.on_write)
            watch.on_write = None

        try:
            self._sync(key.fileobj, watch)
        except (KeyError, ValueError, OSError) as e:
            # fileobj was closed without unwatch()
            logger.debug(f"Dropping registration for closed file object: {e}")
            self._watches.pop(key.fileobj, None)

    def _drain_wakeups(self) -> None:
        try:
            while self._wake_r.recv(4096):
                pass
        except (BlockingIOError, InterruptedError):
            pass

    # =========================================================================
    # SHUTDOWN
    # =========================================================================

    def stop(self) -> None:
        """Make every run() call return. Pending callbacks are discarded."""
        with self._cond:
            if self._stopped:
                return
            self._stopped = True
            self._ready.clear()
            self._cond.notify_all()
        try:
            self._wake_w.send(b"\0")
        except OSError:
            pass
        logger.debug("Reactor stopped")

    def close(self) -> None:
        """Release the selector and wakeup sockets. Call after run() has returned everywhere."""
        self.stop()
        with self._lock:
            self._watches.clear()
            self._selector.close()
        self._wake_r.close()
        self._wake_w.close()
