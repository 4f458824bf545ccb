#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Bommai — listening controller

Keeps a single-shot recognizer listening until the user says stop:

    STOPPED -> AWAITING_PERMISSION -> LISTENING <-> RESTART_PENDING
                                         |
                                      STOPPED

Everything that happens asynchronously (recognizer runs, the microphone
check, the restart timer) only posts events to one queue. The host drains
that queue on a single thread and every decision is taken in ``handle``, so
the keep-alive flag is always re-checked before acting on a late event.
"""

from __future__ import annotations

import json
import logging
import queue
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional

from bommai.commands import NO_MATCH, Action, MatchResult, NoMatch, Numeral, TranscriptMatcher
from bommai.config import DEFAULT_CONFIG, log_event
from bommai.errors import ErrorKind
from bommai.recognition import (
    Capability,
    MicrophoneAccess,
    PermissionResult,
    RecognitionSession,
    SessionEnded,
    SessionError,
    SessionStarted,
    SessionTranscript,
    SpeechSettings,
    create_session,
    speech_capability,
)

# Routine under auto-restart; logged at INFO with their own status messages.
ROUTINE_ERRORS = {"no-speech": "no_speech", "no-match": "no_match"}


# =========================
# Events & scheduling
# =========================

@dataclass(frozen=True)
class StartRequested:
    pass


@dataclass(frozen=True)
class StopRequested:
    pass


@dataclass(frozen=True)
class RestartDue:
    run: int


class EventQueue:
    """Thread-safe inbox drained on the controller's thread."""

    def __init__(self):
        self._queue: "queue.Queue[Any]" = queue.Queue()

    def post(self, event: Any):
        self._queue.put(event)

    def pending(self) -> int:
        return self._queue.qsize()

    def drain(self, handler: Callable[[Any], Any], timeout: Optional[float] = None,
              limit: Optional[int] = None) -> int:
        """Handle queued events; wait up to ``timeout`` for the first one."""
        handled = 0
        while limit is None or handled < limit:
            wait = bool(timeout) and handled == 0
            try:
                event = self._queue.get(block=wait, timeout=timeout if wait else None)
            except queue.Empty:
                break
            handler(event)
            handled += 1
        return handled


class TimerScheduler:
    """Posts an event to the queue after a delay."""

    def __init__(self, post: Callable[[Any], None]):
        self.post = post
        self._timers = set()
        self._lock = threading.Lock()

    def call_later(self, delay_s: float, event: Any) -> threading.Timer:
        def _fire():
            with self._lock:
                self._timers.discard(timer)
            self.post(event)

        timer = threading.Timer(max(0.0, delay_s), _fire)
        timer.daemon = True
        with self._lock:
            self._timers.add(timer)
        timer.start()
        return timer

    def cancel(self, handle: threading.Timer):
        handle.cancel()
        with self._lock:
            self._timers.discard(handle)

    def cancel_all(self):
        with self._lock:
            timers, self._timers = list(self._timers), set()
        for timer in timers:
            timer.cancel()


# =========================
# Controller
# =========================

class ListenState(Enum):
    STOPPED = "stopped"
    AWAITING_PERMISSION = "awaiting_permission"
    LISTENING = "listening"
    RESTART_PENDING = "restart_pending"


SessionFactory = Callable[[SpeechSettings, Callable[[Any], None], logging.Logger], RecognitionSession]


class ListeningController:
    """Continuous listening around a single-shot recognizer."""

    def __init__(self, cfg: Dict[str, Any], logger: logging.Logger,
                 matcher: Optional[TranscriptMatcher] = None,
                 presenter: Any = None,
                 events: Optional[EventQueue] = None,
                 scheduler: Any = None,
                 capability: Optional[Callable[[], Capability]] = None,
                 access: Any = None,
                 session_factory: Optional[SessionFactory] = None):
        self.cfg = cfg
        self.logger = logger
        self.settings = SpeechSettings.from_config(cfg)

        ctl = cfg.get("controller", {})
        self.restart_delay_s = float(ctl.get("restart_delay_ms", 300)) / 1000.0
        self.messages = dict(DEFAULT_CONFIG["messages"])
        self.messages.update(cfg.get("messages") or {})

        self.matcher = matcher or TranscriptMatcher.from_config(cfg)
        self.presenter = presenter
        self.events = events or EventQueue()
        self.scheduler = scheduler or TimerScheduler(self.events.post)
        self.capability = capability or (lambda: speech_capability(self.settings))
        self.access = access or MicrophoneAccess(self.settings, logger)
        self.session_factory = session_factory or create_session

        # State
        self.state = ListenState.STOPPED
        self.is_listening = False
        self.keep_alive = False
        self.current_action = ctl.get("default_action", "sit")
        self.status_message = self.messages["idle"]
        self.last_error: Optional[ErrorKind] = None

        self._session: Optional[RecognitionSession] = None
        self._active_run = 0
        self._restart_handle = None
        self._shut_down = False

        self._handlers = {
            StartRequested: lambda e: self.request_start(),
            StopRequested: lambda e: self.request_stop(),
            PermissionResult: self._on_permission,
            RestartDue: self._on_restart_due,
            SessionStarted: self._on_session_started,
            SessionTranscript: self._on_transcript,
            SessionError: self._on_session_error,
            SessionEnded: self._on_session_ended,
        }

    # ---- public operations ----

    @property
    def has_session(self) -> bool:
        return self._session is not None

    def refresh(self):
        """Push the current state to the presenter."""
        self._present("set_action", self.current_action)
        self._present("set_status", self.status_message)
        self._present("set_listening", self.is_listening)

    def request_start(self) -> bool:
        if self._shut_down:
            self.logger.warning("start_ignored %s", json.dumps({"reason": "shut_down"}))
            return False
        if self.state is not ListenState.STOPPED:
            self.logger.info("start_ignored %s", json.dumps({"state": self.state.value}))
            return False

        cap = self.capability()
        if not cap.available:
            self.last_error = ErrorKind.CAPABILITY_UNAVAILABLE
            log_event(self.logger, "capability_unavailable", {
                "engine": cap.engine, "reason": cap.reason
            }, logging.WARNING)
            self._set_status(self._message("unsupported"))
            return False

        self.last_error = None
        self.is_listening = True
        self.keep_alive = True
        self._transition(ListenState.AWAITING_PERMISSION)
        self.access.request(self.events.post)
        return True

    def request_stop(self) -> bool:
        if self.state is ListenState.STOPPED:
            return False
        self._go_stopped(self._message("stopped"), reason="user_stop")
        return True

    def toggle(self) -> bool:
        if self.state is ListenState.STOPPED:
            return self.request_start()
        return self.request_stop()

    def shutdown(self):
        """Terminal: no capture survives the owner."""
        self.keep_alive = False
        self.is_listening = False
        self._cancel_restart()
        if hasattr(self.scheduler, "cancel_all"):
            self.scheduler.cancel_all()
        if self._session is not None:
            self._session.release()
            self._session = None
        if self.state is not ListenState.STOPPED:
            self._transition(ListenState.STOPPED)
        self._shut_down = True
        log_event(self.logger, "controller_shutdown", {"action": self.current_action})

    def handle(self, event: Any):
        handler = self._handlers.get(type(event))
        if handler is None:
            self.logger.warning("unknown_event %s", json.dumps({"type": type(event).__name__}))
            return
        handler(event)

    def pump(self, timeout: Optional[float] = None, limit: Optional[int] = None) -> int:
        return self.events.drain(self.handle, timeout=timeout, limit=limit)

    # ---- transitions ----

    def _on_permission(self, event: PermissionResult):
        # The user may have stopped while the access check was running.
        if self.state is not ListenState.AWAITING_PERMISSION or not self.keep_alive:
            self.logger.info("permission_result_ignored %s", json.dumps({
                "state": self.state.value, "granted": event.granted
            }))
            return

        if not event.granted:
            self.last_error = ErrorKind.PERMISSION_DENIED
            self._go_stopped(self._message("permission_denied"), reason=event.reason or "denied")
            return

        try:
            session = self._ensure_session()
            self._active_run = session.start()
        except Exception as e:
            self.last_error = ErrorKind.CAPABILITY_UNAVAILABLE
            log_event(self.logger, "session_start_failed", {
                "error": str(e), "type": type(e).__name__
            }, logging.ERROR)
            self._go_stopped(self._message("unsupported"), reason="session_start_failed")
            return

        self._transition(ListenState.LISTENING)
        self._set_status(self._message("listening"))
        self._present("set_listening", True)

    def _on_session_started(self, event: SessionStarted):
        if self._is_stale(event):
            return
        self.logger.debug("session_started %s", json.dumps({"run": event.run}))

    def _on_transcript(self, event: SessionTranscript):
        if self._is_stale(event) or self.state is not ListenState.LISTENING:
            return
        if not event.is_final:
            self._set_status(self._message("heard_partial", text=event.text))
            return
        self.dispatch_transcript(event.text, event.alternatives)

    def _on_session_error(self, event: SessionError):
        if self._is_stale(event):
            return
        self.last_error = ErrorKind.SESSION_ERROR
        level = logging.INFO if event.code in ROUTINE_ERRORS else logging.WARNING
        log_event(self.logger, "session_error", {
            "run": event.run, "code": event.code, "detail": event.detail
        }, level)
        if self.state is ListenState.LISTENING:
            key = ROUTINE_ERRORS.get(event.code, "session_error")
            self._set_status(self._message(key, code=event.code))

    def _on_session_ended(self, event: SessionEnded):
        if self._is_stale(event) or self.state is not ListenState.LISTENING:
            return
        if self.keep_alive:
            self._transition(ListenState.RESTART_PENDING)
            self._restart_handle = self.scheduler.call_later(self.restart_delay_s, RestartDue(event.run))
        else:
            self._go_stopped(self._message("stopped"), reason="session_ended")

    def _on_restart_due(self, event: RestartDue):
        self._restart_handle = None
        if (self.state is not ListenState.RESTART_PENDING
                or not self.keep_alive
                or event.run != self._active_run):
            self.logger.debug("restart_ignored %s", json.dumps({
                "state": self.state.value, "keep_alive": self.keep_alive, "run": event.run
            }))
            return

        try:
            self._active_run = self._session.start()
        except Exception as e:
            self.last_error = ErrorKind.RESTART_FAILURE
            log_event(self.logger, "restart_failed", {
                "error": str(e), "type": type(e).__name__
            }, logging.ERROR)
            self._go_stopped(self._message("restart_failed"), reason="restart_failed")
            return

        self._transition(ListenState.LISTENING)

    # ---- dispatch ----

    def dispatch_transcript(self, text: str, alternatives=()) -> MatchResult:
        """Match a final transcript and drive the presenter."""
        candidates = [text] + [alt for alt in alternatives if alt != text]
        result: MatchResult = NO_MATCH
        heard = text
        for candidate in candidates:
            result = self.matcher.match(candidate)
            if not isinstance(result, NoMatch):
                heard = candidate
                break

        if isinstance(result, Action):
            self.current_action = result.action_key
            self._present("set_action", result.action_key)
            self._set_status(self._message("heard", text=heard))
        elif isinstance(result, Numeral):
            self._present("show_number", result.value)
            self._set_status(self._message("heard", text=heard))
        else:
            self._set_status(self._message("unrecognized", text=text))

        log_event(self.logger, "command_match", {
            "text": heard,
            "result": type(result).__name__,
            "action": getattr(result, "action_key", None),
            "value": getattr(result, "value", None),
        })
        return result

    # ---- helpers ----

    def _ensure_session(self) -> RecognitionSession:
        if self._session is None:
            self._session = self.session_factory(self.settings, self.events.post, self.logger)
            log_event(self.logger, "session_created", {"engine": self.settings.engine, "lang": self.settings.lang})
        return self._session

    def _is_stale(self, event: Any) -> bool:
        if event.run != self._active_run:
            self.logger.debug("stale_event %s", json.dumps({
                "type": type(event).__name__, "run": event.run, "active": self._active_run
            }))
            return True
        return False

    def _go_stopped(self, status: str, reason: str):
        # keep_alive drops first so a run ending right now cannot restart.
        self.keep_alive = False
        self.is_listening = False
        self._cancel_restart()
        if self._session is not None:
            self._session.stop()
        self._transition(ListenState.STOPPED, reason=reason)
        self._set_status(status)
        self._present("set_listening", False)

    def _cancel_restart(self):
        if self._restart_handle is not None:
            self.scheduler.cancel(self._restart_handle)
            self._restart_handle = None

    def _transition(self, new_state: ListenState, reason: str = ""):
        old = self.state
        self.state = new_state
        payload = {"from": old.value, "to": new_state.value, "keep_alive": self.keep_alive}
        if reason:
            payload["reason"] = reason
        log_event(self.logger, "listen_state", payload)

    def _message(self, key: str, **values) -> str:
        template = self.messages.get(key, key)
        try:
            return template.format(**values)
        except (KeyError, IndexError, ValueError):
            return template

    def _set_status(self, text: str):
        self.status_message = text
        self._present("set_status", text)

    def _present(self, method: str, *args):
        if self.presenter is None:
            return
        try:
            getattr(self.presenter, method)(*args)
        except Exception as e:
            log_event(self.logger, "presenter_failed", {
                "method": method, "error": str(e), "type": type(e).__name__
            }, logging.ERROR)
