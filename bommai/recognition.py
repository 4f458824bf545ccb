#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Bommai — recognition sessions

The host recognizer is single-shot: one start() captures at most one
utterance, then the run ends. A session object wraps that recognizer and is
reused for every run; each run reports its lifecycle as events:

    SessionStarted -> SessionTranscript* / SessionError -> SessionEnded

Events are handed to an ``emit`` callable (the controller's event queue) and
carry the run id so late events from an earlier run can be told apart.
"""

from __future__ import annotations

import importlib.util
import json
import logging
import sys
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, TextIO, Tuple

from bommai.errors import CapabilityUnavailable, InputExhausted, PermissionDenied, SessionBusy

# Speech deps
try:
    import speech_recognition as sr
    SPEECH_AVAILABLE = True
except ImportError:
    sr = None
    SPEECH_AVAILABLE = False

# Audio deps (PortAudio missing raises OSError at import)
try:
    import sounddevice as sd
    AUDIO_BACKEND = "sounddevice"
except (ImportError, OSError):
    sd = None
    AUDIO_BACKEND = None


# =========================
# Events
# =========================

@dataclass(frozen=True)
class SessionStarted:
    run: int


@dataclass(frozen=True)
class SessionTranscript:
    run: int
    text: str
    is_final: bool
    alternatives: Tuple[str, ...] = ()


@dataclass(frozen=True)
class SessionError:
    run: int
    code: str
    detail: str = ""


@dataclass(frozen=True)
class SessionEnded:
    run: int


@dataclass(frozen=True)
class PermissionResult:
    granted: bool
    reason: str = ""


Emit = Callable[[Any], None]


class CaptureError(Exception):
    """A single capture attempt failed with a recognizer error code."""

    def __init__(self, code: str, detail: str = ""):
        super().__init__(detail or code)
        self.code = code
        self.detail = detail


# =========================
# Settings & capability
# =========================

@dataclass
class SpeechSettings:
    engine: str = "google"
    lang: str = "ta-IN"
    interim_results: bool = False
    continuous: bool = False
    max_alternatives: int = 1
    timeout_s: float = 5.0
    phrase_time_limit_s: float = 4.0
    ambient_adjust_s: float = 0.5
    device: Optional[int] = None
    sample_rate: int = 16000
    channels: int = 1

    @classmethod
    def from_config(cls, cfg: Dict[str, Any]) -> "SpeechSettings":
        speech = cfg.get("speech", {})
        mic = cfg.get("microphone", {})
        return cls(
            engine=str(speech.get("engine", "google")).lower(),
            lang=speech.get("lang", "ta-IN"),
            interim_results=bool(speech.get("interim_results", False)),
            continuous=bool(speech.get("continuous", False)),
            max_alternatives=max(1, int(speech.get("max_alternatives", 1))),
            timeout_s=float(speech.get("timeout_s", 5.0)),
            phrase_time_limit_s=float(speech.get("phrase_time_limit_s", 4.0)),
            ambient_adjust_s=float(speech.get("ambient_adjust_s", 0.5)),
            device=mic.get("device"),
            sample_rate=int(mic.get("sample_rate", 16000)),
            channels=int(mic.get("channels", 1)),
        )


@dataclass(frozen=True)
class Capability:
    available: bool
    engine: str
    reason: str = ""


def speech_capability(settings: SpeechSettings) -> Capability:
    """Report whether the configured engine can run on this host."""
    if settings.engine == "text":
        return Capability(True, "text")
    if settings.engine != "google":
        return Capability(False, settings.engine, f"unknown engine '{settings.engine}'")
    if not SPEECH_AVAILABLE:
        return Capability(False, "google", "SpeechRecognition not installed")
    if importlib.util.find_spec("pyaudio") is None:
        return Capability(False, "google", "PyAudio not installed")
    return Capability(True, "google")


# =========================
# Microphone access
# =========================

class MicrophoneAccess:
    """Asynchronous grant/deny check for the capture device."""

    def __init__(self, settings: SpeechSettings, logger: logging.Logger):
        self.settings = settings
        self.logger = logger

    def check(self):
        """Raise PermissionDenied unless an input device can be opened."""
        if self.settings.engine == "text":
            return

        if AUDIO_BACKEND == "sounddevice":
            try:
                if self.settings.device is None:
                    sd.query_devices(kind="input")
            except (sd.PortAudioError, ValueError) as e:
                raise PermissionDenied("no-device") from e
            try:
                sd.check_input_settings(
                    device=self.settings.device,
                    samplerate=self.settings.sample_rate,
                    channels=self.settings.channels,
                )
            except (sd.PortAudioError, ValueError) as e:
                raise PermissionDenied("denied") from e
            return

        if SPEECH_AVAILABLE:
            try:
                names = sr.Microphone.list_microphone_names()
            except (AttributeError, OSError) as e:
                raise PermissionDenied("no-device") from e
            if not names:
                raise PermissionDenied("no-device")
            return

        raise PermissionDenied("no-device")

    def request(self, emit: Emit) -> threading.Thread:
        def _request():
            try:
                self.check()
            except PermissionDenied as e:
                self.logger.warning("mic_access_denied %s", json.dumps({"reason": e.reason}))
                emit(PermissionResult(False, e.reason))
                return
            self.logger.info("mic_access_granted %s", json.dumps({"device": self.settings.device}))
            emit(PermissionResult(True))

        thread = threading.Thread(target=_request, daemon=True, name="mic-access")
        thread.start()
        return thread


# =========================
# Sessions
# =========================

Hypothesis = Tuple[str, bool, Tuple[str, ...]]


class RecognitionSession:
    """Base for one reusable recognizer; subclasses capture one utterance."""

    def __init__(self, settings: SpeechSettings, emit: Emit, logger: logging.Logger):
        self.settings = settings
        self.emit = emit
        self.logger = logger
        self.run_id = 0
        self._worker: Optional[threading.Thread] = None
        self._stop = threading.Event()
        self._finished = threading.Event()
        self._finished.set()

    @property
    def running(self) -> bool:
        return not self._finished.is_set() and not self._stop.is_set()

    def start(self) -> int:
        if self.running:
            raise SessionBusy(f"run {self.run_id} still active")

        self.run_id += 1
        run = self.run_id
        stop = threading.Event()
        finished = threading.Event()
        previous = self._worker
        self._stop = stop
        self._finished = finished
        self._worker = threading.Thread(
            target=self._run, args=(run, stop, finished, previous),
            daemon=True, name=f"recognition-{run}",
        )
        self._worker.start()
        self.logger.debug("session_start %s", json.dumps({"run": run, "engine": self.settings.engine}))
        return run

    def stop(self):
        if not self._stop.is_set():
            self._stop.set()
            self.logger.debug("session_stop %s", json.dumps({"run": self.run_id}))

    def release(self):
        self.stop()

    def _recognize_once(self, stop: threading.Event) -> List[Hypothesis]:
        raise NotImplementedError

    def _run(self, run: int, stop: threading.Event, finished: threading.Event,
             previous: Optional[threading.Thread]):
        # Only one capture handle at a time: wait out an aborted run.
        if previous is not None:
            previous.join()
        if stop.is_set():
            finished.set()
            self.emit(SessionEnded(run))
            return

        self.emit(SessionStarted(run))
        try:
            while not stop.is_set():
                try:
                    hypotheses = self._recognize_once(stop)
                except CaptureError as e:
                    if not stop.is_set():
                        self.emit(SessionError(run, e.code, e.detail))
                    break
                if stop.is_set():
                    break
                for text, is_final, alternatives in hypotheses:
                    if not is_final and not self.settings.interim_results:
                        continue
                    self.emit(SessionTranscript(run, text, is_final, alternatives))
                if not self.settings.continuous:
                    break
        except Exception as e:
            self.logger.error("session_failed %s", json.dumps({
                "run": run, "error": str(e), "type": type(e).__name__
            }))
            if not stop.is_set():
                self.emit(SessionError(run, "audio-capture", str(e)))
        finally:
            finished.set()
            self.emit(SessionEnded(run))


class GoogleRecognitionSession(RecognitionSession):
    """SpeechRecognition microphone capture + Google web speech recognizer."""

    def __init__(self, settings: SpeechSettings, emit: Emit, logger: logging.Logger):
        super().__init__(settings, emit, logger)
        if not SPEECH_AVAILABLE:
            raise CapabilityUnavailable("SpeechRecognition not installed")
        self.recognizer = sr.Recognizer()
        try:
            self.microphone = sr.Microphone(
                device_index=settings.device,
                sample_rate=settings.sample_rate,
            )
        except AttributeError as e:
            # PyAudio missing
            raise CapabilityUnavailable(str(e)) from e
        self._calibrated = False

    def _recognize_once(self, stop: threading.Event) -> List[Hypothesis]:
        try:
            with self.microphone as source:
                if not self._calibrated and self.settings.ambient_adjust_s > 0:
                    self.recognizer.adjust_for_ambient_noise(source, duration=self.settings.ambient_adjust_s)
                    self._calibrated = True
                audio = self.recognizer.listen(
                    source,
                    timeout=self.settings.timeout_s,
                    phrase_time_limit=self.settings.phrase_time_limit_s,
                )
        except sr.WaitTimeoutError as e:
            raise CaptureError("no-speech", str(e)) from e
        except (OSError, AttributeError) as e:
            raise CaptureError("audio-capture", str(e)) from e

        if stop.is_set():
            return []

        try:
            result = self.recognizer.recognize_google(audio, language=self.settings.lang, show_all=True)
        except sr.UnknownValueError as e:
            raise CaptureError("no-match", str(e)) from e
        except sr.RequestError as e:
            raise CaptureError("network", str(e)) from e

        alternatives = []
        if isinstance(result, dict):
            for alt in result.get("alternative", []):
                text = (alt.get("transcript") or "").strip()
                if text:
                    alternatives.append(text)
        if not alternatives:
            raise CaptureError("no-match")

        alternatives = alternatives[: self.settings.max_alternatives]
        self.logger.info("stt_done %s", json.dumps({
            "engine": "google", "lang": self.settings.lang, "alternatives": len(alternatives)
        }))
        return [(alternatives[0], True, tuple(alternatives))]

    def release(self):
        super().release()
        self.microphone = None


class TextRecognitionSession(RecognitionSession):
    """Reads one line per run from a text stream (stdin by default)."""

    def __init__(self, settings: SpeechSettings, emit: Emit, logger: logging.Logger,
                 stream: Optional[TextIO] = None, prompt: str = ">> "):
        super().__init__(settings, emit, logger)
        self.stream = stream or sys.stdin
        self.prompt = prompt
        self.exhausted = False

    def start(self) -> int:
        if self.exhausted:
            raise InputExhausted("end of input")
        return super().start()

    def _recognize_once(self, stop: threading.Event) -> List[Hypothesis]:
        if self.prompt and self.stream is sys.stdin:
            sys.stdout.write(self.prompt)
            sys.stdout.flush()

        line = self.stream.readline()
        if not line:
            self.exhausted = True
            raise CaptureError("aborted", "end of input")

        text = line.strip()
        if not text:
            raise CaptureError("no-speech")
        return [(text, True, (text,))]


def create_session(settings: SpeechSettings, emit: Emit, logger: logging.Logger,
                   stream: Optional[TextIO] = None) -> RecognitionSession:
    if settings.engine == "text":
        return TextRecognitionSession(settings, emit, logger, stream=stream)
    return GoogleRecognitionSession(settings, emit, logger)
