#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Bommai — entry point

    bommai                 window with the puppet and a mic toggle
    bommai --headless      listen immediately, log what happens
    bommai --text          type commands instead of speaking them
    bommai --audio-check   play a test tone, check the microphone level
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from bommai import audio_check, check_env
from bommai.commands import TranscriptMatcher, TriggerTable
from bommai.config import ensure_logger, load_config, log_event, now_iso
from bommai.controller import ListeningController, ListenState
from bommai.errors import ConfigError, ErrorKind
from bommai.presenter import AnimationLibrary, ConsolePresenter
from bommai.recognition import (
    AUDIO_BACKEND,
    SPEECH_AVAILABLE,
    RecognitionSession,
    create_session,
)

FATAL_ERRORS = {
    ErrorKind.CAPABILITY_UNAVAILABLE,
    ErrorKind.PERMISSION_DENIED,
    ErrorKind.RESTART_FAILURE,
}


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Voice-controlled Tamil puppet")
    parser.add_argument('--config', type=Path, default=None,
                        help='YAML config file (default: $BOMMAI_CONFIG or ~/.config/bommai/bommai.yaml)')
    parser.add_argument('--headless', action='store_true', help='No window; start listening right away')
    parser.add_argument('--text', action='store_true', help='Read commands from stdin instead of the microphone')
    parser.add_argument('--list-devices', action='store_true', help='List audio devices and exit')
    parser.add_argument('--audio-check', action='store_true', help='Test audio output and microphone, then exit')
    parser.add_argument('--check-env', action='store_true', help='Print an environment report and exit')
    parser.add_argument('--debug', action='store_true', help='Verbose logging')
    return parser.parse_args(argv)


def run_console(controller: ListeningController, logger: logging.Logger,
                finished: Callable[[], bool] = lambda: False, poll_s: float = 0.1) -> int:
    """Drive the controller from the main thread until input ends or Ctrl-C."""
    controller.refresh()
    controller.request_start()
    try:
        while True:
            controller.pump(timeout=poll_s)
            if finished():
                break
            if controller.state is ListenState.STOPPED and controller.last_error in FATAL_ERRORS:
                break
    except KeyboardInterrupt:
        logger.info("shutdown_requested %s", json.dumps({"reason": "keyboard_interrupt"}))
    finally:
        controller.shutdown()
    if finished():
        return 0
    return 1 if controller.last_error in FATAL_ERRORS else 0


def _apply_overrides(cfg: Dict[str, Any], args: argparse.Namespace):
    if args.debug:
        cfg["logging"]["debug"] = True
    if args.text:
        cfg["speech"]["engine"] = "text"
        cfg["ui"]["headless"] = True
    if args.headless:
        cfg["ui"]["headless"] = True


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    cfg = load_config(args.config)
    _apply_overrides(cfg, args)

    if args.list_devices:
        for dev in audio_check.list_devices():
            print(f"{dev['index']}: {dev['name']} ({dev['io']})")
        return 0

    if args.audio_check:
        mic = cfg["microphone"].get("device")
        result = audio_check.run_audio_check(input_device=mic)
        print(json.dumps(result, indent=2, ensure_ascii=False))
        return 0 if result["output"]["ok"] else 1

    if args.check_env:
        print(json.dumps(check_env.build_report(cfg), indent=2, ensure_ascii=False))
        return 0

    logger, log_path = ensure_logger(cfg["logging"])

    log_event(logger, "boot", {
        "log_file": log_path,
        "time": now_iso(),
        "version": cfg.get("version"),
        "config": cfg.get("config_path"),
        "engine": cfg["speech"].get("engine"),
        "lang": cfg["speech"].get("lang"),
    })
    log_event(logger, "capabilities", {
        "audio": AUDIO_BACKEND,
        "speech_recognition": SPEECH_AVAILABLE,
    })

    try:
        table = TriggerTable.from_config(cfg)
    except ConfigError as e:
        logger.error("config_invalid %s", json.dumps({"error": str(e)}, ensure_ascii=False))
        return 2
    matcher = TranscriptMatcher.from_config(cfg, table)

    sessions: List[RecognitionSession] = []

    def session_factory(settings, emit, log):
        session = create_session(settings, emit, log)
        sessions.append(session)
        return session

    def build_controller(presenter) -> ListeningController:
        return ListeningController(cfg, logger, matcher, presenter, session_factory=session_factory)

    def input_exhausted() -> bool:
        return any(getattr(s, "exhausted", False) for s in sessions)

    def run_headless() -> int:
        presenter = ConsolePresenter(logger, AnimationLibrary.from_config(cfg, logger))
        return run_console(build_controller(presenter), logger, finished=input_exhausted)

    if cfg["ui"].get("headless"):
        return run_headless()

    try:
        import tkinter
        from bommai.stage import run_stage
    except ImportError as e:
        logger.warning("stage_unavailable %s", json.dumps({"error": str(e)}))
        return run_headless()

    try:
        run_stage(cfg, logger, build_controller)
    except tkinter.TclError as e:
        logger.warning("stage_unavailable %s", json.dumps({"error": str(e)}))
        return run_headless()
    return 0


if __name__ == "__main__":
    sys.exit(main())
