#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Bommai — presentation adapters

The controller only ever calls four methods on its presenter:
set_action, show_number, set_status and set_listening. Animations are
Lottie files; only their header (frame rate, in/out points, size) is read
here, the stage decides how to draw a frame.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from bommai.config import log_event, resolve_asset


# =========================
# Animation clips
# =========================

@dataclass(frozen=True)
class AnimationClip:
    name: str
    path: str
    frame_rate: float = 30.0
    in_point: float = 0.0
    out_point: float = 60.0
    width: int = 300
    height: int = 300

    @property
    def frame_count(self) -> int:
        return max(1, int(round(self.out_point - self.in_point)))

    def frame_at(self, elapsed_s: float) -> int:
        """Looping frame index for a clip that has been playing elapsed_s."""
        offset = int(elapsed_s * self.frame_rate) % self.frame_count
        return int(self.in_point) + offset


def load_clip(name: str, path: Path) -> AnimationClip:
    """Read the Lottie header of an animation file."""
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"not a Lottie document: {path}")
    try:
        frame_rate = float(data["fr"])
        in_point = float(data.get("ip", 0))
        out_point = float(data["op"])
    except (KeyError, TypeError, ValueError) as e:
        raise ValueError(f"Lottie header incomplete in {path}: {e}") from e
    if frame_rate <= 0 or out_point <= in_point:
        raise ValueError(f"Lottie timing invalid in {path}")
    return AnimationClip(
        name=data.get("nm") or name,
        path=str(path),
        frame_rate=frame_rate,
        in_point=in_point,
        out_point=out_point,
        width=int(data.get("w", 300)),
        height=int(data.get("h", 300)),
    )


class AnimationLibrary:
    """Action key -> clip. Broken assets fall back to a placeholder clip."""

    def __init__(self, clips: Dict[str, AnimationClip]):
        self.clips = clips

    @classmethod
    def from_config(cls, cfg: Dict[str, Any], logger: logging.Logger) -> "AnimationLibrary":
        clips: Dict[str, AnimationClip] = {}
        for key, name in (cfg.get("animations") or {}).items():
            path = resolve_asset(str(name), cfg.get("config_path"))
            try:
                clips[key] = load_clip(key, path)
            except (OSError, ValueError) as e:
                log_event(logger, "animation_load_failed", {
                    "action": key, "path": str(path), "error": str(e)
                }, logging.WARNING)
                clips[key] = AnimationClip(name=key, path=str(path))
        return cls(clips)

    def get(self, action_key: str) -> AnimationClip:
        clip = self.clips.get(action_key)
        if clip is None:
            clip = AnimationClip(name=action_key, path="")
            self.clips[action_key] = clip
        return clip


# =========================
# Presenters
# =========================

class Presenter:
    """No-op presenter; the base for real ones."""

    def set_action(self, action_key: str, frame: Optional[int] = None):
        pass

    def show_number(self, value: int):
        pass

    def set_status(self, text: str):
        pass

    def set_listening(self, listening: bool):
        pass


class ConsolePresenter(Presenter):
    """Headless presenter: every display change becomes a log line."""

    def __init__(self, logger: logging.Logger, library: Optional[AnimationLibrary] = None):
        self.logger = logger
        self.library = library
        self.action: Optional[str] = None
        self.number: Optional[int] = None
        self.status = ""
        self.listening = False

    def set_action(self, action_key: str, frame: Optional[int] = None):
        self.action = action_key
        payload: Dict[str, Any] = {"action": action_key}
        if self.library is not None:
            clip = self.library.get(action_key)
            payload["clip"] = clip.name
            payload["frames"] = clip.frame_count
        if frame is not None:
            payload["frame"] = frame
        log_event(self.logger, "stage_action", payload)

    def show_number(self, value: int):
        self.number = value
        log_event(self.logger, "stage_number", {"value": value})

    def set_status(self, text: str):
        self.status = text
        log_event(self.logger, "stage_status", {"text": text})

    def set_listening(self, listening: bool):
        self.listening = listening
        log_event(self.logger, "stage_listening", {"listening": listening})
