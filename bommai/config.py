#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Bommai — configuration and logging

- YAML config with built-in defaults (written out on first run)
- File + stdout logger
- Structured event logging: "<kind> <json payload>"
"""

from __future__ import annotations

import copy
import json
import logging
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml

from bommai.errors import ConfigError

# =========================
# Paths
# =========================

CONFIG_PATH = Path("~/.config/bommai/bommai.yaml").expanduser()
LOG_DIR = Path("~/.local/state/bommai/logs").expanduser()
PACKAGE_DIR = Path(__file__).resolve().parent
ASSETS_DIR = PACKAGE_DIR / "assets"

SECTIONS = [
    "speech", "microphone", "controller", "matching", "commands",
    "numerals", "animations", "messages", "logging", "ui",
]

# =========================
# Defaults
# =========================

DEFAULT_CONFIG: Dict[str, Any] = {
    "version": "v1",
    "speech": {
        "engine": "google",          # google | text
        "lang": "ta-IN",
        "interim_results": False,
        "continuous": False,
        "max_alternatives": 1,
        "timeout_s": 5.0,            # wait for speech to begin
        "phrase_time_limit_s": 4.0,  # cap on a single utterance
        "ambient_adjust_s": 0.5,
    },
    "microphone": {
        "device": None,
        "sample_rate": 16000,
        "channels": 1,
    },
    "controller": {
        "restart_delay_ms": 300,
        "default_action": "sit",
    },
    "matching": {
        "word_boundaries": True,
    },
    "commands": {
        "sit": ["உக்காரு", "உட்காரு", "உக்காருங்க", "உட்காருங்க", "உட்கார்", "உக்கார்", "sit", "sit down"],
        "walk": ["நட", "நடங்க", "நடந்து வா", "நடக்கவும்", "walk"],
        "dance": ["ஆடு", "ஆடுங்க", "டான்ஸ் ஆடு", "நடனம் ஆடு", "நடனம்", "dance"],
        "jump": ["குதி", "குதிங்க", "குதிக்கவும்", "தாவு", "jump"],
    },
    "numerals": {
        "ஒன்று": 1, "ஒண்ணு": 1,
        "இரண்டு": 2, "ரெண்டு": 2,
        "மூன்று": 3, "மூணு": 3,
        "நான்கு": 4, "நாலு": 4,
        "ஐந்து": 5, "அஞ்சு": 5,
        "ஆறு": 6,
        "ஏழு": 7,
        "எட்டு": 8,
        "ஒன்பது": 9,
        "பத்து": 10,
    },
    "animations": {
        "sit": "sit.json",
        "walk": "walk.json",
        "dance": "dance.json",
        "jump": "jump.json",
    },
    "messages": {
        "idle": "பேசுங்கள்… (Speak a command)",
        "listening": "கேட்கிறேன்… (Listening)",
        "heard": "நீங்கள் சொன்னது: {text}",
        "heard_partial": "… {text}",
        "unrecognized": "அறிய முடியவில்லை: {text}",
        "stopped": "நிறுத்தப்பட்டது (Stopped)",
        "unsupported": "பேச்சு அங்கீகாரம் இல்லை (Speech recognition unavailable)",
        "permission_denied": "மைக்ரோஃபோன் அனுமதி இல்லை (Microphone access denied)",
        "no_speech": "பேச்சு கேட்கவில்லை (No speech heard)",
        "no_match": "புரியவில்லை (Didn't catch that)",
        "session_error": "பிழை: {code}",
        "restart_failed": "மீண்டும் தொடங்க முடியவில்லை (Could not restart listening)",
    },
    "logging": {
        "debug": False,
        "dir": None,
    },
    "ui": {
        "title": "தமிழ் பொம்மை விளையாட்டு",
        "headless": False,
        "width": 300,
        "height": 300,
        "number_display_ms": 1500,
    },
}


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Merge override into a copy of base; nested dicts merge, the rest replaces."""
    out = copy.deepcopy(base)
    for key, value in (override or {}).items():
        if isinstance(value, dict) and isinstance(out.get(key), dict):
            # Command and numeral tables replace wholesale.
            if key in ("commands", "numerals"):
                out[key] = copy.deepcopy(value)
            else:
                out[key] = _merge(out[key], value)
        else:
            out[key] = copy.deepcopy(value)
    return out


def resolve_config_path(path: Optional[Path] = None) -> Path:
    if path is not None:
        return Path(path).expanduser()
    env = os.environ.get("BOMMAI_CONFIG")
    if env:
        return Path(env).expanduser()
    return CONFIG_PATH


def load_config(path: Optional[Path] = None) -> Dict[str, Any]:
    """Load YAML config, creating it from defaults when missing."""
    cfg_path = resolve_config_path(path)

    if not cfg_path.exists():
        cfg_path.parent.mkdir(parents=True, exist_ok=True)
        with open(cfg_path, "w", encoding="utf-8") as f:
            yaml.safe_dump(DEFAULT_CONFIG, f, allow_unicode=True, sort_keys=False)
        loaded: Dict[str, Any] = {}
    else:
        with open(cfg_path, "r", encoding="utf-8") as f:
            loaded = yaml.safe_load(f) or {}
        if not isinstance(loaded, dict):
            raise ConfigError(f"config root must be a mapping: {cfg_path}")

    cfg = _merge(DEFAULT_CONFIG, loaded)

    # Normalize sections
    for key in SECTIONS:
        if cfg.get(key) is None:
            cfg[key] = {}

    cfg.setdefault("version", "v1")
    cfg["config_path"] = str(cfg_path)
    return cfg


def resolve_asset(name: str, cfg_path: Optional[str] = None) -> Path:
    """Find an animation asset: absolute, next to the config file, or bundled."""
    candidate = Path(name).expanduser()
    if candidate.is_absolute():
        return candidate
    if cfg_path:
        beside = Path(cfg_path).parent / candidate
        if beside.exists():
            return beside
    return ASSETS_DIR / candidate


# =========================
# Logging
# =========================

def ensure_logger(log_cfg: Dict[str, Any]) -> Tuple[logging.Logger, str]:
    """Set up file + stdout logger."""
    log_dir = Path(log_cfg.get("dir") or LOG_DIR).expanduser()
    log_dir.mkdir(parents=True, exist_ok=True)
    ts = datetime.now().strftime("%Y%m%d")
    log_path = log_dir / f"bommai-{ts}.log"

    logger = logging.getLogger("bommai")
    logger.setLevel(logging.DEBUG if log_cfg.get("debug") else logging.INFO)
    logger.handlers.clear()

    # File handler
    fh = logging.FileHandler(log_path, encoding="utf-8")
    fh.setLevel(logging.DEBUG)

    # Console handler
    ch = logging.StreamHandler(sys.stdout)
    ch.setLevel(logging.DEBUG if log_cfg.get("debug") else logging.INFO)

    fmt = logging.Formatter("%(asctime)s [%(levelname)s] %(message)s")
    fh.setFormatter(fmt)
    ch.setFormatter(fmt)

    logger.addHandler(fh)
    logger.addHandler(ch)

    return logger, str(log_path)


def now_iso() -> str:
    return datetime.now().isoformat(timespec="seconds")


def log_event(logger: logging.Logger, kind: str, payload: Dict[str, Any], level: int = logging.INFO):
    try:
        logger.log(level, "%s %s", kind, json.dumps(payload, ensure_ascii=False))
    except (TypeError, ValueError):
        logger.log(level, "%s %s", kind, str(payload))
