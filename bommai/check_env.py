#!/usr/bin/env python3
"""
Bommai — Environment Checker
Reports: deps, config, speech capability, audio devices, trigger table and
animation assets.
"""
from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any, Dict, Optional

from bommai.commands import TriggerTable
from bommai.config import load_config, resolve_asset
from bommai.errors import ConfigError
from bommai.recognition import SpeechSettings, speech_capability


def try_import(name: str) -> bool:
    try:
        __import__(name)
        return True
    except Exception:
        return False


DEPS = {
    "pyyaml": "yaml",
    "numpy": "numpy",
    "sounddevice": "sounddevice",
    "SpeechRecognition": "speech_recognition",
    "PyAudio": "pyaudio",   # needed for microphone capture
}


def build_report(cfg: Dict[str, Any]) -> Dict[str, Any]:
    report: Dict[str, Any] = {
        "python": {"version": sys.version.split()[0], "executable": sys.executable},
        "config": {"path": cfg.get("config_path"), "version": cfg.get("version")},
        "deps": {},
        "speech": {},
        "audio": {"input_default": None, "output_default": None},
        "commands": {},
        "animations": {},
    }

    # --- deps
    for pkg, mod in DEPS.items():
        report["deps"][pkg] = try_import(mod)

    # --- speech
    settings = SpeechSettings.from_config(cfg)
    cap = speech_capability(settings)
    report["speech"] = {
        "engine": settings.engine,
        "lang": settings.lang,
        "available": cap.available,
        "reason": cap.reason or None,
    }

    # --- audio devices (best-effort)
    if report["deps"]["sounddevice"]:
        try:
            import sounddevice as sd  # type: ignore
            def_dev = sd.default.device
            inputs = sd.query_devices(def_dev[0]) if def_dev and def_dev[0] is not None and def_dev[0] >= 0 else None
            outputs = sd.query_devices(def_dev[1]) if def_dev and def_dev[1] is not None and def_dev[1] >= 0 else None
            report["audio"]["input_default"] = inputs["name"] if inputs else None
            report["audio"]["output_default"] = outputs["name"] if outputs else None
        except Exception as e:
            report["audio"]["error"] = f"{e.__class__.__name__}: {e}"

    # --- trigger table
    try:
        table = TriggerTable.from_config(cfg)
        report["commands"] = {
            "actions": table.action_keys(),
            "phrases": len(table.all_actions()),
            "numerals": len(table.all_numerals()),
            "overlaps": [
                {"shorter": short.phrase, "shorter_action": short.action_key,
                 "longer": long_.phrase, "longer_action": long_.action_key}
                for short, long_ in table.overlaps()
            ],
        }
    except ConfigError as e:
        report["commands"]["error"] = str(e)

    # --- animation assets
    for key, name in (cfg.get("animations") or {}).items():
        path = resolve_asset(str(name), cfg.get("config_path"))
        report["animations"][key] = {"path": str(path), "exists": path.exists()}

    return report


def main(config_path: Optional[Path] = None) -> int:
    cfg = load_config(config_path)
    report = build_report(cfg)
    print(json.dumps(report, indent=2, ensure_ascii=False))
    return 0 if report["speech"]["available"] and "error" not in report["commands"] else 1


if __name__ == "__main__":
    sys.exit(main())
