#!/usr/bin/env python3
"""
Bommai — audio checks
- Output self-test: short, very quiet 880 Hz tone on the default output
- Output device listing
- Mic check: records a second @16k mono, reports RMS/peak
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

import numpy as np

try:
    import sounddevice as sd
    AUDIO_BACKEND = "sounddevice"
except (ImportError, OSError):
    sd = None
    AUDIO_BACKEND = None

TONE_HZ = 880.0
TONE_SECONDS = 0.25
TONE_GAIN = 0.05
RAMP_SECONDS = 0.05
MIC_SAMPLE_RATE = 16000


def make_tone(sample_rate: int, seconds: float = TONE_SECONDS, freq: float = TONE_HZ,
              gain: float = TONE_GAIN, ramp: float = RAMP_SECONDS) -> np.ndarray:
    """Sine tone that ramps up from silence so the test never clicks."""
    n = int(sample_rate * seconds)
    t = np.arange(n, dtype=np.float32) / sample_rate
    tone = np.sin(2 * np.pi * freq * t).astype(np.float32)
    envelope = np.full(n, gain, dtype=np.float32)
    ramp_n = min(n, int(sample_rate * ramp))
    if ramp_n > 0:
        envelope[:ramp_n] = np.linspace(0.0, gain, ramp_n, dtype=np.float32)
    return tone * envelope


def list_devices(kind: Optional[str] = None) -> List[Dict[str, Any]]:
    """Audio devices; kind='output' or 'input' filters by channel direction."""
    if AUDIO_BACKEND is None:
        return []
    out = []
    for i, dev in enumerate(sd.query_devices()):
        io = []
        if dev["max_input_channels"] > 0:
            io.append("in")
        if dev["max_output_channels"] > 0:
            io.append("out")
        if kind == "input" and "in" not in io:
            continue
        if kind == "output" and "out" not in io:
            continue
        out.append({"index": i, "name": dev["name"], "io": "/".join(io) if io else "none"})
    return out


def list_output_devices() -> List[Dict[str, Any]]:
    return list_devices("output")


def check_audio_output(device: Optional[int] = None) -> Dict[str, Any]:
    """Play the test tone and report what worked."""
    if AUDIO_BACKEND is None:
        return {"ok": False, "reason": "no-audio-api", "audio_api_available": False}

    outputs = list_output_devices()
    report: Dict[str, Any] = {
        "ok": False,
        "audio_api_available": True,
        "has_output_devices": bool(outputs),
        "played": False,
    }
    if not outputs:
        report["reason"] = "no-output-device"
        return report

    try:
        info = sd.query_devices(device, kind="output")
        rate = int(info["default_samplerate"])
        sd.play(make_tone(rate), samplerate=rate, device=device)
        sd.wait()
        report["played"] = True
        report["device"] = info["name"]
    except (sd.PortAudioError, ValueError) as e:
        report["reason"] = f"{e.__class__.__name__}: {e}"
        return report

    report["ok"] = True
    return report


def check_microphone(seconds: float = 1.0, device: Optional[int] = None) -> Dict[str, Any]:
    """Record briefly and report levels; a silent mic shows rms close to 0."""
    if AUDIO_BACKEND is None:
        return {"ok": False, "reason": "no-audio-api"}
    try:
        data = sd.rec(int(seconds * MIC_SAMPLE_RATE), samplerate=MIC_SAMPLE_RATE,
                      channels=1, dtype="float32", device=device)
        sd.wait()
    except (sd.PortAudioError, ValueError) as e:
        return {"ok": False, "reason": f"{e.__class__.__name__}: {e}"}

    rms = float(np.sqrt(np.mean(np.square(data), dtype=np.float64)))
    peak = float(np.max(np.abs(data))) if data.size else 0.0
    return {"ok": True, "seconds": seconds, "rms": round(rms, 6), "peak": round(peak, 6)}


def run_audio_check(output_device: Optional[int] = None, input_device: Optional[int] = None) -> Dict[str, Any]:
    return {
        "output": check_audio_output(output_device),
        "output_devices": list_output_devices(),
        "microphone": check_microphone(device=input_device),
    }


if __name__ == "__main__":
    print(json.dumps(run_audio_check(), indent=2, ensure_ascii=False))
