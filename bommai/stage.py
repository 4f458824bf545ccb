"""tkinter stage: animated puppet, number flash, status line, mic toggle."""

from __future__ import annotations

import json
import logging
import math
import time
import tkinter as tk
from typing import Any, Dict, Optional

from bommai.config import log_event
from bommai.presenter import AnimationLibrary, Presenter

FONT = "Noto Sans Tamil"
PUMP_MS = 50
START_LABEL = "🎤 பேச தொடங்குங்கள்"
STOP_LABEL = "⏹ நிறுத்து"


class TkStage(Presenter):
    def __init__(self, master: tk.Tk, cfg: Dict[str, Any], logger: logging.Logger,
                 library: AnimationLibrary):
        self.master = master
        self.logger = logger
        self.library = library
        self.controller = None

        ui = cfg.get("ui", {})
        self.width = int(ui.get("width", 300))
        self.height = int(ui.get("height", 300))
        self.number_display_ms = int(ui.get("number_display_ms", 1500))

        self.master.title(ui.get("title", "Bommai"))

        title = tk.Label(self.master, text=ui.get("title", "Bommai"), font=(FONT, 22))
        title.pack(pady=(30, 10))

        self.canvas = tk.Canvas(self.master, bg="white", width=self.width, height=self.height,
                                highlightthickness=0)
        self.canvas.pack()

        self.button = tk.Button(self.master, text=START_LABEL, font=(FONT, 16),
                                bg="#ffcc00", relief=tk.FLAT, padx=20, pady=10,
                                command=self._on_toggle)
        self.button.pack(pady=10)

        self.status_var = tk.StringVar(value="")
        tk.Label(self.master, textvariable=self.status_var, font=(FONT, 14),
                 wraplength=self.width + 200).pack(pady=(10, 20))

        self.master.protocol("WM_DELETE_WINDOW", self.close)

        self._clip = None
        self._clip_started = time.monotonic()
        self._frame_job = None
        self._number_job = None
        self._number_item = None
        self._closed = False

    # ---- wiring ----

    def bind(self, controller):
        self.controller = controller
        controller.refresh()
        self.master.after(PUMP_MS, self._pump)

    def _pump(self):
        if self._closed:
            return
        self.controller.pump(limit=50)
        self.master.after(PUMP_MS, self._pump)

    def _on_toggle(self):
        if self.controller is not None:
            self.controller.toggle()

    def close(self):
        if self._closed:
            return
        self._closed = True
        if self.controller is not None:
            self.controller.shutdown()
        self.master.destroy()

    # ---- presenter ----

    def set_action(self, action_key: str, frame: Optional[int] = None):
        self._clip = self.library.get(action_key)
        self._clip_started = time.monotonic()
        if frame is not None:
            self._clip_started -= frame / self._clip.frame_rate
        if self._frame_job is not None:
            self.master.after_cancel(self._frame_job)
        self._draw_frame()

    def show_number(self, value: int):
        if self._number_job is not None:
            self.master.after_cancel(self._number_job)
        if self._number_item is not None:
            self.canvas.delete(self._number_item)
        self._number_item = self.canvas.create_text(
            self.width // 2, self.height // 2, text=str(value),
            font=(FONT, 96, "bold"), fill="#d33",
        )
        self._number_job = self.master.after(self.number_display_ms, self._clear_number)

    def set_status(self, text: str):
        self.status_var.set(text)

    def set_listening(self, listening: bool):
        self.button.config(text=STOP_LABEL if listening else START_LABEL)

    # ---- drawing ----

    def _clear_number(self):
        self._number_job = None
        if self._number_item is not None:
            self.canvas.delete(self._number_item)
            self._number_item = None

    def _draw_frame(self):
        clip = self._clip
        if clip is None or self._closed:
            return
        frame = clip.frame_at(time.monotonic() - self._clip_started)
        progress = (frame - clip.in_point) / clip.frame_count

        self.canvas.delete("puppet")
        cx, cy = self.width // 2, self.height // 2
        r = min(self.width, self.height) // 3
        bob = int(math.sin(progress * 2 * math.pi) * r * 0.1)
        self.canvas.create_oval(cx - r, cy - r + bob, cx + r, cy + r + bob,
                                outline="#333", width=3, tags="puppet")
        self.canvas.create_arc(cx - r - 10, cy - r - 10, cx + r + 10, cy + r + 10,
                               start=90, extent=-360 * progress, style=tk.ARC,
                               outline="#ffcc00", width=4, tags="puppet")
        self.canvas.create_text(cx, cy + bob, text=clip.name, font=(FONT, 18), tags="puppet")
        if self._number_item is not None:
            self.canvas.tag_raise(self._number_item)

        self._frame_job = self.master.after(max(10, int(1000 / clip.frame_rate)), self._draw_frame)


def run_stage(cfg: Dict[str, Any], logger: logging.Logger, build_controller) -> None:
    """Open the window, wire the controller to it and run the Tk main loop."""
    root = tk.Tk()
    library = AnimationLibrary.from_config(cfg, logger)
    stage = TkStage(root, cfg, logger, library)
    controller = build_controller(stage)
    stage.bind(controller)
    log_event(logger, "stage_open", {"width": stage.width, "height": stage.height})
    try:
        root.mainloop()
    except KeyboardInterrupt:
        logger.info("shutdown_requested %s", json.dumps({"reason": "keyboard_interrupt"}))
        stage.close()
