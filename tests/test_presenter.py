"""Tests for animation clips and the console presenter."""

from __future__ import annotations

import copy
import json
import logging

import pytest

from bommai.config import ASSETS_DIR, DEFAULT_CONFIG
from bommai.presenter import AnimationClip, AnimationLibrary, ConsolePresenter, load_clip


@pytest.fixture()
def logger():
    return logging.getLogger("test_presenter")


@pytest.fixture()
def cfg():
    return copy.deepcopy(DEFAULT_CONFIG)


def write_lottie(path, **header):
    path.write_text(json.dumps(header), encoding="utf-8")
    return path


class TestClips:
    def test_bundled_clip_header(self):
        clip = load_clip("sit", ASSETS_DIR / "sit.json")
        assert clip.name == "sit"
        assert clip.frame_rate == 30
        assert clip.frame_count == 60

    def test_frame_at_loops(self):
        clip = AnimationClip(name="walk", path="", frame_rate=30, in_point=0, out_point=60)
        assert clip.frame_at(0) == 0
        assert clip.frame_at(1.0) == 30
        assert clip.frame_at(2.5) == 15

    def test_frame_at_respects_in_point(self):
        clip = AnimationClip(name="jump", path="", frame_rate=10, in_point=5, out_point=15)
        assert clip.frame_at(0) == 5
        assert clip.frame_at(1.2) == 7

    def test_name_defaults_to_key(self, tmp_path):
        clip = load_clip("dance", write_lottie(tmp_path / "d.json", fr=24, op=48))
        assert clip.name == "dance"
        assert clip.width == 300

    @pytest.mark.parametrize("header", [
        {"fr": 0, "op": 10},
        {"fr": 30, "ip": 10, "op": 10},
        {"fr": 30},
        {"fr": "fast", "op": 10},
    ])
    def test_bad_headers_rejected(self, tmp_path, header):
        with pytest.raises(ValueError):
            load_clip("x", write_lottie(tmp_path / "x.json", **header))

    def test_non_object_rejected(self, tmp_path):
        path = tmp_path / "list.json"
        path.write_text("[1, 2]", encoding="utf-8")
        with pytest.raises(ValueError):
            load_clip("x", path)


class TestAnimationLibrary:
    def test_loads_bundled_assets(self, cfg, logger):
        lib = AnimationLibrary.from_config(cfg, logger)
        assert set(lib.clips) == {"sit", "walk", "dance", "jump"}
        assert lib.get("dance").frame_count == 90

    def test_missing_asset_gets_placeholder(self, cfg, logger, caplog):
        cfg["animations"] = {"wave": "does-not-exist.json"}
        with caplog.at_level(logging.WARNING, logger="test_presenter"):
            lib = AnimationLibrary.from_config(cfg, logger)
        assert lib.get("wave").name == "wave"
        assert "animation_load_failed" in caplog.text

    def test_unknown_key_gets_placeholder(self, cfg, logger):
        lib = AnimationLibrary.from_config(cfg, logger)
        assert lib.get("fly").name == "fly"


class TestConsolePresenter:
    def test_records_display_state(self, cfg, logger):
        p = ConsolePresenter(logger, AnimationLibrary.from_config(cfg, logger))
        p.set_action("walk", frame=3)
        p.show_number(8)
        p.set_status("கேட்கிறேன்")
        p.set_listening(True)
        assert (p.action, p.number, p.status, p.listening) == ("walk", 8, "கேட்கிறேன்", True)

    def test_logs_each_change(self, logger, caplog):
        p = ConsolePresenter(logger)
        with caplog.at_level(logging.INFO, logger="test_presenter"):
            p.set_action("jump")
            p.show_number(2)
        assert 'stage_action {"action": "jump"}' in caplog.text
        assert 'stage_number {"value": 2}' in caplog.text
