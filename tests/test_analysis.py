"""Tests for presets.py, row_compare.py, shield_effect.py and streaming.py"""

import json
import math
import pytest
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from ttklab.services.errors import ConfigurationError
from ttklab.services.presets import PRESETS, get_preset, preset_params
from ttklab.services.row_compare import count_differences, patch_deltas, row_key
from ttklab.services.shield_effect import combine_reports, row_ttk, shield_effect
from ttklab.services.streaming import StreamEvent, StreamEventType, finite_or_none
from ttklab.services.sweep_driver import SimulationMode


def row(target, ttk, weapon="Rifle", tier=1, attachments="none", profile="Typical", **extra):
    data = {
        "weapon": weapon,
        "tier": tier,
        "attachments": attachments,
        "target": target,
        "accuracy_profile": profile,
        "ttk_mean": ttk,
        "ttk_p50": ttk,
    }
    data.update(extra)
    return data


class TestPresets:
    """Tests for the precomputed preset definitions."""

    def test_five_presets(self):
        assert [p.profile for p in PRESETS] == ["Body only", "Head only", "Typical", "Good Aim", "Bad Aim"]

    def test_modes(self):
        assert get_preset("preset_body_only").mode == SimulationMode.DETERMINISTIC
        assert get_preset("Typical").mode == SimulationMode.MONTE_CARLO

    def test_params(self):
        params = preset_params(get_preset("preset_bad_aim"), trials=500, seed=9)
        assert (params.body, params.head, params.limbs, params.miss) == (0.55, 0.05, 0.40, 0.20)
        assert params.trials == 500
        assert params.seed == 9
        assert params.profile_name == "Bad Aim"

    def test_deterministic_single_trial(self):
        assert preset_params(get_preset("Head only"), trials=500).trials == 1

    def test_meta(self):
        meta = get_preset("preset_typical").meta(trials=1000, confidence=0.9)
        assert meta["file"] == "preset_typical.json"
        assert meta["kind"] == "precomputed"
        assert meta["n_trials"] == 1000
        assert get_preset("preset_head_only").meta(1000, 0.9)["ci_level"] is None

    def test_unknown(self):
        with pytest.raises(ConfigurationError):
            get_preset("Perfect Aim")


class TestRowCompare:
    """Tests for row matching and patch deltas."""

    def test_row_key(self):
        assert row_key(row("Light", 1.0, tier="2")) == ("Rifle", 2, "none", "Light")

    def test_patch_deltas(self):
        current = [row("Light", 1.2, shots_mean=10), row("Heavy", 2.0)]
        baseline = [row("Light", 1.5, shots_mean=12, baseline_approximate=True)]
        deltas = patch_deltas(current, baseline)

        assert len(deltas) == 1
        assert deltas[0]["target"] == "Light"
        assert deltas[0]["ttk_mean_before"] == 1.5
        assert deltas[0]["ttk_mean_after"] == 1.2
        assert deltas[0]["ttk_mean_delta"] == pytest.approx(-0.3)
        assert deltas[0]["shots_mean_delta"] == -2
        assert deltas[0]["baseline_approximate"] is True

    def test_unresolved_delta_is_none(self):
        deltas = patch_deltas([row("Light", None)], [row("Light", 1.0)])
        assert deltas[0]["ttk_mean_delta"] is None

    def test_count_differences(self):
        body = [row("Light", 1.0, shots_p50=10), row("Heavy", 2.0, shots_p50=20)]
        typical = [row("Light", 1.0, shots_p50=10), row("Heavy", 2.1, shots_p50=21), row("Medium", 1.5)]
        assert count_differences(typical, body) == (1, 2)

    def test_deterministic_fields(self):
        """Deterministic rows compare through ttk_s and bullets_to_kill."""
        a = [{"weapon": "R", "tier": 1, "attachments": "none", "target": "Light", "ttk_s": 1.0, "bullets_to_kill": 8}]
        b = [{"weapon": "R", "tier": 1, "attachments": "none", "target": "Light", "ttk_s": 1.0, "bullets_to_kill": 9}]
        assert count_differences(a, b) == (1, 1)


class TestShieldEffect:
    """Tests for shield impact aggregation."""

    ORDER = ["NoShield", "Light", "Medium", "Heavy"]

    def test_relative_increases(self):
        rows = [row("NoShield", 1.0), row("Light", 1.5), row("Medium", 1.8), row("Heavy", 2.7)]
        report = shield_effect(rows, self.ORDER)

        light = report.impacts["Light"]
        heavy = report.impacts["Heavy"]
        assert light.avg_diff_base == pytest.approx(0.5)
        assert light.avg_rel_base == pytest.approx(0.5)
        assert light.avg_rel_prev == pytest.approx(0.5)
        assert heavy.avg_rel_base == pytest.approx(1.7)
        assert heavy.avg_rel_prev == pytest.approx(0.5)

    def test_missing_previous_tier(self):
        rows = [row("NoShield", 1.0), row("Medium", 2.0)]
        medium = shield_effect(rows, self.ORDER).impacts["Medium"]
        assert medium.count_base == 1
        assert medium.count_prev == 0
        assert medium.avg_rel_prev is None

    def test_setups_grouped(self):
        rows = [
            row("NoShield", 1.0), row("Light", 2.0),
            row("NoShield", 2.0, tier=2), row("Light", 3.0, tier=2),
        ]
        light = shield_effect(rows, self.ORDER).impacts["Light"]
        assert light.count_base == 2
        assert light.avg_diff_base == pytest.approx(1.0)
        assert light.avg_rel_base == pytest.approx(0.75)

    def test_unresolved_rows_skipped(self):
        rows = [row("NoShield", None), row("Light", 2.0)]
        assert shield_effect(rows, self.ORDER).impacts["Light"].count_base == 0

    def test_row_ttk_fallback(self):
        assert row_ttk({"ttk_s": 1.5}) == 1.5
        assert row_ttk({"ttk_mean": None}) is None

    def test_combine(self):
        a = shield_effect([row("NoShield", 1.0), row("Light", 2.0)], self.ORDER)
        b = shield_effect([row("NoShield", 1.0), row("Light", 1.5)], self.ORDER)
        combined = combine_reports([a, b])
        assert combined.impacts["Light"].count_base == 2
        assert combined.impacts["Light"].to_dict()["avg_rel_base"] == pytest.approx(0.75)


class TestStreaming:
    """Tests for SSE formatting."""

    def test_progress_event(self):
        sse = StreamEvent(event_type=StreamEventType.PROGRESS, data=None, done=10, total=40).to_sse()
        assert sse.startswith("event: progress\n")
        assert sse.endswith("\n\n")
        payload = json.loads(sse.split("data: ", 1)[1])
        assert payload == {"type": "progress", "data": None, "done": 10, "total": 40}

    def test_infinite_values_become_null(self):
        sse = StreamEvent(event_type=StreamEventType.DONE, data={"ttk_mean": math.inf}).to_sse()
        payload = json.loads(sse.split("data: ", 1)[1])
        assert payload["data"]["ttk_mean"] is None

    def test_finite_or_none(self):
        assert finite_or_none({"a": [1.0, math.nan], "m": SimulationMode.DETERMINISTIC}) == \
            {"a": [1.0, None], "m": "deterministic"}
