"""Parameter schema for the compressor.

This is the shared contract between the CLI renderer, presets, and
scripting. The schema carries ranges and sections; CompressorParams is the
immutable value the engines actually consume.

The engines never clamp. Ranges here are enforced only when untrusted
values come in through SCHEMA.validate_and_clamp (presets, CLI flags).
"""

from __future__ import annotations

import dataclasses
import json
import os
from dataclasses import dataclass

from shared.params import ParamDef, ParamSchema

SR = 44100

PRESET_DIR = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))),
                          "presets")

# ── Schema ────────────────────────────────────────────────────────────

_PARAMS = [
    # --- Detector / static curve ---
    ParamDef("threshold", -24.0, section="detector", unit="dB",
             label="Threshold", range=(-100.0, 0.0)),
    ParamDef("knee", 30.0, section="detector", unit="dB",
             label="Knee", range=(0.0, 40.0)),
    ParamDef("ratio", 12.0, section="detector",
             label="Ratio", bypass=1.0, range=(1.0, 20.0)),

    # --- Timing ---
    ParamDef("attack", 0.003, section="timing", unit="s",
             label="Attack", range=(0.0, 1.0)),
    ParamDef("release", 0.250, section="timing", unit="s",
             label="Release", range=(0.0, 1.0)),
    ParamDef("predelay", 0.006, section="timing", unit="s",
             label="Lookahead", range=(0.0, 1.0)),

    # --- Adaptive release zones (ascending fractions of release) ---
    ParamDef("releasezone1", 0.09, section="release_zones", range=(0.0, 1.0)),
    ParamDef("releasezone2", 0.16, section="release_zones", range=(0.0, 1.0)),
    ParamDef("releasezone3", 0.42, section="release_zones", range=(0.0, 1.0)),
    ParamDef("releasezone4", 0.98, section="release_zones", range=(0.0, 1.0)),

    # --- Output ---
    ParamDef("postgain", 0.0, section="output", unit="dB",
             label="Post gain", range=(-40.0, 40.0)),
    ParamDef("wet", 1.0, section="output",
             label="Wet", bypass=0.0, range=(0.0, 1.0)),
]

SCHEMA = ParamSchema(_PARAMS)

default_params = SCHEMA.default_params
bypass_params = SCHEMA.bypass_params
PARAM_RANGES = SCHEMA.param_ranges()
PARAM_SECTIONS = SCHEMA.param_sections()


@dataclass(frozen=True)
class CompressorParams:
    """One invocation's parameters. Values outside the documented domains
    are the caller's responsibility; nothing here clamps them."""

    threshold: float = -24.0     # [-100, 0] dB
    knee: float = 30.0           # [0, 40] dB
    ratio: float = 12.0          # [1, 20]
    attack: float = 0.003        # [0, 1] s
    release: float = 0.250       # [0, 1] s
    predelay: float = 0.006      # s
    releasezone1: float = 0.09   # release zones range from 0 to 1, ascending
    releasezone2: float = 0.16
    releasezone3: float = 0.42
    releasezone4: float = 0.98
    postgain: float = 0.0        # dB
    wet: float = 1.0             # [0, 1]

    @classmethod
    def from_dict(cls, d: dict) -> "CompressorParams":
        """Build from a (partial) params dict; missing keys take defaults."""
        fields = {f.name for f in dataclasses.fields(cls)}
        unknown = set(d) - fields
        if unknown:
            raise ValueError(f"Unknown compressor params: {sorted(unknown)}")
        return cls(**{k: float(v) for k, v in d.items()})

    def to_dict(self) -> dict:
        return dataclasses.asdict(self)

    def replace(self, **changes) -> "CompressorParams":
        return dataclasses.replace(self, **changes)


DEFAULTS = CompressorParams()


# ── Presets ───────────────────────────────────────────────────────────

def list_presets() -> list[str]:
    """Names of the bundled presets."""
    if not os.path.isdir(PRESET_DIR):
        return []
    return sorted(f[:-5] for f in os.listdir(PRESET_DIR) if f.endswith(".json"))


def load_preset(name_or_path: str) -> CompressorParams:
    """Load a bundled preset by name, or any preset JSON by path.

    Unknown keys are dropped and values clamped to the schema ranges;
    keys the preset omits keep their defaults.
    """
    path = name_or_path
    if not os.path.isfile(path):
        path = os.path.join(PRESET_DIR, f"{name_or_path}.json")
    with open(path) as f:
        preset = json.load(f)
    preset.pop("_meta", None)
    params = default_params()
    params.update(SCHEMA.validate_and_clamp(preset))
    return CompressorParams.from_dict(params)
