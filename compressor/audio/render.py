"""Offline WAV rendering for the compressor.

Usage:
    python -m compressor.audio.render input.wav output.wav [--preset vocal] [--ratio 4] [--threshold -18]
"""

import argparse
import logging
import math
import sys

import numpy as np

from compressor.engine.compressor import CHUNK_SIZE, compress_with_gain
from compressor.engine.params import (
    SCHEMA, CompressorParams, default_params, list_presets, load_preset,
)
from shared.analysis import analyze, format_report, gain_summary
from shared.audio import load_wav, save_wav
from shared.metering import MeterLog, safety_check
from shared.sound import Sound

log = logging.getLogger(__name__)


def pad_for_render(sound: Sound, tail_seconds: float) -> Sound:
    """Append silence so the lookahead tail is flushed and the length is a
    whole number of chunks (the engine drops a trailing partial chunk)."""
    n = len(sound)
    tail = max(0, int(math.ceil(tail_seconds * sound.rate)))
    total = -(-(n + tail) // CHUNK_SIZE) * CHUNK_SIZE
    if total == n:
        return sound
    padded = np.vstack([sound.samples, np.zeros((total - n, 2))])
    return Sound(padded, sound.rate)


def build_params(args) -> CompressorParams:
    """Preset (or defaults), then any per-parameter flags, clamped to range."""
    if args.preset:
        params = load_preset(args.preset).to_dict()
    else:
        params = default_params()
    overrides = {key: getattr(args, key) for key in SCHEMA.keys()
                 if getattr(args, key, None) is not None}
    params.update(SCHEMA.validate_and_clamp(overrides))
    return CompressorParams.from_dict(params)


def make_parser():
    parser = argparse.ArgumentParser(description="Compressor offline renderer")
    parser.add_argument("input", nargs="?", help="Input WAV file")
    parser.add_argument("output", nargs="?", help="Output WAV file")
    parser.add_argument("--preset", help="Preset name or JSON file")
    parser.add_argument("--list-presets", action="store_true",
                        help="List bundled presets and exit")
    for p in SCHEMA:
        unit = f" ({p.unit})" if p.unit else ""
        rng = f" [{p.range[0]:g}, {p.range[1]:g}]" if p.range else ""
        parser.add_argument(f"--{p.key}", type=float, help=f"{p.label or p.key}{unit}{rng}")
    parser.add_argument("--tail", type=float, default=None,
                        help="Silence appended in seconds (default: the lookahead time)")
    parser.add_argument("--engine", choices=["numba", "python"], default="numba")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser


def main(argv=None):
    parser = make_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format="%(name)s %(levelname)s: %(message)s")

    if args.list_presets:
        for name in list_presets():
            print(name)
        return 0
    if not args.input or not args.output:
        parser.error("input and output are required")

    params = build_params(args)
    sound = load_wav(args.input)
    print(f"Loaded {args.input}: {len(sound)} samples, {sound.rate} Hz")

    tail = params.predelay if args.tail is None else args.tail
    padded = pad_for_render(sound, tail)

    meter = MeterLog(echo=args.verbose)
    result = compress_with_gain(padded, params, meter=meter, engine=args.engine)
    if result is None:
        print("ERROR: not enough memory to render", file=sys.stderr)
        return 1
    output, gains = result

    ok, err = safety_check(output.samples)
    if not ok:
        print(err, file=sys.stderr)
        return 1

    print(format_report(analyze(output.samples, reference=padded.samples),
                        gain_summary(gains)))
    if meter.min_db is not None:
        print(f"  Meter floor:  {meter.min_db:.1f} dB")

    save_wav(args.output, output)
    print(f"Saved {args.output}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
