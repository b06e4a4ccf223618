"""Level metrics for compressor renders.

Output-only metrics (RMS, peak, crest factor) and optional dry-vs-processed
comparison metrics (RMS change, peak change, crest change), plus a summary
of the per-sample gain trajectory returned by compress_with_gain().

Dependencies: numpy only.
"""

import numpy as np


def analyze(audio, reference=None):
    """Analyze level metrics.

    Args:
        audio: processed audio, mono (N,) or stereo (N,2). Mixed to mono internally.
        reference: optional dry/input audio for comparison metrics. Compared
            over the common length.

    Returns dict with keys:
        rms_db, peak_db, crest_factor

        When reference is provided, also:
        rms_change_db, peak_change_db, crest_change_db
    """
    mono = _to_mono(audio)
    result = _levels(mono)

    if reference is not None:
        ref_mono = _to_mono(reference)
        n = min(len(mono), len(ref_mono))
        out = _levels(mono[:n])
        ref = _levels(ref_mono[:n])
        result["rms_change_db"] = _delta(out["rms_db"], ref["rms_db"])
        result["peak_change_db"] = _delta(out["peak_db"], ref["peak_db"])
        result["crest_change_db"] = _delta(out["crest_factor"], ref["crest_factor"])
    return result


def gain_summary(gains):
    """Summarize a per-sample gain trajectory.

    Returns dict with min_gain_db, mean_gain_db, max_gain_db and
    max_reduction_db (max minus min, the deepest dip below the loudest point).
    """
    gains = np.asarray(gains, dtype=np.float64)
    if gains.size == 0:
        return {}
    positive = np.maximum(gains, 1e-12)
    db = 20.0 * np.log10(positive)
    return {
        "min_gain_db": round(float(np.min(db)), 2),
        "mean_gain_db": round(float(np.mean(db)), 2),
        "max_gain_db": round(float(np.max(db)), 2),
        "max_reduction_db": round(float(np.max(db) - np.min(db)), 2),
    }


def format_report(metrics, gains=None):
    """Human-readable summary for the CLI."""
    lines = []
    if metrics.get("rms_db") is not None:
        lines.append(f"  RMS level:    {metrics['rms_db']:.1f} dB")
    if metrics.get("peak_db") is not None:
        lines.append(f"  Peak level:   {metrics['peak_db']:.1f} dB")
    if metrics.get("crest_factor") is not None:
        lines.append(f"  Crest factor: {metrics['crest_factor']:.1f} dB")
    if metrics.get("rms_change_db") is not None:
        lines.append(f"  RMS change:   {metrics['rms_change_db']:+.1f} dB")
    if metrics.get("peak_change_db") is not None:
        lines.append(f"  Peak change:  {metrics['peak_change_db']:+.1f} dB")
    if metrics.get("crest_change_db") is not None:
        lines.append(f"  Crest change: {metrics['crest_change_db']:+.1f} dB"
                     + ("  (squashed)" if metrics["crest_change_db"] < -6 else ""))
    if gains:
        lines.append(f"  Gain range:   {gains['min_gain_db']:.1f} .. {gains['max_gain_db']:.1f} dB"
                     f" (max reduction {gains['max_reduction_db']:.1f} dB)")
    return "\n".join(lines)


def _levels(mono):
    if len(mono) == 0:
        return {"rms_db": None, "peak_db": None, "crest_factor": None}
    rms = float(np.sqrt(np.mean(mono ** 2)))
    peak = float(np.max(np.abs(mono)))
    rms_db = round(20.0 * np.log10(rms), 1) if rms > 1e-12 else None
    peak_db = round(20.0 * np.log10(peak), 1) if peak > 1e-12 else None
    crest = round(peak_db - rms_db, 1) if rms_db is not None and peak_db is not None else None
    return {"rms_db": rms_db, "peak_db": peak_db, "crest_factor": crest}


def _delta(a, b):
    if a is None or b is None:
        return None
    return round(a - b, 1)


def _to_mono(audio):
    audio = np.asarray(audio, dtype=np.float64)
    if audio.ndim == 2:
        return audio.mean(axis=1)
    return audio
