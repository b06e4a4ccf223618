"""Declarative parameter schema.

A processor's parameter contract is a list of ParamDef objects. ParamSchema
wraps the list and derives the dicts the renderer and presets work with
(default_params, bypass_params, param_ranges, param_sections) and does the
one place of range clamping for untrusted input (presets, CLI flags).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

log = logging.getLogger(__name__)


@dataclass
class ParamDef:
    key: str
    default: float
    section: str
    unit: str = ""
    label: str = ""
    bypass: Any = None          # if None, uses default
    range: tuple | None = None  # (min, max); None = unbounded


class ParamSchema:
    """Derives all param structures from a declarative param list."""

    def __init__(self, params: list[ParamDef]):
        self._params = params
        self._by_key: dict[str, ParamDef] = {p.key: p for p in params}

    def default_params(self) -> dict:
        return {p.key: p.default for p in self._params}

    def bypass_params(self) -> dict:
        return {p.key: (p.bypass if p.bypass is not None else p.default)
                for p in self._params}

    def param_ranges(self) -> dict[str, tuple]:
        """Bounded params only: key -> (min, max)."""
        return {p.key: p.range for p in self._params if p.range is not None}

    def param_sections(self) -> dict[str, list[str]]:
        """Section name -> list of param keys."""
        sections: dict[str, list[str]] = {}
        for p in self._params:
            sections.setdefault(p.section, []).append(p.key)
        return sections

    def validate_and_clamp(self, raw: dict) -> dict:
        """Validate and clamp a raw params dict (e.g. a preset file).

        Unknown keys are dropped. Values are cast to float and clamped to
        range; values that cannot be cast are dropped.
        """
        result = {}
        for key, value in raw.items():
            p = self._by_key.get(key)
            if p is None:
                log.debug("dropping unknown param %r", key)
                continue
            try:
                v = float(value)
            except (TypeError, ValueError):
                log.warning("dropping %s=%r (not a number)", key, value)
                continue
            if p.range is not None:
                lo, hi = p.range
                clamped = max(lo, min(hi, v))
                if clamped != v:
                    log.info("clamped %s from %g to %g", key, v, clamped)
                v = clamped
            result[key] = v
        return result

    def get(self, key: str) -> ParamDef | None:
        return self._by_key.get(key)

    def keys(self) -> list[str]:
        return [p.key for p in self._params]

    def __iter__(self):
        return iter(self._params)

    def __len__(self):
        return len(self._params)
