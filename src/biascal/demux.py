"""Demultiplexing of the five BLTS channels into antenna signal representations.

The BIAS multiplexer routes different physical signals to BLTS channels 1-5
depending on the mux mode (MUX_SET). Which differential pair uses antenna 2
or antenna 3 additionally depends on the demultiplexer latching relay (DLR).

Terminology
-----------
BLTS : the five raw BIAS-LFR/TDS channels (``BIAS_1`` .. ``BIAS_5``).
ASR  : antenna signal representations, ``V1 V2 V3`` (single-ended DC),
       ``V12 V13 V23`` (differential DC) and ``V12_AC V13_AC V23_AC``.

Routing is declared once in :data:`ROUTING_TABLE`; adding a mode is a table
change.
"""
from __future__ import annotations

import enum
import logging
import math
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Set, Tuple, Union

import numpy as np

from .config import ScalarGains

logger = logging.getLogger(__name__)

N_BLTS = 5

ASR_CHANNELS: Tuple[str, ...] = (
    "V1",
    "V2",
    "V3",
    "V12",
    "V13",
    "V23",
    "V12_AC",
    "V13_AC",
    "V23_AC",
)

# Placeholder antenna resolved to 2 or 3 by the latching relay.
ANT_B = "B"

Antenna = Union[int, str]


class Category(str, enum.Enum):
    DC_SINGLE = "DC single"
    DC_DIFF = "DC diff"
    AC = "AC"
    GROUND = "GND"
    REF25V = "2.5V Ref"


# Categories stored in the single-ended ASR slots.
SINGLE_ENDED_CATEGORIES = frozenset({Category.DC_SINGLE, Category.GROUND, Category.REF25V})


class UnsupportedMuxModeError(ValueError):
    """Raised for a mux mode that is neither NaN nor a defined mode."""


@dataclass(frozen=True)
class BltsRouting:
    """What one BLTS channel carries: antennas (sorted) and signal category.

    ``antennas`` is empty and ``category`` is None when the mux mode is
    unknown (NaN).
    """

    antennas: Tuple[int, ...]
    category: Optional[Category]

    @property
    def asr_channel(self) -> Optional[str]:
        if self.category is None:
            return None
        return asr_channel(self.antennas, self.category)


@dataclass(frozen=True)
class ModeRouting:
    description: str
    channels: Tuple[Tuple[Tuple[Antenna, ...], Category], ...]
    derive_dc: bool  # modes where BLTS 1-3 are redundant derive nothing for DC


_S = Category.DC_SINGLE
_D = Category.DC_DIFF
_AC = ((1, ANT_B), Category.AC), ((2, 3), Category.AC)

ROUTING_TABLE: Dict[int, ModeRouting] = {
    0: ModeRouting(
        "Standard operation",
        (((1,), _S), ((1, ANT_B), _D), ((2, 3), _D), *_AC),
        derive_dc=True,
    ),
    1: ModeRouting(
        "Antenna 1 fails",
        (((2,), _S), ((3,), _S), ((2, 3), _D), *_AC),
        derive_dc=False,
    ),
    2: ModeRouting(
        "Antenna 2 fails",
        (((1,), _S), ((3,), _S), ((1, ANT_B), _D), *_AC),
        derive_dc=False,
    ),
    3: ModeRouting(
        "Antenna 3 fails",
        (((1,), _S), ((2,), _S), ((1, ANT_B), _D), *_AC),
        derive_dc=False,
    ),
    4: ModeRouting(
        "Calibration mode 0",
        (((1,), _S), ((2,), _S), ((3,), _S), *_AC),
        derive_dc=True,
    ),
    5: ModeRouting(
        "Calibration mode 1",
        (((1,), Category.REF25V), ((2,), Category.REF25V), ((3,), Category.REF25V), *_AC),
        derive_dc=True,
    ),
    6: ModeRouting(
        "Calibration mode 2",
        (((1,), Category.GROUND), ((2,), Category.GROUND), ((3,), Category.GROUND), *_AC),
        derive_dc=True,
    ),
    7: ModeRouting(
        "Calibration mode 3",
        (((1,), Category.GROUND), ((2,), Category.GROUND), ((3,), Category.GROUND), *_AC),
        derive_dc=True,
    ),
}


def asr_channel(antennas: Sequence[int], category: Category) -> str:
    """Name of the ASR slot a (antennas, category) pair is stored in."""

    ants = tuple(antennas)
    if category in SINGLE_ENDED_CATEGORIES and len(ants) == 1 and ants[0] in (1, 2, 3):
        return f"V{ants[0]}"
    if len(ants) == 2 and ants in ((1, 2), (1, 3), (2, 3)):
        if category is Category.DC_DIFF:
            return f"V{ants[0]}{ants[1]}"
        if category is Category.AC:
            return f"V{ants[0]}{ants[1]}_AC"
    raise ValueError(f"Illegal combination of antennas {ants} and category {category!r}")


def _resolve_antennas(antennas: Tuple[Antenna, ...], dlr_using_12: bool) -> Tuple[int, ...]:
    ant_b = 2 if dlr_using_12 else 3
    return tuple(sorted(ant_b if a == ANT_B else int(a) for a in antennas))


def _validate_routing_table(table: Dict[int, ModeRouting]) -> None:
    for mode, entry in table.items():
        if len(entry.channels) != N_BLTS:
            raise ValueError(f"Mux mode {mode} routes {len(entry.channels)} channels, expected {N_BLTS}")
        for dlr in (True, False):
            names = [asr_channel(_resolve_antennas(ants, dlr), cat) for ants, cat in entry.channels]
            if len(set(names)) != N_BLTS:
                raise ValueError(f"Mux mode {mode} routes several BLTS channels to the same ASR: {names}")


_validate_routing_table(ROUTING_TABLE)


def _mode_key(mux_set: float) -> Optional[int]:
    """Table key for *mux_set*; None for NaN (unknown configuration)."""

    value = float(mux_set)
    if math.isnan(value):
        return None
    if not value.is_integer() or int(value) not in ROUTING_TABLE:
        raise UnsupportedMuxModeError(f"Illegal mux mode (MUX_SET) {mux_set!r}")
    return int(value)


def _as_flag(dlr_using_12: object) -> bool:
    if dlr_using_12 not in (0, 1):
        raise ValueError(f"dlr_using_12 must be a boolean, got {dlr_using_12!r}")
    return bool(dlr_using_12)


def routing_for(mux_set: float, dlr_using_12: bool) -> List[BltsRouting]:
    """Return the five BLTS routing descriptors for one mux mode."""

    dlr = _as_flag(dlr_using_12)
    mode = _mode_key(mux_set)
    if mode is None:
        return [BltsRouting(antennas=(), category=None) for _ in range(N_BLTS)]
    return [
        BltsRouting(antennas=_resolve_antennas(ants, dlr), category=category)
        for ants, category in ROUTING_TABLE[mode].channels
    ]


def scalar_gain(gains: ScalarGains, category: Category, diff_gain: float) -> float:
    """Constant gain dividing a BLTS signal of *category*."""

    if category in SINGLE_ENDED_CATEGORIES:
        return gains.alpha
    if category is Category.DC_DIFF:
        return gains.beta
    if category is Category.AC:
        return gains.gamma(diff_gain)
    raise ValueError(f"Unsupported category {category!r}")


_Op = Callable[[np.ndarray, np.ndarray], np.ndarray]

_DIFFS_FROM_SINGLES: Tuple[Tuple[str, str, str], ...] = (
    ("V12", "V1", "V2"),
    ("V13", "V1", "V3"),
    ("V23", "V2", "V3"),
)

_SINGLES_FROM_DIFFS: Tuple[Tuple[str, str, str, _Op], ...] = (
    ("V2", "V1", "V12", np.subtract),
    ("V3", "V2", "V23", np.subtract),
    ("V3", "V1", "V13", np.subtract),
    ("V1", "V2", "V12", np.add),
    ("V1", "V3", "V13", np.add),
    ("V2", "V3", "V23", np.add),
)


def _redundant_pair_rule(dlr_using_12: bool, suffix: str) -> Tuple[str, str, str, _Op]:
    if dlr_using_12:
        return ("V13" + suffix, "V12" + suffix, "V23" + suffix, np.add)
    return ("V12" + suffix, "V13" + suffix, "V23" + suffix, np.subtract)


def derive_missing(
    asr: Dict[str, np.ndarray],
    populated: Set[str],
    *,
    dlr_using_12: bool,
    derive_dc: bool,
) -> None:
    """Fill ASR channels derivable from *populated* ones, in place.

    Only one of V12/V13 is ever derived through ``V13 = V12 + V23``; the
    latching relay decides which of the two was measured.
    """

    def apply(target: str, lhs: str, rhs: str, op: _Op) -> None:
        if target not in populated and lhs in populated and rhs in populated:
            asr[target] = op(asr[lhs], asr[rhs])
            populated.add(target)

    if derive_dc:
        for target, lhs, rhs in _DIFFS_FROM_SINGLES:
            apply(target, lhs, rhs, np.subtract)
        apply(*_redundant_pair_rule(dlr_using_12, ""))
        for rule in _SINGLES_FROM_DIFFS:
            apply(*rule)
    apply(*_redundant_pair_rule(dlr_using_12, "_AC"))


def _validate_blts(blts: Sequence[np.ndarray]) -> List[np.ndarray]:
    if len(blts) != N_BLTS:
        raise ValueError(f"Expected {N_BLTS} BLTS channels, got {len(blts)}")
    arrays = [np.asarray(samples, dtype=float) for samples in blts]
    shape = arrays[0].shape
    for i, arr in enumerate(arrays[1:], start=2):
        if arr.shape != shape:
            raise ValueError(f"BIAS_{i} shape mismatch: expected {shape}, got {arr.shape}")
    return arrays


def route(
    mux_set: float,
    diff_gain: float,
    dlr_using_12: bool,
    blts: Sequence[np.ndarray],
    gains: ScalarGains | None = None,
) -> Tuple[Dict[str, np.ndarray], List[BltsRouting]]:
    """Demultiplex one configuration-homogeneous block of BLTS samples.

    Parameters
    ----------
    mux_set, diff_gain:
        Scalar configuration; NaN means unknown.
    dlr_using_12:
        True if the latching relay connects antenna pair (1,2), False for (1,3).
    blts:
        Five arrays of identical shape (``BIAS_1`` .. ``BIAS_5``).
    gains:
        Scalar gains; BLTS samples are divided by the gain of their category.

    Returns
    -------
    asr, routing
        Dict of the nine ASR arrays (NaN where underivable) and the five
        routing descriptors.
    """

    gains = gains if gains is not None else ScalarGains()
    samples = _validate_blts(blts)
    routing = routing_for(mux_set, dlr_using_12)

    asr = {name: np.full(samples[0].shape, np.nan) for name in ASR_CHANNELS}
    mode = _mode_key(mux_set)
    if mode is None:
        logger.debug("Unknown mux mode (NaN); returning empty ASR")
        return asr, routing

    populated: Set[str] = set()
    for descriptor, values in zip(routing, samples):
        name = asr_channel(descriptor.antennas, descriptor.category)
        asr[name] = values / scalar_gain(gains, descriptor.category, diff_gain)
        populated.add(name)

    derive_missing(
        asr,
        populated,
        dlr_using_12=bool(dlr_using_12),
        derive_dc=ROUTING_TABLE[mode].derive_dc,
    )
    return asr, routing


# Signal levels of the internal references seen through the single-ended paths.
REFERENCE_LEVELS = {Category.GROUND: 0.0, Category.REF25V: 2.5}


def multiplex(
    mux_set: float,
    diff_gain: float,
    dlr_using_12: bool,
    asr: Dict[str, np.ndarray],
    gains: ScalarGains | None = None,
) -> List[np.ndarray]:
    """Inverse of :func:`route`: the BLTS samples a mux mode produces from *asr*.

    *asr* must provide every channel the mode routes; internal references
    (GND, 2.5 V) do not need one.
    """

    gains = gains if gains is not None else ScalarGains()
    shape = np.shape(next(iter(asr.values())))
    blts = []
    for descriptor in routing_for(mux_set, dlr_using_12):
        if descriptor.category is None:
            blts.append(np.full(shape, np.nan))
            continue
        if descriptor.category in REFERENCE_LEVELS:
            values = np.full(shape, REFERENCE_LEVELS[descriptor.category])
        else:
            values = np.asarray(asr[descriptor.asr_channel], dtype=float)
        blts.append(values * scalar_gain(gains, descriptor.category, diff_gain))
    return blts
