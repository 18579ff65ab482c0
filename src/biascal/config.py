from __future__ import annotations

import json
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Sequence


@dataclass(frozen=True)
class ScalarGains:
    """Constant BIAS gains used when no transfer function is applied.

    ``alpha`` applies to single-ended (and internal reference) signals,
    ``beta`` to DC differentials and ``gamma_*`` to AC differentials for the
    low (0) and high (1) diff gain setting.
    """

    alpha: float = 1.0 / 17.0
    beta: float = 1.0
    gamma_low_gain: float = 5.0
    gamma_high_gain: float = 100.0

    @staticmethod
    def unity() -> "ScalarGains":
        return ScalarGains(alpha=1.0, beta=1.0, gamma_low_gain=1.0, gamma_high_gain=1.0)

    def gamma(self, diff_gain: float) -> float:
        """Return the AC gain for *diff_gain*; NaN iff *diff_gain* is NaN."""

        value = float(diff_gain)
        if math.isnan(value):
            return math.nan
        if value == 0.0:
            return self.gamma_low_gain
        if value == 1.0:
            return self.gamma_high_gain
        raise ValueError(f"Illegal diff_gain value {diff_gain!r} (expected 0, 1 or NaN)")


@dataclass(frozen=True)
class TfSettings:
    detrend_degree: int = -1  # <0 disables detrending
    retrend: bool = False
    high_freq_limit_fraction: float = math.inf  # fraction of Nyquist
    extrapolate_hz: float = 0.0

    def __post_init__(self) -> None:
        if self.retrend and self.detrend_degree < 0:
            raise ValueError("tf.retrend requires tf.detrend_degree >= 0")
        if math.isnan(self.high_freq_limit_fraction) or self.high_freq_limit_fraction < 0:
            raise ValueError("tf.high_freq_limit_fraction must be >= 0 (may be inf)")
        if self.extrapolate_hz < 0:
            raise ValueError("tf.extrapolate_hz must be non-negative")


@dataclass(frozen=True)
class CalibrationConfig:
    gains: ScalarGains = field(default_factory=ScalarGains)
    tf: TfSettings = field(default_factory=TfSettings)
    dlr_using_12: bool = True
    sampling_frequency_hz: float = 256.0

    @property
    def dt(self) -> float:
        if self.sampling_frequency_hz <= 0:
            raise ValueError("sampling_frequency_hz must be positive")
        return 1.0 / self.sampling_frequency_hz


def _load_json(path: Path) -> Dict[str, Any]:
    with path.open("r", encoding="utf-8") as fh:
        return json.load(fh)


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged: Dict[str, Any] = {**base}
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            merged[key] = _merge(base[key], value)  # type: ignore[index]
        else:
            merged[key] = value
    return merged


def config_from_mapping(data: Dict[str, Any]) -> CalibrationConfig:
    gains_data = data.get("gains") or {}
    tf_data = data.get("tf") or {}
    defaults = ScalarGains()
    tf_defaults = TfSettings()
    return CalibrationConfig(
        gains=ScalarGains(
            alpha=float(gains_data.get("alpha", defaults.alpha)),
            beta=float(gains_data.get("beta", defaults.beta)),
            gamma_low_gain=float(gains_data.get("gamma_low_gain", defaults.gamma_low_gain)),
            gamma_high_gain=float(gains_data.get("gamma_high_gain", defaults.gamma_high_gain)),
        ),
        tf=TfSettings(
            detrend_degree=int(tf_data.get("detrend_degree", tf_defaults.detrend_degree)),
            retrend=_as_bool(tf_data.get("retrend", tf_defaults.retrend)),
            high_freq_limit_fraction=float(
                tf_data.get("high_freq_limit_fraction", tf_defaults.high_freq_limit_fraction)
            ),
            extrapolate_hz=float(tf_data.get("extrapolate_hz", tf_defaults.extrapolate_hz)),
        ),
        dlr_using_12=_as_bool(data.get("dlr_using_12", True)),
        sampling_frequency_hz=float(data.get("sampling_frequency_hz", 256.0)),
    )


def load_config(path: Path | str | None = None, overrides: Sequence[str] | None = None) -> CalibrationConfig:
    """
    Load a calibration configuration from JSON and apply CLI-style overrides.

    Overrides are expressed as dotted `key=value` pairs, e.g.:
        ["gains.alpha=0.0588", "tf.detrend_degree=1", "tf.retrend=true"]

    Without *path* the built-in defaults are the base.
    """
    data = _load_json(Path(path)) if path is not None else {}
    override_data: Dict[str, Any] = {}
    for override in overrides or []:
        key, raw_value = _parse_override(override)
        _assign_nested(override_data, key, raw_value)
    return config_from_mapping(_merge(data, override_data))


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "1", "yes"}:
            return True
        if lowered in {"false", "0", "no"}:
            return False
        raise ValueError(f"Cannot interpret {value!r} as a boolean")
    return bool(value)


def _parse_override(item: str) -> tuple[str, Any]:
    if "=" not in item:
        raise ValueError(f"Override '{item}' must use key=value syntax")
    key, raw_value = item.split("=", 1)
    key = key.strip()
    if not key:
        raise ValueError("Override key may not be empty")
    value = _coerce_value(raw_value.strip())
    return key, value


def _coerce_value(raw: str) -> Any:
    if raw.lower() in {"true", "false"}:
        return raw.lower() == "true"
    try:
        if "." in raw or "e" in raw.lower():
            return float(raw)
        return int(raw)
    except ValueError:
        pass
    if raw.startswith("[") and raw.endswith("]"):
        return json.loads(raw)
    if raw.startswith("{") and raw.endswith("}"):
        return json.loads(raw)
    return raw


def _assign_nested(target: Dict[str, Any], dotted_key: str, value: Any) -> None:
    cursor = target
    parts = dotted_key.split(".")
    for part in parts[:-1]:
        cursor = cursor.setdefault(part, {})
    cursor[parts[-1]] = value
