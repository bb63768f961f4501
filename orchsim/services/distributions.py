"""Distribution sampling for the synthetic data generator.

Every sampler takes an explicit `random.Random` so a seeded generator gives
reproducible batches. Missing or unusable parameters fall back to defaults
instead of failing.
"""
import math
import random
from typing import Any, Dict, Optional

DEFAULT_UNIFORM = {"min": 10.0, "max": 1000.0}
DEFAULT_EXPONENTIAL = {"lambda": 0.01}
DEFAULT_AMOUNT = {"mean": 250.0, "stdDev": 150.0}
DEFAULT_DURATION = {"mean": 300.0, "stdDev": 120.0}

MIN_AMOUNT = 0.01
MIN_DURATION_SEC = 30


def _param(params: Dict[str, Any], names, default: float) -> float:
    for name in names:
        value = params.get(name)
        if isinstance(value, bool):
            continue
        if isinstance(value, (int, float)) and math.isfinite(value):
            return float(value)
    return default


def uniform(rng: random.Random, low: float, high: float) -> float:
    return low + rng.random() * (high - low)


def normal(rng: random.Random, mean: float, std_dev: float) -> float:
    # Box-Muller; u1 in (0, 1] keeps log() finite
    u1 = 1.0 - rng.random()
    u2 = rng.random()
    z = math.sqrt(-2.0 * math.log(u1)) * math.cos(2.0 * math.pi * u2)
    return mean + z * std_dev


def exponential(rng: random.Random, lam: float) -> float:
    return -math.log(1.0 - rng.random()) / lam


def sample(distribution: Optional[Dict[str, Any]], rng: random.Random,
           normal_defaults: Optional[Dict[str, float]] = None) -> float:
    """
    Draw one value from {"type": uniform|normal|exponential, "params": {...}}.
    Unknown or missing types sample the normal distribution.
    """
    distribution = distribution or {}
    kind = (distribution.get("type") or distribution.get("kind") or "normal").lower()
    params = distribution.get("params") or {}
    normal_defaults = normal_defaults or DEFAULT_AMOUNT

    if kind == "uniform":
        low = _param(params, ("min",), DEFAULT_UNIFORM["min"])
        high = _param(params, ("max",), DEFAULT_UNIFORM["max"])
        return uniform(rng, low, high)

    if kind == "exponential":
        lam = _param(params, ("lambda", "rate"), DEFAULT_EXPONENTIAL["lambda"])
        if lam <= 0:
            lam = DEFAULT_EXPONENTIAL["lambda"]
        return exponential(rng, lam)

    mean = _param(params, ("mean",), normal_defaults["mean"])
    std_dev = _param(params, ("stdDev", "std_dev"), normal_defaults["stdDev"])
    return normal(rng, mean, std_dev)


def sample_amount(distribution: Optional[Dict[str, Any]], rng: random.Random) -> float:
    """Monetary amount: floored at 0.01, two decimals."""
    return max(MIN_AMOUNT, round(sample(distribution, rng, DEFAULT_AMOUNT), 2))


def sample_duration(distribution: Optional[Dict[str, Any]], rng: random.Random) -> int:
    """Duration in seconds: floored at 30, whole seconds."""
    return max(MIN_DURATION_SEC, int(round(sample(distribution, rng, DEFAULT_DURATION))))
