import json
from pathlib import Path
from typing import Union, Tuple, Dict

from hwtElastic.errors import ConfigurationError
from hwtElastic.netlist.transformation.speculation.insertSpeculation import HS_SPECULATION_MODE
from hwtElastic.platform.opRealizationMeta import OpRealizationMeta


def _parseNumber(v, name: str, isInt: bool):
    if isinstance(v, bool) or not isinstance(v, (int, float)) or (isInt and not isinstance(v, int)):
        raise ConfigurationError(f"{name:s} must be {'int' if isInt else 'number'}, got {v!r}", name)
    return v


def parseTimingModel(d: dict) -> Tuple[float, float, Dict[str, OpRealizationMeta]]:
    """
    :return: tuple (clkPeriod, targetThroughput, opTimings)
    """
    if not isinstance(d, dict):
        raise ConfigurationError("Timing model must be an object", repr(d))
    for k in ("clkPeriod", "targetThroughput", "ops"):
        if k not in d:
            raise ConfigurationError(f"Timing model is missing key {k:s}", k)

    clkPeriod = _parseNumber(d["clkPeriod"], "clkPeriod", False)
    targetThroughput = _parseNumber(d["targetThroughput"], "targetThroughput", False)
    ops = d["ops"]
    if not isinstance(ops, dict):
        raise ConfigurationError("ops must be an object", "ops")

    opTimings = {}
    for key, t in ops.items():
        if not isinstance(t, dict):
            raise ConfigurationError(f"Timing of {key:s} must be an object", key)
        delay = _parseNumber(t.get("delay", 0.0), f"{key:s}.delay", False)
        latency = _parseNumber(t.get("latency", 0), f"{key:s}.latency", True)
        if delay < 0 or latency < 0:
            raise ConfigurationError(f"Timing of {key:s} must not be negative", key)
        opTimings[key] = OpRealizationMeta(float(delay), latency)

    return clkPeriod, targetThroughput, opTimings


def loadTimingModelJson(src: Union[str, Path, dict], **platformKwargs) -> "DefaultHsPlatform":
    """
    Load a timing model and create a platform from it.

    Format: {"clkPeriod": float, "targetThroughput": float, "ops": {key: {"delay": float, "latency": int}}}
    and optionally "speculationMode": "explicit"|"automatic"

    :param src: a path to a file, JSON string or already parsed dictionary
    :param platformKwargs: other arguments for :class:`~.DefaultHsPlatform`
    """
    from hwtElastic.platform.platform import DefaultHsPlatform
    try:
        if isinstance(src, Path):
            with open(src) as f:
                d = json.load(f)
        elif isinstance(src, str):
            d = json.loads(src)
        else:
            d = src
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Malformed timing model: {e}", str(src))

    clkPeriod, targetThroughput, opTimings = parseTimingModel(d)
    mode = d.get("speculationMode", None)
    if mode is not None and "speculationMode" not in platformKwargs:
        try:
            platformKwargs["speculationMode"] = HS_SPECULATION_MODE.fromStr(mode)
        except (KeyError, AttributeError):
            raise ConfigurationError(f"Invalid speculation mode {mode!r}", "speculationMode")
    return DefaultHsPlatform(clkPeriod, targetThroughput, opTimings, **platformKwargs)
