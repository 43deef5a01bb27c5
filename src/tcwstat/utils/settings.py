"""Write tcwstat run settings to a TOML file."""

from __future__ import annotations

import math
from dataclasses import asdict, is_dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any

import numpy as np


def _clean_value(val: Any) -> Any:
    if isinstance(val, tuple):
        return [_clean_value(v) for v in val]
    if isinstance(val, Enum):
        return val.name.lower()
    if isinstance(val, np.generic):
        return val.item()
    return val


def _clean_mapping(mapping: dict[str, Any]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for key, val in mapping.items():
        if val is None:
            continue
        out[key] = _clean_value(val)
    return out


def _toml_escape(s: str) -> str:
    return s.replace("\\", "\\\\").replace('"', '\\"')


def _toml_value(val: Any) -> str:
    if isinstance(val, bool):
        return "true" if val else "false"
    if isinstance(val, int):
        return str(val)
    if isinstance(val, float):
        # TOML spells non-finite floats as nan / inf
        if math.isnan(val):
            return "nan"
        if math.isinf(val):
            return "inf" if val > 0 else "-inf"
        return repr(float(val))
    if isinstance(val, str):
        return f'"{_toml_escape(val)}"'
    if isinstance(val, (list, tuple)):
        inner = ", ".join(_toml_value(v) for v in val)
        return f"[{inner}]"
    return f'"{_toml_escape(str(val))}"'


def _write_section(fp, name: str, mapping: dict[str, Any]) -> None:
    if not mapping:
        return
    fp.write(f"[{name}]\n")
    for key, val in mapping.items():
        fp.write(f"{key} = {_toml_value(val)}\n")
    fp.write("\n")


def _as_dict(obj: Any) -> dict[str, Any]:
    if is_dataclass(obj):
        return asdict(obj)
    if isinstance(obj, dict):
        return obj
    raise TypeError(f"Unsupported settings type: {type(obj)}")


def write_run_settings_toml(
    path: str | Path,
    *,
    atom_files: list[str | Path],
    merge_cfg: Any,
    window_cfg: Any,
    lut_cfg: Any,
    bstat_cfg: Any,
    doppler: Any,
    result: Any | None = None,
) -> None:
    """Write pipeline settings to a TOML file (overwrites existing file).

    If ``result`` is given (a candidate dataclass or mapping), it is written
    as a final ``[result]`` section so the file documents the run outcome.
    """
    out_path = Path(path)
    settings = {
        "run": {
            "atom_files": [str(p) for p in atom_files],
            "timestamp_utc": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        },
        "merge_cfg": _as_dict(merge_cfg),
        "window_cfg": _as_dict(window_cfg),
        "lut_cfg": _as_dict(lut_cfg),
        "bstat_cfg": _as_dict(bstat_cfg),
        "doppler": _as_dict(doppler),
    }
    if result is not None:
        res = _as_dict(result)
        res.pop("doppler", None)
        settings["result"] = res

    with open(out_path, "w", encoding="utf-8") as fp:
        for section, mapping in settings.items():
            _write_section(fp, section, _clean_mapping(mapping))
