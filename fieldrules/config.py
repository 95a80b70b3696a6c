"""Validation settings, read from the ``[validation]`` table of a TOML file."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

DEFAULT_ID_MARKERS = ("entity", "command", "event", "rejection")


@dataclass(frozen=True)
class ValidationConfig:
    # Types with one of these markers get their first field required by default.
    id_markers: tuple[str, ...] = DEFAULT_ID_MARKERS
    # Turn compilation warnings into schema errors.
    fail_on_warnings: bool = False


def _coerce_markers(value: Any) -> tuple[str, ...]:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        return DEFAULT_ID_MARKERS
    return tuple(str(v).strip().lower() for v in value if str(v).strip())


def load_config(path: Path | None) -> ValidationConfig:
    """Load settings; a missing file gives the defaults."""
    if path is None or not path.exists():
        return ValidationConfig()

    import tomllib

    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as e:
        raise ValueError(f"Failed to parse config TOML {path}: {e}") from e

    section = data.get("validation", {})
    if not isinstance(section, dict):
        raise ValueError("[validation] must be a table")

    return ValidationConfig(
        id_markers=_coerce_markers(section.get("id_markers", list(DEFAULT_ID_MARKERS))),
        fail_on_warnings=bool(section.get("fail_on_warnings", False)),
    )
