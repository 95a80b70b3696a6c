"""
Violation reports and message templates.

A template references values through placeholders like ``${field.path}``.
Placeholders are substituted only when a message is rendered, so a violation
keeps both the template and the values it was produced with.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from typing import Any, Iterable, Iterator, Mapping

from .values import Value, to_python

PLACEHOLDER_RE = re.compile(r"\$\{([^}]+)}")


def extract_placeholders(template: str) -> list[str]:
    """Placeholder names used by ``template``, in order of first appearance."""
    seen: set[str] = set()
    names: list[str] = []
    for name in PLACEHOLDER_RE.findall(template):
        if name not in seen:
            seen.add(name)
            names.append(name)
    return names


def check_placeholders(template: str, supported: Iterable[str]) -> list[str]:
    """Return the placeholders of ``template`` missing from ``supported``."""
    allowed = set(supported)
    return [p for p in extract_placeholders(template) if p not in allowed]


def format_template(template: str, placeholders: Mapping[str, Any]) -> str:
    """Substitute ``${name}`` placeholders; unknown ones are left as is."""

    def _sub(match: re.Match[str]) -> str:
        name = match.group(1)
        if name not in placeholders:
            return match.group(0)
        return str(placeholders[name])

    return PLACEHOLDER_RE.sub(_sub, template)


@dataclass(frozen=True)
class ConstraintViolation:
    """One failed rule, addressed by a field path.

    ``nested`` holds the violations of a nested message; their paths are
    relative to that message.
    """

    type_name: str
    field_path: tuple[str, ...]
    template: str
    placeholders: Mapping[str, str] = field(default_factory=dict)
    field_value: Value | None = None
    nested: tuple["ConstraintViolation", ...] = ()

    @property
    def message(self) -> str:
        return format_template(self.template, self.placeholders)

    @property
    def path(self) -> str:
        return ".".join(self.field_path)

    def flatten(self, prefix: tuple[str, ...] = ()) -> Iterator["ConstraintViolation"]:
        """Yield leaf violations with paths made absolute."""
        full_path = prefix + self.field_path
        if not self.nested:
            yield replace(self, field_path=full_path)
            return
        for child in self.nested:
            yield from child.flatten(full_path)

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "type": self.type_name,
            "path": self.path,
            "message": self.message,
        }
        if self.field_value is not None:
            d["value"] = to_python(self.field_value)
        if self.nested:
            d["nested"] = [v.to_dict() for v in self.nested]
        return d

    def __str__(self) -> str:
        loc = f"{self.type_name}.{self.path}" if self.path else self.type_name
        return f"{loc}: {self.message}"


@dataclass(frozen=True)
class ValidationError:
    """The violations found in one record; never empty."""

    violations: tuple[ConstraintViolation, ...]

    def __post_init__(self) -> None:
        if not self.violations:
            raise ValueError("ValidationError requires at least one violation")

    def flatten(self) -> list[ConstraintViolation]:
        return [leaf for v in self.violations for leaf in v.flatten()]

    def to_dict(self) -> dict[str, Any]:
        return {"violations": [v.to_dict() for v in self.violations]}

    def __str__(self) -> str:
        # Leaf paths are absolute, so they are shown against the root type.
        lines = []
        for top in self.violations:
            for leaf in top.flatten():
                loc = f"{top.type_name}.{leaf.path}" if leaf.path else top.type_name
                lines.append(f"{loc}: {leaf.message}")
        return "\n".join(lines)


class ValidationFailed(Exception):
    """Raised by ``Validator.validate_or_raise`` for an invalid record."""

    def __init__(self, error: ValidationError) -> None:
        super().__init__(str(error))
        self.error = error
