"""Key strokes, action references and the bindings that join them."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Callable, Iterable, Mapping

# Canonical modifier order inside a token ("ctrl+shift+left").
MODIFIER_ORDER = ("ctrl", "alt", "shift", "meta")
_MODIFIER_ALIASES = MappingProxyType(
    {"control": "ctrl", "option": "alt", "super": "meta", "cmd": "meta"}
)


def _normalize_modifiers(modifiers: Iterable[str]) -> tuple[str, ...]:
    values = {
        _MODIFIER_ALIASES.get(cleaned, cleaned)
        for cleaned in (m.strip().lower() for m in modifiers)
        if cleaned
    }
    known = tuple(name for name in MODIFIER_ORDER if name in values)
    extra = tuple(sorted(values.difference(MODIFIER_ORDER)))
    return known + extra


@dataclass(frozen=True, slots=True)
class KeyStroke:
    """Single normalized key press.

    ``text`` carries the printable character produced by the press, if any;
    it plays no part in the token.
    """

    key: str
    modifiers: tuple[str, ...] = ()
    text: str | None = None

    def __post_init__(self) -> None:
        if not self.key:
            raise ValueError("key cannot be empty")
        object.__setattr__(self, "key", self.key.lower())
        object.__setattr__(self, "modifiers", _normalize_modifiers(self.modifiers))

    @property
    def token(self) -> str:
        if self.modifiers:
            return "+".join((*self.modifiers, self.key))
        return self.key

    @property
    def is_printable(self) -> bool:
        text = self.text
        if not text or any(mod in ("ctrl", "alt", "meta") for mod in self.modifiers):
            return False
        return text.isprintable()

    @classmethod
    def parse(cls, token: str) -> "KeyStroke":
        """Build a stroke from ``"ctrl+shift+left"`` style text."""

        parts = [part for part in token.strip().split("+") if part]
        if not parts:
            raise ValueError("token cannot be empty")
        return cls(parts[-1], tuple(parts[:-1]))


@dataclass(frozen=True, slots=True)
class ActionRef:
    """Callable metadata used during binding execution."""

    id: str
    handler: Callable[..., object]
    telemetry_name: str | None = None
    description: str = ""
    metadata: Mapping[str, object] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("ActionRef id cannot be empty")
        if not callable(self.handler):
            raise TypeError("handler must be callable")
        object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata)))
        if self.telemetry_name is None:
            object.__setattr__(self, "telemetry_name", self.id)

    def __call__(self, *args: object, **kwargs: object) -> object:
        return self.handler(*args, **kwargs)


@dataclass(frozen=True, slots=True)
class Binding:
    """Associates one key stroke with an action."""

    id: str
    stroke: KeyStroke
    action_id: str
    description: str = ""
    source: str | None = None

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("binding id cannot be empty")
        if not self.action_id:
            raise ValueError("binding action_id cannot be empty")
        if isinstance(self.stroke, str):
            object.__setattr__(self, "stroke", KeyStroke.parse(self.stroke))

    @property
    def token(self) -> str:
        return self.stroke.token


__all__ = [
    "ActionRef",
    "Binding",
    "KeyStroke",
    "MODIFIER_ORDER",
]
