"""
Table-driven prompting for the setup, client and product wizards.

A wizard is an ordered tuple of ``FieldSpec``. Each text message fills the
field of the current step; a rejected value keeps the step and the values
unchanged and answers with the parser's message.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Sequence

from invoice_bot.conversation.state import EditMode
from invoice_bot.core.exceptions import ValidationError
from invoice_bot.utils.formatters import NOT_SET, or_not_set
from invoice_bot.utils.validators import is_skip


@dataclass(frozen=True)
class FieldSpec:
    step: Enum
    name: str
    label: str
    icon: str
    parse: Callable[[str], Any]
    optional: bool = False
    display: Callable[[Any], str] = or_not_set


@dataclass(frozen=True)
class FieldOutcome:
    values: dict[str, Any]
    next_step: Enum | None
    reply: str

    @property
    def completed(self) -> bool:
        return self.next_step is None


def spec_for(specs: Sequence[FieldSpec], step: Enum) -> FieldSpec:
    for spec in specs:
        if spec.step == step:
            return spec
    raise KeyError(step)


def _following(specs: Sequence[FieldSpec], step: Enum) -> FieldSpec | None:
    steps = [spec.step for spec in specs]
    index = steps.index(step) + 1
    return specs[index] if index < len(specs) else None


def prompt_for(spec: FieldSpec, mode: EditMode, values: dict[str, Any]) -> str:
    if mode is EditMode.EDIT:
        value = values.get(spec.name)
        current = NOT_SET if value is None or value == "" else spec.display(value)
        return f'{spec.icon} Enter {spec.label} (current: {current}) or type "skip" to keep current:'
    if spec.optional:
        return f'{spec.icon} Enter {spec.label} (or type "skip" to skip):'
    return f"{spec.icon} Enter {spec.label}:"


def apply_input(
    specs: Sequence[FieldSpec],
    step: Enum,
    mode: EditMode,
    values: dict[str, Any],
    text: str,
) -> FieldOutcome:
    """Fill the field of ``step`` from ``text`` and move to the next field."""
    spec = spec_for(specs, step)
    if is_skip(text):
        if mode is EditMode.EDIT:
            new_values = values
        elif spec.optional:
            new_values = {**values, spec.name: None}
        else:
            message = f"{spec.label.capitalize()} is required. Please enter {spec.label}"
            return FieldOutcome(values, step, f"❌ {message}:")
    else:
        try:
            value = spec.parse(text)
        except ValidationError as exc:
            return FieldOutcome(values, step, f"❌ {exc}:")
        new_values = {**values, spec.name: value}

    following = _following(specs, step)
    if following is None:
        return FieldOutcome(new_values, None, "")
    return FieldOutcome(new_values, following.step, prompt_for(following, mode, new_values))
