"""Allowed step changes of the invoice builder."""

from __future__ import annotations

from enum import Enum


class InvalidTransitionError(ValueError):
    """Raised when a handler tries to move to a step it may not reach."""


class StateMachine:
    """Whitelist of step changes; staying on the same step is always allowed."""

    def __init__(self, transitions: dict[Enum, set[Enum]]) -> None:
        self._transitions = transitions

    def can_transition(self, current: Enum, target: Enum) -> bool:
        return current == target or target in self._transitions.get(current, set())

    def assert_transition(self, current: Enum, target: Enum) -> None:
        if not self.can_transition(current=current, target=target):
            raise InvalidTransitionError(f"Transition not allowed: {current.value} -> {target.value}")
