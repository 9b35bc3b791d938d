"""Open-set change detection between two sync cycles."""

from __future__ import annotations

from collections.abc import Iterable


def open_set_changed(previous: Iterable[int], current: Iterable[int]) -> bool:
    """Return True iff a PR entered or left the open set.

    Only membership counts; edits to PRs that stay open are not a change.
    """
    return bool(set(previous) ^ set(current))
