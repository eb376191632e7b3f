"""Shared utilities used across the vendor assistant."""

import re
from typing import Callable, Iterable, Optional, Sequence, TypeVar

T = TypeVar("T")


def normalize_name(value: str) -> str:
    """Lowercase a name and collapse internal whitespace.

    Examples:
        >>> normalize_name("  Paneer   Tikka ")
        'paneer tikka'
    """
    return re.sub(r"\s+", " ", value.strip().lower())


def names_match(candidate: str, requested: str) -> bool:
    """Containment match in either direction on normalized names."""
    a = normalize_name(candidate)
    b = normalize_name(requested)
    if not a or not b:
        return False
    return a == b or a in b or b in a


def best_match(
    requested: str,
    candidates: Iterable[T],
    name_of: Callable[[T], str],
) -> Optional[T]:
    """Pick the single best fuzzy match for ``requested`` among candidates.

    An exact normalized match always wins. Otherwise the containment
    match whose normalized length is closest to the request is chosen,
    so "pizza" prefers "Veg Pizza" over "Pizza Hut Special Combo".
    Remaining ties keep candidate order; callers pass candidates most
    relevant first.
    """
    target = normalize_name(requested)
    if not target:
        return None

    best: Optional[T] = None
    best_distance: Optional[int] = None
    for candidate in candidates:
        name = normalize_name(name_of(candidate))
        if name == target:
            return candidate
        if not names_match(name, target):
            continue
        distance = abs(len(name) - len(target))
        if best_distance is None or distance < best_distance:
            best, best_distance = candidate, distance
    return best


def format_chat_history(messages: Sequence) -> str:
    """Format chat messages as a transcript block for collaborator prompts."""
    if not messages:
        return ""
    lines = [
        f"{'User' if msg.role == 'user' else 'Assistant'}: {msg.content}"
        for msg in messages
    ]
    return "Previous conversation history:\n" + "\n\n".join(lines) + "\n\n"
