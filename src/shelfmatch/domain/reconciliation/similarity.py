"""Similarity scoring between normalized keys.

Any callable matching ``Similarity`` can replace the default scorer; the
classifier only relies on the ``[0, 1]`` contract.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .normalize import NormalizedKey

type Similarity = Callable[[NormalizedKey, NormalizedKey], float]


def token_overlap(left: NormalizedKey, right: NormalizedKey) -> float:
    """Shared distinct tokens divided by the larger distinct token count."""

    left_tokens = set(left.tokens)
    right_tokens = set(right.tokens)
    if not left_tokens or not right_tokens:
        return 0.0
    shared = len(left_tokens & right_tokens)
    return shared / max(len(left_tokens), len(right_tokens))
