# fireworks_inference/inference/truncation.py
# SPDX-License-Identifier: Apache-2.0
"""
Character-based input truncation.

Providers reject inputs that exceed their token limit (HTTP 413). Rather than
count tokens precisely, the truncator approximates tokens by characters and
shortens each input by a fixed fraction when asked to retry.
"""

from __future__ import annotations

import logging
import math
import os
from dataclasses import dataclass, field
from typing import List, Optional

LOG = logging.getLogger(__name__)


@dataclass(frozen=True)
class TruncationResult:
    """Inputs after truncation, with a per-input flag recording whether each was shortened."""

    input: List[str]
    truncated: List[bool] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.truncated:
            object.__setattr__(self, "truncated", [False] * len(self.input))
        if len(self.input) != len(self.truncated):
            raise ValueError("input and truncated must be the same length")

    @classmethod
    def untruncated(cls, inputs: List[str]) -> "TruncationResult":
        return cls(list(inputs), [False] * len(inputs))


@dataclass(frozen=True)
class TruncatorSettings:
    """
    Attributes:
        reduction_percentage: fraction of characters removed per truncation
        chars_per_token: approximate characters per provider token
    """

    reduction_percentage: float = 0.5
    chars_per_token: int = 3

    def __post_init__(self) -> None:
        if not 0.0 < self.reduction_percentage < 1.0:
            raise ValueError("reduction_percentage must be between 0 and 1 (exclusive)")
        if self.chars_per_token <= 0:
            raise ValueError("chars_per_token must be positive")

    @classmethod
    def from_env(cls, prefix: str = "FIREWORKS_TRUNCATION_") -> "TruncatorSettings":
        """Load settings from `<prefix>REDUCTION_PERCENTAGE` and `<prefix>CHARS_PER_TOKEN`."""
        defaults = cls()
        reduction = os.environ.get(f"{prefix}REDUCTION_PERCENTAGE")
        chars = os.environ.get(f"{prefix}CHARS_PER_TOKEN")
        return cls(
            reduction_percentage=float(reduction) if reduction else defaults.reduction_percentage,
            chars_per_token=int(chars) if chars else defaults.chars_per_token,
        )


class Truncator:
    """Shortens inputs by character count."""

    def __init__(self, settings: Optional[TruncatorSettings] = None) -> None:
        self.settings = settings or TruncatorSettings()

    def truncate(self, inputs: List[str]) -> TruncationResult:
        """Cut every input to `(1 - reduction_percentage)` of its length."""
        keep = 1.0 - self.settings.reduction_percentage
        out: List[str] = []
        flags: List[bool] = []
        for text in inputs:
            new_len = math.floor(len(text) * keep)
            if new_len < len(text):
                out.append(text[:new_len])
                flags.append(True)
            else:
                out.append(text)
                flags.append(False)
        LOG.debug("truncated %d of %d inputs", sum(flags), len(flags))
        return TruncationResult(out, flags)

    def truncate_to_token_limit(
        self,
        inputs: List[str],
        token_limit: Optional[int],
    ) -> TruncationResult:
        """Cap each input at `token_limit * chars_per_token` characters."""
        if token_limit is None:
            return TruncationResult.untruncated(inputs)
        max_chars = token_limit * self.settings.chars_per_token
        out = [text[:max_chars] for text in inputs]
        flags = [len(text) > max_chars for text in inputs]
        return TruncationResult(out, flags)


__all__ = [
    "TruncationResult",
    "TruncatorSettings",
    "Truncator",
]
