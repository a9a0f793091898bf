"""
Elementwise comparison primitives (boolean output, zero derivative).
"""

from __future__ import annotations

from ._base import Comparison


class Equal(Comparison):
    name = "equal"


class NotEqual(Comparison):
    name = "not_equal"


class Greater(Comparison):
    name = "greater"


class GreaterEqual(Comparison):
    name = "greater_equal"


class Less(Comparison):
    name = "less"


class LessEqual(Comparison):
    name = "less_equal"
