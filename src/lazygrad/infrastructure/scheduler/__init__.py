"""
Scheduling: streams, events and the evaluator.

Public API
----------
- ``materialize`` / ``materialize_async`` / ``wait``
- ``Evaluator`` and ``default_evaluator``
- ``Stream``, ``Event``, ``default_stream``, ``new_stream``,
  ``stream_scope``, ``synchronize``
"""

from ._evaluator import (
    Evaluator,
    default_evaluator,
    materialize,
    materialize_async,
    wait,
)
from ._stream import (
    Event,
    Stream,
    current_stream,
    default_stream,
    new_stream,
    stream_scope,
    synchronize,
)

__all__ = [
    Evaluator.__name__,
    Event.__name__,
    Stream.__name__,
    "current_stream",
    "default_evaluator",
    "default_stream",
    "materialize",
    "materialize_async",
    "new_stream",
    "stream_scope",
    "synchronize",
    "wait",
]
