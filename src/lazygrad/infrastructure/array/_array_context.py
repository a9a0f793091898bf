from typing import Sequence, TYPE_CHECKING
from dataclasses import dataclass

from ...domain._primitive import Primitive

if TYPE_CHECKING:
    from ._array import Array


@dataclass(frozen=True)
class Pending:
    """
    Pending computation record attached to an unmaterialized Array.

    A `Pending` records how an array's value is produced: the primitive to
    apply and the ordered input arrays it consumes. The set of pending
    records reachable from a target array is the (implicit) computation
    graph; no separate graph object exists.

    Attributes
    ----------
    primitive : Primitive
        Operation descriptor (kind tag, parameters, derivative rules).
    inputs : Sequence[Array]
        Ordered input arrays. Holding them here keeps the subgraph alive for
        as long as the consumer is reachable.

    Notes
    -----
    The record is immutable. After materialization it is either kept (so the
    array can still be differentiated) or dropped (graph pruning), never
    modified.
    """

    primitive: Primitive
    inputs: Sequence["Array"]

    def __post_init__(self) -> None:
        object.__setattr__(self, "inputs", tuple(self.inputs))
