"""
Concrete primitive kinds.

Every class here implements the `Primitive` contract (shape/type inference,
vjp, jvp). Forward kernels live in `lazygrad.infrastructure.backends` and are
looked up by the primitive's `name`.
"""

from ._arithmetic import Add, Divide, Maximum, Multiply, Power, Subtract
from ._base import Comparison, ElementwiseBinary, ElementwiseUnary
from ._comparison import Equal, Greater, GreaterEqual, Less, LessEqual, NotEqual
from ._control import StopGradient, Where
from ._conversion import AsType, ToDevice
from ._linalg import Matmul, Transpose
from ._reduction import Max, Sum
from ._shape import BroadcastTo, Reshape
from ._unary import (
    Abs,
    Cos,
    Exp,
    Floor,
    Log,
    Negative,
    Sigmoid,
    Sin,
    Sqrt,
    Tanh,
)

__all__ = [
    Add.__name__,
    Subtract.__name__,
    Multiply.__name__,
    Divide.__name__,
    Maximum.__name__,
    Power.__name__,
    Negative.__name__,
    Exp.__name__,
    Log.__name__,
    Sqrt.__name__,
    Tanh.__name__,
    Sigmoid.__name__,
    Sin.__name__,
    Cos.__name__,
    Abs.__name__,
    Floor.__name__,
    Equal.__name__,
    NotEqual.__name__,
    Greater.__name__,
    GreaterEqual.__name__,
    Less.__name__,
    LessEqual.__name__,
    Matmul.__name__,
    Transpose.__name__,
    Reshape.__name__,
    BroadcastTo.__name__,
    Sum.__name__,
    Max.__name__,
    AsType.__name__,
    ToDevice.__name__,
    StopGradient.__name__,
    Where.__name__,
    ElementwiseUnary.__name__,
    ElementwiseBinary.__name__,
    Comparison.__name__,
]
