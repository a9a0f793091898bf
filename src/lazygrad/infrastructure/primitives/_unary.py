"""
Elementwise unary primitives.

Each class documents its derivative; `jvp` rules multiply the incoming
tangent by the same local derivative that `vjp` multiplies the cotangent by.
"""

from __future__ import annotations

from ._base import ElementwiseUnary


class Negative(ElementwiseUnary):
    name = "negative"
    bool_ok = False

    def vjp(self, cotangent, primals, output):
        return [-cotangent]

    def jvp(self, primals, tangents, output):
        return -tangents[0]


class Exp(ElementwiseUnary):
    """``d(exp(x))/dx = exp(x)``, reusing the forward output."""

    name = "exp"
    floating_only = True

    def vjp(self, cotangent, primals, output):
        return [cotangent * output]

    def jvp(self, primals, tangents, output):
        return tangents[0] * output


class Log(ElementwiseUnary):
    """``d(log(x))/dx = 1/x``."""

    name = "log"
    floating_only = True

    def vjp(self, cotangent, primals, output):
        return [cotangent / primals[0]]

    def jvp(self, primals, tangents, output):
        return tangents[0] / primals[0]


class Sqrt(ElementwiseUnary):
    """``d(sqrt(x))/dx = 1 / (2 sqrt(x))``."""

    name = "sqrt"
    floating_only = True

    def vjp(self, cotangent, primals, output):
        return [cotangent / (output * 2)]

    def jvp(self, primals, tangents, output):
        return tangents[0] / (output * 2)


class Tanh(ElementwiseUnary):
    """``d(tanh(x))/dx = 1 - tanh(x)**2``."""

    name = "tanh"
    floating_only = True

    def vjp(self, cotangent, primals, output):
        return [cotangent * (1 - output * output)]

    def jvp(self, primals, tangents, output):
        return tangents[0] * (1 - output * output)


class Sigmoid(ElementwiseUnary):
    """``d(sigmoid(x))/dx = s * (1 - s)``."""

    name = "sigmoid"
    floating_only = True

    def vjp(self, cotangent, primals, output):
        return [cotangent * output * (1 - output)]

    def jvp(self, primals, tangents, output):
        return tangents[0] * output * (1 - output)


class Sin(ElementwiseUnary):
    name = "sin"
    floating_only = True

    def vjp(self, cotangent, primals, output):
        from .. import ops

        return [cotangent * ops.cos(primals[0])]

    def jvp(self, primals, tangents, output):
        from .. import ops

        return tangents[0] * ops.cos(primals[0])


class Cos(ElementwiseUnary):
    name = "cos"
    floating_only = True

    def vjp(self, cotangent, primals, output):
        from .. import ops

        return [-(cotangent * ops.sin(primals[0]))]

    def jvp(self, primals, tangents, output):
        from .. import ops

        return -(tangents[0] * ops.sin(primals[0]))


class Abs(ElementwiseUnary):
    """Absolute value; the subgradient at zero is taken as +1."""

    name = "abs"

    def vjp(self, cotangent, primals, output):
        from .. import ops

        return [ops.where(primals[0] < 0, -cotangent, cotangent)]

    def jvp(self, primals, tangents, output):
        from .. import ops

        t = tangents[0]
        return ops.where(primals[0] < 0, -t, t)


class Floor(ElementwiseUnary):
    """Rounding toward negative infinity. Piecewise constant: zero derivative."""

    name = "floor"
    floating_only = True

    def vjp(self, cotangent, primals, output):
        from .. import ops

        return [ops.zeros_like(primals[0])]

    def jvp(self, primals, tangents, output):
        from .. import ops

        return ops.zeros_like(output)
