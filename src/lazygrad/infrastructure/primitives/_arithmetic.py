"""
Elementwise binary arithmetic primitives.

Forward semantics follow NumPy ufuncs (`add`, `subtract`, `multiply`,
`divide`, `maximum`, `power`) over operands of identical shape and dtype.
"""

from __future__ import annotations

from ._base import ElementwiseBinary, add_tangents


class Add(ElementwiseBinary):
    name = "add"

    def vjp(self, cotangent, primals, output):
        return [cotangent, cotangent]

    def jvp(self, primals, tangents, output):
        return add_tangents(*tangents)


class Subtract(ElementwiseBinary):
    name = "subtract"
    bool_ok = False

    def vjp(self, cotangent, primals, output):
        return [cotangent, -cotangent]

    def jvp(self, primals, tangents, output):
        ta, tb = tangents
        return add_tangents(ta, None if tb is None else -tb)


class Multiply(ElementwiseBinary):
    """
    Elementwise product.

    Backward rule:
        ``d(a*b)/da = b``, ``d(a*b)/db = a``
    """

    name = "multiply"

    def vjp(self, cotangent, primals, output):
        a, b = primals
        return [cotangent * b, cotangent * a]

    def jvp(self, primals, tangents, output):
        a, b = primals
        ta, tb = tangents
        return add_tangents(
            None if ta is None else ta * b,
            None if tb is None else a * tb,
        )


class Divide(ElementwiseBinary):
    """
    Elementwise true division. Defined for floating dtypes only.

    Backward rule:
        ``d(a/b)/da = 1/b``, ``d(a/b)/db = -a/b**2 = -(a/b)/b``
    """

    name = "divide"
    floating_only = True

    def vjp(self, cotangent, primals, output):
        _, b = primals
        return [cotangent / b, -(cotangent * output) / b]

    def jvp(self, primals, tangents, output):
        _, b = primals
        ta, tb = tangents
        return add_tangents(
            None if ta is None else ta / b,
            None if tb is None else -(tb * output) / b,
        )


class Maximum(ElementwiseBinary):
    """
    Elementwise maximum.

    Ties route the whole gradient to the first operand.
    """

    name = "maximum"

    def vjp(self, cotangent, primals, output):
        from .. import ops

        a, b = primals
        mask = a >= b
        return [ops.where(mask, cotangent, 0), ops.where(mask, 0, cotangent)]

    def jvp(self, primals, tangents, output):
        from .. import ops

        a, b = primals
        ta, tb = tangents
        ta = ops.zeros_like(a) if ta is None else ta
        tb = ops.zeros_like(b) if tb is None else tb
        return ops.where(a >= b, ta, tb)


class Power(ElementwiseBinary):
    """
    Elementwise power ``a ** b``.

    Backward rule:
        ``d/da = b * a**(b-1)``, ``d/db = a**b * log(a)``

    The exponent gradient is only formed for floating dtypes; integer powers
    contribute a zero exponent gradient.
    """

    name = "power"
    bool_ok = False

    def _grad_base(self, a, b):
        return b * a ** (b - 1)

    def _grad_exponent(self, a, b, output):
        from .. import ops

        if not output.dtype.is_floating:
            return ops.zeros_like(b)
        # a zero base contributes nothing; log(0) would give 0 * -inf
        return ops.where(a == 0, 0, output * ops.log(a))

    def vjp(self, cotangent, primals, output):
        a, b = primals
        return [
            cotangent * self._grad_base(a, b),
            cotangent * self._grad_exponent(a, b, output),
        ]

    def jvp(self, primals, tangents, output):
        a, b = primals
        ta, tb = tangents
        return add_tangents(
            None if ta is None else ta * self._grad_base(a, b),
            None if tb is None else tb * self._grad_exponent(a, b, output),
        )
