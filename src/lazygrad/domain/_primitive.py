"""
Primitive interface definitions.

This module defines the abstract base class for operation descriptors used by
the lazy computation graph. A `Primitive` is a stateless value object that
supplies, for one operation kind:

- shape/type inference (`infer`), pure and total over valid inputs;
- the reverse-mode rule (`vjp`), mapping an output cotangent to one
  cotangent per input;
- the forward-mode rule (`jvp`), mapping input tangents to an output tangent.

Forward evaluation is *not* a method of the primitive: kernels are registered
per `(kind, device type)` in the backend registry, so the same primitive can
dispatch to NumPy, BLAS or GPU code depending on the output placement.

The design mirrors function-level autograd systems (e.g., a `Function` with
forward/backward static methods), except that derivative rules build new
graph nodes instead of computing values eagerly.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, ClassVar, Optional, Sequence

from ._array import ArraySpec, IArray


class Primitive(ABC):
    """
    Abstract base class for operation kinds.

    Subclasses set `name` (the kind tag used for kernel lookup) and implement
    `infer`, `vjp` and `jvp`. Operation-specific parameters (axes, shapes,
    target dtype, ...) are stored as attributes and exposed through `params`,
    which also defines primitive equality.

    Notes
    -----
    - `aliases_input` marks primitives whose output storage may be a view of
      their first input (reshape, broadcast, stop_gradient). The evaluator
      keeps the aliased storage alive for as long as the view exists.
    - Non-differentiable primitives return zero cotangents/tangents of the
      matching shape; this is never an error.
    """

    name: ClassVar[str] = "primitive"
    aliases_input: ClassVar[bool] = False

    def params(self) -> dict[str, Any]:
        """
        Return operation-specific parameters.

        Returns
        -------
        dict[str, Any]
            Parameters that, together with `name`, identify the operation.
        """
        return {}

    @abstractmethod
    def infer(self, inputs: Sequence[ArraySpec]) -> ArraySpec:
        """
        Infer the output description from the input descriptions.

        Parameters
        ----------
        inputs : Sequence[ArraySpec]
            Descriptions of the ordered inputs.

        Returns
        -------
        ArraySpec
            Description of the output.

        Raises
        ------
        ShapeError
            If the input shapes are incompatible.
        DTypeError
            If the input element types are incompatible.
        DeviceMismatchError
            If inputs are placed on different devices.
        """
        ...

    @abstractmethod
    def vjp(
        self,
        cotangent: IArray,
        primals: Sequence[IArray],
        output: IArray,
    ) -> Sequence[Optional[IArray]]:
        """
        Compute input cotangents from the output cotangent.

        Parameters
        ----------
        cotangent : IArray
            Gradient of the loss with respect to `output`.
        primals : Sequence[IArray]
            The primitive's inputs.
        output : IArray
            The primitive's output.

        Returns
        -------
        Sequence[Optional[IArray]]
            One cotangent per input. None means "no contribution" and is
            treated as a zero gradient.
        """
        ...

    @abstractmethod
    def jvp(
        self,
        primals: Sequence[IArray],
        tangents: Sequence[Optional[IArray]],
        output: IArray,
    ) -> IArray:
        """
        Compute the output tangent from input tangents.

        Parameters
        ----------
        primals : Sequence[IArray]
            The primitive's inputs.
        tangents : Sequence[Optional[IArray]]
            One tangent per input. None stands for a zero tangent.
        output : IArray
            The primitive's output.

        Returns
        -------
        IArray
            Tangent of the output.
        """
        ...

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Primitive):
            return NotImplemented
        return (self.name, self.params()) == (other.name, other.params())

    def __hash__(self) -> int:
        return hash((self.name, tuple(sorted(self.params().items()))))

    def __repr__(self) -> str:
        params = ", ".join(f"{k}={v}" for k, v in self.params().items())
        return f"{type(self).__name__}({params})"
