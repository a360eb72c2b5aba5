# _linear_operator.py

import operator
from functools import reduce

import jax
import jax.numpy as jnp

from idrox import utils
from idrox.typing import DTypeLike, ShapeLike


class LinearOperator:
    r"""Abstract base class for `matrix-free` square or rectangular linear operators.

    It follows in most parts the implementation of `linox.LinearOperator` and
    `probnum.linops.LinearOperator`, reduced to what a Krylov solver consumes.

    Design choices:
    :class:`LinearOperator`\ s behave like a two-dimensional
    :class:`jax.numpy.ndarray` in the places where the solvers touch them, i.e.
    they

    * have :attr:`shape`, :attr:`dtype`, :attr:`ndim`, and :attr:`size` attributes,
    * can be matrix multiplied (:code:`@`) with a vector or a matrix from the right,
    * can be called on a vector (:code:`A(v)` is :code:`A @ v`), and
    * can be densified (:meth:`todense`) as a last resort.

    Parameters
    ----------
    shape: Tuple[int, int]
        Shape of the linear operator.
    dtype: Type

    Notes:
    -----
    -   A subclass is only required to implement :meth:`_matmul`. Additionally,
        :meth:`_matvec` and :meth:`todense` should be overwritten if more
        performant implementations are available.
    -   Solving with an operator is not a method but the plum-dispatched
        function :func:`idrox.lsolve`, so that new operator types can register
        their own solvers.
    """

    def __init__(
        self,
        shape: ShapeLike,
        dtype: DTypeLike,
    ) -> None:
        self.__shape = utils.as_shape(shape, ndim=2)

        # DType
        self.__dtype = jnp.dtype(dtype)

    @property
    def shape(self) -> tuple[int, int]:
        """Shape of the linear operator.

        Defined as a tuple of the output and input dimension of operator.
        """
        return self.__shape

    @property
    def ndim(self) -> int:
        """Number of linear operator dimensions."""
        return len(self.__shape)

    @property
    def size(self) -> int:
        """Product of the :attr:`shape` entries."""
        return reduce(operator.mul, self.__shape, 1)

    @property
    def dtype(self) -> jnp.dtype:
        """Data type of the linear operator."""
        return self.__dtype

    def __repr__(self) -> str:
        return (
            f"<{self.__class__.__name__} with shape={self.shape}, dtype={self.dtype}>"
        )

    ########################################################################
    # Default Methods that should be overwritten
    ########################################################################

    def todense(self) -> jax.Array:
        return self @ jnp.eye(self.shape[-1], dtype=self.dtype)

    def _matmul(self, arr: jax.Array) -> jax.Array:
        return self.todense() @ arr

    def _matvec(self, vec: jax.Array) -> jax.Array:
        return self._matmul(vec[:, None])[:, 0]

    ########################################################################
    # Application
    ########################################################################

    def __matmul__(self, other: jax.Array) -> jax.Array:
        other = jnp.asarray(other)

        if other.ndim not in {1, 2}:
            msg = f"expected a vector or a matrix, got an array of shape {other.shape}."
            raise ValueError(msg)

        # Check multiplication shape
        if other.shape[0] != self.shape[-1]:
            msg = f"expected other.shape[0] to be {self.shape[-1]}, got {other.shape[0]} instead."  # noqa: E501
            raise ValueError(msg)

        if other.ndim == 1:
            return self._matvec(other)
        return self._matmul(other)

    def __call__(self, arr: jax.Array) -> jax.Array:
        return self @ arr

    @classmethod
    def tree_flatten(cls) -> tuple[tuple[any, ...], tuple[any, ...]]:
        """Default implementation for PyTree flattening.

        Subclasses should override this method to provide proper PyTree support.
        """
        children = ()  # No children by default
        aux_data = ()  # No auxiliary data by default
        return children, aux_data

    @classmethod
    def tree_unflatten(
        cls,
        aux_data: tuple[any, ...],
        children: tuple[any, ...],
    ) -> "LinearOperator":
        """Default implementation for PyTree unflattening."""
        del children
        if cls is LinearOperator:
            msg = "Cannot unflatten the abstract LinearOperator class directly"
            raise TypeError(msg)
        return cls(*aux_data)
