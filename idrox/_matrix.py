r"""Classic matrix operators as linear operator classes.

This module implements the operators the solvers are usually handed:

- :class:`Matrix`: Represents a general dense matrix :math:`A`
- :class:`Identity`: Represents the identity matrix :math:`I`
- :class:`Diagonal`: Represents a diagonal matrix :math:`\text{diag}(d)`
- :class:`FunctionOperator`: Represents a matrix-free map :math:`x \mapsto f(x)`
"""

from collections.abc import Callable

import jax
import jax.numpy as jnp
import jax.scipy.linalg

from idrox._arithmetic import lsolve
from idrox._linear_operator import LinearOperator
from idrox.config import warn as _warn
from idrox.typing import ArrayLike, DTypeLike, ShapeLike
from idrox.utils import as_shape

# --------------------------------------------------------------------------- #
# Matrix
# --------------------------------------------------------------------------- #


class Matrix(LinearOperator):
    r"""A linear operator defined via a matrix.

    For a matrix :math:`A`, this represents the linear operator :math:`x \mapsto Ax`.

    Args:
        A: The matrix defining the linear operator
    """

    def __init__(self, A: ArrayLike) -> None:  # type: ignore  # noqa: PGH003
        self.A = jnp.asarray(A)
        super().__init__(self.A.shape, self.A.dtype)

    def _matmul(self, arr: jax.Array) -> jax.Array:
        return self.A @ arr

    def _matvec(self, vec: jax.Array) -> jax.Array:
        return self.A @ vec

    def todense(self) -> jax.Array:
        return self.A

    def tree_flatten(self) -> tuple[tuple[any, ...], tuple[any, ...]]:
        children = (self.A,)
        aux_data = ()
        return children, aux_data

    @classmethod
    def tree_unflatten(
        cls, aux_data: tuple[any, ...], children: tuple[any, ...]
    ) -> "Matrix":
        del aux_data
        (A,) = children
        return cls(A=A)


@lsolve.dispatch
def _(a: Matrix, b: jax.Array) -> jax.Array:
    return jax.scipy.linalg.solve(a.A, b)


# --------------------------------------------------------------------------- #
# Identity
# --------------------------------------------------------------------------- #


class Identity(LinearOperator):
    r"""The identity operator.

    This represents the identity matrix :math:`I`, i.e., :math:`Ix = x`.
    As a preconditioner it turns the preconditioning step into a plain copy.

    Args:
        shape: The dimension of the identity operator
        dtype: The data type of the identity operator (default: float32)
    """

    def __init__(self, shape: ShapeLike, *, dtype: DTypeLike = jnp.float32) -> None:
        shape = as_shape(shape)
        super().__init__((shape[-1], shape[-1]), dtype)

    def _matmul(self, arr: jax.Array) -> jax.Array:
        return arr

    def _matvec(self, vec: jax.Array) -> jax.Array:
        return vec

    def todense(self) -> jax.Array:
        return jnp.eye(self.shape[-1], dtype=self.dtype)

    def tree_flatten(self) -> tuple[tuple[any, ...], tuple[any, ...]]:
        children = ()
        aux_data = (self.shape[-1], self.dtype)
        return children, aux_data

    @classmethod
    def tree_unflatten(
        cls,
        aux_data: tuple[any, ...],
        children: tuple[any, ...],
    ) -> "Identity":
        del children
        shape, dtype = aux_data
        return cls(shape, dtype=dtype)


@lsolve.dispatch
def _(a: Identity, b: jax.Array) -> jax.Array:  # noqa: ARG001
    return jnp.array(b, copy=True)


# --------------------------------------------------------------------------- #
# Diagonal
# --------------------------------------------------------------------------- #


class Diagonal(LinearOperator):
    r"""A linear operator defined via a diagonal matrix.

    For a vector :math:`d`, this represents :math:`\text{diag}(d)` acting by
    element-wise multiplication. Used as a preconditioner it is the Jacobi
    preconditioner, solved by element-wise division.

    Args:
        diag: The diagonal elements of the matrix
    """

    def __init__(self, diag: ArrayLike) -> None:  # type: ignore  # noqa: PGH003
        self.diag = jnp.asarray(diag)
        super().__init__(
            shape=(self.diag.shape[-1], self.diag.shape[-1]),
            dtype=self.diag.dtype,
        )

    def _matmul(self, arr: jax.Array) -> jax.Array:
        return self.diag[:, None] * arr

    def _matvec(self, vec: jax.Array) -> jax.Array:
        return self.diag * vec

    def todense(self) -> jax.Array:
        return jnp.diag(self.diag)

    def tree_flatten(self) -> tuple[tuple[any, ...], tuple[any, ...]]:
        children = (self.diag,)
        aux_data = ()
        return children, aux_data

    @classmethod
    def tree_unflatten(
        cls,
        aux_data: tuple[any, ...],
        children: tuple[any, ...],
    ) -> "Diagonal":
        del aux_data
        (diag,) = children
        return cls(diag=diag)


@lsolve.dispatch
def _(a: Diagonal, b: jax.Array) -> jax.Array:
    if b.ndim == 1:
        return b / a.diag
    return b / a.diag[:, None]


# --------------------------------------------------------------------------- #
# FunctionOperator
# --------------------------------------------------------------------------- #


class FunctionOperator(LinearOperator):
    r"""A matrix-free linear operator defined via its action on vectors.

    For a function :math:`f` that is linear in its argument, this represents
    :math:`x \mapsto f(x)`. Matrices are handled column by column through
    :func:`jax.vmap`.

    Args:
        fn: Callable mapping a vector of length ``shape[1]`` to a vector of
            length ``shape[0]``
        shape: The shape of the operator
        dtype: The data type of the operator
    """

    def __init__(
        self,
        fn: Callable[[jax.Array], jax.Array],
        shape: ShapeLike,
        dtype: DTypeLike,
    ) -> None:
        self.fn = fn
        super().__init__(shape, dtype)

    def _matvec(self, vec: jax.Array) -> jax.Array:
        return jnp.asarray(self.fn(vec))

    def _matmul(self, arr: jax.Array) -> jax.Array:
        return jax.vmap(self.fn, in_axes=1, out_axes=1)(arr)

    def todense(self) -> jax.Array:
        _warn(f"Linear operator {self} is densed by applying it to the identity.")
        return self._matmul(jnp.eye(self.shape[-1], dtype=self.dtype))

    def tree_flatten(self) -> tuple[tuple[any, ...], tuple[any, ...]]:
        children = ()
        aux_data = (self.fn, self.shape, self.dtype)
        return children, aux_data


# Register all linear operators as PyTrees
jax.tree_util.register_pytree_node_class(Matrix)
jax.tree_util.register_pytree_node_class(Identity)
jax.tree_util.register_pytree_node_class(Diagonal)
jax.tree_util.register_pytree_node_class(FunctionOperator)
