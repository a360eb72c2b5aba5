# utils.py

"""Utility functions for argument types."""

import numbers
from collections.abc import Callable

import jax
import jax.numpy as jnp

from idrox.typing import DTypeLike, ShapeLike, ShapeType

__all__ = ["as_linop", "as_shape", "real_eps"]


def as_shape(x: ShapeLike, ndim: numbers.Integral | None = None) -> ShapeType:
    """Convert a shape representation into a shape defined as a tuple of ints.

    Args:
        x: Shape representation.
        ndim: The required number of dimensions in the shape.

    Raises:
        TypeError
            If ``x`` is not a valid :const:`ShapeLike`.
        TypeError
            If ``x`` does not feature the required number of dimensions.
    """
    if isinstance(x, int | numbers.Integral | jnp.integer):
        shape = (int(x),)
    else:
        try:
            _ = iter(x)
        except TypeError as e:
            msg = f"The given shape {x} must be an integer or an iterable of integers."
            raise TypeError(msg) from e

        if not all(
            isinstance(item, int | numbers.Integral | jnp.integer) for item in x
        ):
            msg = f"The given shape {x} must only contain integer values."
            raise TypeError(msg)

        shape = tuple(int(item) for item in x)

    if isinstance(ndim, numbers.Integral) and len(shape) != ndim:
        msg = f"The given shape {shape} must have {ndim} dimensions."
        raise TypeError(msg)

    return shape


def real_eps(dtype: DTypeLike) -> float:
    """Machine epsilon of the real part of ``dtype``."""
    return float(jnp.finfo(dtype).eps)


def _is_array(A: object) -> bool:
    return isinstance(A, jax.Array) or hasattr(A, "__array__")


def as_linop(
    A: object,
    shape: ShapeLike | None = None,
    dtype: DTypeLike | None = None,
) -> "idrox.LinearOperator":  # noqa: F821
    """Convert an object into a linear operator.

    Args:
        A: Object to convert. Linear operators are returned unchanged, arrays
            are wrapped into a :class:`~idrox.Matrix` and callables into a
            :class:`~idrox.FunctionOperator`.
        shape: Shape of the operator, required if ``A`` is a callable.
        dtype: Data type of the operator, required if ``A`` is a callable.

    Raises:
        TypeError
        If ``A`` is not a valid linear operator.
    """
    from idrox._linear_operator import LinearOperator  # noqa: PLC0415
    from idrox._matrix import FunctionOperator, Matrix  # noqa: PLC0415

    if isinstance(A, LinearOperator):
        return A

    if _is_array(A):
        return Matrix(jnp.asarray(A))

    if isinstance(A, Callable):
        if shape is None or dtype is None:
            msg = "A callable linear operator requires an explicit shape and dtype."
            raise TypeError(msg)
        return FunctionOperator(A, shape=shape, dtype=dtype)

    msg = f"The given object {A} is not a valid linear operator type."
    raise TypeError(msg)
