# The following file follows the implementation of linox.typing / probnum.typing
from collections.abc import Callable, Iterable
from typing import Union

import jax
import jax.numpy as jnp

import idrox  # noqa: TCH001

########################################################################################
# API Types
########################################################################################

# Array Utilities
ShapeType = tuple[int, ...]
"""Type defining a shape of an object."""

########################################################################################
# Argument Types
########################################################################################

# Python Numbers
IntLike = int | jnp.integer
"""Object that can be converted to an integer.

Arguments of type :attr:`IntLike` should always be converted
into :class:`int`\\ s before further internal processing."""

# Array Utilities
ShapeLike = IntLike | Iterable[IntLike]
"""Object that can be converted to a shape.

Arguments of type :attr:`ShapeLike` should always be converted
into :class:`ShapeType` using the function :func:`idrox.utils.as_shape`
before internal processing."""

DTypeLike = jax.numpy.dtype
"""Object that can be converted to an array dtype."""

# Arrays and Operators
ArrayLike = Union[jax.Array, Iterable]
"""Object that can be converted to an array.

Arguments of type :attr:`ArrayLike` should always be converted
into :class:`jax.Array`\\ s using the function :func:`jnp.asarray`
before further internal processing."""

LinearOperatorLike = Union[
    jax.Array,
    "idrox._linear_operator.LinearOperator",  # noqa: SLF001
    Callable[[jax.Array], jax.Array],
]
"""Object that can be converted to a :class:`~idrox.LinearOperator`.

Arguments of type :attr:`LinearOperatorLike` should always be converted
into :class:`~idrox.LinearOperator`\\ s using the function
:func:`idrox.utils.as_linop` before further internal processing."""

PreconditionerLike = Union[
    None,
    jax.Array,
    "idrox._linear_operator.LinearOperator",  # noqa: SLF001
    Callable[[jax.Array], jax.Array],
]
"""Object accepted as a (flexible) preconditioner.

``None`` and :class:`~idrox.Identity` leave vectors unchanged, arrays and
linear operators are inverted (``P^{-1} v``), any other callable is applied
directly (``P(v)``) and may change from call to call."""
