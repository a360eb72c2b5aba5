# _arithmetic.py

r"""Solving with linear operators and applying preconditioners.

This module holds the two multiple-dispatch entry points the solvers rely on:

- :func:`lsolve`: Computes :math:`A^{-1} b` for a linear operator :math:`A`
- :func:`precondition`: Applies a (possibly flexible) preconditioner to a vector

Operator classes register cheaper :func:`lsolve` implementations next to their
definition, so that new operator types can be plugged into the solvers without
touching this module.
"""

import jax
import jax.scipy.linalg
import plum  # type: ignore  # noqa: PGH003

from idrox import utils
from idrox._linear_operator import LinearOperator
from idrox.config import warn as _warn


@plum.dispatch
def lsolve(a: LinearOperator, b: jax.Array) -> jax.Array:
    """Solve the linear system Ax = b."""
    if a.shape[-1] != b.shape[0]:
        msg = f"Shape mismatch: {a.shape} and {b.shape}"
        raise ValueError(msg)
    _warn(f"Linear operator {a} is densed for lsolve computation.")
    return jax.scipy.linalg.solve(a.todense(), b)


@plum.dispatch
def precondition(P: LinearOperator, v: jax.Array) -> jax.Array:  # noqa: N803
    r"""Apply the preconditioner ``P`` to ``v``.

    Linear operators and arrays are interpreted as the preconditioning matrix,
    i.e. :math:`P^{-1} v` is returned. The identity returns a fresh copy of
    ``v``. Any other callable is applied as is, which allows preconditioners
    that change from one call to the next (e.g. inner iterative solves).
    """
    return lsolve(P, v)


@precondition.dispatch
def _(P: jax.Array, v: jax.Array) -> jax.Array:  # noqa: N803
    return lsolve(utils.as_linop(P), v)


@precondition.dispatch
def _(P: object, v: jax.Array) -> jax.Array:  # noqa: N803
    # Any other callable, possibly changing between calls
    return P(v)
