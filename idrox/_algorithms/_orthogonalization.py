"""Gram-Schmidt orthogonalization strategies for Krylov basis vectors.

Each strategy is a small immutable callable object. Called on a candidate
vector ``g`` and a matrix ``G`` whose columns are orthonormal, it returns the
part of ``g`` orthogonal to ``range(G)``, the coefficients ``h`` with
``g_in = G @ h + g_out`` and the norm of ``g_out``.

Available strategies:

- :class:`ClassicalGS`: one block projection ``h = G^H g``
- :class:`ModifiedGS`: column-by-column projection
- :class:`RepeatedClassicalGS`: classical Gram-Schmidt with selective
  reorthogonalization

References
----------
.. [1] L. Giraud, J. Langou, M. Rozloznik, and J. van den Eshof, "Rounding
       error analysis of the classical Gram-Schmidt orthogonalization
       process," Numerische Mathematik, vol. 101, pp. 87-100, 2005.
"""

import math
from dataclasses import dataclass

import jax
import jax.numpy as jnp

__all__ = [
    "ClassicalGS",
    "ModifiedGS",
    "RepeatedClassicalGS",
    "make_orthogonalizer",
]


def _cgs_step(g: jax.Array, G: jax.Array) -> tuple[jax.Array, jax.Array]:  # noqa: N803
    h = G.conj().T @ g
    return g - G @ h, h


@dataclass(frozen=True)
class ClassicalGS:
    """Classical Gram-Schmidt."""

    def __call__(
        self,
        g: jax.Array,
        G: jax.Array,  # noqa: N803
    ) -> tuple[jax.Array, jax.Array, jax.Array]:
        g, h = _cgs_step(g, G)
        return g, h, jnp.linalg.norm(g)


@dataclass(frozen=True)
class ModifiedGS:
    """Modified Gram-Schmidt.

    The coefficient of every column is computed from the vector that has
    already been orthogonalized against all previous columns.
    """

    def __call__(
        self,
        g: jax.Array,
        G: jax.Array,  # noqa: N803
    ) -> tuple[jax.Array, jax.Array, jax.Array]:
        h = jnp.zeros(G.shape[1], dtype=jnp.result_type(g, G))
        for col in range(G.shape[1]):
            h_col = jnp.vdot(G[:, col], g)
            g = g - h_col * G[:, col]
            h = h.at[col].set(h_col)
        return g, h, jnp.linalg.norm(g)


@dataclass(frozen=True)
class RepeatedClassicalGS:
    """Classical Gram-Schmidt with selective reorthogonalization.

    After the first pass, further passes are performed (at most
    ``max_repeat - 1`` of them) until either the remaining vector is large
    compared to the last coefficient update (``norm_g >= one * norm_h``) or the
    update is negligible (``norm_h < tol * norm_g``). Coefficient updates are
    accumulated into ``h``.

    Args:
        one: Threshold deciding whether cancellation happened, ``1/sqrt(2)``
            by default ("twice is enough").
        tol: Relative size below which a coefficient update is negligible.
        max_repeat: Maximum number of Gram-Schmidt passes.
    """

    one: float = 1.0 / math.sqrt(2.0)
    tol: float = 1e-16
    max_repeat: int = 3

    def __call__(
        self,
        g: jax.Array,
        G: jax.Array,  # noqa: N803
    ) -> tuple[jax.Array, jax.Array, jax.Array]:
        g, h = _cgs_step(g, G)
        norm_g = jnp.linalg.norm(g)
        h_update = h
        for _ in range(1, self.max_repeat):
            norm_h = jnp.linalg.norm(h_update)
            if norm_g < self.one * norm_h or norm_h < self.tol * norm_g:
                break
            g, h_update = _cgs_step(g, G)
            h = h + h_update
            norm_g = jnp.linalg.norm(g)
        return g, h, norm_g


_ORTHOGONALIZERS = {
    "CGS": ClassicalGS,
    "MGS": ModifiedGS,
    "RCGS": RepeatedClassicalGS,
}


def make_orthogonalizer(
    orth: "str | ClassicalGS | ModifiedGS | RepeatedClassicalGS",
    orth_tol: float,
    orth_repeat: int = 3,
) -> "ClassicalGS | ModifiedGS | RepeatedClassicalGS":
    """Turn an orthogonalization option into a strategy object.

    Strings are looked up case-insensitively, any callable is returned as is.

    Raises:
        ValueError
        If ``orth`` names an unknown scheme or ``orth_repeat < 1``.
    """
    if callable(orth) and not isinstance(orth, str):
        return orth

    name = str(orth).upper()
    if name not in _ORTHOGONALIZERS:
        msg = (
            f"Unknown orthogonalization scheme {orth!r}, "
            f"expected one of {sorted(_ORTHOGONALIZERS)}."
        )
        raise ValueError(msg)

    if name == "RCGS":
        if orth_repeat < 1:
            msg = f"orth_repeat must be at least 1, got {orth_repeat}."
            raise ValueError(msg)
        return RepeatedClassicalGS(tol=orth_tol, max_repeat=orth_repeat)
    return _ORTHOGONALIZERS[name]()
