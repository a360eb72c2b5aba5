"""Incremental QR factorization of a banded Hessenberg matrix.

The Hessenberg matrix produced by IDR(s) has upper bandwidth ``s + 1``, so
every new column only interacts with the ``s + 1`` most recent Givens
rotations. :class:`BandedHessenberg` keeps exactly these rotations in a
circular buffer and maintains the two quasi-residual scalars of the QMR
recursion.
"""

import jax
import jax.numpy as jnp

from idrox.typing import DTypeLike
from idrox.utils import real_eps

__all__ = ["BandedHessenberg", "givens_rotation"]


def givens_rotation(a: jax.Array, b: jax.Array) -> tuple[jax.Array, ...]:
    r"""Compute a (complex) Givens rotation annihilating ``b``.

    Returns ``(c, s, r)`` with real ``c`` such that

    .. math::
        \begin{pmatrix} c & s \\ -\bar{s} & c \end{pmatrix}
        \begin{pmatrix} a \\ b \end{pmatrix}
        = \begin{pmatrix} r \\ 0 \end{pmatrix}.

    If ``|a|`` is below machine precision the rotation degenerates into a
    swap (``c = 0``, ``s = 1``, ``r = b``). Overflow is avoided by scaling
    with ``|a| + |b|``.
    """
    a = jnp.asarray(a)
    b = jnp.asarray(b, dtype=a.dtype)
    eps = real_eps(a.dtype)

    abs_a = jnp.abs(a)
    abs_b = jnp.abs(b)
    degenerate = abs_a < eps

    # Keep the unused branch finite
    safe_abs_a = jnp.where(degenerate, 1.0, abs_a)
    scale = abs_a + abs_b
    safe_scale = jnp.where(degenerate, 1.0, scale)

    rho = safe_scale * jnp.sqrt(
        jnp.abs(a / safe_scale) ** 2 + jnp.abs(b / safe_scale) ** 2
    )
    alpha = a / safe_abs_a

    c = jnp.where(degenerate, 0.0, abs_a / rho)
    s = jnp.where(degenerate, 1.0, alpha * jnp.conj(b) / rho)
    r = jnp.where(degenerate, b, alpha * rho)
    return c.astype(a.dtype), s.astype(a.dtype), r.astype(a.dtype)


class BandedHessenberg:
    """Rotation history and quasi-residual of the QMR recursion.

    Args:
        s: Dimension of the shadow space, the bandwidth is ``s + 2``.
        rho0: Norm of the initial residual.
        dtype: Data type of the Hessenberg entries.
    """

    def __init__(self, s: int, rho0: jax.Array, dtype: DTypeLike) -> None:
        self.s = s
        self.dtype = jnp.dtype(dtype)
        # Identity rotations, so the first columns need no special treatment
        self.cosine = jnp.ones(s + 2, dtype=self.dtype)
        self.sine = jnp.zeros(s + 2, dtype=self.dtype)
        self.latest = 0
        self.phi = jnp.zeros((), dtype=self.dtype)
        self.phihat = jnp.asarray(rho0, dtype=self.dtype)

    def add_column(self, r: jax.Array) -> jax.Array:
        """Reduce the Hessenberg column ``r`` (length ``s + 3``) to upper form.

        The ``s + 1`` stored rotations are applied from the oldest to the most
        recent one, then a new rotation annihilating ``r[s + 2]`` is created
        and replaces the oldest entry of the history. Updates :attr:`phi` and
        :attr:`phihat` and returns the rotated column.
        """
        s = self.s
        nrot = s + 2
        for l in range(s + 1):  # noqa: E741
            idx = (self.latest - s + l) % nrot
            c, sn = self.cosine[idx], self.sine[idx]
            x, y = r[l], r[l + 1]
            r = r.at[l].set(c * x + sn * y)
            r = r.at[l + 1].set(-jnp.conj(sn) * x + c * y)

        c, sn, r_new = givens_rotation(r[s + 1], r[s + 2])
        r = r.at[s + 1].set(r_new)
        r = r.at[s + 2].set(0.0)

        self.latest = (self.latest + 1) % nrot
        self.cosine = self.cosine.at[self.latest].set(c)
        self.sine = self.sine.at[self.latest].set(sn)

        self.phi = c * self.phihat
        self.phihat = -jnp.conj(sn) * self.phihat
        return r
