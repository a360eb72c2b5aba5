r"""Oblique projection onto the complement of the shadow space.

IDR(s) forces its residuals into a sequence of nested subspaces
:math:`\mathcal{G}_j`. The map into the next subspace needs the skew projection

.. math::
    v \mapsto v - G (R_0^H G)^{-1} R_0^H v,

where :math:`R_0` spans the (fixed) shadow space and :math:`G` holds the most
recent Krylov basis vectors. The small Gram matrix :math:`M = R_0^H G` changes
by exactly one column per iteration, so it is kept in an
:class:`~idrox._algorithms._factorization.UpdatableLU`.

References
----------
.. [1] M. B. van Gijzen, G. L. G. Sleijpen, and J.-P. M. Zemke, "Flexible and
       multi-shift induced dimension reduction algorithms for solving large
       sparse linear systems," Numerical Linear Algebra with Applications,
       vol. 22, no. 1, pp. 1-25, 2015.
"""

import math
from collections.abc import Callable
from dataclasses import dataclass

import jax
import jax.numpy as jnp

from idrox._algorithms._factorization import UpdatableLU
from idrox.config import warn as _warn
from idrox.typing import ArrayLike, DTypeLike
from idrox.utils import real_eps

__all__ = ["RepeatedSkew", "ShadowProjector", "SingleSkew"]

_Projection = tuple[jax.Array, jax.Array, jax.Array, jax.Array]


@dataclass(frozen=True)
class SingleSkew:
    """Apply the skew projection once."""

    def __call__(
        self, project: Callable[[jax.Array], _Projection], v: jax.Array
    ) -> _Projection:
        return project(v)


@dataclass(frozen=True)
class RepeatedSkew:
    """Repeat the skew projection to reduce cancellation errors.

    The projection is reapplied to its own result while the last correction is
    large compared to the projected vector, at most ``max_repeat`` times in
    total. The coefficients ``u`` are accumulated, ``m`` and ``alpha`` stay
    those of the first pass, they belong to the incoming vector.
    """

    one: float = 1.0 / math.sqrt(2.0)
    tol: float = 1e-16
    max_repeat: int = 2

    def __call__(
        self, project: Callable[[jax.Array], _Projection], v: jax.Array
    ) -> _Projection:
        v, m, alpha, u = project(v)
        u_update = u
        for _ in range(1, self.max_repeat):
            norm_v = jnp.linalg.norm(v)
            norm_u = jnp.linalg.norm(u_update)
            if norm_v > self.one * norm_u or norm_u < self.tol * norm_v:
                break
            v, _, _, u_update = project(v)
            u = u + u_update
        return v, m, alpha, u


class ShadowProjector:
    """Shadow space, Gram matrix and reduction parameters of IDR(s).

    Args:
        n: Dimension of the linear system.
        s: Number of basis vectors per IDR cycle, the circular basis buffer
            has ``s + 1`` slots.
        proj_dim: Dimension of the shadow space (``1 <= proj_dim <= s``).
        dtype: Data type of the system.
        R0: Shadow basis of shape ``(n, proj_dim)``. Generated from ``key``
            (random normal entries, orthonormalized by QR) when omitted.
        kappa: Angle safeguard for the choice of :attr:`omega`.
        orth_search: Whether the search directions of the first cycle are kept
            mutually orthogonal.
        skew: Skew projection strategy.
        key: Random key used to generate ``R0``.
    """

    def __init__(
        self,
        n: int,
        s: int,
        proj_dim: int,
        dtype: DTypeLike,
        R0: ArrayLike | None = None,  # noqa: N803
        kappa: float = 0.7,
        orth_search: bool = False,  # noqa: FBT001, FBT002
        skew: SingleSkew | RepeatedSkew | None = None,
        key: jax.Array | None = None,
    ) -> None:
        if not 1 <= proj_dim <= s:
            msg = f"proj_dim must satisfy 1 <= proj_dim <= s = {s}, got {proj_dim}."
            raise ValueError(msg)

        self.n = n
        self.s = s
        self.proj_dim = proj_dim
        self.dtype = jnp.dtype(dtype)
        self.kappa = kappa
        self.orth_search = orth_search
        self.skew = SingleSkew() if skew is None else skew
        self.key = key

        self._R0 = None
        if R0 is not None:
            R0 = jnp.asarray(R0, dtype=self.dtype)  # noqa: N806
            if R0.shape != (n, proj_dim):
                msg = f"R0 must have shape {(n, proj_dim)}, got {R0.shape}."
                raise ValueError(msg)
            self._R0 = R0

        self.j = 0
        self.omega = jnp.zeros((), dtype=self.dtype)
        self.mu = jnp.zeros((), dtype=self.dtype)

        self.m = jnp.zeros(proj_dim, dtype=self.dtype)
        self.alpha = jnp.zeros(proj_dim, dtype=self.dtype)
        self.u = jnp.zeros(proj_dim, dtype=self.dtype)

        self.lu: UpdatableLU | None = None
        self.oldest_idx = 0
        # -1 marks basis slots without a Gram matrix column
        self.g_to_m_idx = [-1] * (s + 1)
        self._pending_col: int | None = None

    @property
    def initialized(self) -> bool:
        return self.lu is not None

    @property
    def shadow_basis(self) -> jax.Array:
        """The shadow basis ``R0``, generated on first access if needed."""
        if self._R0 is None:
            key = jax.random.PRNGKey(0) if self.key is None else self.key
            R0 = jax.random.normal(key, (self.n, self.proj_dim), dtype=self.dtype)  # noqa: N806
            self._R0, _ = jnp.linalg.qr(R0)
        return self._R0

    def _window(self) -> list[int]:
        # Slots of the active columns, oldest first, excluding latest_slot
        nslots = self.s + 1
        return [(self.oldest_idx + t) % nslots for t in range(self.proj_dim)]

    def apply(self, v: jax.Array, G: jax.Array, latest_slot: int) -> jax.Array:  # noqa: N803
        """Project ``v`` along ``range(G_active)`` onto ``R0``'s complement.

        Returns ``v`` unchanged until the Gram matrix has been built. The
        coefficients are kept in :attr:`u` for the Hessenberg correction and
        the Gram column of ``v`` replaces the oldest one at the next
        :meth:`update`.
        """
        if not self.initialized:
            return v

        window = self._window()
        idx = jnp.asarray([self.g_to_m_idx[q] for q in window])

        # The active window may wrap around the end of the circular buffer
        nslots = self.s + 1
        first = min(nslots - self.oldest_idx, self.proj_dim)
        G1 = G[:, self.oldest_idx : self.oldest_idx + first]  # noqa: N806
        G2 = G[:, : self.proj_dim - first]  # noqa: N806
        R0 = self.shadow_basis  # noqa: N806

        def project(vec: jax.Array) -> _Projection:
            m = R0.conj().T @ vec
            alpha = self.lu.solve(m)
            u = alpha[idx]
            vec = vec - G1 @ u[:first]
            if G2.shape[1] > 0:
                vec = vec - G2 @ u[first:]
            return vec, m, alpha, u

        v, self.m, self.alpha, self.u = self.skew(project, v)

        # The Gram column of the oldest slot is recycled for latest_slot
        p = self.g_to_m_idx[self.oldest_idx]
        self.g_to_m_idx[latest_slot] = p
        self.g_to_m_idx[self.oldest_idx] = -1
        self.oldest_idx = (self.oldest_idx + 1) % nslots
        self._pending_col = p
        return v

    def update(self, G: jax.Array, latest_slot: int) -> None:  # noqa: N803
        """Build the Gram matrix once the basis buffer is full, else update it."""
        if not self.initialized:
            if latest_slot == self.s:
                self._initialize(G)
        elif self._pending_col is not None:
            self.lu.replace_column(self._pending_col, self.m, self.alpha)
            self._pending_col = None

    def _initialize(self, G: jax.Array) -> None:  # noqa: N803
        start = self.s - self.proj_dim
        R0 = self.shadow_basis  # noqa: N806
        M = R0.conj().T @ G[:, start : self.s]  # noqa: N806
        self.lu = UpdatableLU(M, max_updates=self.proj_dim - 1)
        self.oldest_idx = start
        for t in range(self.proj_dim):
            self.g_to_m_idx[start + t] = t

    def next_idr_space(self, g: jax.Array, v: jax.Array) -> None:
        """Choose the reduction parameter of the next IDR subspace.

        ``omega`` minimizes ``||g - omega v||`` but is enlarged whenever the
        angle between ``g`` and ``v`` is too small (``|eta| < kappa``).
        """
        eps = real_eps(self.dtype)
        nu = jnp.vdot(g, v)
        tau = jnp.real(jnp.vdot(g, g))
        omega = nu / tau
        eta = nu / (jnp.sqrt(tau) * jnp.linalg.norm(v))

        abs_eta = jnp.abs(eta)
        safe_abs_eta = jnp.where(abs_eta == 0, 1.0, abs_eta)
        omega = jnp.where(abs_eta < self.kappa, omega * self.kappa / safe_abs_eta, omega)

        small = jnp.abs(omega) <= eps
        if small:
            _warn(f"omega = {omega} is below machine precision, using mu = 1.")
        self.omega = omega.astype(self.dtype)
        self.mu = jnp.where(small, 1.0, 1.0 / jnp.where(small, 1.0, omega)).astype(
            self.dtype
        )
        self.j += 1

    def hessenberg_correction(self, r: jax.Array) -> jax.Array:
        """Fold the ``mu``-scaled projection coefficients into the column ``r``."""
        if self.j == 0:
            return r
        s = self.s
        r = r.at[s + 1 - self.proj_dim : s + 1].add(-self.mu * self.u)
        return r.at[s + 1].add(self.mu)
