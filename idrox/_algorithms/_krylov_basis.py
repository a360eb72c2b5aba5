"""Circular Krylov basis of the flexible IDR(s) method.

The basis keeps the ``s + 1`` most recent unit-norm basis vectors ``G`` and
the matching correction vectors ``W`` (with ``A W`` optionally) in buffers of
fixed size. Column ``latest_idx`` always holds the newest vector; the slot
after it holds the oldest one, which is overwritten by the next expansion.
"""

import jax
import jax.numpy as jnp

from idrox._algorithms._orthogonalization import ModifiedGS
from idrox._algorithms._shadow_projector import ShadowProjector
from idrox._arithmetic import precondition
from idrox._linear_operator import LinearOperator
from idrox.config import warn as _warn
from idrox.typing import PreconditionerLike
from idrox.utils import real_eps

__all__ = ["KrylovBasis"]


class KrylovBasis:
    """Krylov basis buffers, Hessenberg columns and correction vectors.

    Args:
        A: The system operator.
        P: The (flexible) preconditioner, see :func:`idrox.precondition`.
        g0: Normalized initial residual, the first basis vector.
        s: Number of basis vectors per IDR cycle.
        orthogonalizer: Gram-Schmidt strategy.
        track_images: Whether ``A W`` is kept as well.
    """

    def __init__(
        self,
        A: LinearOperator,  # noqa: N803
        P: PreconditionerLike,  # noqa: N803
        g0: jax.Array,
        s: int,
        orthogonalizer=None,  # noqa: ANN001
        track_images: bool = False,  # noqa: FBT001, FBT002
    ) -> None:
        self.A = A
        self.P = P
        self.s = s
        self.orthogonalizer = ModifiedGS() if orthogonalizer is None else orthogonalizer
        self.track_images = track_images

        n = g0.shape[0]
        dtype = g0.dtype
        self.eps = real_eps(dtype)

        self.G = jnp.zeros((n, s + 1), dtype=dtype).at[:, 0].set(g0)
        self.W = jnp.zeros((n, s + 1), dtype=dtype)
        self.AW = jnp.zeros((n, s + 1), dtype=dtype) if track_images else None
        # Orthonormal first-cycle search directions, only used with orth_search
        self.search = None

        self.v = g0
        self.vhat = jnp.zeros_like(g0)
        self.ahat = jnp.zeros_like(g0)
        self.latest_idx = 0

    def expand(self, projector: ShadowProjector) -> jax.Array:
        """Apply the preconditioner and the operator to :attr:`v`.

        The image is stored in the next circular slot, which becomes
        :attr:`latest_idx`.
        """
        self.latest_idx = (self.latest_idx + 1) % (self.s + 1)

        vhat = precondition(self.P, self.v)
        if projector.orth_search and projector.j == 0 and self.latest_idx != 0:
            vhat = self._orthogonalize_search(vhat)
        self.vhat = vhat

        g = self.A @ vhat
        self.ahat = g
        self.G = self.G.at[:, self.latest_idx].set(g)
        return g

    def _orthogonalize_search(self, vhat: jax.Array) -> jax.Array:
        """Orthogonalize ``vhat`` against the earlier search directions of the first cycle.

        The span of the directions does not change, only their conditioning.
        The cycle-closing step is left alone, its direction enters the next
        IDR subspace.
        """
        k = self.latest_idx - 1
        if self.search is None:
            self.search = jnp.zeros((vhat.shape[0], self.s), dtype=vhat.dtype)
        if k > 0:
            vhat, _, _ = self.orthogonalizer(vhat, self.search[:, :k])

        norm = jnp.linalg.norm(vhat)
        if norm <= self.eps:
            _warn(f"Search direction has norm {norm}, the first cycle broke down.")
        safe_norm = jnp.where(norm > 0, norm, 1.0)
        self.search = self.search.at[:, k].set(vhat / safe_norm)
        return vhat

    def map_to_idr_space(self, projector: ShadowProjector) -> None:
        """Shift the newest column by ``-mu v`` once a reduction is active."""
        if projector.j > 0:
            self.G = self.G.at[:, self.latest_idx].add(-projector.mu * self.v)

    def orthogonalize(self) -> jax.Array:
        """Orthonormalize the newest column and return its Hessenberg column.

        The column has length ``s + 3``. Its last entry is the norm of the
        orthogonalized vector, the entries right before it hold the
        coefficients with respect to the earlier columns of the current cycle.
        At the start of a cycle the vector is only normalized.
        """
        s = self.s
        latest = self.latest_idx
        g = self.G[:, latest]
        r = jnp.zeros(s + 3, dtype=self.G.dtype)

        if latest != 0:
            g, h, norm_g = self.orthogonalizer(g, self.G[:, :latest])
            r = r.at[s + 2 - latest : s + 2].set(h)
        else:
            norm_g = jnp.linalg.norm(g)
        r = r.at[s + 2].set(norm_g)

        if norm_g <= self.eps:
            _warn(f"Krylov basis vector has norm {norm_g}, the basis broke down.")

        g = g / norm_g
        self.G = self.G.at[:, latest].set(g)
        self.v = g
        return r

    def update_w(self, r: jax.Array) -> None:
        """Compute the correction vector of the newest column.

        ``r`` is the Hessenberg column after all Givens rotations, its entry
        ``s + 1`` is the diagonal of the triangular factor.
        """
        s = self.s
        latest = self.latest_idx
        # Coefficient of slot q sits at row (q - latest) mod (s + 1)
        coeff = r[(jnp.arange(s + 1) - latest) % (s + 1)]
        diag = r[s + 1]

        self.W = self.W.at[:, latest].set((self.vhat - self.W @ coeff) / diag)
        if self.track_images:
            self.AW = self.AW.at[:, latest].set((self.ahat - self.AW @ coeff) / diag)
