"""Iterate and residual-norm bookkeeping of the QMR recursion.

Besides the plain update :class:`Solution` this module provides the residual
smoothing schemes of Zhou and Walker, which blend the raw iterates into a
sequence with (quasi-)monotonically decreasing residual norms:

- :class:`QMRSmoothedSolution`: QMR smoothing (Algorithm 3.2.2 in [1])
- :class:`MRSmoothedSolution`: minimal residual smoothing (Algorithm 2.2 in [1])

References
----------
.. [1] L. Zhou and H. F. Walker, "Residual smoothing techniques for iterative
       methods," SIAM Journal on Scientific Computing, vol. 15, no. 2,
       pp. 297-312, 1994.
"""

import math

import jax
import jax.numpy as jnp

__all__ = [
    "MRSmoothedSolution",
    "QMRSmoothedSolution",
    "Solution",
    "make_solution",
]


class Solution:
    """Iterate ``x`` and the sequence of residual-norm estimates ``rho``.

    Args:
        x0: Initial guess.
        rho0: Norm of the initial residual.
        tol: Relative tolerance.
        max_it: Maximum number of iterations, determines the size of the
            residual history.
        r0: Initial residual, only used by the smoothing schemes.
    """

    requires_images = False

    def __init__(
        self,
        x0: jax.Array,
        rho0: jax.Array,
        tol: float,
        max_it: int,
        r0: jax.Array | None = None,
    ) -> None:
        self.x = x0
        self.rho0 = float(rho0)
        self.tol = tol
        real_dtype = jnp.finfo(x0.dtype).dtype
        self._rho = jnp.zeros(max_it + 1, dtype=real_dtype).at[0].set(self.rho0)
        self._count = 1

    @property
    def rho(self) -> jax.Array:
        """Residual-norm estimates recorded so far, starting with ``rho0``."""
        return self._rho[: self._count]

    def _append(self, value: jax.Array) -> None:
        self._rho = self._rho.at[self._count].set(value)
        self._count += 1

    def update(
        self,
        w: jax.Array,
        phi: jax.Array,
        phihat: jax.Array,
        j: int,
        aw: jax.Array | None = None,  # noqa: ARG002
    ) -> None:
        """Advance ``x`` along ``w`` and record ``|phihat| sqrt(j + 1)``.

        The factor ``sqrt(j + 1)`` turns the quasi-residual into an upper bound
        of the true residual norm after ``j`` subspace reductions.
        """
        self.x = self.x + phi * w
        self._append(jnp.abs(phihat) * math.sqrt(j + 1.0))

    def is_converged(self) -> bool:
        # Strict, an estimate equal to the threshold is not converged
        return bool(self._rho[self._count - 1] < self.tol * self.rho0)

    def result(self) -> tuple[jax.Array, jax.Array]:
        return self.x, self.rho


class _SmoothedSolution(Solution):
    requires_images = True

    def __init__(
        self,
        x0: jax.Array,
        rho0: jax.Array,
        tol: float,
        max_it: int,
        r0: jax.Array | None = None,
    ) -> None:
        if r0 is None:
            msg = "Residual smoothing requires the initial residual r0."
            raise ValueError(msg)
        super().__init__(x0, rho0, tol, max_it)
        # Raw residual, smoothed iterate and smoothed residual
        self.r = r0
        self.y = x0
        self.s = r0

    def result(self) -> tuple[jax.Array, jax.Array]:
        return self.y, self.rho


class QMRSmoothedSolution(_SmoothedSolution):
    r"""QMR residual smoothing.

    With ``tau_k = ||r_k||^2`` the smoothed quantities are updated as

    .. math::
        \frac{1}{\tilde\tau_k} = \frac{1}{\tilde\tau_{k-1}} + \frac{1}{\tau_k},
        \quad y_k = y_{k-1} + \frac{\tilde\tau_k}{\tau_k}(x_k - y_{k-1}),

    and analogously for the smoothed residual ``s_k``.
    """

    def __init__(
        self,
        x0: jax.Array,
        rho0: jax.Array,
        tol: float,
        max_it: int,
        r0: jax.Array | None = None,
    ) -> None:
        super().__init__(x0, rho0, tol, max_it, r0)
        self.tau_tilde = self.rho0**2

    def update(
        self,
        w: jax.Array,
        phi: jax.Array,
        phihat: jax.Array,  # noqa: ARG002
        j: int,  # noqa: ARG002
        aw: jax.Array | None = None,
    ) -> None:
        self.x = self.x + phi * w
        self.r = self.r - phi * aw

        tau = jnp.real(jnp.vdot(self.r, self.r))
        if tau > 0:
            self.tau_tilde = 1.0 / (1.0 / self.tau_tilde + 1.0 / tau)
            weight = self.tau_tilde / tau
        else:
            # Exact solution, take it over
            self.tau_tilde = 0.0
            weight = 1.0

        self.y = self.y + weight * (self.x - self.y)
        self.s = self.s + weight * (self.r - self.s)
        self._append(jnp.linalg.norm(self.s))


class MRSmoothedSolution(_SmoothedSolution):
    """Minimal residual smoothing.

    The smoothed residual is the point of minimal norm on the line through the
    previous smoothed residual and the new raw residual.
    """

    def update(
        self,
        w: jax.Array,
        phi: jax.Array,
        phihat: jax.Array,  # noqa: ARG002
        j: int,  # noqa: ARG002
        aw: jax.Array | None = None,
    ) -> None:
        self.x = self.x + phi * w
        self.r = self.r - phi * aw

        d = self.r - self.s
        dd = jnp.real(jnp.vdot(d, d))
        safe_dd = jnp.where(dd > 0, dd, 1.0)
        # Complex step, minimizes ||s + eta d|| over all of C
        eta = jnp.where(dd > 0, -jnp.vdot(d, self.s) / safe_dd, 0.0)

        self.y = self.y + eta * (self.x - self.y)
        self.s = self.s + eta * d
        self._append(jnp.linalg.norm(self.s))


_SOLUTIONS = {
    None: Solution,
    "QMR": QMRSmoothedSolution,
    "MR": MRSmoothedSolution,
}


def make_solution(smoothing: str | None) -> type[Solution]:
    """Look up the solution class of a smoothing option."""
    key = smoothing.upper() if isinstance(smoothing, str) else smoothing
    if key not in _SOLUTIONS:
        msg = f"Unknown smoothing {smoothing!r}, expected None, 'QMR' or 'MR'."
        raise ValueError(msg)
    return _SOLUTIONS[key]
