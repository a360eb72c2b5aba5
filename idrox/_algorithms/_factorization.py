"""LU factorization with cheap single-column replacements.

Replacing column ``p`` of ``M`` by ``m`` gives ``M_new = M E`` where ``E`` is
the identity with column ``p`` replaced by ``alpha = M^{-1} m``. Solves with
``M_new`` therefore only need the LU factors of the original matrix plus the
stored eta vectors ``alpha`` (product form of the inverse). After
``max_updates`` replacements the matrix is factored from scratch, which bounds
the accumulation of rounding errors.
"""

import jax
import jax.numpy as jnp
import jax.scipy.linalg

from idrox.config import warn as _warn
from idrox.utils import real_eps

__all__ = ["UpdatableLU"]


class UpdatableLU:
    """LU factorization of a small square matrix supporting column updates.

    Args:
        M: Square matrix to factor.
        max_updates: Number of column replacements between two full
            refactorizations.
    """

    def __init__(self, M: jax.Array, max_updates: int) -> None:  # noqa: N803
        self.M = jnp.asarray(M)
        self.max_updates = max(int(max_updates), 0)
        self._etas = jnp.zeros(
            (self.M.shape[0], max(self.max_updates, 1)), dtype=self.M.dtype
        )
        self._cols: list[int] = []
        self.refactor()

    @property
    def num_updates(self) -> int:
        """Number of column replacements since the last factorization."""
        return len(self._cols)

    def refactor(self) -> None:
        """Factor :attr:`M` from scratch and drop all eta vectors."""
        self._lu_piv = jax.scipy.linalg.lu_factor(self.M)
        self._cols = []

    def solve(self, m: jax.Array) -> jax.Array:
        """Solve ``M x = m`` for the current matrix."""
        x = jax.scipy.linalg.lu_solve(self._lu_piv, m)
        for k, p in enumerate(self._cols):
            alpha = self._etas[:, k]
            xp = x[p] / alpha[p]
            x = x - alpha * xp
            x = x.at[p].set(xp)
        return x

    def replace_column(self, p: int, m: jax.Array, alpha: jax.Array) -> None:
        """Replace column ``p`` of :attr:`M` by ``m``.

        Args:
            p: Column index.
            m: New column.
            alpha: Solution of ``M alpha = m`` with the matrix before the
                replacement.
        """
        self.M = self.M.at[:, p].set(m)

        if self.num_updates >= self.max_updates:
            self.refactor()
            return

        if jnp.abs(alpha[p]) <= real_eps(self.M.dtype):
            _warn(
                f"Pivot {alpha[p]} of column replacement {p} is tiny, "
                "refactoring the Gram matrix."
            )
            self.refactor()
            return

        self._etas = self._etas.at[:, self.num_updates].set(alpha)
        self._cols.append(p)
