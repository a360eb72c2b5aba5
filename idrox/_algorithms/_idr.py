"""Flexible IDR(s) with quasi-minimal residual recursion.

This module provides :func:`fqmr_idrs`, which solves ``A x = b`` for a square,
possibly non-symmetric and complex, linear operator using only matrix-vector
products. Preconditioners may change between iterations (flexible
preconditioning), e.g. when they are inner iterative solves themselves.

Every iteration

1. skew-projects the latest basis vector onto the complement of the shadow
   space (once the shadow Gram matrix exists),
2. preconditions it and applies the operator,
3. chooses a new reduction parameter at the start of every IDR cycle and
   shifts the image into the current IDR subspace,
4. orthogonalizes the image against the earlier vectors of the cycle,
5. updates the QR factorization of the banded Hessenberg matrix,
6. updates the correction vectors, the Gram matrix and the iterate.

References
----------
.. [1] M. B. van Gijzen, G. L. G. Sleijpen, and J.-P. M. Zemke, "Flexible and
       multi-shift induced dimension reduction algorithms for solving large
       sparse linear systems," Numerical Linear Algebra with Applications,
       vol. 22, no. 1, pp. 1-25, 2015.

.. [2] P. Sonneveld and M. B. van Gijzen, "IDR(s): A family of simple and fast
       algorithms for solving large nonsymmetric systems of linear equations,"
       SIAM Journal on Scientific Computing, vol. 31, no. 2, pp. 1035-1062, 2008.
"""

import math

import jax
import jax.numpy as jnp

from idrox import utils
from idrox._algorithms._hessenberg import BandedHessenberg
from idrox._algorithms._krylov_basis import KrylovBasis
from idrox._algorithms._orthogonalization import make_orthogonalizer
from idrox._algorithms._shadow_projector import (
    RepeatedSkew,
    ShadowProjector,
    SingleSkew,
)
from idrox._algorithms._solution import make_solution
from idrox._matrix import Identity
from idrox.config import warn as _warn
from idrox.typing import ArrayLike, LinearOperatorLike, PreconditionerLike

__all__ = ["fqmr_idrs"]


def fqmr_idrs(  # noqa: C901, PLR0912, PLR0913, PLR0915
    A: LinearOperatorLike,  # noqa: N803
    b: ArrayLike,
    *,
    s: int = 8,
    tol: float | None = None,
    max_it: int | None = None,
    x0: ArrayLike | None = None,
    P: PreconditionerLike = None,  # noqa: N803
    R0: ArrayLike | None = None,  # noqa: N803
    orth: str = "MGS",
    orth_tol: float | None = None,
    orth_repeat: int = 3,
    skew_repeat: int = 1,
    kappa: float = 0.7,
    orth_search: bool = False,
    proj_dim: int | None = None,
    smoothing: str | None = None,
    key: jax.Array | None = None,
) -> tuple[jax.Array, jax.Array]:
    """Solve ``A x = b`` with flexible QMR-IDR(s).

    Parameters
    ----------
    A : LinearOperatorLike
        Square linear operator, square matrix, or callable ``v -> A v``.
    b : ArrayLike
        Right-hand side vector of length ``n``.
    s : int, optional
        Number of basis vectors per IDR cycle. Default is 8.
    tol : float, optional
        Relative tolerance on the residual-norm estimate. Defaults to the
        square root of the machine precision of ``b``.
    max_it : int, optional
        Maximum number of iterations. Defaults to ``n``.
    x0 : ArrayLike, optional
        Initial guess. Defaults to zeros.
    P : PreconditionerLike, optional
        ``None`` (no preconditioning), a linear operator or matrix (applied as
        ``P^{-1} v``), or a callable ``v -> vhat`` which may change from call
        to call.
    R0 : ArrayLike, optional
        Shadow basis of shape ``(n, proj_dim)``. Generated from ``key`` if
        omitted.
    orth : str, optional
        Gram-Schmidt scheme, one of ``"CGS"``, ``"MGS"`` and ``"RCGS"``.
        Default is ``"MGS"``.
    orth_tol : float, optional
        Reorthogonalization tolerance of ``"RCGS"``. Defaults to the machine
        precision.
    orth_repeat : int, optional
        Maximum number of Gram-Schmidt passes of ``"RCGS"``. Default is 3.
    skew_repeat : int, optional
        Maximum number of skew projections per iteration. Default is 1.
    kappa : float, optional
        Angle safeguard for the reduction parameter. Default is 0.7.
    orth_search : bool, optional
        Keep the preconditioned search directions of the first cycle
        mutually orthogonal.
    proj_dim : int, optional
        Dimension of the shadow space, ``1 <= proj_dim <= s``. Defaults to
        ``s``.
    smoothing : str, optional
        Residual smoothing, ``None``, ``"QMR"`` or ``"MR"``.
    key : jax.Array, optional
        Random key for the shadow basis. Defaults to ``PRNGKey(0)``.

    Returns
    -------
    x : jax.Array
        Approximate solution.
    rho : jax.Array
        Residual-norm estimates, starting with the initial residual norm and
        followed by one entry per iteration.

    Raises
    ------
    ValueError
        If the options or the operand shapes are inconsistent.
    TypeError
        If ``A`` cannot be interpreted as a linear operator.

    Examples
    --------
    >>> import jax.numpy as jnp
    >>> from idrox import fqmr_idrs
    >>> A = jnp.array([[4.0, 1.0], [2.0, 3.0]])
    >>> b = jnp.array([1.0, 2.0])
    >>> x, rho = fqmr_idrs(A, b, s=1)
    """
    b = jnp.asarray(b)
    if b.ndim != 1:
        msg = f"b must be a vector, got an array of shape {b.shape}."
        raise ValueError(msg)
    n = b.shape[0]

    A_dtype = getattr(A, "dtype", b.dtype)  # noqa: N806
    A = utils.as_linop(A, shape=(n, n), dtype=A_dtype)  # noqa: N806
    if A.shape != (n, n):
        msg = f"A must be a square operator of shape {(n, n)}, got {A.shape}."
        raise ValueError(msg)

    dtype = jnp.result_type(b.dtype, A.dtype)
    if not jnp.issubdtype(dtype, jnp.inexact):
        dtype = jnp.result_type(dtype, jnp.float32)
    b = b.astype(dtype)
    eps = utils.real_eps(dtype)

    if s < 1:
        msg = f"s must be at least 1, got {s}."
        raise ValueError(msg)
    proj_dim = s if proj_dim is None else proj_dim
    if not 1 <= proj_dim <= s:
        msg = f"proj_dim must satisfy 1 <= proj_dim <= s = {s}, got {proj_dim}."
        raise ValueError(msg)
    if skew_repeat < 1:
        msg = f"skew_repeat must be at least 1, got {skew_repeat}."
        raise ValueError(msg)

    tol = math.sqrt(eps) if tol is None else tol
    max_it = n if max_it is None else max_it
    orth_tol = eps if orth_tol is None else orth_tol

    orthogonalizer = make_orthogonalizer(orth, orth_tol, orth_repeat)
    solution_cls = make_solution(smoothing)
    skew = (
        SingleSkew()
        if skew_repeat == 1
        else RepeatedSkew(tol=orth_tol, max_repeat=skew_repeat)
    )

    projector = ShadowProjector(
        n,
        s,
        proj_dim,
        dtype,
        R0=R0,
        kappa=kappa,
        orth_search=orth_search,
        skew=skew,
        key=key,
    )

    if x0 is None:
        x0 = jnp.zeros(n, dtype=dtype)
        r0 = b
    else:
        x0 = jnp.asarray(x0, dtype=dtype)
        if x0.shape != b.shape:
            msg = f"x0 must have shape {b.shape}, got {x0.shape}."
            raise ValueError(msg)
        r0 = b - A @ x0

    rho0 = jnp.linalg.norm(r0)
    if rho0 == 0:
        return x0, jnp.zeros(1, dtype=rho0.dtype)

    if P is None:
        P = Identity(n, dtype=dtype)  # noqa: N806
    elif not callable(P):
        P = utils.as_linop(P)  # noqa: N806

    solution = solution_cls(x0, rho0, tol, max_it, r0=r0)
    basis = KrylovBasis(
        A,
        P,
        r0 / rho0,
        s,
        orthogonalizer=orthogonalizer,
        track_images=solution_cls.requires_images,
    )
    hessenberg = BandedHessenberg(s, rho0, dtype)

    for _ in range(max_it):
        basis.v = projector.apply(basis.v, basis.G, basis.latest_idx)
        basis.expand(projector)

        # Start of a new IDR cycle
        if basis.latest_idx == 0:
            projector.next_idr_space(basis.G[:, 0], basis.v)
        basis.map_to_idr_space(projector)

        r = basis.orthogonalize()
        r = projector.hessenberg_correction(r)
        r = hessenberg.add_column(r)
        basis.update_w(r)
        projector.update(basis.G, basis.latest_idx)

        latest = basis.latest_idx
        solution.update(
            basis.W[:, latest],
            hessenberg.phi,
            hessenberg.phihat,
            projector.j,
            aw=None if basis.AW is None else basis.AW[:, latest],
        )
        if solution.is_converged():
            break
    else:
        _warn(
            f"fqmr_idrs did not converge within {max_it} iterations, "
            f"last residual estimate {solution.rho[-1]} > {tol * float(rho0)}."
        )

    return solution.result()
