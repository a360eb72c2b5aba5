"""Building blocks of the flexible QMR-IDR(s) solver.

Submodules
----------
_orthogonalization
    Gram-Schmidt strategies (classical, modified, repeated classical)
_hessenberg
    Givens rotations and the incremental QR factorization of the banded
    Hessenberg matrix
_factorization
    LU factorization with product-form column replacements
_shadow_projector
    Skew projection onto the complement of the shadow space
_krylov_basis
    Circular Krylov basis and correction vectors
_solution
    Iterate updates with optional residual smoothing
_idr
    The :func:`fqmr_idrs` driver

Exported Functions
------------------

Linear Solvers
~~~~~~~~~~~~~~
fqmr_idrs : Flexible IDR(s) with quasi-minimal residual recursion

Building Blocks
~~~~~~~~~~~~~~~
givens_rotation : Stable complex Givens rotation
make_orthogonalizer : Orthogonalization strategy from its name

Examples
--------
>>> import jax.numpy as jnp
>>> from idrox import Diagonal
>>> from idrox._algorithms import fqmr_idrs
>>> A = jnp.diag(jnp.arange(1.0, 21.0)) + 0.1 * jnp.eye(20, k=1)
>>> b = jnp.ones(20)
>>> x, rho = fqmr_idrs(A, b, s=4, P=Diagonal(jnp.arange(1.0, 21.0)))
"""

# Building blocks
from idrox._algorithms._factorization import UpdatableLU
from idrox._algorithms._hessenberg import BandedHessenberg, givens_rotation
from idrox._algorithms._krylov_basis import KrylovBasis
from idrox._algorithms._orthogonalization import (
    ClassicalGS,
    ModifiedGS,
    RepeatedClassicalGS,
    make_orthogonalizer,
)
from idrox._algorithms._shadow_projector import (
    RepeatedSkew,
    ShadowProjector,
    SingleSkew,
)
from idrox._algorithms._solution import (
    MRSmoothedSolution,
    QMRSmoothedSolution,
    Solution,
    make_solution,
)

# Solver
from idrox._algorithms._idr import fqmr_idrs

__all__ = [
    "BandedHessenberg",
    "ClassicalGS",
    "KrylovBasis",
    "MRSmoothedSolution",
    "ModifiedGS",
    "QMRSmoothedSolution",
    "RepeatedClassicalGS",
    "RepeatedSkew",
    "ShadowProjector",
    "SingleSkew",
    "Solution",
    "UpdatableLU",
    "fqmr_idrs",
    "givens_rotation",
    "make_orthogonalizer",
    "make_solution",
]
