# __init__.py
r"""`idrox`: Flexible IDR(s) Krylov solvers in JAX.

This package solves large linear systems :math:`Ax = b` with the flexible
induced dimension reduction method IDR(s) and its quasi-minimal residual
recursion. It provides:

- The solver: :func:`fqmr_idrs`
- Operators: :class:`LinearOperator`, :class:`Matrix`, :class:`Identity`,
    :class:`Diagonal`, :class:`FunctionOperator`
- Strategies: :class:`ClassicalGS`, :class:`ModifiedGS`,
    :class:`RepeatedClassicalGS`, :class:`SingleSkew`, :class:`RepeatedSkew`

Common operations:
- Solving: :func:`lsolve`, :func:`precondition`
- Conversion: :func:`utils.as_linop`

Operators only need a matrix-vector product; preconditioners may be operators,
matrices or arbitrary callables that change between iterations.
"""

__version__ = "0.1.0"

from idrox import config, utils
from idrox.config import is_debug, set_debug
from idrox._arithmetic import lsolve, precondition
from idrox._linear_operator import LinearOperator
from idrox._matrix import Diagonal, FunctionOperator, Identity, Matrix

from idrox._algorithms import (  # isort: skip
    ClassicalGS,
    ModifiedGS,
    MRSmoothedSolution,
    QMRSmoothedSolution,
    RepeatedClassicalGS,
    RepeatedSkew,
    SingleSkew,
    Solution,
    fqmr_idrs,
    givens_rotation,
)

__all__ = [
    # Linear Operator Classes
    "Diagonal",
    "FunctionOperator",
    "Identity",
    "LinearOperator",
    "Matrix",
    # Strategies
    "ClassicalGS",
    "MRSmoothedSolution",
    "ModifiedGS",
    "QMRSmoothedSolution",
    "RepeatedClassicalGS",
    "RepeatedSkew",
    "SingleSkew",
    "Solution",
    # Functions
    "config",
    "fqmr_idrs",
    "givens_rotation",
    "is_debug",
    "lsolve",
    "precondition",
    "set_debug",
    "utils",
]
