# test_linear_operator.py

"""Tests for the linear operators, their solves and preconditioning."""

import jax
import jax.numpy as jnp
import pytest
import pytest_cases

import idrox
from idrox import lsolve, precondition
from idrox.utils import as_linop
from tests.test_idrox_cases._linops_cases import (
    case_diagonal,
    case_function_operator,
    case_identity,
    case_matrix,
)

case_modules = [
    case_matrix,
    case_identity,
    case_diagonal,
    case_function_operator,
]

solve_cases = [case_matrix, case_identity, case_diagonal]


@pytest.fixture(
    params=[
        pytest.param(seed, id=f"seed{seed}")
        for seed in [
            42,
        ]
    ],
)
def key(request) -> jax.Array:
    return jax.random.PRNGKey(request.param)


@pytest_cases.parametrize_with_cases("linop,matrix", cases=case_modules)
def test_case_valid(linop: idrox.LinearOperator, matrix: jax.Array) -> None:
    assert isinstance(linop, idrox.LinearOperator)
    assert linop.shape == matrix.shape
    assert linop.size == matrix.size
    assert linop.ndim == 2
    assert linop.dtype == matrix.dtype


@pytest_cases.parametrize_with_cases("linop,matrix", cases=case_modules)
def test_matvec(
    linop: idrox.LinearOperator,
    matrix: jax.Array,
    key: jax.Array,
) -> None:
    vec = jax.random.normal(key=key, shape=(linop.shape[1],), dtype=matrix.dtype)

    linop_matvec = linop @ vec
    matrix_matvec = matrix @ vec

    assert linop_matvec.ndim == 1
    assert linop_matvec.shape == matrix_matvec.shape
    assert jnp.allclose(linop_matvec, matrix_matvec, rtol=1e-5, atol=1e-4)
    assert jnp.allclose(linop(vec), linop_matvec)


@pytest_cases.parametrize_with_cases("linop,matrix", cases=case_modules)
def test_matmat(
    linop: idrox.LinearOperator,
    matrix: jax.Array,
    key: jax.Array,
) -> None:
    mat = jax.random.normal(key=key, shape=(linop.shape[1], 3), dtype=matrix.dtype)

    assert (linop @ mat).shape == (linop.shape[0], 3)
    assert jnp.allclose(linop @ mat, matrix @ mat, rtol=1e-5, atol=1e-4)


@pytest_cases.parametrize_with_cases("linop,matrix", cases=case_modules)
def test_todense(linop: idrox.LinearOperator, matrix: jax.Array) -> None:
    assert jnp.allclose(linop.todense(), matrix)


@pytest_cases.parametrize_with_cases("linop,matrix", cases=case_modules)
def test_matmul_shape_mismatch(linop: idrox.LinearOperator, matrix: jax.Array) -> None:
    vec = jnp.ones(linop.shape[1] + 1, dtype=matrix.dtype)
    with pytest.raises(ValueError, match="expected other.shape"):
        linop @ vec


@pytest_cases.parametrize_with_cases("linop,matrix", cases=solve_cases)
def test_lsolve(
    linop: idrox.LinearOperator,
    matrix: jax.Array,
    key: jax.Array,
) -> None:
    b = jax.random.normal(key=key, shape=(linop.shape[0],), dtype=matrix.dtype)
    x = lsolve(linop, b)
    assert jnp.allclose(matrix @ x, b, rtol=1e-4, atol=1e-4)


def test_lsolve_function_operator_densifies() -> None:
    matrix = jnp.array([[2.0, 1.0], [0.0, 4.0]])
    linop = idrox.FunctionOperator(lambda v: matrix @ v, shape=(2, 2), dtype=matrix.dtype)
    b = jnp.array([3.0, 4.0])
    assert jnp.allclose(lsolve(linop, b), jnp.linalg.solve(matrix, b))


def test_lsolve_shape_mismatch() -> None:
    linop = idrox.FunctionOperator(lambda v: v, shape=(3, 3), dtype=jnp.float32)
    with pytest.raises(ValueError, match="Shape mismatch"):
        lsolve(linop, jnp.ones(2))


@pytest.mark.parametrize("dim", [1, 4, 7])
def test_identity_precondition_is_exact_copy(dim: int) -> None:
    v = jax.random.normal(jax.random.PRNGKey(dim), (dim,))
    vhat = precondition(idrox.Identity(dim, dtype=v.dtype), v)
    assert jnp.array_equal(vhat, v)
    assert vhat.dtype == v.dtype


def test_precondition_diagonal() -> None:
    d = jnp.array([2.0, 4.0, 8.0])
    v = jnp.array([1.0, 1.0, 1.0])
    assert jnp.allclose(precondition(idrox.Diagonal(d), v), v / d)


def test_precondition_array_is_inverted() -> None:
    P = jnp.array([[2.0, 0.0], [1.0, 1.0]])
    v = jnp.array([2.0, 3.0])
    assert jnp.allclose(P @ precondition(P, v), v)


def test_precondition_callable_is_applied() -> None:
    calls = []

    def flexible(v: jax.Array) -> jax.Array:
        calls.append(1)
        return 0.5 * len(calls) * v

    v = jnp.ones(3)
    assert jnp.allclose(precondition(flexible, v), 0.5 * v)
    assert jnp.allclose(precondition(flexible, v), v)


class TestAsLinop:
    """Tests for :func:`idrox.utils.as_linop`."""

    def test_linear_operator_passthrough(self) -> None:
        linop = idrox.Identity(3)
        assert as_linop(linop) is linop

    def test_array(self) -> None:
        linop = as_linop(jnp.eye(3))
        assert isinstance(linop, idrox.Matrix)
        assert linop.shape == (3, 3)

    def test_callable(self) -> None:
        linop = as_linop(lambda v: 2.0 * v, shape=(4, 4), dtype=jnp.float32)
        assert isinstance(linop, idrox.FunctionOperator)
        assert jnp.allclose(linop @ jnp.ones(4), 2.0 * jnp.ones(4))

    def test_callable_without_shape(self) -> None:
        with pytest.raises(TypeError, match="explicit shape"):
            as_linop(lambda v: v)

    def test_invalid(self) -> None:
        with pytest.raises(TypeError, match="not a valid linear operator"):
            as_linop("not an operator")


@pytest_cases.parametrize_with_cases("linop,matrix", cases=case_modules)
def test_pytree_roundtrip(linop: idrox.LinearOperator, matrix: jax.Array) -> None:
    """Test that linear operators can be flattened, unflattened and jitted."""
    del matrix
    flat, treedef = jax.tree.flatten(linop)
    unflattened = jax.tree.unflatten(treedef, flat)

    assert isinstance(unflattened, type(linop))
    assert unflattened.shape == linop.shape
    assert unflattened.dtype == linop.dtype

    vector = jnp.ones(linop.shape[-1], dtype=linop.dtype)

    @jax.jit
    def apply(op: idrox.LinearOperator, v: jax.Array) -> jax.Array:
        return op @ v

    assert jnp.allclose(apply(linop, vector), linop @ vector)
