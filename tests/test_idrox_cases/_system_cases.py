# _system_cases.py

import jax
import jax.numpy as jnp
import pytest
import pytest_cases

DTYPE = jnp.float64
CASE_TYPE = tuple[jax.Array, jax.Array]


def sample_diagonally_dominant(n: int, seed: int = 0) -> CASE_TYPE:
    key_a, key_b = jax.random.split(jax.random.PRNGKey(seed))
    A = jax.random.normal(key_a, (n, n), dtype=DTYPE) + n * jnp.eye(n, dtype=DTYPE)
    b = jax.random.normal(key_b, (n,), dtype=DTYPE)
    return A, b


def sample_convection_diffusion(n: int, c: float = 0.4) -> CASE_TYPE:
    # Shifted upwind-like 1D stencil, non-symmetric for c != 0
    A = (
        3.0 * jnp.eye(n, dtype=DTYPE)
        - (1.0 + c) * jnp.eye(n, k=-1, dtype=DTYPE)
        - (1.0 - c) * jnp.eye(n, k=1, dtype=DTYPE)
    )
    b = jnp.ones(n, dtype=DTYPE)
    return A, b


def sample_complex(n: int, seed: int = 3) -> CASE_TYPE:
    key_re, key_im, key_b = jax.random.split(jax.random.PRNGKey(seed), 3)
    A = (
        jax.random.normal(key_re, (n, n), dtype=DTYPE)
        + 1j * jax.random.normal(key_im, (n, n), dtype=DTYPE)
        + 2.0 * n * jnp.eye(n, dtype=DTYPE)
    )
    b = jax.random.normal(key_b, (n,), dtype=DTYPE) * (1.0 + 0.5j)
    return A, b


@pytest_cases.case(id="diag_dominant")
@pytest.mark.parametrize("seed", [0, 1])
def case_diagonally_dominant(seed: int) -> CASE_TYPE:
    return sample_diagonally_dominant(50, seed)


@pytest_cases.case(id="convection_diffusion")
def case_convection_diffusion() -> CASE_TYPE:
    return sample_convection_diffusion(60)


@pytest_cases.case(id="complex")
def case_complex() -> CASE_TYPE:
    return sample_complex(40)
