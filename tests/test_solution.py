# test_solution.py

"""Tests for the iterate updates and the residual smoothing schemes."""

import jax
import jax.numpy as jnp
import pytest

from idrox import MRSmoothedSolution, QMRSmoothedSolution, Solution
from idrox._algorithms import make_solution

jax.config.update("jax_enable_x64", True)

DTYPE = jnp.float64


class TestSolution:
    """The plain QMR update."""

    def test_update_and_estimate(self) -> None:
        sol = Solution(jnp.zeros(3, dtype=DTYPE), 2.0, 1e-6, max_it=5)
        w = jnp.array([1.0, 2.0, 3.0], dtype=DTYPE)

        sol.update(w, jnp.asarray(0.5), jnp.asarray(-0.25), j=3)

        assert jnp.allclose(sol.x, 0.5 * w)
        assert sol.rho.shape == (2,)
        assert sol.rho[0] == 2.0
        assert float(sol.rho[1]) == pytest.approx(0.25 * 2.0)

    def test_convergence_is_strict(self) -> None:
        sol = Solution(jnp.zeros(2, dtype=DTYPE), 2.0, 0.5, max_it=3)
        assert not sol.is_converged()

        # Estimate exactly at tol * rho0 == 1.0
        sol.update(jnp.zeros(2, dtype=DTYPE), jnp.asarray(0.0), jnp.asarray(1.0), j=0)
        assert sol.rho[-1] == 1.0
        assert not sol.is_converged()

        sol.update(jnp.zeros(2, dtype=DTYPE), jnp.asarray(0.0), jnp.asarray(0.999), j=0)
        assert sol.is_converged()

    def test_result(self) -> None:
        x0 = jnp.ones(2, dtype=DTYPE)
        x, rho = Solution(x0, 1.0, 1e-8, max_it=10).result()
        assert jnp.array_equal(x, x0)
        assert rho.shape == (1,)


@pytest.mark.parametrize("cls", [QMRSmoothedSolution, MRSmoothedSolution])
class TestSmoothedSolution:
    """Smoothing along a fixed sequence of raw iterates."""

    def test_requires_residual(self, cls) -> None:
        with pytest.raises(ValueError, match="initial residual"):
            cls(jnp.zeros(2, dtype=DTYPE), 1.0, 1e-8, max_it=2)

    def test_smoothed_residual_is_consistent(self, cls) -> None:
        A = jnp.array([[3.0, 1.0], [0.5, 2.0]], dtype=DTYPE)
        b = jnp.array([1.0, -1.0], dtype=DTYPE)
        x0 = jnp.zeros(2, dtype=DTYPE)
        sol = cls(x0, jnp.linalg.norm(b), 1e-12, max_it=4, r0=b)

        directions = [jnp.array([1.0, 0.0]), jnp.array([0.0, 1.0]), jnp.array([1.0, 1.0])]
        for k, w in enumerate(directions):
            w = w.astype(DTYPE)  # noqa: PLW2901
            sol.update(w, jnp.asarray(0.3 * (k + 1)), None, 0, aw=A @ w)

            # Raw and smoothed residuals belong to their iterates
            assert jnp.allclose(sol.r, b - A @ sol.x)
            assert jnp.allclose(sol.s, b - A @ sol.y)
            assert float(sol.rho[-1]) == pytest.approx(float(jnp.linalg.norm(sol.s)))

    def test_smoothed_residual_does_not_exceed_raw(self, cls) -> None:
        A = jnp.diag(jnp.array([1.0, 4.0], dtype=DTYPE))
        b = jnp.array([1.0, 1.0], dtype=DTYPE)
        sol = cls(jnp.zeros(2, dtype=DTYPE), jnp.linalg.norm(b), 1e-12, max_it=3, r0=b)

        # A step that overshoots and increases the raw residual
        w = jnp.array([0.0, 1.0], dtype=DTYPE)
        sol.update(w, jnp.asarray(3.0), None, 0, aw=A @ w)

        assert jnp.linalg.norm(sol.r) > jnp.linalg.norm(b)
        assert jnp.linalg.norm(sol.s) <= jnp.linalg.norm(b) + 1e-12

    def test_result_is_smoothed_iterate(self, cls) -> None:
        b = jnp.array([1.0, 2.0], dtype=DTYPE)
        sol = cls(jnp.zeros(2, dtype=DTYPE), jnp.linalg.norm(b), 1e-12, max_it=2, r0=b)
        sol.update(jnp.ones(2, dtype=DTYPE), jnp.asarray(0.5), None, 0, aw=jnp.ones(2))
        x, rho = sol.result()
        assert jnp.array_equal(x, sol.y)
        assert rho.shape == (2,)


def test_mr_smoothing_minimizes_over_complex_steps() -> None:
    A = jnp.array([[2.0 + 1.0j, 0.5], [0.3j, 1.0 - 0.5j]], dtype=jnp.complex128)
    b = jnp.array([1.0 + 0.5j, -1.0j], dtype=jnp.complex128)
    sol = MRSmoothedSolution(
        jnp.zeros(2, dtype=jnp.complex128), jnp.linalg.norm(b), 1e-12, max_it=2, r0=b
    )

    w = jnp.array([0.2 - 0.7j, 1.0 + 0.1j], dtype=jnp.complex128)
    s_old = sol.s
    sol.update(w, jnp.asarray(0.8 + 0.4j), None, 0, aw=A @ w)

    # The minimizer leaves s orthogonal to the direction d = r - s_old
    d = sol.r - s_old
    assert jnp.abs(jnp.vdot(d, sol.s)) < 1e-12
    assert jnp.allclose(sol.s, b - A @ sol.y)


def test_make_solution() -> None:
    assert make_solution(None) is Solution
    assert make_solution("qmr") is QMRSmoothedSolution
    assert make_solution("MR") is MRSmoothedSolution
    with pytest.raises(ValueError, match="Unknown smoothing"):
        make_solution("exact")
