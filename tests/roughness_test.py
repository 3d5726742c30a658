import logging

import pytest
import numpy as np

from bulk_flux.roughness import (
    RoughnessSolution,
    charnock_roughness,
    initial_friction_velocity,
    roughness_reynolds,
    scalar_roughness,
    solve_roughness_length,
    solve_roughness_lengths,
)

# Test Data Constants
GRAVITY = 9.81  # m/s^2
KIN_VISCOSITY = 1.5e-5  # m^2/s
HEIGHT = 10.0  # m


class TestRoughnessRelations:
    """Tests for the closed-form roughness relations"""

    def test_initial_friction_velocity(self):
        ustar = initial_friction_velocity(np.array([1.0, 5.0, 15.0]))
        assert np.all(np.diff(ustar) > 0)
        # u*/U follows the drag-law range of roughly 0.03-0.05
        ratio = ustar / np.array([1.0, 5.0, 15.0])
        assert np.all((ratio > 0.03) & (ratio < 0.05))

    def test_charnock(self):
        ustar = 0.3
        expected = 0.013 * ustar**2 / GRAVITY + 0.11 * KIN_VISCOSITY / ustar
        assert charnock_roughness(ustar, GRAVITY, KIN_VISCOSITY) == pytest.approx(expected)

    def test_scalar_roughness_clamp(self):
        """Clamping keeps z0t at or below z0 for smooth flow"""
        z0 = np.array([1e-4, 1e-4])
        reynolds = np.array([0.1, 5.0])
        unclamped = scalar_roughness(z0, reynolds)
        clamped = scalar_roughness(z0, reynolds, clamp=True)

        assert unclamped[0] > z0[0]
        assert clamped[0] == pytest.approx(z0[0])
        assert clamped[1] == pytest.approx(unclamped[1])
        assert clamped[1] < z0[1]

    def test_reynolds(self):
        assert roughness_reynolds(0.2, 1e-4, 1e-5) == pytest.approx(2.0)


class TestSolveRoughnessLength:
    """Tests for the per-sample neutral fixed-point iteration"""

    def _seed(self, wind_speed):
        ustar = float(initial_friction_velocity(wind_speed))
        return ustar, float(charnock_roughness(ustar, GRAVITY, KIN_VISCOSITY))

    @pytest.mark.parametrize("wind_speed", [0.2, 2.0, 5.0, 12.0, 25.0])
    def test_converges_quickly(self, wind_speed):
        ustar, z0 = self._seed(wind_speed)
        solution = solve_roughness_length(
            wind_speed, HEIGHT, ustar, z0, GRAVITY, KIN_VISCOSITY
        )

        assert isinstance(solution, RoughnessSolution)
        assert solution.converged
        assert 1 <= solution.iterations < 50

        # the fixed point satisfies both relations
        assert solution.ustar == pytest.approx(
            0.41 * wind_speed / np.log(HEIGHT / solution.z0), rel=1e-4
        )
        assert solution.z0 == pytest.approx(
            charnock_roughness(solution.ustar, GRAVITY, KIN_VISCOSITY), rel=1e-4
        )

    def test_iteration_cap(self):
        ustar, z0 = self._seed(5.0)
        solution = solve_roughness_length(
            5.0, HEIGHT, ustar, z0, GRAVITY, KIN_VISCOSITY, max_iterations=1
        )

        assert not solution.converged
        assert solution.iterations == 1
        assert np.isfinite(solution.ustar) and np.isfinite(solution.z0)

    def test_nan_roughness_not_converged(self):
        """A NaN iterate runs to the cap and is flagged"""
        ustar, z0 = self._seed(5.0)
        solution = solve_roughness_length(
            5.0, HEIGHT, ustar, z0, GRAVITY, np.nan, max_iterations=5
        )

        assert not solution.converged
        assert solution.iterations == 5
        assert np.isnan(solution.z0)


class TestSolveRoughnessLengths:
    """Tests for the batched neutral roughness estimate"""

    def test_batch(self):
        wind = np.array([1.0, 5.0, 10.0])
        ustar, z0, iterations, converged = solve_roughness_lengths(
            wind, HEIGHT, GRAVITY, np.full(3, KIN_VISCOSITY)
        )

        assert converged.all()
        assert np.all(iterations < 50)
        assert np.all(ustar > 0)
        assert np.all(z0 > 0)

    def test_samples_independent(self):
        """A sample's result does not depend on its neighbours"""
        single = solve_roughness_lengths(
            np.array([5.0]), HEIGHT, GRAVITY, np.array([KIN_VISCOSITY])
        )
        batch = solve_roughness_lengths(
            np.array([1.0, 5.0, 20.0]), HEIGHT, GRAVITY, np.full(3, KIN_VISCOSITY)
        )
        assert batch[0][1] == pytest.approx(single[0][0], rel=1e-12)
        assert batch[1][1] == pytest.approx(single[1][0], rel=1e-12)

    def test_non_convergence_logged(self, caplog):
        with caplog.at_level(logging.WARNING, logger="bulk_flux.roughness"):
            _, _, iterations, converged = solve_roughness_lengths(
                np.array([5.0, 8.0]),
                HEIGHT,
                GRAVITY,
                np.full(2, KIN_VISCOSITY),
                max_iterations=1,
            )

        assert not converged.any()
        assert np.all(iterations == 1)
        assert "did not converge for 2 of 2 samples" in caplog.text
