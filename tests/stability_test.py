import pytest
import numpy as np

from bulk_flux.constants import ZETA_M, ZETA_T, ProfileKind, StabilityRegime
from bulk_flux.stability import classify_stability, psi, profile


def _family_counts(masks, kind):
    if kind == ProfileKind.MOMENTUM:
        family = [masks.m_very_unstable, masks.m_unstable, masks.stable, masks.very_stable]
    else:
        family = [masks.t_very_unstable, masks.t_unstable, masks.stable, masks.very_stable]
    return np.sum(np.vstack(family).astype(int), axis=0)


class TestClassifyStability:
    """Tests for the stability regime partition"""

    def test_partition_random(self):
        """Every sample falls in exactly one bucket per threshold family"""
        rng = np.random.default_rng(7)
        zeta = np.concatenate([rng.uniform(-20, 20, 500), [ZETA_M, ZETA_T, 0.0, 1.0, -0.0]])
        masks = classify_stability(zeta)

        for kind in ProfileKind:
            counts = _family_counts(masks, kind)
            assert np.all(counts == 1), f"{kind.name} family is not a partition"

    def test_boundaries(self):
        """Boundary values follow the documented <, <= rules"""
        zeta = np.array([ZETA_M, ZETA_T, 0.0, 1.0, 1.0 + 1e-12, ZETA_M - 1e-12])
        masks = classify_stability(zeta)

        np.testing.assert_array_equal(
            masks.regimes(ProfileKind.MOMENTUM),
            [
                StabilityRegime.UNSTABLE,
                StabilityRegime.UNSTABLE,
                StabilityRegime.STABLE,
                StabilityRegime.STABLE,
                StabilityRegime.VERY_STABLE,
                StabilityRegime.VERY_UNSTABLE,
            ],
        )
        np.testing.assert_array_equal(
            masks.regimes(ProfileKind.SCALAR),
            [
                StabilityRegime.VERY_UNSTABLE,
                StabilityRegime.UNSTABLE,
                StabilityRegime.STABLE,
                StabilityRegime.STABLE,
                StabilityRegime.VERY_STABLE,
                StabilityRegime.VERY_UNSTABLE,
            ],
        )

    def test_custom_thresholds(self):
        masks = classify_stability(np.array([-0.5]), zeta_m=-0.4, zeta_t=-0.6)
        assert masks.m_very_unstable[0]
        assert masks.t_unstable[0]

    def test_scalar_input(self):
        masks = classify_stability(0.5)
        assert masks.stable.shape == (1,)
        assert masks.stable[0]

    def test_nan_unclassified(self):
        masks = classify_stability(np.array([np.nan]))
        assert masks.regimes(ProfileKind.MOMENTUM)[0] == 0
        assert masks.regimes(ProfileKind.SCALAR)[0] == 0

    def test_unstable_momentum(self):
        masks = classify_stability(np.array([-3.0, -0.1, 0.0, 3.0]))
        np.testing.assert_array_equal(masks.unstable_momentum, [True, True, False, False])


class TestPsi:
    """Tests for the integrated stability correction"""

    @pytest.mark.parametrize("kind", list(ProfileKind))
    def test_zero_at_neutral(self, kind):
        assert psi(kind, 0.0) == pytest.approx(0.0, abs=1e-12)

    def test_reference_values(self):
        """Hand-computed values at zeta = -1"""
        chi = 17.0**0.25
        expected_m = (
            2 * np.log((1 + chi) / 2) + np.log((1 + chi**2) / 2) - 2 * np.arctan(chi) + np.pi / 2
        )
        expected_h = 2 * np.log((1 + chi**2) / 2)

        assert psi(ProfileKind.MOMENTUM, -1.0) == pytest.approx(expected_m)
        assert psi(ProfileKind.SCALAR, -1.0) == pytest.approx(expected_h)
        assert psi(ProfileKind.MOMENTUM, -1.0) > 0
        assert psi(ProfileKind.SCALAR, -1.0) > psi(ProfileKind.MOMENTUM, -1.0)

    def test_vectorised(self):
        zeta = np.array([-5.0, -1.0, -0.1, 0.0])
        result = psi(ProfileKind.SCALAR, zeta)
        expected = [psi(ProfileKind.SCALAR, z) for z in zeta]
        np.testing.assert_allclose(result, expected)

    def test_real_part_outside_unstable_range(self):
        """Positive zeta beyond 1/16 stays real and finite"""
        result = psi(ProfileKind.MOMENTUM, np.array([0.5, 2.0]))
        assert np.all(np.isfinite(result))


class TestProfile:
    """Tests for the regime-dependent integrated log profile"""

    Z = 10.0
    Z0 = 1e-4

    def _profile(self, kind, zeta):
        zeta = np.atleast_1d(np.asarray(zeta, dtype=float))
        obu = self.Z / zeta
        z0 = np.full(zeta.shape, self.Z0)
        return profile(kind, zeta, obu, self.Z, z0, classify_stability(zeta))

    def test_stable_branch(self):
        result = self._profile(ProfileKind.MOMENTUM, 0.3)
        assert result[0] == pytest.approx(np.log(self.Z / self.Z0) + 1.5)

    def test_unstable_branch(self):
        result = self._profile(ProfileKind.SCALAR, -0.2)
        expected = np.log(self.Z / self.Z0) - psi(ProfileKind.SCALAR, -0.2)
        assert result[0] == pytest.approx(expected)

    @pytest.mark.parametrize("kind", list(ProfileKind))
    def test_continuous_at_stable_limit(self, kind):
        below, above = self._profile(kind, [1.0, 1.0 + 1e-9])
        assert above == pytest.approx(below, rel=1e-6)

    @pytest.mark.parametrize(
        "kind, threshold", [(ProfileKind.MOMENTUM, ZETA_M), (ProfileKind.SCALAR, ZETA_T)]
    )
    def test_continuous_at_convective_limit(self, kind, threshold):
        at, beyond = self._profile(kind, [threshold, threshold - 1e-9])
        assert beyond == pytest.approx(at, rel=1e-6)

    def test_very_unstable_momentum_value(self):
        """Free-convection form with the 1.14 coefficient at zeta = -5"""
        obu = self.Z / -5.0
        expected = (
            np.log(-1.574 * obu / self.Z0)
            - psi(ProfileKind.MOMENTUM, -1.574)
            + 1.14 * (5.0**0.333 - 1.574**0.333)
        )
        result = self._profile(ProfileKind.MOMENTUM, -5.0)
        assert result[0] == pytest.approx(expected, rel=1e-12)

    def test_very_unstable_scalar_value(self):
        """Free-convection form with the 0.8 coefficient at zeta = -5"""
        obu = self.Z / -5.0
        expected = (
            np.log(-0.465 * obu / self.Z0)
            - psi(ProfileKind.SCALAR, -0.465)
            + 0.8 * (0.465**-0.333 - 5.0**-0.333)
        )
        result = self._profile(ProfileKind.SCALAR, -5.0)
        assert result[0] == pytest.approx(expected, rel=1e-12)

    @pytest.mark.parametrize("kind", list(ProfileKind))
    def test_very_stable_value(self, kind):
        obu = self.Z / 3.0
        expected = np.log(obu / self.Z0) + 5 + 5 * np.log(3.0) + 3.0 - 1
        result = self._profile(kind, 3.0)
        assert result[0] == pytest.approx(expected, rel=1e-12)

    def test_very_unstable_finite(self):
        result = self._profile(ProfileKind.MOMENTUM, [-15.0, -5.0])
        assert np.all(np.isfinite(result))
        result = self._profile(ProfileKind.SCALAR, [-15.0, -5.0])
        assert np.all(np.isfinite(result))

    def test_nan_zeta(self):
        zeta = np.array([np.nan, 0.1])
        obu = np.array([np.nan, 100.0])
        z0 = np.full(2, self.Z0)
        result = profile(ProfileKind.MOMENTUM, zeta, obu, self.Z, z0, classify_stability(zeta))
        assert np.isnan(result[0])
        assert np.isfinite(result[1])
