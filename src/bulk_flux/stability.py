"""
Atmospheric stability classification and Monin-Obukhov similarity profiles.

This module implements the stability treatment of Zeng et al. (1998):

1. Partition of samples by ζ = z/L into very unstable, unstable, stable and
   very stable regimes (separately for momentum and for heat/humidity)
2. The integrated stability correction ψ for the unstable range
3. The integrated log-profile used to turn a mean difference into a
   scaling parameter (u*, t*, q*) and back

References:
    Zeng, X., Zhao, M., Dickinson, R.E. (1998) Intercomparison of bulk
    aerodynamic algorithms for the computation of sea surface fluxes using
    TOGA COARE and TAO data. Journal of Climate 11: 2628-2644.
"""

from dataclasses import dataclass
from typing import Union

import numpy as np

from .constants import (
    CONVECTIVE_EXPONENT,
    ZETA_M,
    ZETA_T,
    ProfileKind,
    StabilityRegime,
)
from .utils import real_power

# Free-convection coefficients of the very unstable profiles
_FREE_CONVECTION_COEF = {
    ProfileKind.MOMENTUM: 1.14,
    ProfileKind.SCALAR: 0.8,
}


@dataclass
class StabilityMasks:
    """
    Boolean regime masks for an array of stability parameters.

    The momentum family (``m_very_unstable``, ``m_unstable``, ``stable``,
    ``very_stable``) and the heat/humidity family (``t_very_unstable``,
    ``t_unstable``, ``stable``, ``very_stable``) each put every finite ζ in
    exactly one bucket. NaN belongs to no bucket.
    """

    m_very_unstable: np.ndarray  # ζ < ζ_m
    m_unstable: np.ndarray  # ζ_m ≤ ζ < 0
    t_very_unstable: np.ndarray  # ζ < ζ_t
    t_unstable: np.ndarray  # ζ_t ≤ ζ < 0
    stable: np.ndarray  # 0 ≤ ζ ≤ 1
    very_stable: np.ndarray  # ζ > 1

    def regimes(self, kind: ProfileKind) -> np.ndarray:
        """
        Regime label per sample for one threshold family.

        Args:
            kind: ProfileKind.MOMENTUM for the ζ_m family, ProfileKind.SCALAR
                for the ζ_t family

        Returns:
            Integer array of StabilityRegime values; 0 where ζ is NaN
        """
        if kind == ProfileKind.MOMENTUM:
            very_unstable, unstable = self.m_very_unstable, self.m_unstable
        else:
            very_unstable, unstable = self.t_very_unstable, self.t_unstable

        labels = np.zeros(self.stable.shape, dtype=int)
        labels[very_unstable] = StabilityRegime.VERY_UNSTABLE
        labels[unstable] = StabilityRegime.UNSTABLE
        labels[self.stable] = StabilityRegime.STABLE
        labels[self.very_stable] = StabilityRegime.VERY_STABLE
        return labels

    @property
    def unstable_momentum(self) -> np.ndarray:
        """Samples in either unstable momentum regime"""
        return self.m_very_unstable | self.m_unstable


def classify_stability(
    zeta: Union[float, np.ndarray],
    zeta_m: float = ZETA_M,
    zeta_t: float = ZETA_T,
) -> StabilityMasks:
    """
    Partition stability parameters into Zeng et al. (1998) regimes.

    Parameters
    ----------
    zeta : float or ndarray
        Stability parameter ζ = z/L.
    zeta_m : float, default -1.574
        Momentum very-unstable threshold.
    zeta_t : float, default -0.465
        Heat/humidity very-unstable threshold.

    Returns
    -------
    StabilityMasks
        Six boolean masks with the shape of *zeta*.

    Examples
    --------
    >>> masks = classify_stability(np.array([-2.0, -1.0, 0.0, 1.0, 2.0]))
    >>> masks.regimes(ProfileKind.MOMENTUM)
    array([1, 2, 3, 3, 4])
    >>> masks.regimes(ProfileKind.SCALAR)
    array([1, 1, 3, 3, 4])
    """
    zeta = np.atleast_1d(np.asarray(zeta, dtype=float))

    return StabilityMasks(
        m_very_unstable=zeta < zeta_m,
        m_unstable=(zeta < 0) & (zeta >= zeta_m),
        t_very_unstable=zeta < zeta_t,
        t_unstable=(zeta < 0) & (zeta >= zeta_t),
        stable=(zeta >= 0) & (zeta <= 1),
        very_stable=zeta > 1,
    )


def psi(kind: ProfileKind, zeta: Union[float, np.ndarray]) -> Union[float, np.ndarray]:
    """
    Integrated stability correction of Zeng et al. (1998), unstable form.

    With :math:`\\chi = (1 - 16\\zeta)^{1/4}`

    .. math::

        \\psi_m = 2\\ln\\frac{1+\\chi}{2} + \\ln\\frac{1+\\chi^2}{2}
                  - 2\\arctan\\chi + \\frac{\\pi}{2}

        \\psi_h = 2\\ln\\frac{1+\\chi^2}{2}

    Parameters
    ----------
    kind : ProfileKind
        ``MOMENTUM`` (1) or ``SCALAR`` (2).
    zeta : float or ndarray
        Stability parameter. Meant for ζ ≤ 0; for ζ > 1/16 χ is taken as
        the real part of the complex fourth root.

    Returns
    -------
    float or ndarray
        ψ, zero at ζ = 0.
    """
    chi = real_power(1 - 16 * np.asarray(zeta, dtype=float), 0.25)

    if kind == ProfileKind.MOMENTUM:
        return (
            2 * np.log((1 + chi) * 0.5)
            + np.log((1 + chi * chi) * 0.5)
            - 2 * np.arctan(chi)
            + np.pi / 2
        )
    return 2 * np.log((1 + chi * chi) * 0.5)


def _very_unstable(kind, zeta, obu, z0, threshold):
    coef = _FREE_CONVECTION_COEF[kind]
    base = np.log(threshold * obu / z0) - psi(kind, threshold)
    if kind == ProfileKind.MOMENTUM:
        convective = real_power(-zeta, CONVECTIVE_EXPONENT) - real_power(
            -threshold, CONVECTIVE_EXPONENT
        )
    else:
        convective = real_power(-threshold, -CONVECTIVE_EXPONENT) - real_power(
            -zeta, -CONVECTIVE_EXPONENT
        )
    return base + coef * convective


def _unstable(kind, zeta, z, z0):
    return np.log(z / z0) - psi(kind, zeta)


def _stable(zeta, z, z0):
    return np.log(z / z0) + 5 * zeta


def _very_stable(zeta, obu, z0):
    return (np.log(obu / z0) + 5) + (5 * np.log(zeta) + zeta - 1)


def profile(
    kind: ProfileKind,
    zeta: np.ndarray,
    obu: np.ndarray,
    z: Union[float, np.ndarray],
    z0: np.ndarray,
    masks: StabilityMasks,
    zeta_m: float = ZETA_M,
    zeta_t: float = ZETA_T,
) -> np.ndarray:
    """
    Stability-corrected integrated log-profile between z0 and z.

    The scaling parameter of a quantity with surface-to-height difference
    ΔX follows as ``κ ΔX / profile`` and the value at height z as
    ``X_s + X* / κ * profile``.

    ==============  ====================================================
    Regime          Profile
    --------------  ----------------------------------------------------
    very unstable   ln(ζ_c L / z0) − ψ(ζ_c) + free-convection term
    unstable        ln(z / z0) − ψ(ζ)
    stable          ln(z / z0) + 5ζ
    very stable     ln(L / z0) + 5 + 5 ln ζ + ζ − 1
    ==============  ====================================================

    ζ_c is ζ_m for momentum and ζ_t for scalars. The free-convection term
    is ``1.14 ((−ζ)^⅓ − (−ζ_m)^⅓)`` for momentum and
    ``0.8 ((−ζ_t)^−⅓ − (−ζ)^−⅓)`` for scalars.

    Parameters
    ----------
    kind : ProfileKind
        Momentum or scalar (heat/humidity) profile.
    zeta : ndarray
        Clamped stability parameter z/L.
    obu : ndarray
        Obukhov length L (m).
    z : float or ndarray
        Height of the profile top (m).
    z0 : ndarray
        Roughness length for the quantity (m).
    masks : StabilityMasks
        Classification of *zeta*.
    zeta_m, zeta_t : float
        Very-unstable thresholds.

    Returns
    -------
    ndarray
        Profile value per sample; NaN where the sample has no regime.
    """
    threshold = zeta_m if kind == ProfileKind.MOMENTUM else zeta_t
    z = np.broadcast_to(np.asarray(z, dtype=float), zeta.shape)
    labels = masks.regimes(kind)

    out = np.full(zeta.shape, np.nan)
    for regime in StabilityRegime:
        idx = labels == regime
        if not np.any(idx):
            continue
        if regime == StabilityRegime.VERY_UNSTABLE:
            out[idx] = _very_unstable(kind, zeta[idx], obu[idx], z0[idx], threshold)
        elif regime == StabilityRegime.UNSTABLE:
            out[idx] = _unstable(kind, zeta[idx], z[idx], z0[idx])
        elif regime == StabilityRegime.STABLE:
            out[idx] = _stable(zeta[idx], z[idx], z0[idx])
        else:
            out[idx] = _very_stable(zeta[idx], obu[idx], z0[idx])
    return out
