"""
Bulk-aerodynamic flux solver for water surfaces (Zeng et al. 1998).

Computes momentum, sensible and latent heat fluxes together with friction
velocity, temperature/humidity scales, Obukhov length, 10 m equivalents,
transfer coefficients and evaporation from bulk observations of surface
temperature, wind speed, air temperature and relative humidity.

The calculation proceeds in stages:

1. Thermodynamic state (pressure, humidities, density, viscosity)
2. Neutral u* and z0 from a per-sample fixed-point iteration
3. Neutral transfer coefficients, fluxes and a first Obukhov length
4. A fixed number of stability-correction passes, each updating the
   roughness lengths, u*, t*, q*, 10 m values, fluxes, L and the
   free-convection gustiness of the wind
5. 10 m substitutions, relative humidity at 10 m and evaporation

References:
    Zeng, X., Zhao, M., Dickinson, R.E. (1998) Intercomparison of bulk
    aerodynamic algorithms for the computation of sea surface fluxes using
    TOGA COARE and TAO data. Journal of Climate 11: 2628-2644.
"""

import logging
from typing import Dict, Optional, Tuple, Union

import numpy as np
import pandas as pd

from .constants import (
    CONVECTIVE_EXPONENT,
    MIN_GUST_WIND_SPEED,
    MIN_WIND_SPEED,
    REFERENCE_HEIGHT,
    T_ZERO_C,
    FluxConstants,
    ProfileKind,
    SolverConfig,
)
from .roughness import (
    charnock_roughness,
    roughness_reynolds,
    scalar_roughness,
    solve_roughness_lengths,
)
from .stability import StabilityMasks, classify_stability, profile
from .thermodynamics import ThermodynamicState, relative_humidity, water_density
from .utils import broadcast_samples, real_power

logger = logging.getLogger(__name__)

ArrayLike = Union[float, np.ndarray, pd.Series]

OUTPUT_COLUMNS = [
    "tau",
    "alh",
    "ash",
    "ustar",
    "tstar",
    "qstar",
    "u10",
    "t10",
    "q10",
    "rh10",
    "zo",
    "zot",
    "zoq",
    "zo_n",
    "zot_n",
    "zoq_n",
    "C_D",
    "C_E",
    "C_H",
    "C_D10",
    "C_E10",
    "C_H10",
    "C_D10N",
    "C_E10N",
    "C_H10N",
    "C_DN",
    "C_EN",
    "C_HN",
    "zeta",
    "Evap",
    "rho_a",
    "q_s",
    "ts",
    "ta",
    "q_z",
    "rho_w",
    "xlv",
    "obu",
    "roughness_iterations",
    "converged",
]


def obukhov_length(
    rho_a: np.ndarray,
    t_virt: np.ndarray,
    ustar: np.ndarray,
    ash: np.ndarray,
    alh: np.ndarray,
    ta: np.ndarray,
    xlv: np.ndarray,
    const: FluxConstants,
) -> np.ndarray:
    """
    Obukhov length from the surface fluxes.

    .. math::

        L = \\frac{-\\rho T_v u_*^3}
                  {\\kappa g \\left(H / c_p + 0.61\\,T\\,E / L_v\\right)}

    Parameters
    ----------
    rho_a : ndarray
        Air density (kg m⁻³).
    t_virt : ndarray
        Virtual air temperature (K).
    ustar : ndarray
        Friction velocity (m s⁻¹).
    ash, alh : ndarray
        Sensible and latent heat flux (W m⁻²), positive upward.
    ta : ndarray
        Air temperature (°C).
    xlv : ndarray
        Latent heat of vaporization (J kg⁻¹).
    const : FluxConstants
        Constants of the run.

    Returns
    -------
    ndarray
        Obukhov length L (m); negative when the surface layer is unstable.
    """
    buoyancy = ash / const.specific_heat + 0.61 * (ta + T_ZERO_C) * alh / xlv
    return (-rho_a * t_virt * ustar**3) / (const.von_karman * const.gravity * buoyancy)


def _keep_undefined(old: np.ndarray, new: np.ndarray, prof: np.ndarray) -> np.ndarray:
    # samples without a regime keep their previous value
    return np.where(np.isnan(prof), old, new)


class BulkFluxSolver:
    """
    Iterative bulk flux solver for lake and sea surfaces.

    Parameters
    ----------
    config : SolverConfig, optional
        Iteration settings. If omitted, one is built from ``**kwargs``.
    **kwargs
        Fields of :class:`SolverConfig`, e.g. ``outer_iterations=30``.

    Examples
    --------
    >>> solver = BulkFluxSolver()
    >>> out = solver.run(ts=[20.0], Uz=[5.0], ta=[18.0], rh=[70.0],
    ...                  hu=10, ht=10, hq=10, alt=100, lat=45)
    >>> float(out["u10"].iloc[0])
    5.0
    """

    def __init__(self, config: Optional[SolverConfig] = None, **kwargs):
        self.config = config if config is not None else SolverConfig(**kwargs)

    @staticmethod
    def _validate_inputs(data: Dict[str, np.ndarray]) -> None:
        """
        Validate broadcast inputs.

        Raises:
            ValueError: If heights are not positive, altitude is negative or
                relative humidity lies outside [0, 100]
        """
        for name in ("hu", "ht", "hq"):
            if np.any(data[name] <= 0):
                raise ValueError(f"Measurement height '{name}' must be positive")
        if np.any(data["alt"] < 0):
            raise ValueError("Altitude cannot be negative")
        if np.any((data["rh"] < 0) | (data["rh"] > 100)):
            raise ValueError("Relative humidity must be between 0 and 100 %")

    def _stability(self, height, obu) -> Tuple[np.ndarray, StabilityMasks]:
        """Clamped ζ = height / L and its regime masks."""
        limit = self.config.zeta_limit
        zeta = np.clip(height / obu, -limit, limit)
        return zeta, classify_stability(zeta, self.config.zeta_m, self.config.zeta_t)

    def _profile(self, kind, zeta, obu, height, z0, masks) -> np.ndarray:
        return profile(
            kind, zeta, obu, height, z0, masks, self.config.zeta_m, self.config.zeta_t
        )

    def run(
        self,
        ts: ArrayLike,
        Uz: ArrayLike,
        ta: ArrayLike,
        rh: ArrayLike,
        hu: ArrayLike = REFERENCE_HEIGHT,
        ht: ArrayLike = REFERENCE_HEIGHT,
        hq: ArrayLike = REFERENCE_HEIGHT,
        alt: ArrayLike = 0.0,
        lat: ArrayLike = 45.0,
        lat_units: str = "degrees",
    ) -> pd.DataFrame:
        """
        Compute turbulent fluxes and related quantities.

        Parameters
        ----------
        ts : float, array_like or Series
            Surface (water) temperature, °C.
        Uz : float, array_like or Series
            Wind speed at height *hu*, m s⁻¹. Values below 0.2 are raised
            to 0.2.
        ta : float, array_like or Series
            Air temperature at height *ht*, °C.
        rh : float, array_like or Series
            Relative humidity at height *hq*, %, within [0, 100].
        hu, ht, hq : float or array_like, default 10
            Measurement heights of wind, temperature and humidity, m.
        alt : float or array_like, default 0
            Altitude of the water surface, m.
        lat : float or array_like, default 45
            Latitude.
        lat_units : {'degrees', 'radians'}, default ``'degrees'``
            Units of *lat*.

        Returns
        -------
        pandas.DataFrame
            One row per sample with the columns of :data:`OUTPUT_COLUMNS`.
            Fluxes are in W m⁻² (``alh``, ``ash``, positive upward) and
            N m⁻² (``tau``), evaporation ``Evap`` in mm day⁻¹. The index is
            taken from the first :class:`pandas.Series` input, if any.

            Fluxes, scaling parameters and 10 m values are finite for valid
            input. Ratio columns are not: ``C_H``, ``C_E``, ``C_H10`` and
            ``C_E10`` are NaN where the surface-air temperature or humidity
            difference vanishes (e.g. ``ts == ta`` with saturated air), and
            ``obu`` is infinite where both buoyancy fluxes are zero.

        Raises
        ------
        ValueError
            If inputs cannot be broadcast to a common length, contain
            non-finite values, or fall outside their valid ranges.
        """
        index = next(
            (x.index for x in (ts, Uz, ta, rh) if isinstance(x, pd.Series)), None
        )

        data = broadcast_samples(
            ts=ts, Uz=Uz, ta=ta, rh=rh, hu=hu, ht=ht, hq=hq, alt=alt, lat=lat
        )
        self._validate_inputs(data)
        const = FluxConstants.for_site(data["lat"], data["alt"], lat_units)

        n = data["ts"].shape[0]
        if index is not None and len(index) != n:
            index = None
        logger.info("Solving bulk fluxes for %d samples", n)

        with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
            result = self._solve(data, const)

        return pd.DataFrame(result, columns=OUTPUT_COLUMNS, index=index)

    def _solve(self, data: Dict[str, np.ndarray], const: FluxConstants) -> Dict[str, np.ndarray]:
        cfg = self.config
        ts, ta, rh = data["ts"], data["ta"], data["rh"]
        hu, ht, hq = data["hu"], data["ht"], data["hq"]
        n = ts.shape[0]

        Uz = np.maximum(data["Uz"], MIN_WIND_SPEED)
        init_wnd = Uz.copy()

        k = const.von_karman
        cp = const.specific_heat
        g = np.broadcast_to(const.gravity, (n,))

        thermo = ThermodynamicState.from_observations(ts, ta, rh, data["alt"])
        rho_a, xlv, KinV = thermo.rho_a, thermo.xlv, thermo.KinV
        q_s, q_z = thermo.q_s, thermo.q_z

        # neutral first guess
        ustar, zo, iterations, converged = solve_roughness_lengths(
            Uz,
            hu,
            g,
            KinV,
            tolerance=cfg.roughness_tolerance,
            max_iterations=cfg.max_roughness_iterations,
            von_karman=k,
            charnock=const.charnock,
        )

        C_DN = ustar**2 / Uz**2
        zot = scalar_roughness(zo, roughness_reynolds(ustar, zo, KinV))
        zoq = zot
        C_HN = k * np.sqrt(C_DN) / np.log(hu / zot)
        C_EN = C_HN

        C_D10N = (k / np.log(REFERENCE_HEIGHT / zo)) ** 2
        C_E10N = k * k / (np.log(REFERENCE_HEIGHT / zo) * np.log(REFERENCE_HEIGHT / zoq))
        C_H10N = C_E10N
        zo_n, zot_n, zoq_n = zo.copy(), zot.copy(), zoq.copy()

        alhN = rho_a * xlv * C_EN * Uz * (q_s - q_z)
        ashN = rho_a * cp * C_HN * Uz * (ts - ta)
        obu = obukhov_length(rho_a, thermo.t_virt, ustar, ashN, alhN, ta, xlv, const)

        tstar = np.zeros(n)
        qstar = np.zeros(n)
        u10 = np.zeros(n)
        t10 = np.zeros(n)
        q10 = np.zeros(n)
        tau = ash = alh = None

        for i in range(cfg.outer_iterations):
            previous = (tau, ash, alh)

            zo = charnock_roughness(ustar, g, KinV, const.charnock)
            zoq = scalar_roughness(zo, roughness_reynolds(ustar, zo, KinV), clamp=True)
            zot = zoq

            zeta, masks = self._stability(hu, obu)
            prof = self._profile(ProfileKind.MOMENTUM, zeta, obu, hu, zo, masks)
            ustar = _keep_undefined(ustar, Uz * k / prof, prof)

            zeta, masks = self._stability(ht, obu)
            prof = self._profile(ProfileKind.SCALAR, zeta, obu, ht, zot, masks)
            tstar = _keep_undefined(tstar, k * (ta - ts) / prof, prof)

            zeta, masks = self._stability(hq, obu)
            prof = self._profile(ProfileKind.SCALAR, zeta, obu, hq, zoq, masks)
            qstar = _keep_undefined(qstar, k * (q_z - q_s) / prof, prof)

            zeta, masks = self._stability(REFERENCE_HEIGHT, obu)
            prof = self._profile(ProfileKind.MOMENTUM, zeta, obu, REFERENCE_HEIGHT, zo, masks)
            u10 = _keep_undefined(u10, ustar / k * prof, prof)
            prof = self._profile(ProfileKind.SCALAR, zeta, obu, REFERENCE_HEIGHT, zot, masks)
            t10 = _keep_undefined(t10, tstar / k * prof + ts, prof)
            prof = self._profile(ProfileKind.SCALAR, zeta, obu, REFERENCE_HEIGHT, zoq, masks)
            q10 = _keep_undefined(q10, qstar / k * prof + q_s, prof)

            # stability-corrected transfer coefficients at measurement height
            C_H = (-rho_a * cp * ustar * tstar) / (rho_a * cp * Uz * (ts - ta))
            C_E = C_H
            C_D = ustar**2 / Uz**2

            tau = rho_a * ustar**2
            ash = -rho_a * cp * ustar * tstar
            alh = -rho_a * xlv * ustar * qstar

            C_H10 = ash / (rho_a * cp * u10 * (ts - t10))
            C_E10 = alh / (rho_a * xlv * u10 * (q_s - q10))
            C_D10 = ustar**2 / u10**2

            obu = obukhov_length(rho_a, thermo.t_virt, ustar, ash, alh, ta, xlv, const)

            # free-convection gustiness for unstable samples
            zeta = hu / obu
            unstable = classify_stability(zeta, cfg.zeta_m, cfg.zeta_t).unstable_momentum
            Uz[unstable] = np.maximum(Uz[unstable], MIN_GUST_WIND_SPEED)
            thvstar = tstar * (1 + 0.61 * q_z / 1000) + 0.61 * thermo.theta * qstar
            thv = thermo.theta * (1 + 0.61 * q_z / 1000)
            wc = real_power(-g * ustar * thvstar / thv, CONVECTIVE_EXPONENT)
            Uz[unstable] = np.sqrt(Uz[unstable] ** 2 + wc[unstable] ** 2)

            logger.debug(
                "Pass %d: median u* = %.4f m/s, median L = %.2f m",
                i + 1,
                np.nanmedian(ustar),
                np.nanmedian(obu),
            )

            if cfg.flux_tolerance is not None and previous[0] is not None:
                changes = [np.abs(new - old) for new, old in zip((tau, ash, alh), previous)]
                if all(
                    np.all(change <= tol) for change, tol in zip(changes, cfg.flux_tolerance)
                ):
                    logger.info("Fluxes converged after %d passes", i + 1)
                    break
        else:
            logger.info("Completed %d stability-correction passes", cfg.outer_iterations)

        # measured values stand in for 10 m values when taken at 10 m
        u10 = np.where(hu == REFERENCE_HEIGHT, init_wnd, u10)
        t10 = np.where(ht == REFERENCE_HEIGHT, ta, t10)
        rh10 = np.clip(relative_humidity(q10, t10, thermo.pressure), 0, 100)
        rh10 = np.where(hq == REFERENCE_HEIGHT, rh, rh10)

        rho_w = water_density(ts)
        Evap = 86400 * 1000 * alh / (rho_w * xlv)

        return {
            "tau": tau,
            "alh": alh,
            "ash": ash,
            "ustar": ustar,
            "tstar": tstar,
            "qstar": qstar,
            "u10": u10,
            "t10": t10,
            "q10": q10,
            "rh10": rh10,
            "zo": zo,
            "zot": zot,
            "zoq": zoq,
            "zo_n": zo_n,
            "zot_n": zot_n,
            "zoq_n": zoq_n,
            "C_D": C_D,
            "C_E": C_E,
            "C_H": C_H,
            "C_D10": C_D10,
            "C_E10": C_E10,
            "C_H10": C_H10,
            "C_D10N": C_D10N,
            "C_E10N": C_E10N,
            "C_H10N": C_H10N,
            "C_DN": C_DN,
            "C_EN": C_EN,
            "C_HN": C_HN,
            "zeta": zeta,
            "Evap": Evap,
            "rho_a": rho_a,
            "q_s": q_s,
            "ts": ts,
            "ta": ta,
            "q_z": q_z,
            "rho_w": rho_w,
            "xlv": xlv,
            "obu": obu,
            "roughness_iterations": iterations,
            "converged": converged,
        }


def compute_fluxes(
    ts: ArrayLike,
    Uz: ArrayLike,
    ta: ArrayLike,
    rh: ArrayLike,
    hu: ArrayLike = REFERENCE_HEIGHT,
    ht: ArrayLike = REFERENCE_HEIGHT,
    hq: ArrayLike = REFERENCE_HEIGHT,
    alt: ArrayLike = 0.0,
    lat: ArrayLike = 45.0,
    lat_units: str = "degrees",
    config: Optional[SolverConfig] = None,
) -> pd.DataFrame:
    """
    Sensible and latent heat fluxes over water with default settings.

    Convenience wrapper around :meth:`BulkFluxSolver.run`; see there for
    the parameters and output columns.

    Examples
    --------
    >>> out = compute_fluxes(ts=20.0, Uz=5.0, ta=18.0, rh=70.0, alt=100, lat=45)
    >>> bool(out["ash"].iloc[0] > 0)
    True
    """
    return BulkFluxSolver(config).run(
        ts, Uz, ta, rh, hu=hu, ht=ht, hq=hq, alt=alt, lat=lat, lat_units=lat_units
    )
