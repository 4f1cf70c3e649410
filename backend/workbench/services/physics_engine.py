"""
physics_engine.py — Locally derived glazing and wind quantities.

Standards referenced:
  - ASTM E1300 (Determining Load Resistance of Glass in Buildings)
      minimum thickness table, laminated effective thickness,
      four-edge-supported plate deflection regression
  - ASCE 7 (Minimum Design Loads) — gust effect factor for rigid and
      flexible buildings, MWFRS wall external pressure coefficients

Every function here is pure and deterministic.  Inputs are SI-ish facade
units: lengths in mm, pressures in kPa, wind speed in m/s, building
dimensions in m, natural frequency in Hz.
"""

import logging
import math
from typing import Any, Dict, Mapping, Optional, Tuple

from workbench import config

logger = logging.getLogger("workbench-physics")


class UnknownThickness(ValueError):
    """Nominal glass thickness that has no ASTM minimum thickness entry."""

    def __init__(self, nominal: Any):
        self.nominal = nominal
        super().__init__(f"Unknown glass thickness: {nominal}")


# ---------------------------------------------------------------------------
# Module-level constants
# ---------------------------------------------------------------------------

# ASTM E1300 Table 4: nominal → minimum thickness [mm]
_MIN_THICKNESS_MM: Dict[float, float] = {
    2.5: 2.16, 2.7: 2.59, 3.0: 2.92, 4.0: 3.78, 5.0: 4.57,
    6.0: 5.56, 8.0: 7.42, 10.0: 9.02, 12.0: 11.91, 16.0: 15.09,
    19.0: 18.26, 22.0: 21.44,
}

# Interlayer shear transfer coefficient (laminated glass)
LAMINATE_GAMMA: float = 0.006806

# Load duration factor applied to the 3 s design wind load
LOAD_DURATION_FACTOR: float = 0.749

# Glass stiffness term of the deflection regression (E = 71.7 GPa, in kPa·mm⁴ scale)
_DEFLECTION_STIFFNESS: float = 71_700 * 1000

RIGID_GUST_FACTOR: float = 0.85

# Flexible-building inputs used when left blank
DEFAULT_NATURAL_FREQUENCY_HZ: float = 1.2
DEFAULT_DAMPING_RATIO: float = 0.02

# ---------------------------------------------------------------------------
# ASCE 7 exposure constants (Table 26.11-1, SI)
#   alpha = 1/α̅ mean-speed power law, b = b̅, c = turbulence intensity factor
# ---------------------------------------------------------------------------
_EXPOSURE_CONSTANTS: Dict[str, Dict[str, float]] = {
    "A": {"alpha": 0.25, "b": 0.45, "c": 0.30},
    "B": {"alpha": 0.20, "b": 0.35, "c": 0.25},
    "C": {"alpha": 0.15, "b": 0.25, "c": 0.20},
}

_EPSILON: float = 0.333             # integral length scale power law exponent
_Z_MIN_M: float = 9.14              # minimum equivalent height [m]
_INTEGRAL_LENGTH_M: float = 97.54   # ℓ [m]
_G_Q: float = 3.4                   # background peak factor
_G_V: float = 3.4                   # wind response peak factor

# MWFRS wall Cp (ASCE 7 Fig. 27.3-1)
CP_WINDWARD: float = 0.8
CP_SIDEWALL: float = -0.7


# ---------------------------------------------------------------------------
# Glass primitives
# ---------------------------------------------------------------------------

def minimum_thickness(nominal: float) -> float:
    """Minimum thickness [mm] for a nominal thickness; UnknownThickness otherwise."""
    try:
        key = float(nominal)
    except (TypeError, ValueError):
        raise UnknownThickness(nominal) from None
    if key not in _MIN_THICKNESS_MM:
        raise UnknownThickness(nominal)
    return _MIN_THICKNESS_MM[key]


def effective_thickness_laminated(thk1: float, thk2: float) -> float:
    """
    Effective thickness of a two-ply laminate.

        h = (m1³ + m2³ + 3·γ·m1·m2·(m1 + m2))^(1/3)

    where m1, m2 are the ASTM minimum thicknesses of the plies.
    """
    m1 = minimum_thickness(thk1)
    m2 = minimum_thickness(thk2)
    return (m1 ** 3 + m2 ** 3 + 3 * LAMINATE_GAMMA * m1 * m2 * (m1 + m2)) ** (1 / 3)


def deflection(wind_load: float, length: float, width: float, thickness: float) -> float:
    """
    Centre deflection [mm] of a four-edge simply supported rectangular lite.

    Parameters
    ----------
    wind_load : float   3 s design load [kPa]
    length    : float   panel length [mm]
    width     : float   panel width [mm]
    thickness : float   minimum (or effective) thickness [mm]

    Returns
    -------
    float — deflection [mm], or NaN when the regression is undefined
    (non-positive inputs, the inner log argument ≤ 1, or an exponent
    beyond float range).
    """
    if wind_load <= 0 or length <= 0 or width <= 0 or thickness <= 0:
        return math.nan

    a = max(length, width)
    b = min(length, width)
    ar = a / b

    r0 = 0.553 - 3.83 * ar + 1.11 * ar ** 2 - 0.0969 * ar ** 3
    r1 = -2.29 + 5.83 * ar - 2.17 * ar ** 2 + 0.2067 * ar ** 3
    r2 = 1.485 - 1.908 * ar + 0.815 * ar ** 2 - 0.0822 * ar ** 3

    q = LOAD_DURATION_FACTOR * wind_load
    inner = (q * (a * b) ** 2) / (_DEFLECTION_STIFFNESS * thickness ** 4)
    if inner <= 1.0:
        return math.nan

    x = math.log(math.log(inner))
    try:
        return thickness * math.exp(r0 + r1 * x + r2 * x ** 2)
    except OverflowError:
        return math.nan


def load_sharing(h1: Optional[float], h2: Optional[float]) -> Optional[Tuple[float, float]]:
    """Stiffness-proportional load shares (h³ weighting) of two lites."""
    if h1 is None or h2 is None:
        return None
    s1 = h1 ** 3
    s2 = h2 ** 3
    total = s1 + s2
    if total <= 0:
        return None
    return s1 / total, s2 / total


def load_times_area_squared(wind_load: float, length: float, width: float, share: float = 1.0) -> float:
    """0.749 · load · share · A², with A = L·W in m² (L, W in mm)."""
    area_m2 = (length * width) / 1_000_000
    return LOAD_DURATION_FACTOR * wind_load * share * area_m2 ** 2


# ---------------------------------------------------------------------------
# Wind primitives
# ---------------------------------------------------------------------------

def external_pressure_coefficients(b_length: Optional[float], b_width: Optional[float]) -> Dict[str, float]:
    """
    Windward, leeward and side-wall Cp.  Leeward depends on the plan ratio
    B/L: ≤ 1 → −0.5, < 4 → −0.3, ≥ 4 → −0.2.  Non-positive or missing
    dimensions fall back to −0.5.
    """
    c_pl = -0.5
    if b_length and b_width and b_length > 0 and b_width > 0:
        ratio = b_width / b_length
        if ratio <= 1.0:
            c_pl = -0.5
        elif ratio < 4:
            c_pl = -0.3
        else:
            c_pl = -0.2
    return {"C_pw": CP_WINDWARD, "C_pl": c_pl, "C_ps": CP_SIDEWALL}


def _resonant_size_factor(eta: float) -> float:
    return (1 / eta) - (1 / (2 * eta * eta)) * (1 - math.exp(-2 * eta))


def gust_factor(
    height: Optional[float],
    length: Optional[float],
    width: Optional[float],
    wind_speed: Optional[float],
    frequency: Optional[float] = None,
    damping: Optional[float] = None,
    exposure_category: str = "B",
    rigidity: str = "Rigid",
) -> Optional[float]:
    """
    Gust effect factor G (Rigid) or G_f (Flexible, ASCE 7 Eq. 26.11-10).

    Rigid buildings return the code default 0.85.  Flexible buildings need
    positive height, length, width and wind speed, otherwise None; blank
    frequency/damping take 1.2 Hz / 0.02.  A negative damping ratio, or a
    frequency too low for the resonant peak factor (3600·n1 ≤ 1), is not
    computable and also gives None.  Unrecognised exposure categories use
    exposure B.
    """
    if rigidity != "Flexible":
        return RIGID_GUST_FACTOR

    h = height or 0.0
    length_m = length or 0.0
    width_m = width or 0.0
    speed = wind_speed or 0.0
    if not (h > 0 and length_m > 0 and width_m > 0 and speed > 0):
        return None

    n1 = frequency or DEFAULT_NATURAL_FREQUENCY_HZ
    beta = damping or DEFAULT_DAMPING_RATIO
    if n1 <= 0 or beta <= 0 or 3600 * n1 <= 1:
        return None

    try:
        return _flexible_gust_factor(h, length_m, width_m, speed, n1, beta, exposure_category)
    except (ValueError, ArithmeticError):
        return None


def _flexible_gust_factor(
    h: float, length_m: float, width_m: float, speed: float,
    n1: float, beta: float, exposure_category: str,
) -> float:
    exp = _EXPOSURE_CONSTANTS.get(exposure_category, _EXPOSURE_CONSTANTS["B"])
    alpha, b_bar, c = exp["alpha"], exp["b"], exp["c"]

    z = max(0.6 * h, _Z_MIN_M)
    I_z = c * (10 / z) ** (1 / 6)
    L_z = _INTEGRAL_LENGTH_M * (z / 10) ** _EPSILON

    # Background response
    Q = math.sqrt(1 / (1 + 0.63 * ((width_m + h) / L_z) ** 0.63))

    # Resonant peak factor
    log_term = math.log(3600 * n1)
    g_R = math.sqrt(2 * log_term) + 0.577 / math.sqrt(2 * log_term)

    V_z = b_bar * (z / 10) ** alpha * speed
    N1 = (n1 * L_z) / V_z
    R_n = (7.47 * N1) / (1 + 10.3 * N1) ** (5 / 3)

    R_h = _resonant_size_factor(4.6 * n1 * h / V_z)
    R_B = _resonant_size_factor(4.6 * n1 * width_m / V_z)
    R_L = _resonant_size_factor(15.4 * n1 * length_m / V_z)

    R = math.sqrt((1 / beta) * R_n * R_h * R_B * (0.53 + 0.47 * R_L))

    peak = math.sqrt((_G_Q * Q) ** 2 + (g_R * R) ** 2)
    return 0.925 * (1 + 1.7 * I_z * peak) / (1 + 1.7 * _G_V * I_z)


# ---------------------------------------------------------------------------
# Orchestration
# ---------------------------------------------------------------------------

def _num(values: Mapping[str, Any], key: str) -> Optional[float]:
    value = values.get(key)
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _min_or_none(values: Mapping[str, Any], key: str) -> Optional[float]:
    nominal = _num(values, key)
    return None if nominal is None else minimum_thickness(nominal)


def _effective_or_none(values: Mapping[str, Any], key1: str, key2: str) -> Optional[float]:
    t1 = _num(values, key1)
    t2 = _num(values, key2)
    if t1 is None or t2 is None:
        return None
    return effective_thickness_laminated(t1, t2)


class PhysicsEngine:
    """
    Glass unit and wind derivations for the workbench.

    Each ``derive_*`` method returns a dict with the inputs echoed back,
    intermediate values exposed, and ``results`` holding only the derived
    attributes that could be computed, already rounded for display.
    """

    def __init__(
        self,
        glass_decimals: int = config.GLASS_DERIVED_DECIMALS,
        gust_decimals: int = config.GUST_FACTOR_DECIMALS,
        cp_decimals: int = config.PRESSURE_COEFF_DECIMALS,
    ):
        self.glass_decimals = glass_decimals
        self.gust_decimals = gust_decimals
        self.cp_decimals = cp_decimals

    # ------------------------------------------------------------------
    # 1. Glass units  (ASTM E1300)
    # ------------------------------------------------------------------

    def resolve_lite_thicknesses(self, glass_type: str, values: Mapping[str, Any]) -> Tuple[Optional[float], ...]:
        """
        Structural thickness of each lite: one entry for sgu/lgu, two for
        dgu/ldgu.  Blank inputs give None; unknown nominals raise.
        """
        if glass_type == "sgu":
            return (_min_or_none(values, "thickness"),)
        if glass_type == "lgu":
            return (_effective_or_none(values, "thickness1", "thickness2"),)
        if glass_type == "dgu":
            return (_min_or_none(values, "thickness1"), _min_or_none(values, "thickness2"))
        if glass_type == "ldgu":
            return (
                _effective_or_none(values, "thickness1_1", "thickness1_2"),
                _min_or_none(values, "thickness2"),
            )
        raise ValueError(f"glass_type must be one of sgu/dgu/lgu/ldgu, got '{glass_type}'")

    def derive_glass_unit(self, glass_type: str, values: Mapping[str, Any]) -> Dict[str, Any]:
        """
        Compute load × area² and (four-edge support only) deflection for a
        glass unit.

        Parameters
        ----------
        glass_type : str
            'sgu', 'dgu', 'lgu' or 'ldgu'.
        values : mapping
            Current attribute values of the unit (document keys).

        Returns
        -------
        Dict with inputs, intermediate (lite thicknesses, shares, area) and
        results keyed by the derived attribute names (``def``/``def1``/
        ``def2``, ``load_x_area2``/``load1_x_area2``/``load2_x_area2``).

        Raises
        ------
        UnknownThickness
            A thickness input is set to a nominal value outside the table.
        """
        length = _num(values, "length")
        width = _num(values, "width")
        wind_load = _num(values, "wind_load")
        support = values.get("support_type")

        thicknesses = self.resolve_lite_thicknesses(glass_type, values)
        results: Dict[str, float] = {}
        intermediate: Dict[str, Any] = {"thicknesses_mm": list(thicknesses)}

        if length and width and wind_load:
            area_m2 = (length * width) / 1_000_000
            intermediate["area_m2"] = area_m2

            if len(thicknesses) == 1:
                h = thicknesses[0]
                results["load_x_area2"] = load_times_area_squared(wind_load, length, width)
                if support == "Four Edges" and h is not None:
                    results["def"] = deflection(wind_load, length, width, h)
            else:
                h1, h2 = thicknesses
                shares = load_sharing(h1, h2)
                if shares is not None:
                    share1, share2 = shares
                    intermediate["shares"] = [share1, share2]
                    results["load1_x_area2"] = load_times_area_squared(wind_load, length, width, share1)
                    results["load2_x_area2"] = load_times_area_squared(wind_load, length, width, share2)
                    if support == "Four Edges":
                        results["def1"] = deflection(wind_load * share1, length, width, h1)
                        results["def2"] = deflection(wind_load * share2, length, width, h2)

        rounded: Dict[str, float] = {}
        for name, value in results.items():
            if math.isfinite(value):
                rounded[name] = round(value, self.glass_decimals)
            else:
                logger.debug("Non-finite %s for %s unit left unset", name, glass_type)

        return {
            "glass_type": glass_type,
            "inputs": {"length": length, "width": width, "wind_load": wind_load, "support_type": support},
            "intermediate": intermediate,
            "results": rounded,
        }

    # ------------------------------------------------------------------
    # 2. Wind  (ASCE 7)
    # ------------------------------------------------------------------

    def derive_wind(self, values: Mapping[str, Any]) -> Dict[str, Any]:
        """
        Gust factor and MWFRS wall pressure coefficients for the building.

        Returns
        -------
        Dict with inputs and results: ``C_pw``, ``C_pl``, ``C_ps`` always;
        ``gust_factor`` unless a flexible building lacks its dimensions.
        """
        b_length = _num(values, "b_length")
        b_width = _num(values, "b_width")
        rigidity = values.get("b_rigidity") or "Rigid"
        exposure = values.get("exposure_cat") or "B"

        results: Dict[str, float] = {
            name: round(cp, self.cp_decimals)
            for name, cp in external_pressure_coefficients(b_length, b_width).items()
        }
        g = gust_factor(
            _num(values, "b_height"), b_length, b_width, _num(values, "wind_speed"),
            _num(values, "b_freq"), _num(values, "damping"), exposure, rigidity,
        )
        if g is not None and math.isfinite(g):
            results["gust_factor"] = round(g, self.gust_decimals)

        return {
            "inputs": {
                "b_length": b_length,
                "b_width": b_width,
                "b_height": _num(values, "b_height"),
                "wind_speed": _num(values, "wind_speed"),
                "exposure_cat": exposure,
                "b_rigidity": rigidity,
            },
            "results": results,
        }


_default_engine = PhysicsEngine()


def glass_unit_derivations(glass_type: str, values: Mapping[str, Any]) -> Dict[str, float]:
    """Derived glass attributes that can be computed from ``values``."""
    return _default_engine.derive_glass_unit(glass_type, values)["results"]


def wind_derivations(values: Mapping[str, Any]) -> Dict[str, float]:
    """Derived wind attributes that can be computed from ``values``."""
    return _default_engine.derive_wind(values)["results"]
