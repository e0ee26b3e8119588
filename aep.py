# aep.py

"""
aep.py

Jahresenergieertrag (AEP) aus der Leistungskurve und einer
Weibull-Verteilung der Windgeschwindigkeit.

  A = v_mean / Gamma(1 + 1/k)
  W_i = 8760 * (exp(-((v_i - dv)/A)^k) - exp(-((v_i + dv)/A)^k))
  AEP = sum(W_i * P_el_i) / 1000  [kWh]
"""

import logging
from typing import Sequence, Tuple

import numpy as np
import pandas as pd
from scipy.special import gamma

from errors import ConfigurationError

logger = logging.getLogger(__name__)

HOURS_PER_YEAR = 8760.0


def weibull_scale(v_mean: float, k: float) -> float:
    return v_mean / gamma(1.0 + 1.0 / k)


def weibull_hours(v, dv: float, scale: float, k: float) -> np.ndarray:
    """Stunden pro Jahr im Klassenintervall [v - dv, v + dv]."""
    v = np.asarray(v, dtype=float)
    lo = np.maximum(v - dv, 0.0)
    hi = np.maximum(v + dv, 0.0)
    return HOURS_PER_YEAR * (np.exp(-(lo / scale) ** k) - np.exp(-(hi / scale) ** k))


class AEPCalculator:
    """
    Parameter:
      wind_speeds : Klassenmitten v_i [m/s]
      power       : elektrische Leistung P_el_i [W]
      dv          : halbe Klassenbreite [m/s]
      k           : Weibull-Formparameter
      price       : Vergütung pro kWh
    """

    def __init__(self, wind_speeds: Sequence[float], power: Sequence[float],
                 dv: float, k: float, price: float = 0.0):
        self.wind_speeds = np.asarray(wind_speeds, dtype=float)
        self.power = np.asarray(power, dtype=float)
        if self.wind_speeds.shape != self.power.shape:
            raise ConfigurationError("Windgeschwindigkeiten und Leistungen ungleich lang",
                                     n_v=self.wind_speeds.size, n_p=self.power.size)
        if k <= 0:
            raise ConfigurationError("Weibull-Formparameter k muss positiv sein", k=k)
        if dv <= 0:
            raise ConfigurationError("Klassenbreite muss positiv sein", dv=dv)
        self.dv = float(dv)
        self.k = float(k)
        self.price = float(price)

    def compute(self, v_mean: float) -> Tuple[float, float]:
        """
        Rückgabe:
          (AEP [kWh], Erlös)
        """
        if v_mean <= 0:
            raise ConfigurationError("Mittlere Windgeschwindigkeit muss positiv sein",
                                     v_mean=v_mean)
        scale = weibull_scale(v_mean, self.k)
        hours = weibull_hours(self.wind_speeds, self.dv, scale, self.k)
        energy = float(np.sum(hours * self.power) / 1000.0)
        return energy, energy * self.price

    def compute_range(self, mean_speeds) -> pd.DataFrame:
        rows = []
        for v_mean in mean_speeds:
            energy, revenue = self.compute(v_mean)
            rows.append({'v_mean': v_mean, 'scale_A': weibull_scale(v_mean, self.k),
                         'aep_kwh': energy, 'revenue': revenue,
                         'full_load_hours': energy * 1000.0 / self.power.max()
                         if self.power.max() > 0 else 0.0})
            logger.info(f"AEP bei v_mean={v_mean:.2f} m/s: {energy / 1e6:.3f} GWh, "
                         f"Erlös {energy * self.price:,.0f}")
        return pd.DataFrame(rows)
