# interpolation.py

"""
interpolation.py

1D-Interpolationsverfahren für die Profilkoordinaten:
  - linear           : stückweise linear, außerhalb konstant fortgesetzt
  - cubic_spline     : natürlicher kubischer Spline
  - akima            : Akima-Spline
  - monotonic_cubic  : monotonieerhaltende kubische Hermite-Interpolation (PCHIP)

Die kubischen Verfahren extrapolieren außerhalb der Stützstellen.
"""

import numpy as np
from scipy.interpolate import CubicSpline, Akima1DInterpolator, PchipInterpolator

from errors import ConfigurationError, DataError


def _linear(x, y, x_new):
    return np.interp(x_new, x, y)


def _cubic_spline(x, y, x_new):
    return CubicSpline(x, y, bc_type='natural', extrapolate=True)(x_new)


def _akima(x, y, x_new):
    return Akima1DInterpolator(x, y)(x_new, extrapolate=True)


def _monotonic_cubic(x, y, x_new):
    return PchipInterpolator(x, y, extrapolate=True)(x_new)


METHODS = {
    'linear': _linear,
    'cubic_spline': _cubic_spline,
    'akima': _akima,
    'monotonic_cubic': _monotonic_cubic,
}

# Mindestanzahl an Stützstellen je Verfahren
MIN_POINTS = {
    'linear': 2,
    'cubic_spline': 3,
    'akima': 3,
    'monotonic_cubic': 2,
}


def interpolate_1d(method, x, y, x_new):
    """
    Interpoliert y(x) an den Stellen x_new mit dem benannten Verfahren.

    Parameter:
      method : Name des Verfahrens (siehe METHODS)
      x, y   : Stützstellen; x wird aufsteigend sortiert, doppelte x-Werte entfernt
      x_new  : Auswertestellen (Skalar oder Array)

    Rückgabe:
      np.ndarray bzw. float mit interpolierten Werten
    """
    if method not in METHODS:
        raise ConfigurationError(f"Unbekannte Interpolationsmethode: {method}")
    x = np.asarray(x, dtype=float)
    y = np.asarray(y, dtype=float)
    if x.shape != y.shape:
        raise DataError("x und y haben unterschiedliche Länge")

    order = np.argsort(x, kind='stable')
    x, y = x[order], y[order]
    x, idx = np.unique(x, return_index=True)
    y = y[idx]

    if len(x) < 2:
        raise DataError("Mindestens zwei Stützstellen für die Interpolation benötigt")
    # Fallback auf linear, wenn für das kubische Verfahren zu wenige Punkte vorliegen
    if len(x) < MIN_POINTS[method]:
        method = 'linear'
    result = METHODS[method](x, y, x_new)
    if np.ndim(x_new) == 0:
        return float(result)
    return np.asarray(result, dtype=float)
