# rootfinder.py

"""
rootfinder.py

Nullstellensuche für das BEM-Residuum.

  - BrentsRootFinder: Brent-Verfahren (scipy.optimize.brentq) auf einem
    Vorzeichenwechsel-Intervall; liefert None statt einer Ausnahme
  - find_brackets: Abtasten eines Intervalls nach Vorzeichenwechseln
"""

import logging

import numpy as np
from scipy.optimize import brentq

logger = logging.getLogger(__name__)


class BrentsRootFinder:
    """
    Parameter:
      tol      : absolute Toleranz auf x
      max_iter : maximale Iterationszahl
    """

    def __init__(self, tol=1e-6, max_iter=400):
        self.tol = tol
        self.max_iter = max_iter

    def solve(self, func, lo, hi):
        """
        Nullstelle von func in [lo, hi] oder None, wenn das Intervall keinen
        Vorzeichenwechsel hat oder die Iterationsgrenze erreicht wird.
        """
        f_lo, f_hi = func(lo), func(hi)
        if not (np.isfinite(f_lo) and np.isfinite(f_hi)) or f_lo * f_hi >= 0:
            return None
        root, info = brentq(func, lo, hi, xtol=self.tol, maxiter=self.max_iter,
                            full_output=True, disp=False)
        if not info.converged:
            logger.debug(f"Brent nach {info.iterations} Iterationen nicht konvergiert "
                         f"in [{lo:.6g}, {hi:.6g}]")
            return None
        return root


def find_brackets(func, x1, x2, n=80):
    """
    Teilt [x1, x2] in n gleiche Teilintervalle und liefert alle (a, b), an
    deren Enden func das Vorzeichen wechselt oder null wird.
    """
    xs = np.linspace(x1, x2, n + 1)
    brackets = []
    f_prev = func(xs[0])
    for a, b in zip(xs[:-1], xs[1:]):
        f_next = func(b)
        if f_prev * f_next <= 0:
            brackets.append((float(a), float(b)))
        f_prev = f_next
    return brackets
