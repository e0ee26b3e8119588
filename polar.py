# polar.py

"""
polar.py

Profilpolaren: tabellierte Beiwerte (Cl, Cd, Cm) über Reynoldszahl, Machzahl
und Anstellwinkel.

  - PolarPoint: unveränderlicher Datenpunkt
  - Polar: Rechteckgitter [Re][Mach][alpha] mit exakter Suche, trilinearer
    Interpolation und Dickenmischung zweier Polaren

Re und Mach werden außerhalb des gespeicherten Bereichs begrenzt, der
Anstellwinkel dagegen nicht (PolarRangeError).
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Tuple

import numpy as np
from scipy.interpolate import RegularGridInterpolator

from errors import DataError, PolarRangeError

logger = logging.getLogger(__name__)

POINT_TOLERANCE = 1e-6


@dataclass(frozen=True)
class PolarPoint:
    re: float
    mach: float
    alpha: float
    cl: float
    cd: float
    cm: float = 0.0


def _unique_sorted(values, tol=POINT_TOLERANCE) -> np.ndarray:
    """Sortierte, eindeutige Werte; Werte näher als tol werden zusammengefasst."""
    values = np.sort(np.asarray(values, dtype=float))
    if values.size == 0:
        return values
    keep = [values[0]]
    for v in values[1:]:
        if v - keep[-1] > tol:
            keep.append(v)
    return np.array(keep)


def _find_index(axis: np.ndarray, value: float, tol: float = POINT_TOLERANCE):
    """Index des Gitterwerts innerhalb tol oder None."""
    i = int(np.searchsorted(axis, value))
    for j in (i - 1, i):
        if 0 <= j < axis.size and abs(axis[j] - value) <= tol:
            return j
    return None


class Polar:
    """
    Polare eines Profils mit relativer Dicke t/c in Prozent.

    Nach der Konstruktion unveränderlich. Die Punkte müssen ein vollständiges
    Rechteckgitter über (Re, Mach, alpha) bilden.
    """

    def __init__(self, name: str, rel_thickness: float, points: Iterable[PolarPoint]):
        self.name = name
        self.rel_thickness = float(rel_thickness)
        self.points: Tuple[PolarPoint, ...] = tuple(points)
        self.reynolds = _unique_sorted([p.re for p in self.points])
        self.machs = _unique_sorted([p.mach for p in self.points])
        self.alphas = _unique_sorted([p.alpha for p in self.points])
        self._grid = self._build_grid()
        self._interpolator = None
        self._active_axes = None

    def __repr__(self):
        return (f"Polar(name={self.name!r}, t/c={self.rel_thickness:.3f}, "
                f"Re={self.reynolds.size}, Mach={self.machs.size}, alpha={self.alphas.size})")

    def __len__(self):
        return len(self.points)

    @property
    def is_empty(self) -> bool:
        return len(self.points) == 0

    def _build_grid(self):
        if self.is_empty:
            return None
        shape = (self.reynolds.size, self.machs.size, self.alphas.size)
        grid = np.full(shape + (3,), np.nan)
        for p in self.points:
            i = _find_index(self.reynolds, p.re)
            j = _find_index(self.machs, p.mach)
            k = _find_index(self.alphas, p.alpha)
            if not np.isnan(grid[i, j, k, 0]):
                logger.warning(f"Polare {self.name}: doppelter Punkt Re={p.re:g}, "
                               f"Ma={p.mach:g}, alpha={p.alpha:g} wird ignoriert")
                continue
            grid[i, j, k] = (p.cl, p.cd, p.cm)
        missing = int(np.isnan(grid[..., 0]).sum())
        if missing:
            raise DataError(f"Polare bildet kein Rechteckgitter, {missing} Punkte fehlen",
                            airfoil=self.name)
        return grid

    def lookup(self, re: float, mach: float, alpha: float) -> Tuple[float, float, float]:
        """
        Liefert (Cl, Cd, Cm) bei (Re, Mach, alpha[deg]).

        Liegt der Punkt im Gitter (Toleranz 1e-6), werden die gespeicherten
        Werte unverändert zurückgegeben, sonst wird trilinear interpoliert.
        """
        if self.is_empty:
            raise DataError("Polare ist leer", airfoil=self.name)

        i = _find_index(self.reynolds, re)
        j = _find_index(self.machs, mach)
        k = _find_index(self.alphas, alpha)
        if i is not None and j is not None and k is not None:
            cl, cd, cm = self._grid[i, j, k]
            return float(cl), float(cd), float(cm)

        if alpha < self.alphas[0] - POINT_TOLERANCE or alpha > self.alphas[-1] + POINT_TOLERANCE:
            raise PolarRangeError(
                f"Anstellwinkel außerhalb [{self.alphas[0]:g}, {self.alphas[-1]:g}]",
                airfoil=self.name, re=f"{re:g}", mach=f"{mach:g}", alpha=f"{alpha:g}")

        re_c = float(np.clip(re, self.reynolds[0], self.reynolds[-1]))
        mach_c = float(np.clip(mach, self.machs[0], self.machs[-1]))
        if re_c != re or mach_c != mach:
            logger.debug("Polare %s: Re/Mach begrenzt (%g, %g) -> (%g, %g)",
                         self.name, re, mach, re_c, mach_c)
        alpha_c = float(np.clip(alpha, self.alphas[0], self.alphas[-1]))
        return self._trilinear(re_c, mach_c, alpha_c)

    def _trilinear(self, re, mach, alpha):
        if self._interpolator is None:
            axes = [self.reynolds, self.machs, self.alphas]
            # Achsen mit nur einem Wert fallen weg (bilinear bzw. linear)
            self._active_axes = [n for n, ax in enumerate(axes) if ax.size > 1]
            values = self._grid
            index = tuple(slice(None) if ax.size > 1 else 0 for ax in axes)
            values = values[index]
            if not self._active_axes:
                self._interpolator = lambda q: values[np.newaxis, :]
            else:
                self._interpolator = RegularGridInterpolator(
                    tuple(axes[n] for n in self._active_axes), values, method='linear')
        query = [re, mach, alpha]
        point = [query[n] for n in self._active_axes]
        cl, cd, cm = self._interpolator([point])[0]
        return float(cl), float(cd), float(cm)

    @classmethod
    def interpolate_between(cls, left: "Polar", right: "Polar", target_thickness: float,
                            name: str = None) -> "Polar":
        """
        Erzeugt eine Polare bei der Zieldicke durch lineare Mischung zweier Polaren.

        f = (t_ziel - t_links) / (t_rechts - t_links). Das Gitter der neuen
        Polare ist das Kreuzprodukt der vereinigten Re-, Mach- und alpha-Achsen.
        """
        if left.is_empty or right.is_empty:
            raise DataError("Mischung mit leerer Polare nicht möglich",
                            airfoil=f"{left.name}/{right.name}")
        dt = right.rel_thickness - left.rel_thickness
        f = 0.0 if dt == 0 else (target_thickness - left.rel_thickness) / dt

        reynolds = _unique_sorted(np.concatenate([left.reynolds, right.reynolds]))
        machs = _unique_sorted(np.concatenate([left.machs, right.machs]))
        alphas = _unique_sorted(np.concatenate([left.alphas, right.alphas]))

        points = []
        for re in reynolds:
            for ma in machs:
                for al in alphas:
                    cl_l, cd_l, cm_l = left.lookup(re, ma, al)
                    cl_r, cd_r, cm_r = right.lookup(re, ma, al)
                    points.append(PolarPoint(
                        re=float(re), mach=float(ma), alpha=float(al),
                        cl=(1 - f) * cl_l + f * cl_r,
                        cd=(1 - f) * cd_l + f * cd_r,
                        cm=(1 - f) * cm_l + f * cm_r))
        if name is None:
            name = f"{left.name}-{right.name}@{target_thickness:.2f}"
        logger.debug(f"Polare {name} aus {left.name} und {right.name} gemischt (f={f:.4f})")
        return cls(name, target_thickness, points)
