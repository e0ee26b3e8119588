# airfoil.py

"""
airfoil.py

Profilkoordinaten einer Blattsektion.

Die Kontur beginnt an der Hinterkante oben, läuft gegen den Uhrzeigersinn
über die Nase und endet an der Hinterkante unten. Nach der Normierung liegt
die Nase in (0, 0) und x in [0, 1]. Marker benennen Nase (LE), Hinterkante
(TE) sowie Hinterkante oben/unten (TE_TOP, TE_BOTTOM).
"""

import logging
from typing import Dict, Optional

import numpy as np

from errors import DataError
from interpolation import interpolate_1d

logger = logging.getLogger(__name__)

LE, TE, TE_TOP, TE_BOTTOM = "LE", "TE", "TE_TOP", "TE_BOTTOM"


class AirfoilCoordinates:
    """
    Normierte Profilkontur mit Markern.

    Parameter:
      name          : Profilname
      rel_thickness : relative Dicke t/c in Prozent
      points        : (N, 2) oder (N, 3) Koordinaten; eine z-Spalte wird verworfen
      markers       : optionale Marker aus der Datei (Name -> Index der Rohdaten)
      normalize     : Kontur verschieben, drehen, skalieren und orientieren
    """

    def __init__(self, name: str, rel_thickness: float, points,
                 markers: Optional[Dict[str, int]] = None, normalize: bool = True):
        pts = np.asarray(points, dtype=float)
        if pts.ndim != 2 or pts.shape[0] == 0:
            raise DataError("Profil ohne Koordinaten", airfoil=name)
        if pts.shape[1] < 2:
            raise DataError("Koordinaten benötigen mindestens x und y", airfoil=name)
        if pts.shape[0] < 3:
            raise DataError("Profil benötigt mindestens drei Punkte", airfoil=name)
        self.name = name
        self.rel_thickness = float(rel_thickness)
        self.points = pts[:, :2].copy()
        self.markers = dict(markers or {})
        if normalize:
            self._normalize()
        else:
            self._assign_markers()

    def __repr__(self):
        return f"AirfoilCoordinates(name={self.name!r}, t/c={self.rel_thickness:.3f}, n={len(self.points)})"

    def __len__(self):
        return len(self.points)

    # Normierung

    def _normalize(self):
        pts = self.points
        le_idx = self.markers.get(LE)
        if le_idx is None or not 0 <= le_idx < len(pts):
            le_idx = int(np.argmin(pts[:, 0]))
        nose = pts[le_idx].copy()
        te = 0.5 * (pts[0] + pts[-1])

        # Nase in den Ursprung, Sehne auf die x-Achse, Sehnenlänge 1
        pts = pts - nose
        chord_vec = te - nose
        chord = np.hypot(*chord_vec)
        if chord <= 0:
            raise DataError("Sehnenlänge ist null", airfoil=self.name)
        angle = np.arctan2(chord_vec[1], chord_vec[0])
        c, s = np.cos(-angle), np.sin(-angle)
        rot = np.array([[c, -s], [s, c]])
        pts = pts @ rot.T / chord
        pts[le_idx] = (0.0, 0.0)

        # Umlaufsinn über die Shoelace-Fläche
        x, y = pts[:, 0], pts[:, 1]
        area = 0.5 * np.sum(x * np.roll(y, -1) - np.roll(x, -1) * y)
        if area < 0:
            pts = pts[::-1].copy()
            le_idx = len(pts) - 1 - le_idx
            logger.debug(f"Profil {self.name}: Umlaufsinn umgekehrt")

        self.points = pts
        self.markers = {LE: le_idx}
        self._assign_markers()

        if np.any(self.upper[:, 1] < -1e-9):
            logger.warning(f"Profil {self.name}: Oberseite mit negativen y-Werten")

    def _assign_markers(self):
        if LE not in self.markers:
            self.markers[LE] = int(np.argmin(self.points[:, 0]))
        self.markers[TE_TOP] = 0
        self.markers[TE_BOTTOM] = len(self.points) - 1
        self.markers[TE] = 0

    # Oberflächen

    @property
    def leading_edge_index(self) -> int:
        return self.markers[LE]

    @property
    def upper(self) -> np.ndarray:
        """Oberseite von der Hinterkante bis zur Nase."""
        return self.points[: self.leading_edge_index + 1]

    @property
    def lower(self) -> np.ndarray:
        """Unterseite von der Nase bis zur Hinterkante."""
        return self.points[self.leading_edge_index:]

    def max_thickness(self, samples: int = 200) -> float:
        """Maximale Dicke in Prozent der Sehne aus der Kontur."""
        x = np.linspace(0.0, 1.0, samples)
        y_up = interpolate_1d('linear', self.upper[:, 0], self.upper[:, 1], x)
        y_lo = interpolate_1d('linear', self.lower[:, 0], self.lower[:, 1], x)
        return float(np.max(y_up - y_lo) * 100.0)

    @classmethod
    def interpolate_between(cls, left: "AirfoilCoordinates", right: "AirfoilCoordinates",
                            target_thickness: float, method: str = 'linear',
                            name: str = None) -> "AirfoilCoordinates":
        """
        Mischt zwei Profilkonturen auf die Zieldicke.

        Ober- und Unterseite werden getrennt auf die Vereinigung der
        x-Koordinaten beider Profile umgetastet, punktweise mit f gemischt und
        wieder gegen den Uhrzeigersinn zusammengesetzt.
        """
        if len(left) == 0 or len(right) == 0:
            raise DataError("Profil ohne Koordinaten", airfoil=f"{left.name}/{right.name}")
        dt = right.rel_thickness - left.rel_thickness
        f = 0.0 if dt == 0 else (target_thickness - left.rel_thickness) / dt

        surfaces = []
        for side in ('upper', 'lower'):
            s_left, s_right = getattr(left, side), getattr(right, side)
            x = np.union1d(s_left[:, 0], s_right[:, 0])
            y_left = interpolate_1d(method, s_left[:, 0], s_left[:, 1], x)
            y_right = interpolate_1d(method, s_right[:, 0], s_right[:, 1], x)
            surfaces.append(np.column_stack([x, (1 - f) * y_left + f * y_right]))

        upper, lower = surfaces
        upper = upper[::-1]
        if np.isclose(lower[0, 0], upper[-1, 0]):
            lower = lower[1:]
        points = np.vstack([upper, lower])
        if name is None:
            name = f"{left.name}-{right.name}@{target_thickness:.2f}"
        return cls(name, target_thickness, points,
                   markers={LE: len(upper) - 1}, normalize=False)
