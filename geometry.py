"""
geometry.py

Blatt-Interpolation: ordnet jeder Radialstation eine Polare und eine
Profilkontur passend zur relativen Dicke zu. Liegt eine Bibliotheksdicke
innerhalb der Toleranz, wird das Profil direkt übernommen, sonst zwischen
den benachbarten Profilen gemischt.
"""

import logging
from dataclasses import dataclass, field

import numpy as np

from airfoil import AirfoilCoordinates
from errors import DataError
from polar import Polar

logger = logging.getLogger(__name__)

DEFAULT_THICKNESS_TOLERANCE = 0.001


@dataclass
class BladeSection:
    """
    Radialstation des Blattes.

    radius ist der Blattradius ab Blattwurzel [m], twist in Grad,
    rel_thickness in Prozent.
    """
    radius: float
    chord: float
    twist: float
    rel_thickness: float
    xt4: float = 0.0
    yt4: float = 0.0
    pcba_x: float = 0.0
    pcba_y: float = 0.0
    twist_axis: float = 0.0
    polar: Polar = None
    airfoil: AirfoilCoordinates = field(default=None, repr=False)


def select_pair(entries, thickness, tolerance=DEFAULT_THICKNESS_TOLERANCE):
    """
    Sucht zur Dicke entweder einen exakten Treffer oder das umschließende Paar.

    Rückgabe:
      (entry, None)  bei exaktem Treffer
      (left, right)  sonst; außerhalb des Bereichs die beiden Randeinträge
    """
    if not entries:
        raise DataError("Keine Profile verfügbar", thickness=thickness)
    ordered = sorted(entries, key=lambda e: e.rel_thickness)
    for e in ordered:
        if abs(e.rel_thickness - thickness) <= tolerance:
            return e, None
    if len(ordered) < 2:
        raise DataError("Mindestens zwei Profile für die Interpolation benötigt",
                        thickness=thickness, available=len(ordered))
    t = np.array([e.rel_thickness for e in ordered])
    i = int(np.searchsorted(t, thickness))
    i = min(max(i, 1), len(ordered) - 1)
    return ordered[i - 1], ordered[i]


def assemble_sections(blade_df, polars, airfoils, tolerance=DEFAULT_THICKNESS_TOLERANCE,
                      method='linear'):
    """
    Baut die Blattsektionen aus der Geometrietabelle.

    Parameter:
      blade_df  : DataFrame aus data_io.read_blade_geometry
      polars    : Liste von Polar
      airfoils  : Liste von AirfoilCoordinates
      tolerance : Toleranz für exakten Dickentreffer
      method    : 1D-Interpolationsverfahren für die Koordinaten

    Rückgabe:
      Liste von BladeSection, nach Radius sortiert
    """
    if len(blade_df) < 2:
        raise DataError(f"Mindestens zwei Sektionen benötigt, gefunden: {len(blade_df)}")
    if not polars:
        raise DataError("Keine Polaren verfügbar")
    if not airfoils:
        raise DataError("Keine Profilgeometrien verfügbar")

    sections = []
    for i, row in enumerate(blade_df.itertuples(index=False)):
        t = float(row.rel_thickness)

        left, right = select_pair(polars, t, tolerance)
        if right is None:
            polar = left
        else:
            polar = Polar.interpolate_between(left, right, t)

        left, right = select_pair(airfoils, t, tolerance)
        if right is None:
            airfoil = left
        else:
            airfoil = AirfoilCoordinates.interpolate_between(left, right, t, method=method)

        logger.debug(f"Sektion {i}: r={row.radius:.3f} m, t/c={t:.2f} % -> {polar.name}")
        sections.append(BladeSection(
            radius=float(row.radius), chord=float(row.chord), twist=float(row.twist),
            rel_thickness=t, xt4=float(row.xt4), yt4=float(row.yt4),
            pcba_x=float(row.pcba_x), pcba_y=float(row.pcba_y),
            twist_axis=float(row.twist_axis), polar=polar, airfoil=airfoil))

    sections.sort(key=lambda s: s.radius)
    logger.info(f"{len(sections)} Blattsektionen zusammengesetzt")
    return sections
