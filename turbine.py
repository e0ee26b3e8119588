# turbine.py

"""
turbine.py

Rotorgeometrie mit Koordinatentransformationen.

Kette der Drehmatrizen (jeweils 3x3):
  Welt -> Gier (yaw) -> Neigung (tilt) = Wellensystem
  Wellensystem -> Azimut (psi) -> Konus (cone) = Blattwurzelsystem

Gier, Neigung und Konus sind fest und werden einmal berechnet; die
psi-abhängigen Matrizen werden bei jedem Aufruf neu gebildet.
"""

import numpy as np

from errors import DataError
from utils import deg2rad


def yaw_matrix(yaw):
    c, s = np.cos(yaw), np.sin(yaw)
    return np.array([[c, s, 0.0],
                     [-s, c, 0.0],
                     [0.0, 0.0, 1.0]])


def tilt_matrix(tilt):
    c, s = np.cos(tilt), np.sin(tilt)
    return np.array([[c, 0.0, -s],
                     [0.0, 1.0, 0.0],
                     [s, 0.0, c]])


cone_matrix = tilt_matrix


def azimuth_matrix(psi):
    c, s = np.cos(psi), np.sin(psi)
    return np.array([[1.0, 0.0, 0.0],
                     [0.0, c, s],
                     [0.0, -s, c]])


class TurbineGeometry:
    """
    Hält die Blattsektionen und die Rotorgrößen.

    Parameter:
      sections       : Liste von BladeSection (nach Radius sortiert)
      hub_radius     : Nabenradius [m]; Sektionsradius = Blattradius + Nabenradius
      cone, yaw, tilt: Winkel in Grad
      tower_distance : Abstand Rotorzentrum - Turmachse [m]
      hub_height     : Nabenhöhe [m]
      n_blades       : Blattzahl
    """

    def __init__(self, sections, hub_radius=0.0, cone=0.0, yaw=0.0, tilt=0.0,
                 tower_distance=0.0, hub_height=0.0, n_blades=3):
        if not sections:
            raise DataError("Turbine ohne Blattsektionen")
        if n_blades < 1:
            raise DataError("Blattzahl muss mindestens 1 sein", n_blades=n_blades)
        self.sections = list(sections)
        self.hub_radius = float(hub_radius)
        self.cone = deg2rad(float(cone))
        self.yaw = deg2rad(float(yaw))
        self.tilt = deg2rad(float(tilt))
        self.tower_distance = float(tower_distance)
        self.hub_height = float(hub_height)
        self.n_blades = int(n_blades)

        self.radii = np.array([s.radius for s in self.sections]) + self.hub_radius
        self.chords = np.array([s.chord for s in self.sections])
        self.twists = np.array([s.twist for s in self.sections])

        # feste Matrizen
        self.a12 = tilt_matrix(self.tilt) @ yaw_matrix(self.yaw)
        self.a21 = self.a12.T
        self.a34 = cone_matrix(self.cone)
        self.a43 = self.a34.T

    @property
    def num_sections(self):
        return len(self.sections)

    @property
    def rotor_radius(self):
        return float(self.radii[-1])

    @property
    def loss_hub_radius(self):
        """Radius für den Nabenverlust; ohne Nabe die erste Sektion."""
        return self.hub_radius if self.hub_radius > 0 else float(self.radii[0])

    def radius(self, i):
        return float(self.radii[i])

    def azimuth_to_root(self, psi):
        """Blattwurzel -> Wellensystem bei Azimut psi [rad]."""
        return azimuth_matrix(psi).T @ self.a43

    def world_to_blade_local_matrix(self, psi):
        a13 = azimuth_matrix(psi) @ self.a12
        return self.a34 @ a13

    def hub_relative_positions_at_psi(self, psi):
        """Sektionspositionen relativ zum Rotorzentrum im Wellensystem, (N, 3)."""
        radial = np.zeros((self.num_sections, 3))
        radial[:, 2] = self.radii
        return radial @ self.azimuth_to_root(psi).T

    def global_positions_at_psi(self, psi):
        """Sektionspositionen im Weltsystem, (N, 3)."""
        hub = np.array([0.0, 0.0, self.hub_height])
        tower = self.a21 @ np.array([-self.tower_distance, 0.0, 0.0])
        return hub + tower + self.hub_relative_positions_at_psi(psi) @ self.a21.T

    def interp_for_coeff(self, i, re, mach, alpha):
        """(Cl, Cd, Cm) der Sektion i; delegiert an deren Polare."""
        return self.sections[i].polar.lookup(re, mach, alpha)
