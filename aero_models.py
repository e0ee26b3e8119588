"""
aero_models.py

Verlust- und Induktionsmodelle für den BEM-Löser.

  - NoLoss / PrandtlLoss: Spitzen- und Nabenverlustfaktor F
  - EmpiricalWakeInduction: axiale und tangentiale Induktion mit empirischer
    Korrektur oberhalb der Übergangsinduktion (Ning 2013)
"""

import numpy as np

from errors import ConfigurationError

# untere Schranken gegen Division durch null
SIN_FLOOR = 1e-12
QUAD_FLOOR = 1e-8


def prandtl_factor(f, n_blades):
    """F = 2/pi * arccos(exp(-B/2 * f))"""
    return 2.0 / np.pi * np.arccos(np.clip(np.exp(-0.5 * n_blades * f), 0.0, 1.0))


class NoLoss:
    def factor(self, r, rotor_radius, hub_radius, phi, n_blades, chord_tip):
        return 1.0


class PrandtlLoss:
    """
    Kombinierter Prandtl-Verlust F = F_Spitze * F_Nabe.

    Der Singularitätsabstand eps skaliert mit der äußersten Sehne:
    eps_Spitze = 0.01 * c_tip + tip_extra, eps_Nabe = 0.01 * c_tip.
    """

    def __init__(self, tip_extra=0.0, tip=True, hub=True):
        self.tip_extra = float(tip_extra)
        self.tip = tip
        self.hub = hub

    def tip_factor(self, r, rotor_radius, phi, n_blades, chord_tip):
        eps = 0.01 * chord_tip + self.tip_extra
        f = (eps + rotor_radius - r) / (r * max(abs(np.sin(phi)), SIN_FLOOR))
        return float(prandtl_factor(f, n_blades))

    def hub_factor(self, r, hub_radius, phi, n_blades, chord_tip):
        if hub_radius <= 0:
            return 1.0
        eps = 0.01 * chord_tip
        f = (eps + r - hub_radius) / (hub_radius * max(abs(np.sin(phi)), SIN_FLOOR))
        return float(prandtl_factor(f, n_blades))

    def factor(self, r, rotor_radius, hub_radius, phi, n_blades, chord_tip):
        F = 1.0
        if self.tip:
            F *= self.tip_factor(r, rotor_radius, phi, n_blades, chord_tip)
        if self.hub:
            F *= self.hub_factor(r, hub_radius, phi, n_blades, chord_tip)
        return F


class EmpiricalWakeInduction:
    """
    Induktionsfaktoren aus den Belastungsgrößen k und k_rot.

    Oberhalb von k_check = 1/(1/x - 1) gilt statt der Impulstheorie eine
    quadratische Schubbeiwert-Kurve, die bei a = x tangential an die
    Impulskurve anschließt und bei a = 1 den Wert 2 annimmt.
    """

    def __init__(self, transition=0.4):
        if not 0.0 < transition < 1.0:
            raise ConfigurationError("Übergangswert muss in (0, 1) liegen", x=transition)
        self.x = float(transition)

    def axial(self, k, phi, F):
        if phi > 0:
            x = self.x
            k_check = 1.0 / (1.0 / x - 1.0)
            if k <= k_check:
                return k / (1.0 + k)
            var1 = 2.0 - 4.0 * x * F * (1.0 - x)
            var2 = var1 - (1.0 - x) * 4.0 * F * (1.0 - 2.0 * x)
            var3 = (1.0 - x ** 2) - (1.0 - x) * 2.0 * x
            b2 = var2 / var3
            b1 = 4.0 * F * (1.0 - 2.0 * x) - 2.0 * x * b2
            b0 = 2.0 - b1 - b2
            qa = b2 - 4.0 * F * k
            qb = b1 + 8.0 * F * k
            qc = b0 - 4.0 * F * k
            if abs(qa) < QUAD_FLOOR:
                qa = QUAD_FLOOR
            disc = max(qb ** 2 - 4.0 * qa * qc, 0.0)
            return (-qb + np.sqrt(disc)) / (2.0 * qa)
        # Propellerbremse
        if k > 1.0:
            return k / (k - 1.0)
        return 0.0

    def tangential(self, k_rot):
        denom = 1.0 - k_rot
        if abs(denom) < SIN_FLOOR:
            denom = SIN_FLOOR
        return k_rot / denom

    def __call__(self, k, k_rot, phi, F):
        return self.axial(k, phi, F), self.tangential(k_rot)


def build_loss_model(name, tip_extra=0.0):
    name = (name or "prandtl").lower()
    if name == "prandtl":
        return PrandtlLoss(tip_extra=tip_extra)
    if name == "none":
        return NoLoss()
    raise ConfigurationError(f"Unbekanntes Verlustmodell: {name}")
