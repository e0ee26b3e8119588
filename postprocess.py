"""
postprocess.py

Auswertung einer konvergierten BEM-Lösung: Elementkräfte, lokale Beiwerte,
integrale Rotorgrößen und aufsummierte Balkenlasten von der Spitze zur Wurzel.
"""

import logging
from dataclasses import dataclass, field

import numpy as np
import pandas as pd

from errors import ConvergenceFailure, DataError
from utils import rad2deg, wrap_angle_deg

logger = logging.getLogger(__name__)


@dataclass
class RotorResult:
    """Ergebnis des Postprozessors für einen Betriebspunkt."""
    v_inf: float
    tip_speed_ratio: float
    pitch: float
    omega: float
    power: float
    cp: float
    thrust: float
    ct: float
    torque: float
    ctorque: float
    sum_fy: float
    root_mx: float
    root_my: float
    root_mz: float
    sections: pd.DataFrame = field(repr=False)


def element_lengths(r, hub_radius=0.0):
    """
    Elementbreiten dr nach der Trapezregel.

    Eine einzelne Sektion erhält die Breite, deren Ringfläche 2*pi*r*dr der
    überstrichenen Fläche zwischen Nabe und r entspricht.
    """
    r = np.asarray(r, dtype=float)
    if r.size == 0:
        raise DataError("Keine Sektionen für dr vorhanden")
    if r.size == 1:
        if r[0] <= hub_radius:
            raise DataError("Sektionsradius muss größer als der Nabenradius sein",
                            r=r[0], hub_radius=hub_radius)
        return np.array([(r[0] ** 2 - hub_radius ** 2) / (2.0 * r[0])])
    dr = np.empty_like(r)
    dr[0] = (r[1] - r[0]) / 2.0
    dr[-1] = (r[-1] - r[-2]) / 2.0
    dr[1:-1] = (r[2:] - r[:-2]) / 2.0
    return dr


class BEMPostprocessor:
    def __init__(self, solver, rho):
        self.solver = solver
        self.rho = rho

    def run(self):
        """
        Berechnet Lasten und Beiwerte aus dem Löserzustand.

        Rückgabe:
          RotorResult

        Raises:
          ConvergenceFailure: der Löser war nicht erfolgreich
        """
        s = self.solver
        if not s.success:
            raise ConvergenceFailure("BEM-Lösung nicht konvergiert, keine Auswertung möglich",
                                     v_inf=f"{s.v_inf:.3f}", pitch=f"{s.pitch:.3f}")

        t = s.turbine
        rho = self.rho
        B = t.n_blades
        r = t.radii
        R = t.rotor_radius
        n = t.num_sections
        dr = element_lengths(r, t.hub_radius)
        v_inf = s.v_inf
        omega = s.flow.omega

        cols = {name: np.zeros(n) for name in (
            'alpha_eff', 'cl', 'cd', 'cm', 'v_local', 're', 'mach',
            'dT', 'dFy', 'dQ', 'dMz', 'cp_loc', 'ct_loc')}

        for i in range(n):
            phi = s.phi[i]
            alpha = wrap_angle_deg(rad2deg(phi) - (t.twists[i] + s.pitch))
            re, mach = s.local_reynolds(i), s.local_mach(i)
            cl, cd, cm = t.interp_for_coeff(i, re, mach, alpha)

            v_loc = s.local_flow_velocity(i)
            c = t.chords[i]
            denom = 0.5 * rho * v_loc ** 2 * c * dr[i]
            lift, drag, moment = cl * denom, cd * denom, cm * denom * c

            sin_phi, cos_phi = np.sin(phi), np.cos(phi)
            dT = lift * cos_phi + drag * sin_phi
            tangential = lift * sin_phi - drag * cos_phi
            dFy = -tangential
            dQ = tangential * r[i]
            sec = t.sections[i]
            dMz = dFy * sec.xt4 - dT * sec.yt4 + moment

            cp_den = dr[i] * rho * v_inf ** 3 * np.pi * r[i]
            ct_den = dr[i] * rho * v_inf ** 2 * np.pi * r[i]
            cols['alpha_eff'][i] = alpha
            cols['cl'][i], cols['cd'][i], cols['cm'][i] = cl, cd, cm
            cols['v_local'][i], cols['re'][i], cols['mach'][i] = v_loc, re, mach
            cols['dT'][i], cols['dFy'][i], cols['dQ'][i], cols['dMz'][i] = dT, dFy, dQ, dMz
            cols['cp_loc'][i] = B * dQ * omega / cp_den if cp_den > 0 else 0.0
            cols['ct_loc'][i] = B * dT / ct_den if ct_den > 0 else 0.0

        dT, dFy, dQ, dMz = cols['dT'], cols['dFy'], cols['dQ'], cols['dMz']
        disc = 0.5 * rho * np.pi * R ** 2
        power = float(np.sum(B * dQ * omega))
        thrust = float(np.sum(B * dT))
        torque = float(np.sum(B * dQ))
        cp = power / (disc * v_inf ** 3) if v_inf > 0 else 0.0
        ct = thrust / (disc * v_inf ** 2) if v_inf > 0 else 0.0
        ctorque = torque / (disc * v_inf ** 2 * R) if v_inf > 0 else 0.0

        # Balkenlasten von der Spitze nach innen
        integral = {name: np.zeros(n) for name in ('fx', 'fy', 'mx', 'my', 'mz')}
        for i in range(n):
            dist = r[i:] - r[i]
            integral['fx'][i] = np.sum(dT[i:])
            integral['fy'][i] = np.sum(dFy[i:])
            integral['mx'][i] = np.sum(dFy[i:] * -dist)
            integral['my'][i] = np.sum(dT[i:] * dist)
            integral['mz'][i] = np.sum(dMz[i:])

        sections = pd.DataFrame({
            'radius': r, 'chord': t.chords, 'twist': t.twists, 'dr': dr,
            'phi': rad2deg(s.phi), 'a_axi': s.a_axi.copy(), 'a_rot': s.a_rot.copy(),
            **cols,
            **{f'integral_{k}': v for k, v in integral.items()},
        })

        logger.debug(f"Postprozessor v={v_inf:.2f} m/s: Cp={cp:.4f}, Ct={ct:.4f}")
        return RotorResult(
            v_inf=v_inf, tip_speed_ratio=s.tip_speed_ratio, pitch=s.pitch, omega=omega,
            power=power, cp=cp, thrust=thrust, ct=ct, torque=torque, ctorque=ctorque,
            sum_fy=float(np.sum(dFy)), root_mx=float(np.sum(dQ)),
            root_my=float(np.sum(dT * r)), root_mz=float(np.sum(dMz)),
            sections=sections)
