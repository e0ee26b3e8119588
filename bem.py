#!/usr/bin/env python3
"""
bem.py

Blade Element Momentum (BEM) nach Ning (2013) mit Prandtl-Korrekturen
  - Reduziert Axial- und Drehimpulsbilanz auf ein Residuum im Anströmwinkel phi
  - Sucht die Nullstelle je Sektion im positiven, danach im negativen Bereich
  - Wendet Spitzen-/Nabenverlust und empirische Nachlaufkorrektur an
  - Liefert Induktionsfaktoren sowie lokale Re- und Machzahl
"""
import logging
from dataclasses import dataclass

import numpy as np

from aero_models import EmpiricalWakeInduction, build_loss_model
from errors import DataError
from rootfinder import BrentsRootFinder, find_brackets
from utils import rad2deg, wrap_angle_deg

logger = logging.getLogger(__name__)

EPS_PI = 1e-6
F_FLOOR = 1e-10
DENOM_FLOOR = 1e-12


def _floor(value, floor=DENOM_FLOOR):
    if abs(value) < floor:
        return floor if value >= 0 else -floor
    return value


class NingSolver:
    """
    BEM-Löser für alle Sektionen einer Turbine bei einem Betriebspunkt.

    Ablauf: initialise -> solve_all_sections -> finalise (über solve()).

    Parameter:
      turbine        : TurbineGeometry
      flow           : FlowField (liefert lokale Geschwindigkeiten und lambda_loc)
      pitch          : kollektiver Pitchwinkel [deg]
      rho, nu        : Luftdichte [kg/m^3], kinematische Viskosität [m^2/s]
      speed_of_sound : Schallgeschwindigkeit [m/s]
      loss_model     : Objekt mit factor(r, R, r_hub, phi, B, c_tip)
      induction      : Objekt mit __call__(k, k_rot, phi, F) -> (a, a')
      root_finder    : Objekt mit solve(f, lo, hi) -> Nullstelle oder None
    """

    def __init__(self, turbine, flow, pitch, rho, nu, speed_of_sound,
                 loss_model, induction, root_finder, n_scan=80):
        self.turbine = turbine
        self.flow = flow
        self.pitch = float(pitch)
        self.rho = rho
        self.nu = nu
        self.speed_of_sound = speed_of_sound
        self.loss_model = loss_model
        self.induction = induction
        self.root_finder = root_finder
        self.n_scan = n_scan

        n = turbine.num_sections
        self.sigma = np.zeros(n)
        self.beta = np.zeros(n)
        self.phi = np.zeros(n)
        self.a_axi = np.zeros(n)
        self.a_rot = np.zeros(n)
        self.k = np.zeros(n)
        self.k_rot = np.zeros(n)
        self.converged = np.zeros(n, dtype=bool)
        self.success = False

    @property
    def v_inf(self):
        return self.flow.v_inf()

    @property
    def tip_speed_ratio(self):
        return self.flow.tip_speed_ratio()

    # Zustandsmaschine

    def solve(self):
        self.initialise()
        self.solve_all_sections()
        return self.finalise()

    def initialise(self):
        t = self.turbine
        self.sigma = t.n_blades * t.chords / (2.0 * np.pi * t.radii)
        self.beta = t.twists + self.pitch
        self.a_axi[:] = 0.3
        self.a_rot[:] = 0.0
        self.phi[:] = 0.0
        self.converged[:] = False
        self.success = False

    def solve_all_sections(self):
        for i in range(self.turbine.num_sections):
            try:
                self.converged[i] = self._solve_section(i)
            except DataError as e:
                logger.warning(f"Sektion {i}: Polarenabfrage fehlgeschlagen: {e}")
                self.converged[i] = False

    def finalise(self):
        self.success = bool(np.all(self.converged))
        if not self.success:
            R = self.turbine.rotor_radius
            failed = ", ".join(f"Sektion {i} (r/R={self.turbine.radius(i) / R:.3f})"
                               for i in np.flatnonzero(~self.converged))
            logger.warning(f"BEM nicht konvergiert bei v={self.v_inf:.2f} m/s, "
                           f"pitch={self.pitch:.2f} deg: {failed}")
        return self.success

    # Nullstellensuche

    def _solve_section(self, i):
        func = lambda phi: self.residual(i, phi)
        half = np.pi / 2.0

        positive = [(EPS_PI, half), (half, np.pi - EPS_PI)]
        if self._search(i, func, positive, (EPS_PI, np.pi - EPS_PI), lambda k: k > -1.0):
            return True
        negative = [(-half, -EPS_PI), (-np.pi + EPS_PI, -half)]
        return self._search(i, func, negative, (-np.pi + EPS_PI, -EPS_PI), lambda k: k > 1.0)

    def _search(self, i, func, intervals, scan_range, post_condition):
        for lo, hi in intervals:
            if self._try_bracket(i, func, lo, hi, post_condition):
                return True
        for lo, hi in find_brackets(func, scan_range[0], scan_range[1], self.n_scan):
            if self._try_bracket(i, func, lo, hi, post_condition):
                return True
        return False

    def _try_bracket(self, i, func, lo, hi, post_condition):
        root = self.root_finder.solve(func, lo, hi)
        if root is None:
            return False
        # Zustand auf die gefundene Nullstelle setzen
        func(root)
        ok = post_condition(self.k[i])
        logger.debug(f"Sektion {i}: phi={root:.6f} in [{lo:.4f}, {hi:.4f}], "
                     f"k={self.k[i]:.4f} -> {'ok' if ok else 'verworfen'}")
        return ok

    # Residuum

    def residual(self, i, phi):
        """
        Residuum R(phi) der Sektion i; schreibt phi, a_axi, a_rot.

        Re und Mach hängen von der Induktion ab, daher wird die Auswertung
        zweimal durchlaufen.
        """
        self.phi[i] = phi
        self.a_axi[i] = 0.0
        self.a_rot[i] = 0.0
        for _ in range(2):
            self._evaluate_polar_and_induction(i, phi)

        lam = self.flow.local_lambda(i)
        s, c = np.sin(phi), np.cos(phi)
        if phi > 0:
            return s / _floor(1.0 - self.a_axi[i]) - c / lam * (1.0 - self.k_rot[i])
        return s * (1.0 - self.k[i]) - c / lam * (1.0 - self.k_rot[i])

    def _evaluate_polar_and_induction(self, i, phi):
        t = self.turbine
        alpha = wrap_angle_deg(rad2deg(phi) - self.beta[i])
        cl, _, _ = t.interp_for_coeff(i, self.local_reynolds(i), self.local_mach(i), alpha)
        # Cd = 0 im Residuum (Ning 2013)
        cd = 0.0

        s, c = np.sin(phi), np.cos(phi)
        cn = cl * c + cd * s
        ct = cl * s - cd * c
        F = self.loss_model.factor(t.radius(i), t.rotor_radius, t.loss_hub_radius, phi,
                                   t.n_blades, t.chords[-1])
        F = max(F, F_FLOOR)
        k = self.sigma[i] * cn / (4.0 * F * _floor(s * s))
        k_rot = self.sigma[i] * ct / (4.0 * F * _floor(s * c))
        self.k[i], self.k_rot[i] = k, k_rot
        self.a_axi[i], self.a_rot[i] = self.induction(k, k_rot, phi, F)

    # lokale Strömungsgrößen

    def local_flow_velocity(self, i):
        v_ax, v_tan = self.flow.blade_local_velocities(i)
        return float(np.hypot(v_ax * (1.0 - self.a_axi[i]), v_tan * (1.0 + self.a_rot[i])))

    def local_reynolds(self, i):
        return self.local_flow_velocity(i) * self.turbine.chords[i] / self.nu

    def local_mach(self, i):
        return self.local_flow_velocity(i) / self.speed_of_sound


@dataclass
class SolverSettings:
    """Erzeugt NingSolver-Instanzen mit festen Modellen und Stoffwerten."""
    rho: float = 1.225
    nu: float = 1.5e-5
    speed_of_sound: float = 340.0
    tolerance: float = 1e-6
    max_iterations: int = 400
    transition: float = 0.4
    tip_extra: float = 0.0
    loss_model: str = "prandtl"

    def __post_init__(self):
        self._loss = build_loss_model(self.loss_model, self.tip_extra)
        self._induction = EmpiricalWakeInduction(self.transition)
        self._root_finder = BrentsRootFinder(self.tolerance, self.max_iterations)

    @classmethod
    def from_config(cls, cfg):
        return cls(
            rho=cfg.get_float("environment.air_density"),
            nu=cfg.get_float("environment.kinematic_viscosity"),
            speed_of_sound=cfg.get_float("environment.speed_of_sound"),
            tolerance=cfg.get_float("solver.tolerance"),
            max_iterations=cfg.get_int("solver.max_iterations", 400),
            transition=cfg.get_float("solver.transition"),
            tip_extra=cfg.get_float("solver.tip_extra", 0.0),
            loss_model=cfg.get_str("solver.loss_model", "prandtl"),
        )

    def create(self, turbine, flow, pitch):
        return NingSolver(turbine, flow, pitch, self.rho, self.nu, self.speed_of_sound,
                          self._loss, self._induction, self._root_finder)
