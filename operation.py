# operation.py

"""
operation.py

Betriebspunkt-Iteration über die Windgeschwindigkeiten: BEM-Auswertung und
Regler werden abwechselnd aufgerufen, bis der Pitchwinkel konvergiert oder
die Nennleistung erreicht ist.
"""

import logging
from dataclasses import dataclass, asdict

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)


@dataclass
class OperatingPoint:
    v_inf: float
    v_tip: float = 0.0
    pitch: float = 0.0
    tip_speed_ratio: float = 0.0
    p_wind: float = 0.0
    cp_aero: float = 0.0
    p_aero: float = 0.0
    n_rpm: float = 0.0
    torque: float = 0.0
    eta: float = 0.0
    p_el: float = 0.0
    ct: float = 0.0
    converged: bool = False
    rated: bool = False
    iterations: int = 0


def power_curve_frame(points):
    """Betriebspunkte als DataFrame, eine Zeile je Windgeschwindigkeit."""
    return pd.DataFrame([asdict(p) for p in points])


class OperationSolver:
    """
    Parameter:
      bem        : Funktion (v_inf, lambda, pitch) -> (Cp, Ct)
      controller : VariableSpeedController
      rho        : Luftdichte [kg/m^3]
      rotor_radius, rated_power
      min_iter, max_iter : Iterationsgrenzen
      damping    : Gewicht der neuen Werte bei der gedämpften Aktualisierung
      tolerance  : Konvergenzgrenze auf den Pitchwinkel [deg]
    """

    def __init__(self, bem, controller, rho, rotor_radius, rated_power,
                 min_iter=3, max_iter=50, damping=0.5, tolerance=1e-3):
        self.bem = bem
        self.controller = controller
        self.rho = rho
        self.rotor_radius = rotor_radius
        self.rated_power = rated_power
        self.min_iter = min_iter
        self.max_iter = max_iter
        self.damping = damping
        self.tolerance = tolerance

    def wind_power(self, v_inf):
        return 0.5 * self.rho * v_inf ** 3 * np.pi * self.rotor_radius ** 2

    def run(self, pitch_deg, wind_speeds):
        """
        Berechnet die Betriebspunkte für alle Windgeschwindigkeiten.

        Die konvergierte Blattspitzengeschwindigkeit dient als Startwert für
        die nächste Windgeschwindigkeit.
        """
        wind_speeds = list(wind_speeds)
        if not wind_speeds:
            return []
        v_tip = self.controller.operating_point(wind_speeds[0], 0.0, pitch_deg).v_tip
        points = []
        for v_inf in wind_speeds:
            point, v_tip = self._solve_wind_speed(v_inf, v_tip, pitch_deg)
            points.append(point)
            logger.info(f"v={v_inf:5.2f} m/s: P_el={point.p_el / 1e3:9.1f} kW, "
                        f"Cp={point.cp_aero:.4f}, n={point.n_rpm:.2f} rpm, "
                        f"pitch={point.pitch:.2f} deg")
        return points

    def _evaluate(self, v_inf, v_tip, pitch, p_wind):
        tsr = v_tip / v_inf if v_inf > 0 else 0.0
        cp, ct = self.bem(v_inf, tsr, pitch)
        p_aero = cp * p_wind
        omega = v_tip / self.rotor_radius
        torque = p_aero / omega if omega > 1e-9 else 0.0
        n = omega * 60.0 / (2.0 * np.pi)
        eta = self.controller.eta(p_aero)
        return OperatingPoint(v_inf=v_inf, v_tip=v_tip, pitch=pitch, tip_speed_ratio=tsr,
                              p_wind=p_wind, cp_aero=cp, p_aero=p_aero, n_rpm=n,
                              torque=torque, eta=eta, p_el=eta * p_aero, ct=ct)

    def _solve_wind_speed(self, v_inf, v_tip, base_pitch):
        p_wind = self.wind_power(v_inf)
        pitch = base_pitch
        point = OperatingPoint(v_inf=v_inf, p_wind=p_wind)

        for it in range(self.max_iter):
            point = self._evaluate(v_inf, v_tip, pitch, p_wind)
            point.iterations = it + 1

            if point.p_el >= self.rated_power and it >= self.min_iter:
                ctrl = self.controller.operating_point(v_inf, self.rated_power, base_pitch)
                point = self._evaluate(v_inf, ctrl.v_tip, ctrl.pitch, p_wind)
                point.p_el = min(point.p_el, self.rated_power)
                point.iterations, point.converged, point.rated = it + 1, True, True
                return point, ctrl.v_tip

            ctrl = self.controller.operating_point(v_inf, point.p_el, base_pitch)
            residual = abs(ctrl.pitch - pitch)
            pitch = (1.0 - self.damping) * pitch + self.damping * ctrl.pitch
            v_tip = (1.0 - self.damping) * v_tip + self.damping * ctrl.v_tip
            if residual < self.tolerance and it >= self.min_iter:
                point.converged = True
                return point, v_tip

        logger.warning(f"Betriebspunkt bei v={v_inf:.2f} m/s nach {self.max_iter} "
                       f"Iterationen nicht konvergiert, letzte Schätzung wird verwendet")
        return point, v_tip
