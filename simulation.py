# simulation.py

"""
simulation.py

Gesamtablauf der Rotorberechnung. TurbineSimulation besitzt Polaren,
Blattsektionen und Turbinengeometrie und stellt die BEM-Auswertung
(v_inf, lambda, pitch) -> (Cp, Ct) für die Betriebspunkt-Iteration bereit.
"""

import logging

import numpy as np
import pandas as pd

from aep import AEPCalculator
from bem import SolverSettings
from controller import build_controller
from data_io import read_airfoils, read_blade_geometry, read_polars
from errors import ConfigurationError, ConvergenceFailure
from flow import FlowField, ScaledInlet, UniformInlet, build_inlet, build_shear, build_veer
from geometry import DEFAULT_THICKNESS_TOLERANCE, assemble_sections
from operation import OperationSolver, power_curve_frame
from postprocess import BEMPostprocessor
from turbine import TurbineGeometry
from utils import timer

logger = logging.getLogger(__name__)


def value_range(start, end, step):
    """Werte von start bis einschließlich end im Abstand step."""
    n = int(np.floor((end - start) / step + 1e-9)) + 1
    return [round(start + i * step, 10) for i in range(max(n, 0))]


class TurbineSimulation:
    """
    Parameter:
      turbine    : TurbineGeometry
      settings   : SolverSettings (Stoffwerte, Modelle, Toleranzen)
      controller : VariableSpeedController (für die Leistungskurve)
      shear, veer: Strömungsmodelle; None = ohne
      inlet      : Windfeld, skaliert auf die jeweilige Windgeschwindigkeit;
                   None = konstante Einströmung
      psi        : Azimut der Auswertung [rad]
    """

    def __init__(self, turbine, settings, controller=None, shear=None, veer=None, psi=0.0,
                 inlet=None):
        self.turbine = turbine
        self.settings = settings
        self.controller = controller
        self.shear = shear
        self.veer = veer
        self.psi = psi
        self.inlet = inlet
        self.rotor_results = {}

    def solve_point(self, v_inf, tsr, pitch):
        """
        Löst einen Betriebspunkt und wertet ihn aus.

        Raises:
          ConvergenceFailure: mindestens eine Sektion nicht konvergiert
        """
        omega = tsr * v_inf / self.turbine.rotor_radius
        inlet = UniformInlet(v_inf) if self.inlet is None else ScaledInlet(self.inlet, v_inf)
        flow = FlowField(self.turbine, omega, self.psi, inlet,
                         self.shear, self.veer)
        solver = self.settings.create(self.turbine, flow, pitch)
        solver.solve()
        return BEMPostprocessor(solver, self.settings.rho).run()

    def bem(self, v_inf, tsr, pitch):
        """BEM-Auswertung für die Betriebspunkt-Iteration; (0, 0) bei Fehlschlag."""
        if v_inf <= 0:
            return 0.0, 0.0
        try:
            result = self.solve_point(v_inf, tsr, pitch)
        except ConvergenceFailure as e:
            logger.warning(f"Betriebspunkt v={v_inf:.2f} m/s, lambda={tsr:.3f}, "
                           f"pitch={pitch:.2f} deg: {e}; Cp=0 wird verwendet")
            self.rotor_results.pop(v_inf, None)
            return 0.0, 0.0
        self.rotor_results[v_inf] = result
        return result.cp, result.ct

    @timer
    def power_curve(self, wind_speeds, pitch=None, min_iter=3, max_iter=50,
                    damping=0.5, tolerance=1e-3):
        if self.controller is None:
            raise ConfigurationError("Für die Leistungskurve wird ein Regler benötigt")
        if pitch is None:
            pitch = self.controller.pitch_schedule.base_pitch
        solver = OperationSolver(self.bem, self.controller, self.settings.rho,
                                 self.turbine.rotor_radius, self.controller.rated_power,
                                 min_iter=min_iter, max_iter=max_iter,
                                 damping=damping, tolerance=tolerance)
        return solver.run(pitch, wind_speeds)

    @timer
    def cp_map(self, v_inf, tsr_values, pitch_values):
        """
        Cp und Ct über Schnelllaufzahl und Pitch bei fester Windgeschwindigkeit.

        Rückgabe:
          (cp, ct) als DataFrames, Index lambda, Spalten pitch; NaN bei Fehlschlag
        """
        cp = pd.DataFrame(np.nan, index=list(tsr_values), columns=list(pitch_values))
        ct = cp.copy()
        for tsr in tsr_values:
            for pitch in pitch_values:
                try:
                    res = self.solve_point(v_inf, tsr, pitch)
                except ConvergenceFailure:
                    continue
                cp.loc[tsr, pitch] = res.cp
                ct.loc[tsr, pitch] = res.ct
        cp.index.name = ct.index.name = 'lambda'
        cp.columns.name = ct.columns.name = 'pitch'
        return cp, ct


def build_simulation(cfg):
    """Liest alle Eingangsdaten und erzeugt die Simulation aus der Konfiguration."""
    polars = read_polars(cfg.get_path("files.airfoil_performance_list"))
    airfoils = read_airfoils(cfg.get_path("files.airfoil_geometry_list"))
    blade = read_blade_geometry(cfg.get_path("files.blade_geometry"))

    sections = assemble_sections(
        blade, polars, airfoils,
        tolerance=cfg.get_float("solver.thickness_tolerance", DEFAULT_THICKNESS_TOLERANCE),
        method=cfg.get_str("solver.interpolation", "linear"))

    turbine = TurbineGeometry(
        sections,
        hub_radius=cfg.get_float("turbine.hub_radius"),
        cone=cfg.get_float("turbine.cone", 0.0),
        yaw=cfg.get_float("turbine.yaw", 0.0),
        tilt=cfg.get_float("turbine.tilt", 0.0),
        tower_distance=cfg.get_float("turbine.tower_distance", 0.0),
        hub_height=cfg.get_float("turbine.hub_height"),
        n_blades=cfg.get_int("turbine.number_of_blades"))
    logger.info(f"Turbine: R={turbine.rotor_radius:.2f} m, B={turbine.n_blades}, "
                f"{turbine.num_sections} Sektionen")

    return TurbineSimulation(
        turbine,
        SolverSettings.from_config(cfg),
        controller=build_controller(cfg, turbine.rotor_radius),
        shear=build_shear(cfg, turbine.hub_height),
        veer=build_veer(cfg, turbine.rotor_radius, turbine.hub_height),
        inlet=build_inlet(cfg))


def run_simulation(cfg, sim=None):
    """
    Leistungskurve und AEP gemäß Konfiguration.

    Rückgabe:
      dict mit 'points', 'power_curve' (DataFrame), 'aep' (DataFrame),
      'rotor_results' (v_inf -> RotorResult) und optional 'cp_map'/'ct_map'
    """
    sim = sim or build_simulation(cfg)
    step = cfg.get_float("operation.windspeed_step")
    wind_speeds = value_range(cfg.get_float("operation.windspeed_start"),
                              cfg.get_float("operation.windspeed_end"), step)
    points = sim.power_curve(
        wind_speeds,
        min_iter=cfg.get_int("operation.min_iterations", 3),
        max_iter=cfg.get_int("operation.max_iterations", 50),
        damping=cfg.get_float("operation.damping", 0.5),
        tolerance=cfg.get_float("operation.tolerance", 1e-3))
    curve = power_curve_frame(points)

    calculator = AEPCalculator(curve['v_inf'], curve['p_el'],
                               dv=cfg.get_float("aep.bin_half_width", step / 2.0),
                               k=cfg.get_float("aep.weibull_k"),
                               price=cfg.get_float("aep.price_per_kwh"))
    mean_speeds = value_range(cfg.get_float("aep.mean_windspeed_start"),
                              cfg.get_float("aep.mean_windspeed_end"),
                              cfg.get_float("aep.mean_windspeed_step"))
    results = {
        'points': points,
        'power_curve': curve,
        'aep': calculator.compute_range(mean_speeds),
        'rotor_results': dict(sim.rotor_results),
    }

    if cfg.has("scan"):
        tsr_values = value_range(cfg.get_float("scan.tsr_start"), cfg.get_float("scan.tsr_end"),
                                 cfg.get_float("scan.tsr_step"))
        pitch_values = value_range(cfg.get_float("scan.pitch_start"),
                                   cfg.get_float("scan.pitch_end"),
                                   cfg.get_float("scan.pitch_step"))
        results['cp_map'], results['ct_map'] = sim.cp_map(
            cfg.get_float("scan.windspeed"), tsr_values, pitch_values)
    return results
