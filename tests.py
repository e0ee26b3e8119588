# tests.py

import math

import numpy as np
import pytest

from aero_models import EmpiricalWakeInduction, NoLoss, PrandtlLoss, build_loss_model, prandtl_factor
from bem import NingSolver, SolverSettings
from controller import VariableSpeedController
from errors import ConfigurationError, ConvergenceFailure, DataError, PolarRangeError
from flow import FlowField, UniformInlet
from geometry import BladeSection
from operation import OperationSolver
from polar import Polar, PolarPoint
from postprocess import BEMPostprocessor, element_lengths
from rootfinder import BrentsRootFinder, find_brackets
from simulation import TurbineSimulation
from turbine import TurbineGeometry


def thin_airfoil_polar(name="thin", thickness=18.0, reynolds=(1e6,), step=2.0, with_drag=True):
    """Polare über -180..180 Grad mit Cl = pi*sin(2 alpha)."""
    points = []
    for re in reynolds:
        for a in np.arange(-180.0, 180.0 + step / 2, step):
            r = math.radians(a)
            cd = 0.01 + math.sin(r) ** 2 if with_drag else 0.0
            points.append(PolarPoint(re=re, mach=0.0, alpha=float(a),
                                     cl=math.pi * math.sin(2 * r), cd=cd, cm=-0.05))
    return Polar(name, thickness, points)


def make_turbine(radii, chord=1.5, twist=2.0, polar=None, hub_radius=0.0, n_blades=3):
    polar = polar or thin_airfoil_polar()
    sections = [BladeSection(radius=r, chord=chord, twist=twist, rel_thickness=18.0, polar=polar)
                for r in radii]
    return TurbineGeometry(sections, hub_radius=hub_radius, hub_height=100.0, n_blades=n_blades)


def make_solver(turbine, v_inf=10.0, tsr=7.0, pitch=0.0, loss="prandtl"):
    omega = tsr * v_inf / turbine.rotor_radius
    flow = FlowField(turbine, omega, 0.0, UniformInlet(v_inf))
    settings = SolverSettings(loss_model=loss)
    return settings.create(turbine, flow, pitch)


# Polare

def grid_polar():
    points = []
    for re in (1e5, 1e6):
        for ma in (0.1, 0.3):
            for al in (0.0, 5.0, 10.0):
                points.append(PolarPoint(re=re, mach=ma, alpha=al,
                                         cl=0.1 * re * 1e-6 + ma + al / 10.0,
                                         cd=0.01 + 0.001 * al, cm=-0.1))
    return Polar("grid", 18.0, points)


def test_polar_trilinear():
    # Cl ist in allen drei Achsen linear, die Interpolation muss exakt sein
    cl, cd, cm = grid_polar().lookup(5.5e5, 0.2, 7.5)
    assert cl == pytest.approx(1.005, abs=1e-9)
    assert cd == pytest.approx(0.0175, abs=1e-9)
    assert cm == pytest.approx(-0.1)


def test_polar_exact_point_returned_unchanged():
    polar = grid_polar()
    for p in polar.points:
        assert polar.lookup(p.re, p.mach, p.alpha) == (p.cl, p.cd, p.cm)


def test_polar_alpha_out_of_range():
    with pytest.raises(PolarRangeError):
        grid_polar().lookup(5e5, 0.2, 12.0)


def test_polar_clamps_reynolds_and_mach():
    polar = grid_polar()
    assert polar.lookup(1e7, 0.2, 5.0) == pytest.approx(polar.lookup(1e6, 0.2, 5.0))
    assert polar.lookup(5e5, 0.9, 5.0) == pytest.approx(polar.lookup(5e5, 0.3, 5.0))


def test_polar_rejects_incomplete_grid():
    points = [PolarPoint(1e6, 0.0, 0.0, 0.0, 0.01), PolarPoint(1e6, 0.0, 5.0, 0.5, 0.01),
              PolarPoint(2e6, 0.0, 0.0, 0.0, 0.01)]
    with pytest.raises(DataError):
        Polar("luecke", 18.0, points)


def test_polar_blend():
    left = thin_airfoil_polar("a", 18.0)
    right_points = [PolarPoint(p.re, p.mach, p.alpha, p.cl * 0.5, p.cd * 2.0, 0.0)
                    for p in left.points]
    right = Polar("b", 30.0, right_points)

    same = Polar.interpolate_between(left, right, 18.0)
    mid = Polar.interpolate_between(left, right, 24.0)
    for p in left.points[::10]:
        assert same.lookup(p.re, p.mach, p.alpha) == pytest.approx((p.cl, p.cd, p.cm))
        cl, cd, _ = mid.lookup(p.re, p.mach, p.alpha)
        assert cl == pytest.approx(0.75 * p.cl)
        assert cd == pytest.approx(1.5 * p.cd)
    assert mid.rel_thickness == 24.0


def test_polar_blend_equal_thickness_uses_left():
    left = grid_polar()
    right = Polar("r", 18.0, [PolarPoint(p.re, p.mach, p.alpha, 9.0, 9.0) for p in left.points])
    blended = Polar.interpolate_between(left, right, 18.0)
    assert blended.lookup(1e5, 0.1, 5.0) == pytest.approx(left.lookup(1e5, 0.1, 5.0))


# Nullstellensuche

def test_brent_regression():
    # doppelte Nullstelle bei x = 1, gesucht ist die einfache bei -3
    root = BrentsRootFinder(tol=1e-10).solve(lambda x: (x + 3) * (x - 1) ** 2, -4.0, 4.0 / 3.0)
    assert root == pytest.approx(-3.0, abs=1e-6)


def test_brent_invalid_bracket():
    assert BrentsRootFinder().solve(lambda x: x ** 2 + 1, -1.0, 1.0) is None


def test_find_brackets():
    brackets = find_brackets(np.sin, 0.5, 7.0, n=20)
    roots = [math.pi, 2 * math.pi]
    assert len(brackets) == 2
    for (a, b), root in zip(brackets, roots):
        assert a <= root <= b


# Verlust- und Induktionsmodelle

def test_prandtl_loss_endpoints():
    loss = PrandtlLoss()
    R, r_hub, B = 40.0, 2.0, 3
    assert loss.tip_factor(R, R, math.pi / 4, B, 0.0) == pytest.approx(0.0, abs=1e-12)
    assert loss.tip_factor(R, R, math.pi / 4, B, 1.0) < 0.05
    assert loss.hub_factor(r_hub, r_hub, math.pi / 4, B, 0.0) == pytest.approx(0.0, abs=1e-12)
    F = loss.factor(0.5 * (R + r_hub), R, r_hub, math.pi / 4, B, 1.0)
    assert 0.0 < F < 1.0


def test_prandtl_factor_limits():
    assert prandtl_factor(0.0, 3) == pytest.approx(0.0)
    assert prandtl_factor(50.0, 3) == pytest.approx(1.0)


def test_loss_model_factory():
    assert isinstance(build_loss_model("none"), NoLoss)
    assert build_loss_model("Prandtl", tip_extra=0.2).tip_extra == 0.2
    with pytest.raises(ConfigurationError):
        build_loss_model("glauert")


def test_induction_momentum_branch():
    ind = EmpiricalWakeInduction(0.4)
    assert ind.axial(0.5, 0.1, 1.0) == pytest.approx(0.5 / 1.5)


def test_induction_empirical_branch_continuous():
    # bei k_check schließt die empirische Kurve an die Impulstheorie an
    ind = EmpiricalWakeInduction(0.4)
    k_check = 1.0 / (1.0 / 0.4 - 1.0)
    below = ind.axial(k_check, 0.1, 1.0)
    above = ind.axial(k_check + 1e-6, 0.1, 1.0)
    assert below == pytest.approx(0.4)
    assert above == pytest.approx(0.4, abs=1e-4)
    assert ind.axial(5.0, 0.1, 1.0) > 0.4


def test_induction_propeller_brake():
    ind = EmpiricalWakeInduction(0.4)
    assert ind.axial(2.0, -0.1, 1.0) == pytest.approx(2.0)
    assert ind.axial(0.5, -0.1, 1.0) == 0.0
    assert ind.tangential(0.2) == pytest.approx(0.25)


def test_induction_rejects_transition():
    with pytest.raises(ConfigurationError):
        EmpiricalWakeInduction(1.0)


# BEM-Löser

def test_single_section_rotor():
    # Cl = 2 pi alpha, Cd = 0, ohne Verluste
    points = [PolarPoint(1e6, 0.0, float(a), 2 * math.pi * math.radians(a), 0.0)
              for a in np.arange(-180.0, 181.0, 1.0)]
    polar = Polar("linear", 18.0, points)
    turbine = make_turbine([50.0], chord=3.0, twist=0.0, polar=polar)
    solver = make_solver(turbine, v_inf=10.0, tsr=7.0, loss="none")

    assert solver.flow.omega == pytest.approx(1.4)
    assert solver.solve()
    phi = solver.phi[0]
    assert 0.0 < phi < math.pi / 2
    assert abs(solver.residual(0, phi)) < 1e-4

    lam = solver.flow.local_lambda(0)
    lhs = math.sin(phi) / (1.0 - solver.a_axi[0])
    rhs = math.cos(phi) / lam * (1.0 - solver.k_rot[0])
    assert lhs == pytest.approx(rhs, abs=1e-4)
    k = solver.k[0]
    assert solver.a_axi[0] == pytest.approx(k / (1.0 + k))

    # die einzelne Sektion überstreicht die ganze Rotorfläche
    result = BEMPostprocessor(solver, 1.225).run()
    a = solver.a_axi[0]
    assert result.sections['dr'].iloc[0] == pytest.approx(25.0)
    assert result.cp == pytest.approx(result.sections['cp_loc'].iloc[0])
    assert result.cp == pytest.approx(4.0 * a * (1.0 - a) ** 2, abs=0.01)


def test_rotor_respects_betz_limit():
    turbine = make_turbine(np.linspace(4.0, 40.0, 12))
    solver = make_solver(turbine, v_inf=8.0, tsr=7.0)
    assert solver.solve()
    result = BEMPostprocessor(solver, 1.225).run()
    assert 0.0 < result.cp < 16.0 / 27.0
    assert result.ct > 0.0
    assert result.power == pytest.approx(result.torque * solver.flow.omega)
    # Balkenlasten an der Spitze gleich dem Beitrag der letzten Sektion
    sec = result.sections
    assert sec['integral_fx'].iloc[-1] == pytest.approx(sec['dT'].iloc[-1])
    assert sec['integral_fx'].iloc[0] == pytest.approx(sec['dT'].sum())
    assert len(sec) == 12


def test_postprocessor_requires_converged_solver():
    # Polare nur von -5 bis 5 Grad: die Suche verlässt den Bereich
    points = [PolarPoint(1e6, 0.0, a, 0.1 * a, 0.01) for a in (-5.0, 0.0, 5.0)]
    turbine = make_turbine([10.0, 20.0], polar=Polar("schmal", 18.0, points))
    solver = make_solver(turbine)
    assert not solver.solve()
    with pytest.raises(ConvergenceFailure):
        BEMPostprocessor(solver, 1.225).run()


def test_simulation_returns_zero_on_failure():
    points = [PolarPoint(1e6, 0.0, a, 0.1 * a, 0.01) for a in (-5.0, 0.0, 5.0)]
    turbine = make_turbine([10.0, 20.0], polar=Polar("schmal", 18.0, points))
    sim = TurbineSimulation(turbine, SolverSettings())
    assert sim.bem(8.0, 7.0, 0.0) == (0.0, 0.0)
    assert sim.bem(0.0, 7.0, 0.0) == (0.0, 0.0)
    assert sim.rotor_results == {}


def test_simulation_stores_rotor_result():
    turbine = make_turbine(np.linspace(4.0, 40.0, 8))
    sim = TurbineSimulation(turbine, SolverSettings())
    cp, ct = sim.bem(8.0, 7.0, 0.0)
    assert 0.0 < cp < 16.0 / 27.0
    assert sim.rotor_results[8.0].cp == cp


def test_tip_speed_and_lambda_give_same_coefficients():
    turbine = make_turbine(np.linspace(4.0, 40.0, 8))
    sim = TurbineSimulation(turbine, SolverSettings())
    ctrl = VariableSpeedController(2.0e6, 20.0, 20.0, 8.0, 7.0, turbine.rotor_radius)
    op = OperationSolver(sim.bem, ctrl, 1.225, turbine.rotor_radius, 2.0e6)

    # Betriebspunkt über v_tip oder direkt über lambda = v_tip / v_inf
    point = op._evaluate(8.0, 56.0, 1.0, op.wind_power(8.0))
    cp, ct = sim.bem(8.0, 56.0 / 8.0, 1.0)
    assert point.tip_speed_ratio == pytest.approx(7.0)
    assert (point.cp_aero, point.ct) == (cp, ct)
    assert 0.0 < cp < 16.0 / 27.0

    # gleiche Schnelllaufzahl bei anderer Windgeschwindigkeit (eine Re-Zahl, Mach 0)
    point = op._evaluate(10.0, 70.0, 1.0, op.wind_power(10.0))
    assert point.cp_aero == pytest.approx(cp, rel=1e-6)
    assert point.ct == pytest.approx(ct, rel=1e-6)


def test_element_lengths():
    dr = element_lengths([1.0, 2.0, 4.0])
    assert list(dr) == [0.5, 1.5, 1.0]
    assert list(element_lengths([4.0])) == [2.0]
    assert element_lengths([5.0], hub_radius=3.0)[0] == pytest.approx(1.6)
    with pytest.raises(DataError):
        element_lengths([])
    with pytest.raises(DataError):
        element_lengths([2.0], hub_radius=2.0)


def test_solver_state_shapes():
    turbine = make_turbine([10.0, 20.0, 30.0])
    solver = make_solver(turbine)
    assert isinstance(solver, NingSolver)
    solver.initialise()
    assert solver.sigma == pytest.approx(3 * 1.5 / (2 * np.pi * np.array([10.0, 20.0, 30.0])))
    assert solver.beta == pytest.approx([2.0, 2.0, 2.0])
