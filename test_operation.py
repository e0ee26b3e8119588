# test_operation.py

import math

import numpy as np
import pytest

from aep import AEPCalculator, HOURS_PER_YEAR, weibull_hours, weibull_scale
from config import SimulationConfig
from controller import (ConstantEfficiency, StandardPitchSchedule, TableEfficiency,
                        VariableSpeedController, build_controller)
from errors import ConfigurationError
from operation import OperationSolver, power_curve_frame

R = 40.0
RHO = 1.225


def make_controller(**kwargs):
    params = dict(rated_power=2.0e6, n_rated=20.0, n_max=20.0, n_min=8.0, optimal_tsr=8.0,
                  rotor_radius=R, power_mode="L0",
                  pitch_schedule=StandardPitchSchedule(0.0, [1.8e6], [0.1]),
                  efficiency=ConstantEfficiency(0.9))
    params.update(kwargs)
    return VariableSpeedController(**params)


def synthetic_bem(v_inf, tsr, pitch):
    # Cp-Maximum 0.45 bei lambda = 8, Pitch verringert Cp
    cp = 0.45 * math.exp(-((tsr - 8.0) / 5.0) ** 2) * (1.0 - 0.01 * pitch)
    ct = 0.8 * math.exp(-((tsr - 8.0) / 6.0) ** 2)
    return cp, ct


# Regler

def test_controller_l0_mode():
    ctrl = make_controller(n_max=30.0, n_rated=30.0)
    point = ctrl.operating_point(8.0, 5.0e5)
    assert point.n == pytest.approx(30.0 * 8.0 * 8.0 / (math.pi * R))
    assert point.tip_speed_ratio == pytest.approx(8.0)
    assert point.v_tip == pytest.approx(64.0)
    assert point.pitch == 0.0


def test_controller_limits_to_max_speed():
    point = make_controller().operating_point(14.0, 1.0e6)
    assert point.n == pytest.approx(20.0 - 0.001)


def test_controller_rated_speed():
    point = make_controller(n_rated=18.0).operating_point(14.0, 2.0e6)
    assert point.n == 18.0
    assert point.pitch == pytest.approx(0.2)


def test_controller_gradient_limit():
    ctrl = make_controller(max_dpdn=1.0e5)
    point = ctrl.operating_point(8.0, 1.5e6)
    # dP/dn > max_dpdn, daher n = n_max - dP/max_dpdn
    assert point.n == pytest.approx(20.0 - 0.5e6 / 1.0e5)


def test_controller_power_mode():
    ctrl = make_controller(power_mode="POWER",
                           power_table=([0.0, 1.0e6, 2.0e6], [8.0, 14.0, 20.0]))
    assert ctrl.operating_point(6.0, 5.0e5).n == pytest.approx(11.0)
    assert ctrl.operating_point(4.0, -1.0).n == pytest.approx(8.0)


def test_controller_power_mode_requires_table():
    with pytest.raises(ConfigurationError):
        make_controller(power_mode="POWER")
    with pytest.raises(ConfigurationError):
        make_controller(power_mode="PITCH")


def test_pitch_schedule():
    schedule = StandardPitchSchedule(1.0, [1.0e6, 1.5e6], [0.2, 0.5])
    assert schedule.pitch(5.0e5) == 1.0
    assert schedule.pitch(1.2e6) == pytest.approx(1.4)
    assert schedule.pitch(2.0e6) == pytest.approx(1.0 + 1.0 + 2.5)
    assert schedule.pitch(2.0e6, base_pitch=0.0) == pytest.approx(3.5)
    with pytest.raises(ConfigurationError):
        StandardPitchSchedule(0.0, [1.0e6], [0.1, 0.2])


def test_efficiency_models():
    assert ConstantEfficiency(0.9)(1.0e6) == 0.9
    table = TableEfficiency([2.0e6, 0.0, 1.0e6], [0.95, 0.8, 0.9])
    assert table(5.0e5) == pytest.approx(0.85)
    assert table(3.0e6) == pytest.approx(0.95)
    with pytest.raises(ConfigurationError):
        ConstantEfficiency(1.2)


def test_build_controller_from_config():
    cfg = SimulationConfig({"controller": {
        "rated_power": 2.0e6, "rated_rotorspeed": 18, "max_rotorspeed": 20,
        "min_rotorspeed": 8, "optimal_tsr": 8, "power_mode": "L0",
        "pitch": {"base": 1.0, "breakpoints": [1.9e6], "deltas": [0.5]},
        "efficiency": {"type": "table", "power": [0, 2.0e6], "eta": [0.8, 0.95]},
    }})
    ctrl = build_controller(cfg, R)
    assert ctrl.max_dpdn is None
    assert ctrl.pitch_schedule.base_pitch == 1.0
    assert ctrl.eta(1.0e6) == pytest.approx(0.875)


# Betriebspunkt-Iteration

def test_rated_power_clipping():
    ctrl = make_controller()
    solver = OperationSolver(synthetic_bem, ctrl, RHO, R, 2.0e6)
    points = solver.run(0.0, [11.0, 12.0, 13.0, 14.0])

    below = points[0]
    assert below.converged and not below.rated
    assert below.p_el < 2.0e6

    for p in points[1:]:
        assert p.rated
        assert p.p_el == pytest.approx(2.0e6, abs=1.0e3)
        assert p.pitch > 0.0
        assert p.n_rpm == pytest.approx(20.0)

    df = power_curve_frame(points)
    assert list(df['v_inf']) == [11.0, 12.0, 13.0, 14.0]
    assert df['p_el'].max() <= 2.0e6


def test_power_curve_monotonic():
    solver = OperationSolver(synthetic_bem, make_controller(), RHO, R, 2.0e6)
    p_el = [p.p_el for p in solver.run(0.0, np.arange(4.0, 16.0, 1.0))]
    assert all(b >= a for a, b in zip(p_el, p_el[1:]))
    assert max(p_el) <= 2.0e6 * (1.0 + 1e-6)


def test_partial_load_tracks_optimal_tsr():
    ctrl = make_controller(n_max=40.0, n_rated=40.0)
    solver = OperationSolver(synthetic_bem, ctrl, RHO, R, 2.0e6)
    point = solver.run(0.0, [6.0])[0]
    assert point.converged
    assert point.tip_speed_ratio == pytest.approx(8.0, rel=1e-3)
    assert point.cp_aero == pytest.approx(0.45, rel=1e-3)
    assert point.p_el == pytest.approx(0.9 * 0.45 * solver.wind_power(6.0), rel=1e-3)


def test_operation_returns_last_estimate():
    def flaky_bem(v_inf, tsr, pitch):
        return 0.0, 0.0
    ctrl = make_controller(pitch_schedule=StandardPitchSchedule(0.0, [-1.0e6], [1.0]))
    solver = OperationSolver(flaky_bem, ctrl, RHO, R, 2.0e6, max_iter=5)
    point = solver.run(0.0, [8.0])[0]
    assert point.iterations == 5
    assert not point.converged
    assert point.p_el == 0.0


def test_operation_minimum_iterations():
    calls = []

    def counting_bem(v_inf, tsr, pitch):
        calls.append(tsr)
        return synthetic_bem(v_inf, tsr, pitch)

    # Teillast: Pitch bleibt 0, das Residuum verschwindet sofort
    ctrl = make_controller(n_max=40.0, n_rated=40.0)
    point = OperationSolver(counting_bem, ctrl, RHO, R, 2.0e6, min_iter=3).run(0.0, [6.0])[0]
    assert point.converged
    assert point.iterations == 4
    assert len(calls) == 4

    calls.clear()
    point = OperationSolver(counting_bem, ctrl, RHO, R, 2.0e6, min_iter=0).run(0.0, [6.0])[0]
    assert point.iterations == 1
    assert len(calls) == 1


def test_operation_empty_wind_speeds():
    assert OperationSolver(synthetic_bem, make_controller(), RHO, R, 2.0e6).run(0.0, []) == []


# Jahresenergieertrag

def reference_aep(v, p_mw, dv, k, v_mean):
    A = v_mean / math.gamma(1.0 + 1.0 / k)
    total = 0.0
    for vi, pi in zip(v, p_mw):
        hours = 8760.0 * (math.exp(-((vi - dv) / A) ** k) - math.exp(-((vi + dv) / A) ** k))
        total += hours * pi * 1000.0
    return total


def test_weibull_aep():
    v = [4, 6, 8, 10, 12, 14]
    p_mw = [0.05, 0.3, 1.0, 2.0, 2.0, 2.0]
    calc = AEPCalculator(v, [p * 1e6 for p in p_mw], dv=1.0, k=2.0, price=0.08)
    energy, revenue = calc.compute(7.0)
    expected = reference_aep(v, p_mw, 1.0, 2.0, 7.0)
    assert weibull_scale(7.0, 2.0) == pytest.approx(7.898, abs=1e-3)
    assert energy == pytest.approx(expected, rel=1e-4)
    assert revenue == pytest.approx(0.08 * expected, rel=1e-4)


def test_weibull_hours_sum_to_year():
    # lückenlose Klassen ab 0 decken das ganze Jahr ab
    v = np.arange(1.0, 80.0, 2.0)
    scale = weibull_scale(7.0, 2.0)
    hours = weibull_hours(v, 1.0, scale, 2.0)
    assert hours.sum() == pytest.approx(HOURS_PER_YEAR)
    assert scale * math.gamma(1.5) == pytest.approx(7.0)


def test_weibull_hours_clamps_negative_bounds():
    hours = weibull_hours([0.0], 1.0, 8.0, 2.0)
    assert hours[0] == pytest.approx(HOURS_PER_YEAR * (1.0 - math.exp(-(1.0 / 8.0) ** 2)))


def test_aep_range_and_validation():
    calc = AEPCalculator([5.0, 10.0], [1.0e5, 1.0e6], dv=2.5, k=2.0, price=0.1)
    df = calc.compute_range([6.0, 7.0])
    assert list(df.columns) == ['v_mean', 'scale_A', 'aep_kwh', 'revenue', 'full_load_hours']
    assert df['aep_kwh'].iloc[1] > 0.0
    assert df['full_load_hours'].iloc[0] == pytest.approx(df['aep_kwh'].iloc[0] / 1000.0)
    with pytest.raises(ConfigurationError):
        AEPCalculator([5.0], [1.0, 2.0], dv=1.0, k=2.0)
    with pytest.raises(ConfigurationError):
        calc.compute(0.0)
