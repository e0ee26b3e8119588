# test_pipeline.py

import json
import os

import numpy as np
import pandas as pd
import pytest
import yaml

from config import load_config
from export import (BLADE_VARIABLES, DISC_VARIABLES, export_aep, export_blade_data, export_cp_map,
                    export_power_curve, export_rotor_disc, write_tecplot)
from flow import GridTimeSeriesInlet
from main import main
from operation import OperatingPoint, power_curve_frame
from plotting import plot_blade_loads, plot_cp_curves, plot_cp_lambda, plot_power_curve
from postprocess import RotorResult
from simulation import build_simulation, value_range
from test_io import write_wnd

HERE = os.path.dirname(os.path.abspath(__file__))


def fake_result(v_inf=8.0, n=4):
    cols = set(BLADE_VARIABLES) | set(DISC_VARIABLES) | {'dr', 'phi', 'a_axi', 'a_rot'}
    df = pd.DataFrame({c: np.linspace(1.0, 2.0, n) for c in cols})
    df['radius'] = np.linspace(5.0, 20.0, n)
    return RotorResult(v_inf=v_inf, tip_speed_ratio=7.0, pitch=0.0, omega=2.8, power=1.0e5,
                       cp=0.4, thrust=2.0e4, ct=0.7, torque=3.6e4, ctorque=0.05, sum_fy=0.0,
                       root_mx=0.0, root_my=0.0, root_mz=0.0, sections=df)


def fake_curve():
    points = [OperatingPoint(v_inf=v, v_tip=60.0, p_aero=1e5 * v, p_el=0.9e5 * v,
                             cp_aero=0.4, ct=0.7, converged=v < 8) for v in (5.0, 6.0, 7.0, 8.0)]
    return power_curve_frame(points)


def test_value_range():
    assert value_range(3.0, 5.0, 0.5) == [3.0, 3.5, 4.0, 4.5, 5.0]
    assert value_range(0.1, 0.3, 0.1) == [0.1, 0.2, 0.3]
    assert value_range(5.0, 4.0, 1.0) == []


def test_write_tecplot(tmp_path):
    df = pd.DataFrame({'a': [1.0, 2.0], 'b': [3.0, 4.0], 'extra': [0, 0]})
    path = write_tecplot(str(tmp_path / "t.dat"), "Test", [("z1", df), ("z2", df)],
                         {'b': 'b_[-]', 'a': 'a_[m]'})
    lines = open(path).read().splitlines()
    assert lines[0] == 'TITLE = "Test"'
    assert lines[1] == 'VARIABLES = "b_[-]" "a_[m]"'
    assert lines[2] == 'ZONE T="z1", I=2, F=POINT'
    assert [float(x) for x in lines[3].split()] == [3.0, 1.0]
    assert len(lines) == 8
    with pytest.raises(KeyError):
        write_tecplot(str(tmp_path / "u.dat"), "Test", [("z", df)], {'c': 'c'})


def test_exports(tmp_path):
    out = str(tmp_path)
    curve = fake_curve()
    assert os.path.isfile(export_power_curve(curve, out, "P"))
    result = fake_result()
    blade = export_blade_data(result, out, "P")
    assert os.path.basename(blade) == "blade_data_v8.00.dat"
    disc = export_rotor_disc({8.0: result, 6.0: fake_result(6.0)}, out, "P")
    text = open(disc).read()
    assert text.index('ZONE T="v_inf=6.00"') < text.index('ZONE T="v_inf=8.00"')

    cp = pd.DataFrame([[0.3, np.nan], [0.4, 0.35]], index=[6.0, 8.0], columns=[0.0, 2.0])
    ct = cp.fillna(0.0)
    map_text = open(export_cp_map(cp, ct, out, "P")).read()
    assert 'ZONE T="pitch=2.00", I=1' in map_text

    aep = pd.DataFrame({'v_mean': [7.0], 'scale_A': [7.9], 'aep_kwh': [1.0e6],
                        'revenue': [8.0e4], 'full_load_hours': [500.0]})
    assert os.path.isfile(export_aep(aep, out, "P"))


def test_plots(tmp_path):
    out = str(tmp_path)
    curve = fake_curve()
    cp = pd.DataFrame([[0.3, 0.2], [0.4, 0.35]], index=[6.0, 8.0], columns=[0.0, 2.0])
    for path in (plot_power_curve(curve, out), plot_cp_curves(curve, out),
                 plot_cp_lambda(cp, out), plot_blade_loads(fake_result(), out)):
        assert os.path.isfile(path)


def pipeline_config(tmp_path, **overrides):
    with open(os.path.join(HERE, "config.yaml")) as f:
        data = yaml.safe_load(f)
    for key in ("blade_geometry", "airfoil_geometry_list", "airfoil_performance_list"):
        data["files"][key] = os.path.join(HERE, data["files"][key])
    data["operation"].update(windspeed_start=6.0, windspeed_end=8.0, windspeed_step=1.0,
                             max_iterations=10)
    data["aep"].update(mean_windspeed_start=7.0, mean_windspeed_end=7.0)
    data["output"].update(directory=str(tmp_path / "out"), blade_data_windspeed=7.0, plots=False)
    data.pop("scan")
    for section, values in overrides.items():
        data.setdefault(section, {}).update(values)
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump(data))
    return str(path)


def test_main_end_to_end(tmp_path):
    assert main(["--config", pipeline_config(tmp_path)]) == 0
    out = tmp_path / "out"
    for name in ("power_curve.dat", "aep.dat", "summary.json"):
        assert (out / name).is_file()
    summary = json.loads((out / "summary.json").read_text())
    assert summary["n_windspeeds"] == 3
    assert summary["aep"][0]["v_mean"] == 7.0
    assert 0.0 <= summary["cp_max"] < 16.0 / 27.0


def test_main_missing_config(tmp_path):
    assert main(["--config", str(tmp_path / "fehlt.yaml")]) == 1


def test_main_invalid_config(tmp_path):
    path = pipeline_config(tmp_path, controller={"power_mode": "PITCH"})
    assert main(["--config", path]) == 1


def test_main_missing_data_file(tmp_path):
    path = pipeline_config(tmp_path, files={"blade_geometry": str(tmp_path / "kein_blatt.dat")})
    assert main(["--config", path, "--log-level", "DEBUG"]) == 1


def test_simulation_with_wind_field(tmp_path):
    uniform = build_simulation(load_config(pipeline_config(tmp_path)))
    assert uniform.inlet is None

    # gleichförmiges Windfeld: gleiche Beiwerte wie bei konstanter Einströmung
    wnd = write_wnd(tmp_path / "feld.wnd")
    path = pipeline_config(tmp_path, inlet={"type": "bladed", "file": wnd})
    sim = build_simulation(load_config(path))
    assert isinstance(sim.inlet, GridTimeSeriesInlet)
    cp, ct = sim.bem(8.0, 7.0, 0.0)
    assert cp > 0.0
    assert (cp, ct) == pytest.approx(uniform.bem(8.0, 7.0, 0.0), rel=1e-6)

    assert main(["--config", path]) == 0
    assert (tmp_path / "out" / "power_curve.dat").is_file()


def test_main_wind_field_without_file(tmp_path):
    path = pipeline_config(tmp_path, inlet={"type": "bladed"})
    assert main(["--config", path]) == 1
