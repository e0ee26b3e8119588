# test_io.py

import logging
import math
import os

import numpy as np
import pytest

from airfoil import AirfoilCoordinates, LE, TE_BOTTOM, TE_TOP
from config import SimulationConfig, load_config
from data_io import (read_airfoil_geometry, read_airfoils, read_blade_geometry,
                     read_bladed_wind_field, read_file_list, read_polar_file, read_polars)
from errors import ConfigurationError, DataError
from flow import (DiabaticShear, FlowField, GridTimeSeriesInlet, LinearVeer, LogShear, NoShear,
                  PowerLawShear, ScaledInlet, UniformInlet, build_inlet, build_shear, build_veer)
from geometry import BladeSection, assemble_sections, select_pair
from interpolation import METHODS, interpolate_1d
from polar import Polar, PolarPoint
from turbine import TurbineGeometry, azimuth_matrix, tilt_matrix, yaw_matrix

HERE = os.path.dirname(os.path.abspath(__file__))
DATA = os.path.join(HERE, "data")


def write(path, text):
    path.write_text(text)
    return str(path)


POLAR_TEXT = """# Testpolare
REFNUM\tP18
THICK\t18.0
REYN\t1000000
MACH\t0.0
NALPHA\t3
-5.0\t-0.3\t0.010\t-0.05
0.0\t0.2\t0.008\t-0.05
5.0\t0.7\t0.010\t-0.05
"""


# Dateilisten und Polaren

def test_read_file_list(tmp_path):
    (tmp_path / "a.pol").write_text(POLAR_TEXT)
    lst = write(tmp_path / "list.lst", "# Revision\t7\n# Date\t2026-01-01\na.pol\nfehlt.pol\n")
    paths, meta = read_file_list(lst)
    assert paths == [str(tmp_path / "a.pol")]
    assert meta == {'revision': '7', 'date': '2026-01-01'}


def test_read_file_list_errors(tmp_path):
    with pytest.raises(ConfigurationError):
        read_file_list(str(tmp_path / "nicht_da.lst"))
    with pytest.raises(DataError):
        read_file_list(write(tmp_path / "leer.lst", "# nur Kommentar\n"))


def test_read_polar_file(tmp_path):
    block = read_polar_file(write(tmp_path / "p.pol", POLAR_TEXT))
    assert block['name'] == "P18"
    assert block['thickness'] == 18.0
    assert block['reynolds'] == 1.0e6
    assert list(block['data']['alpha']) == [-5.0, 0.0, 5.0]
    assert block['data']['cl'].iloc[2] == 0.7


def test_read_polar_file_requires_reynolds(tmp_path):
    text = POLAR_TEXT.replace("REYN\t1000000\n", "")
    with pytest.raises(DataError):
        read_polar_file(write(tmp_path / "p.pol", text))


def test_read_polars_groups_by_name(tmp_path):
    write(tmp_path / "a.pol", POLAR_TEXT)
    write(tmp_path / "b.pol", POLAR_TEXT.replace("1000000", "3000000"))
    lst = write(tmp_path / "list.lst", "a.pol\nb.pol\n")
    polars = read_polars(lst)
    assert len(polars) == 1
    assert list(polars[0].reynolds) == [1.0e6, 3.0e6]
    assert polars[0].lookup(3.0e6, 0.0, 5.0) == (0.7, 0.01, -0.05)


def test_example_data_loads():
    polars = read_polars(os.path.join(DATA, "polars", "polar_list.lst"))
    airfoils = read_airfoils(os.path.join(DATA, "airfoils", "airfoil_list.lst"))
    blade = read_blade_geometry(os.path.join(DATA, "blade_geometry.dat"))
    assert sorted(p.rel_thickness for p in polars) == [18.0, 30.0]
    assert all(p.alphas[0] == -180.0 and p.alphas[-1] == 180.0 for p in polars)
    assert len(airfoils) == 2
    assert list(blade['radius']) == sorted(blade['radius'])


# Blatt- und Profilgeometrie

def test_read_blade_geometry(tmp_path):
    text = ("# Kopf\n"
            "DEF\t20.0\t1.0\t0.0\t18\t0\t0\t0.25\t0\t0.35\n"
            "DEF\t10.0\t2.0\t5.0\t24\t0\t0\t0.25\t0\t0.35\n")
    df = read_blade_geometry(write(tmp_path / "blade.dat", text))
    assert list(df['radius']) == [10.0, 20.0]
    assert df['twist'].iloc[0] == 5.0


def test_read_blade_geometry_rejects_bad_rows(tmp_path):
    with pytest.raises(DataError):
        read_blade_geometry(write(tmp_path / "one.dat", "DEF\t1\t1\t0\t18\t0\t0\t0\t0\t0\n"))
    with pytest.raises(DataError):
        read_blade_geometry(write(tmp_path / "short.dat",
                                  "DEF\t1\t1\t0\t18\nDEF\t2\t1\t0\t18\n"))


def square_airfoil_text(name, thickness):
    return (f"NAME\t{name}\nRELDICKE\t{thickness}\n"
            "DEF\t1.0\t0.0\t0\nDEF\t0.5\t0.1\t0\nDEF\t0.0\t0.0\t0\nDEF\t0.5\t-0.1\t0\n"
            "DEF\t1.0\t0.0\t0\n")


def test_read_airfoil_geometry(tmp_path):
    af = read_airfoil_geometry(write(tmp_path / "af.dat", square_airfoil_text("A18", 18.0)))
    assert af.name == "A18"
    assert af.rel_thickness == 18.0
    assert af.markers[LE] == 2
    assert af.max_thickness() == pytest.approx(20.0, abs=0.5)


def test_airfoil_normalization():
    # doppelte Sehne, verschoben und im Uhrzeigersinn
    pts = np.array([[3.0, 1.0], [2.0, 0.8], [1.0, 1.0], [2.0, 1.2], [3.0, 1.0]])
    af = AirfoilCoordinates("cw", 20.0, pts)
    assert af.points[af.markers[LE]] == pytest.approx([0.0, 0.0])
    assert af.points[:, 0].max() == pytest.approx(1.0)
    assert af.upper[:, 1].min() >= -1e-12
    assert af.markers[TE_TOP] == 0
    assert af.markers[TE_BOTTOM] == len(af) - 1


def test_airfoil_blend():
    thin = AirfoilCoordinates("t", 10.0, np.array(
        [[1.0, 0.0], [0.5, 0.05], [0.0, 0.0], [0.5, -0.05], [1.0, 0.0]]))
    thick = AirfoilCoordinates("d", 30.0, np.array(
        [[1.0, 0.0], [0.5, 0.15], [0.0, 0.0], [0.5, -0.15], [1.0, 0.0]]))
    mid = AirfoilCoordinates.interpolate_between(thin, thick, 20.0)
    assert mid.rel_thickness == 20.0
    assert mid.max_thickness() == pytest.approx(20.0, abs=0.5)
    assert mid.points[mid.markers[LE]] == pytest.approx([0.0, 0.0])


def test_select_pair():
    polars = [Polar(f"p{t}", t, [PolarPoint(1e6, 0.0, 0.0, 0.0, 0.01),
                                 PolarPoint(1e6, 0.0, 5.0, 0.5, 0.01)]) for t in (18.0, 30.0)]
    assert select_pair(polars, 18.0005) == (polars[0], None)
    left, right = select_pair(polars, 24.0)
    assert (left.name, right.name) == ("p18.0", "p30.0")
    left, right = select_pair(polars, 40.0)
    assert (left.name, right.name) == ("p18.0", "p30.0")
    with pytest.raises(DataError):
        select_pair(polars[:1], 24.0)


def test_assemble_sections_blends_between_thicknesses(caplog):
    caplog.set_level(logging.INFO)
    polars = read_polars(os.path.join(DATA, "polars", "polar_list.lst"))
    airfoils = read_airfoils(os.path.join(DATA, "airfoils", "airfoil_list.lst"))
    blade = read_blade_geometry(os.path.join(DATA, "blade_geometry.dat"))
    sections = assemble_sections(blade, polars, airfoils, method='akima')
    assert len(sections) == len(blade)
    assert sections[0].polar.rel_thickness == 30.0
    assert sections[-1].polar.name == "TH18"
    blended = [s for s in sections if 18.0 < s.rel_thickness < 30.0]
    assert blended
    for s in blended:
        assert s.polar.rel_thickness == s.rel_thickness
        assert s.airfoil.rel_thickness == s.rel_thickness
    # Meldungen laufen über die Modul-Logger
    names = {r.name for r in caplog.records}
    assert {"data_io", "geometry"} <= names


# Interpolation

def test_interpolation_methods():
    x = np.linspace(0.0, 1.0, 6)
    y = 2.0 * x + 1.0
    for method in METHODS:
        assert interpolate_1d(method, x, y, 0.55) == pytest.approx(2.1)


def test_interpolation_unsorted_and_fallback():
    assert interpolate_1d('akima', [1.0, 0.0], [3.0, 1.0], 0.5) == pytest.approx(2.0)
    with pytest.raises(ConfigurationError):
        interpolate_1d('spline5', [0.0, 1.0], [0.0, 1.0], 0.5)
    with pytest.raises(DataError):
        interpolate_1d('linear', [0.0], [0.0], 0.5)


# Konfiguration

def test_config_accessors():
    cfg = SimulationConfig({"a": {"b": "3", "c": 2.5, "d": "yes", "e": [1, 2]}, "n": None})
    assert cfg.get_int("a.b") == 3
    assert cfg.get_float("a.c") == 2.5
    assert cfg.get_bool("a.d") is True
    assert cfg.get_list("a.e") == [1.0, 2.0]
    assert cfg.get_float("x.y", 4.0) == 4.0
    assert cfg.has("a.c") and not cfg.has("a.z")
    with pytest.raises(ConfigurationError, match="a.c"):
        cfg.get_int("a.c")
    with pytest.raises(ConfigurationError, match="n"):
        cfg.get_float("n")


def test_example_config_validates():
    cfg = load_config(os.path.join(HERE, "config.yaml")).validate()
    assert cfg.get_str("controller.power_mode") == "L0"
    assert os.path.isfile(cfg.get_path("files.blade_geometry"))


def test_config_validation_errors(tmp_path):
    cfg = load_config(os.path.join(HERE, "config.yaml"))
    cfg.data["solver"]["transition"] = 1.5
    with pytest.raises(ConfigurationError, match="solver.transition"):
        cfg.validate()
    cfg.data["solver"]["transition"] = 0.4
    del cfg.data["aep"]["weibull_k"]
    with pytest.raises(ConfigurationError, match="aep.weibull_k"):
        cfg.validate()
    with pytest.raises(ConfigurationError):
        load_config(write(tmp_path / "liste.yaml", "- 1\n- 2\n"))


# Strömung und Turbine

def simple_turbine(hub_radius=0.0, **kwargs):
    sections = [BladeSection(radius=r, chord=1.0, twist=0.0, rel_thickness=18.0)
                for r in (10.0, 20.0, 30.0)]
    return TurbineGeometry(sections, hub_radius=hub_radius, hub_height=80.0, n_blades=3,
                           **kwargs)


def test_rotation_matrices_orthonormal():
    for m in (yaw_matrix(0.3), tilt_matrix(-0.2), azimuth_matrix(1.1)):
        assert m @ m.T == pytest.approx(np.eye(3))


def test_turbine_positions():
    t = simple_turbine(hub_radius=2.0, tower_distance=4.0)
    assert list(t.radii) == [12.0, 22.0, 32.0]
    assert t.rotor_radius == 32.0
    assert t.loss_hub_radius == 2.0
    pos = t.global_positions_at_psi(0.0)
    assert pos[-1] == pytest.approx([-4.0, 0.0, 112.0])
    rel = t.hub_relative_positions_at_psi(math.pi / 2)
    assert np.linalg.norm(rel, axis=1) == pytest.approx(t.radii)
    assert rel[:, 2] == pytest.approx(0.0, abs=1e-12)
    assert simple_turbine().loss_hub_radius == 10.0


def test_flow_field_uniform():
    t = simple_turbine()
    flow = FlowField(t, 2.0, 0.0, UniformInlet(10.0))
    assert flow.v_inf() == 10.0
    assert flow.tip_speed_ratio() == pytest.approx(2.0 * 30.0 / 10.0)
    v_ax, v_tan = flow.blade_local_velocities(1)
    assert v_ax == pytest.approx(10.0)
    assert v_tan == pytest.approx(40.0)
    assert flow.local_lambda(1) == pytest.approx(4.0)


def test_flow_field_with_shear_and_veer():
    t = simple_turbine()
    flow = FlowField(t, 1.0, 0.0, UniformInlet(10.0),
                     PowerLawShear(0.2, 80.0), LinearVeer(0.0, t.rotor_radius, 80.0))
    # Blatt zeigt nach oben, äußere Sektionen sehen mehr Wind
    v_ax = [flow.blade_local_velocities(i)[0] for i in range(3)]
    assert v_ax[0] < v_ax[1] < v_ax[2]
    assert v_ax[2] == pytest.approx(10.0 * (110.0 / 80.0) ** 0.2)


def test_shear_models():
    v = np.array([8.0, 0.0, 0.0])
    assert NoShear().apply(v, 50.0, 10.0) is v
    assert LogShear(0.03, 80.0).apply(v, 80.0, 10.0)[0] == pytest.approx(10.0)
    assert LogShear(0.03, 80.0).apply(v, 40.0, 10.0)[0] < 10.0
    neutral = DiabaticShear(0.03, 80.0, None)
    assert neutral.apply(v, 40.0, 10.0)[0] == pytest.approx(LogShear(0.03, 80.0).apply(v, 40.0, 10.0)[0])
    assert DiabaticShear(0.03, 80.0, 200.0).stability_correction(100.0) == pytest.approx(-2.5)
    with pytest.raises(ConfigurationError):
        LogShear(0.0, 80.0)


def test_linear_veer():
    veer = LinearVeer(10.0, 40.0, 80.0)
    v = np.array([10.0, 0.0, 0.0])
    assert veer.apply(v, 80.0) == pytest.approx(v)
    # Drehrate in Grad je Rotorradius: 10 Grad bei R = 40 m über der Nabe
    turned = veer.apply(v, 120.0)
    assert np.linalg.norm(turned) == pytest.approx(10.0)
    assert math.degrees(abs(math.atan2(turned[1], turned[0]))) == pytest.approx(10.0)
    half = veer.apply(v, 100.0)
    assert math.degrees(abs(math.atan2(half[1], half[0]))) == pytest.approx(5.0)


def test_grid_time_series_inlet():
    y = np.array([-10.0, 10.0])
    z = np.array([70.0, 90.0])
    field = np.zeros((2, 2, 2, 3))
    field[0, ..., 0] = [[8.0, 12.0], [8.0, 12.0]]
    field[1, ..., 0] = 20.0
    inlet = GridTimeSeriesInlet(y, z, field, dt=1.0)
    assert inlet.velocity([0.0, 0.0, 80.0])[0] == pytest.approx(10.0)
    inlet.set_time(1.0)
    assert inlet.velocity([0.0, 0.0, 80.0])[0] == pytest.approx(20.0)


def write_wnd(path, raw=None, hub_velocity=8.0, ny=3, nz=3, nt_half=4,
              dy=10.0, dz=10.0, dx=4.0, hub_height=80.0, ti=(10.0, 5.0, 5.0)):
    """Schreibt ein kleines Bladed-Windfeld; ohne raw überall v_hub in x."""
    if raw is None:
        raw = np.zeros((2 * nt_half, nz, ny, 3))
    head = bytearray(104)
    head[16:44] = np.array([hub_height, *ti, dz, dy, dx], dtype='<f4').tobytes()
    head[44:48] = np.array([nt_half], dtype='<i4').tobytes()
    head[48:52] = np.array([hub_velocity], dtype='<f4').tobytes()
    head[72:80] = np.array([nz, ny], dtype='<i4').tobytes()
    path.write_bytes(bytes(head) + np.asarray(raw, dtype='<i2').tobytes())
    return str(path)


def wind_field_raw():
    raw = np.zeros((8, 3, 3, 3))
    raw[:, :, 2, 0] = 1000       # u = 1.1 v_hub bei y = +10
    raw[4, 1, 1, 1] = -2000      # v = -0.1 v_hub in der Gittermitte, Schritt 4
    return raw


def test_read_bladed_wind_field(tmp_path):
    field = read_bladed_wind_field(write_wnd(tmp_path / "feld.wnd", wind_field_raw()))
    assert list(field['y']) == [-10.0, 0.0, 10.0]
    assert list(field['z']) == [70.0, 80.0, 90.0]
    assert field['dt'] == pytest.approx(0.5)
    # Querbreite 20 m bei 8 m/s: ceil(2.5 / 2 / 0.5) Randschritte je Seite
    assert field['padding'] == 3
    assert field['usable_steps'] == 2
    vel = field['velocities']
    assert vel.shape == (8, 3, 3, 3)
    assert vel[0, 0, 0, 0] == pytest.approx(8.0)
    assert vel[0, 2, 1, 0] == pytest.approx(8.8)
    assert vel[4, 1, 1, 1] == pytest.approx(-0.8)
    assert vel[3, 1, 1, 1] == 0.0


def test_read_bladed_wind_field_errors(tmp_path):
    path = tmp_path / "kurz.wnd"
    data = open(write_wnd(path), 'rb').read()
    path.write_bytes(data[:-10])
    with pytest.raises(DataError):
        read_bladed_wind_field(str(path))
    with pytest.raises(DataError):
        read_bladed_wind_field(write_wnd(tmp_path / "leer.wnd", hub_velocity=0.0))
    # zu wenige Zeitschritte für die Randschritte
    with pytest.raises(DataError):
        read_bladed_wind_field(write_wnd(tmp_path / "knapp.wnd", nt_half=3))
    with pytest.raises(FileNotFoundError):
        read_bladed_wind_field(str(tmp_path / "fehlt.wnd"))


def test_wind_field_inlet(tmp_path):
    inlet = GridTimeSeriesInlet.from_file(write_wnd(tmp_path / "feld.wnd", wind_field_raw()))
    assert inlet.step == inlet.padding == 3
    assert inlet.hub_velocity == pytest.approx(8.0)
    assert inlet.velocity([0.0, 5.0, 80.0])[0] == pytest.approx(8.4)
    inlet.set_time(0.5)
    assert inlet.step == 4
    assert inlet.velocity([0.0, 0.0, 80.0])[1] == pytest.approx(-0.8)
    # Zeiten jenseits der nutzbaren Reihe bleiben vor den Randschritten
    inlet.set_time(100.0)
    assert inlet.step == 4

    scaled = ScaledInlet(inlet, 10.0)
    assert scaled.velocity([0.0, 5.0, 80.0])[0] == pytest.approx(10.5)


def test_build_inlet(tmp_path):
    assert build_inlet(SimulationConfig({})) is None
    path = write_wnd(tmp_path / "feld.wnd")
    cfg = SimulationConfig({"inlet": {"type": "bladed", "file": path, "time": 0.5}})
    inlet = build_inlet(cfg)
    assert isinstance(inlet, GridTimeSeriesInlet)
    assert inlet.step == 4
    with pytest.raises(ConfigurationError):
        build_inlet(SimulationConfig({"inlet": {"type": "lidar"}}))
    with pytest.raises(ConfigurationError):
        build_inlet(SimulationConfig({"inlet": {"type": "bladed",
                                                "file": str(tmp_path / "fehlt.wnd")}}))


def test_flow_factories():
    cfg = SimulationConfig({"environment": {"shear": {"type": "power", "exponent": 0.14},
                                            "veer": {"type": "linear", "rate": 5.0}}})
    assert isinstance(build_shear(cfg, 80.0), PowerLawShear)
    assert isinstance(build_veer(cfg, 40.0, 80.0), LinearVeer)
    assert isinstance(build_shear(SimulationConfig({}), 80.0), NoShear)
    bad = SimulationConfig({"environment": {"shear": {"type": "cubic"}}})
    with pytest.raises(ConfigurationError):
        build_shear(bad, 80.0)
