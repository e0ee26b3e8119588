# flow.py

"""
flow.py

Strömungsfeld am Rotor.

Bausteine:
  - Einströmung: UniformInlet, GridTimeSeriesInlet, ScaledInlet
  - Scherung:    NoShear, LogShear, PowerLawShear, DiabaticShear
  - Drehung:     NoVeer, LinearVeer
  - PsiCoordinateTransformer: Welt -> Blattsystem bei Azimut psi
  - FlowField: axiale und tangentiale Geschwindigkeit je Sektion im Blattsystem
"""

import numpy as np
from scipy.interpolate import RegularGridInterpolator

from data_io import read_bladed_wind_field
from errors import ConfigurationError

LAMBDA_EPS = np.finfo(float).eps


# Einströmung

class UniformInlet:
    """Konstante Geschwindigkeit v_inf in Weltrichtung x."""

    def __init__(self, v_inf):
        if v_inf < 0:
            raise ConfigurationError("Windgeschwindigkeit darf nicht negativ sein", v_inf=v_inf)
        self.v_inf = float(v_inf)

    def velocity(self, position):
        return np.array([self.v_inf, 0.0, 0.0])


class GridTimeSeriesInlet:
    """
    Zeitreihe eines Windfelds auf einem (y, z)-Gitter.

    Parameter:
      y, z         : Gitterachsen [m] (aufsteigend)
      velocities   : Array (nt, ny, nz, 3) mit u, v, w
      dt           : Zeitschritt [s]
      time         : Zeitpunkt der Abfrage [s]; es wird der nächste Zeitschritt verwendet
      padding      : Randschritte am Anfang und Ende, die nicht abgefragt werden
      hub_velocity : mittlere Nabengeschwindigkeit [m/s]; ohne Angabe Mittelwert von u

    Räumlich wird bilinear interpoliert, außerhalb des Gitters extrapoliert.
    """

    def __init__(self, y, z, velocities, dt, time=0.0, padding=0, hub_velocity=None):
        velocities = np.asarray(velocities, dtype=float)
        if velocities.ndim != 4 or velocities.shape[-1] != 3:
            raise ConfigurationError("Windfeld benötigt die Form (nt, ny, nz, 3)")
        if dt <= 0:
            raise ConfigurationError("Zeitschritt muss positiv sein", dt=dt)
        if padding < 0 or 2 * padding >= velocities.shape[0]:
            raise ConfigurationError("Randschritte passen nicht zur Zeitreihe", padding=padding,
                                     nt=velocities.shape[0])
        self.y = np.asarray(y, dtype=float)
        self.z = np.asarray(z, dtype=float)
        self.velocities = velocities
        self.dt = float(dt)
        self.padding = int(padding)
        self.hub_velocity = (float(hub_velocity) if hub_velocity is not None
                             else float(velocities[..., 0].mean()))
        self.set_time(time)

    @classmethod
    def from_file(cls, path, time=0.0):
        """Windfeld aus einer Bladed-Datei (.wnd)."""
        field = read_bladed_wind_field(path)
        return cls(field['y'], field['z'], field['velocities'], field['dt'], time=time,
                   padding=field['padding'], hub_velocity=field['hub_velocity'])

    def set_time(self, time):
        last = self.velocities.shape[0] - self.padding - 1
        self.step = int(np.clip(self.padding + round(time / self.dt), self.padding, last))
        self._interp = RegularGridInterpolator((self.y, self.z), self.velocities[self.step],
                                               bounds_error=False, fill_value=None)

    def velocity(self, position):
        return np.asarray(self._interp([[position[1], position[2]]])[0], dtype=float)


class ScaledInlet:
    """Skaliert eine Einströmung so, dass ihre mittlere Nabengeschwindigkeit v_inf ist."""

    def __init__(self, inlet, v_inf):
        if v_inf < 0:
            raise ConfigurationError("Windgeschwindigkeit darf nicht negativ sein", v_inf=v_inf)
        self.inlet = inlet
        self.factor = v_inf / inlet.hub_velocity

    def velocity(self, position):
        return self.factor * np.asarray(self.inlet.velocity(position), dtype=float)


# Scherung

class NoShear:
    def apply(self, velocity, height, v_ref):
        return velocity


class LogShear:
    """v(z) = v_ref * ln(z/z0) / ln(z_ref/z0)"""

    def __init__(self, roughness, reference_height):
        if roughness <= 0:
            raise ConfigurationError("Rauigkeitslänge muss positiv sein", z0=roughness)
        if reference_height <= roughness:
            raise ConfigurationError("Referenzhöhe muss größer als z0 sein",
                                     z_ref=reference_height)
        self.z0 = float(roughness)
        self.z_ref = float(reference_height)

    def profile(self, height):
        return self._log_term(max(height, self.z0)) / self._log_term(self.z_ref)

    def _log_term(self, height):
        return np.log(height / self.z0)

    def apply(self, velocity, height, v_ref):
        v = np.array(velocity, dtype=float)
        v[0] = v_ref * self.profile(height)
        return v


class PowerLawShear:
    """v(z) = v_ref * (z/z_ref)^alpha"""

    def __init__(self, exponent, reference_height):
        if reference_height <= 0:
            raise ConfigurationError("Referenzhöhe muss positiv sein", z_ref=reference_height)
        self.exponent = float(exponent)
        self.z_ref = float(reference_height)

    def apply(self, velocity, height, v_ref):
        v = np.array(velocity, dtype=float)
        v[0] = v_ref * (max(height, 0.0) / self.z_ref) ** self.exponent
        return v


class DiabaticShear(LogShear):
    """
    Logarithmisches Profil mit Monin-Obukhov-Korrektur psi(h/L).

    L < 0: labil (Businger-Dyer), L > 0: stabil (-5 h/L), L = 0 oder None: neutral.
    """

    def __init__(self, roughness, reference_height, obukhov_length=None):
        super().__init__(roughness, reference_height)
        self.obukhov_length = obukhov_length

    def stability_correction(self, height):
        L = self.obukhov_length
        if not L:
            return 0.0
        zeta = height / L
        if L < 0:
            x = (1.0 - 16.0 * zeta) ** 0.25
            return (2.0 * np.log((1.0 + x) / 2.0) + np.log((1.0 + x ** 2) / 2.0)
                    - 2.0 * np.arctan(x) + np.pi / 2.0)
        return -5.0 * zeta

    def _log_term(self, height):
        return np.log(height / self.z0) - self.stability_correction(height)


# Windrichtungsdrehung

class NoVeer:
    def apply(self, velocity, height):
        return velocity


class LinearVeer:
    """Drehung in der Horizontalen, rate in Grad pro Rotorradius über der Nabenhöhe."""

    def __init__(self, rate, rotor_radius, hub_height):
        if rotor_radius <= 0:
            raise ConfigurationError("Rotorradius muss positiv sein", R=rotor_radius)
        self.rate = rate * np.pi / (180.0 * rotor_radius)
        self.hub_height = float(hub_height)

    def angle(self, height):
        return -self.rate * (height - self.hub_height)

    def apply(self, velocity, height):
        a = self.angle(height)
        c, s = np.cos(a), np.sin(a)
        rot = np.array([[c, -s, 0.0],
                        [s, c, 0.0],
                        [0.0, 0.0, 1.0]])
        return rot @ np.asarray(velocity, dtype=float)


class PsiCoordinateTransformer:
    """Welt -> Blattsystem über die Drehkette der Turbine."""

    def __init__(self, turbine):
        self.turbine = turbine

    def matrix(self, psi):
        return self.turbine.world_to_blade_local_matrix(psi)

    def rotational_radii(self):
        # Abstand zur Drehachse bei psi = 0
        return self.turbine.hub_relative_positions_at_psi(0.0)[:, 2]


class FlowField:
    """
    Geschwindigkeiten je Sektion im Blattsystem (x axial, y tangential).

    Ablauf beim Erzeugen: Einströmung an den globalen Positionen, Scherung
    ersetzt die x-Komponente, Drehung um die Hochachse, Transformation ins
    Blattsystem, Umfangsgeschwindigkeit Omega*r addieren.
    """

    def __init__(self, turbine, omega, psi, inlet, shear=None, veer=None, transformer=None):
        self.turbine = turbine
        self.omega = float(omega)
        self.psi = float(psi)
        self.inlet = inlet
        self.shear = shear or NoShear()
        self.veer = veer or NoVeer()
        self.transformer = transformer or PsiCoordinateTransformer(turbine)

        hub = np.array([0.0, 0.0, turbine.hub_height])
        self.hub_velocity = np.asarray(inlet.velocity(hub), dtype=float)

        positions = turbine.global_positions_at_psi(self.psi)
        a14 = self.transformer.matrix(self.psi)
        r_rot = self.transformer.rotational_radii()

        self.global_velocities = np.zeros((turbine.num_sections, 3))
        self.local_velocities = np.zeros((turbine.num_sections, 3))
        for i, pos in enumerate(positions):
            v = inlet.velocity(pos)
            v = self.shear.apply(v, pos[2], self.hub_velocity[0])
            v = self.veer.apply(v, pos[2])
            self.global_velocities[i] = v
            local = a14 @ v
            local[1] += self.omega * r_rot[i]
            self.local_velocities[i] = local

        self._lambda_local = np.array([self._clamped_ratio(v[1], v[0])
                                       for v in self.local_velocities])

    @staticmethod
    def _clamped_ratio(v_tan, v_ax):
        if abs(v_ax) < LAMBDA_EPS:
            v_ax = LAMBDA_EPS if v_ax >= 0 else -LAMBDA_EPS
        lam = v_tan / v_ax
        if abs(lam) < LAMBDA_EPS:
            lam = LAMBDA_EPS if lam >= 0 else -LAMBDA_EPS
        return lam

    def local_lambda(self, i):
        return self._lambda_local[i]

    def blade_local_velocities(self, i):
        """(v_axial, v_tangential) der Sektion i."""
        return self.local_velocities[i, 0], self.local_velocities[i, 1]

    def v_inf(self):
        return float(self.hub_velocity[0])

    def tip_speed_ratio(self):
        v = self.v_inf()
        return self.omega * self.turbine.rotor_radius / v if v > 0 else 0.0


def build_shear(cfg, hub_height):
    """Scherungsmodell aus der Konfiguration (environment.shear)."""
    kind = cfg.get_str("environment.shear.type", "none").lower()
    z_ref = cfg.get_float("environment.shear.reference_height", hub_height)
    if kind == "none":
        return NoShear()
    if kind == "log":
        return LogShear(cfg.get_float("environment.shear.roughness"), z_ref)
    if kind == "power":
        return PowerLawShear(cfg.get_float("environment.shear.exponent"), z_ref)
    if kind == "diabatic":
        L = cfg.get("environment.shear.obukhov_length")
        return DiabaticShear(cfg.get_float("environment.shear.roughness"), z_ref,
                             None if L is None else float(L))
    raise ConfigurationError(f"Unbekanntes Scherungsmodell: {kind}", key="environment.shear.type")


def build_veer(cfg, rotor_radius, hub_height):
    kind = cfg.get_str("environment.veer.type", "none").lower()
    if kind == "none":
        return NoVeer()
    if kind == "linear":
        return LinearVeer(cfg.get_float("environment.veer.rate"), rotor_radius, hub_height)
    raise ConfigurationError(f"Unbekanntes Drehungsmodell: {kind}", key="environment.veer.type")


def build_inlet(cfg):
    """
    Einströmung aus der Konfiguration (inlet). Für 'uniform' wird None
    zurückgegeben, die Simulation setzt dann je Windgeschwindigkeit eine
    konstante Einströmung ein.
    """
    kind = cfg.get_str("inlet.type", "uniform").lower()
    if kind == "uniform":
        return None
    if kind == "bladed":
        return GridTimeSeriesInlet.from_file(cfg.get_path("inlet.file"),
                                             time=cfg.get_float("inlet.time", 0.0))
    raise ConfigurationError(f"Unbekannte Einströmung: {kind}", key="inlet.type")
