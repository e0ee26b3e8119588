import os
import yaml

from errors import ConfigurationError
from interpolation import METHODS

REQUIRED_KEYS = [
    "files.blade_geometry",
    "files.airfoil_geometry_list",
    "files.airfoil_performance_list",
    "turbine.number_of_blades",
    "turbine.hub_radius",
    "turbine.hub_height",
    "environment.air_density",
    "environment.kinematic_viscosity",
    "environment.speed_of_sound",
    "solver.tolerance",
    "solver.transition",
    "controller.rated_power",
    "controller.rated_rotorspeed",
    "controller.max_rotorspeed",
    "controller.min_rotorspeed",
    "controller.optimal_tsr",
    "controller.power_mode",
    "operation.windspeed_start",
    "operation.windspeed_end",
    "operation.windspeed_step",
    "aep.weibull_k",
    "aep.price_per_kwh",
    "aep.mean_windspeed_start",
    "aep.mean_windspeed_end",
    "aep.mean_windspeed_step",
    "output.directory",
]

POWER_MODES = ("L0", "POWER")
LOSS_MODELS = ("prandtl", "none")
INLET_TYPES = ("uniform", "bladed")

_MISSING = object()


def load_config(path="config.yaml"):
    """
    Liest die Konfigurationsdatei im YAML-Format ein und gibt eine SimulationConfig zurück.
    Mit yaml.safe_load werden nur sichere Konstrukte geladen.
    """
    if not os.path.isfile(path):
        raise ConfigurationError(f"Konfigurationsdatei nicht gefunden: {path}")
    with open(path, "r") as f:
        cfg = yaml.safe_load(f)
    if not isinstance(cfg, dict):
        raise ConfigurationError(f"Konfigurationsdatei enthält kein Mapping: {path}")
    return SimulationConfig(cfg, base_dir=os.path.dirname(os.path.abspath(path)))


class SimulationConfig:
    """
    Schlüssel-Wert-Konfiguration mit typisierten Zugriffen.

    Schlüssel werden als Punktpfad adressiert, z.B. "controller.rated_power".
    Fehlende Schlüssel ohne Default und nicht konvertierbare Werte führen zu
    einem ConfigurationError mit dem Schlüsselnamen.
    """

    def __init__(self, data, base_dir="."):
        self.data = data or {}
        self.base_dir = base_dir

    def has(self, key):
        return self._lookup(key) is not _MISSING

    def _lookup(self, key):
        node = self.data
        for part in key.split("."):
            if not isinstance(node, dict) or part not in node:
                return _MISSING
            node = node[part]
        return node

    def _raw(self, key, default):
        value = self._lookup(key)
        if value is _MISSING or value is None:
            if default is _MISSING:
                raise ConfigurationError("Pflichtschlüssel fehlt", key=key)
            return default
        return value

    def get(self, key, default=None):
        return self._raw(key, default)

    def get_float(self, key, default=_MISSING):
        value = self._raw(key, default)
        if isinstance(value, bool):
            raise ConfigurationError("Zahl erwartet, Wahrheitswert erhalten", key=key)
        try:
            return float(value)
        except (TypeError, ValueError):
            raise ConfigurationError(f"Zahl erwartet, erhalten: {value!r}", key=key)

    def get_int(self, key, default=_MISSING):
        value = self._raw(key, default)
        if isinstance(value, bool):
            raise ConfigurationError("Ganzzahl erwartet, Wahrheitswert erhalten", key=key)
        if isinstance(value, float) and not value.is_integer():
            raise ConfigurationError(f"Ganzzahl erwartet, erhalten: {value!r}", key=key)
        try:
            return int(value)
        except (TypeError, ValueError):
            raise ConfigurationError(f"Ganzzahl erwartet, erhalten: {value!r}", key=key)

    def get_str(self, key, default=_MISSING):
        value = self._raw(key, default)
        if isinstance(value, (dict, list)):
            raise ConfigurationError(f"Zeichenkette erwartet, erhalten: {value!r}", key=key)
        return str(value)

    def get_bool(self, key, default=_MISSING):
        value = self._raw(key, default)
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.lower() in ("true", "yes", "on", "1"):
            return True
        if isinstance(value, str) and value.lower() in ("false", "no", "off", "0"):
            return False
        raise ConfigurationError(f"Wahrheitswert erwartet, erhalten: {value!r}", key=key)

    def get_list(self, key, default=_MISSING):
        value = self._raw(key, default)
        if not isinstance(value, (list, tuple)):
            raise ConfigurationError(f"Liste erwartet, erhalten: {value!r}", key=key)
        try:
            return [float(v) for v in value]
        except (TypeError, ValueError):
            raise ConfigurationError("Liste mit Zahlen erwartet", key=key)

    def get_path(self, key, default=_MISSING, must_exist=True):
        value = self.get_str(key, default)
        path = value if os.path.isabs(value) else os.path.join(self.base_dir, value)
        if must_exist and not os.path.exists(path):
            raise ConfigurationError(f"Datei nicht gefunden: {path}", key=key)
        return path

    def validate(self):
        """
        Prüft Pflichtschlüssel und Wertebereiche. Wirft ConfigurationError beim ersten Fehler.
        """
        for key in REQUIRED_KEYS:
            if not self.has(key):
                raise ConfigurationError("Pflichtschlüssel fehlt", key=key)

        if self.get_int("turbine.number_of_blades") < 1:
            raise ConfigurationError("Blattzahl muss mindestens 1 sein", key="turbine.number_of_blades")
        for key in ("environment.air_density", "environment.kinematic_viscosity",
                    "environment.speed_of_sound", "solver.tolerance",
                    "operation.windspeed_step", "aep.weibull_k", "aep.mean_windspeed_step",
                    "controller.rated_power"):
            if self.get_float(key) <= 0:
                raise ConfigurationError("Wert muss positiv sein", key=key)
        if self.get_float("turbine.hub_radius") < 0:
            raise ConfigurationError("Nabenradius darf nicht negativ sein", key="turbine.hub_radius")
        if self.get_float("operation.windspeed_start") > self.get_float("operation.windspeed_end"):
            raise ConfigurationError("windspeed_start > windspeed_end", key="operation")
        if self.get_float("aep.mean_windspeed_start") > self.get_float("aep.mean_windspeed_end"):
            raise ConfigurationError("mean_windspeed_start > mean_windspeed_end", key="aep")
        x = self.get_float("solver.transition")
        if not 0.0 < x < 1.0:
            raise ConfigurationError("Übergangswert muss in (0, 1) liegen", key="solver.transition")
        if self.get_float("controller.min_rotorspeed") > self.get_float("controller.max_rotorspeed"):
            raise ConfigurationError("min_rotorspeed > max_rotorspeed", key="controller")
        mode = self.get_str("controller.power_mode")
        if mode not in POWER_MODES:
            raise ConfigurationError(f"Unbekannter Leistungsmodus: {mode}", key="controller.power_mode")
        if mode == "POWER" and not self.has("controller.power_table"):
            raise ConfigurationError("POWER-Modus benötigt eine Leistungstabelle",
                                     key="controller.power_table")
        loss = self.get_str("solver.loss_model", "prandtl").lower()
        if loss not in LOSS_MODELS:
            raise ConfigurationError(f"Unbekanntes Verlustmodell: {loss}", key="solver.loss_model")
        inlet = self.get_str("inlet.type", "uniform").lower()
        if inlet not in INLET_TYPES:
            raise ConfigurationError(f"Unbekannte Einströmung: {inlet}", key="inlet.type")
        if inlet == "bladed" and self.get("inlet.file") is None:
            raise ConfigurationError("Windfeld-Einströmung benötigt eine Datei", key="inlet.file")

        method = self.get_str("solver.interpolation", "linear")
        if method not in METHODS:
            raise ConfigurationError(f"Unbekannte Interpolationsmethode: {method}",
                                     key="solver.interpolation")
        return self
