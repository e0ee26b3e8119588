# controller.py

"""
controller.py

Drehzahlvariable Regelung.

  - VariableSpeedController: (v_inf, P_el) -> (v_tip, n, pitch, lambda)
  - StandardPitchSchedule: stückweise linearer Pitch-Offset über P_el
  - ConstantEfficiency / TableEfficiency: Triebstrangwirkungsgrad eta(P_mech)
"""

from dataclasses import dataclass

import numpy as np

from errors import ConfigurationError

# Leistungsschritt, auf den sich die Pitch-Deltas beziehen [W]
PITCH_POWER_STEP = 100000.0


@dataclass
class ControlPoint:
    v_tip: float
    n: float
    pitch: float
    tip_speed_ratio: float


class StandardPitchSchedule:
    """
    Pitch = base_pitch + Offset(P_el).

    Zwischen den Stützstellen P_i, P_i+1 wächst der Offset um delta_i Grad
    je 100 kW; oberhalb der letzten Stützstelle gilt das letzte delta,
    unterhalb der ersten ist der Offset null.
    """

    def __init__(self, base_pitch=0.0, breakpoints=None, deltas=None):
        breakpoints = list(breakpoints or [])
        deltas = list(deltas or [])
        if len(breakpoints) != len(deltas):
            raise ConfigurationError("Pitch-Stützstellen und -Deltas ungleich lang",
                                     breakpoints=len(breakpoints), deltas=len(deltas))
        if breakpoints and np.any(np.diff(breakpoints) < 0):
            raise ConfigurationError("Pitch-Stützstellen müssen aufsteigend sein")
        self.base_pitch = float(base_pitch)
        self.breakpoints = [float(p) for p in breakpoints]
        self.deltas = [float(d) for d in deltas]

    def offset(self, p_el):
        if not self.breakpoints or p_el <= self.breakpoints[0]:
            return 0.0
        offset = 0.0
        for i in range(len(self.breakpoints) - 1):
            p_lo, p_hi = self.breakpoints[i], self.breakpoints[i + 1]
            if p_el <= p_lo:
                break
            dp = min(p_el, p_hi) - p_lo
            offset += dp / PITCH_POWER_STEP * self.deltas[i]
        if p_el > self.breakpoints[-1]:
            offset += (p_el - self.breakpoints[-1]) / PITCH_POWER_STEP * self.deltas[-1]
        return offset

    def pitch(self, p_el, base_pitch=None):
        base = self.base_pitch if base_pitch is None else base_pitch
        return base + self.offset(p_el)


class ConstantEfficiency:
    def __init__(self, eta=0.85):
        if not 0.0 < eta <= 1.0:
            raise ConfigurationError("Wirkungsgrad muss in (0, 1] liegen", eta=eta)
        self.eta = float(eta)

    def __call__(self, p_mech):
        return self.eta


class TableEfficiency:
    """Wirkungsgrad linear über der mechanischen Leistung interpoliert, außerhalb konstant."""

    def __init__(self, power, eta):
        power = np.asarray(power, dtype=float)
        eta = np.asarray(eta, dtype=float)
        if power.size == 0 or power.size != eta.size:
            raise ConfigurationError("Wirkungsgradtabelle leer oder ungleich lang")
        order = np.argsort(power)
        self.power = power[order]
        self.eta = eta[order]

    def __call__(self, p_mech):
        return float(np.interp(p_mech, self.power, self.eta))


class VariableSpeedController:
    """
    Parameter:
      rated_power     : Nennleistung P_max [W]
      n_rated         : Drehzahlsollwert oberhalb Nennleistung n_soll [rpm]
      n_max           : maximale Drehzahl n_nenn [rpm]
      n_min           : minimale Drehzahl [rpm]
      optimal_tsr     : Auslegungsschnelllaufzahl lambda_opt
      rotor_radius    : R [m]
      power_mode      : "L0" (lambda_opt-Betrieb) oder "POWER" (Tabelle P_el -> n)
      max_dpdn        : maximaler Gradient dP/dn [W/rpm]; None = ohne Begrenzung
      power_table     : (P_el, n) Stützstellen für "POWER"
      pitch_schedule  : StandardPitchSchedule
      efficiency      : Wirkungsgradmodell
    """

    def __init__(self, rated_power, n_rated, n_max, n_min, optimal_tsr, rotor_radius,
                 power_mode="L0", max_dpdn=None, power_table=None,
                 pitch_schedule=None, efficiency=None):
        if power_mode not in ("L0", "POWER"):
            raise ConfigurationError(f"Unbekannter Leistungsmodus: {power_mode}")
        if n_min > n_max:
            raise ConfigurationError("n_min > n_max", n_min=n_min, n_max=n_max)
        if max_dpdn is not None and max_dpdn <= 0:
            raise ConfigurationError("max_dpdn muss positiv sein", max_dpdn=max_dpdn)
        self.rated_power = float(rated_power)
        self.n_rated = float(n_rated)
        self.n_max = float(n_max)
        self.n_min = float(n_min)
        self.optimal_tsr = float(optimal_tsr)
        self.rotor_radius = float(rotor_radius)
        self.power_mode = power_mode
        self.max_dpdn = max_dpdn
        self.pitch_schedule = pitch_schedule or StandardPitchSchedule()
        self.efficiency = efficiency or ConstantEfficiency()

        self.table_power = self.table_speed = None
        if power_table is not None:
            p, n = (np.asarray(v, dtype=float) for v in power_table)
            if p.size == 0 or p.size != n.size:
                raise ConfigurationError("Leistungstabelle leer oder ungleich lang")
            order = np.argsort(p)
            self.table_power, self.table_speed = p[order], n[order]
        if power_mode == "POWER" and self.table_power is None:
            raise ConfigurationError("POWER-Modus benötigt eine Leistungstabelle")

    def speed_of_power(self, p_el):
        """Drehzahl aus der Tabelle P_el -> n."""
        return float(np.interp(p_el, self.table_power, self.table_speed))

    def eta(self, p_mech):
        return self.efficiency(p_mech)

    def operating_point(self, v_inf, p_el, base_pitch=None):
        """
        Betriebspunkt für Windgeschwindigkeit und elektrische Leistung.

        Rückgabe:
          ControlPoint(v_tip, n, pitch, tip_speed_ratio)
        """
        R = self.rotor_radius
        if p_el >= self.rated_power:
            n = self.n_rated
        elif self.power_mode == "L0":
            v_tip = self.optimal_tsr * v_inf
            n = 30.0 * v_tip / (np.pi * R)
            if n >= self.n_max:
                n = self.n_max - 0.001
            if self.max_dpdn is not None:
                dp = self.rated_power - p_el
                if dp / (self.n_max - n) > self.max_dpdn:
                    n = self.n_max - dp / self.max_dpdn
        else:
            n = max(self.speed_of_power(p_el), self.n_min)

        n = float(np.clip(n, self.n_min, self.n_max))
        v_tip = n / 60.0 * 2.0 * np.pi * R
        tsr = v_tip / v_inf if v_inf > 0 else 0.0
        pitch = self.pitch_schedule.pitch(p_el, base_pitch)
        return ControlPoint(v_tip=v_tip, n=n, pitch=pitch, tip_speed_ratio=tsr)


def build_controller(cfg, rotor_radius):
    """VariableSpeedController aus der Konfiguration (Abschnitt controller)."""
    schedule = StandardPitchSchedule(
        cfg.get_float("controller.pitch.base", 0.0),
        cfg.get_list("controller.pitch.breakpoints", []),
        cfg.get_list("controller.pitch.deltas", []))

    kind = cfg.get_str("controller.efficiency.type", "constant").lower()
    if kind == "constant":
        efficiency = ConstantEfficiency(cfg.get_float("controller.efficiency.value", 0.85))
    elif kind == "table":
        efficiency = TableEfficiency(cfg.get_list("controller.efficiency.power"),
                                     cfg.get_list("controller.efficiency.eta"))
    else:
        raise ConfigurationError(f"Unbekanntes Wirkungsgradmodell: {kind}",
                                 key="controller.efficiency.type")

    power_table = None
    if cfg.has("controller.power_table"):
        power_table = (cfg.get_list("controller.power_table.power"),
                       cfg.get_list("controller.power_table.rotorspeed"))

    max_dpdn = cfg.get("controller.max_dpdn")
    return VariableSpeedController(
        rated_power=cfg.get_float("controller.rated_power"),
        n_rated=cfg.get_float("controller.rated_rotorspeed"),
        n_max=cfg.get_float("controller.max_rotorspeed"),
        n_min=cfg.get_float("controller.min_rotorspeed"),
        optimal_tsr=cfg.get_float("controller.optimal_tsr"),
        rotor_radius=rotor_radius,
        power_mode=cfg.get_str("controller.power_mode"),
        max_dpdn=None if max_dpdn is None else cfg.get_float("controller.max_dpdn"),
        power_table=power_table,
        pitch_schedule=schedule,
        efficiency=efficiency)
