# plotting.py

"""
plotting.py

Enthält Funktionen zur Visualisierung der Rotorergebnisse.

Module:
  - plot_power_curve: P_aero und P_el über v_inf
  - plot_cp_curves: Cp und Ct über v_inf
  - plot_cp_lambda: Cp(lambda) je Pitchwinkel aus dem Kennfeld
  - plot_blade_loads: dT(r) und dQ(r) einer Windgeschwindigkeit

Verwendet Matplotlib. Keine Farbangaben, um Flexibilität für Nutzerdarstellungen zu erhalten.
"""

import os
import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt


def plot_power_curve(curve, output_dir):
    """
    Zeichnet die Leistungskurve.

    Parameter:
      curve     : DataFrame mit v_inf, p_aero, p_el [W]
      output_dir: Verzeichnis zum Speichern der Abbildung
    """
    os.makedirs(output_dir, exist_ok=True)
    plt.figure()
    plt.plot(curve['v_inf'], curve['p_aero'] / 1e3, label='P_aero', linewidth=2)
    plt.plot(curve['v_inf'], curve['p_el'] / 1e3, label='P_el', linestyle='--', linewidth=2)
    plt.xlabel('Windgeschwindigkeit (m/s)')
    plt.ylabel('Leistung (kW)')
    plt.title('Leistungskurve')
    plt.legend()
    plt.grid(True)
    save_path = os.path.join(output_dir, 'power_curve.png')
    plt.savefig(save_path)
    plt.close()
    return save_path


def plot_cp_curves(curve, output_dir):
    """
    Zeichnet Cp und Ct über der Windgeschwindigkeit.
    """
    os.makedirs(output_dir, exist_ok=True)
    plt.figure()
    plt.plot(curve['v_inf'], curve['cp_aero'], label='Cp', linewidth=2)
    plt.plot(curve['v_inf'], curve['ct'], label='Ct', linestyle='--', linewidth=2)
    plt.xlabel('Windgeschwindigkeit (m/s)')
    plt.ylabel('Beiwert (-)')
    plt.title('Leistungs- und Schubbeiwert')
    plt.legend()
    plt.grid(True)
    save_path = os.path.join(output_dir, 'cp_ct.png')
    plt.savefig(save_path)
    plt.close()
    return save_path


def plot_cp_lambda(cp_map, output_dir):
    """
    Zeichnet Cp(lambda) für jeden Pitchwinkel des Kennfelds.

    Parameter:
      cp_map    : DataFrame, Index lambda, Spalten pitch [deg]
      output_dir: Verzeichnis zum Speichern der Abbildung
    """
    os.makedirs(output_dir, exist_ok=True)
    plt.figure()
    for pitch in cp_map.columns:
        plt.plot(cp_map.index, cp_map[pitch], label=f'pitch {pitch:.1f}°')
    plt.xlabel('Schnelllaufzahl λ (-)')
    plt.ylabel('Leistungsbeiwert Cp')
    plt.title('Cp-λ-Kennfeld')
    plt.legend()
    plt.grid(True)
    save_path = os.path.join(output_dir, 'cp_lambda.png')
    plt.savefig(save_path)
    plt.close()
    return save_path


def plot_blade_loads(result, output_dir):
    """
    Zeichnet Schub- und Momentenbeiträge je Sektion.

    Parameter:
      result    : RotorResult einer Windgeschwindigkeit
      output_dir: Verzeichnis zum Speichern der Abbildung
    """
    os.makedirs(output_dir, exist_ok=True)
    df = result.sections
    fig, (ax1, ax2) = plt.subplots(2, 1, sharex=True)
    ax1.plot(df['radius'], df['dT'] / df['dr'], linewidth=2)
    ax1.set_ylabel("dT/dr (N/m)")
    ax1.grid(True)
    ax2.plot(df['radius'], df['dQ'] / df['dr'], linewidth=2)
    ax2.set_xlabel('Radialposition r (m)')
    ax2.set_ylabel("dQ/dr (Nm/m)")
    ax2.grid(True)
    fig.suptitle(f'Blattlasten bei v = {result.v_inf:.1f} m/s')
    save_path = os.path.join(output_dir, f'blade_loads_v{result.v_inf:.2f}.png')
    fig.savefig(save_path)
    plt.close(fig)
    return save_path
