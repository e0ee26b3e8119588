# export.py

"""
export.py

Schreibt die Ergebnisse als Tecplot-ASCII-Dateien (TITLE, VARIABLES, ZONE)
und eine JSON-Zusammenfassung.
"""

import json
import logging
import os

import pandas as pd

from utils import ensure_dir

logger = logging.getLogger(__name__)

POWER_CURVE_VARIABLES = {
    'v_inf': 'v_inf_[m/s]',
    'v_tip': 'v_tip_[m/s]',
    'pitch': 'pitch_[deg]',
    'tip_speed_ratio': 'lambda_[-]',
    'n_rpm': 'n_[rpm]',
    'p_wind': 'p_wind_[W]',
    'p_aero': 'p_aero_[W]',
    'p_el': 'p_el_[W]',
    'cp_aero': 'cp_aero_[-]',
    'ct': 'ct_[-]',
    'torque': 'torque_[Nm]',
    'eta': 'eta_[-]',
}

BLADE_VARIABLES = {
    'radius': 'radius_[m]',
    'chord': 'chord_[m]',
    'twist': 'twist_[deg]',
    'alpha_eff': 'alpha_eff_[deg]',
    'cl': 'cl_[-]',
    'cd': 'cd_[-]',
    'cm': 'cm_[-]',
    'cp_loc': 'cp_loc_[-]',
    'ct_loc': 'ct_loc_[-]',
    'dT': 'dT_[N]',
    'dQ': 'dQ_[Nm]',
    'dFy': 'dFy_[N]',
    'dMz': 'dMz_[Nm]',
}

DISC_VARIABLES = dict(BLADE_VARIABLES, **{
    'integral_fx': 'integral_fx_[N]',
    'integral_fy': 'integral_fy_[N]',
    'integral_mx': 'integral_mx_[Nm]',
    'integral_my': 'integral_my_[Nm]',
    'integral_mz': 'integral_mz_[Nm]',
})


def _write_header(f, title, variables):
    f.write(f'TITLE = "{title}"\n')
    f.write('VARIABLES = ' + ' '.join(f'"{v}"' for v in variables) + '\n')


def _write_zone(f, name, df):
    f.write(f'ZONE T="{name}", I={len(df)}, F=POINT\n')
    df.to_csv(f, sep=' ', header=False, index=False, float_format='%.8e', lineterminator='\n')


def write_tecplot(path, title, zones, variables):
    """
    Schreibt eine Tecplot-Datei.

    Parameter:
      path      : Zieldatei
      title     : Titel
      zones     : Liste von (Zonenname, DataFrame)
      variables : dict Spaltenname -> Variablenname (legt Reihenfolge fest)
    """
    ensure_dir(os.path.dirname(os.path.abspath(path)))
    columns = list(variables)
    with open(path, 'w') as f:
        _write_header(f, title, variables.values())
        for name, df in zones:
            missing = [c for c in columns if c not in df.columns]
            if missing:
                raise KeyError(f"Spalten fehlen für Zone {name}: {missing}")
            _write_zone(f, name, df[columns])
    logger.info(f"Tecplot-Datei geschrieben: {path}")
    return path


def export_power_curve(curve, output_dir, project="Rotor"):
    path = os.path.join(output_dir, 'power_curve.dat')
    return write_tecplot(path, f"{project} Leistungskurve", [("power curve", curve)],
                         POWER_CURVE_VARIABLES)


def export_blade_data(result, output_dir, project="Rotor"):
    """Sektionsdaten einer Windgeschwindigkeit (RotorResult)."""
    path = os.path.join(output_dir, f'blade_data_v{result.v_inf:.2f}.dat')
    df = result.sections.assign(v_inf=result.v_inf)
    variables = dict({'v_inf': 'v_inf_[m/s]'}, **BLADE_VARIABLES)
    return write_tecplot(path, f"{project} Blattdaten", [(f"v_inf={result.v_inf:.2f}", df)],
                         variables)


def export_rotor_disc(rotor_results, output_dir, project="Rotor"):
    """Eine Zone je Windgeschwindigkeit mit Sektionsdaten und Balkenlasten."""
    path = os.path.join(output_dir, 'rotor_disc.dat')
    zones = []
    for v_inf in sorted(rotor_results):
        result = rotor_results[v_inf]
        zones.append((f"v_inf={v_inf:.2f}", result.sections.assign(v_inf=v_inf)))
    variables = dict({'v_inf': 'v_inf_[m/s]'}, **DISC_VARIABLES)
    return write_tecplot(path, f"{project} Rotorscheibe", zones, variables)


def export_cp_map(cp, ct, output_dir, project="Rotor"):
    """Cp/Ct-Kennfeld über lambda und pitch, eine Zone je Pitchwinkel."""
    path = os.path.join(output_dir, 'cp_lambda_map.dat')
    zones = []
    for pitch in cp.columns:
        df = pd.DataFrame({'lambda': cp.index.values, 'cp': cp[pitch].values,
                           'ct': ct[pitch].values})
        zones.append((f"pitch={pitch:.2f}", df.dropna()))
    variables = {'lambda': 'lambda_[-]', 'cp': 'cp_[-]', 'ct': 'ct_[-]'}
    return write_tecplot(path, f"{project} Cp-Lambda-Kennfeld", zones, variables)


def export_aep(aep_df, output_dir, project="Rotor"):
    path = os.path.join(output_dir, 'aep.dat')
    variables = {'v_mean': 'v_mean_[m/s]', 'scale_A': 'A_[m/s]', 'aep_kwh': 'aep_[kWh]',
                 'revenue': 'revenue_[EUR]', 'full_load_hours': 'full_load_hours_[h]'}
    return write_tecplot(path, f"{project} Jahresenergieertrag", [("aep", aep_df)], variables)


def write_summary(results, output_dir, project="Rotor"):
    """JSON-Zusammenfassung: Nennpunkt, maximales Cp und AEP-Tabelle."""
    curve = results['power_curve']
    summary = {
        'project': project,
        'n_windspeeds': int(len(curve)),
        'cp_max': float(curve['cp_aero'].max()) if len(curve) else 0.0,
        'p_el_max_W': float(curve['p_el'].max()) if len(curve) else 0.0,
        'not_converged': [float(v) for v in curve.loc[~curve['converged'], 'v_inf']],
        'aep': results['aep'].to_dict(orient='records'),
    }
    path = os.path.join(output_dir, 'summary.json')
    ensure_dir(output_dir)
    with open(path, 'w') as f:
        json.dump(summary, f, indent=2)
    logger.info('Zusammenfassung gespeichert in %s', path)
    return path
