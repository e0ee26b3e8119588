# main.py

"""
main.py

Orchestriert die Rotorberechnung mit Laufzeitmessung pro Schritt:
Konfiguration -> Eingangsdaten und Blattinterpolation -> Leistungskurve
-> AEP -> Ausgabe.

Exit-Codes: 0 Erfolg, 1 Konfigurations- oder Datenfehler, 2 sonstiger Fehler.
"""

import argparse
import logging
import sys
import time

from config import load_config
from errors import ConfigurationError, DataError
from export import (export_aep, export_blade_data, export_cp_map, export_power_curve,
                    export_rotor_disc, write_summary)
from plotting import plot_blade_loads, plot_cp_curves, plot_cp_lambda, plot_power_curve
from simulation import build_simulation, run_simulation
from utils import setup_logging, ensure_dir

logger = logging.getLogger(__name__)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description='BEM-Leistungskurve und Jahresenergieertrag')
    parser.add_argument('--config', default='config.yaml', help='Pfad zu config.yaml')
    parser.add_argument('--log-level', default=None, help='Logging-Level (überschreibt config)')
    parser.add_argument('--no-plots', action='store_true', help='Keine Abbildungen erzeugen')
    return parser.parse_args(argv)


def run(cfg, make_plots=True):
    project = cfg.get_str("project.name", "Rotor")
    output_dir = cfg.get_path("output.directory", must_exist=False)
    ensure_dir(output_dir)
    logger.info(f"Starte Rotorberechnung für Projekt {project}")

    # 2) Eingangsdaten und Blattinterpolation
    t0 = time.time()
    sim = build_simulation(cfg)
    logger.info(f"  Dauer Schritt 2: {time.time() - t0:.2f}s")

    # 3) Leistungskurve, AEP, Kennfeld
    t1 = time.time()
    results = run_simulation(cfg, sim)
    logger.info(f"  Dauer Schritt 3: {time.time() - t1:.2f}s")

    # 4) Ausgabe
    t2 = time.time()
    export_power_curve(results['power_curve'], output_dir, project)
    export_aep(results['aep'], output_dir, project)
    rotor_results = results['rotor_results']
    if rotor_results:
        export_rotor_disc(rotor_results, output_dir, project)
    if cfg.has("output.blade_data_windspeed"):
        v_sel = cfg.get_float("output.blade_data_windspeed")
        if rotor_results:
            v_near = min(rotor_results, key=lambda v: abs(v - v_sel))
            export_blade_data(rotor_results[v_near], output_dir, project)
            if make_plots:
                plot_blade_loads(rotor_results[v_near], output_dir)
        else:
            logger.warning("Keine konvergierten Betriebspunkte für Blattdaten vorhanden")
    if 'cp_map' in results:
        export_cp_map(results['cp_map'], results['ct_map'], output_dir, project)
    if make_plots:
        plot_power_curve(results['power_curve'], output_dir)
        plot_cp_curves(results['power_curve'], output_dir)
        if 'cp_map' in results:
            plot_cp_lambda(results['cp_map'], output_dir)
    write_summary(results, output_dir, project)
    logger.info(f"  Dauer Schritt 4: {time.time() - t2:.2f}s")

    logger.info(f"Gesamtdauer (ohne Init): {time.time() - t0:.2f}s")
    return results


def main(argv=None):
    args = parse_args(argv)
    try:
        # 1) Initialisierung
        cfg = load_config(args.config)
        setup_logging(args.log_level or cfg.get_str("logging.level", "INFO"),
                      cfg.get("logging.file"))
        cfg.validate()
        run(cfg, make_plots=not args.no_plots and cfg.get_bool("output.plots", True))
    except (ConfigurationError, DataError) as e:
        logger.error(f"Fehler in der Eingabe: {e}")
        return 1
    except Exception as e:
        logger.exception(f"Fehler in der Pipeline: {e}")
        return 2
    return 0


if __name__ == "__main__":
    sys.exit(main())
