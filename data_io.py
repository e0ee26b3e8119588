# data_io.py

import os
import logging
from collections import OrderedDict
from typing import Dict, List

import numpy as np
import pandas as pd

from airfoil import AirfoilCoordinates
from errors import ConfigurationError, DataError
from polar import Polar, PolarPoint

logger = logging.getLogger(__name__)

POLAR_KEYWORDS = ("REFNUM", "XA", "THICK", "REYN", "MACH", "DEPANG", "NALPHA", "NVALS")

WND_DATA_OFFSET = 104

BLADE_COLUMNS = ['radius', 'chord', 'twist', 'rel_thickness', 'xt4', 'yt4',
                 'pcba_x', 'pcba_y', 'twist_axis']


def _tokenize(line):
    """
    Zerlegt eine Zeile an Tabulatoren; ergibt das höchstens ein Token,
    wird stattdessen an Leerzeichen getrennt.
    """
    tokens = [t.strip() for t in line.split('\t') if t.strip()]
    if len(tokens) <= 1:
        tokens = line.split()
    return tokens


def _is_number(token):
    try:
        float(token)
        return True
    except ValueError:
        return False


def read_file_list(path):
    """
    Liest eine Dateiliste (ein Pfad pro Zeile).

    Relative Pfade beziehen sich auf das Verzeichnis der Listendatei.
    Kopfzeilen mit '#' können 'Revision' und 'Date' enthalten; der Wert
    steht hinter dem letzten Tabulator.

    Rückgabe:
      paths: Liste existierender Dateien
      meta : dict mit 'revision' und 'date' (falls vorhanden)
    """
    if not os.path.isfile(path):
        raise ConfigurationError(f"Dateiliste nicht gefunden: {path}")
    base = os.path.dirname(os.path.abspath(path))
    meta = {}
    entries = []
    with open(path, 'r') as f:
        for line in f:
            line = line.rstrip('\n').rstrip('\r')
            if not line.strip():
                continue
            if line.lstrip().startswith('#'):
                for key in ('Revision', 'Date'):
                    if key in line:
                        value = line.split('\t')[-1] if '\t' in line else line.split()[-1]
                        meta[key.lower()] = value.strip()
                continue
            entry = line.strip()
            entries.append(entry if os.path.isabs(entry) else os.path.join(base, entry))

    if not entries:
        raise DataError("Dateiliste enthält keine Pfade", file=path)
    paths = []
    for entry in entries:
        if os.path.isfile(entry):
            paths.append(entry)
        else:
            logger.warning(f"Datei aus Liste nicht gefunden, wird übersprungen: {entry}")
    if not paths:
        raise DataError("Keine der gelisteten Dateien existiert", file=path)
    logger.info(f"Dateiliste {os.path.basename(path)}: {len(paths)} Dateien "
                f"(Revision {meta.get('revision', '-')}, Datum {meta.get('date', '-')})")
    return paths, meta


def read_polar_file(path) -> Dict:
    """
    Parst eine Polardatei.

    Kopfzeilen beginnen mit '#' oder mit einem der Schlüsselwörter
    REFNUM, XA, THICK, REYN, MACH, DEPANG, NALPHA, NVALS. Datenzeilen
    enthalten alpha[deg], Cl, Cd und optional Cm.

    Returns:
        dict mit 'name', 'thickness', 'reynolds', 'mach', 'xa', 'depang',
        'headers' und 'data' (DataFrame mit alpha, cl, cd, cm)

    Raises:
        FileNotFoundError: Datei fehlt
        DataError: unlesbare Zeile oder keine Datenzeilen
    """
    if not os.path.isfile(path):
        raise FileNotFoundError(f"Polardatei nicht gefunden: {path}")

    block = {
        'name': os.path.splitext(os.path.basename(path))[0],
        'thickness': None, 'reynolds': None, 'mach': 0.0,
        'xa': None, 'depang': None, 'nalpha': 0, 'nvals': 0,
        'headers': [],
    }
    rows = []
    with open(path, 'r') as f:
        for n, line in enumerate(f, start=1):
            line = line.rstrip('\n').rstrip('\r')
            if not line.strip():
                continue
            if line.startswith('#'):
                block['headers'].append(line)
                continue
            tokens = _tokenize(line)
            if not tokens:
                continue
            try:
                key = tokens[0].upper()
                if key in POLAR_KEYWORDS and len(tokens) >= 2:
                    if key == 'REFNUM':
                        block['name'] = tokens[1]
                    elif key == 'THICK':
                        block['thickness'] = float(tokens[1])
                    elif key == 'REYN':
                        block['reynolds'] = float(tokens[1])
                    elif key in ('NALPHA', 'NVALS'):
                        block[key.lower()] = int(float(tokens[1]))
                    else:
                        block[key.lower()] = float(tokens[1])
                elif len(tokens) >= 3 and _is_number(tokens[0]):
                    alpha, cl, cd = (float(t) for t in tokens[:3])
                    cm = float(tokens[3]) if len(tokens) > 3 else 0.0
                    rows.append((alpha, cl, cd, cm))
                else:
                    logger.warning(f"{path}:{n}: unbekannte Zeile wird ignoriert: {line.strip()}")
            except ValueError as e:
                raise DataError(f"Fehler in Zeile {n}: {e}", file=path)

    if not rows:
        raise DataError("Keine Polardaten gefunden", file=path)
    if block['nalpha'] and block['nalpha'] != len(rows):
        logger.warning(f"{path}: NALPHA ({block['nalpha']}) passt nicht zur Anzahl "
                        f"der Datenzeilen ({len(rows)})")
    if block['reynolds'] is None:
        raise DataError("REYN fehlt im Kopf", file=path)
    if block['thickness'] is None:
        raise DataError("THICK fehlt im Kopf", file=path)

    block['data'] = pd.DataFrame(rows, columns=['alpha', 'cl', 'cd', 'cm'])
    return block


def read_polars(list_file) -> List[Polar]:
    """
    Liest alle Polardateien einer Dateiliste und fasst Dateien mit gleichem
    REFNUM (verschiedene Re/Mach) zu einer Polare zusammen.
    """
    paths, _ = read_file_list(list_file)
    grouped = OrderedDict()
    for path in paths:
        block = read_polar_file(path)
        grouped.setdefault(block['name'], []).append(block)

    polars = []
    for name, blocks in grouped.items():
        thicknesses = {b['thickness'] for b in blocks}
        if len(thicknesses) > 1:
            raise DataError(f"Widersprüchliche Dicken {sorted(thicknesses)}", airfoil=name)
        points = []
        for b in blocks:
            for row in b['data'].itertuples(index=False):
                points.append(PolarPoint(re=b['reynolds'], mach=b['mach'], alpha=row.alpha,
                                         cl=row.cl, cd=row.cd, cm=row.cm))
        polar = Polar(name, blocks[0]['thickness'], points)
        logger.info(f"Polare eingelesen: {polar}")
        polars.append(polar)
    return polars


def read_airfoil_geometry(path) -> AirfoilCoordinates:
    """
    Liest eine Profilgeometrie-Datei mit NAME, RELDICKE, MARKER- und DEF-Zeilen.
    Die Kontur wird beim Erzeugen normiert und orientiert.
    """
    if not os.path.isfile(path):
        raise FileNotFoundError(f"Profildatei nicht gefunden: {path}")
    name = os.path.splitext(os.path.basename(path))[0]
    thickness = None
    markers = {}
    coords = []
    with open(path, 'r') as f:
        for n, line in enumerate(f, start=1):
            if not line.strip() or line.startswith('#'):
                continue
            tokens = _tokenize(line)
            key = tokens[0].upper()
            try:
                if key == 'NAME' and len(tokens) >= 2:
                    name = ' '.join(tokens[1:])
                elif key == 'RELDICKE' and len(tokens) >= 2:
                    thickness = float(tokens[1])
                elif key == 'MARKER' and len(tokens) >= 3:
                    markers[tokens[1].upper()] = int(tokens[2])
                elif key == 'DEF' and len(tokens) >= 3:
                    coords.append([float(t) for t in tokens[1:4]])
                else:
                    logger.warning(f"{path}:{n}: unbekannte Zeile wird ignoriert")
            except ValueError as e:
                raise DataError(f"Fehler in Zeile {n}: {e}", file=path)

    if not coords:
        raise DataError("Keine Koordinaten gefunden", file=path)
    if thickness is None:
        raise DataError("RELDICKE fehlt", file=path)
    width = min(len(c) for c in coords)
    points = np.array([c[:width] for c in coords])
    return AirfoilCoordinates(name, thickness, points, markers=markers)


def read_airfoils(list_file) -> List[AirfoilCoordinates]:
    paths, _ = read_file_list(list_file)
    airfoils = [read_airfoil_geometry(p) for p in paths]
    for af in airfoils:
        logger.info(f"Profilgeometrie eingelesen: {af}")
    return airfoils


def read_blade_geometry(path) -> pd.DataFrame:
    """
    Liest die Blattgeometrie: DEF-Zeilen mit Radius, Sehne, Verwindung,
    relativer Dicke, xt4, yt4, pcbaX, pcbaY und relativer Lage der
    Verwindungsachse.

    Returns:
        DataFrame mit den Spalten BLADE_COLUMNS, nach Radius sortiert

    Raises:
        DataError: weniger als zwei Sektionen oder falsche Feldanzahl
    """
    if not os.path.isfile(path):
        raise ConfigurationError(f"Blattgeometrie nicht gefunden: {path}")
    rows = []
    with open(path, 'r') as f:
        for n, line in enumerate(f, start=1):
            if not line.strip() or line.startswith('#'):
                continue
            tokens = _tokenize(line)
            if tokens[0].upper() != 'DEF':
                continue
            if len(tokens) != 10:
                raise DataError(f"Zeile {n}: 10 Felder erwartet, {len(tokens)} gefunden", file=path)
            try:
                rows.append([float(t) for t in tokens[1:]])
            except ValueError as e:
                raise DataError(f"Fehler in Zeile {n}: {e}", file=path)

    df = pd.DataFrame(rows, columns=BLADE_COLUMNS)
    if len(df) < 2:
        raise DataError(f"Blattgeometrie benötigt mindestens zwei Sektionen, gefunden: {len(df)}",
                        file=path)
    if (df['chord'] <= 0).any():
        raise DataError("Sehnenlänge muss positiv sein", file=path)
    df = df.sort_values('radius').reset_index(drop=True)
    logger.info(f"Blattgeometrie eingelesen: {len(df)} Sektionen aus {path}")
    return df


def read_bladed_wind_field(path) -> Dict:
    """
    Liest ein Windfeld im binären Bladed-Format (.wnd, z.B. aus TurbSim).

    Kopf (little endian): ab Byte 16 Nabenhöhe, Turbulenzintensitäten u/v/w [%],
    Gitterabstände dz, dy und dx (float32); Byte 44 halbe Zeitschrittzahl
    (int32) gefolgt von der mittleren Nabengeschwindigkeit; Byte 72 nz, ny.
    Ab Byte 104 folgen je Zeitschritt, Höhe und Querposition u, v, w als int16.

    Returns:
        dict mit 'y', 'z' (Gitterachsen [m]), 'velocities' (Array nt x ny x nz x 3),
        'dt' [s], 'hub_velocity' [m/s], 'hub_height' [m], 'padding' (Randschritte
        am Anfang und Ende) und 'usable_steps'

    Raises:
        FileNotFoundError: Datei fehlt
        DataError: Kopf unvollständig, Datei abgeschnitten oder ungültige Gitterwerte
    """
    if not os.path.isfile(path):
        raise FileNotFoundError(f"Windfeld nicht gefunden: {path}")
    with open(path, 'rb') as f:
        raw = f.read()
    if len(raw) < WND_DATA_OFFSET:
        raise DataError("Kopf des Windfelds unvollständig", file=path)

    hub_height, ti_u, ti_v, ti_w, dz, dy, dx = (
        float(v) for v in np.frombuffer(raw, dtype='<f4', count=7, offset=16))
    nt = 2 * int(np.frombuffer(raw, dtype='<i4', count=1, offset=44)[0])
    hub_velocity = float(np.frombuffer(raw, dtype='<f4', count=1, offset=48)[0])
    nz, ny = (int(v) for v in np.frombuffer(raw, dtype='<i4', count=2, offset=72))

    if nt <= 0 or ny <= 0 or nz <= 0:
        raise DataError("Gittergröße muss positiv sein", file=path, nt=nt, ny=ny, nz=nz)
    if dy <= 0 or dz <= 0 or dx <= 0:
        raise DataError("Gitterabstände müssen positiv sein", file=path)
    if hub_velocity <= 0:
        raise DataError("Nabengeschwindigkeit muss positiv sein", file=path)

    count = nt * nz * ny * 3
    if len(raw) < WND_DATA_OFFSET + 2 * count:
        raise DataError("Windfeld abgeschnitten", file=path,
                        expected=WND_DATA_OFFSET + 2 * count, size=len(raw))
    data = np.frombuffer(raw, dtype='<i2', count=count, offset=WND_DATA_OFFSET)
    data = data.reshape(nt, nz, ny, 3).astype(float)

    # v = v_hub * (TI/100 / 1000 * Rohwert + Offset), Offset 1 nur für u
    scale = np.array([ti_u, ti_v, ti_w]) / 100.0 / 1000.0
    velocities = hub_velocity * (data * scale + np.array([1.0, 0.0, 0.0]))
    velocities = velocities.transpose(0, 2, 1, 3)

    width = (ny - 1) * dy
    height = (nz - 1) * dz
    dt = dx / hub_velocity
    padding = int(np.ceil(width / hub_velocity / 2.0 / dt))
    usable = nt - 2 * padding
    if usable <= 0:
        raise DataError("Windfeld enthält keine nutzbaren Zeitschritte", file=path,
                        nt=nt, padding=padding)

    logger.info(f"Windfeld eingelesen: {ny}x{nz} Punkte, {usable} Zeitschritte "
                 f"(dt={dt:.3f}s), v_hub={hub_velocity:.2f} m/s aus {path}")
    return {
        'y': np.arange(ny) * dy - width / 2.0,
        'z': hub_height - height / 2.0 + np.arange(nz) * dz,
        'velocities': velocities,
        'dt': dt,
        'hub_velocity': hub_velocity,
        'hub_height': hub_height,
        'padding': padding,
        'usable_steps': usable,
    }
