# utils.py

"""
utils.py

Enthält Hilfsfunktionen:
- Logging-Setup für konsistente Ausgaben.
- Winkel-Konvertierung und -Normierung.
- Timer-Dekorator für Performance-Analysen.
"""

import logging
import time
from functools import wraps
import numpy as np
import os

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"


def setup_logging(log_level=logging.INFO, log_file=None):
    """
    Konfiguriert das Logging-Modul.
    - log_level: Logging-Level (z.B. DEBUG, INFO) oder dessen Name als String.
    - log_file: Optionaler Pfad für eine Logdatei.
    """
    if isinstance(log_level, str):
        log_level = getattr(logging, log_level.upper(), logging.INFO)
    handlers = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    logging.basicConfig(level=log_level,
                        format=LOG_FORMAT,
                        handlers=handlers,
                        force=True)


def timer(func):
    """
    Dekorator, um die Laufzeit einer Funktion zu messen und im Log zu senden.
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        start = time.time()
        result = func(*args, **kwargs)
        end = time.time()
        logger.info(f"Funktion {func.__name__} dauerte {end - start:.3f}s")
        return result
    return wrapper


def deg2rad(deg):
    """
    Konvertiert Winkel in Grad zu Radiant.
    """
    return deg * (np.pi / 180.0)


def rad2deg(rad):
    """
    Konvertiert Winkel in Radiant zu Grad.
    """
    return rad * (180.0 / np.pi)


def wrap_angle_deg(angle):
    """
    Bildet einen Winkel in Grad auf das Intervall [-180, 180) ab.
    """
    return (angle + 180.0) % 360.0 - 180.0


def ensure_dir(path):
    """
    Erstellt das Verzeichnis, falls es nicht existiert.
    """
    if not os.path.isdir(path):
        os.makedirs(path, exist_ok=True)
