# errors.py

"""
errors.py

Fehlerklassen der Rotorberechnung:
- ConfigurationError: fehlende oder ungültige Konfiguration (fatal beim Start)
- DataError: fehlerhafte oder unvollständige Eingangsdaten
- PolarRangeError: Anstellwinkel außerhalb des Polarenbereichs
- ConvergenceFailure: BEM-Lösung nicht konvergiert
"""


def _format_context(context):
    parts = [f"{key}={value}" for key, value in context.items() if value is not None]
    return f" ({', '.join(parts)})" if parts else ""


class ConfigurationError(ValueError):
    """Fehlender Schlüssel, falscher Typ, fehlende Datei oder ungültiger Parameter."""

    def __init__(self, message, **context):
        self.context = context
        super().__init__(message + _format_context(context))


class DataError(ValueError):
    """Leere Polare, zu wenige Sektionen, keine Profile zum Interpolieren."""

    def __init__(self, message, **context):
        self.context = context
        super().__init__(message + _format_context(context))


class PolarRangeError(DataError):
    """Anstellwinkel liegt außerhalb des gespeicherten Alpha-Bereichs."""


class ConvergenceFailure(RuntimeError):
    def __init__(self, message, **context):
        self.context = context
        super().__init__(message + _format_context(context))
