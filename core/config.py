# core/config.py
import logging
from dataclasses import dataclass

log = logging.getLogger(__name__)


@dataclass
class MapSettings:
    storage_key: str = "features"
    crs: str = "EPSG:3857"
    center: tuple[float, float] = (-11000000.0, 4600000.0)
    zoom: float = 4
    precision: int = 2          # decimales al mostrar coordenadas
    show_lonlat: bool = False   # mostrar lon/lat en la lista en vez de X/Y
    dark_mode: bool = False
    marker_radius: float = 7.0
    marker_color: str = "#ffcc33"


def _as_bool(value) -> bool:
    # QSettings en formato INI devuelve los booleanos como texto
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "si", "sí")
    return bool(value)


# clave en QSettings -> (atributo, conversor)
_KEYS = {
    "map/storage_key": ("storage_key", str),
    "map/crs": ("crs", str),
    "map/center_x": (None, float),
    "map/center_y": (None, float),
    "map/zoom": ("zoom", float),
    "map/marker_radius": ("marker_radius", float),
    "map/marker_color": ("marker_color", str),
    "ui/precision": ("precision", int),
    "ui/show_lonlat": ("show_lonlat", _as_bool),
    "ui/dark_mode": ("dark_mode", _as_bool),
}


def load_settings(qsettings) -> MapSettings:
    """
    Lee la configuración guardada. Los valores ilegibles se ignoran
    (con advertencia) y se usa el valor por defecto.
    """
    settings = MapSettings()
    center = list(settings.center)
    for key, (attr, convert) in _KEYS.items():
        raw = qsettings.value(key)
        if raw is None:
            continue
        try:
            value = convert(raw)
        except (TypeError, ValueError):
            log.warning("Valor de configuración inválido para %s: %r", key, raw)
            continue
        if key == "map/center_x":
            center[0] = value
        elif key == "map/center_y":
            center[1] = value
        else:
            setattr(settings, attr, value)
    settings.center = (center[0], center[1])

    if settings.precision < 0:
        log.warning("Precisión negativa (%d); se usa 0", settings.precision)
        settings.precision = 0
    return settings


def save_settings(qsettings, settings: MapSettings):
    for key, (attr, _convert) in _KEYS.items():
        if key == "map/center_x":
            value = settings.center[0]
        elif key == "map/center_y":
            value = settings.center[1]
        else:
            value = getattr(settings, attr)
        qsettings.setValue(key, value)
    qsettings.sync()
