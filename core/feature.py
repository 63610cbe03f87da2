# core/feature.py
import math
import uuid
from dataclasses import dataclass
from numbers import Real

from core.errors import InvalidFeatureError


def new_feature_id() -> str:
    return uuid.uuid4().hex


def parse_coordinate(value) -> tuple[float, float] | None:
    """
    Devuelve (x, y) como floats, o None si `value` no es un par de números
    finitos. Los booleanos no cuentan como números.
    """
    if value is None or isinstance(value, (str, bytes)):
        return None
    try:
        if len(value) != 2:
            return None
    except TypeError:
        return None
    x, y = value[0], value[1]
    for n in (x, y):
        if isinstance(n, bool) or not isinstance(n, Real) or not math.isfinite(n):
            return None
    return float(x), float(y)


def validate_new_feature(coordinate, name) -> tuple[tuple[float, float], str]:
    """Valida la entrada de un feature nuevo; devuelve (coordenada, nombre limpio)."""
    if coordinate is None:
        raise InvalidFeatureError("Falta la coordenada del punto.")
    coords = parse_coordinate(coordinate)
    if coords is None:
        raise InvalidFeatureError(f"Coordenada inválida: {coordinate!r}")
    if not isinstance(name, str) or not name.strip():
        raise InvalidFeatureError("El nombre del punto no puede estar vacío.")
    return coords, name.strip()


@dataclass(frozen=True)
class Feature:
    """Punto con nombre; coordenadas en la proyección de trabajo del mapa."""
    id: str
    name: str
    coordinate: tuple[float, float]

    def to_record(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "coordinate": [self.coordinate[0], self.coordinate[1]],
        }
