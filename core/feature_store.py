# core/feature_store.py
import json
import logging

from PySide6.QtCore import QSettings

from core.errors import CorruptStoreError, PersistenceError
from core.feature import Feature, parse_coordinate

log = logging.getLogger(__name__)

DEFAULT_KEY = "features"


class FeatureStore:
    """
    Guarda la lista completa de features como un único valor JSON bajo una
    clave de un almacén clave-valor con la API de QSettings
    (value / setValue / sync / status).

    Formato: [{"id": str, "name": str, "coordinate": [x, y]}, ...]
    """

    def __init__(self, settings, key: str = DEFAULT_KEY):
        self._settings = settings
        self.key = key

    def load(self) -> list[Feature]:
        raw = self._settings.value(self.key)
        if raw is None or (isinstance(raw, str) and not raw.strip()):
            return []
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8", errors="replace")
        if not isinstance(raw, str):
            raise CorruptStoreError(f"Valor inesperado bajo '{self.key}': {type(raw).__name__}")
        try:
            records = json.loads(raw)
        except ValueError as e:
            raise CorruptStoreError(f"Los datos guardados no son JSON válido: {e}") from e
        return self._parse_records(records)

    @staticmethod
    def _parse_records(records) -> list[Feature]:
        if not isinstance(records, list):
            raise CorruptStoreError("Se esperaba una lista de features.")

        features = []
        seen = set()
        for i, rec in enumerate(records):
            if not isinstance(rec, dict):
                raise CorruptStoreError(f"Registro {i}: se esperaba un objeto.")
            fid = rec.get("id")
            name = rec.get("name")
            if not isinstance(fid, str) or not fid:
                raise CorruptStoreError(f"Registro {i}: id vacío o inválido.")
            if fid in seen:
                raise CorruptStoreError(f"Registro {i}: id duplicado '{fid}'.")
            if not isinstance(name, str) or not name:
                raise CorruptStoreError(f"Registro {i}: nombre vacío o inválido.")
            # El formato guarda la coordenada como lista JSON de dos números
            coords = rec.get("coordinate")
            if not isinstance(coords, list):
                raise CorruptStoreError(f"Registro {i}: coordenada inválida {coords!r}.")
            parsed = parse_coordinate(coords)
            if parsed is None:
                raise CorruptStoreError(f"Registro {i}: coordenada inválida {coords!r}.")
            seen.add(fid)
            features.append(Feature(id=fid, name=name, coordinate=parsed))
        return features

    def save(self, features) -> None:
        payload = json.dumps([f.to_record() for f in features])
        try:
            self._settings.setValue(self.key, payload)
            self._settings.sync()
            status = self._settings.status()
        except Exception as e:
            raise PersistenceError(f"No se pudo guardar la lista de features: {e}") from e
        if status != QSettings.Status.NoError:
            raise PersistenceError(f"No se pudo guardar la lista de features (estado {status}).")
        log.debug("Guardados %d features bajo '%s'", len(features), self.key)
