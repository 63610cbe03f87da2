# core/errors.py


class GeoMarcasError(Exception):
    """Base de todos los errores del núcleo."""


class InvalidFeatureError(GeoMarcasError):
    """Datos de entrada inválidos para crear un feature (nombre vacío, sin coordenada)."""


class NotFoundError(GeoMarcasError):
    """No existe ningún feature con el id pedido."""

    def __init__(self, feature_id):
        super().__init__(f"No existe ningún feature con id '{feature_id}'.")
        self.feature_id = feature_id


class CorruptStoreError(GeoMarcasError):
    """Los datos guardados no se pueden interpretar como una lista de features."""


class PersistenceError(GeoMarcasError):
    """
    Falló la escritura en el almacén. El estado en memoria y los marcadores
    ya están actualizados; el cambio puede no sobrevivir a un reinicio.
    """
