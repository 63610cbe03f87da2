# core/feature_sync.py
import logging

from core.errors import NotFoundError, PersistenceError
from core.feature import Feature, new_feature_id, validate_new_feature

log = logging.getLogger(__name__)


class FeatureSynchronizer:
    """
    Dueño de la lista canónica de features. Toda mutación se aplica en este
    orden fijo: lista en memoria, marcador en la superficie de render,
    almacén persistente. El almacén es una copia diferida de la lista;
    durante la sesión la verdad es la lista en memoria.

    `surface` debe ofrecer add_marker / remove_marker / recenter / marker_ids,
    `store` load / save.
    """

    def __init__(self, surface, store, id_factory=new_feature_id):
        self._surface = surface
        self._store = store
        self._id_factory = id_factory
        self._features: list[Feature] = []
        self._retired_ids: set[str] = set()  # ids ya usados en esta sesión
        self._pending_save = False

    # --- Lectura ---
    def list(self) -> tuple[Feature, ...]:
        return tuple(self._features)

    def get(self, feature_id: str) -> Feature:
        for feat in self._features:
            if feat.id == feature_id:
                return feat
        raise NotFoundError(feature_id)

    @property
    def has_pending_changes(self) -> bool:
        """True si la última escritura al almacén falló."""
        return self._pending_save

    # --- Operaciones ---
    def initialize(self) -> tuple[Feature, ...]:
        # CorruptStoreError se propaga: no se arranca con una lista vacía en silencio
        loaded = self._store.load()

        for feat in self._features:
            self._surface.remove_marker(feat.id)
        self._features = list(loaded)
        self._retired_ids.update(f.id for f in loaded)
        self._pending_save = False

        for feat in self._features:
            self._surface.add_marker(feat.id, feat.coordinate)
        log.info("Cargados %d features del almacén", len(self._features))
        return self.list()

    def create(self, coordinate, name) -> Feature:
        coords, clean_name = validate_new_feature(coordinate, name)
        feature = Feature(id=self._next_id(), name=clean_name, coordinate=coords)

        self._features.append(feature)
        self._surface.add_marker(feature.id, feature.coordinate)
        log.info("Feature creado: %s '%s' en %s", feature.id, feature.name, feature.coordinate)
        self._persist()
        return feature

    def remove(self, feature_id: str):
        feature = self.get(feature_id)

        self._features = [f for f in self._features if f.id != feature.id]
        self._surface.remove_marker(feature.id)
        log.info("Feature eliminado: %s '%s'", feature.id, feature.name)
        self._persist()

    def center_on(self, feature_id: str):
        feature = self.get(feature_id)
        self._surface.recenter(feature.coordinate)

    def retry_save(self):
        """Reescribe la lista completa tras un PersistenceError."""
        self._persist()

    def is_consistent(self) -> bool:
        list_ids = [f.id for f in self._features]
        marker_ids = self._surface.marker_ids()
        ok = len(list_ids) == len(marker_ids) and set(list_ids) == set(marker_ids)
        if not ok:
            log.warning(
                "Lista y superficie desincronizadas: %d features, %d marcadores",
                len(list_ids), len(marker_ids),
            )
        return ok

    # --- Internos ---
    def _next_id(self) -> str:
        fid = self._id_factory()
        while fid in self._retired_ids:
            fid = self._id_factory()
        self._retired_ids.add(fid)
        return fid

    def _persist(self):
        try:
            self._store.save(self._features)
        except PersistenceError:
            self._pending_save = True
            log.warning("Falló el guardado; %d features sólo en memoria", len(self._features))
            raise
        self._pending_save = False
