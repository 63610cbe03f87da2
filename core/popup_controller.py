# core/popup_controller.py
import logging
from enum import Enum

from core.errors import InvalidFeatureError, PersistenceError

log = logging.getLogger(__name__)


class PopupState(Enum):
    IDLE = "idle"
    OPEN = "open"


class PopupController:
    """
    Máquina de dos estados que decide cuándo se muestra el popup de nombre
    y dónde está anclado. Es la única vía para crear features desde un clic,
    así que el sincronizador nunca recibe una creación sin coordenada.
    """

    def __init__(self, synchronizer):
        self._sync = synchronizer
        self._state = PopupState.IDLE
        self._anchor = None
        self._name = ""

    @property
    def state(self) -> PopupState:
        return self._state

    @property
    def is_open(self) -> bool:
        return self._state is PopupState.OPEN

    @property
    def anchor(self):
        return self._anchor

    @property
    def name(self) -> str:
        return self._name

    @property
    def can_save(self) -> bool:
        return self.is_open and bool(self._name.strip())

    def handle_click(self, coordinate, inside_popup: bool) -> bool:
        """Devuelve True si el clic abrió o re-ancló el popup."""
        if inside_popup:
            return False
        # Re-anclar sin confirmación; el texto escrito se conserva
        self._anchor = (float(coordinate[0]), float(coordinate[1]))
        self._state = PopupState.OPEN
        log.debug("Popup anclado en %s", self._anchor)
        return True

    def set_name(self, text: str):
        if not self.is_open:
            return
        self._name = text or ""

    def save(self):
        if not self.is_open:
            raise InvalidFeatureError("No hay ningún punto seleccionado en el mapa.")
        try:
            feature = self._sync.create(self._anchor, self._name)
        except PersistenceError:
            # El feature ya existe en memoria y en el mapa
            self._close()
            raise
        self._close()
        return feature

    def dismiss(self):
        if self.is_open:
            log.debug("Popup descartado sin crear feature")
        self._close()

    def _close(self):
        self._state = PopupState.IDLE
        self._anchor = None
        self._name = ""
