# core/render_surface.py
import logging

from PySide6.QtCore import QPointF
from PySide6.QtGui import QBrush, QColor, QPen
from PySide6.QtWidgets import QGraphicsEllipseItem, QGraphicsItem

log = logging.getLogger(__name__)

# Rol de datos del item donde se guarda el id del feature
FEATURE_ID_ROLE = 0


def map_to_scene(coordinate) -> tuple[float, float]:
    # En la escena Y crece hacia abajo; en la proyección hacia el norte.
    return coordinate[0], -coordinate[1]


def scene_to_map(x: float, y: float) -> tuple[float, float]:
    return x, -y


class RenderSurfaceAdapter:
    """
    Fachada sobre la escena/vista de Qt que dibuja el mapa.
    Sólo expone añadir, quitar y recentrar; nadie más toca los marcadores.
    """

    def __init__(self, scene, view, radius: float = 7.0, color: str = "#ffcc33"):
        self._scene = scene
        self._view = view
        self._radius = radius
        self._color = color
        self._markers = {}  # id -> QGraphicsEllipseItem

    def add_marker(self, feature_id: str, coordinate):
        x, y = map_to_scene(coordinate)
        item = self._markers.get(feature_id)
        if item is not None:
            # Mismo id: se mueve el marcador existente, no se duplica
            item.setPos(QPointF(x, y))
            return item

        r = self._radius
        item = QGraphicsEllipseItem(-r, -r, 2 * r, 2 * r)
        self._apply_style(item)
        # Tamaño fijo en píxeles sin importar el zoom
        item.setFlag(QGraphicsItem.GraphicsItemFlag.ItemIgnoresTransformations, True)
        item.setData(FEATURE_ID_ROLE, feature_id)
        item.setPos(QPointF(x, y))
        self._scene.addItem(item)
        self._markers[feature_id] = item
        return item

    def remove_marker(self, feature_id: str):
        item = self._markers.pop(feature_id, None)
        if item is None:
            log.debug("remove_marker: sin marcador para %s", feature_id)
            return
        self._scene.removeItem(item)

    def recenter(self, coordinate):
        x, y = map_to_scene(coordinate)
        self._view.centerOn(QPointF(x, y))

    def marker_ids(self) -> list[str]:
        return list(self._markers)

    def marker_count(self) -> int:
        return len(self._markers)

    def marker_coordinate(self, feature_id: str):
        item = self._markers.get(feature_id)
        if item is None:
            return None
        pos = item.pos()
        return scene_to_map(pos.x(), pos.y())

    def set_style(self, radius: float, color: str):
        self._radius = radius
        self._color = color
        for item in self._markers.values():
            item.setRect(-radius, -radius, 2 * radius, 2 * radius)
            self._apply_style(item)

    def _apply_style(self, item):
        color = QColor(self._color)
        pen = QPen(color)
        pen.setWidth(2)
        item.setPen(pen)
        fill = QColor(color)
        fill.setAlpha(200)
        item.setBrush(QBrush(fill))
