import logging
import sys
from PySide6.QtCore import Qt, Signal, QPointF, QRectF, QSettings
from PySide6.QtGui import QAction, QBrush, QColor, QPen, QPainter, QResizeEvent
from PySide6.QtWidgets import (
    QApplication,
    QMainWindow,
    QWidget,
    QFrame,
    QToolBar,
    QStyle,
    QMessageBox,
    QVBoxLayout,
    QHBoxLayout,
    QLineEdit,
    QPushButton,
    QLabel,
    QFileDialog,
    QDialog,
    QGraphicsView,
    QGraphicsScene,
    QHeaderView,
    QTableWidget,
    QTableWidgetItem
)

from config_dialog import ConfigDialog
from core.config import load_settings, save_settings
from core.errors import CorruptStoreError, InvalidFeatureError, NotFoundError, PersistenceError
from core.feature_store import FeatureStore
from core.feature_sync import FeatureSynchronizer
from core.popup_controller import PopupController
from core.projection import CoordinateProvider
from core.render_surface import RenderSurfaceAdapter, map_to_scene, scene_to_map
from exporters.kml_exporter import KMLExporter
from exporters.kmz_exporter import KMZExporter

log = logging.getLogger(__name__)

# Desplazamiento máximo (px) entre press y release para contar como clic y no arrastre
CLICK_TOLERANCE_PX = 4
ZOOM_STEP = 1.25
FEATURE_ID_ROLE = Qt.UserRole


class FeaturePopup(QFrame):
    """Popup con el campo de nombre; vive dentro del viewport del mapa."""

    def __init__(self, parent=None):
        super().__init__(parent)
        self.setFrameShape(QFrame.StyledPanel)
        self.setStyleSheet("FeaturePopup { background-color: white; border: 1px solid #999; border-radius: 4px; }")
        lay = QVBoxLayout(self)
        self.le_name = QLineEdit(); self.le_name.setPlaceholderText("Nombre del punto")
        lay.addWidget(self.le_name)
        self.lbl_error = QLabel(); self.lbl_error.setStyleSheet("color: red;"); self.lbl_error.hide()
        lay.addWidget(self.lbl_error)
        bl = QHBoxLayout()
        self.btn_cancel = QPushButton("Cancelar"); bl.addWidget(self.btn_cancel)
        self.btn_save = QPushButton("Guardar"); self.btn_save.setEnabled(False); bl.addWidget(self.btn_save)
        lay.addLayout(bl)
        self.hide()

    def show_error(self, message: str):
        self.lbl_error.setText(message); self.lbl_error.show(); self.adjustSize()

    def clear_error(self):
        if self.lbl_error.isVisible():
            self.lbl_error.hide(); self.lbl_error.setText(""); self.adjustSize()


class MapCanvas(QGraphicsView):
    """
    Vista del mapa. Zoom con la rueda, arrastre para desplazar; un clic
    (press/release casi en el mismo punto) emite clicked(x, y, dentro_del_popup)
    con (x, y) en coordenadas de la proyección.
    """
    clicked = Signal(float, float, bool)
    viewChanged = Signal()

    def __init__(self, scene, parent=None):
        super().__init__(scene, parent)
        self.popup = None
        self._press_pos = None
        self.setDragMode(QGraphicsView.ScrollHandDrag)
        self.setTransformationAnchor(QGraphicsView.AnchorUnderMouse)
        self.setRenderHint(QPainter.Antialiasing)
        self.setHorizontalScrollBarPolicy(Qt.ScrollBarAlwaysOff)
        self.setVerticalScrollBarPolicy(Qt.ScrollBarAlwaysOff)

    def set_resolution(self, units_per_pixel: float):
        self.resetTransform()
        s = 1.0 / units_per_pixel
        self.scale(s, s)
        self.viewChanged.emit()

    def wheelEvent(self, event):
        factor = ZOOM_STEP if event.angleDelta().y() > 0 else 1 / ZOOM_STEP
        self.scale(factor, factor)
        self.viewChanged.emit()

    def mousePressEvent(self, event):
        if event.button() == Qt.LeftButton:
            self._press_pos = event.position().toPoint()
        super().mousePressEvent(event)

    def mouseReleaseEvent(self, event):
        super().mouseReleaseEvent(event)
        if event.button() != Qt.LeftButton or self._press_pos is None:
            return
        pos = event.position().toPoint()
        moved = (pos - self._press_pos).manhattanLength()
        self._press_pos = None
        if moved > CLICK_TOLERANCE_PX:
            return
        scene_pt = self.mapToScene(pos)
        x, y = scene_to_map(scene_pt.x(), scene_pt.y())
        self.clicked.emit(x, y, self._inside_popup(pos))

    def _inside_popup(self, pos) -> bool:
        return self.popup is not None and self.popup.isVisible() and self.popup.geometry().contains(pos)

    def scrollContentsBy(self, dx, dy):
        super().scrollContentsBy(dx, dy)
        self.viewChanged.emit()

    def resizeEvent(self, event: QResizeEvent):
        super().resizeEvent(event)
        self.viewChanged.emit()


class MainWindow(QMainWindow):
    def __init__(self, qsettings=None):
        super().__init__()
        self.setWindowTitle("GeoMarcas: Anotación de puntos")
        self.qsettings = qsettings if qsettings is not None else QSettings("GeoMarcas", "GeoMarcas")
        self.settings = load_settings(self.qsettings)
        self.projection = CoordinateProvider(self.settings.crs)
        self._build_ui()
        self._create_toolbar()

        self.surface = RenderSurfaceAdapter(self.scene, self.canvas,
                                            self.settings.marker_radius, self.settings.marker_color)
        self.store = FeatureStore(self.qsettings, self.settings.storage_key)
        self.sync = FeatureSynchronizer(self.surface, self.store)
        self.popup_ctl = PopupController(self.sync)

        self._apply_theme()
        self._init_view()

    # --- Métodos de UI ---
    def _build_ui(self):
        central = QWidget()
        self.setCentralWidget(central)
        main_layout = QHBoxLayout(central)

        self.scene = QGraphicsScene(self)
        self.canvas = MapCanvas(self.scene)
        self.canvas.setMinimumSize(400, 300)
        self.canvas.setStyleSheet("background-color:#cfe3f2; border:1px solid #ccc; padding:0px;")
        self.canvas.clicked.connect(self._on_map_clicked)
        self.canvas.viewChanged.connect(self._position_popup)

        self.popup = FeaturePopup(self.canvas.viewport())
        self.canvas.popup = self.popup
        self.popup.le_name.textChanged.connect(self._on_name_edited)
        self.popup.le_name.returnPressed.connect(self._on_save_feature)
        self.popup.btn_save.clicked.connect(self._on_save_feature)
        self.popup.btn_cancel.clicked.connect(self._on_dismiss_popup)

        side_panel = QWidget()
        side = QVBoxLayout(side_panel)
        title = QLabel("Puntos guardados"); title.setStyleSheet("font-size: 16px; font-weight: bold;")
        side.addWidget(title)
        self.table = QTableWidget(0, 3)
        self.table.setHorizontalHeaderLabels(["Nombre", "Coordenadas", "Acciones"])
        hdr = self.table.horizontalHeader()
        hdr.setSectionResizeMode(0, QHeaderView.Stretch)
        hdr.setSectionResizeMode(1, QHeaderView.ResizeToContents)
        hdr.setSectionResizeMode(2, QHeaderView.ResizeToContents)
        self.table.verticalHeader().setVisible(False)
        self.table.setEditTriggers(QTableWidget.NoEditTriggers)
        self.table.setSelectionBehavior(QTableWidget.SelectRows)
        self.table.cellClicked.connect(self._on_cell_clicked)
        side.addWidget(self.table)

        main_layout.addWidget(self.canvas, 3)
        main_layout.addWidget(side_panel, 1)

    def _create_toolbar(self):
        tb = QToolBar("Principal"); self.addToolBar(tb)
        self.act_retry = QAction(self.style().standardIcon(QStyle.SP_BrowserReload), "Reintentar guardado", self)
        self.act_retry.triggered.connect(self._on_retry_save)
        self.act_retry.setEnabled(False)
        actions_data = [
            (QStyle.SP_DialogSaveButton, "Exportar KML", lambda _checked=False: self._on_export(".kml")),
            (QStyle.SP_DialogSaveButton, "Exportar KMZ", lambda _checked=False: self._on_export(".kmz")),
            None,
            self.act_retry,
            None,
            (QStyle.SP_FileDialogDetailedView, "Configuraciones", self._on_settings),
        ]
        for item_data in actions_data:
            if item_data is None: tb.addSeparator(); continue
            if isinstance(item_data, QAction): tb.addAction(item_data); continue
            action = QAction(self.style().standardIcon(item_data[0]), item_data[1], self)
            action.triggered.connect(item_data[2])
            tb.addAction(action)

    def _init_view(self):
        minx, miny, maxx, maxy = self.projection.view_extent()
        # Y invertida en la escena
        self.scene.setSceneRect(QRectF(minx, -maxy, maxx - minx, maxy - miny))
        bminx, bminy, bmaxx, bmaxy = self.projection.bounds()
        world = self.scene.addRect(QRectF(bminx, -bmaxy, bmaxx - bminx, bmaxy - bminy),
                                   QPen(QColor("#888888")), QBrush(QColor("#f4f1ea")))
        world.setZValue(-1)
        self.canvas.set_resolution(self.projection.resolution(self.settings.zoom))
        self.surface.recenter(self.settings.center)

    def _apply_theme(self):
        QApplication.instance().setStyleSheet("QWidget{background:#2b2b2b;color:#ddd;}" if self.settings.dark_mode else "")

    def load_features(self) -> bool:
        """
        Carga los puntos guardados. Devuelve False si el usuario decide salir
        porque los datos guardados están dañados.
        """
        try:
            self.sync.initialize()
        except CorruptStoreError as e:
            log.error("Almacén dañado: %s", e)
            answer = QMessageBox.question(
                self, "Datos guardados dañados",
                f"No se pudieron leer los puntos guardados:\n{e}\n\n"
                "¿Empezar con una lista vacía? Los datos dañados se sobrescribirán "
                "al guardar el próximo punto.",
                QMessageBox.Yes | QMessageBox.No, QMessageBox.No)
            if answer != QMessageBox.Yes:
                return False
        self._refresh_list()
        return True

    # --- Lista ---
    def _format_coordinate(self, feature) -> str:
        p = self.settings.precision
        if self.settings.show_lonlat:
            lon, lat = self.projection.to_lonlat(feature.coordinate)
            p = max(p, 5)
            return f"{lon:.{p}f}, {lat:.{p}f}"
        x, y = feature.coordinate
        return f"{x:.{p}f}, {y:.{p}f}"

    def _refresh_list(self):
        features = self.sync.list()
        self.table.setRowCount(0)
        self.table.setRowCount(len(features))
        for r, feat in enumerate(features):
            name_item = QTableWidgetItem(feat.name); name_item.setData(FEATURE_ID_ROLE, feat.id)
            self.table.setItem(r, 0, name_item)
            coord_item = QTableWidgetItem(self._format_coordinate(feat))
            coord_item.setData(FEATURE_ID_ROLE, feat.id)
            coord_item.setForeground(QBrush(QColor("#2563eb")))
            coord_item.setToolTip("Centrar el mapa en este punto")
            self.table.setItem(r, 1, coord_item)
            btn = QPushButton("Eliminar")
            btn.clicked.connect(lambda _checked=False, fid=feat.id: self._on_remove_feature(fid))
            self.table.setCellWidget(r, 2, btn)
        self.act_retry.setEnabled(self.sync.has_pending_changes)
        self.sync.is_consistent()

    # --- Popup ---
    def _position_popup(self):
        if not self.popup_ctl.is_open:
            return
        x, y = map_to_scene(self.popup_ctl.anchor)
        pt = self.canvas.mapFromScene(QPointF(x, y))
        self.popup.adjustSize()
        # Anclado por el centro inferior, justo encima del punto
        self.popup.move(pt.x() - self.popup.width() // 2, pt.y() - self.popup.height() - 10)
        self.popup.raise_()

    def _sync_popup(self):
        if self.popup_ctl.is_open:
            if self.popup.le_name.text() != self.popup_ctl.name:
                self.popup.le_name.setText(self.popup_ctl.name)
            self.popup.btn_save.setEnabled(self.popup_ctl.can_save)
            self.popup.show()
            self._position_popup()
            self.popup.le_name.setFocus()
        else:
            self.popup.hide()
            self.popup.clear_error()
            self.popup.le_name.clear()

    def _on_map_clicked(self, x: float, y: float, inside_popup: bool):
        if self.popup_ctl.handle_click((x, y), inside_popup):
            self.popup.clear_error()
            self._sync_popup()

    def _on_name_edited(self, text: str):
        self.popup_ctl.set_name(text)
        self.popup.btn_save.setEnabled(self.popup_ctl.can_save)
        self.popup.clear_error()

    def _on_save_feature(self):
        try:
            feature = self.popup_ctl.save()
        except InvalidFeatureError as e:
            # El popup sigue abierto con el texto escrito
            self.popup.show_error(str(e))
            self._position_popup()
            return
        except PersistenceError as e:
            self._sync_popup(); self._refresh_list()
            self._report_persistence_error(e)
            return
        self._sync_popup(); self._refresh_list()
        self.statusBar().showMessage(f"Punto '{feature.name}' guardado.", 3000)

    def _on_dismiss_popup(self):
        self.popup_ctl.dismiss()
        self._sync_popup()

    # --- Acciones de la lista ---
    def _on_cell_clicked(self, row, col):
        if col != 1: return
        item = self.table.item(row, col)
        if item is None: return
        self._on_center_feature(item.data(FEATURE_ID_ROLE))

    def _on_center_feature(self, feature_id):
        try:
            self.sync.center_on(feature_id)
        except NotFoundError as e:
            QMessageBox.warning(self, "Punto no encontrado", str(e))
            self._refresh_list()
            return
        self._position_popup()

    def _on_remove_feature(self, feature_id):
        try:
            self.sync.remove(feature_id)
        except NotFoundError as e:
            QMessageBox.warning(self, "Punto no encontrado", str(e))
        except PersistenceError as e:
            self._report_persistence_error(e)
        self._refresh_list()

    def _report_persistence_error(self, error):
        self.act_retry.setEnabled(True)
        QMessageBox.warning(
            self, "Error al guardar",
            f"{error}\n\nEl cambio se ve en el mapa pero puede perderse al cerrar. "
            "Use 'Reintentar guardado' en la barra de herramientas.")

    def _on_retry_save(self):
        try:
            self.sync.retry_save()
        except PersistenceError as e:
            QMessageBox.warning(self, "Error al guardar", str(e))
        else:
            self.statusBar().showMessage("Puntos guardados.", 3000)
        self.act_retry.setEnabled(self.sync.has_pending_changes)

    # --- Exportar / configuración ---
    def _on_export(self, extension: str):
        features = self.sync.list()
        if not features:
            QMessageBox.warning(self, "Nada para Exportar", "No hay puntos para exportar."); return
        filters = "KML (*.kml)" if extension == ".kml" else "KMZ (*.kmz)"
        path, _ = QFileDialog.getSaveFileName(self, "Exportar puntos", f"puntos{extension}", filters)
        if not path: return
        if not path.lower().endswith(extension): path += extension
        try:
            if extension == ".kml": KMLExporter.export(features, path, self.settings.crs)
            else: KMZExporter.export(features, path, self.settings.crs)
        except (ValueError, RuntimeError) as e:
            QMessageBox.critical(self, "Error de Exportación", f"Error al exportar a '{extension}':\n{e}"); return
        QMessageBox.information(self, "Éxito", f"Archivo guardado en:\n{path}")

    def _on_settings(self):
        dlg = ConfigDialog(self.settings, self)
        if dlg.exec() != QDialog.Accepted: return
        values = dlg.get_values()
        for key, value in values.items(): setattr(self.settings, key, value)
        save_settings(self.qsettings, self.settings)
        self.surface.set_style(self.settings.marker_radius, self.settings.marker_color)
        self._apply_theme()
        self._refresh_list()

    def closeEvent(self, event):
        if self.sync.has_pending_changes:
            try:
                self.sync.retry_save()
            except PersistenceError as e:
                answer = QMessageBox.question(
                    self, "Cambios sin guardar",
                    f"{e}\n\n¿Salir de todos modos? Los últimos cambios se perderán.",
                    QMessageBox.Yes | QMessageBox.No, QMessageBox.No)
                if answer != QMessageBox.Yes:
                    event.ignore(); return
        super().closeEvent(event)


def main():
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    app = QApplication(sys.argv)
    win = MainWindow()
    if not win.load_features():
        return 1
    win.resize(1200, 800)
    win.show()
    return app.exec()


if __name__ == "__main__":
    sys.exit(main())
