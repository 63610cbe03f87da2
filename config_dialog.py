from PySide6.QtWidgets import (
    QDialog, QVBoxLayout, QFormLayout,
    QCheckBox, QSpinBox, QDoubleSpinBox,
    QDialogButtonBox
)
from PySide6.QtCore import Qt

from core.config import MapSettings


class ConfigDialog(QDialog):
    def __init__(self, settings: MapSettings, parent=None):
        super().__init__(parent)
        self.setWindowTitle("Configuraciones")
        self._settings = settings
        self._build_ui()

    def _build_ui(self):
        layout = QVBoxLayout(self)

        form = QFormLayout()
        # Modo oscuro
        self.theme_checkbox = QCheckBox()
        self.theme_checkbox.setChecked(self._settings.dark_mode)
        form.addRow("Tema oscuro:", self.theme_checkbox)

        # Mostrar lon/lat en la lista en lugar de X/Y proyectadas
        self.lonlat_checkbox = QCheckBox()
        self.lonlat_checkbox.setChecked(self._settings.show_lonlat)
        form.addRow("Coordenadas geográficas:", self.lonlat_checkbox)

        # Precisión de decimales
        self.precision_spin = QSpinBox()
        self.precision_spin.setRange(0, 8)
        self.precision_spin.setValue(self._settings.precision)
        form.addRow("Decimales (precisión):", self.precision_spin)

        self.radius_spin = QDoubleSpinBox()
        self.radius_spin.setRange(2.0, 30.0)
        self.radius_spin.setSingleStep(1.0)
        self.radius_spin.setValue(self._settings.marker_radius)
        form.addRow("Radio del marcador (px):", self.radius_spin)

        layout.addLayout(form)

        # Botones Aceptar / Cancelar
        buttons = QDialogButtonBox(
            QDialogButtonBox.Ok | QDialogButtonBox.Cancel,
            Qt.Horizontal, self
        )
        buttons.accepted.connect(self.accept)
        buttons.rejected.connect(self.reject)
        layout.addWidget(buttons)

    def get_values(self):
        """
        Devuelve un dict con los valores ingresados,
        tras un exec() exitoso.
        """
        return {
            "dark_mode":     self.theme_checkbox.isChecked(),
            "show_lonlat":   self.lonlat_checkbox.isChecked(),
            "precision":     self.precision_spin.value(),
            "marker_radius": self.radius_spin.value(),
        }
