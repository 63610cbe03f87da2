# exporters/kmz_exporter.py
import logging
import zipfile

from pyproj import ProjError

# Reuses the shared KML building logic
from exporters.kml_exporter import KMLExporter

log = logging.getLogger(__name__)


class KMZExporter:
    @staticmethod
    def _generate_kml_string(features, crs: str) -> str:
        # ProjError can be raised by _build_kml_root_element
        kml_root = KMLExporter._build_kml_root_element(features, crs)
        return KMLExporter.to_string(kml_root)

    @staticmethod
    def export(features, filename: str, crs: str = "EPSG:3857"):
        if not features:
            raise ValueError("No hay puntos para exportar.")

        if not filename.lower().endswith(".kmz"):
            raise ValueError("El nombre de archivo debe terminar en .kmz")

        try:
            kml_content_bytes = KMZExporter._generate_kml_string(features, crs).encode('utf-8')

            with zipfile.ZipFile(filename, 'w', zipfile.ZIP_DEFLATED) as kmz_file:
                kmz_file.writestr('doc.kml', kml_content_bytes)

        except ProjError as pe:
            raise RuntimeError(f"Error al generar contenido KML para KMZ: {pe}")
        except (OSError, zipfile.BadZipFile) as e:
            raise RuntimeError(f"Error al crear el archivo KMZ '{filename}': {e}")
        log.info("Exportados %d puntos a %s", len(features), filename)
