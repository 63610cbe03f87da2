# exporters/kml_exporter.py
import logging
from xml.etree.ElementTree import Element, SubElement, tostring
from xml.dom import minidom
from pyproj import Transformer, ProjError

log = logging.getLogger(__name__)


class KMLExporter:
    @staticmethod
    def _build_kml_root_element(features, crs: str, document_name: str = "GeoMarcas") -> Element:
        """
        Builds the KML XML root Element from the feature list.
        Coordinates are transformed from `crs` to WGS84 lon/lat.
        Raises ProjError if the transformer cannot be created.
        """
        # This can raise ProjError, which will propagate upwards
        transformer = Transformer.from_crs(crs, "EPSG:4326", always_xy=True)

        kml_root = Element("kml", xmlns="http://www.opengis.net/kml/2.2")
        doc = SubElement(kml_root, "Document")
        SubElement(doc, "name").text = document_name

        for feat in features:
            x, y = feat.coordinate
            try:
                lon, lat = transformer.transform(x, y)
            except ProjError as pe:
                log.warning("Error de transformación para el feature %s ('%s'): %s. Se omitirá.",
                            feat.id, feat.name, pe)
                continue

            pm = SubElement(doc, "Placemark", id=feat.id)
            SubElement(pm, "name").text = feat.name
            SubElement(pm, "description").text = (
                f"ID: {feat.id}\n"
                f"X: {x:.2f}\n"
                f"Y: {y:.2f}\n"
                f"CRS: {crs}"
            )
            geom_elem = SubElement(pm, "Point")
            SubElement(geom_elem, "coordinates").text = f"{lon:.6f},{lat:.6f},0"

        return kml_root

    @staticmethod
    def to_string(kml_root: Element) -> str:
        xml_bytes = tostring(kml_root, encoding="utf-8", method="xml")
        return minidom.parseString(xml_bytes).toprettyxml(indent="  ")

    @staticmethod
    def export(features, filename: str, crs: str = "EPSG:3857"):
        if not features:
            raise ValueError("No hay puntos para exportar.")
        if not filename.lower().endswith(".kml"):
            raise ValueError("El nombre de archivo debe terminar en .kml")

        try:
            kml_root = KMLExporter._build_kml_root_element(features, crs)
            xml_str_pretty = KMLExporter.to_string(kml_root)

            with open(filename, "w", encoding="utf-8") as f:
                f.write(xml_str_pretty)

        except ProjError as e:
            raise RuntimeError(f"Error al preparar datos KML: {e}")
        except OSError as e:
            raise RuntimeError(f"Error al crear el archivo KML '{filename}': {e}")
        log.info("Exportados %d puntos a %s", len(features), filename)
