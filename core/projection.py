# core/projection.py
from pyproj import CRS, Transformer

GEOGRAPHIC_CRS = "EPSG:4326"

# Metros por píxel en el nivel de zoom 0 de web mercator (tiles de 256 px)
ZOOM0_RESOLUTION = 156543.03392804097


class CoordinateProvider:
    """
    Límites de la proyección de trabajo y conversión entre coordenadas
    proyectadas y geográficas (lon, lat).
    """

    def __init__(self, crs: str = "EPSG:3857"):
        self.crs = CRS.from_user_input(crs)
        # always_xy: siempre (lon, lat) / (x, y), sin importar el orden de ejes del CRS
        self._to_geo = Transformer.from_crs(self.crs, GEOGRAPHIC_CRS, always_xy=True)
        self._from_geo = Transformer.from_crs(GEOGRAPHIC_CRS, self.crs, always_xy=True)

    def bounds(self) -> tuple[float, float, float, float]:
        """(minx, miny, maxx, maxy) del área de uso del CRS, en unidades proyectadas."""
        area = self.crs.area_of_use
        if area is None:
            raise ValueError(f"El CRS {self.crs.to_string()} no define área de uso.")
        return self._from_geo.transform_bounds(area.west, area.south, area.east, area.north)

    def view_extent(self) -> tuple[float, float, float, float]:
        # Se duplica el rango X hacia cada lado para poder desplazarse más allá del antimeridiano
        minx, miny, maxx, maxy = self.bounds()
        return minx + minx, miny, maxx + maxx, maxy

    def to_lonlat(self, coordinate) -> tuple[float, float]:
        return self._to_geo.transform(coordinate[0], coordinate[1])

    def from_lonlat(self, lon: float, lat: float) -> tuple[float, float]:
        return self._from_geo.transform(lon, lat)

    @staticmethod
    def resolution(zoom: float) -> float:
        return ZOOM0_RESOLUTION / (2 ** zoom)
