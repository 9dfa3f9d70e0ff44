import logging

import geopandas as gpd

from src.datasources.raster import data_path
from src.utils.gen_utils import check_columns

logger = logging.getLogger(__name__)
DEFAULT_CRS = "EPSG:4326"


def load_regions(path, id_column, name_column, crs=None):
    """
    Load administrative boundaries as region polygons.

    Args:
        path (str or Path): Shapefile, GeoPackage or GeoJSON.
        id_column (str): Column holding the region code (e.g. GID_1).
        name_column (str): Column holding the region name (e.g. NAME_1).
        crs: Target CRS. Defaults to keeping the file's CRS.

    Returns:
        geopandas.GeoDataFrame: Columns region_id, name, geometry.
    """
    gdf = gpd.read_file(data_path(path))
    check_columns(gdf, [id_column, name_column])

    if gdf.crs is None:
        logger.warning(f"No CRS found in {path}, assuming {DEFAULT_CRS}")
        gdf = gdf.set_crs(DEFAULT_CRS)
    if crs is not None and gdf.crs != crs:
        logger.info(f"Reprojecting regions from {gdf.crs} to {crs}")
        gdf = gdf.to_crs(crs)

    regions = gdf[[id_column, name_column, "geometry"]].rename(
        columns={id_column: "region_id", name_column: "name"}
    )
    logger.info(f"Loaded {len(regions)} regions from {path}")
    return regions.reset_index(drop=True)
