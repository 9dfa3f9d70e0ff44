import logging
import os
from pathlib import Path

import geopandas as gpd
import numpy as np
import rioxarray as rxr
import shapely
import xarray as xr
from dotenv import load_dotenv

from src.utils import date_utils
from src.utils.zonal_stats import EXTRACT_COLUMNS

load_dotenv()
logger = logging.getLogger(__name__)

DATA_DIR = Path(os.getenv("GIS_DATA_DIR", "data"))
SPATIAL_DIMS = [("lon", "lat"), ("longitude", "latitude"), ("x", "y")]


def data_path(path):
    path = Path(path)
    return path if path.is_absolute() else DATA_DIR / path


def spatial_dims(da):
    for x_dim, y_dim in SPATIAL_DIMS:
        if x_dim in da.dims and y_dim in da.dims:
            return x_dim, y_dim
    raise ValueError(f"No spatial dimensions found in {da.dims}")


def open_netcdf(path, variable, crs=4326, chunks=None):
    """
    Open one variable of a netCDF file as a georeferenced DataArray.

    Parameters
    ----------
    path : str or Path
        File to open, relative paths resolve against GIS_DATA_DIR.
    variable : str
        Data variable to return.
    crs : int or str
        CRS written to the array when the file does not declare one.
    chunks : dict, optional
        Dask chunks passed to xarray.

    Returns
    -------
    xarray.DataArray
    """
    ds = xr.open_dataset(data_path(path), chunks=chunks)
    da = ds[variable]
    x_dim, y_dim = spatial_dims(da)
    da = da.rio.set_spatial_dims(x_dim=x_dim, y_dim=y_dim)
    if da.rio.crs is None:
        logger.warning(f"No CRS in {path}, assuming {crs}")
        da = da.rio.write_crs(crs)
    return da


def open_geotiff(path, band=1, chunks=None):
    da = rxr.open_rasterio(data_path(path), chunks=chunks)
    return da.sel({"band": band}, drop=True)


def open_daily_geotiffs(paths, layer_dim="time", band=1):
    """Stack single-day GeoTIFFs along time, dated from their file names."""
    das = []
    for path in paths:
        da = open_geotiff(path, band=band)
        da = da.expand_dims({layer_dim: [date_utils.extract_date(str(path))]})
        das.append(da)
    return xr.concat(das, dim=layer_dim).sortby(layer_dim)


def reproject(da, crs):
    return da.rio.reproject(crs)


def crop_to_polygons(da, polygons, buffer=0.0):
    minx, miny, maxx, maxy = polygons.total_bounds
    return da.rio.clip_box(
        minx=minx - buffer,
        miny=miny - buffer,
        maxx=maxx + buffer,
        maxy=maxy + buffer,
        crs=polygons.crs,
    )


def cell_boxes(xs, ys, crs=None):
    """
    Footprints of the raster cells centred on the given coordinates.

    Args:
        xs (array-like): Cell centre x coordinates.
        ys (array-like): Cell centre y coordinates.
        crs: CRS of the returned GeoDataFrame.

    Returns:
        geopandas.GeoDataFrame: One box per cell with its centre in cell_x
        and cell_y.
    """
    xs = np.asarray(xs)
    ys = np.asarray(ys)
    if len(xs) < 2 or len(ys) < 2:
        raise ValueError(
            "At least two cells per axis are needed to infer the cell size"
        )
    half_x = float(np.abs(np.diff(xs)).mean()) / 2
    half_y = float(np.abs(np.diff(ys)).mean()) / 2

    grid_x, grid_y = np.meshgrid(xs, ys)
    grid_x = grid_x.ravel()
    grid_y = grid_y.ravel()
    geoms = shapely.box(
        grid_x - half_x, grid_y - half_y, grid_x + half_x, grid_y + half_y
    )
    return gpd.GeoDataFrame(
        {"cell_x": grid_x, "cell_y": grid_y}, geometry=geoms, crs=crs
    )


def cell_extracts(da, polygons, id_column, layer_dim="time"):
    """
    Cell values and coverage fractions for every polygon and layer.

    The raster and the polygons must share a CRS. A raster without
    `layer_dim` is read as a single layer.

    Parameters
    ----------
    da : xarray.DataArray
        Raster with spatial dims and, optionally, `layer_dim`.
    polygons : geopandas.GeoDataFrame
        Zones to extract into.
    id_column : str
        Column of `polygons` used as polygon_id.
    layer_dim : str
        Name of the layer (time) dimension.

    Returns
    -------
    pandas.DataFrame
        CellExtract rows: polygon_id, layer_id, value, coverage_fraction.
    """
    x_dim, y_dim = spatial_dims(da)
    if layer_dim not in da.dims:
        da = da.expand_dims({layer_dim: ["layer_1"]})
    extra = set(da.dims) - {layer_dim, x_dim, y_dim}
    if extra:
        raise ValueError(f"Unexpected raster dimensions {sorted(extra)}")
    da = da.assign_coords(
        {layer_dim: date_utils.layer_ids(da[layer_dim].values)}
    )

    cells = cell_boxes(da[x_dim].values, da[y_dim].values, crs=polygons.crs)
    zones = (
        polygons[[id_column, "geometry"]]
        .rename(columns={id_column: "polygon_id"})
        .reset_index(drop=True)
    )

    pairs = gpd.sjoin(cells, zones, how="inner", predicate="intersects")
    pairs = pairs.reset_index(drop=True)
    zone_geoms = zones.geometry.loc[pairs["index_right"]].reset_index(
        drop=True
    )
    pairs["coverage_fraction"] = (
        pairs.geometry.intersection(zone_geoms).area / pairs.geometry.area
    ).clip(upper=1.0)
    # cells that only touch a polygon edge
    pairs = pairs[pairs["coverage_fraction"] > 0]

    values = da.to_series().rename("value").reset_index()
    extracts = pairs[
        ["cell_x", "cell_y", "polygon_id", "coverage_fraction"]
    ].merge(values, left_on=["cell_x", "cell_y"], right_on=[x_dim, y_dim])
    extracts = extracts.rename(columns={layer_dim: "layer_id"})

    logger.info(
        f"Extracted {len(extracts)} cell values for "
        f"{extracts['polygon_id'].nunique()} of {len(zones)} polygons"
    )
    return extracts[EXTRACT_COLUMNS].reset_index(drop=True)
