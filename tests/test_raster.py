"""
Raster to cell extract normalisation.
"""

import geopandas as gpd
import pytest
import rioxarray  # noqa: F401
from shapely.geometry import box

from src.datasources import raster
from src.utils.zonal_stats import ZonalAggregator


@pytest.fixture
def zones():
    return gpd.GeoDataFrame(
        {"GID_1": ["A", "B"]},
        geometry=[box(0.0, 1.0, 1.5, 2.0), box(1.0, 0.0, 2.0, 1.0)],
    )


class TestCellBoxes:

    def test_boxes_centred_on_coordinates(self):
        cells = raster.cell_boxes([0.5, 1.5], [1.5, 0.5])
        assert len(cells) == 4
        first = cells.iloc[0]
        assert (first.cell_x, first.cell_y) == (0.5, 1.5)
        assert first.geometry.bounds == (0.0, 1.0, 1.0, 2.0)
        assert cells.geometry.area.tolist() == [1.0] * 4

    def test_single_cell_axis_rejected(self):
        with pytest.raises(ValueError, match="two cells"):
            raster.cell_boxes([0.5], [0.5, 1.5])


class TestCellExtracts:

    def test_coverage_fractions(self, grid_2x2, zones):
        df = raster.cell_extracts(grid_2x2, zones, id_column="GID_1")
        first_day = df[df.layer_id == "2023-08-01"]
        a = first_day[first_day.polygon_id == "A"].set_index("value")
        assert a["coverage_fraction"].to_dict() == {300.0: 1.0, 280.0: 0.5}
        b = first_day[first_day.polygon_id == "B"]
        assert b[["value", "coverage_fraction"]].values.tolist() == [
            [270.0, 1.0]
        ]

    def test_one_row_per_cell_polygon_and_layer(self, grid_2x2, zones):
        df = raster.cell_extracts(grid_2x2, zones, id_column="GID_1")
        assert list(df.columns) == [
            "polygon_id",
            "layer_id",
            "value",
            "coverage_fraction",
        ]
        assert len(df) == 6
        assert sorted(df.layer_id.unique()) == ["2023-08-01", "2023-08-02"]

    def test_extracts_feed_the_aggregator(self, grid_2x2, zones):
        df = raster.cell_extracts(grid_2x2, zones, id_column="GID_1")
        stats = ZonalAggregator.for_units("kelvin_to_celsius").aggregate(df)
        values = stats.stats.set_index(["polygon_id", "layer_id"])["value"]
        assert values[("A", "2023-08-01")] == pytest.approx(20.1833333)
        assert values[("B", "2023-08-02")] == pytest.approx(-2.15)

    def test_single_layer_raster(self, grid_2x2, zones):
        da = grid_2x2.isel(time=0, drop=True)
        df = raster.cell_extracts(da, zones, id_column="GID_1")
        assert df.layer_id.unique().tolist() == ["layer_1"]
        assert len(df) == 3

    def test_extra_dimension_rejected(self, grid_2x2, zones):
        da = grid_2x2.expand_dims(band=[1, 2])
        with pytest.raises(ValueError, match="band"):
            raster.cell_extracts(da, zones, id_column="GID_1")

    def test_polygon_outside_grid_has_no_extracts(self, grid_2x2):
        far = gpd.GeoDataFrame(
            {"GID_1": ["Z"]}, geometry=[box(10, 10, 11, 11)]
        )
        df = raster.cell_extracts(grid_2x2, far, id_column="GID_1")
        assert df.empty


def test_spatial_dims_lat_lon(grid_2x2):
    da = grid_2x2.rename({"x": "lon", "y": "lat"})
    assert raster.spatial_dims(da) == ("lon", "lat")


def test_spatial_dims_missing(grid_2x2):
    with pytest.raises(ValueError):
        raster.spatial_dims(grid_2x2.rename({"x": "east"}))


def test_data_path_relative_to_data_dir(tmp_path):
    assert raster.data_path("a.nc") == raster.DATA_DIR / "a.nc"
    assert raster.data_path(tmp_path / "a.nc") == tmp_path / "a.nc"


def test_daily_geotiffs_stacked_by_file_date(grid_2x2, tmp_path):
    paths = []
    for day in [1, 0]:
        path = tmp_path / f"tas_2023080{day + 1}.tif"
        da_day = grid_2x2.isel(time=day, drop=True).rio.write_crs(4326)
        da_day.rio.to_raster(path)
        paths.append(path)

    da = raster.open_daily_geotiffs(paths)
    assert da.dims == ("time", "y", "x")
    zone = gpd.GeoDataFrame({"GID_1": ["B"]}, geometry=[box(1, 0, 2, 1)])
    df = raster.cell_extracts(da, zone, id_column="GID_1")
    assert df.sort_values("layer_id")["value"].tolist() == [270.0, 271.0]
