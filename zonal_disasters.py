# !/usr/bin/python
"""
Zonal stats and disaster pipeline:
---------------------------------

- Coverage-weighted daily raster means per administrative region
- EM-DAT disaster events matched to the regions they fell in, counted per
  region

Both are written to one Excel workbook plus parquet tables.

"""
import logging

import pandas as pd

from src.datasources import emdat, raster
from src.datasources.boundaries import load_regions
from src.utils.errors import skipped_table
from src.utils.output_utils import write_excel_report, write_output_stats
from src.utils.region_match import (
    DisasterRegionMatcher,
    count_by_region,
    count_by_region_and,
)
from src.utils.zonal_stats import ZonalAggregator, pivot_wider

logger = logging.getLogger(__name__)


def join_to_regions(regions, table, on="region_id", fill_value=None):
    """
    Left join a per-region table onto the region polygons.

    Args:
        regions (geopandas.GeoDataFrame): Region polygons.
        table (pandas.DataFrame): One row per region, keyed by `on`.
        fill_value: Value for regions missing from `table`. None leaves NaN.

    Returns:
        geopandas.GeoDataFrame: Regions with the table's columns added.
    """
    joined = regions.merge(table, on=on, how="left")
    if fill_value is not None:
        added = [c for c in table.columns if c != on]
        joined[added] = joined[added].fillna(fill_value)
    return joined


class ZonalDisasters:
    def __init__(self, configuration, folder, errors):
        self.configuration = configuration
        self.folder = folder
        self.errors = errors
        self.regions = None
        self.dataset_data = {}

    def get_regions(self):
        if self.regions is None:
            cfg = self.configuration["boundaries"]
            self.regions = load_regions(
                cfg["file"],
                id_column=cfg["id_column"],
                name_column=cfg["name_column"],
                crs=cfg.get("crs"),
            )
        return self.regions

    def get_zonal_stats(self, da=None):
        cfg = self.configuration["raster"]
        regions = self.get_regions()

        if da is None and cfg.get("daily_files"):
            da = raster.open_daily_geotiffs(
                cfg["daily_files"],
                layer_dim=cfg.get("layer_dimension", "time"),
            )
        elif da is None:
            da = raster.open_netcdf(
                cfg["file"], cfg["variable"], crs=cfg.get("crs", 4326)
            )
        if regions.crs is not None and not regions.crs.equals(
            da.rio.crs, ignore_axis_order=True
        ):
            logger.info(f"Reprojecting raster to {regions.crs}")
            da = raster.reproject(da, regions.crs)
        da = raster.crop_to_polygons(
            da, regions, buffer=cfg.get("crop_buffer", 0.0)
        )

        extracts = raster.cell_extracts(
            da,
            regions,
            id_column="region_id",
            layer_dim=cfg.get("layer_dimension", "time"),
        )
        aggregator = ZonalAggregator.for_units(cfg.get("unit_conversion"))
        result = aggregator.aggregate(extracts)
        if result.stats.empty:
            self.errors.add("No zonal statistics could be computed")

        stats = result.stats.rename(columns={"polygon_id": "region_id"})
        return stats, result.skipped

    def get_disaster_matches(self, events=None, geocoded=None):
        cfg = self.configuration["disasters"]
        regions = self.get_regions()

        if events is None:
            events = emdat.load_emdat(cfg["emdat_file"])
        if geocoded is None:
            geocoded = emdat.load_geocoded(cfg["geocoded_file"])
        events = emdat.filter_events(
            events,
            iso3=cfg.get("countries"),
            years=cfg.get("years"),
            subgroups=cfg.get("subgroups"),
        )
        located = emdat.attach_coordinates(
            emdat.explode_locations(events), geocoded
        )

        result = DisasterRegionMatcher().match(located, regions)
        logger.info(f"Unlocated events: {result.unlocated_count}")

        counts = count_by_region(result.matches, regions)
        df_counts = pd.DataFrame(
            {"region_id": list(counts), "events": list(counts.values())}
        )
        count_by = cfg.get("count_by")
        if count_by:
            df_counts = df_counts.merge(
                count_by_region_and(
                    result.matches, events, regions, by=count_by
                ),
                on="region_id",
                how="left",
            )
        return result, df_counts

    def get_data(self):
        dataset_name = self.configuration["dataset_name"]
        regions = self.get_regions()
        labels = pd.DataFrame(regions[["region_id", "name"]])

        stats, zonal_skipped = self.get_zonal_stats()
        matches, df_counts = self.get_disaster_matches()

        df_wide = labels.merge(pivot_wider(stats, index="region_id"))
        df_counts = labels.merge(df_counts, on="region_id")
        df_skipped = skipped_table(zonal_skipped + matches.skipped)
        if len(df_skipped):
            logger.warning(f"{len(df_skipped)} items skipped, see report")

        write_output_stats(stats, f"{dataset_name} zonal stats", self.folder)
        write_output_stats(
            matches.matches, f"{dataset_name} matches", self.folder
        )
        report = write_excel_report(
            {
                "zonal_stats": df_wide,
                "disaster_counts": df_counts,
                "unlocated_events": matches.unlocated,
                "skipped": df_skipped,
            },
            dataset_name,
            self.folder,
        )

        self.dataset_data[dataset_name] = [
            join_to_regions(regions, df_wide.drop(columns="name")),
            join_to_regions(
                regions, df_counts.drop(columns="name"), fill_value=0
            ),
            report,
        ]
        return [{"name": dataset_name}]
