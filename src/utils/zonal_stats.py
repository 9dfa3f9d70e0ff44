"""
Coverage-weighted zonal statistics.

Cell extracts arrive as one row per (polygon, layer, raster cell) with the
fraction of the cell lying inside the polygon. Aggregation collapses them to
one value per (polygon, layer); the pivots move between that tall table and
the one-row-per-polygon table used for mapping.
"""
import logging
from dataclasses import dataclass, field

import pandas as pd

from src.utils.errors import AggregationError
from src.utils.gen_utils import check_columns

logger = logging.getLogger(__name__)

KEYS = ["polygon_id", "layer_id"]
EXTRACT_COLUMNS = KEYS + ["value", "coverage_fraction"]
STAT_COLUMNS = KEYS + ["value"]

# name -> (scale, offset), applied as value * scale + offset
UNIT_CONVERSIONS = {
    "identity": (1.0, 0.0),
    "kelvin_to_celsius": (1.0, -273.15),
}


@dataclass
class AggregationResult:
    stats: pd.DataFrame
    skipped: list = field(default_factory=list)

    def raise_if_skipped(self):
        """Return the stats, or raise the first skipped group if any."""
        if self.skipped:
            raise self.skipped[0]
        return self.stats


class ZonalAggregator:
    def __init__(self, scale=1.0, offset=0.0):
        self.scale = float(scale)
        self.offset = float(offset)

    @classmethod
    def for_units(cls, name):
        """
        Build an aggregator from a named unit conversion.

        Args:
            name (str): Key of UNIT_CONVERSIONS, e.g. "kelvin_to_celsius".
              None means no conversion.

        Returns:
            ZonalAggregator: Aggregator applying that conversion.
        """
        if name is None:
            name = "identity"
        try:
            scale, offset = UNIT_CONVERSIONS[name]
        except KeyError:
            raise ValueError(
                f"Invalid unit conversion '{name}'. "
                f"Choose one of {sorted(UNIT_CONVERSIONS)}."
            )
        return cls(scale=scale, offset=offset)

    def aggregate(self, extracts):
        """
        Coverage-weighted mean of cell values per polygon and layer.

        Parameters
        ----------
        extracts : pandas.DataFrame
            CellExtract rows with columns polygon_id, layer_id, value and
            coverage_fraction. Cells with a NaN value (raster nodata) carry
            no weight.

        Returns
        -------
        AggregationResult
            `stats` holds one row per (polygon_id, layer_id) with a defined
            weighted mean, with the unit conversion applied. Groups whose
            total usable coverage is zero are left out of `stats` and
            reported as AggregationError instances in `skipped`.
        """
        check_columns(extracts, EXTRACT_COLUMNS)
        df = extracts[EXTRACT_COLUMNS].copy()

        coverage = df["coverage_fraction"].astype(float)
        if coverage.isna().any() or ((coverage < 0) | (coverage > 1)).any():
            raise ValueError("coverage_fraction must lie within [0, 1]")

        df["coverage_fraction"] = coverage
        df["weight"] = coverage.where(df["value"].notna(), 0.0)
        df["weighted"] = (df["value"] * df["weight"]).fillna(0.0)

        grouped = (
            df.groupby(KEYS, sort=True, dropna=False)[
                ["weighted", "weight", "coverage_fraction"]
            ]
            .sum()
            .reset_index()
        )

        degenerate = grouped["weight"] <= 0
        skipped = []
        for row in grouped[degenerate].itertuples(index=False):
            if row.coverage_fraction > 0:
                reason = "every covering cell is nodata"
            else:
                reason = "total coverage fraction is zero"
            err = AggregationError(row.polygon_id, row.layer_id, reason)
            logger.warning(str(err))
            skipped.append(err)

        valid = grouped[~degenerate]
        stats = valid[KEYS].copy()
        stats["value"] = (
            valid["weighted"] / valid["weight"]
        ) * self.scale + self.offset
        stats = stats.reset_index(drop=True)

        logger.info(
            f"Aggregated {len(df)} cell extracts into {len(stats)} zonal "
            f"statistics, {len(skipped)} groups skipped"
        )
        return AggregationResult(stats=stats, skipped=skipped)


def pivot_wider(stats, index="polygon_id", columns="layer_id", values="value"):
    """One row per polygon, one column per layer."""
    check_columns(stats, [index, columns, values])
    wide = stats.pivot(index=index, columns=columns, values=values)
    wide.columns.name = None
    return wide.reset_index()


def pivot_longer(
    wide, id_column="polygon_id", var_name="layer_id", value_name="value"
):
    """
    Inverse of pivot_wider.

    Every column other than `id_column` is read as a layer. Polygon/layer
    pairs that are empty in the wide table are dropped rather than kept as
    NaN rows.
    """
    check_columns(wide, [id_column])
    long = wide.melt(
        id_vars=[id_column], var_name=var_name, value_name=value_name
    )
    long = long.dropna(subset=[value_name])
    return long.sort_values([id_column, var_name]).reset_index(drop=True)
