"""
Matching geocoded disaster events to administrative regions.

Containment itself is a geopandas spatial join; this module decides which
events and regions take part, removes duplicate (event, region) pairs and
tallies events per region.
"""
import logging
from dataclasses import dataclass, field

import geopandas as gpd
import pandas as pd
from shapely.validation import explain_validity

from src.utils.errors import MatchError
from src.utils.gen_utils import check_columns

logger = logging.getLogger(__name__)

EVENTS_CRS = "EPSG:4326"
MATCH_COLUMNS = ["event_id", "region_id"]


@dataclass
class MatchResult:
    matches: pd.DataFrame
    unlocated: pd.DataFrame
    skipped: list = field(default_factory=list)

    @property
    def unlocated_count(self):
        return int(self.unlocated["event_id"].nunique())


class DisasterRegionMatcher:
    def __init__(self, predicate="within"):
        self.predicate = predicate

    def match(self, events, regions):
        """
        Match events to every region containing their coordinates.

        Args:
            events (pandas.DataFrame): DisasterEvent rows. Needs event_id,
              lat and lng; rows with a missing coordinate are left out.
            regions (geopandas.GeoDataFrame): RegionPolygon rows with
              region_id and geometry.

        Returns:
            MatchResult: Deduplicated (event_id, region_id) pairs, the
              rows of events with no located place at all, and one
              MatchError per region whose geometry could not be used.
        """
        check_columns(events, ["event_id", "lat", "lng"])
        check_columns(regions, ["region_id", "geometry"])

        has_coords = events["lat"].notna() & events["lng"].notna()
        located = events[has_coords]
        # an event with at least one located place still takes part
        unlocated = events[
            ~has_coords & ~events["event_id"].isin(located["event_id"])
        ].reset_index(drop=True)
        n_dropped = int((~has_coords).sum())
        if n_dropped:
            logger.info(
                f"{n_dropped} event rows have no coordinates and are "
                f"left out of matching"
            )

        usable, skipped = self.usable_regions(regions)
        pairs = self.containing_regions(located, usable)
        matches = self.deduplicate(pairs)

        logger.info(
            f"Matched {matches['event_id'].nunique()} events to "
            f"{matches['region_id'].nunique()} regions "
            f"({len(matches)} event/region pairs)"
        )
        return MatchResult(
            matches=matches, unlocated=unlocated, skipped=skipped
        )

    def usable_regions(self, regions):
        """Split regions into those with usable geometry and MatchErrors."""
        geoms = gpd.GeoSeries(list(regions["geometry"]), index=regions.index)
        missing = geoms.isna()
        empty = ~missing & geoms.is_empty
        invalid = ~missing & ~empty & ~geoms.is_valid

        skipped = []
        for idx in regions.index[missing | empty | invalid]:
            if missing[idx]:
                reason = "missing geometry"
            elif empty[idx]:
                reason = "empty geometry"
            else:
                reason = f"invalid geometry ({explain_validity(geoms[idx])})"
            err = MatchError(regions.at[idx, "region_id"], reason)
            logger.warning(str(err))
            skipped.append(err)

        keep = ~(missing | empty | invalid)
        usable = gpd.GeoDataFrame(
            regions.loc[keep, ["region_id"]].reset_index(drop=True),
            geometry=list(geoms[keep]),
            crs=getattr(regions, "crs", None) or EVENTS_CRS,
        )
        return usable, skipped

    def containing_regions(self, events, regions):
        """
        Every (event_id, region_id) pair whose point lies in the region.

        Nested administrative levels are all kept: a point inside both a
        state and one of its districts yields two pairs.
        """
        if events.empty or regions.empty:
            return pd.DataFrame(columns=MATCH_COLUMNS)

        points = gpd.GeoDataFrame(
            events[["event_id"]].reset_index(drop=True),
            geometry=gpd.points_from_xy(events["lng"], events["lat"]),
            crs=EVENTS_CRS,
        )
        if points.crs != regions.crs:
            points = points.to_crs(regions.crs)

        joined = gpd.sjoin(
            points, regions, how="inner", predicate=self.predicate
        )
        return pd.DataFrame(joined[MATCH_COLUMNS]).reset_index(drop=True)

    @staticmethod
    def deduplicate(pairs):
        """Keep one row per (event_id, region_id)."""
        check_columns(pairs, MATCH_COLUMNS)
        deduped = pairs[MATCH_COLUMNS].drop_duplicates().reset_index(drop=True)
        dropped = len(pairs) - len(deduped)
        if dropped:
            logger.info(f"Dropped {dropped} duplicate event/region matches")
        return deduped


def count_by_region(matches, regions):
    """
    Number of distinct events per region.

    Every region_id in `regions` is a key of the result, with 0 for regions
    no event fell into.
    """
    check_columns(matches, MATCH_COLUMNS)
    check_columns(regions, ["region_id"])
    counts = matches["region_id"].value_counts()
    return {
        region_id: int(counts.get(region_id, 0))
        for region_id in regions["region_id"]
    }


def count_by_region_and(matches, events, regions, by="subgroup"):
    """
    Cross-tabulate matched events per region against an event attribute.

    Parameters
    ----------
    matches : pandas.DataFrame
        Deduplicated (event_id, region_id) pairs.
    events : pandas.DataFrame
        DisasterEvent rows holding the `by` column. Repeated event rows
        (one per geocoded place) must agree on it.
    regions : pandas.DataFrame
        Regions to report on; all appear in the output.
    by : str
        Event column to split counts by, e.g. "subgroup" or "year".

    Returns
    -------
    pandas.DataFrame
        One row per region_id, one count column per value of `by`.
    """
    check_columns(matches, MATCH_COLUMNS)
    check_columns(events, ["event_id", by])
    check_columns(regions, ["region_id"])

    attrs = events[["event_id", by]].drop_duplicates("event_id")
    tagged = matches.merge(attrs, on="event_id", how="left").dropna(
        subset=[by]
    )
    region_index = pd.Index(regions["region_id"].unique(), name="region_id")
    if tagged.empty:
        return pd.DataFrame({"region_id": region_index})

    table = pd.crosstab(tagged["region_id"], tagged[by])
    table = table.reindex(region_index, fill_value=0)
    table.columns.name = None
    return table.reset_index()
