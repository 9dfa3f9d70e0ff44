"""
EM-DAT disaster events.

Loads an EM-DAT export into the event table used for region matching,
splits the free-text Location field into one row per place and attaches
coordinates from a geocoder cache. Geocoding itself happens elsewhere; the
cache is a CSV with query, lat and lng columns.
"""
import logging
import re
from pathlib import Path

import numpy as np
import pandas as pd
from hdx.location.country import Country

from src.datasources.raster import data_path
from src.utils.gen_utils import check_columns

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = {
    "event_id": ("DisNo.", "Dis No", "DisNo"),
    "year": ("Start Year", "Year"),
    "subgroup": ("Disaster Subgroup",),
    "country": ("Country",),
    "location_text": ("Location",),
}
OPTIONAL_COLUMNS = {
    "iso3": ("ISO", "ISO3"),
    "disaster_type": ("Disaster Type",),
}


def _norm(s):
    return re.sub(r"[^a-z0-9]+", "", str(s).lower())


def find_column(df, *names, required=True):
    cols = list(df.columns)
    for n in names:
        if n in cols:
            return n
    norm_map = {_norm(c): c for c in cols}
    for n in names:
        if _norm(n) in norm_map:
            return norm_map[_norm(n)]
    if required:
        raise KeyError(
            f"Missing required column. Tried={names}. Available={cols}"
        )
    return None


def load_emdat(path):
    """
    Read an EM-DAT export (xlsx or csv) into the event table.

    Args:
        path (str or Path): Export file, relative paths resolve against
          GIS_DATA_DIR.

    Returns:
        pandas.DataFrame: event_id, year, subgroup, country, iso3,
        location_text and, when present, disaster_type.
    """
    path = data_path(path)
    if Path(path).suffix.lower() == ".csv":
        df = pd.read_csv(path)
    else:
        df = pd.read_excel(path, engine="openpyxl")
    df = df.rename(columns={c: str(c).strip() for c in df.columns})

    events = pd.DataFrame(
        {
            name: df[find_column(df, *aliases)]
            for name, aliases in REQUIRED_COLUMNS.items()
        }
    )
    for name, aliases in OPTIONAL_COLUMNS.items():
        col = find_column(df, *aliases, required=False)
        if col is not None:
            events[name] = df[col]

    events["event_id"] = events["event_id"].astype(str).str.strip()
    events["year"] = pd.to_numeric(events["year"], errors="coerce").astype(
        "Int64"
    )
    if "iso3" not in events.columns:
        events = add_iso3(events)

    logger.info(f"Loaded {len(events)} disaster events from {path}")
    return events


def add_iso3(events):
    """Fill iso3 from the country name with the HDX fuzzy country lookup."""
    lookup = {}
    for country in events["country"].dropna().unique():
        iso3, _ = Country.get_iso3_country_code_fuzzy(country)
        if iso3 is None:
            logger.warning(f"No ISO3 code found for country '{country}'")
        lookup[country] = iso3
    events = events.copy()
    events["iso3"] = events["country"].map(lookup)
    return events


def filter_events(events, iso3=None, years=None, subgroups=None):
    """
    Subset events by country, start year range and disaster subgroup.

    Args:
        events (pandas.DataFrame): Event table.
        iso3 (list of str, optional): Countries to keep.
        years (tuple of int, optional): Inclusive (first, last) start year.
        subgroups (list of str, optional): e.g. ["Hydrological"].

    Returns:
        pandas.DataFrame: Filtered copy.
    """
    keep = pd.Series(True, index=events.index)
    if iso3:
        keep &= events["iso3"].isin(iso3)
    if years:
        first, last = years
        in_range = events["year"].between(first, last)
        keep &= in_range.fillna(False).astype(bool)
    if subgroups:
        keep &= events["subgroup"].isin(subgroups)
    return events[keep].reset_index(drop=True)


def explode_locations(events):
    """
    One row per place named in location_text.

    EM-DAT lists every affected place of an event in one comma or semicolon
    separated field, mixing administrative levels. Each place becomes its own
    row with the event's id and a geocode_query of "place, country". Events
    without any place keep a single row with no query.
    """
    check_columns(events, ["event_id", "country", "location_text"])
    pieces = events["location_text"].fillna("").astype(str).str.split(
        r"[,;]", regex=True
    )
    exploded = events.assign(location=pieces).explode(
        "location", ignore_index=True
    )
    exploded["location"] = (
        exploded["location"].str.strip().replace("", np.nan)
    )

    n_places = exploded.groupby("event_id")["location"].transform("count")
    exploded = exploded[exploded["location"].notna() | (n_places == 0)]
    exploded = exploded.drop_duplicates(["event_id", "location"]).copy()
    exploded["geocode_query"] = (
        exploded["location"] + ", " + exploded["country"]
    )

    logger.info(
        f"Split {len(events)} events into {len(exploded)} event locations"
    )
    return exploded.reset_index(drop=True)


def load_geocoded(path):
    geocoded = pd.read_csv(data_path(path))
    check_columns(geocoded, ["query", "lat", "lng"])
    return geocoded


def attach_coordinates(events, geocoded):
    """
    Join geocoder results onto event locations by geocode_query.

    Queries the geocoder could not resolve, or that are missing from the
    cache, are left with NaN lat/lng. Locations without a query never pick
    up coordinates from blank cache rows.
    """
    check_columns(events, ["geocode_query"])
    check_columns(geocoded, ["query", "lat", "lng"])
    cache = (
        geocoded[["query", "lat", "lng"]]
        .dropna(subset=["query"])
        .drop_duplicates("query")
        .rename(columns={"query": "geocode_query"})
    )
    located = events.drop(columns=["lat", "lng"], errors="ignore").merge(
        cache, on="geocode_query", how="left"
    )
    n_missing = int(located["lat"].isna().sum())
    logger.info(
        f"{len(located) - n_missing} of {len(located)} event locations have "
        f"coordinates"
    )
    return located
