# ---
# jupyter:
#   jupytext:
#     cell_metadata_filter: -all
#     custom_cell_magics: kql
#     text_representation:
#       extension: .py
#       format_name: percent
#       format_version: '1.3'
#       jupytext_version: 1.11.2
#   kernelspec:
#     display_name: zonal-disasters
#     language: python
#     name: python3
# ---

# %% [markdown]
# Walkthrough of the two halves of the pipeline on German admin 1 regions:
#
# 1. daily near-surface air temperature (netCDF, Kelvin) averaged into each
# region, weighting every raster cell by how much of it lies in the region.
# 2. EM-DAT climate disasters geocoded from their free-text locations and
# counted per region.
#
# Inputs live under `GIS_DATA_DIR` (see `config/project_configuration.yaml`).
# The geocoder cache was produced beforehand from the `geocode_query` column
# of `explode_locations`.

# %%
# %matplotlib inline
# %load_ext autoreload
# %autoreload 2

# %%
import matplotlib.pyplot as plt

from src.datasources import emdat, raster
from src.datasources.boundaries import load_regions
from src.utils.region_match import DisasterRegionMatcher, count_by_region
from src.utils.zonal_stats import ZonalAggregator, pivot_wider
from zonal_disasters import join_to_regions

# %%
gdf_adm1 = load_regions(
    "gadm41_DEU_shp/gadm41_DEU_1.shp", id_column="GID_1", name_column="NAME_1"
)
gdf_adm1.plot(edgecolor="white")

# %%
da_tas = raster.open_netcdf("tas_day_EUR-11_2023-08.nc", variable="tas")
da_tas

# %% [markdown]
# The raster covers Europe. Reproject onto the boundaries' CRS (a no-op here)
# and crop to Germany before extracting, otherwise every cell of the
# continent is turned into a polygon.

# %%
da_tas = raster.reproject(da_tas, gdf_adm1.crs)
da_tas = raster.crop_to_polygons(da_tas, gdf_adm1, buffer=0.5)
da_tas.isel(time=0).plot()

# %%
df_extracts = raster.cell_extracts(da_tas, gdf_adm1, id_column="region_id")
df_extracts.head()

# %% [markdown]
# Border cells only partly inside a region have `coverage_fraction` < 1 and
# count for less in the mean. The Kelvin to Celsius offset is applied after
# averaging.

# %%
result = ZonalAggregator.for_units("kelvin_to_celsius").aggregate(df_extracts)
result.skipped

# %%
df_wide = pivot_wider(result.stats.rename(columns={"polygon_id": "region_id"}),
                      index="region_id")
gdf_tas = join_to_regions(gdf_adm1, df_wide)
gdf_tas.plot(column="2023-08-15", legend=True, cmap="RdYlBu_r")
plt.title("Mean temperature 2023-08-15 (°C)")

# %%
df_events = emdat.filter_events(
    emdat.load_emdat("public_emdat_2000_2023.xlsx"),
    iso3=["DEU"],
    subgroups=["Hydrological", "Meteorological", "Climatological"],
)
df_locations = emdat.explode_locations(df_events)
df_locations[["event_id", "location_text", "geocode_query"]].head(10)

# %%
df_located = emdat.attach_coordinates(
    df_locations, emdat.load_geocoded("geocoded_locations.csv")
)
matches = DisasterRegionMatcher().match(df_located, gdf_adm1)
print(f"unlocated events: {matches.unlocated_count}")

# %% [markdown]
# An event listed as "Bayern, Oberbayern" geocodes twice inside Bayern; after
# deduplication it counts once for Bayern.

# %%
counts = count_by_region(matches.matches, gdf_adm1)
gdf_adm1["events"] = gdf_adm1["region_id"].map(counts)
gdf_adm1.plot(column="events", legend=True, cmap="Reds")
plt.title("Climate disasters 2000-2023")
