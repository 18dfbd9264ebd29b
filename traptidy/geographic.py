"""
Geographic Summaries of Trap Locations

Prepares the tidy observation table for spatial plots. Observations whose
lysate had no metadata, or whose trap has no usable coordinates, carry
missing latitude/longitude; they are dropped explicitly here before any map
is drawn.

Key Features:
- Coordinate quality filtering (missing, out-of-range and (0, 0) points)
- One row per trap with coordinates, habitat, sample count and richness
- Map extent with a configurable margin, clamped to valid lat/lon ranges

Coordinate Reference System: WGS84 decimal degrees (trap_lat, trap_long).

Example Usage:
    >>> from traptidy.geographic import trap_locations, get_map_extent
    >>> traps = trap_locations(tidy)
    >>> extent = get_map_extent(traps, buffer_degrees=0.5)
"""

from typing import Dict, List, Optional
import logging

import pandas as pd

from .richness import species_richness

logger = logging.getLogger(__name__)


def filter_by_coordinate_quality(
    df: pd.DataFrame,
    lat_col: str = 'trap_lat',
    lon_col: str = 'trap_long',
    exclude_zero_coords: bool = True,
) -> pd.DataFrame:
    """
    Drop rows whose coordinates cannot be placed on a map.

    Filtering Rules:
    1. Exclude rows with missing latitude or longitude
    2. Exclude rows outside [-90, 90] x [-180, 180]
    3. Exclude rows at (0, 0), a common placeholder

    Parameters
    ----------
    df : pd.DataFrame
        Table with numeric coordinate columns
    lat_col, lon_col : str
        Coordinate column names
    exclude_zero_coords : bool
        Exclude rows at coordinates (0, 0) (default: True)

    Returns
    -------
    pd.DataFrame
        Filtered copy of ``df``
    """
    n_initial = len(df)
    df_filtered = df.copy()
    filter_reasons: Dict[str, int] = {}

    # 1. Missing coordinates
    mask_missing = df_filtered[lat_col].isna() | df_filtered[lon_col].isna()
    filter_reasons['missing_coordinates'] = int(mask_missing.sum())
    df_filtered = df_filtered[~mask_missing]

    # 2. Out of range
    mask_range = ~(
        df_filtered[lat_col].between(-90, 90) & df_filtered[lon_col].between(-180, 180)
    )
    filter_reasons['out_of_range'] = int(mask_range.sum())
    df_filtered = df_filtered[~mask_range]

    # 3. (0, 0) placeholder
    if exclude_zero_coords:
        mask_zero = (df_filtered[lat_col] == 0) & (df_filtered[lon_col] == 0)
        filter_reasons['zero_coordinates'] = int(mask_zero.sum())
        df_filtered = df_filtered[~mask_zero]

    for reason, count in filter_reasons.items():
        if count:
            logger.info(f"Excluded {count} rows: {reason}")

    logger.info(
        f"Coordinate filtering: {len(df_filtered)}/{n_initial} rows retained"
    )
    return df_filtered


def trap_locations(
    tidy: pd.DataFrame,
    trap_column: str = 'trap_ID',
    lat_col: str = 'trap_lat',
    lon_col: str = 'trap_long',
    habitat_column: str = 'habitat',
    species_column: str = 'Species',
) -> pd.DataFrame:
    """
    Summarize observations per trap for mapping.

    Parameters
    ----------
    tidy : pd.DataFrame
        Tidy observations

    Returns
    -------
    pd.DataFrame
        One row per trap: trap column, coordinates, habitat, ``n_samples``
        (distinct lysates), ``total_reads`` and ``richness`` (distinct
        present species pooled over the trap's samples)
    """
    located = filter_by_coordinate_quality(tidy, lat_col=lat_col, lon_col=lon_col)
    located = located.dropna(subset=[trap_column])

    agg = {
        lat_col: 'first',
        lon_col: 'first',
        'lysate_ID': 'nunique',
        'reads': 'sum',
    }
    if habitat_column in located.columns:
        agg[habitat_column] = 'first'

    traps = (
        located.groupby(trap_column)
               .agg(agg)
               .rename(columns={'lysate_ID': 'n_samples', 'reads': 'total_reads'})
               .reset_index()
    )

    richness = species_richness(located, trap_column, species_column=species_column)
    traps = traps.merge(richness, on=trap_column, how='left')

    logger.info(f"Located {len(traps)} traps with coordinates")
    return traps


def get_map_extent(
    df: pd.DataFrame,
    buffer_degrees: float = 0.5,
    lat_col: str = 'trap_lat',
    lon_col: str = 'trap_long',
) -> Optional[List[float]]:
    """
    Bounding box of the points with a margin, clamped to valid ranges.

    Returns
    -------
    Optional[List[float]]
        [lon_min, lon_max, lat_min, lat_max], or None if no coordinates
    """
    d = df.dropna(subset=[lat_col, lon_col])
    if d.empty:
        return None

    lon_min = max(-180.0, float(d[lon_col].min()) - buffer_degrees)
    lon_max = min(180.0, float(d[lon_col].max()) + buffer_degrees)
    lat_min = max(-90.0, float(d[lat_col].min()) - buffer_degrees)
    lat_max = min(90.0, float(d[lat_col].max()) + buffer_degrees)
    return [lon_min, lon_max, lat_min, lat_max]
