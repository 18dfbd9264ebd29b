"""
Descriptive Figures for Trap Surveys

Figure Types:
1. Trap Map
   - One point per trap, colored by habitat
   - Point size proportional to species richness at the trap
   - Land/coastline basemap when cartopy is installed

2. Richness by Habitat
   - Box plot of per-sample species richness for each habitat
   - Individual samples overlaid as points

3. Richness over Time
   - Mean per-sample richness per ISO week or month
   - One line per habitat

Design Notes:
- Color palette: colorblind-friendly seaborn palette, one color per habitat,
  stable across all figures of a run
- Output formats: PNG (300 DPI) and PDF/SVG (vector)
- Every function returns the written path, or None when there is too
  little data to draw (with a warning)

Example Usage:
    >>> from traptidy.visualization import plot_richness_by_habitat
    >>> plot_richness_by_habitat(per_sample, "figures/richness_by_habitat.png")
"""

from typing import Dict, List, Optional, Sequence, Tuple, Union
from pathlib import Path
import logging

import pandas as pd
import matplotlib.pyplot as plt
import seaborn as sns

from .geographic import get_map_extent

logger = logging.getLogger(__name__)


def get_habitat_colors(
    habitats: Sequence[str],
    palette: str = "colorblind",
) -> Dict[str, str]:
    """
    Assign a color to each habitat.

    Habitats are sorted before assignment so a given set of habitats gets
    the same colors in every figure.

    Returns
    -------
    Dict[str, str]
        Habitat -> hex color
    """
    names = sorted({str(h) for h in habitats if pd.notna(h)})
    if not names:
        return {}
    colors = sns.color_palette(palette, max(len(names), 10)).as_hex()
    return {h: colors[i] for i, h in enumerate(names)}


def _save_figure(fig, out: Path, dpi: int) -> Path:
    out.parent.mkdir(parents=True, exist_ok=True)
    if out.suffix.lower() == ".png":
        fig.savefig(out, dpi=dpi, bbox_inches="tight")
    else:
        fig.savefig(out, bbox_inches="tight")
    plt.close(fig)
    logger.info(f"Saved figure: {out}")
    return out


def _insufficient(what: str, n: int, needed: int, output_path: Union[str, Path]) -> None:
    logger.warning(
        f"Insufficient data for {what} (need at least {needed}, have {n}). "
        f"Skipping: {output_path}"
    )


def plot_trap_map(
    locations: pd.DataFrame,
    output_path: Union[str, Path],
    habitat_column: str = "habitat",
    latitude_col: str = "trap_lat",
    longitude_col: str = "trap_long",
    size_column: str = "richness",
    figsize: Tuple[float, float] = (8, 8),
    dpi: int = 300,
    buffer_degrees: float = 0.5,
    use_basemap: bool = True,
    palette: str = "colorblind",
    min_points: int = 1,
) -> Optional[Path]:
    """
    Map trap locations colored by habitat.

    Parameters
    ----------
    locations : pd.DataFrame
        One row per trap, e.g. from ``geographic.trap_locations``
    output_path : Union[str, Path]
        Path for output figure (PNG, PDF or SVG)
    size_column : str
        Column scaling the point size (default: 'richness')
    buffer_degrees : float
        Margin around the traps in degrees
    use_basemap : bool
        Draw land and coastlines with cartopy if it is installed

    Returns
    -------
    Optional[Path]
        Written figure path, or None if skipped
    """
    out = Path(output_path)

    for c in [latitude_col, longitude_col]:
        if c not in locations.columns:
            raise ValueError(f"Column '{c}' not found in dataframe")

    d = locations.dropna(subset=[latitude_col, longitude_col]).copy()
    if len(d) < min_points:
        _insufficient("trap map", len(d), min_points, out)
        return None

    # Scale point sizes: min 20, max 200, proportional to size column
    min_size, max_size = 20, 200
    if size_column in d.columns and d[size_column].max() > d[size_column].min():
        span = d[size_column].max() - d[size_column].min()
        d['_size'] = min_size + (d[size_column] - d[size_column].min()) / span * (max_size - min_size)
    else:
        d['_size'] = 60

    if habitat_column in d.columns:
        d[habitat_column] = d[habitat_column].fillna("Unknown").astype(str)
    else:
        d[habitat_column] = "Unknown"
    color_map = get_habitat_colors(d[habitat_column], palette)

    extent = get_map_extent(d, buffer_degrees, lat_col=latitude_col, lon_col=longitude_col)

    ccrs = None
    if use_basemap:
        try:
            import cartopy.crs as ccrs
            import cartopy.feature as cfeature
        except ImportError:
            logger.warning("Cartopy unavailable; drawing scatter without basemap.")
            ccrs = None

    fig = plt.figure(figsize=figsize)
    if ccrs is not None:
        ax = plt.axes(projection=ccrs.PlateCarree())
        ax.set_extent(extent, crs=ccrs.PlateCarree())
        ax.add_feature(cfeature.LAND, zorder=0, edgecolor="black", linewidth=0.2, facecolor="#f2f2f2")
        ax.add_feature(cfeature.OCEAN, zorder=0, facecolor="#d9edf7")
        ax.add_feature(cfeature.COASTLINE, linewidth=0.3)
        gl = ax.gridlines(draw_labels=True, linewidth=0.2, color="gray", alpha=0.5, linestyle='--')
        gl.top_labels = False
        gl.right_labels = False
        scatter_kwargs = {'transform': ccrs.PlateCarree()}
    else:
        ax = plt.gca()
        ax.set_xlabel("Longitude")
        ax.set_ylabel("Latitude")
        ax.set_xlim(extent[0], extent[1])
        ax.set_ylim(extent[2], extent[3])
        ax.grid(True, linestyle="--", linewidth=0.3, alpha=0.5)
        scatter_kwargs = {}

    for habitat, color in color_map.items():
        sub = d[d[habitat_column] == habitat]
        ax.scatter(
            sub[longitude_col], sub[latitude_col],
            s=sub['_size'], alpha=0.8, label=habitat,
            color=color, edgecolors="black", linewidths=0.3,
            **scatter_kwargs,
        )

    ax.set_title(f"Trap locations (n = {len(d)})")
    ax.legend(title="Habitat", loc="lower left", bbox_to_anchor=(1.02, 0.0), frameon=False)
    return _save_figure(fig, out, dpi)


def plot_richness_by_habitat(
    per_sample: pd.DataFrame,
    output_path: Union[str, Path],
    habitat_column: str = "habitat",
    richness_column: str = "richness",
    figsize: Tuple[float, float] = (10, 6),
    dpi: int = 300,
    palette: str = "colorblind",
    min_points: int = 2,
) -> Optional[Path]:
    """
    Box plot of per-sample species richness by habitat.

    Samples without a habitat are left out.

    Returns
    -------
    Optional[Path]
        Written figure path, or None if skipped
    """
    out = Path(output_path)

    for c in [habitat_column, richness_column]:
        if c not in per_sample.columns:
            raise ValueError(f"Column '{c}' not found in dataframe")

    d = per_sample.dropna(subset=[habitat_column, richness_column]).copy()
    if len(d) < min_points:
        _insufficient("richness by habitat", len(d), min_points, out)
        return None

    d[habitat_column] = d[habitat_column].astype(str)
    order = sorted(d[habitat_column].unique())
    color_map = get_habitat_colors(order, palette)

    fig, ax = plt.subplots(figsize=figsize)
    sns.boxplot(
        data=d, x=habitat_column, y=richness_column, hue=habitat_column,
        order=order, hue_order=order, palette=color_map, dodge=False,
        showfliers=False, ax=ax,
    )
    sns.stripplot(
        data=d, x=habitat_column, y=richness_column, order=order,
        color="black", size=3, alpha=0.6, jitter=0.2, ax=ax,
    )
    if ax.get_legend() is not None:
        ax.get_legend().remove()

    counts = d[habitat_column].value_counts()
    ax.set_xticks(range(len(order)))
    ax.set_xticklabels([f"{h}\n(n={counts[h]})" for h in order])
    ax.set_xlabel("Habitat")
    ax.set_ylabel("Species richness per sample")
    fig.tight_layout()
    return _save_figure(fig, out, dpi)


def plot_richness_over_time(
    per_sample: pd.DataFrame,
    output_path: Union[str, Path],
    period: str = "week",
    habitat_column: Optional[str] = "habitat",
    richness_column: str = "richness",
    figsize: Tuple[float, float] = (10, 5),
    dpi: int = 300,
    palette: str = "colorblind",
    min_points: int = 2,
) -> Optional[Path]:
    """
    Mean per-sample richness per collection week or month.

    Parameters
    ----------
    period : str
        'week' or 'month'
    habitat_column : Optional[str]
        Draw one line per habitat; None pools all samples

    Returns
    -------
    Optional[Path]
        Written figure path, or None if skipped
    """
    if period not in ["week", "month"]:
        raise ValueError("period must be 'week' or 'month'")

    out = Path(output_path)
    group_cols: List[str] = [period]
    if habitat_column is not None:
        group_cols.append(habitat_column)

    for c in group_cols + [richness_column]:
        if c not in per_sample.columns:
            raise ValueError(f"Column '{c}' not found in dataframe")

    d = per_sample.dropna(subset=group_cols + [richness_column]).copy()
    if d[period].nunique() < min_points:
        _insufficient(f"richness over {period}", d[period].nunique(), min_points, out)
        return None

    d[period] = d[period].astype(int)
    summary = d.groupby(group_cols)[richness_column].mean().rename("mean_richness").reset_index()

    fig, ax = plt.subplots(figsize=figsize)
    if habitat_column is not None:
        summary[habitat_column] = summary[habitat_column].astype(str)
        color_map = get_habitat_colors(summary[habitat_column], palette)
        for habitat, color in color_map.items():
            sub = summary[summary[habitat_column] == habitat].sort_values(period)
            ax.plot(sub[period], sub["mean_richness"], marker="o", color=color, label=habitat)
        ax.legend(title="Habitat", bbox_to_anchor=(1.02, 1), loc="upper left", frameon=False)
    else:
        summary = summary.sort_values(period)
        ax.plot(summary[period], summary["mean_richness"], marker="o", color="#333333")

    ax.set_xlabel("ISO week" if period == "week" else "Month")
    ax.set_ylabel("Mean species richness per sample")
    ax.xaxis.get_major_locator().set_params(integer=True)
    ax.grid(True, linestyle="--", linewidth=0.3, alpha=0.5)
    fig.tight_layout()
    return _save_figure(fig, out, dpi)
