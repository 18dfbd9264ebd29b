"""
Taxonomic and Quality Filtering of the Abundance Table

Removes abundance rows that must not contribute to the ecological analysis
and discards taxonomy columns that are no longer needed.

Filtering Rules (applied in order):
1. Keep only rows of the target phylum (default: Arthropoda)
2. Drop rows without a species name
3. Drop unclassified or rank-ambiguous species labels ("unclassified",
   or a trailing "_X", "_XX", "_XXX" placeholder)
4. Drop spike-in species added to every lysate as sequencing controls

Column Pruning:
Kingdom, Phylum, Class, Order, Family, Genus and BOLD_bin are dropped after
filtering; only the species column and the sample columns remain.

Example Usage:
    >>> from traptidy.taxonomy import filter_taxa, drop_rank_columns
    >>> species_table = drop_rank_columns(filter_taxa(abundance_df))
"""

from typing import Dict, Iterable, Optional
import logging

import pandas as pd

from .config import TaxonomyFilterConfig

logger = logging.getLogger(__name__)


def is_unclassified(
    species: pd.Series,
    pattern: str = r"unclassified|_X{1,3}$",
) -> pd.Series:
    """
    Flag species labels that are unclassified or rank-ambiguous.

    Missing labels are not flagged here; ``filter_taxa`` drops them
    separately.

    Examples
    --------
    >>> s = pd.Series(["Bombus terrestris", "Diptera_XX", "unclassified Sciaridae"])
    >>> is_unclassified(s).tolist()
    [False, True, True]
    """
    return species.astype("string").str.contains(pattern, regex=True).fillna(False).astype(bool)


def filter_taxa(
    df: pd.DataFrame,
    config: Optional[TaxonomyFilterConfig] = None,
) -> pd.DataFrame:
    """
    Apply the taxonomic and quality filters to the abundance table.

    Parameters
    ----------
    df : pd.DataFrame
        Wide abundance table with taxonomy columns
    config : Optional[TaxonomyFilterConfig]
        Filtering rules (default: TaxonomyFilterConfig())

    Returns
    -------
    pd.DataFrame
        Filtered copy of the table, all columns retained

    Examples
    --------
    >>> filtered = filter_taxa(abundance_df)
    >>> (filtered['Phylum'] == 'Arthropoda').all()
    True
    """
    if config is None:
        config = TaxonomyFilterConfig()

    species_col = config.species_column
    phylum_col = config.phylum_column

    n_initial = len(df)
    df_filtered = df.copy()
    filter_reasons: Dict[str, int] = {}

    # 1. Target phylum only
    mask_phylum = df_filtered[phylum_col] == config.phylum
    filter_reasons['other_phylum'] = int((~mask_phylum).sum())
    df_filtered = df_filtered[mask_phylum]

    # 2. Unnamed species
    mask_missing = df_filtered[species_col].isna()
    filter_reasons['missing_species'] = int(mask_missing.sum())
    df_filtered = df_filtered[~mask_missing]

    # 3. Unclassified / rank-ambiguous labels
    mask_unclassified = is_unclassified(df_filtered[species_col], config.unclassified_pattern)
    filter_reasons['unclassified'] = int(mask_unclassified.sum())
    df_filtered = df_filtered[~mask_unclassified]

    # 4. Spike-ins
    mask_spike = df_filtered[species_col].isin(config.spike_in_species)
    filter_reasons['spike_in'] = int(mask_spike.sum())
    df_filtered = df_filtered[~mask_spike]

    for reason, count in filter_reasons.items():
        logger.info(f"Excluded {count} taxa rows: {reason}")

    n_final = len(df_filtered)
    pct_retained = (n_final / n_initial * 100) if n_initial > 0 else 0
    logger.info(
        f"Taxonomic filtering: {n_final}/{n_initial} rows retained "
        f"({pct_retained:.1f}%)"
    )

    return df_filtered.reset_index(drop=True)


def drop_rank_columns(
    df: pd.DataFrame,
    rank_columns: Optional[Iterable[str]] = None,
) -> pd.DataFrame:
    """
    Drop taxonomic rank columns other than species.

    Columns that are already absent are ignored.
    """
    if rank_columns is None:
        rank_columns = TaxonomyFilterConfig().rank_columns

    to_drop = [c for c in rank_columns if c in df.columns]
    logger.debug(f"Dropping rank columns: {to_drop}")
    return df.drop(columns=to_drop)
