"""
Core Pipeline Orchestration for TrapTidy

This module chains the tidying steps into the single table used by every
downstream summary and plot.

Pipeline Steps (order matters):
1. Normalize sample metadata (habitat labels, collection week and month)
2. Taxonomic/quality filter on the abundance table
3. Drop taxonomic rank columns other than species
4. Reshape sample columns into (lysate_ID, reads) rows
5. Drop noise readings (reads <= 20) and control lysates
6. Left-join the observations to the normalized metadata on lysate_ID

Guarantees of the result:
- Every row passed all filters above
- Every observation surviving step 5 appears exactly once, whether or not
  its lysate has metadata (unmatched rows carry missing metadata)

Example Usage:
    >>> from traptidy.core import run_pipeline
    >>> results = run_pipeline("species_table.tsv", "trap_metadata.csv")
    >>> tidy = results['tidy']
    >>> print(results['counts'])
"""

from typing import Dict, Optional, Any, Union
from pathlib import Path
import logging

import pandas as pd

from . import config, metadata, taxonomy, abundance

logger = logging.getLogger(__name__)


def join_metadata(
    observations: pd.DataFrame,
    sample_metadata: pd.DataFrame,
    on: str = 'lysate_ID',
) -> pd.DataFrame:
    """
    Left-join observations to sample metadata.

    Parameters
    ----------
    observations : pd.DataFrame
        Filtered long observations
    sample_metadata : pd.DataFrame
        Normalized metadata, one row per lysate

    Returns
    -------
    pd.DataFrame
        One row per observation, metadata columns appended

    Raises
    ------
    pandas.errors.MergeError
        If ``sample_metadata`` has duplicate lysate identifiers
    """
    joined = observations.merge(
        sample_metadata,
        on=on,
        how='left',
        validate='many_to_one',
    )

    unmatched = ~joined[on].isin(sample_metadata[on])
    if unmatched.any():
        missing_ids = sorted(joined.loc[unmatched, on].unique())
        logger.warning(
            f"{unmatched.sum()} observations from {len(missing_ids)} lysates have no "
            f"sample metadata. Examples: {missing_ids[:5]}"
        )

    return joined


def tidy_observations(
    abundance_df: pd.DataFrame,
    metadata_df: pd.DataFrame,
    config_obj: Optional[config.PipelineConfig] = None,
    counts: Optional[Dict[str, int]] = None,
) -> pd.DataFrame:
    """
    Turn the raw abundance table and sample metadata into tidy observations.

    Parameters
    ----------
    abundance_df : pd.DataFrame
        Wide abundance table as returned by ``metadata.parse_abundance_table``
    metadata_df : pd.DataFrame
        Sample metadata as returned by ``metadata.parse_sample_metadata``
    config_obj : Optional[PipelineConfig]
        Pipeline configuration (default: defaults)
    counts : Optional[Dict[str, int]]
        If given, filled with the row count after each step

    Returns
    -------
    pd.DataFrame
        Columns ``Species, lysate_ID, reads`` followed by the metadata
        columns and ``week``/``month``

    Examples
    --------
    >>> tidy = tidy_observations(abundance_df, metadata_df)
    >>> (tidy['reads'] > 20).all()
    True
    """
    cfg = config_obj if config_obj is not None else config.get_default_config()
    if counts is None:
        counts = {}

    species_col = cfg.taxonomy.species_column
    counts['taxa_input'] = len(abundance_df)

    meta = metadata.normalize_sample_metadata(metadata_df, cfg.habitat)
    counts['metadata_lysates'] = len(meta)

    taxa = taxonomy.filter_taxa(abundance_df, cfg.taxonomy)
    counts['taxa_retained'] = len(taxa)

    species_table = taxonomy.drop_rank_columns(taxa, cfg.taxonomy.rank_columns)

    long_df = abundance.melt_samples(
        species_table,
        species_column=species_col,
        sample_prefix_pattern=cfg.samples.sample_prefix_pattern,
    )
    counts['observations_reshaped'] = len(long_df)

    observations = abundance.filter_observations(
        long_df,
        min_reads=cfg.samples.min_reads,
        control_pattern=cfg.samples.control_pattern,
        control_case_sensitive=cfg.samples.control_case_sensitive,
    )
    counts['observations_retained'] = len(observations)

    tidy = join_metadata(observations, meta)
    counts['tidy_rows'] = len(tidy)

    logger.info(
        f"Tidy table: {len(tidy)} observations of "
        f"{tidy[species_col].nunique()} species in {tidy['lysate_ID'].nunique()} lysates"
    )
    return tidy


def run_pipeline(
    abundance_path: Union[str, Path],
    metadata_path: Union[str, Path],
    config_obj: Optional[config.PipelineConfig] = None,
) -> Dict[str, Any]:
    """
    Load both inputs and build the tidy observation table.

    Parameters
    ----------
    abundance_path : Union[str, Path]
        Tab-separated species-abundance table
    metadata_path : Union[str, Path]
        Sample metadata table (semicolon-separated by default)
    config_obj : Optional[PipelineConfig]
        Pipeline configuration (default: defaults)

    Returns
    -------
    Dict[str, Any]
        Dictionary containing:
        - 'tidy': pd.DataFrame - the tidy observation table
        - 'counts': Dict[str, int] - row counts after each step
        - 'abundance_path': Path
        - 'metadata_path': Path

    Raises
    ------
    FileNotFoundError
        If either input does not exist
    ValueError
        If required columns are missing or read counts are not numeric
    """
    cfg = config_obj if config_obj is not None else config.get_default_config()

    abundance_df = metadata.parse_abundance_table(
        abundance_path,
        sample_prefix_pattern=cfg.samples.sample_prefix_pattern,
    )
    metadata_df = metadata.parse_sample_metadata(
        metadata_path,
        sep=cfg.habitat.metadata_separator,
        decimal=cfg.habitat.decimal,
    )

    counts: Dict[str, int] = {}
    tidy = tidy_observations(abundance_df, metadata_df, cfg, counts=counts)

    return {
        'tidy': tidy,
        'counts': counts,
        'abundance_path': Path(abundance_path),
        'metadata_path': Path(metadata_path),
    }
