"""
Species Richness and Community Summaries

Aggregations computed from the tidy observation table. Richness is based on
presence/absence so that it does not depend on read depth.

Functions:
- to_presence_absence: reads > 0 -> 1, else 0
- species_richness: number of present species per group
- richness_per_sample: richness of each lysate with its trap metadata
- summarize_richness: richness statistics per habitat, week or month
- build_community_matrix: samples x species matrix for ordination

The community matrix is the input of the externally hosted ordination app
(NMDS/tSNE/UMAP); the ordination itself is not computed here.

Example Usage:
    >>> from traptidy.richness import richness_per_sample, summarize_richness
    >>> per_sample = richness_per_sample(tidy)
    >>> summarize_richness(per_sample, by='habitat')
"""

from typing import List, Optional, Sequence, Union
import logging

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)


DEFAULT_SAMPLE_COLUMNS = [
    'trap_ID', 'sample_ID', 'habitat', 'biomass_grams',
    'trap_lat', 'trap_long', 'collecting_date', 'week', 'month',
]


def to_presence_absence(
    df: pd.DataFrame,
    reads_column: str = 'reads',
    presence_column: str = 'presence',
) -> pd.DataFrame:
    """
    Add a binary presence column (1 when reads > 0, else 0).

    Examples
    --------
    >>> df = pd.DataFrame({'reads': [0, 25, np.nan]})
    >>> to_presence_absence(df)['presence'].tolist()
    [0, 1, 0]
    """
    out = df.copy()
    out[presence_column] = (out[reads_column] > 0).astype(int)
    return out


def species_richness(
    df: pd.DataFrame,
    group_columns: Union[str, Sequence[str]],
    species_column: str = 'Species',
    reads_column: str = 'reads',
) -> pd.DataFrame:
    """
    Count present species per group.

    Duplicate rows of the same species within a group (e.g. several BOLD
    bins sharing a species name) count once.

    Parameters
    ----------
    df : pd.DataFrame
        Tidy observations
    group_columns : Union[str, Sequence[str]]
        Column(s) defining the groups, e.g. 'lysate_ID' or ['trap_ID']

    Returns
    -------
    pd.DataFrame
        Group columns plus ``richness``. Rows with a missing group key are
        not counted.
    """
    if isinstance(group_columns, str):
        group_columns = [group_columns]
    group_columns = list(group_columns)

    pa = to_presence_absence(df, reads_column=reads_column)
    per_species = (
        pa.groupby(group_columns + [species_column])['presence']
          .max()
          .reset_index()
    )
    return (
        per_species.groupby(group_columns)['presence']
                   .sum()
                   .rename('richness')
                   .reset_index()
    )


def richness_per_sample(
    tidy: pd.DataFrame,
    sample_column: str = 'lysate_ID',
    keep_columns: Optional[List[str]] = None,
    species_column: str = 'Species',
) -> pd.DataFrame:
    """
    Species richness of each sample with its metadata.

    Parameters
    ----------
    tidy : pd.DataFrame
        Tidy observations
    sample_column : str
        Sample identifier column (default: 'lysate_ID')
    keep_columns : Optional[List[str]]
        Metadata columns carried over (first value per sample). Defaults to
        the standard trap metadata columns present in ``tidy``.

    Returns
    -------
    pd.DataFrame
        One row per sample with ``richness`` and ``total_reads``
    """
    if keep_columns is None:
        keep_columns = [c for c in DEFAULT_SAMPLE_COLUMNS if c in tidy.columns]

    richness = species_richness(tidy, sample_column, species_column=species_column)
    reads = tidy.groupby(sample_column)['reads'].sum().rename('total_reads').reset_index()
    out = richness.merge(reads, on=sample_column, how='left')

    if keep_columns:
        meta = tidy.drop_duplicates(subset=[sample_column])[[sample_column] + keep_columns]
        out = out.merge(meta, on=sample_column, how='left', validate='one_to_one')

    logger.debug(f"Computed richness for {len(out)} samples")
    return out


def summarize_richness(
    per_sample: pd.DataFrame,
    by: Union[str, Sequence[str]] = 'habitat',
    richness_column: str = 'richness',
) -> pd.DataFrame:
    """
    Summarize sample richness per group.

    Parameters
    ----------
    per_sample : pd.DataFrame
        Output of ``richness_per_sample``
    by : Union[str, Sequence[str]]
        Grouping column(s), e.g. 'habitat', 'week', 'month' or
        ['habitat', 'month']

    Returns
    -------
    pd.DataFrame
        Per group: n_samples, mean_richness, median_richness,
        std_richness, min_richness, max_richness. Groups with a missing key
        are dropped.
    """
    if isinstance(by, str):
        by = [by]
    by = list(by)

    d = per_sample.dropna(subset=by)
    n_dropped = len(per_sample) - len(d)
    if n_dropped:
        logger.debug(f"Ignoring {n_dropped} samples with missing {by}")

    summary = (
        d.groupby(by)[richness_column]
         .agg(['count', 'mean', 'median', 'std', 'min', 'max'])
         .rename(columns={
             'count': 'n_samples',
             'mean': 'mean_richness',
             'median': 'median_richness',
             'std': 'std_richness',
             'min': 'min_richness',
             'max': 'max_richness',
         })
         .reset_index()
    )
    return summary


def build_community_matrix(
    tidy: pd.DataFrame,
    sample_column: str = 'lysate_ID',
    species_column: str = 'Species',
    presence: bool = True,
) -> pd.DataFrame:
    """
    Build the samples x species community matrix.

    Parameters
    ----------
    tidy : pd.DataFrame
        Tidy observations
    sample_column : str
        Row identifier (default: 'lysate_ID'; 'trap_ID' pools samples per trap)
    presence : bool
        If True, cells are 0/1 presence; otherwise summed reads

    Returns
    -------
    pd.DataFrame
        Index: samples, columns: species (both sorted), integer cells
    """
    d = tidy.dropna(subset=[sample_column])
    matrix = d.pivot_table(
        index=sample_column,
        columns=species_column,
        values='reads',
        aggfunc='sum',
        fill_value=0,
    )
    matrix = matrix.sort_index().sort_index(axis=1)

    if presence:
        matrix = (matrix > 0).astype(int)
    else:
        matrix = matrix.astype(np.int64)

    matrix.columns.name = species_column
    logger.info(
        f"Community matrix: {matrix.shape[0]} samples x {matrix.shape[1]} species"
    )
    return matrix
