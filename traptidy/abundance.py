"""
Reshaping and Filtering of Per-Sample Read Counts

Converts the wide species table (one column per sample) into long
observations and removes noise and control samples.

Key Steps:
1. Reshape: every sample column becomes (lysate_ID, reads) rows, giving one
   row per species x sample pair. The sequencing-run prefix carried by the
   column headers ("FL" + digits + "_") is stripped to recover the lysate
   identifier used in the sample metadata.
2. Abundance filter: readings at or below the noise threshold
   (default: 20 reads) are dropped. The threshold applies to each original
   sample reading, never to a total across samples.
3. Control filter: lysates whose identifier looks like a negative,
   positive or air-blank control ("neg", "pos", "air", case-insensitive)
   are dropped.

Example Usage:
    >>> from traptidy.abundance import melt_samples, filter_observations
    >>> long_df = melt_samples(species_table)
    >>> observations = filter_observations(long_df, min_reads=20)
"""

import logging

import pandas as pd

logger = logging.getLogger(__name__)


def strip_sample_prefix(
    sample_ids: pd.Series,
    pattern: str = r"^FL\d+_",
) -> pd.Series:
    """
    Remove the sequencing-run prefix from sample column headers.

    Examples
    --------
    >>> strip_sample_prefix(pd.Series(["FL01_sample01", "FL112_P3_T2"])).tolist()
    ['sample01', 'P3_T2']
    """
    return sample_ids.astype(str).str.replace(pattern, "", n=1, regex=True)


def melt_samples(
    df: pd.DataFrame,
    species_column: str = "Species",
    sample_prefix_pattern: str = r"^FL\d+_",
) -> pd.DataFrame:
    """
    Reshape the species table from wide to long.

    Every column other than the species column is treated as a sample.

    Parameters
    ----------
    df : pd.DataFrame
        Species table after rank columns were dropped
    species_column : str
        Name of the species column (default: "Species")
    sample_prefix_pattern : str
        Header prefix stripped to give the lysate identifier

    Returns
    -------
    pd.DataFrame
        Columns ``[species_column, 'lysate_ID', 'reads']`` with exactly
        ``len(df) * n_sample_columns`` rows

    Raises
    ------
    ValueError
        If a read count is not numeric
    """
    sample_columns = [c for c in df.columns if c != species_column]

    long_df = df.melt(
        id_vars=[species_column],
        value_vars=sample_columns,
        var_name='lysate_ID',
        value_name='reads',
    )

    try:
        long_df['reads'] = pd.to_numeric(long_df['reads'])
    except (ValueError, TypeError) as e:
        raise ValueError(f"Abundance table contains non-numeric read counts: {e}")

    long_df['lysate_ID'] = strip_sample_prefix(long_df['lysate_ID'], sample_prefix_pattern)

    logger.info(
        f"Reshaped {len(df)} species x {len(sample_columns)} samples "
        f"into {len(long_df)} observations"
    )

    return long_df


def is_control_sample(
    lysate_ids: pd.Series,
    pattern: str = r"neg|pos|air",
    case_sensitive: bool = False,
) -> pd.Series:
    """
    Flag lysates whose identifier matches the control naming pattern.

    An empty pattern flags nothing.

    Examples
    --------
    >>> is_control_sample(pd.Series(["NegControl1", "P3_T2", "AIR_blank"])).tolist()
    [True, False, True]
    """
    if not pattern:
        return pd.Series(False, index=lysate_ids.index)
    return (
        lysate_ids.astype("string")
        .str.contains(pattern, case=case_sensitive, regex=True)
        .fillna(False)
        .astype(bool)
    )


def filter_observations(
    df: pd.DataFrame,
    min_reads: int = 20,
    control_pattern: str = r"neg|pos|air",
    control_case_sensitive: bool = False,
) -> pd.DataFrame:
    """
    Drop noise readings and control lysates.

    Parameters
    ----------
    df : pd.DataFrame
        Long observations with ``lysate_ID`` and ``reads`` columns
    min_reads : int
        Readings with ``reads <= min_reads`` are dropped (default: 20).
        Missing readings are dropped as well.
    control_pattern : str
        Regular expression identifying control lysates
    control_case_sensitive : bool
        Whether the control pattern is case-sensitive (default: False)

    Returns
    -------
    pd.DataFrame
        Filtered observations with a fresh index
    """
    n_initial = len(df)

    mask_reads = df['reads'] > min_reads
    n_low = int((~mask_reads).sum())
    df_filtered = df[mask_reads]
    logger.info(f"Excluded {n_low} observations with {min_reads} reads or fewer")

    mask_control = is_control_sample(
        df_filtered['lysate_ID'], control_pattern, case_sensitive=control_case_sensitive
    )
    n_control = int(mask_control.sum())
    if n_control:
        controls = sorted(df_filtered.loc[mask_control, 'lysate_ID'].unique())
        logger.info(f"Excluded {n_control} observations from control lysates: {controls[:10]}")
    df_filtered = df_filtered[~mask_control]

    n_final = len(df_filtered)
    pct_retained = (n_final / n_initial * 100) if n_initial > 0 else 0
    logger.info(
        f"Observation filtering: {n_final}/{n_initial} retained ({pct_retained:.1f}%)"
    )

    return df_filtered.reset_index(drop=True)

