"""
Input Parsing and Sample Metadata Normalization

This module reads the two inputs of a trap survey and prepares the sample
metadata for joining.

Key Responsibilities:
1. Parse the species-abundance table (tab-separated):
   - Kingdom, Phylum, Class, Order, Family, Genus, Species, BOLD_bin
   - One read-count column per sample, header prefixed ``FL<digits>_``

2. Parse the sample metadata table (semicolon-separated):
   - trap_ID, sample_ID, habitat, lysate_ID, biomass_grams,
     trap_lat, trap_long, collecting_date

3. Normalize sample metadata:
   - Strip the trailing "?" marker from habitat labels
   - Collapse inconsistent habitat labels into the canonical set
   - Derive ISO week-of-year and month from the collection date

Important Notes:
- Unparseable collection dates are kept as missing week/month; they are
  not reported as errors.
- Lysate identifiers must be unique for the join; duplicates are dropped
  (first occurrence kept) with a warning.

Example Usage:
    >>> from traptidy.metadata import parse_sample_metadata, normalize_sample_metadata
    >>> meta = parse_sample_metadata("trap_metadata.csv")
    >>> meta = normalize_sample_metadata(meta)
    >>> meta[['lysate_ID', 'habitat', 'week', 'month']].head()
"""

from typing import Dict, List, Optional, Union
from pathlib import Path
import logging
import re

import pandas as pd

from .config import HabitatConfig

logger = logging.getLogger(__name__)


ABUNDANCE_REQUIRED_COLUMNS = [
    'Kingdom', 'Phylum', 'Class', 'Order', 'Family', 'Genus', 'Species', 'BOLD_bin',
]

METADATA_REQUIRED_COLUMNS = [
    'trap_ID', 'sample_ID', 'habitat', 'lysate_ID', 'biomass_grams',
    'trap_lat', 'trap_long', 'collecting_date',
]

NUMERIC_METADATA_COLUMNS = ['biomass_grams', 'trap_lat', 'trap_long']


# ============================================================================
# Table Parsing
# ============================================================================

def parse_abundance_table(
    tsv_path: Union[str, Path],
    required_columns: Optional[List[str]] = None,
    encoding: str = 'utf-8',
    sample_prefix_pattern: str = r"^FL\d+_",
) -> pd.DataFrame:
    """
    Parse the species-abundance table and validate its taxonomy columns.

    Parameters
    ----------
    tsv_path : Union[str, Path]
        Path to the tab-separated abundance table
    required_columns : Optional[List[str]]
        Required column names. If None, uses the eight taxonomy columns
    encoding : str
        File encoding (default: 'utf-8', falls back to 'latin-1' if needed)
    sample_prefix_pattern : str
        Pattern every sample column header is expected to start with.
        Only used to warn about tables without recognizable sample columns.

    Returns
    -------
    pd.DataFrame
        Wide table, one row per taxon and one column per sample

    Raises
    ------
    FileNotFoundError
        If the file doesn't exist
    ValueError
        If required columns are missing
    pd.errors.EmptyDataError
        If the file is empty

    Notes
    -----
    Read counts are parsed by pandas' type inference. Non-numeric counts
    are not coerced here; they make the reshape step fail.
    """
    path = Path(tsv_path)

    if not path.exists():
        raise FileNotFoundError(f"Abundance table not found: {path}")

    if required_columns is None:
        required_columns = ABUNDANCE_REQUIRED_COLUMNS

    logger.info(f"Reading abundance table: {path}")

    try:
        df = pd.read_csv(path, sep='\t', encoding=encoding, low_memory=False)
    except UnicodeDecodeError:
        logger.warning("UTF-8 encoding failed, trying latin-1")
        df = pd.read_csv(path, sep='\t', encoding='latin-1', low_memory=False)

    if df.empty:
        raise pd.errors.EmptyDataError(f"Abundance table is empty: {path}")

    logger.info(f"Read {len(df)} rows and {len(df.columns)} columns")

    validate_required_columns(df, required_columns, table_name="Abundance table")

    # Species names are matched exactly against the spike-in list
    if 'Species' in df.columns and df['Species'].dtype == object:
        species = df['Species'].str.strip()
        df['Species'] = species.mask(species == '')

    sample_columns = get_sample_columns(df, required_columns)
    prefix = re.compile(sample_prefix_pattern)
    unprefixed = [c for c in sample_columns if not prefix.search(str(c))]
    if not sample_columns:
        logger.warning("Abundance table has no sample columns")
    elif unprefixed:
        logger.warning(
            f"{len(unprefixed)} sample columns lack the expected prefix "
            f"'{sample_prefix_pattern}'. Examples: {unprefixed[:5]}"
        )

    _log_abundance_quality(df, sample_columns)

    return df


def parse_sample_metadata(
    csv_path: Union[str, Path],
    sep: str = ';',
    decimal: str = '.',
    required_columns: Optional[List[str]] = None,
    encoding: str = 'utf-8',
) -> pd.DataFrame:
    """
    Parse the sample metadata table.

    Strips whitespace from text fields, converts coordinates and biomass to
    numbers and removes rows that cannot be joined (missing or duplicated
    lysate identifiers).

    Parameters
    ----------
    csv_path : Union[str, Path]
        Path to the metadata file
    sep : str
        Field separator (default: ';')
    decimal : str
        Decimal mark for numeric columns (default: '.')
    required_columns : Optional[List[str]]
        Required column names. If None, uses the eight metadata columns
    encoding : str
        File encoding (default: 'utf-8', falls back to 'latin-1' if needed)

    Returns
    -------
    pd.DataFrame
        One row per lysate

    Raises
    ------
    FileNotFoundError
        If the file doesn't exist
    ValueError
        If required columns are missing
    pd.errors.EmptyDataError
        If the file is empty
    """
    path = Path(csv_path)

    if not path.exists():
        raise FileNotFoundError(f"Sample metadata file not found: {path}")

    if required_columns is None:
        required_columns = METADATA_REQUIRED_COLUMNS

    logger.info(f"Reading sample metadata: {path}")

    try:
        df = pd.read_csv(path, sep=sep, encoding=encoding, dtype=str)
    except UnicodeDecodeError:
        logger.warning("UTF-8 encoding failed, trying latin-1")
        df = pd.read_csv(path, sep=sep, encoding='latin-1', dtype=str)

    if df.empty:
        raise pd.errors.EmptyDataError(f"Sample metadata file is empty: {path}")

    logger.info(f"Read {len(df)} rows and {len(df.columns)} columns")

    validate_required_columns(df, required_columns, table_name="Sample metadata")

    for col in df.columns:
        df[col] = df[col].str.strip()

    for col in NUMERIC_METADATA_COLUMNS:
        if col in df.columns:
            values = df[col]
            if decimal != '.':
                values = values.str.replace(decimal, '.', regex=False)
            df[col] = pd.to_numeric(values, errors='coerce')

    # Rows without a lysate cannot be joined
    missing_lysate = df['lysate_ID'].isna() | (df['lysate_ID'] == '')
    if missing_lysate.any():
        logger.warning(f"Dropping {missing_lysate.sum()} metadata rows without a lysate_ID")
        df = df[~missing_lysate].copy()

    duplicates = df['lysate_ID'].duplicated()
    if duplicates.any():
        dup_ids = df.loc[duplicates, 'lysate_ID'].head(5).tolist()
        logger.warning(
            f"Found {duplicates.sum()} duplicate lysate_IDs. "
            f"Examples: {dup_ids}. "
            f"Keeping only first occurrence of each duplicate."
        )
        df = df[~duplicates].copy()

    _log_metadata_quality(df)

    return df.reset_index(drop=True)


def validate_required_columns(
    df: pd.DataFrame,
    required_columns: List[str],
    table_name: str = "Table",
) -> bool:
    """
    Validate that DataFrame contains required columns.

    Raises
    ------
    ValueError
        If any required columns are missing
    """
    missing_columns = [col for col in required_columns if col not in df.columns]

    if missing_columns:
        available_cols = sorted(str(c) for c in df.columns)
        logger.error(
            f"Missing required columns: {missing_columns}\n"
            f"Available columns: {available_cols[:20]}..."
        )
        raise ValueError(
            f"{table_name} is missing required columns: {missing_columns}. "
            f"Found {len(df.columns)} columns total."
        )

    logger.debug(f"All required columns present: {required_columns}")
    return True


def get_sample_columns(
    df: pd.DataFrame,
    taxonomy_columns: Optional[List[str]] = None,
) -> List[str]:
    """Return the per-sample read-count columns of the abundance table."""
    if taxonomy_columns is None:
        taxonomy_columns = ABUNDANCE_REQUIRED_COLUMNS
    return [c for c in df.columns if c not in taxonomy_columns]


def _log_abundance_quality(df: pd.DataFrame, sample_columns: List[str]) -> None:
    """Log data quality statistics for the abundance table."""
    stats = {
        'taxa_rows': len(df),
        'sample_columns': len(sample_columns),
    }

    if 'Phylum' in df.columns:
        stats['phyla'] = df['Phylum'].nunique()
    if 'Species' in df.columns:
        stats['species_missing'] = df['Species'].isna().sum()

    numeric = df[sample_columns].select_dtypes(include='number') if sample_columns else None
    if numeric is not None:
        stats['non_numeric_sample_columns'] = len(sample_columns) - numeric.shape[1]
        stats['total_reads'] = int(numeric.sum().sum())

    logger.info("Abundance table summary:")
    for key, value in stats.items():
        logger.info(f"  {key}: {value}")


def _log_metadata_quality(df: pd.DataFrame) -> None:
    """Log data quality statistics for the sample metadata."""
    stats = {'lysates': len(df)}

    if 'trap_ID' in df.columns:
        stats['traps'] = df['trap_ID'].nunique()
    if 'habitat' in df.columns:
        stats['habitats'] = df['habitat'].nunique()
    if 'trap_lat' in df.columns and 'trap_long' in df.columns:
        stats['coords_missing'] = (df['trap_lat'].isna() | df['trap_long'].isna()).sum()
    if 'collecting_date' in df.columns:
        stats['dates_missing'] = df['collecting_date'].isna().sum()

    logger.info("Sample metadata summary:")
    for key, value in stats.items():
        logger.info(f"  {key}: {value}")


# ============================================================================
# Metadata Normalization
# ============================================================================

def normalize_habitat_labels(
    habitat: pd.Series,
    relabel: Dict[str, str],
    strip_suffix: str = "?",
) -> pd.Series:
    """
    Clean habitat labels and collapse them into the canonical set.

    The trailing marker is removed first, then the relabel table is applied.
    Labels not in the table are returned unchanged.

    Parameters
    ----------
    habitat : pd.Series
        Raw habitat labels
    relabel : Dict[str, str]
        Raw label to canonical label mapping
    strip_suffix : str
        Literal marker removed from the end of each label (default: "?")

    Returns
    -------
    pd.Series
        Normalized labels (missing values stay missing)

    Examples
    --------
    >>> s = pd.Series(["wind_farm?", "Urban/Cropland", "Forest"])
    >>> normalize_habitat_labels(s, {"wind_farm": "Wetland", "Urban/Cropland": "Cropland"}).tolist()
    ['Wetland', 'Cropland', 'Forest']
    """
    labels = habitat.astype("string").str.strip()
    if strip_suffix:
        labels = labels.str.replace(f"{re.escape(strip_suffix)}$", "", regex=True)
    labels = labels.astype(object).map(lambda v: None if pd.isna(v) else v)

    normalized = labels.map(lambda v: relabel.get(v, v) if v is not None else None)

    unmapped = sorted(set(labels.dropna()) - set(relabel) - set(relabel.values()))
    if unmapped:
        logger.debug(f"Habitat labels kept as-is: {unmapped}")

    return normalized


def add_collection_period(
    df: pd.DataFrame,
    date_column: str = 'collecting_date',
    date_format: Optional[str] = None,
) -> pd.DataFrame:
    """
    Derive ISO week-of-year and month from the collection date.

    Adds ``week`` and ``month`` as nullable integers. Dates that cannot be
    parsed give missing values.

    Examples
    --------
    >>> df = pd.DataFrame({'collecting_date': ['2022-06-15', 'not a date']})
    >>> add_collection_period(df)[['week', 'month']].values.tolist()
    [[24, 6], [<NA>, <NA>]]
    """
    out = df.copy()
    dates = pd.to_datetime(out[date_column], format=date_format, errors='coerce')

    n_unparsed = (dates.isna() & out[date_column].notna()).sum()
    if n_unparsed:
        logger.debug(f"{n_unparsed} collection dates could not be parsed")

    out['week'] = dates.dt.isocalendar().week.astype('Int64')
    out['month'] = dates.dt.month.astype('Int64')
    return out


def normalize_sample_metadata(
    df: pd.DataFrame,
    config: Optional[HabitatConfig] = None,
) -> pd.DataFrame:
    """
    Apply habitat clean-up and add collection week and month.

    Parameters
    ----------
    df : pd.DataFrame
        Parsed sample metadata
    config : Optional[HabitatConfig]
        Relabel table and date settings (default: HabitatConfig())

    Returns
    -------
    pd.DataFrame
        New DataFrame with normalized ``habitat`` and added ``week``/``month``
    """
    if config is None:
        config = HabitatConfig()

    out = df.copy()
    before = out['habitat'].nunique()
    out['habitat'] = normalize_habitat_labels(
        out['habitat'], config.relabel, strip_suffix=config.strip_suffix
    )
    logger.info(
        f"Normalized habitat labels: {before} raw labels -> "
        f"{out['habitat'].nunique()} habitats"
    )

    return add_collection_period(out, 'collecting_date', date_format=config.date_format)
