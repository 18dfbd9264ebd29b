"""
Helper Functions and Utilities

This module provides common utility functions used throughout the TrapTidy
package: logging configuration, output directory handling and small
formatting helpers used by the command-line interface.

Key Utilities:
1. Logging Configuration
   - Centralized logging setup for the ``traptidy`` package logger
   - Console output with optional log file

2. File Operations
   - Automatic directory creation
   - Filename sanitization for figure outputs
   - Dataset name extraction from input filenames

3. Formatting
   - Elapsed time and timestamps for run summaries

Example Usage:
    >>> from traptidy.utils import setup_logging, extract_dataset_name
    >>> logger = setup_logging(log_level="DEBUG")
    >>> extract_dataset_name("malaise_2022_species_table.tsv")
    'malaise_2022'
"""

from typing import Optional, Union
from pathlib import Path
import logging
import re
import sys
from datetime import datetime

# Configure module logger
logger = logging.getLogger(__name__)


# ============================================================================
# Logging Configuration
# ============================================================================

def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    format_string: Optional[str] = None,
) -> logging.Logger:
    """
    Configure logging for TrapTidy.

    Sets up the package logger with console and optional file output.

    Parameters
    ----------
    log_level : str, optional
        Logging level: DEBUG, INFO, WARNING, ERROR, or CRITICAL (default: INFO)
    log_file : str, optional
        Path to log file. If None, logs only to console (default: None)
    format_string : str, optional
        Custom format string for log messages. If None, uses default format

    Returns
    -------
    logging.Logger
        Configured logger instance

    Examples
    --------
    >>> logger = setup_logging(log_level="DEBUG", log_file="analysis.log")
    >>> logger.info("Starting analysis")

    Notes
    -----
    The default format includes timestamp, level, and message:
    [2024-05-02 10:30:45] INFO: Starting analysis
    """
    package_logger = logging.getLogger("traptidy")
    package_logger.setLevel(getattr(logging, log_level.upper()))

    # Remove existing handlers to avoid duplicates
    package_logger.handlers.clear()

    if format_string is None:
        format_string = "[%(asctime)s] %(levelname)s: %(message)s"

    formatter = logging.Formatter(format_string, datefmt="%Y-%m-%d %H:%M:%S")

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(getattr(logging, log_level.upper()))
    console_handler.setFormatter(formatter)
    package_logger.addHandler(console_handler)

    if log_file is not None:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file, mode='a', encoding='utf-8')
        file_handler.setLevel(getattr(logging, log_level.upper()))
        file_handler.setFormatter(formatter)
        package_logger.addHandler(file_handler)

        package_logger.info(f"Logging to file: {log_file}")

    return package_logger


# ============================================================================
# File I/O and Path Handling
# ============================================================================

def create_output_directory(output_dir: Union[str, Path]) -> Path:
    """
    Create output directory if it doesn't exist.

    Parameters
    ----------
    output_dir : Union[str, Path]
        Path to output directory

    Returns
    -------
    Path
        Path object for output directory

    Raises
    ------
    OSError
        If directory cannot be created due to permissions or other issues
    """
    path = Path(output_dir)

    try:
        path.mkdir(parents=True, exist_ok=True)
        logger.debug(f"Created/verified output directory: {path}")
        return path
    except OSError as e:
        logger.error(f"Failed to create directory {path}: {e}")
        raise


def sanitize_filename(filename: str) -> str:
    """
    Sanitize filename for cross-platform compatibility.

    Examples
    --------
    >>> sanitize_filename("Malaise traps (2022)")
    'Malaise_traps_2022'
    """
    safe = filename.replace(' ', '_')
    safe = re.sub(r'[^\w\-.]', '_', safe)
    safe = re.sub(r'_+', '_', safe)
    return safe.strip('_')


def safe_file_path(
    base_dir: Union[str, Path],
    filename: str,
    extension: Optional[str] = None
) -> Path:
    """
    Create a safe file path with optional extension.

    Ensures the directory exists and sanitizes the filename.

    Examples
    --------
    >>> path = safe_file_path("figures", "richness by habitat", "png")
    >>> print(path)
    figures/richness_by_habitat.png
    """
    base = Path(base_dir)
    base.mkdir(parents=True, exist_ok=True)

    safe_name = sanitize_filename(filename)

    if extension:
        if not extension.startswith('.'):
            extension = '.' + extension
        safe_name += extension

    return base / safe_name


def extract_dataset_name(file_path: Union[str, Path]) -> str:
    """
    Extract a dataset name from the abundance table filename.

    Removes common suffixes such as ``_species_table`` or ``_abundance`` so
    output files can be named after the survey.

    Examples
    --------
    >>> extract_dataset_name("malaise_2022_species_table.tsv")
    'malaise_2022'
    >>> extract_dataset_name("/data/Site A_abundance.tsv")
    'Site_A'
    """
    basename = Path(file_path).stem

    suffixes_to_remove = [
        '_species_table', '_species', '_abundance', '_reads',
        '_counts', '_otu_table', '_asv_table', '_data',
    ]

    cleaned = basename
    for suffix in suffixes_to_remove:
        if cleaned.lower().endswith(suffix):
            cleaned = cleaned[:-len(suffix)]

    cleaned = sanitize_filename(cleaned)

    # If we ended up with something too short, use original
    if len(cleaned) < 3:
        cleaned = sanitize_filename(basename)

    return cleaned


# ============================================================================
# Time and Formatting Utilities
# ============================================================================

def format_elapsed_time(seconds: float) -> str:
    """
    Format elapsed time in human-readable format.

    Examples
    --------
    >>> format_elapsed_time(45)
    '45s'
    >>> format_elapsed_time(90)
    '1.5m'
    """
    if seconds < 60:
        return f"{seconds:.0f}s"

    minutes = seconds / 60
    if minutes < 60:
        return f"{minutes:.1f}m"

    hours = minutes / 60
    minutes_remainder = minutes % 60
    return f"{int(hours)}h {int(minutes_remainder)}m"


def get_timestamp() -> str:
    """Return the current time as an ISO-like timestamp string."""
    return datetime.now().strftime("%Y-%m-%dT%H:%M:%S")
