"""
Configuration Management for TrapTidy

This module provides the configuration system for the sample tidying pipeline
using frozen dataclasses. The configuration system supports:

1. Default filtering rules for insect metabarcoding trap surveys
2. Loading configuration from YAML/JSON files
3. Environment variable overrides
4. Validation on construction
5. Hierarchical configuration with component-specific settings

Configuration Structure:
- TaxonomyFilterConfig: Phylum, unclassified-label and spike-in filtering
- SampleFilterConfig: Sample header prefix, read threshold, control samples
- HabitatConfig: Habitat label clean-up and collection date parsing
- VisualizationConfig: Figure styling and output parameters
- PipelineConfig: Master configuration combining all components

Example Usage:
    >>> from traptidy.config import get_default_config, load_config_from_file
    >>>
    >>> config = get_default_config()
    >>> print(config.samples.min_reads)
    20
    >>>
    >>> config = load_config_from_file("survey_2022.yaml")
    >>>
    >>> custom_config = config.update(
    ...     samples__min_reads=50,
    ...     visualization__figure_dpi=150,
    ... )
"""

from dataclasses import dataclass, field, asdict, replace, is_dataclass
from pathlib import Path
from typing import Optional, List, Dict, Any, Union
import os
import re
import json
import logging

import yaml

logger = logging.getLogger(__name__)


# Organisms added to every lysate as sequencing controls
DEFAULT_SPIKE_IN_SPECIES = [
    "Gryllodes sigillatus",
    "Gryllus bimaculatus",
    "Shelfordella lateralis",
    "Drosophila serrata",
    "Drosophila bicornuta",
    "Drosophila jambulina",
]

DEFAULT_RANK_COLUMNS = [
    "Kingdom",
    "Phylum",
    "Class",
    "Order",
    "Family",
    "Genus",
    "BOLD_bin",
]

DEFAULT_HABITAT_RELABEL = {
    "wind_farm": "Wetland",
    "Cropland/Grassland": "Grassland",
    "Urban/Cropland": "Cropland",
    "Forest/Grassland": "Grassland",
}


def _check_pattern(name: str, pattern: str) -> None:
    try:
        re.compile(pattern)
    except re.error as e:
        raise ValueError(f"{name} is not a valid regular expression: {e}")


# ============================================================================
# Taxonomic Filter Configuration
# ============================================================================

@dataclass(frozen=True)
class TaxonomyFilterConfig:
    """
    Configuration for taxonomic and quality filtering of the abundance table.

    Attributes
    ----------
    phylum : str
        Only rows with this phylum are retained (default: "Arthropoda")

    unclassified_pattern : str
        Regular expression matched against the species label. Matching rows
        are unclassified or rank-ambiguous and are dropped. The default
        matches a literal "unclassified" anywhere, or a trailing "_X", "_XX"
        or "_XXX" placeholder.

    spike_in_species : List[str]
        Species added to every lysate as sequencing controls. These are
        never part of the trap catch and are removed.

    rank_columns : List[str]
        Taxonomic rank columns discarded after filtering. Only the species
        column is carried into the reshaped table.

    species_column : str
        Name of the species column (default: "Species")

    phylum_column : str
        Name of the phylum column (default: "Phylum")
    """
    phylum: str = "Arthropoda"
    unclassified_pattern: str = r"unclassified|_X{1,3}$"
    spike_in_species: List[str] = field(
        default_factory=lambda: list(DEFAULT_SPIKE_IN_SPECIES)
    )
    rank_columns: List[str] = field(
        default_factory=lambda: list(DEFAULT_RANK_COLUMNS)
    )
    species_column: str = "Species"
    phylum_column: str = "Phylum"

    def __post_init__(self):
        """Validate configuration parameters."""
        if not self.phylum:
            raise ValueError("phylum must be a non-empty string")
        _check_pattern("unclassified_pattern", self.unclassified_pattern)
        if self.species_column in self.rank_columns:
            raise ValueError(
                f"species_column '{self.species_column}' cannot be dropped "
                f"as a rank column"
            )


# ============================================================================
# Sample Filter Configuration
# ============================================================================

@dataclass(frozen=True)
class SampleFilterConfig:
    """
    Configuration for reshaping sample columns and filtering observations.

    Attributes
    ----------
    sample_prefix_pattern : str
        Regular expression for the sequencing-run prefix carried by every
        sample column header (default: ``^FL\\d+_``). It is stripped to
        recover the lysate identifier.

    min_reads : int
        Read counts less than or equal to this value are treated as noise
        (default: 20). Applied to each individual sample reading.

    control_pattern : str
        Regular expression identifying negative, positive and air-blank
        control lysates (default: "neg|pos|air"). An empty pattern disables
        control exclusion.

    control_case_sensitive : bool
        Whether the control pattern is case-sensitive (default: False)

    Notes
    -----
    The control pattern is a heuristic over free-text identifiers. A lysate
    named e.g. "Repository_07" would match "pos" and be dropped.
    """
    sample_prefix_pattern: str = r"^FL\d+_"
    min_reads: int = 20
    control_pattern: str = r"neg|pos|air"
    control_case_sensitive: bool = False

    def __post_init__(self):
        """Validate configuration parameters."""
        if self.min_reads < 0:
            raise ValueError("min_reads must be non-negative")
        _check_pattern("sample_prefix_pattern", self.sample_prefix_pattern)
        _check_pattern("control_pattern", self.control_pattern)


# ============================================================================
# Habitat / Metadata Configuration
# ============================================================================

@dataclass(frozen=True)
class HabitatConfig:
    """
    Configuration for sample metadata normalization.

    Attributes
    ----------
    strip_suffix : str
        Literal marker removed from the end of habitat labels before
        relabeling (default: "?", used in the field sheets for uncertain
        habitat calls)

    relabel : Dict[str, str]
        Fixed corrections collapsing inconsistent habitat labels into the
        canonical set. Labels not in the table are kept unchanged.

    date_format : Optional[str]
        strftime format of ``collecting_date``. If None, pandas infers it.

    metadata_separator : str
        Field separator of the metadata file (default: ";")

    decimal : str
        Decimal mark used for coordinates and biomass (default: ".")
    """
    strip_suffix: str = "?"
    relabel: Dict[str, str] = field(
        default_factory=lambda: dict(DEFAULT_HABITAT_RELABEL)
    )
    date_format: Optional[str] = None
    metadata_separator: str = ";"
    decimal: str = "."

    def __post_init__(self):
        """Validate configuration parameters."""
        if not self.metadata_separator:
            raise ValueError("metadata_separator must not be empty")
        if self.decimal not in [".", ","]:
            raise ValueError("decimal must be '.' or ','")
        if self.decimal == self.metadata_separator:
            raise ValueError("decimal and metadata_separator must differ")


# ============================================================================
# Visualization Configuration
# ============================================================================

@dataclass(frozen=True)
class VisualizationConfig:
    """
    Configuration for figure generation.

    Attributes
    ----------
    color_palette : str
        Seaborn color palette for habitats (default: "colorblind")

    figure_dpi : int
        Resolution for raster outputs (default: 300)

    figure_format : List[str]
        Output formats (default: ["png"])

    map_figsize : tuple
        Figure size for the trap map in inches (default: (8, 8))

    boxplot_figsize : tuple
        Figure size for richness-by-habitat plots (default: (10, 6))

    timeline_figsize : tuple
        Figure size for richness-over-time plots (default: (10, 5))

    map_buffer_degrees : float
        Margin around the traps on the map in degrees (default: 0.5)

    use_basemap : bool
        Draw land/coastline features with cartopy when available
        (default: True)

    min_points : int
        Minimum number of data points needed to draw a figure (default: 2)
    """
    color_palette: str = "colorblind"
    figure_dpi: int = 300
    figure_format: List[str] = field(default_factory=lambda: ["png"])
    map_figsize: tuple = (8, 8)
    boxplot_figsize: tuple = (10, 6)
    timeline_figsize: tuple = (10, 5)
    map_buffer_degrees: float = 0.5
    use_basemap: bool = True
    min_points: int = 2

    def __post_init__(self):
        """Validate configuration parameters."""
        if self.figure_dpi < 72:
            raise ValueError("figure_dpi must be at least 72")
        if self.map_buffer_degrees < 0:
            raise ValueError("map_buffer_degrees must be non-negative")
        if self.min_points < 1:
            raise ValueError("min_points must be at least 1")
        unsupported = [f for f in self.figure_format if f not in ["png", "pdf", "svg"]]
        if unsupported:
            raise ValueError(f"Unsupported figure formats: {unsupported}")
        # YAML/JSON round-trips hand back lists
        for name in ["map_figsize", "boxplot_figsize", "timeline_figsize"]:
            value = getattr(self, name)
            if isinstance(value, list):
                object.__setattr__(self, name, tuple(value))


# ============================================================================
# Master Pipeline Configuration
# ============================================================================

@dataclass(frozen=True)
class PipelineConfig:
    """
    Master configuration for the TrapTidy pipeline.

    Attributes
    ----------
    taxonomy : TaxonomyFilterConfig
        Taxonomic/quality filtering configuration

    samples : SampleFilterConfig
        Reshaping and observation filtering configuration

    habitat : HabitatConfig
        Metadata normalization configuration

    visualization : VisualizationConfig
        Figure generation configuration

    log_level : str
        Logging level (default: "INFO")

    output_dir : Path
        Base output directory for figures and logs (default: "results")

    ordination_app_url : Optional[str]
        Address of the externally hosted NMDS/tSNE/UMAP app that consumes
        the community matrix. Only reported, never contacted.
    """
    taxonomy: TaxonomyFilterConfig = field(default_factory=TaxonomyFilterConfig)
    samples: SampleFilterConfig = field(default_factory=SampleFilterConfig)
    habitat: HabitatConfig = field(default_factory=HabitatConfig)
    visualization: VisualizationConfig = field(default_factory=VisualizationConfig)
    log_level: str = "INFO"
    output_dir: Path = field(default_factory=lambda: Path("results"))
    ordination_app_url: Optional[str] = None

    def __post_init__(self):
        """Validate and normalize configuration."""
        if isinstance(self.output_dir, str):
            object.__setattr__(self, 'output_dir', Path(self.output_dir))

        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if self.log_level.upper() not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}")

    def update(self, **kwargs) -> 'PipelineConfig':
        """
        Create a new configuration with updated values.

        Supports nested updates using double underscore notation:
        config.update(samples__min_reads=50)

        Parameters
        ----------
        **kwargs
            Configuration parameters to update. Use double underscore
            for nested parameters (e.g., habitat__date_format)

        Returns
        -------
        PipelineConfig
            New configuration object with updates
        """
        top_level = {}
        nested = {}

        for key, value in kwargs.items():
            if '__' in key:
                component, param = key.split('__', 1)
                nested.setdefault(component, {})[param] = value
            else:
                top_level[key] = value

        for component, updates in nested.items():
            current = getattr(self, component)
            top_level[component] = replace(current, **updates)

        return replace(self, **top_level)

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to a nested dictionary."""
        return asdict(self)

    def to_yaml(self, output_path: Union[str, Path]) -> None:
        """Save configuration to YAML file."""
        config_dict = _convert_paths_to_strings(self.to_dict())

        path = Path(output_path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, 'w') as f:
            yaml.safe_dump(config_dict, f, default_flow_style=False, sort_keys=False)

        logger.info(f"Configuration saved to {path}")

    def to_json(self, output_path: Union[str, Path]) -> None:
        """Save configuration to JSON file."""
        config_dict = _convert_paths_to_strings(self.to_dict())

        path = Path(output_path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, 'w') as f:
            json.dump(config_dict, f, indent=2)

        logger.info(f"Configuration saved to {path}")


# ============================================================================
# Helper Functions
# ============================================================================

def get_default_config() -> PipelineConfig:
    """
    Get default pipeline configuration.

    Examples
    --------
    >>> config = get_default_config()
    >>> print(config.taxonomy.phylum)
    Arthropoda
    """
    return PipelineConfig()


def load_config_from_file(config_path: Union[str, Path]) -> PipelineConfig:
    """
    Load configuration from YAML or JSON file.

    Automatically detects file format based on extension.

    Parameters
    ----------
    config_path : Union[str, Path]
        Path to configuration file (.yaml, .yml, or .json)

    Returns
    -------
    PipelineConfig
        Loaded configuration

    Raises
    ------
    FileNotFoundError
        If configuration file doesn't exist
    ValueError
        If file format is not supported
    """
    path = Path(config_path)

    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    suffix = path.suffix.lower()

    if suffix in ['.yaml', '.yml']:
        with open(path, 'r') as f:
            config_dict = yaml.safe_load(f) or {}
    elif suffix == '.json':
        with open(path, 'r') as f:
            config_dict = json.load(f)
    else:
        raise ValueError(f"Unsupported config file format: {suffix}")

    logger.info(f"Loaded configuration from {path}")
    return _dict_to_config(config_dict)


def _dict_to_config(config_dict: Dict[str, Any]) -> PipelineConfig:
    """Convert a (possibly partial) dictionary to a PipelineConfig object."""
    config_dict = dict(config_dict)
    if config_dict.get('output_dir') is not None:
        config_dict['output_dir'] = Path(config_dict['output_dir'])

    nested_configs = {}

    if 'taxonomy' in config_dict:
        nested_configs['taxonomy'] = TaxonomyFilterConfig(**config_dict.pop('taxonomy'))

    if 'samples' in config_dict:
        nested_configs['samples'] = SampleFilterConfig(**config_dict.pop('samples'))

    if 'habitat' in config_dict:
        nested_configs['habitat'] = HabitatConfig(**config_dict.pop('habitat'))

    if 'visualization' in config_dict:
        nested_configs['visualization'] = VisualizationConfig(**config_dict.pop('visualization'))

    return PipelineConfig(**nested_configs, **config_dict)


def _convert_paths_to_strings(obj: Any) -> Any:
    """Recursively convert Path objects and tuples for serialization."""
    if isinstance(obj, Path):
        return str(obj)
    elif isinstance(obj, dict):
        return {k: _convert_paths_to_strings(v) for k, v in obj.items()}
    elif isinstance(obj, (list, tuple)):
        return [_convert_paths_to_strings(item) for item in obj]
    else:
        return obj


def load_config_from_env() -> Dict[str, Any]:
    """
    Load configuration overrides from environment variables.

    Environment variables should be prefixed with TRAPTIDY_ and use double
    underscores for nesting:

    TRAPTIDY_SAMPLES__MIN_READS=50
    TRAPTIDY_LOG_LEVEL=DEBUG
    TRAPTIDY_VISUALIZATION__FIGURE_FORMAT=png,pdf

    Only variables naming a configuration field are used; others are
    ignored with a warning. List and tuple fields take comma-separated
    values. Mapping fields (e.g. the habitat relabel table) can only be set
    from a configuration file.

    Returns
    -------
    Dict[str, Any]
        Configuration overrides suitable for ``PipelineConfig.update``

    Examples
    --------
    >>> import os
    >>> os.environ['TRAPTIDY_SAMPLES__MIN_READS'] = '50'
    >>> config = get_default_config().update(**load_config_from_env())
    """
    prefix = "TRAPTIDY_"
    defaults = _config_field_defaults()
    overrides = {}

    for key, value in os.environ.items():
        if not key.startswith(prefix):
            continue
        config_key = key[len(prefix):].lower()

        if config_key not in defaults:
            logger.warning(f"Ignoring environment variable {key}: not a configuration field")
            continue

        default = defaults[config_key]
        if isinstance(default, dict):
            logger.warning(f"Ignoring environment variable {key}: set mappings in a config file")
        elif isinstance(default, (list, tuple)):
            items = [v.strip() for v in value.split(',') if v.strip()]
            if isinstance(default, tuple):
                overrides[config_key] = [_parse_env_value(v) for v in items]
            else:
                overrides[config_key] = items
        else:
            overrides[config_key] = _parse_env_value(value)

    if overrides:
        logger.debug(f"Loaded {len(overrides)} configuration overrides from environment")

    return overrides


def _config_field_defaults() -> Dict[str, Any]:
    """Default value of every settable field, keyed as for ``PipelineConfig.update``."""
    defaults = {}
    for name, value in vars(PipelineConfig()).items():
        if is_dataclass(value):
            for sub_name, sub_value in vars(value).items():
                defaults[f"{name}__{sub_name}"] = sub_value
        else:
            defaults[name] = value
    return defaults


def _parse_env_value(value: str) -> Any:
    """Parse environment variable value to appropriate type."""
    if value.lower() in ['true', 'yes']:
        return True
    if value.lower() in ['false', 'no']:
        return False

    try:
        return int(value)
    except ValueError:
        pass

    try:
        return float(value)
    except ValueError:
        pass

    return value


def validate_config(config: PipelineConfig) -> List[str]:
    """
    Validate configuration and return list of warnings.

    Checks for settings that are legal but likely to produce misleading
    results.

    Parameters
    ----------
    config : PipelineConfig
        Configuration to validate

    Returns
    -------
    List[str]
        List of warning messages (empty if no issues)
    """
    warnings = []

    if config.samples.min_reads == 0:
        warnings.append(
            "min_reads is 0; single stray reads will be counted as detections."
        )

    if config.samples.min_reads > 1000:
        warnings.append(
            f"min_reads ({config.samples.min_reads}) is very high; "
            "rare taxa will be removed from richness estimates."
        )

    if not config.taxonomy.spike_in_species:
        warnings.append(
            "No spike-in species configured; sequencing controls will be "
            "counted towards species richness."
        )

    if not config.samples.control_pattern:
        warnings.append(
            "control_pattern is empty; control lysates will not be "
            "excluded."
        )

    if config.ordination_app_url is None:
        warnings.append(
            "ordination_app_url is not set; no link to the ordination app "
            "will be reported."
        )

    return warnings


# ============================================================================
# Configuration Templates
# ============================================================================

def create_config_template(output_path: Union[str, Path], format: str = "yaml") -> None:
    """
    Write the default configuration to a file for editing.

    Parameters
    ----------
    output_path : Union[str, Path]
        Output file path
    format : str
        File format: "yaml" or "json" (default: "yaml")
    """
    config = get_default_config()

    if format.lower() == "yaml":
        config.to_yaml(output_path)
    elif format.lower() == "json":
        config.to_json(output_path)
    else:
        raise ValueError(f"Unsupported format: {format}")

    logger.info(f"Created configuration template: {output_path}")
