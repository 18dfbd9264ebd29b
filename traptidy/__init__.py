"""
TrapTidy: Tidying and Summaries for Insect Metabarcoding Trap Surveys

TrapTidy turns the species-abundance table of a Malaise-trap metabarcoding
survey and the accompanying trap metadata into a single tidy observation
table (one row per species x sample with its trap metadata), ready for
richness summaries, maps and ordination.

Core functionality includes:
- Taxonomic and quality filtering (non-arthropods, unclassified labels,
  spike-in species)
- Reshaping per-sample read counts into long observations
- Read-noise and control-sample filtering
- Habitat label normalization and ISO week/month derivation
- Species richness summaries and community matrices
- Trap maps and richness figures
"""

__version__ = "0.1.0"

# Import main modules for easy access
from . import config
from . import utils
from . import metadata
from . import taxonomy
from . import abundance
from . import core
from . import richness
from . import geographic
from . import visualization

__all__ = [
    "config",
    "utils",
    "metadata",
    "taxonomy",
    "abundance",
    "core",
    "richness",
    "geographic",
    "visualization",
]
