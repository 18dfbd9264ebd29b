#!/usr/bin/env python3
"""
TrapTidy Command-Line Interface

Tidies a Malaise-trap metabarcoding survey (species-abundance table plus
trap metadata) and draws the descriptive figures: trap map, richness by
habitat and richness over time.
"""

import argparse
import sys
import time
import logging
from pathlib import Path
from typing import List, Optional

# Local imports
from . import utils, config, core, richness, geographic, visualization

logger = logging.getLogger(__name__)


def run_pipeline(
    abundance_path: Path,
    metadata_path: Path,
    dataset: str,
    output_dir: Path,
    cfg: config.PipelineConfig,
) -> bool:
    """
    Run the tidying pipeline and write the figures.

    Parameters
    ----------
    abundance_path : Path
        Tab-separated species-abundance table
    metadata_path : Path
        Sample metadata table
    dataset : str
        Name used as prefix of the output files
    output_dir : Path
        Output directory
    cfg : config.PipelineConfig
        Pipeline configuration

    Returns
    -------
    bool
        True if successful, False otherwise
    """
    start = time.time()
    logger.info("=" * 80)
    logger.info(f"TrapTidy Pipeline - {dataset}")
    logger.info("=" * 80)
    logger.info(f"Abundance table: {abundance_path}")
    logger.info(f"Sample metadata: {metadata_path}")
    logger.info(f"Output directory: {output_dir}")
    logger.info(f"Started: {utils.get_timestamp()}")
    logger.info("")

    for warning in config.validate_config(cfg):
        logger.warning(f"Configuration: {warning}")

    # ========================================================================
    # PHASE 1: Loading and Tidying
    # ========================================================================
    logger.info("PHASE 1: Loading and Tidying")
    logger.info("-" * 80)

    try:
        results = core.run_pipeline(abundance_path, metadata_path, cfg)
        tidy = results['tidy']
        counts = results['counts']
        logger.info(f"  ✓ {counts['taxa_retained']}/{counts['taxa_input']} taxa passed the taxonomic filter")
        logger.info(
            f"  ✓ {counts['observations_retained']}/{counts['observations_reshaped']} "
            f"observations passed the read and control filters"
        )
        logger.info(f"  ✓ Tidy table: {counts['tidy_rows']} rows")
    except Exception as e:
        logger.error(f"Phase 1 failed: {e}", exc_info=True)
        return False

    if tidy.empty:
        logger.warning("No observations left after filtering; skipping summaries and figures.")
        logger.info(f"Pipeline finished in {utils.format_elapsed_time(time.time() - start)}")
        return True

    # ========================================================================
    # PHASE 2: Richness Summaries
    # ========================================================================
    logger.info("")
    logger.info("PHASE 2: Richness Summaries")
    logger.info("-" * 80)

    try:
        per_sample = richness.richness_per_sample(tidy)
        logger.info(f"  ✓ Richness computed for {len(per_sample)} samples")

        for by in ['habitat', 'month']:
            if by not in per_sample.columns:
                continue
            summary = richness.summarize_richness(per_sample, by=by)
            for _, row in summary.iterrows():
                logger.info(
                    f"    {by}={row[by]}: n={int(row['n_samples'])}, "
                    f"mean richness={row['mean_richness']:.1f}"
                )

        matrix = richness.build_community_matrix(tidy)
        logger.info(f"  ✓ Community matrix: {matrix.shape[0]} samples x {matrix.shape[1]} species")
        if cfg.ordination_app_url:
            logger.info(f"  → Explore NMDS/tSNE/UMAP ordinations at {cfg.ordination_app_url}")
    except Exception as e:
        logger.error(f"Phase 2 failed: {e}", exc_info=True)
        return False

    # ========================================================================
    # PHASE 3: Figures
    # ========================================================================
    logger.info("")
    logger.info("PHASE 3: Figures")
    logger.info("-" * 80)

    viz = cfg.visualization
    fig_dir = output_dir / "figures"
    written: List[Path] = []

    try:
        traps = geographic.trap_locations(tidy)
    except Exception as e:
        logger.warning(f"  ⚠ Could not summarize trap locations (non-critical): {e}")
        traps = None

    for fmt in viz.figure_format:
        figures = []
        if traps is not None:
            figures.append(("trap map", lambda out: visualization.plot_trap_map(
                traps, out,
                figsize=viz.map_figsize,
                dpi=viz.figure_dpi,
                buffer_degrees=viz.map_buffer_degrees,
                use_basemap=viz.use_basemap,
                palette=viz.color_palette,
            ), "trap_map"))
        figures.append(("richness by habitat", lambda out: visualization.plot_richness_by_habitat(
            per_sample, out,
            figsize=viz.boxplot_figsize,
            dpi=viz.figure_dpi,
            palette=viz.color_palette,
            min_points=viz.min_points,
        ), "richness_by_habitat"))
        for period in ['week', 'month']:
            figures.append((f"richness by {period}", lambda out, p=period: visualization.plot_richness_over_time(
                per_sample, out,
                period=p,
                figsize=viz.timeline_figsize,
                dpi=viz.figure_dpi,
                palette=viz.color_palette,
                min_points=viz.min_points,
            ), f"richness_by_{period}"))

        for label, plot, suffix in figures:
            out = utils.safe_file_path(fig_dir, f"{dataset}_{suffix}", fmt)
            try:
                path = plot(out)
                if path is not None:
                    written.append(path)
            except Exception as e:
                logger.warning(f"  ⚠ Failed to draw {label} (non-critical): {e}")

    logger.info(f"  ✓ Wrote {len(written)} figures to {fig_dir}")

    logger.info("")
    logger.info("=" * 80)
    logger.info(f"Pipeline finished in {utils.format_elapsed_time(time.time() - start)}")
    logger.info("=" * 80)
    return True


def main_config_template(argv=None) -> int:
    """Write the default configuration to a file."""
    parser = argparse.ArgumentParser(
        prog="traptidy config-template",
        description="Write the default TrapTidy configuration for editing",
    )
    parser.add_argument(
        'path',
        type=Path,
        help='Output file (.yaml or .json)'
    )
    parser.add_argument(
        '--format',
        choices=['yaml', 'json'],
        default='yaml',
        help='File format (default: yaml)'
    )
    args = parser.parse_args(argv)

    utils.setup_logging(log_level="INFO")
    try:
        config.create_config_template(args.path, format=args.format)
    except OSError as e:
        print(f"Error: Could not write configuration: {e}", file=sys.stderr)
        return 1
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    if argv is None:
        argv = sys.argv[1:]

    # Support subcommands such as:
    #   traptidy config-template traptidy.yaml
    if len(argv) > 0 and argv[0] == "config-template":
        return main_config_template(argv[1:])

    parser = argparse.ArgumentParser(
        prog="traptidy",
        description='TrapTidy: tidy and summarize insect metabarcoding trap surveys',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Basic usage (output directory inferred from the abundance filename)
  traptidy malaise_2022_species_table.tsv trap_metadata.csv

  # Stricter noise threshold and vector figures
  traptidy species.tsv metadata.csv --min-reads 50 --formats png pdf

  # Use a configuration file (see: traptidy config-template)
  traptidy species.tsv metadata.csv --config traptidy.yaml

Notes:
  - Configuration can also be overridden with TRAPTIDY_* environment
    variables, e.g. TRAPTIDY_SAMPLES__MIN_READS=50
  - The trap map uses a cartopy basemap when cartopy is installed
    (pip install traptidy[geo])
        """
    )

    parser.add_argument(
        'abundance',
        type=Path,
        help='Tab-separated species-abundance table'
    )
    parser.add_argument(
        'metadata',
        type=Path,
        help='Sample metadata table (semicolon-separated)'
    )
    parser.add_argument(
        '--output', '--output-dir',
        type=Path,
        default=None,
        dest='output',
        help='Output directory (default: <dataset>_output)'
    )
    parser.add_argument(
        '--config',
        type=Path,
        default=None,
        help='YAML or JSON configuration file'
    )
    parser.add_argument(
        '--min-reads',
        type=int,
        default=None,
        help='Drop readings with this many reads or fewer (default: 20)'
    )
    parser.add_argument(
        '--formats',
        nargs='+',
        choices=['png', 'pdf', 'svg'],
        default=None,
        help='Figure formats (default: png)'
    )
    parser.add_argument(
        '--no-basemap',
        action='store_true',
        help='Draw the trap map without a cartopy basemap'
    )
    parser.add_argument(
        '--log-level',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        default=None,
        help='Logging level (default: INFO)'
    )
    parser.add_argument(
        '--version',
        action='version',
        version='TrapTidy 0.1.0'
    )

    args = parser.parse_args(argv)

    # Validate input files
    for label, path in [("Abundance table", args.abundance), ("Sample metadata", args.metadata)]:
        if not path.exists():
            print(f"Error: {label} not found: {path}", file=sys.stderr)
            return 1

    # Load and configure pipeline
    try:
        if args.config is not None:
            cfg = config.load_config_from_file(args.config)
        else:
            cfg = config.get_default_config()
        cfg = cfg.update(**config.load_config_from_env())

        overrides = {}
        if args.min_reads is not None:
            overrides['samples__min_reads'] = args.min_reads
        if args.formats is not None:
            overrides['visualization__figure_format'] = args.formats
        if args.no_basemap:
            overrides['visualization__use_basemap'] = False
        if args.log_level is not None:
            overrides['log_level'] = args.log_level
        if overrides:
            cfg = cfg.update(**overrides)
    except (OSError, ValueError, TypeError) as e:
        print(f"Error: Invalid configuration: {e}", file=sys.stderr)
        return 1

    dataset = utils.extract_dataset_name(args.abundance)
    if args.output is not None:
        output_dir = args.output
    elif args.config is not None:
        output_dir = cfg.output_dir
    else:
        output_dir = Path(f"{dataset}_output")
    output_dir = utils.create_output_directory(output_dir.resolve())
    cfg = cfg.update(output_dir=output_dir)

    # Setup logging
    log_file = output_dir / f"{dataset}_pipeline.log"
    utils.setup_logging(log_level=cfg.log_level, log_file=str(log_file))

    try:
        success = run_pipeline(
            abundance_path=args.abundance,
            metadata_path=args.metadata,
            dataset=dataset,
            output_dir=output_dir,
            cfg=cfg,
        )

        return 0 if success else 1

    except KeyboardInterrupt:
        print("\n\nPipeline interrupted by user", file=sys.stderr)
        return 130
    except Exception as e:
        logger.error(f"Pipeline failed with error: {e}", exc_info=True)
        print(f"\nError: Pipeline failed. Check log file: {log_file}", file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
