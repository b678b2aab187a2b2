#!/usr/bin/env python3
"""
Land Cover Training Stack Script

Command-line interface for the land cover / NDVI training stack pipeline.
Builds one training stack per year (median Landsat composite with NDVI,
aligned to the MODIS land cover grid) and writes the summary tables used to
compare land cover and vegetation between years.

Usage Examples:
    # Run with default configuration
    python -m land_cover_processing.scripts.run_land_cover_pipeline

    # Run with custom configuration and years
    python -m land_cover_processing.scripts.run_land_cover_pipeline --config custom.yaml --years 2005 2015

    # Override output directory and verbosity
    python -m land_cover_processing.scripts.run_land_cover_pipeline --output-dir /tmp/stacks --log-level DEBUG

Author: Diego Bengochea
"""

import argparse
import sys
from pathlib import Path

# Shared utilities
from shared_utils import get_config_value, load_config, save_config
from shared_utils.central_data_paths_constants import SUMMARY_TABLES_DIR, TRAINING_STACKS_DIR

# Component imports
from land_cover_processing.core.pipeline import LandCoverPipeline


def parse_arguments() -> argparse.Namespace:
    """
    Parse command-line arguments.

    Returns:
        argparse.Namespace: Parsed arguments
    """
    parser = argparse.ArgumentParser(
        description="Land Cover / NDVI Training Stack Pipeline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        '--config', '-c',
        type=str,
        help='Path to configuration file (default: packaged config.yaml)'
    )

    parser.add_argument(
        '--years',
        type=int,
        nargs='+',
        help='Years to process (default: years from configuration)'
    )

    parser.add_argument(
        '--output-dir',
        type=str,
        help='Directory for training stacks and summary tables'
    )

    parser.add_argument(
        '--log-level',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        help='Logging level (default: from configuration)'
    )

    return parser.parse_args()


def validate_arguments(args: argparse.Namespace) -> bool:
    """
    Validate command-line arguments.

    Args:
        args: Parsed arguments

    Returns:
        bool: True if arguments are valid
    """
    if args.config and not Path(args.config).exists():
        print(f"Error: Configuration file does not exist: {args.config}")
        return False

    return True


def main() -> int:
    """
    Main entry point for the training stack script.

    Returns:
        int: Exit code (0 when at least one year succeeded and none failed, 1 otherwise)
    """
    args = parse_arguments()

    if not validate_arguments(args):
        return 1

    config = load_config(args.config, component_name='land_cover_processing')
    if args.log_level:
        config.setdefault('logging', {})['level'] = args.log_level

    pipeline = LandCoverPipeline(config)
    logger = pipeline.logger

    if args.output_dir:
        stacks_dir = Path(args.output_dir)
        tables_dir = stacks_dir
    else:
        stacks_dir = Path(get_config_value(config, 'output.training_stacks_dir', TRAINING_STACKS_DIR))
        tables_dir = Path(get_config_value(config, 'output.tables_dir', SUMMARY_TABLES_DIR))

    try:
        results = pipeline.run_years(args.years)
        written = pipeline.save_outputs(results, stacks_dir, tables_dir)
        save_config(config, stacks_dir / "run_config.yaml")
    except Exception as e:
        logger.error(f"Land cover pipeline failed: {str(e)}")
        return 1

    summary = pipeline.get_processing_summary()
    logger.info("\n" + "=" * 60)
    logger.info("PROCESSING COMPLETED")
    logger.info("=" * 60)
    logger.info(summary)

    for year, result in sorted(results.items()):
        if not result.success:
            logger.error(f"{year}: FAILED ({result.error})")
        elif result.is_empty:
            logger.info(f"{year}: no training stack (no usable scenes)")
        else:
            logger.info(f"{year}: training stack with bands {list(result.stack.data_vars)}")
    logger.info(f"Wrote {len(written)} outputs")

    succeeded = any(result.success for result in results.values())
    failed = any(not result.success for result in results.values())
    return 0 if succeeded and not failed else 1


if __name__ == "__main__":
    sys.exit(main())
