"""
Command line entry point: load or synthesise a sky model and visibility
coordinates, predict the visibilities and optionally write them to disk.
"""

import argparse
import logging
import sys

import numpy as np

from skydft.config import DEVICES, RunConfig, load_config
from skydft.dft.executor import VisibilityPredictor
from skydft.errors import SkyDFTError
from skydft.io import load_sources, load_visibilities, save_visibilities
from skydft.utils.synthetic import generate_sources, generate_visibilities

logger = logging.getLogger(__name__)


def build_parser():
    parser = argparse.ArgumentParser(
        prog="skydft",
        description="Predict visibilities of point sources with a direct Fourier transform",
    )
    parser.add_argument("--config", help="YAML file with RunConfig fields")
    parser.add_argument("--sources", dest="source_file", help="Source text file")
    parser.add_argument(
        "--visibilities", dest="visibility_source_file", help="Visibility text file"
    )
    parser.add_argument(
        "--output", dest="visibility_dest_file", help="Where to write predicted visibilities"
    )
    parser.add_argument("--num-sources", type=int, help="Number of synthetic sources")
    parser.add_argument(
        "--num-visibilities", type=int, help="Number of synthetic visibilities"
    )
    parser.add_argument("--precision", choices=["single", "double"])
    parser.add_argument("--device", choices=DEVICES)
    parser.add_argument("--threads-per-block", dest="max_threads_per_block", type=int)
    parser.add_argument(
        "--zero-w", dest="force_zero_w_term", action="store_true", default=None
    )
    parser.add_argument("--seed", type=int)
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser


def config_from_args(args):
    overrides = {
        key: getattr(args, key)
        for key in (
            "source_file",
            "visibility_source_file",
            "visibility_dest_file",
            "num_sources",
            "num_visibilities",
            "precision",
            "device",
            "max_threads_per_block",
            "force_zero_w_term",
            "seed",
        )
        if getattr(args, key) is not None
    }
    if args.source_file:
        overrides["synthetic_sources"] = False
    if args.visibility_source_file:
        overrides["synthetic_visibilities"] = False

    if args.config:
        return load_config(args.config, **overrides)
    return RunConfig(**overrides)


def run(config):
    """Execute one prediction described by ``config``; returns the intensities."""
    rng = np.random.default_rng(config.seed)

    if config.synthetic_sources or not config.source_file:
        sources = generate_sources(config, rng)
    else:
        sources = load_sources(config.source_file, config)

    if config.synthetic_visibilities or not config.visibility_source_file:
        visibilities = generate_visibilities(config, rng)
    else:
        visibilities = load_visibilities(config.visibility_source_file, config)

    config = config.replace(num_sources=len(sources), num_visibilities=len(visibilities))
    result = VisibilityPredictor(config).run(sources, visibilities)
    logger.info(
        "Predicted %d visibilities in %.3f ms on %s",
        len(result.intensities),
        result.elapsed_ms,
        result.backend,
    )

    if config.visibility_dest_file:
        save_visibilities(config.visibility_dest_file, visibilities, result.intensities, config)

    return result.intensities


def main(argv=None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        run(config_from_args(args))
    except SkyDFTError as exc:
        logger.error("%s", exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
