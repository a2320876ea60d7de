"""
run_generate.py
===============
CLI entrypoint for the star-catalog generator.

All parameters are optional; unspecified parameters fall back to the defaults
defined in ``CatalogConfig``.

Quick start
-----------
    python run_generate.py

Bob's map (at least 40 Earth-like systems, with an open cluster)::

    python run_generate.py \\
        --n_systems 40 \\
        --earth_like \\
        --cluster \\
        --seed 51966 \\
        --out_dir output

A neighbourhood 8 kpc from the galactic centre, 20 pc above the plane::

    python run_generate.py --n_systems 100 --radial 8000 --vertical 20

Then visualise the result::

    python plot_debug.py
"""

import argparse
import logging
import sys
from typing import List, Optional

from stargen import (
    CatalogConfig,
    CatalogKind,
    ConfigError,
    GalacticOffset,
    StarCatalogGenerator,
    Target,
)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="run_generate.py",
        description=(
            "Star-catalog generator for tabletop world-building.\n"
            "Produces systems.csv and params.json in OUT_DIR."
        ),
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    # ── Sizing ────────────────────────────────────────────────────────────
    p.add_argument(
        "--n_systems", type=int, default=1_000,
        metavar="N",
        help="Number of star systems the region should hold.",
    )
    p.add_argument(
        "--earth_like", action="store_true",
        help="Treat N as the number of systems with Earth-like planets.",
    )
    p.add_argument(
        "--tweak", type=float, default=0.0,
        metavar="T",
        help=(
            "Extra volume per system.  Honoured in (0, 5] with --earth_like "
            "and in (0, 1] otherwise; ignored outside that window."
        ),
    )

    # ── Galactic position ─────────────────────────────────────────────────
    p.add_argument(
        "--radial", type=float, default=None,
        metavar="R",
        help=(
            "Distance from the galactic centre in parsecs (300 to 30000).  "
            "Selects the position-dependent density table."
        ),
    )
    p.add_argument(
        "--vertical", type=float, default=0.0,
        metavar="H",
        help="Distance above/below the galactic plane in parsecs (at most 1250).  "
             "Only used with --radial.",
    )

    # ── Catalog ───────────────────────────────────────────────────────────
    p.add_argument(
        "--kind", choices=[k.value for k in CatalogKind],
        default=CatalogKind.SURVEY.value,
        help="Catalog kind.",
    )
    p.add_argument(
        "--cluster", action="store_true",
        help="Add an open cluster in the outer third of the map.",
    )

    # ── Reproducibility ───────────────────────────────────────────────────
    p.add_argument(
        "--seed", type=int, default=7,
        metavar="S",
        help="Random seed for reproducible output.",
    )

    # ── Output ───────────────────────────────────────────────────────────
    p.add_argument(
        "--out_dir", type=str, default="output",
        metavar="DIR",
        help="Directory to write output files (created if absent).",
    )
    p.add_argument(
        "--verbose", "-v", action="store_true",
        help="Log cluster rolls and per-group counts.",
    )

    return p


def config_from_args(args: argparse.Namespace) -> CatalogConfig:
    offset = None
    if args.radial is not None:
        offset = GalacticOffset(radial=args.radial, vertical=args.vertical)
    return CatalogConfig(
        n_systems       = args.n_systems,
        target          = Target.EARTH_LIKE if args.earth_like else Target.SYSTEMS,
        tweak           = args.tweak,
        galactic_offset = offset,
        kind            = CatalogKind(args.kind),
        add_cluster     = args.cluster,
        seed            = args.seed,
        out_dir         = args.out_dir,
    )


def main(argv: Optional[List[str]] = None) -> None:
    parser = build_parser()
    args   = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(message)s",
        stream=sys.stdout,
    )

    cfg = config_from_args(args)

    # Print config so the user can confirm parameters before waiting
    print("Configuration")
    print("─" * 40)
    for key, value in cfg.to_params().items():
        print(f"  {key:<15} = {value}")
    print()

    try:
        gen = StarCatalogGenerator(cfg)
    except ConfigError as exc:
        parser.error(str(exc))

    systems_df = gen.run()
    gen.save(systems_df)

    # Remind user of next steps
    print(
        f"\nNext steps:\n"
        f"  • Debug plot : python plot_debug.py --out_dir {cfg.out_dir}\n"
        f"  • Spreadsheet: open {cfg.out_dir}/systems.csv"
    )


if __name__ == "__main__":
    main()
