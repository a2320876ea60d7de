"""
plot_debug.py
=============
Matplotlib sanity-check plot for the star-catalog generator.

Shows:
  • Map boundary circle (the generated sphere, projected)
  • Systems projected onto the chosen plane
  • Systems coloured by age, population group, distance, or a flat colour

Usage
-----
    # Default: use ./output/, project onto x-y, colour by age
    python plot_debug.py

    # Colour by population group
    python plot_debug.py --color_by population

    # Side view
    python plot_debug.py --plane xz

    # Save to PNG instead of opening an interactive window
    python plot_debug.py --save catalog.png

    # Save as SVG (vector, scales to any size)
    python plot_debug.py --svg

    # Point at a different output directory
    python plot_debug.py --out_dir my_run
"""

from __future__ import annotations

import argparse
import json
import os
from typing import Optional

import matplotlib.pyplot as plt
import matplotlib.patches as mpatches
from matplotlib.colors import LinearSegmentedColormap, ListedColormap
import numpy as np
import pandas as pd

from stargen import PopulationGroup


_GROUP_COLORS = ["#9ec8ff", "#fff4c8", "#ffc070", "#ff7a50", "#c05050"]


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="plot_debug.py",
        description="Debug visualisation for the star-catalog generator.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    # Output location
    p.add_argument("--out_dir",  default="output",
                   help="Directory containing systems.csv and params.json.")
    p.add_argument("--save",     default=None, metavar="FILE",
                   help="Save figure to FILE (png/pdf/svg) instead of displaying.")
    p.add_argument("--svg",      nargs="?", const="catalog.svg", default=None,
                   metavar="FILE",
                   help="Save figure as SVG (vector format).  "
                        "FILE defaults to 'catalog.svg' when omitted.  "
                        "Overrides --save when both are given.")

    # View
    p.add_argument("--plane", choices=["xy", "xz", "yz"], default="xy",
                   help="Projection plane.")
    p.add_argument("--color_by",
                   choices=["age", "population", "distance", "none"],
                   default="age",
                   help="System colouring scheme.")

    # Node appearance
    p.add_argument("--node_size",  type=float, default=4.0,
                   help="Scatter marker size.")
    p.add_argument("--node_color", default="#aaccff",
                   help="Uniform colour used when --color_by none.")
    p.add_argument("--gradient_low_color",  default="#ffe8c0",
                   help="Gradient colour at low data values.")
    p.add_argument("--gradient_high_color", default="#7a1020",
                   help="Gradient colour at high data values.")

    # Map radius – auto-loaded from params.json when present.
    p.add_argument("--radius", type=float, default=None)

    return p


# ---------------------------------------------------------------------------
# Plot
# ---------------------------------------------------------------------------

def load_systems(out_dir: str) -> pd.DataFrame:
    systems_path = os.path.join(out_dir, "systems.csv")
    if not os.path.exists(systems_path):
        raise FileNotFoundError(
            f"systems.csv not found in '{out_dir}'.  "
            "Run run_generate.py first."
        )
    return pd.read_csv(systems_path)


def resolve_radius(args: argparse.Namespace, systems: pd.DataFrame) -> float:
    """Map radius from --radius, then params.json, then the data itself."""
    if args.radius is not None:
        return float(args.radius)
    params_path = os.path.join(args.out_dir, "params.json")
    if os.path.exists(params_path):
        with open(params_path) as f:
            saved = json.load(f)
        if saved.get("radius"):
            return float(saved["radius"])
    if len(systems) == 0:
        return 1.0
    r = np.sqrt(systems["x"] ** 2 + systems["y"] ** 2 + systems["z"] ** 2)
    return float(r.max())


def draw_catalog(args: argparse.Namespace) -> plt.Figure:
    """Load systems.csv and draw the projected catalog.

    Returns
    -------
    matplotlib Figure
    """
    systems = load_systems(args.out_dir)
    radius  = resolve_radius(args, systems)

    fig, ax = plt.subplots(figsize=(10, 10))
    ax.set_aspect("equal", adjustable="datalim")

    BG = "#09090f"
    ax.set_facecolor(BG)
    fig.patch.set_facecolor(BG)

    margin = radius * 1.08
    ax.set_xlim(-margin, margin)
    ax.set_ylim(-margin, margin)
    ax.autoscale(False)

    # ── Map boundary ──────────────────────────────────────────────────────
    ax.add_patch(plt.Circle(
        (0, 0), radius,
        fill=False, edgecolor="#3a3a5c", linewidth=1.0, linestyle="--", zorder=2,
    ))

    # ── Systems ───────────────────────────────────────────────────────────
    h_axis, v_axis = args.plane[0], args.plane[1]
    # draw the far side first so near systems stay on top
    depth_axis = ({"x", "y", "z"} - {h_axis, v_axis}).pop()
    order = np.argsort(systems[depth_axis].values) if len(systems) else []
    shown = systems.iloc[order]

    grad_cmap = LinearSegmentedColormap.from_list(
        "user_gradient", [args.gradient_low_color, args.gradient_high_color]
    )

    color_by = args.color_by
    vmin_val: Optional[float] = None
    vmax_val: Optional[float] = None
    clabel = None
    if color_by == "age":
        c, cmap, clabel = shown["age"].values, grad_cmap, "Age (Gyr)"
    elif color_by == "distance":
        d = np.sqrt(shown["x"] ** 2 + shown["y"] ** 2 + shown["z"] ** 2)
        c, cmap, clabel = d.values, grad_cmap, "Distance from centre (pc)"
    elif color_by == "population":
        # Anchor to the full enum range so each group keeps its colour
        c, cmap = shown["population"].values, ListedColormap(_GROUP_COLORS)
        vmin_val, vmax_val = -0.5, len(PopulationGroup) - 0.5
    else:
        c, cmap = args.node_color, None

    sc = ax.scatter(
        shown[h_axis].values, shown[v_axis].values,
        c=c, cmap=cmap,
        vmin=vmin_val, vmax=vmax_val,
        s=args.node_size,
        alpha=0.85,
        linewidths=0,
        zorder=6,
    )

    if clabel:
        cbar = plt.colorbar(sc, ax=ax, pad=0.01, fraction=0.03, shrink=0.85)
        cbar.set_label(clabel, color="white", fontsize=9)
        cbar.ax.yaxis.set_tick_params(color="white", labelsize=7)
        plt.setp(plt.getp(cbar.ax.axes, "yticklabels"), color="white")
    ax.set_xlim(-margin, margin)
    ax.set_ylim(-margin, margin)

    # ── Decorations ───────────────────────────────────────────────────────
    ax.set_title(
        f"Star catalog  |  {len(systems):,} systems  |  r = {radius:g} pc",
        color="white", fontsize=11, pad=10,
    )
    ax.set_xlabel(f"{h_axis} (pc)", color="#888899", fontsize=8)
    ax.set_ylabel(f"{v_axis} (pc)", color="#888899", fontsize=8)
    for spine in ax.spines.values():
        spine.set_edgecolor("#2a2a3a")
    ax.tick_params(colors="#555566", labelsize=7)

    legend_patches = [
        mpatches.Patch(facecolor="#3a3a5c", edgecolor="#3a3a5c",
                       label=f"Map boundary (r={radius:g})"),
    ]
    if color_by == "population":
        legend_patches += [
            mpatches.Patch(facecolor=_GROUP_COLORS[g], label=g.label)
            for g in PopulationGroup
        ]
    ax.legend(
        handles=legend_patches,
        loc="upper right",
        fontsize=8,
        facecolor="#111122",
        edgecolor="#333355",
        labelcolor="white",
    )

    return fig


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def main() -> None:
    parser = build_parser()
    args   = parser.parse_args()

    fig = draw_catalog(args)

    if args.svg:
        fig.savefig(args.svg, format="svg", bbox_inches="tight",
                    facecolor=fig.get_facecolor())
        print(f"Saved figure to {args.svg}")
    elif args.save:
        fig.savefig(args.save, dpi=150, bbox_inches="tight",
                    facecolor=fig.get_facecolor())
        print(f"Saved figure to {args.save}")
    else:
        plt.show()


if __name__ == "__main__":
    main()
