"""
stargen.py
==========
Core star-catalog generator for tabletop world-building.

Generates a three-dimensional catalog of star systems for a spherical region
of space, following the stellar population tables from "Architect of Worlds".
Every system carries a stellar population group, an age (billions of years)
and a position (parsecs) relative to the centre of its catalog.

Stages
------
1. Sizing:     pick a density table (Sol-like neighbourhood, or one computed
               from a galactic offset) and derive the region volume / radius
               needed for the requested number of systems.
2. Background: fill the region with the diffuse population of each group.
3. Cluster:    optionally roll an open cluster (binding, age, size,
               evaporation zoning) and merge it in at a translated origin.
4. Sort:       order the catalog by age (then population) for presentation.

Usage (importable)
------------------
    from stargen import CatalogConfig, StarCatalogGenerator
    cfg = CatalogConfig(n_systems=1000, seed=7)
    gen = StarCatalogGenerator(cfg)
    systems_df = gen.run()

Usage (script, uses all defaults)
---------------------------------
    python stargen.py
"""

from __future__ import annotations

import dataclasses
import enum
import json
import logging
import math
import os
from typing import Dict, Iterator, List, Optional, Tuple, Union

import numpy as np
import pandas as pd


log = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class StarGenError(Exception):
    """Base class for all generator errors."""


class ConfigError(StarGenError, ValueError):
    """The generator configuration is invalid."""


class MissingRandomSourceError(ConfigError):
    def __init__(self) -> None:
        super().__init__("random source cannot be None")


class OffsetTooSmallError(ConfigError):
    def __init__(self, radial: float) -> None:
        super().__init__(
            f"galactic neighborhood offset too small: |radial|={radial:g} "
            f"(minimum {MIN_RADIAL_OFFSET:g} pc)"
        )


class OffsetTooLargeError(ConfigError):
    def __init__(self, what: str, value: float, limit: float) -> None:
        super().__init__(
            f"galactic neighborhood offset too large: |{what}|={value:g} "
            f"(maximum {limit:g} pc)"
        )


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

MIN_RADIAL_OFFSET   = 300.0      # parsecs from the galactic centre
MAX_RADIAL_OFFSET   = 30_000.0
MAX_VERTICAL_OFFSET = 1_250.0    # parsecs above / below the galactic plane


class CatalogKind(enum.Enum):
    SURVEY    = "survey"       # every system in the region
    REFERENCE = "reference"    # only "interesting" systems are mapped


class Target(enum.Enum):
    """What ``CatalogConfig.n_systems`` counts."""

    SYSTEMS    = "systems"      # total star systems
    EARTH_LIKE = "earth_like"   # systems with Earth-like planets


@dataclasses.dataclass(frozen=True)
class GalacticOffset:
    """Position of the mapped neighbourhood within the galaxy.

    radial   : distance from the galactic centre along the plane (parsecs)
    vertical : distance above or below the galactic plane (parsecs)

    Signs are irrelevant; only magnitudes are used.
    """

    radial: float
    vertical: float = 0.0

    def validate(self) -> None:
        r, h = abs(self.radial), abs(self.vertical)
        # written as "not inside" so NaN is rejected too
        if not MIN_RADIAL_OFFSET <= r:
            raise OffsetTooSmallError(r)
        if not r <= MAX_RADIAL_OFFSET:
            raise OffsetTooLargeError("radial", r, MAX_RADIAL_OFFSET)
        if not h <= MAX_VERTICAL_OFFSET:
            raise OffsetTooLargeError("vertical", h, MAX_VERTICAL_OFFSET)


@dataclasses.dataclass
class CatalogConfig:
    """All tunable parameters for catalog generation.

    Sizing
    ------
    ``n_systems`` is the number of systems the region should statistically
    hold.  With ``target=Target.EARTH_LIKE`` it counts systems with
    Earth-like planets instead, which yields a much larger region.  Setting
    ``galactic_offset`` switches to the position-dependent density table and
    overrides ``target``.

    ``tweak`` enlarges the volume per system.  It is only honoured inside
    (0, 5] for Earth-like sizing and (0, 1] otherwise; anything else is
    ignored.
    """

    # ---- sizing ----
    n_systems: int = 1_000
    target: Target = Target.SYSTEMS
    tweak: float = 0.0
    galactic_offset: Optional[GalacticOffset] = None

    # ---- catalog ----
    kind: CatalogKind = CatalogKind.SURVEY
    add_cluster: bool = False

    # ---- reproducibility ----
    # int seed, or an already-constructed numpy Generator
    seed: Union[int, np.random.Generator, None] = 7

    # ---- output ----
    out_dir: str = "output"

    def to_params(self) -> dict:
        """Plain-JSON view of the configuration (written as params.json)."""
        offset = self.galactic_offset
        return {
            "n_systems":  self.n_systems,
            "target":     self.target.value,
            "tweak":      self.tweak,
            "radial":     None if offset is None else offset.radial,
            "vertical":   None if offset is None else offset.vertical,
            "kind":       self.kind.value,
            "add_cluster": self.add_cluster,
            "seed":       self.seed if isinstance(self.seed, int) else None,
            "out_dir":    self.out_dir,
        }


# ---------------------------------------------------------------------------
# Geometry helpers
# ---------------------------------------------------------------------------

@dataclasses.dataclass(frozen=True)
class Coordinates:
    """Cartesian position in parsecs."""

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    @classmethod
    def from_vector(cls, v: np.ndarray) -> "Coordinates":
        return cls(float(v[0]), float(v[1]), float(v[2]))

    def to_vector(self) -> np.ndarray:
        return np.array([self.x, self.y, self.z], dtype=np.float64)

    def scale(self, s: float) -> "Coordinates":
        return Coordinates(self.x * s, self.y * s, self.z * s)

    def translate(self, offset: "Coordinates") -> "Coordinates":
        return Coordinates(self.x + offset.x, self.y + offset.y, self.z + offset.z)

    def distance_to(self, other: "Coordinates") -> float:
        dx, dy, dz = other.x - self.x, other.y - self.y, other.z - self.z
        return math.sqrt(dx * dx + dy * dy + dz * dz)

    def __str__(self) -> str:
        return f"({self.x:.2f} {self.y:.2f} {self.z:.2f})"


ORIGIN = Coordinates()


def spherical_to_cartesian(
    r: np.ndarray, inclination: np.ndarray, azimuth: np.ndarray
) -> np.ndarray:
    """Convert spherical samples to an ``(N, 3)`` array of Cartesian points.

    ``inclination`` is measured from the +z axis, ``azimuth`` in the x-y plane.
    """
    sin_inc = np.sin(inclination)
    return np.column_stack([
        r * sin_inc * np.cos(azimuth),
        r * sin_inc * np.sin(azimuth),
        r * np.cos(inclination),
    ])


# ---------------------------------------------------------------------------
# Random source
# ---------------------------------------------------------------------------

# spread (percent) -> (number of d6, base factor).  The dice sum over 100 is
# added to the base so the result spans exactly value * (1 ± spread/100).
_VARIANCE_DICE: Dict[int, Tuple[int, float]] = {
    5:  (2, 0.93),
    10: (4, 0.86),
}


class Dice:
    """Seeded random source with tabletop-style helpers.

    Wraps a ``numpy.random.Generator``.  One instance must be used by one
    generator at a time; give concurrent catalogs their own ``Dice`` to keep
    them reproducible.

    Parameters
    ----------
    seed : int or numpy.random.Generator
        An int is passed to ``numpy.random.default_rng``; a Generator is used
        as-is.
    """

    def __init__(self, seed: Union[int, np.random.Generator]) -> None:
        if seed is None:
            raise MissingRandomSourceError()
        if isinstance(seed, np.random.Generator):
            self._rng = seed
        else:
            self._rng = np.random.default_rng(seed)

    # ---- dice ----

    def roll_d6(self, n: int, size: Optional[int] = None):
        """Sum of ``n`` six-sided dice, as a float (or an array of ``size`` sums)."""
        return self._roll(6, n, size)

    def roll_d10(self, n: int, size: Optional[int] = None):
        """Sum of ``n`` ten-sided dice, as a float (or an array of ``size`` sums)."""
        return self._roll(10, n, size)

    def _roll(self, sides: int, n: int, size: Optional[int]):
        if size is None:
            if n <= 0:
                return 0.0
            return float(self._rng.integers(1, sides + 1, size=n).sum())
        if n <= 0:
            return np.zeros(size, dtype=np.float64)
        rolls = self._rng.integers(1, sides + 1, size=(size, n))
        return rolls.sum(axis=1).astype(np.float64)

    def roll_d100(self) -> int:
        """Integer in 1..100."""
        return int(self._rng.integers(1, 101))

    def roll_percentile(self, size: Optional[int] = None):
        """Uniform float in [0, 1) (or an array of ``size`` of them)."""
        if size is None:
            return float(self._rng.random())
        return self._rng.random(size)

    # ---- variance ----

    def vary_by_percent(self, value, spread: int, size: Optional[int] = None):
        """Return ``value`` varied by up to ±``spread`` percent.

        Only the 5 and 10 percent spreads have dice defined for them.
        """
        try:
            n_dice, base = _VARIANCE_DICE[spread]
        except KeyError:
            raise ValueError(
                f"no variance dice defined for a {spread}% spread "
                f"(choose from {sorted(_VARIANCE_DICE)})"
            ) from None
        return value * (base + self.roll_d6(n_dice, size) / 100.0)

    def vary_5pct(self, value, size: Optional[int] = None):
        return self.vary_by_percent(value, 5, size)

    def vary_10pct(self, value, size: Optional[int] = None):
        return self.vary_by_percent(value, 10, size)

    def vary_by_fraction(self, value: float, fraction: float) -> float:
        """Perturb ``value`` by a 3d6 bell centred on 10.5, scaled by ``fraction``.

        Result lies in ``value ± value * fraction / 2``.
        """
        return value + (value * (self.roll_d6(3) - 10.5) / 15.0) * fraction

    # ---- spatial sampling ----

    def unit_sphere_points(self, count: int) -> np.ndarray:
        """``(count, 3)`` points uniform by volume inside the unit sphere.

        Radius uses the inverse CDF ``cbrt(U)`` and inclination
        ``acos(2U - 1)`` so there is no clustering at the centre or the poles.
        """
        r = np.cbrt(self._rng.random(count))
        inclination = np.arccos(2.0 * self._rng.random(count) - 1.0)
        azimuth = self._rng.uniform(0.0, 2.0 * math.pi, count)
        return spherical_to_cartesian(r, inclination, azimuth)

    def shell_points(
        self, count: int, min_fraction: float, max_fraction: float
    ) -> np.ndarray:
        """``(count, 3)`` points uniform by volume in the shell [min, max].

        Bounds are fractions of the unit radius; ``min_fraction`` must not
        exceed ``max_fraction``.
        """
        lo3 = min_fraction ** 3
        hi3 = max_fraction ** 3
        r = np.cbrt(self._rng.random(count) * (hi3 - lo3) + lo3)
        inclination = np.arccos(2.0 * self._rng.random(count) - 1.0)
        azimuth = self._rng.uniform(0.0, 2.0 * math.pi, count)
        return spherical_to_cartesian(r, inclination, azimuth)

    def unit_sphere(self) -> Coordinates:
        return Coordinates.from_vector(self.unit_sphere_points(1)[0])

    def shell(self, min_fraction: float, max_fraction: float) -> Coordinates:
        return Coordinates.from_vector(
            self.shell_points(1, min_fraction, max_fraction)[0]
        )


# ---------------------------------------------------------------------------
# Stellar population density
# ---------------------------------------------------------------------------

class PopulationGroup(enum.IntEnum):
    """Stellar population groups, youngest tier first.

    Integer order is the tie-break when sorting systems of equal age.
    """

    YOUNG_I        = 0
    INTERMEDIATE_I = 1
    OLD_I          = 2
    DISK_II        = 3
    HALO_II        = 4

    @property
    def label(self) -> str:
        return _GROUP_LABELS[self]

    @classmethod
    def from_label(cls, label: str) -> "PopulationGroup":
        for group, text in _GROUP_LABELS.items():
            if text == label:
                return group
        raise ValueError(f"unknown population group {label!r}")


_GROUP_LABELS = {
    PopulationGroup.YOUNG_I:        "Young-I",
    PopulationGroup.INTERMEDIATE_I: "Intermediate-I",
    PopulationGroup.OLD_I:          "Old-I",
    PopulationGroup.DISK_II:        "Disk-II",
    PopulationGroup.HALO_II:        "Halo-II",
}

# group -> (base age, age range), billions of years
_GROUP_AGES = {
    PopulationGroup.YOUNG_I:        (0.0, 2.0),
    PopulationGroup.INTERMEDIATE_I: (2.0, 3.0),
    PopulationGroup.OLD_I:          (5.0, 3.0),
    PopulationGroup.DISK_II:        (8.0, 1.5),
    PopulationGroup.HALO_II:        (9.5, 3.0),
}

# Sol's neighbourhood, systems per cubic parsec
_REFERENCE_DENSITY = {
    PopulationGroup.YOUNG_I:        0.0344,
    PopulationGroup.INTERMEDIATE_I: 0.0272,
    PopulationGroup.OLD_I:          0.0158,
    PopulationGroup.DISK_II:        0.00339,
    PopulationGroup.HALO_II:        0.000339,
}
_REFERENCE_COMBINED_DENSITY = 0.081129

# group -> (coefficient, vertical scale height in parsecs)
_POSITION_DENSITY = {
    PopulationGroup.YOUNG_I:        (0.373,   200.0),
    PopulationGroup.INTERMEDIATE_I: (0.280,   400.0),
    PopulationGroup.OLD_I:          (0.160,   700.0),
    PopulationGroup.DISK_II:        (0.0339,  1_000.0),
    PopulationGroup.HALO_II:        (0.00339, 2_000.0),
}
RADIAL_SCALE_LENGTH = 3_500.0


@dataclasses.dataclass(frozen=True)
class GroupDensity:
    density: float     # systems per cubic parsec
    base_age: float    # billions of years
    age_range: float


@dataclasses.dataclass(frozen=True)
class DensityTable:
    """Per-group density and age ranges for one neighbourhood."""

    groups: Dict[PopulationGroup, GroupDensity]
    combined_density: float

    def __getitem__(self, group: PopulationGroup) -> GroupDensity:
        return self.groups[group]

    def items(self) -> Iterator[Tuple[PopulationGroup, GroupDensity]]:
        """Groups in enum order."""
        for group in PopulationGroup:
            yield group, self.groups[group]


def reference_density() -> DensityTable:
    """Density table calibrated to Sol's neighbourhood."""
    groups = {
        g: GroupDensity(_REFERENCE_DENSITY[g], *_GROUP_AGES[g])
        for g in PopulationGroup
    }
    return DensityTable(groups, _REFERENCE_COMBINED_DENSITY)


def position_density(radial: float, vertical: float) -> DensityTable:
    """Density table for a neighbourhood elsewhere in the galaxy.

    Each group decays exponentially with distance from the galactic centre
    (scale length 3500 pc) and with height above the plane (scale height
    per group).

    Parameters
    ----------
    radial   : distance from the galactic centre in parsecs (sign ignored)
    vertical : distance above or below the plane in parsecs (sign ignored)
    """
    radial = abs(radial)
    vertical = abs(vertical)
    radial_falloff = math.exp(-radial / RADIAL_SCALE_LENGTH)
    groups = {}
    for g in PopulationGroup:
        coefficient, scale_height = _POSITION_DENSITY[g]
        density = coefficient * radial_falloff * math.exp(-vertical / scale_height)
        groups[g] = GroupDensity(density, *_GROUP_AGES[g])
    combined = sum(gd.density for gd in groups.values())
    return DensityTable(groups, combined)


# ---------------------------------------------------------------------------
# Volume sizing
# ---------------------------------------------------------------------------

CUBIC_PARSECS_PER_SOL_LIKE_SYSTEM = 150.0
CUBIC_PARSECS_PER_STAR_SYSTEM     = 12.0


def radius_for_volume(volume: float) -> float:
    """Radius (parsecs) of the smallest whole-parsec sphere holding ``volume``."""
    return float(math.ceil(np.cbrt(3.0 * volume / (4.0 * math.pi))))


@dataclasses.dataclass(frozen=True)
class PopulationModel:
    """A density table plus the region volume sized for it."""

    density: DensityTable
    volume: float    # cubic parsecs

    @property
    def radius(self) -> float:
        return radius_for_volume(self.volume)


def volume_for_earth_like(n: int, tweak: float = 0.0) -> float:
    """Smallest volume likely to hold ``n`` systems with Earth-like planets.

    ``tweak`` is added to the 150 pc³ per Sol-like system when 0 < tweak <= 5.
    """
    per_system = CUBIC_PARSECS_PER_SOL_LIKE_SYSTEM
    if 0 < tweak <= 5:
        per_system += tweak
    return float(n) * 2.0 * per_system


def volume_for_reference_neighborhood(n: int, tweak: float = 0.0) -> float:
    """Smallest volume likely to hold ``n`` systems in a Sol-like neighbourhood.

    ``tweak`` is added to the 12 pc³ per system when 0 < tweak <= 1.
    """
    per_system = CUBIC_PARSECS_PER_STAR_SYSTEM
    if 0 < tweak <= 1:
        per_system += tweak
    return float(n) * per_system


def _volume_for_density(n: int, table: DensityTable, tweak: float) -> float:
    # Densities underflow to zero beyond ~2.6e6 pc from the centre, far
    # outside the offsets GalacticOffset accepts.
    if not table.combined_density > 0.0:
        raise ValueError(
            f"combined density {table.combined_density!r} is not positive; "
            "the neighbourhood is too far from the galactic centre to size"
        )
    per_system = 1.0 / table.combined_density
    if 0 < tweak <= 1:
        per_system += per_system * tweak
    return float(n) * per_system


def volume_for_position(
    n: int, radial: float, vertical: float, tweak: float = 0.0
) -> float:
    """Smallest volume likely to hold ``n`` systems at a galactic offset.

    ``tweak`` scales the volume per system by (1 + tweak) when 0 < tweak <= 1.
    Defined while some group density is still representable, i.e. for
    |radial| up to roughly 2.6e6 pc; beyond that ``ValueError`` is raised.
    """
    table = position_density(radial, vertical)
    return _volume_for_density(n, table, tweak)


def population_model_for_earth_like(n: int, tweak: float = 0.0) -> PopulationModel:
    return PopulationModel(reference_density(), volume_for_earth_like(n, tweak))


def population_model_for_reference_neighborhood(
    n: int, tweak: float = 0.0
) -> PopulationModel:
    return PopulationModel(
        reference_density(), volume_for_reference_neighborhood(n, tweak)
    )


def population_model_for_position(
    n: int, radial: float, vertical: float, tweak: float = 0.0
) -> PopulationModel:
    table = position_density(radial, vertical)
    return PopulationModel(table, _volume_for_density(n, table, tweak))


# ---------------------------------------------------------------------------
# Star systems and catalogs
# ---------------------------------------------------------------------------

@dataclasses.dataclass
class StarSystem:
    population: PopulationGroup
    age: float                  # billions of years
    coordinates: Coordinates    # relative to the catalog origin
    # scratch value written by Catalog.sort_by_distance
    distance: float = dataclasses.field(default=0.0, compare=False, repr=False)


FRAME_COLUMNS = ["id", "population", "label", "age", "x", "y", "z", "distance"]


@dataclasses.dataclass
class Catalog:
    """Ordered collection of star systems.

    Coordinates of the systems are relative to ``origin``; ``radius`` is the
    declared extent of the region the catalog was generated for.
    """

    systems: List[StarSystem] = dataclasses.field(default_factory=list)
    kind: CatalogKind = CatalogKind.SURVEY
    radius: float = 0.0
    origin: Coordinates = ORIGIN

    def __len__(self) -> int:
        return len(self.systems)

    def __iter__(self) -> Iterator[StarSystem]:
        return iter(self.systems)

    def merge(self, other: "Catalog", offset: Coordinates) -> None:
        """Append translated copies of ``other``'s systems; ``other`` is untouched."""
        for ss in other.systems:
            self.systems.append(StarSystem(
                population=ss.population,
                age=ss.age,
                coordinates=ss.coordinates.translate(offset),
            ))

    def sort_by_age(self) -> None:
        """Ascending age, ties broken by population group order."""
        self.systems.sort(key=lambda ss: (ss.age, ss.population))

    def sort_by_distance(self, origin: Coordinates = ORIGIN) -> None:
        """Ascending distance from ``origin`` (stored on each system)."""
        for ss in self.systems:
            ss.distance = ss.coordinates.distance_to(origin)
        self.systems.sort(key=lambda ss: ss.distance)

    def population_counts(self) -> Dict[PopulationGroup, int]:
        counts = {g: 0 for g in PopulationGroup}
        for ss in self.systems:
            counts[ss.population] += 1
        return counts

    def to_frame(self) -> pd.DataFrame:
        """One row per system, in catalog order."""
        n = len(self.systems)
        if n == 0:
            return pd.DataFrame(columns=FRAME_COLUMNS)
        xyz = np.array(
            [[ss.coordinates.x, ss.coordinates.y, ss.coordinates.z]
             for ss in self.systems],
            dtype=np.float64,
        )
        return pd.DataFrame({
            "id":         np.arange(n, dtype=np.int64),
            "population": np.array([int(ss.population) for ss in self.systems],
                                   dtype=np.int64),
            "label":      [ss.population.label for ss in self.systems],
            "age":        np.array([ss.age for ss in self.systems]),
            "x":          xyz[:, 0],
            "y":          xyz[:, 1],
            "z":          xyz[:, 2],
            "distance":   np.array([ss.distance for ss in self.systems]),
        })

    @classmethod
    def from_frame(
        cls,
        df: pd.DataFrame,
        kind: CatalogKind = CatalogKind.SURVEY,
        radius: float = 0.0,
        origin: Coordinates = ORIGIN,
    ) -> "Catalog":
        """Rebuild a catalog from a ``to_frame()`` table (e.g. read from CSV)."""
        systems = []
        for row in df.itertuples(index=False):
            ss = StarSystem(
                population=PopulationGroup(int(row.population)),
                age=float(row.age),
                coordinates=Coordinates(float(row.x), float(row.y), float(row.z)),
            )
            if hasattr(row, "distance"):
                ss.distance = float(row.distance)
            systems.append(ss)
        return cls(systems=systems, kind=kind, radius=radius, origin=origin)


# ---------------------------------------------------------------------------
# Background population
# ---------------------------------------------------------------------------

def background_population(
    model: PopulationModel,
    dice: Dice,
    kind: CatalogKind = CatalogKind.SURVEY,
) -> Catalog:
    """Fill the model's sphere with the diffuse population of every group.

    Each group contributes ``ceil(density * volume ± 10%)`` systems with ages
    uniform over the group's range and positions uniform over the sphere.
    """
    radius = model.radius
    catalog = Catalog(kind=kind, radius=radius)

    for group, gd in model.density.items():
        count = int(math.ceil(dice.vary_10pct(gd.density * model.volume)))
        ages = gd.base_age + gd.age_range * dice.roll_percentile(count)
        xyz = dice.unit_sphere_points(count) * radius
        for age, (x, y, z) in zip(ages, xyz):
            catalog.systems.append(StarSystem(
                population=group,
                age=float(age),
                coordinates=Coordinates(float(x), float(y), float(z)),
            ))
        log.debug("  %-15s %5d systems", group.label, count)

    return catalog


# ---------------------------------------------------------------------------
# Open clusters
# ---------------------------------------------------------------------------

# Cumulative d100 thresholds -> (base age, age range) in billions of years.
_TIGHT_CLUSTER_AGES = [
    (2,   0.0, 0.1),
    (4,   0.1, 0.1),
    (6,   0.2, 0.1),
    (8,   0.3, 0.1),
    (10,  0.4, 0.1),
    (12,  0.5, 0.1),
    (14,  0.6, 0.1),
    (16,  0.7, 0.1),
    (18,  0.8, 0.1),
    (20,  0.9, 0.1),
    (45,  1.0, 2.0),
    (100, 3.0, 5.0),
]
_LOOSE_CLUSTER_AGES = [
    (21,  0.0, 0.1),
    (38,  0.1, 0.1),
    (52,  0.2, 0.1),
    (64,  0.3, 0.1),
    (73,  0.4, 0.1),
    (81,  0.5, 0.1),
    (87,  0.6, 0.1),
    (92,  0.7, 0.1),
    (96,  0.8, 0.1),
    (100, 0.9, 0.1),
]

# Cluster evaporation: effective age upper bound -> (core, tidal, halo)
# fractions of the original membership still found in each zone.
_EVAPORATION = [
    (0.1,      (1.00, 0.00, 0.00)),
    (0.2,      (0.80, 0.20, 0.00)),
    (0.3,      (0.64, 0.32, 0.04)),
    (0.4,      (0.51, 0.38, 0.10)),
    (0.5,      (0.41, 0.41, 0.15)),
    (0.6,      (0.33, 0.41, 0.20)),
    (0.7,      (0.26, 0.39, 0.25)),
    (0.8,      (0.21, 0.37, 0.28)),
    (0.9,      (0.17, 0.33, 0.29)),
    (1.0,      (0.13, 0.30, 0.30)),
    (math.inf, (0.11, 0.27, 0.30)),
]

# zone -> shell bounds as fractions of the cluster radius
CORE_ZONE          = (0.00, 0.05)
TIDAL_ZONE         = (0.05, 0.20)
EXTENDED_HALO_ZONE = (0.20, 1.00)


def roll_tightly_bound(dice: Dice) -> bool:
    return dice.roll_d6(3) <= 5


def roll_cluster_age(dice: Dice, tightly_bound: bool) -> float:
    """Cluster age in billions of years."""
    table = _TIGHT_CLUSTER_AGES if tightly_bound else _LOOSE_CLUSTER_AGES
    roll = dice.roll_d100()
    for threshold, base, spread in table:
        if roll <= threshold:
            return base + spread * dice.roll_percentile()
    raise AssertionError(f"d100 roll {roll} fell outside the age table")


def population_for_age(age: float) -> PopulationGroup:
    if age < 2.0:
        return PopulationGroup.YOUNG_I
    if age < 5.0:
        return PopulationGroup.INTERMEDIATE_I
    return PopulationGroup.OLD_I


def roll_cluster_radius(dice: Dice) -> float:
    """Cluster radius in parsecs, give or take a fraction of a parsec."""
    radius = dice.roll_d6(2) / 2.0
    return radius + (dice.vary_by_fraction(1.0, 0.25) - 1.0)


def roll_cluster_size(dice: Dice, tightly_bound: bool, radius: float) -> int:
    """Initial number of member systems, before evaporation."""
    density = dice.roll_d6(2) / 2.0
    if tightly_bound and density < 3.5:
        density = 3.5
    return int(math.floor(density * radius ** 3))


def effective_cluster_age(age: float, tightly_bound: bool) -> float:
    """Age used for the evaporation lookup; tight clusters evaporate slower."""
    return age / 10.0 if tightly_bound else age


def evaporation_zones(effective_age: float) -> Tuple[float, float, float]:
    """(core, tidal, halo) membership fractions for an effective age."""
    for upper, zones in _EVAPORATION:
        if effective_age < upper:
            return zones
    return _EVAPORATION[-1][1]


def zone_counts(
    total: int, zones: Tuple[float, float, float]
) -> Tuple[int, int, int]:
    """Split ``total`` members across the zones.

    Each share is floored; when that leaves the zones short of ``total`` the
    core gets one more, then (if still short) the tidal zone.  The halo is
    never topped up.
    """
    core_pct, tidal_pct, halo_pct = zones
    core = int(core_pct * total)
    tidal = int(tidal_pct * total)
    halo = int(halo_pct * total)
    if core + tidal + halo < total:
        core += 1
        if core + tidal + halo < total:
            tidal += 1
    return core, tidal, halo


def open_cluster(
    dice: Dice,
    kind: CatalogKind = CatalogKind.SURVEY,
    origin: Coordinates = ORIGIN,
) -> Catalog:
    """Roll an open cluster and return it as its own catalog.

    Member coordinates are relative to the cluster centre; ``origin`` is only
    recorded on the catalog so callers know where to merge it.
    """
    tightly_bound = roll_tightly_bound(dice)
    age = roll_cluster_age(dice, tightly_bound)
    population = population_for_age(age)
    radius = roll_cluster_radius(dice)
    size = roll_cluster_size(dice, tightly_bound, radius)
    effective_age = effective_cluster_age(age, tightly_bound)
    zones = evaporation_zones(effective_age)
    counts = zone_counts(size, zones)

    log.debug(
        "cluster: tight=%s age=%.3f (effective %.3f) radius=%.3f size=%d",
        tightly_bound, age, effective_age, radius, size,
    )
    log.debug("cluster zones: core=%d tidal=%d halo=%d", *counts)

    catalog = Catalog(kind=kind, radius=radius, origin=origin)
    for (lo, hi), count in zip((CORE_ZONE, TIDAL_ZONE, EXTENDED_HALO_ZONE), counts):
        if count <= 0:
            continue
        ages = dice.vary_5pct(age, size=count)
        xyz = dice.shell_points(count, lo, hi) * radius
        for member_age, (x, y, z) in zip(ages, xyz):
            catalog.systems.append(StarSystem(
                population=population,
                age=float(member_age),
                coordinates=Coordinates(float(x), float(y), float(z)),
            ))
    return catalog


def stellar_association(
    dice: Dice,
    kind: CatalogKind = CatalogKind.SURVEY,
    origin: Coordinates = ORIGIN,
) -> Catalog:
    # Associations are rolled on the open-cluster tables for now.
    return open_cluster(dice, kind, origin)


# ---------------------------------------------------------------------------
# Main generator class
# ---------------------------------------------------------------------------

class StarCatalogGenerator:
    """Config-driven generator for a spherical star catalog.

    Parameters
    ----------
    cfg : CatalogConfig
        All tunable parameters.

    Raises
    ------
    ConfigError
        If the random source is missing or the galactic offset is out of
        bounds.  No generator is created in that case.
    """

    def __init__(self, cfg: CatalogConfig) -> None:
        if cfg.galactic_offset is not None:
            cfg.galactic_offset.validate()
        self.cfg = cfg
        self._dice = Dice(cfg.seed)
        self.model = self._build_model()
        self.catalog: Optional[Catalog] = None
        self._clusters = 0

    def _build_model(self) -> PopulationModel:
        cfg = self.cfg
        if cfg.galactic_offset is not None:
            off = cfg.galactic_offset
            return population_model_for_position(
                cfg.n_systems, off.radial, off.vertical, cfg.tweak
            )
        if cfg.target is Target.EARTH_LIKE:
            return population_model_for_earth_like(cfg.n_systems, cfg.tweak)
        return population_model_for_reference_neighborhood(cfg.n_systems, cfg.tweak)

    @property
    def dice(self) -> Dice:
        return self._dice

    @property
    def radius(self) -> float:
        """Radius of the mapped region in parsecs."""
        return self.model.radius

    # ------------------------------------------------------------------
    # Coordinates scaled to the map
    # ------------------------------------------------------------------

    def gen_xyz(self) -> Coordinates:
        return self._dice.unit_sphere().scale(self.radius)

    def gen_zoned_xyz(self, min_fraction: float, max_fraction: float) -> Coordinates:
        return self._dice.shell(min_fraction, max_fraction).scale(self.radius)

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def background_population(self) -> Catalog:
        """Generate (or regenerate) the main catalog's background population."""
        log.info(
            "Background population: volume %.1f pc^3, radius %.0f pc, "
            "combined density %.6f",
            self.model.volume, self.radius, self.model.density.combined_density,
        )
        self.catalog = background_population(self.model, self._dice, self.cfg.kind)
        log.info("  %d systems generated", len(self.catalog))
        return self.catalog

    def open_cluster(self, origin: Coordinates = ORIGIN) -> Catalog:
        """Roll a standalone cluster catalog centred on ``origin``."""
        return open_cluster(self._dice, self.cfg.kind, origin)

    def stellar_association(self, origin: Coordinates = ORIGIN) -> Catalog:
        return stellar_association(self._dice, self.cfg.kind, origin)

    def add_open_cluster(self, origin: Optional[Coordinates] = None) -> Catalog:
        """Roll a cluster and merge it into the main catalog.

        Without an explicit ``origin`` the cluster is placed in the outer
        third of the map.  Returns the cluster catalog.
        """
        if self.catalog is None:
            self.catalog = Catalog(kind=self.cfg.kind, radius=self.radius)
        if origin is None:
            origin = self.gen_zoned_xyz(2.0 / 3.0, 1.0)
        cluster = self.open_cluster(origin)
        self.catalog.merge(cluster, origin)
        self._clusters += 1
        log.info(
            "Open cluster: %d systems, radius %.2f pc, at %s",
            len(cluster), cluster.radius, origin,
        )
        return cluster

    def sort_catalog(self) -> None:
        if self.catalog is not None:
            self.catalog.sort_by_age()

    # ------------------------------------------------------------------
    # Summary
    # ------------------------------------------------------------------

    def _run_checks(self) -> None:
        """Log a summary of the generated catalog."""
        catalog = self.catalog
        counts = catalog.population_counts()
        log.info("Catalog: %d systems in a %.0f pc sphere", len(catalog), self.radius)
        for group, count in counts.items():
            log.info("  %-15s %6d", group.label, count)

        if len(catalog) == 0:
            return
        frame = catalog.to_frame()
        r = np.sqrt(frame["x"] ** 2 + frame["y"] ** 2 + frame["z"] ** 2)
        outside = int((r > self.radius + 1e-6).sum())
        if not outside:
            return
        # only cluster halos may poke past the edge of the map
        if self._clusters:
            log.info("  %d systems lie beyond the map radius", outside)
        else:
            log.warning(
                "%d background systems lie beyond the map radius of %.0f pc",
                outside, self.radius,
            )

    # ------------------------------------------------------------------
    # Main entry point
    # ------------------------------------------------------------------

    def run(self) -> pd.DataFrame:
        """Execute all stages and return the sorted catalog as a DataFrame."""
        self.background_population()
        if self.cfg.add_cluster:
            self.add_open_cluster()
        self.sort_catalog()
        self._run_checks()
        return self.catalog.to_frame()

    def save(self, systems: pd.DataFrame) -> Tuple[str, str]:
        """Write systems.csv and params.json into ``cfg.out_dir``."""
        out_dir = self.cfg.out_dir
        os.makedirs(out_dir, exist_ok=True)

        systems_path = os.path.join(out_dir, "systems.csv")
        systems.to_csv(systems_path, index=False)

        params = self.cfg.to_params()
        params["radius"] = self.radius
        params["volume"] = self.model.volume
        params_path = os.path.join(out_dir, "params.json")
        with open(params_path, "w") as f:
            json.dump(params, f, indent=2)

        log.info("Wrote %s", systems_path)
        log.info("Wrote %s", params_path)
        return systems_path, params_path


# ---------------------------------------------------------------------------
# Script entry point (uses all CatalogConfig defaults)
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(message)s")
    gen = StarCatalogGenerator(CatalogConfig())
    gen.save(gen.run())
