"""
World Generation - Biome Classification
Maps (precipitation, temperature) points to biomes.

The catalog is an ordered list of rectangles over the normalized [-1, 1]
channel domain. Classification is a linear scan: the first rectangle that
contains the point wins, so declaration order breaks ties between overlaps.
"""

import logging
from itertools import combinations
from typing import List, NamedTuple, Optional, Sequence, Tuple

import numpy as np

from worldgen.config import (
    MOUNTAIN_ELEVATION,
    NOISE_MAX,
    NOISE_MIN,
    SEA_LEVEL,
    BiomeCategory,
)
from worldgen.errors import ConfigError, UnclassifiedTileError
from worldgen.models import Biome

logger = logging.getLogger(__name__)

# =============================================================================
# DEFAULT CATALOG
# =============================================================================

# Temperature bands (cold → hot) and precipitation bands (dry → wet)
_TEMPERATURE_BANDS = [(-1.0, -0.5), (-0.5, 0.0), (0.0, 0.5), (0.5, 1.0)]
_PRECIPITATION_BANDS = [(-1.0, -0.33), (-0.33, 0.33), (0.33, 1.0)]

# Rows follow temperature bands, columns follow precipitation bands
_BIOME_LAYOUT = [
    [("DESERT_COLD", BiomeCategory.DESERT),
     ("TUNDRA", BiomeCategory.TUNDRA),
     ("FOREST_BOREAL", BiomeCategory.FOREST)],
    [("GRASSLAND_TEMPERATE", BiomeCategory.GRASSLAND),
     ("WOODLAND", BiomeCategory.FOREST),
     ("RAINFOREST_TEMPERATE", BiomeCategory.SWAMP)],
    [("SHRUBLAND", BiomeCategory.GRASSLAND),
     ("FOREST_TEMPERATE_SEASONAL", BiomeCategory.FOREST),
     ("FOREST_TROPICAL_SEASONAL", BiomeCategory.FOREST)],
    [("DESERT_SUBTROPICAL", BiomeCategory.DESERT),
     ("SAVANNA", BiomeCategory.GRASSLAND),
     ("RAINFOREST_TROPICAL", BiomeCategory.SWAMP)],
]


def _build_default_biomes() -> List[Biome]:
    biomes = []
    for (t_min, t_max), row in zip(_TEMPERATURE_BANDS, _BIOME_LAYOUT):
        for (p_min, p_max), (name, category) in zip(_PRECIPITATION_BANDS, row):
            biomes.append(Biome(
                name=name,
                precipitation_min=p_min,
                precipitation_max=p_max,
                temperature_min=t_min,
                temperature_max=t_max,
                category=category,
            ))
    return biomes


# 12 biomes partitioning [-1, 1]² with no gaps and no overlaps
DEFAULT_BIOMES: List[Biome] = _build_default_biomes()


# =============================================================================
# CATALOG VALIDATION
# =============================================================================

class BiomeOverlap(NamedTuple):
    """Two biomes whose rectangles share at least one point"""
    first: str
    second: str


def _overlaps(a: Biome, b: Biome) -> bool:
    precip = a.precipitation_min < b.precipitation_max and b.precipitation_min < a.precipitation_max
    temp = a.temperature_min < b.temperature_max and b.temperature_min < a.temperature_max
    return precip and temp


def validate_biome_catalog(biomes: Sequence[Biome]) -> List[BiomeOverlap]:
    """
    Check a biome catalog before it is used for classification.

    Overlaps are legal (the earlier biome wins) but usually a mistake, so
    each one is logged as a warning.

    Args:
        biomes: Ordered biome catalog

    Returns:
        List of overlapping biome pairs, in declaration order

    Raises:
        ConfigError: If the catalog is empty, a name repeats, or a range is inverted
    """
    if not biomes:
        raise ConfigError("Biome catalog is empty")

    seen = set()
    for biome in biomes:
        if biome.name in seen:
            raise ConfigError(f"Duplicate biome name: {biome.name}")
        seen.add(biome.name)
        if biome.precipitation_min >= biome.precipitation_max:
            raise ConfigError(
                f"Biome {biome.name} has an empty precipitation range "
                f"[{biome.precipitation_min}, {biome.precipitation_max})"
            )
        if biome.temperature_min >= biome.temperature_max:
            raise ConfigError(
                f"Biome {biome.name} has an empty temperature range "
                f"[{biome.temperature_min}, {biome.temperature_max})"
            )

    overlaps = []
    for a, b in combinations(biomes, 2):
        if _overlaps(a, b):
            logger.warning(f"Biomes {a.name} and {b.name} overlap; {a.name} takes precedence")
            overlaps.append(BiomeOverlap(a.name, b.name))
    return overlaps


def _probe_points(bounds: List[float]) -> List[float]:
    edges = sorted({min(NOISE_MAX, max(NOISE_MIN, b)) for b in bounds} | {NOISE_MIN, NOISE_MAX})
    midpoints = [(lo + hi) / 2 for lo, hi in zip(edges, edges[1:])]
    return sorted(set(edges) | set(midpoints))


def find_coverage_gaps(biomes: Sequence[Biome]) -> List[Tuple[float, float]]:
    """
    Find points of the [-1, 1]² domain that no biome covers.

    Every rectangle edge splits the domain into a compressed grid; probing
    each edge and each cell midpoint is enough to detect any uncovered area.

    Returns:
        (precipitation, temperature) probe points that fell through; empty when
        the catalog covers the whole domain
    """
    precip_bounds = [v for b in biomes for v in (b.precipitation_min, b.precipitation_max)]
    temp_bounds = [v for b in biomes for v in (b.temperature_min, b.temperature_max)]

    gaps = []
    for precipitation in _probe_points(precip_bounds):
        for temperature in _probe_points(temp_bounds):
            if not any(b.contains(precipitation, temperature) for b in biomes):
                gaps.append((precipitation, temperature))
    return gaps


# =============================================================================
# CLASSIFICATION
# =============================================================================

class BiomeClassifier:
    """
    Classifies terrain points against an ordered biome catalog.
    Holds no mutable state after construction.
    """

    def __init__(self, biomes: Optional[Sequence[Biome]] = None, default_biome: Optional[str] = None):
        """
        Args:
            biomes: Ordered biome catalog (DEFAULT_BIOMES when omitted)
            default_biome: Name of a catalog biome used for uncovered points;
                when None, uncovered points raise UnclassifiedTileError
        """
        self.biomes: List[Biome] = list(DEFAULT_BIOMES if biomes is None else biomes)
        self.default: Optional[Biome] = None

        if default_biome is not None:
            matches = [b for b in self.biomes if b.name == default_biome]
            if not matches:
                raise ConfigError(f"Default biome {default_biome!r} is not in the catalog")
            self.default = matches[0]

    def classify(self, precipitation: float, temperature: float) -> Biome:
        """
        Find the biome for one point.

        Raises:
            UnclassifiedTileError: If no rectangle contains the point and no
                default biome was configured
        """
        for biome in self.biomes:
            if biome.contains(precipitation, temperature):
                return biome
        if self.default is not None:
            logger.warning(
                f"No biome covers ({precipitation:.4f}, {temperature:.4f}); "
                f"using default {self.default.name}"
            )
            return self.default
        raise UnclassifiedTileError(precipitation, temperature)

    def classify_grid(self, precipitation: np.ndarray, temperature: np.ndarray) -> np.ndarray:
        """
        Classify whole grids at once.

        Args:
            precipitation: Precipitation grid, indexed [x, y]
            temperature: Temperature grid of the same shape

        Returns:
            Integer array of catalog indices, same shape as the inputs

        Raises:
            UnclassifiedTileError: For the first uncovered tile when no
                default biome was configured
        """
        if precipitation.shape != temperature.shape:
            raise ValueError(
                f"Grid shapes differ: {precipitation.shape} vs {temperature.shape}"
            )

        indices = np.full(precipitation.shape, -1, dtype=np.int32)
        for i, biome in enumerate(self.biomes):
            in_precip = (precipitation >= biome.precipitation_min) & (precipitation < biome.precipitation_max)
            in_temp = (temperature >= biome.temperature_min) & (temperature < biome.temperature_max)
            if biome.precipitation_max >= NOISE_MAX:
                in_precip |= precipitation == biome.precipitation_max
            if biome.temperature_max >= NOISE_MAX:
                in_temp |= temperature == biome.temperature_max
            indices[(indices == -1) & in_precip & in_temp] = i

        unassigned = np.argwhere(indices == -1)
        if len(unassigned):
            if self.default is None:
                x, y = (int(v) for v in unassigned[0])
                raise UnclassifiedTileError(
                    float(precipitation[x, y]), float(temperature[x, y]), x, y
                )
            logger.warning(
                f"{len(unassigned)} tiles matched no biome; using default {self.default.name}"
            )
            indices[indices == -1] = self.biomes.index(self.default)

        return indices


def classify(precipitation: float, temperature: float, biomes: Optional[Sequence[Biome]] = None) -> Biome:
    """Classify one point against a catalog (DEFAULT_BIOMES when omitted)"""
    return BiomeClassifier(biomes).classify(precipitation, temperature)


def resolve_category(biome: Biome, elevation: float) -> BiomeCategory:
    """
    Gameplay category of a tile.

    High ground is MOUNTAIN and tiles below sea level are COASTAL regardless
    of climate; everything else takes the biome's own category.
    """
    if elevation >= MOUNTAIN_ELEVATION:
        return BiomeCategory.MOUNTAIN
    if elevation < SEA_LEVEL:
        return BiomeCategory.COASTAL
    return biome.category
