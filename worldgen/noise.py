"""
World Generation - Noise Field Utilities
Provides deterministic fractal noise for the terrain channels.

Uses OpenSimplex so that a given seed always yields the same field,
on every platform and in every process.
"""

import hashlib
import logging
from functools import lru_cache

import numpy as np
from opensimplex import OpenSimplex

from worldgen.config import (
    CHANNEL_DISPLAY_RANGES,
    CHANNEL_SEED_OFFSETS,
    NOISE_MAX,
    NOISE_MIN,
    NoiseLayerConfig,
    TerrainChannel,
    WorldSeed,
)

logger = logging.getLogger(__name__)

# OpenSimplex seeds are 64-bit; keep derived seeds in that range
_SEED_MASK = (1 << 63) - 1


def normalize_seed(seed: WorldSeed) -> int:
    """
    Reduce a world seed to a non-negative integer.

    Integer seeds pass through unchanged. String seeds are hashed with
    SHA-256 so the result does not depend on PYTHONHASHSEED.
    """
    if isinstance(seed, bool):
        raise TypeError("seed must be an int or str, not bool")
    if isinstance(seed, int):
        return seed & _SEED_MASK
    digest = hashlib.sha256(seed.encode("utf-8")).digest()
    return int.from_bytes(digest[:8], "big") & _SEED_MASK


def derive_channel_seed(seed: WorldSeed, channel: TerrainChannel) -> int:
    """Seed of the noise basis for one terrain channel."""
    return (normalize_seed(seed) + CHANNEL_SEED_OFFSETS[TerrainChannel(channel)]) & _SEED_MASK


@lru_cache(maxsize=64)
def _basis(channel_seed: int) -> OpenSimplex:
    # OpenSimplex only reads its permutation table after construction
    return OpenSimplex(seed=channel_seed)


def normalize_to_range(value: float, minimum: float, maximum: float) -> float:
    """
    Map a normalized value in [-1, 1] onto [minimum, maximum].

    Example: normalize_to_range(0.0, -10, 32) == 11.0
    """
    return (value * (maximum - minimum)) / 2 + (maximum + minimum) / 2


def to_display_units(value: float, channel: TerrainChannel) -> float:
    """Convert a channel value to metres, mm/year or °C."""
    low, high = CHANNEL_DISPLAY_RANGES[TerrainChannel(channel)]
    return normalize_to_range(value, low, high)


class NoiseFieldGenerator:
    """
    Deterministic multi-octave noise sampler.

    Octave i contributes amplitude * persistence**i at a frequency of
    frequency * 2**i. The sum is divided by the sum of persistence**i so the
    result stays within [-1, 1] regardless of the octave count; amplitudes
    above 1 saturate at the bounds.

    The generator holds no mutable state and may be shared between threads.
    """

    lacunarity = 2.0

    def sample(
        self,
        seed: WorldSeed,
        channel: TerrainChannel,
        x: float,
        y: float,
        config: NoiseLayerConfig,
    ) -> float:
        """
        Sample one point of a terrain channel.

        Args:
            seed: World seed
            channel: Terrain channel being sampled
            x: Tile x coordinate
            y: Tile y coordinate
            config: Noise layer configuration for the channel

        Returns:
            Noise value in [-1, 1]

        Raises:
            ConfigError: If the layer configuration is invalid
        """
        config.validate_layer()
        simplex = _basis(derive_channel_seed(seed, channel))

        value = 0.0
        for octave in range(config.octaves):
            frequency = config.frequency * self.lacunarity ** octave
            weight = config.amplitude * config.persistence ** octave
            value += simplex.noise2(x * frequency, y * frequency) * weight

        value /= config.max_amplitude
        return float(min(NOISE_MAX, max(NOISE_MIN, value)))

    def generate_field(
        self,
        seed: WorldSeed,
        channel: TerrainChannel,
        width: int,
        height: int,
        config: NoiseLayerConfig,
        offset_x: int = 0,
        offset_y: int = 0,
    ) -> np.ndarray:
        """
        Generate a full grid for one terrain channel.

        Args:
            seed: World seed
            channel: Terrain channel being generated
            width: Number of tiles along x
            height: Number of tiles along y
            config: Noise layer configuration for the channel
            offset_x: X coordinate of the first column (for chunked generation)
            offset_y: Y coordinate of the first row

        Returns:
            Array of shape (width, height), indexed [x, y], values in [-1, 1]
        """
        channel = TerrainChannel(channel)
        config.validate_layer()
        if width < 1 or height < 1:
            raise ValueError(f"Grid dimensions must be positive, got {width}x{height}")

        simplex = _basis(derive_channel_seed(seed, channel))
        xs = np.arange(offset_x, offset_x + width, dtype=np.float64)
        ys = np.arange(offset_y, offset_y + height, dtype=np.float64)

        field = np.zeros((width, height), dtype=np.float64)
        for octave in range(config.octaves):
            frequency = config.frequency * self.lacunarity ** octave
            weight = config.amplitude * config.persistence ** octave
            # noise2array returns shape (len(ys), len(xs))
            layer = simplex.noise2array(xs * frequency, ys * frequency)
            field += layer.T * weight

        field /= config.max_amplitude
        np.clip(field, NOISE_MIN, NOISE_MAX, out=field)

        logger.debug(
            f"Generated {channel.value} field {width}x{height} "
            f"(min={field.min():.3f}, max={field.max():.3f})"
        )
        return field
