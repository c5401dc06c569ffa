"""
Screenshot Deduplication for Recall Store

Uses a DCT-based perceptual hash (pHash) to detect near-duplicate
screenshots, so runs of an unchanged screen collapse into one file.

Procedure:
1. Decode and resize to size x size (32x32), bilinear.
2. Reduce to gray and sample the low 8 bits of the blue channel.
3. 2-D type-II DCT with c(0) = 1/sqrt(2), c(k) = 1 otherwise, scaled by c(u)c(v)/4.
4. Keep the top-left smaller_size x smaller_size block (8x8).
5. Average that block, excluding the DC term at (0, 0).
6. One bit per coefficient, skipping row 0 and column 0: 1 if above average.

The default fingerprint is therefore 7 x 7 = 49 bits.
"""

import io
import logging
import math
from dataclasses import dataclass
from pathlib import Path

import imagehash
import numpy as np
from PIL import Image, UnidentifiedImageError

from src.core.errors import InvalidInputError

logger = logging.getLogger(__name__)

DEFAULT_HASH_SIZE = 32
DEFAULT_SMALLER_SIZE = 8

ImageSource = Image.Image | bytes | bytearray | Path | str


@dataclass(frozen=True)
class Fingerprint:
    """Result of computing a perceptual hash."""

    bits: str
    hash_value: imagehash.ImageHash

    def __len__(self) -> int:
        return len(self.bits)

    def __str__(self) -> str:
        return self.bits


class PerceptualHashEngine:
    """
    Computes perceptual fingerprints and similarity scores.

    Stateless per call; the DCT cosine table and scaling weights are
    computed once per engine.
    """

    def __init__(self, size: int = DEFAULT_HASH_SIZE, smaller_size: int = DEFAULT_SMALLER_SIZE):
        """
        Initialize the engine.

        Args:
            size: Side of the grid the image is resized to before the DCT
            smaller_size: Side of the low-frequency block kept after the DCT
        """
        if size < 2 or not 2 <= smaller_size <= size:
            raise InvalidInputError(f"Invalid hash dimensions: size={size}, smaller_size={smaller_size}")

        self.size = size
        self.smaller_size = smaller_size

        weights = np.ones(size)
        weights[0] = 1 / math.sqrt(2.0)
        self._scale = np.outer(weights, weights) / 4.0

        # cosines[u, i] = cos((2i + 1) * u * pi / 2N)
        u = np.arange(size).reshape(-1, 1)
        i = np.arange(size).reshape(1, -1)
        self._cosines = np.cos((2 * i + 1) / (2.0 * size) * u * math.pi)

    @property
    def bit_length(self) -> int:
        return (self.smaller_size - 1) ** 2

    @property
    def max_distance(self) -> int:
        """Distance at which similarity reaches 0.0 (the full block, not the bit count)."""
        return self.smaller_size * self.smaller_size

    def _load(self, image: ImageSource) -> Image.Image:
        if isinstance(image, Image.Image):
            return image
        try:
            if isinstance(image, (bytes, bytearray)):
                loaded = Image.open(io.BytesIO(image))
            else:
                loaded = Image.open(image)
            loaded.load()
            return loaded
        except (UnidentifiedImageError, OSError) as e:
            raise InvalidInputError(f"Cannot decode image: {e}") from e

    def _samples(self, image: Image.Image) -> np.ndarray:
        resized = image.convert("RGB").resize((self.size, self.size), Image.Resampling.BILINEAR)
        gray = resized.convert("L").convert("RGB")
        pixels = np.asarray(gray, dtype=np.uint32)
        return (pixels[:, :, 2] & 0xFF).astype(np.float64)

    def dct(self, values: np.ndarray) -> np.ndarray:
        """2-D type-II DCT over the full size x size grid."""
        return (self._cosines @ values @ self._cosines.T) * self._scale

    def fingerprint(self, image: ImageSource) -> Fingerprint:
        """
        Compute the perceptual fingerprint of an image.

        Args:
            image: PIL Image, encoded image bytes, or path to an image file

        Returns:
            Fingerprint with (smaller_size - 1)^2 bits

        Raises:
            InvalidInputError: If the image cannot be decoded
        """
        coefficients = self.dct(self._samples(self._load(image)))
        block = coefficients[: self.smaller_size, : self.smaller_size]

        average = (block.sum() - block[0, 0]) / (self.smaller_size * self.smaller_size - 1)
        bits = block[1:, 1:] > average

        return Fingerprint(
            bits="".join("1" if bit else "0" for bit in bits.flatten()),
            hash_value=imagehash.ImageHash(bits),
        )

    def distance(self, a: Fingerprint | str, b: Fingerprint | str) -> int:
        """
        Hamming distance between two fingerprints.

        Raises:
            InvalidInputError: If the fingerprints differ in length
        """
        if isinstance(a, Fingerprint) and isinstance(b, Fingerprint):
            if a.hash_value.hash.shape != b.hash_value.hash.shape:
                raise InvalidInputError(f"Fingerprint lengths differ: {len(a)} != {len(b)}")
            return int(a.hash_value - b.hash_value)

        bits_a, bits_b = str(a), str(b)
        if len(bits_a) != len(bits_b):
            raise InvalidInputError(f"Fingerprint lengths differ: {len(bits_a)} != {len(bits_b)}")
        return sum(1 for x, y in zip(bits_a, bits_b) if x != y)

    def similarity(self, distance: int) -> float:
        """
        Map a distance to a similarity in [0, 1].

        1.0 at distance 0, 0.0 at smaller_size^2 or more, linear in between.

        Raises:
            InvalidInputError: If distance is negative
        """
        if distance < 0:
            raise InvalidInputError(f"Distance cannot be negative: {distance}")
        if distance == 0:
            return 1.0
        if distance >= self.max_distance:
            return 0.0
        return min(max(1.0 - distance / self.max_distance, 0.0), 1.0)

    def compare(self, a: ImageSource, b: ImageSource) -> tuple[int, float]:
        """Fingerprint two images and return (distance, similarity)."""
        distance = self.distance(self.fingerprint(a), self.fingerprint(b))
        return distance, self.similarity(distance)


if __name__ == "__main__":
    import fire

    def hash_image(path: str):
        """Compute perceptual fingerprint for an image."""
        result = PerceptualHashEngine().fingerprint(path)
        return {"fingerprint": result.bits, "hex": str(result.hash_value)}

    def compare(path1: str, path2: str, threshold: float = 0.95):
        """Compare two images for similarity."""
        engine = PerceptualHashEngine()
        distance, similarity = engine.compare(path1, path2)
        return {
            "hamming_distance": distance,
            "similarity": similarity,
            "is_duplicate": similarity >= threshold,
            "threshold": threshold,
        }

    fire.Fire(
        {
            "hash": hash_image,
            "compare": compare,
        }
    )
