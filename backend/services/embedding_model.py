"""Hashed bag-of-words embedding model.

Text is lowercased, stripped of punctuation and split into tokens longer
than two characters. Each token is hashed with the 31-based polynomial
string hash (wrapped to a signed 32-bit integer after every step) and
scattered into three positions of a fixed-width vector. The result is
L2-normalised, so cosine similarity reduces to a dot product.

Vectors produced here are persisted alongside menu chunks, so the
tokenisation, hash and scatter must stay bit-for-bit stable.
"""
import logging
import math
import re
import struct
from typing import List

import numpy as np

from config import (
    EMBEDDING_DIMENSION,
    HASH_POSITIONS,
    HASH_POSITION_STRIDE,
    MIN_TOKEN_LENGTH,
)

logger = logging.getLogger(__name__)

# ASCII word characters and any whitespace survive; everything else is a separator
_NON_WORD_RE = re.compile(r"[^A-Za-z0-9_\s]")
_WHITESPACE_RE = re.compile(r"\s+")

_INT32_MASK = 0xFFFFFFFF
_INT32_SIGN = 0x80000000


def tokenize(text: str) -> List[str]:
    """Split text into the lowercase tokens that contribute to an embedding."""
    cleaned = _NON_WORD_RE.sub(" ", text.lower())
    return [token for token in _WHITESPACE_RE.split(cleaned) if len(token) >= MIN_TOKEN_LENGTH]


def java_string_hash(token: str) -> int:
    """Signed 32-bit ``hash = hash * 31 + code_unit`` over UTF-16 code units."""
    value = 0
    encoded = token.encode("utf-16-le")
    for (code_unit,) in struct.iter_unpack("<H", encoded):
        value = (value * 31 + code_unit) & _INT32_MASK
    if value & _INT32_SIGN:
        value -= 1 << 32
    return value


def embed(text: str, dimension: int = EMBEDDING_DIMENSION) -> np.ndarray:
    """
    Map text to a unit-length vector of ``dimension`` floats.

    Text with no surviving tokens (empty, whitespace, only short words)
    maps to the all-zero vector. Never raises.

    Args:
        text: Any string
        dimension: Vector width

    Returns:
        numpy float64 array of shape (dimension,)
    """
    vector = np.zeros(dimension, dtype=np.float64)
    tokens = tokenize(text)
    if not tokens:
        return vector

    weight = 1.0 / math.sqrt(len(tokens))
    for token in tokens:
        token_hash = java_string_hash(token)
        for i in range(HASH_POSITIONS):
            position = abs(token_hash + i * HASH_POSITION_STRIDE) % dimension
            vector[position] += weight

    # Left-to-right sum of squares; BLAS norms and sum() round differently
    squares = 0.0
    for value in vector.tolist():
        squares += value * value
    norm = math.sqrt(squares)
    if norm > 0:
        vector = vector / norm
    return vector


class EmbeddingModel:
    """Local embedding model; no external service is called."""

    def __init__(self, dimension: int = EMBEDDING_DIMENSION):
        """
        Initialize the embedding model.

        Args:
            dimension: Width of every vector this model produces
        """
        if dimension <= 0:
            raise ValueError("dimension must be positive")

        self.dimension = dimension
        logger.info(f"Initialized EmbeddingModel with dimension: {dimension}")

    def embed_text(self, text: str) -> np.ndarray:
        """Generate the embedding for a single text string."""
        return embed(text, self.dimension)

    def embed_batch(self, texts: List[str]) -> List[np.ndarray]:
        """Generate embeddings for multiple texts, preserving order."""
        embeddings = [embed(text, self.dimension) for text in texts]
        logger.debug(f"Generated embeddings for {len(texts)} texts")
        return embeddings
