"""
concierge/similarity.py
-----------------------
Cosine similarity over dense NumPy vectors.

Pure functions, no I/O. A zero-norm vector scores 0 against anything rather
than producing NaN, and vectors of different length are rejected instead of
being silently truncated.
"""

from typing import Sequence, Union

import numpy as np

from concierge.errors import DimensionMismatch

Vector = Union[Sequence[float], np.ndarray]


def cosine_similarity(a: Vector, b: Vector) -> float:
    """
    Computes the cosine of the angle between two vectors.

    Args:
        a: 1-D numeric sequence.
        b: 1-D numeric sequence of the same length.

    Returns:
        Similarity in [-1, 1]; 0.0 when either vector has zero norm.

    Raises:
        DimensionMismatch: If the lengths differ.
    """
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    if a.shape != b.shape:
        raise DimensionMismatch(
            f"Cannot compare vectors of length {a.size} and {b.size}."
        )

    denom = np.linalg.norm(a) * np.linalg.norm(b)
    if denom == 0:
        return 0.0
    return float(np.clip(np.dot(a, b) / denom, -1.0, 1.0))


def score_matrix(query: Vector, matrix: np.ndarray) -> np.ndarray:
    """
    Scores a query vector against every row of `matrix`.

    Args:
        query:  1-D array of shape (dim,).
        matrix: 2-D array of shape (n, dim).

    Returns:
        1-D scores of shape (n,); rows with zero norm score 0.0.

    Raises:
        DimensionMismatch: If the row width differs from the query length.
    """
    query  = np.asarray(query, dtype=np.float64)
    matrix = np.asarray(matrix, dtype=np.float64)
    if matrix.size == 0:
        return np.zeros(0, dtype=np.float64)
    if matrix.ndim != 2 or matrix.shape[1] != query.shape[0]:
        raise DimensionMismatch(
            f"Query has {query.shape[0]} dimensions, corpus rows have "
            f"{matrix.shape[-1]}."
        )

    denom = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
    dots  = matrix @ query
    scores = np.zeros_like(dots)
    np.divide(dots, denom, out=scores, where=denom != 0)
    return np.clip(scores, -1.0, 1.0)
