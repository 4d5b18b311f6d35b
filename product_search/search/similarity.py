"""
Cosine similarity between two embedding vectors.
"""
import numpy as np

from product_search.embeddings.vectors import to_float_array


def cosine_similarity(a, b) -> float:
    """
    Cosine of the angle between a and b.

    Returns 0.0 instead of raising for mismatched lengths, empty vectors,
    non-numeric input or a zero vector, so one bad pair never aborts a ranking.
    """
    a = to_float_array(a)
    b = to_float_array(b)
    if a is None or b is None:
        return 0.0
    if len(a) == 0 or len(a) != len(b):
        return 0.0

    norm_a = np.linalg.norm(a)
    norm_b = np.linalg.norm(b)
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return float(np.dot(a, b) / (norm_a * norm_b))
