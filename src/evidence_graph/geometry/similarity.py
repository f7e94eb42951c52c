from typing import List, Optional

import numpy as np

QUANTIZATION = 1e6


def quantize(value: float) -> float:
    """Round to 1e-6 so comparisons don't depend on float backend drift."""
    return round(value * QUANTIZATION) / QUANTIZATION


def quantize_array(values: np.ndarray) -> np.ndarray:
    return np.round(values * QUANTIZATION) / QUANTIZATION


def cosine(a: np.ndarray, b: np.ndarray) -> float:
    """Quantized cosine of two L2-normalised vectors (a plain dot product)."""
    n = min(a.shape[0], b.shape[0])
    return quantize(float(np.dot(a[:n], b[:n])))


def normalized_mean(vectors: List[np.ndarray]) -> Optional[np.ndarray]:
    if not vectors:
        return None
    mean = np.mean(np.vstack(vectors), axis=0)
    norm = np.linalg.norm(mean)
    if norm == 0:
        return mean
    return mean / norm


def percentile_of_sorted(values: List[float], p: float) -> float:
    """``values`` ascending; index ``floor(len * p)`` clamped to the last."""
    idx = int(len(values) * p)
    return values[min(idx, len(values) - 1)]
