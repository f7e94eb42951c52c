import time
from typing import List, Mapping

import numpy as np

from ..models.substrate import Layout2D


def compute_layout(paragraph_ids: List[str], embeddings: Mapping[str, np.ndarray]) -> Layout2D:
    """Deterministic 2-D projection via PCA (SVD of the centred vectors).

    Component signs are fixed so the largest-magnitude loading is positive,
    and each axis is scaled to [-1, 1]. Nodes without a vector, or inputs
    with fewer than two vectors, sit at the origin.
    """
    start = time.perf_counter()
    present = [pid for pid in paragraph_ids if pid in embeddings]
    coords = {pid: (0.0, 0.0) for pid in paragraph_ids}

    if len(present) >= 2:
        X = np.vstack([np.asarray(embeddings[pid], dtype=float) for pid in present])
        X = X - X.mean(axis=0)
        _, _, vt = np.linalg.svd(X, full_matrices=False)
        components = vt[:2]
        for i in range(components.shape[0]):
            pivot = np.argmax(np.abs(components[i]))
            if components[i, pivot] < 0:
                components[i] = -components[i]
        projected = X @ components.T
        if projected.shape[1] < 2:
            projected = np.hstack([projected, np.zeros((projected.shape[0], 1))])
        scale = np.max(np.abs(projected), axis=0)
        scale[scale == 0] = 1.0
        projected = projected / scale
        for pid, (x, y) in zip(present, projected):
            coords[pid] = (round(float(x), 6), round(float(y), 6))

    return Layout2D(method="pca", coordinates=coords, build_time_ms=(time.perf_counter() - start) * 1000)
