"""
Score vector -> probability helpers (softmax, ensembling, arg-max).
"""
from __future__ import annotations
from typing import Sequence, Tuple
import numpy as np


def softmax(scores) -> np.ndarray:
    """
    Numerically stable softmax over a 1-D score vector.

    The max score is subtracted before exponentiating; this leaves the
    result unchanged for normal inputs and avoids overflow on large ones.
    """
    x = np.asarray(scores, dtype=np.float64).reshape(-1)
    if x.size == 0:
        raise ValueError("softmax of an empty score vector")
    if not np.all(np.isfinite(x)):
        raise ValueError("score vector contains non-finite values")
    e = np.exp(x - x.max())
    return e / e.sum()


def aggregate(distributions: Sequence) -> np.ndarray:
    """Elementwise mean of K probability vectors of equal length."""
    if len(distributions) == 0:
        raise ValueError("cannot aggregate zero distributions")
    stacked = np.stack([np.asarray(d, dtype=np.float64).reshape(-1) for d in distributions])
    return stacked.mean(axis=0)


def argmax_with_confidence(distribution) -> Tuple[int, float]:
    """(index, value) of the maximum; ties go to the lowest index."""
    p = np.asarray(distribution, dtype=np.float64).reshape(-1)
    if p.size == 0:
        raise ValueError("arg-max of an empty distribution")
    idx = int(np.argmax(p))
    return idx, float(p[idx])
