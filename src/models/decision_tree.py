"""
Variance-reduction regression tree.

Each split is chosen by scanning midpoints between sorted distinct values of
every feature and keeping the threshold that minimises the size-weighted
label variance of the two halves. The split score used throughout is the gain
proxy ``1 / (1 + weighted_variance)``; higher is better.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Sequence, Tuple, Union

import numpy as np

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))
from configs.config import FEATURE_NAMES, MAX_TREE_DEPTH, MIN_SAMPLES_SPLIT
from src.exceptions import NotInitializedError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Leaf:
    value: float


@dataclass(frozen=True)
class Split:
    feature_index: int
    threshold: float
    left: "Node"
    right: "Node"


Node = Union[Leaf, Split]


def split_gain(left_labels: np.ndarray, right_labels: np.ndarray) -> float:
    """Gain proxy for a candidate partition; 0 when either side is empty."""
    n_left, n_right = len(left_labels), len(right_labels)
    if n_left == 0 or n_right == 0:
        return 0.0
    total = n_left + n_right
    weighted_variance = (
        n_left / total * float(np.var(left_labels))
        + n_right / total * float(np.var(right_labels))
    )
    return 1.0 / (1.0 + weighted_variance)


def find_best_threshold(values: np.ndarray, labels: np.ndarray) -> Tuple[Optional[float], float]:
    """
    Best threshold for one feature column.

    Uses prefix sums over the value-sorted labels so every candidate
    midpoint is scored in a single pass.

    Returns
    -------
    (threshold, gain) : threshold is None when the column has a single
    distinct value, in which case gain is 0.
    """
    order = np.argsort(values, kind="mergesort")
    sorted_values = values[order]
    sorted_labels = labels[order]
    n = len(sorted_values)

    # candidate cut positions: i such that left = [:i], right = [i:]
    cuts = np.nonzero(sorted_values[1:] != sorted_values[:-1])[0] + 1
    if len(cuts) == 0:
        return None, 0.0

    csum = np.cumsum(sorted_labels)
    csum_sq = np.cumsum(sorted_labels ** 2)
    total, total_sq = csum[-1], csum_sq[-1]

    n_left = cuts.astype(float)
    n_right = n - n_left
    sum_left = csum[cuts - 1]
    sq_left = csum_sq[cuts - 1]
    sum_right = total - sum_left
    sq_right = total_sq - sq_left

    sse_left = np.clip(sq_left - sum_left ** 2 / n_left, 0.0, None)
    sse_right = np.clip(sq_right - sum_right ** 2 / n_right, 0.0, None)
    weighted_variance = (sse_left + sse_right) / n
    gains = 1.0 / (1.0 + weighted_variance)

    best = int(np.argmax(gains))
    cut = cuts[best]
    threshold = (sorted_values[cut - 1] + sorted_values[cut]) / 2.0
    return float(threshold), float(gains[best])


def build_tree(
    X: np.ndarray,
    y: np.ndarray,
    depth: int = 0,
    max_depth: int = MAX_TREE_DEPTH,
    min_samples_split: int = MIN_SAMPLES_SPLIT,
) -> Tuple[Node, Dict[int, float]]:
    """
    Recursively grow a tree on ``(X, y)``.

    Returns the root node together with the importance credit earned by each
    feature index in this subtree (the sum of winning split gains). Nothing
    outside the returned values is mutated.
    """
    if depth > max_depth or len(y) < min_samples_split:
        return Leaf(float(np.mean(y))), {}

    best_feature = None
    best_threshold = 0.0
    best_gain = -1.0
    for feature_index in range(X.shape[1]):
        threshold, gain = find_best_threshold(X[:, feature_index], y)
        if threshold is not None and gain > best_gain:
            best_feature, best_threshold, best_gain = feature_index, threshold, gain

    if best_feature is None or best_gain <= 0:
        return Leaf(float(np.mean(y))), {}

    mask = X[:, best_feature] <= best_threshold
    left, left_imp = build_tree(X[mask], y[mask], depth + 1, max_depth, min_samples_split)
    right, right_imp = build_tree(X[~mask], y[~mask], depth + 1, max_depth, min_samples_split)

    importances = {best_feature: best_gain}
    for sub in (left_imp, right_imp):
        for idx, gain in sub.items():
            importances[idx] = importances.get(idx, 0.0) + gain

    return Split(best_feature, best_threshold, left, right), importances


def traverse(node: Node, x: np.ndarray) -> float:
    while isinstance(node, Split):
        node = node.left if x[node.feature_index] <= node.threshold else node.right
    return node.value


class DecisionTree:
    """
    Thin stateful wrapper around ``build_tree`` keyed by feature names.

    Parameters
    ----------
    max_depth : int
        A leaf is emitted once recursion depth exceeds this value.
    min_samples_split : int
        Subsets smaller than this become leaves.
    feature_names : sequence of str
        Names for the positional feature columns.
    """

    def __init__(
        self,
        max_depth: int = MAX_TREE_DEPTH,
        min_samples_split: int = MIN_SAMPLES_SPLIT,
        feature_names: Sequence[str] = FEATURE_NAMES,
    ) -> None:
        self.max_depth = max_depth
        self.min_samples_split = min_samples_split
        self.feature_names = list(feature_names)
        self.root: Optional[Node] = None
        self.feature_importances: Dict[str, float] = {}

    def fit(self, X: np.ndarray, y: np.ndarray) -> "DecisionTree":
        X = np.asarray(X, dtype=float)
        y = np.asarray(y, dtype=float)
        self.root, by_index = build_tree(
            X, y, max_depth=self.max_depth, min_samples_split=self.min_samples_split
        )
        self.feature_importances = {
            self.feature_names[idx]: gain for idx, gain in by_index.items()
        }
        return self

    def predict(self, x: np.ndarray) -> float:
        if self.root is None:
            raise NotInitializedError("Tree not trained")
        return traverse(self.root, np.asarray(x, dtype=float))

    def depth(self) -> int:
        def _depth(node: Node) -> int:
            if isinstance(node, Leaf):
                return 0
            return 1 + max(_depth(node.left), _depth(node.right))

        if self.root is None:
            return 0
        return _depth(self.root)
