# ABOUTME: Defines evaluation helpers for probabilistic predictions and holdout splits.
# ABOUTME: Computes Brier score, binned reliability, calibration error, and seeded splits.

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Generic, Iterable, List, Mapping, Optional, Sequence, TypeVar, Union

import numpy as np

T = TypeVar("T")

CALIBRATION_BINS = 10
CALIBRATION_TOLERANCE = 0.1


@dataclass(frozen=True)
class Prediction:
    predicted: float
    actual: bool


@dataclass(frozen=True)
class CalibrationBin:
    lower: float
    upper: float
    count: int
    mean_predicted: float
    observed_frequency: float


@dataclass(frozen=True)
class CalibrationResult:
    brier_score: float
    calibration_bins: List[CalibrationBin]
    expected_calibration_error: float
    is_calibrated: bool


@dataclass(frozen=True)
class SplitResult(Generic[T]):
    train: List[T]
    test: List[T]


def train_test_split(
    data: Sequence[T],
    test_fraction: float = 0.2,
    seed: Optional[int] = None,
    rng: Optional[np.random.Generator] = None,
) -> SplitResult[T]:
    """
    Shuffle and partition items into disjoint train/test lists.

    The test size is `test_fraction * len(data)` rounded half up. The same seed
    always yields the same split.
    """

    if not 0 <= test_fraction <= 1:
        raise ValueError(f"test_fraction must be within [0, 1], got {test_fraction}.")
    items = list(data)
    total = len(items)
    if total == 0:
        return SplitResult(train=[], test=[])

    generator = rng if rng is not None else np.random.default_rng(seed)
    order = generator.permutation(total)
    test_count = min(total, int(math.floor(total * test_fraction + 0.5)))

    test = [items[i] for i in order[:test_count]]
    train = [items[i] for i in order[test_count:]]
    return SplitResult(train=train, test=test)


def calibration_check(predictions: Iterable[Union[Prediction, Mapping]]) -> CalibrationResult:
    """
    Measure how well predicted probabilities match binary outcomes.

    Parameters
    ----------
    predictions : Iterable[Prediction | Mapping]
        Items with `predicted` in [0, 1] and boolean `actual`.
    """

    pairs = [_as_prediction(item) for item in predictions]
    if not pairs:
        return CalibrationResult(
            brier_score=0.0,
            calibration_bins=_empty_bins(),
            expected_calibration_error=0.0,
            is_calibrated=True,
        )

    y_pred = np.clip(np.array([p.predicted for p in pairs], dtype=float), 0.0, 1.0)
    y_true = np.array([1.0 if p.actual else 0.0 for p in pairs], dtype=float)

    brier = float(np.mean((y_pred - y_true) ** 2))
    bins = _reliability_bins(y_true, y_pred)
    ece = _expected_calibration_error(bins, len(pairs))
    return CalibrationResult(
        brier_score=brier,
        calibration_bins=bins,
        expected_calibration_error=ece,
        is_calibrated=ece < CALIBRATION_TOLERANCE,
    )


def _as_prediction(item: Union[Prediction, Mapping]) -> Prediction:
    if isinstance(item, Prediction):
        return item
    return Prediction(predicted=float(item["predicted"]), actual=bool(item["actual"]))


def _empty_bins(num_bins: int = CALIBRATION_BINS) -> List[CalibrationBin]:
    edges = np.linspace(0.0, 1.0, num_bins + 1)
    return [CalibrationBin(float(edges[b]), float(edges[b + 1]), 0, 0.0, 0.0) for b in range(num_bins)]


def _reliability_bins(y_true: np.ndarray, y_pred: np.ndarray, num_bins: int = CALIBRATION_BINS) -> List[CalibrationBin]:
    """
    Group predictions into equal-width bins between 0 and 1.
    """

    edges = np.linspace(0.0, 1.0, num_bins + 1)
    # A prediction of exactly 1.0 belongs to the last bin.
    digitized = np.minimum((y_pred * num_bins).astype(int), num_bins - 1)

    bins = []
    for b in range(num_bins):
        mask = digitized == b
        count = int(mask.sum())
        if count == 0:
            bins.append(CalibrationBin(float(edges[b]), float(edges[b + 1]), 0, 0.0, 0.0))
            continue
        bins.append(
            CalibrationBin(
                lower=float(edges[b]),
                upper=float(edges[b + 1]),
                count=count,
                mean_predicted=float(y_pred[mask].mean()),
                observed_frequency=float(y_true[mask].mean()),
            )
        )
    return bins


def _expected_calibration_error(bins: Sequence[CalibrationBin], total: int) -> float:
    if total == 0:
        return 0.0
    ece = 0.0
    for calibration_bin in bins:
        if calibration_bin.count == 0:
            continue
        ece += (calibration_bin.count / total) * abs(calibration_bin.observed_frequency - calibration_bin.mean_predicted)
    return ece
