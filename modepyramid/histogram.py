from typing import Any, Dict, Iterator, Optional, Tuple

import numpy as np
import numpy.typing as npt
import fastremap

from .errors import EmptyHistogramError, CountOverflowError
from .lib import dtype_max

class Histogram:
  """
  Frequency table of the labels observed within one block.

  The mode is cached and refreshed on every increment so that
  reading it is O(1). Counts only ever grow, so the cache can
  be maintained by comparing each updated count against the
  current maximum.

  Ties are broken in favor of the lowest label. This rule does
  not depend on the order in which observations or merges
  arrive, which is what makes any merge tree produce the same
  mode.

  count_dtype: an unsigned numpy integer type that bounds every
    count. Exceeding it raises CountOverflowError instead of
    wrapping around. None means unbounded.
  cache_mode: if False, the mode is found by scanning the table
    on each call to mode().
  """
  def __init__(
    self,
    count_dtype:Optional[npt.DTypeLike] = None,
    cache_mode:bool = True,
  ):
    self._counts:Dict[Any,int] = {}
    self._total = 0
    self._mode = None
    self._mode_count = 0
    self.count_dtype = None if count_dtype is None else np.dtype(count_dtype)
    self._count_max = None if count_dtype is None else dtype_max(count_dtype)
    self.cache_mode = bool(cache_mode)

  @classmethod
  def fromlabels(
    kls,
    labels:npt.ArrayLike,
    count_dtype:Optional[npt.DTypeLike] = None,
    cache_mode:bool = True,
  ) -> "Histogram":
    """Build a histogram by directly scanning an array of labels."""
    hist = Histogram(count_dtype=count_dtype, cache_mode=cache_mode)
    labels = np.asarray(labels)
    if labels.size == 0:
      return hist

    uniq, counts = fastremap.unique(labels.reshape(-1), return_counts=True)
    for label, ct in zip(uniq.tolist(), counts.tolist()):
      hist.increment(label, ct)
    return hist

  def increment(self, label, amount:int = 1):
    if amount < 1:
      raise ValueError(f"Increments must be positive. Got: {amount}")

    count = self._counts.get(label, 0) + int(amount)
    if self._count_max is not None and count > self._count_max:
      raise CountOverflowError(
        f"Count {count} for label {label} exceeds the maximum "
        f"of {self._count_max} representable by {self.count_dtype}."
      )

    self._counts[label] = count
    self._total += int(amount)

    if not self.cache_mode:
      return

    if (
      count > self._mode_count
      or (count == self._mode_count and label < self._mode)
    ):
      self._mode = label
      self._mode_count = count

  def merge(self, other:"Histogram"):
    """Fold every observation of other into this histogram."""
    for label, count in list(other._counts.items()):
      self.increment(label, count)

  def _scan_mode(self) -> Tuple[Any,int]:
    return min(self._counts.items(), key=lambda kv: (-kv[1], kv[0]))

  def mode(self):
    if self._total == 0:
      raise EmptyHistogramError("The mode of an empty histogram is undefined.")
    if self.cache_mode:
      return self._mode
    return self._scan_mode()[0]

  def mode_count(self) -> int:
    if self._total == 0:
      return 0
    if self.cache_mode:
      return self._mode_count
    return self._scan_mode()[1]

  def count(self, label) -> int:
    return self._counts.get(label, 0)

  def total(self) -> int:
    """Number of raw observations folded into this histogram."""
    return self._total

  def num_labels(self) -> int:
    return len(self._counts)

  def empty(self) -> bool:
    return self._total == 0

  def labels(self) -> list:
    return sorted(self._counts.keys())

  def items(self) -> Iterator[Tuple[Any,int]]:
    return iter(sorted(self._counts.items()))

  def todict(self) -> Dict[Any,int]:
    return dict(self._counts)

  def copy(self) -> "Histogram":
    hist = Histogram(count_dtype=self.count_dtype, cache_mode=self.cache_mode)
    hist.merge(self)
    return hist

  def __eq__(self, other):
    if not isinstance(other, Histogram):
      return NotImplemented
    return self._counts == other._counts

  def __repr__(self):
    return f"Histogram({dict(self.items())})"
