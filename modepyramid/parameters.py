from typing import Optional

import numpy as np
import numpy.typing as npt

from .histogram import Histogram
from .lib import block_voxels, compute_dtype, dtype_max

class DownsampleParameters:
  """
  Tuning knobs for histogram construction, passed explicitly
  into each downsampling call.

  count_dtype: unsigned integer type that bounds every count
    held by a histogram. Narrower types detect overflow sooner.
    None means counts are unbounded python integers.
  cache_mode: maintain the cached mode on every increment. When
    disabled, mode() scans the histogram instead, trading
    read speed for cheaper increments.
  """
  def __init__(
    self,
    count_dtype:Optional[npt.DTypeLike] = None,
    cache_mode:bool = True,
  ):
    if count_dtype is not None:
      dtype_max(count_dtype) # validates the type
      count_dtype = np.dtype(count_dtype)

    self.count_dtype = count_dtype
    self.cache_mode = bool(cache_mode)

  @classmethod
  def for_blocks(
    kls, ndim:int, num_levels:int, cache_mode:bool = True,
  ) -> "DownsampleParameters":
    """
    Select the narrowest count type able to hold the number of
    cells in the largest block that a pyramid of num_levels
    levels over an ndim raster will aggregate.
    """
    voxels = block_voxels(ndim, num_levels)
    return DownsampleParameters(
      count_dtype=compute_dtype(voxels),
      cache_mode=cache_mode,
    )

  def histogram(self) -> Histogram:
    return Histogram(count_dtype=self.count_dtype, cache_mode=self.cache_mode)

  def max_count(self) -> Optional[int]:
    if self.count_dtype is None:
      return None
    return dtype_max(self.count_dtype)

  def supports(self, voxels:int) -> bool:
    """Can a single label be counted voxels times?"""
    max_count = self.max_count()
    return max_count is None or voxels <= max_count

  def details(self) -> str:
    return f"""
    count dtype:   {self.count_dtype if self.count_dtype is not None else 'unbounded'}
    max count:     {self.max_count() if self.count_dtype is not None else 'unbounded'}
    cache mode:    {self.cache_mode}
    """

  def __eq__(self, other):
    if not isinstance(other, DownsampleParameters):
      return NotImplemented
    return (
      self.count_dtype == other.count_dtype
      and self.cache_mode == other.cache_mode
    )

  def __repr__(self):
    return str(self.__dict__)
