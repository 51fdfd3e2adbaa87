from typing import List, Optional, Tuple
import warnings

import numpy as np
import numpy.typing as npt
import fastremap

from .errors import ShapeMismatchError, EmptyInputError
from .lib import object_array, odd_axes
from .parameters import DownsampleParameters

def plan_levels(
  shape:Tuple[int, ...],
  num_levels:Optional[int] = None,
) -> List[Tuple[int, ...]]:
  """
  Compute the shape of every pyramid level below the original.

  Levels are produced until the smallest axis reaches 1. If a
  halving would be required while some axis is odd, the plan is
  impossible and ShapeMismatchError is raised before any work
  is done. Every axis must therefore be divisible by 2^k where
  k is the number of levels the smallest axis permits. For
  example, (6,6) is rejected even though (3,3) alone would be
  a valid first level, while (4,6) is rejected and (1,6) gives
  no levels at all.

  num_levels: stop after this many levels. Values larger than
    the shape permits are clamped with a warning.
  """
  shape = tuple(int(extent) for extent in shape)

  if len(shape) == 0:
    raise ShapeMismatchError("Rasters must have at least one axis.")
  if any(extent == 0 for extent in shape):
    raise EmptyInputError(f"Rasters must not have zero length axes. Got: {shape}")
  if num_levels is not None and num_levels < 0:
    raise ValueError(f"num_levels must be non-negative. Got: {num_levels}")

  levels = []
  while min(shape) > 1:
    if num_levels is not None and len(levels) >= num_levels:
      return levels

    odd = odd_axes(shape)
    if odd:
      raise ShapeMismatchError(
        f"Level {len(levels) + 1} cannot be produced because axes {odd} "
        f"of shape {shape} are odd. All axes must be divisible by the "
        f"same power of two."
      )
    shape = tuple(extent // 2 for extent in shape)
    levels.append(shape)

  if num_levels is not None and num_levels > len(levels):
    warnings.warn(
      f"Requested {num_levels} levels but only {len(levels)} can be produced."
    )

  return levels

def block_mode(labels:npt.ArrayLike, factor:int) -> np.ndarray:
  """
  Compute the mode of every factor x ... x factor block of
  labels directly, by counting each block from scratch.

  Ties resolve to the lowest label, the same rule the
  histograms use.
  """
  labels = np.asarray(labels)
  factor = int(factor)

  if labels.ndim == 0:
    raise ShapeMismatchError("Rasters must have at least one axis.")
  if labels.size == 0:
    raise EmptyInputError(f"Rasters must not have zero length axes. Got: {labels.shape}")
  if factor < 1:
    raise ValueError(f"factor must be positive. Got: {factor}")
  if any(extent % factor for extent in labels.shape):
    raise ShapeMismatchError(
      f"Every axis of {labels.shape} must be divisible by {factor}."
    )

  ndim = labels.ndim
  out_shape = tuple(extent // factor for extent in labels.shape)

  split_shape = []
  for extent in out_shape:
    split_shape += [ extent, factor ]

  blocks = labels.reshape(split_shape)
  blocks = blocks.transpose(
    list(range(0, 2 * ndim, 2)) + list(range(1, 2 * ndim, 2))
  )
  blocks = blocks.reshape((int(np.prod(out_shape)), factor ** ndim))

  modes = np.zeros((blocks.shape[0],), dtype=labels.dtype)
  for i, block in enumerate(blocks):
    uniq, counts = fastremap.unique(block, return_counts=True)
    modes[i] = uniq[np.argmax(counts)]

  return modes.reshape(out_shape)

def naive_pyramid(labels:npt.ArrayLike) -> List[np.ndarray]:
  """
  The "mode of modes" pyramid: each level is the 2x block
  mode of the previous rendered level. This is not the correct
  modal pyramid and exists for comparison.
  """
  labels = np.asarray(labels)
  levels = []
  for _ in plan_levels(labels.shape):
    labels = block_mode(labels, 2)
    levels.append(labels)
  return levels

def histogram_raster(
  labels:npt.ArrayLike,
  parameters:Optional[DownsampleParameters] = None,
) -> np.ndarray:
  """Lift a label raster into a histogram raster of single observations."""
  if parameters is None:
    parameters = DownsampleParameters()

  labels = np.asarray(labels)
  cells = []
  for label in labels.reshape(-1).tolist():
    hist = parameters.histogram()
    hist.increment(label)
    cells.append(hist)
  return object_array(cells, labels.shape)

def histograms_equal(lhs:np.ndarray, rhs:np.ndarray) -> bool:
  """Check if two histogram rasters hold identical counts in every cell."""
  lhs = np.asarray(lhs)
  rhs = np.asarray(rhs)
  if lhs.shape != rhs.shape:
    return False
  return all(
    a == b
    for a, b in zip(lhs.reshape(-1).tolist(), rhs.reshape(-1).tolist())
  )
