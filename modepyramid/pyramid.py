from typing import List, Optional
import threading
import warnings

import numpy as np
import numpy.typing as npt
from tqdm import tqdm

from .downsample import downsample
from .errors import CancelledError
from .lib import block_voxels
from .operations import plan_levels
from .parameters import DownsampleParameters
from .render import render
from .shards import downsample_sharded

def build_pyramid(
  labels:npt.ArrayLike,
  num_levels:Optional[int] = None,
  parameters:Optional[DownsampleParameters] = None,
  parallel:int = 1,
  rows_per_shard:int = 2,
  progress:bool = False,
  cancel:Optional[threading.Event] = None,
) -> List[np.ndarray]:
  """
  Compute the modal pyramid of a label raster.

  Level k replaces each 2^k x ... x 2^k block of the original
  image with its most frequent label (lowest label on ties).
  Each level is computed by merging the previous level's
  histograms rather than its rendered labels, so the result
  is the mode of the original block and not a mode of modes.

  labels: N dimensional array whose axes are all divisible by
    the same power of two. Levels stop once an axis reaches 1.
  num_levels: cap on the number of levels produced
  parameters: histogram configuration. If None, the count type
    is chosen to fit the largest block.
  parallel: number of worker processes per level (0 = all CPUs).
    Values other than 1 compute each level as shards.
  rows_per_shard: input rows per shard when parallel != 1

  Returns: [ level 1, level 2, ... ] finest first, excluding
    the original image.
  """
  labels = np.asarray(labels)
  shapes = plan_levels(labels.shape, num_levels)

  largest_block = block_voxels(labels.ndim, len(shapes))
  if parameters is None:
    parameters = DownsampleParameters.for_blocks(labels.ndim, len(shapes))
  elif not parameters.supports(largest_block):
    warnings.warn(
      f"The count type {parameters.count_dtype} supports counts up to "
      f"{parameters.max_count()} but the coarsest level aggregates blocks "
      f"of {largest_block} cells. Pyramid construction will fail if a "
      f"single label occurs more often than that within one block."
    )

  levels = []
  histograms = labels
  for _ in tqdm(shapes, disable=(not progress), desc="Pyramid"):
    if cancel is not None and cancel.is_set():
      raise CancelledError("Pyramid construction was cancelled.")

    if parallel == 1:
      histograms = downsample(histograms, parameters)
    else:
      histograms = downsample_sharded(
        histograms,
        rows_per_shard=rows_per_shard,
        parallel=parallel,
        parameters=parameters,
        cancel=cancel,
      )
    levels.append(render(histograms, dtype=labels.dtype))

  return levels
