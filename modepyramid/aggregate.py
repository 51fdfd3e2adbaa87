from typing import Optional

import numpy as np

from .errors import ShapeMismatchError
from .histogram import Histogram
from .lib import object_array
from .parameters import DownsampleParameters

def aggregate(result:Histogram, lhs, rhs) -> Histogram:
  """
  Fold two operands into result.

  Both operands are either raw labels, which are each
  counted once, or histograms, which are merged in. The
  result holds the union with multiplicity of the inputs.
  """
  lhs_hist = isinstance(lhs, Histogram)
  rhs_hist = isinstance(rhs, Histogram)

  if lhs_hist != rhs_hist:
    raise TypeError(
      f"Cannot aggregate a raw label with a histogram. "
      f"Got: {type(lhs).__name__} and {type(rhs).__name__}"
    )

  if lhs_hist:
    result.merge(lhs)
    result.merge(rhs)
  else:
    result.increment(lhs)
    result.increment(rhs)

  return result

def agglomerate(
  lhs:np.ndarray,
  rhs:np.ndarray,
  parameters:Optional[DownsampleParameters] = None,
) -> np.ndarray:
  """
  Aggregate two equally shaped rasters cell by cell.

  lhs, rhs: label rasters or histogram rasters

  Returns: a new histogram raster of the same shape
  """
  if parameters is None:
    parameters = DownsampleParameters()

  lhs = np.asarray(lhs)
  rhs = np.asarray(rhs)

  if lhs.shape != rhs.shape:
    raise ShapeMismatchError(
      f"Rasters must have the same shape to be aggregated. "
      f"Got: {lhs.shape} and {rhs.shape}"
    )

  cells = [
    aggregate(parameters.histogram(), a, b)
    for a, b in zip(lhs.reshape(-1).tolist(), rhs.reshape(-1).tolist())
  ]
  return object_array(cells, lhs.shape)
