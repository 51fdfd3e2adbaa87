from typing import Optional

import numpy as np
import numpy.typing as npt

from .aggregate import aggregate, agglomerate
from .errors import ShapeMismatchError, EmptyInputError
from .histogram import Histogram
from .lib import object_array, odd_axes
from .parameters import DownsampleParameters

def validate_shape(shape) -> None:
  """Raise if a raster of this shape cannot be halved."""
  shape = tuple(shape)
  if len(shape) == 0:
    raise ShapeMismatchError("Rasters must have at least one axis to be downsampled.")
  if any(extent == 0 for extent in shape):
    raise EmptyInputError(f"Rasters must not have zero length axes. Got: {shape}")

  odd = odd_axes(shape)
  if odd:
    raise ShapeMismatchError(
      f"Every axis must have an even extent to be halved. "
      f"Got: {shape} (odd axes: {odd})"
    )

def downsample(
  raster:npt.ArrayLike,
  parameters:Optional[DownsampleParameters] = None,
) -> np.ndarray:
  """
  Halve every axis of a raster, aggregating each 2x...x2 block
  into a histogram.

  raster: an N dimensional array of raw labels, or an object
    array of Histograms produced by a previous call.
  parameters: histogram configuration (count type, mode cache)

  Returns: histogram raster with shape (s0/2, s1/2, ..., sN/2)
  """
  if parameters is None:
    parameters = DownsampleParameters()

  raster = np.asarray(raster)
  validate_shape(raster.shape)
  return _downsample(raster, parameters)

def _downsample(raster:np.ndarray, parameters:DownsampleParameters) -> np.ndarray:
  if raster.ndim == 1:
    line = raster.tolist()
    cells = [
      aggregate(parameters.histogram(), line[2*i], line[2*i+1])
      for i in range(len(line) // 2)
    ]
    return object_array(cells, (len(cells),))

  out = np.empty([ extent // 2 for extent in raster.shape ], dtype=object)
  for i in range(out.shape[0]):
    lhs = _downsample(raster[2*i], parameters)
    rhs = _downsample(raster[2*i+1], parameters)
    out[i] = agglomerate(lhs, rhs, parameters)
  return out

def reduce_row(
  row:npt.ArrayLike,
  parameters:Optional[DownsampleParameters] = None,
) -> np.ndarray:
  """
  Downsample the trailing axes of a single axis 0 row.

  The result is the partial histogram raster that this row
  contributes to its output row. A row of a 1D raster is a
  single cell, which becomes a 0D histogram raster.
  """
  if parameters is None:
    parameters = DownsampleParameters()

  row = np.asarray(row)
  if row.ndim > 0:
    return downsample(row, parameters)

  cell = row.item()
  hist = parameters.histogram()
  if isinstance(cell, Histogram):
    hist.merge(cell)
  else:
    hist.increment(cell)
  return object_array([ hist ], ())
