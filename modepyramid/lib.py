from typing import Sequence

import numpy as np

def compute_byte_width(x) -> int:
  byte_width = 8
  if x <= np.iinfo(np.uint8).max:
    byte_width = 1
  elif x <= np.iinfo(np.uint16).max:
    byte_width = 2
  elif x <= np.iinfo(np.uint32).max:
    byte_width = 4

  return byte_width

width2dtype = {
  1: np.uint8,
  2: np.uint16,
  4: np.uint32,
  8: np.uint64,
}

def compute_dtype(x) -> np.dtype:
  return width2dtype[compute_byte_width(x)]

def dtype_max(dtype) -> int:
  """Largest count representable by an unsigned integer dtype."""
  dtype = np.dtype(dtype)
  if not np.issubdtype(dtype, np.unsignedinteger):
    raise TypeError(f"Count types must be unsigned integers. Got: {dtype}")
  return int(np.iinfo(dtype).max)

def block_voxels(ndim:int, num_levels:int) -> int:
  """Number of original cells summarized by one cell at a given level."""
  return 2 ** (ndim * num_levels)

def object_array(cells:Sequence, shape) -> np.ndarray:
  """
  Pack a flat sequence of python objects into an object 
  array of the given shape without numpy attempting to 
  unpack the objects themselves.
  """
  out = np.empty((len(cells),), dtype=object)
  out[:] = cells
  return out.reshape(shape)

def odd_axes(shape:Sequence[int]) -> list:
  return [ axis for axis, extent in enumerate(shape) if extent % 2 ]
