from typing import Iterator, List, Sequence, Tuple

import io
import os
import gzip
import lzma

import numpy as np
import numpy.typing as npt

def open_file(filelike, mode:str):
  if (
    isinstance(filelike, str)
    and os.path.splitext(filelike)[1] == '.gz'
  ):
    return gzip.open(filelike, mode)
  elif (
    isinstance(filelike, str)
    and os.path.splitext(filelike)[1] in ('.lzma', '.xz')
  ):
    return lzma.open(filelike, mode)
  return open(filelike, mode)

def _load(filelike, size:int = -1) -> bytes:
  if hasattr(filelike, 'read'):
    return filelike.read(size)

  with open_file(filelike, 'rb') as f:
    return f.read(size)

def load(filelike) -> np.ndarray:
  """Load a label image from a .npy file-like object or file path."""
  f = io.BytesIO(_load(filelike))
  return np.load(f)

def save(labels:np.ndarray, filelike):
  """Save labels as .npy into the file-like object or file path."""
  if hasattr(filelike, 'write'):
    np.save(filelike, labels)
    return

  with open_file(filelike, 'wb') as f:
    np.save(f, labels)

def level_path(prefix:str, level:int, compress:bool = False) -> str:
  dest = f"{prefix}.mip{level}.npy"
  if compress:
    dest += ".gz"
  return dest

def save_pyramid(
  levels:Sequence[np.ndarray],
  prefix:str,
  compress:bool = False,
) -> List[str]:
  """
  Write each level to {prefix}.mip{k}.npy, starting at k=1.
  Returns the written paths.
  """
  paths = []
  for i, level in enumerate(levels):
    dest = level_path(prefix, i + 1, compress)
    save(level, dest)
    paths.append(dest)
  return paths

def iter_rows(
  filelike,
  shape:Tuple[int, ...],
  dtype:npt.DTypeLike,
) -> Iterator[np.ndarray]:
  """
  Decode C order axis 0 rows one at a time from a binary
  stream so that the whole raster never needs to be in memory.
  """
  dtype = np.dtype(dtype)
  row_shape = tuple(shape[1:])
  row_bytes = int(np.prod(row_shape, dtype=np.int64)) * dtype.itemsize

  for i in range(shape[0]):
    binary = filelike.read(row_bytes)
    if len(binary) != row_bytes:
      raise EOFError(
        f"Row {i} is truncated. Expected {row_bytes} bytes, got: {len(binary)}"
      )
    yield np.frombuffer(binary, dtype=dtype).reshape(row_shape)

def read_npy_header(f) -> Tuple[Tuple[int, ...], np.dtype, bool]:
  """Returns (shape, dtype, fortran_order) and leaves f at the data."""
  version = np.lib.format.read_magic(f)
  if version == (1, 0):
    shape, fortran_order, dtype = np.lib.format.read_array_header_1_0(f)
  else:
    shape, fortran_order, dtype = np.lib.format.read_array_header_2_0(f)
  return (shape, dtype, fortran_order)

def write_npy_header(f, shape:Tuple[int, ...], dtype:npt.DTypeLike):
  """Write a .npy header for a C order array whose data will follow."""
  np.lib.format.write_array_header_2_0(f, {
    "descr": np.lib.format.dtype_to_descr(np.dtype(dtype)),
    "fortran_order": False,
    "shape": tuple(shape),
  })
