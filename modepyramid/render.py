from typing import Optional

import numpy as np
import numpy.typing as npt

from .errors import ShapeMismatchError

def render(
  histograms:np.ndarray,
  dtype:Optional[npt.DTypeLike] = None,
) -> np.ndarray:
  """
  Collapse a histogram raster into a label raster by
  taking the mode of every cell.

  dtype: label type of the output. If None, numpy infers
    it from the modes.
  """
  histograms = np.asarray(histograms)
  modes = [ hist.mode() for hist in histograms.reshape(-1).tolist() ]

  if dtype is None:
    return np.array(modes).reshape(histograms.shape)

  out = np.array(modes, dtype=dtype)
  return out.reshape(histograms.shape)

def render_into(
  histograms:np.ndarray,
  output:np.ndarray,
) -> np.ndarray:
  """Write the mode of every cell into a preallocated output view."""
  histograms = np.asarray(histograms)
  if output.shape != histograms.shape:
    raise ShapeMismatchError(
      f"Output region {output.shape} does not match the histogram raster {histograms.shape}."
    )
  output[...] = render(histograms, dtype=output.dtype)
  return output
