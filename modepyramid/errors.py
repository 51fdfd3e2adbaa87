class PyramidError(Exception):
  pass

class ShapeMismatchError(PyramidError, ValueError):
  """Odd extents on a halving, or incompatible rasters, shards, or rows."""
  pass

class EmptyInputError(PyramidError, ValueError):
  """The raster has a zero extent on at least one axis."""
  pass

class EmptyHistogramError(PyramidError):
  """
  The mode of a histogram without observations was requested.

  A correctly built histogram raster never contains such a cell,
  so seeing this means an internal invariant was broken.
  """
  pass

class CountOverflowError(PyramidError, OverflowError):
  pass

class CancelledError(PyramidError):
  pass
