"""
Independent work units for computing one downsampled level.

A Shard covers a bounded run of input rows along axis 0 and holds
the partial histograms those rows contribute to their output rows.
Because histogram merges are commutative and associative, shards
can be computed in separate processes and combined in any order
or tree shape with identical results.
"""
from typing import Dict, FrozenSet, List, Optional, Sequence, Tuple
from functools import reduce
import multiprocessing as mp
import threading

import numpy as np
import numpy.typing as npt
from tqdm import tqdm

from .aggregate import agglomerate
from .downsample import reduce_row, validate_shape
from .errors import ShapeMismatchError, EmptyInputError, CancelledError
from .parameters import DownsampleParameters
from .render import render_into

class Shard:
  def __init__(
    self,
    extent:int,
    shape:Tuple[int, ...],
    rows:Dict[int, np.ndarray],
    inputs:FrozenSet[int],
    parameters:Optional[DownsampleParameters] = None,
  ):
    """
    extent: axis 0 extent of the full input raster
    shape: shape of one output row (the trailing output axes)
    rows: output row index -> partial histogram raster
    inputs: the input rows folded into this shard
    """
    if parameters is None:
      parameters = DownsampleParameters()

    self.extent = int(extent)
    self.shape = tuple(shape)
    self.rows = rows
    self.inputs = frozenset(inputs)
    self.parameters = parameters

  @classmethod
  def compute(
    kls,
    rows:npt.ArrayLike,
    offset:int,
    extent:int,
    parameters:Optional[DownsampleParameters] = None,
  ) -> "Shard":
    """
    Compute a shard from a slice of input rows.

    rows: raster[offset:offset+n], raw labels or histograms
    offset: index of the first row within the full raster
    extent: axis 0 extent of the full raster
    """
    if parameters is None:
      parameters = DownsampleParameters()

    rows = np.asarray(rows)
    if rows.ndim == 0:
      raise ShapeMismatchError("Shards must be cut from rasters with at least one axis.")
    if rows.shape[0] == 0:
      raise EmptyInputError("Shards must contain at least one row.")
    if extent % 2:
      raise ShapeMismatchError(f"Axis 0 must have an even extent to be halved. Got: {extent}")
    if offset < 0 or offset + rows.shape[0] > extent:
      raise ShapeMismatchError(
        f"Rows [{offset}, {offset + rows.shape[0]}) lie outside of an axis of extent {extent}."
      )

    partials = {}
    for i in range(rows.shape[0]):
      partial = reduce_row(rows[i], parameters)
      k = (offset + i) // 2
      if k in partials:
        partials[k] = agglomerate(partials[k], partial, parameters)
      else:
        partials[k] = partial

    return Shard(
      extent=extent,
      shape=tuple(s // 2 for s in rows.shape[1:]),
      rows=partials,
      inputs=frozenset(range(offset, offset + rows.shape[0])),
      parameters=parameters,
    )

  @classmethod
  def fromslice(
    kls,
    raster:npt.ArrayLike,
    start:int,
    stop:int,
    parameters:Optional[DownsampleParameters] = None,
  ) -> "Shard":
    raster = np.asarray(raster)
    return Shard.compute(raster[start:stop], start, raster.shape[0], parameters)

  @property
  def start(self) -> int:
    return min(self.inputs)

  @property
  def stop(self) -> int:
    return max(self.inputs) + 1

  def output_rows(self) -> List[int]:
    return sorted(self.rows.keys())

  def missing_rows(self) -> List[int]:
    """Input rows needed to finish this shard's output rows."""
    missing = []
    for k in self.output_rows():
      missing += [ i for i in (2*k, 2*k+1) if i not in self.inputs ]
    return missing

  def is_complete(self) -> bool:
    return len(self.missing_rows()) == 0

  def combine(self, other:"Shard") -> "Shard":
    """
    Merge two shards into one covering both sets of input rows.
    Neither operand is modified.
    """
    if self.extent != other.extent:
      raise ShapeMismatchError(
        f"Shards were cut from rasters of different extents: {self.extent} and {other.extent}"
      )
    if self.shape != other.shape:
      raise ShapeMismatchError(
        f"Shards have incompatible row shapes: {self.shape} and {other.shape}"
      )

    overlap = self.inputs & other.inputs
    if overlap:
      raise ShapeMismatchError(
        f"Shards overlap on input rows {sorted(overlap)} and would double count them."
      )

    rows = dict(self.rows)
    for k, partial in other.rows.items():
      if k in rows:
        rows[k] = agglomerate(rows[k], partial, self.parameters)
      else:
        rows[k] = partial

    return Shard(
      extent=self.extent,
      shape=self.shape,
      rows=rows,
      inputs=(self.inputs | other.inputs),
      parameters=self.parameters,
    )

  def _require_complete(self):
    missing = self.missing_rows()
    if missing:
      raise ShapeMismatchError(
        f"Input rows {missing} are required to complete this shard."
      )

  def histograms(self) -> np.ndarray:
    """Assemble the histogram raster of a shard covering the whole raster."""
    self._require_complete()
    if self.output_rows() != list(range(self.extent // 2)):
      raise ShapeMismatchError(
        f"Shard covers output rows {self.output_rows()} of {self.extent // 2}."
      )

    out = np.empty((self.extent // 2,) + self.shape, dtype=object)
    for k, partial in self.rows.items():
      out[k:k+1] = partial[np.newaxis]
    return out

  def render(self, output:np.ndarray) -> np.ndarray:
    """
    Write the mode of each cell into this shard's rows of the
    output raster. Other rows of output are not touched, so
    shards covering disjoint rows may render concurrently.
    """
    expected = (self.extent // 2,) + self.shape
    if output.shape != expected:
      raise ShapeMismatchError(
        f"Output raster has shape {output.shape}, expected: {expected}"
      )
    self._require_complete()

    for k, partial in self.rows.items():
      render_into(partial[np.newaxis], output[k:k+1])
    return output

  def __repr__(self):
    return f"Shard(rows=[{self.start}, {self.stop}), outputs={self.output_rows()}, shape={self.shape})"

def partition(extent:int, rows_per_shard:int) -> List[Tuple[int, int]]:
  """Split [0, extent) into half open runs of at most rows_per_shard rows."""
  if rows_per_shard < 1:
    raise ValueError(f"rows_per_shard must be positive. Got: {rows_per_shard}")
  return [
    (start, min(start + rows_per_shard, extent))
    for start in range(0, extent, rows_per_shard)
  ]

def _compute_shard(task) -> Shard:
  rows, offset, extent, parameters = task
  return Shard.compute(rows, offset, extent, parameters)

def _check_cancelled(cancel:Optional[threading.Event]):
  if cancel is not None and cancel.is_set():
    raise CancelledError("Downsampling was cancelled.")

def compute_shards(
  raster:npt.ArrayLike,
  rows_per_shard:int = 2,
  parallel:int = 1,
  parameters:Optional[DownsampleParameters] = None,
  progress:bool = False,
  cancel:Optional[threading.Event] = None,
) -> List[Shard]:
  """
  Map phase: compute one shard per run of rows_per_shard rows.

  parallel: number of worker processes. 0 means one per CPU,
    1 computes every shard in this process.
  cancel: if set, stop between shards and raise CancelledError
  """
  if parameters is None:
    parameters = DownsampleParameters()

  raster = np.asarray(raster)
  validate_shape(raster.shape)

  extent = raster.shape[0]
  tasks = [
    (raster[start:stop], start, extent, parameters)
    for start, stop in partition(extent, rows_per_shard)
  ]

  if parallel <= 0:
    parallel = mp.cpu_count()
  parallel = min(parallel, len(tasks))

  shards = []
  if parallel == 1:
    for task in tqdm(tasks, disable=(not progress), desc="Shards"):
      _check_cancelled(cancel)
      shards.append(_compute_shard(task))
    return shards

  with mp.Pool(parallel) as pool:
    results = pool.imap(_compute_shard, tasks)
    for shard in tqdm(results, total=len(tasks), disable=(not progress), desc="Shards"):
      _check_cancelled(cancel)
      shards.append(shard)

  return shards

def reduce_shards(
  shards:Sequence[Shard],
  tree:bool = True,
  cancel:Optional[threading.Event] = None,
) -> Shard:
  """
  Reduce phase: combine shards into one.

  tree: combine neighbors pairwise in a balanced tree of
    logarithmic depth. Otherwise fold left to right. Both
    give identical results.
  """
  shards = list(shards)
  if len(shards) == 0:
    raise ValueError("At least one shard is required.")

  if not tree:
    def combine(lhs, rhs):
      _check_cancelled(cancel)
      return lhs.combine(rhs)
    return reduce(combine, shards)

  while len(shards) > 1:
    _check_cancelled(cancel)
    combined = [
      shards[i].combine(shards[i+1])
      for i in range(0, len(shards) - 1, 2)
    ]
    if len(shards) % 2:
      combined.append(shards[-1])
    shards = combined

  return shards[0]

def downsample_sharded(
  raster:npt.ArrayLike,
  rows_per_shard:int = 2,
  parallel:int = 1,
  parameters:Optional[DownsampleParameters] = None,
  tree:bool = True,
  progress:bool = False,
  cancel:Optional[threading.Event] = None,
) -> np.ndarray:
  """
  Equivalent to downsample(raster) but computed as independent
  shards that are then combined.
  """
  shards = compute_shards(
    raster,
    rows_per_shard=rows_per_shard,
    parallel=parallel,
    parameters=parameters,
    progress=progress,
    cancel=cancel,
  )
  return reduce_shards(shards, tree=tree, cancel=cancel).histograms()
