"""
Bounded memory pyramid construction over a stream of rows.

A reader thread pulls axis 0 rows from any iterable (an array,
a generator, or rows decoded from a file) into a bounded queue.
The aggregator consumes the queue, pairing rows at every level
and emitting each finished output row as soon as its block is
complete. When the queue is full the reader blocks, and when it
is empty the aggregator blocks, so at most buffer_size input rows
plus one pending row per level are held in memory.
"""
from typing import Any, Iterable, List, Optional, Sequence, Tuple
import queue
import threading

import numpy as np
import numpy.typing as npt
from tqdm import tqdm

from .aggregate import agglomerate
from .downsample import reduce_row
from .errors import ShapeMismatchError, CancelledError
from .operations import plan_levels
from .parameters import DownsampleParameters
from .render import render

_END = object()

class _Failure:
  def __init__(self, error:BaseException):
    self.error = error

class StreamingPyramid:
  join_timeout = 0.5

  def __init__(
    self,
    shape:Tuple[int, ...],
    dtype:Optional[npt.DTypeLike] = None,
    num_levels:Optional[int] = None,
    parameters:Optional[DownsampleParameters] = None,
    buffer_size:int = 8,
  ):
    """
    shape: shape of the complete input raster
    dtype: label type of the rendered levels. If None, the
      type of the first input row is used.
    num_levels: cap on the number of levels produced
    parameters: histogram configuration, sized to fit the
      largest block when None
    buffer_size: maximum number of input rows held between
      the reader and the aggregator
    """
    if buffer_size < 1:
      raise ValueError(f"buffer_size must be positive. Got: {buffer_size}")

    self.shape = tuple(int(extent) for extent in shape)
    self.levels = plan_levels(self.shape, num_levels)
    self.dtype = None if dtype is None else np.dtype(dtype)
    self.buffer_size = int(buffer_size)

    if parameters is None:
      parameters = DownsampleParameters.for_blocks(len(self.shape), len(self.levels))
    self.parameters = parameters

  def _put(self, buffer:queue.Queue, item:Any, stop:threading.Event) -> bool:
    while not stop.is_set():
      try:
        buffer.put(item, timeout=0.05)
        return True
      except queue.Full:
        continue
    return False

  def _produce(self, rows:Iterable, buffer:queue.Queue, stop:threading.Event):
    try:
      for row in rows:
        if not self._put(buffer, row, stop):
          return
    except Exception as err:
      self._put(buffer, _Failure(err), stop)
      return
    self._put(buffer, _END, stop)

  def run(
    self,
    rows:Iterable[npt.ArrayLike],
    sinks:Optional[Sequence[Any]] = None,
    cancel:Optional[threading.Event] = None,
    progress:bool = False,
  ) -> Optional[List[np.ndarray]]:
    """
    Consume rows and emit every level.

    rows: iterable of the raster's axis 0 rows in order
    sinks: one per level. A sink with a write method receives
      the raw C order bytes of each output row, any other sink
      is called with the output row. If None, the levels are
      collected and returned.
    cancel: checked between rows; raises CancelledError when set

    Returns: list of levels if sinks is None, otherwise None
    """
    if sinks is not None and len(sinks) != len(self.levels):
      raise ValueError(
        f"Expected one sink per level ({len(self.levels)}). Got: {len(sinks)}"
      )

    collected = [ [] for _ in self.levels ]
    pending = [ None for _ in self.levels ]
    dtype = self.dtype

    def emit(level:int, row:np.ndarray):
      if sinks is None:
        collected[level].append(row)
        return

      sink = sinks[level]
      if hasattr(sink, "write"):
        sink.write(np.ascontiguousarray(row).tobytes())
      else:
        sink(row)

    def feed(level:int, partial:np.ndarray):
      if pending[level] is None:
        pending[level] = partial
        return

      histograms = agglomerate(pending[level], partial, self.parameters)
      pending[level] = None
      emit(level, render(histograms, dtype=dtype))

      if level + 1 < len(self.levels):
        feed(level + 1, reduce_row(histograms, self.parameters))

    buffer = queue.Queue(maxsize=self.buffer_size)
    stop = threading.Event()
    reader = threading.Thread(
      target=self._produce, args=(rows, buffer, stop), daemon=True
    )
    reader.start()

    row_shape = self.shape[1:]
    count = 0
    pbar = tqdm(total=self.shape[0], disable=(not progress), desc="Streaming")
    try:
      while True:
        item = buffer.get()
        if item is _END:
          break
        if isinstance(item, _Failure):
          raise item.error
        if cancel is not None and cancel.is_set():
          raise CancelledError("Streaming was cancelled.")

        row = np.asarray(item)
        if row.shape != row_shape:
          raise ShapeMismatchError(
            f"Row {count} has shape {row.shape}, expected: {row_shape}"
          )
        if count >= self.shape[0]:
          raise ShapeMismatchError(
            f"Received more than the {self.shape[0]} rows declared by shape {self.shape}."
          )
        if dtype is None:
          dtype = row.dtype

        if len(self.levels):
          feed(0, reduce_row(row, self.parameters))
        count += 1
        pbar.update(1)
    finally:
      stop.set()
      pbar.close()
      # a reader blocked inside the source iterator cannot observe
      # stop, so it is left behind as a daemon rather than joined
      reader.join(timeout=self.join_timeout)

    if count != self.shape[0]:
      raise ShapeMismatchError(
        f"Received {count} rows but shape {self.shape} declares {self.shape[0]}."
      )

    if sinks is not None:
      return None

    return [
      np.stack(level_rows).astype(dtype, copy=False)
      for level_rows in collected
    ]

def stream_pyramid(
  rows:Iterable[npt.ArrayLike],
  shape:Tuple[int, ...],
  dtype:Optional[npt.DTypeLike] = None,
  sinks:Optional[Sequence[Any]] = None,
  num_levels:Optional[int] = None,
  parameters:Optional[DownsampleParameters] = None,
  buffer_size:int = 8,
  cancel:Optional[threading.Event] = None,
  progress:bool = False,
) -> Optional[List[np.ndarray]]:
  """Build a modal pyramid from a stream of axis 0 rows. See StreamingPyramid."""
  pipeline = StreamingPyramid(
    shape,
    dtype=dtype,
    num_levels=num_levels,
    parameters=parameters,
    buffer_size=buffer_size,
  )
  return pipeline.run(rows, sinks=sinks, cancel=cancel, progress=progress)
