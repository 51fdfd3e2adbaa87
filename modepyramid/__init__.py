"""Modal downsampling pyramids for dense label images.

Each level of the pyramid replaces every 2x2x...x2 block of
the *original* image with its most frequent label. This is
not the same as repeatedly taking the mode of the previous
level: a block can have a majority label that is not the
majority of any of its sub-blocks. For example, the 4x8 image

  11111111
  12121212
  11222222
  12222222

has the 1-downsampled image

  1111
  1222

and the 2-downsampled image "12", because the upper left 4x4
block contains nine 1s and seven 2s, even though the mode of
the modes of its four 2x2 blocks (1, 1, 1, 2) would also give 1
here but not in general.

To get this right without rescanning the original pixels at
every level, each cell carries a histogram of label counts.
Histograms merge losslessly, so level k is built by pairwise
merging the histograms of level k-1 and rendering their modes.
Ties resolve to the lowest label, which keeps the result
independent of merge order.

The traversal is recursive over axes, so any number of
dimensions is supported. Levels can also be computed as
independent shards in worker processes, or from a stream of
rows with bounded memory.
"""
from .aggregate import aggregate, agglomerate
from .downsample import downsample, reduce_row
from .errors import (
	PyramidError, ShapeMismatchError, EmptyInputError,
	EmptyHistogramError, CountOverflowError, CancelledError,
)
from .histogram import Histogram
from .operations import (
	plan_levels, block_mode, naive_pyramid,
	histogram_raster, histograms_equal,
)
from .parameters import DownsampleParameters
from .pyramid import build_pyramid
from .render import render, render_into
from .shards import (
	Shard, partition, compute_shards,
	reduce_shards, downsample_sharded,
)
from .streaming import StreamingPyramid, stream_pyramid
from .util import load, save, save_pyramid, iter_rows
