import os
import sys

import click
import numpy as np

import modepyramid

@click.command()
@click.option('-n', "--num-levels", default=None, type=int, help="Maximum number of levels to produce. Default: until an axis reaches 1.")
@click.option('-p', "--parallel", default=1, help="Number of worker processes per level. 0 means all cores.", show_default=True)
@click.option('-s', "--stream", default=False, is_flag=True, help="Stream rows from disk with bounded memory instead of loading the whole image.", show_default=True)
@click.option('-b', "--buffer", "buffer_size", default=8, help="Rows buffered between the reader and the aggregator in streaming mode.", show_default=True)
@click.option('-i', "--info", default=False, is_flag=True, help="Print the planned level shapes without computing them.", show_default=True)
@click.option('-z', 'gzip', default=False, is_flag=True, help="Apply gzip compression to the written levels.", show_default=True)
@click.option("--progress", default=False, is_flag=True, help="Show progress bars.", show_default=True)
@click.argument("source", nargs=-1)
def main(num_levels, parallel, stream, buffer_size, info, gzip, progress, source):
	"""
	Compute modal downsampling pyramids of numpy (.npy) label images.

	Each level k is written next to its source as SOURCE.mip{k}.npy
	"""
	source = list(source)
	for i in range(len(source)):
		if source[i] == "-":
			source = source[:i] + [ line.strip() for line in sys.stdin.readlines() ] + source[i+1:]

	for src in source:
		if info:
			print_plan(src, num_levels)
		elif stream:
			stream_file(src, num_levels, buffer_size, gzip, progress)
		else:
			pyramid_file(src, num_levels, parallel, gzip, progress)

def read_header(src):
	with open(src, "rb") as f:
		return modepyramid.util.read_npy_header(f)

def print_plan(src, num_levels):
	try:
		shape, dtype, fortran_order = read_header(src)
	except FileNotFoundError:
		print(f"modepyramid: File \"{src}\" does not exist.")
		return
	except ValueError as err:
		print(f"modepyramid: {src} is not a numpy file. {err}")
		return

	print(f"Filename: {src}")
	print(f"shape: {shape}")
	print(f"dtype: {dtype}")
	try:
		levels = modepyramid.plan_levels(shape, num_levels)
	except modepyramid.PyramidError as err:
		print(f"modepyramid: {err}")
		return

	for i, level in enumerate(levels):
		print(f"mip {i+1}: {level}")

	params = modepyramid.DownsampleParameters.for_blocks(len(shape), len(levels))
	print(params.details())

def removesuffix(x:str, suffix:str) -> str:
	if x.endswith(suffix):
		x = x[:-len(suffix)]
	return x

def output_prefix(src:str) -> str:
	src = removesuffix(src, ".lzma")
	src = removesuffix(src, ".gz")
	src = removesuffix(src, ".xz")
	return removesuffix(src, ".npy")

def pyramid_file(src, num_levels, parallel, gzip, progress):
	try:
		labels = modepyramid.load(src)
	except FileNotFoundError:
		print(f"modepyramid: File \"{src}\" does not exist.")
		return
	except (ValueError, OSError, EOFError):
		print(f"modepyramid: {src} is not a numpy file.")
		return

	try:
		levels = modepyramid.build_pyramid(
			labels,
			num_levels=num_levels,
			parallel=parallel,
			progress=progress,
		)
	except modepyramid.PyramidError as err:
		print(f"modepyramid: {src}: {err}")
		return

	del labels
	modepyramid.save_pyramid(levels, output_prefix(src), compress=gzip)

def stream_file(src, num_levels, buffer_size, gzip, progress):
	if not os.path.exists(src):
		print(f"modepyramid: File \"{src}\" does not exist.")
		return
	if src.endswith(".gz") or src.endswith(".xz") or src.endswith(".lzma"):
		print(f"modepyramid: {src} must be an uncompressed .npy file to be streamed.")
		return

	try:
		shape, dtype, fortran_order = read_header(src)
	except ValueError as err:
		print(f"modepyramid: {src} is not a numpy file. {err}")
		return

	if fortran_order:
		print(f"modepyramid: {src} is in Fortran order and cannot be streamed by rows. Run without --stream.")
		return

	try:
		pipeline = modepyramid.StreamingPyramid(
			shape, dtype=dtype,
			num_levels=num_levels,
			buffer_size=buffer_size,
		)
	except modepyramid.PyramidError as err:
		print(f"modepyramid: {src}: {err}")
		return

	prefix = output_prefix(src)
	dests = [
		modepyramid.util.level_path(prefix, i + 1, gzip)
		for i in range(len(pipeline.levels))
	]
	sinks = []
	finished = False
	try:
		for dest, level_shape in zip(dests, pipeline.levels):
			f = modepyramid.util.open_file(dest, "wb")
			sinks.append(f)
			modepyramid.util.write_npy_header(f, level_shape, dtype)

		with open(src, "rb") as f:
			modepyramid.util.read_npy_header(f)
			rows = modepyramid.iter_rows(f, shape, dtype)
			pipeline.run(rows, sinks=sinks, progress=progress)
		finished = True
	except (modepyramid.PyramidError, EOFError) as err:
		print(f"modepyramid: {src}: {err}")
	finally:
		for f in sinks:
			f.close()
		# partially written levels have headers that claim the full shape
		if not finished:
			for dest in dests[:len(sinks)]:
				os.remove(dest)
