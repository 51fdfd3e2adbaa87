import setuptools

setuptools.setup(
  name="modepyramid",
  version="0.1.0",
  description="Modal (most frequent label) downsampling pyramids for dense N-dimensional label images.",
  python_requires=">=3.9",
  packages=[ "modepyramid", "modepyramid_cli" ],
  install_requires=[
    "numpy",
    "fastremap",
    "tqdm",
    "click",
  ],
  extras_require={
    "test": [
      "pytest",
    ],
  },
  entry_points={
    "console_scripts": [
      "modepyramid=modepyramid_cli:main"
    ],
  },
)
