#!/usr/bin/env python

"""
A setuptools based setup module.
See:
https://packaging.python.org/en/latest/distributing.html
https://github.com/pypa/sampleproject
"""

from pathlib import Path

# Always prefer setuptools over distutils
from setuptools import find_packages, setup

# Get the long description from the README file
long_description = (Path(__file__).parent / "README.md").read_text()

setup(
    name="mvtrack",
    version="0.1.0",
    description="Cross-view ray correspondence for multi-camera feature tracking",
    long_description=long_description,
    long_description_content_type="text/markdown",
    url="",
    author="",
    author_email="",
    license="BSD-3-Clause",
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Operating System :: POSIX",
        "Operating System :: MacOS",
        "Programming Language :: Python :: 3",
        "Topic :: Scientific/Engineering :: Image Recognition",
    ],
    keywords="computer-vision",
    packages=find_packages(include=["mvtrack", "mvtrack.*"]),
    package_data={"mvtrack.configs": ["*.yaml"]},
    include_package_data=True,
    python_requires=">= 3.8",
    install_requires=[
        "numpy",
        "scipy",
        "gtsam",
        "dask",
        "distributed",
        "hydra-core",
        "omegaconf",
        "simplejson",
    ],
    extras_require={"test": ["pytest"]},
)
