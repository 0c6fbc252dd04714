#!/usr/bin/env python

from setuptools import setup


setup(
    name="hmtxTools",
    version="0.1b0",
    description="A tool for scaling the advance widths of TrueType and OpenType fonts.",
    license="MIT",
    packages=[
        "hmtxTools",
        "hmtxTools.tools",
        "hmtxTools.test"
    ],
    package_dir={"":"Lib"},
    install_requires=[
        "fonttools",
    ],
    extras_require={
        "test": ["pytest"],
    },
    scripts=[
        "hmtx-scale",
    ]
)
