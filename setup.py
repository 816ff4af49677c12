#!/usr/bin/env python3
# -*- coding: utf-8 -*-

import os
from pathlib import Path
from setuptools import find_namespace_packages, setup

HERE = Path(os.path.abspath(__file__)).resolve().parent
README = (HERE / "readme.md").read_text()

setup(
    name="linepipe",
    version="0.1.0",
    description="Run shell commands with typed exit statuses and lazily streamed lines.",
    long_description=README,
    long_description_content_type="text/markdown",
    license="Apache-2.0",
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: Apache Software License",
        "Operating System :: POSIX",
    ],
    keywords="shell, subprocess, pipeline, streaming",
    python_requires=">=3.10",
    package_dir={"": "src/cli"},
    packages=find_namespace_packages(where="src/cli", include=["linepipe*"]),
    include_package_data=True,
    install_requires=[
        "click>=8.2",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={"console_scripts": ["linepipe=linepipe.cli:cli"]},
)
