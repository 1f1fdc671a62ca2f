#!/usr/bin/env python3
"""
Setup script for GEX.
"""

from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name="gex",
    version="0.4.0",
    author="GEX Contributors",
    author_email="example@example.com",
    description="Dependency auditing and documentation for Node.js and Bun projects (local and global)",
    long_description=long_description,
    long_description_content_type="text/markdown",
    url="https://github.com/yabasha/gex",
    packages=find_packages(exclude=["tests", "tests.*"]),
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: Apache Software License",
        "Operating System :: OS Independent",
    ],
    python_requires=">=3.9",
    install_requires=[
        "tomli>=2.0.0",
        "pyyaml>=6.0",
        "tqdm>=4.60",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "gex=gex.main:main",
            "gex-npm=gex.main:main",
            "gex-bun=gex.main:main_bun",
            "gex-read=gex.tools.read_report:main",
            "gex-outdated=gex.tools.check_outdated:main",
        ],
    },
)
