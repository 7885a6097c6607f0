#!/usr/bin/env python3
"""
Setup script for mesh-deployer.
This is a lightweight installation that only installs the deployer package.
"""

from setuptools import setup, find_packages

# Most configuration is in pyproject.toml
# This file exists for compatibility with older pip versions

setup(
    packages=find_packages(include=["mesh_deployer", "mesh_deployer.*"]),
)
