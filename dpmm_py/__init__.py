"""
dpmm - declarative package manager manager.

Describe the packages you want, let every package manager catch up.
"""

from importlib.metadata import version as _version

__version__ = _version("dpmm")
