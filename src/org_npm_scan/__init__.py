"""
Organization-wide npm Compromised Package Scanner

Audits every repository and release branch of a GitHub organization for
references to known-compromised npm package versions
"""

try:
    from importlib.metadata import version
    __version__ = version("org-npm-scan")
except Exception:
    # Fallback for development installs
    __version__ = "0.0.0-dev"

from . import adapters
from . import core

__all__ = ['core', 'adapters', '__version__']
