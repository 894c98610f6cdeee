# cointrestrict/version.py
"""
cointrestrict Version Information

This module contains version information and package metadata. It is
accessible programmatically via cointrestrict.__version__.

The package follows semantic versioning (MAJOR.MINOR.PATCH):
- MAJOR: Incompatible API changes
- MINOR: Backwards-compatible functionality additions
- PATCH: Backwards-compatible bug fixes
"""

from typing import Any, Dict, Tuple

# Version components
VERSION_MAJOR = 1
VERSION_MINOR = 0
VERSION_PATCH = 0

# Full version string
__version__ = f"{VERSION_MAJOR}.{VERSION_MINOR}.{VERSION_PATCH}"

# Package metadata
__title__ = "cointrestrict"
__description__ = "Maximum-likelihood estimation of VECMs under general restrictions on the cointegrating vectors"
__license__ = "MIT"

# Python version requirements
__python_requires__ = ">=3.10"

# Package dependencies
__dependencies__ = {
    "numpy": ">=1.26.0",
    "scipy": ">=1.11.3",
    "pandas": ">=2.1.1",
    "numba": ">=0.58.0",
    "statsmodels": ">=0.14.0",
}

# Version history with release dates and major changes
VERSION_HISTORY = [
    {
        "version": "1.0.0",
        "release_date": "2026-10-19",
        "changes": [
            "Restricted beta estimation with simulated annealing and L-BFGS",
            "Identification check by rank conditions with a Jacobian fallback",
            "Delta-method standard errors and likelihood-ratio test",
            "Homogeneous restrictions on the loadings",
        ]
    },
]


def get_version_info() -> Dict[str, Any]:
    """
    Get comprehensive version information.

    Returns:
        Dict[str, Any]: Dictionary containing version information
    """
    return {
        "version": __version__,
        "major": VERSION_MAJOR,
        "minor": VERSION_MINOR,
        "patch": VERSION_PATCH,
        "title": __title__,
        "description": __description__,
        "license": __license__,
        "python_requires": __python_requires__,
        "dependencies": __dependencies__,
    }


def get_version_tuple() -> Tuple[int, int, int]:
    """Get version as a tuple of (major, minor, patch)."""
    return (VERSION_MAJOR, VERSION_MINOR, VERSION_PATCH)
