# SPDX-License-Identifier: MIT
"""Package metadata.

The package version is the single source of truth for packaging.
"""

# Keep this as a simple assignment so hatchling can extract it via regex.
__version__ = '0.1.0'
