"""Public package surface for netdiag.

Importing `netdiag` exposes the high-level API function (`DIAGNOSE`) and
package version.
"""

from .core import DIAGNOSE
from .version import __version__

__all__ = ["DIAGNOSE", "__version__"]
