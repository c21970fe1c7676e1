#!/usr/bin/python3
# -*- coding: utf-8 -*-
"""Top-level executable shim.

Purpose:
- `python netdiag.py ...` command execution from a source checkout
- imports of the public API from the repository root
"""

import os
import sys

from netdiag.core import (
    DIAGNOSE,
    axfr_check,
    blacklist_check,
    dns_performance,
    run_probe,
    tls_probe,
)
from netdiag.cli import main
from netdiag.version import __version__

__all__ = [
    "__version__",
    "DIAGNOSE",
    "axfr_check",
    "blacklist_check",
    "dns_performance",
    "main",
    "run_probe",
    "tls_probe",
]

if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        print("\nInterrupted")
        try:
            sys.exit(0)
        except SystemExit:
            os._exit(0)
