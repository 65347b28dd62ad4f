"""
Pytest configuration for the fleet monitor test suite.

Puts src/ on sys.path so tests import the flat modules (models, eta,
monitor, ...) by bare name, the same way main.py does from a checkout.
"""

import os
import sys

SRC_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "src")

if SRC_DIR not in sys.path:
    sys.path.insert(0, SRC_DIR)
