"""Pytest configuration for all tests."""

import os
import sys

# Make the `src` namespace package importable without installation
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if project_root not in sys.path:
    sys.path.insert(0, project_root)
