"""
Root conftest.py: puts backend/ on sys.path so tests can import the
top-level packages (registry, catalog, config, models, api) without an install.
"""
import os
import sys

backend_dir = os.path.dirname(os.path.abspath(__file__))
if backend_dir not in sys.path:
    sys.path.insert(0, backend_dir)
