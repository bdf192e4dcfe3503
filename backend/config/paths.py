"""
Centralized path configuration for imageset
Keeps the log directory and catalog mirror under one data directory
"""

import os

# The /app/data directory is mounted as a volume in Docker
DATA_DIR = os.getenv('IMAGESET_DATA_DIR', '/app/data')

# Working copy of the catalog repository
CATALOG_DIR = os.path.join(DATA_DIR, 'rancher-catalog')

# Rotating application logs
LOG_DIR = os.path.join(DATA_DIR, 'logs')


# For development/testing outside Docker
if not os.path.exists('/app') and 'IMAGESET_DATA_DIR' not in os.environ:
    # Running locally, use relative paths
    DATA_DIR = './data'
    CATALOG_DIR = os.path.join(DATA_DIR, 'rancher-catalog')
    LOG_DIR = os.path.join(DATA_DIR, 'logs')
