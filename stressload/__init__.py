"""
stress-load: synthetic CPU, memory and storage pressure for a bounded duration.
"""

__version__ = "0.1.0"
