"""
Surface Analytics Platform

Aggregation engine and report API for image-upload search sessions.
"""

__version__ = "1.0.0"
