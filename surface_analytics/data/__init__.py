"""
Data Generation Module
"""
from .generators import ProductCatalogGenerator, SessionEventGenerator

__all__ = ["ProductCatalogGenerator", "SessionEventGenerator"]
