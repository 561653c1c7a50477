"""
Volaria Almanac
===============

Historical football records engine:
- Season ingestion and finish classification
- Club career accumulation
- Lineage merging across renamed and succeeded clubs
- Location and nation rankings
"""

__version__ = "1.0.0"
