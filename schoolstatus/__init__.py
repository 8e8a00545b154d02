"""
School Status Engine.

Resolves whether a school district is open, closed or delayed by scraping
several independent closing reports and combining their verdicts.

Packages:
    ingest - source registry, extraction, fetchers, coordinator, health
    resolution - resolution policies, result cache, status engine
    config - YAML configuration loading and validation
    api - FastAPI read endpoint
"""

__version__ = "1.0.0"
