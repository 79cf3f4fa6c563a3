"""Thundercloud likelihood monitoring.

Projects sample points around user locations, fetches convective
parameters from Open-Meteo through a DuckDB cache, scores them for
thundercloud likelihood and alerts users per direction.
"""

__version__ = "1.0.0"
