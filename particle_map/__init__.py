"""ParticleMap.

Rasterizes GeoJSON polygon boundaries into a uniform screen-space grid
by even-odd point-in-polygon classification, for stippled map
rendering.
"""

__version__ = "0.1.0"
