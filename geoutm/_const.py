"""
Constants declarations for geoutm
"""

# WGS84 Ellipsoid Constants
WGS84_A = 6378137.0  # Major axis (meters)
WGS84_INVERSE_FLATTENING = '298.257223563'  # Kept as a string so it converts exactly

# UTM grid
UTM_SCALE_FACTOR = '0.9996'
FALSE_EASTING = 500_000.0
FALSE_NORTHING_SOUTH = 10_000_000.0
ZONE_WIDTH_DEGREES = 6

# Decimal expansions for splitting into float32 high/low pairs
PI = '3.14159265358979323846264338327950288419716939937510'
LN2 = '0.69314718055994530941723212145817656807550013436026'
