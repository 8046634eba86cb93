# constants.py

"""
Application Constants

This module defines static values for the simulation engine and its pygame
host. These are not expected to change between simulation runs; anything a
run may tune lives in config.json instead.

Data Contract:
- All values are immutable constants.
- Units are simulation units (pixels, ticks) unless stated otherwise.
"""

# Default surface dimensions
WIDTH = 1200  # Pixels
HEIGHT = 800  # Pixels

# Framerate of the pygame host
FPS = 60  # Frames per second

# Window Title
TITLE = "Observer Reality Simulator"

# --- Base force rules ---
MAX_SPEED = 3.0             # Velocity cap for every mode except relativistic.
DAMPING = 0.99              # Velocity multiplier applied each playing tick.
REPULSION_STRENGTH = 0.01   # Scales 1/(d+1) repulsion by the evolution speed.
THERMAL_NOISE = 0.01        # Half-width of the uniform velocity noise band.
FORCE_RANGE_FACTOR = 0.5    # Force radius as a fraction of connection distance.

# --- Proximity graph ---
MAX_CONNECTIONS = 2000

# --- Spatial grid ---
# Above this many cells per particle the grid keeps only its occupied cells.
SPARSE_GRID_FACTOR = 16

# --- Mode-specific rules ---
TRAIL_CAPACITY = 30                 # Classical trail length (FIFO).
PREDICTION_ERROR_WEIGHT = 0.7       # Weight of the newest prediction error.
SURPRISE_PROBABILITY = 0.05         # Conscious perturbation chance per tick.
SURPRISE_MAGNITUDE = 2.5            # Half-width of the perturbation band.
AMBIENT_TEMPERATURE = 50.0
TEMPERATURE_RETENTION = 0.99
SPEED_HEATING = 10.0
AMBIENT_RELAXATION = 0.02
LIGHT_SPEED_CLAMP = 0.999           # Relativistic speeds stay below this * c.
PRIOR_WEIGHT = 0.95                 # Probabilistic prior retention.
LIKELIHOOD_DECAY = 0.5              # exp(-LIKELIHOOD_DECAY * speed)
EXPECTED_SPEED = 1.5                # Centre of the probabilistic variance term.

# --- Telemetry ---
TELEMETRY_INTERVAL = 30     # Ticks between aggregations.
FPS_WINDOW = 30             # Frame deltas kept for the rolling average.
FPS_INTERVAL = 10           # Ticks between fps recomputations.
MIN_ENTROPY_GRID = 5
MAX_ENTROPY_GRID = 20
SHORT_RANGE_REPULSION = 20.0
HISTORY_LENGTH = 300

# --- Controls ---
HEAT_FACTOR = 1.3
COOL_FACTOR = 0.7

# Colors (RGB)
BACKGROUND = (10, 14, 39)
WHITE = (255, 255, 255)
HUD_TEXT = (46, 204, 113)

# Cluster palette for the social observer, indexed by cluster id.
CLUSTER_COLORS = ['#ff4757', '#3498db', '#2ecc71', '#ffa502', '#9b59b6']

# Conscious observer colors by prediction error intensity.
ERROR_HIGH_COLOR = '#ff4757'
ERROR_MEDIUM_COLOR = '#ffa502'
ERROR_LOW_COLOR = '#2ecc71'
