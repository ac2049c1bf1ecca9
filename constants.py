# constants.py

"""
Application Constants

This module defines static physical constants and display values for the
application. These are not expected to change between simulation runs.

Data Contract:
- All values are immutable constants.
- Units are SI unless stated otherwise in comments.
"""

# Physical constants
AMU = 1.660539e-27  # Atomic mass unit, kg
BOLTZMANN_CONSTANT = 1.380649e-23  # J/K

# Output scaling
XYZ_SCALE = 1.0e6  # XYZ trajectories are written in micrometres

# Screen dimensions
WIDTH = 1000  # Pixels
HEIGHT = 1000  # Pixels

# Framerate
FPS = 60  # Frames per second

# Colors (RGB)
BLACK = (0, 0, 0)
WHITE = (255, 255, 255)

# Window Title
TITLE = "Atom Cloud Simulator"

# Color Mapping for Visualization
# Particle speed is normalized against this value (m/s) before coloring.
COLOR_MAX_SPEED = 0.01

# Defines the color spectrum as a series of keyframes.
# Each keyframe is a tuple: (normalized_position, (R, G, B) color).
COLOR_GRADIENT_KEYFRAMES = [
    (0.0,   (0, 0, 255)),        # Blue
    (0.4,   (0, 255, 0)),        # Green
    (0.7,   (255, 255, 0)),      # Yellow
    (1.0,   (255, 0, 0)),        # Red
]

# Visual Effects
TRAIL_EFFECT_COLOR = (0, 0, 0, 60) # RGBA. Alpha controls trail length (lower = longer).
PARTICLE_RADIUS = 1 # Pixels
