"""
Touchless Formation
===================

Hand-gesture driven particle formations.

A single tracked hand is reduced to a gesture, a pointing target and a
"spread" magnitude. Fast open/close movements of the hand switch a particle
display between three formations (tree, exploded cloud, text), pointing
steers the orbit camera and the hand spread sets the zoom.

Modules:
    - capture: Camera frame acquisition
    - detection: Landmark types and the MediaPipe hand detector
    - recognition: Feature extraction, gesture classification, tracking
    - control: Formation state machine
    - render: Particle blending, formation layouts, camera steering
    - core: Shared types, event bus, per-tick pipeline
    - utils: Config, logging, performance, visualization
"""

__version__ = "1.0.0"
__author__ = "HCI Team"
