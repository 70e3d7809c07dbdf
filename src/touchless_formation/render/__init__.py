"""Particle formations and camera steering."""
from .camera_steering import CameraSteering, CameraSteeringConfig
from .particles import Particle, ParticleBlender, ParticleConfig, ParticleFrame

__all__ = [
    "CameraSteering",
    "CameraSteeringConfig",
    "Particle",
    "ParticleBlender",
    "ParticleConfig",
    "ParticleFrame",
]
