"""
Field configuration and presentation models.

This package defines the per-call records the host hands to the transform
service (field settings, acting user) and the presentation result it gets back.
"""

from .models import Actor, FieldConfig, PresentationResult, PresentationState

__all__ = ["Actor", "FieldConfig", "PresentationResult", "PresentationState"]
