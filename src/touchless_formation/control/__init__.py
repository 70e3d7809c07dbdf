"""Formation control module."""
from .formation import FormationConfig, FormationStateMachine, normalize_spread

__all__ = ["FormationConfig", "FormationStateMachine", "normalize_spread"]
