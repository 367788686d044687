from .adaptive_cache import AdaptiveCache
from .config import TriageConfig, load_config
from .context import apply_triage, create_context, update_context, validate_context
from .errors import ContextValidationError, TriageLayerError
from .escalation import escalate_only, level_rank, normalize_level, step_up

__all__ = [
    "AdaptiveCache",
    "ContextValidationError",
    "TriageConfig",
    "TriageLayerError",
    "apply_triage",
    "create_context",
    "escalate_only",
    "level_rank",
    "load_config",
    "normalize_level",
    "step_up",
    "update_context",
    "validate_context",
]
