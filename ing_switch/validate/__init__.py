"""
Live migration validation: phase derivation and readiness checks.
"""

from ing_switch.validate.phase import (
    CheckStatus,
    MigrationPhase,
    ValidationCheck,
    ValidationFacts,
    ValidationResult,
    derive_validation_phase,
)

__all__ = [
    "CheckStatus",
    "MigrationPhase",
    "ValidationCheck",
    "ValidationFacts",
    "ValidationResult",
    "derive_validation_phase",
]
