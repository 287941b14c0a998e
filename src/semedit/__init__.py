"""
semedit - Semantic Edit Engine

Structure-aware, validated, staged source edits for automated callers.
"""

__version__ = "0.1.0"

from semedit.document import Document, DocumentSnapshot
from semedit.exceptions import SemEditError
from semedit.schemas import (
    ByAnchor,
    ByKind,
    ByName,
    ByPosition,
    ByQuery,
    OperationKind,
    Policy,
)
from semedit.workspace import EditWorkspace

__all__ = [
    "__version__",
    "Document",
    "DocumentSnapshot",
    "EditWorkspace",
    "SemEditError",
    "ByAnchor",
    "ByKind",
    "ByName",
    "ByPosition",
    "ByQuery",
    "OperationKind",
    "Policy",
]
