"""Editor package containing the document model, workspace and selection helpers."""

from .document_model import DocumentMetadata, DocumentState, SelectionRange, detect_language
from .result_applier import DocumentClosedError, ResultApplier, split_completion
from .selection_gateway import Selection, SelectionGateway
from .workspace import DocumentTab, DocumentWorkspace

__all__ = [
    "DocumentClosedError",
    "DocumentMetadata",
    "DocumentState",
    "DocumentTab",
    "DocumentWorkspace",
    "ResultApplier",
    "Selection",
    "SelectionGateway",
    "SelectionRange",
    "detect_language",
    "split_completion",
]
