"""User-triggered flows and the collaborator protocols they rely on."""

from .controller import FlowContext, FlowController, FlowResult, FlowStatus, display_prefix
from .interfaces import EditingSurface, LoggingNotifier, Notifier, Prompter, ResultAction, ResultSurfaceFactory

__all__ = [
    "EditingSurface",
    "FlowContext",
    "FlowController",
    "FlowResult",
    "FlowStatus",
    "LoggingNotifier",
    "Notifier",
    "Prompter",
    "ResultAction",
    "ResultSurfaceFactory",
    "display_prefix",
]
