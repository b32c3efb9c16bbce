"""Flow controller: the user-facing entry points tying selection, backend and editor together.

Every flow captures what it needs synchronously, awaits at most one backend
call, and only touches documents once that call has succeeded. Flows started
from different documents may overlap; their results are applied in whatever
order the backend answers.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Coroutine, Sequence

from ..ai.backend import Backend, BackendError
from ..ai.prompts import TEMPLATES, AlterFields, DocstringFields, PromptTemplate
from ..ai.requests import (
    DEFAULT_MAX_TOKENS,
    CompletionRequest,
    build_completion_request,
    build_template_request,
    validate_max_tokens,
    validate_stops,
)
from ..editor.result_applier import DocumentClosedError, ResultApplier, split_completion
from ..editor.selection_gateway import Selection, SelectionGateway
from .interfaces import EditingSurface, Notifier, Prompter, ResultAction, ResultSurface, ResultSurfaceFactory

__all__ = [
    "BackendOutcome",
    "FlowContext",
    "FlowController",
    "FlowResult",
    "FlowStatus",
    "display_prefix",
]

LOGGER = logging.getLogger(__name__)

BUFFER_PLACEHOLDER = "(buffer) - "
ALTER_PROMPT = "This code should be altered to..."
CHAT_PROMPT = "What is your question? ..."
RESULT_FOOTER = "[a] - append | [p] paste over"
QUICK_QUIT_KEYS = ("q", "Escape")
DOCUMENT_CLOSED = "document was closed before the result could be applied"
TRANSCRIPT_CLOSED = "chat transcript was closed; reset the chat to start a new one"


def display_prefix(filename: str) -> str:
    """Prefix for notifications so results from different documents stay distinguishable."""

    return f"{filename} - " if filename else BUFFER_PLACEHOLDER


class FlowStatus(str, Enum):
    COMPLETED = "completed"
    NOTHING_SELECTED = "nothing_selected"
    CANCELLED = "cancelled"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class FlowContext:
    document_id: str
    view_id: str
    prefix: str
    selection: Selection | None


@dataclass(frozen=True, slots=True)
class BackendOutcome:
    text: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(slots=True)
class FlowResult:
    status: FlowStatus
    text: str | None = None
    error: str | None = None
    surface: ResultSurface | None = None


class FlowController:
    """Runs the append, alteration, docstring and chat flows against one backend."""

    def __init__(
        self,
        *,
        backend: Backend,
        surface: EditingSurface,
        notifier: Notifier,
        prompter: Prompter,
        result_surfaces: ResultSurfaceFactory,
        templates: dict[str, PromptTemplate[Any]] | None = None,
        default_max_tokens: int = DEFAULT_MAX_TOKENS,
    ) -> None:
        if backend is None:
            raise ValueError("backend must be provided")
        self._backend = backend
        self._surface = surface
        self._notifier = notifier
        self._prompter = prompter
        self._result_surfaces = result_surfaces
        self._templates = templates or TEMPLATES
        self._default_max_tokens = validate_max_tokens(default_max_tokens)
        self._selection = SelectionGateway(surface)
        self._applier = ResultApplier(surface)
        self._tasks: dict[asyncio.Task[FlowResult], str] = {}

    @property
    def backend(self) -> Backend:
        return self._backend

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------
    def launch(self, flow: Coroutine[Any, Any, FlowResult]) -> asyncio.Task[FlowResult]:
        """Schedule ``flow`` on the running loop and keep it alive until it finishes.

        The display prefix of the active document is taken now, while it is
        still the one the flow starts from, so a crash can be reported against it.
        """

        prefix = self._active_prefix()
        task = asyncio.ensure_future(flow)
        self._tasks[task] = prefix
        task.add_done_callback(self._on_task_done)
        return task

    def _on_task_done(self, task: asyncio.Task[FlowResult]) -> None:
        prefix = self._tasks.pop(task, BUFFER_PLACEHOLDER)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            LOGGER.error("Flow crashed", exc_info=exc)
            self._notifier.notify(f"{prefix}flow failed: {exc}", "error")

    def _active_prefix(self) -> str:
        try:
            return display_prefix(self._surface.get_filename())
        except RuntimeError:
            # No document is open; the flow itself will fail on the same check.
            return BUFFER_PLACEHOLDER

    @property
    def pending(self) -> int:
        return len(self._tasks)

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------
    async def append_completion(
        self,
        max_tokens: int | None = None,
        stops: Sequence[str] | None = None,
    ) -> FlowResult:
        """Complete the selected text and insert the result below it."""

        max_tokens = validate_max_tokens(self._default_max_tokens if max_tokens is None else max_tokens)
        checked_stops = validate_stops(stops)
        ctx = self._begin()
        selection = ctx.selection
        if selection is None:
            return self._nothing_selected(ctx)

        request = build_completion_request(selection.lines, max_tokens, checked_stops)
        LOGGER.debug("Fetching completion max_tokens=%s stops=%s", request.max_tokens, request.stops)
        self._notifier.notify(f"{ctx.prefix}fetching completion... max_tokens={request.max_tokens}")
        outcome = await self._dispatch(self._backend.complete(request.lines, request.max_tokens, request.stops))
        if not outcome.ok:
            return self._failed(ctx, outcome)

        completion = outcome.text or ""
        if not self._apply(ctx, self._applier.append, ctx.document_id, selection.end_row, split_completion(completion)):
            return FlowResult(FlowStatus.FAILED, text=completion, error=DOCUMENT_CLOSED)
        self._surface.focus(ctx.document_id, ctx.view_id)
        self._surface.set_cursor(ctx.view_id, selection.end_row, selection.end_col)
        self._notifier.notify(f"{ctx.prefix}fetched completion ({len(completion)} characters)", "info")
        return FlowResult(FlowStatus.COMPLETED, text=completion)

    async def suggest_alteration(self, language: str | None = None) -> FlowResult:
        """Ask how the selection should change and offer the rewrite in a result surface."""

        language = self._check_language(language)
        ctx = self._begin()
        language = language or self._surface.get_filetype()
        selection = ctx.selection
        if selection is None:
            return self._nothing_selected(ctx)

        task = await self._ask(ALTER_PROMPT)
        if task is None:
            return FlowResult(FlowStatus.CANCELLED)

        fields = AlterFields(language=language, task=task, snippet=selection.text)
        request = build_template_request(self._templates["alter"], fields)
        LOGGER.debug("Fetching alteration max_tokens=%s stops=%s", request.max_tokens, request.stops)
        self._notifier.notify(f"{ctx.prefix}fetching suggested alteration (task={task})")
        return await self._suggest(ctx, selection, request, fields.language, kind="alteration")

    async def suggest_docstring(self, language: str | None = None) -> FlowResult:
        """Offer a documented version of the selection in a result surface."""

        language = self._check_language(language)
        ctx = self._begin()
        language = language or self._surface.get_filetype()
        selection = ctx.selection
        if selection is None:
            return self._nothing_selected(ctx)

        fields = DocstringFields(language=language, snippet=selection.text)
        request = build_template_request(self._templates["docstring"], fields)
        LOGGER.debug("Fetching docstring max_tokens=%s stops=%s", request.max_tokens, request.stops)
        self._notifier.notify(f"{ctx.prefix}fetching suggested docstring...")
        return await self._suggest(ctx, selection, request, fields.language, kind="docstring")

    async def chat_turn(self, language: str | None = None) -> FlowResult:
        """Ask a question, optionally with the selection as context, and log the exchange."""

        self._check_language(language)
        ctx = self._begin()
        # Must bind before the first await.
        if self._backend.get_chat_length() == 0:
            self._backend.set_chat_buffer(ctx.document_id)

        question = await self._ask(CHAT_PROMPT)
        if question is None:
            return FlowResult(FlowStatus.CANCELLED)

        selection = ctx.selection
        if selection is None:
            prompt = question
        else:
            prompt = "Here is some context.\n" + selection.text + "\nnow, " + question

        transcript = self._backend.get_chat_buffer() or ctx.document_id
        if not self._apply(ctx, self._applier.append_end, transcript, ">> " + question, message=TRANSCRIPT_CLOSED):
            return FlowResult(FlowStatus.FAILED, error=TRANSCRIPT_CLOSED)
        LOGGER.debug("Fetching chat reply max_tokens=%s", DEFAULT_MAX_TOKENS)
        outcome = await self._dispatch(self._backend.chat(prompt, DEFAULT_MAX_TOKENS))
        if not outcome.ok:
            return self._failed(ctx, outcome)

        completion = outcome.text or ""
        # The reply follows its question, even if the chat was reset meanwhile.
        if not self._apply(ctx, self._applier.append_end, transcript, completion, message=TRANSCRIPT_CLOSED):
            return FlowResult(FlowStatus.FAILED, text=completion, error=TRANSCRIPT_CLOSED)
        self._notifier.notify(f"{ctx.prefix}fetched completion ({len(completion)} characters)", "info")
        return FlowResult(FlowStatus.COMPLETED, text=completion)

    async def chat_reset(self) -> FlowResult:
        self._backend.reset_chat()
        self._notifier.notify("Chat has been reset", "info")
        return FlowResult(FlowStatus.COMPLETED)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _begin(self) -> FlowContext:
        document_id, view_id = self._surface.get_handles()
        return FlowContext(
            document_id=document_id,
            view_id=view_id,
            prefix=display_prefix(self._surface.get_filename()),
            selection=self._selection.capture(),
        )

    @staticmethod
    def _check_language(language: str | None) -> str | None:
        if language is not None and not isinstance(language, str):
            raise TypeError("language must be a string")
        return language

    async def _ask(self, label: str) -> str | None:
        answer = await self._prompter.ask(label)
        if answer is None or not answer.strip():
            return None
        return answer

    async def _dispatch(self, call: Awaitable[str]) -> BackendOutcome:
        try:
            text = await call
        except BackendError as exc:
            return BackendOutcome(error=exc.message)
        return BackendOutcome(text=text)

    def _nothing_selected(self, ctx: FlowContext) -> FlowResult:
        self._notifier.notify(f"{ctx.prefix}nothing selected", "info")
        return FlowResult(FlowStatus.NOTHING_SELECTED)

    def _failed(self, ctx: FlowContext, outcome: BackendOutcome) -> FlowResult:
        self._notifier.notify(f"{ctx.prefix}{outcome.error}", "error")
        return FlowResult(FlowStatus.FAILED, error=outcome.error)

    def _apply(
        self,
        ctx: FlowContext,
        apply: Callable[..., Any],
        *args: Any,
        message: str = DOCUMENT_CLOSED,
        **kwargs: Any,
    ) -> bool:
        """Run an applier call; a closed target is reported instead of raised."""

        try:
            apply(*args, **kwargs)
        except DocumentClosedError as exc:
            LOGGER.warning("Dropping result for closed document %s", exc.document_id)
            self._notifier.notify(f"{ctx.prefix}{message}", "error")
            return False
        return True

    async def _suggest(
        self,
        ctx: FlowContext,
        selection: Selection,
        request: CompletionRequest,
        language: str,
        *,
        kind: str,
    ) -> FlowResult:
        outcome = await self._dispatch(self._backend.complete(request.lines, request.max_tokens, request.stops))
        if not outcome.ok:
            return self._failed(ctx, outcome)

        completion = outcome.text or ""
        self._notifier.notify(f"{ctx.prefix}fetched suggested {kind} ({len(completion)} characters)", "info")
        lines = split_completion(completion)
        self._surface.focus(ctx.document_id, ctx.view_id)
        surface = self._result_surfaces.open(
            lines,
            language,
            title=f"Suggested {kind}",
            footer=RESULT_FOOTER,
            actions=self._result_actions(ctx, selection, lines),
        )
        return FlowResult(FlowStatus.COMPLETED, text=completion, surface=surface)

    def _result_actions(self, ctx: FlowContext, selection: Selection, lines: list[str]) -> list[ResultAction]:
        applied = False

        def append(surface: ResultSurface) -> None:
            nonlocal applied
            if not applied:
                applied = True
                self._apply(ctx, self._applier.append, ctx.document_id, selection.end_row, lines)
            surface.close()

        def paste_over(surface: ResultSurface) -> None:
            nonlocal applied
            if not applied:
                applied = True
                self._apply(
                    ctx,
                    self._applier.paste_over,
                    ctx.document_id,
                    selection.start_row,
                    selection.start_col,
                    selection.end_row,
                    lines,
                    end_col=selection.end_col,
                )
            surface.close()

        def close(surface: ResultSurface) -> None:
            surface.close()

        actions = [ResultAction("a", "append", append), ResultAction("p", "paste over", paste_over)]
        actions.extend(ResultAction(key, "close", close) for key in QUICK_QUIT_KEYS)
        return actions
