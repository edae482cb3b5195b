"""Tiny terminal UI helpers (prompt_toolkit-based).

Kept apart from the CLI commands so the prompts can be driven by a pipe input
in tests.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from prompt_toolkit import PromptSession
from prompt_toolkit.auto_suggest import AutoSuggest, Suggestion
from prompt_toolkit.completion import WordCompleter
from prompt_toolkit.key_binding import KeyBindings
from prompt_toolkit.styles import Style
from prompt_toolkit.validation import ValidationError, Validator

from .models import Category


def category_labels(categories: Sequence[Category]) -> dict[str, str]:
    """Map a display label to each category id.

    Labels are the category names; a name shared by several categories is
    disambiguated with its id.
    """

    seen: dict[str, int] = {}
    for c in categories:
        seen[c.name.lower()] = seen.get(c.name.lower(), 0) + 1
    labels: dict[str, str] = {}
    for c in categories:
        label = c.name if seen[c.name.lower()] == 1 else f"{c.name} [{c.id}]"
        labels[label] = c.id
    return labels


def _session(kb: KeyBindings, session: PromptSession | None) -> PromptSession:
    if session is None:
        return PromptSession(key_bindings=kb)
    return PromptSession(
        input=getattr(session, "input", None),
        output=getattr(session, "output", None),
        key_bindings=kb,
    )


def select_category(
    categories: Sequence[Category],
    *,
    default: str | None = None,
    message: str = "Choose category (Enter to accept • Esc to cancel): ",
    session: PromptSession | None = None,
) -> str | None:
    """Prompt for one of ``categories`` and return the chosen category id.

    The input is completed against category names (case-insensitive, also
    matching in the middle of a name). Enter applies a visible prefix
    completion before accepting. Input that names no category is rejected
    inline. Esc cancels and returns ``None``.
    """

    if not categories:
        raise ValueError("no categories to choose from")

    labels = category_labels(categories)
    words = list(labels)
    canonical = {w.lower(): w for w in words}
    default_label = next((lbl for lbl, cid in labels.items() if cid == default), "")

    completer = WordCompleter(words, ignore_case=True, match_middle=True, sentence=False)

    def _best_prefix_match(text: str) -> str | None:
        if not text:
            return None
        lower = text.lower()
        for w in words:
            wl = w.lower()
            if wl == lower:
                return None
            if wl.startswith(lower):
                return w
        return None

    class _PrefixSuggest(AutoSuggest):
        def get_suggestion(self, buffer, document):
            cand = _best_prefix_match(document.text)
            if cand is None:
                return None
            return Suggestion(cand[len(document.text) :])

    class _KnownCategory(Validator):
        def validate(self, document) -> None:
            if document.text.strip().lower() not in canonical:
                raise ValidationError(message="Pick a category from the list.")

    kb = KeyBindings()

    @kb.add("escape")
    def _(event) -> None:  # pragma: no cover - exercised indirectly
        event.app.exit(result=None)

    @kb.add("tab", eager=True)
    def _(event) -> None:  # pragma: no cover - exercised indirectly
        b = event.app.current_buffer
        cand = _best_prefix_match(b.document.text)
        if cand:
            b.insert_text(cand[len(b.document.text) :])
        elif b.complete_state is None:
            b.start_completion(select_first=True)
        else:
            b.complete_next()

    @kb.add("enter", eager=True)
    def _(event) -> None:  # pragma: no cover - exercised indirectly
        b = event.app.current_buffer
        cs = b.complete_state
        if cs is not None and cs.current_completion is not None:
            b.apply_completion(cs.current_completion)
        else:
            cand = _best_prefix_match(b.document.text)
            if cand:
                b.insert_text(cand[len(b.document.text) :])
        b.validate_and_handle()

    prompt_kwargs: dict[str, Any] = {
        "message": message,
        "completer": completer,
        "default": default_label,
        "auto_suggest": _PrefixSuggest(),
        "validator": _KnownCategory(),
        "validate_while_typing": False,
        "style": Style.from_dict({"auto-suggestion": "fg:#888888"}),
    }
    result = _session(kb, session).prompt(**prompt_kwargs)
    if result is None:
        return None
    return labels[canonical[result.strip().lower()]]


__all__ = ["category_labels", "select_category"]
