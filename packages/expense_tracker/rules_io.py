"""Rule interchange: export and merge-import of categorization rules.

The format is a JSON array of ``{"pattern": str, "categoryId": str}``
objects. Import merges by exact pattern: an incoming rule whose pattern is
already present (or appeared earlier in the same payload) is skipped,
regardless of its category. Entries missing either field are skipped, as are
entries that name a category the local ledger does not have.
"""

from __future__ import annotations

import json
import uuid
from collections.abc import Callable, Collection, Iterable
from dataclasses import dataclass, field

from pydantic import ValidationError

from .logging_setup import get_logger
from .models import Mapping, RuleSpec

logger = get_logger("expense_tracker.rules_io")


class RuleImportError(ValueError):
    """The payload is not valid JSON or not a JSON array; nothing was applied."""


@dataclass(frozen=True, slots=True)
class RuleImportResult:
    added: list[Mapping] = field(default_factory=list)
    skipped: int = 0

    @property
    def added_count(self) -> int:
        return len(self.added)


def _new_import_id() -> str:
    return f"map-imp-{uuid.uuid4().hex}"


def export_rules(mappings: Iterable[Mapping]) -> str:
    """Serialize rules as a pretty-printed JSON array (ids are not exported)."""

    specs = [RuleSpec(pattern=m.pattern, category_id=m.category_id) for m in mappings]
    return json.dumps([s.to_json_dict() for s in specs], indent=2, ensure_ascii=False)


def parse_rules(text: str) -> list[object]:
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise RuleImportError(f"Invalid JSON: {exc.msg}") from exc
    if not isinstance(payload, list):
        raise RuleImportError("Invalid format: expected a JSON array of rules")
    return payload


def import_rules(
    text: str,
    existing: Iterable[Mapping],
    *,
    known_category_ids: Collection[str] | None = None,
    id_factory: Callable[[], str] = _new_import_id,
) -> RuleImportResult:
    """Compute the rules to add when merging ``text`` into ``existing``.

    Pure: returns new :class:`Mapping` records and leaves persisting them to the
    caller. ``known_category_ids`` restricts imports to categories that exist;
    ``None`` accepts any id.

    Raises
    ------
    RuleImportError
        Malformed JSON or a top-level value that is not an array.
    """

    entries = parse_rules(text)
    patterns = {m.pattern for m in existing}
    added: list[Mapping] = []
    skipped = 0
    for raw in entries:
        try:
            spec = RuleSpec.model_validate(raw)
        except ValidationError:
            skipped += 1
            continue
        if spec.pattern in patterns:
            skipped += 1
            continue
        if known_category_ids is not None and spec.category_id not in known_category_ids:
            logger.warning(
                "skipping rule %r: unknown category %r", spec.pattern, spec.category_id
            )
            skipped += 1
            continue
        patterns.add(spec.pattern)
        added.append(Mapping(id=id_factory(), pattern=spec.pattern, category_id=spec.category_id))

    logger.info("rule import: %d added, %d skipped", len(added), skipped)
    return RuleImportResult(added=added, skipped=skipped)


__all__ = [
    "RuleImportError",
    "RuleImportResult",
    "export_rules",
    "import_rules",
    "parse_rules",
]
