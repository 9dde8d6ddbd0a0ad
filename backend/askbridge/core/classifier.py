"""
Heuristic question classifier.

Turns a free-text agent question into a UI hint:

  ChoicesHint     the question lists numbered / lettered / "Option X:" items
                  -> one button per item, the button sends the item token
  ApprovalHint    a yes/no question -> approve / reject buttons
  OpenEndedHint   anything else -> plain text input

Pure functions, no shared state. Recognized list formats:

    1. Red            A. Red            Option A: Red
    2) Blue           B) Blue           Option B - Blue

Only the first contiguous run of items counts; a later illustrative list
(an example after the real choices) is ignored.
"""

from __future__ import annotations

import re
from typing import Callable, NamedTuple

from .models import ApprovalHint, ChoicesHint, OpenEndedHint, ParsedChoice

MAX_LABEL_LENGTH = 60
MAX_SHORT_LABEL_LENGTH = 24

# Non-item lines tolerated between two successive items of one run.
_MAX_ITEM_GAP = 3

# "1. Red", "2) **Blue**", "  3. Green", but not "1.5" or "2024."
_NUMBERED_RE = re.compile(r"^\s*(?:[-*]\s+)?(?:\*\*)?(?P<token>\d{1,2})(?:\*\*)?[.)](?:\*\*)?\s+(?P<label>\S.*)$")

# "A. Red", "B) Blue"; uppercase only, so prose like "a) ..." asides stay text
_LETTERED_RE = re.compile(r"^\s*(?:[-*]\s+)?(?:\*\*)?(?P<token>[A-Z])(?:\*\*)?[.)](?:\*\*)?\s+(?P<label>\S.*)$")

# "Option A: Red", "**Option 2** - Blue", "Option 12: Teal", anywhere in the text
_OPTION_RE = re.compile(
    r"(?:\*\*)?\b(?P<token>Option\s+(?:[A-Z]|\d{1,2}))\b(?:\*\*)?\s*[:\-–]\s*(?P<label>.+?)"
    r"(?=\s*(?:\*\*)?\bOption\s+(?:[A-Z]|\d{1,2})\b(?:\*\*)?\s*[:\-–]|\n|$)",
    re.IGNORECASE,
)

_FENCE_RE = re.compile(r"^\s*(?:```|~~~)")

_EMPHASIS_RE = re.compile(r"\*\*|\*|`|(?<!\w)__?|__?(?!\w)")
_TRAILING_PUNCT_RE = re.compile(r"[\s.,;:!?]+$")
_WHITESPACE_RE = re.compile(r"\s+")


class _Item(NamedTuple):
    kind: str          # "numbered" | "lettered" | "option"
    ordinal: int       # 1-based position the token encodes
    token: str
    label: str
    line: int          # line index (or character offset for inline options)


def _truncate(text: str, max_len: int) -> str:
    if len(text) <= max_len:
        return text
    return text[: max_len - 1].rstrip() + "…"


def _clean_label(raw: str) -> str:
    label = _EMPHASIS_RE.sub("", raw)
    label = _WHITESPACE_RE.sub(" ", label).strip()
    label = _TRAILING_PUNCT_RE.sub("", label)
    return label


def _ordinal(token: str) -> int:
    token = token.split()[-1]
    if token.isdigit():
        return int(token)
    return ord(token.upper()) - ord("A") + 1


def _scan_lines(text: str) -> list[_Item]:
    """Line-anchored numbered and lettered items, skipping fenced code."""
    items: list[_Item] = []
    in_fence = False
    for idx, line in enumerate(text.splitlines()):
        if _FENCE_RE.match(line):
            in_fence = not in_fence
            continue
        if in_fence:
            continue
        for kind, pattern in (("numbered", _NUMBERED_RE), ("lettered", _LETTERED_RE)):
            m = pattern.match(line)
            if m:
                token = m.group("token")
                items.append(_Item(kind, _ordinal(token), token, m.group("label"), idx))
                break
    return items


def _scan_options(text: str) -> list[_Item]:
    items: list[_Item] = []
    for m in _OPTION_RE.finditer(text):
        _, tag = m.group("token").split()
        token = f"Option {tag.upper()}"
        items.append(_Item("option", _ordinal(tag), token, m.group("label"), m.start()))
    return items


def _first_run(items: list[_Item], max_gap: int | None) -> list[_Item]:
    """Return the first run of >= 2 successive items, or []."""
    run: list[_Item] = []
    for item in items:
        if run:
            prev = run[-1]
            contiguous = (
                item.kind == prev.kind
                and item.ordinal == prev.ordinal + 1
                and (max_gap is None or item.line - prev.line - 1 <= max_gap)
            )
            if contiguous:
                run.append(item)
                continue
            if len(run) >= 2:
                return run
        run = [item]
    return run if len(run) >= 2 else []


def parse_choices(text: str) -> list[ParsedChoice]:
    """Detect the canonical list of choices in a question. Fewer than two → []."""
    if not text:
        return []

    line_run = _first_run(_scan_lines(text), _MAX_ITEM_GAP)
    option_run = _first_run(_scan_options(text), None)

    run = line_run
    if option_run:
        # Both found: the one that appears first in the text wins.
        lines = text.splitlines(keepends=True)
        if not line_run or option_run[0].line < sum(len(l) for l in lines[: line_run[0].line]):
            run = option_run

    choices: list[ParsedChoice] = []
    for item in run:
        label = _clean_label(item.label) or item.token
        choices.append(ParsedChoice(
            label=_truncate(label, MAX_LABEL_LENGTH),
            value=item.token,
            short_label=_truncate(label, MAX_SHORT_LABEL_LENGTH),
        ))
    return choices


# ── Approval detection ───────────────────────────────────────────────────────

_QUESTION_SENTENCE_RE = re.compile(r"[^.!?\n]*\?")
_LIST_ITEM_RE = re.compile(r"^\s*\d{1,2}[.)]\s+\S", re.MULTILINE)

_SPECIFIC_VALUE_RE = re.compile(
    r"\b(?:what|which)\s+(?:\w+\s+)?(?:name|file\s*name|path|directory|folder|value|port|url|"
    r"version|key|title|branch|label|format|command|email|number)\b"
    r"|\b(?:name|path|value|url)\s+(?:for|of)\s+(?:the|this|your|it)\b",
    re.IGNORECASE,
)
_OPEN_QUESTION_RE = re.compile(r"^\s*(?:what|which|how|why|where|when|who|whom|whose)\b", re.IGNORECASE)
_IMPERATIVE_RE = re.compile(
    r"^\s*(?:please\s+)?(?:enter|provide|specify|describe|explain|list|type|paste|tell\s+me|give\s+me)\b"
    r"|\b(?:can|could|would)\s+you\s+(?:please\s+)?(?:provide|specify|describe|explain|list|share|"
    r"tell\s+me|give\s+me|clarify)\b",
    re.IGNORECASE,
)
_ALTERNATIVE_RE = re.compile(r"\b\w+\s+or\s+(?!not\b|no\b|something\b|anything\b)\w+[^?]*\?", re.IGNORECASE)
# details, ideas and preferences only count when asked for ("any ideas?"),
# not as the object of a proposal ("should I add more details?")
_OPEN_REQUEST_RE = re.compile(
    r"\b(?:feedback|thoughts|suggestions|anything\s+else)\b"
    r"|\b(?:any|your|other)\s+(?:\w+\s+)?(?:preferences?|details|ideas)\b",
    re.IGNORECASE,
)

_PERMISSION_RE = re.compile(
    r"\b(?:should|shall|can|could|may)\s+(?:I|we)\b"
    r"|\b(?:do|would)\s+you\s+(?:want|like)\b"
    r"|\bare\s+you\s+(?:sure|ok|okay|happy|ready)\b"
    r"|\b(?:is|does|do)\s+(?:this|that|it|these|those)\s+(?:look|sound|seem)s?\b"
    r"|\b(?:is|are)\s+(?:this|that|it|these|those)\s+(?:ok|okay|correct|right|fine|good|acceptable)\b",
    re.IGNORECASE,
)
_CONFIRMATION_RE = re.compile(
    r"\b(?:proceed|continue|go\s+ahead|approve|confirm|apply|deploy|commit|merge|push|"
    r"delete|overwrite|ready)\b[^?]*\?"
    r"|\b(?:yes\s*/\s*no|y\s*/\s*n)\b"
    r"|\b(?:ok|okay|right|correct)\s*\?",
    re.IGNORECASE,
)

_SHORT_QUESTION_MAX_CHARS = 120


def _question_sentences(text: str) -> list[str]:
    return [s.strip() for s in _QUESTION_SENTENCE_RE.findall(text)]


def _has_numbered_list(text: str) -> bool:
    return len(_LIST_ITEM_RE.findall(text)) >= 2


def _asks_for_specific_value(text: str) -> bool:
    return bool(_SPECIFIC_VALUE_RE.search(text))


def _is_open_question(text: str) -> bool:
    return any(_OPEN_QUESTION_RE.match(s) for s in _question_sentences(text))


def _requests_input(text: str) -> bool:
    lines = [line for line in text.splitlines() if line.strip()]
    return any(_IMPERATIVE_RE.search(line) for line in lines)


def _offers_alternatives(text: str) -> bool:
    return any(_ALTERNATIVE_RE.search(s) for s in _question_sentences(text))


def _asks_for_open_input(text: str) -> bool:
    return any(_OPEN_REQUEST_RE.search(s) for s in _question_sentences(text))


def _asks_permission(text: str) -> bool:
    return bool(_PERMISSION_RE.search(text))


def _asks_confirmation(text: str) -> bool:
    return bool(_CONFIRMATION_RE.search(text))


def _is_short_question(text: str) -> bool:
    stripped = text.strip()
    return stripped.endswith("?") and len(stripped) <= _SHORT_QUESTION_MAX_CHARS


class _Rule(NamedTuple):
    name: str
    matches: Callable[[str], bool]
    verdict: bool


# Evaluated in order; the first matching rule decides. Every negative rule
# precedes every positive rule.
_APPROVAL_RULES: tuple[_Rule, ...] = (
    _Rule("numbered_list", _has_numbered_list, False),
    _Rule("specific_value", _asks_for_specific_value, False),
    _Rule("open_question", _is_open_question, False),
    _Rule("input_request", _requests_input, False),
    _Rule("alternatives", _offers_alternatives, False),
    _Rule("open_request", _asks_for_open_input, False),
    _Rule("permission", _asks_permission, True),
    _Rule("confirmation", _asks_confirmation, True),
    _Rule("short_question", _is_short_question, True),
)


def approval_rule(text: str) -> str | None:
    """Name of the rule that decided is_approval_question(text), or None."""
    for rule in _APPROVAL_RULES:
        if rule.matches(text):
            return rule.name
    return None


def is_approval_question(text: str) -> bool:
    """True when the question can be answered with a plain yes/no."""
    if not text or not text.strip():
        return False
    for rule in _APPROVAL_RULES:
        if rule.matches(text):
            return rule.verdict
    return False


def classify(text: str) -> ApprovalHint | ChoicesHint | OpenEndedHint:
    """Single entry point used by the broker: choices, then approval, else open."""
    choices = parse_choices(text)
    if choices:
        return ChoicesHint(choices=choices)
    if is_approval_question(text):
        return ApprovalHint()
    return OpenEndedHint()
