"""Trend signal extraction.

Turns a batch of source items into frequency tables of verbs, subjects,
objects, content structures and algorithm tags. Extraction is a fixed
lexicon-and-position heuristic, so the same batch always yields the same
tables.

Per item, each bucket receives at most one key:
    verb        first title token found in ACTION_VERBS (or an -ing form)
    structure   first title token found in STRUCTURE_TYPES
    subject     first content token of the title
    object      last content token, if different from the subject
    signal      first non-generic tag, else the first tag
"""

import re
from collections import Counter
from typing import Optional, Sequence

import structlog

from trendreel.models.schemas import SourceItem, StageName, TrendSignals
from trendreel.stages.base import require

logger = structlog.get_logger(__name__)


# =============================================================================
# Lexicons
# =============================================================================

ACTION_VERBS = frozenset({
    "bake", "beat", "break", "build", "burn", "carve", "catch", "change", "clean",
    "compare", "cook", "craft", "crush", "cut", "dance", "destroy", "draw", "drop",
    "eat", "explain", "explode", "fix", "flip", "fold", "freeze", "grow", "hack",
    "jump", "launch", "learn", "make", "melt", "mix", "paint", "peel", "play",
    "pour", "predict", "prank", "race", "react", "rebuild", "repair", "restore",
    "reveal", "review", "ride", "run", "sculpt", "shoot", "slice", "smash", "solve",
    "spin", "squeeze", "stack", "survive", "swap", "taste", "teach", "test",
    "throw", "train", "transform", "try", "turn", "unbox", "wash", "win",
})

STRUCTURE_TYPES = frozenset({
    "analysis", "asmr", "before", "challenge", "comparison", "compilation",
    "countdown", "diy", "experiment", "explainer", "hack", "hacks", "haul",
    "howto", "interview", "prank", "reaction", "recipe", "review", "ranking",
    "skit", "story", "storytime", "test", "timelapse", "tips", "transformation",
    "tutorial", "unboxing", "vlog", "vs",
})

STOPWORDS = frozenset({
    "a", "about", "after", "all", "an", "and", "are", "as", "at", "be", "but",
    "by", "can", "do", "for", "from", "get", "has", "have", "how", "i", "if",
    "in", "into", "is", "it", "its", "just", "me", "my", "new", "no", "not",
    "of", "on", "or", "our", "out", "so", "that", "the", "their", "this", "to",
    "up", "we", "what", "when", "who", "why", "will", "with", "you", "your",
})

GENERIC_TAGS = frozenset({
    "#shorts", "#short", "#youtubeshorts", "#ytshorts", "#shortsvideo",
    "#shortvideo", "#viral", "#fyp", "#foryou", "#trending",
})

_TOKEN_RE = re.compile(r"[^\W_]+(?:'[^\W_]+)?", re.UNICODE)


# =============================================================================
# Tokenizing
# =============================================================================


def tokenize(title: str) -> list[str]:
    return _TOKEN_RE.findall(title.lower())


def normalize_tag(tag: str) -> str:
    cleaned = tag.strip().lstrip("#").lower()
    return f"#{cleaned}" if cleaned else ""


def _is_verb(token: str) -> bool:
    return token in ACTION_VERBS or (len(token) > 5 and token.endswith("ing") and token.isalpha())


def _is_content(token: str) -> bool:
    return not (
        token in STOPWORDS
        or token.isdigit()
        or token in STRUCTURE_TYPES
        or _is_verb(token)
    )


def _first(tokens: Sequence[str], predicate) -> Optional[str]:
    for token in tokens:
        if predicate(token):
            return token
    return None


def extract_item_signals(item: SourceItem) -> dict[str, Optional[str]]:
    """Pick at most one key per bucket from a single source item."""
    tokens = tokenize(item.title)
    content = [t for t in tokens if _is_content(t)]

    subject = content[0] if content else None
    obj = content[-1] if len(content) > 1 and content[-1] != subject else None

    tags = [t for t in (normalize_tag(tag) for tag in item.hashtags) if t]
    signal = _first(tags, lambda t: t not in GENERIC_TAGS) or (tags[0] if tags else None)

    return {
        "action_verb": _first(tokens, _is_verb),
        "subject_type": subject,
        "object_type": obj,
        "structure_type": _first(tokens, lambda t: t in STRUCTURE_TYPES),
        "algorithm_signal": signal,
    }


# =============================================================================
# Stage
# =============================================================================


class TrendSignalStage:
    """Stage 1: source items to trend signal frequency tables."""

    name = StageName.TREND_SIGNALS
    description = "Extract verb, subject, object, structure and tag frequencies from trend data"

    async def execute(self, input: Sequence[SourceItem]) -> TrendSignals:
        require(input, self.name, "source item sequence is empty")

        counters: dict[str, Counter] = {
            "action_verb": Counter(),
            "subject_type": Counter(),
            "object_type": Counter(),
            "structure_type": Counter(),
            "algorithm_signal": Counter(),
        }
        for item in input:
            for bucket, key in extract_item_signals(item).items():
                if key:
                    counters[bucket][key] += 1

        signals = TrendSignals(
            action_verb_frequency=dict(counters["action_verb"]),
            subject_type_frequency=dict(counters["subject_type"]),
            object_type_frequency=dict(counters["object_type"]),
            structure_type_frequency=dict(counters["structure_type"]),
            algorithm_signal_frequency=dict(counters["algorithm_signal"]),
        )
        logger.info(
            "trend_signals_extracted",
            items=len(input),
            **{f"{bucket}_keys": len(counter) for bucket, counter in counters.items()},
        )
        return signals
