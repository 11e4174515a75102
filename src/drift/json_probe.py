"""Tolerant score and threshold extraction from loosely structured JSON.

Decision traces carry ``candidates``, ``chosen`` and ``thresholds`` payloads
whose shape is not pinned by their producer. The helpers here walk those trees
to a bounded depth and pull out numbers by key heuristics, so the monitor keeps
working when the upstream format shifts.

Three container kinds are recognised: mappings, sequences (lists and tuples),
and scalars. Strings are scalars and are coerced like any other leaf.
"""

from __future__ import annotations

import json
import math
from collections.abc import Mapping
from decimal import Decimal, InvalidOperation
from fractions import Fraction
from typing import Any

MAX_DEPTH = 4

SCORE_KEYS = (
    "score",
    "similarity",
    "confidence",
    "prob",
    "probability",
    "weight",
    "rank_score",
)
CONTAINER_KEYS = frozenset({"candidates", "options", "alternatives", "choices"})
THRESHOLD_KEY_FRAGMENTS = ("threshold", "min_score", "min_similarity", "score_min")


def decode_json(raw: Any) -> Any:
    """Return a decoded JSON value, or None when absent or undecodable.

    Already-decoded values (as returned by SQLAlchemy JSON columns) pass
    through unchanged; ``str`` and ``bytes`` are parsed as JSON text.
    """
    if raw is None:
        return None
    if isinstance(raw, (bytes, bytearray, memoryview)):
        try:
            raw = bytes(raw).decode("utf-8")
        except UnicodeDecodeError:
            return None
    if isinstance(raw, str):
        text = raw.strip()
        if not text or text == "null":
            return None
        try:
            return json.loads(text)
        except ValueError:
            return None
    return raw


def coerce_float(value: Any) -> tuple[float, bool]:
    """Coerce a JSON scalar into a float.

    Accepts floats, ints of any size, Decimal and Fraction values, objects
    implementing ``__float__`` and strings that parse after trimming. Booleans,
    containers, empty strings and unparseable values are rejected. NaN and
    infinities are returned as-is; callers decide whether to filter them.
    """
    if value is None or isinstance(value, bool):
        return 0.0, False
    if isinstance(value, float):
        return value, True
    if isinstance(value, (int, Decimal, Fraction)):
        try:
            return float(value), True
        except (OverflowError, ValueError, InvalidOperation):
            return 0.0, False
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return 0.0, False
        try:
            return float(text), True
        except ValueError:
            return 0.0, False
    if isinstance(value, (Mapping, list, tuple, bytes, bytearray)):
        return 0.0, False
    try:
        return float(value), True
    except (TypeError, ValueError, OverflowError):
        return 0.0, False


def extract_candidate_scores(raw: Any) -> list[float]:
    """Return every finite candidate score found in ``raw``, in discovery order."""
    value = decode_json(raw)
    if value is None:
        return []
    return [score for score in _collect_scores(value, 0) if math.isfinite(score)]


def extract_chosen_score(raw: Any) -> float:
    """Return the first score found in ``raw``; 0.0 means no score was found."""
    value = decode_json(raw)
    if value is None:
        return 0.0
    score, found = _find_score(value, 0)
    return score if found else 0.0


def extract_threshold(raw: Any) -> tuple[float, bool]:
    """Return the acceptance threshold in ``raw`` and whether one was found.

    A mapping key naming a threshold wins anywhere in the tree; a bare numeric
    leaf is only used when no such key exists.
    """
    value = decode_json(raw)
    if value is None:
        return 0.0, False
    threshold, found = _find_keyed_threshold(value, 0)
    if found:
        return threshold, True
    return _find_numeric_leaf(value, 0)


def _is_sequence(value: Any) -> bool:
    return isinstance(value, (list, tuple))


def _normalize_key(key: Any) -> str:
    return str(key).strip().lower()


def _score_from_mapping(mapping: Mapping) -> tuple[float, bool]:
    """Try the canonical score keys, in order, against one mapping."""
    for key in SCORE_KEYS:
        if key in mapping:
            score, ok = coerce_float(mapping[key])
            if ok:
                return score, True
    return 0.0, False


def _collect_scores(value: Any, depth: int) -> list[float]:
    if depth > MAX_DEPTH:
        return []
    if isinstance(value, Mapping):
        scores: list[float] = []
        own_score, has_own = _score_from_mapping(value)
        if has_own:
            scores.append(own_score)
        nested: list[float] = []
        others = []
        for key, child in value.items():
            if _normalize_key(key) in CONTAINER_KEYS:
                nested.extend(_collect_scores(child, depth + 1))
            else:
                others.append(child)
        scores.extend(nested)
        # A scored mapping is a single candidate; sibling fields are metadata.
        if has_own:
            return scores
        for child in others:
            scores.extend(_collect_scores(child, depth + 1))
        return scores
    if _is_sequence(value):
        scores = []
        for item in value:
            scores.extend(_collect_scores(item, depth + 1))
        return scores
    score, ok = coerce_float(value)
    return [score] if ok else []


def _find_score(value: Any, depth: int) -> tuple[float, bool]:
    if depth > MAX_DEPTH:
        return 0.0, False
    if isinstance(value, Mapping):
        score, ok = _score_from_mapping(value)
        if ok:
            return score, True
        for child in value.values():
            score, ok = _find_score(child, depth + 1)
            if ok:
                return score, True
        return 0.0, False
    if _is_sequence(value):
        for item in value:
            score, ok = _find_score(item, depth + 1)
            if ok:
                return score, True
        return 0.0, False
    return coerce_float(value)


def _is_threshold_key(key: Any) -> bool:
    normalized = _normalize_key(key)
    return any(fragment in normalized for fragment in THRESHOLD_KEY_FRAGMENTS)


def _find_keyed_threshold(value: Any, depth: int) -> tuple[float, bool]:
    if depth > MAX_DEPTH:
        return 0.0, False
    if isinstance(value, Mapping):
        for key, child in value.items():
            if _is_threshold_key(key):
                threshold, ok = coerce_float(child)
                if ok:
                    return threshold, True
        children = value.values()
    elif _is_sequence(value):
        children = value
    else:
        return 0.0, False
    for child in children:
        threshold, ok = _find_keyed_threshold(child, depth + 1)
        if ok:
            return threshold, True
    return 0.0, False


def _find_numeric_leaf(value: Any, depth: int) -> tuple[float, bool]:
    if depth > MAX_DEPTH:
        return 0.0, False
    if isinstance(value, Mapping):
        children = value.values()
    elif _is_sequence(value):
        children = value
    else:
        return coerce_float(value)
    for child in children:
        leaf, ok = _find_numeric_leaf(child, depth + 1)
        if ok:
            return leaf, True
    return 0.0, False


__all__ = [
    "CONTAINER_KEYS",
    "MAX_DEPTH",
    "SCORE_KEYS",
    "THRESHOLD_KEY_FRAGMENTS",
    "coerce_float",
    "decode_json",
    "extract_candidate_scores",
    "extract_chosen_score",
    "extract_threshold",
]
