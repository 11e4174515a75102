"""Effective run configuration: settings defaults merged with a job payload."""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any, Mapping

from drift.evaluation import derive_crit_max, derive_crit_min

if TYPE_CHECKING:
    from config import DriftConfig

DEFAULT_WINDOW_HOURS = 168
DEFAULT_MIN_SAMPLES = 50
DEFAULT_MAX_SAMPLES = 5000
DEFAULT_NEAR_THRESHOLD_MARGIN = 0.05
DEFAULT_COOLDOWN_HOURS = 24

_TRUE_VALUES = {"1", "true", "t", "yes", "y", "on"}
_FALSE_VALUES = {"0", "false", "f", "no", "n", "off"}


@dataclass(frozen=True)
class ComputeInput:
    """Inputs for one drift computation run."""

    graph_version: str = ""
    window_hours: int = 0
    min_samples: int = 0
    max_samples: int = 0
    near_threshold_margin: float = 0.0

    score_margin_mean_warn_min: float = 0.0
    score_margin_mean_crit_min: float = 0.0
    score_margin_p10_warn_min: float = 0.0
    score_margin_p10_crit_min: float = 0.0

    near_threshold_rate_warn_max: float = 0.0
    near_threshold_rate_crit_max: float = 0.0

    remerge_rate_warn_max: float = 0.0
    remerge_rate_crit_max: float = 0.0

    edge_conf_shift_warn_max: float = 0.0
    edge_conf_shift_crit_max: float = 0.0

    alert_on_warn: bool = False

    recommendation_status: str = ""
    recommendation_cooldown_hours: int = 0

    allow_fallback_graph_version: bool = False
    decision_types: tuple[str, ...] = ()

    trace_id: str = ""

    def with_defaults(self) -> "ComputeInput":
        """Return a copy with unset or non-positive sizes replaced by defaults."""
        return replace(
            self,
            window_hours=self.window_hours if self.window_hours > 0 else DEFAULT_WINDOW_HOURS,
            min_samples=self.min_samples if self.min_samples > 0 else DEFAULT_MIN_SAMPLES,
            max_samples=self.max_samples if self.max_samples > 0 else DEFAULT_MAX_SAMPLES,
            near_threshold_margin=(
                self.near_threshold_margin
                if self.near_threshold_margin > 0
                else DEFAULT_NEAR_THRESHOLD_MARGIN
            ),
            recommendation_cooldown_hours=(
                self.recommendation_cooldown_hours
                if self.recommendation_cooldown_hours > 0
                else DEFAULT_COOLDOWN_HOURS
            ),
        )

    def with_crit_defaults(self) -> "ComputeInput":
        """Return a copy whose unset critical thresholds derive from warn ones."""
        return replace(
            self,
            score_margin_mean_crit_min=derive_crit_min(
                self.score_margin_mean_warn_min, self.score_margin_mean_crit_min
            ),
            score_margin_p10_crit_min=derive_crit_min(
                self.score_margin_p10_warn_min, self.score_margin_p10_crit_min
            ),
            near_threshold_rate_crit_max=derive_crit_max(
                self.near_threshold_rate_warn_max, self.near_threshold_rate_crit_max
            ),
            remerge_rate_crit_max=derive_crit_max(
                self.remerge_rate_warn_max, self.remerge_rate_crit_max
            ),
            edge_conf_shift_crit_max=derive_crit_max(
                self.edge_conf_shift_warn_max, self.edge_conf_shift_crit_max
            ),
        )


@dataclass(frozen=True)
class RunPlan:
    """Resolved plan for a drift job invocation."""

    disabled: bool
    compute_input: ComputeInput


def compute_input_from_settings(drift_config: "DriftConfig", *, trace_id: str = "") -> ComputeInput:
    """Build compute inputs from the configured drift defaults."""
    return ComputeInput(
        graph_version=drift_config.graph_version,
        window_hours=drift_config.window_hours,
        min_samples=drift_config.min_samples,
        max_samples=drift_config.max_samples,
        near_threshold_margin=drift_config.near_threshold_margin,
        score_margin_mean_warn_min=drift_config.score_margin_mean_warn_min,
        score_margin_mean_crit_min=drift_config.score_margin_mean_crit_min,
        score_margin_p10_warn_min=drift_config.score_margin_p10_warn_min,
        score_margin_p10_crit_min=drift_config.score_margin_p10_crit_min,
        near_threshold_rate_warn_max=drift_config.near_threshold_rate_warn_max,
        near_threshold_rate_crit_max=drift_config.near_threshold_rate_crit_max,
        remerge_rate_warn_max=drift_config.remerge_rate_warn_max,
        remerge_rate_crit_max=drift_config.remerge_rate_crit_max,
        edge_conf_shift_warn_max=drift_config.edge_conf_shift_warn_max,
        edge_conf_shift_crit_max=drift_config.edge_conf_shift_crit_max,
        alert_on_warn=drift_config.alert_on_warn,
        recommendation_status=drift_config.recommendation_status,
        recommendation_cooldown_hours=drift_config.recommendation_cooldown_hours,
        allow_fallback_graph_version=drift_config.allow_fallback_graph_version,
        decision_types=tuple(drift_config.decision_types),
        trace_id=trace_id.strip(),
    ).with_crit_defaults()


def apply_payload(
    compute_input: ComputeInput,
    payload: Mapping[str, Any] | None,
    *,
    disabled: bool = False,
) -> tuple[ComputeInput, bool]:
    """Overlay job payload values onto ``compute_input``.

    Numeric overrides apply only when positive, text overrides only when
    non-blank, and unrecognised booleans keep the current value. Returns the
    merged input and the effective ``disabled`` flag.
    """
    if not payload:
        return compute_input, disabled
    updates: dict[str, Any] = {}

    graph_version = _string_from_any(payload.get("graph_version")).strip()
    if graph_version:
        updates["graph_version"] = graph_version

    for key in ("window_hours", "min_samples", "max_samples", "recommendation_cooldown_hours"):
        value = _int_from_any(payload.get(key), 0)
        if value > 0:
            updates[key] = value

    for key in (
        "near_threshold_margin",
        "score_margin_mean_warn_min",
        "score_margin_mean_crit_min",
        "score_margin_p10_warn_min",
        "score_margin_p10_crit_min",
        "near_threshold_rate_warn_max",
        "near_threshold_rate_crit_max",
        "remerge_rate_warn_max",
        "remerge_rate_crit_max",
        "edge_conf_shift_warn_max",
        "edge_conf_shift_crit_max",
    ):
        value = _float_from_any(payload.get(key), 0.0)
        if value > 0:
            updates[key] = value

    updates["alert_on_warn"] = _bool_from_any(
        payload.get("alert_on_warn"), compute_input.alert_on_warn
    )
    updates["allow_fallback_graph_version"] = _bool_from_any(
        payload.get("allow_fallback_graph_version"),
        compute_input.allow_fallback_graph_version,
    )

    recommendation_status = _string_from_any(payload.get("recommendation_status")).strip()
    if recommendation_status:
        updates["recommendation_status"] = recommendation_status

    if "decision_types" in payload:
        decision_types = parse_decision_types(payload.get("decision_types"))
        if decision_types:
            updates["decision_types"] = tuple(decision_types)

    trace_id = _string_from_any(payload.get("trace_id")).strip()
    if trace_id:
        updates["trace_id"] = trace_id

    merged = replace(compute_input, **updates).with_crit_defaults()
    return merged, _bool_from_any(payload.get("disabled"), disabled)


def resolve_run(
    drift_config: "DriftConfig",
    payload: Mapping[str, Any] | None,
    *,
    ambient_trace_id: str = "",
) -> RunPlan:
    """Resolve settings and payload into a run plan."""
    base = compute_input_from_settings(drift_config, trace_id=ambient_trace_id or "")
    merged, disabled = apply_payload(base, payload, disabled=not drift_config.enabled)
    return RunPlan(disabled=disabled, compute_input=merged)


def parse_decision_types(raw: Any) -> list[str]:
    """Parse decision types from a list or a comma-separated string."""
    if raw is None:
        return []
    if isinstance(raw, (list, tuple, set, frozenset)):
        items = [str(item).strip() for item in raw if item is not None]
        return [item for item in items if item]
    return [part.strip() for part in _string_from_any(raw).split(",") if part.strip()]


def _string_from_any(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def _int_from_any(value: Any, default: int) -> int:
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, float):
        return int(value) if value.is_integer() else default
    try:
        return int(str(value).strip())
    except ValueError:
        return default


def _float_from_any(value: Any, default: float) -> float:
    if value is None or isinstance(value, bool):
        return default
    try:
        parsed = float(str(value).strip())
    except ValueError:
        return default
    return parsed if math.isfinite(parsed) else default


def _bool_from_any(value: Any, default: bool) -> bool:
    if value is None:
        return default
    normalized = str(value).strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    return default
