from __future__ import annotations

import datetime as _dt
from typing import Optional

from .contracts import Context, StageAuditEvent


def _ts_iso() -> str:
    return _dt.datetime.now(_dt.timezone.utc).isoformat()


def _sanitize_detail(detail: str) -> str:
    # Never include the raw user text in detail; keep stage metadata short.
    detail = (detail or "").replace("\n", " ").strip()
    if len(detail) > 200:
        detail = detail[:200] + "..."
    return detail


def log_stage(
    ctx: Context,
    stage: str,
    code: str,
    detail: str = "",
    duration_ms: Optional[float] = None,
) -> StageAuditEvent:
    event = StageAuditEvent(
        ts_iso=_ts_iso(),
        stage=stage,
        code=code,
        detail=_sanitize_detail(detail),
        duration_ms=None if duration_ms is None else round(float(duration_ms), 3),
    )
    ctx.audit.append(event)
    if duration_ms is not None:
        ctx.metadata.stage_timings_ms[stage] = round(float(duration_ms), 3)
    return event
