"""Руководство к файлу (BACKEND/STORAGE/analytics.py)
Назначение:
- Чистые функции для производных выборок хранилища: границы «сегодня»,
  окна аналитики (day/week/month) и сборка отчёта аналитики по списку
  документов и сообщений пользователя.
- Снимок нагрузки хоста (CPU/RAM/диск) через psutil.
Важно:
- Функции не зависят от бэкенда, поэтому MemStorage и DatabaseStorage дают
  одинаковый результат на одинаковых данных.
"""

from __future__ import annotations

from collections import Counter
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterable, List, Sequence

import psutil

from BACKEND.DATABASE.models import Document, Message


ANALYTICS_WINDOWS: Dict[str, int] = {"day": 1, "week": 7, "month": 30}

PerformanceProbe = Callable[[], Dict[str, float]]


def day_start(moment: datetime) -> datetime:
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def today_bounds(now: datetime) -> tuple[datetime, datetime]:
    """Полуоткрытый интервал [полночь сегодня, полночь завтра) по локальному времени."""

    start = day_start(now)
    return start, start + timedelta(days=1)


def window_bounds(now: datetime, range_: str) -> tuple[datetime, datetime]:
    days = ANALYTICS_WINDOWS.get(range_)
    if days is None:
        raise ValueError(f"Unsupported analytics range: {range_}")
    _, end = today_bounds(now)
    return end - timedelta(days=days), end


def classify_file_type(mime: str | None) -> str:
    value = (mime or "").lower()
    if "pdf" in value:
        return "pdf"
    if "excel" in value or "spreadsheet" in value:
        return "excel"
    if "powerpoint" in value or "presentation" in value:
        return "powerpoint"
    if "word" in value:
        return "word"
    return "other"


def sample_system_performance() -> Dict[str, float]:
    """Снимок загрузки хоста в процентах."""

    return {
        "cpu_usage": round(psutil.cpu_percent(interval=None)),
        "memory_usage": round(psutil.virtual_memory().percent),
        "disk_usage": round(psutil.disk_usage("/").percent),
    }


def _in_window(moment: datetime | None, start: datetime, end: datetime) -> bool:
    return moment is not None and start <= moment < end


def _has_processing_error(doc: Document) -> bool:
    meta = getattr(doc, "extra_metadata", None) or {}
    return isinstance(meta, dict) and bool(meta.get("processingError"))


def _avg_response_ms(messages: Sequence[Message]) -> int:
    """Среднее время от сообщения пользователя до следующего ответа ассистента."""

    deltas: List[float] = []
    pending: datetime | None = None
    for msg in messages:
        if msg.role == "user":
            pending = msg.created_at
        elif msg.role == "assistant" and pending is not None:
            deltas.append((msg.created_at - pending).total_seconds() * 1000)
            pending = None
    return int(sum(deltas) / len(deltas)) if deltas else 0


def _per_day(moments: Iterable[datetime], start: datetime, days: int) -> List[Dict[str, Any]]:
    counts = Counter(day_start(m) for m in moments)
    out: List[Dict[str, Any]] = []
    for offset in range(days):
        day = start + timedelta(days=offset)
        out.append({"date": day.isoformat(), "count": counts.get(day, 0)})
    return out


def build_analytics(
    *,
    documents: Sequence[Document],
    messages: Sequence[Message],
    now: datetime,
    range_: str,
    active_users: int,
    performance: Dict[str, float],
) -> Dict[str, Any]:
    """Собрать отчёт аналитики пользователя за окно *range_*.

    - documents: все документы пользователя;
    - messages: все сообщения пользователя в хронологическом порядке;
    - active_users: число пользователей, писавших в окне (считает бэкенд).
    """

    start, end = window_bounds(now, range_)
    today_start, today_end = today_bounds(now)
    days = ANALYTICS_WINDOWS[range_]

    window_docs = [d for d in documents if _in_window(d.created_at, start, end)]
    window_msgs = [m for m in messages if _in_window(m.created_at, start, end)]
    window_queries = [m for m in window_msgs if m.role == "user"]

    indexed = [d for d in window_docs if d.is_indexed]
    processed_today = [d for d in documents if d.is_indexed and _in_window(d.updated_at, today_start, today_end)]
    processing_secs = [(d.updated_at - d.created_at).total_seconds() for d in indexed]
    errors = [d for d in window_docs if _has_processing_error(d)]

    hours = Counter(m.created_at.hour for m in window_queries)
    file_types = Counter(classify_file_type(d.file_type) for d in documents)
    total_docs = len(documents)

    return {
        "range": range_,
        "window_start": start.isoformat(),
        "document_stats": {
            "total_documents": total_docs,
            "processed_today": len(processed_today),
            "processing_time": int(sum(processing_secs) / len(processing_secs)) if processing_secs else 0,
            "error_rate": round(len(errors) * 100 / len(window_docs)) if window_docs else 0,
        },
        "user_activity": {
            "total_queries": len(window_queries),
            "active_users": active_users,
            "avg_response_time": _avg_response_ms(window_msgs),
            "popular_times": [{"hour": h, "count": hours.get(h, 0)} for h in range(24)],
        },
        "system_performance": {
            "cpu_usage": performance.get("cpu_usage", 0),
            "memory_usage": performance.get("memory_usage", 0),
            "disk_usage": performance.get("disk_usage", 0),
            "indexing_speed": round(len(indexed) / days),
        },
        "trends": {
            "documents_over_time": _per_day((d.created_at for d in window_docs), start, days),
            "queries_over_time": _per_day((m.created_at for m in window_queries), start, days),
            "file_types": [
                {"type": t, "count": c, "percentage": round(c * 100 / total_docs)}
                for t, c in sorted(file_types.items())
            ],
        },
    }
