from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from psycopg2.extras import execute_values

from ..models.submission import InquirySubmission

"""PostgreSQL writer for inquiry submissions.

One submission = one ``inquiries`` row (RETURNING id) + N ``inquiry_rows``
inserted in pages with ``psycopg2.extras.execute_values``.

Transaction boundaries are owned by the caller (cursor's connection).

    CREATE TABLE inquiries (
        id           bigserial PRIMARY KEY,
        user_id      text NOT NULL,
        source       text NOT NULL,          -- 'excel' | 'direct'
        file_name    text,
        row_count    integer NOT NULL,
        submitted_at timestamptz NOT NULL DEFAULT now()
    );
    CREATE TABLE inquiry_rows (
        inquiry_id    bigint NOT NULL REFERENCES inquiries(id),
        row_index     integer NOT NULL,
        campaign_key  text NOT NULL,
        campaign_name text NOT NULL,
        adid_or_idfa  text NOT NULL,
        user_name     text NOT NULL,
        contact       text NOT NULL,
        remarks       text NOT NULL
    );
"""

__all__ = [
    "InsertError",
    "InsertMetrics",
    "InsertResult",
    "insert_submission",
]

ROW_COLUMNS = (
    "inquiry_id",
    "row_index",
    "campaign_key",
    "campaign_name",
    "adid_or_idfa",
    "user_name",
    "contact",
    "remarks",
)
# store フィールド名 -> 列名 (inquiry_id / row_index 以外)
_RECORD_KEYS = ("campaignKey", "campaignName", "adidOrIdfa", "userName", "contact", "remarks")


class InsertError(Exception):
    pass


@dataclass(frozen=True)
class InsertMetrics:
    """Timing of the execute_values call for the row batch."""
    batch_size: int
    elapsed_seconds: float
    start_time: float  # time.time()
    end_time: float  # time.time()


@dataclass(frozen=True)
class InsertResult:
    inquiry_id: Any
    inserted_rows: int


def insert_submission(
    cursor: Any,
    submission: InquirySubmission,
    page_size: int = 1000,
    metrics_callback: Callable[[InsertMetrics], None] | None = None,
) -> InsertResult:
    """Write one submission and its rows.

    Parameters
    ----------
    cursor: psycopg2 cursor
    submission: 送信データ (行は store フィールド名にマップ済み)
    page_size: execute_values の page_size
    metrics_callback: 行バッチ挿入の所要時間を受け取るコールバック (行が空なら呼ばれない)
    """
    try:
        cursor.execute(
            "INSERT INTO inquiries (user_id, source, file_name, row_count) "
            "VALUES (%s, %s, %s, %s) RETURNING id",
            (submission.user_id, submission.source, submission.file_name, submission.row_count),
        )
        inquiry_id = cursor.fetchone()[0]
    except Exception as e:
        raise InsertError(f"failed inserting inquiry header: {e}") from e

    rows = [
        (inquiry_id, index, *(record.get(key, "") for key in _RECORD_KEYS))
        for index, record in enumerate(submission.data)
    ]
    if not rows:
        return InsertResult(inquiry_id=inquiry_id, inserted_rows=0)

    cols_sql = ",".join(f'"{c}"' for c in ROW_COLUMNS)
    sql = f"INSERT INTO inquiry_rows ({cols_sql}) VALUES %s"
    start_time = time.time()
    try:
        execute_values(cursor, sql, rows, page_size=page_size)
    except Exception as e:
        raise InsertError(f"failed inserting inquiry rows: {e}") from e
    finally:
        end_time = time.time()
        if metrics_callback is not None:
            metrics_callback(
                InsertMetrics(
                    batch_size=len(rows),
                    elapsed_seconds=end_time - start_time,
                    start_time=start_time,
                    end_time=end_time,
                )
            )
    return InsertResult(inquiry_id=inquiry_id, inserted_rows=len(rows))
