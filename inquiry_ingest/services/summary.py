from __future__ import annotations

from ..models.parse_result import ParseResult

"""Summary line rendering for one parsed inquiry file.

Format:
    SUMMARY file={name} status={ok|failed} category={category|-} rows={n}
    preview_rows={n} elapsed_ms={ms} large={true|false}
"""


def _format_ms(value: float) -> str:
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    return f"{value:.1f}"


def render_summary_line(file_name: str, result: ParseResult) -> str:
    """Render a SUMMARY line for a ParseResult.

    Examples:
        >>> from inquiry_ingest.models import ErrorCategory
        >>> result = ParseResult.failure(
        ...     ErrorCategory.TIMEOUT, "timed out", processing_time_ms=5000.0
        ... )
        >>> render_summary_line("a.xlsx", result)
        'SUMMARY file=a.xlsx status=failed category=timeout rows=0 preview_rows=0 elapsed_ms=5000 large=false'
    """
    status = "ok" if result.success else "failed"
    category = result.error_category.value if result.error_category else "-"
    preview_count = len(result.preview_rows) if result.preview_rows else 0
    return (
        f"SUMMARY file={file_name} "
        f"status={status} "
        f"category={category} "
        f"rows={result.total_row_count} "
        f"preview_rows={preview_count} "
        f"elapsed_ms={_format_ms(result.processing_time_ms)} "
        f"large={'true' if result.is_large_file else 'false'}"
    )
