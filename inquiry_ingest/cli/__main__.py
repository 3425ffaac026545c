from __future__ import annotations

import argparse
import os
import sys
import time
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import psycopg2
from dotenv import load_dotenv

from inquiry_ingest.config.loader import ConfigError, IngestConfig, load_config, resolve_dsn
from inquiry_ingest.db.inquiry_insert import InsertError, insert_submission
from inquiry_ingest.logging.error_log import ErrorLogBuffer, ErrorRecord
from inquiry_ingest.logging.init import log_summary, set_debug, setup_logging
from inquiry_ingest.models.controller_state import ControllerState, SlotStatus
from inquiry_ingest.models.parse_result import ErrorCategory, ParseResult
from inquiry_ingest.services.controller import IngestionController
from inquiry_ingest.services.progress import ParseProgressBar
from inquiry_ingest.services.submission import SubmissionError, build_submission
from inquiry_ingest.services.summary import render_summary_line
from inquiry_ingest.services.upload import select_file

"""CLI entrypoint.

Flow:
- Load .env / config
- Pass the file through the upload source checks
- Parse it through the ingestion controller (child process, timeout)
- Print preview (optional), record failures in the error log, log SUMMARY
- Optionally submit the rows to PostgreSQL
"""

EXIT_SUCCESS = 0
EXIT_FATAL = 1
EXIT_INVALID_FILE = 2

POLL_INTERVAL_SECONDS = 0.05


@contextmanager
def _db_connection(cfg: IngestConfig) -> Iterator[Any]:  # pragma: no cover (thin wrapper)
    """Provide a psycopg2 cursor inside one transaction (commit / rollback)."""
    conn = psycopg2.connect(resolve_dsn(cfg.database))
    try:
        with conn:  # 正常終了で COMMIT, 例外で ROLLBACK
            with conn.cursor() as cur:
                yield cur
    finally:
        conn.close()


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env using python-dotenv (values override the process environment)."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Inquiry spreadsheet validator / importer")
    p.add_argument("file", type=Path, help="Spreadsheet file (.xlsx / .xls / .csv)")
    p.add_argument("--config", type=Path, default=None, help="Config file (default: config/ingest.yml)")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument("--preview", action="store_true", help="Print preview rows")
    p.add_argument("--submit", action="store_true", help="Insert the rows into PostgreSQL when valid")
    p.add_argument("--user-id", default=os.getenv("INQUIRY_USER_ID", "cli"), help="Submitting user id")
    return p.parse_args(argv)


def _wait_for_state(controller: IngestionController) -> ControllerState:
    """Poll until the slot leaves PARSING (the controller timeout bounds this)."""
    state = controller.get_state()
    while state.busy:
        time.sleep(POLL_INTERVAL_SECONDS)
        state = controller.get_state()
    return state


def _print_preview(result: ParseResult) -> None:
    if not result.preview_rows:
        print("preview: (none)")
        return
    header, *rows = result.preview_rows
    print("PREVIEW " + " | ".join(header))
    for index, row in enumerate(rows, start=1):
        print(f"  {index:>3}: " + " | ".join(row))
    hidden = result.total_row_count - len(rows)
    if hidden > 0:
        print(f"  ... {hidden} more rows")


def _submit(cfg: IngestConfig, state: ControllerState, user_id: str) -> int:
    logger = setup_logging()
    try:
        submission = build_submission(state, user_id=user_id)
    except SubmissionError as e:
        logger.error(f"submit: {e}")
        return EXIT_INVALID_FILE

    # テスト等で DB 接続を無効化したい場合 DISABLE_DB_CONNECT=1
    if os.getenv("DISABLE_DB_CONNECT") == "1":
        logger.info(f"DB connect disabled -> submission skipped rows={submission.row_count}")
        return EXIT_SUCCESS
    try:
        with _db_connection(cfg) as cur:
            inserted = insert_submission(cur, submission)
    except (psycopg2.Error, InsertError) as e:
        logger.error(f"submit: {e}")
        return EXIT_FATAL
    logger.info(f"submitted inquiry_id={inserted.inquiry_id} rows={inserted.inserted_rows}")
    return EXIT_SUCCESS


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()

    # 空リスト [] が与えられた場合に sys.argv が混入しないよう None のときのみ読む
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    _load_env_file(Path(".env"), override=True)

    if args.debug:
        set_debug(logger)
        logger.debug("debug mode enabled")

    try:
        cfg = load_config(args.config)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    path: Path = args.file
    if not path.is_file():
        logger.error(f"file not found: {path}")
        return EXIT_FATAL

    upload = select_file(
        path,
        max_bytes=cfg.upload.max_bytes,
        allowed_extensions=cfg.upload.allowed_extensions,
    )
    error_log = ErrorLogBuffer(Path(cfg.log_dir))
    controller = IngestionController(timeout_ms=cfg.timeout_ms)
    try:
        with ParseProgressBar(upload.name) as bar:
            controller.subscribe(bar.on_state)
            controller.submit_file(upload)
            state = _wait_for_state(controller)
    finally:
        controller.close()

    if state.status is SlotStatus.ERRORED:
        message = state.selection_error or ErrorCategory.SELECTION_REJECTED.user_message
        logger.error(f"file rejected: {message}")
        result = ParseResult.failure(ErrorCategory.SELECTION_REJECTED, message, file_size=upload.size)
    else:
        assert state.result is not None
        result = state.result

    if args.preview:
        _print_preview(result)

    if not result.success:
        if state.status is SlotStatus.RESOLVED:
            logger.error(f"{result.user_message} {result.error}")
        if result.error_detail:
            logger.debug(f"detail: {result.error_detail}")
        error_log.append(ErrorRecord.from_result(upload.name, result))
        log_path = error_log.flush()
        logger.info(f"error log: {log_path}")

    summary_line = render_summary_line(upload.name, result)
    # log_summary adds the "SUMMARY " prefix itself
    log_summary(summary_line.removeprefix("SUMMARY "))

    if not result.success:
        return EXIT_INVALID_FILE
    if args.submit:
        return _submit(cfg, state, args.user_id)
    return EXIT_SUCCESS


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
