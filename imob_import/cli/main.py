from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

from dotenv import load_dotenv

from ..config.loader import DEFAULT_CONFIG_PATH, ConfigError, load_config
from ..db.store import RemoteStore, StoreError, open_store
from ..logging.error_log import ErrorLogBuffer
from ..logging.init import log_summary, setup_logging
from ..models.config_models import ImportConfig
from ..models.records import RawRecord
from ..parsing.reader import ExportFileError, read_export_file
from ..services.errors import InputError, VerificationError
from ..services.preview import render_preview
from ..services.session import ImportSession
from ..services.summary import render_insert_summary, render_process_summary

"""CLI entrypoint.

Flow:
- load .env, then config (default config/import.yml)
- read the export (file path, or ``-`` for stdin)
- process: duplicate check, lookup join, transform, preview
- with ``--insert``: upload the new rows in sequential batches

Exit codes: 0 success (also "nothing new"), 1 fatal (config / input /
verification / store), 2 partial insert failure.
"""

EXIT_SUCCESS = 0
EXIT_FATAL = 1
EXIT_PARTIAL_FAILURE = 2

_SUMMARY_PREFIX = "SUMMARY "


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env with python-dotenv (override: .env wins over the shell)."""
    try:
        if path.exists():
            load_dotenv(dotenv_path=path, override=override)
    except OSError as e:  # pragma: no cover
        print(f"WARNING: failed to load .env via python-dotenv: {e}")


def _positive_int(value: str) -> int:
    try:
        n = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid int value: {value!r}") from None
    if n < 1:
        raise argparse.ArgumentTypeError(f"must be >= 1, got {n}")
    return n


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="imob-import",
        description="IMOB export -> remote table importer (dedup, lojas lookup, batch insert)",
    )
    p.add_argument("input", help="export file (.tsv/.txt/.xlsx) or '-' to read stdin")
    p.add_argument("--empresa", required=True, help="company code injected as Emp")
    p.add_argument("--produto", required=True, help="product injected as Produto")
    p.add_argument("--insert", action="store_true", help="upload the new rows after the preview")
    p.add_argument("--config", default=str(DEFAULT_CONFIG_PATH), help="config file path")
    p.add_argument("--preview-limit", type=_positive_int, default=None, help="rows shown in the preview (>= 1)")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    return p.parse_args(argv)


def _read_input(source: str) -> str | list[RawRecord]:
    if source == "-":
        return sys.stdin.read()
    return read_export_file(Path(source))


def _stage_label(stage: str, cfg: ImportConfig) -> str:
    if stage == "lookup":
        return f"lookup in '{cfg.lookup_table}'"
    return "duplicate check"


async def _run(
    store: RemoteStore,
    cfg: ImportConfig,
    args: argparse.Namespace,
    data: str | list[RawRecord],
    error_log: ErrorLogBuffer,
) -> int:
    logger = setup_logging()
    session = ImportSession(store, cfg, error_log)
    try:
        try:
            if isinstance(data, str):
                result = await session.process(data, args.empresa, args.produto)
            else:
                result = await session.process_records(data, args.empresa, args.produto)
        except InputError as e:
            logger.error(f"input: {e}")
            return EXIT_FATAL
        except VerificationError as e:
            logger.error(f"{_stage_label(e.stage, cfg)} failed: {e.message}")
            return EXIT_FATAL

        limit = args.preview_limit if args.preview_limit is not None else cfg.preview_limit
        print(render_preview(result, limit=limit))
        log_summary(render_process_summary(result)[len(_SUMMARY_PREFIX):])

        if result.new_rows == 0:
            logger.info("nothing to insert")
            return EXIT_SUCCESS
        if not args.insert:
            logger.info(f"{result.new_rows} rows ready; re-run with --insert to upload them")
            return EXIT_SUCCESS

        report = await session.insert()
        log_summary(render_insert_summary(report)[len(_SUMMARY_PREFIX):])
        if report.succeeded:
            logger.info(f"{report.inserted} rows inserted successfully")
            return EXIT_SUCCESS
        logger.error(
            f"insert failed at batch {report.failed_batch}/{report.total_batches}: {report.error} "
            f"({report.inserted} rows persisted, {report.remaining} not sent)"
        )
        return EXIT_PARTIAL_FAILURE
    finally:
        await store.close()


def main(argv: list[str] | None = None) -> int:
    # None のときのみ sys.argv を読む (テストで main([...]) を直接呼ぶため)
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    logger = setup_logging(debug=args.debug)
    if args.debug:
        logger.debug("debug mode enabled")

    _load_env_file(Path(".env"), override=True)
    try:
        cfg = load_config(Path(args.config))
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    try:
        data = _read_input(args.input)
    except ExportFileError as e:
        logger.error(f"input: {e}")
        return EXIT_FATAL

    try:
        store = open_store(cfg)
    except StoreError as e:
        logger.error(f"store: {e}")
        return EXIT_FATAL
    logger.info(f"store={cfg.backend} target={cfg.target_table} lookup={cfg.lookup_table}")

    error_log = ErrorLogBuffer()
    try:
        return asyncio.run(_run(store, cfg, args, data, error_log))
    finally:
        try:
            path = error_log.flush()
            if path is not None:
                logger.info(f"error log written: {path}")
        except OSError as e:
            # エラーログ書き込み失敗で終了コードは変えない
            logger.warning(f"failed to write error log: {e}")
