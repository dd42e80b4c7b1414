# =============================================================================
# src/cli/commands.py -- Operator CLI
# =============================================================================
#
# One-shot commands against the same object graph the API server uses
# (``src.main._build_all``).  Output mirrors the API response bodies so a
# command and its endpoint can be compared directly.
#
#   ingest     -- store a local file under events/{eventId}/docs/ and index it,
#                or re-index an already stored path
#   ask        -- answer a question as a participant
#   end-event  -- host-initiated teardown
#   sweep      -- run the expired-event sweep once, now
#   reconcile  -- remove orphaned vectors from one event
#   token      -- issue a bearer token for a user id
#
# Usage examples:
#   python -m src.cli ingest --event-id ev1 --file agenda.pdf --name "Agenda"
#   python -m src.cli ask --event-id ev1 --user-id u1 "When does it start?"
#   python -m src.cli end-event --event-id ev1 --user-id host1
#   python -m src.cli sweep
# =============================================================================

"""Operator CLI for eventkb."""

from __future__ import annotations

import argparse
import asyncio
import json
import mimetypes
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pydantic import BaseModel

from src.config.settings import Settings
from src.models.event import Document
from src.models.rag import document_id_from_path
from src.utils.errors import EventKBError, InvalidArgument, PartialCleanupError
from src.utils.logging import configure_logging


def _emit(payload: BaseModel | dict[str, Any]) -> None:
    if isinstance(payload, BaseModel):
        payload = payload.model_dump(mode="json", by_alias=True)
    print(json.dumps(payload, indent=2))


async def _components(app_settings: Settings) -> dict[str, Any]:
    # Deferred: building the graph pulls in chromadb and the SDK clients.
    from src.main import _build_all

    # Importing the app configures stdout logging; stdout is reserved for
    # command output here.
    configure_logging(app_settings.log_level, stream=sys.stderr)
    components = _build_all(app_settings)
    await components["event_store"].initialize()
    return components


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


async def _handle_ingest(args: argparse.Namespace, app_settings: Settings) -> int:
    from src.api.schemas import IngestDocumentResponse

    components = await _components(app_settings)
    ingestion = components["ingestion_service"]

    if args.file:
        source = Path(args.file)
        if not source.is_file():
            raise InvalidArgument(f"No such file: {source}")
        storage_path = f"events/{args.event_id}/docs/{source.name}"
        content_type = args.content_type or mimetypes.guess_type(source.name)[0]
        await components["object_storage"].write(storage_path, source.read_bytes(), content_type)
        await components["event_store"].save_document(
            Document(
                document_id=document_id_from_path(storage_path),
                event_id=args.event_id,
                name=args.name or source.stem,
                storage_path=storage_path,
            )
        )
    elif args.storage_path:
        storage_path = args.storage_path
        content_type = args.content_type
    else:
        raise InvalidArgument("Either --file or --storage-path is required")

    result = await ingestion.ingest_document(args.event_id, storage_path, content_type)
    _emit(IngestDocumentResponse(success=result.success, chunks=result.chunks))
    return 0


async def _handle_ask(args: argparse.Namespace, app_settings: Settings) -> int:
    from src.api.schemas import AnswerQuestionResponse

    components = await _components(app_settings)
    answer = await components["qa_service"].answer_question(
        args.user_id, args.event_id, args.user_id, args.question
    )
    _emit(AnswerQuestionResponse.from_answer(answer))
    return 0


async def _handle_end_event(args: argparse.Namespace, app_settings: Settings) -> int:
    from src.api.schemas import EndEventResponse

    components = await _components(app_settings)
    report = await components["lifecycle_service"].end_event(
        args.user_id, args.event_id, args.user_id
    )
    _emit(EndEventResponse.from_report(report))
    try:
        report.raise_for_errors()
    except PartialCleanupError as exc:
        print(f"{exc.kind}: {exc.message}", file=sys.stderr)
        return 2
    return 0


async def _handle_sweep(args: argparse.Namespace, app_settings: Settings) -> int:
    components = await _components(app_settings)
    now = _parse_instant(args.now) if args.now else None
    summary = await components["lifecycle_service"].sweep_expired_events(now)
    _emit(summary)
    return 2 if summary.events_failed or summary.events_partial else 0


async def _handle_reconcile(args: argparse.Namespace, app_settings: Settings) -> int:
    components = await _components(app_settings)
    removed = await components["lifecycle_service"].reconcile_event(args.event_id)
    _emit({"eventId": args.event_id, "orphansRemoved": removed})
    return 0


def _handle_token(args: argparse.Namespace, app_settings: Settings) -> int:
    from src.api.auth import create_caller_token

    if not app_settings.auth_secret:
        print("Error: AUTH_SECRET is not set; the server trusts X-Caller-Id instead.",
              file=sys.stderr)
        return 1
    print(create_caller_token(args.user_id, app_settings.auth_secret))
    return 0


def _parse_instant(value: str) -> datetime:
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError as exc:
        raise InvalidArgument(f"Not an ISO-8601 timestamp: {value}") from exc
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the operator CLI."""
    parser = argparse.ArgumentParser(
        prog="python -m src.cli",
        description="Ingest event documents, ask questions, and tear events down.",
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # -- ingest --
    ingest_parser = subparsers.add_parser("ingest", help="Index a document for an event")
    ingest_parser.add_argument("--event-id", required=True, dest="event_id")
    source = ingest_parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--file", help="Local file to upload, then index")
    source.add_argument("--storage-path", dest="storage_path", help="Already stored path")
    ingest_parser.add_argument("--name", help="Display name used in citations")
    ingest_parser.add_argument("--content-type", dest="content_type",
                               help="Override the detected content type")

    # -- ask --
    ask_parser = subparsers.add_parser("ask", help="Ask a question as a participant")
    ask_parser.add_argument("--event-id", required=True, dest="event_id")
    ask_parser.add_argument("--user-id", required=True, dest="user_id")
    ask_parser.add_argument("question")

    # -- end-event --
    end_parser = subparsers.add_parser("end-event", help="End an event as its host")
    end_parser.add_argument("--event-id", required=True, dest="event_id")
    end_parser.add_argument("--user-id", required=True, dest="user_id")

    # -- sweep --
    sweep_parser = subparsers.add_parser("sweep", help="Tear down every expired event now")
    sweep_parser.add_argument("--now", help="Evaluate expiry at this ISO-8601 instant")

    # -- reconcile --
    reconcile_parser = subparsers.add_parser("reconcile", help="Remove orphaned vectors")
    reconcile_parser.add_argument("--event-id", required=True, dest="event_id")

    # -- token --
    token_parser = subparsers.add_parser("token", help="Issue a bearer token")
    token_parser.add_argument("--user-id", required=True, dest="user_id")

    return parser


_ASYNC_HANDLERS = {
    "ingest": _handle_ingest,
    "ask": _handle_ask,
    "end-event": _handle_end_event,
    "sweep": _handle_sweep,
    "reconcile": _handle_reconcile,
}


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> None:
    """Parse the subcommand, dispatch it, and exit with its status code.

    Application errors print ``{kind}: {message}`` to stderr and exit 1.
    ``end-event`` and ``sweep`` exit 2 when a teardown left items behind.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    app_settings = Settings()

    try:
        if args.command == "token":
            exit_code = _handle_token(args, app_settings)
        else:
            exit_code = asyncio.run(_ASYNC_HANDLERS[args.command](args, app_settings))
    except EventKBError as exc:
        print(f"{exc.kind}: {exc.message}", file=sys.stderr)
        exit_code = 1

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
