#!/usr/bin/env python3
"""CLI helper that indexes a directory for a session and optionally asks a question."""

from __future__ import annotations

import argparse
import asyncio
import logging
import shutil
import sys
from pathlib import Path

from dotenv import load_dotenv

from coderag import RetrievalOrchestrator, Settings
from coderag.errors import CodeRagError
from coderag.export import write_units_csv
from coderag.logging_config import configure_logging

LOGGER = logging.getLogger("coderag.scripts.index_codebase")


def _load_dotenv() -> None:
    project_root = Path(__file__).resolve().parents[1]
    env_file = project_root / ".env"
    if env_file.exists():
        load_dotenv(dotenv_path=env_file)
    else:
        load_dotenv()


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("source", type=Path, help="Directory containing JavaScript/TypeScript sources")
    parser.add_argument("--session", required=True, help="Session identifier owning the namespace")
    parser.add_argument("--question", help="Question to answer once indexing finishes")
    parser.add_argument("--csv", type=Path, help="Also export extracted units to this CSV file")
    parser.add_argument("--log-level", default="INFO")
    return parser.parse_args(argv)


async def _run(args: argparse.Namespace) -> int:
    settings = Settings.from_env()
    async with RetrievalOrchestrator.from_settings(settings) as orchestrator:
        workspace = orchestrator.workspace
        target = workspace.root_for(args.session)
        if args.source.resolve() != target.resolve():
            if target.exists():
                shutil.rmtree(target)
            shutil.copytree(args.source, target)
        await orchestrator.initialize_session(args.session)

        job = orchestrator.submit_codebase(args.session)
        LOGGER.info("Indexing %s into %s", target, job.namespace)
        await orchestrator.tracker.wait(job.namespace)
        LOGGER.info("Indexing finished: %s", job.as_dict())

        if args.csv:
            units = await orchestrator.extract_codebase(args.session)
            rows = write_units_csv(units, args.csv)
            LOGGER.info("Wrote %d units to %s", rows, args.csv)

        if args.question:
            result = await orchestrator.answer_query(args.session, args.question)
            if result.listing:
                print(result.listing)
                print()
            print(result.answer)
    return 0


def main(argv: list[str] | None = None) -> int:
    _load_dotenv()
    args = _parse_args(argv)
    configure_logging(args.log_level)
    try:
        return asyncio.run(_run(args))
    except CodeRagError as error:
        LOGGER.error("Indexing failed: %s", error)
        return 1


if __name__ == "__main__":
    sys.exit(main())
