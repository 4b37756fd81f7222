#!/usr/bin/env python3
from __future__ import annotations

import argparse
import asyncio
import contextlib
import json
from pathlib import Path
from typing import Optional

from sqlalchemy import select

from zerpha.models.base import async_session_maker, init_db
from zerpha.models.workspace import Workspace
from zerpha.services.extraction_cache import extraction_cache, prune_periodically
from zerpha.services.logger import configure_logging
from zerpha.services.search_pipeline import NicheSearchPipeline


async def _ensure_workspace(workspace_id: Optional[int], name: str) -> int:
    async with async_session_maker() as session:
        if workspace_id is not None:
            result = await session.execute(select(Workspace).where(Workspace.id == workspace_id))
            if result.scalar_one_or_none() is None:
                raise SystemExit(f"Workspace {workspace_id} does not exist")
            return workspace_id
        workspace = Workspace(name=name)
        session.add(workspace)
        await session.commit()
        await session.refresh(workspace)
        return int(workspace.id)


async def _run(args: argparse.Namespace) -> dict:
    await init_db()
    workspace_id = await _ensure_workspace(args.workspace_id, args.workspace_name)
    pipeline = NicheSearchPipeline(async_session_maker, persist_results=not args.no_persist)
    pruner = asyncio.create_task(prune_periodically(extraction_cache, args.prune_interval))
    try:
        outcome = await pipeline.run(
            workspace_id,
            args.query,
            target_count=args.target,
            add_randomness=not args.no_randomness,
        )
    finally:
        pruner.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await pruner
    payload = outcome.as_dict()
    payload["workspace_id"] = workspace_id
    payload["cache"] = await extraction_cache.astats()
    return payload


def main() -> None:
    parser = argparse.ArgumentParser(description="Run one niche search and print the extracted companies.")
    parser.add_argument("query", help="Market or niche to search, e.g. 'dental practice management software'")
    parser.add_argument("--workspace-id", type=int, default=None)
    parser.add_argument("--workspace-name", default="CLI workspace")
    parser.add_argument("--target", type=int, default=None)
    parser.add_argument("--no-randomness", action="store_true")
    parser.add_argument("--no-persist", action="store_true")
    parser.add_argument("--prune-interval", type=float, default=300.0, help="Seconds between cache prunes")
    parser.add_argument("--out", default=None, help="Optional path to write the JSON result")
    parser.add_argument("--log-level", default=None)
    args = parser.parse_args()

    configure_logging(args.log_level)
    payload = asyncio.run(_run(args))
    rendered = json.dumps(payload, indent=2)
    if args.out:
        out_path = Path(args.out)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(rendered)
    print(rendered)


if __name__ == "__main__":
    main()
