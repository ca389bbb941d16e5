"""FastAPI application serving snapshots and dashboard insights."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from fastapi import Depends, FastAPI, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..analyzers.decoratorless_api import DecoratorlessAPIClassifier
from ..config import CodeStatsConfig, ConfigError
from ..dto_violations import REPORT_TYPE as DTO_REPORT_TYPE, VIOLATION_FIELDS
from ..insights import (
    contributor_leaderboard,
    migration_progress,
    module_leaderboard,
    module_totals,
)
from ..orchestrator import Orchestrator
from ..stores.snapshots import CLIENT_SIDE, SERVER_SIDE, Snapshot, SnapshotStore

_DECORATORLESS = DecoratorlessAPIClassifier.report_type


class HealthResponse(BaseModel):
    status: str


class SnapshotResponse(BaseModel):
    paths: List[str]


class ModuleTotal(BaseModel):
    module: str
    total: int


def create_app(
    store_factory: Callable[[], SnapshotStore],
    orchestrator_factory: Optional[Callable[[], Orchestrator]] = None,
) -> FastAPI:
    """Create the FastAPI application exposing snapshot data."""

    app = FastAPI(title="codestats", version="0.1.0")

    async def get_store() -> SnapshotStore:
        return store_factory()

    def _client_side(side: str) -> bool:
        if side not in (CLIENT_SIDE, SERVER_SIDE):
            raise HTTPException(status_code=404, detail=f"Unknown side: {side}")
        return side == CLIENT_SIDE

    def _load(store: SnapshotStore, side: str, report_type: str) -> List[Snapshot]:
        return store.load(report_type, client_side=_client_side(side))

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(status="ok")

    @app.get("/reports/{side}/{report_type}")
    async def list_reports(
        side: str, report_type: str, store: SnapshotStore = Depends(get_store)
    ) -> List[Dict[str, Any]]:
        return [snapshot.to_dict() for snapshot in _load(store, side, report_type)]

    @app.get("/reports/{side}/{report_type}/latest")
    async def latest_report(
        side: str, report_type: str, store: SnapshotStore = Depends(get_store)
    ) -> Dict[str, Any]:
        snapshots = _load(store, side, report_type)
        if not snapshots:
            raise HTTPException(status_code=404, detail=f"No {report_type} snapshots found")
        return snapshots[-1].to_dict()

    @app.get("/reports/{side}/{report_type}/modules", response_model=List[ModuleTotal])
    async def latest_module_totals(
        side: str, report_type: str, store: SnapshotStore = Depends(get_store)
    ) -> List[ModuleTotal]:
        snapshots = _load(store, side, report_type)
        if not snapshots or not isinstance(snapshots[-1].payload, dict):
            raise HTTPException(status_code=404, detail=f"No {report_type} snapshots found")
        payload = snapshots[-1].payload
        fields = None
        if report_type == DTO_REPORT_TYPE:
            # Per-module counts sit under "modules".
            payload = payload.get("modules") or {}
            fields = VIOLATION_FIELDS
        return [
            ModuleTotal(module=module, total=total)
            for module, total in module_totals(payload, fields)
        ]

    def _current_and_baseline(
        store: SnapshotStore, compare: Optional[str]
    ) -> Tuple[Snapshot, Snapshot]:
        snapshots = store.load(_DECORATORLESS)
        if not snapshots:
            raise HTTPException(status_code=404, detail="No decoratorless API snapshots found")
        baseline = snapshots[0]
        if compare:
            matches = [snap for snap in snapshots if snap.provenance.hash.startswith(compare)]
            if not matches:
                raise HTTPException(status_code=404, detail=f"Unknown commit {compare}")
            baseline = matches[0]
        return snapshots[-1], baseline

    @app.get("/insights/decoratorless/progress")
    async def decoratorless_progress(
        compare: Optional[str] = None, store: SnapshotStore = Depends(get_store)
    ) -> Dict[str, Any]:
        current, baseline = _current_and_baseline(store, compare)
        progress = migration_progress(current.payload, baseline.payload)
        data = progress.to_dict()
        data["currentCommit"] = current.provenance.hash
        data["compareCommit"] = baseline.provenance.hash
        return data

    @app.get("/insights/decoratorless/modules")
    async def decoratorless_modules(
        compare: Optional[str] = None, store: SnapshotStore = Depends(get_store)
    ) -> List[Dict[str, Any]]:
        current, baseline = _current_and_baseline(store, compare)
        board = module_leaderboard(current.payload, baseline.payload)
        return [entry.to_dict() for entry in board]

    @app.get("/insights/decoratorless/contributors")
    async def decoratorless_contributors(
        since: Optional[str] = None,
        until: Optional[str] = None,
        store: SnapshotStore = Depends(get_store),
    ) -> List[Dict[str, Any]]:
        snapshots = store.load(_DECORATORLESS)
        try:
            board = contributor_leaderboard(snapshots, since_hash=since, until_hash=until)
        except KeyError as exc:
            raise HTTPException(status_code=404, detail=str(exc.args[0])) from exc
        return [entry.to_dict() for entry in board]

    @app.post("/snapshots", response_model=SnapshotResponse)
    async def create_snapshots() -> SnapshotResponse:
        if orchestrator_factory is None:
            raise HTTPException(status_code=503, detail="Snapshot generation is not enabled")
        orchestrator = orchestrator_factory()
        loop = asyncio.get_running_loop()
        paths = await loop.run_in_executor(None, orchestrator.generate_client_reports)
        return SnapshotResponse(paths=[str(path) for path in paths])

    @app.exception_handler(ConfigError)
    async def config_error_handler(_: Any, exc: ConfigError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    return app


def run_service(
    config: CodeStatsConfig, host: str = "127.0.0.1", port: int = 8000
) -> None:  # pragma: no cover - integration path
    import uvicorn

    output_dir = Path(config.output_dir)
    app = create_app(
        lambda: SnapshotStore(output_dir),
        lambda: Orchestrator(config),
    )
    uvicorn.run(app, host=host, port=port)
