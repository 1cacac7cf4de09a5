from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
import asyncio
import logging
import uuid

try:
    from fastapi import FastAPI, HTTPException
    from pydantic import BaseModel
except Exception as exc:  # pragma: no cover - optional dependency
    raise RuntimeError(
        "FastAPI not installed. Install with `pip install 'catalog-crawler[api]'` "
        "or avoid using the API server."
    ) from exc

from ..config import CrawlConfig
from ..version import __version__
from ..engines.base import CrawlError, CrawlReport
from ..engines.catalog_engine import CatalogCrawlEngine, Fetcher
from ..engines.progress import ProgressEvent
from ..ui.cli import build_registry, build_sinks

logger = logging.getLogger(__name__)


class CrawlRequest(BaseModel):
    base_url: str
    adapter: Optional[str] = None
    politeness_delay: Optional[float] = None
    max_pagination_depth: Optional[int] = None
    max_concurrency: Optional[int] = None
    output_path: Optional[str] = None
    csv_output_path: Optional[str] = None
    extra_adapters: Optional[List[str]] = None


@dataclass
class CrawlJob:
    id: str
    engine: CatalogCrawlEngine
    task: Optional["asyncio.Task[Optional[CrawlReport]]"] = None
    latest: Optional[ProgressEvent] = None
    report: Optional[CrawlReport] = None
    error: Optional[str] = None

    @property
    def status(self) -> str:
        if self.error is not None:
            return "failed"
        if self.report is not None:
            return "cancelled" if self.report.stats.cancelled else "complete"
        return "running"

    def observe(self, event: ProgressEvent) -> None:
        self.latest = event

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "jobId": self.id,
            "status": self.status,
            "progress": self.latest.to_dict() if self.latest else None,
        }
        if self.report is not None:
            data["summary"] = {
                "totalProducts": self.report.total_products,
                "categories": self.report.categories,
                "brands": self.report.brands,
                "stats": self.report.stats.to_dict(),
            }
        if self.error is not None:
            data["error"] = self.error
        return data


@dataclass
class JobStore:
    """In-process job table. Jobs live as long as the server process."""

    jobs: Dict[str, CrawlJob] = field(default_factory=dict)
    # Injected by tests to crawl fixtures instead of the network.
    fetcher: Optional[Fetcher] = None

    def start(self, cfg: CrawlConfig) -> CrawlJob:
        job_id = uuid.uuid4().hex
        engine = CatalogCrawlEngine(
            cfg,
            registry=build_registry(cfg),
            fetcher=self.fetcher,
            sinks=build_sinks(cfg),
        )
        job = CrawlJob(id=job_id, engine=engine)
        engine.observer = job.observe
        job.task = asyncio.create_task(self._run(job))
        self.jobs[job_id] = job
        return job

    async def _run(self, job: CrawlJob) -> Optional[CrawlReport]:
        # The task is never awaited by a request, so failures end up on the job.
        try:
            job.report = await job.engine.crawl()
        except (CrawlError, OSError) as exc:
            job.error = str(exc)
            logger.error("Crawl job %s failed: %s", job.id, exc)
        except Exception as exc:
            job.error = repr(exc)
            logger.exception("Crawl job %s crashed", job.id)
        return job.report

    def get(self, job_id: str) -> CrawlJob:
        job = self.jobs.get(job_id)
        if job is None:
            raise HTTPException(status_code=404, detail=f"Unknown job {job_id}")
        return job


app = FastAPI(title="catalog_crawler API", version=__version__)
app.state.jobs = JobStore()


def _config_for(req: CrawlRequest) -> CrawlConfig:
    cfg = CrawlConfig.from_env()
    cfg.base_url = req.base_url
    if req.adapter:
        cfg.adapter = req.adapter
    if req.politeness_delay is not None:
        cfg.politeness_delay = req.politeness_delay
    if req.max_pagination_depth is not None:
        cfg.max_pagination_depth = req.max_pagination_depth
    if req.max_concurrency is not None:
        cfg.max_concurrency = req.max_concurrency
    if req.output_path:
        cfg.output_path = req.output_path
    if req.csv_output_path:
        cfg.csv_output_path = req.csv_output_path
    if req.extra_adapters:
        cfg.extra_adapters = req.extra_adapters
    cfg.validate()
    return cfg


@app.get("/health")
async def health() -> Dict[str, str]:
    return {"status": "ok"}


@app.post("/crawl", status_code=202)
async def crawl(req: CrawlRequest) -> Dict[str, Any]:
    try:
        cfg = _config_for(req)
        job = app.state.jobs.start(cfg)
    except ValueError as exc:
        # bad config values or an unknown adapter name
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    logger.info("Started crawl job %s for %s", job.id, cfg.base_url)
    return job.to_dict()


@app.get("/crawl/{job_id}")
async def crawl_status(job_id: str) -> Dict[str, Any]:
    return app.state.jobs.get(job_id).to_dict()


@app.delete("/crawl/{job_id}")
async def cancel_crawl(job_id: str) -> Dict[str, Any]:
    job = app.state.jobs.get(job_id)
    job.engine.cancel()
    return job.to_dict()
