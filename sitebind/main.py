from __future__ import annotations

import html
import logging
import time
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, HTMLResponse, JSONResponse, PlainTextResponse
from sqlalchemy import text
from sqlalchemy.orm import Session

from sitebind import models, schemas
from sitebind.config import get_settings
from sitebind.db import get_session, init_db
from sitebind.fetcher import fetch_site_apis
from sitebind.renderer import SiteBindings, render_site_page
from sitebind.site_files import (
    SiteFileNotFound,
    SitePathError,
    discover_site_folders,
    ensure_site_folder,
    is_html,
    list_pages,
    locate_site_file,
    read_page,
    read_tree,
    write_page,
)
from sitebind.store import SiteStore, StoreConflictError
from sitebind.upstream import UpstreamAPIError, UpstreamClient, UpstreamRequestError, decode_body

logger = logging.getLogger("sitebind.api")
client_logger = logging.getLogger("sitebind.client")
_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def _validate_runtime_configuration(settings) -> None:
    safety_errors = settings.production_safety_errors()
    if not safety_errors:
        return

    for error in safety_errors:
        logger.error("unsafe_production_config error=%s", error)
    raise RuntimeError("Unsafe production configuration; see logs for details")


def _configure_logging(settings) -> None:
    logging.basicConfig(level=settings.log_level.upper(), format=_LOG_FORMAT)
    if not settings.log_file:
        return

    log_path = Path(settings.log_file).expanduser().resolve()
    root_logger = logging.getLogger()
    for handler in root_logger.handlers:
        if isinstance(handler, logging.FileHandler) and Path(handler.baseFilename) == log_path:
            return

    log_path.parent.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setFormatter(logging.Formatter(_LOG_FORMAT))
    root_logger.addHandler(file_handler)


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    _configure_logging(settings)
    _validate_runtime_configuration(settings)
    init_db()
    settings.websites_path().mkdir(parents=True, exist_ok=True)

    logger.info("sitebind startup complete websites_dir=%s", settings.websites_path())
    yield


app = FastAPI(
    title="sitebind",
    version="0.1.0",
    description=(
        "Serves static HTML sites with live REST API data bound into their placeholders "
        "and click actions wired to server-side API calls."
    ),
    lifespan=lifespan,
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().parsed_cors_allow_origins(),
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    request_id = request.headers.get("X-Request-ID", "").strip() or uuid.uuid4().hex
    start = time.perf_counter()

    try:
        response = await call_next(request)
    except Exception:
        duration_ms = (time.perf_counter() - start) * 1000.0
        logger.exception(
            "request_failed method=%s path=%s request_id=%s duration_ms=%.2f",
            request.method,
            request.url.path,
            request_id,
            duration_ms,
        )
        raise

    duration_ms = (time.perf_counter() - start) * 1000.0
    response.headers["X-Request-ID"] = request_id
    logger.info(
        "request_completed method=%s path=%s status=%s request_id=%s duration_ms=%.2f",
        request.method,
        request.url.path,
        response.status_code,
        request_id,
        duration_ms,
    )
    return response


def _websites_root() -> Path:
    return get_settings().websites_path()


def _upstream_client() -> UpstreamClient:
    return UpstreamClient(timeout=get_settings().upstream_timeout_sec)


def _bounded_limit(limit: int | None) -> int:
    settings = get_settings()
    requested = limit if limit is not None else settings.default_page_size
    return min(requested, settings.max_page_size)


def _get_site_or_404(store: SiteStore, site_name: str) -> models.Site:
    site = store.get_site(site_name)
    if site is None:
        raise HTTPException(status_code=404, detail="site not found")
    return site


def _get_api_or_404(store: SiteStore, site: models.Site, api_name: str) -> models.ApiDefinition:
    api = store.get_api(site, api_name)
    if api is None:
        raise HTTPException(status_code=404, detail="api not found")
    return api


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/health/live")
def health_live() -> dict[str, str]:
    return {"status": "live"}


@app.get("/health/ready")
def health_ready(db: Session = Depends(get_session)) -> dict[str, str]:
    try:
        db.execute(text("SELECT 1"))
    except Exception:
        raise HTTPException(status_code=503, detail="Database not ready")
    return {"status": "ready"}


@app.get("/", response_class=HTMLResponse)
def index(db: Session = Depends(get_session)) -> str:
    sites = SiteStore(db).list_sites(limit=_bounded_limit(None), offset=0)
    items = "".join(
        f'<li><a href="/site/{html.escape(site.name)}/">{html.escape(site.name)}</a></li>' for site in sites
    )
    return f"<h2>sitebind</h2><p>Sites:</p><ul>{items}</ul>"


@app.post("/api/logs", response_model=schemas.OkResponse)
def receive_client_log(entry: schemas.ClientLogEntry) -> schemas.OkResponse:
    message = entry.message if entry.meta is None else f"{entry.message} | meta={entry.meta!r}"
    level = entry.level.strip().lower()
    if level == "error":
        client_logger.error(message)
    elif level == "warn" or level == "warning":
        client_logger.warning(message)
    else:
        client_logger.info(message)
    return schemas.OkResponse()


@app.get("/api/sites", response_model=list[schemas.SiteRead])
def list_sites(
    limit: int | None = Query(default=None, ge=1, le=5000),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_session),
) -> list[models.Site]:
    store = SiteStore(db)
    store.sync_site_folders(discover_site_folders(_websites_root()))
    return store.list_sites(limit=_bounded_limit(limit), offset=offset)


@app.post("/api/sites", response_model=schemas.SiteRead)
def create_site(payload: schemas.SiteCreate, db: Session = Depends(get_session)) -> models.Site:
    try:
        site = SiteStore(db).create_site(payload.name)
    except StoreConflictError as exc:
        raise HTTPException(status_code=409, detail=str(exc))

    ensure_site_folder(_websites_root(), site.name)
    logger.info("site_created site=%s", site.name)
    return site


@app.get("/api/sites/{site_name}", response_model=schemas.SiteRead)
def get_site(site_name: str, db: Session = Depends(get_session)) -> models.Site:
    return _get_site_or_404(SiteStore(db), site_name)


@app.get("/api/sites/{site_name}/tree", response_model=list[schemas.TreeNode])
def site_tree(site_name: str) -> list[dict[str, Any]]:
    try:
        return read_tree(_websites_root(), site_name)
    except SitePathError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except SiteFileNotFound:
        raise HTTPException(status_code=404, detail="site not found")


@app.get("/api/sites/{site_name}/pages", response_model=list[str])
def site_pages(site_name: str) -> list[str]:
    try:
        pages = list_pages(_websites_root(), site_name)
    except SitePathError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except SiteFileNotFound:
        logger.warning("site_folder_missing site=%s", site_name)
        raise HTTPException(status_code=404, detail="site not found")

    logger.info("site_pages_listed site=%s count=%s", site_name, len(pages))
    return pages


@app.get("/api/sites/{site_name}/pages/content", response_class=PlainTextResponse)
def page_content(site_name: str, path: str = Query(default="index.html")) -> str:
    try:
        return read_page(_websites_root(), site_name, path)
    except SitePathError:
        raise HTTPException(status_code=400, detail="invalid path")
    except SiteFileNotFound:
        raise HTTPException(status_code=404, detail="not found")


@app.post("/api/sites/{site_name}/pages/save", response_model=schemas.OkResponse)
def save_page(site_name: str, payload: schemas.PageSaveRequest) -> schemas.OkResponse:
    try:
        write_page(_websites_root(), site_name, payload.path, payload.content)
    except SitePathError:
        raise HTTPException(status_code=400, detail="invalid path")

    logger.info("page_saved site=%s path=%s bytes=%s", site_name, payload.path, len(payload.content))
    return schemas.OkResponse()


@app.get("/api/sites/{site_name}/pages/{page_name:path}/api/{api_name}/mapping", response_model=schemas.PageMappingRead)
def get_page_mapping(
    site_name: str,
    page_name: str,
    api_name: str,
    db: Session = Depends(get_session),
) -> models.PageMapping:
    store = SiteStore(db)
    site = _get_site_or_404(store, site_name)
    record = store.get_page_mapping(site, page=page_name, api_name=api_name)
    if record is None:
        raise HTTPException(status_code=404, detail="mapping not found")
    return record


@app.get("/api/sites/{site_name}/pages/{page_name:path}/mappings", response_model=list[schemas.PageMappingRead])
def list_page_mappings(
    site_name: str,
    page_name: str,
    db: Session = Depends(get_session),
) -> list[models.PageMapping]:
    store = SiteStore(db)
    site = _get_site_or_404(store, site_name)
    return store.list_page_mappings(site, page=page_name)


@app.post("/api/sites/{site_name}/apis", response_model=schemas.ApiDefinitionRead)
def create_api(
    site_name: str,
    payload: schemas.ApiDefinitionCreate,
    db: Session = Depends(get_session),
) -> models.ApiDefinition:
    store = SiteStore(db)
    site = _get_site_or_404(store, site_name)
    try:
        api = store.add_api(site, payload)
    except StoreConflictError as exc:
        raise HTTPException(status_code=409, detail=str(exc))

    logger.info("api_created site=%s api=%s method=%s", site_name, api.name, api.method)
    return api


@app.put("/api/sites/{site_name}/apis/{api_name}", response_model=schemas.ApiDefinitionRead)
def update_api(
    site_name: str,
    api_name: str,
    payload: schemas.ApiDefinitionUpdate,
    db: Session = Depends(get_session),
) -> models.ApiDefinition:
    store = SiteStore(db)
    site = _get_site_or_404(store, site_name)
    api = _get_api_or_404(store, site, api_name)
    return store.update_api(api, payload)


@app.delete("/api/sites/{site_name}/apis/{api_name}", response_model=schemas.OkResponse)
def delete_api(site_name: str, api_name: str, db: Session = Depends(get_session)) -> schemas.OkResponse:
    store = SiteStore(db)
    site = _get_site_or_404(store, site_name)
    store.delete_api(_get_api_or_404(store, site, api_name))
    logger.info("api_deleted site=%s api=%s", site_name, api_name)
    return schemas.OkResponse()


@app.post("/api/sites/{site_name}/mappings", response_model=schemas.MappingRead)
def create_mapping(
    site_name: str,
    payload: schemas.MappingCreate,
    db: Session = Depends(get_session),
) -> models.MappingRecord:
    store = SiteStore(db)
    return store.add_mapping(_get_site_or_404(store, site_name), payload)


@app.post("/api/sites/{site_name}/actions", response_model=schemas.ActionRead)
def create_action(
    site_name: str,
    payload: schemas.ActionCreate,
    db: Session = Depends(get_session),
) -> models.ActionRecord:
    store = SiteStore(db)
    return store.add_action(_get_site_or_404(store, site_name), payload)


@app.post("/api/sites/{site_name}/page-mappings", response_model=schemas.SuccessResponse)
def upsert_page_mapping(
    site_name: str,
    payload: schemas.PageMappingUpsert,
    db: Session = Depends(get_session),
) -> schemas.SuccessResponse:
    store = SiteStore(db)
    store.upsert_page_mapping(_get_site_or_404(store, site_name), payload)
    return schemas.SuccessResponse()


@app.get("/api/sites/{site_name}/api/{api_name}/pages", response_model=list[str])
def pages_for_api(site_name: str, api_name: str, db: Session = Depends(get_session)) -> list[str]:
    store = SiteStore(db)
    return store.pages_for_api(_get_site_or_404(store, site_name), api_name)


@app.post(
    "/api/sites/{site_name}/endpoints/{api_name}/execute",
    response_model=schemas.ExecuteResponse,
    responses={502: {"description": "Upstream API failure envelope"}},
)
async def execute_endpoint(
    site_name: str,
    api_name: str,
    payload: schemas.ExecuteRequest | None = None,
    db: Session = Depends(get_session),
):
    store = SiteStore(db)
    site = _get_site_or_404(store, site_name)
    api = schemas.ApiDefinitionRead.model_validate(_get_api_or_404(store, site, api_name))
    override = payload or schemas.ExecuteRequest()

    body = override.body if override.body is not None else api.body_template
    logger.info("execute_api site=%s api=%s method=%s url=%s", site_name, api.name, api.method, api.url)
    try:
        async with _upstream_client() as client:
            response = await client.call(
                method=api.method,
                url=api.url,
                headers={**api.headers, **override.headers},
                params={**api.params, **override.params},
                body=body,
            )
    except UpstreamAPIError as exc:
        logger.error("execute_api_failed site=%s api=%s status=%s", site_name, api.name, exc.status_code)
        return JSONResponse(
            status_code=502,
            content={"error": str(exc), "response": {"status": exc.status_code, "data": exc.data}},
        )
    except UpstreamRequestError as exc:
        logger.error("execute_api_failed site=%s api=%s error=%s", site_name, api.name, exc)
        return JSONResponse(status_code=502, content={"error": str(exc)})

    logger.info("execute_api_succeeded site=%s api=%s status=%s", site_name, api.name, response.status_code)
    return schemas.ExecuteResponse(
        status=response.status_code,
        data=decode_body(response),
        headers=dict(response.headers),
    )


@app.get("/api/sites/{site_name}/data")
async def site_data(site_name: str, db: Session = Depends(get_session)) -> dict[str, Any]:
    store = SiteStore(db)
    site = _get_site_or_404(store, site_name)
    apis = [schemas.ApiDefinitionRead.model_validate(api) for api in site.apis]
    async with _upstream_client() as client:
        data = await fetch_site_apis(apis, client=client)
    logger.info("site_data_fetched site=%s apis=%s", site_name, len(apis))
    return data


@app.get("/website/{site_name}/{file_path:path}")
def serve_raw_file(site_name: str, file_path: str) -> FileResponse:
    try:
        resolved, _ = locate_site_file(_websites_root(), site_name, file_path)
    except SitePathError:
        raise HTTPException(status_code=400, detail="Invalid path")
    except SiteFileNotFound:
        raise HTTPException(status_code=404, detail="Not found")
    return FileResponse(resolved)


def _load_page(resolved: Path, site_name: str, db: Session) -> tuple[str, SiteBindings | None]:
    content = resolved.read_text(encoding="utf-8", errors="replace")
    return content, SiteStore(db).load_bindings(site_name)


@app.get("/site/{site_name}/{page_path:path}")
async def serve_site_page(site_name: str, page_path: str, db: Session = Depends(get_session)):
    try:
        resolved, page_path = locate_site_file(_websites_root(), site_name, page_path)
    except SitePathError:
        raise HTTPException(status_code=400, detail="Invalid path")
    except SiteFileNotFound:
        raise HTTPException(status_code=404, detail="Not found")

    if not is_html(resolved):
        return FileResponse(resolved)

    content, bindings = await run_in_threadpool(_load_page, resolved, site_name, db)
    if bindings is None:
        logger.info("page_served_unbound site=%s page=%s", site_name, page_path)
        return HTMLResponse(content)

    async with _upstream_client() as client:
        rendered = await render_site_page(
            content,
            site_name=site_name,
            page_path=page_path,
            bindings=bindings,
            client=client,
        )
    return HTMLResponse(rendered)
