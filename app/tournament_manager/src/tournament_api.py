import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Literal

from fastapi import Depends, FastAPI, File, HTTPException, Request, UploadFile
from fastapi.responses import Response

from ..schemas.schemas import (
    AllocatedCategory,
    CategoryInput,
    CategoryMove,
    CategoryOrder,
    CategoryTemplate,
    CategoryUpdate,
    RowsPage,
    TournamentSummary,
)
from .category_png_renderer import render_category_to_png
from .category_service import CATEGORY_TEMPLATES, TournamentSession
from .core import (
    CategoryNotFoundError,
    InvalidCategoryOrderError,
    SpreadsheetError,
    SpreadsheetTooLargeError,
    configure_logging,
    load_settings,
)
from .row_query import iter_column_values, search_rows, sort_rows
from . import spreadsheet_reader

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Run startup/shutdown hooks for the FastAPI app."""
    configure_logging()
    settings = load_settings()
    app.state.settings = settings
    app.state.session = TournamentSession(identity_column=settings.identity_column)
    logger.info("Starting Tournament Manager API (identity column: %s)...", settings.identity_column or "full row")
    yield
    logger.info("Shutting down Tournament Manager API...")


app = FastAPI(title="Tournament Category Manager API", lifespan=lifespan)


def get_session(request: Request) -> TournamentSession:
    return request.app.state.session


def _to_http_exception(exc: Exception) -> HTTPException:
    """Normalize internal exceptions to an HTTPException."""
    if isinstance(exc, SpreadsheetTooLargeError):
        return HTTPException(status_code=413, detail=str(exc))
    if isinstance(exc, CategoryNotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, (SpreadsheetError, InvalidCategoryOrderError)):
        return HTTPException(status_code=400, detail=str(exc))
    logger.exception("Unexpected error while handling request", exc_info=exc)
    return HTTPException(status_code=500, detail="Internal error")


@app.post("/tournament/upload")
async def upload_tournament(request: Request, file: UploadFile = File(...)) -> TournamentSummary:
    """Accept an .xlsx/.xls upload and replace the row store with its first worksheet."""
    session: TournamentSession = request.app.state.session
    max_bytes = request.app.state.settings.max_upload_bytes
    filename = file.filename or ""
    logger.info("Received spreadsheet upload: %s", filename)

    try:
        # Reject by declared size before buffering; the bounded read catches uploads without one.
        spreadsheet_reader.validate_upload(filename, file.size or 0, max_bytes)
        content = await file.read(max_bytes + 1)
        store = await asyncio.to_thread(spreadsheet_reader.read_spreadsheet, filename, content, max_bytes=max_bytes)
    except Exception as exc:
        raise _to_http_exception(exc) from exc

    categories = await asyncio.to_thread(session.upload, store)
    return TournamentSummary(columns=list(store.columns), player_count=store.player_count, category_count=len(categories))


@app.get("/tournament")
def tournament_summary(session: TournamentSession = Depends(get_session)) -> TournamentSummary:
    store = session.row_store
    return TournamentSummary(
        columns=list(store.columns),
        player_count=store.player_count,
        category_count=len(session.categories),
    )


@app.get("/tournament/rows")
def tournament_rows(
    search: str | None = None,
    sort: str | None = None,
    direction: Literal["asc", "desc"] = "asc",
    session: TournamentSession = Depends(get_session),
) -> RowsPage:
    """Return the full data table, optionally searched and sorted."""
    store = session.row_store
    rows = search_rows(store.rows, store.columns, search)
    if sort:
        if sort not in store.columns:
            raise HTTPException(status_code=400, detail=f"Unknown column: {sort}")
        rows = sort_rows(rows, sort, descending=direction == "desc")
    return RowsPage(columns=list(store.columns), total=store.player_count, rows=[dict(r) for r in rows])


@app.get("/tournament/columns/{column}/values")
def column_values(column: str, session: TournamentSession = Depends(get_session)) -> list[str | int | float]:
    """Distinct values of a column, for building filter value pickers."""
    store = session.row_store
    if column not in store.columns:
        raise HTTPException(status_code=404, detail=f"Unknown column: {column}")
    return list(iter_column_values(store.rows, column))


@app.get("/categories")
def list_categories(session: TournamentSession = Depends(get_session)) -> list[AllocatedCategory]:
    return session.categories


@app.get("/categories/templates")
def list_category_templates() -> list[CategoryTemplate]:
    return list(CATEGORY_TEMPLATES)


@app.post("/categories", status_code=201)
def add_category(body: CategoryInput, session: TournamentSession = Depends(get_session)) -> list[AllocatedCategory]:
    return session.add_category(body)


@app.put("/categories/order")
def reorder_categories(body: CategoryOrder, session: TournamentSession = Depends(get_session)) -> list[AllocatedCategory]:
    try:
        return session.reorder_categories(body.ids)
    except Exception as exc:
        raise _to_http_exception(exc) from exc


@app.post("/categories/move")
def move_category(body: CategoryMove, session: TournamentSession = Depends(get_session)) -> list[AllocatedCategory]:
    try:
        return session.move_category(body.active_id, body.over_id)
    except Exception as exc:
        raise _to_http_exception(exc) from exc


@app.get("/categories/{category_id}")
def get_category(category_id: str, session: TournamentSession = Depends(get_session)) -> AllocatedCategory:
    try:
        return session.get_category(category_id)
    except Exception as exc:
        raise _to_http_exception(exc) from exc


@app.patch("/categories/{category_id}")
def update_category(
    category_id: str,
    body: CategoryUpdate,
    session: TournamentSession = Depends(get_session),
) -> list[AllocatedCategory]:
    try:
        return session.update_category(category_id, body)
    except Exception as exc:
        raise _to_http_exception(exc) from exc


@app.delete("/categories/{category_id}")
def delete_category(category_id: str, session: TournamentSession = Depends(get_session)) -> list[AllocatedCategory]:
    try:
        return session.delete_category(category_id)
    except Exception as exc:
        raise _to_http_exception(exc) from exc


@app.get("/categories/{category_id}/table.png")
def category_table_png(category_id: str, session: TournamentSession = Depends(get_session)):
    """Render a category's players as a PNG standings table."""
    try:
        category = session.get_category(category_id)
        png_bytes = render_category_to_png(category, session.row_store.columns)
    except Exception as exc:
        raise _to_http_exception(exc) from exc
    return Response(content=png_bytes, media_type="image/png")


@app.get("/health")
def health_check():
    """Simple health endpoint for readiness checks."""
    return {"status": "ok"}


def main() -> None:
    """Serve the API with uvicorn. Safe to import without starting a server."""
    import uvicorn

    configure_logging()
    settings = load_settings()
    logger.info("Serving on %s:%d", settings.host, settings.port)
    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)


if __name__ == "__main__":  # pragma: no cover
    main()
