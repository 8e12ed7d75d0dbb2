"""FastAPI router configuration."""
from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import date
from typing import Sequence

from fastapi import APIRouter, Depends, FastAPI, File, Query, Request, Response, UploadFile, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from . import crud, schemas
from .barcode import describe_barcode, format_for_display, normalize_barcode
from .config import Settings, get_settings
from .database import create_engine, create_session_factory, get_session
from .errors import ImportRowError, MissingColumnError, NotFoundError, StorageError, ValidationError
from .exporter import export_filename, product_template_xls, records_to_xls
from .importer import map_product_rows, map_record_rows, read_table
from .logconfig import configure_logging
from .management import init_database
from .notifications import (
    DailyNotificationCheck,
    LoggingNotificationSink,
    collect_due_notifications,
    evaluate_notifications,
    notification_summary,
)
from .status import StatusPolicy, get_policy

logger = logging.getLogger(__name__)

XLS_MEDIA_TYPE = "application/vnd.ms-excel"

router = APIRouter()


def provide_settings() -> Settings:
    """Dependency returning the active :class:`Settings` instance."""

    return get_settings()


def provide_policy(settings: Settings = Depends(provide_settings)) -> StatusPolicy:
    return get_policy(settings.status_policy, near_expiration_days=settings.near_expiration_days)


def provide_today() -> date:
    return date.today()


def _xls_response(content: bytes, filename: str) -> Response:
    return Response(
        content,
        media_type=XLS_MEDIA_TYPE,
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


async def _read_upload(upload: UploadFile) -> list[list]:
    try:
        content = await upload.read()
    finally:
        await upload.close()
    return read_table(upload.filename or "", content)


@router.get("/health", response_model=schemas.HealthStatus, tags=["system"])
async def health_check(settings: Settings = Depends(provide_settings)) -> schemas.HealthStatus:
    return schemas.HealthStatus(environment=settings.environment, status_policy=settings.status_policy)


# ----------------------------------------------------------------------
# Expiration records
# ----------------------------------------------------------------------
@router.get("/records", response_model=list[schemas.RecordOut], tags=["records"])
async def list_records(
    session: AsyncSession = Depends(get_session),
    policy: StatusPolicy = Depends(provide_policy),
    today: date = Depends(provide_today),
) -> Sequence[schemas.RecordOut]:
    records = await crud.list_records(session)
    return [schemas.RecordOut.from_record(record, policy=policy, today=today) for record in records]


@router.post(
    "/records",
    response_model=schemas.RecordAddResult,
    status_code=status.HTTP_201_CREATED,
    tags=["records"],
)
async def add_record(
    payload: schemas.RecordCreate,
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(provide_settings),
    policy: StatusPolicy = Depends(provide_policy),
    today: date = Depends(provide_today),
) -> schemas.RecordAddResult:
    record, merged = await crud.add_record(
        session,
        payload,
        merge_key=settings.merge_key,
        barcode_format=settings.barcode_format,
        today=today,
    )
    await session.commit()
    return schemas.RecordAddResult(
        id=record.id,
        merged=merged,
        record=schemas.RecordOut.from_record(record, policy=policy, today=today),
    )


@router.post("/records/refresh", response_model=schemas.RecordSnapshot, tags=["records"])
async def refresh_records(
    session: AsyncSession = Depends(get_session),
    policy: StatusPolicy = Depends(provide_policy),
    today: date = Depends(provide_today),
) -> schemas.RecordSnapshot:
    return await crud.refresh(session, policy=policy, today=today)


@router.get("/records/export", tags=["records"])
async def export_records(
    columns: str | None = Query(default=None, description="Comma separated column subset."),
    session: AsyncSession = Depends(get_session),
    policy: StatusPolicy = Depends(provide_policy),
    today: date = Depends(provide_today),
) -> Response:
    records = await crud.list_records(session)
    selected = columns.split(",") if columns else None
    content = records_to_xls(records, policy=policy, today=today, columns=selected)
    return _xls_response(content, export_filename("expiration-records", today))


@router.post("/records/import", response_model=schemas.RecordImportResult, tags=["records"])
async def import_records(
    file: UploadFile = File(...),
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(provide_settings),
    today: date = Depends(provide_today),
) -> schemas.RecordImportResult:
    table = await _read_upload(file)
    outcome = map_record_rows(table)
    errors = outcome.errors
    imported = merged = 0
    for row_number, candidate in zip(outcome.row_numbers, outcome.records):
        try:
            _, was_merged = await crud.add_record(
                session,
                candidate,
                merge_key=settings.merge_key,
                barcode_format=settings.barcode_format,
                today=today,
            )
        except ValidationError as exc:
            errors.append(str(ImportRowError(row_number, exc.message)))
            continue
        imported += 1
        merged += int(was_merged)
    await session.commit()
    logger.info("Imported %d records (%d merged, %d errors)", imported, merged, len(errors))
    return schemas.RecordImportResult(
        success=not errors, imported=imported, merged=merged, errors=errors
    )


@router.get("/records/{record_id}", response_model=schemas.RecordOut, tags=["records"])
async def get_record(
    record_id: str,
    session: AsyncSession = Depends(get_session),
    policy: StatusPolicy = Depends(provide_policy),
    today: date = Depends(provide_today),
) -> schemas.RecordOut:
    record = await crud.get_record(session, record_id)
    return schemas.RecordOut.from_record(record, policy=policy, today=today)


@router.patch("/records/{record_id}", response_model=schemas.RecordOut, tags=["records"])
async def update_record(
    record_id: str,
    payload: schemas.RecordUpdate,
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(provide_settings),
    policy: StatusPolicy = Depends(provide_policy),
    today: date = Depends(provide_today),
) -> schemas.RecordOut:
    record = await crud.update_record(
        session, record_id, payload, barcode_format=settings.barcode_format
    )
    await session.commit()
    return schemas.RecordOut.from_record(record, policy=policy, today=today)


@router.delete(
    "/records/{record_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["records"]
)
async def delete_record(record_id: str, session: AsyncSession = Depends(get_session)) -> None:
    await crud.delete_record(session, record_id)
    await session.commit()


# ----------------------------------------------------------------------
# Product catalog
# ----------------------------------------------------------------------
@router.get("/catalog", response_model=list[schemas.ProductOut], tags=["catalog"])
async def list_products(session: AsyncSession = Depends(get_session)) -> Sequence[schemas.ProductOut]:
    products = await crud.list_products(session)
    return [schemas.ProductOut.model_validate(product) for product in products]


@router.post(
    "/catalog",
    response_model=schemas.ProductOut,
    status_code=status.HTTP_201_CREATED,
    tags=["catalog"],
)
async def upsert_product(
    payload: schemas.ProductCreate,
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(provide_settings),
) -> schemas.ProductOut:
    product = await crud.upsert_product(session, payload, barcode_format=settings.barcode_format)
    await session.commit()
    return schemas.ProductOut.model_validate(product)


@router.delete("/catalog", tags=["catalog"])
async def clear_products(session: AsyncSession = Depends(get_session)) -> dict[str, int]:
    deleted = await crud.clear_products(session)
    await session.commit()
    return {"deleted": deleted}


@router.get("/catalog/lookup", response_model=list[schemas.ProductOut], tags=["catalog"])
async def lookup_products(
    q: str = Query(..., description="Barcode prefix or item name fragment."),
    session: AsyncSession = Depends(get_session),
) -> Sequence[schemas.ProductOut]:
    products = await crud.lookup_products(session, q)
    return [schemas.ProductOut.model_validate(product) for product in products]


@router.get("/catalog/suggest", response_model=list[schemas.ProductOut], tags=["catalog"])
async def suggest_barcodes(
    partial: str = Query(...),
    limit: int = Query(10, ge=1, le=50),
    session: AsyncSession = Depends(get_session),
) -> Sequence[schemas.ProductOut]:
    products = await crud.suggest_barcodes(session, partial, limit=limit)
    return [schemas.ProductOut.model_validate(product) for product in products]


@router.get("/catalog/template", tags=["catalog"])
async def download_template() -> Response:
    return _xls_response(product_template_xls(), "product-data-template.xls")


@router.post("/catalog/import", response_model=schemas.ImportResult, tags=["catalog"])
async def import_products(
    file: UploadFile = File(...),
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(provide_settings),
) -> schemas.ImportResult:
    table = await _read_upload(file)
    outcome = map_product_rows(table)
    imported, failures = await crud.bulk_upsert_products(
        session, outcome.products, barcode_format=settings.barcode_format
    )
    await session.commit()
    errors = [*outcome.errors, *failures]
    logger.info("Imported %d catalog entries (%d errors)", imported, len(errors))
    return schemas.ImportResult(success=not errors, imported=imported, errors=errors)


@router.get("/catalog/{barcode}", response_model=schemas.ProductOut, tags=["catalog"])
async def get_product(barcode: str, session: AsyncSession = Depends(get_session)) -> schemas.ProductOut:
    product = await crud.get_product(session, barcode)
    return schemas.ProductOut.model_validate(product)


@router.put("/catalog/{barcode}", response_model=schemas.ProductOut, tags=["catalog"])
async def update_product(
    barcode: str,
    payload: schemas.ProductUpdate,
    session: AsyncSession = Depends(get_session),
) -> schemas.ProductOut:
    product = await crud.update_product(session, barcode, payload)
    await session.commit()
    return schemas.ProductOut.model_validate(product)


@router.delete("/catalog/{barcode}", status_code=status.HTTP_204_NO_CONTENT, tags=["catalog"])
async def delete_product(barcode: str, session: AsyncSession = Depends(get_session)) -> None:
    await crud.delete_product(session, barcode)
    await session.commit()


@router.post("/scan", response_model=schemas.ScanResult, tags=["catalog"])
async def scan_barcode(
    payload: schemas.ScanRequest,
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(provide_settings),
) -> schemas.ScanResult:
    barcode = normalize_barcode(payload.text, settings.barcode_format)
    product = await crud.find_product(session, barcode)
    return schemas.ScanResult(
        barcode=barcode,
        display=format_for_display(barcode),
        barcode_type=describe_barcode(barcode),
        found=product is not None,
        product=schemas.ProductOut.model_validate(product) if product is not None else None,
    )


# ----------------------------------------------------------------------
# Notifications
# ----------------------------------------------------------------------
@router.get(
    "/settings/notifications", response_model=schemas.NotificationSettings, tags=["settings"]
)
async def get_notification_settings(
    session: AsyncSession = Depends(get_session),
) -> schemas.NotificationSettings:
    settings = await crud.load_notification_settings(session)
    await session.commit()
    return settings


@router.put(
    "/settings/notifications", response_model=schemas.NotificationSettings, tags=["settings"]
)
async def save_notification_settings(
    payload: schemas.NotificationSettings,
    session: AsyncSession = Depends(get_session),
) -> schemas.NotificationSettings:
    saved = await crud.save_notification_settings(session, payload)
    await session.commit()
    return saved


@router.get("/notifications", response_model=list[schemas.NotificationOut], tags=["notifications"])
async def list_notifications(
    session: AsyncSession = Depends(get_session),
    today: date = Depends(provide_today),
) -> list[schemas.NotificationOut]:
    settings = await crud.load_notification_settings(session)
    records = await crud.list_records(session)
    await session.commit()
    return [
        schemas.NotificationOut(title=item.title, body=item.body, tag=item.tag)
        for item in evaluate_notifications(records, settings, today)
    ]


@router.get(
    "/notifications/summary",
    response_model=schemas.NotificationSummaryOut,
    tags=["notifications"],
)
async def get_notification_summary(
    session: AsyncSession = Depends(get_session),
    today: date = Depends(provide_today),
) -> schemas.NotificationSummaryOut:
    settings = await crud.load_notification_settings(session)
    records = await crud.list_records(session)
    await session.commit()
    summary = notification_summary(records, settings, today)
    return schemas.NotificationSummaryOut(
        expired_count=summary.expired_count,
        expiring_today_count=summary.expiring_today_count,
        expiring_this_week_count=summary.expiring_this_week_count,
        low_quantity_count=summary.low_quantity_count,
    )


# ----------------------------------------------------------------------
# Error handling
# ----------------------------------------------------------------------
async def _handle_not_found(request: Request, exc: NotFoundError) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": str(exc)})


async def _handle_missing_column(request: Request, exc: MissingColumnError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"success": False, "imported": 0, "errors": [exc.message]},
    )


async def _handle_validation(request: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content={"detail": exc.message, "field": exc.field},
    )


async def _handle_storage(request: Request, exc: StorageError) -> JSONResponse:
    logger.error("Storage error while handling %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Storage failure, please try again later."},
    )


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level)
    engine = create_engine(settings)
    session_factory = create_session_factory(engine)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        await init_database(engine)
        checker = None
        if settings.enable_notification_check:
            checker = DailyNotificationCheck(
                lambda: collect_due_notifications(session_factory),
                LoggingNotificationSink(),
                hour=settings.notification_check_hour,
            )
            checker.start()
        app.state.notification_check = checker
        try:
            yield
        finally:
            if checker is not None:
                checker.stop()
            await engine.dispose()

    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.state.engine = engine
    app.state.session_factory = session_factory
    app.dependency_overrides[provide_settings] = lambda: settings
    app.add_exception_handler(NotFoundError, _handle_not_found)
    app.add_exception_handler(MissingColumnError, _handle_missing_column)
    app.add_exception_handler(ValidationError, _handle_validation)
    app.add_exception_handler(StorageError, _handle_storage)
    app.include_router(router)
    return app


app = create_app()


__all__ = ["app", "create_app", "provide_settings", "provide_policy", "provide_today"]
