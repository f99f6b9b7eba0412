"""
FastAPI application for the Sheet Invoicer service.

Endpoints
---------
- GET  /api/health
- GET  /api/sheets
- GET  /api/companies
- GET  /api/sheet-data/{sheet_name}
- GET  /api/sheet-data/{sheet_name}/{company_key}
- POST /api/generate-invoice   (returns the PDF)

Every failure is returned as `{"success": false, "error": "<message>"}`.
"""

from __future__ import annotations

import logging
import secrets
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, Header, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..config import load_settings
from ..errors import AuthenticationError, InvoicerError
from ..logging_setup import setup_logging
from ..schema import GenerateInvoiceRequest
from ..service import InvoiceService, SheetPreview, build_service

logger = logging.getLogger(__name__)


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


def get_service(request: Request) -> InvoiceService:
    return request.app.state.invoice_service


def require_token(request: Request, authorization: Optional[str] = Header(default=None)) -> None:
    """
    Bearer-token guard, active only when an API token is configured.
    """
    expected = request.app.state.api_token
    if not expected:
        return
    if not authorization:
        raise AuthenticationError("Authentication required")
    supplied = authorization[len("Bearer "):] if authorization.startswith("Bearer ") else authorization
    if not secrets.compare_digest(supplied.strip().encode(), expected.encode()):
        raise AuthenticationError("Invalid token")


def _preview_payload(preview: SheetPreview) -> dict:
    payload = {
        "success": True,
        "data": [item.model_dump(by_alias=True) for item in preview.line_items],
        "totalAmount": preview.total_amount,
    }
    if preview.company is not None:
        payload["company"] = preview.company.to_record()
    return jsonable_encoder(payload)


router = APIRouter(prefix="/api")


@router.get("/health")
async def health() -> dict:
    """
    Simple health-check endpoint.
    """
    return {
        "success": True,
        "message": "Invoice System is running",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/sheets", dependencies=[Depends(require_token)])
def list_sheets(service: InvoiceService = Depends(get_service)) -> dict:
    return {"success": True, "sheets": service.list_sheets()}


@router.get("/companies", dependencies=[Depends(require_token)])
def list_companies(service: InvoiceService = Depends(get_service)) -> dict:
    companies = service.list_companies()
    return {
        "success": True,
        "companies": {key: profile.to_record() for key, profile in companies.items()},
    }


@router.get("/sheet-data/{sheet_name}", dependencies=[Depends(require_token)])
def sheet_data_all(sheet_name: str, service: InvoiceService = Depends(get_service)) -> dict:
    """
    Administrative preview of every company's billable rows in a sheet.
    """
    return _preview_payload(service.preview_all(sheet_name))


@router.get("/sheet-data/{sheet_name}/{company_key}", dependencies=[Depends(require_token)])
def sheet_data(
    sheet_name: str, company_key: str, service: InvoiceService = Depends(get_service)
) -> dict:
    """
    Preview the line items and total an invoice would contain.
    """
    return _preview_payload(service.preview(sheet_name, company_key))


@router.post("/generate-invoice", dependencies=[Depends(require_token)])
def generate_invoice(
    body: GenerateInvoiceRequest, service: InvoiceService = Depends(get_service)
) -> Response:
    """
    Issue the next invoice number for the company and return the PDF.
    """
    generated = service.generate_invoice(body.sheet_name, body.company_key, body.manual_expenses)
    return Response(
        content=generated.pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{generated.filename}"'},
    )


def create_app(service: Optional[InvoiceService] = None, api_token: Optional[str] = None) -> FastAPI:
    """
    Build the application.

    With an explicit `service` the app uses it as is. Without one, the
    service is constructed from the environment while the app starts up,
    so configuration problems stop the server before it accepts requests.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if app.state.invoice_service is None:
            settings = load_settings()
            setup_logging(settings.log_level)
            app.state.invoice_service = build_service(settings)
            app.state.api_token = settings.api_token
        yield

    app = FastAPI(title="Sheet Invoicer", version="1.0.0", lifespan=lifespan)
    app.state.invoice_service = service
    app.state.api_token = api_token

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(InvoicerError)
    async def invoicer_error_handler(request: Request, exc: InvoicerError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return error_response(exc.status_code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        details = "; ".join(
            f"{'.'.join(str(p) for p in err.get('loc', ())[1:])}: {err.get('msg')}"
            for err in exc.errors()
        )
        return error_response(400, f"Invalid request: {details}")

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        if exc.status_code == 404:
            return error_response(404, "Endpoint not found")
        return error_response(exc.status_code, str(exc.detail))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return error_response(500, "Internal server error")

    app.include_router(router)
    return app


app = create_app()

# For local development convenience:
#   uvicorn sheet_invoicer.api.main:app --reload
