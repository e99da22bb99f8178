"""Invoice routes under /api/admin.

Payloads use camelCase keys to match the admin UI. Every route except
next-number requires an admin session (enforced by AuthMiddleware).
"""

import re
from urllib.parse import quote

from fastapi import APIRouter, Request
from fastapi.responses import Response
from starlette.concurrency import run_in_threadpool

from api.base import success_response
from core.invoice_pdf import invoice_filename, render_invoice_pdf
from core.models import Invoice, InvoiceDraft, InvoicePatch
from core.services.invoice_service import InvoiceService


def _dump(invoice: Invoice) -> dict:
    return invoice.model_dump(mode="json", by_alias=True)


def attachment_disposition(filename: str) -> str:
    """
    Content-Disposition for a download.

    Headers go out as latin-1, so a name with anything beyond printable ASCII
    (or a quote or backslash) gets an ASCII ``filename`` with those characters
    replaced and the exact name in an RFC 5987 ``filename*``.
    """
    quoted = quote(filename, safe="")
    if quoted == filename:
        return f'attachment; filename="{filename}"'
    fallback = re.sub(r'[^\x20-\x7e]|["\\]', "_", filename)
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quoted}"


def create_invoice_router(invoice_service: InvoiceService) -> APIRouter:
    router = APIRouter(tags=["invoices"])

    # Registered before /invoices/{invoice_id} so "next-number" isn't taken as an id.
    @router.get("/invoices/next-number")
    async def next_invoice_number(request: Request):
        number = invoice_service.get_next_invoice_number()
        return success_response({"invoiceNumber": number}).model_dump(mode="json")

    @router.get("/invoices")
    async def list_invoices(request: Request):
        invoices = invoice_service.list_all()
        return success_response([_dump(i) for i in invoices]).model_dump(mode="json")

    @router.post("/invoices", status_code=201)
    async def create_invoice(request: Request, body: InvoiceDraft):
        invoice = invoice_service.create(body)
        return success_response(_dump(invoice)).model_dump(mode="json")

    @router.get("/invoices/{invoice_id}")
    async def get_invoice(request: Request, invoice_id: str):
        invoice = invoice_service.get_by_id(invoice_id)
        return success_response(_dump(invoice)).model_dump(mode="json")

    @router.put("/invoices/{invoice_id}")
    async def update_invoice(request: Request, invoice_id: str, body: InvoicePatch):
        invoice = invoice_service.update(invoice_id, body)
        return success_response(_dump(invoice)).model_dump(mode="json")

    @router.delete("/invoices/{invoice_id}")
    async def delete_invoice(request: Request, invoice_id: str):
        invoice_service.delete(invoice_id)
        return success_response({"message": "Invoice deleted successfully"}).model_dump(mode="json")

    @router.get("/invoices/{invoice_id}/pdf")
    async def download_invoice_pdf(request: Request, invoice_id: str):
        """Tax invoice as a PDF attachment."""
        invoice = invoice_service.get_by_id(invoice_id)
        pdf = await run_in_threadpool(render_invoice_pdf, invoice)
        return Response(
            content=pdf,
            media_type="application/pdf",
            headers={"Content-Disposition": attachment_disposition(invoice_filename(invoice.invoice_number))},
        )

    @router.get("/invoices/{invoice_id}/history")
    async def invoice_history(request: Request, invoice_id: str):
        entries = invoice_service.get_history(invoice_id)
        return success_response(entries).model_dump(mode="json")

    @router.get("/clients/{client_id}/invoices")
    async def list_client_invoices(request: Request, client_id: str):
        invoices = invoice_service.list_for_client(client_id)
        return success_response([_dump(i) for i in invoices]).model_dump(mode="json")

    return router
