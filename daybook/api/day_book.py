"""
Day book endpoints

Create and update accept either a JSON body or a multipart form with an
optional ``receipt`` file field.
"""

import json
from typing import Any, Dict, Optional, Tuple

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import Response
from starlette.datastructures import UploadFile

from .deps import LedgerSystem, get_current_identity, get_scope, get_system, require_roles
from ..errors import NotFoundError, ValidationError
from ..export import build_day_book_workbook
from ..file_store import Receipt
from ..identity import Identity, UserRole


router = APIRouter()

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


async def read_entry_payload(request: Request) -> Tuple[Dict[str, Any], Optional[Receipt]]:
    """
    Read entry fields and the optional receipt from a JSON or form body.

    Empty form fields are treated as not supplied.
    """
    content_type = request.headers.get("content-type", "")
    if content_type.startswith(("multipart/form-data", "application/x-www-form-urlencoded")):
        form = await request.form()
        data: Dict[str, Any] = {}
        receipt = None
        for key, value in form.multi_items():
            if isinstance(value, UploadFile):
                if key != "receipt":
                    continue
                content = await value.read()
                if content or value.filename:
                    receipt = Receipt(
                        content=content,
                        filename=value.filename or "receipt",
                        content_type=value.content_type
                    )
            elif value != "":
                data[key] = value
        return data, receipt

    body = await request.body()
    if not body:
        return {}, None
    try:
        data = json.loads(body)
    except ValueError:
        raise ValidationError("Request body must be valid JSON")
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data, None


@router.post("/create", status_code=status.HTTP_201_CREATED)
async def create_entry(
    request: Request,
    identity: Identity = Depends(get_current_identity),
    scope: Optional[str] = Depends(get_scope),
    system: LedgerSystem = Depends(get_system)
):
    """Create a day book entry"""
    data, receipt = await read_entry_payload(request)
    entry = system.day_book.create(data, receipt=receipt, tenant=scope, user_id=identity.id)
    return {"message": "Day book entry created successfully", "data": entry}


@router.get("/list")
async def list_entries(
    payment_type: Optional[str] = Query(None, alias="type"),
    nurse_id: Optional[str] = None,
    client_id: Optional[str] = None,
    pay_status: Optional[str] = None,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    scope: Optional[str] = Depends(get_scope),
    system: LedgerSystem = Depends(get_system)
):
    """List entries, most recent first"""
    entries = system.day_book.list(
        tenant=scope, payment_type=payment_type, nurse_id=nurse_id, client_id=client_id,
        pay_status=pay_status, start=start_date, end=end_date
    )
    return {
        "message": "Day book entries retrieved successfully",
        "data": entries,
        "count": len(entries)
    }


@router.get("/download/excel")
async def download_excel(
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    payment_type: Optional[str] = Query(None, alias="type"),
    scope: Optional[str] = Depends(get_scope),
    system: LedgerSystem = Depends(get_system)
):
    """Download entries as an xlsx workbook"""
    entries = system.day_book.list(
        tenant=scope, payment_type=payment_type, start=start_date, end=end_date
    )
    content = build_day_book_workbook(entries)
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": 'attachment; filename="day_book.xlsx"'}
    )


@router.get("/summary/amounts")
async def payment_summary(
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    scope: Optional[str] = Depends(get_scope),
    system: LedgerSystem = Depends(get_system)
):
    """Paid and pending totals"""
    summary = system.day_book.get_payment_summary(tenant=scope, start=start_date, end=end_date)
    return {"message": "Payment summary retrieved successfully", "data": summary.to_dict()}


@router.get("/revenue/net")
async def net_revenue(
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    scope: Optional[str] = Depends(get_scope),
    system: LedgerSystem = Depends(get_system)
):
    """Incoming versus outgoing totals over paid entries"""
    revenue = system.day_book.get_net_revenue(tenant=scope, start=start_date, end=end_date)
    return {"message": "Net revenue calculated successfully", "data": revenue.to_dict()}


@router.post("/salary-sync/retry")
async def retry_salary_sync(
    admin: Identity = Depends(require_roles(UserRole.ADMIN)),
    system: LedgerSystem = Depends(get_system)
):
    """Re-attempt pending salary payment updates (admin only)"""
    results = system.day_book.retry_pending_salary_sync()
    applied = sum(1 for result in results if result.applied)
    return {
        "message": f"Retried {len(results)} pending salary updates, {applied} applied",
        "data": [result.to_dict() for result in results]
    }


@router.get("/{entry_id}")
async def get_entry(
    entry_id: int,
    scope: Optional[str] = Depends(get_scope),
    system: LedgerSystem = Depends(get_system)
):
    """Get an entry by id"""
    entry = system.day_book.get_by_id(entry_id, tenant=scope)
    return {"message": "Day book entry retrieved successfully", "data": entry}


@router.put("/update/{entry_id}")
async def update_entry(
    entry_id: int,
    request: Request,
    identity: Identity = Depends(get_current_identity),
    scope: Optional[str] = Depends(get_scope),
    system: LedgerSystem = Depends(get_system)
):
    """Partially update an entry"""
    data, receipt = await read_entry_payload(request)
    result = system.day_book.update(
        entry_id, data, receipt=receipt, tenant=scope, user_id=identity.id
    )

    message = "Day book entry updated successfully"
    salary_sync = None
    if result.salary_sync is not None:
        salary_sync = result.salary_sync.to_dict()
        if not result.salary_sync.applied:
            message = "Day book entry updated; salary payment update is pending"
    return {"message": message, "data": result.entry, "salary_sync": salary_sync}


@router.delete("/delete/{entry_id}")
async def delete_entry(
    entry_id: int,
    identity: Identity = Depends(get_current_identity),
    scope: Optional[str] = Depends(get_scope),
    system: LedgerSystem = Depends(get_system)
):
    """Delete an entry"""
    if not system.day_book.delete(entry_id, tenant=scope, user_id=identity.id):
        raise NotFoundError("Day book entry not found")
    return {"message": "Day book entry deleted successfully", "data": {"id": entry_id}}
