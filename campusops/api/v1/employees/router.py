from functools import partial
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, HTTPException, Query, Response, UploadFile, status
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from campusops.auth.dependencies import get_current_user
from campusops.auth.rbac import check_permission
from campusops.auth.schemas import CurrentUser
from campusops.core.exceptions import ServiceError
from campusops.db.session import get_db

from .schemas import (
    BulkUpdateResponse,
    EmployeeCreate,
    EmployeeExportRequest,
    EmployeeListResponse,
    EmployeeResponse,
    EmployeeUpdate,
)
from .uploads import delete_file, save_upload
from . import bulk_import, bulk_update, export, service

router = APIRouter(prefix="/api/v1/employees", tags=["employees"])

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@router.post(
    "",
    response_model=EmployeeResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("employees", "create"))],
)
async def create_employee(
    payload: EmployeeCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> EmployeeResponse:
    try:
        return await service.create_employee(db, current_user.tenant_id, payload, current_user.campus_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "",
    response_model=EmployeeListResponse,
    dependencies=[Depends(check_permission("employees", "read"))],
)
async def list_employees(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = Query(None, description="First/last name, Employee ID or email"),
    department: Optional[str] = None,
    designation: Optional[str] = None,
    employment_status: Optional[str] = Query(None, alias="status"),
    employment_type: Optional[str] = None,
    campus_id: Optional[UUID] = None,
    role: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> EmployeeListResponse:
    return await service.list_employees(
        db,
        current_user.tenant_id,
        page=page,
        limit=limit,
        search=search,
        department=department,
        designation=designation,
        status=employment_status,
        employment_type=employment_type,
        campus_id=campus_id,
        role=role,
    )


@router.post(
    "/bulk-update",
    dependencies=[Depends(check_permission("employees", "update"))],
)
async def bulk_update_employees(
    file: Optional[UploadFile] = File(None, description="Workbook with a Username column, e.g. from POST /export"),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    """
    Update employees from an Excel sheet, one row per employee keyed by Username.
    Only columns present in the sheet are written; an empty cell clears the field.
    If any row fails, returns an Excel file listing the failed rows with the reason.
    """
    path = None
    try:
        path = save_upload(file)
        logger.info(f"Bulk update upload {file.filename} by {current_user.username}")
        outcome = await bulk_update.update_employees(
            path,
            current_user.tenant_id,
            current_user.campus_id,
            partial(service.update_employee_by_username, db),
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Error in employee bulk update: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e) or "Internal server error during bulk update",
        )
    finally:
        if path:
            delete_file(path)

    summary = outcome.summary
    if summary.failed > 0:
        return Response(
            content=outcome.file_buffer,
            media_type=XLSX_MEDIA_TYPE,
            headers={
                "Content-Disposition": "attachment; filename=update_results.xlsx",
                "X-Total-Count": str(summary.total),
                "X-Success-Count": str(summary.success),
                "X-Failed-Count": str(summary.failed),
            },
        )
    return BulkUpdateResponse(
        success=True,
        message=f"Successfully updated {summary.success} employees",
        summary=summary,
    )


@router.get(
    "/bulk-import/template",
    dependencies=[Depends(check_permission("employees", "create"))],
)
async def download_employee_import_template() -> Response:
    """Download the employee import template. Starred columns are required."""
    return Response(
        content=bulk_import.build_import_template(),
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": "attachment; filename=Employee_Import_Template.xlsx"},
    )


@router.post(
    "/bulk-import",
    dependencies=[Depends(check_permission("employees", "create"))],
)
async def bulk_import_employees(
    file: Optional[UploadFile] = File(None, description="Filled template from GET /bulk-import/template"),
    campus_id: Optional[UUID] = Query(None, description="Defaults to the caller's campus, else the main campus"),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> Response:
    """Create employees from the import template. Always returns the result workbook (one row per input row)."""
    path = None
    try:
        path = save_upload(file)
        outcome = await bulk_import.import_employees(
            db, path, current_user.tenant_id, campus_id or current_user.campus_id
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Error processing employee bulk import: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e) or "Failed to process bulk import",
        )
    finally:
        if path:
            delete_file(path)

    return Response(
        content=outcome.result_file,
        media_type=XLSX_MEDIA_TYPE,
        headers={
            "Content-Disposition": "attachment; filename=Employee_Import_Result.xlsx",
            "X-Import-Success": str(outcome.summary.success),
            "X-Import-Failed": str(outcome.summary.failed),
        },
    )


@router.post(
    "/export",
    dependencies=[Depends(check_permission("employees", "read"))],
)
async def export_employees(
    payload: EmployeeExportRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> Response:
    """Export the selected employees. Username and Employee ID columns are locked; edit the rest and upload to /bulk-update."""
    if not payload.usernames:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No employees selected for export")
    content = await export.export_employees(
        db,
        payload.usernames,
        current_user.tenant_id,
        current_user.campus_id,
        current_user.role,
    )
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": 'attachment; filename="Employees_Export.xlsx"'},
    )


@router.get(
    "/{username}",
    response_model=EmployeeResponse,
    dependencies=[Depends(check_permission("employees", "read"))],
)
async def get_employee(
    username: str,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> EmployeeResponse:
    employee = await service.get_employee(db, current_user.tenant_id, username)
    if not employee:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Employee not found")
    return employee


@router.put(
    "/{username}",
    response_model=EmployeeResponse,
    dependencies=[Depends(check_permission("employees", "update"))],
)
async def update_employee(
    username: str,
    payload: EmployeeUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> EmployeeResponse:
    try:
        return await service.update_employee_by_username(db, username, payload, current_user.tenant_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete(
    "/{username}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(check_permission("employees", "delete"))],
)
async def delete_employee(
    username: str,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> None:
    deleted = await service.delete_employee(db, current_user.tenant_id, username)
    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Employee not found")
