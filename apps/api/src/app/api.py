from fastapi import APIRouter, Depends, HTTPException, status

from app.core.auth import Principal, get_current_super_admin
from app.core.scheduler import list_registered_jobs, trigger_job_manually
from app.modules.admins.admin_router import router as admin_admins_router
from app.modules.admins.router import router as admins_router
from app.modules.audit.admin_router import router as admin_audit_router
from app.modules.auth.router import router as auth_router
from app.modules.mosques.admin_router import router as admin_mosques_router

api_router = APIRouter()

api_router.include_router(auth_router, prefix="/auth", tags=["Authentication"])

api_router.include_router(admins_router, prefix="/admins", tags=["Mosque Admins"])

api_router.include_router(
    admin_admins_router,
    prefix="/admin/admins",
    tags=["Super Admin - Admins"],
)

api_router.include_router(
    admin_mosques_router,
    prefix="/admin/mosques",
    tags=["Super Admin - Mosques"],
)

api_router.include_router(
    admin_audit_router,
    prefix="/admin/audit-logs",
    tags=["Super Admin - Audit"],
)

jobs_router = APIRouter()


@jobs_router.get("")
async def list_jobs(
    principal: Principal = Depends(get_current_super_admin),
) -> list[dict]:
    """Registered background jobs and their next run times."""
    return list_registered_jobs()


@jobs_router.post("/{job_id}/trigger")
async def trigger_job(
    job_id: str,
    principal: Principal = Depends(get_current_super_admin),
) -> dict:
    """Run a background job now."""
    try:
        return await trigger_job_manually(job_id)
    except KeyError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"error": "JOB_NOT_FOUND", "message": f"Job {job_id} is not registered."},
        ) from None


api_router.include_router(jobs_router, prefix="/admin/jobs", tags=["Super Admin - Jobs"])
