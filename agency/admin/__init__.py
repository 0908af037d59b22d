"""Super-admin JSON API under /api/admin; every route requires the super_admin role."""
from fastapi import APIRouter

from agency.admin.routers import integrations, logs, packages, payments, promos, seo, users

admin_router = APIRouter(prefix="/api/admin", tags=["admin"])

admin_router.include_router(integrations.router, prefix="/settings", tags=["admin-integrations"])
admin_router.include_router(seo.router, prefix="/settings", tags=["admin-seo"])
admin_router.include_router(payments.router, prefix="/payments", tags=["admin-payments"])
admin_router.include_router(packages.router, prefix="/packages", tags=["admin-packages"])
admin_router.include_router(promos.router, prefix="/promos", tags=["admin-promos"])
admin_router.include_router(users.router, prefix="/users", tags=["admin-users"])
admin_router.include_router(logs.router, tags=["admin-logs"])
