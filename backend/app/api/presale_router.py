from fastapi import APIRouter

from app.api.presale_endpoints.admin import router as admin_router
from app.api.presale_endpoints.investments import router as investments_router
from app.api.presale_endpoints.phase import router as phase_router
from app.api.presale_endpoints.whitelist import router as whitelist_router

router = APIRouter()

router.include_router(phase_router, prefix="/presale", tags=["presale"])
router.include_router(investments_router, prefix="/investment", tags=["investment"])
router.include_router(whitelist_router, prefix="/whitelist", tags=["whitelist"])
router.include_router(admin_router, prefix="/admin", tags=["admin"])
