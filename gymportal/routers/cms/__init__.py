from fastapi import APIRouter

router = APIRouter(prefix="/api/cms")

from . import members, plans, memberships, checkins

router.include_router(members.router)
router.include_router(plans.router)
router.include_router(memberships.router)
router.include_router(checkins.router)
