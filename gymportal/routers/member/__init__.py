from fastapi import APIRouter

router = APIRouter(prefix="/api/member")

from . import memberships, checkins, notifications

router.include_router(memberships.router)
router.include_router(checkins.router)
router.include_router(notifications.router)
