from fastapi import APIRouter

from routers import bridge

router = APIRouter()

# include sub-routers
router.include_router(bridge.router)
