from fastapi import APIRouter
from carshop.api.endpoints import auth, cars, inquiries

router = APIRouter()

router.include_router(auth.router, prefix="/auth", tags=["authentication"])
router.include_router(cars.router, prefix="/cars", tags=["cars"])
router.include_router(inquiries.router, prefix="/inquiries", tags=["inquiries"])
