from fastapi import APIRouter

from .admin import router as admin_router
from .coupons import router as coupons_router
from .credits import router as credits_router
from .generations import router as generations_router
from .study import files_router, quizzes_router, summaries_router

api_router = APIRouter()
# prefix는 각 router 파일 내부에서 정의되어 있음
api_router.include_router(credits_router)
api_router.include_router(coupons_router)
api_router.include_router(generations_router)
api_router.include_router(files_router)
api_router.include_router(summaries_router)
api_router.include_router(quizzes_router)
api_router.include_router(admin_router)
