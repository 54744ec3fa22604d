from app.api.v1.auth import router as auth_router
from app.api.v1.users import router as users_router
from app.api.v1.students import router as students_router
from app.api.v1.documents import router as documents_router
from app.api.v1.teachers import router as teachers_router
from app.api.v1.batches import router as batches_router
from app.api.v1.attendance import router as attendance_router
from app.api.v1.enrollment import router as enrollment_router
from app.api.v1.payments import router as payments_router
from app.api.v1.finance import router as finance_router
from app.api.v1.prospects import router as prospects_router
from app.api.v1.notifications import router as notifications_router

__all__ = [
    "auth_router",
    "users_router",
    "students_router",
    "documents_router",
    "teachers_router",
    "batches_router",
    "attendance_router",
    "enrollment_router",
    "payments_router",
    "finance_router",
    "prospects_router",
    "notifications_router",
]
