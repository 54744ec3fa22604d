from app.core.database import Base
from app.models.users import Teacher, Student, StudentDocument
from app.models.auth import (
    User,
    RoleGrant,
    RefreshToken,
    LoginHistory,
    TeacherUser,
    StudentGuardian,
)
from app.models.academics import (
    Instrument,
    Batch,
    Enrollment,
    EnrollmentBatch,
    AttendanceRecord,
    TeacherAttendance,
    StudentEvaluation,
)
from app.models.finance import (
    Package,
    Payment,
    Expense,
    MonthlyBudget,
    TeacherPayout,
)
from app.models.communication import Notification, ProspectNote
