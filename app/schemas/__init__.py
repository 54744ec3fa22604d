from app.schemas.auth import (
    TokenPayload,
    RefreshTokenRequest,
    AccessTokenResponse,
    CurrentUser,
    LinkTeacherRequest,
    LinkStudentRequest,
)
from app.schemas.users import (
    UserResponse,
    UserUpdate,
    RoleAssign,
    EntityLink,
    TeacherCreate,
    TeacherUpdate,
    TeacherResponse,
    TeacherPayoutCreate,
    TeacherPayoutResponse,
    TeacherSessionMark,
)
from app.schemas.students import (
    BatchSelection,
    InitialPayment,
    StudentCreate,
    StudentUpdate,
    StudentResponse,
    StudentImage,
    EvaluationCreate,
    EvaluationResponse,
    DocumentCreate,
    DocumentSummary,
    DocumentResponse,
)
from app.schemas.academics import (
    InstrumentResponse,
    BatchCreate,
    BatchUpdate,
    BatchResponse,
    AttendanceMark,
    AttendanceBulk,
    AttendanceResponse,
    EnrollmentRequest,
    EnrollmentCreated,
    AgentMessage,
    AgentReply,
)
from app.schemas.finance import (
    PaymentCreate,
    PaymentUpdate,
    PaymentResponse,
    ExpenseCreate,
    ExpenseResponse,
    BudgetUpsert,
    BudgetResponse,
    FeesUpdate,
)
from app.schemas.communication import (
    NotificationCreate,
    NotificationResponse,
    ProspectCreate,
    ProspectUpdate,
    ProspectNoteCreate,
    ProspectNoteResponse,
)
