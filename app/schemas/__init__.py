from app.schemas.attendant_status import AttendantStatus, AttendantStatusUpdate, AttendantHeartbeat
from app.schemas.chat_assignment import ChatAssignment, ChatActivity, InboundMessage, InboundResult, WindowCheck
from app.schemas.metrics import DistributionMetrics
from app.schemas.sweep import SweepReport, CompanySweepResult
