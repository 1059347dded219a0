from app.models.company import Company, DistributionStrategy
from app.models.attendant_status import AttendantStatus, AttendantStatusType
from app.models.chat_assignment import ChatAssignment, ChatAssignmentStatus
