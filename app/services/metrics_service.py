from sqlalchemy.orm import Session
from app.schemas.metrics import AttendantLoad, AttendantMetrics, ChatMetrics, DistributionMetrics
from app.services import attendant_status_service, chat_assignment_service


def get_distribution_metrics(db: Session, company_id: int) -> DistributionMetrics:
    """
    Read-only dashboard snapshot of attendant load and the chat queue.
    """
    attendants = attendant_status_service.list_by_company(db, company_id)
    attendant_counts = attendant_status_service.count_by_status(db, company_id)
    average_load = attendant_status_service.average_load(db, company_id)
    chat_counts = chat_assignment_service.count_by_status(db, company_id)
    queue = chat_assignment_service.list_unassigned(db, company_id)

    load_distribution = [
        AttendantLoad(
            user_id=a.user_id,
            status=a.status,
            active_chats=a.active_chats,
            max_chats=a.max_chats,
            utilization=round(a.load_ratio * 100, 2),
        )
        for a in attendants
    ]

    return DistributionMetrics(
        company_id=company_id,
        attendants=AttendantMetrics(
            total=len(attendants),
            by_status=attendant_counts,
            average_load=round(average_load * 100, 2),
            load_distribution=load_distribution,
        ),
        chats=ChatMetrics(
            total=sum(chat_counts.values()),
            by_status=chat_counts,
            queue=len(queue),
        ),
    )
