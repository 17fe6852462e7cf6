"""Insert/select helpers over the lead and analytics tables."""

from sqlalchemy.orm import Session

from .models import Lead, AnalyticsEvent
from .schemas import LeadCreate

ANALYTICS_PAGE_SIZE = 100


def save_lead(db: Session, lead: LeadCreate) -> Lead:
    db_lead = Lead(
        name=lead.name,
        business=lead.business,
        playback=lead.system,
        email=lead.email,
        message=lead.message,
        palette=lead.palette,
        hours_est=lead.hours_est,
        store_count=lead.store_count,
    )
    db.add(db_lead)
    db.commit()
    db.refresh(db_lead)
    return db_lead


def list_leads(db: Session) -> list[Lead]:
    """All leads, newest first."""
    return db.query(Lead).order_by(Lead.created_at.desc(), Lead.id.desc()).all()


def save_analytics(
    db: Session,
    ip: str,
    user_agent: str,
    path: str,
    method: str,
    country: str,
    city: str,
) -> AnalyticsEvent:
    event = AnalyticsEvent(
        ip=ip,
        user_agent=user_agent,
        path=path,
        method=method,
        country=country,
        city=city,
    )
    db.add(event)
    db.commit()
    db.refresh(event)
    return event


def list_analytics(db: Session, limit: int = ANALYTICS_PAGE_SIZE) -> list[AnalyticsEvent]:
    """Most recent analytics events, newest first."""
    return (
        db.query(AnalyticsEvent)
        .order_by(AnalyticsEvent.created_at.desc(), AnalyticsEvent.id.desc())
        .limit(limit)
        .all()
    )
