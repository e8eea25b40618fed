from datetime import datetime, timedelta
from typing import List, Optional

from enums import InterviewStatus
from evaluation_service import round_score
from models import Interview
from schemas import DailyScore, DashboardStats


def _average(interviews: List[Interview]) -> Optional[float]:
    if not interviews:
        return None
    return round_score(sum(i.overall_score or 0 for i in interviews) / len(interviews))


def build_daily_scores(interviews: List[Interview], now: datetime, days: int = 7) -> List[DailyScore]:
    """Completed-interview count and average score per day, oldest day first."""
    series = []
    for offset in range(days - 1, -1, -1):
        day = (now - timedelta(days=offset)).date()
        completed = [
            i for i in interviews
            if i.status == InterviewStatus.COMPLETED.value and i.created_at and i.created_at.date() == day
        ]
        series.append(DailyScore(
            day=day,
            label=day.strftime("%a"),
            count=len(completed),
            average_score=_average(completed),
        ))
    return series


def build_dashboard_stats(interviews: List[Interview], now: Optional[datetime] = None) -> DashboardStats:
    """Summarize a user's recent interviews for the dashboard header."""
    now = now or datetime.utcnow()
    completed = [i for i in interviews if i.status == InterviewStatus.COMPLETED.value]

    week_ago = now - timedelta(days=7)
    return DashboardStats(
        total_interviews=len(interviews),
        completed_interviews=len(completed),
        average_score=_average(completed) or 0.0,
        last_week_interviews=sum(1 for i in interviews if i.created_at and i.created_at >= week_ago),
        daily_scores=build_daily_scores(interviews, now),
    )
