"""User agent: directory lookup and behavioural risk scoring."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Optional, Sequence

import structlog

from alertswarm.agents.base import SpecialistAgent
from alertswarm.models import AgentResult, AgentStatus, CheckUserParams, TaskType
from alertswarm.persistence.models import DirectoryUser, LoginRecord, UserSession
from alertswarm.persistence.protocols import RelationalStore

logger = structlog.get_logger()

LOGIN_HISTORY_DAYS = 30
HIGH_RISK_THRESHOLD = 70
MAX_RISK_SCORE = 100

PRIVILEGED_ROLES = frozenset({"admin", "administrator", "domain_admin", "root", "superuser", "security_admin"})

# Factor weights
PRIVILEGED_ROLE_POINTS = 30
MANY_SESSIONS_POINTS = 15  # 3 or more active sessions
ANY_SESSION_POINTS = 5
EXTRA_COUNTRY_POINTS = 10
EXTRA_COUNTRY_CAP = 25
OFF_HOURS_LOGIN_POINTS = 5
OFF_HOURS_CAP = 20
RECENT_ACTIVITY_POINTS = 10

OFF_HOURS_START = 22
OFF_HOURS_END = 6


@dataclass
class UserRisk:
    """Risk score and the factors that produced it."""

    score: int = 0
    factors: dict[str, int] = field(default_factory=dict)

    @property
    def is_high(self) -> bool:
        return self.score > HIGH_RISK_THRESHOLD


def is_privileged(role: Optional[str]) -> bool:
    if not role:
        return False
    role = role.strip().lower()
    return role in PRIVILEGED_ROLES or "admin" in role


def is_off_hours(ts: datetime) -> bool:
    return ts.hour < OFF_HOURS_END or ts.hour >= OFF_HOURS_START


def calculate_user_risk(
    user: DirectoryUser,
    sessions: Sequence[UserSession],
    logins: Sequence[LoginRecord],
    now: datetime,
) -> UserRisk:
    """Deterministic weighted sum of independent risk factors, capped at 100.

    Args:
        user: Directory record.
        sessions: Currently valid sessions.
        logins: Login history for the scoring window.
        now: Reference time (naive UTC).
    """
    risk = UserRisk()

    if is_privileged(user.role):
        risk.factors["privileged_role"] = PRIVILEGED_ROLE_POINTS

    if len(sessions) >= 3:
        risk.factors["active_sessions"] = MANY_SESSIONS_POINTS
    elif sessions:
        risk.factors["active_sessions"] = ANY_SESSION_POINTS

    countries = {login.country for login in logins if login.country}
    if len(countries) > 1:
        risk.factors["login_countries"] = min((len(countries) - 1) * EXTRA_COUNTRY_POINTS, EXTRA_COUNTRY_CAP)

    off_hours = sum(1 for login in logins if is_off_hours(login.timestamp))
    if off_hours:
        risk.factors["off_hours_logins"] = min(off_hours * OFF_HOURS_LOGIN_POINTS, OFF_HOURS_CAP)

    last_seen = user.last_active_at
    if logins:
        latest_login = max(login.timestamp for login in logins)
        last_seen = max(last_seen, latest_login) if last_seen else latest_login
    if last_seen and now - last_seen <= timedelta(hours=24):
        risk.factors["recent_activity"] = RECENT_ACTIVITY_POINTS

    risk.score = min(sum(risk.factors.values()), MAX_RISK_SCORE)
    return risk


class UserAgent(SpecialistAgent):
    """Looks up directory users and scores their recent behaviour."""

    name = "User"

    def __init__(self, store: RelationalStore, *, clock: Callable[[], datetime] = datetime.utcnow):
        self._store = store
        self._clock = clock
        super().__init__()

    def handlers(self):
        return {TaskType.CHECK_USER: (CheckUserParams, self.check_user)}

    async def check_user(self, params: CheckUserParams) -> AgentResult:
        username = params.username
        user = await self._store.find_user(username)
        if user is None:
            return AgentResult.failure(
                self.name,
                f"User {username} not found in directory",
                summary=f"User {username} not found in directory.",
            )

        now = self._clock()
        sessions = await self._store.get_active_sessions(user.id)
        logins = await self._store.get_login_history(user.id, now - timedelta(days=LOGIN_HISTORY_DAYS))
        risk = calculate_user_risk(user, sessions, logins, now)

        logger.info("user_risk_scored", username=user.username, score=risk.score, factors=risk.factors)

        data = {
            "username": user.username,
            "email": user.email,
            "display_name": user.display_name,
            "department": user.department,
            "role": user.role,
            "status": user.status,
            "privileged": is_privileged(user.role),
            "active_sessions": len(sessions),
            "session_ips": sorted({s.ip_address for s in sessions if s.ip_address}),
            "login_countries": sorted({login.country for login in logins if login.country}),
            "failed_logins": sum(1 for login in logins if not login.success),
            "last_active_at": user.last_active_at.isoformat() if user.last_active_at else None,
            "risk_score": risk.score,
            "risk_factors": risk.factors,
        }

        department = user.department or "unknown department"
        if risk.is_high:
            summary = f"User {user.username} ({department}) has HIGH risk score ({risk.score})."
        else:
            summary = f"User {user.username} ({department}) behavior seems normal (Risk: {risk.score})."

        return AgentResult(agent=self.name, status=AgentStatus.SUCCESS, data=data, summary=summary)
