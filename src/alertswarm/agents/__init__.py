"""Specialist agents."""

from alertswarm.agents.base import SpecialistAgent
from alertswarm.agents.file import FileAgent
from alertswarm.agents.network import NetworkAgent
from alertswarm.agents.user import UserAgent, UserRisk, calculate_user_risk

__all__ = [
    "FileAgent",
    "NetworkAgent",
    "SpecialistAgent",
    "UserAgent",
    "UserRisk",
    "calculate_user_risk",
]
