"""Database models."""

from nexus.models.company import Company
from nexus.models.professional import Professional
from nexus.models.job_role import JobRole, JobRoleStatus
from nexus.models.introduction_request import IntroductionRequest, IntroductionStatus
from nexus.models.notification import Notification, NotificationType

__all__ = [
    "Company",
    "Professional",
    "JobRole",
    "JobRoleStatus",
    "IntroductionRequest",
    "IntroductionStatus",
    "Notification",
    "NotificationType",
]
