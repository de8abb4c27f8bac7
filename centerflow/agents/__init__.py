"""Workflow agents."""

from __future__ import annotations

from .base import Agent
from .enrollment import EnrollmentManagementAgent
from .publishing import ContentPublishingAgent

__all__ = ["Agent", "ContentPublishingAgent", "EnrollmentManagementAgent"]
