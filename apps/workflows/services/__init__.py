"""Workflow service layer exports"""
from .approval_engine import ApprovalAlreadyProcessed, ApprovalEngine
from .approver_resolver import ApproverResolver
from .entity_resolver import ActualSubject, EntityResolver, KpiSubject
from .change_request_service import ChangeRequestService
from .admin_proxy_service import AdminProxyService

__all__ = [
    'ApprovalEngine',
    'ApprovalAlreadyProcessed',
    'ApproverResolver',
    'EntityResolver',
    'KpiSubject',
    'ActualSubject',
    'AdminProxyService',
    'ChangeRequestService',
]
