"""Core components for organization-wide compromised package scanning"""

from .models import (
    RepositoryRef,
    ScanResult,
    CriticalFinding,
    DangerFinding,
    CautionFinding,
    ProgressEvent,
    RateLimitEvent,
)
from .compromised_index import CompromisedIndex, parse_specifier
from .classifier import classify, Classification
from .report_engine import ReportEngine
from .retry import RetryPolicy

__all__ = [
    'RepositoryRef',
    'ScanResult',
    'CriticalFinding',
    'DangerFinding',
    'CautionFinding',
    'ProgressEvent',
    'RateLimitEvent',
    'CompromisedIndex',
    'parse_specifier',
    'classify',
    'Classification',
    'ReportEngine',
    'RetryPolicy',
]
