"""
Endpoint consumers built on ApiService.
"""

from apiservice.datasource.auth import AuthService, TokenPair, User
from apiservice.datasource.grades import Grade, GradeService

__all__ = ["AuthService", "TokenPair", "User", "Grade", "GradeService"]
