"""
Grades endpoint consumer.
"""

from typing import Any

from loguru import logger
from pydantic import BaseModel

from apiservice.datasource.base import BaseDataSource


class Grade(BaseModel):
    """A grade folder."""

    id: str
    name: str
    path: str


def decode_grades(data: Any) -> list[Grade]:
    return [Grade.model_validate(item) for item in data]


class GradeService(BaseDataSource):
    """Fetches grades from the API. Responses are cacheable."""

    SERVICE_ID = "grades"

    @property
    def service_id(self) -> str:
        return self.SERVICE_ID

    async def fetch_grades(self, force_refresh: bool = False) -> list[Grade]:
        """
        Fetch all grades.

        Args:
            force_refresh: Bypass the cached copy and hit the network

        Returns:
            List of Grade objects

        Raises:
            ApiError: Any typed API failure
        """
        response = await self.api.get(
            self.settings.grades_url,
            decoder=decode_grades,
            force_refresh=force_refresh,
        )
        grades = response.body or []
        logger.info(
            f"Fetched {len(grades)} grades"
            + (" (from cache)" if response.from_cache else "")
        )
        return grades
