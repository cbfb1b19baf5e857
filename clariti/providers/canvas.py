"""
Canvas LMS client - courses, assignments, announcements, quizzes, discussions
"""
import logging
from typing import Any, Dict, List, Optional

from clariti.config import get_settings
from clariti.exceptions import AuthExpiredError, ProviderError
from clariti.providers.base import BaseProviderClient
from clariti.providers.records import CanvasRawItem

settings = get_settings()
logger = logging.getLogger(__name__)


class CanvasClient(BaseProviderClient):
    provider = "canvas"

    def __init__(self, access_token: str, base_url: Optional[str] = None, **kwargs):
        super().__init__(access_token, base_url or settings.CANVAS_API_URL, **kwargs)

    async def get_courses(self) -> List[Dict[str, Any]]:
        return await self._get_json(
            "/api/v1/courses",
            params={"enrollment_state": "active", "per_page": 100},
        )

    async def get_assignments(self, course_id: int) -> List[Dict[str, Any]]:
        return await self._get_json(
            f"/api/v1/courses/{course_id}/assignments",
            params={"include[]": "submission", "per_page": 100},
        )

    async def get_announcements(self, course_id: int) -> List[Dict[str, Any]]:
        return await self._get_json(
            f"/api/v1/courses/{course_id}/discussion_topics",
            params={"only_announcements": "true", "per_page": 50},
        )

    async def get_quizzes(self, course_id: int) -> List[Dict[str, Any]]:
        return await self._get_json(
            f"/api/v1/courses/{course_id}/quizzes",
            params={"per_page": 100},
        )

    async def get_discussions(self, course_id: int) -> List[Dict[str, Any]]:
        return await self._get_json(
            f"/api/v1/courses/{course_id}/discussion_topics",
            params={"per_page": 20},
        )

    async def fetch_items(self) -> List[CanvasRawItem]:
        """
        Flatten every course's coursework into one list.

        A failing course list aborts the fetch; a failing per-course listing
        only loses that listing.
        """
        courses = await self.get_courses()
        items: List[CanvasRawItem] = []

        fetchers = (
            ("assignment", self.get_assignments),
            ("announcement", self.get_announcements),
            ("quiz", self.get_quizzes),
            ("discussion", self.get_discussions),
        )

        for course in courses:
            course_id = course.get("id")
            if course_id is None:
                continue
            for item_type, fetch in fetchers:
                try:
                    records = await fetch(course_id)
                except AuthExpiredError:
                    raise
                except ProviderError as e:
                    logger.error(f"Canvas {item_type} listing failed for course {course_id}: {e}")
                    continue

                for record in records or []:
                    items.append(CanvasRawItem(
                        item_type=item_type,
                        course_id=course_id,
                        course_name=course.get("name"),
                        data=record,
                    ))

        logger.info(f"Fetched {len(items)} Canvas items across {len(courses)} courses")
        return items
