"""
Catalogue de cours (collaborateur externe, lecture seule).
- CourseCatalog: interface consommée par le panier et le règlement
- SupabaseCourseCatalog: table 'courses'
- InMemoryCourseCatalog: dev/tests
"""
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Iterable, Optional

from supabase import Client

from coursemarket.infra.supabase_client import translate_api_error

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Course:
    id: str
    title: str
    price: Decimal
    thumbnail_url: Optional[str] = None
    instructor_name: Optional[str] = None


def course_from_row(row: Dict[str, Any]) -> Course:
    return Course(
        id=str(row.get("id")),
        title=row.get("title") or "Cours",
        price=Decimal(str(row.get("price") or "0")),
        thumbnail_url=row.get("thumbnail_url"),
        instructor_name=row.get("instructor_name"),
    )


class CourseCatalog(ABC):
    @abstractmethod
    def get_course(self, course_id: str) -> Optional[Course]:
        ...

    def get_courses(self, course_ids: Iterable[str]) -> Dict[str, Course]:
        """Retourne {id: Course} pour les cours existants (les absents sont omis)."""
        found: Dict[str, Course] = {}
        for course_id in course_ids:
            course = self.get_course(course_id)
            if course is not None:
                found[course.id] = course
        return found


class SupabaseCourseCatalog(CourseCatalog):
    COLUMNS = "id, title, price, thumbnail_url, instructor_name"

    def __init__(self, client: Client):
        self.client = client

    def get_course(self, course_id: str) -> Optional[Course]:
        try:
            res = (
                self.client.table("courses")
                .select(self.COLUMNS)
                .eq("id", course_id)
                .limit(1)
                .execute()
            )
        except Exception as e:
            raise translate_api_error(e, "catalog.get_course") from e
        rows = res.data or []
        return course_from_row(rows[0]) if rows else None

    def get_courses(self, course_ids: Iterable[str]) -> Dict[str, Course]:
        ids = [str(i) for i in course_ids]
        if not ids:
            return {}
        try:
            res = self.client.table("courses").select(self.COLUMNS).in_("id", ids).execute()
        except Exception as e:
            raise translate_api_error(e, "catalog.get_courses") from e
        courses = [course_from_row(r) for r in (res.data or [])]
        return {c.id: c for c in courses}


class InMemoryCourseCatalog(CourseCatalog):
    def __init__(self, courses: Iterable[Course] = ()):
        self._lock = threading.Lock()
        self._courses: Dict[str, Course] = {c.id: c for c in courses}

    def put(self, course: Course) -> None:
        with self._lock:
            self._courses[course.id] = course

    def remove(self, course_id: str) -> None:
        with self._lock:
            self._courses.pop(course_id, None)

    def get_course(self, course_id: str) -> Optional[Course]:
        with self._lock:
            return self._courses.get(str(course_id))
