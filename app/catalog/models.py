from enum import Enum
from typing import Optional

from pydantic import BaseModel


class CourseStatus(str, Enum):
    DRAFT = "Draft"
    PUBLISHED = "Published"


# Course fields an instructor may change after creation
EDITABLE_COURSE_FIELDS = {
    "course_name",
    "course_description",
    "what_you_will_learn",
    "price",
    "tag",
    "instructions",
    "status",
    "category_id",
}

# ==================== REQUEST MODELS ====================


class CategoryCreate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None


class SectionCreate(BaseModel):
    section_name: Optional[str] = None
    course_id: Optional[str] = None


class SectionUpdate(BaseModel):
    section_name: Optional[str] = None
    section_id: Optional[str] = None


class SectionDelete(BaseModel):
    section_id: Optional[str] = None
    course_id: Optional[str] = None


class SubSectionDelete(BaseModel):
    subsection_id: Optional[str] = None
    section_id: Optional[str] = None


class CourseRef(BaseModel):
    course_id: Optional[str] = None


class CategoryRef(BaseModel):
    category_id: Optional[str] = None
