#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Pydantic v2 domain objects handed to and returned by the store.

ORM rows (wikistore.models) are the system of record; these objects are the
caller-facing copies.  Field constraints mirror the column sizes so that a
value the database would truncate or reject fails validation first.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

from datetime import datetime, timezone
from enum import IntEnum
from typing import Optional, TypeVar

from pydantic import BaseModel, Field, ValidationError

from wikistore.core.errors import DataValidationError


# -----------------------------------------------------------------------------

def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Enumerations
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class TopicType(IntEnum):
    ARTICLE = 1
    REDIRECT = 2
    IMAGE = 3
    FILE = 4
    CATEGORY = 5
    TEMPLATE = 6
    SYSTEM_FILE = 7


class EditType(IntEnum):
    NORMAL = 1
    MINOR = 2
    REVERT = 3
    MOVE = 4
    DELETE = 5
    PERMISSION = 6
    UNDELETE = 7
    IMPORT = 8
    UPLOAD = 9


class LogType(IntEnum):
    EDIT = 0
    DELETE = 1
    IMPORT = 2
    MOVE = 3
    PERMISSION = 4
    UPLOAD = 6
    USER_CREATION = 7


class LogSubType(IntEnum):
    DELETE_DELETE = 10
    DELETE_UNDELETE = 11
    DELETE_PURGE = 12
    IMPORT_IMPORT = 20
    MOVE_MOVE = 30
    PERMISSION_PERMISSION = 40
    UPLOAD_UPLOAD = 60
    USER_CREATION = 70


class NamespaceId(IntEnum):
    MEDIA = -2
    SPECIAL = -1
    MAIN = 0
    COMMENTS = 1
    USER = 2
    USER_COMMENTS = 3
    PROJECT = 4
    PROJECT_COMMENTS = 5
    FILE = 6
    FILE_COMMENTS = 7
    SYSTEM = 8
    SYSTEM_COMMENTS = 9
    TEMPLATE = 10
    TEMPLATE_COMMENTS = 11
    HELP = 12
    HELP_COMMENTS = 13
    CATEGORY = 14
    CATEGORY_COMMENTS = 15


# namespaces whose topics may live in the shared upload tenant
BINARY_ASSET_NAMESPACES = frozenset({NamespaceId.FILE, NamespaceId.MEDIA})

NAMESPACE_SEPARATOR = ":"


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Shared
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class Pagination(BaseModel):
    num_results: int = Field(default=100, ge=0)
    offset: int = Field(default=0, ge=0)


# -----------------------------------------------------------------------------

M = TypeVar("M", bound=BaseModel)


def validate_model(model: M) -> M:
    """
    Re-run field validation on a (possibly mutated) model.  Assignment is
    not validated, so this is the checkpoint before a row is written.
    """
    try:
        return type(model).model_validate(model.model_dump())
    except ValidationError as exc:
        error = exc.errors()[0]
        field_name = ".".join(str(p) for p in error["loc"])
        raise DataValidationError(
            "error.fieldinvalid", type(model).__name__, field_name, error["msg"]
        ) from exc


def build_model(model_type: type[M], **values) -> M:
    """Construct and validate in one step, raising DataValidationError."""
    return validate_model(model_type.model_construct(**values))


def copy_model_state(target: M, source: M) -> M:
    """Overwrite every field of *target* with the value held by *source*."""
    for field_name in type(target).model_fields:
        setattr(target, field_name, getattr(source, field_name))
    return target


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Tenants, namespaces, users
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class Tenant(BaseModel):
    tenant_id: int = 0
    name: str = Field(..., min_length=1, max_length=100)
    root_topic_name: Optional[str] = Field(default=None, max_length=200)
    site_name: Optional[str] = Field(default=None, max_length=200)
    logo_image_url: Optional[str] = Field(default=None, max_length=200)
    meta_description: Optional[str] = Field(default=None, max_length=500)
    create_date: Optional[datetime] = None

    model_config = {"from_attributes": True}


# -----------------------------------------------------------------------------

class Namespace(BaseModel):
    namespace_id: int
    label: str = Field(..., max_length=200)
    main_namespace_id: Optional[int] = None
    case_sensitive: bool = False
    # tenant name -> translated label
    translations: dict[str, str] = Field(default_factory=dict)

    def label_for(self, tenant: Optional[str] = None) -> str:
        if tenant and tenant in self.translations:
            return self.translations[tenant]
        return self.label

    @property
    def is_special(self) -> bool:
        return self.namespace_id == NamespaceId.SPECIAL

    @property
    def is_comments(self) -> bool:
        return self.main_namespace_id is not None


# -----------------------------------------------------------------------------

class WikiUser(BaseModel):
    user_id: int = 0
    username: str = Field(..., min_length=1, max_length=100)
    display_name: str = Field(default="", max_length=100)
    create_date: Optional[datetime] = None

    model_config = {"from_attributes": True}


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Topics
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class Topic(BaseModel):
    """
    Mutable head record of one document.  ``topic_id == 0`` means the topic
    has not been written yet.
    """
    topic_id: int = 0
    tenant: str = Field(..., min_length=1, max_length=100)
    namespace: Namespace
    page_name: str = Field(..., min_length=1, max_length=200)
    topic_type: TopicType = TopicType.ARTICLE
    read_only: bool = False
    admin_only: bool = False
    current_version_id: Optional[int] = None
    delete_date: Optional[datetime] = None
    redirect_to: Optional[str] = Field(default=None, max_length=200)
    topic_content: str = ""

    @property
    def name(self) -> str:
        """Full topic name, e.g. ``User:Alice`` or ``StartingPoints``."""
        label = self.namespace.label_for(self.tenant)
        if not label:
            return self.page_name
        return f"{label}{NAMESPACE_SEPARATOR}{self.page_name}"

    @property
    def is_deleted(self) -> bool:
        return self.delete_date is not None

    @property
    def is_redirect(self) -> bool:
        return self.topic_type == TopicType.REDIRECT


# -----------------------------------------------------------------------------

class TopicVersion(BaseModel):
    """
    One immutable revision.  ``characters_changed`` left as None is computed
    from the previous content when the revision is written.
    """
    topic_version_id: int = 0
    topic_id: int = 0
    edit_comment: Optional[str] = Field(default=None, max_length=200)
    version_content: str = ""
    author_id: Optional[int] = None
    author_display: Optional[str] = Field(default=None, max_length=100)
    edit_type: EditType = EditType.NORMAL
    edit_date: datetime = Field(default_factory=utcnow)
    previous_topic_version_id: Optional[int] = None
    characters_changed: Optional[int] = None
    version_params: Optional[str] = Field(default=None, max_length=500)
    # not persisted; False when a paired revision owns the recent-change row
    recent_change_allowed: bool = True


# -----------------------------------------------------------------------------

class Category(BaseModel):
    tenant: str
    name: str = Field(..., min_length=1, max_length=200)
    sort_key: Optional[str] = Field(default=None, max_length=200)
    child_topic_name: Optional[str] = None
    topic_type: Optional[TopicType] = None


# -----------------------------------------------------------------------------

class ParserOutput(BaseModel):
    """Metadata a content parser extracts for the write path."""
    # category name -> sort key
    categories: dict[str, Optional[str]] = Field(default_factory=dict)
    links: list[str] = Field(default_factory=list)
    redirect_to: Optional[str] = None


# -----------------------------------------------------------------------------

class TopicDiff(BaseModel):
    topic_name: str
    from_version_id: int
    to_version_id: int
    unified_diff: str
    lines_added: int = 0
    lines_removed: int = 0


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Change log
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class LogItem(BaseModel):
    log_id: int = 0
    tenant: str
    log_date: datetime = Field(default_factory=utcnow)
    log_comment: Optional[str] = Field(default=None, max_length=200)
    log_params: Optional[str] = Field(default=None, max_length=500)
    log_type: LogType
    log_sub_type: Optional[LogSubType] = None
    user_id: Optional[int] = None
    user_display: Optional[str] = Field(default=None, max_length=100)
    topic_id: Optional[int] = None
    topic_version_id: Optional[int] = None


# -----------------------------------------------------------------------------

class RecentChange(BaseModel):
    change_id: int = 0
    tenant: str
    topic_id: Optional[int] = None
    topic_name: Optional[str] = Field(default=None, max_length=200)
    topic_version_id: Optional[int] = None
    previous_topic_version_id: Optional[int] = None
    author_id: Optional[int] = None
    author_name: Optional[str] = Field(default=None, max_length=100)
    change_date: datetime = Field(default_factory=utcnow)
    change_comment: Optional[str] = Field(default=None, max_length=200)
    characters_changed: Optional[int] = None
    edit_type: Optional[EditType] = None
    log_type: Optional[LogType] = None
    log_sub_type: Optional[LogSubType] = None
    log_params: Optional[str] = Field(default=None, max_length=500)


# -----------------------------------------------------------------------------
