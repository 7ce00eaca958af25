# models.py - Database models for the departmental task manager
# - UUID string primary keys everywhere
# - 3-role system (STAFF, MANAGER, HR_ADMIN)
# - Department forest via parent pointers
# - Tasks with assignments, subtasks, tags, comments and an audit trail
# - Projects with cross-department access grants and derived collaborators

import uuid
from datetime import datetime, timezone
from enum import Enum as PyEnum
from sqlalchemy import (
    Column, String, DateTime, JSON, Boolean, Integer,
    Enum as SQLEnum, ForeignKey, Text, Index,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def utcnow():
    return datetime.now(timezone.utc)


def new_uuid():
    return str(uuid.uuid4())


def as_utc(dt):
    """SQLite hands back naive datetimes; treat them as UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


# ============================================================
# ENUMS
# ============================================================

class UserRole(str, PyEnum):
    STAFF = "STAFF"
    MANAGER = "MANAGER"
    HR_ADMIN = "HR_ADMIN"


class TaskStatus(str, PyEnum):
    TO_DO = "TO_DO"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    BLOCKED = "BLOCKED"


class ProjectStatus(str, PyEnum):
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    ON_HOLD = "ON_HOLD"
    CANCELLED = "CANCELLED"


class NotificationType(str, PyEnum):
    TASK_ASSIGNED = "TASK_ASSIGNED"
    TASK_UPDATED = "TASK_UPDATED"
    ASSIGNEE_REMOVED = "ASSIGNEE_REMOVED"
    COMMENT_ADDED = "COMMENT_ADDED"
    PROJECT_COLLABORATION_ADDED = "PROJECT_COLLABORATION_ADDED"


class LogAction(str, PyEnum):
    CREATED = "CREATED"
    UPDATED = "UPDATED"
    STATUS_CHANGED = "STATUS_CHANGED"
    COMMENT_ADDED = "COMMENT_ADDED"
    ASSIGNMENT_CHANGED = "ASSIGNMENT_CHANGED"
    ARCHIVED = "ARCHIVED"


# ============================================================
# DEPARTMENTS
# ============================================================

class Department(Base):
    __tablename__ = "departments"

    id = Column(String, primary_key=True, default=new_uuid)
    name = Column(String, nullable=False)
    parent_id = Column(String, ForeignKey("departments.id"), nullable=True, index=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    parent = relationship("Department", remote_side=[id], back_populates="children")
    children = relationship("Department", back_populates="parent")


# ============================================================
# USER PROFILES (identity lives with the external provider)
# ============================================================

class UserProfile(Base):
    __tablename__ = "user_profiles"

    id = Column(String, primary_key=True, default=new_uuid)
    email = Column(String, unique=True, nullable=False, index=True)
    name = Column(String, nullable=False, default="")
    role = Column(SQLEnum(UserRole), default=UserRole.STAFF, nullable=False, index=True)
    department_id = Column(String, ForeignKey("departments.id"), nullable=False, index=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    department = relationship("Department")

    __table_args__ = (
        Index("idx_user_dept_active", "department_id", "is_active"),
    )


# ============================================================
# PROJECTS
# ============================================================

class Project(Base):
    __tablename__ = "projects"

    id = Column(String, primary_key=True, default=new_uuid)
    name = Column(String, unique=True, nullable=False)
    description = Column(Text, nullable=True)
    priority = Column(Integer, nullable=False, default=5)
    status = Column(SQLEnum(ProjectStatus), default=ProjectStatus.ACTIVE, nullable=False)
    department_id = Column(String, ForeignKey("departments.id"), nullable=False, index=True)
    creator_id = Column(String, ForeignKey("user_profiles.id"), nullable=False)
    is_archived = Column(Boolean, default=False, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    department = relationship("Department")
    department_access = relationship("ProjectDepartmentAccess", back_populates="project")
    collaborators = relationship("ProjectCollaborator", back_populates="project")


class ProjectDepartmentAccess(Base):
    """Explicit grant making a project visible to a department outside its hierarchy"""
    __tablename__ = "project_department_access"

    project_id = Column(String, ForeignKey("projects.id", ondelete="CASCADE"), primary_key=True)
    department_id = Column(String, ForeignKey("departments.id", ondelete="CASCADE"), primary_key=True)
    granted_at = Column(DateTime(timezone=True), default=utcnow)

    project = relationship("Project", back_populates="department_access")
    department = relationship("Department")

    __table_args__ = (
        Index("idx_access_department", "department_id"),
    )


class ProjectCollaborator(Base):
    """Users holding at least one assignment within a project"""
    __tablename__ = "project_collaborators"

    project_id = Column(String, ForeignKey("projects.id", ondelete="CASCADE"), primary_key=True)
    user_id = Column(String, ForeignKey("user_profiles.id", ondelete="CASCADE"), primary_key=True)
    department_id = Column(String, ForeignKey("departments.id", ondelete="CASCADE"), nullable=False)
    added_at = Column(DateTime(timezone=True), default=utcnow)

    project = relationship("Project", back_populates="collaborators")
    user = relationship("UserProfile")

    __table_args__ = (
        Index("idx_collab_user", "user_id"),
        Index("idx_collab_project_dept", "project_id", "department_id"),
    )


# ============================================================
# TASKS
# ============================================================

class Task(Base):
    __tablename__ = "tasks"

    id = Column(String, primary_key=True, default=new_uuid)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=False, default="")
    priority = Column(Integer, nullable=False, default=5)  # 1 (lowest) .. 10 (highest)
    due_date = Column(DateTime(timezone=True), nullable=False)
    status = Column(SQLEnum(TaskStatus), default=TaskStatus.TO_DO, nullable=False)
    owner_id = Column(String, ForeignKey("user_profiles.id"), nullable=False)
    department_id = Column(String, ForeignKey("departments.id"), nullable=False, index=True)
    project_id = Column(String, ForeignKey("projects.id"), nullable=True, index=True)
    parent_task_id = Column(String, ForeignKey("tasks.id"), nullable=True, index=True)
    is_archived = Column(Boolean, default=False, nullable=False)
    start_date = Column(DateTime(timezone=True), nullable=True)  # first time work began
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    department = relationship("Department")
    owner = relationship("UserProfile", foreign_keys=[owner_id])
    project = relationship("Project")
    parent = relationship("Task", remote_side=[id], back_populates="subtasks")
    subtasks = relationship("Task", back_populates="parent")
    assignments = relationship(
        "TaskAssignment", back_populates="task",
        order_by="TaskAssignment.assigned_at", cascade="all, delete-orphan",
    )
    tags = relationship("TaskTag", back_populates="task", cascade="all, delete-orphan")
    comments = relationship("Comment", back_populates="task", order_by="Comment.created_at")
    logs = relationship("TaskLog", back_populates="task", order_by="TaskLog.created_at.desc()")

    __table_args__ = (
        Index("idx_task_dept_archived_due", "department_id", "is_archived", "due_date"),
        Index("idx_task_parent_archived", "parent_task_id", "is_archived"),
        Index("idx_task_project_archived", "project_id", "is_archived"),
    )


class TaskAssignment(Base):
    __tablename__ = "task_assignments"

    task_id = Column(String, ForeignKey("tasks.id", ondelete="CASCADE"), primary_key=True)
    user_id = Column(String, ForeignKey("user_profiles.id"), primary_key=True)
    assigned_by_id = Column(String, ForeignKey("user_profiles.id"), nullable=False)
    assigned_at = Column(DateTime(timezone=True), default=utcnow)

    task = relationship("Task", back_populates="assignments")
    user = relationship("UserProfile", foreign_keys=[user_id])

    __table_args__ = (
        Index("idx_assignment_user", "user_id"),
    )


class Tag(Base):
    __tablename__ = "tags"

    id = Column(String, primary_key=True, default=new_uuid)
    name = Column(String, unique=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)


class TaskTag(Base):
    __tablename__ = "task_tags"

    task_id = Column(String, ForeignKey("tasks.id", ondelete="CASCADE"), primary_key=True)
    tag_id = Column(String, ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True)

    task = relationship("Task", back_populates="tags")
    tag = relationship("Tag")


class Comment(Base):
    __tablename__ = "comments"

    id = Column(String, primary_key=True, default=new_uuid)
    task_id = Column(String, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String, ForeignKey("user_profiles.id"), nullable=False)
    content = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    task = relationship("Task", back_populates="comments")
    author = relationship("UserProfile")


class TaskLog(Base):
    """Audit trail / action history for a task"""
    __tablename__ = "task_logs"

    id = Column(String, primary_key=True, default=new_uuid)
    task_id = Column(String, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String, ForeignKey("user_profiles.id"), nullable=False)
    action = Column(SQLEnum(LogAction), nullable=False)
    field_name = Column(String, nullable=True)
    changes = Column(JSON, default=dict)
    details = Column(JSON, default=dict)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    task = relationship("Task", back_populates="logs")
    user = relationship("UserProfile")

    __table_args__ = (
        Index("idx_log_task_time", "task_id", "created_at"),
    )


# ============================================================
# NOTIFICATIONS
# ============================================================

class Notification(Base):
    __tablename__ = "notifications"

    id = Column(String, primary_key=True, default=new_uuid)
    user_id = Column(String, ForeignKey("user_profiles.id"), nullable=False, index=True)
    type = Column(SQLEnum(NotificationType), nullable=False)
    title = Column(String, nullable=False)
    message = Column(Text, nullable=False)
    task_id = Column(String, ForeignKey("tasks.id", ondelete="SET NULL"), nullable=True)
    is_read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)

    user = relationship("UserProfile")

    __table_args__ = (
        Index("idx_notification_user_read", "user_id", "is_read"),
    )
