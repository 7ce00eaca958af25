"""Departmental task manager schema (departments, profiles, projects, tasks, notifications)

Revision ID: a3d9f1c7e5b2
Revises:
Create Date: 2026-10-19T09:12:44.518203
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision: str = 'a3d9f1c7e5b2'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

USER_ROLE = sa.Enum('STAFF', 'MANAGER', 'HR_ADMIN', name='userrole')
TASK_STATUS = sa.Enum('TO_DO', 'IN_PROGRESS', 'COMPLETED', 'BLOCKED', name='taskstatus')
PROJECT_STATUS = sa.Enum('ACTIVE', 'COMPLETED', 'ON_HOLD', 'CANCELLED', name='projectstatus')
NOTIFICATION_TYPE = sa.Enum(
    'TASK_ASSIGNED', 'TASK_UPDATED', 'ASSIGNEE_REMOVED', 'COMMENT_ADDED', 'PROJECT_COLLABORATION_ADDED',
    name='notificationtype',
)
LOG_ACTION = sa.Enum(
    'CREATED', 'UPDATED', 'STATUS_CHANGED', 'COMMENT_ADDED', 'ASSIGNMENT_CHANGED', 'ARCHIVED',
    name='logaction',
)


def upgrade() -> None:
    # --- departments ---
    op.create_table(
        'departments',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('parent_id', sa.String(), sa.ForeignKey('departments.id'), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_departments_parent_id', 'departments', ['parent_id'])

    # --- user_profiles ---
    op.create_table(
        'user_profiles',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('name', sa.String(), nullable=False, server_default=''),
        sa.Column('role', USER_ROLE, nullable=False, server_default='STAFF'),
        sa.Column('department_id', sa.String(), sa.ForeignKey('departments.id'), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email'),
    )
    op.create_index('ix_user_profiles_email', 'user_profiles', ['email'])
    op.create_index('ix_user_profiles_role', 'user_profiles', ['role'])
    op.create_index('ix_user_profiles_department_id', 'user_profiles', ['department_id'])
    op.create_index('idx_user_dept_active', 'user_profiles', ['department_id', 'is_active'])

    # --- projects ---
    op.create_table(
        'projects',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('priority', sa.Integer(), nullable=False, server_default='5'),
        sa.Column('status', PROJECT_STATUS, nullable=False, server_default='ACTIVE'),
        sa.Column('department_id', sa.String(), sa.ForeignKey('departments.id'), nullable=False),
        sa.Column('creator_id', sa.String(), sa.ForeignKey('user_profiles.id'), nullable=False),
        sa.Column('is_archived', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name'),
    )
    op.create_index('ix_projects_department_id', 'projects', ['department_id'])
    op.create_index('ix_projects_is_archived', 'projects', ['is_archived'])

    # --- project_department_access ---
    op.create_table(
        'project_department_access',
        sa.Column('project_id', sa.String(), sa.ForeignKey('projects.id', ondelete='CASCADE'), nullable=False),
        sa.Column('department_id', sa.String(), sa.ForeignKey('departments.id', ondelete='CASCADE'), nullable=False),
        sa.Column('granted_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('project_id', 'department_id'),
    )
    op.create_index('idx_access_department', 'project_department_access', ['department_id'])

    # --- project_collaborators ---
    op.create_table(
        'project_collaborators',
        sa.Column('project_id', sa.String(), sa.ForeignKey('projects.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.String(), sa.ForeignKey('user_profiles.id', ondelete='CASCADE'), nullable=False),
        sa.Column('department_id', sa.String(), sa.ForeignKey('departments.id', ondelete='CASCADE'), nullable=False),
        sa.Column('added_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('project_id', 'user_id'),
    )
    op.create_index('idx_collab_user', 'project_collaborators', ['user_id'])
    op.create_index('idx_collab_project_dept', 'project_collaborators', ['project_id', 'department_id'])

    # --- tasks ---
    op.create_table(
        'tasks',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=False, server_default=''),
        sa.Column('priority', sa.Integer(), nullable=False, server_default='5'),
        sa.Column('due_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('status', TASK_STATUS, nullable=False, server_default='TO_DO'),
        sa.Column('owner_id', sa.String(), sa.ForeignKey('user_profiles.id'), nullable=False),
        sa.Column('department_id', sa.String(), sa.ForeignKey('departments.id'), nullable=False),
        sa.Column('project_id', sa.String(), sa.ForeignKey('projects.id'), nullable=True),
        sa.Column('parent_task_id', sa.String(), sa.ForeignKey('tasks.id'), nullable=True),
        sa.Column('is_archived', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('start_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_tasks_department_id', 'tasks', ['department_id'])
    op.create_index('ix_tasks_project_id', 'tasks', ['project_id'])
    op.create_index('ix_tasks_parent_task_id', 'tasks', ['parent_task_id'])
    op.create_index('idx_task_dept_archived_due', 'tasks', ['department_id', 'is_archived', 'due_date'])
    op.create_index('idx_task_parent_archived', 'tasks', ['parent_task_id', 'is_archived'])
    op.create_index('idx_task_project_archived', 'tasks', ['project_id', 'is_archived'])

    # --- task_assignments ---
    op.create_table(
        'task_assignments',
        sa.Column('task_id', sa.String(), sa.ForeignKey('tasks.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.String(), sa.ForeignKey('user_profiles.id'), nullable=False),
        sa.Column('assigned_by_id', sa.String(), sa.ForeignKey('user_profiles.id'), nullable=False),
        sa.Column('assigned_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('task_id', 'user_id'),
    )
    op.create_index('idx_assignment_user', 'task_assignments', ['user_id'])

    # --- tags ---
    op.create_table(
        'tags',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name'),
    )
    op.create_table(
        'task_tags',
        sa.Column('task_id', sa.String(), sa.ForeignKey('tasks.id', ondelete='CASCADE'), nullable=False),
        sa.Column('tag_id', sa.String(), sa.ForeignKey('tags.id', ondelete='CASCADE'), nullable=False),
        sa.PrimaryKeyConstraint('task_id', 'tag_id'),
    )

    # --- comments ---
    op.create_table(
        'comments',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('task_id', sa.String(), sa.ForeignKey('tasks.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.String(), sa.ForeignKey('user_profiles.id'), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_comments_task_id', 'comments', ['task_id'])

    # --- task_logs ---
    op.create_table(
        'task_logs',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('task_id', sa.String(), sa.ForeignKey('tasks.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.String(), sa.ForeignKey('user_profiles.id'), nullable=False),
        sa.Column('action', LOG_ACTION, nullable=False),
        sa.Column('field_name', sa.String(), nullable=True),
        sa.Column('changes', sa.JSON(), nullable=True, server_default='{}'),
        sa.Column('details', sa.JSON(), nullable=True, server_default='{}'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_log_task_time', 'task_logs', ['task_id', 'created_at'])

    # --- notifications ---
    op.create_table(
        'notifications',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('user_id', sa.String(), sa.ForeignKey('user_profiles.id'), nullable=False),
        sa.Column('type', NOTIFICATION_TYPE, nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('task_id', sa.String(), sa.ForeignKey('tasks.id', ondelete='SET NULL'), nullable=True),
        sa.Column('is_read', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_notifications_user_id', 'notifications', ['user_id'])
    op.create_index('ix_notifications_created_at', 'notifications', ['created_at'])
    op.create_index('idx_notification_user_read', 'notifications', ['user_id', 'is_read'])


def downgrade() -> None:
    op.drop_table('notifications')
    op.drop_table('task_logs')
    op.drop_table('comments')
    op.drop_table('task_tags')
    op.drop_table('tags')
    op.drop_table('task_assignments')
    op.drop_table('tasks')
    op.drop_table('project_collaborators')
    op.drop_table('project_department_access')
    op.drop_table('projects')
    op.drop_table('user_profiles')
    op.drop_table('departments')
    op.execute("DROP TYPE IF EXISTS logaction")
    op.execute("DROP TYPE IF EXISTS notificationtype")
    op.execute("DROP TYPE IF EXISTS projectstatus")
    op.execute("DROP TYPE IF EXISTS taskstatus")
    op.execute("DROP TYPE IF EXISTS userrole")
