"""access schema

Revision ID: 3c9e1f0a7b2d
Revises:
Create Date: 2026-10-17 14:40:12.318204

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '3c9e1f0a7b2d'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Applications table
    op.create_table('applications',
    sa.Column('id', sa.String(length=255), nullable=False),
    sa.Column('name', sa.String(length=255), server_default='', nullable=False),
    sa.Column('description', sa.Text(), server_default='', nullable=False),
    sa.PrimaryKeyConstraint('id')
    )

    # Permissions table
    op.create_table('permissions',
    sa.Column('id', sa.String(length=255), nullable=False),
    sa.Column('app_id', sa.String(length=255), nullable=False),
    sa.Column('name', sa.String(length=255), server_default='', nullable=False),
    sa.Column('description', sa.Text(), server_default='', nullable=False),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.ForeignKeyConstraint(['app_id'], ['applications.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id', 'app_id')
    )

    # Roles table
    op.create_table('roles',
    sa.Column('id', sa.String(length=255), nullable=False),
    sa.Column('app_id', sa.String(length=255), nullable=False),
    sa.Column('name', sa.String(length=255), server_default='', nullable=False),
    sa.Column('description', sa.Text(), server_default='', nullable=False),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.ForeignKeyConstraint(['app_id'], ['applications.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id', 'app_id')
    )

    # Users table
    op.create_table('users',
    sa.Column('username', sa.String(length=255), nullable=False),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.PrimaryKeyConstraint('username')
    )
    op.create_index('ix_users_updated_at', 'users', ['updated_at'], unique=False)

    # Role -> permission links (one shared app_id keeps both sides in one application)
    op.create_table('role_permissions',
    sa.Column('role_id', sa.String(length=255), nullable=False),
    sa.Column('app_id', sa.String(length=255), nullable=False),
    sa.Column('permission_id', sa.String(length=255), nullable=False),
    sa.ForeignKeyConstraint(['role_id', 'app_id'], ['roles.id', 'roles.app_id'], ondelete='CASCADE'),
    sa.ForeignKeyConstraint(['permission_id', 'app_id'], ['permissions.id', 'permissions.app_id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('role_id', 'app_id', 'permission_id')
    )
    op.create_index('ix_role_permissions_permission', 'role_permissions', ['permission_id', 'app_id'], unique=False)

    # User -> role links
    op.create_table('user_roles',
    sa.Column('username', sa.String(length=255), nullable=False),
    sa.Column('role_id', sa.String(length=255), nullable=False),
    sa.Column('app_id', sa.String(length=255), nullable=False),
    sa.ForeignKeyConstraint(['username'], ['users.username'], ondelete='CASCADE'),
    sa.ForeignKeyConstraint(['role_id', 'app_id'], ['roles.id', 'roles.app_id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('username', 'role_id', 'app_id')
    )
    op.create_index('ix_user_roles_role', 'user_roles', ['role_id', 'app_id'], unique=False)


def downgrade() -> None:
    op.drop_index('ix_user_roles_role', table_name='user_roles')
    op.drop_table('user_roles')
    op.drop_index('ix_role_permissions_permission', table_name='role_permissions')
    op.drop_table('role_permissions')
    op.drop_index('ix_users_updated_at', table_name='users')
    op.drop_table('users')
    op.drop_table('roles')
    op.drop_table('permissions')
    op.drop_table('applications')
