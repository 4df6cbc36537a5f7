"""create_profiles_and_registrants

Revision ID: 3f1c2b7a9d10
Revises:
Create Date: 2026-10-18 09:00:00.000000

Creates the profile/refresh token tables, the registrants table with its
church location enum, and the database functions that place registrants
into groups.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f1c2b7a9d10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

CHURCH_LOCATIONS = (
    'Alaminos', 'Bae', 'Bagong Kalsada', 'Biñan', 'Cabuyao', 'Calamba', 'Calauan',
    'Canlubang', 'Carmona', 'GMA', 'Macabling', 'Makiling', 'Pagsanjan', 'Pila',
    'Romblon', 'San Pablo', 'Silang', 'Sta. Cruz', 'Sta. Rosa', 'Victoria',
)

# Least-filled group first, lowest group number on ties.
ASSIGN_FUNCTIONS = """
CREATE OR REPLACE FUNCTION assign_group_to_registrant(registrant_id_to_assign integer)
RETURNS void AS $$
DECLARE
    target_group integer;
BEGIN
    SELECT g INTO target_group
    FROM generate_series(1, 5) AS g
    LEFT JOIN registrants r ON r.assigned_group = g
    GROUP BY g
    ORDER BY count(r.id), g
    LIMIT 1;

    UPDATE registrants
    SET assigned_group = target_group
    WHERE id = registrant_id_to_assign AND assigned_group IS NULL AND age >= 12;
END;
$$ LANGUAGE plpgsql;

CREATE OR REPLACE FUNCTION assign_all_ungrouped_registrants()
RETURNS integer AS $$
DECLARE
    rec record;
    processed integer := 0;
BEGIN
    FOR rec IN
        SELECT id FROM registrants
        WHERE assigned_group IS NULL AND age >= 12
        ORDER BY created_at, id
        FOR UPDATE
    LOOP
        PERFORM assign_group_to_registrant(rec.id);
        processed := processed + 1;
    END LOOP;
    RETURN processed;
END;
$$ LANGUAGE plpgsql;
"""


def upgrade() -> None:
    op.create_table('profiles',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('email', sa.String(length=255), nullable=False),
    sa.Column('full_name', sa.String(length=255), nullable=True),
    sa.Column('role', sa.Enum('admin', 'member', name='user_role'), nullable=False),
    sa.Column('hashed_password', sa.String(length=255), nullable=False),
    sa.Column('is_active', sa.Boolean(), nullable=True),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
    sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    sa.CheckConstraint("email <> ''", name='ck_profiles_email_nonempty'),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_profiles_id', 'profiles', ['id'], unique=False)
    op.create_index('ix_profiles_email', 'profiles', ['email'], unique=True)

    op.create_table('refresh_token',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('profile_id', sa.Integer(), nullable=False),
    sa.Column('token', sa.Text(), nullable=False),
    sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
    sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    sa.Column('revoked', sa.Boolean(), nullable=False),
    sa.ForeignKeyConstraint(['profile_id'], ['profiles.id'], ),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_refresh_token_id', 'refresh_token', ['id'], unique=False)
    op.create_index('ix_refresh_token_token', 'refresh_token', ['token'], unique=True)
    op.create_index('ix_refresh_token_profile_id', 'refresh_token', ['profile_id'], unique=False)

    op.create_table('registrants',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('full_name', sa.String(length=255), nullable=False),
    sa.Column('age', sa.Integer(), nullable=False),
    sa.Column('gender', sa.String(length=10), nullable=True),
    sa.Column('church_location', sa.Enum(*CHURCH_LOCATIONS, name='church_location_enum'), nullable=True),
    sa.Column('assigned_group', sa.Integer(), nullable=True),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.CheckConstraint("full_name <> ''", name='ck_registrants_full_name_nonempty'),
    sa.CheckConstraint('age >= 12', name='ck_registrants_min_age'),
    sa.CheckConstraint('assigned_group IS NULL OR assigned_group BETWEEN 1 AND 5', name='ck_registrants_assigned_group_range'),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_registrants_id', 'registrants', ['id'], unique=False)
    op.create_index('ix_registrants_full_name', 'registrants', ['full_name'], unique=False)
    op.create_index('ix_registrants_assigned_group', 'registrants', ['assigned_group'], unique=False)

    if op.get_bind().dialect.name == 'postgresql':
        op.execute(ASSIGN_FUNCTIONS)


def downgrade() -> None:
    if op.get_bind().dialect.name == 'postgresql':
        op.execute('DROP FUNCTION IF EXISTS assign_all_ungrouped_registrants()')
        op.execute('DROP FUNCTION IF EXISTS assign_group_to_registrant(integer)')

    op.drop_index('ix_registrants_assigned_group', table_name='registrants')
    op.drop_index('ix_registrants_full_name', table_name='registrants')
    op.drop_index('ix_registrants_id', table_name='registrants')
    op.drop_table('registrants')
    sa.Enum(name='church_location_enum').drop(op.get_bind(), checkfirst=True)

    op.drop_index('ix_refresh_token_profile_id', table_name='refresh_token')
    op.drop_index('ix_refresh_token_token', table_name='refresh_token')
    op.drop_index('ix_refresh_token_id', table_name='refresh_token')
    op.drop_table('refresh_token')

    op.drop_index('ix_profiles_email', table_name='profiles')
    op.drop_index('ix_profiles_id', table_name='profiles')
    op.drop_table('profiles')
    sa.Enum(name='user_role').drop(op.get_bind(), checkfirst=True)
