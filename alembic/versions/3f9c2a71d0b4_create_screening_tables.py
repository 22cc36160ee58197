"""create_screening_tables

Creates the tables of the chat screening engine:
1. organizations + organization_api_configs (per-organization provider keys, encrypted)
2. jobs (criteria as JSONB lists)
3. candidates (encrypted phone + lookup hash, résumé, score fields, soft delete)
4. conversations (append-only transcript, interview step, completion timestamp)

The partial unique index on candidates(job_id, phone_hash) WHERE NOT is_deleted
is the conflict target of the candidate find-or-create upsert.

Revision ID: 3f9c2a71d0b4
Revises:
Create Date: 2026-10-19 09:12:40.318551

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '3f9c2a71d0b4'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the screening schema."""

    # 1. Organizations and their provider credentials
    op.create_table(
        'organizations',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        'organization_api_configs',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column('organization_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('openai_api_key', sa.String(), nullable=True),
        sa.Column('twilio_account_sid', sa.String(), nullable=True),
        sa.Column('twilio_auth_token', sa.String(), nullable=True),
        sa.Column('twilio_whatsapp_number', sa.String(), nullable=True),
        sa.Column('aws_access_key_id', sa.String(), nullable=True),
        sa.Column('aws_secret_access_key', sa.String(), nullable=True),
        sa.Column('aws_s3_bucket', sa.String(), nullable=True),
        sa.Column('aws_region', sa.String(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['organization_id'], ['organizations.id'], ondelete='CASCADE'),
    )
    op.create_index('ix_organization_api_configs_organization_id', 'organization_api_configs', ['organization_id'], unique=True)

    # 2. Jobs
    op.create_table(
        'jobs',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column('organization_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('essential_criteria', postgresql.JSONB(), nullable=False, server_default='[]'),
        sa.Column('nice_to_have_criteria', postgresql.JSONB(), nullable=False, server_default='[]'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['organization_id'], ['organizations.id']),
    )
    op.create_index('ix_jobs_organization_id', 'jobs', ['organization_id'])
    op.create_index('ix_jobs_title', 'jobs', ['title'])

    # 3. Candidates
    op.create_table(
        'candidates',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column('job_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('phone_number', sa.String(), nullable=False),
        sa.Column('phone_hash', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(), nullable=True),
        sa.Column('email', sa.String(), nullable=True),
        sa.Column('resume_data', postgresql.JSONB(), nullable=True),
        sa.Column('cv_url', sa.String(), nullable=True),
        sa.Column('score', sa.Float(), nullable=True),
        sa.Column('score_details', postgresql.JSONB(), nullable=True),
        sa.Column('summary', sa.Text(), nullable=True),
        sa.Column('recommendation', sa.String(), nullable=True),
        sa.Column(
            'status',
            sa.Enum('IN_PROGRESS', 'COMPLETED', 'ACCEPTED', 'REJECTED', name='candidatestatus'),
            nullable=False,
            server_default='IN_PROGRESS',
        ),
        sa.Column('is_deleted', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['job_id'], ['jobs.id'], ondelete='CASCADE'),
    )
    op.create_index('ix_candidates_job_id', 'candidates', ['job_id'])
    op.create_index('ix_candidates_phone_hash', 'candidates', ['phone_hash'])
    op.create_index('ix_candidates_score', 'candidates', ['score'])
    op.create_index('ix_candidates_status', 'candidates', ['status'])
    op.create_index(
        'uq_candidates_job_phone_hash_active',
        'candidates',
        ['job_id', 'phone_hash'],
        unique=True,
        postgresql_where=sa.text('is_deleted = false'),
    )

    # 4. Conversations
    op.create_table(
        'conversations',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column('candidate_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('messages', postgresql.JSONB(), nullable=False, server_default='[]'),
        sa.Column('current_step', sa.String(), nullable=False, server_default='intro'),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['candidate_id'], ['candidates.id'], ondelete='CASCADE'),
    )
    op.create_index('ix_conversations_candidate_id', 'conversations', ['candidate_id'], unique=True)
    op.create_index('ix_conversations_completed_at', 'conversations', ['completed_at'])


def downgrade() -> None:
    """Drop the screening schema."""
    op.drop_index('ix_conversations_completed_at', table_name='conversations')
    op.drop_index('ix_conversations_candidate_id', table_name='conversations')
    op.drop_table('conversations')

    op.drop_index('uq_candidates_job_phone_hash_active', table_name='candidates')
    op.drop_index('ix_candidates_status', table_name='candidates')
    op.drop_index('ix_candidates_score', table_name='candidates')
    op.drop_index('ix_candidates_phone_hash', table_name='candidates')
    op.drop_index('ix_candidates_job_id', table_name='candidates')
    op.drop_table('candidates')
    sa.Enum(name='candidatestatus').drop(op.get_bind(), checkfirst=True)

    op.drop_index('ix_jobs_title', table_name='jobs')
    op.drop_index('ix_jobs_organization_id', table_name='jobs')
    op.drop_table('jobs')

    op.drop_index('ix_organization_api_configs_organization_id', table_name='organization_api_configs')
    op.drop_table('organization_api_configs')
    op.drop_table('organizations')
