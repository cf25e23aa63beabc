"""Initial schema: companies, users, jobs, candidates, application ledger, attempt log

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    """Create the ATS tables."""
    op.create_table(
        'companies',
        sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('slug', sa.String(length=120), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('slug', name='uq_companies_slug'),
    )
    op.create_index('idx_companies_active_name', 'companies', ['is_active', 'name'])

    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('name', sa.String(length=160), nullable=False),
        sa.Column('role', sa.String(length=32), nullable=False, server_default='viewer'),
        sa.Column('company_id', sa.Integer(), nullable=True),
        sa.Column('is_super_admin', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('invitation_accepted', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('invitation_sent_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('invitation_accepted_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id'], ondelete='SET NULL'),
        sa.UniqueConstraint('email', name='uq_users_email'),
    )
    op.create_index('ix_users_company_id', 'users', ['company_id'])

    op.create_table(
        'user_invitation_events',
        sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('token_hash', sa.String(length=128), nullable=False),
        sa.Column('accept_url', sa.Text(), nullable=True),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_by', sa.Integer(), nullable=True),
        sa.Column('reused_existing', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('email_delivery_attempted', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('email_delivery_success', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('email_delivery_message', sa.Text(), nullable=True),
        sa.Column('sent_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['created_by'], ['users.id'], ondelete='SET NULL'),
    )
    op.create_index('ix_user_invitation_events_user_id', 'user_invitation_events', ['user_id'])
    op.create_index('idx_invitation_events_sent_at', 'user_invitation_events', ['sent_at'])

    op.create_table(
        'jobs',
        sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
        sa.Column('company_id', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('description', sa.Text(), nullable=False, server_default=''),
        sa.Column('department', sa.String(length=120), nullable=True),
        sa.Column('employment_type', sa.String(length=32), nullable=False, server_default='full_time'),
        sa.Column('work_modality', sa.String(length=32), nullable=False, server_default='onsite'),
        sa.Column('location', sa.String(length=160), nullable=True),
        sa.Column('salary_min', sa.Numeric(12, 2), nullable=True),
        sa.Column('salary_max', sa.Numeric(12, 2), nullable=True),
        sa.Column('currency', sa.String(length=3), nullable=True),
        sa.Column('status', sa.String(length=32), nullable=False, server_default='draft'),
        sa.Column('published_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('closes_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id'], ondelete='CASCADE'),
    )
    op.create_index('ix_jobs_company_id', 'jobs', ['company_id'])
    op.create_index('idx_jobs_company_status', 'jobs', ['company_id', 'status'])
    op.create_index('idx_jobs_published', 'jobs', ['published_at'])

    op.create_table(
        'candidates',
        sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
        sa.Column('full_name', sa.String(length=160), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=60), nullable=True),
        sa.Column('resume_url', sa.Text(), nullable=True),
        sa.Column('linkedin_url', sa.Text(), nullable=True),
        sa.Column('city', sa.String(length=120), nullable=True),
        sa.Column('country', sa.String(length=120), nullable=True),
        sa.Column('source', sa.String(length=100), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email', name='uq_candidates_email'),
    )

    op.create_table(
        'applications',
        sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
        sa.Column('job_id', sa.Integer(), nullable=False),
        sa.Column('candidate_id', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False, server_default='Nuevo'),
        sa.Column('source', sa.String(length=100), nullable=True),
        sa.Column('source_details', sa.JSON(), nullable=True),
        sa.Column('expected_salary', sa.Numeric(12, 2), nullable=True),
        sa.Column('currency', sa.String(length=3), nullable=True),
        sa.Column('applied_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['job_id'], ['jobs.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['candidate_id'], ['candidates.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('job_id', 'candidate_id', name='uq_applications_job_candidate'),
    )
    op.create_index('ix_applications_job_id', 'applications', ['job_id'])
    op.create_index('ix_applications_candidate_id', 'applications', ['candidate_id'])
    op.create_index('idx_applications_status', 'applications', ['status'])

    op.create_table(
        'application_stage_history',
        sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
        sa.Column('application_id', sa.Integer(), nullable=False),
        sa.Column('previous_status', sa.String(length=32), nullable=True),
        sa.Column('new_status', sa.String(length=32), nullable=False),
        sa.Column('comment', sa.Text(), nullable=True),
        sa.Column('changed_by', sa.Integer(), nullable=True),
        sa.Column('changed_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['application_id'], ['applications.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['changed_by'], ['users.id'], ondelete='SET NULL'),
    )
    op.create_index(
        'idx_stage_history_application_changed',
        'application_stage_history',
        ['application_id', 'changed_at'],
    )

    op.create_table(
        'application_notes',
        sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
        sa.Column('application_id', sa.Integer(), nullable=False),
        sa.Column('author_id', sa.Integer(), nullable=True),
        sa.Column('category', sa.String(length=50), nullable=False, server_default='general'),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['application_id'], ['applications.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['author_id'], ['users.id'], ondelete='SET NULL'),
    )
    op.create_index('ix_application_notes_application_id', 'application_notes', ['application_id'])

    # No foreign key on job_id: attempts against unknown jobs are recorded too
    op.create_table(
        'public_application_logs',
        sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
        sa.Column('job_id', sa.Integer(), nullable=True),
        sa.Column('candidate_email', sa.String(length=255), nullable=True),
        sa.Column('status', sa.String(length=32), nullable=False),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('ip', sa.String(length=64), nullable=True),
        sa.Column('user_agent', sa.Text(), nullable=True),
        sa.Column('captcha_score', sa.Float(), nullable=True),
        sa.Column('source', sa.String(length=100), nullable=True),
        sa.Column('source_details', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_public_application_logs_created_at', 'public_application_logs', ['created_at'])
    op.create_index(
        'idx_public_application_logs_job_email',
        'public_application_logs',
        ['job_id', 'candidate_email'],
    )
    op.create_index(
        'idx_public_application_logs_status_created',
        'public_application_logs',
        ['status', 'created_at'],
    )


def downgrade() -> None:
    """Drop the ATS tables."""
    op.drop_table('public_application_logs')
    op.drop_table('application_notes')
    op.drop_table('application_stage_history')
    op.drop_table('applications')
    op.drop_table('candidates')
    op.drop_table('jobs')
    op.drop_table('user_invitation_events')
    op.drop_table('users')
    op.drop_table('companies')
