"""pipeline baseline: calls, recordings, transcripts, insights, runs, steps

Revision ID: 0001_initial
Revises: None
Create Date: 2026-10-19 00:00:00.000000
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '0001_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'calls',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('external_id', sa.String(length=64), nullable=False),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('from_number', sa.String(length=40), nullable=False),
        sa.Column('to_number', sa.String(length=40)),
        sa.Column('direction', sa.String(length=20)),
        sa.Column('duration_sec', sa.Integer(), nullable=False),
        sa.Column('language', sa.String(length=20), nullable=False),
        sa.Column('detected_language', sa.String(length=40)),
        sa.Column('summary', sa.Text(), nullable=False),
        sa.Column('transcript_preview', sa.Text()),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('error', sa.Text()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('external_id', name='uq_calls_external_id'),
    )
    op.create_index('ix_calls_status', 'calls', ['status'])

    op.create_table(
        'recordings',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('call_id', sa.Integer(), sa.ForeignKey('calls.id'), nullable=False),
        sa.Column('provider', sa.String(length=20), nullable=False),
        sa.Column('recording_sid', sa.String(length=64), nullable=False),
        sa.Column('duration_sec', sa.Integer()),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('url', sa.String(length=512)),
        sa.Column('local_path', sa.String(length=512)),
        sa.Column('downloaded_at', sa.DateTime(timezone=True)),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('call_id', name='uq_recordings_call_id'),
        sa.UniqueConstraint('recording_sid', name='uq_recordings_recording_sid'),
    )

    op.create_table(
        'transcripts',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('call_id', sa.Integer(), sa.ForeignKey('calls.id'), nullable=False),
        sa.Column('recording_id', sa.Integer(), sa.ForeignKey('recordings.id'), nullable=False),
        sa.Column('language', sa.String(length=20), nullable=False),
        sa.Column('detected_language', sa.String(length=40)),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('content_en', sa.Text()),
        sa.Column('raw_json', sa.JSON()),
        sa.Column('raw_json_en', sa.JSON()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('call_id', name='uq_transcripts_call_id'),
        sa.UniqueConstraint('recording_id', name='uq_transcripts_recording_id'),
    )

    op.create_table(
        'insights',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('recording_id', sa.Integer(), sa.ForeignKey('recordings.id'), nullable=False),
        sa.Column('data', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('recording_id', name='uq_insights_recording_id'),
    )

    op.create_table(
        'pipeline_runs',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('recording_sid', sa.String(length=64), nullable=False),
        sa.Column('job_id', sa.String(length=128)),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('attempt', sa.Integer(), nullable=False),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('finished_at', sa.DateTime(timezone=True)),
        sa.UniqueConstraint('recording_sid', 'job_id', name='uq_pipeline_runs_recording_job'),
    )
    op.create_index('ix_pipeline_runs_recording_sid', 'pipeline_runs', ['recording_sid'])

    op.create_table(
        'pipeline_steps',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('run_id', sa.Integer(), sa.ForeignKey('pipeline_runs.id'), nullable=False),
        sa.Column('step', sa.String(length=40), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('finished_at', sa.DateTime(timezone=True)),
        sa.Column('meta', sa.JSON()),
        sa.Column('error', sa.Text()),
        sa.UniqueConstraint('run_id', 'step', name='uq_pipeline_steps_run_step'),
    )


def downgrade() -> None:
    for t in ('pipeline_steps', 'pipeline_runs', 'insights', 'transcripts', 'recordings', 'calls'):
        op.drop_table(t)
