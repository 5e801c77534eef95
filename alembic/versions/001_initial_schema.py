"""Initial schema

Revision ID: 001_initial
Revises:
Create Date: 2026-10-17 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001_initial'
down_revision = None
branch_labels = None
depends_on = None

APP_ROLES = (
    'admin', 'responsable', 'gestionnaire', 'expert', 'medecin_expert',
    'comptabilite', 'direction', 'audit', 'assure',
)
CLAIM_STATUSES = (
    'declaration', 'instruction', 'expertise', 'offre', 'acceptation', 'paiement', 'cloture', 'rejete',
)
CLAIM_TYPES = ('automobile', 'habitation', 'sante', 'vie', 'responsabilite_civile', 'autre')
STEP_STATUSES = ('pending', 'in_progress', 'completed')
EXPERTISE_STATUSES = ('planifie', 'en_cours', 'termine')


def upgrade() -> None:
    # Identity
    op.create_table(
        'profiles',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=50), nullable=True),
        sa.Column('avatar', sa.String(length=500), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_profiles_email'), 'profiles', ['email'], unique=True)

    op.create_table(
        'user_roles',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column('role', sa.Enum(*APP_ROLES, name='app_role'), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['profiles.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_user_roles_id'), 'user_roles', ['id'], unique=False)
    op.create_index(op.f('ix_user_roles_user_id'), 'user_roles', ['user_id'], unique=False)

    op.create_table(
        'auth_credentials',
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['profiles.id'], ),
        sa.PrimaryKeyConstraint('user_id')
    )

    # Claims
    op.create_table(
        'claims',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('claim_number', sa.String(length=30), nullable=False),
        sa.Column('policy_number', sa.String(length=50), nullable=False),
        sa.Column('declarant_id', sa.String(length=36), nullable=False),
        sa.Column('gestionnaire_id', sa.String(length=36), nullable=True),
        sa.Column('expert_id', sa.String(length=36), nullable=True),
        sa.Column('medecin_id', sa.String(length=36), nullable=True),
        sa.Column('incident_date', sa.Date(), nullable=False),
        sa.Column('declaration_date', sa.Date(), nullable=False),
        sa.Column('location', sa.Text(), nullable=True),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('amount_claimed', sa.Numeric(precision=14, scale=2), nullable=True),
        sa.Column('amount_approved', sa.Numeric(precision=14, scale=2), nullable=True),
        sa.Column('amount_paid', sa.Numeric(precision=14, scale=2), nullable=True),
        sa.Column('status', sa.Enum(*CLAIM_STATUSES, name='claim_status'), nullable=False),
        sa.Column('type', sa.Enum(*CLAIM_TYPES, name='claim_type'), nullable=False),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.Column('current_step_id', sa.String(length=20), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['declarant_id'], ['profiles.id'], ),
        sa.ForeignKeyConstraint(['gestionnaire_id'], ['profiles.id'], ),
        sa.ForeignKeyConstraint(['expert_id'], ['profiles.id'], ),
        sa.ForeignKeyConstraint(['medecin_id'], ['profiles.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_claims_id'), 'claims', ['id'], unique=False)
    op.create_index(op.f('ix_claims_claim_number'), 'claims', ['claim_number'], unique=True)
    op.create_index(op.f('ix_claims_policy_number'), 'claims', ['policy_number'], unique=False)
    op.create_index(op.f('ix_claims_declarant_id'), 'claims', ['declarant_id'], unique=False)
    op.create_index(op.f('ix_claims_gestionnaire_id'), 'claims', ['gestionnaire_id'], unique=False)
    op.create_index(op.f('ix_claims_expert_id'), 'claims', ['expert_id'], unique=False)
    op.create_index(op.f('ix_claims_medecin_id'), 'claims', ['medecin_id'], unique=False)
    op.create_index(op.f('ix_claims_declaration_date'), 'claims', ['declaration_date'], unique=False)
    op.create_index(op.f('ix_claims_status'), 'claims', ['status'], unique=False)
    op.create_index(op.f('ix_claims_type'), 'claims', ['type'], unique=False)

    op.create_table(
        'documents',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('claim_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('type', sa.String(length=100), nullable=False),
        sa.Column('url', sa.String(length=1000), nullable=False),
        sa.Column('uploaded_by', sa.String(length=36), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['claim_id'], ['claims.id'], ),
        sa.ForeignKeyConstraint(['uploaded_by'], ['profiles.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_documents_id'), 'documents', ['id'], unique=False)
    op.create_index(op.f('ix_documents_claim_id'), 'documents', ['claim_id'], unique=False)

    op.create_table(
        'claim_events',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('claim_id', sa.Integer(), nullable=False),
        sa.Column('event_type', sa.String(length=30), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('user_id', sa.String(length=36), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['claim_id'], ['claims.id'], ),
        sa.ForeignKeyConstraint(['user_id'], ['profiles.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_claim_events_id'), 'claim_events', ['id'], unique=False)
    op.create_index(op.f('ix_claim_events_claim_id'), 'claim_events', ['claim_id'], unique=False)
    op.create_index(op.f('ix_claim_events_event_type'), 'claim_events', ['event_type'], unique=False)
    op.create_index(op.f('ix_claim_events_created_at'), 'claim_events', ['created_at'], unique=False)

    op.create_table(
        'claim_process_steps',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('claim_id', sa.Integer(), nullable=False),
        sa.Column('step_id', sa.String(length=20), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('status', sa.Enum(*STEP_STATUSES, name='step_status'), nullable=False),
        sa.Column('started_at', sa.DateTime(), nullable=True),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['claim_id'], ['claims.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('claim_id', 'step_id', name='uq_claim_process_step')
    )
    op.create_index(op.f('ix_claim_process_steps_id'), 'claim_process_steps', ['id'], unique=False)
    op.create_index(op.f('ix_claim_process_steps_claim_id'), 'claim_process_steps', ['claim_id'], unique=False)

    op.create_table(
        'expertises',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('claim_id', sa.Integer(), nullable=False),
        sa.Column('expert_id', sa.String(length=36), nullable=False),
        sa.Column('status', sa.Enum(*EXPERTISE_STATUSES, name='expertise_status'), nullable=False),
        sa.Column('scheduled_date', sa.Date(), nullable=True),
        sa.Column('completed_date', sa.Date(), nullable=True),
        sa.Column('report', sa.Text(), nullable=True),
        sa.Column('estimated_amount', sa.Numeric(precision=14, scale=2), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['claim_id'], ['claims.id'], ),
        sa.ForeignKeyConstraint(['expert_id'], ['profiles.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_expertises_claim_id'), 'expertises', ['claim_id'], unique=True)


def downgrade() -> None:
    op.drop_table('expertises')
    op.drop_table('claim_process_steps')
    op.drop_table('claim_events')
    op.drop_table('documents')
    op.drop_table('claims')
    op.drop_table('auth_credentials')
    op.drop_table('user_roles')
    op.drop_table('profiles')

    # Drop enums
    sa.Enum(name='expertise_status').drop(op.get_bind(), checkfirst=True)
    sa.Enum(name='step_status').drop(op.get_bind(), checkfirst=True)
    sa.Enum(name='claim_type').drop(op.get_bind(), checkfirst=True)
    sa.Enum(name='claim_status').drop(op.get_bind(), checkfirst=True)
    sa.Enum(name='app_role').drop(op.get_bind(), checkfirst=True)
