"""Initial schema: tenants, identities, credentials and reference data

Revision ID: 20261017_000001
Revises:
Create Date: 2026-10-17

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '20261017_000001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _tenant_scoped_columns() -> list[sa.Column]:
    return [
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('tenant_id', postgresql.UUID(as_uuid=True), nullable=False),
    ]


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    ]


def upgrade() -> None:
    # === TENANTS ===
    op.create_table(
        'tenants',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('code', sa.String(length=50), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('code'),
    )

    # === STAFF ===
    op.create_table(
        'staff',
        *_tenant_scoped_columns(),
        sa.Column('staff_id', sa.String(length=50), nullable=False),
        sa.Column('full_name', sa.String(length=200), nullable=False),
        sa.Column('role', sa.String(length=100), nullable=False),
        sa.Column('department', sa.String(length=100), nullable=True),
        sa.Column('designation', sa.String(length=100), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('phone', sa.String(length=20), nullable=True),
        sa.Column('date_of_joining', sa.Date(), nullable=True),
        sa.Column('employment_type', sa.String(length=50), nullable=True),
        sa.Column('qualification', sa.String(length=200), nullable=True),
        sa.Column('experience_years', sa.Float(), nullable=True),
        sa.Column('gender', sa.String(length=10), nullable=True),
        sa.Column('address', sa.Text(), nullable=True),
        sa.Column('dob', sa.Date(), nullable=True),
        sa.Column('aadhaar_number', sa.String(length=12), nullable=True),
        sa.Column('blood_group', sa.String(length=5), nullable=True),
        sa.Column('religion', sa.String(length=50), nullable=True),
        sa.Column('category', sa.String(length=50), nullable=True),
        sa.Column('nationality', sa.String(length=50), nullable=True),
        sa.Column('contact1', sa.String(length=20), nullable=True),
        sa.Column('contact2', sa.String(length=20), nullable=True),
        sa.Column('employee_code', sa.String(length=50), nullable=True),
        sa.Column('dop', sa.Date(), nullable=True),
        sa.Column('alma_mater', sa.String(length=200), nullable=True),
        sa.Column('major', sa.String(length=200), nullable=True),
        sa.Column('website', sa.String(length=255), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        *_timestamps(),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('tenant_id', 'staff_id', name='uq_staff_tenant_staff_id'),
    )
    op.create_index('ix_staff_tenant_id', 'staff', ['tenant_id'])

    # === STUDENTS ===
    op.create_table(
        'students',
        *_tenant_scoped_columns(),
        sa.Column('admission_no', sa.String(length=50), nullable=False),
        sa.Column('student_name', sa.String(length=200), nullable=False),
        sa.Column('first_name', sa.String(length=100), nullable=True),
        sa.Column('last_name', sa.String(length=100), nullable=True),
        sa.Column('class', sa.String(length=50), nullable=False),
        sa.Column('section', sa.String(length=20), nullable=False),
        sa.Column('academic_year', sa.String(length=20), nullable=True),
        sa.Column('date_of_birth', sa.Date(), nullable=True),
        sa.Column('date_of_admission', sa.Date(), nullable=True),
        sa.Column('gender', sa.String(length=10), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('student_contact', sa.String(length=20), nullable=True),
        sa.Column('aadhaar_number', sa.String(length=12), nullable=True),
        sa.Column('blood_group', sa.String(length=5), nullable=True),
        sa.Column('father_name', sa.String(length=200), nullable=True),
        sa.Column('father_occupation', sa.String(length=100), nullable=True),
        sa.Column('father_contact', sa.String(length=20), nullable=True),
        sa.Column('mother_name', sa.String(length=200), nullable=True),
        sa.Column('mother_occupation', sa.String(length=100), nullable=True),
        sa.Column('mother_contact', sa.String(length=20), nullable=True),
        sa.Column('parent_name', sa.String(length=200), nullable=True),
        sa.Column('parent_phone', sa.String(length=20), nullable=True),
        sa.Column('address', sa.Text(), nullable=True),
        sa.Column('city', sa.String(length=100), nullable=True),
        sa.Column('state', sa.String(length=100), nullable=True),
        sa.Column('pincode', sa.String(length=10), nullable=True),
        sa.Column('religion', sa.String(length=50), nullable=True),
        sa.Column('category', sa.String(length=50), nullable=True),
        sa.Column('nationality', sa.String(length=50), nullable=True),
        sa.Column('roll_number', sa.String(length=20), nullable=True),
        sa.Column('rfid', sa.String(length=50), nullable=True),
        sa.Column('rte', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('new_admission', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        *_timestamps(),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('tenant_id', 'admission_no', name='uq_students_tenant_admission_no'),
    )
    op.create_index('ix_students_tenant_id', 'students', ['tenant_id'])

    # === CREDENTIALS ===
    # The unique constraints below are what keeps a person at one credential
    op.create_table(
        'staff_credentials',
        *_tenant_scoped_columns(),
        sa.Column('staff_id', sa.String(length=50), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('plain_password', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        *_timestamps(),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('tenant_id', 'staff_id', name='uq_staff_credentials_tenant_staff_id'),
    )
    op.create_index('ix_staff_credentials_tenant_id', 'staff_credentials', ['tenant_id'])

    op.create_table(
        'student_credentials',
        *_tenant_scoped_columns(),
        sa.Column('admission_no', sa.String(length=50), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('plain_password', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        *_timestamps(),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('tenant_id', 'admission_no', name='uq_student_credentials_tenant_admission_no'),
    )
    op.create_index('ix_student_credentials_tenant_id', 'student_credentials', ['tenant_id'])

    # === REFERENCE DATA ===
    op.create_table(
        'subjects',
        *_tenant_scoped_columns(),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('code', sa.String(length=20), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        *_timestamps(),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_subjects_tenant_id', 'subjects', ['tenant_id'])
    op.create_index('idx_subjects_tenant_name', 'subjects', ['tenant_id', 'name'])

    op.create_table(
        'school_classes',
        *_tenant_scoped_columns(),
        sa.Column('class', sa.String(length=50), nullable=False),
        sa.Column('section', sa.String(length=20), nullable=False),
        sa.Column('academic_year', sa.String(length=20), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        *_timestamps(),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_school_classes_tenant_id', 'school_classes', ['tenant_id'])
    op.create_index(
        'idx_classes_tenant_class_section',
        'school_classes',
        ['tenant_id', 'class', 'section', 'academic_year'],
        unique=True,
    )


def downgrade() -> None:
    # Drop tables in reverse order of creation (respecting foreign key dependencies)
    op.drop_table('school_classes')
    op.drop_table('subjects')
    op.drop_table('student_credentials')
    op.drop_table('staff_credentials')
    op.drop_table('students')
    op.drop_table('staff')
    op.drop_table('tenants')
