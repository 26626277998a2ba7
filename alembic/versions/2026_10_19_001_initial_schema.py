"""Initial schema for products, versions, customers, deployments and licenses

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision = '001_initial_schema'
down_revision = None

# Enum columns store member names
product_type = sa.Enum('SERVER', 'CLIENT', name='producttype')
version_state = sa.Enum(
    'DRAFT', 'PENDING_REVIEW', 'APPROVED', 'RELEASED', 'DEPRECATED', 'EOL', name='versionstate'
)
release_type = sa.Enum('MAJOR', 'FEATURE', 'MAINTENANCE', 'SECURITY', name='releasetype')
account_status = sa.Enum('ACTIVE', 'INACTIVE', 'SUSPENDED', name='accountstatus')
tenant_status = sa.Enum('ACTIVE', 'INACTIVE', name='tenantstatus')
deployment_type = sa.Enum('PRODUCTION', 'UAT', 'TESTING', 'DEVELOPMENT', name='deploymenttype')
deployment_status = sa.Enum('ACTIVE', 'INACTIVE', name='deploymentstatus')
subscription_status = sa.Enum('ACTIVE', 'INACTIVE', 'EXPIRED', 'SUSPENDED', name='subscriptionstatus')
license_type = sa.Enum('PERPETUAL', 'TIME_BASED', name='licensetype')
license_status = sa.Enum('ACTIVE', 'EXPIRED', 'REVOKED', name='licensestatus')
allocation_status = sa.Enum('ACTIVE', 'RELEASED', name='allocationstatus')
validation_status = sa.Enum('PENDING', 'PASSED', 'FAILED', 'SKIPPED', name='validationstatus')
path_type = sa.Enum('DIRECT', 'MULTI_STEP', 'BLOCKED', name='pathtype')
rollout_status = sa.Enum(
    'PENDING', 'IN_PROGRESS', 'COMPLETED', 'FAILED', 'CANCELLED', name='rolloutstatus'
)
audit_action = sa.Enum(
    'CREATE', 'UPDATE', 'DELETE', 'APPROVE', 'REJECT', 'RELEASE', 'UPLOAD', 'DOWNLOAD',
    name='auditaction'
)


def timestamps():
    return [
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    ]


def upgrade():
    # Products
    op.create_table(
        'products',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('product_id', sa.String(100), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('type', product_type, nullable=False),
        sa.Column('description', sa.String(2000), nullable=True),
        sa.Column('vendor', sa.String(255), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        *timestamps(),
    )
    op.create_index('ix_products_product_id', 'products', ['product_id'], unique=True)
    op.create_index('ix_products_type', 'products', ['type'])
    op.create_index('ix_products_is_active', 'products', ['is_active'])

    # Versions
    op.create_table(
        'versions',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('product_id', sa.String(100), nullable=False),
        sa.Column('version_number', sa.String(50), nullable=False),
        sa.Column('release_type', release_type, nullable=False),
        sa.Column('state', version_state, nullable=False),
        sa.Column('release_date', sa.DateTime(), nullable=False),
        sa.Column('eol_date', sa.DateTime(), nullable=True),
        sa.Column('min_server_version', sa.String(50), nullable=True),
        sa.Column('max_server_version', sa.String(50), nullable=True),
        sa.Column('recommended_server_version', sa.String(50), nullable=True),
        sa.Column('release_notes', sa.JSON(), nullable=True),
        sa.Column('packages', sa.JSON(), nullable=True),
        sa.Column('created_by', sa.String(255), nullable=True),
        sa.Column('approved_by', sa.String(255), nullable=True),
        sa.Column('approved_at', sa.DateTime(), nullable=True),
        sa.Column('revision', sa.Integer(), nullable=False),
        *timestamps(),
        sa.UniqueConstraint('product_id', 'version_number', name='uq_versions_product_version'),
    )
    op.create_index('ix_versions_product_id', 'versions', ['product_id'])
    op.create_index('ix_versions_state', 'versions', ['state'])
    op.create_index('ix_versions_release_type', 'versions', ['release_type'])
    op.create_index('ix_versions_release_date', 'versions', ['release_date'])

    # Customers and tenants
    op.create_table(
        'customers',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('customer_id', sa.String(100), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('organization_name', sa.String(255), nullable=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('phone', sa.String(50), nullable=True),
        sa.Column('address', sa.String(1000), nullable=True),
        sa.Column('account_status', account_status, nullable=False),
        sa.Column('notification_preferences', sa.JSON(), nullable=True),
        *timestamps(),
    )
    op.create_index('ix_customers_customer_id', 'customers', ['customer_id'], unique=True)
    op.create_index('ix_customers_email', 'customers', ['email'], unique=True)
    op.create_index('ix_customers_account_status', 'customers', ['account_status'])

    op.create_table(
        'tenants',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('tenant_id', sa.String(100), nullable=False),
        sa.Column('customer_id', sa.Uuid(), sa.ForeignKey('customers.id'), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.String(2000), nullable=True),
        sa.Column('status', tenant_status, nullable=False),
        *timestamps(),
    )
    op.create_index('ix_tenants_tenant_id', 'tenants', ['tenant_id'], unique=True)
    op.create_index('ix_tenants_customer_id', 'tenants', ['customer_id'])
    op.create_index('ix_tenants_status', 'tenants', ['status'])

    # Deployments
    op.create_table(
        'deployments',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('deployment_id', sa.String(100), nullable=False),
        sa.Column('tenant_id', sa.Uuid(), sa.ForeignKey('tenants.id'), nullable=False),
        sa.Column('product_id', sa.String(100), nullable=False),
        sa.Column('deployment_type', deployment_type, nullable=False),
        sa.Column('installed_version', sa.String(50), nullable=False),
        sa.Column('number_of_users', sa.Integer(), nullable=True),
        sa.Column('license_info', sa.String(1000), nullable=True),
        sa.Column('server_hostname', sa.String(255), nullable=True),
        sa.Column('environment_details', sa.String(2000), nullable=True),
        sa.Column('deployment_date', sa.DateTime(), nullable=False),
        sa.Column('status', deployment_status, nullable=False),
        *timestamps(),
        sa.UniqueConstraint(
            'tenant_id', 'product_id', 'deployment_type', name='uq_deployments_tenant_product_type'
        ),
    )
    op.create_index('ix_deployments_deployment_id', 'deployments', ['deployment_id'], unique=True)
    op.create_index('ix_deployments_tenant_id', 'deployments', ['tenant_id'])
    op.create_index('ix_deployments_product_id', 'deployments', ['product_id'])
    op.create_index('ix_deployments_deployment_type', 'deployments', ['deployment_type'])
    op.create_index('ix_deployments_status', 'deployments', ['status'])

    # Subscriptions, licenses and allocations
    op.create_table(
        'subscriptions',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('subscription_id', sa.String(100), nullable=False),
        sa.Column('customer_id', sa.Uuid(), sa.ForeignKey('customers.id'), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.String(2000), nullable=True),
        sa.Column('start_date', sa.DateTime(), nullable=False),
        sa.Column('end_date', sa.DateTime(), nullable=True),
        sa.Column('status', subscription_status, nullable=False),
        sa.Column('created_by', sa.String(255), nullable=True),
        sa.Column('notes', sa.String(2000), nullable=True),
        *timestamps(),
    )
    op.create_index('ix_subscriptions_subscription_id', 'subscriptions', ['subscription_id'], unique=True)
    op.create_index('ix_subscriptions_customer_id', 'subscriptions', ['customer_id'])
    op.create_index('ix_subscriptions_status', 'subscriptions', ['status'])

    op.create_table(
        'licenses',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('license_id', sa.String(100), nullable=False),
        sa.Column('subscription_id', sa.Uuid(), sa.ForeignKey('subscriptions.id'), nullable=False),
        sa.Column('product_id', sa.String(100), nullable=False),
        sa.Column('license_type', license_type, nullable=False),
        sa.Column('number_of_seats', sa.Integer(), nullable=False),
        sa.Column('start_date', sa.DateTime(), nullable=False),
        sa.Column('end_date', sa.DateTime(), nullable=True),
        sa.Column('status', license_status, nullable=False),
        sa.Column('assigned_by', sa.String(255), nullable=True),
        sa.Column('assignment_date', sa.DateTime(), nullable=False),
        sa.Column('notes', sa.String(2000), nullable=True),
        *timestamps(),
    )
    op.create_index('ix_licenses_license_id', 'licenses', ['license_id'], unique=True)
    op.create_index('ix_licenses_subscription_id', 'licenses', ['subscription_id'])
    op.create_index('ix_licenses_product_id', 'licenses', ['product_id'])
    op.create_index('ix_licenses_status', 'licenses', ['status'])

    op.create_table(
        'license_allocations',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('allocation_id', sa.String(100), nullable=False),
        sa.Column('license_id', sa.Uuid(), sa.ForeignKey('licenses.id'), nullable=False),
        sa.Column('tenant_id', sa.Uuid(), sa.ForeignKey('tenants.id'), nullable=False),
        sa.Column('deployment_id', sa.Uuid(), sa.ForeignKey('deployments.id'), nullable=True),
        sa.Column('seats_allocated', sa.Integer(), nullable=False),
        sa.Column('status', allocation_status, nullable=False),
        sa.Column('allocation_date', sa.DateTime(), nullable=False),
        sa.Column('allocated_by', sa.String(255), nullable=True),
        sa.Column('released_at', sa.DateTime(), nullable=True),
        sa.Column('released_by', sa.String(255), nullable=True),
        sa.Column('notes', sa.String(2000), nullable=True),
        *timestamps(),
    )
    op.create_index('ix_license_allocations_allocation_id', 'license_allocations', ['allocation_id'], unique=True)
    op.create_index('ix_license_allocations_license_id', 'license_allocations', ['license_id'])
    op.create_index('ix_license_allocations_tenant_id', 'license_allocations', ['tenant_id'])
    op.create_index('ix_license_allocations_deployment_id', 'license_allocations', ['deployment_id'])
    op.create_index('ix_license_allocations_status', 'license_allocations', ['status'])

    # Compatibility and upgrade paths
    op.create_table(
        'compatibility_matrices',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('product_id', sa.String(100), nullable=False),
        sa.Column('version_number', sa.String(50), nullable=False),
        sa.Column('min_server_version', sa.String(50), nullable=True),
        sa.Column('max_server_version', sa.String(50), nullable=True),
        sa.Column('recommended_server_version', sa.String(50), nullable=True),
        sa.Column('incompatible_versions', sa.JSON(), nullable=True),
        sa.Column('validated_at', sa.DateTime(), nullable=True),
        sa.Column('validated_by', sa.String(255), nullable=True),
        sa.Column('validation_status', validation_status, nullable=False),
        sa.Column('validation_errors', sa.JSON(), nullable=True),
        *timestamps(),
        sa.UniqueConstraint('product_id', 'version_number', name='uq_compatibility_product_version'),
    )
    op.create_index('ix_compatibility_matrices_product_id', 'compatibility_matrices', ['product_id'])
    op.create_index(
        'ix_compatibility_matrices_validation_status', 'compatibility_matrices', ['validation_status']
    )

    op.create_table(
        'upgrade_paths',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('product_id', sa.String(100), nullable=False),
        sa.Column('from_version', sa.String(50), nullable=False),
        sa.Column('to_version', sa.String(50), nullable=False),
        sa.Column('path_type', path_type, nullable=False),
        sa.Column('intermediate_versions', sa.JSON(), nullable=True),
        sa.Column('is_blocked', sa.Boolean(), nullable=False),
        sa.Column('block_reason', sa.String(1000), nullable=True),
        *timestamps(),
        sa.UniqueConstraint('product_id', 'from_version', 'to_version', name='uq_upgrade_paths_triple'),
    )
    op.create_index('ix_upgrade_paths_product_id', 'upgrade_paths', ['product_id'])

    # Update tracking
    op.create_table(
        'update_detections',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('endpoint_id', sa.String(255), nullable=False),
        sa.Column('product_id', sa.String(100), nullable=False),
        sa.Column('current_version', sa.String(50), nullable=False),
        sa.Column('available_version', sa.String(50), nullable=False),
        sa.Column('detected_at', sa.DateTime(), nullable=False),
        sa.Column('last_checked_at', sa.DateTime(), nullable=False),
        *timestamps(),
        sa.UniqueConstraint('endpoint_id', 'product_id', name='uq_update_detections_endpoint_product'),
    )
    op.create_index('ix_update_detections_endpoint_id', 'update_detections', ['endpoint_id'])
    op.create_index('ix_update_detections_product_id', 'update_detections', ['product_id'])
    op.create_index('ix_update_detections_detected_at', 'update_detections', ['detected_at'])

    op.create_table(
        'update_rollouts',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('endpoint_id', sa.String(255), nullable=False),
        sa.Column('product_id', sa.String(100), nullable=False),
        sa.Column('from_version', sa.String(50), nullable=False),
        sa.Column('to_version', sa.String(50), nullable=False),
        sa.Column('status', rollout_status, nullable=False),
        sa.Column('progress', sa.Integer(), nullable=False),
        sa.Column('initiated_by', sa.String(255), nullable=True),
        sa.Column('initiated_at', sa.DateTime(), nullable=False),
        sa.Column('started_at', sa.DateTime(), nullable=True),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.Column('failed_at', sa.DateTime(), nullable=True),
        sa.Column('error_message', sa.String(2000), nullable=True),
        *timestamps(),
        sa.CheckConstraint('progress >= 0 AND progress <= 100', name='ck_update_rollouts_progress'),
    )
    op.create_index('ix_update_rollouts_endpoint_id', 'update_rollouts', ['endpoint_id'])
    op.create_index('ix_update_rollouts_product_id', 'update_rollouts', ['product_id'])
    op.create_index('ix_update_rollouts_status', 'update_rollouts', ['status'])
    op.create_index('ix_update_rollouts_initiated_at', 'update_rollouts', ['initiated_at'])

    # Audit trail
    op.create_table(
        'audit_logs',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('action', audit_action, nullable=False),
        sa.Column('resource_type', sa.String(100), nullable=False),
        sa.Column('resource_id', sa.String(255), nullable=False),
        sa.Column('user_id', sa.String(255), nullable=False),
        sa.Column('user_email', sa.String(255), nullable=True),
        sa.Column('details', sa.JSON(), nullable=True),
        sa.Column('ip_address', sa.String(100), nullable=True),
        sa.Column('user_agent', sa.String(1000), nullable=True),
        sa.Column('timestamp', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_audit_logs_action', 'audit_logs', ['action'])
    op.create_index('ix_audit_logs_resource', 'audit_logs', ['resource_type', 'resource_id'])
    op.create_index('ix_audit_logs_user_id', 'audit_logs', ['user_id'])
    op.create_index('ix_audit_logs_timestamp', 'audit_logs', ['timestamp'])


def downgrade():
    for table in (
        'audit_logs', 'update_rollouts', 'update_detections', 'upgrade_paths',
        'compatibility_matrices', 'license_allocations', 'licenses', 'subscriptions',
        'deployments', 'tenants', 'customers', 'versions', 'products',
    ):
        op.drop_table(table)

    bind = op.get_bind()
    for enum in (
        audit_action, rollout_status, path_type, validation_status, allocation_status,
        license_status, license_type, subscription_status, deployment_status,
        deployment_type, tenant_status, account_status, release_type, version_state,
        product_type,
    ):
        enum.drop(bind, checkfirst=True)
