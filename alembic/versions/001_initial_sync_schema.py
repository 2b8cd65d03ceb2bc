"""Initial sync schema: tenancy, unified CRM/ticketing tables, custom fields.

Revision ID: 001_initial_sync_schema
Revises:
Create Date: 2026-10-19

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "001_initial_sync_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("modified_at", sa.DateTime(timezone=True), nullable=True),
    ]


def _unified_columns() -> list[sa.Column]:
    return [
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("remote_id", sa.String(300), nullable=False),
        sa.Column("connection_id", sa.Uuid(), sa.ForeignKey("connections.id"), nullable=False, index=True),
        *_timestamps(),
    ]


def _sub_entity_columns(owner_column: str, owner_table: str) -> list[sa.Column]:
    return [
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("remote_id", sa.String(300), nullable=True),
        sa.Column(
            owner_column,
            sa.Uuid(),
            sa.ForeignKey(f"{owner_table}.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        *_timestamps(),
    ]


def upgrade() -> None:
    # ── Tenancy ─────────────────────────────────────────────────────────────
    op.create_table(
        "tenants",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("slug", sa.String(100), unique=True, nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_table(
        "projects",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("tenant_id", sa.Uuid(), sa.ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_table(
        "linked_accounts",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("project_id", sa.Uuid(), sa.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("origin_id", sa.String(200), nullable=False),
        sa.Column("alias", sa.String(200), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("project_id", "origin_id", name="uq_linked_accounts_project_origin"),
    )
    op.create_table(
        "connections",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("linked_account_id", sa.Uuid(), sa.ForeignKey("linked_accounts.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("provider_slug", sa.String(100), nullable=False),
        sa.Column("vertical", sa.String(50), nullable=False),
        sa.Column("status", sa.String(20), server_default="active", nullable=False),
        sa.Column("access_token", sa.Text(), nullable=True),
        sa.Column("last_synced_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint(
            "linked_account_id", "provider_slug", "vertical",
            name="uq_connections_account_provider_vertical",
        ),
    )

    # ── Custom fields (EAV) and raw payloads ────────────────────────────────
    op.create_table(
        "attributes",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("tenant_id", sa.Uuid(), sa.ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("linked_account_id", sa.Uuid(), sa.ForeignKey("linked_accounts.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("object_type", sa.String(100), nullable=False),
        sa.Column("slug", sa.String(200), nullable=False),
        sa.Column("data_type", sa.String(50), server_default="string"),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("source", sa.String(100), nullable=True),
        sa.Column("remote_id", sa.String(300), nullable=True),
        sa.Column("status", sa.String(20), server_default="defined"),
        *_timestamps(),
        sa.UniqueConstraint(
            "linked_account_id", "object_type", "slug", "source",
            name="uq_attributes_account_object_slug_source",
        ),
    )
    op.create_table(
        "entities",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("resource_owner_id", sa.Uuid(), unique=True, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_table(
        "values",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("attribute_id", sa.Uuid(), sa.ForeignKey("attributes.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("entity_id", sa.Uuid(), sa.ForeignKey("entities.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("data", sa.JSON(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("attribute_id", "entity_id", name="uq_values_attribute_entity"),
    )
    op.create_table(
        "remote_data",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("resource_owner_id", sa.Uuid(), unique=True, nullable=False),
        sa.Column("format", sa.String(20), server_default="json"),
        sa.Column("data", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # ── CRM ─────────────────────────────────────────────────────────────────
    op.create_table(
        "crm_users",
        *_unified_columns(),
        sa.Column("name", sa.String(300), nullable=True),
        sa.Column("email", sa.String(300), nullable=True),
        sa.UniqueConstraint("remote_id", "connection_id", name="uq_crm_users_remote_connection"),
    )
    op.create_table(
        "crm_contacts",
        *_unified_columns(),
        sa.Column("first_name", sa.String(200), nullable=True),
        sa.Column("last_name", sa.String(200), nullable=True),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("crm_users.id", ondelete="SET NULL"), nullable=True),
        sa.UniqueConstraint("remote_id", "connection_id", name="uq_crm_contacts_remote_connection"),
    )
    op.create_table(
        "crm_email_addresses",
        *_sub_entity_columns("contact_id", "crm_contacts"),
        sa.Column("email_address", sa.String(300), nullable=True),
        sa.Column("email_address_type", sa.String(50), nullable=True),
    )
    op.create_table(
        "crm_phone_numbers",
        *_sub_entity_columns("contact_id", "crm_contacts"),
        sa.Column("phone_number", sa.String(100), nullable=True),
        sa.Column("phone_type", sa.String(50), nullable=True),
    )
    op.create_table(
        "crm_addresses",
        *_sub_entity_columns("contact_id", "crm_contacts"),
        sa.Column("street_1", sa.String(300), nullable=True),
        sa.Column("street_2", sa.String(300), nullable=True),
        sa.Column("city", sa.String(200), nullable=True),
        sa.Column("state", sa.String(200), nullable=True),
        sa.Column("postal_code", sa.String(50), nullable=True),
        sa.Column("country", sa.String(100), nullable=True),
        sa.Column("address_type", sa.String(50), nullable=True),
    )

    # ── Ticketing ───────────────────────────────────────────────────────────
    op.create_table(
        "ticketing_users",
        *_unified_columns(),
        sa.Column("name", sa.String(300), nullable=True),
        sa.Column("email_address", sa.String(300), nullable=True),
        sa.Column("teams", sa.JSON(), nullable=True),
        sa.UniqueConstraint("remote_id", "connection_id", name="uq_ticketing_users_remote_connection"),
    )
    op.create_table(
        "ticketing_teams",
        *_unified_columns(),
        sa.Column("name", sa.String(300), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.UniqueConstraint("remote_id", "connection_id", name="uq_ticketing_teams_remote_connection"),
    )
    op.create_table(
        "ticketing_tickets",
        *_unified_columns(),
        sa.Column("name", sa.String(500), nullable=True),
        sa.Column("status", sa.String(50), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("due_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("ticket_type", sa.String(50), nullable=True),
        sa.Column("priority", sa.String(50), nullable=True),
        sa.Column("parent_ticket", sa.Uuid(), nullable=True),
        sa.Column("assigned_to", sa.JSON(), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("remote_id", "connection_id", name="uq_ticketing_tickets_remote_connection"),
    )
    op.create_table(
        "ticketing_ticket_tags",
        *_sub_entity_columns("ticket_id", "ticketing_tickets"),
        sa.Column("name", sa.String(200), nullable=True),
    )
    op.create_table(
        "ticketing_attachments",
        *_unified_columns(),
        sa.Column("file_name", sa.String(500), nullable=True),
        sa.Column("file_url", sa.Text(), nullable=True),
        sa.Column("uploader", sa.Uuid(), nullable=True),
        sa.Column("ticket_id", sa.Uuid(), nullable=True),
        sa.UniqueConstraint(
            "remote_id", "connection_id", name="uq_ticketing_attachments_remote_connection"
        ),
    )


def downgrade() -> None:
    for table in (
        "ticketing_attachments",
        "ticketing_ticket_tags",
        "ticketing_tickets",
        "ticketing_teams",
        "ticketing_users",
        "crm_addresses",
        "crm_phone_numbers",
        "crm_email_addresses",
        "crm_contacts",
        "crm_users",
        "remote_data",
        "values",
        "entities",
        "attributes",
        "connections",
        "linked_accounts",
        "projects",
        "tenants",
    ):
        op.drop_table(table)
