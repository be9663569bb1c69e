"""timeline_change_notifications

Revision ID: crm_002
Revises: crm_001
Create Date: 2025-11-01 00:00:00.000000

Publishes row changes on the timeline tables as NOTIFY messages on
``crm_<table>_changes``. The payload references the row instead of
carrying it, since NOTIFY rejects payloads of 8000 bytes or more::

    {"type": TG_OP, "table": TG_TABLE_NAME, "id": ..., "client_id": ..., "project_id": ...}

Tables without a ``client_id`` or ``project_id`` column publish ``null``.
"""

from __future__ import annotations

from alembic import op

# revision identifiers, used by Alembic.
revision = "crm_002"
down_revision = "crm_001"
branch_labels = None
depends_on = None

_TABLES = ("activities", "touchpoints", "tasks", "donations")


def upgrade() -> None:
    op.execute("""
        CREATE OR REPLACE FUNCTION crm_notify_change()
        RETURNS trigger
        LANGUAGE plpgsql
        AS $$
        DECLARE
            changed RECORD;
            fields jsonb;
        BEGIN
            IF TG_OP = 'DELETE' THEN
                changed := OLD;
            ELSE
                changed := NEW;
            END IF;
            fields := to_jsonb(changed);
            PERFORM pg_notify(
                'crm_' || TG_TABLE_NAME || '_changes',
                json_build_object(
                    'type', TG_OP,
                    'table', TG_TABLE_NAME,
                    'id', fields -> 'id',
                    'client_id', fields -> 'client_id',
                    'project_id', fields -> 'project_id'
                )::text
            );
            RETURN NULL;
        END;
        $$;
    """)

    for table in _TABLES:
        op.execute(f"DROP TRIGGER IF EXISTS trg_{table}_notify ON {table}")
        op.execute(f"""
            CREATE TRIGGER trg_{table}_notify
            AFTER INSERT OR UPDATE OR DELETE ON {table}
            FOR EACH ROW
            EXECUTE FUNCTION crm_notify_change()
        """)


def downgrade() -> None:
    for table in _TABLES:
        op.execute(f"DROP TRIGGER IF EXISTS trg_{table}_notify ON {table}")
    op.execute("DROP FUNCTION IF EXISTS crm_notify_change")
