"""create_crm_tables

Revision ID: crm_001
Revises:
Create Date: 2025-11-01 00:00:00.000000

"""

from __future__ import annotations

from alembic import op

# revision identifiers, used by Alembic.
revision = "crm_001"
down_revision = None
branch_labels = ("crm",)
depends_on = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE IF NOT EXISTS state (
            key TEXT PRIMARY KEY,
            value JSONB NOT NULL DEFAULT '{}',
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    """)

    op.execute("""
        CREATE TABLE IF NOT EXISTS team_members (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            name TEXT NOT NULL,
            email TEXT,
            role TEXT,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    """)

    op.execute("""
        CREATE TABLE IF NOT EXISTS clients (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            external_id TEXT UNIQUE,
            name TEXT NOT NULL,
            contact_person TEXT,
            email TEXT,
            phone TEXT,
            location TEXT,
            notes TEXT NOT NULL DEFAULT '',
            is_active BOOLEAN NOT NULL DEFAULT true,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    """)

    op.execute("""
        CREATE TABLE IF NOT EXISTS projects (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            external_id TEXT UNIQUE,
            name TEXT NOT NULL,
            description TEXT,
            client_id UUID REFERENCES clients(id) ON DELETE SET NULL,
            status TEXT NOT NULL DEFAULT 'Planning',
            start_date DATE,
            end_date DATE,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS idx_projects_client ON projects (client_id)")

    op.execute("""
        CREATE TABLE IF NOT EXISTS cases (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            external_id TEXT UNIQUE,
            title TEXT NOT NULL,
            description TEXT,
            client_id UUID REFERENCES clients(id) ON DELETE SET NULL,
            assigned_to_id UUID REFERENCES team_members(id) ON DELETE SET NULL,
            status TEXT NOT NULL DEFAULT 'New',
            priority TEXT NOT NULL DEFAULT 'Medium',
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    """)

    op.execute("""
        CREATE TABLE IF NOT EXISTS activities (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            type TEXT NOT NULL,
            title TEXT NOT NULL,
            notes TEXT,
            activity_date DATE NOT NULL,
            activity_time TIME,
            client_id UUID REFERENCES clients(id) ON DELETE SET NULL,
            project_id UUID REFERENCES projects(id) ON DELETE SET NULL,
            case_id UUID REFERENCES cases(id) ON DELETE SET NULL,
            created_by_id UUID REFERENCES team_members(id) ON DELETE SET NULL,
            status TEXT NOT NULL DEFAULT 'Scheduled',
            shared_with_client BOOLEAN NOT NULL DEFAULT false,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_activities_client_date
        ON activities (client_id, activity_date DESC)
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_activities_project_date
        ON activities (project_id, activity_date DESC)
    """)

    op.execute("""
        CREATE TABLE IF NOT EXISTS touchpoints (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            client_id UUID REFERENCES clients(id) ON DELETE CASCADE,
            donor_move_id UUID,
            touchpoint_type TEXT NOT NULL,
            direction TEXT,
            subject TEXT,
            description TEXT,
            touchpoint_date TIMESTAMPTZ NOT NULL DEFAULT now(),
            sentiment TEXT,
            engagement_level TEXT,
            recorded_by UUID REFERENCES team_members(id) ON DELETE SET NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_touchpoints_client_date
        ON touchpoints (client_id, touchpoint_date DESC)
    """)

    op.execute("""
        CREATE TABLE IF NOT EXISTS tasks (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            external_id TEXT UNIQUE,
            project_id UUID NOT NULL REFERENCES projects(id) ON DELETE CASCADE,
            title TEXT,
            description TEXT NOT NULL,
            notes TEXT,
            team_member_id UUID REFERENCES team_members(id) ON DELETE SET NULL,
            status TEXT NOT NULL DEFAULT 'To Do',
            priority TEXT,
            phase TEXT,
            due_date DATE,
            shared_with_client BOOLEAN NOT NULL DEFAULT false,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_tasks_project_due
        ON tasks (project_id, due_date DESC)
    """)

    op.execute("""
        CREATE TABLE IF NOT EXISTS donations (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            external_id TEXT UNIQUE,
            donor_name TEXT,
            client_id UUID REFERENCES clients(id) ON DELETE SET NULL,
            amount NUMERIC(12, 2) NOT NULL,
            donation_date DATE NOT NULL,
            campaign TEXT,
            notes TEXT,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_donations_client_date
        ON donations (client_id, donation_date DESC)
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS donations")
    op.execute("DROP TABLE IF EXISTS tasks")
    op.execute("DROP TABLE IF EXISTS touchpoints")
    op.execute("DROP TABLE IF EXISTS activities")
    op.execute("DROP TABLE IF EXISTS cases")
    op.execute("DROP TABLE IF EXISTS projects")
    op.execute("DROP TABLE IF EXISTS clients")
    op.execute("DROP TABLE IF EXISTS team_members")
    op.execute("DROP TABLE IF EXISTS state")
