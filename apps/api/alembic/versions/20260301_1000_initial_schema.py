"""Initial schema (users, organizations, members, customers, projects, messages, media)

Revision ID: 20260301_1000
Revises:
Create Date: 2026-03-01

"""

from __future__ import annotations

from alembic import op

revision = "20260301_1000"
down_revision = None
branch_labels = None
depends_on = None

_ENUMS: dict[str, tuple[str, ...]] = {
    "account_type": ("AGENT", "PROVIDER", "COMPANY"),
    "org_type": ("PERSONAL", "TEAM", "COMPANY"),
    "org_role": ("OWNER", "ADMIN", "TECHNICIAN", "EDITOR", "PROJECT_MANAGER", "AGENT"),
    "project_status": ("BOOKED", "SHOOTING", "EDITING", "DELIVERED", "CANCELLED"),
    "client_approval_status": ("PENDING", "APPROVED", "CHANGES_REQUESTED"),
    "project_chat_channel": ("TEAM", "CUSTOMER"),
    "media_type": ("PHOTO", "VIDEO", "VIRTUAL_TOUR", "FLOORPLAN"),
    "inquiry_status": ("NEW", "CONTACTED", "CONVERTED_TO_PROJECT", "CLOSED"),
}


def upgrade() -> None:
    op.execute("CREATE EXTENSION IF NOT EXISTS pgcrypto;")
    op.execute("CREATE EXTENSION IF NOT EXISTS citext;")

    for name, values in _ENUMS.items():
        labels = ",".join(f"'{v}'" for v in values)
        op.execute(
            f"""
DO $$ BEGIN
  CREATE TYPE {name} AS ENUM ({labels});
EXCEPTION WHEN duplicate_object THEN NULL; END $$;
"""
        )

    op.execute(
        """
CREATE TABLE IF NOT EXISTS users (
  id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
  email citext NOT NULL,
  display_name text,
  account_type account_type NOT NULL,
  external_auth_id text,
  avatar_url text,
  calendar_grant_id text,
  is_disabled boolean NOT NULL DEFAULT false,
  created_at timestamptz NOT NULL DEFAULT now()
);
"""
    )
    op.execute("CREATE UNIQUE INDEX IF NOT EXISTS users_email_uq ON users (email);")
    op.execute(
        """
CREATE UNIQUE INDEX IF NOT EXISTS users_external_auth_id_uq
  ON users (external_auth_id)
  WHERE external_auth_id IS NOT NULL;
"""
    )

    op.execute(
        """
CREATE TABLE IF NOT EXISTS organizations (
  id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
  name text NOT NULL,
  type org_type NOT NULL,
  personal_owner_user_id uuid REFERENCES users(id) ON DELETE CASCADE,

  legal_name text,
  slug text,
  logo_url text,
  website_url text,
  phone text,
  primary_email citext,
  address_line1 text,
  address_line2 text,
  city text,
  region text,
  postal_code text,
  country_code varchar(2),
  timezone text,
  service_area text,

  created_at timestamptz NOT NULL DEFAULT now(),
  updated_at timestamptz NOT NULL DEFAULT now(),

  CONSTRAINT organizations_personal_owner_ck
    CHECK ((type = 'PERSONAL') = (personal_owner_user_id IS NOT NULL))
);
"""
    )
    # One PERSONAL organization per user.
    op.execute(
        """
CREATE UNIQUE INDEX IF NOT EXISTS organizations_personal_owner_uq
  ON organizations (personal_owner_user_id)
  WHERE personal_owner_user_id IS NOT NULL;
"""
    )
    op.execute(
        """
CREATE UNIQUE INDEX IF NOT EXISTS organizations_slug_uq
  ON organizations (slug)
  WHERE slug IS NOT NULL;
"""
    )

    op.execute(
        """
CREATE TABLE IF NOT EXISTS organization_members (
  id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
  organization_id uuid NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
  user_id uuid NOT NULL REFERENCES users(id) ON DELETE CASCADE,
  role org_role NOT NULL,
  created_at timestamptz NOT NULL DEFAULT now(),
  UNIQUE (organization_id, user_id)
);
"""
    )
    # At most one OWNER per organization; ownership transfer demotes before it promotes.
    op.execute(
        """
CREATE UNIQUE INDEX IF NOT EXISTS organization_members_single_owner_uq
  ON organization_members (organization_id)
  WHERE role = 'OWNER';
"""
    )
    op.execute(
        "CREATE INDEX IF NOT EXISTS organization_members_user_idx ON organization_members (user_id);"
    )

    op.execute(
        """
CREATE TABLE IF NOT EXISTS organization_customers (
  id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
  organization_id uuid NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
  user_id uuid REFERENCES users(id) ON DELETE SET NULL,
  name text NOT NULL,
  email citext,
  phone text,
  notes text,
  created_at timestamptz NOT NULL DEFAULT now(),
  updated_at timestamptz NOT NULL DEFAULT now()
);
"""
    )
    op.execute(
        "CREATE INDEX IF NOT EXISTS organization_customers_org_idx ON organization_customers (organization_id, created_at DESC);"
    )
    op.execute(
        """
CREATE UNIQUE INDEX IF NOT EXISTS organization_customers_user_uq
  ON organization_customers (organization_id, user_id)
  WHERE user_id IS NOT NULL;
"""
    )

    op.execute(
        """
CREATE TABLE IF NOT EXISTS invitations (
  id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
  organization_id uuid NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
  invited_by_user_id uuid REFERENCES users(id) ON DELETE SET NULL,
  email citext NOT NULL,
  role org_role NOT NULL,
  token text NOT NULL,
  accepted boolean NOT NULL DEFAULT false,
  accepted_at timestamptz,
  created_at timestamptz NOT NULL DEFAULT now(),
  UNIQUE (token)
);
"""
    )

    op.execute(
        """
CREATE TABLE IF NOT EXISTS projects (
  id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
  organization_id uuid NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
  customer_id uuid REFERENCES organization_customers(id) ON DELETE SET NULL,
  technician_id uuid REFERENCES users(id) ON DELETE SET NULL,
  editor_id uuid REFERENCES users(id) ON DELETE SET NULL,
  project_manager_id uuid REFERENCES users(id) ON DELETE SET NULL,

  status project_status NOT NULL DEFAULT 'BOOKED',

  address_line1 text,
  address_line2 text,
  city text,
  region text,
  postal_code text,
  notes text,
  scheduled_time timestamptz,

  delivery_token text,
  delivery_enabled_at timestamptz,
  client_approval_status client_approval_status NOT NULL DEFAULT 'PENDING',
  client_approved_at timestamptz,
  client_approved_by_id uuid REFERENCES users(id) ON DELETE SET NULL,

  created_at timestamptz NOT NULL DEFAULT now(),
  updated_at timestamptz NOT NULL DEFAULT now(),
  UNIQUE (delivery_token)
);
"""
    )
    op.execute(
        "CREATE INDEX IF NOT EXISTS projects_org_created_idx ON projects (organization_id, created_at DESC);"
    )
    op.execute("CREATE INDEX IF NOT EXISTS projects_customer_idx ON projects (customer_id);")
    op.execute(
        "CREATE INDEX IF NOT EXISTS projects_technician_idx ON projects (organization_id, technician_id);"
    )
    op.execute(
        "CREATE INDEX IF NOT EXISTS projects_editor_idx ON projects (organization_id, editor_id);"
    )
    op.execute(
        "CREATE INDEX IF NOT EXISTS projects_pm_idx ON projects (organization_id, project_manager_id);"
    )

    op.execute(
        """
CREATE TABLE IF NOT EXISTS project_messages (
  id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
  project_id uuid NOT NULL REFERENCES projects(id) ON DELETE CASCADE,
  user_id uuid NOT NULL REFERENCES users(id) ON DELETE CASCADE,
  channel project_chat_channel NOT NULL DEFAULT 'TEAM',
  thread_id uuid REFERENCES project_messages(id) ON DELETE CASCADE,
  content text NOT NULL,
  created_at timestamptz NOT NULL DEFAULT now()
);
"""
    )
    op.execute(
        "CREATE INDEX IF NOT EXISTS project_messages_project_idx ON project_messages (project_id, channel, created_at);"
    )

    op.execute(
        """
CREATE TABLE IF NOT EXISTS media (
  id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
  project_id uuid NOT NULL REFERENCES projects(id) ON DELETE CASCADE,
  uploaded_by_id uuid REFERENCES users(id) ON DELETE SET NULL,
  type media_type NOT NULL,
  storage_key text,
  cdn_url text,
  filename text NOT NULL,
  size_bytes bigint,
  created_at timestamptz NOT NULL DEFAULT now(),
  CONSTRAINT media_location_ck CHECK (storage_key IS NOT NULL OR cdn_url IS NOT NULL)
);
"""
    )
    op.execute("CREATE INDEX IF NOT EXISTS media_project_idx ON media (project_id, created_at DESC);")

    op.execute(
        """
CREATE TABLE IF NOT EXISTS calendar_events (
  id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
  project_id uuid NOT NULL REFERENCES projects(id) ON DELETE CASCADE,
  user_id uuid NOT NULL REFERENCES users(id) ON DELETE CASCADE,
  grant_id text NOT NULL,
  external_event_id text NOT NULL,
  created_at timestamptz NOT NULL DEFAULT now(),
  updated_at timestamptz NOT NULL DEFAULT now(),
  UNIQUE (project_id)
);
"""
    )

    op.execute(
        """
CREATE TABLE IF NOT EXISTS inquiries (
  id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
  organization_id uuid NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
  name text NOT NULL,
  email text NOT NULL,
  phone text,
  address text,
  message text,
  status inquiry_status NOT NULL DEFAULT 'NEW',
  converted_project_id uuid REFERENCES projects(id) ON DELETE SET NULL,
  created_at timestamptz NOT NULL DEFAULT now(),
  updated_at timestamptz NOT NULL DEFAULT now()
);
"""
    )
    op.execute(
        "CREATE INDEX IF NOT EXISTS inquiries_org_created_idx ON inquiries (organization_id, created_at DESC);"
    )


def downgrade() -> None:
    # No downgrade support (early-stage schema; breaking changes allowed)
    pass
