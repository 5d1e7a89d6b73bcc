"""Auth sessions, audit, bg jobs, download artifacts, notifications, availability

Revision ID: 20260301_1100
Revises: 20260301_1000
Create Date: 2026-03-01

"""

from __future__ import annotations

from alembic import op

revision = "20260301_1100"
down_revision = "20260301_1000"
branch_labels = None
depends_on = None

_ENUMS: dict[str, tuple[str, ...]] = {
    "download_artifact_type": ("ALL", "PHOTOS_ONLY", "VIDEOS_ONLY"),
    "download_artifact_status": ("PENDING", "GENERATING", "READY", "FAILED"),
    "notification_type": (
        "PROJECT_ASSIGNED",
        "PROJECT_DELIVERED",
        "PROJECT_APPROVED",
        "CHANGES_REQUESTED",
        "NEW_MESSAGE",
    ),
    "day_of_week": (
        "MONDAY",
        "TUESDAY",
        "WEDNESDAY",
        "THURSDAY",
        "FRIDAY",
        "SATURDAY",
        "SUNDAY",
    ),
    "job_status": ("queued", "running", "succeeded", "failed", "cancelled"),
    "job_type": ("calendar_sync", "calendar_remove", "delivery_email", "media_blob_delete"),
}

_UPDATED_AT_TABLES = (
    "organizations",
    "organization_customers",
    "projects",
    "calendar_events",
    "inquiries",
    "bg_jobs",
    "download_artifacts",
    "user_availability_status",
)


def upgrade() -> None:
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
CREATE TABLE IF NOT EXISTS auth_sessions (
  id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
  user_id uuid NOT NULL REFERENCES users(id) ON DELETE CASCADE,
  active_organization_id uuid NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
  token_hash bytea NOT NULL,
  user_agent text,
  created_at timestamptz NOT NULL DEFAULT now(),
  last_seen_at timestamptz NOT NULL DEFAULT now(),
  expires_at timestamptz NOT NULL,
  revoked_at timestamptz,
  revoked_reason text,
  UNIQUE (token_hash)
);
"""
    )
    op.execute("CREATE INDEX IF NOT EXISTS auth_sessions_user_idx ON auth_sessions (user_id);")

    op.execute(
        """
CREATE TABLE IF NOT EXISTS audit_events (
  id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
  organization_id uuid NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
  actor_user_id uuid REFERENCES users(id) ON DELETE SET NULL,
  project_id uuid,
  event_type text NOT NULL,
  event_data jsonb NOT NULL DEFAULT '{}'::jsonb,
  created_at timestamptz NOT NULL DEFAULT now()
);
"""
    )
    op.execute(
        "CREATE INDEX IF NOT EXISTS audit_events_org_created_idx ON audit_events (organization_id, created_at DESC);"
    )
    op.execute(
        """
CREATE INDEX IF NOT EXISTS audit_events_project_idx
  ON audit_events (project_id, created_at DESC)
  WHERE project_id IS NOT NULL;
"""
    )

    op.execute(
        """
CREATE TABLE IF NOT EXISTS bg_jobs (
  id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
  organization_id uuid REFERENCES organizations(id) ON DELETE CASCADE,
  type job_type NOT NULL,
  status job_status NOT NULL DEFAULT 'queued',
  run_at timestamptz NOT NULL DEFAULT now(),
  attempts integer NOT NULL DEFAULT 0,
  max_attempts integer NOT NULL DEFAULT 5,
  locked_at timestamptz,
  locked_by text,
  last_error text,
  dedupe_key text,
  payload jsonb NOT NULL DEFAULT '{}'::jsonb,
  created_at timestamptz NOT NULL DEFAULT now(),
  updated_at timestamptz NOT NULL DEFAULT now()
);
"""
    )
    op.execute(
        """
CREATE INDEX IF NOT EXISTS bg_jobs_queued_run_at_idx
  ON bg_jobs (run_at, created_at)
  WHERE status = 'queued';
"""
    )
    op.execute(
        """
CREATE UNIQUE INDEX IF NOT EXISTS bg_jobs_dedupe_uq
  ON bg_jobs (organization_id, type, dedupe_key)
  WHERE dedupe_key IS NOT NULL;
"""
    )

    op.execute(
        """
CREATE TABLE IF NOT EXISTS download_artifacts (
  id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
  project_id uuid NOT NULL REFERENCES projects(id) ON DELETE CASCADE,
  requested_by_id uuid REFERENCES users(id) ON DELETE SET NULL,
  type download_artifact_type NOT NULL DEFAULT 'ALL',
  status download_artifact_status NOT NULL DEFAULT 'PENDING',
  worker_token text,
  processing_started_at timestamptz,
  retry_count integer NOT NULL DEFAULT 0,
  error text,
  storage_key text,
  filename text,
  size_bytes bigint,
  created_at timestamptz NOT NULL DEFAULT now(),
  updated_at timestamptz NOT NULL DEFAULT now(),
  CONSTRAINT download_artifacts_claim_ck
    CHECK (status <> 'GENERATING' OR worker_token IS NOT NULL)
);
"""
    )
    op.execute(
        """
CREATE INDEX IF NOT EXISTS download_artifacts_pending_idx
  ON download_artifacts (created_at)
  WHERE status = 'PENDING' AND worker_token IS NULL;
"""
    )
    op.execute(
        """
CREATE INDEX IF NOT EXISTS download_artifacts_generating_idx
  ON download_artifacts (processing_started_at)
  WHERE status = 'GENERATING';
"""
    )
    op.execute(
        "CREATE INDEX IF NOT EXISTS download_artifacts_project_idx ON download_artifacts (project_id, created_at DESC);"
    )

    op.execute(
        """
CREATE TABLE IF NOT EXISTS notifications (
  id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
  user_id uuid NOT NULL REFERENCES users(id) ON DELETE CASCADE,
  organization_id uuid NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
  project_id uuid REFERENCES projects(id) ON DELETE CASCADE,
  type notification_type NOT NULL,
  payload jsonb NOT NULL DEFAULT '{}'::jsonb,
  read_at timestamptz,
  created_at timestamptz NOT NULL DEFAULT now()
);
"""
    )
    op.execute(
        "CREATE INDEX IF NOT EXISTS notifications_user_created_idx ON notifications (user_id, created_at DESC);"
    )
    op.execute(
        """
CREATE INDEX IF NOT EXISTS notifications_dedupe_idx
  ON notifications (user_id, project_id, type);
"""
    )

    op.execute(
        """
CREATE TABLE IF NOT EXISTS user_availability_status (
  user_id uuid PRIMARY KEY REFERENCES users(id) ON DELETE CASCADE,
  is_available boolean NOT NULL DEFAULT true,
  availability_note text,
  auto_decline_bookings boolean NOT NULL DEFAULT false,
  updated_at timestamptz NOT NULL DEFAULT now()
);
"""
    )
    op.execute(
        """
CREATE TABLE IF NOT EXISTS user_work_hours (
  id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
  user_id uuid NOT NULL REFERENCES users(id) ON DELETE CASCADE,
  day_of_week day_of_week NOT NULL,
  is_enabled boolean NOT NULL DEFAULT true,
  start_time varchar(5) NOT NULL,
  end_time varchar(5) NOT NULL,
  UNIQUE (user_id, day_of_week),
  CONSTRAINT user_work_hours_format_ck
    CHECK (start_time ~ '^[0-2][0-9]:[0-5][0-9]$' AND end_time ~ '^[0-2][0-9]:[0-5][0-9]$')
);
"""
    )

    op.execute(
        """
CREATE OR REPLACE FUNCTION set_updated_at() RETURNS trigger AS $$
BEGIN
  NEW.updated_at = now();
  RETURN NEW;
END;
$$ LANGUAGE plpgsql;
"""
    )
    for table in _UPDATED_AT_TABLES:
        op.execute(
            f"""
DO $$ BEGIN
  CREATE TRIGGER {table}_set_updated_at
    BEFORE UPDATE ON {table}
    FOR EACH ROW EXECUTE FUNCTION set_updated_at();
EXCEPTION WHEN duplicate_object THEN NULL; END $$;
"""
        )


def downgrade() -> None:
    # No downgrade support (early-stage schema; breaking changes allowed)
    pass
