"""Download artifact worker: recover stuck rows, claim one, build the zip.

Claiming is a peek followed by a conditional UPDATE keyed on the primary key
and guarded by ``status = 'PENDING' AND worker_token IS NULL``. Postgres
re-checks that guard after any competing writer commits, so at most one
worker ever owns a row. A lost race is not an error: the poll returns
``None`` and the next tick picks another candidate.
"""

from __future__ import annotations

import io
import logging
import re
import time
import uuid
import zipfile
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from uuid import UUID

import httpx
from sqlalchemy import select, text
from sqlalchemy.orm import Session

from mediaops.core.config import Settings, get_settings
from mediaops.core.metrics import observe_artifact_build, observe_artifact_event
from mediaops.core.otel import worker_span
from mediaops.db.session import session_scope
from mediaops.models.artifacts import DownloadArtifact
from mediaops.models.enums import DownloadArtifactType, MediaType
from mediaops.models.identity import Organization
from mediaops.models.projects import Media, Project
from mediaops.storage.base import BlobStore, BlobStoreError
from mediaops.storage.factory import artifact_key, build_blob_store

logger = logging.getLogger("mediaops.worker")

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9._-]")


class ArtifactRejected(Exception):
    """Guardrail violation; the artifact fails without retry."""


class ArtifactGenerationError(Exception):
    """Transient failure; the artifact goes back to PENDING if retries remain."""


@dataclass(frozen=True)
class RecoveryResult:
    requeued: list[UUID]
    failed: list[UUID]

    @property
    def count(self) -> int:
        return len(self.requeued) + len(self.failed)


@dataclass(frozen=True)
class ArtifactPollResult:
    recovered: int
    processed: int


def new_worker_token(worker_id: str) -> str:
    return f"{worker_id}:{uuid.uuid4()}"


def recover_stuck_artifacts(
    *, session: Session, timeout_seconds: int, max_retries: int, now: datetime | None = None
) -> RecoveryResult:
    cutoff = (now or datetime.now(UTC)) - timedelta(seconds=timeout_seconds)

    requeued = session.execute(
        text(
            """
            UPDATE download_artifacts
            SET status = 'PENDING',
                worker_token = NULL,
                processing_started_at = NULL,
                retry_count = retry_count + 1,
                error = 'Recovered from stuck state (attempt '
                        || CAST(retry_count + 1 AS text) || '/' || CAST(:max_retries AS text) || ')',
                updated_at = now()
            WHERE status = 'GENERATING'
              AND processing_started_at < :cutoff
              AND retry_count < :max_retries
            RETURNING id
            """
        ),
        {"cutoff": cutoff, "max_retries": max_retries},
    ).scalars()
    requeued_ids = [UUID(str(v)) for v in requeued]

    failed = session.execute(
        text(
            """
            UPDATE download_artifacts
            SET status = 'FAILED',
                worker_token = NULL,
                processing_started_at = NULL,
                error = 'Generation timed out after ' || CAST(:max_retries AS text) || ' attempts',
                updated_at = now()
            WHERE status = 'GENERATING'
              AND processing_started_at < :cutoff
              AND retry_count >= :max_retries
            RETURNING id
            """
        ),
        {"cutoff": cutoff, "max_retries": max_retries},
    ).scalars()
    failed_ids = [UUID(str(v)) for v in failed]

    for artifact_id in requeued_ids:
        logger.warning("artifact %s recovered from stuck GENERATING state", artifact_id)
    for artifact_id in failed_ids:
        logger.error("artifact %s failed after %s recovery attempts", artifact_id, max_retries)
    observe_artifact_event("recovered", count=len(requeued_ids))
    observe_artifact_event("recovery_failed", count=len(failed_ids))
    return RecoveryResult(requeued=requeued_ids, failed=failed_ids)


def claim_next_artifact(*, session: Session, worker_token: str) -> DownloadArtifact | None:
    candidate = session.execute(
        text(
            """
            SELECT id
            FROM download_artifacts
            WHERE status = 'PENDING'
              AND worker_token IS NULL
            ORDER BY created_at ASC, id ASC
            LIMIT 1
            """
        )
    ).scalar()
    if candidate is None:
        return None

    res = session.execute(
        text(
            """
            UPDATE download_artifacts
            SET status = 'GENERATING',
                worker_token = :worker_token,
                processing_started_at = now(),
                updated_at = now()
            WHERE id = :id
              AND status = 'PENDING'
              AND worker_token IS NULL
            """
        ),
        {"id": str(candidate), "worker_token": worker_token},
    )
    if res.rowcount == 0:
        observe_artifact_event("claim_lost")
        return None

    observe_artifact_event("claimed")
    return (
        session.execute(
            select(DownloadArtifact)
            .where(DownloadArtifact.id == UUID(str(candidate)))
            .execution_options(populate_existing=True)
        )
        .scalars()
        .one()
    )


def _finish(
    *,
    session: Session,
    artifact_id: UUID,
    worker_token: str,
    status: str,
    error: str | None,
    retry_increment: int = 0,
    storage_key: str | None = None,
    filename: str | None = None,
    size_bytes: int | None = None,
) -> bool:
    res = session.execute(
        text(
            """
            UPDATE download_artifacts
            SET status = CAST(:status AS download_artifact_status),
                worker_token = NULL,
                processing_started_at = NULL,
                retry_count = retry_count + :retry_increment,
                error = :error,
                storage_key = COALESCE(:storage_key, storage_key),
                filename = COALESCE(:filename, filename),
                size_bytes = COALESCE(:size_bytes, size_bytes),
                updated_at = now()
            WHERE id = :id
              AND status = 'GENERATING'
              AND worker_token = :worker_token
            """
        ),
        {
            "id": str(artifact_id),
            "worker_token": worker_token,
            "status": status,
            "error": error,
            "retry_increment": retry_increment,
            "storage_key": storage_key,
            "filename": filename,
            "size_bytes": size_bytes,
        },
    )
    if res.rowcount == 0:
        logger.warning("lost claim on artifact %s; another worker took over", artifact_id)
        return False
    return True


def select_media(media: list[Media], artifact_type: DownloadArtifactType) -> list[Media]:
    if artifact_type == DownloadArtifactType.PHOTOS_ONLY:
        return [m for m in media if m.type == MediaType.PHOTO]
    if artifact_type == DownloadArtifactType.VIDEOS_ONLY:
        return [m for m in media if m.type == MediaType.VIDEO]
    return list(media)


def check_guardrails(media: list[Media], *, max_files: int, max_bytes: int) -> None:
    if not media:
        raise ArtifactRejected("No media available for download")
    if len(media) > max_files:
        raise ArtifactRejected(
            f"Too many files ({len(media)}). Maximum allowed is {max_files} files per download."
        )
    estimated = sum(m.size_bytes or 0 for m in media)
    if estimated > max_bytes:
        raise ArtifactRejected(
            f"Total size too large (~{estimated // (1024 * 1024)}MB). "
            f"Maximum allowed is {max_bytes // (1024 * 1024)}MB per download."
        )


def fetch_url_with_retry(
    client: httpx.Client, url: str, *, retries: int, backoff_seconds: float = 1.0
) -> bytes | None:
    for attempt in range(retries + 1):
        try:
            res = client.get(url)
        except httpx.TransportError as e:
            if attempt >= retries:
                logger.warning("giving up on %s: %s", url, e)
                return None
        else:
            if res.status_code < 400:
                return res.content
            if res.status_code < 500 or attempt >= retries:
                logger.warning("fetch %s failed: HTTP %s", url, res.status_code)
                return None
        time.sleep(backoff_seconds * (2**attempt))
    return None


def _read_media(
    m: Media, *, client: httpx.Client, blob_store: BlobStore, retries: int
) -> bytes | None:
    if m.storage_key:
        try:
            return blob_store.get_bytes(key=m.storage_key)
        except BlobStoreError as e:
            if not m.cdn_url:
                logger.warning("media %s unreadable from blob store: %s", m.id, e)
                return None
    if m.cdn_url:
        return fetch_url_with_retry(client, m.cdn_url, retries=retries)
    return None


def _unique_name(name: str, used: set[str]) -> str:
    safe = _UNSAFE_CHARS.sub("_", name) or "file"
    candidate = safe
    stem, dot, ext = safe.rpartition(".")
    n = 1
    while candidate in used:
        candidate = f"{stem}-{n}.{ext}" if dot and stem else f"{safe}-{n}"
        n += 1
    used.add(candidate)
    return candidate


def build_zip(files: list[tuple[str, bytes]]) -> bytes:
    buf = io.BytesIO()
    used: set[str] = set()
    with zipfile.ZipFile(buf, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=5) as zf:
        for name, data in files:
            zf.writestr(_unique_name(name, used), data)
    return buf.getvalue()


def artifact_filename(project: Project, org_name: str | None) -> str:
    parts = [p for p in (project.address_line1, project.city, org_name) if p]
    base = _UNSAFE_CHARS.sub("_", "_".join(parts)) if parts else str(project.id)
    return f"{base}.zip"


def process_artifact(
    *,
    session: Session,
    artifact: DownloadArtifact,
    worker_token: str,
    settings: Settings,
    blob_store: BlobStore | None = None,
    http_client: httpx.Client | None = None,
) -> str:
    """Generate the zip for a claimed artifact; returns the resulting status."""
    started = time.monotonic()
    project = session.get(Project, artifact.project_id)
    if project is None:
        _finish(
            session=session,
            artifact_id=artifact.id,
            worker_token=worker_token,
            status="FAILED",
            error="Project no longer exists",
        )
        observe_artifact_event("failed")
        return "FAILED"

    media = list(
        session.execute(
            select(Media)
            .where(Media.project_id == project.id)
            .order_by(Media.created_at.desc(), Media.id.asc())
        ).scalars()
    )
    media = select_media(media, artifact.type)
    store = blob_store or build_blob_store()
    client = http_client or httpx.Client(timeout=30.0, follow_redirects=True)

    try:
        check_guardrails(
            media,
            max_files=settings.ARTIFACT_MAX_MEDIA_FILES,
            max_bytes=settings.ARTIFACT_MAX_ZIP_BYTES,
        )

        files: list[tuple[str, bytes]] = []
        for m in media:
            data = _read_media(
                m, client=client, blob_store=store, retries=settings.ARTIFACT_FETCH_RETRIES
            )
            if data is not None:
                files.append((m.filename, data))
        if not files:
            raise ArtifactGenerationError("No media files could be downloaded")
        logger.info(
            "artifact %s: fetched %s/%s files", artifact.id, len(files), len(media)
        )

        payload = build_zip(files)
        if len(payload) > settings.ARTIFACT_MAX_ZIP_BYTES:
            raise ArtifactRejected("Archive exceeds the maximum download size")

        org = session.get(Organization, project.organization_id)
        filename = artifact_filename(project, org.name if org else None)
        key = artifact_key(project_id=project.id, artifact_id=artifact.id)
        try:
            stored = store.put_bytes(key=key, data=payload, content_type="application/zip")
        except BlobStoreError as e:
            raise ArtifactGenerationError(f"Upload failed: {e}") from e
    except ArtifactRejected as e:
        logger.warning("artifact %s rejected: %s", artifact.id, e)
        _finish(
            session=session,
            artifact_id=artifact.id,
            worker_token=worker_token,
            status="FAILED",
            error=str(e),
        )
        observe_artifact_event("failed")
        return "FAILED"
    except ArtifactGenerationError as e:
        return _retry_or_fail(
            session=session, artifact=artifact, worker_token=worker_token, error=str(e), settings=settings
        )
    finally:
        if http_client is None:
            client.close()

    if _finish(
        session=session,
        artifact_id=artifact.id,
        worker_token=worker_token,
        status="READY",
        error=None,
        storage_key=stored.storage_key,
        filename=filename,
        size_bytes=stored.size_bytes,
    ):
        observe_artifact_event("completed")
        observe_artifact_build(
            duration_seconds=time.monotonic() - started, zip_bytes=stored.size_bytes
        )
        logger.info("artifact %s ready (%s bytes)", artifact.id, stored.size_bytes)
        return "READY"
    return "GENERATING"


def _retry_or_fail(
    *,
    session: Session,
    artifact: DownloadArtifact,
    worker_token: str,
    error: str,
    settings: Settings,
) -> str:
    if artifact.retry_count + 1 < settings.ARTIFACT_MAX_RETRIES:
        logger.warning("artifact %s will retry: %s", artifact.id, error)
        _finish(
            session=session,
            artifact_id=artifact.id,
            worker_token=worker_token,
            status="PENDING",
            error=f"Retrying: {error}",
            retry_increment=1,
        )
        observe_artifact_event("retried")
        return "PENDING"

    logger.error("artifact %s failed: %s", artifact.id, error)
    _finish(
        session=session,
        artifact_id=artifact.id,
        worker_token=worker_token,
        status="FAILED",
        error=error,
    )
    observe_artifact_event("failed")
    return "FAILED"


def poll_artifacts(*, worker_id: str, settings: Settings | None = None) -> ArtifactPollResult:
    """One tick: recovery, then at most one claim. Each phase commits on its own."""
    settings = settings or get_settings()
    with session_scope() as session:
        recovered = recover_stuck_artifacts(
            session=session,
            timeout_seconds=settings.ARTIFACT_STUCK_TIMEOUT_SECONDS,
            max_retries=settings.ARTIFACT_MAX_RETRIES,
        )
        session.commit()

        worker_token = new_worker_token(worker_id)
        artifact = claim_next_artifact(session=session, worker_token=worker_token)
        session.commit()
        if artifact is None:
            return ArtifactPollResult(recovered=recovered.count, processed=0)

        logger.info("artifact %s claimed by %s", artifact.id, worker_token)
        try:
            with worker_span(
                "artifact_build", artifact_id=str(artifact.id), artifact_type=artifact.type.value
            ):
                process_artifact(
                    session=session, artifact=artifact, worker_token=worker_token, settings=settings
                )
            session.commit()
        except Exception:
            # Left GENERATING; recovery requeues it after the stuck timeout.
            session.rollback()
            logger.exception("artifact %s processing crashed", artifact.id)
        return ArtifactPollResult(recovered=recovered.count, processed=1)
