"""Attendance mirror — per-event attendee files committed to a git working tree.

Layout of the mirror repository::

    events/
      event-<id>/
        README.md       written when the event is created, retitled by refreshes
        attendees.md    rewritten on every RSVP change for the event

The mirror is derived from the ledger and is never authoritative. Every
public method swallows and logs its own failures: a broken mirror can leave
a stale file behind but can never fail the request that triggered it.

Refreshes re-read the whole attendee list inside the repository lock, so
whichever refresh runs last writes the ledger's latest committed state, no
matter in which order concurrent refreshes were dispatched.
"""
import logging
import os
import subprocess
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Callable, Optional, Sequence

import pytz
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from rsvp_app.config import Settings
from rsvp_app.database import session_scope
from rsvp_app.errors import MirrorError
from rsvp_app.models.rsvp import RSVPStatus
from rsvp_app.services import rsvp_service

logger = logging.getLogger(__name__)

EVENTS_DIR = "events"
README_NAME = "README.md"
ATTENDEES_NAME = "attendees.md"


def event_dir_name(event_id: int) -> str:
    return f"event-{event_id}"


def _cell(value) -> str:
    """Markdown table cell: empty for missing values, pipes and newlines escaped."""
    if value is None or value == "":
        return ""
    text = str(value).replace("\r\n", " ").replace("\n", " ")
    return text.replace("|", "\\|")


def _format_time(value: datetime, tz) -> str:
    if value.tzinfo is None:
        # SQLite hands back naive values; they are stored as UTC.
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(tz).strftime("%Y-%m-%d %H:%M:%S %Z")


def render_attendance(event_id: int, title: str, attendees: Sequence, tz_name: str = "UTC") -> str:
    """Deterministic Markdown rendering of an event's attendee list.

    ``attendees`` must already be ordered by submission time. The output has
    no wall-clock content, so equal input always renders to equal bytes.
    """
    tz = pytz.timezone(tz_name)
    counts = {s: 0 for s in RSVPStatus}
    plus_ones = 0
    for a in attendees:
        counts[RSVPStatus(a.status)] += 1
        if a.plus_one:
            plus_ones += 1

    lines = [
        f"# {title}",
        "",
        f"Event ID: {event_id}",
        "",
        "## Summary",
        "",
        f"- Total responses: {len(attendees)}",
    ]
    lines.extend(f"- {s.value.capitalize()}: {counts[s]}" for s in RSVPStatus)
    lines.append(f"- Plus-ones: {plus_ones}")
    lines.extend(["", "## Attendees", ""])

    if not attendees:
        lines.append("_No responses yet._")
    else:
        lines.append("| # | Name | Type | Email | Status | Dietary | Plus-one | Notes | Submitted |")
        lines.append("|---|------|------|-------|--------|---------|----------|-------|-----------|")
        for n, a in enumerate(attendees, start=1):
            plus_one = ""
            if a.plus_one:
                plus_one = "yes" + (f" ({_cell(a.plus_one_name)})" if a.plus_one_name else "")
            lines.append(
                "| {n} | {name} | {kind} | {email} | {status} | {dietary} | {plus_one} | {notes} | {created} |".format(
                    n=n,
                    name=_cell(a.display_name),
                    kind=a.kind,
                    email=_cell(a.email),
                    status=RSVPStatus(a.status).value,
                    dietary=_cell(a.dietary_restrictions),
                    plus_one=plus_one,
                    notes=_cell(a.notes),
                    created=_format_time(a.created_at, tz),
                )
            )
    return "\n".join(lines) + "\n"


class AttendanceMirror:
    """Writes attendee snapshots into a git working tree, one commit per change."""

    def __init__(
        self,
        repo_path: str,
        session_factory: Callable[[], Session],
        git_user_name: str = "RSVP System",
        git_user_email: str = "rsvp@system.com",
        timeout: float = 30.0,
        workers: int = 2,
        tz_name: str = "UTC",
        enabled: bool = True,
    ) -> None:
        self.repo_path = os.path.abspath(repo_path)
        self.session_factory = session_factory
        self.git_user_name = git_user_name
        self.git_user_email = git_user_email
        self.timeout = timeout
        self.tz_name = tz_name
        self.enabled = enabled
        # git is not safe against concurrent writers on one working tree
        self._lock = threading.Lock()
        self._executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="attendance-mirror")
        self._pending: set[Future] = set()
        self._pending_lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: Settings, session_factory: Callable[[], Session]) -> "AttendanceMirror":
        return cls(
            repo_path=settings.MIRROR_REPO_PATH,
            session_factory=session_factory,
            git_user_name=settings.MIRROR_GIT_USER_NAME,
            git_user_email=settings.MIRROR_GIT_USER_EMAIL,
            timeout=settings.MIRROR_COMMIT_TIMEOUT,
            workers=settings.MIRROR_WORKERS,
            tz_name=settings.MIRROR_TIMEZONE,
            enabled=settings.MIRROR_ENABLED,
        )

    # -- git plumbing ---------------------------------------------------

    def _git(self, *args: str, check: bool = True) -> subprocess.CompletedProcess:
        cmd = [
            "git",
            "-c", f"user.name={self.git_user_name}",
            "-c", f"user.email={self.git_user_email}",
            *args,
        ]
        try:
            return subprocess.run(
                cmd,
                cwd=self.repo_path,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=check,
            )
        except subprocess.CalledProcessError as exc:
            raise MirrorError(f"git {args[0]} failed: {exc.stderr.strip()}") from exc
        except subprocess.TimeoutExpired as exc:
            raise MirrorError(f"git {args[0]} timed out after {self.timeout}s") from exc
        except OSError as exc:
            raise MirrorError(f"git {args[0]} could not run: {exc}") from exc

    def _ensure_repository(self) -> None:
        os.makedirs(self.repo_path, exist_ok=True)
        if not os.path.isdir(os.path.join(self.repo_path, ".git")):
            self._git("init", "--quiet")
            logger.info("Initialized attendance mirror repository at %s", self.repo_path)

    def _commit_paths(self, relpaths: Sequence[str], message: str) -> bool:
        """Stage ``relpaths`` and commit them if any differs from HEAD."""
        self._git("add", "--", *relpaths)
        diff = self._git("diff", "--cached", "--quiet", "--", *relpaths, check=False)
        if diff.returncode == 0:
            logger.debug("No changes to %s, skipping commit", ", ".join(relpaths))
            return False
        if diff.returncode != 1:
            raise MirrorError(f"git diff failed: {diff.stderr.strip()}")
        self._git("commit", "--quiet", "-m", message, "--", *relpaths)
        return True

    @staticmethod
    def _write_readme(path: str, event_id: int, title: str) -> None:
        with open(path, "w", encoding="utf-8") as fh:
            fh.write(f"# {title}\n\nEvent ID: {event_id}\n\nAttendance is tracked in {ATTENDEES_NAME}.\n")

    def _event_dir(self, event_id: int) -> str:
        return os.path.join(self.repo_path, EVENTS_DIR, event_dir_name(event_id))

    def _relpath(self, event_id: int, filename: str) -> str:
        return "/".join((EVENTS_DIR, event_dir_name(event_id), filename))

    # -- operations -----------------------------------------------------

    def create_event_workspace(self, event_id: int, title: str) -> bool:
        """Create ``events/event-<id>/`` with its README. No-op if it exists.

        Returns True when a new revision was committed.
        """
        try:
            with self._lock:
                self._ensure_repository()
                directory = self._event_dir(event_id)
                readme = os.path.join(directory, README_NAME)
                if os.path.exists(readme):
                    return False
                os.makedirs(directory, exist_ok=True)
                self._write_readme(readme, event_id, title)
                committed = self._commit_paths(
                    [self._relpath(event_id, README_NAME)],
                    f"Create workspace for event {event_id}: {title}",
                )
            logger.info("Created mirror workspace for event %s", event_id)
            return committed
        except Exception:
            logger.exception("Attendance mirror: workspace creation failed for event %s", event_id)
            return False

    def refresh_snapshot(self, event_id: int, title: str) -> bool:
        """Re-render ``attendees.md`` from the ledger and commit any change.

        An existing README is rewritten too, so a renamed event shows its
        current title in both files. Returns True when a new revision was
        committed.
        """
        try:
            with self._lock:
                self._ensure_repository()
                try:
                    with session_scope(self.session_factory) as session:
                        attendees = rsvp_service.event_attendees(session, event_id)
                except SQLAlchemyError as exc:
                    raise MirrorError(f"could not read attendees for event {event_id}") from exc

                content = render_attendance(event_id, title, attendees, self.tz_name)
                directory = self._event_dir(event_id)
                os.makedirs(directory, exist_ok=True)
                with open(os.path.join(directory, ATTENDEES_NAME), "w", encoding="utf-8") as fh:
                    fh.write(content)
                relpaths = [self._relpath(event_id, ATTENDEES_NAME)]
                readme = os.path.join(directory, README_NAME)
                if os.path.exists(readme):
                    self._write_readme(readme, event_id, title)
                    relpaths.append(self._relpath(event_id, README_NAME))
                committed = self._commit_paths(
                    relpaths,
                    f"Update attendance for event {event_id}: {title} ({len(attendees)} attendees)",
                )
            if committed:
                logger.info("Mirrored %d attendees for event %s", len(attendees), event_id)
            return committed
        except Exception:
            logger.exception("Attendance mirror: refresh failed for event %s", event_id)
            return False

    # -- fire-and-forget dispatch --------------------------------------

    def _submit(self, fn, *args) -> Optional[Future]:
        if not self.enabled:
            logger.debug("Attendance mirror disabled, skipping %s%s", fn.__name__, args)
            return None
        try:
            future = self._executor.submit(fn, *args)
        except RuntimeError:
            logger.exception("Attendance mirror: could not dispatch %s%s", fn.__name__, args)
            return None
        with self._pending_lock:
            self._pending.add(future)
        future.add_done_callback(self._forget)
        return future

    def _forget(self, future: Future) -> None:
        with self._pending_lock:
            self._pending.discard(future)

    def schedule_workspace(self, event_id: int, title: str) -> Optional[Future]:
        """Queue ``create_event_workspace`` without waiting for it."""
        return self._submit(self.create_event_workspace, event_id, title)

    def schedule_refresh(self, event_id: int, title: str) -> Optional[Future]:
        """Queue ``refresh_snapshot`` without waiting for it."""
        return self._submit(self.refresh_snapshot, event_id, title)

    def wait_idle(self, timeout: Optional[float] = None) -> None:
        """Block until every job dispatched so far has finished."""
        with self._pending_lock:
            pending = list(self._pending)
        for future in pending:
            future.result(timeout=timeout)

    def shutdown(self) -> None:
        self._executor.shutdown(wait=True)
        logger.info("Attendance mirror stopped")
