"""Task bodies for each scheduled task type.

Each handler is an async callable receiving the :class:`ScheduledTask` and
returning an optional summary string. Handlers signal failure by raising
(usually :class:`ExecutionError`); the scheduler records the message.
"""
from __future__ import annotations

import asyncio
import json
import shlex
import smtplib
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from email.message import EmailMessage
from email.utils import formataddr
from pathlib import Path
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Mapping

import structlog

from admin_service.core.exceptions import ExecutionError
from admin_service.domain.enums import TaskType
from admin_service.domain.events import is_known_event
from admin_service.domain.models import ScheduledTask

if TYPE_CHECKING:
    from admin_service.repositories import Repositories
    from admin_service.services.webhooks import WebhookDispatcher
    from admin_service.settings import Settings

logger = structlog.get_logger(__name__)

TaskHandler = Callable[[ScheduledTask], Awaitable[str | None]]
CustomCommand = Callable[[list[str]], Awaitable[str | None]]

BACKUP_VERSION = "1.0"
BACKUP_PATTERN = "backup-*.json"


class TaskHandlerRegistry:
    """Maps every :class:`TaskType` to its handler; resolved once at startup."""

    def __init__(self, handlers: Mapping[TaskType, TaskHandler]):
        missing = [t.value for t in TaskType if t not in handlers]
        if missing:
            raise ValueError(f"No handler registered for task types: {missing}")
        self._handlers = dict(handlers)

    def resolve(self, task_type: TaskType) -> TaskHandler:
        return self._handlers[task_type]

    async def execute(self, task: ScheduledTask) -> str | None:
        return await self.resolve(task.task_type)(task)


class BackupCreator:
    """Writes a JSON snapshot of tasks and webhooks into ``backup_dir``."""

    def __init__(self, repositories: "Repositories", backup_dir: Path):
        self._repos = repositories
        self._backup_dir = backup_dir

    async def __call__(self, task: ScheduledTask) -> str | None:
        now = datetime.now(timezone.utc)
        tasks = await self._repos.tasks.list_all()
        webhooks = await self._repos.webhooks.list_all()
        snapshot = {
            "version": BACKUP_VERSION,
            "timestamp": now.isoformat(),
            "data": {
                "scheduledTasks": [t.to_json() for t in tasks],
                "webhooks": [w.to_json() for w in webhooks],
            },
        }
        filename = f"backup-{now.strftime('%Y-%m-%dT%H-%M-%S-%f')}.json"
        path = self._backup_dir / filename
        try:
            size = await asyncio.to_thread(_write_json, path, snapshot)
        except OSError as exc:
            raise ExecutionError(f"Backup failed: {exc}") from exc
        records = len(tasks) + len(webhooks)
        logger.info("backup created", task_id=str(task.id), filename=filename, size=size, records=records)
        return f"file={filename} records={records}"


def _write_json(path: Path, data: dict[str, Any]) -> int:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
    return path.stat().st_size


@dataclass
class EmailCommand:
    to: list[str]
    subject: str
    body: str
    html: str | None = None

    @classmethod
    def parse(cls, command: str | None) -> "EmailCommand":
        """``command`` is a JSON object: ``{"to", "subject", "body", "html"?}``."""
        if not command:
            raise ExecutionError("Email task has no command")
        try:
            data = json.loads(command)
        except json.JSONDecodeError as exc:
            raise ExecutionError(f"Email command is not valid JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise ExecutionError("Email command must be a JSON object")
        recipients = data.get("to")
        if isinstance(recipients, str):
            recipients = [recipients]
        if not recipients or not all(isinstance(r, str) and r for r in recipients):
            raise ExecutionError("Email command requires a 'to' address")
        return cls(
            to=list(recipients),
            subject=str(data.get("subject") or "Scheduled notification"),
            body=str(data.get("body") or ""),
            html=data.get("html"),
        )


class EmailSender:
    """Sends the email described by a task's command over SMTP."""

    def __init__(self, settings: "Settings"):
        self._settings = settings

    async def __call__(self, task: ScheduledTask) -> str | None:
        if not self._settings.smtp_host:
            raise ExecutionError("SMTP is not configured")
        email = EmailCommand.parse(task.command)
        message = self._build_message(email)
        try:
            await asyncio.to_thread(self._send, message)
        except (smtplib.SMTPException, OSError) as exc:
            raise ExecutionError(f"Failed to send email: {exc}") from exc
        logger.info("email sent", task_id=str(task.id), recipients=len(email.to))
        return f"recipients={len(email.to)}"

    def _build_message(self, email: EmailCommand) -> EmailMessage:
        s = self._settings
        message = EmailMessage()
        message["From"] = formataddr((s.email_from_name, s.email_from_address or s.smtp_user or ""))
        message["To"] = ", ".join(email.to)
        message["Subject"] = email.subject
        message.set_content(email.body)
        if email.html:
            message.add_alternative(email.html, subtype="html")
        return message

    def _send(self, message: EmailMessage) -> None:
        s = self._settings
        assert s.smtp_host is not None
        if s.smtp_port == 465:
            client: smtplib.SMTP = smtplib.SMTP_SSL(s.smtp_host, s.smtp_port, timeout=s.smtp_timeout_seconds)
        else:
            client = smtplib.SMTP(s.smtp_host, s.smtp_port, timeout=s.smtp_timeout_seconds)
        with client:
            if s.smtp_use_tls and s.smtp_port != 465:
                client.starttls()
            if s.smtp_user and s.smtp_password:
                client.login(s.smtp_user, s.smtp_password)
            client.send_message(message)


class MaintenanceCleaner:
    """Purges old webhook logs and prunes surplus backup files."""

    def __init__(
        self,
        repositories: "Repositories",
        *,
        backup_dir: Path,
        log_retention_days: int,
        backup_keep_count: int,
    ):
        self._repos = repositories
        self._backup_dir = backup_dir
        self._log_retention = timedelta(days=log_retention_days)
        self._backup_keep_count = backup_keep_count

    async def __call__(self, task: ScheduledTask) -> str | None:
        cutoff = datetime.now(timezone.utc) - self._log_retention
        purged_logs = await self._repos.webhook_logs.delete_older_than(cutoff)
        removed_backups = await asyncio.to_thread(self._prune_backups)
        return f"purged_logs={purged_logs} removed_backups={removed_backups}"

    def _prune_backups(self) -> int:
        if not self._backup_dir.exists():
            return 0
        backups = sorted(self._backup_dir.glob(BACKUP_PATTERN), reverse=True)
        removed = 0
        for path in backups[self._backup_keep_count:]:
            path.unlink(missing_ok=True)
            removed += 1
        return removed


@dataclass
class CustomCommandRegistry:
    """Runs ``custom`` tasks: the first token of the command names the handler."""

    commands: dict[str, CustomCommand] = field(default_factory=dict)

    def register(self, name: str, fn: CustomCommand) -> None:
        self.commands[name] = fn

    async def __call__(self, task: ScheduledTask) -> str | None:
        try:
            argv = shlex.split(task.command or "")
        except ValueError as exc:
            raise ExecutionError(f"Malformed command: {exc}") from exc
        if not argv:
            raise ExecutionError("Custom task has no command")
        name, args = argv[0], argv[1:]
        fn = self.commands.get(name)
        if fn is None:
            raise ExecutionError(f"Unknown custom command: {name}")
        return await fn(args)


async def noop_command(args: list[str]) -> str | None:
    return None


def make_emit_command(dispatcher: "WebhookDispatcher") -> CustomCommand:
    """``emit <event> [json-payload]``: dispatch a webhook event and wait for it."""

    async def emit(args: list[str]) -> str | None:
        if not args:
            raise ExecutionError("emit requires an event name")
        event = args[0]
        if not is_known_event(event):
            raise ExecutionError(f"Unknown event: {event}")
        payload: dict[str, Any] = {}
        if len(args) > 1:
            try:
                payload = json.loads(" ".join(args[1:]))
            except json.JSONDecodeError as exc:
                raise ExecutionError(f"emit payload is not valid JSON: {exc}") from exc
            if not isinstance(payload, dict):
                raise ExecutionError("emit payload must be a JSON object")
        results = await dispatcher.dispatch(event, payload)
        delivered = sum(1 for r in results if r.success)
        return f"event={event} delivered={delivered}/{len(results)}"

    return emit


def build_task_handlers(
    settings: "Settings",
    repositories: "Repositories",
    dispatcher: "WebhookDispatcher",
) -> TaskHandlerRegistry:
    custom = CustomCommandRegistry()
    custom.register("noop", noop_command)
    custom.register("emit", make_emit_command(dispatcher))
    return TaskHandlerRegistry(
        {
            TaskType.BACKUP: BackupCreator(repositories, settings.backup_dir),
            TaskType.EMAIL: EmailSender(settings),
            TaskType.MAINTENANCE: MaintenanceCleaner(
                repositories,
                backup_dir=settings.backup_dir,
                log_retention_days=settings.webhook_log_retention_days,
                backup_keep_count=settings.backup_keep_count,
            ),
            TaskType.CUSTOM: custom,
        }
    )
