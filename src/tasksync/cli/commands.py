# src/tasksync/cli/commands.py

from __future__ import annotations

import inspect
import logging
import shlex
from collections.abc import Awaitable, Callable
from typing import cast

from ..core.errors import AuthError, ValidationError
from ..core.ports import Credentials
from ..core.state import AppState
from ..tasks.task_models import Task, TaskFilter
from ..tasks.task_view import count_tasks, is_overdue
from ..tasks.validation import validate_task_fields

CommandEmitter = Callable[[str], None]
CommandResult = str | Awaitable[str]
CommandHandler2 = Callable[[AppState, list[str]], CommandResult]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], CommandResult]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Slash-command registry used by the console (/help, /add, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    async def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        try:
            parts = shlex.split(line[1:])
        except ValueError as e:
            return f"Could not parse command: {e}"
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except (TypeError, ValueError):
            nparams = 3

        if nparams >= 3:
            result = cast(CommandHandler3, handler)(state, args, emit)
        else:
            result = cast(CommandHandler2, handler)(state, args)

        if inspect.isawaitable(result):
            return await result
        return result

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- helpers ----


def _signed_in_error(state: AppState) -> str | None:
    identity = state.session.current()
    if identity is None:
        return "Not signed in. Use /login or /signup."
    if getattr(state.settings, "require_verified_email", False) and not identity.email_verified:
        return "Email not verified. Use /verify to confirm your address."
    return None


def _resolve_task(state: AppState, ref: str) -> Task | str:
    """Find a cached task by id or unique id prefix; returns an error string otherwise."""
    ref = ref.strip()
    if not ref:
        return "Task id is required."
    exact = state.cache.find(ref)
    if exact is not None:
        return exact
    matches = [t for t in state.cache.tasks() if t.id.startswith(ref)]
    if len(matches) == 1:
        return matches[0]
    if not matches:
        return f"No task matches '{ref}'."
    return f"'{ref}' is ambiguous ({len(matches)} tasks match)."


def _parse_assignments(args: list[str]) -> dict[str, str] | str:
    out: dict[str, str] = {}
    for arg in args:
        key, sep, value = arg.partition("=")
        key = key.strip().lower()
        if not sep or key not in ("name", "description", "deadline"):
            return f"Expected name=..., description=... or deadline=..., got '{arg}'."
        out[key] = value
    return out


def format_task(task: Task) -> str:
    mark = "x" if task.is_completed else " "
    line = f"[{mark}] {task.id[:8]}  {task.name}  due {task.deadline.isoformat()}"
    if is_overdue(task):
        line += " (OVERDUE)"
    if task.description:
        desc = task.description
        if len(desc) > 100:
            desc = desc[:100] + "..."
        line += f"\n      {desc}"
    return line


# ---- commands ----


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_status(state: AppState, args: list[str]) -> str:
    identity = state.session.current()
    snap = state.cache.snapshot()
    counts = count_tasks(snap.tasks)
    if identity is None:
        who = "not signed in"
    else:
        who = f"{identity.email} ({'verified' if identity.email_verified else 'unverified'})"
    return (
        "Status:\n"
        f"  User: {who}\n"
        f"  Filter: {snap.filter.value}\n"
        f"  Search: {snap.search_term or '-'}\n"
        f"  Loading: {'yes' if snap.loading else 'no'}\n"
        f"  Tasks: {counts.total} total, {counts.pending} pending, "
        f"{counts.completed} completed, {counts.overdue} overdue"
    )


async def _auth(state: AppState, args: list[str], *, sign_up: bool) -> str:
    usage = "/signup <email> <password>" if sign_up else "/login <email> <password>"
    if len(args) != 2:
        return f"Usage: {usage}"
    creds = Credentials(email=args[0], password=args[1])
    try:
        if sign_up:
            identity = await state.identity.sign_up(creds)
        else:
            identity = await state.identity.authenticate(creds)
    except AuthError as e:
        return f"Authentication failed: {e}"

    msg = f"Signed in as {identity.email}."
    if not identity.email_verified:
        msg += " Your email is not verified yet; use /verify."
    return msg


async def cmd_signup(state: AppState, args: list[str]) -> str:
    return await _auth(state, args, sign_up=True)


async def cmd_login(state: AppState, args: list[str]) -> str:
    return await _auth(state, args, sign_up=False)


async def cmd_logout(state: AppState, args: list[str]) -> str:
    if state.session.current() is None:
        return "Not signed in."
    try:
        await state.identity.sign_out()
    except AuthError as e:
        return f"Sign out failed: {e}"
    return "Signed out."


async def cmd_verify(state: AppState, args: list[str]) -> str:
    try:
        identity = await state.identity.verify_email()
    except AuthError as e:
        return f"Verification failed: {e}"
    return f"Email {identity.email} verified."


async def cmd_add(state: AppState, args: list[str]) -> str:
    if err := _signed_in_error(state):
        return err
    if len(args) < 2:
        return 'Usage: /add "<name>" <YYYY-MM-DD> ["description"]'

    fields = {"name": args[0], "deadline": args[1]}
    if len(args) > 2:
        fields["description"] = " ".join(args[2:])
    try:
        clean = validate_task_fields(fields)
    except ValidationError as e:
        return f"Invalid task: {e}"

    await state.gateway.add_task(clean)
    return ""


async def cmd_edit(state: AppState, args: list[str]) -> str:
    if err := _signed_in_error(state):
        return err
    if len(args) < 2:
        return "Usage: /edit <id> name=... description=... deadline=YYYY-MM-DD"

    task = _resolve_task(state, args[0])
    if isinstance(task, str):
        return task
    fields = _parse_assignments(args[1:])
    if isinstance(fields, str):
        return fields
    try:
        clean = validate_task_fields(fields, partial=True)
    except ValidationError as e:
        return f"Invalid task: {e}"

    await state.gateway.edit_task(task.id, clean)
    return ""


async def cmd_toggle(state: AppState, args: list[str]) -> str:
    if err := _signed_in_error(state):
        return err
    if len(args) != 1:
        return "Usage: /done <id>"
    task = _resolve_task(state, args[0])
    if isinstance(task, str):
        return task
    await state.gateway.toggle_status(task.id, task.status)
    return ""


async def cmd_remove(state: AppState, args: list[str]) -> str:
    if err := _signed_in_error(state):
        return err
    if len(args) != 1:
        return "Usage: /rm <id>"
    task = _resolve_task(state, args[0])
    if isinstance(task, str):
        return task
    await state.gateway.remove_task(task.id)
    return ""


def cmd_filter(state: AppState, args: list[str]) -> str:
    if len(args) != 1:
        return "Usage: /filter all|pending|completed"
    try:
        state.cache.set_filter(args[0].lower())
    except ValueError:
        return f"Unknown filter '{args[0]}'. Use all, pending or completed."
    return f"Filter set to {args[0].lower()}."


def cmd_search(state: AppState, args: list[str]) -> str:
    term = " ".join(args).strip()
    state.cache.set_search_term(term)
    return f"Searching for '{term}'." if term else "Search cleared."


def cmd_list(state: AppState, args: list[str]) -> str:
    if err := _signed_in_error(state):
        return err

    task_filter: TaskFilter | None = None
    term_args = args
    if args and args[0].lower() in {f.value for f in TaskFilter}:
        task_filter = TaskFilter(args[0].lower())
        term_args = args[1:]
    term = " ".join(term_args) if term_args else None

    tasks = state.gateway.get_filtered_searched(task_filter, term)
    header_filter = (task_filter or state.cache.snapshot().filter).value
    header = f"Tasks ({len(tasks)}, filter={header_filter})"
    if state.gateway.is_loading():
        header += " [syncing]"

    if not tasks:
        if header_filter == TaskFilter.ALL.value and not (term or state.cache.snapshot().search_term):
            return header + "\n  No tasks yet. Add one with /add."
        return header + f"\n  No {'' if header_filter == 'all' else header_filter + ' '}tasks found."
    return "\n".join([header, *(format_task(t) for t in tasks)])


def cmd_stats(state: AppState, args: list[str]) -> str:
    counts = state.gateway.counts()
    return (
        f"Total: {counts.total}  Pending: {counts.pending}  "
        f"Completed: {counts.completed}  Overdue: {counts.overdue}"
    )


async def cmd_sample(state: AppState, args: list[str]) -> str:
    if err := _signed_in_error(state):
        return err
    await state.gateway.add_sample_task()
    return ""


def cmd_refresh(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if state.session.current() is None:
        return "Not signed in."
    if emit is not None:
        emit("Resubscribing to tasks...")
    state.session_sync.resubscribe()
    return "Subscription restarted."


registry.register("help", cmd_help, "Show this help")
registry.register("status", cmd_status, "Show session and sync status")
registry.register("signup", cmd_signup, "Create an account: /signup <email> <password>")
registry.register("login", cmd_login, "Sign in: /login <email> <password>")
registry.register("logout", cmd_logout, "Sign out and clear local tasks")
registry.register("verify", cmd_verify, "Mark your email as verified")
registry.register("add", cmd_add, 'Add a task: /add "<name>" <YYYY-MM-DD> ["description"]')
registry.register("edit", cmd_edit, "Edit a task: /edit <id> name=... description=... deadline=...")
registry.register("done", cmd_toggle, "Toggle a task between pending and completed", aliases=["toggle"])
registry.register("rm", cmd_remove, "Delete a task: /rm <id>", aliases=["delete"])
registry.register("list", cmd_list, "List tasks: /list [all|pending|completed] [search terms]", aliases=["ls"])
registry.register("filter", cmd_filter, "Set the status filter: /filter all|pending|completed")
registry.register("search", cmd_search, "Set the search term (empty clears): /search [term]")
registry.register("stats", cmd_stats, "Show task counts")
registry.register("sample", cmd_sample, "Add a sample task due in seven days")
registry.register("refresh", cmd_refresh, "Restart the task subscription after a sync error")
