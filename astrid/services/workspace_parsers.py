"""
Parsers for the workspace markdown files the agent maintains
(PROJECTS.md, TASKS.md, IDEAS.md, INBOX.md).

Tags are ``@name`` or ``@name(value)`` preceded by whitespace and are stripped
from titles.
"""

import re
from datetime import date, timedelta

from astrid.schemas.workspace import Idea, InboxItem, Project, Task, WorkspaceStats

TAG_RE = re.compile(r"(?<!\S)@[\w-]+(?:\([^)]*\))?")
TASK_RE = re.compile(r"^[-*]\s*\[([ xX])\]\s*")
BULLET_RE = re.compile(r"^[-*]\s+")
PRIORITY_RE = re.compile(r"Priority:\s*(\w+)", re.IGNORECASE)
STATUS_RE = re.compile(r"Status:\s*(.+)", re.IGNORECASE)
COMMENT_RE = re.compile(r"<!--.*?-->", re.DOTALL)

PROJECT_STATUSES = ("active", "on-hold", "completed", "archived")
PRIORITIES = ("urgent", "high", "medium", "low")


def _lines(content: str) -> list[str]:
    return COMMENT_RE.sub("", content).splitlines()


def tag_value(text: str, tag: str) -> str | None:
    m = re.search(rf"(?<!\S)@{re.escape(tag)}\(([^)]+)\)", text, re.IGNORECASE)
    return m.group(1).strip() if m else None


def has_tag(text: str, *tags: str) -> bool:
    return any(re.search(rf"(?<!\S)@{re.escape(t)}(?![\w-])", text, re.IGNORECASE) for t in tags)


def strip_tags(text: str) -> str:
    return re.sub(r"\s{2,}", " ", TAG_RE.sub("", text)).strip()


def make_id(text: str, index: int) -> str:
    return f"{re.sub(r'[^a-z0-9]', '-', text[:20], flags=re.IGNORECASE).lower()}-{index}"


def parse_priority(text: str) -> str | None:
    for p in PRIORITIES:
        if has_tag(text, p):
            return p
    m = PRIORITY_RE.search(text)
    if m and m.group(1).lower() in PRIORITIES:
        return m.group(1).lower()
    return None


def normalize_project_status(raw: str) -> str | None:
    status = re.sub(r"[\s_]+", "-", raw.strip().lower())
    return status if status in PROJECT_STATUSES else None


def parse_task_line(line: str, index: int) -> Task | None:
    m = TASK_RE.match(line)
    if not m:
        return None
    title = strip_tags(line[m.end():])
    status = "done" if m.group(1).lower() == "x" else "todo"
    if has_tag(line, "blocked") or re.search(r"status:\s*blocked", line, re.IGNORECASE):
        status = "blocked"
    elif has_tag(line, "in-progress", "inprogress") or re.search(r"status:\s*in-?progress", line, re.IGNORECASE):
        status = "in-progress"
    return Task(
        id=make_id(title, index),
        title=title,
        status=status,
        priority=parse_priority(line),
        due=tag_value(line, "due"),
        done_date=tag_value(line, "done"),
    )


def parse_projects(content: str) -> list[Project]:
    projects: list[Project] = []
    current: Project | None = None
    in_tasks = False

    for line in _lines(content):
        if line.startswith("## "):
            name = line[3:].strip()
            current = Project(id=make_id(name, len(projects)), name=name)
            projects.append(current)
            in_tasks = False
            continue
        if current is None:
            continue

        if line.lower().startswith("status:"):
            m = STATUS_RE.match(line)
            status = normalize_project_status(m.group(1)) if m else None
            if status:
                current.status = status
            continue

        if line.startswith("### "):
            in_tasks = "task" in line.lower()
            continue

        if in_tasks:
            task = parse_task_line(line, len(current.tasks))
            if task:
                current.tasks.append(task)
                continue

        stripped = line.strip()
        if stripped and not stripped.startswith(("#", "-", "*")) and current.description is None:
            current.description = stripped

    return projects


def parse_tasks(content: str) -> list[Task]:
    tasks: list[Task] = []
    for line in _lines(content):
        task = parse_task_line(line, len(tasks))
        if task:
            tasks.append(task)
    return tasks


def parse_ideas(content: str) -> list[Idea]:
    ideas: list[Idea] = []
    category = None
    lines = _lines(content)

    for i, line in enumerate(lines):
        if line.startswith("## "):
            category = line[3:].strip()
            continue
        if not BULLET_RE.match(line) or TASK_RE.match(line):
            continue
        title = strip_tags(BULLET_RE.sub("", line, count=1))
        notes = None
        if i + 1 < len(lines) and re.match(r"^\s{2,}\S", lines[i + 1]):
            notes = lines[i + 1].strip()
        ideas.append(
            Idea(
                id=make_id(title, len(ideas)),
                title=title,
                category=category,
                notes=notes,
                created_date=tag_value(line, "created"),
            )
        )
    return ideas


def parse_inbox(content: str) -> list[InboxItem]:
    items: list[InboxItem] = []
    for line in _lines(content):
        if line.startswith("#") or not line.strip() or not BULLET_RE.match(line):
            continue
        text = strip_tags(BULLET_RE.sub("", line, count=1))
        items.append(
            InboxItem(
                id=make_id(text, len(items)),
                content=text,
                source=tag_value(line, "from"),
                created_date=tag_value(line, "created"),
            )
        )
    return items


def _done_since(task: Task, since: date) -> bool:
    if task.status != "done" or not task.done_date:
        return False
    try:
        return date.fromisoformat(task.done_date[:10]) >= since
    except ValueError:
        return False


def workspace_stats(
    projects: list[Project],
    tasks: list[Task],
    ideas: list[Idea],
    inbox: list[InboxItem],
    today: date | None = None,
) -> WorkspaceStats:
    today = today or date.today()
    active = [p for p in projects if p.status == "active"]
    all_tasks = tasks + [t for p in projects for t in p.tasks]
    week_ago = today - timedelta(days=7)
    return WorkspaceStats(
        inbox_count=len(inbox),
        active_projects_count=len(active),
        tasks_done_this_week=sum(1 for t in all_tasks if _done_since(t, week_ago)),
        ideas_count=len(ideas),
        active_projects=active[:5],
        recent_tasks=[t for t in all_tasks if t.status != "done"][:5],
        recent_inbox=inbox[:5],
        recent_ideas=ideas[:5],
    )
