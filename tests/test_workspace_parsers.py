"""Tests for the workspace markdown parsers."""

from datetime import date

from astrid.schemas.workspace import Task
from astrid.services import workspace_templates as tpl
from astrid.services.workspace_parsers import (
    make_id,
    normalize_project_status,
    parse_ideas,
    parse_inbox,
    parse_projects,
    parse_task_line,
    parse_tasks,
    strip_tags,
    workspace_stats,
)


class TestTaskLine:
    def test_open_task_with_tags(self):
        task = parse_task_line("- [ ] Write proposal @high @due(2026-11-01)", 0)

        assert task.title == "Write proposal"
        assert task.status == "todo"
        assert task.priority == "high"
        assert task.due == "2026-11-01"
        assert task.id == "write-proposal-0"

    def test_checked_task_with_done_date(self):
        task = parse_task_line("* [X] Ship v1 @done(2026-10-01)", 3)
        assert task.status == "done"
        assert task.done_date == "2026-10-01"
        assert task.id == "ship-v1-3"

    def test_blocked_and_in_progress(self):
        assert parse_task_line("- [ ] Wait on legal @blocked", 0).status == "blocked"
        assert parse_task_line("- [ ] Draft deck @inprogress", 0).status == "in-progress"
        assert parse_task_line("- [ ] Draft deck @in-progress", 0).status == "in-progress"

    def test_priority_order_and_fallback(self):
        assert parse_task_line("- [ ] Fix leak @low @urgent", 0).priority == "urgent"
        assert parse_task_line("- [ ] Fix leak Priority: Medium", 0).priority == "medium"
        assert parse_task_line("- [ ] Fix leak", 0).priority is None

    def test_not_a_task(self):
        assert parse_task_line("- plain bullet", 0) is None
        assert parse_task_line("Some prose", 0) is None

    def test_email_addresses_are_not_tags(self):
        assert strip_tags("Reply to bob@example.com @high") == "Reply to bob@example.com"


def test_make_id_truncates_and_slugs():
    assert make_id("Plan Q4 offsite in Lisbon & Porto", 1) == "plan-q4-offsite-in-l-1"


def test_project_status_normalisation():
    assert normalize_project_status("on hold") == "on-hold"
    assert normalize_project_status("On_Hold") == "on-hold"
    assert normalize_project_status("Completed") == "completed"
    assert normalize_project_status("someday") is None


class TestProjects:
    CONTENT = """# Projects

## Kitchen Remodel
Status: on hold
Replace cabinets and counters.

### Tasks
- [x] Get quotes @done(2026-10-12)
- [ ] Pick contractor @high

### Notes
- [ ] not a project task

## Garden
Status: active
"""

    def test_blocks(self):
        projects = parse_projects(self.CONTENT)

        assert [p.name for p in projects] == ["Kitchen Remodel", "Garden"]
        kitchen = projects[0]
        assert kitchen.id == "kitchen-remodel-0"
        assert kitchen.status == "on-hold"
        assert kitchen.description == "Replace cabinets and counters."
        assert [t.title for t in kitchen.tasks] == ["Get quotes", "Pick contractor"]
        assert kitchen.tasks[0].status == "done"
        assert projects[1].status == "active"
        assert projects[1].tasks == []

    def test_unknown_status_keeps_default(self):
        projects = parse_projects("## Side thing\nStatus: someday\n")
        assert projects[0].status == "active"

    def test_empty_status_keeps_default(self):
        projects = parse_projects("## Launch\nStatus:\n### Tasks\n- [ ] Draft plan\n")
        assert projects[0].status == "active"
        assert [t.title for t in projects[0].tasks] == ["Draft plan"]


def test_tasks_anywhere_in_file():
    tasks = parse_tasks("# Tasks\n\n## Today\n- [ ] One\n\n## Done\n- [x] Two\n")
    assert [(t.title, t.status) for t in tasks] == [("One", "todo"), ("Two", "done")]
    assert tasks[1].id == "two-1"


def test_ideas_with_categories_and_notes():
    content = """# Ideas

## Business
- Subscription box @created(2026-09-30)
  Monthly curated snacks
- [ ] not an idea

## Travel
* Iceland road trip
"""
    ideas = parse_ideas(content)

    assert [(i.title, i.category) for i in ideas] == [("Subscription box", "Business"), ("Iceland road trip", "Travel")]
    assert ideas[0].notes == "Monthly curated snacks"
    assert ideas[0].created_date == "2026-09-30"
    assert ideas[1].notes is None


def test_inbox_items():
    content = "# Inbox\n\n- Call mom back @from(telegram) @created(2026-10-17)\n- Renew passport\n"
    items = parse_inbox(content)

    assert [i.content for i in items] == ["Call mom back", "Renew passport"]
    assert items[0].source == "telegram"
    assert items[0].created_date == "2026-10-17"
    assert items[1].id == "renew-passport-1"


def test_fresh_templates_parse_empty():
    assert parse_projects(tpl.PROJECTS_MD) == []
    assert parse_tasks(tpl.TASKS_MD) == []
    assert parse_ideas(tpl.IDEAS_MD) == []
    assert parse_inbox(tpl.INBOX_MD) == []


def test_stats():
    projects = parse_projects("## A\nStatus: active\n### Tasks\n- [x] Old @done(2026-09-01)\n## B\nStatus: completed\n")
    tasks = [
        Task(id="a-0", title="Recent", status="done", done_date="2026-10-15"),
        Task(id="b-1", title="Open", status="todo"),
    ]
    ideas = parse_ideas("- One\n- Two\n")
    inbox = parse_inbox("- x\n")

    stats = workspace_stats(projects, tasks, ideas, inbox, today=date(2026, 10, 18))

    assert stats.inbox_count == 1
    assert stats.active_projects_count == 1
    assert stats.tasks_done_this_week == 1
    assert stats.ideas_count == 2
    assert [t.title for t in stats.recent_tasks] == ["Open"]
    dumped = stats.model_dump(by_alias=True)
    assert dumped["tasksDoneThisWeek"] == 1
