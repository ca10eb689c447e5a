"""
backend/test_admin.py

Admin surface: every operation is gated on the admin role, and admins act
on everything regardless of ownership.

Run: pytest backend/test_admin.py -v
"""

import pytest

from backend import services_admin, services_projects, services_tasks
from backend.errors import Forbidden, InvalidOperation, NotFound
from backend.models import UserRole


@pytest.fixture
def admin(make_user, as_principal):
    return as_principal(make_user("root", role="admin"))


@pytest.fixture
def seeded(store, make_user, as_principal):
    alice, bob = make_user("alice"), make_user("bob")
    owner = as_principal(alice)
    project = services_projects.create_project(store, owner, "Website Redesign", "New site")
    services_projects.add_team_member(store, owner, project.id, bob.id)
    task = services_tasks.create_task(
        store, owner, project.id, "Design UI", "Mockups", assigned_to=bob.id, priority="high"
    )
    return {"alice": alice, "bob": bob, "owner": owner, "project": project, "task": task}


class TestAdminGate:

    @pytest.mark.parametrize(
        "call",
        [
            lambda store, p: services_admin.list_all_projects(store, p),
            lambda store, p: services_admin.list_all_tasks(store, p),
            lambda store, p: services_admin.list_all_users(store, p),
            lambda store, p: services_admin.dashboard_stats(store, p),
            lambda store, p: services_admin.delete_any_project(store, p, "any"),
            lambda store, p: services_admin.delete_any_task(store, p, "any"),
            lambda store, p: services_admin.delete_user(store, p, "any"),
            lambda store, p: services_admin.update_user_role(store, p, "any", "admin"),
        ],
    )
    def test_members_are_forbidden(self, store, seeded, call):
        # project ownership does not help
        with pytest.raises(Forbidden):
            call(store, seeded["owner"])


class TestAdminProjectsAndTasks:

    def test_admin_sees_everything(self, store, seeded, admin):
        assert [p.id for p in services_admin.list_all_projects(store, admin)] == [seeded["project"].id]
        assert [t.id for t in services_admin.list_all_tasks(store, admin)] == [seeded["task"].id]

    def test_admin_deletes_any_project_with_cascade(self, store, seeded, admin):
        deleted = services_admin.delete_any_project(store, admin, seeded["project"].id)
        assert deleted == 1
        assert store.projects.find_by_id(seeded["project"].id) is None
        assert store.tasks.find_by_id(seeded["task"].id) is None

    def test_admin_deletes_any_task(self, store, seeded, admin):
        services_admin.delete_any_task(store, admin, seeded["task"].id)
        assert store.tasks.find_by_id(seeded["task"].id) is None

    def test_missing_targets_not_found(self, store, admin):
        with pytest.raises(NotFound):
            services_admin.delete_any_project(store, admin, "missing")
        with pytest.raises(NotFound):
            services_admin.delete_any_task(store, admin, "missing")


class TestAdminUsers:

    def test_list_users_newest_first(self, store, seeded, admin):
        names = [u.name for u in services_admin.list_all_users(store, admin)]
        assert names == ["root", "bob", "alice"]

    def test_update_role(self, store, seeded, admin):
        updated = services_admin.update_user_role(store, admin, seeded["bob"].id, "admin")
        assert updated.role == UserRole.admin

    def test_update_role_rejects_unknown_role(self, store, seeded, admin):
        with pytest.raises(InvalidOperation):
            services_admin.update_user_role(store, admin, seeded["bob"].id, "superuser")

    def test_update_role_missing_user(self, store, admin):
        with pytest.raises(NotFound):
            services_admin.update_user_role(store, admin, "missing", "member")

    def test_cannot_delete_user_who_owns_projects(self, store, seeded, admin):
        with pytest.raises(InvalidOperation):
            services_admin.delete_user(store, admin, seeded["alice"].id)
        assert store.users.find_by_id(seeded["alice"].id) is not None

    def test_delete_user_clears_memberships_and_assignments(self, store, seeded, admin):
        services_admin.delete_user(store, admin, seeded["bob"].id)

        assert store.users.find_by_id(seeded["bob"].id) is None
        project = store.projects.find_by_id(seeded["project"].id)
        assert project.team_members == [seeded["alice"].id]
        assert store.tasks.find_by_id(seeded["task"].id).assigned_to is None

    def test_delete_missing_user(self, store, admin):
        with pytest.raises(NotFound):
            services_admin.delete_user(store, admin, "missing")


class TestDashboard:

    def test_dashboard_counts(self, store, seeded, admin):
        stats = services_admin.dashboard_stats(store, admin)

        assert stats["totals"] == {"users": 3, "projects": 1, "tasks": 1}
        assert stats["tasks_by_status"] == [{"key": "todo", "count": 1}]
        assert stats["projects_by_status"] == [{"key": "planning", "count": 1}]
        assert stats["tasks_by_priority"] == [{"key": "high", "count": 1}]
        assert stats["users_by_role"] == [
            {"key": "admin", "count": 1},
            {"key": "member", "count": 2},
        ]
        assert [u.name for u in stats["recent"]["users"]] == ["root", "bob", "alice"]
        assert [p.id for p in stats["recent"]["projects"]] == [seeded["project"].id]

    def test_recent_lists_are_capped(self, store, admin, make_user):
        for _ in range(services_admin.RECENT_LIMIT + 2):
            make_user()
        stats = services_admin.dashboard_stats(store, admin)
        assert len(stats["recent"]["users"]) == services_admin.RECENT_LIMIT
