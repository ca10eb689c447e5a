"""
backend/test_authz.py

Unit tests for the authorization policy and the admin capability mapping.
Pure logic: no database, no HTTP.

Run: pytest backend/test_authz.py -v
"""

import pytest

from backend.authz import Action, Principal, authorize, is_permitted
from backend.errors import Forbidden
from backend.models import Project
from backend.rbac import Capability, has_capability, is_admin, role_capabilities


OWNER = Principal(user_id="owner")
MEMBER = Principal(user_id="member")
OUTSIDER = Principal(user_id="outsider")
ADMIN = Principal(user_id="admin", role="admin")


@pytest.fixture
def project():
    return Project(
        id="p1",
        title="Website Redesign",
        description="New site",
        owner="owner",
        team_members=["owner", "member"],
        created_at="2024-01-01T00:00:00+00:00",
        updated_at="2024-01-01T00:00:00+00:00",
    )


class TestProjectRules:

    def test_owner_and_member_can_read(self, project):
        assert is_permitted(OWNER, Action.PROJECT_READ, project)
        assert is_permitted(MEMBER, Action.PROJECT_READ, project)

    def test_outsider_cannot_read(self, project):
        assert not is_permitted(OUTSIDER, Action.PROJECT_READ, project)

    @pytest.mark.parametrize("action", [Action.PROJECT_UPDATE, Action.PROJECT_DELETE, Action.TEAM_MANAGE])
    def test_owner_only_actions(self, project, action):
        assert is_permitted(OWNER, action, project)
        assert not is_permitted(MEMBER, action, project)
        assert not is_permitted(OUTSIDER, action, project)

    def test_owner_counts_as_member_even_if_missing_from_list(self, project):
        project.team_members = ["member"]
        assert is_permitted(OWNER, Action.PROJECT_READ, project)


class TestTaskRules:

    @pytest.mark.parametrize(
        "action",
        [Action.TASK_CREATE, Action.TASK_UPDATE, Action.TASK_DELETE, Action.TASK_ASSIGN],
    )
    def test_any_team_member_may_work_on_tasks(self, project, action):
        assert is_permitted(OWNER, action, project)
        assert is_permitted(MEMBER, action, project)
        assert not is_permitted(OUTSIDER, action, project)

    def test_status_update_needs_no_membership(self, project):
        assert is_permitted(OUTSIDER, Action.TASK_STATUS_UPDATE, project)
        assert is_permitted(OUTSIDER, Action.TASK_STATUS_UPDATE)

    def test_membership_actions_without_project_are_denied(self):
        assert not is_permitted(OWNER, Action.TASK_UPDATE)


class TestAdminOverride:

    @pytest.mark.parametrize(
        "action",
        [
            Action.ADMIN_DASHBOARD,
            Action.ADMIN_MANAGE_USERS,
            Action.ADMIN_MANAGE_PROJECTS,
            Action.ADMIN_MANAGE_TASKS,
        ],
    )
    def test_admin_surface_requires_admin_role(self, action):
        assert is_permitted(ADMIN, action)
        assert not is_permitted(OWNER, action)

    def test_admin_is_not_an_implicit_project_member(self, project):
        assert not is_permitted(ADMIN, Action.TASK_CREATE, project)
        assert not is_permitted(ADMIN, Action.PROJECT_READ, project)
        assert not is_permitted(ADMIN, Action.PROJECT_UPDATE, project)

    def test_role_capabilities(self):
        assert has_capability("admin", Capability.ADMIN_USERS)
        assert has_capability("ADMIN", Capability.ADMIN_DASHBOARD)
        assert role_capabilities("member") == set()
        assert role_capabilities("unknown") == set()
        assert is_admin("admin")
        assert not is_admin("member")


class TestAuthorize:

    def test_authorize_raises_forbidden_with_message(self, project):
        with pytest.raises(Forbidden) as exc:
            authorize(MEMBER, Action.PROJECT_DELETE, project, "Not authorized to delete this project")
        assert exc.value.status_code == 403
        assert "delete" in exc.value.message

    def test_authorize_passes_silently(self, project):
        authorize(OWNER, Action.PROJECT_DELETE, project)

    def test_principal_requires_user_id(self):
        with pytest.raises(ValueError):
            Principal(user_id="")
