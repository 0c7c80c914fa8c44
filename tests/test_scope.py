import pytest

from yachtdesk.errors import ForbiddenError, NotFoundError, ValidationError
from yachtdesk.models import RepairRequest
from yachtdesk.services.scope_service import ScopeService, resolve_scope


class TestResolveScope:
    """Effective scope for each role and impersonation overlay."""

    def test_fleet_roles_see_everything(self, fleet, ctx_for):
        for user in (fleet.master, fleet.staff, fleet.mechanic):
            scope = resolve_scope(ctx_for(user))
            assert scope.fleet_wide is True
            assert scope.yacht_id is None

    def test_owner_is_limited_to_own_yacht_and_submissions(self, fleet, ctx_for):
        scope = resolve_scope(ctx_for(fleet.owner))
        assert scope.fleet_wide is False
        assert scope.yacht_id == fleet.utopia.id
        assert scope.owner_only is True

    def test_manager_sees_whole_yacht(self, fleet, ctx_for):
        scope = resolve_scope(ctx_for(fleet.manager))
        assert scope.yacht_id == fleet.utopia.id
        assert scope.owner_only is False

    def test_yacht_overlay_narrows_fleet_role(self, fleet, ctx_for):
        scope = resolve_scope(ctx_for(fleet.staff, impersonated_yacht_id=fleet.serenity.id))
        assert scope.fleet_wide is False
        assert scope.yacht_id == fleet.serenity.id

    def test_role_overlay_ignored_for_non_master(self, fleet, ctx_for):
        ctx = ctx_for(fleet.staff, impersonated_role="owner")
        assert ctx.impersonated_role is None
        assert ctx.effective_role == "staff"

    def test_overlay_ignored_for_yacht_scoped_user(self, fleet, ctx_for):
        ctx = ctx_for(fleet.owner, impersonated_yacht_id=fleet.serenity.id)
        assert ctx.effective_yacht_id == fleet.utopia.id

    def test_master_as_owner_without_yacht_is_empty(self, fleet, ctx_for):
        scope = resolve_scope(ctx_for(fleet.master, impersonated_role="owner"))
        assert scope.is_empty
        assert ScopeService.apply(RepairRequest.query, scope, RepairRequest.yacht_id).all() == []


class TestImpersonation:
    """Switching role and yacht through the session overlay."""

    def test_master_can_view_as_owner(self, fleet, ctx_for):
        ctx = ScopeService.impersonate_role(ctx_for(fleet.master), "owner")
        assert ctx.effective_role == "owner"
        assert ctx.actual_role == "master"

    def test_selecting_own_role_clears_overlay(self, fleet, ctx_for):
        ctx = ScopeService.impersonate_role(ctx_for(fleet.master, impersonated_role="staff"), "master")
        assert ctx.impersonated_role is None

    def test_unknown_role_rejected(self, fleet, ctx_for):
        with pytest.raises(ValidationError):
            ScopeService.impersonate_role(ctx_for(fleet.master), "captain")

    def test_staff_cannot_switch_role(self, fleet, ctx_for):
        with pytest.raises(ForbiddenError):
            ScopeService.impersonate_role(ctx_for(fleet.staff), "owner")

    def test_anyone_can_clear_overlays(self, fleet, ctx_for):
        ctx = ctx_for(fleet.owner)
        assert ScopeService.impersonate_role(ctx, None) == ctx
        assert ScopeService.impersonate_yacht(ctx, None) == ctx

    def test_owner_cannot_switch_yacht(self, fleet, ctx_for):
        with pytest.raises(ForbiddenError):
            ScopeService.impersonate_yacht(ctx_for(fleet.owner), fleet.serenity.id)

    def test_inactive_yacht_cannot_be_selected(self, fleet, ctx_for):
        with pytest.raises(NotFoundError):
            ScopeService.impersonate_yacht(ctx_for(fleet.staff), fleet.retired.id)

    def test_clearing_yacht_restores_fleet_view(self, fleet, ctx_for):
        ctx = ScopeService.impersonate_yacht(ctx_for(fleet.mechanic), fleet.utopia.id)
        ctx = ScopeService.impersonate_yacht(ctx, None)
        assert resolve_scope(ctx).fleet_wide is True


class TestApply:
    """Query narrowing and single-row checks."""

    @pytest.fixture
    def repairs(self, db, fleet):
        rows = [
            RepairRequest(yacht_id=fleet.utopia.id, submitted_by=fleet.owner.id, title="Bilge pump"),
            RepairRequest(yacht_id=fleet.utopia.id, submitted_by=fleet.co_owner.id, title="Radar"),
            RepairRequest(yacht_id=fleet.serenity.id, submitted_by=fleet.other_owner.id, title="Windlass"),
        ]
        db.session.add_all(rows)
        db.session.commit()
        return rows

    def _titles(self, ctx):
        query = ScopeService.apply(
            RepairRequest.query, resolve_scope(ctx), RepairRequest.yacht_id, RepairRequest.submitted_by
        )
        return sorted(row.title for row in query.all())

    def test_owner_sees_only_own_requests(self, fleet, repairs, ctx_for):
        assert self._titles(ctx_for(fleet.owner)) == ["Bilge pump"]

    def test_manager_sees_all_requests_on_yacht(self, fleet, repairs, ctx_for):
        assert self._titles(ctx_for(fleet.manager)) == ["Bilge pump", "Radar"]

    def test_master_sees_fleet(self, fleet, repairs, ctx_for):
        assert self._titles(ctx_for(fleet.master)) == ["Bilge pump", "Radar", "Windlass"]

    def test_master_viewing_yacht(self, fleet, repairs, ctx_for):
        assert self._titles(ctx_for(fleet.master, impersonated_yacht_id=fleet.serenity.id)) == ["Windlass"]

    def test_row_check_respects_owner_rule(self, fleet, ctx_for):
        ctx = ctx_for(fleet.co_owner)
        ScopeService.ensure_can_access(ctx, fleet.utopia.id, fleet.owner.id)
        with pytest.raises(ForbiddenError):
            ScopeService.ensure_can_access(ctx, fleet.utopia.id, fleet.owner.id, owner_checked=True)
        with pytest.raises(ForbiddenError):
            ScopeService.ensure_can_access(ctx, fleet.serenity.id)
