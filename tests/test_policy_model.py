"""Tests for Graph record normalization into Policy / directory objects."""

from __future__ import annotations

from ca_impact_engine.model import (
    AxisCondition,
    ConditionAxis,
    DirectoryRole,
    DirectoryUser,
    GroupNode,
    Policy,
    PolicyState,
)

from conftest import graph_policy


class TestPolicyState:
    def test_graph_report_only_literal(self):
        assert PolicyState.parse("enabledForReportingButNotEnforced") == PolicyState.REPORT_ONLY

    def test_plain_states(self):
        assert PolicyState.parse("enabled") == PolicyState.ENABLED
        assert PolicyState.parse("disabled") == PolicyState.DISABLED


class TestAxisCondition:
    def test_wildcard_axis(self):
        axis = AxisCondition(included=("All",), excluded=("SharePoint",))
        assert axis.is_wildcard
        assert not axis.is_constrained
        assert axis.has_exclusions

    def test_empty_axis_is_unconstrained(self):
        assert not AxisCondition().is_constrained
        assert not AxisCondition().has_inclusions

    def test_constrained_axis(self):
        axis = AxisCondition(included=("iOS", "android"))
        assert axis.is_constrained
        assert not axis.is_wildcard


class TestPolicyFromGraph:
    def test_well_formed_policy(self):
        policy = Policy.from_graph(graph_policy(
            "p1", "Require MFA",
            exclude_groups=["G-bg"],
            include_platforms=["all"],
            exclude_platforms=["iOS"],
        ))
        assert policy.is_valid
        assert policy.is_enabled
        assert policy.conditions.targets_all_users
        assert policy.conditions.groups.excluded == ("G-bg",)
        assert policy.conditions.axis(ConditionAxis.PLATFORMS).is_wildcard
        assert policy.conditions.client_app_types.is_wildcard
        assert policy.grant.control == "mfa"
        assert not policy.grant.inverted

    def test_report_only_grant_is_inverted(self):
        policy = Policy.from_graph(graph_policy("p1", state="enabledForReportingButNotEnforced"))
        assert policy.is_report_only
        assert policy.grant.inverted

    def test_block_takes_precedence(self):
        policy = Policy.from_graph(graph_policy("p1", controls=["mfa", "block"]))
        assert policy.grant.control == "block"
        assert policy.grant.controls == ("mfa", "block")

    def test_control_priority_order(self):
        policy = Policy.from_graph(graph_policy("p1", controls=["compliantDevice", "mfa"]))
        assert policy.grant.control == "mfa"

    def test_unranked_control_falls_back_to_first_listed(self):
        record = graph_policy("p1", controls=None)
        record["grantControls"] = {"operator": "OR", "termsOfUse": ["tou-1"]}
        policy = Policy.from_graph(record)
        assert policy.grant.control == "termsOfUse"

    def test_session_only_policy(self):
        policy = Policy.from_graph(graph_policy(
            "p1",
            controls=None,
            session={"signInFrequency": {"value": 4, "type": "hours", "isEnabled": True}},
        ))
        assert policy.is_valid
        assert policy.grant.control == "session"
        assert policy.grant.controls == ("signInFrequency",)

    def test_missing_grant_is_shape_error(self):
        policy = Policy.from_graph(graph_policy("p1", controls=None))
        assert not policy.is_valid
        assert "missing grant decision" in policy.shape_errors

    def test_unknown_state_is_shape_error(self):
        policy = Policy.from_graph(graph_policy("p1", state="sometimes"))
        assert policy.state == PolicyState.DISABLED
        assert any("unknown policy state" in e for e in policy.shape_errors)

    def test_missing_conditions(self):
        record = graph_policy("p1")
        record["conditions"] = None
        policy = Policy.from_graph(record)
        assert "missing conditions" in policy.shape_errors
        assert "missing users condition" in policy.shape_errors

    def test_users_targeting_none_is_shape_error(self):
        policy = Policy.from_graph(graph_policy("p1", include_users=["None"]))
        assert "users condition targets no identities" in policy.shape_errors

    def test_no_application_target_is_shape_error(self):
        policy = Policy.from_graph(graph_policy("p1", include_apps=[]))
        assert "applications condition targets no resources" in policy.shape_errors

    def test_display_name_falls_back_to_id(self):
        record = graph_policy("p1")
        record["displayName"] = None
        assert Policy.from_graph(record).display_name == "p1"


class TestDirectoryObjects:
    def test_group_members_split_by_odata_type(self):
        group = GroupNode.from_graph({
            "id": "G1",
            "displayName": "Parent",
            "members": [
                {"@odata.type": "#microsoft.graph.user", "id": "u1"},
                {"@odata.type": "#microsoft.graph.group", "id": "G2"},
                {"@odata.type": "#microsoft.graph.device", "id": "d1"},
                "G3",
                "u2",
                "u1",
            ],
        }, known_group_ids={"G3"})
        assert group.member_user_ids == ("u1", "u2")
        assert group.member_group_ids == ("G2", "G3")

    def test_role_keyed_by_template_id(self):
        role = DirectoryRole.from_graph({
            "id": "instance-1",
            "roleTemplateId": "template-1",
            "displayName": "Security Reader",
            "members": ["u1"],
        })
        assert role.id == "template-1"
        assert role.member_user_ids == ("u1",)

    def test_guest_detection(self):
        assert DirectoryUser("u1", user_type="Guest").is_guest
        assert DirectoryUser("u2", user_principal_name="a_b.com#EXT#@contoso.com").is_guest
        assert not DirectoryUser("u3", user_principal_name="c@contoso.com").is_guest


class TestMalformedSections:
    def test_list_platforms_is_shape_error(self):
        record = graph_policy("p1")
        record["conditions"]["platforms"] = ["iOS"]
        policy = Policy.from_graph(record)
        assert "malformed platforms condition" in policy.shape_errors

    def test_string_locations_is_shape_error(self):
        record = graph_policy("p1")
        record["conditions"]["locations"] = "AllTrusted"
        policy = Policy.from_graph(record)
        assert "malformed locations condition" in policy.shape_errors

    def test_list_grant_controls_is_shape_error(self):
        record = graph_policy("p1")
        record["grantControls"] = ["mfa"]
        policy = Policy.from_graph(record)
        assert "malformed grant controls" in policy.shape_errors
        assert "missing grant decision" in policy.shape_errors
        assert policy.grant is None

    def test_list_session_controls_is_shape_error(self):
        record = graph_policy("p1")
        record["sessionControls"] = ["signInFrequency"]
        policy = Policy.from_graph(record)
        assert "malformed session controls" in policy.shape_errors
        assert policy.grant.control == "mfa"

    def test_scalar_axis_value_is_wrapped(self):
        record = graph_policy("p1")
        record["conditions"]["users"]["excludeUsers"] = "u-bg"
        record["conditions"]["userRiskLevels"] = 7
        policy = Policy.from_graph(record)
        assert policy.is_valid
        assert policy.conditions.users.excluded == ("u-bg",)
        assert policy.conditions.user_risk_levels.included == ("7",)

    def test_non_string_identity_is_coerced(self):
        record = graph_policy("p1")
        record["id"] = 42
        record["displayName"] = 7
        policy = Policy.from_graph(record)
        assert policy.id == "42"
        assert policy.display_name == "7"
