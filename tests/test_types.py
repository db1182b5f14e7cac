from datetime import datetime, timezone

import pytest

from mdview.types import (
    GROUP_VERSION,
    TYPE_MARKDOWN_VIEW_AVAILABLE,
    TYPE_MARKDOWN_VIEW_DEGRADED,
    Condition,
    ConditionStatus,
    GroupVersion,
    MarkdownView,
    MarkdownViewList,
    MarkdownViewSpec,
    MarkdownViewStatus,
    ObjectMeta,
    find_status_condition,
    set_status_condition,
)


def _view() -> MarkdownView:
    return MarkdownView(
        metadata=ObjectMeta(name="sample", namespace="test", annotations={"note": "x"}),
        spec=MarkdownViewSpec(
            markdowns={"SUMMARY.md": "summary", "page1.md": "page1"},
            replicas=3,
            viewer_image="peaceiris/mdbook:0.4.10",
        ),
    )


def test_group_version_string():
    built = GroupVersion(group="view.zoetrope.github.io", version="v1")
    assert built.__str__() == "view.zoetrope.github.io/v1"
    assert built == GROUP_VERSION
    assert GROUP_VERSION.__str__() == "view.zoetrope.github.io/v1"


def test_group_version_without_group():
    assert str(GroupVersion(group="", version="v1")) == "v1"


def test_to_dict_header():
    doc = _view().to_dict()
    assert doc["apiVersion"] == str(GROUP_VERSION)
    assert doc["kind"] == "MarkdownView"
    assert doc["spec"]["viewerImage"] == "peaceiris/mdbook:0.4.10"


def test_round_trip():
    view = _view()
    assert MarkdownView.from_dict(view.to_dict()) == view


def test_round_trip_with_conditions_and_deletion():
    moment = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
    view = _view()
    view.metadata.deletion_timestamp = moment
    view.status = MarkdownViewStatus(
        conditions=[
            Condition(
                type=TYPE_MARKDOWN_VIEW_AVAILABLE,
                status=ConditionStatus.TRUE,
                reason="OK",
                last_transition_time=moment,
            )
        ]
    )
    again = MarkdownView.from_dict(view.to_dict())
    assert again == view
    assert again.metadata.deletion_timestamp == moment


def test_empty_fields_are_omitted():
    view = MarkdownView(spec=MarkdownViewSpec(markdowns={"SUMMARY.md": "s"}))
    doc = view.to_dict()
    assert "viewerImage" not in doc["spec"]
    assert "conditions" not in doc["status"]


def test_missing_replicas_defaults_to_one():
    view = MarkdownView.from_dict({"spec": {"markdowns": {"SUMMARY.md": "s"}}})
    assert view.spec.replicas == 1


def test_wrong_kind_rejected():
    with pytest.raises(ValueError):
        MarkdownView.from_dict({"kind": "ConfigMap"})


def test_list_to_dict():
    items = [_view(), _view()]
    doc = MarkdownViewList(items=items).to_dict()
    assert doc["kind"] == "MarkdownViewList"
    assert doc["items"] == [item.to_dict() for item in items]


def test_set_condition_appends_new():
    conditions: list[Condition] = []
    changed = set_status_condition(
        conditions, Condition(type=TYPE_MARKDOWN_VIEW_AVAILABLE, status=ConditionStatus.TRUE, reason="OK")
    )
    assert changed is True
    assert len(conditions) == 1
    assert conditions[0].last_transition_time is not None


def test_set_condition_unchanged_returns_false():
    conditions: list[Condition] = []
    cond = Condition(type=TYPE_MARKDOWN_VIEW_DEGRADED, status=ConditionStatus.FALSE, reason="OK")
    set_status_condition(conditions, cond)
    assert set_status_condition(conditions, cond) is False
    assert len(conditions) == 1


def test_set_condition_reason_change_keeps_transition_time():
    moment = datetime(2024, 1, 1, tzinfo=timezone.utc)
    conditions = [
        Condition(
            type=TYPE_MARKDOWN_VIEW_AVAILABLE,
            status=ConditionStatus.FALSE,
            reason="Reconciling",
            last_transition_time=moment,
        )
    ]
    changed = set_status_condition(
        conditions,
        Condition(
            type=TYPE_MARKDOWN_VIEW_AVAILABLE,
            status=ConditionStatus.FALSE,
            reason="Unavailable",
            message="AvailableReplicas is 0",
        ),
    )
    assert changed is True
    assert conditions[0].reason == "Unavailable"
    assert conditions[0].message == "AvailableReplicas is 0"
    assert conditions[0].last_transition_time == moment


def test_set_condition_status_change_moves_transition_time():
    moment = datetime(2024, 1, 1, tzinfo=timezone.utc)
    conditions = [
        Condition(
            type=TYPE_MARKDOWN_VIEW_AVAILABLE,
            status=ConditionStatus.FALSE,
            reason="OK",
            last_transition_time=moment,
        )
    ]
    set_status_condition(
        conditions, Condition(type=TYPE_MARKDOWN_VIEW_AVAILABLE, status=ConditionStatus.TRUE, reason="OK")
    )
    assert conditions[0].status == ConditionStatus.TRUE
    assert conditions[0].last_transition_time > moment


def test_find_status_condition():
    conditions: list[Condition] = []
    set_status_condition(
        conditions, Condition(type=TYPE_MARKDOWN_VIEW_DEGRADED, status=ConditionStatus.TRUE, reason="Reconciling")
    )
    found = find_status_condition(conditions, TYPE_MARKDOWN_VIEW_DEGRADED)
    assert found is conditions[0]
    assert find_status_condition(conditions, TYPE_MARKDOWN_VIEW_AVAILABLE) is None