import math

import pytest

from markermap.domain.models import (
    CollapsedClusterItem,
    ExpandedClusterItem,
    LegStyle,
    SingleMarkerItem,
)
from markermap.services.clustering import (
    SPIDER_RADIUS_DEG,
    ClusterToggleState,
    build_layout,
    cluster_key,
    cluster_label,
    group_markers,
    toggle,
)

LAT, LON = 22.2759, 114.1455


def test_cluster_key_uses_six_decimals():
    assert cluster_key(22.2759, 114.1455) == "22.275900,114.145500"


def test_cluster_key_boundaries():
    # within the same 1e-6 bucket
    assert cluster_key(22.3000004, 114.1) == cluster_key(22.2999996, 114.1)
    # far enough past the half-way point to round up
    assert cluster_key(22.3000006, 114.1) != cluster_key(22.3000004, 114.1)
    assert cluster_key(22.3000006, 114.1) == "22.300001,114.100000"


def test_group_markers_filters_invalid_and_keeps_order(make_marker):
    markers = [
        make_marker(1, "A", LAT, LON),
        make_marker(2, "B", 22.3, 114.2),
        make_marker(3, "A", LAT + 1e-8, LON),
        make_marker(4, "Broken", math.nan, LON),
        make_marker(5, "Broken", LAT, math.inf),
    ]
    groups = group_markers(markers)
    assert list(groups) == [cluster_key(LAT, LON), cluster_key(22.3, 114.2)]
    assert [m.id for m in groups[cluster_key(LAT, LON)]] == [1, 3]


def test_cluster_label_counts_duplicate_names(make_marker):
    members = [make_marker(1, "A"), make_marker(2, "B"), make_marker(3, "A")]
    assert cluster_label(members) == "A x2, B"
    assert cluster_label([make_marker(1, "A")]) == "A"


def test_single_markers_render_at_true_position(make_marker):
    items = build_layout([make_marker(1, "A", LAT, LON), make_marker(2, "B", 22.3, 114.2)], {})
    assert all(isinstance(item, SingleMarkerItem) for item in items)
    assert (items[0].marker.lat, items[0].marker.lon) == (LAT, LON)


def test_flags_for_single_markers_are_ignored(make_marker):
    marker = make_marker(1, "A", LAT, LON)
    items = build_layout([marker], {cluster_key(LAT, LON): True})
    assert isinstance(items[0], SingleMarkerItem)


def test_toggle_symmetry_for_three_coincident_markers(make_marker):
    markers = [make_marker(i, f"M{i}", LAT, LON) for i in range(3)]
    key = cluster_key(LAT, LON)

    collapsed = build_layout(markers, {})
    assert len(collapsed) == 1
    assert isinstance(collapsed[0], CollapsedClusterItem)
    assert collapsed[0].label == "M0, M1, M2"
    assert (collapsed[0].center.lat, collapsed[0].center.lon) == (LAT, LON)

    state = toggle({}, key)
    expanded = build_layout(markers, state)
    assert len(expanded) == 1
    item = expanded[0]
    assert isinstance(item, ExpandedClusterItem)
    assert [leg.marker.id for leg in item.legs] == [0, 1, 2]
    assert [leg.angle for leg in item.legs] == pytest.approx([0.0, 2 * math.pi / 3, 4 * math.pi / 3])
    for leg in item.legs:
        distance = math.hypot(leg.position.lat - LAT, leg.position.lon - LON)
        assert distance == pytest.approx(SPIDER_RADIUS_DEG)
        start, end = leg.segment
        assert (start.lat, start.lon) == (LAT, LON)
        assert end == leg.position
    assert item.legs[0].position.lat == pytest.approx(LAT)
    assert item.legs[0].position.lon == pytest.approx(LON + SPIDER_RADIUS_DEG)

    state = toggle(state, key)
    recollapsed = build_layout(markers, state)
    assert isinstance(recollapsed[0], CollapsedClusterItem)

    state = toggle(state, key)
    again = build_layout(markers, state)
    assert again[0].to_dict() == item.to_dict()


def test_toggle_does_not_mutate_input():
    flags = {"k": False}
    updated = toggle(flags, "k")
    assert flags == {"k": False}
    assert updated == {"k": True}


def test_mixed_layout_keeps_group_order(make_marker):
    markers = [
        make_marker(1, "Solo", 22.3, 114.2),
        make_marker(2, "A", LAT, LON),
        make_marker(3, "A", LAT, LON),
    ]
    items = build_layout(markers, {cluster_key(LAT, LON): True})
    assert [item.kind for item in items] == ["single", "expanded"]
    assert items[1].label == "A x2"


def test_expanded_to_dict_has_thin_leg_and_wide_hit_area(make_marker):
    markers = [make_marker(1, "A", LAT, LON), make_marker(2, "B", LAT, LON)]
    item = build_layout(markers, {cluster_key(LAT, LON): True})[0]
    payload = item.to_dict(LegStyle(visible_weight=2, hit_weight=16))

    assert payload["kind"] == "expanded"
    assert payload["count"] == 2
    leg = payload["legs"][1]
    assert leg["leg"]["weight"] == 2
    assert leg["hitArea"]["weight"] == 16
    assert leg["hitArea"]["opacity"] == 0.0
    assert leg["leg"]["line"][0] == [LAT, LON]
    assert leg["leg"]["line"][1] == leg["position"]


def test_toggle_state_holder_and_prune(make_marker):
    markers = [make_marker(1, "A", LAT, LON), make_marker(2, "A", LAT, LON)]
    key = cluster_key(LAT, LON)
    state = ClusterToggleState()

    assert state.toggle(key) is True
    assert isinstance(state.layout(markers)[0], ExpandedClusterItem)
    assert state.toggle(key) is False
    assert isinstance(state.layout(markers)[0], CollapsedClusterItem)

    state.toggle(key)
    state.prune(markers[:1])
    assert state.flags == {}
    assert not state.is_expanded(key)
