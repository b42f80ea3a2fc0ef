import json

import pytest

from hostprep.state_store import (
    STATE_VERSION,
    ensure_defaults,
    load_state,
    record_observed,
    record_outcome,
    record_warning,
    save_state,
)


def test_missing_file_is_empty(tmp_path):
    assert load_state(str(tmp_path / "state.json")) == {}


@pytest.mark.parametrize("name", ["state.json", "state.yaml"])
def test_save_and_load(tmp_path, name):
    path = str(tmp_path / "sub" / name)
    state = ensure_defaults({})
    record_observed(state, "bt-packages", "absent", "none installed")
    record_outcome(state, "bt-packages", "converged", applied=True)
    record_warning(state, "bt-firmware", "no firmware")
    save_state(path, state)

    loaded = load_state(path)
    assert loaded["version"] == STATE_VERSION
    assert loaded["observed"]["bt-packages"] == {"status": "absent", "detail": "none installed"}
    assert loaded["outcomes"]["bt-packages"] == {"outcome": "converged", "applied": True}
    assert loaded["execution"]["warnings"] == [{"resource": "bt-firmware", "warning": "no firmware"}]


def test_ensure_defaults_keeps_existing():
    state = ensure_defaults({"execution": {"runs": 3}})
    assert state["execution"]["runs"] == 3
    assert state["execution"]["errors"] == []


def test_non_mapping_state_rejected(tmp_path):
    p = tmp_path / "state.json"
    p.write_text(json.dumps([1, 2]))
    with pytest.raises(ValueError):
        load_state(str(p))
