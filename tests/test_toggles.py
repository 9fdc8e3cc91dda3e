"""
Tests for feature toggles and YAML toggle definitions.
"""

import pytest

from flagyard.config.constants import DEFAULT_COHORT_KEY, TOGGLE_OVERRIDES_KEY
from flagyard.errors import ToggleConfigError
from flagyard.store.backends import JsonFileBackend, MemoryBackend
from flagyard.toggles import FeatureToggle, Toggler, load_toggles, local_value_key, parse_toggles


@pytest.fixture
def toggler(make_engine):
    engine = make_engine(
        backend=MemoryBackend({DEFAULT_COHORT_KEY: 7.3}),
        appVersion="2.5",
        deviceType="phone",
    )
    return Toggler(engine)


class TestLocalValueKey:

    def test_lowercase_and_underscores(self):
        assert local_value_key("Secret Feature") == "flagyard_toggler_local_value_secret_feature"

    def test_feature_toggle_local_key(self):
        assert FeatureToggle("Dark Mode").local_key == local_value_key("Dark Mode")


class TestResolution:
    """Tests for Toggler.value() resolution order."""

    def test_unknown_toggle_is_false(self, toggler):
        assert toggler.value("Nope") is False

    def test_remote_value_when_overrides_disabled(self, toggler):
        toggler.configure_toggle("On Remote", remote_value=True, ab_expression="percentage <= 1")
        toggler.configure_toggle("Off Remote", remote_value=False)
        toggler.set_local_value("Off Remote", True)

        assert toggler.local_overrides_enabled is False
        assert toggler.value("On Remote") is True
        assert toggler.value("Off Remote") is False

    def test_ab_expression_when_overrides_enabled(self, toggler):
        toggler.configure_toggle("Rollout", remote_value=False, ab_expression="percentage <= 10")
        toggler.configure_toggle("Tablets", remote_value=True, ab_expression="deviceType == tablet")
        toggler.local_overrides_enabled = True

        assert toggler.value("Rollout") is True
        assert toggler.value("Tablets") is False

    def test_ab_expression_beats_local_value(self, toggler):
        toggler.configure_toggle("Rollout", remote_value=False, ab_expression="percentage <= 5")
        toggler.set_local_value("Rollout", True)
        toggler.local_overrides_enabled = True
        assert toggler.value("Rollout") is False

    def test_local_value_when_no_expression(self, toggler):
        toggler.configure_toggle("Manual", remote_value=False)
        toggler.local_overrides_enabled = True

        assert toggler.value("Manual") is False
        toggler.set_local_value("Manual", True)
        assert toggler.value("Manual") is True

    def test_values(self, toggler):
        toggler.configure_toggle("A", remote_value=True)
        toggler.configure_toggle("B", remote_value=False)
        assert toggler.values() == {"A": True, "B": False}

    def test_reconfigure_replaces(self, toggler):
        toggler.configure_toggle("A", remote_value=False)
        toggler.configure_toggle("A", remote_value=True)
        assert len(toggler.toggles) == 1
        assert toggler.value("A") is True


class TestLocalOverrides:
    """Tests for persisted local state."""

    def test_overrides_switch_persisted(self, toggler):
        toggler.local_overrides_enabled = True
        assert toggler.backend.get(TOGGLE_OVERRIDES_KEY) is True

    def test_set_local_value_unknown_is_ignored(self, toggler):
        toggler.set_local_value("Ghost", True)
        assert toggler.backend.get(local_value_key("Ghost")) is None

    def test_local_value_default(self, toggler):
        toggler.configure_toggle("A", remote_value=True)
        assert toggler.local_value("A") is False
        assert toggler.local_value("Ghost") is False

    def test_local_values_survive_restart(self, make_engine, tmp_path):
        path = tmp_path / "toggles.json"

        first = Toggler(make_engine(backend=JsonFileBackend(path)))
        first.configure_toggle("Manual", remote_value=False)
        first.local_overrides_enabled = True
        first.set_local_value("Manual", True)

        second = Toggler(make_engine(backend=JsonFileBackend(path)))
        second.configure_toggle("Manual", remote_value=False)
        assert second.local_overrides_enabled is True
        assert second.value("Manual") is True

    def test_separate_backend(self, make_engine):
        engine = make_engine()
        overrides = MemoryBackend()
        toggler = Toggler(engine, backend=overrides)
        toggler.local_overrides_enabled = True
        assert overrides.get(TOGGLE_OVERRIDES_KEY) is True
        assert engine.backend.get(TOGGLE_OVERRIDES_KEY) is None


class TestParseToggles:
    """Tests for toggle document validation."""

    def test_valid_document(self):
        toggles = parse_toggles({
            "toggles": [
                {"name": "New Checkout", "remote_value": True, "ab_expression": "appVersion >= 2.0"},
                {"name": "Dark Mode"},
            ]
        })
        assert toggles == [
            FeatureToggle("New Checkout", True, "appVersion >= 2.0"),
            FeatureToggle("Dark Mode", False, None),
        ]

    def test_empty_list(self):
        assert parse_toggles({"toggles": None}) == []

    @pytest.mark.parametrize("raw,match", [
        (None, "must be a mapping with a 'toggles' list"),
        ({"flags": []}, "must be a mapping with a 'toggles' list"),
        ({"toggles": "x"}, "'toggles' must be a list"),
        ({"toggles": ["x"]}, r"toggles\[0\] must be a mapping"),
        ({"toggles": [{"name": ""}]}, r"toggles\[0\]\.name must be a non-empty string"),
        ({"toggles": [{"name": "A", "remote_value": "yes"}]}, "remote_value must be a boolean"),
        ({"toggles": [{"name": "A", "ab_expression": 5}]}, "ab_expression must be a string"),
        ({"toggles": [{"name": "A", "colour": "red"}]}, "unknown keys: colour"),
        ({"toggles": [{"name": "A"}, {"name": "A"}]}, "duplicate toggle name 'A'"),
    ])
    def test_invalid_documents(self, raw, match):
        with pytest.raises(ToggleConfigError, match=match):
            parse_toggles(raw)

    def test_error_carries_path(self):
        with pytest.raises(ToggleConfigError, match="^flags.yml: ") as exc_info:
            parse_toggles({}, "flags.yml")
        assert exc_info.value.path == "flags.yml"


class TestLoadToggles:
    """Tests for YAML loading."""

    def test_load_file(self, tmp_path):
        path = tmp_path / "toggles.yml"
        path.write_text(
            "toggles:\n"
            "  - name: New Checkout\n"
            "    remote_value: true\n"
            "    ab_expression: \"appVersion >= 2.0 && percentage <= 10\"\n"
            "  - name: Dark Mode\n",
            encoding="utf-8",
        )
        toggles = load_toggles(path)
        assert [t.name for t in toggles] == ["New Checkout", "Dark Mode"]
        assert toggles[0].ab_expression == "appVersion >= 2.0 && percentage <= 10"

    def test_missing_file(self, tmp_path):
        with pytest.raises(ToggleConfigError, match="file not found"):
            load_toggles(tmp_path / "nope.yml")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yml"
        path.write_text("toggles: [unclosed\n", encoding="utf-8")
        with pytest.raises(ToggleConfigError, match="invalid YAML"):
            load_toggles(path)

    def test_loaded_toggles_resolve(self, tmp_path, toggler):
        path = tmp_path / "toggles.yml"
        path.write_text(
            "toggles:\n"
            "  - name: Rollout\n"
            "    ab_expression: \"appVersion >= 2.0 && percentage <= 10\"\n",
            encoding="utf-8",
        )
        toggler.configure_many(load_toggles(path))
        toggler.local_overrides_enabled = True
        assert toggler.value("Rollout") is True
