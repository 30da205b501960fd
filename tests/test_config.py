"""Tests for isolator.core.config - models and loading."""

import io
import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from isolator.core.config import (
    RelayConfig,
    RelaySettings,
    ServiceSpec,
    load_config,
    load_source,
)
from isolator.core.constants import DEFAULT_BUFFER_SIZE
from isolator.core.exceptions import ConfigError, IsolatorError


def _write(path: Path, data: object) -> str:
    path.write_text(json.dumps(data))
    return str(path)


class TestServiceSpec:
    """Tests for the ServiceSpec model."""

    def test_canonical_field_names(self):
        spec = ServiceSpec.model_validate({"raw_path": "/r", "isolated_path": "/i"})
        assert spec.raw_path == "/r"
        assert spec.isolated_path == "/i"

    def test_src_dst_synonyms(self):
        """src is the raw side, dst the isolated side."""
        spec = ServiceSpec.model_validate({"src": "/r", "dst": "/i"})
        assert spec.raw_path == "/r"
        assert spec.isolated_path == "/i"

    def test_missing_field_rejected(self):
        with pytest.raises(ValidationError):
            ServiceSpec.model_validate({"raw_path": "/r"})

    def test_unknown_field_rejected(self):
        with pytest.raises(ValidationError):
            ServiceSpec.model_validate({"raw_path": "/r", "isolated_path": "/i", "port": 1})

    def test_empty_path_rejected(self):
        with pytest.raises(ValidationError):
            ServiceSpec.model_validate({"raw_path": "", "isolated_path": "/i"})

    def test_immutable(self):
        spec = ServiceSpec.model_validate({"raw_path": "/r", "isolated_path": "/i"})
        with pytest.raises(ValidationError):
            spec.raw_path = "/other"  # type: ignore[misc]

    def test_permissions_octal_string(self):
        spec = ServiceSpec.model_validate(
            {"raw_path": "/r", "isolated_path": "/i", "permissions": "0660"}
        )
        assert spec.permissions == 0o660

    def test_permissions_integer(self):
        spec = ServiceSpec.model_validate(
            {"raw_path": "/r", "isolated_path": "/i", "permissions": 0o600}
        )
        assert spec.permissions == 0o600

    def test_permissions_out_of_range(self):
        with pytest.raises(ValidationError):
            ServiceSpec.model_validate(
                {"raw_path": "/r", "isolated_path": "/i", "permissions": "1777"}
            )

    def test_permissions_not_octal(self):
        with pytest.raises(ValidationError):
            ServiceSpec.model_validate(
                {"raw_path": "/r", "isolated_path": "/i", "permissions": "rw-"}
            )

    def test_resolves_both_templates(self):
        spec = ServiceSpec.model_validate({"src": "/tmp/$ID.raw", "dst": "/tmp/$ID.iso"})
        subs = [("ID", "svc1")]
        assert spec.raw_path_in(subs) == Path("/tmp/svc1.raw")
        assert spec.isolated_path_in(subs) == Path("/tmp/svc1.iso")

    def test_label(self):
        spec = ServiceSpec.model_validate({"src": "/r", "dst": "/i", "name": "db"})
        assert spec.label(2) == "2 (db)"
        assert ServiceSpec.model_validate({"src": "/r", "dst": "/i"}).label(0) == "0"


class TestRelayConfigShapes:
    """Tests for the accepted document shapes."""

    def test_services_mapping(self):
        config = RelayConfig.from_document(
            {"services": [{"src": "/a", "dst": "/b"}, {"src": "/c", "dst": "/d"}]}
        )
        assert [s.isolated_path for s in config.services] == ["/b", "/d"]

    def test_bare_list(self):
        config = RelayConfig.from_document([{"raw_path": "/a", "isolated_path": "/b"}])
        assert len(config.services) == 1

    def test_single_service(self):
        config = RelayConfig.from_document({"src": "/a", "dst": "/b"})
        assert config.services[0].raw_path == "/a"

    def test_empty_services_allowed(self):
        assert RelayConfig.from_document({"services": []}).services == []

    def test_scalar_rejected(self):
        with pytest.raises(TypeError):
            RelayConfig.from_document("services")

    def test_merged_preserves_order(self):
        first = RelayConfig.from_document({"src": "/1", "dst": "/one"})
        second = RelayConfig.from_document({"src": "/2", "dst": "/two"})
        merged = first.merged(second)
        assert [s.isolated_path for s in merged.services] == ["/one", "/two"]
        assert len(first.services) == 1


class TestRelaySettings:
    """Tests for runtime settings defaults."""

    def test_defaults(self):
        settings = RelaySettings()
        assert settings.strict is True
        assert settings.cleanup is True
        assert settings.buffer_size == DEFAULT_BUFFER_SIZE

    def test_buffer_size_minimum(self):
        with pytest.raises(ValidationError):
            RelaySettings(buffer_size=0)


class TestLoadSource:
    """Tests for loading a single configuration source."""

    def test_json_file(self, tmp_path: Path):
        source = _write(tmp_path / "c.json", {"services": [{"src": "/r", "dst": "/i"}]})
        config = load_source(source)
        assert config.services[0].isolated_path == "/i"

    def test_yaml_file(self, tmp_path: Path):
        path = tmp_path / "c.yaml"
        path.write_text("services:\n  - raw_path: /r\n    isolated_path: /i\n    permissions: '0600'\n")
        config = load_source(str(path))
        assert config.services[0].raw_path == "/r"
        assert config.services[0].permissions == 0o600

    def test_stdin(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setattr("sys.stdin", io.StringIO('[{"src": "/r", "dst": "/i"}]'))
        config = load_source("-")
        assert config.services[0].raw_path == "/r"

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(ConfigError, match="cannot read"):
            load_source(str(tmp_path / "absent.json"))

    def test_malformed_json(self, tmp_path: Path):
        path = tmp_path / "c.json"
        path.write_text("{services: ")
        with pytest.raises(ConfigError, match="cannot parse"):
            load_source(str(path))

    def test_malformed_yaml(self, tmp_path: Path):
        path = tmp_path / "c.yml"
        path.write_text("services: [unclosed\n")
        with pytest.raises(ConfigError, match="cannot parse"):
            load_source(str(path))

    def test_empty_yaml(self, tmp_path: Path):
        path = tmp_path / "c.yaml"
        path.write_text("")
        with pytest.raises(ConfigError, match="empty"):
            load_source(str(path))

    def test_wrong_field_shape(self, tmp_path: Path):
        source = _write(tmp_path / "c.json", {"services": [{"src": 5, "dst": "/i"}]})
        with pytest.raises(ConfigError, match="invalid configuration"):
            load_source(source)

    def test_error_names_source(self, tmp_path: Path):
        source = _write(tmp_path / "c.json", 42)
        with pytest.raises(ConfigError) as exc_info:
            load_source(source)
        assert exc_info.value.source == source
        assert isinstance(exc_info.value, IsolatorError)


class TestLoadConfig:
    """Tests for loading and concatenating several sources."""

    def test_one_document_per_service(self, tmp_path: Path):
        a = _write(tmp_path / "a.json", {"src": "/ra", "dst": "/ia"})
        b = _write(tmp_path / "b.json", {"src": "/rb", "dst": "/ib"})
        config = load_config([a, b])
        assert [s.isolated_path for s in config.services] == ["/ia", "/ib"]

    def test_no_partial_success(self, tmp_path: Path):
        good = _write(tmp_path / "a.json", {"src": "/ra", "dst": "/ia"})
        bad = tmp_path / "b.json"
        bad.write_text("not json")
        with pytest.raises(ConfigError):
            load_config([good, str(bad)])

    def test_no_sources(self):
        with pytest.raises(ConfigError, match="no configuration source"):
            load_config([])
