from pathlib import Path

import pytest

from kcprovider.config import (
    ProviderConfig,
    Timeouts,
    _deep_merge,
    build_config,
    load_config,
    resolve_config,
)
from kcprovider.constants import Action, Region, Service, ServiceRealm
from kcprovider.core.exceptions import ConfigurationError
from kcprovider.core.executor import RetrySettings

pytestmark = [pytest.mark.xdist_group("unit")]

CREDS = {"application_credential_id": "cid", "application_credential_secret": "secret"}


class TestDeepMerge:
    def test_shallow_override(self):
        assert _deep_merge({"a": 1, "b": 2}, {"b": 3}) == {"a": 1, "b": 3}

    def test_nested_merge(self):
        base = {"timeouts": {"create": 60, "delete": 30}}
        override = {"timeouts": {"create": 120}}
        assert _deep_merge(base, override) == {"timeouts": {"create": 120, "delete": 30}}

    def test_empty_base(self):
        assert _deep_merge({}, {"a": 1}) == {"a": 1}

    def test_empty_override(self):
        assert _deep_merge({"a": 1}, {}) == {"a": 1}


class TestLoadConfig:
    def test_project_only(self, tmp_path: Path):
        (tmp_path / "kcprovider.toml").write_text('region = "kr-central-2"\n')
        result = load_config(project_dir=tmp_path, global_path=tmp_path / "nonexistent.toml")
        assert result["region"] == "kr-central-2"
        assert result["timeouts"] == {}

    def test_project_overrides_global(self, tmp_path: Path):
        global_toml = tmp_path / "defaults.toml"
        global_toml.write_text('[timeouts]\ncreate = 100\ndelete = 50\n')
        project_dir = tmp_path / "project"
        project_dir.mkdir()
        (project_dir / "kcprovider.toml").write_text("[timeouts]\ncreate = 200\n")
        result = load_config(project_dir=project_dir, global_path=global_toml)
        assert result["timeouts"] == {"create": 200, "delete": 50}

    def test_no_files(self, tmp_path: Path):
        result = load_config(project_dir=tmp_path, global_path=tmp_path / "missing.toml")
        assert result == {"endpoint_overrides": {}, "timeouts": {}, "retry": {}}


class TestBuildConfig:
    def test_defaults(self):
        config = build_config(dict(CREDS), env={})
        assert config.service_realm is ServiceRealm.PUBLIC
        assert config.region is Region.KR2
        assert config.availability_zones == (
            "kr-central-2-a", "kr-central-2-b", "kr-central-2-c", "kr-central-2-d",
        )
        assert config.timeouts == Timeouts()
        assert config.retry == RetrySettings()

    def test_credentials_from_env(self):
        env = {"APPLICATION_CREDENTIAL_ID": "env-id", "APPLICATION_CREDENTIAL_SECRET": "env-secret"}
        config = build_config({}, env=env)
        assert config.application_credential_id == "env-id"
        assert config.application_credential_secret == "env-secret"

    def test_file_credentials_win_over_env(self):
        env = {"APPLICATION_CREDENTIAL_ID": "env-id", "APPLICATION_CREDENTIAL_SECRET": "env-secret"}
        config = build_config(dict(CREDS), env=env)
        assert config.application_credential_id == "cid"

    def test_secret_not_in_repr(self):
        assert "secret" not in repr(build_config(dict(CREDS), env={}))

    @pytest.mark.parametrize("missing", ["application_credential_id", "application_credential_secret"])
    def test_missing_credential(self, missing: str):
        raw = {k: v for k, v in CREDS.items() if k != missing}
        with pytest.raises(ConfigurationError, match=missing):
            build_config(raw, env={})

    def test_invalid_region(self):
        with pytest.raises(ConfigurationError, match="Invalid region"):
            build_config({**CREDS, "region": "us-east-1"}, env={})

    def test_unsupported_combination(self):
        with pytest.raises(ConfigurationError, match="unsupported combination"):
            build_config({**CREDS, "service_realm": "gov", "region": "kr-central-2"}, env={})

    def test_gov_realm_zones(self):
        config = build_config({**CREDS, "service_realm": "gov", "region": "kr-central-1"}, env={})
        assert config.availability_zones == ("kr-central-1-a", "kr-central-1-b")

    def test_unknown_override(self):
        with pytest.raises(ConfigurationError, match="Unknown endpoint override"):
            build_config({**CREDS, "endpoint_overrides": {"network": "http://x"}}, env={})

    def test_unknown_key(self):
        with pytest.raises(ConfigurationError, match="Unknown configuration key"):
            build_config({**CREDS, "colour": "blue"}, env={})

    def test_bad_timeouts_section(self):
        with pytest.raises(ConfigurationError, match=r"Invalid \[timeouts\]"):
            build_config({**CREDS, "timeouts": {"forever": 1}}, env={})

    def test_sections(self):
        config = build_config(
            {**CREDS, "timeouts": {"create": 10}, "retry": {"max_attempts": 5}}, env={}
        )
        assert config.timeouts.create == 10
        assert config.timeouts.for_action(Action.CREATE) == 10
        assert config.timeouts.for_action("delete") == Timeouts().delete
        assert config.retry.max_attempts == 5


class TestEndpoints:
    def test_regional_service(self):
        config = ProviderConfig("cid", "secret")
        assert config.endpoint(Service.KUBERNETES_ENGINE) == (
            "https://kubernetes-engine.kr-central-2.kakaocloud.com"
        )

    def test_iam_is_global(self):
        config = ProviderConfig("cid", "secret")
        assert config.endpoint("iam") == "https://iam.kakaocloud.com"

    def test_override(self):
        config = ProviderConfig("cid", "secret", endpoint_overrides={"image": "http://localhost:8080/"})
        assert config.endpoint(Service.IMAGE) == "http://localhost:8080"


def test_resolve_config(tmp_path: Path):
    (tmp_path / "kcprovider.toml").write_text(
        'application_credential_id = "cid"\n'
        'application_credential_secret = "secret"\n'
        "[endpoint_overrides]\n"
        'kubernetes_engine = "http://127.0.0.1:9000"\n'
    )
    config = resolve_config(project_dir=tmp_path, global_path=tmp_path / "none.toml", env={})
    assert config.endpoint(Service.KUBERNETES_ENGINE) == "http://127.0.0.1:9000"
