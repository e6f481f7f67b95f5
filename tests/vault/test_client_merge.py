import logging

import pytest

from vaultops.models.secret import AppRoleCredential, Credential
from vaultops.vault.client import VaultClient, authenticate
from vaultops.vault.errors import CheckAndSetError, PreconditionError


def test_append_on_new_path_writes_payload_as_is(client: VaultClient, fake_vault) -> None:
    result = client.write_secret("team/kv", "infra/app1", {"svc_a": "pw1"})
    assert result.version == 1
    assert result.data == {"svc_a": "pw1"}
    assert fake_vault.live_data("team/kv", "infra/app1") == {"svc_a": "pw1"}
    # existence check lists the parent folder, and no read happens on a new path
    methods = [(c["method"], c["url"].split("/v1/")[1]) for c in fake_vault.calls]
    assert methods == [
        ("GET", "team/kv/metadata/infra?list=true"),
        ("POST", "team/kv/data/infra/app1"),
    ]


def test_append_merges_disjoint_keys(client: VaultClient, fake_vault) -> None:
    fake_vault.seed("kv", "app1", {"k1": "v1", "k2": "v2"})
    client.write_secret("kv", "app1", {"k3": "v3"}, append=True)
    assert client.read_mapping("kv", "app1").data == {"k1": "v1", "k2": "v2", "k3": "v3"}


def test_append_new_value_wins_on_shared_key(client: VaultClient, fake_vault) -> None:
    fake_vault.seed("kv", "app1", {"k1": "old", "k2": "keep"})
    result = client.write_secret("kv", "app1", {"k1": "new"})
    assert result.data == {"k1": "new", "k2": "keep"}
    assert client.read_mapping("kv", "app1", key_name="k1").data == {"k1": "new"}
    assert client.read_mapping("kv", "app1", key_name="k2").data == {"k2": "keep"}


def test_overwrite_replaces_whole_bundle(client: VaultClient, fake_vault) -> None:
    fake_vault.seed("kv", "app1", {"k1": "v1", "k2": "v2"})
    client.write_secret("kv", "app1", {"only": "this"}, append=False)
    assert client.read_mapping("kv", "app1").data == {"only": "this"}


def test_overwrite_skips_existence_check(client: VaultClient, fake_vault) -> None:
    client.write_secret("kv", "app1", {"a": "1"}, append=False)
    assert [c["method"] for c in fake_vault.calls] == ["POST"]


def test_credential_payload_is_keyed_by_username(client: VaultClient, fake_vault) -> None:
    fake_vault.seed("kv", "svc", {"other": "x"})
    client.write_secret("kv", "svc", Credential(username="svc_sql", password="s3cret"))
    assert fake_vault.live_data("kv", "svc") == {"other": "x", "svc_sql": "s3cret"}


def test_append_after_soft_delete_writes_as_new(client: VaultClient, fake_vault) -> None:
    fake_vault.seed("kv", "app1", {"stale": "x"})
    client.delete_secret("kv", "app1")
    assert "app1" in client.list_secrets("kv")
    client.write_secret("kv", "app1", {"fresh": "y"})
    assert client.read_mapping("kv", "app1").data == {"fresh": "y"}


def test_cas_guards_concurrent_writers(client: VaultClient, fake_vault) -> None:
    fake_vault.seed("kv", "app1", {"a": "1"})
    client.write_secret("kv", "app1", {"b": "2"}, cas=1)
    with pytest.raises(CheckAndSetError) as info:
        client.write_secret("kv", "app1", {"c": "3"}, cas=1)
    assert info.value.status == 400
    assert fake_vault.live_data("kv", "app1") == {"a": "1", "b": "2"}


def test_cas_zero_requires_new_bundle(client: VaultClient, fake_vault) -> None:
    client.write_secret("kv", "fresh", {"a": "1"}, cas=0)
    with pytest.raises(CheckAndSetError):
        client.write_secret("kv", "fresh", {"a": "2"}, cas=0)


@pytest.mark.parametrize("data", [["a", "b"], {"": "v"}, {1: "v"}])
def test_invalid_payload_is_rejected_before_request(client: VaultClient, fake_vault, data) -> None:
    with pytest.raises(PreconditionError):
        client.write_secret("kv", "app1", data)
    assert fake_vault.calls == []


@pytest.mark.parametrize("path", ["", "/", "a/../b", "a//b"])
def test_invalid_path_is_rejected_before_request(client: VaultClient, fake_vault, path: str) -> None:
    with pytest.raises(PreconditionError):
        client.write_secret("kv", path, {"a": "1"})
    assert fake_vault.calls == []


def test_write_logs_key_names_but_never_values(client: VaultClient, caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.DEBUG, logger="vaultops")
    client.write_secret("kv", "app1", {"svc_a": "very-secret-value"})
    assert "svc_a" in caplog.text
    assert "very-secret-value" not in caplog.text
    assert "hvs.test-token" not in caplog.text


def test_scenario_merge_then_overwrite(fake_vault) -> None:
    client = authenticate(
        AppRoleCredential(role_id="role-1", secret_id="secret-1"),
        "vault.test",
        transport=fake_vault,
    )
    client.write_secret("kv", "infra/app1", {"svc_a": "pw1"}, append=True)
    assert client.read_mapping("kv", "infra/app1").data == {"svc_a": "pw1"}

    client.write_secret("kv", "infra/app1", {"svc_b": "pw2"}, append=True)
    assert client.read_mapping("kv", "infra/app1").data == {"svc_a": "pw1", "svc_b": "pw2"}

    client.write_secret("kv", "infra/app1", {"svc_a": "pw3"}, append=False)
    assert client.read_mapping("kv", "infra/app1").data == {"svc_a": "pw3"}
    assert client.get_secret_metadata("kv", "infra/app1").current_version == 3
