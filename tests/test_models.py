import pytest
from pydantic import ValidationError

from mdnotes.plugins.models import (
    Cancelled,
    Confirmed,
    FetchResponse,
    PluginManifest,
    PluginState,
)


class TestPluginManifest:
    def test_colon_in_id_is_rejected(self):
        """Ids prefix storage keys and event names, so `a:b` would overlap plugin `a`."""
        with pytest.raises(ValidationError, match="cannot contain ':'"):
            PluginManifest(id="a:b", name="Overlapping", version="1.0.0")

    def test_empty_id_is_rejected(self):
        with pytest.raises(ValidationError):
            PluginManifest(id="", name="Nameless", version="1.0.0")

    def test_manifest_is_frozen(self):
        manifest = PluginManifest(id="p1", name="Plugin", version="1.0.0")

        with pytest.raises(ValidationError):
            manifest.version = "2.0.0"


def test_transitioning_states():
    assert PluginState.ACTIVATING.is_transitioning
    assert PluginState.DEACTIVATING.is_transitioning
    assert not PluginState.ACTIVE.is_transitioning
    assert not PluginState.ERROR.is_transitioning


def test_prompt_results():
    assert not Confirmed("value").cancelled
    assert Cancelled().cancelled


def test_fetch_response():
    response = FetchResponse(
        status=404, status_text="Not Found", headers={}, content='{"error": "missing"}'
    )

    assert not response.ok
    assert response.json() == {"error": "missing"}
