# ABOUTME: Unit tests for Helm and Kustomize image patch builders
# ABOUTME: Tests source decoding and the add/replace decision for each source type

import pytest

from argocd_update_image.exceptions import MissingArgumentError, MissingSourceError
from argocd_update_image.models import SyncSourceType
from argocd_update_image.utils.patches import (
    HelmSource,
    KustomizeSource,
    UnknownSource,
    build_helm_image_patch,
    build_image_patch,
    build_kustomize_image_patch,
    decode_source,
    image_repository,
)


def record(source: dict) -> dict:
    return {"spec": {"source": source}}


@pytest.mark.unit
class TestDecodeSource:
    """Tests for decode_source."""

    def test_helm(self):
        params = [{"name": "image.tag", "value": "1.0"}]

        assert decode_source(record({"helm": {"parameters": params}})) == HelmSource(params)

    def test_helm_without_parameters(self):
        assert decode_source(record({"helm": {}})) == HelmSource([])

    def test_kustomize(self):
        source = decode_source(record({"kustomize": {"images": ["reg/app:1"]}}))

        assert source == KustomizeSource(["reg/app:1"])

    def test_kustomize_null_images(self):
        assert decode_source(record({"kustomize": {"images": None}})) == KustomizeSource([])

    def test_unknown(self):
        assert decode_source(record({"repoURL": "https://example.com"})) == UnknownSource()

    def test_no_spec(self):
        assert decode_source({}) == UnknownSource()

    def test_helm_wins_when_both_present(self):
        both = record({"helm": {}, "kustomize": {"images": ["reg/app:1"]}})

        assert decode_source(both) == HelmSource([])

    def test_from_record_absent(self):
        assert HelmSource.from_record(record({"kustomize": {}})) is None
        assert KustomizeSource.from_record(record({"helm": {}})) is None


@pytest.mark.unit
class TestBuildHelmImagePatch:
    """Tests for build_helm_image_patch."""

    def test_existing_parameter_is_replaced(self, helm_app):
        """Test an existing parameter produces a replace at its index."""
        op = build_helm_image_patch(helm_app, "some.image:1.0.4", "name")

        assert op.op == "replace"
        assert op.path == "/spec/source/helm/parameters/0"
        assert op.value == {"name": "name", "value": "some.image:1.0.4"}

    def test_replace_uses_matching_index(self):
        params = [
            {"name": "replicas", "value": "2"},
            {"name": "image.tag", "value": "1.0.3"},
        ]

        op = build_helm_image_patch(record({"helm": {"parameters": params}}), "1.0.4", "image.tag")

        assert op.op == "replace"
        assert op.path == "/spec/source/helm/parameters/1"

    def test_missing_parameters_adds_array(self):
        """Test no parameters at all produces an add of a singleton array."""
        op = build_helm_image_patch(record({"helm": {}}), "some.image:1.0.4", "name")

        assert op.op == "add"
        assert op.path == "/spec/source/helm/parameters"
        assert op.value == [{"name": "name", "value": "some.image:1.0.4"}]

    def test_empty_parameters_adds_array(self):
        op = build_helm_image_patch(record({"helm": {"parameters": []}}), "img:2", "image")

        assert op.op == "add"
        assert op.path == "/spec/source/helm/parameters"
        assert op.value == [{"name": "image", "value": "img:2"}]

    def test_other_parameters_are_kept(self):
        """Test an unknown key is appended instead of overwriting other parameters."""
        params = [{"name": "replicas", "value": "2"}, {"name": "env", "value": "dev"}]

        op = build_helm_image_patch(record({"helm": {"parameters": params}}), "img:2", "image")

        assert op.op == "add"
        assert op.path == "/spec/source/helm/parameters/2"
        assert op.value == {"name": "image", "value": "img:2"}

    def test_null_parameter_entries_skipped(self):
        params = [None, {"name": "image", "value": "img:1"}]

        op = build_helm_image_patch(record({"helm": {"parameters": params}}), "img:2", "image")

        assert op.op == "replace"
        assert op.path == "/spec/source/helm/parameters/1"

    def test_no_helm_source_raises(self, kustomize_app):
        with pytest.raises(MissingSourceError, match="helm"):
            build_helm_image_patch(kustomize_app, "img:2", "image")


@pytest.mark.unit
class TestBuildKustomizeImagePatch:
    """Tests for build_kustomize_image_patch."""

    def test_image_repository(self):
        assert image_repository("registry.example.com/team/app:1.0.4") == "registry.example.com/"

    def test_image_repository_without_slash(self):
        assert image_repository("nginx:1.25") == "nginx:1.25/"

    def test_matching_repository_is_replaced(self, kustomize_app):
        """Test an image from the same repository is replaced in place."""
        op = build_kustomize_image_patch(kustomize_app, "registry.example.com/team/app:1.0.4")

        assert op.op == "replace"
        assert op.path == "/spec/source/kustomize/images/0"
        assert op.value == "registry.example.com/team/app:1.0.4"

    def test_first_match_wins(self):
        images = ["other.io/x:1", "registry.example.com/a:1", "registry.example.com/b:1"]

        op = build_kustomize_image_patch(
            record({"kustomize": {"images": images}}), "registry.example.com/c:2"
        )

        assert op.path == "/spec/source/kustomize/images/1"

    def test_missing_images_adds_array(self):
        """Test no images at all produces an add of a singleton array."""
        op = build_kustomize_image_patch(record({"kustomize": {}}), "some.image:1.0.4")

        assert op.op == "add"
        assert op.path == "/spec/source/kustomize/images"
        assert op.value == ["some.image:1.0.4"]

    def test_unmatched_image_is_appended(self):
        """Test an image from another repository is appended, keeping the rest."""
        op = build_kustomize_image_patch(
            record({"kustomize": {"images": ["some.image:1.0.3"]}}), "some.image:1.0.4"
        )

        assert op.op == "add"
        assert op.path == "/spec/source/kustomize/images/1"
        assert op.value == "some.image:1.0.4"

    def test_record_with_both_sources(self):
        """Test the kustomize sub-tree is used even when a helm one is present too."""
        both = record({"helm": {"parameters": []}, "kustomize": {"images": ["reg/app:1"]}})

        op = build_kustomize_image_patch(both, "reg/app:2")

        assert op.op == "replace"
        assert op.path == "/spec/source/kustomize/images/0"

    def test_null_image_entries_skipped(self):
        """Test null entries are passed over and still count towards the append index."""
        images = [None, {"name": "reg/app"}, "reg/app:1"]

        op = build_kustomize_image_patch(record({"kustomize": {"images": images}}), "reg/app:2")

        assert op.path == "/spec/source/kustomize/images/2"

    def test_only_null_entries_appends(self):
        op = build_kustomize_image_patch(record({"kustomize": {"images": [None]}}), "reg/app:2")

        assert op.op == "add"
        assert op.path == "/spec/source/kustomize/images/1"
        assert op.value == "reg/app:2"

    def test_no_kustomize_source_raises(self, helm_app):
        with pytest.raises(MissingSourceError, match="kustomize"):
            build_kustomize_image_patch(helm_app, "reg/app:2")


@pytest.mark.unit
class TestBuildImagePatch:
    """Tests for build_image_patch dispatch."""

    def test_helm_dispatch(self, helm_app):
        op = build_image_patch(SyncSourceType.HELM, helm_app, "some.image:1.0.4", "name")

        assert op.path == "/spec/source/helm/parameters/0"

    def test_helm_requires_key(self, helm_app):
        with pytest.raises(MissingArgumentError):
            build_image_patch(SyncSourceType.HELM, helm_app, "some.image:1.0.4")

    def test_kustomize_ignores_key(self, kustomize_app):
        op = build_image_patch(
            SyncSourceType.KUSTOMIZE,
            kustomize_app,
            "registry.example.com/team/app:2",
            "ignored",
        )

        assert op.path == "/spec/source/kustomize/images/0"
