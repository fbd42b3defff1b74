"""Unit tests for the SQLite subject profile and asset store."""

import base64
import sqlite3

import pytest

from shotgraph.core.asset_store import AssetStore, SubjectProfile
from shotgraph.core.attributes import Gender
from shotgraph.core.images import ImageRef


@pytest.fixture
def profile(sample_image) -> SubjectProfile:
    return SubjectProfile(
        id="ada",
        name="Ada",
        gender=Gender.WOMAN,
        body_type="slim",
        images=(sample_image,),
        tags=("lead",),
    )


class TestSubjects:
    """Tests for subject profile CRUD."""

    def test_put_and_get(self, asset_store, profile):
        assert asset_store.put_subject(profile)
        assert asset_store.get_subject("ada") == profile

    def test_get_missing(self, asset_store):
        assert asset_store.get_subject("nobody") is None

    def test_replace(self, asset_store, profile):
        asset_store.put_subject(profile)
        asset_store.put_subject(profile.model_copy(update={"name": "Ada L."}))
        assert asset_store.get_subject("ada").name == "Ada L."
        assert len(asset_store.list_subjects()) == 1

    def test_list_sorted_by_name(self, asset_store):
        asset_store.put_subject(SubjectProfile(id="2", name="Zed"))
        asset_store.put_subject(SubjectProfile(id="1", name="Amy"))
        assert [p.name for p in asset_store.list_subjects()] == ["Amy", "Zed"]

    def test_delete(self, asset_store, profile):
        asset_store.put_subject(profile)
        assert asset_store.delete_subject("ada")
        assert asset_store.delete_subject("ada") is False
        assert asset_store.get_subject("ada") is None

    def test_subject_library(self, asset_store, profile):
        asset_store.put_subject(profile)
        assert asset_store.subject_library() == {"ada": profile}

    def test_persists_across_instances(self, asset_store, profile, test_config):
        asset_store.put_subject(profile)
        reopened = AssetStore(test_config.asset_db_path)
        assert reopened.get_subject("ada") == profile

    def test_unreadable_row_skipped(self, asset_store, profile):
        """Corrupt payloads are logged and skipped, not raised."""
        asset_store.put_subject(profile)
        with sqlite3.connect(asset_store.db_path) as conn:
            conn.execute(
                "INSERT INTO subjects (id, name, payload) VALUES (?, ?, ?)",
                ("bad", "Bad", "{not json"),
            )
        assert [p.id for p in asset_store.list_subjects()] == ["ada"]
        assert asset_store.get_subject("bad") is None


class TestAssets:
    """Tests for image asset CRUD."""

    def test_put_and_get(self, asset_store, sample_image):
        stored = asset_store.put_asset("img-1", sample_image, label="Mood board")
        assert stored.image == sample_image
        assert stored.created_at is not None
        assert asset_store.get_asset("img-1") == stored

    def test_list_newest_first(self, asset_store, sample_image):
        asset_store.put_asset("b", sample_image)
        asset_store.put_asset("a", sample_image)
        assert [a.id for a in asset_store.list_assets()] == ["a", "b"]

    def test_delete(self, asset_store, sample_image):
        asset_store.put_asset("img-1", sample_image)
        assert asset_store.delete_asset("img-1")
        assert asset_store.get_asset("img-1") is None

    def test_clear(self, asset_store, sample_image, profile):
        asset_store.put_asset("img-1", sample_image)
        asset_store.put_subject(profile)
        asset_store.clear()
        assert asset_store.list_assets() == []
        assert asset_store.list_subjects() == []


class TestImageRef:
    """Tests for image reference helpers."""

    def test_from_bytes_detects_png(self, png_bytes):
        image = ImageRef.from_bytes(png_bytes)
        assert image.mime_type == "image/png"
        assert image.to_bytes() == png_bytes

    def test_from_bytes_rejects_garbage(self):
        with pytest.raises(ValueError):
            ImageRef.from_bytes(b"definitely not an image")

    def test_data_url_round_trip(self, sample_image):
        assert ImageRef.from_data_url(sample_image.to_data_url()) == sample_image

    def test_data_url_requires_base64(self):
        with pytest.raises(ValueError):
            ImageRef.from_data_url("data:image/png," + base64.b64encode(b"x").decode())
