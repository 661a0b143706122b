"""Uploads through the local blob store, plus the S3 store against a fake client."""
from pathlib import Path

import pytest
from botocore.exceptions import ClientError

from golden_glimpses.utils.storage import LocalBlobStore, S3BlobStore
from tests.conftest import build_client, iso_in, make_settings

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


def _upload(client, headers, name="photo.png", data=PNG, content_type="image/png", url="/api/media/upload"):
    return client.post(url, files={"file": (name, data, content_type)}, headers=headers)


class TestUpload:
    def test_upload_and_fetch(self, client, register, settings):
        user, headers = register()
        resp = _upload(client, headers)
        assert resp.status_code == 200
        body = resp.json()
        assert body["url"].startswith(f"/uploads/{user['id']}/photo-")
        assert body["publicId"].startswith(f"{user['id']}/")
        assert body["resourceType"] == "image"
        assert body["format"] == "png"
        assert body["bytes"] == len(PNG)

        served = client.get(body["url"])
        assert served.status_code == 200
        assert served.content == PNG

    def test_requires_auth(self, client):
        assert _upload(client, {}).status_code == 401

    def test_rejects_text_files(self, client, register):
        _, headers = register()
        resp = _upload(client, headers, name="notes.txt", data=b"hello", content_type="text/plain")
        assert resp.status_code == 415

    def test_rejects_large_files(self, tmp_path):
        client = build_client(make_settings(tmp_path, max_upload_mb=1))
        token = client.post("/api/auth/register", json={
            "name": "Big Files", "email": "big@example.com", "password": "secret123",
        }).json()["accessToken"]
        resp = _upload(client, {"Authorization": f"Bearer {token}"}, data=b"\x00" * (1024 * 1024 + 1))
        assert resp.status_code == 413

    def test_delete(self, client, register):
        _, headers = register()
        public_id = _upload(client, headers).json()["publicId"]

        first = client.delete(f"/api/media/{public_id}", headers=headers)
        assert first.status_code == 200
        second = client.delete(f"/api/media/{public_id}", headers=headers)
        assert second.status_code == 404
        assert second.json()["message"] == "File not found or already deleted"

    def test_only_the_uploader_can_delete(self, client, register, settings):
        owner, owner_headers = register()
        _, other_headers = register(name="Other")
        public_id = _upload(client, owner_headers).json()["publicId"]

        resp = client.delete(f"/api/media/{public_id}", headers=other_headers)
        assert resp.status_code == 404
        assert (Path(settings.uploads_dir) / public_id).is_file()
        assert client.delete(f"/api/media/{public_id}", headers=owner_headers).status_code == 200

    @pytest.mark.parametrize("public_id", [
        "u1/../../secrets.txt", "../secrets.txt", "u1/.hidden", "", "u1", "u1/a b.png", "u2/theirs.png",
    ])
    def test_local_store_refuses_odd_ids(self, tmp_path, public_id):
        store = LocalBlobStore(tmp_path / "root")
        (tmp_path / "secrets.txt").write_text("keep")
        (tmp_path / "root" / "u2").mkdir()
        (tmp_path / "root" / "u2" / "theirs.png").write_bytes(PNG)

        assert store.delete("u1", public_id) is False
        assert (tmp_path / "secrets.txt").exists()
        assert (tmp_path / "root" / "u2" / "theirs.png").exists()


class TestUploadIntoCapsule:
    def _capsule(self, client, headers):
        resp = client.post("/api/capsules", headers=headers, json={"title": "Album", "unlockDate": iso_in(days=2)})
        return resp.json()["data"]["id"]

    def test_attach(self, client, register):
        user, headers = register()
        capsule_id = self._capsule(client, headers)

        resp = client.put(f"/api/capsules/{capsule_id}/media",
                          files={"file": ("cat.png", PNG, "image/png")}, headers=headers)
        assert resp.status_code == 200
        media = resp.json()["capsule"]["media"]
        assert len(media) == 1
        assert media[0]["type"] == "image"
        assert media[0]["filename"] == "cat.png"
        assert media[0]["url"].startswith(f"/uploads/{user['id']}/cat-")

    def test_sealed_capsule_drops_the_upload(self, client, register, settings):
        _, headers = register()
        capsule_id = self._capsule(client, headers)
        client.put(f"/api/capsules/{capsule_id}/seal", headers=headers)

        resp = client.put(f"/api/capsules/{capsule_id}/media",
                          files={"file": ("cat.png", PNG, "image/png")}, headers=headers)
        assert resp.status_code == 409
        assert [p for p in Path(settings.uploads_dir).rglob("*") if p.is_file()] == []


class FakeS3:
    def __init__(self):
        self.objects = {}

    def put_object(self, Bucket, Key, Body, ContentType):
        self.objects[(Bucket, Key)] = (Body, ContentType)

    def head_object(self, Bucket, Key):
        if (Bucket, Key) not in self.objects:
            raise ClientError({"Error": {"Code": "404", "Message": "Not Found"}}, "HeadObject")
        return {}

    def delete_object(self, Bucket, Key):
        self.objects.pop((Bucket, Key), None)


class TestS3BlobStore:
    def _store(self, tmp_path, **overrides):
        values = dict(s3_bucket="capsules", aws_access_key_id="key", aws_secret_access_key="secret")
        values.update(overrides)
        fake = FakeS3()
        return S3BlobStore(make_settings(tmp_path, **values), client=fake), fake

    def test_upload_uses_public_base(self, tmp_path):
        store, fake = self._store(tmp_path, s3_public_base_url="https://cdn.example.com/")
        result = store.upload("u1", b"abc", "audio/mpeg", "Voice memo.mp3")

        assert result.public_id.startswith("time-capsule-media/u1/Voice_memo-")
        assert result.url == f"https://cdn.example.com/{result.public_id}"
        assert result.resource_type == "audio"
        assert fake.objects[("capsules", result.public_id)] == (b"abc", "audio/mpeg")

    def test_endpoint_url_when_no_public_base(self, tmp_path):
        store, _ = self._store(tmp_path, s3_endpoint="https://s3.example.com")
        result = store.upload("u1", b"abc", "image/jpeg", "a.jpg")
        assert result.url.startswith("https://s3.example.com/capsules/time-capsule-media/u1/a-")

    def test_delete(self, tmp_path):
        store, _ = self._store(tmp_path)
        result = store.upload("u1", b"abc", "image/jpeg", "a.jpg")
        assert store.delete("u1", result.public_id) is True
        assert store.delete("u1", result.public_id) is False

    def test_delete_refuses_keys_outside_the_owner_prefix(self, tmp_path):
        store, fake = self._store(tmp_path)
        result = store.upload("u1", b"abc", "image/jpeg", "a.jpg")
        fake.objects[("capsules", "config/settings.json")] = (b"{}", "application/json")

        assert store.delete("u2", result.public_id) is False
        assert store.delete("u1", "config/settings.json") is False
        assert store.delete("u1", "time-capsule-media/u1/../u2/x.jpg") is False
        assert len(fake.objects) == 2
