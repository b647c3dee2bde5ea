"""Tests for backup endpoints (F9)."""

from unittest.mock import patch

import pytest


class TestBackupEndpoints:
    """Tests for GET /api/backup and POST /api/backup/restore."""

    def test_download_backup(self, client, scheduled):
        response = client.get("/api/backup")

        assert response.status_code == 200
        data = response.json()
        assert len(data["documents"]) == 1
        assert len(data["lessons"]) == 4
        assert data["documents"][0]["chapters"][0]["title"] == "Chapter 1: Motion and Forces"

    def test_restore_roundtrip(self, client, scheduled):
        snapshot = client.get("/api/backup").json()
        client.delete(f"/api/documents/{scheduled}")

        response = client.post("/api/backup/restore", json=snapshot)

        assert response.status_code == 200
        assert response.json() == {"documents": 1, "lessons": 4}
        lessons = client.get(f"/api/documents/{scheduled}/lessons").json()
        assert [l["lesson_id"] for l in lessons["lessons"]] == [
            l["lesson_id"] for l in snapshot["lessons"]
        ]

    def test_restore_invalid_keeps_data(self, client, scheduled):
        response = client.post("/api/backup/restore", json={"documents": []})

        assert response.status_code == 400
        assert "lessons" in response.json()["detail"]
        assert client.get(f"/api/documents/{scheduled}").status_code == 200

    def test_restore_rejects_non_object(self, client, scheduled):
        response = client.post("/api/backup/restore", json=[1, 2, 3])

        assert response.status_code == 400

    @pytest.mark.parametrize(
        "changes",
        [
            {"current_lesson_pointer": 0},
            {"detected_language": "fr"},
            {"title": None},
        ],
    )
    def test_restore_rejects_invalid_values(self, client, scheduled, changes):
        snapshot = client.get("/api/backup").json()
        snapshot["documents"][0].update(changes)

        response = client.post("/api/backup/restore", json=snapshot)

        assert response.status_code == 400
        assert client.get(f"/api/documents/{scheduled}").status_code == 200

    def test_restore_rejects_duplicate_document(self, client, scheduled):
        snapshot = client.get("/api/backup").json()
        snapshot["documents"].append(dict(snapshot["documents"][0]))

        response = client.post("/api/backup/restore", json=snapshot)

        assert response.status_code == 400
        assert "duplicate" in response.json()["detail"]

    def test_invalid_restore_leaves_indexing_alone(self, client, scheduled):
        snapshot = client.get("/api/backup").json()
        snapshot["documents"][0]["detected_language"] = "fr"

        with patch("curriculum.web.routes.backup.registry") as mock_registry:
            response = client.post("/api/backup/restore", json=snapshot)

        assert response.status_code == 400
        mock_registry.cancel_all.assert_not_called()
