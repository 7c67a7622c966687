"""
Favorites and playlist tests
"""
from models.library import Playlist, PlaylistItem


class TestFavorites:
    """Bookmarks"""

    def test_add_check_remove(self, client, test_video, auth_headers):
        response = client.post("/api/favorites", json={"videoId": test_video.id}, headers=auth_headers)
        assert response.status_code == 201
        assert response.json()["video"]["title"] == "Neon Tunnel"

        check = client.get(f"/api/favorites/check/{test_video.id}", headers=auth_headers)
        assert check.json() == {"isFavorite": True}

        assert client.delete(f"/api/favorites/{test_video.id}", headers=auth_headers).status_code == 200
        assert client.get(f"/api/favorites/check/{test_video.id}", headers=auth_headers).json() == {"isFavorite": False}

    def test_duplicate_favorite_conflicts(self, client, test_video, auth_headers):
        client.post("/api/favorites", json={"videoId": test_video.id}, headers=auth_headers)
        response = client.post("/api/favorites", json={"videoId": test_video.id}, headers=auth_headers)
        assert response.status_code == 409

    def test_unknown_video(self, client, auth_headers):
        assert client.post("/api/favorites", json={"videoId": 999}, headers=auth_headers).status_code == 404

    def test_remove_missing_favorite(self, client, test_video, auth_headers):
        assert client.delete(f"/api/favorites/{test_video.id}", headers=auth_headers).status_code == 404


class TestPlaylists:
    """Ordered collections"""

    def _playlist_with_items(self, client, headers, videos, **extra):
        playlist = client.post("/api/playlists", json={"name": "Friday set", **extra}, headers=headers).json()
        items = [
            client.post(f"/api/playlists/{playlist['id']}/items", json={"videoId": v.id}, headers=headers).json()
            for v in videos
        ]
        return playlist, items

    def test_items_get_sequential_positions(self, client, sample_videos, auth_headers):
        _, items = self._playlist_with_items(client, auth_headers, sample_videos[:3])
        assert [item["position"] for item in items] == [1, 2, 3]

    def test_duplicate_item_conflicts(self, client, test_video, auth_headers):
        playlist, _ = self._playlist_with_items(client, auth_headers, [test_video])
        response = client.post(
            f"/api/playlists/{playlist['id']}/items", json={"videoId": test_video.id}, headers=auth_headers
        )
        assert response.status_code == 409

    def test_remove_item_renumbers(self, client, sample_videos, auth_headers):
        playlist, items = self._playlist_with_items(client, auth_headers, sample_videos[:3])

        response = client.delete(f"/api/playlists/{playlist['id']}/items/{items[0]['id']}", headers=auth_headers)
        assert response.status_code == 200
        remaining = response.json()["items"]
        assert [item["id"] for item in remaining] == [items[1]["id"], items[2]["id"]]
        assert [item["position"] for item in remaining] == [1, 2]

    def test_reorder(self, client, sample_videos, auth_headers):
        playlist, items = self._playlist_with_items(client, auth_headers, sample_videos[:3])
        new_order = [items[2]["id"], items[0]["id"], items[1]["id"]]

        response = client.put(f"/api/playlists/{playlist['id']}/reorder", json={"itemIds": new_order}, headers=auth_headers)
        assert response.status_code == 200
        assert [item["id"] for item in response.json()["items"]] == new_order

    def test_reorder_requires_every_item(self, client, sample_videos, auth_headers):
        playlist, items = self._playlist_with_items(client, auth_headers, sample_videos[:3])
        response = client.put(
            f"/api/playlists/{playlist['id']}/reorder",
            json={"itemIds": [items[0]["id"]]},
            headers=auth_headers,
        )
        assert response.status_code == 400

    def test_delete_removes_items(self, client, test_db, sample_videos, auth_headers):
        playlist, _ = self._playlist_with_items(client, auth_headers, sample_videos[:2])

        assert client.delete(f"/api/playlists/{playlist['id']}", headers=auth_headers).status_code == 200
        assert test_db.query(Playlist).count() == 0
        assert test_db.query(PlaylistItem).count() == 0

    def test_private_playlist_hidden_from_others(self, client, test_video, auth_headers, member_headers):
        playlist, _ = self._playlist_with_items(client, auth_headers, [test_video])

        assert client.get(f"/api/playlists/{playlist['id']}", headers=auth_headers).status_code == 200
        assert client.get(f"/api/playlists/{playlist['id']}", headers=member_headers).status_code == 403
        assert client.delete(f"/api/playlists/{playlist['id']}", headers=member_headers).status_code == 403

    def test_share_link(self, client, test_video, auth_headers):
        playlist, _ = self._playlist_with_items(client, auth_headers, [test_video])
        assert playlist["shareToken"] is None

        shared = client.put(f"/api/playlists/{playlist['id']}", json={"isPublic": True}, headers=auth_headers).json()
        token = shared["shareToken"]
        assert token

        public = client.get(f"/api/playlists/shared/{token}")
        assert public.status_code == 200
        assert len(public.json()["items"]) == 1

        client.put(f"/api/playlists/{playlist['id']}", json={"isPublic": False}, headers=auth_headers)
        assert client.get(f"/api/playlists/shared/{token}").status_code == 404
