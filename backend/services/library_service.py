"""
Library Service - favorites and playlists
"""
import secrets
import logging
from typing import Any, Dict, List, Optional
from sqlalchemy import desc, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from models.video import Video
from models.library import Favorite, Playlist, PlaylistItem

logger = logging.getLogger(__name__)


class LibraryError(Exception):
    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


def _require_video(db: Session, video_id: int) -> Video:
    video = db.query(Video).filter(Video.id == video_id).first()
    if not video:
        raise LibraryError("Video not found", status_code=404)
    return video


def new_share_token() -> str:
    return secrets.token_hex(16)


# ============================================
# Favorites
# ============================================

def add_favorite(db: Session, user_id: int, video_id: int) -> Favorite:
    _require_video(db, video_id)

    if is_favorite(db, user_id, video_id):
        raise LibraryError("Video is already in favorites", status_code=409)

    favorite = Favorite(user_id=user_id, video_id=video_id)
    db.add(favorite)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise LibraryError("Video is already in favorites", status_code=409)
    db.refresh(favorite)
    return favorite


def remove_favorite(db: Session, user_id: int, video_id: int) -> None:
    deleted = (
        db.query(Favorite)
        .filter(Favorite.user_id == user_id, Favorite.video_id == video_id)
        .delete(synchronize_session=False)
    )
    if not deleted:
        raise LibraryError("Favorite not found", status_code=404)
    db.commit()


def is_favorite(db: Session, user_id: int, video_id: int) -> bool:
    return (
        db.query(Favorite.id)
        .filter(Favorite.user_id == user_id, Favorite.video_id == video_id)
        .first()
        is not None
    )


def list_favorites(db: Session, user_id: int) -> List[Favorite]:
    return (
        db.query(Favorite)
        .filter(Favorite.user_id == user_id)
        .order_by(desc(Favorite.created_at), desc(Favorite.id))
        .all()
    )


# ============================================
# Playlists
# ============================================

def create_playlist(db: Session, user_id: int, name: str, description: Optional[str] = None, is_public: bool = False) -> Playlist:
    playlist = Playlist(
        user_id=user_id,
        name=name,
        description=description,
        is_public=is_public,
        share_token=new_share_token() if is_public else None,
    )
    db.add(playlist)
    db.commit()
    db.refresh(playlist)
    return playlist


def list_playlists(db: Session, user_id: int) -> List[Playlist]:
    return (
        db.query(Playlist)
        .filter(Playlist.user_id == user_id)
        .order_by(desc(Playlist.updated_at), desc(Playlist.id))
        .all()
    )


def get_playlist(db: Session, playlist_id: int) -> Playlist:
    playlist = db.query(Playlist).filter(Playlist.id == playlist_id).first()
    if not playlist:
        raise LibraryError("Playlist not found", status_code=404)
    return playlist


def get_viewable_playlist(db: Session, playlist_id: int, user_id: Optional[int]) -> Playlist:
    """Owners see their playlists; everyone else only public ones"""
    playlist = get_playlist(db, playlist_id)
    if playlist.user_id != user_id and not playlist.is_public:
        raise LibraryError("You do not have access to this playlist", status_code=403)
    return playlist


def get_owned_playlist(db: Session, playlist_id: int, user_id: int) -> Playlist:
    playlist = get_playlist(db, playlist_id)
    if playlist.user_id != user_id:
        raise LibraryError("You do not own this playlist", status_code=403)
    return playlist


def get_shared_playlist(db: Session, share_token: str) -> Playlist:
    playlist = (
        db.query(Playlist)
        .filter(Playlist.share_token == share_token, Playlist.is_public.is_(True))
        .first()
    )
    if not playlist:
        raise LibraryError("Shared playlist not found", status_code=404)
    return playlist


def update_playlist(db: Session, playlist: Playlist, changes: Dict[str, Any]) -> Playlist:
    """Making a playlist public issues a share token; making it private revokes it"""
    for field in ("name", "description"):
        if field in changes and changes[field] is not None:
            setattr(playlist, field, changes[field])

    if "is_public" in changes and changes["is_public"] is not None:
        playlist.is_public = changes["is_public"]
        if playlist.is_public and not playlist.share_token:
            playlist.share_token = new_share_token()
        elif not playlist.is_public:
            playlist.share_token = None

    db.commit()
    db.refresh(playlist)
    return playlist


def delete_playlist(db: Session, playlist: Playlist) -> None:
    db.delete(playlist)
    db.commit()
    logger.info(f"🗑️ Playlist {playlist.id} deleted")


def add_to_playlist(db: Session, playlist: Playlist, video_id: int) -> PlaylistItem:
    _require_video(db, video_id)

    if any(item.video_id == video_id for item in playlist.items):
        raise LibraryError("Video is already in this playlist", status_code=409)

    last = db.query(func.max(PlaylistItem.position)).filter(PlaylistItem.playlist_id == playlist.id).scalar()
    item = PlaylistItem(playlist_id=playlist.id, video_id=video_id, position=(last or 0) + 1)
    db.add(item)
    db.commit()
    db.refresh(item)
    db.refresh(playlist)
    return item


def _renumber(items: List[PlaylistItem]) -> None:
    for position, item in enumerate(items, start=1):
        item.position = position


def remove_from_playlist(db: Session, playlist: Playlist, item_id: int) -> None:
    item = next((i for i in playlist.items if i.id == item_id), None)
    if item is None:
        raise LibraryError("Playlist item not found", status_code=404)

    playlist.items.remove(item)
    _renumber(sorted(playlist.items, key=lambda i: i.position))
    db.commit()
    db.refresh(playlist)


def reorder_playlist(db: Session, playlist: Playlist, item_ids: List[int]) -> Playlist:
    """item_ids must name every item of the playlist exactly once"""
    by_id = {item.id: item for item in playlist.items}
    if len(item_ids) != len(by_id) or set(item_ids) != set(by_id):
        raise LibraryError("Item list must contain every playlist item exactly once")

    _renumber([by_id[item_id] for item_id in item_ids])
    db.commit()
    db.refresh(playlist)
    return playlist
