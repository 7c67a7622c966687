"""
Library API endpoints
Favorites and playlists of the current user, plus shared playlist links
"""
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from pydantic import BaseModel, Field
from typing import Optional, List

from core.database import get_db
from core.security import get_current_user, get_optional_user
from models.user import User
from services import library_service
from services.library_service import LibraryError

favorites_router = APIRouter()
playlists_router = APIRouter()


# ============================================
# Request/Response Models (Pydantic schemas)
# ============================================

class FavoriteRequest(BaseModel):
    videoId: int


class PlaylistCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    isPublic: bool = False


class PlaylistUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    isPublic: Optional[bool] = None


class PlaylistItemRequest(BaseModel):
    videoId: int


class ReorderRequest(BaseModel):
    itemIds: List[int]


def _raise(e: LibraryError):
    raise HTTPException(status_code=e.status_code, detail=str(e))


# ============================================
# Favorites
# ============================================

@favorites_router.get("")
async def list_favorites(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return [f.to_dict() for f in library_service.list_favorites(db, current_user.id)]


@favorites_router.post("", status_code=status.HTTP_201_CREATED)
async def add_favorite(
    request: FavoriteRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    try:
        return library_service.add_favorite(db, current_user.id, request.videoId).to_dict()
    except LibraryError as e:
        _raise(e)


@favorites_router.get("/check/{video_id}")
async def check_favorite(
    video_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return {"isFavorite": library_service.is_favorite(db, current_user.id, video_id)}


@favorites_router.delete("/{video_id}")
async def remove_favorite(
    video_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    try:
        library_service.remove_favorite(db, current_user.id, video_id)
    except LibraryError as e:
        _raise(e)
    return {"message": "Removed from favorites"}


# ============================================
# Playlists
# ============================================

@playlists_router.get("")
async def list_playlists(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return [p.to_dict() for p in library_service.list_playlists(db, current_user.id)]


@playlists_router.post("", status_code=status.HTTP_201_CREATED)
async def create_playlist(
    request: PlaylistCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    playlist = library_service.create_playlist(
        db, current_user.id, request.name, request.description, request.isPublic
    )
    return playlist.to_dict(include_items=True)


@playlists_router.get("/shared/{share_token}")
async def get_shared_playlist(share_token: str, db: Session = Depends(get_db)):
    """Public view through a share link; no login needed"""
    try:
        return library_service.get_shared_playlist(db, share_token).to_dict(include_items=True)
    except LibraryError as e:
        _raise(e)


@playlists_router.get("/{playlist_id}")
async def get_playlist(
    playlist_id: int,
    current_user: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db)
):
    user_id = current_user.id if current_user else None
    try:
        return library_service.get_viewable_playlist(db, playlist_id, user_id).to_dict(include_items=True)
    except LibraryError as e:
        _raise(e)


@playlists_router.put("/{playlist_id}")
async def update_playlist(
    playlist_id: int,
    request: PlaylistUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    try:
        playlist = library_service.get_owned_playlist(db, playlist_id, current_user.id)
    except LibraryError as e:
        _raise(e)

    changes = {
        "name": request.name,
        "description": request.description,
        "is_public": request.isPublic,
    }
    return library_service.update_playlist(db, playlist, changes).to_dict(include_items=True)


@playlists_router.delete("/{playlist_id}")
async def delete_playlist(
    playlist_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    try:
        playlist = library_service.get_owned_playlist(db, playlist_id, current_user.id)
    except LibraryError as e:
        _raise(e)

    library_service.delete_playlist(db, playlist)
    return {"message": "Playlist deleted"}


@playlists_router.post("/{playlist_id}/items", status_code=status.HTTP_201_CREATED)
async def add_playlist_item(
    playlist_id: int,
    request: PlaylistItemRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    try:
        playlist = library_service.get_owned_playlist(db, playlist_id, current_user.id)
        return library_service.add_to_playlist(db, playlist, request.videoId).to_dict()
    except LibraryError as e:
        _raise(e)


@playlists_router.delete("/{playlist_id}/items/{item_id}")
async def remove_playlist_item(
    playlist_id: int,
    item_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    try:
        playlist = library_service.get_owned_playlist(db, playlist_id, current_user.id)
        library_service.remove_from_playlist(db, playlist, item_id)
    except LibraryError as e:
        _raise(e)
    return playlist.to_dict(include_items=True)


@playlists_router.put("/{playlist_id}/reorder")
async def reorder_playlist(
    playlist_id: int,
    request: ReorderRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    try:
        playlist = library_service.get_owned_playlist(db, playlist_id, current_user.id)
        return library_service.reorder_playlist(db, playlist, request.itemIds).to_dict(include_items=True)
    except LibraryError as e:
        _raise(e)
