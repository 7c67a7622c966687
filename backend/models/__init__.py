"""
SQLAlchemy Models for TheVideoPool
"""
from .base import Base
from .user import User, UserRole
from .membership import Membership, BillingCycle
from .video import Video, Category, Tag, VideoTag
from .download import Download, BulkDownload, BulkDownloadItem, BulkDownloadStatus
from .library import Favorite, Playlist, PlaylistItem
from .email import EmailCampaign, EmailSubscriber, EmailSend, CampaignStatus, SendStatus
from .notification import Notification, Release, CategorySubscription, Device
from .moderation import ContentRights, CopyrightClaim, ContentAnalysisResult, ClaimStatus, VerificationStatus
from .api_key import ApiKey, ApiUsage
from .bulk_upload import BulkUploadSession, BulkUploadFile, UploadSessionStatus, UploadFileStatus
from .search_log import SearchLog

__all__ = [
    "Base",
    "User",
    "UserRole",
    "Membership",
    "BillingCycle",
    "Video",
    "Category",
    "Tag",
    "VideoTag",
    "Download",
    "BulkDownload",
    "BulkDownloadItem",
    "BulkDownloadStatus",
    "Favorite",
    "Playlist",
    "PlaylistItem",
    "EmailCampaign",
    "EmailSubscriber",
    "EmailSend",
    "CampaignStatus",
    "SendStatus",
    "Notification",
    "Release",
    "CategorySubscription",
    "Device",
    "ContentRights",
    "CopyrightClaim",
    "ContentAnalysisResult",
    "ClaimStatus",
    "VerificationStatus",
    "ApiKey",
    "ApiUsage",
    "BulkUploadSession",
    "BulkUploadFile",
    "UploadSessionStatus",
    "UploadFileStatus",
    "SearchLog",
]
