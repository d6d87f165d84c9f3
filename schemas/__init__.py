# Schemas package
from .shared import UserId, ProfileId, AuthorSummary, CategorySummary, CountSummary
from .auth import UserCreate, LoginRequest, SessionUser, Token
from .threads import ThreadCreate, ThreadListItem, ThreadSummary, RelatedThread
from .posts import PostCreate, PostView, PostSummary, PostLikeState, ThreadDetail
from .profile import ProfileView, ProfileStats, ProfileUpdate, ProfilePage, PrivacySettings, PrivacySettingsUpdate, FollowUser, FollowCounts
from .reports import ReportCreate, ReportView, ReportStatusUpdate
from .admin import AdminStats, ActivityItem, AdminThreadItem, ThreadFlagUpdate
from .browse import CategoryResponse, SearchResult, HomePage
