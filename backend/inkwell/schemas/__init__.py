from .entry import (
    Entry,
    EntryCreateRequest,
    EntryLockRequest,
    EntryPageResponse,
    EntryVocabularyResponse,
    EntryWriteRequest,
)
from .stats import (
    StatsOverviewResponse,
    StreakInfo,
    StreakResponse,
    WordCountTrendItem,
    WordCountTrendsResponse,
)
from .user import (
    LoginResponse,
    PasswordChangeRequest,
    UserLoginRequest,
    UserPinLoginRequest,
    UserRegisterRequest,
    UserResponse,
)

__all__ = [
    "Entry",
    "EntryCreateRequest",
    "EntryLockRequest",
    "EntryPageResponse",
    "EntryVocabularyResponse",
    "EntryWriteRequest",
    "StatsOverviewResponse",
    "StreakInfo",
    "StreakResponse",
    "WordCountTrendItem",
    "WordCountTrendsResponse",
    "LoginResponse",
    "PasswordChangeRequest",
    "UserLoginRequest",
    "UserPinLoginRequest",
    "UserRegisterRequest",
    "UserResponse",
]
