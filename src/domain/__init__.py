"""
Domain layer - Pure business logic with zero framework imports.

This package contains the account lifecycle core: registration with OTP
verification, login, password reset and profile management, written once
and parameterized by role. It defines its own port interfaces for
infrastructure abstraction.
"""

from .authentication import LoginService
from .exceptions import (
    AccountError,
    BadRequest,
    Conflict,
    Forbidden,
    InternalError,
    NotFound,
    Unauthorized,
)
from .models import (
    AccountConfig,
    AccountResult,
    AccountState,
    Caller,
    Identity,
    Profile,
    ProfileUpdate,
    Registration,
    Role,
    SanitizedProfile,
    SellerStatus,
)
from .password_reset import PasswordResetService
from .ports import (
    AccountStore,
    DeliveryResult,
    IdentityRepository,
    ImageStore,
    NotificationSender,
    OtpPurpose,
    PasswordHasher,
    ProfileRepository,
    Repository,
    TokenIssuer,
)
from .profiles import ProfileService
from .registration import RegistrationService
from .roles import ADMIN, BUYER, SELLER, RolePolicy, policy_for

__all__ = [
    "ADMIN",
    "BUYER",
    "SELLER",
    "AccountConfig",
    "AccountError",
    "AccountResult",
    "AccountState",
    "AccountStore",
    "BadRequest",
    "Caller",
    "Conflict",
    "DeliveryResult",
    "Forbidden",
    "Identity",
    "IdentityRepository",
    "ImageStore",
    "InternalError",
    "LoginService",
    "NotFound",
    "NotificationSender",
    "OtpPurpose",
    "PasswordHasher",
    "PasswordResetService",
    "Profile",
    "ProfileRepository",
    "ProfileService",
    "ProfileUpdate",
    "Registration",
    "RegistrationService",
    "Repository",
    "Role",
    "RolePolicy",
    "SanitizedProfile",
    "SellerStatus",
    "TokenIssuer",
    "Unauthorized",
    "policy_for",
]
