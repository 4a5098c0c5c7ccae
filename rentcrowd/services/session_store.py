"""Session store: authentication state, profile, and its durable subset."""

from typing import Any, Optional, Union

from pydantic import ValidationError

from rentcrowd.models.session import PersistedEnvelope, PersistedSession
from rentcrowd.models.user import (
    ForgotPasswordData,
    LoginCredentials,
    OtpData,
    PasswordUpdate,
    RegisterData,
    ResendOtpData,
    User,
    UserProfile,
)
from rentcrowd.services.api_client import ApiClient
from rentcrowd.services.storage import KeyValueStorage
from rentcrowd.services.store import Store, StoreState
from rentcrowd.utils.config import ClientConfig
from rentcrowd.utils.errors import RentCrowdError, StorageError
from rentcrowd.utils.logging import get_structured_logger, mask_token, mask_user_id

logger = get_structured_logger(__name__)


class SessionState(StoreState):
    token: Optional[str] = None
    user: Optional[User] = None
    user_profile: Optional[UserProfile] = None
    is_authenticated: bool = False
    verification_id: Optional[str] = None

    def persistable(self) -> PersistedSession:
        return PersistedSession(token=self.token, user=self.user, is_authenticated=self.is_authenticated)


class SessionStore(Store[SessionState]):
    """Register/verify/login flows and the signed-in user's profile."""

    def __init__(
        self,
        api: ApiClient,
        storage: KeyValueStorage,
        storage_key: str = ClientConfig.AUTH_STORAGE_KEY,
    ):
        super().__init__(SessionState(), logger)
        self.api = api
        self.storage = storage
        self.storage_key = storage_key

    # Persistence -----------------------------------------------------------

    async def hydrate(self) -> SessionState:
        """Restore token, user and authentication flag from storage."""
        try:
            envelope = PersistedEnvelope.from_json(await self.storage.get_item(self.storage_key))
        except (StorageError, ValidationError) as e:
            logger.error("Failed to restore persisted session", error=str(e))
            return self.state

        persisted = envelope.state
        state = self._set(
            token=persisted.token,
            user=persisted.user,
            is_authenticated=persisted.is_authenticated,
        )
        if persisted.token:
            self.api.set_auth_token(persisted.token)
        logger.info(
            "Session restored",
            is_authenticated=persisted.is_authenticated,
            user_id=mask_user_id(persisted.user.id) if persisted.user else None,
        )
        return state

    async def _persist(self) -> None:
        envelope = PersistedEnvelope(state=self.state.persistable())
        await self.storage.set_item(self.storage_key, envelope.to_json())

    # Auth flows ------------------------------------------------------------

    async def register(self, data: Union[RegisterData, dict]) -> dict[str, Any]:
        """Create an account; the returned user id is kept for OTP verification."""
        async with self._track("register", "Registration failed"):
            data = RegisterData.model_validate(data)
            body = await self.api.post("/auth/register", json=data.to_payload())
            verification_id = (body.get("data") or {}).get("userId")
            self._set(verification_id=verification_id, is_loading=False)
        logger.info("Registration submitted", user_id=mask_user_id(verification_id or ""))
        return body

    async def verify_otp(self, data: Union[OtpData, dict]) -> dict[str, Any]:
        """
        Verify a one-time code.

        The user id defaults to the one retained from register() when the
        caller gives none.
        """
        async with self._track("verify_otp", "OTP verification failed"):
            data = OtpData.model_validate(data)
            body = await self.api.post(
                "/auth/verify-otp",
                json={
                    "userId": data.user_id or self.state.verification_id,
                    "otp": data.otp,
                    "verificationType": data.verification_type,
                },
            )
            user = User.model_validate(body["user"])
            self._set(
                token=body["token"],
                user=user,
                is_authenticated=True,
                is_loading=False,
                verification_id=None,
            )
            self.api.set_auth_token(body["token"])
            await self._persist()
        logger.info("OTP verified", user_id=mask_user_id(user.id), token=mask_token(body["token"]))
        self._spawn(self.get_user_profile(), "profile fetch")
        return body

    async def login(self, credentials: Union[LoginCredentials, dict]) -> dict[str, Any]:
        """Sign in with email or phone; the profile is then fetched in the background."""
        async with self._track("login", "Login failed"):
            credentials = LoginCredentials.model_validate(credentials)
            body = await self.api.post("/auth/login", json=credentials.to_payload())
            user = User.model_validate(body["user"])
            self._set(
                token=body["token"],
                user=user,
                is_authenticated=True,
                is_loading=False,
            )
            self.api.set_auth_token(body["token"])
            await self._persist()

        logger.info("Logged in", user_id=mask_user_id(user.id), role=user.role)
        self._spawn(self.get_user_profile(), "profile fetch")
        return body

    async def refresh_token(self) -> bool:
        """Exchange the current token for a fresh one; logs out on failure."""
        if not self.state.token:
            return False

        try:
            body = await self.api.post("/auth/refresh-token")
        except RentCrowdError as e:
            logger.warning("Token refresh failed, logging out", error=str(e))
            await self.logout()
            return False

        self._set(token=body["token"], is_authenticated=True)
        self.api.set_auth_token(body["token"])
        await self._persist()
        return True

    async def logout(self) -> None:
        """Clear every identity field in one update and forget the bearer header."""
        self.api.clear_auth_token()
        self._set(
            token=None,
            user=None,
            user_profile=None,
            is_authenticated=False,
            verification_id=None,
            error=None,
        )
        await self._persist()
        logger.info("Logged out")

    async def handle_unauthorized(self) -> None:
        """The API rejected our token: drop it and the authenticated flag."""
        self._set(token=None, is_authenticated=False)
        await self._persist()

    # Profile ---------------------------------------------------------------

    async def get_user_profile(self) -> Optional[UserProfile]:
        if not self.state.is_authenticated:
            return None

        async with self._track("get_user_profile", "Failed to fetch user profile", reset_error=False):
            body = await self.api.get("/auth/me")
            profile = UserProfile.model_validate(body["data"])
            self._set(user_profile=profile, is_loading=False)
        return profile

    async def update_user_details(self, details: dict[str, Any]) -> dict[str, Any]:
        """Update account fields and merge the server's answer into the current user."""
        async with self._track("update_user_details", "Update failed"):
            body = await self.api.put("/auth/me", json=details)
            if self.state.user is not None:
                merged = {**self.state.user.model_dump(by_alias=True), **(body.get("data") or {})}
                self._set(user=User.model_validate(merged), is_loading=False)
                await self._persist()
            else:
                self._set(is_loading=False)

        self._spawn(self.get_user_profile(), "profile refresh")
        return body

    async def update_password(self, data: Union[PasswordUpdate, dict]) -> dict[str, Any]:
        async with self._track("update_password", "Password update failed"):
            data = PasswordUpdate.model_validate(data)
            body = await self.api.put("/auth/update-password", json=data.to_payload())
            self._set(is_loading=False)
        return body

    async def forgot_password(self, data: Union[ForgotPasswordData, dict]) -> dict[str, Any]:
        async with self._track("forgot_password", "Request failed"):
            data = ForgotPasswordData.model_validate(data)
            body = await self.api.post("/auth/forgot-password", json=data.to_payload())
            self._set(is_loading=False)
        return body

    async def reset_password(self, reset_token: str, new_password: str) -> dict[str, Any]:
        async with self._track("reset_password", "Password reset failed"):
            body = await self.api.put(f"/auth/reset-password/{reset_token}", json={"password": new_password})
            self._set(is_loading=False)
        return body

    async def resend_otp(self, data: Union[ResendOtpData, dict, None] = None) -> dict[str, Any]:
        async with self._track("resend_otp", "Failed to resend OTP"):
            data = ResendOtpData.model_validate(data or {})
            body = await self.api.post(
                "/auth/resend-otp",
                json={
                    "userId": data.user_id or self.state.verification_id,
                    "verificationType": data.verification_type,
                },
            )
            self._set(is_loading=False)
        return body
