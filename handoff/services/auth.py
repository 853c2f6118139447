from uuid import UUID

from sqlmodel import Session, select

from handoff.models.user import Profile, User
from handoff.schemas.auth import LoginRequest, RefreshRequest, RegisterRequest, Token
from handoff.services.profile import ProfileService
from handoff.utils.dates import utcnow
from handoff.utils.security import (
    TokenType,
    create_access_token,
    create_refresh_token,
    decode_token,
    get_password_hash,
    verify_password,
)


class AuthService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def register(self, payload: RegisterRequest) -> Token:
        email = payload.email.strip().lower()
        existing_user = self.session.exec(select(User).where(User.email == email)).first()
        if existing_user:
            raise ValueError("User already exists")

        user = User(email=email, password_hash=get_password_hash(payload.password))
        self.session.add(user)
        self.session.flush()

        profiles = ProfileService(self.session)
        profile = Profile(
            id=user.id,
            full_name=payload.full_name,
            org_name=payload.org_name,
            org_slug=profiles.unique_slug(payload.org_name or payload.full_name or "", exclude_id=user.id),
            account_type=payload.account_type.value if payload.account_type else None,
        )
        self.session.add(profile)
        self.session.commit()
        self.session.refresh(user)
        return self._build_tokens(user)

    def authenticate(self, payload: LoginRequest) -> Token:
        statement = select(User).where(User.email == payload.email.strip().lower())
        user = self.session.exec(statement).first()

        if not user or not user.is_active:
            raise ValueError("Invalid credentials")

        if not verify_password(payload.password, user.password_hash):
            raise ValueError("Invalid credentials")

        user.last_login_at = utcnow()
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)

        return self._build_tokens(user)

    def refresh(self, payload: RefreshRequest) -> Token:
        token_data = decode_token(payload.refresh_token)
        if token_data.get("token_type") != TokenType.REFRESH.value:
            raise ValueError("Invalid token type")

        user = self.get_active_user(token_data.get("sub"))
        if not user:
            raise ValueError("Invalid token")

        return self._build_tokens(user)

    def user_from_access_token(self, token: str) -> User:
        payload = decode_token(token)
        if payload.get("token_type") != TokenType.ACCESS.value:
            raise ValueError("Invalid token")
        user = self.get_active_user(payload.get("sub"))
        if not user:
            raise ValueError("User not found")
        return user

    def get_active_user(self, user_id: str | UUID | None) -> User | None:
        try:
            user_uuid = UUID(str(user_id))
        except (ValueError, TypeError):
            return None
        user = self.session.get(User, user_uuid)
        if not user or not user.is_active:
            return None
        return user

    def _build_tokens(self, user: User) -> Token:
        profile = self.session.get(Profile, user.id)
        return Token(
            access_token=create_access_token(str(user.id)),
            refresh_token=create_refresh_token(str(user.id)),
            onboarded=bool(profile and profile.onboarded),
        )
