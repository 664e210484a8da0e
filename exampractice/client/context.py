from typing import Dict, Optional


class SessionContext:
    """Who is signed in on this client. Created at start-up, passed to whatever needs it, cleared on sign-out."""

    def __init__(self, token: Optional[str] = None, user_id: Optional[str] = None, role: Optional[str] = None):
        self.token = token
        self.user_id = user_id
        self.role = role

    @property
    def signed_in(self) -> bool:
        return bool(self.token and self.user_id)

    def current_user(self) -> Optional[str]:
        return self.user_id if self.signed_in else None

    def current_role(self) -> str:
        return (self.role or "student") if self.signed_in else "anonymous"

    def is_staff(self) -> bool:
        return self.current_role() in ("teacher", "admin")

    def sign_in(self, token: str, user_id: str, role: str) -> None:
        self.token, self.user_id, self.role = token, user_id, role

    def sign_out(self) -> None:
        self.token = self.user_id = self.role = None

    def auth_headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"} if self.token else {}
