import secrets
import threading
from typing import Dict, Optional

from smartcia import schemas
from smartcia.store import Repositories

# Static allow-list: (username, password, role, display name)
CREDENTIALS = [
    # Students
    ("222BCAA29", "STUD1", schemas.UserRole.STUDENT, "Student 222BCAA29"),
    ("232BCAA65", "STUD2", schemas.UserRole.STUDENT, "Student 232BCAA65"),
    ("232BCAA16", "STUD3", schemas.UserRole.STUDENT, "Student 232BCAA16"),
    ("232BCAA22", "STUD4", schemas.UserRole.STUDENT, "Student 232BCAA22"),
    # Teachers
    ("POWBI26", "TEACH1", schemas.UserRole.TEACHER, "Prof. PowerBI"),
    ("MA26", "TEACH2", schemas.UserRole.TEACHER, "Prof. Mathematics"),
    ("SE26", "TEACH3", schemas.UserRole.TEACHER, "Prof. Software Eng"),
    ("IOT26", "TEACH4", schemas.UserRole.TEACHER, "Prof. IoT"),
    ("AI26", "TEACH5", schemas.UserRole.TEACHER, "Prof. AI"),
]


def authenticate(username: str, password: str) -> Optional[schemas.User]:
    for cred_user, cred_pass, role, name in CREDENTIALS:
        if cred_user == username and cred_pass == password:
            return schemas.User(
                id=cred_user,  # username doubles as id
                name=name,
                role=role,
                email=f"{cred_user.lower()}@university.edu",
            )
    return None


def login(repos: Repositories, username: str, password: str) -> Optional[schemas.User]:
    user = authenticate(username, password)
    if user is not None:
        repos.set_current_user(user)
    return user


def logout(repos: Repositories, user: Optional[schemas.User] = None) -> None:
    """Clear the stored current-user record (only if it belongs to ``user``, when given)."""
    current = repos.get_current_user()
    if user is None or (current is not None and current.id == user.id):
        repos.clear_current_user()


def is_staff(user: schemas.User) -> bool:
    return user.role in (schemas.UserRole.TEACHER, schemas.UserRole.ADMIN)


class SessionRegistry:
    """
    Per-client sessions: opaque token -> User.
    Each login gets its own token, so clients never see each other's identity.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._sessions: Dict[str, schemas.User] = {}

    def open(self, user: schemas.User) -> str:
        token = secrets.token_urlsafe(32)
        with self._lock:
            self._sessions[token] = user
        return token

    def get(self, token: Optional[str]) -> Optional[schemas.User]:
        if not token:
            return None
        with self._lock:
            return self._sessions.get(token)

    def close(self, token: Optional[str]) -> Optional[schemas.User]:
        if not token:
            return None
        with self._lock:
            return self._sessions.pop(token, None)
