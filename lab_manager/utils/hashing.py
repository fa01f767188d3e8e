from passlib.context import CryptContext

from lab_manager.errors import ValidationError

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# bcrypt silently ignores anything past this
BCRYPT_MAX_BYTES = 72


def _too_long(password: str) -> bool:
    return len(password.encode("utf-8")) > BCRYPT_MAX_BYTES


def hash_password(password: str) -> str:
    if _too_long(password):
        raise ValidationError(f"Password too long (bcrypt max {BCRYPT_MAX_BYTES} bytes)")
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    # nothing this long was ever hashed, so it cannot match
    if _too_long(plain_password):
        return False
    return pwd_context.verify(plain_password, hashed_password)
