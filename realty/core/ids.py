import secrets
import string
import uuid

_SHORT_ALPHABET = string.ascii_lowercase + string.digits


def gen_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex}"


def short_token(length: int = 6) -> str:
    # lowercase only: tokens end up inside lowercased slugs
    return "".join(secrets.choice(_SHORT_ALPHABET) for _ in range(length))
