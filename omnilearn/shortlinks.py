import logging
import random
import string
from typing import Dict, Optional

from pymongo.errors import PyMongoError

from . import database

logger = logging.getLogger(__name__)

ALPHABET = string.ascii_uppercase + string.ascii_lowercase + string.digits
CODE_LENGTH = 6
MAX_ATTEMPTS = 5


class ShortLinkError(Exception):
    pass


def generate_code(length: int = CODE_LENGTH) -> str:
    return "".join(random.choice(ALPHABET) for _ in range(length))


async def create_short_link(course_id: str) -> str:
    """
    Allocate a fresh code for course_id and store code -> course_id.

    A new code is issued on every call. Raises ShortLinkError when every
    attempt lands on an occupied code, rather than overwriting it.
    """
    try:
        for _ in range(MAX_ATTEMPTS):
            code = generate_code()
            if not await database.exists(database.SHORT_LINKS, code):
                await database.set_value(database.SHORT_LINKS, code, course_id)
                return code
    except PyMongoError as e:
        logger.error("Error creating short link for %s: %s", course_id, e)
        raise ShortLinkError("Could not store short link") from e
    logger.error("No free short code for %s after %d attempts", course_id, MAX_ATTEMPTS)
    raise ShortLinkError("Could not allocate a unique short code")


async def resolve_short_link(code: str) -> Optional[str]:
    if not code:
        return None
    try:
        value = await database.get_value(database.SHORT_LINKS, code)
    except PyMongoError as e:
        logger.error("Error resolving short link %s: %s", code, e)
        return None
    return value if isinstance(value, str) else None


def course_link(base_url: str, course_id: str) -> str:
    return f"{base_url}?c={course_id}"


async def share_links(base_url: str, course_id: str) -> Dict[str, str]:
    code = await create_short_link(course_id)
    return {
        "course_id": course_id,
        "link": course_link(base_url, course_id),
        "short_code": code,
        "short_link": f"{base_url}?s={code}",
    }
