"""
Create an account without going through the upload flow. Run from project root:
  python -m vidtube.scripts.create_user USERNAME EMAIL FULLNAME PASSWORD [--avatar URL]
Example:
  python -m vidtube.scripts.create_user ana ana@example.com "Ana Lima" your-secure-password
"""
import argparse
import logging
import sys

from sqlalchemy.exc import IntegrityError

from vidtube.core.config import get_settings
from vidtube.core.database import SessionLocal
from vidtube.core.security import PASSWORD_MAX_LEN, PASSWORD_MIN_LEN, hash_password
from vidtube.services.accounts import AccountStore, normalize_identifier

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%SZ",
)
logger = logging.getLogger(__name__)

DEFAULT_AVATAR_URL = "https://res.cloudinary.com/demo/image/upload/avatar.png"


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Create a VidTube account.")
    parser.add_argument("username", help="Username (1-255 chars, stored lowercase)")
    parser.add_argument("email", help="Email address (stored lowercase)")
    parser.add_argument("fullname", help="Display name")
    parser.add_argument("password", help=f"Password ({PASSWORD_MIN_LEN}-{PASSWORD_MAX_LEN} chars)")
    parser.add_argument("--avatar", default=DEFAULT_AVATAR_URL, help="Avatar image URL")
    args = parser.parse_args(argv)

    username = normalize_identifier(args.username)
    email = normalize_identifier(args.email)
    if not username or len(username) > 255:
        logger.error("Invalid username length.")
        return 1
    if "@" not in email:
        logger.error("Invalid email address.")
        return 1
    if not (PASSWORD_MIN_LEN <= len(args.password) <= PASSWORD_MAX_LEN):
        logger.error("Password must be %s-%s characters.", PASSWORD_MIN_LEN, PASSWORD_MAX_LEN)
        return 1

    db = SessionLocal()
    try:
        store = AccountStore(db)
        if store.find_by_username_or_email(username, email) is not None:
            logger.error("User '%s' or email '%s' already exists.", username, email)
            return 1
        try:
            account = store.create(
                {
                    "username": username,
                    "email": email,
                    "fullname": args.fullname.strip(),
                    "avatar": args.avatar,
                    "password_hash": hash_password(
                        args.password, get_settings().BCRYPT_ROUNDS
                    ),
                }
            )
        except IntegrityError:
            logger.error("User '%s' or email '%s' already exists.", username, email)
            return 1
        logger.info("Created user '%s' with id %s.", account.username, account.id)
        return 0
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
