"""CLI script to create an administrator account, or promote an existing user.
Usage: python scripts/create_admin.py --email EMAIL --password PASSWORD [--first-name NAME] [--last-name NAME] [--phone PHONE]
"""
import sys
import argparse
import pathlib
from typing import Optional
# Ensure `backend/` is on sys.path so `adboard` package imports work when running this script directly
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
from sqlmodel import Session
from adboard.database import engine, create_db_and_tables
from adboard import models, repositories
from adboard.services import PWD_CTX


def main(email: str, password: str, first_name: Optional[str] = None, last_name: Optional[str] = None,
         phone: Optional[str] = None, session: Optional[Session] = None) -> models.User:
    """Create `email` as an ADMIN, or switch an existing account to ADMIN.

    An existing account keeps its password unless a new one is given;
    the outcome is printed to stdout.
    """
    if session is None:
        create_db_and_tables()
        with Session(engine) as s:
            return main(email, password, first_name, last_name, phone, session=s)
    repo = repositories.UserRepository(session)
    user = repo.get_by_email(email)
    if user:
        user.role = models.Role.ADMIN
        if password:
            user.password_hash = PWD_CTX.hash(password)
        user = repo.save(user)
        print(f'Promoted {email} to ADMIN (id {user.id})')
        return user
    user = repo.create(models.User(
        email=email,
        password_hash=PWD_CTX.hash(password),
        first_name=first_name,
        last_name=last_name,
        phone=phone,
        role=models.Role.ADMIN,
    ))
    print(f'Created ADMIN {email} (id {user.id})')
    return user


if __name__ == '__main__':
    parser = argparse.ArgumentParser()
    parser.add_argument('--email', required=True, help='Login email of the admin account')
    parser.add_argument('--password', required=True, help='Password (8-16 characters)')
    parser.add_argument('--first-name', help='First name')
    parser.add_argument('--last-name', help='Last name')
    parser.add_argument('--phone', help='Phone, e.g. "+7 999 123-45-67"')
    args = parser.parse_args()
    if not 8 <= len(args.password) <= 16:
        parser.error('password must be 8 to 16 characters')
    main(args.email, args.password, args.first_name, args.last_name, args.phone)
