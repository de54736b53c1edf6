"""Repository classes encapsulating database operations.

Each repository is small and focused on a single aggregate (users, ads,
comments). Repositories return SQLModel objects and perform
commits/refreshes where appropriate.
"""

from typing import List, Optional
from sqlmodel import Session, select
from . import models


class UserRepository:
    """CRUD operations for `User` objects."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, user: models.User) -> models.User:
        """Persist a new user and return the managed instance."""
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        return user

    def save(self, user: models.User) -> models.User:
        """Commit pending changes on an existing user."""
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        return user

    def get_by_email(self, email: str) -> Optional[models.User]:
        """Return a `User` by email or `None` if not found."""
        stmt = select(models.User).where(models.User.email == email)
        return self.session.exec(stmt).first()

    def exists_by_email(self, email: str) -> bool:
        stmt = select(models.User.id).where(models.User.email == email)
        return self.session.exec(stmt).first() is not None

    def get(self, user_id: int) -> Optional[models.User]:
        """Get a `User` by primary key."""
        return self.session.get(models.User, user_id)


class AdRepository:
    """CRUD operations for `Ad` records."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, ad: models.Ad) -> models.Ad:
        self.session.add(ad)
        self.session.commit()
        self.session.refresh(ad)
        return ad

    def save(self, ad: models.Ad) -> models.Ad:
        self.session.add(ad)
        self.session.commit()
        self.session.refresh(ad)
        return ad

    def get(self, ad_id: int) -> Optional[models.Ad]:
        """Fetch an ad by id."""
        return self.session.get(models.Ad, ad_id)

    def list_all(self) -> List[models.Ad]:
        """Return every ad in storage (primary key) order."""
        stmt = select(models.Ad).order_by(models.Ad.id)
        return self.session.exec(stmt).all()

    def list_by_author(self, author_id: int) -> List[models.Ad]:
        """Return the ads posted by `author_id`."""
        stmt = select(models.Ad).where(models.Ad.author_id == author_id).order_by(models.Ad.id)
        return self.session.exec(stmt).all()

    def delete(self, ad: models.Ad) -> None:
        """Delete an ad together with all of its comments in one commit."""
        stmt = select(models.Comment).where(models.Comment.ad_id == ad.id)
        for c in self.session.exec(stmt).all():
            self.session.delete(c)
        # comments must be gone before the ad row because of the foreign key
        self.session.flush()
        self.session.delete(ad)
        self.session.commit()


class CommentRepository:
    """CRUD operations for `Comment` records."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, comment: models.Comment) -> models.Comment:
        self.session.add(comment)
        self.session.commit()
        self.session.refresh(comment)
        return comment

    def save(self, comment: models.Comment) -> models.Comment:
        self.session.add(comment)
        self.session.commit()
        self.session.refresh(comment)
        return comment

    def get(self, comment_id: int) -> Optional[models.Comment]:
        return self.session.get(models.Comment, comment_id)

    def list_for_ad(self, ad_id: int) -> List[models.Comment]:
        """List all comments for the provided `ad_id` in creation order."""
        stmt = select(models.Comment).where(models.Comment.ad_id == ad_id).order_by(models.Comment.id)
        return self.session.exec(stmt).all()

    def delete(self, comment: models.Comment) -> None:
        self.session.delete(comment)
        self.session.commit()
