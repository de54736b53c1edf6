"""Business logic services used by HTTP controllers.

This module holds small service classes that coordinate repositories,
the image store and the authorization policy. Services are intentionally
thin: they perform validation and ownership checks, persist aggregates via
repositories and hand rows to the mappers for presentation.

Collaborators are passed in explicitly: every service gets the request's
`Session`, and the ones that touch files or passwords also get an
`ImageStore` and a passlib `CryptContext`.
"""

import logging
import re
from typing import Optional
from passlib.context import CryptContext
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from . import mappers, models, repositories, schemas
from .errors import NotFoundError, PermissionDeniedError, ValidationError
from .policy import can_mutate
from .storage import ADS_NAMESPACE, USERS_NAMESPACE, ImageStore, ImageUpload

PWD_CTX = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

logger = logging.getLogger("adboard.services")

PHONE_RE = re.compile(r"\+7\s?\(?\d{3}\)?\s?\d{3}-?\d{2}-?\d{2}")
AVATAR_CONTENT_TYPES = ("image/jpeg", "image/jpg", "image/png")
MAX_AVATAR_BYTES = 10 * 1024 * 1024


class AuthService:
    """Authentication related operations (register + login)."""
    def __init__(self, session: Session, pwd_context: CryptContext = PWD_CTX):
        self.session = session
        self.pwd_context = pwd_context
        self.user_repo = repositories.UserRepository(session)

    def register(self, payload: schemas.RegisterIn) -> bool:
        """Create a new user with a hashed password.

        Returns False without touching the store when the email is
        already registered. The role defaults to `USER`.
        """
        if self.user_repo.exists_by_email(payload.username):
            logger.warning("registration attempt for existing user: %s", payload.username)
            return False
        u = models.User(
            email=payload.username,
            password_hash=self.pwd_context.hash(payload.password),
            first_name=payload.first_name,
            last_name=payload.last_name,
            phone=payload.phone,
            role=payload.role or models.Role.USER,
        )
        try:
            self.user_repo.create(u)
        except IntegrityError:
            self.session.rollback()
            logger.warning("registration lost a race for existing user: %s", payload.username)
            return False
        logger.info("user registered: %s", payload.username)
        return True

    def authenticate(self, email: str, password: str) -> Optional[models.User]:
        """Return the user if the credentials match, otherwise `None`."""
        user = self.user_repo.get_by_email(email)
        if not user:
            return None
        if not self.pwd_context.verify(password, user.password_hash):
            return None
        return user

    def login(self, email: str, password: str) -> bool:
        ok = self.authenticate(email, password) is not None
        logger.info("login attempt for %s: %s", email, "ok" if ok else "failed")
        return ok


def _require_actor(user_repo: repositories.UserRepository, actor: models.User) -> models.User:
    """Re-read the acting user so role changes since authentication apply."""
    current = user_repo.get(actor.id) if actor is not None and actor.id is not None else None
    if current is None:
        raise NotFoundError(f"user not found: {getattr(actor, 'email', None)}")
    return current


class AdService:
    """Ads and their images."""
    def __init__(self, session: Session, image_store: ImageStore):
        self.session = session
        self.images = image_store
        self.ad_repo = repositories.AdRepository(session)
        self.user_repo = repositories.UserRepository(session)

    def _get_ad(self, ad_id: int) -> models.Ad:
        ad = self.ad_repo.get(ad_id)
        if not ad:
            raise NotFoundError(f"ad not found: {ad_id}")
        return ad

    def _get_mutable_ad(self, ad_id: int, actor: models.User, action: str) -> models.Ad:
        ad = self._get_ad(ad_id)
        current = _require_actor(self.user_repo, actor)
        if not can_mutate(current, ad.author_id):
            raise PermissionDeniedError(f"not allowed to {action} this ad")
        return ad

    def _discard_image(self, ad_id: int, filename: str) -> None:
        # image cleanup must never abort the mutation that triggered it
        try:
            self.images.delete(ADS_NAMESPACE, filename)
        except (OSError, ValueError) as e:
            logger.error("failed to delete image of ad %s: %s", ad_id, e)

    def list_all(self) -> schemas.AdsOut:
        """Return every ad as a summary, in storage order."""
        out = mappers.to_ads(self.ad_repo.list_all())
        logger.info("listed all ads, count: %d", out.count)
        return out

    def create(self, fields: schemas.CreateOrUpdateAd, image: Optional[ImageUpload], actor: models.User) -> schemas.AdOut:
        """Store the image and create an ad owned by `actor`."""
        author = _require_actor(self.user_repo, actor)
        if image is None or image.is_empty:
            raise ValidationError("ad image is required")
        try:
            filename = self.images.save(image.data, ADS_NAMESPACE, image.filename)
        except OSError as e:
            raise ValidationError(f"could not save image: {e}")
        ad = models.Ad(
            title=fields.title,
            price=fields.price,
            description=fields.description,
            image=filename,
            author_id=author.id,
        )
        ad = self.ad_repo.create(ad)
        logger.info("ad %s created by %s", ad.id, author.email)
        return mappers.to_ad(ad)

    def get(self, ad_id: int) -> schemas.ExtendedAdOut:
        ad = self._get_ad(ad_id)
        author = self.user_repo.get(ad.author_id)
        return mappers.to_extended_ad(ad, author)

    def update(self, ad_id: int, fields: schemas.CreateOrUpdateAd, actor: models.User) -> schemas.AdOut:
        """Overwrite title, price and description; the image is left alone."""
        ad = self._get_mutable_ad(ad_id, actor, "edit")
        ad.title = fields.title
        ad.price = fields.price
        ad.description = fields.description
        ad = self.ad_repo.save(ad)
        logger.info("ad %s updated", ad_id)
        return mappers.to_ad(ad)

    def delete(self, ad_id: int, actor: models.User) -> None:
        """Delete the ad, its comments and (best effort) its image."""
        ad = self._get_mutable_ad(ad_id, actor, "delete")
        image = ad.image
        self.ad_repo.delete(ad)
        if image:
            self._discard_image(ad_id, image)
        logger.info("ad %s deleted", ad_id)

    def list_mine(self, actor: models.User) -> schemas.AdsOut:
        current = _require_actor(self.user_repo, actor)
        out = mappers.to_ads(self.ad_repo.list_by_author(current.id))
        logger.info("listed ads of %s, count: %d", current.email, out.count)
        return out

    def replace_image(self, ad_id: int, image: Optional[ImageUpload], actor: models.User) -> None:
        """Swap the ad's image for `image`."""
        ad = self._get_mutable_ad(ad_id, actor, "edit")
        if image is None or image.is_empty:
            raise ValidationError("image file is missing or empty")
        if ad.image:
            self._discard_image(ad_id, ad.image)
        try:
            ad.image = self.images.save(image.data, ADS_NAMESPACE, image.filename)
        except OSError as e:
            raise ValidationError(f"could not save image: {e}")
        self.ad_repo.save(ad)
        logger.info("image of ad %s replaced", ad_id)

    def fetch_image_bytes(self, ad_id: int) -> bytes:
        """Return the ad's image bytes, or `b""` when there is nothing to return.

        A missing ad, a missing image reference and an unreadable file all
        yield empty bytes; the HTTP layer turns that into a 404.
        """
        ad = self.ad_repo.get(ad_id)
        if not ad or not ad.image:
            logger.warning("no image for ad %s", ad_id)
            return b""
        try:
            return self.images.load(ADS_NAMESPACE, ad.image)
        except (OSError, ValueError) as e:
            logger.error("failed to read image of ad %s: %s", ad_id, e)
            return b""


class CommentService:
    """Comments attached to ads."""
    def __init__(self, session: Session):
        self.session = session
        self.comment_repo = repositories.CommentRepository(session)
        self.ad_repo = repositories.AdRepository(session)
        self.user_repo = repositories.UserRepository(session)

    def _require_ad(self, ad_id: int) -> models.Ad:
        ad = self.ad_repo.get(ad_id)
        if not ad:
            raise NotFoundError(f"ad not found: {ad_id}")
        return ad

    def _get_mutable_comment(self, ad_id: int, comment_id: int, actor: models.User, action: str) -> models.Comment:
        comment = self.comment_repo.get(comment_id)
        if not comment:
            raise NotFoundError(f"comment not found: {comment_id}")
        if comment.ad_id != ad_id:
            raise NotFoundError(f"comment {comment_id} does not belong to ad {ad_id}")
        current = _require_actor(self.user_repo, actor)
        if not can_mutate(current, comment.author_id):
            raise PermissionDeniedError(f"not allowed to {action} this comment")
        return comment

    def _out(self, comment: models.Comment) -> schemas.CommentOut:
        return mappers.to_comment(comment, self.user_repo.get(comment.author_id))

    def list(self, ad_id: int) -> schemas.CommentsOut:
        self._require_ad(ad_id)
        results = [self._out(c) for c in self.comment_repo.list_for_ad(ad_id)]
        return schemas.CommentsOut(count=len(results), results=results)

    def create(self, ad_id: int, text: str, actor: models.User) -> schemas.CommentOut:
        ad = self._require_ad(ad_id)
        author = _require_actor(self.user_repo, actor)
        comment = self.comment_repo.create(models.Comment(text=text, ad_id=ad.id, author_id=author.id))
        logger.info("comment %s added to ad %s by %s", comment.id, ad_id, author.email)
        return mappers.to_comment(comment, author)

    def update(self, ad_id: int, comment_id: int, text: str, actor: models.User) -> schemas.CommentOut:
        """Replace the comment text; `created_at` is never touched."""
        comment = self._get_mutable_comment(ad_id, comment_id, actor, "edit")
        comment.text = text
        comment = self.comment_repo.save(comment)
        logger.info("comment %s updated", comment_id)
        return self._out(comment)

    def delete(self, ad_id: int, comment_id: int, actor: models.User) -> None:
        comment = self._get_mutable_comment(ad_id, comment_id, actor, "delete")
        self.comment_repo.delete(comment)
        logger.info("comment %s deleted", comment_id)


class UserService:
    """Profile, password and avatar management for the acting user."""
    def __init__(self, session: Session, image_store: ImageStore, pwd_context: CryptContext = PWD_CTX,
                 max_avatar_bytes: int = MAX_AVATAR_BYTES):
        self.session = session
        self.images = image_store
        self.pwd_context = pwd_context
        self.max_avatar_bytes = max_avatar_bytes
        self.user_repo = repositories.UserRepository(session)

    def get_current(self, actor: models.User) -> schemas.UserOut:
        user = _require_actor(self.user_repo, actor)
        return mappers.to_user(user)

    def update(self, actor: models.User, fields: schemas.UpdateUserIn) -> schemas.UpdateUserIn:
        """Apply a partial profile update.

        Names must be 3-10 characters and the phone must look like
        `+7 XXX XXX-XX-XX` (spaces, dashes and parentheses optional).
        """
        user = _require_actor(self.user_repo, actor)
        for label, value in (("first name", fields.first_name), ("last name", fields.last_name)):
            if value is not None and not 3 <= len(value) <= 10:
                raise ValidationError(f"{label} must be 3 to 10 characters")
        if fields.phone is not None and not PHONE_RE.fullmatch(fields.phone):
            raise ValidationError("phone must match +7 XXX XXX-XX-XX")
        if fields.first_name is not None:
            user.first_name = fields.first_name
        if fields.last_name is not None:
            user.last_name = fields.last_name
        if fields.phone is not None:
            user.phone = fields.phone
        user = self.user_repo.save(user)
        logger.info("profile updated: %s", user.email)
        return mappers.to_update_user(user)

    def change_password(self, actor: models.User, current_password: str, new_password: str) -> None:
        user = _require_actor(self.user_repo, actor)
        for label, value in (("current", current_password), ("new", new_password)):
            if value is None or not 8 <= len(value) <= 16:
                raise ValidationError(f"{label} password must be 8 to 16 characters")
        if not self.pwd_context.verify(current_password, user.password_hash):
            raise PermissionDeniedError("current password is incorrect")
        if new_password == current_password:
            raise ValidationError("new password must differ from the current one")
        user.password_hash = self.pwd_context.hash(new_password)
        self.user_repo.save(user)
        logger.info("password changed: %s", user.email)

    def replace_avatar(self, actor: models.User, image: Optional[ImageUpload]) -> None:
        """Store a new JPEG/PNG avatar and drop the previous file."""
        user = _require_actor(self.user_repo, actor)
        if image is None or image.is_empty:
            raise ValidationError("image file is missing or empty")
        if (image.content_type or "").lower() not in AVATAR_CONTENT_TYPES:
            raise ValidationError("only JPEG, JPG or PNG images are allowed")
        if image.size > self.max_avatar_bytes:
            raise ValidationError("image must not exceed 10MB")
        try:
            filename = self.images.save(image.data, USERS_NAMESPACE, image.filename)
        except OSError as e:
            raise ValidationError(f"could not save image: {e}")
        old = user.image
        user.image = filename
        self.user_repo.save(user)
        if old:
            try:
                self.images.delete(USERS_NAMESPACE, old)
            except (OSError, ValueError) as e:
                logger.error("failed to delete old avatar of %s: %s", user.email, e)
        logger.info("avatar updated: %s", user.email)

    def fetch_avatar_bytes(self, user_id: int) -> bytes:
        user = self.user_repo.get(user_id)
        if not user:
            raise NotFoundError(f"user not found: {user_id}")
        if not user.image:
            raise NotFoundError("user has no avatar")
        try:
            return self.images.load(USERS_NAMESPACE, user.image)
        except (OSError, ValueError) as e:
            logger.error("failed to read avatar of user %s: %s", user_id, e)
            raise NotFoundError("avatar file not found")
