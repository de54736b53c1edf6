"""Convert database rows into API response schemas.

Stored image filenames never leave the server: they are replaced with the
download path of the owning resource, or an empty string when there is no
image.
"""

from datetime import timezone
from typing import Optional

from . import models, schemas


def ad_image_url(ad: models.Ad) -> str:
    return f"/ads/{ad.id}/image" if ad.image else ""


def user_image_url(user: Optional[models.User]) -> str:
    if user is None or not user.image:
        return ""
    return f"/users/{user.id}/image"


def to_ad(ad: models.Ad) -> schemas.AdOut:
    return schemas.AdOut(
        pk=ad.id,
        author=ad.author_id,
        title=ad.title,
        price=ad.price,
        image=ad_image_url(ad),
    )


def to_ads(ads) -> schemas.AdsOut:
    results = [to_ad(a) for a in ads]
    return schemas.AdsOut(count=len(results), results=results)


def to_extended_ad(ad: models.Ad, author: Optional[models.User]) -> schemas.ExtendedAdOut:
    """Build the detailed ad view; author fields stay empty if `author` is None."""
    out = schemas.ExtendedAdOut(
        pk=ad.id,
        title=ad.title,
        price=ad.price,
        description=ad.description,
        image=ad_image_url(ad),
    )
    if author is not None:
        out.author_first_name = author.first_name
        out.author_last_name = author.last_name
        out.email = author.email
        out.phone = author.phone
    return out


def created_at_millis(comment: models.Comment) -> int:
    """Return `created_at` as epoch milliseconds.

    SQLite hands datetimes back without tzinfo; they were written in UTC.
    """
    ts = comment.created_at
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return int(ts.timestamp() * 1000)


def to_comment(comment: models.Comment, author: Optional[models.User]) -> schemas.CommentOut:
    return schemas.CommentOut(
        pk=comment.id,
        author=comment.author_id,
        author_first_name=author.first_name if author else None,
        author_image=user_image_url(author),
        created_at=created_at_millis(comment),
        text=comment.text,
    )


def to_user(user: models.User) -> schemas.UserOut:
    return schemas.UserOut(
        id=user.id,
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        phone=user.phone,
        role=user.role,
        image=user_image_url(user),
    )


def to_update_user(user: models.User) -> schemas.UpdateUserIn:
    return schemas.UpdateUserIn(first_name=user.first_name, last_name=user.last_name, phone=user.phone)
