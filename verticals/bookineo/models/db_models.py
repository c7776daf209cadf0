"""SQLAlchemy models for the Bookineo marketplace.

Each model inherits from Base and uses RecordMixin for ids and audit
timestamps. The to_dict() method provides the camelCase serialisation
used by services and routers.

Many-to-one links (book owner, rental book/renter, message sender and
receiver, cart item book) load eagerly with ``selectin`` so summaries are
always safe to serialise from async code. Collections are loaded only
where a query asks for them.
"""

from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum as SAEnum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.models.base import Base, RecordMixin, as_utc, isoformat, utcnow
from patterns.workflow_states import BookStatus, RentalState


def _enum(enum_cls, name: str) -> SAEnum:
    return SAEnum(
        enum_cls,
        name=name,
        native_enum=False,
        length=16,
        values_callable=lambda members: [m.value for m in members],
    )


class User(RecordMixin, Base):
    """A marketplace member. Owns books, rents books, sends messages."""

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    password: Mapped[str] = mapped_column(String(255), nullable=False)
    first_name: Mapped[str | None] = mapped_column(String(50), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(50), nullable=True)
    birth_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    books: Mapped[list["Book"]] = relationship(back_populates="owner")
    rentals: Mapped[list["Rental"]] = relationship(back_populates="renter")

    @property
    def full_name(self) -> str:
        parts = [p for p in (self.first_name, self.last_name) if p]
        return " ".join(parts) or self.email

    def summary(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "firstName": self.first_name,
            "lastName": self.last_name,
        }

    def to_dict(self) -> dict:
        # Never expose the password hash
        birth = as_utc(self.birth_date)
        return {
            **self.summary(),
            "fullName": self.full_name,
            "birthDate": birth.date().isoformat() if birth else None,
            "createdAt": isoformat(self.created_at),
            "updatedAt": isoformat(self.updated_at),
        }


class Book(RecordMixin, Base):
    """A book listed for rental."""

    __tablename__ = "books"

    title: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    author: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    price: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    category_name: Mapped[str | None] = mapped_column(String(50), nullable=True, index=True)
    img_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    status: Mapped[BookStatus] = mapped_column(
        _enum(BookStatus, "book_status"),
        nullable=False,
        default=BookStatus.AVAILABLE,
        index=True,
    )
    owner_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )

    # Catalog metadata carried by imported listings
    asin: Mapped[str | None] = mapped_column(String(20), unique=True, nullable=True)
    sold_by: Mapped[str | None] = mapped_column(String(200), nullable=True)
    product_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    stars: Mapped[float | None] = mapped_column(Float, nullable=True)
    reviews: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_best_seller: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    published_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    owner: Mapped["User | None"] = relationship(back_populates="books", lazy="selectin")
    rentals: Mapped[list["Rental"]] = relationship(
        back_populates="book",
        cascade="all, delete-orphan",
        order_by="Rental.start_date.desc()",
    )

    def summary(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "author": self.author,
            "price": self.price,
            "categoryName": self.category_name,
            "imgUrl": self.img_url,
            "status": self.status.value,
        }

    def to_dict(self) -> dict:
        return {
            **self.summary(),
            "ownerId": self.owner_id,
            "owner": self.owner.summary() if self.owner else None,
            "asin": self.asin,
            "soldBy": self.sold_by,
            "productUrl": self.product_url,
            "stars": self.stars,
            "reviews": self.reviews,
            "isBestSeller": self.is_best_seller,
            "publishedDate": isoformat(self.published_date),
            "createdAt": isoformat(self.created_at),
            "updatedAt": isoformat(self.updated_at),
        }


class Cart(RecordMixin, Base):
    """One cart per user."""

    __tablename__ = "carts"

    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False
    )

    items: Mapped[list["CartItem"]] = relationship(
        back_populates="cart",
        cascade="all, delete-orphan",
        order_by="CartItem.created_at.desc()",
    )


class CartItem(RecordMixin, Base):
    """A book waiting in a cart. A book appears at most once per cart."""

    __tablename__ = "cart_items"
    __table_args__ = (UniqueConstraint("cart_id", "book_id", name="uq_cart_items_cart_book"),)

    cart_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("carts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    book_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("books.id", ondelete="CASCADE"), nullable=False, index=True
    )

    cart: Mapped["Cart"] = relationship(back_populates="items")
    book: Mapped["Book"] = relationship(lazy="selectin")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "bookId": self.book_id,
            "addedAt": isoformat(self.created_at),
            "book": self.book.summary() if self.book else None,
        }


class Rental(RecordMixin, Base):
    """A time-bounded rental of one book by one renter."""

    __tablename__ = "rentals"
    __table_args__ = (
        # At most one ACTIVE rental per book
        Index(
            "uq_rentals_active_book",
            "book_id",
            unique=True,
            postgresql_where=text("status = 'ACTIVE'"),
            sqlite_where=text("status = 'ACTIVE'"),
        ),
    )

    book_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("books.id", ondelete="CASCADE"), nullable=False, index=True
    )
    renter_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    end_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    return_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    duration: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[RentalState] = mapped_column(
        _enum(RentalState, "rental_status"),
        nullable=False,
        default=RentalState.ACTIVE,
        index=True,
    )
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)

    book: Mapped["Book"] = relationship(back_populates="rentals", lazy="selectin")
    renter: Mapped["User"] = relationship(back_populates="rentals", lazy="selectin")

    def is_overdue(self, now: datetime | None = None) -> bool:
        """ACTIVE and past its end date. Derived, never stored."""
        if self.status != RentalState.ACTIVE:
            return False
        return as_utc(self.end_date) < (now or utcnow())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "bookId": self.book_id,
            "renterId": self.renter_id,
            "startDate": isoformat(self.start_date),
            "endDate": isoformat(self.end_date),
            "returnDate": isoformat(self.return_date),
            "duration": self.duration,
            "status": self.status.value,
            "comment": self.comment,
            "isOverdue": self.is_overdue(),
            "book": self.book.summary() if self.book else None,
            "renter": self.renter.summary() if self.renter else None,
            "createdAt": isoformat(self.created_at),
            "updatedAt": isoformat(self.updated_at),
        }


class Message(RecordMixin, Base):
    """A direct message. Only ``is_read`` changes after creation."""

    __tablename__ = "messages"

    sender_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    receiver_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)

    sender: Mapped["User"] = relationship(foreign_keys=[sender_id], lazy="selectin")
    receiver: Mapped["User"] = relationship(foreign_keys=[receiver_id], lazy="selectin")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "senderId": self.sender_id,
            "receiverId": self.receiver_id,
            "content": self.content,
            "isRead": self.is_read,
            "sender": self.sender.summary() if self.sender else None,
            "receiver": self.receiver.summary() if self.receiver else None,
            "createdAt": isoformat(self.created_at),
        }
