from datetime import datetime, date, time
from enum import Enum

from sqlalchemy import (
    Integer,
    String,
    ForeignKey,
    Boolean,
    JSON,
    DateTime,
    Date,
    Time,
    Text,
    BigInteger,
    Enum as SQLEnum,
    Index,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from db.engine import Base


def _state_enum(enum_cls: type[Enum]) -> SQLEnum:
    """Enum хранится строкой со значением (а не именем) — на значения ссылаются частичные индексы"""
    return SQLEnum(
        enum_cls,
        native_enum=False,
        length=32,
        values_callable=lambda members: [m.value for m in members],
    )


class InterviewerStatus(str, Enum):
    """Статусы интервьюера"""
    ACTIVE = "active"
    ON_PROBATION = "on_probation"
    INACTIVE = "inactive"


INVITABLE_STATUSES = (InterviewerStatus.ACTIVE, InterviewerStatus.ON_PROBATION)


class BookingRequestState(str, Enum):
    """Состояния запроса на бронирование (admin → интервьюеры → публичная ссылка)"""
    CREATED = "created"
    AWAITING_AVAILABILITY = "awaiting_availability"
    AVAILABILITY_COLLECTED = "availability_collected"
    PUBLISHED = "published"
    CLOSED = "closed"


class SlotState(str, Enum):
    """Состояния слота"""
    AVAILABLE = "available"
    RESERVED = "reserved"    # Удержание (pending); текущий claim подтверждает слот сразу
    CONFIRMED = "confirmed"
    RELEASED = "released"    # Снят; см. SlotReleaseReason


class SlotReleaseReason(str, Enum):
    """Почему слот снят: окно исчезло (слот вернётся, если окно вернётся) или админ снял его навсегда"""
    AVAILABILITY_REMOVED = "availability_removed"
    ADMIN_WITHDRAWN = "admin_withdrawn"


class StudentBookingState(str, Enum):
    """Состояния записи студента"""
    PENDING_CLAIM = "pending_claim"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class OutboxStatus(str, Enum):
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


class OutboxEventType(str, Enum):
    """Побочные эффекты, которые разгребает outbox worker"""
    SLOT_CONFIRMED = "slot.confirmed"
    BOOKING_CANCELLED = "booking.cancelled"
    MEET_LINK_REQUESTED = "meet_link.requested"
    ALLOW_LIST_INVITED = "allow_list.invited"
    BOOKING_REMINDER = "booking.reminder"
    BOOKING_REQUEST_INVITED = "booking_request.invited"


# События, которые читает Main Sheet через ленту listBookings
FEED_EVENTS = (OutboxEventType.SLOT_CONFIRMED, OutboxEventType.BOOKING_CANCELLED)


class Administrator(Base):
    """
    Администратор системы записи.
    Супер-админы задаются в конфиге (SUPER_ADMIN_IDS), остальные — строками этой таблицы.
    """
    __tablename__ = "administrators"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    telegram_id: Mapped[int | None] = mapped_column(BigInteger, unique=True, nullable=True)
    full_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), unique=True, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class Interviewer(Base):
    """
    Фриланс-интервьюер.
    Никогда не удаляется — только деактивируется (status=inactive).
    """
    __tablename__ = "interviewers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    full_name: Mapped[str] = mapped_column(String(150))
    email: Mapped[str] = mapped_column(String(255), unique=True)
    telegram_id: Mapped[int | None] = mapped_column(BigInteger, unique=True, nullable=True)
    status: Mapped[InterviewerStatus] = mapped_column(
        _state_enum(InterviewerStatus),
        default=InterviewerStatus.ACTIVE
    )
    domains: Mapped[list] = mapped_column(JSON, default=list)  # Теги доменов: ["MERN", "Python", ...]
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    invitations = relationship("BookingRequestInterviewer", back_populates="interviewer")


class BookingRequest(Base):
    """
    Запрос на бронирование: админ приглашает интервьюеров на дату
    и собирает их доступность в пул слотов.
    """
    __tablename__ = "booking_requests"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    booking_date: Mapped[date] = mapped_column(Date)
    state: Mapped[BookingRequestState] = mapped_column(
        _state_enum(BookingRequestState),
        default=BookingRequestState.CREATED
    )
    slot_duration_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)  # None = слот на всё окно
    domain: Mapped[str | None] = mapped_column(String(100), nullable=True)  # Тег домена от админа, без проверок
    created_by: Mapped[int | None] = mapped_column(ForeignKey("administrators.id", ondelete="SET NULL"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    closed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    invitations = relationship("BookingRequestInterviewer", back_populates="booking_request", cascade="all, delete-orphan")
    slots = relationship("Slot", back_populates="booking_request", cascade="all, delete-orphan")
    public_links = relationship("PublicLink", back_populates="booking_request")


class BookingRequestInterviewer(Base):
    """Приглашение интервьюера в запрос на бронирование"""
    __tablename__ = "booking_request_interviewers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    booking_request_id: Mapped[int] = mapped_column(ForeignKey("booking_requests.id", ondelete="CASCADE"))
    interviewer_id: Mapped[int] = mapped_column(ForeignKey("interviewers.id", ondelete="RESTRICT"))
    submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)  # Первая отправка доступности
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    booking_request = relationship("BookingRequest", back_populates="invitations")
    interviewer = relationship("Interviewer", back_populates="invitations", lazy="joined")

    __table_args__ = (
        UniqueConstraint('booking_request_id', 'interviewer_id', name='uq_booking_request_interviewer'),
    )


class AvailabilityWindow(Base):
    """
    Окно доступности интервьюера.
    История только дописывается: повторная отправка помечает прошлые окна superseded_at.
    """
    __tablename__ = "availability_windows"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    booking_request_id: Mapped[int] = mapped_column(ForeignKey("booking_requests.id", ondelete="CASCADE"))
    interviewer_id: Mapped[int] = mapped_column(ForeignKey("interviewers.id", ondelete="RESTRICT"))
    date: Mapped[date] = mapped_column(Date)
    start_time: Mapped[time] = mapped_column(Time)
    end_time: Mapped[time] = mapped_column(Time)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    superseded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index('ix_availability_current', 'booking_request_id', 'interviewer_id', 'superseded_at'),
    )


class Slot(Base):
    """
    Слот — производная от окна доступности.
    id — стабильный хеш (интервьюер + дата + начало + конец), поэтому материализация идемпотентна.
    version растёт при каждом переходе состояния (оптимистичная блокировка).
    """
    __tablename__ = "slots"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    booking_request_id: Mapped[int] = mapped_column(ForeignKey("booking_requests.id", ondelete="CASCADE"))
    interviewer_id: Mapped[int] = mapped_column(ForeignKey("interviewers.id", ondelete="RESTRICT"))
    date: Mapped[date] = mapped_column(Date)
    start_time: Mapped[time] = mapped_column(Time)
    end_time: Mapped[time] = mapped_column(Time)
    state: Mapped[SlotState] = mapped_column(_state_enum(SlotState), default=SlotState.AVAILABLE)
    release_reason: Mapped[SlotReleaseReason | None] = mapped_column(_state_enum(SlotReleaseReason), nullable=True)
    version: Mapped[int] = mapped_column(Integer, default=1)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    booking_request = relationship("BookingRequest", back_populates="slots")
    interviewer = relationship("Interviewer", lazy="joined")


class PublicLink(Base):
    """
    Публичная ссылка: снимок подмножества слотов одного запроса + allow-list студентов.
    """
    __tablename__ = "public_links"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    public_id: Mapped[str] = mapped_column(String(64), unique=True)
    booking_request_id: Mapped[int] = mapped_column(ForeignKey("booking_requests.id", ondelete="CASCADE"))
    created_by: Mapped[int | None] = mapped_column(ForeignKey("administrators.id", ondelete="SET NULL"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    booking_request = relationship("BookingRequest", back_populates="public_links", lazy="joined")
    slot_refs = relationship("PublicLinkSlot", cascade="all, delete-orphan")


class PublicLinkSlot(Base):
    """Слот, на который ссылается публичная ссылка (ссылка не владеет слотом)"""
    __tablename__ = "public_link_slots"

    public_link_id: Mapped[int] = mapped_column(ForeignKey("public_links.id", ondelete="CASCADE"), primary_key=True)
    slot_id: Mapped[str] = mapped_column(ForeignKey("slots.id", ondelete="CASCADE"), primary_key=True)


class AllowListEntry(Base):
    """
    Студент, которому разрешено записываться по ссылке.
    Система сама записи не удаляет — только явное действие админа.
    """
    __tablename__ = "allow_list_entries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    public_link_id: Mapped[int] = mapped_column(ForeignKey("public_links.id", ondelete="CASCADE"))
    identity: Mapped[str] = mapped_column(String(255))  # email или studentId в нижнем регистре
    full_name: Mapped[str | None] = mapped_column(String(150), nullable=True)
    hiring_name: Mapped[str | None] = mapped_column(String(150), nullable=True)
    domain: Mapped[str | None] = mapped_column(String(100), nullable=True)
    user_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    mobile_number: Mapped[str | None] = mapped_column(String(30), nullable=True)
    resume_link: Mapped[str | None] = mapped_column(String(512), nullable=True)
    added_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint('public_link_id', 'identity', name='uq_allow_list_link_identity'),
    )


class StudentBooking(Base):
    """
    Запись студента на слот. Единственный, кто переводит слот в confirmed.
    Частичные уникальные индексы — последняя линия защиты от двойной записи.
    """
    __tablename__ = "student_bookings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    public_link_id: Mapped[int] = mapped_column(ForeignKey("public_links.id", ondelete="CASCADE"))
    slot_id: Mapped[str] = mapped_column(ForeignKey("slots.id", ondelete="CASCADE"))
    student_identity: Mapped[str] = mapped_column(String(255))
    student_name: Mapped[str | None] = mapped_column(String(150), nullable=True)
    state: Mapped[StudentBookingState] = mapped_column(
        _state_enum(StudentBookingState),
        default=StudentBookingState.PENDING_CLAIM
    )
    confirmed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    host_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    event_title: Mapped[str | None] = mapped_column(String(255), nullable=True)
    meet_link: Mapped[str | None] = mapped_column(String(512), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    slot = relationship("Slot", lazy="joined")
    public_link = relationship("PublicLink", lazy="joined")

    __table_args__ = (
        Index(
            'uq_student_bookings_confirmed_slot', 'slot_id',
            unique=True,
            postgresql_where=text("state = 'confirmed'"),
            sqlite_where=text("state = 'confirmed'"),
        ),
        Index(
            'uq_student_bookings_confirmed_identity', 'public_link_id', 'student_identity',
            unique=True,
            postgresql_where=text("state = 'confirmed'"),
            sqlite_where=text("state = 'confirmed'"),
        ),
    )


class OutboxEvent(Base):
    """
    Outbox: запрос на побочный эффект, записанный в той же транзакции, что и переход состояния.
    Строки не удаляются — это же и лента для Main Sheet (listBookings).
    """
    __tablename__ = "outbox_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    event: Mapped[OutboxEventType] = mapped_column(_state_enum(OutboxEventType))
    student_booking_id: Mapped[int | None] = mapped_column(ForeignKey("student_bookings.id", ondelete="SET NULL"), nullable=True)
    slot_id: Mapped[str | None] = mapped_column(String(32), nullable=True)
    student_identity: Mapped[str | None] = mapped_column(String(255), nullable=True)
    payload: Mapped[dict] = mapped_column(JSON, default=dict)
    status: Mapped[OutboxStatus] = mapped_column(_state_enum(OutboxStatus), default=OutboxStatus.PENDING)
    attempts: Mapped[int] = mapped_column(Integer, default=0)
    next_retry_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    locked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index('ix_outbox_status_retry', 'status', 'next_retry_at'),
    )
