"""
Реляционное хранилище на SQLAlchemy.

Таблицы, репозитории для всех портов и единица работы с сессией
на поток. Проверка доступности со вставкой бронирования выполняется
в одной транзакции после блокировки строки номера (SELECT ... FOR UPDATE).
"""

import threading
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple, Type

from pydantic import BaseModel
from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    create_engine,
    func,
    or_,
    select,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool
from sqlalchemy.sql import Select

from .booking.domain import Booking, Guest
from .catalog.domain import AvailabilityBlock, Property, Room, RoomType
from .payments.domain import Payment
from .pricing.domain import Rate, RoomRateOverride
from .shared_kernel import (
    BookingStatus,
    EntityId,
    ILogger,
    PaymentMethodType,
    PaymentStatus,
    RoomStatus,
    StayType,
    TERMINAL_BOOKING_STATUSES,
    get_logger,
)

Base = declarative_base()

MONEY = Numeric(14, 2)
PERCENT = Numeric(5, 2)

_TERMINAL = [status.value for status in TERMINAL_BOOKING_STATUSES]


class PropertyRow(Base):
    __tablename__ = "properties"
    id = Column(Uuid, primary_key=True)
    name = Column(String(200), nullable=False)
    slug = Column(String(200), nullable=False, unique=True)
    city = Column(String(100), default="")
    total_rooms = Column(Integer, default=0)
    is_active = Column(Boolean, default=True)


class RoomTypeRow(Base):
    __tablename__ = "room_types"
    id = Column(Uuid, primary_key=True)
    name = Column(String(100), nullable=False)
    slug = Column(String(100), nullable=False, unique=True)
    max_guests = Column(Integer, nullable=False)
    bed_type = Column(String(50))
    amenities = Column(JSON, default=list)


class RoomRow(Base):
    __tablename__ = "rooms"
    id = Column(Uuid, primary_key=True)
    property_id = Column(Uuid, ForeignKey("properties.id"), nullable=False, index=True)
    room_type_id = Column(Uuid, ForeignKey("room_types.id"), nullable=False, index=True)
    room_number = Column(String(20), nullable=False)
    floor = Column(Integer, default=1)
    status = Column(String(20), nullable=False, default=RoomStatus.AVAILABLE.value)
    is_active = Column(Boolean, default=True)


class AvailabilityBlockRow(Base):
    __tablename__ = "availability_blocks"
    id = Column(Uuid, primary_key=True)
    room_id = Column(Uuid, ForeignKey("rooms.id"), nullable=False, index=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    reason = Column(String(20), nullable=False)
    notes = Column(Text)


class RateRow(Base):
    __tablename__ = "rates"
    __table_args__ = (UniqueConstraint("room_type_id", "stay_type", "property_id"),)
    id = Column(Uuid, primary_key=True)
    room_type_id = Column(Uuid, ForeignKey("room_types.id"), nullable=False)
    property_id = Column(Uuid, ForeignKey("properties.id"), nullable=True)
    stay_type = Column(String(10), nullable=False)
    price = Column(MONEY, nullable=False)
    min_stay = Column(Integer, default=1)
    deposit_percentage = Column(PERCENT, nullable=False)
    tax_percentage = Column(PERCENT, nullable=False)
    service_fee = Column(MONEY, nullable=False)
    is_active = Column(Boolean, default=True)


class RoomRateOverrideRow(Base):
    __tablename__ = "room_rate_overrides"
    __table_args__ = (UniqueConstraint("room_id", "stay_type"),)
    id = Column(Uuid, primary_key=True)
    room_id = Column(Uuid, ForeignKey("rooms.id"), nullable=False)
    stay_type = Column(String(10), nullable=False)
    price = Column(MONEY, nullable=False)
    notes = Column(Text)
    is_active = Column(Boolean, default=True)


class GuestRow(Base):
    __tablename__ = "guests"
    id = Column(Uuid, primary_key=True)
    full_name = Column(String(100), nullable=False)
    email = Column(String(254), index=True)
    phone = Column(String(20), nullable=False)
    id_type = Column(String(50))
    id_number = Column(String(50))
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)


class BookingRow(Base):
    __tablename__ = "bookings"
    id = Column(Uuid, primary_key=True)
    booking_code = Column(String(30), nullable=False, unique=True)
    guest_id = Column(Uuid, ForeignKey("guests.id"), nullable=False)
    room_id = Column(Uuid, ForeignKey("rooms.id"), nullable=False, index=True)
    property_id = Column(Uuid, ForeignKey("properties.id"), nullable=False)
    check_in = Column(Date, nullable=False)
    check_out = Column(Date, nullable=False)
    stay_type = Column(String(10), nullable=False)
    num_guests = Column(Integer, default=1)
    status = Column(String(20), nullable=False, index=True)
    base_price = Column(MONEY, nullable=False)
    tax_amount = Column(MONEY, nullable=False)
    service_fee = Column(MONEY, nullable=False)
    discount_amount = Column(MONEY, nullable=False)
    total_amount = Column(MONEY, nullable=False)
    deposit_amount = Column(MONEY, nullable=False)
    paid_amount = Column(MONEY, nullable=False)
    payment_status = Column(String(20), nullable=False)
    payment_method_type = Column(String(20), nullable=False)
    special_requests = Column(Text)
    admin_notes = Column(Text)
    cancelled_at = Column(DateTime(timezone=True))
    cancellation_reason = Column(Text)
    checked_in_at = Column(DateTime(timezone=True))
    checked_out_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)


class PaymentRow(Base):
    __tablename__ = "payments"
    id = Column(Uuid, primary_key=True)
    booking_id = Column(Uuid, ForeignKey("bookings.id"), nullable=False, index=True)
    amount = Column(MONEY, nullable=False)
    method = Column(String(20), nullable=False)
    on_site_method = Column(String(20))
    status = Column(String(20), nullable=False)
    external_id = Column(String(100))
    gateway_invoice_id = Column(String(100), index=True)
    gateway_invoice_url = Column(Text)
    payment_channel = Column(String(50))
    paid_at = Column(DateTime(timezone=True))
    notes = Column(Text)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)


def _to_columns(entity: BaseModel, orm: Type[Any]) -> Dict[str, Any]:
    """Переводит доменную модель в значения колонок."""
    data = entity.model_dump()
    period = data.pop("period", None)
    if period is not None:
        data["check_in"] = period["check_in"]
        data["check_out"] = period["check_out"]

    columns = orm.__table__.columns
    return {
        key: value.value if isinstance(value, Enum) else value
        for key, value in data.items()
        if key in columns
    }


def _from_row(model: Type[BaseModel], row: Any) -> Any:
    """Переводит строку таблицы в доменную модель."""
    data = {column.key: getattr(row, column.key) for column in row.__table__.columns}
    for key, value in data.items():
        # SQLite не хранит часовой пояс
        if isinstance(value, datetime) and value.tzinfo is None:
            data[key] = value.replace(tzinfo=timezone.utc)
    if "check_in" in data and model is Booking:
        data["period"] = {"check_in": data.pop("check_in"), "check_out": data.pop("check_out")}
    return model.model_validate(data)


def locked(stmt: Select) -> Select:
    """Добавляет SELECT ... FOR UPDATE к запросу.

    Строка перечитывается, даже если уже загружена в сессию, поэтому
    изменение будет применено к последнему зафиксированному состоянию.
    """
    return stmt.with_for_update().execution_options(populate_existing=True)


class _SqlRepository:
    """Общие операции репозиториев над одной таблицей."""

    model: Type[BaseModel]
    orm: Type[Any]

    def __init__(self, uow: "SqlUnitOfWork"):
        self._uow = uow

    @property
    def _session(self) -> Session:
        return self._uow.session

    def add(self, entity: Any) -> None:
        self._session.add(self.orm(**_to_columns(entity, self.orm)))
        self._session.flush()

    def update(self, entity: Any) -> None:
        row = self._session.get(self.orm, entity.id)
        if row is None:
            raise KeyError(f"{self.model.__name__} with id {entity.id} not found")
        for key, value in _to_columns(entity, self.orm).items():
            setattr(row, key, value)
        self._session.flush()

    def get_by_id(self, entity_id: EntityId) -> Any:
        row = self._session.get(self.orm, entity_id)
        return _from_row(self.model, row) if row is not None else None

    def get_for_update(self, entity_id: EntityId) -> Any:
        stmt = locked(select(self.orm).where(self.orm.id == entity_id))
        row = self._session.scalars(stmt).first()
        return _from_row(self.model, row) if row is not None else None

    def _all(self, stmt) -> List[Any]:
        return [_from_row(self.model, row) for row in self._session.scalars(stmt)]


class SqlPropertyRepository(_SqlRepository):
    model = Property
    orm = PropertyRow

    def list_all(self) -> List[Property]:
        return self._all(select(PropertyRow).order_by(PropertyRow.name))


class SqlRoomTypeRepository(_SqlRepository):
    model = RoomType
    orm = RoomTypeRow


class SqlRoomRepository(_SqlRepository):
    model = Room
    orm = RoomRow

    def list_active(
        self,
        property_id: Optional[EntityId] = None,
        room_type_id: Optional[EntityId] = None,
        status: Optional[RoomStatus] = None,
    ) -> List[Room]:
        stmt = select(RoomRow).where(RoomRow.is_active.is_(True))
        if property_id is not None:
            stmt = stmt.where(RoomRow.property_id == property_id)
        if room_type_id is not None:
            stmt = stmt.where(RoomRow.room_type_id == room_type_id)
        if status is not None:
            stmt = stmt.where(RoomRow.status == status.value)
        return self._all(stmt.order_by(RoomRow.room_number))


class SqlAvailabilityBlockRepository(_SqlRepository):
    model = AvailabilityBlock
    orm = AvailabilityBlockRow

    def list_for_room(self, room_id: EntityId) -> List[AvailabilityBlock]:
        return self._all(
            select(AvailabilityBlockRow)
            .where(AvailabilityBlockRow.room_id == room_id)
            .order_by(AvailabilityBlockRow.start_date)
        )

    def blocked_room_ids(self, check_in: date, check_out: date) -> Set[EntityId]:
        stmt = select(AvailabilityBlockRow.room_id).where(
            AvailabilityBlockRow.start_date < check_out,
            AvailabilityBlockRow.end_date > check_in,
        )
        return set(self._session.scalars(stmt))


class SqlRateRepository(_SqlRepository):
    model = Rate
    orm = RateRow

    @staticmethod
    def _key_filter(room_type_id: EntityId, stay_type: StayType, property_id: Optional[EntityId]):
        property_clause = (
            RateRow.property_id.is_(None) if property_id is None
            else RateRow.property_id == property_id
        )
        return (
            RateRow.room_type_id == room_type_id,
            RateRow.stay_type == stay_type.value,
            property_clause,
        )

    def find_active(
        self,
        room_type_id: EntityId,
        stay_type: StayType,
        property_id: Optional[EntityId] = None,
    ) -> Optional[Rate]:
        row = self._session.scalars(
            select(RateRow)
            .where(*self._key_filter(room_type_id, stay_type, property_id))
            .where(RateRow.is_active.is_(True))
        ).first()
        return _from_row(Rate, row) if row is not None else None

    def upsert(self, rate: Rate) -> Rate:
        row = self._session.scalars(
            select(RateRow).where(
                *self._key_filter(rate.room_type_id, rate.stay_type, rate.property_id)
            )
        ).first()
        if row is None:
            self.add(rate)
            return rate

        rate = rate.model_copy(update={"id": row.id})
        for key, value in _to_columns(rate, RateRow).items():
            setattr(row, key, value)
        self._session.flush()
        return rate

    def list_active(self, property_id: Optional[EntityId] = None) -> List[Rate]:
        stmt = select(RateRow).where(RateRow.is_active.is_(True))
        if property_id is not None:
            stmt = stmt.where(
                or_(RateRow.property_id == property_id, RateRow.property_id.is_(None))
            )
        rates = self._all(stmt)
        rates.sort(key=lambda r: (r.stay_type.value, str(r.room_type_id)))
        return rates


class SqlRoomRateOverrideRepository(_SqlRepository):
    model = RoomRateOverride
    orm = RoomRateOverrideRow

    def find_active(self, room_id: EntityId, stay_type: StayType) -> Optional[RoomRateOverride]:
        row = self._session.scalars(
            select(RoomRateOverrideRow).where(
                RoomRateOverrideRow.room_id == room_id,
                RoomRateOverrideRow.stay_type == stay_type.value,
                RoomRateOverrideRow.is_active.is_(True),
            )
        ).first()
        return _from_row(RoomRateOverride, row) if row is not None else None

    def upsert(self, override: RoomRateOverride) -> RoomRateOverride:
        row = self._session.scalars(
            select(RoomRateOverrideRow).where(
                RoomRateOverrideRow.room_id == override.room_id,
                RoomRateOverrideRow.stay_type == override.stay_type.value,
            )
        ).first()
        if row is None:
            self.add(override)
            return override

        override = override.model_copy(update={"id": row.id})
        for key, value in _to_columns(override, RoomRateOverrideRow).items():
            setattr(row, key, value)
        self._session.flush()
        return override

    def delete(self, override_id: EntityId) -> bool:
        row = self._session.get(RoomRateOverrideRow, override_id)
        if row is None:
            return False
        self._session.delete(row)
        self._session.flush()
        return True

    def list_active(
        self, room_ids: Optional[Iterable[EntityId]] = None
    ) -> List[RoomRateOverride]:
        stmt = select(RoomRateOverrideRow).where(RoomRateOverrideRow.is_active.is_(True))
        if room_ids is not None:
            stmt = stmt.where(RoomRateOverrideRow.room_id.in_(list(room_ids)))
        return self._all(stmt)


class SqlGuestRepository(_SqlRepository):
    model = Guest
    orm = GuestRow

    def find_by_email(self, email: str) -> Optional[Guest]:
        row = self._session.scalars(
            select(GuestRow).where(func.lower(GuestRow.email) == email.lower())
        ).first()
        return _from_row(Guest, row) if row is not None else None


class SqlBookingRepository(_SqlRepository):
    model = Booking
    orm = BookingRow

    def get_by_code(self, booking_code: str) -> Optional[Booking]:
        row = self._session.scalars(
            select(BookingRow).where(BookingRow.booking_code == booking_code)
        ).first()
        return _from_row(Booking, row) if row is not None else None

    def list(
        self,
        property_id: Optional[EntityId] = None,
        status: Optional[BookingStatus] = None,
        payment_status: Optional[PaymentStatus] = None,
        search: Optional[str] = None,
        offset: int = 0,
        limit: int = 20,
    ) -> Tuple[List[Booking], int]:
        stmt = select(BookingRow)
        if property_id is not None:
            stmt = stmt.where(BookingRow.property_id == property_id)
        if status is not None:
            stmt = stmt.where(BookingRow.status == status.value)
        if payment_status is not None:
            stmt = stmt.where(BookingRow.payment_status == payment_status.value)
        if search:
            pattern = f"%{search}%"
            stmt = stmt.join(GuestRow, GuestRow.id == BookingRow.guest_id).where(
                or_(BookingRow.booking_code.ilike(pattern), GuestRow.full_name.ilike(pattern))
            )

        total = self._session.scalar(select(func.count()).select_from(stmt.subquery()))
        page = self._all(
            stmt.order_by(BookingRow.created_at.desc()).offset(offset).limit(limit)
        )
        return page, total or 0

    def list_pending_created_before(self, cutoff: datetime) -> List[Booking]:
        return self._all(
            select(BookingRow).where(
                BookingRow.status == BookingStatus.PENDING.value,
                BookingRow.payment_status == PaymentStatus.UNPAID.value,
                BookingRow.payment_method_type != PaymentMethodType.PAY_AT_PROPERTY.value,
                BookingRow.created_at < cutoff,
            )
        )

    def room_is_free(
        self,
        room_id: EntityId,
        check_in: date,
        check_out: date,
        exclude_booking_id: Optional[EntityId] = None,
    ) -> bool:
        stmt = select(BookingRow.id).where(
            BookingRow.room_id == room_id,
            BookingRow.status.not_in(_TERMINAL),
            BookingRow.check_in < check_out,
            BookingRow.check_out > check_in,
        )
        if exclude_booking_id is not None:
            stmt = stmt.where(BookingRow.id != exclude_booking_id)
        if self._session.scalars(stmt.limit(1)).first() is not None:
            return False

        blocked = select(AvailabilityBlockRow.id).where(
            AvailabilityBlockRow.room_id == room_id,
            AvailabilityBlockRow.start_date < check_out,
            AvailabilityBlockRow.end_date > check_in,
        )
        return self._session.scalars(blocked.limit(1)).first() is None

    def add_if_room_free(self, booking: Booking) -> bool:
        # Блокировка строки номера сериализует конкурентные вставки
        self._session.execute(
            select(RoomRow.id).where(RoomRow.id == booking.room_id).with_for_update()
        )
        if not self.room_is_free(booking.room_id, booking.check_in, booking.check_out):
            return False
        self.add(booking)
        return True

    def conflicting_room_ids(self, check_in: date, check_out: date) -> Set[EntityId]:
        stmt = select(BookingRow.room_id).where(
            BookingRow.status.not_in(_TERMINAL),
            BookingRow.check_in < check_out,
            BookingRow.check_out > check_in,
        )
        return set(self._session.scalars(stmt))


class SqlPaymentRepository(_SqlRepository):
    model = Payment
    orm = PaymentRow

    def get_by_gateway_invoice_id(
        self, invoice_id: str, for_update: bool = False
    ) -> Optional[Payment]:
        stmt = select(PaymentRow).where(PaymentRow.gateway_invoice_id == invoice_id)
        if for_update:
            stmt = locked(stmt)
        row = self._session.scalars(stmt).first()
        return _from_row(Payment, row) if row is not None else None

    def list_for_booking(self, booking_id: EntityId) -> List[Payment]:
        return self._all(
            select(PaymentRow)
            .where(PaymentRow.booking_id == booking_id)
            .order_by(PaymentRow.created_at)
        )


def make_engine(database_url: str) -> Engine:
    """Создает движок; SQLite в памяти использует одно общее соединение."""
    if database_url.startswith("sqlite"):
        options: Dict[str, Any] = {"connect_args": {"check_same_thread": False}}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            options["poolclass"] = StaticPool
        return create_engine(database_url, **options)
    return create_engine(database_url, pool_pre_ping=True)


class SqlUnitOfWork:
    """Единица работы поверх сессии SQLAlchemy.

    Внешний вход открывает сессию и транзакцию, вложенные входы
    используют ту же сессию; фиксация происходит при выходе из внешнего.
    """

    def __init__(
        self,
        database_url: Optional[str] = None,
        engine: Optional[Engine] = None,
        logger: Optional[ILogger] = None,
    ):
        if engine is None:
            if not database_url:
                raise ValueError("Нужен database_url или engine")
            engine = make_engine(database_url)
        self._engine = engine
        self._session_factory = sessionmaker(
            bind=engine, autoflush=False, expire_on_commit=False
        )
        self._local = threading.local()
        self._logger = logger or get_logger(__name__)

        self._properties = SqlPropertyRepository(self)
        self._room_types = SqlRoomTypeRepository(self)
        self._rooms = SqlRoomRepository(self)
        self._blocks = SqlAvailabilityBlockRepository(self)
        self._rates = SqlRateRepository(self)
        self._overrides = SqlRoomRateOverrideRepository(self)
        self._guests = SqlGuestRepository(self)
        self._bookings = SqlBookingRepository(self)
        self._payments = SqlPaymentRepository(self)

    @property
    def engine(self) -> Engine:
        return self._engine

    def create_schema(self) -> None:
        """Создает таблицы, если их еще нет."""
        Base.metadata.create_all(self._engine)

    @property
    def session(self) -> Session:
        session = getattr(self._local, "session", None)
        if session is None:
            raise RuntimeError("Репозиторий используется вне единицы работы")
        return session

    @property
    def properties(self) -> SqlPropertyRepository:
        return self._properties

    @property
    def room_types(self) -> SqlRoomTypeRepository:
        return self._room_types

    @property
    def rooms(self) -> SqlRoomRepository:
        return self._rooms

    @property
    def blocks(self) -> SqlAvailabilityBlockRepository:
        return self._blocks

    @property
    def rates(self) -> SqlRateRepository:
        return self._rates

    @property
    def overrides(self) -> SqlRoomRateOverrideRepository:
        return self._overrides

    @property
    def guests(self) -> SqlGuestRepository:
        return self._guests

    @property
    def bookings(self) -> SqlBookingRepository:
        return self._bookings

    @property
    def payments(self) -> SqlPaymentRepository:
        return self._payments

    def commit(self) -> None:
        """Фиксирует транзакцию."""
        self.session.commit()
        self._logger.debug("SqlUnitOfWork committed")

    def rollback(self) -> None:
        """Откатывает транзакцию."""
        self.session.rollback()
        self._logger.warning("SqlUnitOfWork rolled back")

    def __enter__(self) -> "SqlUnitOfWork":
        depth = getattr(self._local, "depth", 0)
        if depth == 0:
            self._local.session = self._session_factory()
        self._local.depth = depth + 1
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self._local.depth -= 1
        if self._local.depth > 0:
            return False

        try:
            if exc_type is None:
                self.commit()
            else:
                self.rollback()
        finally:
            self.session.close()
            self._local.session = None
        return False
