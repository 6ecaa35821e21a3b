"""Auction database models.

Column types stay portable (no dialect-specific types) so the same schema
runs on PostgreSQL in production and SQLite in tests.
"""

from datetime import datetime

from sqlalchemy import BigInteger, Boolean, DateTime, ForeignKey, Integer, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from .models import Player, PlayerStatus, Pool, Team, Tournament


class Base(DeclarativeBase):
    """Declarative base for auction tables."""


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class TournamentRow(Base, TimestampMixin):
    """Tournament squad rules and owning admin."""

    __tablename__ = "auction_tournaments"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    admin_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    max_squad_size: Mapped[int | None] = mapped_column(Integer, nullable=True)
    max_overseas_players: Mapped[int | None] = mapped_column(Integer, nullable=True)

    def to_domain(self) -> Tournament:
        return Tournament(
            tournament_id=self.id,
            title=self.title,
            admin_id=self.admin_id,
            max_squad_size=self.max_squad_size,
            max_overseas_players=self.max_overseas_players,
        )


class TeamRow(Base, TimestampMixin):
    __tablename__ = "auction_teams"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    tournament_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("auction_tournaments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    purse_remaining: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)

    def to_domain(self, player_ids: tuple[str, ...] = ()) -> Team:
        return Team(
            team_id=self.id,
            name=self.name,
            purse_remaining=self.purse_remaining,
            player_ids=player_ids,
        )


class PoolRow(Base, TimestampMixin):
    __tablename__ = "auction_pools"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    tournament_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("auction_tournaments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    order: Mapped[int] = mapped_column("sort_order", Integer, default=0, nullable=False)
    is_completed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    def to_domain(self, player_ids: tuple[str, ...] = ()) -> Pool:
        return Pool(
            pool_id=self.id,
            name=self.name,
            player_ids=player_ids,
            order=self.order,
            is_completed=self.is_completed,
        )


class PlayerRow(Base, TimestampMixin):
    """Player entry of a tournament.

    ``pool_position`` is the stored order inside the pool; ``roster_position``
    the purchase order inside the buying team.
    """

    __tablename__ = "auction_players"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    tournament_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("auction_tournaments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False)
    nationality: Mapped[str] = mapped_column(String(50), nullable=False)
    base_price: Mapped[int] = mapped_column(BigInteger, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20),
        default=PlayerStatus.AVAILABLE.value,
        nullable=False,
        index=True,
    )
    sold_price: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    sold_to: Mapped[str | None] = mapped_column(
        String(64),
        ForeignKey("auction_teams.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    pool_id: Mapped[str | None] = mapped_column(
        String(64),
        ForeignKey("auction_pools.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    pool_position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    roster_position: Mapped[int | None] = mapped_column(Integer, nullable=True)

    def to_domain(self) -> Player:
        return Player(
            player_id=self.id,
            name=self.name,
            role=self.role,
            nationality=self.nationality,
            base_price=self.base_price,
            status=PlayerStatus(self.status),
            sold_price=self.sold_price,
            sold_to=self.sold_to,
        )
