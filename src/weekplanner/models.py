"""SQLAlchemy database models."""

from datetime import date, datetime

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from weekplanner.database import Base


class User(Base):
    """User account (identity is owned by the auth service)."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    meal_plans: Mapped[list["MealPlan"]] = relationship("MealPlan", back_populates="owner")
    favorites: Mapped[list["FavoriteTemplate"]] = relationship(
        "FavoriteTemplate", back_populates="user"
    )


class MealPlan(Base):
    """A user's meal plan for one ISO week."""

    __tablename__ = "meal_plans"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    owner_id: Mapped[str] = mapped_column(String, ForeignKey("users.id"), nullable=False)
    week: Mapped[str] = mapped_column(String(8), nullable=False)  # "2025-W28"
    shopping_list_state: Mapped[list] = mapped_column(JSON, default=list)
    # No FK: a deleted template must leave a detectable dangling reference
    template_id: Mapped[str | None] = mapped_column(String, nullable=True)
    template_orphaned: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    version: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    owner: Mapped["User"] = relationship("User", back_populates="meal_plans")
    slots: Mapped[list["MealPlanSlot"]] = relationship(
        "MealPlanSlot",
        back_populates="plan",
        cascade="all, delete-orphan",
        order_by="MealPlanSlot.slot_date",
    )

    __table_args__ = (
        UniqueConstraint("owner_id", "week", name="uq_meal_plan_owner_week"),
        Index("idx_meal_plans_template_id", "template_id"),
    )


class MealPlanSlot(Base):
    """One (date, meal type) cell of a meal plan."""

    __tablename__ = "meal_plan_slots"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    meal_plan_id: Mapped[str] = mapped_column(
        String, ForeignKey("meal_plans.id", ondelete="CASCADE"), nullable=False
    )
    slot_date: Mapped[date] = mapped_column(Date, nullable=False)
    meal_type: Mapped[str] = mapped_column(String(20), nullable=False)  # breakfast, lunch, dinner, snacks
    recipe_id: Mapped[str | None] = mapped_column(String, nullable=True)
    servings: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    plan: Mapped["MealPlan"] = relationship("MealPlan", back_populates="slots")

    __table_args__ = (
        UniqueConstraint("meal_plan_id", "slot_date", "meal_type", name="uq_meal_plan_slot_key"),
    )


class MealTemplate(Base):
    """Published, shareable week of slot assignments."""

    __tablename__ = "meal_templates"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    author_id: Mapped[str] = mapped_column(String, ForeignKey("users.id"), nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    tags: Mapped[list] = mapped_column(JSON, default=list)
    difficulty: Mapped[str | None] = mapped_column(String(10), nullable=True)  # easy, medium, hard
    image: Mapped[str | None] = mapped_column(Text, nullable=True)
    source_week: Mapped[str | None] = mapped_column(String(8), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    slots: Mapped[list["MealTemplateSlot"]] = relationship(
        "MealTemplateSlot", back_populates="template", cascade="all, delete-orphan"
    )
    ratings: Mapped[list["TemplateRating"]] = relationship(
        "TemplateRating", back_populates="template", cascade="all, delete-orphan"
    )

    __table_args__ = (Index("idx_meal_templates_author_id", "author_id"),)


class MealTemplateSlot(Base):
    """Template slot keyed by weekday name rather than a calendar date."""

    __tablename__ = "meal_template_slots"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    template_id: Mapped[str] = mapped_column(
        String, ForeignKey("meal_templates.id", ondelete="CASCADE"), nullable=False
    )
    day_of_week: Mapped[str] = mapped_column(String(10), nullable=False)  # Monday .. Sunday
    meal_type: Mapped[str] = mapped_column(String(20), nullable=False)
    recipe_id: Mapped[str] = mapped_column(String, nullable=False)

    template: Mapped["MealTemplate"] = relationship("MealTemplate", back_populates="slots")


class TemplateRating(Base):
    """A user's 1-5 rating of a template."""

    __tablename__ = "template_ratings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    template_id: Mapped[str] = mapped_column(
        String, ForeignKey("meal_templates.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(String, nullable=False)
    value: Mapped[int] = mapped_column(Integer, nullable=False)

    template: Mapped["MealTemplate"] = relationship("MealTemplate", back_populates="ratings")

    __table_args__ = (UniqueConstraint("template_id", "user_id", name="uq_template_rating_user"),)


class FavoriteTemplate(Base):
    """Template bookmarked by a user."""

    __tablename__ = "favorite_templates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String, ForeignKey("users.id"), nullable=False)
    template_id: Mapped[str] = mapped_column(String, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    user: Mapped["User"] = relationship("User", back_populates="favorites")

    __table_args__ = (
        UniqueConstraint("user_id", "template_id", name="uq_favorite_template_user"),
        Index("idx_favorite_templates_template_id", "template_id"),
    )


class TemplateDeletionRun(Base):
    """Track a template deletion cascade so partial failures can be retried."""

    __tablename__ = "template_deletions"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    template_id: Mapped[str] = mapped_column(String, nullable=False)
    author_id: Mapped[str] = mapped_column(String, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)  # running, completed, failed
    plans_deleted: Mapped[int] = mapped_column(Integer, default=0)
    plans_orphaned: Mapped[int] = mapped_column(Integer, default=0)
    favorites_removed: Mapped[int] = mapped_column(Integer, default=0)
    attempts: Mapped[int] = mapped_column(Integer, default=0)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    started_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    __table_args__ = (
        Index("idx_template_deletions_template_id", "template_id"),
        Index("idx_template_deletions_status", "status"),
    )
