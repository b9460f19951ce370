from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Integer, String, UniqueConstraint, func, true

from db.base import Base

CATEGORY_TYPES = ("category1", "category2", "industry", "listing_status")


class PRTimesCategory(Base):
    __tablename__ = "prtimes_categories"

    id = Column(Integer, primary_key=True, index=True)
    category_type = Column(String(20), nullable=False, index=True)
    category_name = Column(String(200), nullable=False)
    usage_count = Column(Integer, nullable=False, default=0, server_default="0")
    is_active = Column(Boolean, nullable=False, default=True, server_default=true(), index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("category_type", "category_name", name="uq_prtimes_category_type_name"),
        CheckConstraint(
            "category_type IN ('category1', 'category2', 'industry', 'listing_status')",
            name="ck_prtimes_category_type",
        ),
        CheckConstraint("usage_count >= 0", name="ck_prtimes_category_usage_nonnegative"),
    )
