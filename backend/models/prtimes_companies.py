# models/prtimes_companies.py

from sqlalchemy import Column, DateTime, Integer, BigInteger, String, Text, func
from db.base import Base


class PRTimesCompany(Base):
    __tablename__ = "prtimes_companies"

    id = Column(Integer().with_variant(BigInteger, "postgresql"), primary_key=True, index=True)
    batch_id = Column(String(64), nullable=False, index=True)

    delivery_date = Column(DateTime(timezone=True), nullable=False, index=True)
    press_release_url = Column(String(1000), nullable=False)
    press_release_title = Column(Text, nullable=False)
    press_release_type = Column(String(100))
    press_release_category1 = Column(String(100), nullable=False, default="-", index=True)
    press_release_category2 = Column(String(100), nullable=False, default="-", index=True)

    company_name = Column(String(255), nullable=False, index=True)
    company_website = Column(String(1000))
    industry = Column(String(100), nullable=False, default="-", index=True)
    address = Column(String(500))
    phone_number = Column(String(100))
    representative = Column(String(200))
    listing_status = Column(String(200), nullable=False, default="-", index=True)

    capital_amount_text = Column(String(200))
    established_date_text = Column(String(100))
    capital_amount_numeric = Column(Integer, index=True)  # unit: 10,000 yen
    established_year = Column(Integer, index=True)
    established_month = Column(Integer)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
