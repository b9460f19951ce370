from sqlalchemy.orm import Session

from models.prtimes_companies import PRTimesCompany


def _serialize(row: PRTimesCompany) -> dict:
    return {
        "id": row.id,
        "batchId": row.batch_id,
        "deliveryDate": row.delivery_date.isoformat() if row.delivery_date else None,
        "pressReleaseUrl": row.press_release_url,
        "pressReleaseTitle": row.press_release_title,
        "pressReleaseType": row.press_release_type,
        "pressReleaseCategory1": row.press_release_category1,
        "pressReleaseCategory2": row.press_release_category2,
        "companyName": row.company_name,
        "companyWebsite": row.company_website,
        "industry": row.industry,
        "address": row.address,
        "phoneNumber": row.phone_number,
        "representative": row.representative,
        "listingStatus": row.listing_status,
        "capitalAmountText": row.capital_amount_text,
        "establishedDateText": row.established_date_text,
        "capitalAmountNumeric": row.capital_amount_numeric,
        "establishedYear": row.established_year,
        "establishedMonth": row.established_month,
    }


def get_rows(
    db: Session,
    batch_id: str | None = None,
    company_name: str | None = None,
    industry: list[str] | None = None,
    page: int = 1,
    limit: int = 50,
):
    query = db.query(PRTimesCompany)

    if batch_id:
        query = query.filter(PRTimesCompany.batch_id == batch_id)
    if company_name:
        query = query.filter(PRTimesCompany.company_name.ilike(f"%{company_name.strip()}%"))
    if industry:
        query = query.filter(PRTimesCompany.industry.in_(industry))

    limit = max(1, min(limit, 500))
    page = max(1, page)
    total = query.count()
    rows = (
        query.order_by(PRTimesCompany.delivery_date.desc(), PRTimesCompany.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    total_pages = (total + limit - 1) // limit

    return {
        "companies": [_serialize(r) for r in rows],
        "pagination": {
            "currentPage": page,
            "totalPages": total_pages,
            "totalCount": total,
            "hasNextPage": page < total_pages,
            "hasPrevPage": page > 1,
        },
    }
