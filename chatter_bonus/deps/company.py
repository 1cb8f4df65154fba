from fastapi import Header, HTTPException, Query


def get_active_company(
    company_query: str | None = Query(default=None, alias="companyId"),
    x_company: str | None = Header(default=None, alias="X-Company-Id"),
) -> str:
    active = x_company or company_query
    if not active:
        raise HTTPException(
            status_code=400,
            detail="Missing company context. Provide X-Company-Id header or companyId query param.",
        )
    return active
