from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from mediaops.core.deps import OrgContext, require_csrf_header, require_member
from mediaops.db.session import get_session
from mediaops.schemas.customers import (
    CustomerCreateRequest,
    CustomerListItem,
    CustomerOut,
    CustomerUpdateRequest,
)
from mediaops.services.customers import (
    create_customer,
    delete_customer,
    list_customers,
    update_customer,
)

router = APIRouter(
    prefix="/customers", tags=["customers"], dependencies=[Depends(require_csrf_header)]
)


@router.get("", response_model=list[CustomerListItem])
def customers_list(
    search: str | None = Query(default=None, max_length=200),
    org: OrgContext = Depends(require_member),
    session: Session = Depends(get_session),
) -> list[CustomerListItem]:
    return [
        CustomerListItem(
            **CustomerOut.model_validate(s.customer).model_dump(),
            total_jobs=s.total_jobs,
            last_job_at=s.last_job_at,
        )
        for s in list_customers(session=session, ctx=org, search=search)
    ]


@router.post("", response_model=CustomerOut, status_code=status.HTTP_201_CREATED)
def customers_create(
    payload: CustomerCreateRequest,
    org: OrgContext = Depends(require_member),
    session: Session = Depends(get_session),
) -> CustomerOut:
    customer = create_customer(session=session, ctx=org, data=payload.model_dump())
    session.commit()
    return customer


@router.patch("/{customer_id}", response_model=CustomerOut)
def customers_update(
    customer_id: UUID,
    payload: CustomerUpdateRequest,
    org: OrgContext = Depends(require_member),
    session: Session = Depends(get_session),
) -> CustomerOut:
    customer = update_customer(
        session=session,
        ctx=org,
        customer_id=customer_id,
        updates=payload.model_dump(exclude_unset=True),
    )
    session.commit()
    return customer


@router.delete("/{customer_id}", status_code=status.HTTP_204_NO_CONTENT)
def customers_delete(
    customer_id: UUID,
    org: OrgContext = Depends(require_member),
    session: Session = Depends(get_session),
) -> Response:
    delete_customer(session=session, ctx=org, customer_id=customer_id)
    session.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
