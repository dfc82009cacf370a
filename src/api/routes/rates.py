"""Rate card endpoints.

Managers pass ``X-Target-User-Id`` to read or edit the rates of the other
member of their tent.
"""

import uuid
from typing import Annotated, Any

from fastapi import APIRouter, Header, Query

from src.api.constants import TARGET_USER_HEADER
from src.api.dependencies import AuthenticatedUser
from src.api.schemas.rates import RatesOut, SaveRatesRequest
from src.domain.rates.service import RatesService
from src.infrastructure.database.dependencies import DatabaseSession

router = APIRouter(prefix="/api/rates", tags=["rates"])

TargetUser = Annotated[uuid.UUID | None, Header(alias=TARGET_USER_HEADER)]


@router.get("")
async def get_rates(
    user: AuthenticatedUser,
    db: DatabaseSession,
    tent_id: Annotated[int | None, Query(alias="tentId")] = None,
    target_user_id: TargetUser = None,
) -> dict[str, Any]:
    rates = await RatesService(db).get_rates(user.id, tent_id, target_user_id)
    return {"rates": RatesOut.model_validate(rates) if rates is not None else None}


@router.post("")
async def save_rates(
    body: SaveRatesRequest,
    user: AuthenticatedUser,
    db: DatabaseSession,
    target_user_id: TargetUser = None,
) -> dict[str, Any]:
    rates = await RatesService(db).save_rates(
        user.id, body.tent_id, body.to_values(), target_user_id
    )
    return {"rates": RatesOut.model_validate(rates)}


@router.delete("")
async def delete_rates(
    user: AuthenticatedUser,
    db: DatabaseSession,
    tent_id: Annotated[int | None, Query(alias="tentId")] = None,
) -> dict[str, Any]:
    await RatesService(db).delete_rates(user.id, tent_id)
    return {"success": True}
