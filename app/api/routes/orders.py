"""Order override endpoints."""

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from app.api.dependencies import get_research_service
from app.api.errors import http_error
from app.services.research import ResearchService
from app.services.research.schemas import OrderOut, order_out

router = APIRouter(prefix="/api/orders", tags=["orders"])


class OverridesIn(BaseModel):
    """
    Override edits.

    Omit a field to leave it unchanged; send null or "" to clear it.
    """

    race_name_override: str | None = None
    year_override: int | str | None = None
    runner_name_override: str | None = None


@router.patch("/{order_number}/overrides", response_model=OrderOut)
async def update_overrides(
    order_number: str,
    overrides: OverridesIn,
    service: ResearchService = Depends(get_research_service),
):
    """Set or clear race name, year and runner name overrides."""
    fields = overrides.model_dump(exclude_unset=True)
    kwargs = {}
    if "race_name_override" in fields:
        kwargs["race_name"] = fields["race_name_override"]
    if "year_override" in fields:
        kwargs["year"] = fields["year_override"]
    if "runner_name_override" in fields:
        kwargs["runner_name"] = fields["runner_name_override"]

    try:
        order = await service.update_overrides(order_number, **kwargs)
    except Exception as e:
        raise http_error(e) from e
    return order_out(order)
