from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from assetmarket.core.auth import require_admin
from assetmarket.database import get_db
from assetmarket.schemas.asset import AssetResponse, MintRequest
from assetmarket.services import ownership_service, registry_service

router = APIRouter(prefix="/assets", tags=["assets"])


@router.post("", response_model=AssetResponse, status_code=201)
async def mint(
    req: MintRequest,
    db: AsyncSession = Depends(get_db),
    admin_id: str = Depends(require_admin),
):
    asset = await ownership_service.mint_asset(db, req.owner_id, req.uri, minted_by=admin_id)
    return _asset_to_response(asset, listed=False)


@router.get("/{asset_id}", response_model=AssetResponse)
async def get_asset(asset_id: int, db: AsyncSession = Depends(get_db)):
    asset = await ownership_service.get_asset(db, asset_id)
    listed = await registry_service.get_listing(db, asset_id) is not None
    return _asset_to_response(asset, listed=listed)


def _asset_to_response(asset, *, listed: bool) -> AssetResponse:
    return AssetResponse(
        id=asset.id,
        owner_id=asset.owner_id,
        uri=asset.uri,
        transfer_count=asset.transfer_count or 0,
        listed=listed,
        created_at=asset.created_at,
        updated_at=asset.updated_at,
    )
