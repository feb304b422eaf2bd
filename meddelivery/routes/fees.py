from fastapi import APIRouter, HTTPException, Query

from meddelivery.fees import Coordinates, compute_fee, quote

router = APIRouter(prefix="/fees", tags=["fees"])


@router.get("/estimate")
async def estimate_fee(
    distance_km: float | None = Query(default=None, description="Known distance in km"),
    latitude: float | None = Query(default=None, ge=-90, le=90),
    longitude: float | None = Query(default=None, ge=-180, le=180),
) -> dict:
    """
    Price a delivery without touching any order: either from a distance, or from
    destination coordinates measured against the hospital.
    """
    if distance_km is not None:
        return {"distance_km": distance_km, "fee": compute_fee(distance_km)}
    if latitude is None or longitude is None:
        raise HTTPException(status_code=422, detail="Provide distance_km or both latitude and longitude")
    return quote(Coordinates(latitude, longitude))._asdict()
