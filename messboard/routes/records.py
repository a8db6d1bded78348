# FILE: messboard/routes/records.py
"""
Menu record endpoints
"""
import asyncio
import logging
from typing import Optional
from fastapi import APIRouter, Depends, Query

from messboard.deps import get_engine
from messboard.models.records import RecordCreate
from messboard.services.lifecycle import LifecycleEngine

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("")
async def list_records(
    menu_type: Optional[str] = Query(None, alias="menuType"),
    q: Optional[str] = None,
    engine: LifecycleEngine = Depends(get_engine)
):
    """Active records, newest first; never fails"""
    try:
        records = await engine.list_active(menu_type=menu_type, query=q)
    except Exception as e:
        logger.error(f"Error listing records: {e}", exc_info=True)
        return []
    return [r.model_dump(by_alias=True, mode="json") for r in records]


@router.post("", status_code=201)
async def create_record(request: RecordCreate, engine: LifecycleEngine = Depends(get_engine)):
    """Post a new menu"""
    logger.info(f"Create record: {request.name}")

    # Finish the write even if the client goes away
    record = await asyncio.shield(engine.create(request))
    return record.model_dump(by_alias=True, mode="json")


@router.delete("/expired")
async def sweep_records(engine: LifecycleEngine = Depends(get_engine)):
    """Explicit sweep of expired records"""
    deleted_count = await asyncio.shield(engine.sweep())
    return {
        "message": f"Deleted {deleted_count} expired messes",
        "deletedCount": deleted_count
    }


@router.delete("/{record_id}")
async def delete_record(record_id: str, engine: LifecycleEngine = Depends(get_engine)):
    """Delete one record"""
    logger.info(f"Delete record: {record_id}")

    await asyncio.shield(engine.delete_one(record_id))
    return {
        "message": "Record deleted",
        "id": record_id
    }
