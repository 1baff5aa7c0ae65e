from fastapi import APIRouter, Depends
from pymongo.database import Database
from pymongo.errors import PyMongoError

from database import get_db
from utils import api_response

router = APIRouter(prefix="/healthcheck", tags=["Healthcheck"])


@router.get("")
def healthcheck(db: Database = Depends(get_db)):
    info = {"backend": "running", "database_connected": False}
    try:
        db.command("ping")
        info["database_connected"] = True
    except PyMongoError as e:
        info["error"] = str(e)
    return api_response(200, info, "ok")
