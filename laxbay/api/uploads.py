# laxbay/api/uploads.py
from fastapi import APIRouter, Depends
from .. import schemas, storage
from ..auth import Identity, require_user

router = APIRouter(prefix="/api/uploads")


@router.post("/presign", response_model=schemas.PresignResponse)
def presign(payload: schemas.PresignRequest, identity: Identity = Depends(require_user)):
    return storage.presign_upload(identity.username, payload.filename, payload.contentType)
