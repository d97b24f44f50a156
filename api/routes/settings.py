from fastapi import APIRouter

from api import dependencies
from api.schemas import UpdateApiKeyRequest, UpdateApiKeyResponse

router = APIRouter(prefix="/settings", tags=["settings"])


@router.post("/api-key", response_model=UpdateApiKeyResponse)
def update_api_key(payload: UpdateApiKeyRequest) -> UpdateApiKeyResponse:
    """
    Override the model API key for the current runtime session.
    Provider, sheet ID and service account remain server-managed.
    """
    key = (payload.api_key or "").strip()
    dependencies.set_runtime_api_key(key)
    return UpdateApiKeyResponse(status="ok", api_key_set=bool(key))
