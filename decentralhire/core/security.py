import hmac

from fastapi import Depends, Header, HTTPException, status

from decentralhire.core.config import Settings, get_settings


async def require_ingest_key(
    settings: Settings = Depends(get_settings),
    x_api_key: str | None = Header(default=None, alias="X-API-Key"),
) -> None:
    if not settings.ingest_api_key:
        return
    if not x_api_key:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="event ingest requires X-API-Key")
    if not hmac.compare_digest(x_api_key.encode("utf-8"), settings.ingest_api_key.encode("utf-8")):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid api key")
